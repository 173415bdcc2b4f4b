"""
Tests for the reservation store: create, update, cancel, queries and concurrency.
"""

import random
import threading
from datetime import datetime, timedelta

import pytest

from database import get_db, immediate_transaction
from models.reservation import (
    create_reservation, update_reservation, cancel_reservation,
    get_reservations, get_reservation_by_id, get_overlapping_reservations,
    get_status_history
)
from models.reservation_crud import prepare_booking, book_locked
from models.resource import get_resource, update_resource
from models.availability import available_quantity
from utils.errors import (
    ReservationError, ReservationInputError, CapacityExceededError,
    ResourceUnavailableError, ConcurrentBookingError,
    ReservationNotFoundError, ReservationAlreadyCancelledError
)


def booking(resource_type, resource_id, start, end, quantity=None, title='Team sync'):
    payload = {
        'resource_type': resource_type,
        'resource_id': resource_id,
        'title': title,
        'start_time': start,
        'end_time': end,
    }
    if quantity is not None:
        payload['quantity'] = quantity
    return payload


def count_rows(table):
    return get_db().execute(f'SELECT COUNT(*) as count FROM {table}').fetchone()['count']


class TestCreateReservation:
    """Tests for create_reservation."""

    def test_create_room_booking(self, app, seeded_ids):
        with app.app_context():
            reservation = create_reservation(
                booking('meeting_room', seeded_ids['main_room'],
                        '2030-03-04T09:00:00', '2030-03-04T10:00:00', quantity=4),
                seeded_ids['admin'], changed_by='admin'
            )

            assert reservation['id'] > 0
            assert reservation['status'] == 'active'
            assert reservation['quantity'] == 1  # rooms always book one unit
            assert reservation['start_time'] == '2030-03-04T09:00:00'
            assert reservation['reserver_name'] == 'Administrator'

            history = get_status_history(reservation['id'])
            assert [h['action'] for h in history] == ['created']
            assert history[0]['changed_by'] == 'admin'

    def test_offset_times_stored_in_local_timezone(self, app, seeded_ids):
        """UTC input is stored as Asia/Seoul wall time (UTC+9)."""
        with app.app_context():
            reservation = create_reservation(
                booking('vehicle', seeded_ids['van'], '2030-03-04T00:00:00Z', '2030-03-04T01:30:00Z'),
                seeded_ids['admin']
            )
            assert reservation['start_time'] == '2030-03-04T09:00:00'
            assert reservation['end_time'] == '2030-03-04T10:30:00'

    def test_double_booking_rejected_without_mutation(self, app, seeded_ids):
        with app.app_context():
            room_id = seeded_ids['main_room']
            create_reservation(
                booking('meeting_room', room_id, '2030-03-04T09:00:00', '2030-03-04T10:00:00'),
                seeded_ids['admin']
            )
            reservations_before = count_rows('reservations')
            history_before = count_rows('reservation_status_history')

            with pytest.raises(CapacityExceededError) as exc:
                create_reservation(
                    booking('meeting_room', room_id, '2030-03-04T09:30:00', '2030-03-04T11:00:00'),
                    seeded_ids['staff']
                )

            assert exc.value.available_quantity == 0
            assert count_rows('reservations') == reservations_before
            assert count_rows('reservation_status_history') == history_before

    def test_touching_bookings_allowed(self, app, seeded_ids):
        with app.app_context():
            room_id = seeded_ids['main_room']
            create_reservation(
                booking('meeting_room', room_id, '2030-03-04T09:00:00', '2030-03-04T10:00:00'),
                seeded_ids['admin']
            )
            second = create_reservation(
                booking('meeting_room', room_id, '2030-03-04T10:00:00', '2030-03-04T11:00:00'),
                seeded_ids['admin']
            )
            assert second['start_time'] == '2030-03-04T10:00:00'

    def test_maintenance_equipment_rejected(self, app, seeded_ids):
        with app.app_context():
            with pytest.raises(ResourceUnavailableError):
                create_reservation(
                    booking('equipment', seeded_ids['drone'], '2030-03-04T09:00:00', '2030-03-04T10:00:00'),
                    seeded_ids['admin']
                )

    def test_unknown_resource(self, app, seeded_ids):
        with app.app_context():
            with pytest.raises(ReservationError) as exc:
                create_reservation(
                    booking('vehicle', 9999, '2030-03-04T09:00:00', '2030-03-04T10:00:00'),
                    seeded_ids['admin']
                )
            assert exc.value.code == 'resource_not_found'

            with pytest.raises(ReservationInputError) as exc:
                create_reservation(
                    booking('boat', 1, '2030-03-04T09:00:00', '2030-03-04T10:00:00'),
                    seeded_ids['admin']
                )
            assert exc.value.code == 'invalid_resource_type'

    def test_camera_scenario(self, app, seeded_ids):
        """Camera A (2 units): 1 @10-12 ok, 2 @11-13 rejected, 1 @12-14 ok."""
        with app.app_context():
            camera_id = seeded_ids['camera']
            camera = get_resource('equipment', camera_id)
            assert camera['quantity'] == 2

            create_reservation(
                booking('equipment', camera_id, '2030-03-04T10:00:00', '2030-03-04T12:00:00', quantity=1),
                seeded_ids['admin']
            )
            current = get_overlapping_reservations(
                'equipment', camera_id, '2030-03-04T10:00:00', '2030-03-04T12:00:00'
            )
            assert available_quantity(camera, '2030-03-04T10:00:00', '2030-03-04T12:00:00', current) == 1

            with pytest.raises(CapacityExceededError) as exc:
                create_reservation(
                    booking('equipment', camera_id, '2030-03-04T11:00:00', '2030-03-04T13:00:00', quantity=2),
                    seeded_ids['staff']
                )
            assert exc.value.available_quantity == 1
            assert exc.value.requested_quantity == 2

            third = create_reservation(
                booking('equipment', camera_id, '2030-03-04T12:00:00', '2030-03-04T14:00:00', quantity=1),
                seeded_ids['staff']
            )
            assert third['quantity'] == 1


class TestUpdateReservation:
    """Tests for update_reservation."""

    def test_edit_overlapping_own_allocation(self, app, seeded_ids):
        """Moving 09:00-10:00 to 09:30-10:30 on a 1-unit resource is allowed."""
        with app.app_context():
            reservation = create_reservation(
                booking('meeting_room', seeded_ids['main_room'], '2030-03-04T09:00:00', '2030-03-04T10:00:00'),
                seeded_ids['admin']
            )
            updated = update_reservation(
                reservation['id'],
                {'start_time': '2030-03-04T09:30:00', 'end_time': '2030-03-04T10:30:00'},
                changed_by='admin'
            )
            assert updated['start_time'] == '2030-03-04T09:30:00'
            assert updated['end_time'] == '2030-03-04T10:30:00'
            assert [h['action'] for h in get_status_history(reservation['id'])] == ['created', 'updated']

    def test_edit_into_conflict_rejected(self, app, seeded_ids):
        with app.app_context():
            room_id = seeded_ids['main_room']
            first = create_reservation(
                booking('meeting_room', room_id, '2030-03-04T09:00:00', '2030-03-04T10:00:00'),
                seeded_ids['admin']
            )
            create_reservation(
                booking('meeting_room', room_id, '2030-03-04T11:00:00', '2030-03-04T12:00:00'),
                seeded_ids['admin']
            )
            with pytest.raises(CapacityExceededError):
                update_reservation(first['id'], {'end_time': '2030-03-04T11:30:00'})

            assert get_reservation_by_id(first['id'])['end_time'] == '2030-03-04T10:00:00'

    def test_quantity_increase_rechecked(self, app, seeded_ids):
        with app.app_context():
            camera_id = seeded_ids['camera']
            first = create_reservation(
                booking('equipment', camera_id, '2030-03-04T10:00:00', '2030-03-04T12:00:00', quantity=1),
                seeded_ids['admin']
            )
            # Own unit is excluded: 1 -> 2 fits
            assert update_reservation(first['id'], {'quantity': 2})['quantity'] == 2

            second = create_reservation(
                booking('equipment', camera_id, '2030-03-04T12:00:00', '2030-03-04T13:00:00', quantity=1),
                seeded_ids['admin']
            )
            with pytest.raises(CapacityExceededError):
                update_reservation(second['id'], {'start_time': '2030-03-04T11:00:00'})

    def test_move_to_other_resource(self, app, seeded_ids):
        with app.app_context():
            reservation = create_reservation(
                booking('meeting_room', seeded_ids['main_room'], '2030-03-04T09:00:00', '2030-03-04T10:00:00'),
                seeded_ids['admin']
            )
            moved = update_reservation(reservation['id'], {'resource_id': seeded_ids['small_room']})
            assert moved['resource_id'] == seeded_ids['small_room']

    def test_title_edit_allowed_when_resource_in_maintenance(self, app, seeded_ids):
        with app.app_context():
            reservation = create_reservation(
                booking('equipment', seeded_ids['light'], '2030-03-04T09:00:00', '2030-03-04T10:00:00'),
                seeded_ids['admin']
            )
            db = get_db()
            db.execute("UPDATE equipment SET status = 'maintenance' WHERE id = ?", (seeded_ids['light'],))
            db.commit()

            updated = update_reservation(reservation['id'], {'title': 'Renamed'})
            assert updated['title'] == 'Renamed'

            with pytest.raises(ResourceUnavailableError):
                update_reservation(reservation['id'], {'end_time': '2030-03-04T11:00:00'})

    def test_invalid_edit(self, app, seeded_ids):
        with app.app_context():
            reservation = create_reservation(
                booking('vehicle', seeded_ids['van'], '2030-03-04T09:00:00', '2030-03-04T10:00:00'),
                seeded_ids['admin']
            )
            with pytest.raises(ReservationInputError) as exc:
                update_reservation(reservation['id'], {'title': '  '})
            assert exc.value.code == 'title_required'

            with pytest.raises(ReservationNotFoundError):
                update_reservation(99999, {'title': 'x'})

    def test_cancelled_reservation_not_editable(self, app, seeded_ids):
        with app.app_context():
            reservation = create_reservation(
                booking('vehicle', seeded_ids['van'], '2030-03-04T09:00:00', '2030-03-04T10:00:00'),
                seeded_ids['admin']
            )
            cancel_reservation(reservation['id'])
            with pytest.raises(ReservationAlreadyCancelledError):
                update_reservation(reservation['id'], {'title': 'x'})


class TestCancelReservation:
    """Tests for cancel_reservation."""

    def test_cancel_releases_capacity_once(self, app, seeded_ids):
        with app.app_context():
            camera_id = seeded_ids['camera']
            camera = get_resource('equipment', camera_id)
            window = ('2030-03-04T10:00:00', '2030-03-04T12:00:00')

            reservation = create_reservation(
                booking('equipment', camera_id, *window, quantity=1), seeded_ids['admin']
            )
            create_reservation(booking('equipment', camera_id, *window, quantity=1), seeded_ids['admin'])

            cancelled = cancel_reservation(reservation['id'], changed_by='admin')
            assert cancelled['status'] == 'cancelled'

            with pytest.raises(ReservationAlreadyCancelledError) as exc:
                cancel_reservation(reservation['id'], changed_by='admin')
            assert exc.value.code == 'already_cancelled'

            current = get_overlapping_reservations('equipment', camera_id, *window)
            assert available_quantity(camera, *window, current) == 1

            actions = [h['action'] for h in get_status_history(reservation['id'])]
            assert actions == ['created', 'cancelled']

    def test_cancel_missing(self, app):
        with app.app_context():
            with pytest.raises(ReservationNotFoundError):
                cancel_reservation(424242)

    def test_cancelled_row_kept(self, app, seeded_ids):
        with app.app_context():
            reservation = create_reservation(
                booking('vehicle', seeded_ids['van'], '2030-03-04T09:00:00', '2030-03-04T10:00:00'),
                seeded_ids['admin']
            )
            cancel_reservation(reservation['id'])
            assert get_reservation_by_id(reservation['id']) is not None
            assert get_reservations(resource_type='vehicle') == []
            assert len(get_reservations(resource_type='vehicle', status='cancelled')) == 1
            assert len(get_reservations(resource_type='vehicle', status=None)) == 1


class TestGetReservations:
    """Tests for listing filters."""

    def test_window_filter_requires_full_containment(self, app, seeded_ids):
        with app.app_context():
            van = seeded_ids['van']
            create_reservation(booking('vehicle', van, '2030-03-04T09:00:00', '2030-03-04T10:00:00'), seeded_ids['admin'])
            create_reservation(booking('vehicle', van, '2030-03-04T23:00:00', '2030-03-05T01:00:00'), seeded_ids['admin'])
            create_reservation(booking('vehicle', van, '2030-03-05T09:00:00', '2030-03-05T10:00:00'), seeded_ids['staff'])

            day = get_reservations(start_date='2030-03-04', end_date='2030-03-04')
            assert [r['start_time'] for r in day] == ['2030-03-04T09:00:00']

            both = get_reservations(start_date='2030-03-04', end_date='2030-03-05')
            assert len(both) == 3
            assert [r['start_time'] for r in both] == sorted(r['start_time'] for r in both)

            mine = get_reservations(reserver_id=seeded_ids['staff'])
            assert len(mine) == 1

    def test_overlapping_window(self, app, seeded_ids):
        with app.app_context():
            van = seeded_ids['van']
            create_reservation(booking('vehicle', van, '2030-03-01T09:00:00', '2030-03-25T18:00:00'), seeded_ids['admin'])
            create_reservation(booking('vehicle', van, '2030-03-26T09:00:00', '2030-03-26T10:00:00'), seeded_ids['admin'])

            assert get_reservations(start_date='2030-03-13', end_date='2030-03-13') == []

            long_booking = get_reservations(start_date='2030-03-13', end_date='2030-03-13', overlapping=True)
            assert [r['start_time'] for r in long_booking] == ['2030-03-01T09:00:00']

            # Touching the window edge is not overlapping
            edge = get_reservations(
                start_date='2030-03-25T18:00:00', end_date='2030-03-26T09:00:00', overlapping=True
            )
            assert edge == []

    def test_bad_date_bound(self, app):
        with app.app_context():
            with pytest.raises(ValueError):
                get_reservations(start_date='not-a-date')


class TestCapacityInvariant:
    """Randomized booking/cancel sequences never over-allocate."""

    def _assert_invariant(self, resources):
        db = get_db()
        rows = db.execute("SELECT * FROM reservations WHERE status = 'active'").fetchall()
        base = datetime(2030, 6, 1)
        for resource in resources:
            capacity = resource.get('quantity', 1) if resource['resource_type'] == 'equipment' else 1
            mine = [
                r for r in rows
                if r['resource_type'] == resource['resource_type'] and r['resource_id'] == resource['id']
            ]
            # Bookings align to the hour; probing every half hour covers every segment
            for step in range(48):
                t = (base + timedelta(minutes=30 * step)).isoformat()
                in_use = sum(r['quantity'] for r in mine if r['start_time'] <= t < r['end_time'])
                assert in_use <= capacity

    def test_random_sequences(self, app, seeded_ids):
        rng = random.Random(20240101)
        with app.app_context():
            resources = [
                get_resource('equipment', seeded_ids['camera']),
                get_resource('equipment', seeded_ids['light']),
                get_resource('meeting_room', seeded_ids['main_room']),
            ]
            active_ids = []
            successes = rejections = 0

            for _ in range(150):
                if active_ids and rng.random() < 0.25:
                    reservation_id = active_ids.pop(rng.randrange(len(active_ids)))
                    cancel_reservation(reservation_id)
                else:
                    resource = rng.choice(resources)
                    start_hour = rng.randint(6, 20)
                    duration = rng.randint(1, 3)
                    start = datetime(2030, 6, 1, start_hour)
                    payload = booking(
                        resource['resource_type'], resource['id'],
                        start.isoformat(), (start + timedelta(hours=duration)).isoformat(),
                        quantity=rng.randint(1, 3)
                    )
                    try:
                        active_ids.append(create_reservation(payload, seeded_ids['admin'])['id'])
                        successes += 1
                    except CapacityExceededError:
                        rejections += 1

                self._assert_invariant(resources)

            assert successes > 0
            assert rejections > 0


class TestConcurrentBooking:
    """Two writers racing for the last unit."""

    def test_only_one_wins(self, app, seeded_ids):
        payload = booking(
            'meeting_room', seeded_ids['small_room'],
            '2030-03-04T09:00:00', '2030-03-04T10:00:00'
        )
        barrier = threading.Barrier(2)
        outcomes = []
        lock = threading.Lock()

        def worker():
            with app.app_context():
                # Both writers saw an empty room before booking
                snapshot = get_overlapping_reservations(
                    'meeting_room', seeded_ids['small_room'],
                    payload['start_time'], payload['end_time']
                )
                barrier.wait()
                try:
                    result = create_reservation(payload, seeded_ids['admin'], snapshot=snapshot)
                    outcome = ('ok', result['id'])
                except ReservationError as e:
                    outcome = ('error', e)
                with lock:
                    outcomes.append(outcome)

        threads = [threading.Thread(target=worker) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=30)

        assert len(outcomes) == 2
        winners = [o for o in outcomes if o[0] == 'ok']
        losers = [o[1] for o in outcomes if o[0] == 'error']
        assert len(winners) == 1
        assert len(losers) == 1
        assert isinstance(losers[0], ConcurrentBookingError)
        assert losers[0].retryable is True

        with app.app_context():
            assert len(get_reservations(resource_type='meeting_room',
                                        resource_id=seeded_ids['small_room'])) == 1

    def test_stale_snapshot_reports_concurrent_change(self, app, seeded_ids):
        with app.app_context():
            van = seeded_ids['van']
            payload = booking('vehicle', van, '2030-03-04T09:00:00', '2030-03-04T10:00:00')
            snapshot = get_overlapping_reservations('vehicle', van, payload['start_time'], payload['end_time'])
            create_reservation(payload, seeded_ids['staff'])

            with pytest.raises(ConcurrentBookingError):
                create_reservation(payload, seeded_ids['admin'], snapshot=snapshot)

            # Without a snapshot it is a plain capacity rejection
            with pytest.raises(CapacityExceededError):
                create_reservation(payload, seeded_ids['admin'])

    def test_resource_change_after_validation_is_seen(self, app, seeded_ids):
        """The locked check uses the resource as it is at commit time."""
        camera = seeded_ids['camera']
        with app.app_context():
            prepared = prepare_booking(
                booking('equipment', camera, '2030-03-04T09:00:00', '2030-03-04T10:00:00', quantity=2)
            )
            assert prepared['resource']['quantity'] == 2

            # Another request lowers the quantity before the write lock is taken
            update_resource('equipment', camera, quantity=1)

            with pytest.raises(CapacityExceededError):
                with immediate_transaction() as cursor:
                    book_locked(cursor, prepared, seeded_ids['admin'])
            assert count_rows('reservations') == 0

            update_resource('equipment', camera, quantity=2, status='maintenance')
            with pytest.raises(ResourceUnavailableError):
                with immediate_transaction() as cursor:
                    book_locked(cursor, prepared, seeded_ids['admin'])
            assert count_rows('reservations') == 0
