"""
Test HTTP routes: authentication, resources, reservations and calendar.
"""

import pytest

API = '/booking/api'


def make_booking(resource_type, resource_id, start='2030-03-04T09:00:00',
                 end='2030-03-04T10:00:00', **extra):
    payload = {
        'resource_type': resource_type,
        'resource_id': resource_id,
        'title': 'Planning',
        'start_time': start,
        'end_time': end,
    }
    payload.update(extra)
    return payload


@pytest.fixture
def no_bu_client(app):
    """Client logged in as a user without a business unit."""
    from models.user import create_user

    with app.app_context():
        create_user('guest', 'guest@example.com', 'guest123', role='staff')

    client = app.test_client()
    response = client.post('/login', json={'username': 'guest', 'password': 'guest123'})
    assert response.status_code == 200
    return client


@pytest.fixture
def other_staff_client(app):
    """Second staff member in the same business unit."""
    from models.user import create_user

    with app.app_context():
        create_user('lee', 'lee@example.com', 'lee12345', role='staff', bu_code='HQ')

    client = app.test_client()
    response = client.post('/login', json={'username': 'lee', 'password': 'lee12345'})
    assert response.status_code == 200
    return client


class TestServiceRoutes:
    """Health check and JSON error pages."""

    def test_health(self, client):
        response = client.get('/api/health')
        assert response.status_code == 200
        data = response.get_json()
        assert data['status'] == 'ok'
        assert data['app'] == 'ResourceBook'

    def test_json_404(self, client):
        response = client.get('/does-not-exist')
        assert response.status_code == 404
        assert response.get_json()['code'] == 'not_found'

    def test_json_405(self, client):
        response = client.get('/login')
        assert response.status_code == 405
        assert response.get_json()['success'] is False


class TestAuthRoutes:
    """Login, logout and current user."""

    def test_login_success(self, client):
        response = client.post('/login', json={'username': 'admin', 'password': 'admin123'})
        assert response.status_code == 200
        data = response.get_json()['data']
        assert data['username'] == 'admin'
        assert data['is_admin'] is True
        assert 'password_hash' not in data

    def test_login_bad_password(self, client):
        response = client.post('/login', json={'username': 'admin', 'password': 'wrong'})
        assert response.status_code == 401
        assert response.get_json()['success'] is False

    def test_login_missing_fields(self, client):
        response = client.post('/login', json={'username': 'admin'})
        assert response.status_code == 400
        assert 'password' in response.get_json()['fields']

    def test_login_form_encoded(self, client):
        response = client.post('/login', data={'username': 'staff', 'password': 'staff123'})
        assert response.status_code == 200

    def test_me_lists_permissions(self, staff_client):
        response = staff_client.get('/me')
        assert response.status_code == 200
        data = response.get_json()['data']
        assert data['role'] == 'staff'
        assert 'reservations.create' in data['permissions']
        assert 'resources.manage' not in data['permissions']

    def test_logout(self, authenticated_client):
        assert authenticated_client.post('/logout').status_code == 200
        assert authenticated_client.get('/me').status_code == 401

    def test_api_requires_login(self, client):
        response = client.get(f'{API}/reservations')
        assert response.status_code == 401
        assert response.get_json()['success'] is False


class TestResourceRoutes:
    """Resource registry endpoints."""

    def test_list_by_kind(self, staff_client):
        response = staff_client.get(f'{API}/meeting-rooms')
        assert response.status_code == 200
        assert len(response.get_json()['data']) == 2

        response = staff_client.get(f'{API}/equipment?active=true')
        names = [item['name'] for item in response.get_json()['data']]
        assert 'Drone' not in names

    def test_unknown_kind(self, staff_client):
        assert staff_client.get(f'{API}/boats').status_code == 404

    def test_staff_cannot_manage(self, staff_client):
        response = staff_client.post(f'{API}/vehicles', json={
            'name': 'Truck', 'license_plate': '56다 7890'
        })
        assert response.status_code == 403
        assert response.get_json()['code'] == 'forbidden'

    def test_admin_create_update_delete(self, authenticated_client):
        response = authenticated_client.post(f'{API}/vehicles', json={
            'name': 'Truck', 'license_plate': '56다 7890'
        })
        assert response.status_code == 201
        truck = response.get_json()['data']
        assert truck['resource_type'] == 'vehicle'

        response = authenticated_client.patch(
            f'{API}/vehicles/{truck["id"]}', json={'description': 'Flatbed'}
        )
        assert response.status_code == 200
        assert response.get_json()['data']['description'] == 'Flatbed'

        response = authenticated_client.delete(f'{API}/vehicles/{truck["id"]}')
        assert response.status_code == 200
        detail = authenticated_client.get(f'{API}/vehicles/{truck["id"]}').get_json()['data']
        assert detail['active'] == 0

    def test_create_validation_error(self, authenticated_client):
        response = authenticated_client.post(f'{API}/vehicles', json={
            'name': 'Clone', 'license_plate': '12가 3456'
        })
        assert response.status_code == 400
        assert 'license plate' in response.get_json()['error']

    def test_delete_refused_with_reservations(self, authenticated_client, seeded_ids):
        authenticated_client.post(f'{API}/reservations', json=make_booking('vehicle', seeded_ids['van']))

        response = authenticated_client.delete(f'{API}/vehicles/{seeded_ids["van"]}')
        assert response.status_code == 409
        assert response.get_json()['code'] == 'resource_has_reservations'

    def test_quantity_update_refused_below_booked(self, authenticated_client, seeded_ids):
        camera = seeded_ids['camera']
        authenticated_client.post(f'{API}/reservations', json=make_booking(
            'equipment', camera, '2030-01-01T10:00:00', '2030-01-01T12:00:00', quantity=2
        ))

        response = authenticated_client.patch(f'{API}/equipment/{camera}', json={'quantity': 1})
        assert response.status_code == 400
        assert authenticated_client.get(f'{API}/equipment/{camera}').get_json()['data']['quantity'] == 2

    def test_equipment_status(self, authenticated_client, seeded_ids):
        authenticated_client.post(f'{API}/reservations', json=make_booking(
            'equipment', seeded_ids['camera'], '2030-03-04T10:00:00', '2030-03-04T12:00:00', quantity=1
        ))

        response = authenticated_client.get(f'{API}/equipment/status?at=2030-03-04T10:30:00')
        assert response.status_code == 200
        statuses = {item['name']: item['label'] for item in response.get_json()['data']}
        assert statuses['Camera A'] == 'partially_rented'
        assert statuses['Drone'] == 'maintenance'
        assert statuses['LED Light Panel'] == 'available'

        assert authenticated_client.get(f'{API}/equipment/status?at=soon').status_code == 400


class TestReservationRoutes:
    """Reservation CRUD endpoints."""

    def test_create_and_fetch(self, staff_client, seeded_ids):
        response = staff_client.post(f'{API}/reservations', json=make_booking(
            'meeting_room', seeded_ids['main_room']
        ))
        assert response.status_code == 201
        reservation = response.get_json()['data']
        assert reservation['reserver_username'] == 'staff'

        response = staff_client.get(f'{API}/reservations/{reservation["id"]}')
        assert response.get_json()['data']['title'] == 'Planning'

        response = staff_client.get(f'{API}/reservations/{reservation["id"]}/history')
        assert [h['action'] for h in response.get_json()['data']] == ['created']
        assert response.get_json()['data'][0]['changed_by'] == 'staff'

    def test_conflict_returns_409(self, staff_client, authenticated_client, seeded_ids):
        staff_client.post(f'{API}/reservations', json=make_booking('meeting_room', seeded_ids['main_room']))

        response = authenticated_client.post(f'{API}/reservations', json=make_booking(
            'meeting_room', seeded_ids['main_room'], '2030-03-04T09:30:00', '2030-03-04T10:30:00'
        ))
        assert response.status_code == 409
        body = response.get_json()
        assert body['code'] == 'capacity_exceeded'
        assert body['available_quantity'] == 0

    def test_validation_error_returns_400(self, staff_client, seeded_ids):
        response = staff_client.post(f'{API}/reservations', json=make_booking(
            'meeting_room', seeded_ids['main_room'], end='2030-03-04T08:00:00'
        ))
        assert response.status_code == 400
        assert response.get_json()['code'] == 'invalid_time_range'

        response = staff_client.post(f'{API}/reservations', json=make_booking('vehicle', 9999))
        assert response.status_code == 404
        assert response.get_json()['code'] == 'resource_not_found'

    def test_business_unit_required(self, no_bu_client, seeded_ids):
        response = no_bu_client.post(f'{API}/reservations', json=make_booking('vehicle', seeded_ids['van']))
        assert response.status_code == 403
        assert response.get_json()['code'] == 'bu_required'

        response = no_bu_client.post(f'{API}/equipment-rentals', json={
            'items': [{'resource_id': seeded_ids['camera'], 'quantity': 1}],
            'title': 'Shoot', 'start_time': '2030-03-04T09:00:00', 'end_time': '2030-03-04T10:00:00'
        })
        assert response.status_code == 403

    def test_only_owner_or_admin_can_modify(self, staff_client, other_staff_client,
                                            authenticated_client, seeded_ids):
        response = staff_client.post(f'{API}/reservations', json=make_booking('vehicle', seeded_ids['van']))
        reservation_id = response.get_json()['data']['id']
        url = f'{API}/reservations/{reservation_id}'

        response = other_staff_client.patch(url, json={'title': 'Mine now'})
        assert response.status_code == 403
        assert response.get_json()['code'] == 'forbidden'
        response = other_staff_client.delete(url)
        assert response.status_code == 403
        assert response.get_json()['code'] == 'forbidden'
        assert staff_client.get(url).get_json()['data']['title'] == 'Planning'
        assert staff_client.get(url).get_json()['data']['status'] == 'active'

        response = staff_client.patch(url, json={'title': 'Client visit'})
        assert response.status_code == 200
        assert response.get_json()['data']['title'] == 'Client visit'

        response = authenticated_client.delete(url)
        assert response.status_code == 200
        assert response.get_json()['data']['status'] == 'cancelled'

        response = staff_client.delete(url)
        assert response.status_code == 409
        assert response.get_json()['code'] == 'already_cancelled'

    def test_missing_reservation(self, staff_client):
        assert staff_client.get(f'{API}/reservations/9999').status_code == 404
        assert staff_client.patch(f'{API}/reservations/9999', json={}).status_code == 404
        assert staff_client.delete(f'{API}/reservations/9999').status_code == 404

    def test_list_filters(self, staff_client, authenticated_client, seeded_ids):
        staff_client.post(f'{API}/reservations', json=make_booking('vehicle', seeded_ids['van']))
        authenticated_client.post(f'{API}/reservations', json=make_booking(
            'meeting_room', seeded_ids['main_room'], '2030-03-05T09:00:00', '2030-03-05T10:00:00'
        ))

        all_items = staff_client.get(f'{API}/reservations').get_json()['data']
        assert len(all_items) == 2

        mine = staff_client.get(f'{API}/reservations?mine=true').get_json()['data']
        assert [r['resource_type'] for r in mine] == ['vehicle']

        day = staff_client.get(
            f'{API}/reservations?start_date=2030-03-05&end_date=2030-03-05'
        ).get_json()['data']
        assert [r['resource_type'] for r in day] == ['meeting_room']

        response = staff_client.get(f'{API}/reservations?start_date=someday')
        assert response.status_code == 400

    def test_recurring_booking(self, staff_client, seeded_ids):
        response = staff_client.post(f'{API}/reservations', json=make_booking(
            'meeting_room', seeded_ids['small_room'], '2030-01-07T09:00:00', '2030-01-07T10:00:00',
            recurrence={'type': 'weekly', 'weekDays': [1, 3], 'endDate': '2030-01-16', 'hasEndDate': True}
        ))
        assert response.status_code == 201
        data = response.get_json()['data']
        assert data['total_created'] == 4
        assert data['all_created'] is True

    def test_recurring_booking_all_failed(self, staff_client, seeded_ids):
        staff_client.post(f'{API}/reservations', json=make_booking(
            'vehicle', seeded_ids['van'], '2030-01-01T00:00:00', '2030-01-10T00:00:00'
        ))
        response = staff_client.post(f'{API}/reservations', json=make_booking(
            'vehicle', seeded_ids['van'], '2030-01-07T09:00:00', '2030-01-07T10:00:00',
            recurrence={'type': 'daily', 'end_date': '2030-01-08'}
        ))
        assert response.status_code == 409
        assert response.get_json()['data']['total_created'] == 0

    def test_equipment_rentals(self, staff_client, seeded_ids):
        response = staff_client.post(f'{API}/equipment-rentals', json={
            'items': [
                {'resource_id': seeded_ids['camera'], 'quantity': 4},
                {'resource_id': seeded_ids['light'], 'quantity': 2},
            ],
            'title': 'Shoot',
            'start_time': '2030-03-04T09:00:00',
            'end_time': '2030-03-04T18:00:00',
        })
        assert response.status_code == 201
        created = response.get_json()['data']['created']
        assert [r['quantity'] for r in created] == [2, 2]

        response = staff_client.post(f'{API}/equipment-rentals', json={'items': []})
        assert response.status_code == 400


class TestAvailabilityRoutes:
    """Availability, slots and recurrence preview."""

    def test_availability(self, staff_client, seeded_ids):
        staff_client.post(f'{API}/reservations', json=make_booking(
            'equipment', seeded_ids['camera'], '2030-03-04T10:00:00', '2030-03-04T12:00:00', quantity=1
        ))

        response = staff_client.get(
            f'{API}/availability?resource_type=equipment&resource_id={seeded_ids["camera"]}'
            '&start_time=2030-03-04T11:00:00&end_time=2030-03-04T13:00:00'
        )
        assert response.status_code == 200
        data = response.get_json()['data']
        assert data['capacity'] == 2
        assert data['booked_quantity'] == 1
        assert data['available_quantity'] == 1
        assert len(data['conflicts']) == 1

    def test_availability_errors(self, staff_client, seeded_ids):
        assert staff_client.get(f'{API}/availability').status_code == 400
        response = staff_client.get(
            f'{API}/availability?resource_type=vehicle&resource_id={seeded_ids["van"]}'
            '&start_time=2030-03-04T11:00:00&end_time=2030-03-04T10:00:00'
        )
        assert response.get_json()['code'] == 'invalid_time_range'
        response = staff_client.get(
            f'{API}/availability?resource_type=vehicle&resource_id=9999'
            '&start_time=2030-03-04T09:00:00&end_time=2030-03-04T10:00:00'
        )
        assert response.status_code == 404

    def test_slots(self, staff_client, seeded_ids):
        staff_client.post(f'{API}/reservations', json=make_booking('meeting_room', seeded_ids['main_room']))

        response = staff_client.get(
            f'{API}/availability/slots?resource_type=meeting_room'
            f'&resource_id={seeded_ids["main_room"]}&date=2030-03-04'
        )
        assert response.status_code == 200
        slots = response.get_json()['data']['slots']
        assert len(slots) == 24
        assert slots[9]['available_quantity'] == 0
        assert slots[10]['available_quantity'] == 1

        response = staff_client.get(
            f'{API}/availability/slots?resource_type=meeting_room'
            f'&resource_id={seeded_ids["main_room"]}&date=2030-03-04&slot_minutes=1'
        )
        assert response.status_code == 400

    def test_recurrence_preview(self, staff_client, seeded_ids):
        staff_client.post(f'{API}/reservations', json=make_booking(
            'meeting_room', seeded_ids['main_room'], '2030-01-09T09:00:00', '2030-01-09T10:00:00'
        ))

        response = staff_client.post(f'{API}/recurrence/preview', json={
            'resource_type': 'meeting_room',
            'resource_id': seeded_ids['main_room'],
            'start_time': '2030-01-07T09:00:00',
            'end_time': '2030-01-07T10:00:00',
            'recurrence': {'type': 'weekly', 'week_days': [1, 3], 'end_date': '2030-01-16'},
        })
        assert response.status_code == 200
        data = response.get_json()['data']
        assert data['count'] == 4
        assert data['description'] == 'Every week on Mon, Wed (until 2030-01-16)'
        assert [o['available_quantity'] for o in data['occurrences']] == [1, 0, 1, 1]

    def test_recurrence_preview_needs_week_days(self, staff_client):
        response = staff_client.post(f'{API}/recurrence/preview', json={
            'start_time': '2030-01-07T09:00:00',
            'end_time': '2030-01-07T10:00:00',
            'recurrence': {'type': 'weekly'},
        })
        assert response.status_code == 400
        assert response.get_json()['code'] == 'week_days_required'


class TestCalendarRoutes:
    """Calendar view endpoint."""

    def test_week_view(self, staff_client, seeded_ids):
        staff_client.post(f'{API}/reservations', json=make_booking(
            'vehicle', seeded_ids['van'], '2030-03-04T20:00:00', '2030-03-05T08:00:00'
        ))

        response = staff_client.get(f'{API}/calendar?view=week&date=2030-03-06')
        assert response.status_code == 200
        data = response.get_json()['data']
        assert data['days'][0] == '2030-03-04'
        assert len(data['days']) == 7
        assert len(data['buckets']['2030-03-04']) == 1
        assert len(data['buckets']['2030-03-05']) == 1
        assert data['buckets']['2030-03-06'] == []
        assert data['groups']['2030-03-04'][0]['title'] == 'Planning'

    def test_month_view_includes_edge_crossing(self, staff_client, seeded_ids):
        staff_client.post(f'{API}/reservations', json=make_booking(
            'vehicle', seeded_ids['van'], '2030-02-28T20:00:00', '2030-03-01T08:00:00'
        ))
        data = staff_client.get(f'{API}/calendar?view=month&date=2030-03-15').get_json()['data']
        assert len(data['buckets']['2030-03-01']) == 1

    def test_week_view_includes_multi_week_booking(self, staff_client, seeded_ids):
        """A booking longer than the visible period shows on every day it covers."""
        response = staff_client.post(f'{API}/reservations', json=make_booking(
            'vehicle', seeded_ids['van'], '2030-03-01T09:00:00', '2030-03-25T18:00:00'
        ))
        assert response.status_code == 201

        data = staff_client.get(f'{API}/calendar?view=week&date=2030-03-13').get_json()['data']
        assert data['days'][0] == '2030-03-11'
        for day in data['days']:
            assert len(data['buckets'][day]) == 1

        slots = staff_client.get(
            f'{API}/availability/slots?resource_type=vehicle&resource_id={seeded_ids["van"]}'
            f'&date=2030-03-13'
        ).get_json()['data']['slots']
        assert all(slot['available_quantity'] == 0 for slot in slots)

    def test_invalid_params(self, staff_client):
        assert staff_client.get(f'{API}/calendar?view=year').status_code == 400
        assert staff_client.get(f'{API}/calendar?date=03/04/2030').status_code == 400
        assert staff_client.get(f'{API}/calendar?resource_type=boat').status_code == 400
