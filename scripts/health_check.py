#!/usr/bin/env python
"""
ResourceBook Database Health Check.

Read-only scan of a reservation database for flaws the booking layer
should never let through:
- Data integrity (over-allocated resources, orphaned rows)
- Business logic (empty intervals, bookings on unbookable equipment)

Usage:
    python scripts/health_check.py
    python scripts/health_check.py --db-path /path/to/resourcebook.db

Exits with status 1 when any check fails.
"""

import sqlite3
import argparse
import os
import sys
from datetime import datetime

DEFAULT_DB_PATH = os.environ.get('DATABASE_PATH') or 'instance/resourcebook.db'

RESOURCE_TABLES = {
    'meeting_room': 'meeting_rooms',
    'vehicle': 'vehicles',
    'equipment': 'equipment',
}


def get_connection(db_path: str) -> sqlite3.Connection:
    """Open a read-only connection to the SQLite database."""
    conn = sqlite3.connect(f"file:{db_path}?mode=ro", uri=True)
    conn.row_factory = sqlite3.Row
    return conn


def issue(category: str, check: str, severity: str, count: int, details: list) -> dict:
    """Create a standardized issue dict."""
    return {
        'category': category,
        'check': check,
        'severity': severity,
        'count': count,
        'details': details[:20]  # Cap at 20 examples
    }


def _capacities(cur) -> dict:
    capacities = {}
    for resource_type, table in RESOURCE_TABLES.items():
        column = 'quantity' if resource_type == 'equipment' else '1'
        cur.execute(f'SELECT id, {column} as capacity FROM {table}')
        for row in cur.fetchall():
            capacities[(resource_type, row['id'])] = row['capacity'] or 1
    return capacities


def find_over_allocations(conn: sqlite3.Connection) -> list:
    """
    Sweep active reservations per resource and report every peak above capacity.

    Returns:
        List of {'resource_type', 'resource_id', 'at', 'in_use', 'capacity'}
    """
    cur = conn.cursor()
    capacities = _capacities(cur)

    cur.execute('''
        SELECT resource_type, resource_id, start_time, end_time, quantity
        FROM reservations
        WHERE status = 'active' AND end_time > start_time
    ''')

    events = {}
    for row in cur.fetchall():
        key = (row['resource_type'], row['resource_id'])
        quantity = row['quantity'] or 1
        events.setdefault(key, []).extend([
            (row['start_time'], quantity),
            (row['end_time'], -quantity),
        ])

    violations = []
    for key, timeline in events.items():
        capacity = capacities.get(key)
        if capacity is None:
            continue
        # Releases sort before bookings at the same instant (touching is not overlapping)
        timeline.sort(key=lambda event: (event[0], event[1]))
        in_use = 0
        for at, delta in timeline:
            in_use += delta
            if delta > 0 and in_use > capacity:
                violations.append({
                    'resource_type': key[0],
                    'resource_id': key[1],
                    'at': at,
                    'in_use': in_use,
                    'capacity': capacity,
                })
    return violations


def check_data_integrity(conn: sqlite3.Connection) -> list:
    """
    Check for data integrity issues.

    Returns list of issue dicts.
    """
    results = []
    cur = conn.cursor()

    # --- 1. Over-allocation ---
    rows = find_over_allocations(conn)
    results.append(issue(
        category='Data Integrity',
        check='Resources booked beyond capacity',
        severity='fail' if rows else 'ok',
        count=len(rows),
        details=[
            f"{r['resource_type']} {r['resource_id']} at {r['at']}: "
            f"{r['in_use']} in use, capacity {r['capacity']}"
            for r in rows
        ]
    ))

    # --- 2. Reservations pointing at missing resources ---
    missing = []
    for resource_type, table in RESOURCE_TABLES.items():
        cur.execute(f'''
            SELECT r.id, r.resource_id FROM reservations r
            LEFT JOIN {table} t ON r.resource_id = t.id
            WHERE r.resource_type = ? AND t.id IS NULL
        ''', (resource_type,))
        missing += [
            f"reservation {r['id']} references missing {resource_type} {r['resource_id']}"
            for r in cur.fetchall()
        ]
    results.append(issue(
        category='Data Integrity',
        check='Reservations with missing resource',
        severity='fail' if missing else 'ok',
        count=len(missing),
        details=missing
    ))

    # --- 3. Orphaned history rows ---
    cur.execute('''
        SELECT h.id, h.reservation_id
        FROM reservation_status_history h
        LEFT JOIN reservations r ON h.reservation_id = r.id
        WHERE r.id IS NULL
    ''')
    rows = cur.fetchall()
    results.append(issue(
        category='Data Integrity',
        check='Orphaned reservation_status_history rows',
        severity='fail' if rows else 'ok',
        count=len(rows),
        details=[
            f"history.id={r['id']} references missing reservation_id={r['reservation_id']}"
            for r in rows
        ]
    ))

    return results


def check_business_logic(conn: sqlite3.Connection) -> list:
    """
    Check for business logic violations.

    Returns list of issue dicts.
    """
    results = []
    cur = conn.cursor()
    now = datetime.now().strftime('%Y-%m-%dT%H:%M:%S')

    # --- 1. Empty or reversed intervals ---
    cur.execute('''
        SELECT id, start_time, end_time FROM reservations
        WHERE end_time <= start_time
    ''')
    rows = cur.fetchall()
    results.append(issue(
        category='Business Logic',
        check='Reservations ending at or before their start',
        severity='fail' if rows else 'ok',
        count=len(rows),
        details=[f"reservation {r['id']}: {r['start_time']} .. {r['end_time']}" for r in rows]
    ))

    # --- 2. Upcoming bookings on equipment out of service ---
    cur.execute('''
        SELECT r.id, e.name, e.status, r.start_time
        FROM reservations r
        JOIN equipment e ON r.resource_type = 'equipment' AND r.resource_id = e.id
        WHERE r.status = 'active' AND r.end_time > ?
          AND (e.status IN ('maintenance', 'lost') OR e.active = 0)
    ''', (now,))
    rows = cur.fetchall()
    results.append(issue(
        category='Business Logic',
        check='Upcoming reservations on equipment out of service',
        severity='warn' if rows else 'ok',
        count=len(rows),
        details=[f"reservation {r['id']} on {r['name']} ({r['status']}) from {r['start_time']}" for r in rows]
    ))

    # --- 3. Reservations without a creation entry ---
    cur.execute('''
        SELECT r.id FROM reservations r
        WHERE NOT EXISTS (
            SELECT 1 FROM reservation_status_history h
            WHERE h.reservation_id = r.id AND h.action = 'created'
        )
    ''')
    rows = cur.fetchall()
    results.append(issue(
        category='Business Logic',
        check="Reservations with no 'created' history entry",
        severity='warn' if rows else 'ok',
        count=len(rows),
        details=[f"reservation {r['id']}" for r in rows]
    ))

    return results


def main():
    parser = argparse.ArgumentParser(
        description='Run health checks on a ResourceBook database'
    )
    parser.add_argument('--db-path', type=str, default=DEFAULT_DB_PATH,
                        help=f'Path to SQLite database file (default: {DEFAULT_DB_PATH})')
    args = parser.parse_args()

    if not os.path.exists(args.db_path):
        print(f"Error: Database not found: {args.db_path}")
        sys.exit(1)

    conn = get_connection(args.db_path)
    results = check_data_integrity(conn)
    results += check_business_logic(conn)
    conn.close()

    for r in results:
        icon = {'ok': '[OK]', 'warn': '[WARN]', 'fail': '[FAIL]'}.get(r['severity'], '[?]')
        print(f"{icon} {r['check']} ({r['count']} issues)")
        for d in r['details'][:3]:
            print(f"    -> {d}")

    if any(r['severity'] == 'fail' for r in results):
        sys.exit(1)


if __name__ == '__main__':
    main()
