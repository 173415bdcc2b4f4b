"""
Database seed data.
Initial data population for fresh database installations.
"""

from werkzeug.security import generate_password_hash


def seed_database(db):
    """Insert initial seed data."""

    # 1. Create default users
    users_data = [
        ('admin', 'admin@resourcebook.local', 'admin123', 'Administrator', 'admin', 'HQ'),
        ('staff', 'staff@resourcebook.local', 'staff123', 'Staff Member', 'staff', 'HQ'),
    ]

    for username, email, password, full_name, role, bu_code in users_data:
        db.execute('''
            INSERT INTO users (username, email, password_hash, full_name, role, bu_code, active)
            VALUES (?, ?, ?, ?, ?, ?, 1)
        ''', (username, email, generate_password_hash(password), full_name, role, bu_code))

    # 2. Meeting rooms
    rooms_data = [
        ('Main Meeting Room', 'Projector and whiteboard', 12, '3F'),
        ('Small Meeting Room', 'Video call setup', 4, '3F'),
    ]

    for name, description, capacity, location in rooms_data:
        db.execute('''
            INSERT INTO meeting_rooms (name, description, capacity, location)
            VALUES (?, ?, ?, ?)
        ''', (name, description, capacity, location))

    # 3. Vehicles
    vehicles_data = [
        ('Company Van', '12가 3456', 'Equipment transport'),
        ('Sedan', '34나 5678', None),
    ]

    for name, license_plate, description in vehicles_data:
        db.execute('''
            INSERT INTO vehicles (name, license_plate, description)
            VALUES (?, ?, ?)
        ''', (name, license_plate, description))

    # 4. Equipment
    equipment_data = [
        ('Camera A', 'camera', 2, 'available', 'HQ'),
        ('Wireless Microphone', 'audio', 6, 'available', 'HQ'),
        ('LED Light Panel', 'lighting', 4, 'available', 'HQ'),
        ('Drone', 'camera', 1, 'maintenance', 'HQ'),
    ]

    for name, category, quantity, status, bu_code in equipment_data:
        db.execute('''
            INSERT INTO equipment (name, category, quantity, status, bu_code)
            VALUES (?, ?, ?, ?, ?)
        ''', (name, category, quantity, status, bu_code))
