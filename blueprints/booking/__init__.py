"""
Booking blueprint initialization.
Assembles the booking API (resources, reservations, calendar) under /booking.

Individual route logic is in:
- routes/api/resources.py - Meeting room, vehicle and equipment registry
- routes/api/reservations.py - Reservations, availability, batches
- routes/api/calendar.py - Calendar buckets and slot availability
"""

from flask import Blueprint

# Create main booking blueprint
booking_bp = Blueprint('booking', __name__)

# API routes (all REST endpoints)
from blueprints.booking.routes.api import api_bp
booking_bp.register_blueprint(api_bp, url_prefix='/api')
