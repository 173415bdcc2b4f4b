"""
Booking API routes package.
Split into smaller modules by entity for maintainability.
"""

from flask import Blueprint

# Create the API blueprint
api_bp = Blueprint('api', __name__)

# Import and register routes from submodules
from blueprints.booking.routes.api import resources
from blueprints.booking.routes.api import reservations
from blueprints.booking.routes.api import calendar

# Register all route functions on the blueprint
resources.register_routes(api_bp)
reservations.register_routes(api_bp)
calendar.register_routes(api_bp)
