"""
Reservation data access functions.
Handles reservation CRUD operations, availability lookups and batch booking.

This module re-exports all functions from the split modules:
- reservation_queries.py: Listing, filtering, overlap lookups, history
- reservation_crud.py: Create, update, cancel
- reservation_batch.py: Recurring series, equipment rentals, bulk cancel
"""

# =============================================================================
# RE-EXPORTS
# =============================================================================

# Query operations
from .reservation_queries import (
    get_reservations,
    get_overlapping_reservations,
    get_reservation_by_id,
    get_status_history,
)

# CRUD operations
from .reservation_crud import (
    EDITABLE_FIELDS,
    resolve_resource,
    prepare_booking,
    book_locked,
    create_reservation,
    update_reservation,
    cancel_reservation,
)

# Batch operations
from .reservation_batch import (
    create_recurring_reservations,
    create_equipment_rental_batch,
    cancel_reservations,
)
