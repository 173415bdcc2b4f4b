"""
Permission checking and caching utilities.
Maps user roles to permission codes.
"""

from flask import g

ROLE_PERMISSIONS = {
    'admin': {
        'reservations.view',
        'reservations.create',
        'reservations.manage_all',
        'resources.view',
        'resources.manage',
    },
    'manager': {
        'reservations.view',
        'reservations.create',
        'resources.view',
        'resources.manage',
    },
    'staff': {
        'reservations.view',
        'reservations.create',
        'resources.view',
    },
}


def load_user_permissions(user) -> set:
    """
    Load all permissions for a user based on their role.

    Args:
        user: User object (Flask-Login) or user dict

    Returns:
        Set of permission codes
    """
    role = user.get('role') if isinstance(user, dict) else getattr(user, 'role', None)
    return set(ROLE_PERMISSIONS.get(role, set()))


def has_permission(user, permission_code: str) -> bool:
    """
    Check if user has a specific permission.

    Args:
        user: User object (Flask-Login)
        permission_code: Permission code to check

    Returns:
        True if user has permission
    """
    return permission_code in load_user_permissions(user)


def is_admin(user) -> bool:
    """Check whether the user may act on other users' reservations."""
    return has_permission(user, 'reservations.manage_all')


def cache_user_permissions(user):
    """
    Cache user permissions in flask g object.

    Args:
        user: User object
    """
    g.user_permissions = load_user_permissions(user)
