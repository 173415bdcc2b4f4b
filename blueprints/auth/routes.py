"""
Authentication routes: login, logout, current user.
Session-based authentication for the JSON API.
"""

from flask import Blueprint, current_app
from flask_login import login_user, logout_user, login_required, current_user
from flask_wtf.csrf import generate_csrf

from blueprints.auth.forms import LoginForm
from models.user import User, get_user_by_username, update_last_login, check_password
from utils.api_response import api_success, api_error
from utils.messages import MESSAGES
from utils.permissions import cache_user_permissions, load_user_permissions

auth_bp = Blueprint('auth', __name__)


@auth_bp.route('/login', methods=['POST'])
def login():
    """
    Log in with username and password (form or JSON body).

    Returns:
        JSON with the user profile, 401 on bad credentials
    """
    form = LoginForm()

    if not form.validate_on_submit():
        return api_error(MESSAGES['invalid_value'], status=400, fields=form.errors)

    # Get user by username
    user_dict = get_user_by_username(form.username.data)

    # Check credentials
    if user_dict is None or not check_password(user_dict, form.password.data):
        current_app.logger.info(f'Failed login for {form.username.data!r}')
        return api_error(MESSAGES['invalid_credentials'], status=401)

    # Check if user is active
    if not user_dict.get('active'):
        return api_error(MESSAGES['account_disabled'], status=403)

    user = User(user_dict)
    login_user(user, remember=form.remember_me.data)

    # Update last login timestamp
    update_last_login(user.id)

    cache_user_permissions(user)

    return api_success(
        data=user.to_dict(),
        message=MESSAGES['login_success'].format(name=user.display_name)
    )


@auth_bp.route('/logout', methods=['POST'])
@login_required
def logout():
    """Logout current user."""
    logout_user()
    return api_success(message=MESSAGES['logout_success'])


@auth_bp.route('/me')
@login_required
def me():
    """Current user profile and permission codes."""
    data = current_user.to_dict()
    data['permissions'] = sorted(load_user_permissions(current_user))
    return api_success(data=data)


@auth_bp.route('/csrf-token')
def csrf_token():
    """CSRF token for JSON clients (send back as X-CSRFToken)."""
    return api_success(data={'csrf_token': generate_csrf()})
