"""
Authentication Routes
Handles login, logout, signup and the current session profile
"""

from flask import Blueprint, current_app, jsonify
from flask_login import login_required
from flask_wtf.csrf import generate_csrf

from stockroom import limiter
from stockroom.services.data_store import get_data_store
from stockroom.services.user_service import UserService
from stockroom.utils.helpers import request_data

bp = Blueprint('auth', __name__)


def _landing(profile):
    """Where the client should go after signing in"""
    if profile['role'] == 'admin':
        return 'admin-dashboard'
    if profile['status'] != 'approved':
        return 'pending-approval'
    return 'staff-dashboard'


@bp.route('/login', methods=['POST'])
@limiter.limit(lambda: current_app.config['LOGIN_RATE_LIMIT'])
def login():
    """User login"""
    data = request_data()
    remember = str(data.get('remember', '')).lower() in ('1', 'true', 'on', 'yes')
    profile = get_data_store().sign_in(data.get('email'), data.get('password'), remember=remember)
    return jsonify({'success': True, 'user': profile, 'redirect': _landing(profile)})


@bp.route('/logout', methods=['GET', 'POST'])
@login_required
def logout():
    """User logout"""
    get_data_store().sign_out()
    return jsonify({'success': True, 'message': 'You have been logged out successfully.'})


@bp.route('/signup', methods=['POST'])
def signup():
    """Self registration; accounts wait for admin approval"""
    service = UserService(get_data_store(), current_app.config['MIN_PASSWORD_LENGTH'])
    result = service.register(request_data())
    return jsonify(result.to_dict()), 201


@bp.route('/me')
@login_required
def me():
    profile = get_data_store().current_user()
    return jsonify({'success': True, 'user': profile, 'redirect': _landing(profile)})


@bp.route('/csrf-token')
def csrf_token():
    return jsonify({'csrf_token': generate_csrf()})
