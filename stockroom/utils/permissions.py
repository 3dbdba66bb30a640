"""
Access Guard Decorators
Role and approval-status gating for routes
"""

from functools import wraps
from flask import jsonify
from flask_login import current_user


def _unauthenticated():
    return jsonify({'success': False, 'error': 'Authentication required'}), 401


def _blocked_status():
    """403 response for a non-admin account that is not approved, else None"""
    if current_user.is_admin or current_user.status == 'approved':
        return None
    if current_user.status == 'rejected':
        message = 'Account rejected'
    else:
        message = 'Account pending approval'
    return jsonify({'success': False, 'error': message, 'status': current_user.status}), 403


def approved_required(f):
    """
    Decorator to require a signed-in, approved account
    Admins are never blocked by approval status

    Usage:
        @approved_required
        def my_requests():
            ...
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not current_user.is_authenticated:
            return _unauthenticated()

        blocked = _blocked_status()
        if blocked is not None:
            return blocked

        return f(*args, **kwargs)
    return decorated_function


def role_required(*role_names):
    """
    Decorator to require one of the given roles (and an approved account)

    Usage:
        @role_required('admin')
        def user_list():
            ...
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not current_user.is_authenticated:
                return _unauthenticated()

            blocked = _blocked_status()
            if blocked is not None:
                return blocked

            if current_user.role not in role_names:
                return jsonify({'success': False, 'error': 'Access denied'}), 403

            return f(*args, **kwargs)
        return decorated_function
    return decorator


def admin_required(f):
    """
    Decorator to require admin role
    Shortcut for @role_required('admin')
    """
    return role_required('admin')(f)
