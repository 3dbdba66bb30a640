"""
User Management Routes
Admin-only account listing, creation, edits, approval and deletion
"""

from flask import Blueprint, current_app, jsonify, request

from stockroom.services.data_store import get_data_store
from stockroom.services.user_service import UserService
from stockroom.utils.helpers import request_data
from stockroom.utils.permissions import admin_required

bp = Blueprint('users', __name__)


def _service():
    return UserService(get_data_store(), current_app.config['MIN_PASSWORD_LENGTH'])


@bp.route('/')
@admin_required
def index():
    users = _service().list_users(request.args.get('status'))
    return jsonify({'success': True, 'users': users})


@bp.route('/create', methods=['POST'])
@admin_required
def create():
    result = _service().create_user(request_data())
    return jsonify(result.to_dict()), 201


@bp.route('/<user_id>')
@admin_required
def view_user(user_id):
    return jsonify({'success': True, 'user': get_data_store().get_record('users', user_id)})


@bp.route('/<user_id>/edit', methods=['POST'])
@admin_required
def edit(user_id):
    result = _service().update_user(user_id, request_data())
    return jsonify(result.to_dict())


@bp.route('/<user_id>/status', methods=['POST'])
@admin_required
def set_status(user_id):
    result = _service().set_status(user_id, request_data().get('status'))
    return jsonify(result.to_dict())


@bp.route('/<user_id>/delete', methods=['POST'])
@admin_required
def delete(user_id):
    result = _service().delete_user(user_id, get_data_store().current_user())
    return jsonify(result.to_dict())
