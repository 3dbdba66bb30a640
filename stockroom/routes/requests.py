"""
Item Request Routes
Staff create requests; admins approve, reject and fulfill them
"""

from flask import Blueprint, jsonify, request

from stockroom.services.data_store import get_data_store
from stockroom.services.lifecycle_service import get_lifecycle_service
from stockroom.utils.helpers import request_data
from stockroom.utils.movement_view import filter_requests, request_rows, request_stats
from stockroom.utils.permissions import admin_required, approved_required

bp = Blueprint('requests', __name__)


@bp.route('/')
@admin_required
def index():
    """Request queue, optionally narrowed to one status"""
    requests_ = get_data_store().list_records('requests', order_by='-created_at')
    status = request.args.get('status', 'all')
    return jsonify({
        'success': True,
        'status': status,
        'stats': request_stats(requests_),
        'requests': request_rows(filter_requests(requests_, status)),
    })


@bp.route('/mine')
@approved_required
def my_requests():
    store = get_data_store()
    profile = store.current_user()
    requests_ = store.list_records('requests', filters={'user_id': profile['id']}, order_by='-created_at')
    return jsonify({
        'success': True,
        'stats': request_stats(requests_),
        'requests': request_rows(filter_requests(requests_, request.args.get('status', 'all'))),
    })


@bp.route('/create', methods=['POST'])
@approved_required
def create():
    store = get_data_store()
    result = get_lifecycle_service().create_request(request_data(), store.current_user())
    return jsonify(result.to_dict()), 201


@bp.route('/<request_id>/approve', methods=['POST'])
@admin_required
def approve(request_id):
    result = get_lifecycle_service().approve_request(request_id, request_data().get('notes'))
    return jsonify(result.to_dict())


@bp.route('/<request_id>/reject', methods=['POST'])
@admin_required
def reject(request_id):
    result = get_lifecycle_service().reject_request(request_id, request_data().get('notes'))
    return jsonify(result.to_dict())


@bp.route('/<request_id>/fulfill', methods=['POST'])
@admin_required
def fulfill(request_id):
    result = get_lifecycle_service().fulfill_request(request_id)
    return jsonify(result.to_dict())
