"""
Stock Movement Routes
Handles the movement log and recording of issue, return, transfer and
write-off movements
"""

from flask import Blueprint, current_app, jsonify, request

from stockroom.services.data_store import get_data_store
from stockroom.services.lifecycle_service import get_lifecycle_service
from stockroom.utils.helpers import parse_int, request_data
from stockroom.utils.movement_view import (
    DISPLAY_TYPES, filter_movements, movable_items, movement_rows
)
from stockroom.utils.permissions import admin_required
from stockroom.utils.view_model import paginate

bp = Blueprint('movements', __name__)


@bp.route('/')
@admin_required
def index():
    """Filtered, paginated movement log"""
    movements = get_data_store().list_records(
        'stock_movements',
        order_by='-created_at',
        date_from=request.args.get('date_from'),
        date_to=request.args.get('date_to'),
    )
    rows = filter_movements(movement_rows(movements), request.args.get('search', ''),
                            request.args.get('type', ''))
    page = paginate(
        rows,
        max(1, parse_int(request.args.get('page'), 1) or 1),
        parse_int(request.args.get('page_size'), None) or current_app.config['ITEMS_PER_PAGE'],
    )
    return jsonify({
        'success': True,
        'rows': page.pop('items'),
        'pagination': page,
        'types': list(DISPLAY_TYPES),
    })


@bp.route('/items')
@admin_required
def items_for_type():
    """Items a movement of the requested type can be recorded against"""
    items = get_data_store().list_records('inventory_items', order_by='item_name')
    choices = movable_items(items, request.args.get('type'))
    return jsonify({'success': True, 'items': choices})


@bp.route('/record', methods=['POST'])
@admin_required
def record():
    store = get_data_store()
    result = get_lifecycle_service().record_movement(request_data(), actor=store.current_user())
    return jsonify(result.to_dict()), 201


@bp.route('/clear', methods=['POST'])
@admin_required
def clear():
    """Delete the entire movement log"""
    count = get_data_store().clear_movements()
    return jsonify({'success': True, 'message': f"Cleared {count} movement(s)", 'count': count})
