"""
Inventory Management Routes
Handles the grouped inventory view, item creation (single and bulk),
edits and deletes
"""

from flask import Blueprint, current_app, jsonify, request

from stockroom.services.data_store import get_data_store
from stockroom.services.lifecycle_service import get_lifecycle_service
from stockroom.services.options_service import load_options
from stockroom.utils.helpers import request_data
from stockroom.utils.permissions import admin_required, approved_required
from stockroom.utils.view_model import build_inventory_view, bulk_preview
from stockroom.utils.view_state import ViewState

bp = Blueprint('inventory', __name__)


def _view_state(source):
    return ViewState.from_dict(
        source,
        default_page_size=current_app.config['ITEMS_PER_PAGE'],
        page_size_choices=current_app.config['PAGE_SIZE_CHOICES'],
    )


@bp.route('/')
@approved_required
def index():
    """Grouped or detail inventory view for the view state in the query string"""
    state = ViewState.from_args(
        request.args,
        default_page_size=current_app.config['ITEMS_PER_PAGE'],
        page_size_choices=current_app.config['PAGE_SIZE_CHOICES'],
    )
    items = get_data_store().list_records('inventory_items', order_by='item_name')
    return jsonify({'success': True, **build_inventory_view(items, state)})


@bp.route('/options')
@approved_required
def options():
    """Category and department dropdown choices"""
    return jsonify({'success': True, **load_options(get_data_store())})


@bp.route('/bulk-preview')
@admin_required
def preview():
    return jsonify({'success': True, **bulk_preview(request.args.get('item_name'), request.args.get('count'))})


@bp.route('/add', methods=['POST'])
@admin_required
def add_item():
    result = get_lifecycle_service().add_item(request_data())
    return jsonify(result.to_dict()), 201


@bp.route('/bulk-add', methods=['POST'])
@admin_required
def bulk_add():
    result = get_lifecycle_service().bulk_add_items(request_data())
    return jsonify(result.to_dict()), 201 if result.success_count else 400


@bp.route('/<item_id>')
@approved_required
def view_item(item_id):
    item = get_data_store().get_record('inventory_items', item_id)
    return jsonify({'success': True, 'item': item})


@bp.route('/<item_id>/edit', methods=['POST'])
@admin_required
def edit_item(item_id):
    result = get_lifecycle_service().edit_item(item_id, request_data())
    return jsonify(result.to_dict())


@bp.route('/<item_id>/delete', methods=['POST'])
@admin_required
def delete_item(item_id):
    result = get_lifecycle_service().delete_item(item_id)
    return jsonify(result.to_dict())


@bp.route('/bulk-delete', methods=['POST'])
@admin_required
def bulk_delete():
    """Delete the selected items of a view state; returns the state with its selection cleared"""
    data = request_data()
    state = _view_state(data.get('state') or data)
    result = get_lifecycle_service().bulk_delete(state)
    return jsonify(result.to_dict())
