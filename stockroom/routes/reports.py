"""
Reports Routes
Inventory, movement, request, usage and low-stock reports plus export
"""

from flask import Blueprint, jsonify, request, send_file

from stockroom.errors import ValidationError
from stockroom.services.data_store import get_data_store
from stockroom.services.report_service import INVENTORY_EXPORT_COLUMNS, ReportService
from stockroom.utils.export import export_inventory_report
from stockroom.utils.permissions import admin_required

bp = Blueprint('reports', __name__)


def _service():
    return ReportService(get_data_store())


def _date_range():
    return request.args.get('date_from'), request.args.get('date_to')


@bp.route('/inventory')
@admin_required
def inventory():
    return jsonify({'success': True, 'report': _service().inventory_report(*_date_range())})


@bp.route('/movements')
@admin_required
def movements():
    return jsonify({'success': True, 'report': _service().movement_report(*_date_range())})


@bp.route('/requests')
@admin_required
def requests_report():
    return jsonify({'success': True, 'report': _service().request_report(*_date_range())})


@bp.route('/usage')
@admin_required
def usage():
    return jsonify({'success': True, 'items': _service().usage_trends(*_date_range())})


@bp.route('/low-stock')
@admin_required
def low_stock():
    return jsonify({'success': True, 'items': _service().low_stock_report()})


@bp.route('/export/inventory')
@admin_required
def export_inventory():
    """Download the full inventory as xlsx (default) or csv"""
    format_type = request.args.get('format', 'xlsx').lower()
    if format_type not in ('xlsx', 'csv'):
        raise ValidationError(f"Unsupported export format: {format_type}")

    output, filename, mimetype = export_inventory_report(
        _service().inventory_export_rows(), INVENTORY_EXPORT_COLUMNS, format_type
    )
    return send_file(output, mimetype=mimetype, as_attachment=True, download_name=filename)
