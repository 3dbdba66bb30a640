"""
Dashboard Routes
Landing figures for admins and staff
"""

from flask import Blueprint, jsonify

from stockroom.services.data_store import get_data_store
from stockroom.services.report_service import ReportService
from stockroom.utils.permissions import approved_required

bp = Blueprint('dashboard', __name__)


@bp.route('/')
@approved_required
def index():
    """Admin or staff dashboard depending on role"""
    store = get_data_store()
    profile = store.current_user()
    service = ReportService(store)

    if profile['role'] == 'admin':
        return jsonify({'success': True, 'role': 'admin', 'dashboard': service.admin_dashboard()})
    return jsonify({'success': True, 'role': 'staff', 'dashboard': service.staff_dashboard(profile)})
