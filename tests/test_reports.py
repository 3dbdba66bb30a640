"""
Tests for Reports, Dashboards and Export

Tests cover:
- ReportService aggregates over a fake store
- Report routes, date ranges and the low-stock shortfall
- Admin and staff dashboards
- Inventory export to Excel and CSV
"""

from io import BytesIO

import pytest
from openpyxl import load_workbook

from conftest import FakeDataStore
from stockroom.services.report_service import INVENTORY_EXPORT_COLUMNS, ReportService, is_low_stock
from stockroom.utils.export import export_to_csv, export_to_excel, export_inventory_report


# ============================================================================
# Report service
# ============================================================================

class TestReportService:

    @pytest.fixture
    def service(self):
        store = FakeDataStore()
        store.seed('inventory_items', id='A-1', item_name='Laptop', category='Computers', department='ICT',
                   quantity=2, unit_price=100, condition='good', status='available')
        store.seed('inventory_items', id='A-2', item_name='Broken Laptop', category='Computers',
                   department='ICT', quantity=1, unit_price=100, condition='Damaged', status='available')
        store.seed('stock_movements', id='m1', movement_type='out', display_type='Issue', quantity=2,
                   item={'item_name': 'Laptop'})
        store.seed('stock_movements', id='m2', movement_type='out', reason='Item issued to Ada',
                   item={'item_name': 'Mouse'})
        store.seed('stock_movements', id='m3', movement_type='out', display_type='Damaged',
                   item={'item_name': 'Laptop'})
        return ReportService(store)

    def test_is_low_stock(self):
        assert is_low_stock({'quantity': 5, 'min_stock_level': 5})
        assert not is_low_stock({'quantity': 6, 'min_stock_level': 5})
        assert is_low_stock({'quantity': 3})
        assert not is_low_stock({'quantity': 0, 'condition': 'Lost/Stolen'})
        assert is_low_stock({'quantity': 3, 'min_stock_level': 0})
        assert not is_low_stock({'quantity': 6, 'min_stock_level': 0})

    def test_inventory_report_skips_defective_in_breakdowns(self, service):
        report = service.inventory_report()
        assert report['total_items'] == 2
        assert report['total_quantity'] == 3
        assert report['total_value'] == 300.0
        assert report['by_category'] == {'Computers': 2}

    def test_usage_counts_issues_only(self, service):
        usage = service.usage_trends()
        assert usage == [{'item_name': 'Laptop', 'quantity': 2}, {'item_name': 'Mouse', 'quantity': 1}]

    def test_movement_report(self, service):
        report = service.movement_report()
        assert report['out'] == 3
        assert report['by_type']['Issue'] == 2
        assert report['by_type']['Damaged'] == 1

    def test_export_rows(self, service):
        rows = service.inventory_export_rows()
        assert list(rows[0].keys()) == list(INVENTORY_EXPORT_COLUMNS)
        assert rows[0]['unit_price'] == 100.0


# ============================================================================
# Report routes
# ============================================================================

class TestReportRoutes:

    def test_inventory_report(self, auth_admin):
        report = auth_admin.get('/reports/inventory').get_json()['report']
        assert report['total_items'] == 5
        assert report['total_quantity'] == 15
        assert report['total_value'] == 2365.0
        assert report['low_stock_count'] == 3
        assert report['movement_count'] == 1
        assert report['by_category'] == {'Computers': 2, 'Furniture': 10, 'Tools': 3}
        assert report['by_department'] == {'Administration': 10, 'ICT': 2, 'Operations': 3}

    def test_date_range(self, auth_admin):
        report = auth_admin.get('/reports/inventory?date_from=2099-01-01').get_json()['report']
        assert report['movement_count'] == 0

    def test_movement_report(self, auth_admin):
        report = auth_admin.get('/reports/movements').get_json()['report']
        assert report['total'] == 1
        assert report['in'] == 1
        assert report['by_type']['Return'] == 1

    def test_request_report(self, auth_admin):
        report = auth_admin.get('/reports/requests').get_json()['report']
        assert report['pending'] == 1
        assert report['approved'] == 1
        assert report['fulfilled'] == 0

    def test_usage(self, auth_admin, init_database):
        auth_admin.post('/movements/record', json={
            'item_id': 'COM-0001', 'movement_type': 'Issue', 'person': 'Staff User',
        })
        items = auth_admin.get('/reports/usage').get_json()['items']
        assert items == [{'item_name': 'Dell Laptop', 'quantity': 1}]

    def test_low_stock(self, auth_admin):
        items = auth_admin.get('/reports/low-stock').get_json()['items']
        assert [item['id'] for item in items] == ['COM-0001', 'COM-0002', 'TOO-0001']
        assert [item['shortfall'] for item in items] == [4, 4, 2]

    def test_export_xlsx(self, auth_admin):
        response = auth_admin.get('/reports/export/inventory')
        assert response.status_code == 200
        assert response.mimetype == 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'
        assert 'inventory_' in response.headers['Content-Disposition']

        ws = load_workbook(BytesIO(response.data)).active
        assert ws.title == 'Inventory'
        assert ws.cell(row=4, column=1).value == 'ID'
        assert ws.cell(row=5, column=2).value == 'Cordless Drill'

    def test_export_csv(self, auth_admin):
        response = auth_admin.get('/reports/export/inventory?format=csv')
        assert response.mimetype == 'text/csv'
        lines = response.data.decode('utf-8-sig').splitlines()
        assert lines[0].startswith('ID,Item Name,Category,Department')
        assert len(lines) == 6
        assert 'Administration' in next(line for line in lines if line.startswith('FUR-0001'))

    def test_export_bad_format(self, auth_admin):
        response = auth_admin.get('/reports/export/inventory?format=pdf')
        assert response.status_code == 400


# ============================================================================
# Dashboards
# ============================================================================

class TestDashboard:

    def test_admin_dashboard(self, auth_admin):
        data = auth_admin.get('/').get_json()
        assert data['role'] == 'admin'
        dashboard = data['dashboard']
        assert dashboard['total_items'] == 5
        assert dashboard['low_stock_count'] == 3
        assert dashboard['pending_requests'] == 1
        assert dashboard['active_users'] == 2
        assert len(dashboard['recent_movements']) == 1
        assert [item['id'] for item in dashboard['issued_items']] == ['COM-0002']

    def test_staff_dashboard(self, auth_staff):
        data = auth_staff.get('/').get_json()
        assert data['role'] == 'staff'
        dashboard = data['dashboard']
        assert dashboard['department'] == 'ICT'
        assert dashboard['inventory'] == {'total': 2, 'available': 2, 'out_of_stock': 0}
        assert dashboard['requests']['total'] == 2
        assert [item['id'] for item in dashboard['assigned_items']] == ['COM-0002']

    def test_dashboard_requires_login(self, client):
        assert client.get('/').status_code == 401


# ============================================================================
# Export utilities
# ============================================================================

class TestExportUtils:

    def test_csv_with_list_columns(self):
        output = export_to_csv([{'a': 1, 'b': 'x'}], ['a', 'b'])
        assert output.getvalue().decode('utf-8-sig').splitlines() == ['a,b', '1,x']

    def test_csv_without_header(self):
        output = export_to_csv([[1, 2]], {'a': 'A', 'b': 'B'}, include_header=False)
        assert output.getvalue().decode('utf-8-sig').strip() == '1,2'

    def test_excel_layout(self):
        output = export_to_excel([{'a': 1, 'b': 'x'}], {'a': 'Alpha', 'b': 'Beta'}, title='T', sheet_name='S')
        ws = load_workbook(output).active
        assert ws.title == 'S'
        assert ws['A1'].value == 'T'
        assert ws['A4'].value == 'Alpha'
        assert ws['A5'].value == 1
        assert ws['B5'].value == 'x'

    def test_inventory_report_formats(self):
        _, filename, mimetype = export_inventory_report([], INVENTORY_EXPORT_COLUMNS, 'csv')
        assert filename.endswith('.csv')
        assert mimetype == 'text/csv'
        _, filename, _ = export_inventory_report([], INVENTORY_EXPORT_COLUMNS)
        assert filename.endswith('.xlsx')
