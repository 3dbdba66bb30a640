"""
Integration Tests for Stock Movement Routes

Tests cover:
- Recording issue, return, transfer and write-off movements
- Movement preconditions and validation responses
- The movement log with legacy classification, search and type filter
- Movable item choices and clearing the log
"""

import pytest

from stockroom.models import StockMovement


def record(client, **form):
    return client.post('/movements/record', json=form)


def get_item(client, item_id):
    return client.get(f'/inventory/{item_id}').get_json()['item']


class TestRecordMovement:
    """Tests for POST /movements/record"""

    def test_issue(self, auth_admin, init_database, db_session):
        response = record(auth_admin, item_id='COM-0001', movement_type='Issue', person='Staff User',
                          person_id=init_database['staff_id'], remarks='new laptop')
        assert response.status_code == 201
        data = response.get_json()
        assert data['message'] == 'Issue recorded successfully'
        assert data['movement']['reason'] == '[Issue] Person: Staff User. new laptop'

        item = get_item(auth_admin, 'COM-0001')
        assert item['status'] == 'issued'
        assert item['assigned_to'] == init_database['staff_id']
        assert item['quantity'] == 1

        movement = db_session.get(StockMovement, data['movement']['id'])
        assert movement.display_type == 'Issue'
        assert movement.movement_type == 'out'
        assert movement.user_id == init_database['admin_id']

    def test_return(self, auth_admin):
        response = record(auth_admin, item_id='COM-0002', movement_type='Return', person='Staff User')
        assert response.status_code == 201
        item = get_item(auth_admin, 'COM-0002')
        assert item['status'] == 'available'
        assert item['assigned_to'] is None
        assert item['quantity'] == 1

    def test_issue_already_issued(self, auth_admin):
        response = record(auth_admin, item_id='COM-0002', movement_type='Issue', person='Ada')
        assert response.status_code == 400
        assert response.get_json()['error'] == 'InvalidTransitionError'

    def test_lost_stolen(self, auth_admin):
        record(auth_admin, item_id='FUR-0001', movement_type='Lost/Stolen', person='Guard')
        item = get_item(auth_admin, 'FUR-0001')
        assert item['quantity'] == 0
        assert item['condition'] == 'Lost/Stolen'

    def test_transfer(self, auth_admin):
        response = record(auth_admin, item_id='TOO-0001', movement_type='Transfer', person='Bob',
                          from_location='Operations', to_location='Store')
        assert response.status_code == 201
        item = get_item(auth_admin, 'TOO-0001')
        assert item['department'] == 'Store'
        assert item['location'] == 'Store'
        assert item['status'] == 'transferred'

    def test_transfer_needs_locations(self, auth_admin):
        response = record(auth_admin, item_id='TOO-0001', movement_type='Transfer', person='Bob',
                          from_location='Operations')
        assert response.status_code == 400
        assert 'From and To' in response.get_json()['message']

    def test_written_off_item(self, auth_admin):
        response = record(auth_admin, item_id='ELE-0001', movement_type='Transfer', person='Bob',
                          from_location='ICT', to_location='Store')
        assert response.status_code == 400

    def test_missing_item(self, auth_admin):
        response = record(auth_admin, item_id='NOPE-0001', movement_type='Issue', person='Bob')
        assert response.status_code == 404

    @pytest.mark.parametrize('form', [
        {'movement_type': 'Issue', 'person': 'Bob'},
        {'item_id': 'COM-0001', 'person': 'Bob'},
        {'item_id': 'COM-0001', 'movement_type': 'Issue'},
    ])
    def test_validation(self, auth_admin, form):
        response = auth_admin.post('/movements/record', json=form)
        assert response.status_code == 400
        assert response.get_json()['error'] == 'ValidationError'


class TestMovementLog:
    """Tests for GET /movements/"""

    def test_legacy_row_is_classified(self, auth_admin):
        data = auth_admin.get('/movements/').get_json()
        assert data['pagination']['total'] == 1
        row = data['rows'][0]
        assert row['display_type'] == 'Return'
        assert row['ref_id'].startswith('MOV-')
        assert row['item_name'] == 'Dell Laptop'
        assert row['performed_by'] == 'Admin User'

    def test_type_filter_and_search(self, auth_admin):
        record(auth_admin, item_id='TOO-0001', movement_type='Damaged', person='Guard')

        rows = auth_admin.get('/movements/?type=Damaged').get_json()['rows']
        assert [r['item_name'] for r in rows] == ['Cordless Drill']

        rows = auth_admin.get('/movements/?search=dell').get_json()['rows']
        assert [r['display_type'] for r in rows] == ['Return']

        data = auth_admin.get('/movements/?type=all&page_size=1&page=2').get_json()
        assert data['pagination']['total'] == 2
        assert len(data['rows']) == 1

    def test_movable_items(self, auth_admin):
        returnable = auth_admin.get('/movements/items?type=Return').get_json()['items']
        assert [i['id'] for i in returnable] == ['COM-0002']

        issuable = {i['id'] for i in auth_admin.get('/movements/items?type=Issue').get_json()['items']}
        assert issuable == {'COM-0001', 'FUR-0001', 'TOO-0001'}

    def test_clear(self, auth_admin):
        data = auth_admin.post('/movements/clear').get_json()
        assert data['count'] == 1
        assert auth_admin.get('/movements/').get_json()['rows'] == []
