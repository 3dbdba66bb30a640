"""
Shared pytest fixtures and configuration for all tests.

Provides common fixtures for Flask application testing, database sessions,
authentication, seeded test data and an in-memory data store for the
service-level tests.
"""

import pytest
import uuid
from datetime import datetime, timedelta
from decimal import Decimal

from stockroom import create_app
from stockroom.errors import ConflictError, NotFoundError, SchemaMismatchError, ValidationError
from stockroom.models import db, User, InventoryItem, StockMovement, ItemRequest
from stockroom.services.change_feed import ChangeFeed
from stockroom.services.data_store import DataStore, ENTITY_MODELS


# ============================================================================
# Application fixtures
# ============================================================================

@pytest.fixture(scope='session')
def app_factory():
    """Factory fixture for creating test app instances."""
    def _create_app(config='testing'):
        app = create_app(config)
        app.config['WTF_CSRF_ENABLED'] = False
        app.config['TESTING'] = True
        return app
    return _create_app


@pytest.fixture(scope='session')
def app(app_factory):
    """Create application for testing session."""
    return app_factory()


@pytest.fixture(scope='function')
def fresh_app(app_factory, tmp_path):
    """Create a fresh application for each test with clean database."""
    app = app_factory()
    app.config['UPLOAD_FOLDER'] = str(tmp_path)
    app.extensions['stockroom']['storage'].root = str(tmp_path)

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(fresh_app):
    """Create a test client for each test."""
    return fresh_app.test_client()


@pytest.fixture(scope='function')
def db_session(fresh_app):
    """Provide a database session for testing."""
    with fresh_app.app_context():
        yield db.session
        db.session.rollback()


@pytest.fixture(scope='function')
def store(fresh_app):
    """The SQL data store bound to the fresh application."""
    return fresh_app.extensions['stockroom']['store']


@pytest.fixture(scope='function')
def init_database(fresh_app):
    """
    Initialize database with test data.

    Creates:
    - Users (admin, approved staff, pending staff, rejected staff)
    - Inventory items (available, issued, legacy location-only,
      damaged, low stock)
    - Requests (pending, approved)
    - A legacy movement without a stored display type

    Yields a dict of the generated user and request ids.
    """
    now = datetime.utcnow()

    admin = User(email='admin@test.com', full_name='Admin User', role='admin',
                 department='Administration', status='approved')
    admin.set_password('admin123')
    staff = User(email='staff@test.com', full_name='Staff User', role='staff',
                 department='ICT', status='approved')
    staff.set_password('staff123')
    pending = User(email='pending@test.com', full_name='Pending User', role='staff',
                   department='ICT', status='pending')
    pending.set_password('pending123')
    rejected = User(email='rejected@test.com', full_name='Rejected User', role='staff',
                    department='Finance', status='rejected')
    rejected.set_password('rejected123')
    db.session.add_all([admin, staff, pending, rejected])
    db.session.flush()

    items = [
        InventoryItem(id='COM-0001', item_name='Dell Laptop', category='Computers',
                      department='ICT', location='ICT', quantity=1, min_stock_level=5,
                      unit_price=Decimal('850.00'), status='available', condition='good',
                      created_at=now - timedelta(days=10), updated_at=now - timedelta(days=2)),
        InventoryItem(id='COM-0002', item_name='HP Laptop', category='Computers',
                      department='ICT', location='ICT', quantity=1, min_stock_level=5,
                      unit_price=Decimal('700.00'), status='issued', condition='good',
                      assigned_to=staff.id,
                      created_at=now - timedelta(days=5), updated_at=now - timedelta(days=1)),
        # Legacy row: only the old location column is filled
        InventoryItem(id='FUR-0001', item_name='Office Chair', category='Furniture',
                      department=None, location='Administration', quantity=10, min_stock_level=5,
                      unit_price=Decimal('45.50'), status='available', condition='good'),
        InventoryItem(id='ELE-0001', item_name='Projector', category='Electronics',
                      department='ICT', location='ICT', quantity=0, min_stock_level=5,
                      unit_price=Decimal('300.00'), status='available', condition='Damaged'),
        InventoryItem(id='TOO-0001', item_name='Cordless Drill', category='Tools',
                      department='Operations', location='Operations', quantity=3, min_stock_level=5,
                      unit_price=Decimal('120.00'), status='available', condition='good'),
    ]
    db.session.add_all(items)
    db.session.flush()

    pending_request = ItemRequest(user_id=staff.id, item_id='FUR-0001', quantity=2,
                                  reason='New hires', status='pending', department='ICT')
    approved_request = ItemRequest(user_id=staff.id, item_id='TOO-0001', quantity=2,
                                   reason='Site work', status='approved', department='ICT')
    db.session.add_all([pending_request, approved_request])

    legacy_movement = StockMovement(item_id='COM-0001', user_id=admin.id, movement_type='in',
                                    quantity=1, reason='Item returned by John')
    db.session.add(legacy_movement)

    db.session.commit()
    yield {
        'admin_id': admin.id,
        'staff_id': staff.id,
        'pending_id': pending.id,
        'rejected_id': rejected.id,
        'pending_request_id': pending_request.id,
        'approved_request_id': approved_request.id,
        'legacy_movement_id': legacy_movement.id,
    }

    # Cleanup is handled by fresh_app fixture


def login(client, email, password):
    return client.post('/auth/login', json={'email': email, 'password': password})


@pytest.fixture
def auth_admin(client, init_database):
    """Login as admin user and return authenticated client."""
    login(client, 'admin@test.com', 'admin123')
    return client


@pytest.fixture
def auth_staff(client, init_database):
    """Login as approved staff user and return authenticated client."""
    login(client, 'staff@test.com', 'staff123')
    return client


@pytest.fixture
def auth_pending(client, init_database):
    """Login as a staff user still waiting for approval."""
    login(client, 'pending@test.com', 'pending123')
    return client


def logout_client(client):
    """Helper function to logout a client."""
    client.post('/auth/logout')


# ============================================================================
# In-memory data store
# ============================================================================

class FakeDataStore(DataStore):
    """
    Dict-backed DataStore recording every call.

    Failures are injected with fail(method, error, when=predicate); the
    predicate receives the call's positional arguments.
    """

    def __init__(self, supported=None):
        self.tables = {entity: {} for entity in ENTITY_MODELS}
        self.supported = supported or {}
        self.calls = []
        self.failures = []
        self.feed = ChangeFeed()
        self.user = None
        self.objects = {}
        self._counters = {}

    # Test helpers

    def fail(self, method, error, when=None, times=1):
        self.failures.append({'method': method, 'error': error, 'when': when, 'times': times})

    def calls_to(self, method):
        return [call[1:] for call in self.calls if call[0] == method]

    def seed(self, entity, **fields):
        fields.setdefault('id', str(uuid.uuid4()))
        self.tables[entity][fields['id']] = dict(fields)
        return dict(fields)

    def _call(self, method, *args):
        self.calls.append((method,) + args)
        for failure in self.failures:
            if failure['method'] != method or not failure['times']:
                continue
            if failure['when'] is None or failure['when'](*args):
                failure['times'] -= 1
                raise failure['error']

    def _table(self, entity):
        if entity not in self.tables:
            raise ValidationError(f"Unknown entity: {entity}")
        return self.tables[entity]

    # Record CRUD

    def list_records(self, entity, filters=None, order_by=None, limit=None,
                     date_from=None, date_to=None):
        self._call('list_records', entity, filters)
        records = []
        for record in self._table(entity).values():
            matched = True
            for name, value in (filters or {}).items():
                actual = record.get(name)
                if name == 'department':
                    actual = record.get('department') or record.get('location')
                if isinstance(value, (list, tuple, set)):
                    matched = matched and actual in value
                else:
                    matched = matched and actual == value
            if matched:
                records.append(dict(record))
        return records[:limit] if limit else records

    def get_record(self, entity, record_id):
        self._call('get_record', entity, record_id)
        record = self._table(entity).get(record_id)
        if record is None:
            raise NotFoundError(f"{entity} record {record_id} not found")
        return dict(record)

    def _check_columns(self, entity, fields):
        supported = self.supported.get(entity)
        if supported is None:
            return
        for name in fields:
            if name not in supported:
                raise SchemaMismatchError(f'column "{name}" does not exist', column=name)

    def create_record(self, entity, fields):
        self._call('create_record', entity, dict(fields))
        self._check_columns(entity, fields)
        table = self._table(entity)
        record = dict(fields)
        record.setdefault('id', str(uuid.uuid4()))
        if record['id'] in table:
            raise ConflictError(f"{entity} record {record['id']} already exists")
        record.setdefault('created_at', datetime.utcnow().isoformat())
        table[record['id']] = record
        self.feed.publish(entity, 'insert', dict(record))
        return dict(record)

    def update_record(self, entity, record_id, fields):
        self._call('update_record', entity, record_id, dict(fields))
        self._check_columns(entity, fields)
        record = self._table(entity).get(record_id)
        if record is None:
            raise NotFoundError(f"{entity} record {record_id} not found")
        record.update(fields)
        self.feed.publish(entity, 'update', dict(record))
        return dict(record)

    def delete_record(self, entity, record_id):
        self._call('delete_record', entity, record_id)
        record = self._table(entity).pop(record_id, None)
        if record is None:
            raise NotFoundError(f"{entity} record {record_id} not found")
        self.feed.publish(entity, 'delete', record)
        return True

    def supported_fields(self, entity):
        return self.supported.get(entity)

    # Derived queries

    def distinct_values(self, entity, field):
        self._call('distinct_values', entity, field)
        return sorted({r.get(field) for r in self._table(entity).values() if r.get(field)})

    def low_stock_items(self):
        self._call('low_stock_items')
        return [dict(r) for r in self.tables['inventory_items'].values()
                if (r.get('quantity') or 0) <= (r.get('min_stock_level') or 5)]

    # Procedures

    def generate_item_id(self, category):
        self._call('generate_item_id', category)
        prefix = (category or 'GEN')[:3].upper()
        self._counters[prefix] = self._counters.get(prefix, 0) + 1
        return f"{prefix}-{self._counters[prefix]:04d}"

    def adjust_quantity(self, item_id, delta, assigned_to=None):
        self._call('adjust_quantity', item_id, delta, assigned_to)
        item = self.tables['inventory_items'][item_id]
        item['quantity'] = max(0, (item.get('quantity') or 0) + delta)
        return True

    def update_request_status(self, request_id, status, notes=None):
        self._call('update_request_status', request_id, status, notes)
        record = self.tables['requests'][request_id]
        record['status'] = status
        record['admin_notes'] = notes
        return True

    def fulfill_request(self, request_id):
        self._call('fulfill_request', request_id)
        record = self.tables['requests'][request_id]
        item = self.tables['inventory_items'][record['item_id']]
        item['quantity'] -= record['quantity']
        record['status'] = 'fulfilled'
        return True

    def approve_user(self, user_id):
        self._call('approve_user', user_id)
        self.tables['users'][user_id]['status'] = 'approved'
        return True

    def reject_user(self, user_id):
        self._call('reject_user', user_id)
        self.tables['users'][user_id]['status'] = 'rejected'
        return True

    # Change notifications

    def subscribe(self, entity, on_change):
        return self.feed.subscribe(entity, on_change)

    # Identity / session

    def current_user(self):
        return self.user

    def sign_in(self, email, password, remember=False):
        self._call('sign_in', email)
        for user in self.tables['users'].values():
            if user['email'] == email:
                self.user = dict(user)
                return self.user
        raise ValidationError("Invalid email or password")

    def sign_out(self):
        self.user = None

    def sign_up(self, fields):
        self._call('sign_up', dict(fields))
        return self.seed('users', **{k: v for k, v in fields.items() if k != 'password'},
                         status='pending')

    def create_user_bypassing_verification(self, fields):
        self._call('create_user_bypassing_verification', dict(fields))
        return self.seed('users', **{k: v for k, v in fields.items() if k != 'password'},
                         status='approved')

    # Object storage

    def upload(self, bucket, path, blob):
        self._call('upload', bucket, path)
        self.objects[f"{bucket}/{path}"] = blob.read() if hasattr(blob, 'read') else blob
        return path

    def public_url(self, bucket, path):
        return f"/static/uploads/{bucket}/{path}"


@pytest.fixture
def fake_store():
    """Empty in-memory data store."""
    return FakeDataStore()


# Pytest configuration
def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as pure unit tests"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "auth: marks tests as authentication tests"
    )


def pytest_collection_modifyitems(config, items):
    """Automatically add markers based on test module and function names."""
    for item in items:
        if 'routes' in item.nodeid or 'test_auth' in item.nodeid:
            item.add_marker(pytest.mark.integration)

        if 'auth' in item.name.lower() or 'login' in item.name.lower():
            item.add_marker(pytest.mark.auth)
