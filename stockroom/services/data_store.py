"""
Data Access Layer
The record store contract the lifecycle services depend on, and its
SQLAlchemy implementation.

Records cross this boundary as plain dicts. The department/location
alias is resolved here and nowhere else: reads expose ``department``
(falling back to the legacy ``location`` column) and writes fill both
columns when the table has them.
"""

import re
import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime
from typing import Dict, FrozenSet, List, Optional

from flask import has_request_context
from flask_login import current_user, login_user, logout_user
from sqlalchemy import func, inspect as sa_inspect, or_, and_
from sqlalchemy.exc import (
    IntegrityError, OperationalError, ProgrammingError, NoSuchTableError, SQLAlchemyError
)
from sqlalchemy.orm.exc import FlushError

from stockroom.errors import (
    StockroomError, ValidationError, InvalidTransitionError, NotFoundError,
    ConflictError, SchemaMismatchError, TransportError
)
from stockroom.models import db, User, InventoryItem, StockMovement, ItemRequest
from stockroom.services.change_feed import ChangeFeed
from stockroom.utils.helpers import parse_datetime

logger = logging.getLogger(__name__)


ENTITY_MODELS = {
    'inventory_items': InventoryItem,
    'stock_movements': StockMovement,
    'requests': ItemRequest,
    'users': User,
}

DEFECTIVE_CONDITIONS = ('lost', 'stolen', 'damaged', 'lost/stolen')
REQUEST_STATUSES = ('pending', 'approved', 'rejected', 'fulfilled')
USER_STATUSES = ('pending', 'approved', 'rejected')

# Driver messages for a column the table does not have (SQLite, PostgreSQL)
MISSING_COLUMN_PATTERNS = (
    re.compile(r'no such column: (?:\w+\.)?(\w+)'),
    re.compile(r'has no column named (\w+)'),
    re.compile(r'column "?(?:\w+\.)?(\w+)"? (?:of relation "\w+" )?does not exist'),
)


class DataStore(ABC):
    """
    Record store used by the lifecycle, user and report services.

    Entities: inventory_items, stock_movements, requests, users.
    """

    # Record CRUD

    @abstractmethod
    def list_records(self, entity, filters=None, order_by=None, limit=None,
                     date_from=None, date_to=None) -> List[Dict]:
        """Records matching field equality (or membership for list values)"""

    @abstractmethod
    def get_record(self, entity, record_id) -> Dict:
        """A single record; raises NotFoundError"""

    @abstractmethod
    def create_record(self, entity, fields) -> Dict:
        """Insert; raises SchemaMismatchError or ConflictError"""

    @abstractmethod
    def update_record(self, entity, record_id, fields) -> Dict:
        pass

    @abstractmethod
    def delete_record(self, entity, record_id) -> bool:
        pass

    def supported_fields(self, entity) -> Optional[FrozenSet[str]]:
        """Columns the live table accepts, or None when unknown"""
        return None

    # Derived queries

    @abstractmethod
    def distinct_values(self, entity, field) -> List[str]:
        pass

    @abstractmethod
    def low_stock_items(self) -> List[Dict]:
        pass

    # Procedures

    @abstractmethod
    def generate_item_id(self, category) -> str:
        pass

    @abstractmethod
    def adjust_quantity(self, item_id, delta, assigned_to=None) -> bool:
        pass

    @abstractmethod
    def update_request_status(self, request_id, status, notes=None) -> bool:
        pass

    @abstractmethod
    def fulfill_request(self, request_id) -> bool:
        pass

    @abstractmethod
    def approve_user(self, user_id) -> bool:
        pass

    @abstractmethod
    def reject_user(self, user_id) -> bool:
        pass

    # Change notifications

    @abstractmethod
    def subscribe(self, entity, on_change):
        """Returns a subscription with an unsubscribe() method"""

    # Identity / session

    @abstractmethod
    def current_user(self) -> Optional[Dict]:
        pass

    @abstractmethod
    def sign_in(self, email, password, remember=False) -> Dict:
        pass

    @abstractmethod
    def sign_out(self):
        pass

    @abstractmethod
    def sign_up(self, fields) -> Dict:
        """Self-registration; the account starts pending approval"""

    @abstractmethod
    def create_user_bypassing_verification(self, fields) -> Dict:
        pass

    # Object storage

    @abstractmethod
    def upload(self, bucket, path, blob):
        pass

    @abstractmethod
    def public_url(self, bucket, path) -> str:
        pass


class SqlDataStore(DataStore):
    """DataStore over the Flask-SQLAlchemy session"""

    def __init__(self, feed=None, storage=None):
        self.feed = feed or ChangeFeed()
        self.storage = storage
        self._supported: Dict[str, FrozenSet[str]] = {}

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _model(self, entity):
        model = ENTITY_MODELS.get(entity)
        if model is None:
            raise ValidationError(f"Unknown entity: {entity}")
        return model

    @contextmanager
    def _translate_errors(self, action):
        """Roll back and map driver failures onto the error taxonomy"""
        try:
            yield
        except StockroomError:
            db.session.rollback()
            raise
        except (IntegrityError, FlushError) as e:
            db.session.rollback()
            message = str(getattr(e, 'orig', e))
            if isinstance(e, FlushError) or 'unique' in message.lower() or 'duplicate' in message.lower():
                raise ConflictError(f"Duplicate record on {action}: {message}")
            raise ValidationError(f"Rejected {action}: {message}")
        except (OperationalError, ProgrammingError) as e:
            db.session.rollback()
            message = str(getattr(e, 'orig', e))
            for pattern in MISSING_COLUMN_PATTERNS:
                match = pattern.search(message)
                if match:
                    raise SchemaMismatchError(message, column=match.group(1))
            logger.error(f"Data store failure during {action}: {message}")
            raise TransportError()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Data store failure during {action}: {e}")
            raise TransportError()

    def supported_fields(self, entity):
        """Probe the live table once and cache its column set"""
        if entity not in self._supported:
            model = self._model(entity)
            try:
                columns = sa_inspect(db.engine).get_columns(model.__tablename__)
            except NoSuchTableError:
                return frozenset()
            except SQLAlchemyError as e:
                logger.error(f"Could not inspect {model.__tablename__}: {e}")
                raise TransportError()
            model_columns = set(model.__table__.columns.keys())
            supported = frozenset(c['name'] for c in columns if c['name'] in model_columns)
            if not supported:
                return supported
            self._supported[entity] = supported
            logger.info(f"Schema probe for {entity}: {len(supported)} columns")
        return self._supported[entity]

    def reset_schema_cache(self):
        self._supported.clear()

    def _prepare_write(self, entity, fields):
        fields = dict(fields)
        fields.pop('created_at', None)
        fields.pop('updated_at', None)
        supported = self.supported_fields(entity)

        if entity == 'inventory_items' and ('department' in fields or 'location' in fields):
            value = fields.pop('department', None) or fields.pop('location', None)
            fields.pop('location', None)
            for name in ('department', 'location'):
                if name in supported:
                    fields[name] = value

        for name in fields:
            if name not in supported:
                table = self._model(entity).__tablename__
                raise SchemaMismatchError(
                    f'column "{name}" of relation "{table}" does not exist', column=name
                )
        return fields

    def _column(self, model, name):
        if name not in model.__table__.columns:
            raise SchemaMismatchError(
                f'column "{name}" of relation "{model.__tablename__}" does not exist', column=name
            )
        return getattr(model, name)

    def _to_record(self, obj):
        record = obj.to_dict()
        if isinstance(obj, InventoryItem):
            record['department'] = record.get('department') or record.get('location')
            record['location'] = record['department']
            record['assigned_user'] = (
                {'full_name': obj.assigned_user.full_name} if obj.assigned_user else None
            )
        elif isinstance(obj, StockMovement):
            record['item'] = (
                {'item_name': obj.item.item_name, 'category': obj.item.category} if obj.item else None
            )
            record['user'] = (
                {'full_name': obj.user.full_name, 'email': obj.user.email} if obj.user else None
            )
        elif isinstance(obj, ItemRequest):
            record['item'] = (
                {'item_name': obj.item.item_name, 'category': obj.item.category,
                 'quantity': obj.item.quantity} if obj.item else None
            )
            record['user'] = (
                {'full_name': obj.user.full_name, 'email': obj.user.email,
                 'department': obj.user.department} if obj.user else None
            )
        return record

    def _get(self, entity, record_id):
        model = self._model(entity)
        obj = db.session.get(model, record_id) if record_id is not None else None
        if obj is None:
            raise NotFoundError(f"{entity} record {record_id} not found")
        return obj

    def _acting_user_id(self):
        if has_request_context() and current_user.is_authenticated:
            return current_user.id
        return None

    def _publish(self, entity, event, record):
        self.feed.publish(entity, event, record)

    # ------------------------------------------------------------------
    # Record CRUD
    # ------------------------------------------------------------------

    def list_records(self, entity, filters=None, order_by=None, limit=None,
                     date_from=None, date_to=None):
        model = self._model(entity)
        with self._translate_errors(f"list {entity}"):
            query = model.query
            for name, value in (filters or {}).items():
                if entity == 'inventory_items' and name in ('department', 'location'):
                    query = query.filter(or_(
                        InventoryItem.department == value,
                        and_(or_(InventoryItem.department.is_(None), InventoryItem.department == ''),
                             InventoryItem.location == value)
                    ))
                    continue
                column = self._column(model, name)
                if isinstance(value, (list, tuple, set, frozenset)):
                    query = query.filter(column.in_(list(value)))
                elif value is None:
                    query = query.filter(column.is_(None))
                else:
                    query = query.filter(column == value)

            start = parse_datetime(date_from)
            end = parse_datetime(date_to)
            if start:
                query = query.filter(model.created_at >= start)
            if end:
                query = query.filter(model.created_at <= end)

            if order_by:
                descending = order_by.startswith('-')
                column = self._column(model, order_by.lstrip('-'))
                query = query.order_by(column.desc() if descending else column.asc())
            if limit:
                query = query.limit(limit)

            return [self._to_record(obj) for obj in query.all()]

    def get_record(self, entity, record_id):
        with self._translate_errors(f"get {entity}"):
            return self._to_record(self._get(entity, record_id))

    def create_record(self, entity, fields):
        model = self._model(entity)
        if entity == 'users':
            raise ValidationError("Users are created through sign_up or create_user_bypassing_verification")
        fields = self._prepare_write(entity, fields)

        with self._translate_errors(f"create {entity}"):
            record_id = fields.get('id')
            if record_id is not None and db.session.get(model, record_id) is not None:
                raise ConflictError(f"{entity} record {record_id} already exists")
            obj = model(**fields)
            db.session.add(obj)
            db.session.commit()
            record = self._to_record(obj)

        self._publish(entity, 'insert', record)
        return record

    def update_record(self, entity, record_id, fields):
        fields = self._prepare_write(entity, fields)
        fields.pop('id', None)
        if entity == 'users':
            fields.pop('password_hash', None)

        with self._translate_errors(f"update {entity}"):
            obj = self._get(entity, record_id)
            for name, value in fields.items():
                setattr(obj, name, value)
            if hasattr(obj, 'updated_at'):
                obj.updated_at = datetime.utcnow()
            db.session.commit()
            record = self._to_record(obj)

        self._publish(entity, 'update', record)
        return record

    def delete_record(self, entity, record_id):
        with self._translate_errors(f"delete {entity}"):
            obj = self._get(entity, record_id)
            record = self._to_record(obj)
            db.session.delete(obj)
            db.session.commit()

        self._publish(entity, 'delete', record)
        return True

    # ------------------------------------------------------------------
    # Derived queries
    # ------------------------------------------------------------------

    def distinct_values(self, entity, field):
        model = self._model(entity)
        names = [field]
        if entity == 'inventory_items' and field in ('department', 'location'):
            names = ['department', 'location']

        values = set()
        with self._translate_errors(f"distinct {entity}.{field}"):
            for name in names:
                column = self._column(model, name)
                rows = db.session.query(column).filter(column.isnot(None)).distinct().all()
                values.update(str(row[0]).strip() for row in rows if row[0] and str(row[0]).strip())
        return sorted(values)

    def low_stock_items(self):
        with self._translate_errors("low stock query"):
            condition = func.lower(func.coalesce(InventoryItem.condition, 'good'))
            items = InventoryItem.query.filter(
                InventoryItem.quantity <= func.coalesce(func.nullif(InventoryItem.min_stock_level, 0), 5),
                condition.notin_(DEFECTIVE_CONDITIONS)
            ).order_by(InventoryItem.quantity.asc(), InventoryItem.item_name.asc()).all()
            return [self._to_record(item) for item in items]

    # ------------------------------------------------------------------
    # Procedures
    # ------------------------------------------------------------------

    def generate_item_id(self, category):
        """
        Next identifier for a category

        Format: <PFX>-NNNN, where PFX is the first three letters of the
        category (GEN when it has none) and NNNN the next free number
        """
        prefix = re.sub(r'[^A-Za-z]', '', category or '')[:3].upper() or 'GEN'

        with self._translate_errors("generate item id"):
            rows = db.session.query(InventoryItem.id).filter(
                InventoryItem.id.like(f"{prefix}-%")
            ).all()

        last_num = 0
        for (item_id,) in rows:
            try:
                last_num = max(last_num, int(item_id[len(prefix) + 1:]))
            except ValueError:
                continue
        return f"{prefix}-{last_num + 1:04d}"

    def adjust_quantity(self, item_id, delta, assigned_to=None):
        with self._translate_errors("adjust quantity"):
            item = self._get('inventory_items', item_id)
            item.quantity = max(0, (item.quantity or 0) + int(delta))
            if assigned_to:
                item.assigned_to = assigned_to
            item.updated_at = datetime.utcnow()
            db.session.commit()
            record = self._to_record(item)

        self._publish('inventory_items', 'update', record)
        return True

    def update_request_status(self, request_id, status, notes=None):
        if status not in REQUEST_STATUSES:
            raise ValidationError(f"Invalid request status: {status}")

        with self._translate_errors("update request status"):
            item_request = self._get('requests', request_id)
            item_request.status = status
            if notes is not None:
                item_request.admin_notes = notes
            item_request.updated_at = datetime.utcnow()
            db.session.commit()
            record = self._to_record(item_request)

        self._publish('requests', 'update', record)
        return True

    def fulfill_request(self, request_id):
        """
        Fulfill an approved request in a single transaction

        Decrements the item by the requested quantity, assigns it to the
        requester, appends an Issue movement and marks the request fulfilled.
        """
        with self._translate_errors("fulfill request"):
            item_request = self._get('requests', request_id)
            if item_request.status != 'approved':
                raise InvalidTransitionError(
                    f"Only approved requests can be fulfilled (status: {item_request.status})"
                )
            item = db.session.get(InventoryItem, item_request.item_id)
            if item is None:
                raise NotFoundError(f"inventory_items record {item_request.item_id} not found")
            if (item.quantity or 0) < item_request.quantity:
                raise ValidationError(
                    f"Insufficient stock for {item.item_name}: "
                    f"{item.quantity or 0} available, {item_request.quantity} requested"
                )

            requester = item_request.user
            item.quantity = (item.quantity or 0) - item_request.quantity
            item.assigned_to = item_request.user_id
            item.updated_at = datetime.utcnow()

            movement = StockMovement(
                item_id=item.id,
                user_id=self._acting_user_id(),
                movement_type='out',
                display_type='Issue',
                quantity=item_request.quantity,
                reason=f"[Issue] Person: {requester.full_name if requester else 'Unknown'}. "
                       f"Request {item_request.id[:8].upper()} fulfilled",
                to_location=item_request.department,
                assigned_to=item_request.user_id
            )
            db.session.add(movement)

            item_request.status = 'fulfilled'
            item_request.updated_at = datetime.utcnow()
            db.session.commit()

            request_record = self._to_record(item_request)
            item_record = self._to_record(item)
            movement_record = self._to_record(movement)

        self._publish('stock_movements', 'insert', movement_record)
        self._publish('inventory_items', 'update', item_record)
        self._publish('requests', 'update', request_record)
        return True

    def _set_user_status(self, user_id, status):
        with self._translate_errors(f"set user status {status}"):
            user = self._get('users', user_id)
            user.status = status
            user.updated_at = datetime.utcnow()
            db.session.commit()
            record = self._to_record(user)

        self._publish('users', 'update', record)
        return True

    def approve_user(self, user_id):
        return self._set_user_status(user_id, 'approved')

    def reject_user(self, user_id):
        return self._set_user_status(user_id, 'rejected')

    def clear_movements(self):
        """Delete the whole movement log; returns the number of rows removed"""
        with self._translate_errors("clear movements"):
            count = StockMovement.query.delete()
            db.session.commit()

        self._publish('stock_movements', 'delete', None)
        logger.warning(f"Movement log cleared ({count} rows)")
        return count

    # ------------------------------------------------------------------
    # Change notifications
    # ------------------------------------------------------------------

    def subscribe(self, entity, on_change):
        self._model(entity)
        return self.feed.subscribe(entity, on_change)

    # ------------------------------------------------------------------
    # Identity / session
    # ------------------------------------------------------------------

    def current_user(self):
        if has_request_context() and current_user.is_authenticated:
            return self._to_record(current_user._get_current_object())
        return None

    def _find_user_by_email(self, email):
        return User.query.filter(func.lower(User.email) == (email or '').strip().lower()).first()

    def sign_in(self, email, password, remember=False):
        with self._translate_errors("sign in"):
            user = self._find_user_by_email(email)
        if user is None or not user.check_password(password or ''):
            raise ValidationError("Invalid email or password")
        login_user(user, remember=remember)
        logger.info(f"User signed in: {user.email}")
        return self._to_record(user)

    def sign_out(self):
        logout_user()

    def _create_user(self, fields, status):
        email = (fields.get('email') or '').strip().lower()
        with self._translate_errors("create user"):
            if self._find_user_by_email(email) is not None:
                raise ConflictError(f"A user with email {email} already exists")
            user = User(
                email=email,
                full_name=fields.get('full_name') or email,
                role=fields.get('role') or 'staff',
                department=fields.get('department'),
                status=status,
                avatar_url=fields.get('avatar_url')
            )
            user.set_password(fields['password'])
            db.session.add(user)
            db.session.commit()
            record = self._to_record(user)

        self._publish('users', 'insert', record)
        return record

    def sign_up(self, fields):
        return self._create_user(fields, status='pending')

    def create_user_bypassing_verification(self, fields):
        return self._create_user(fields, status='approved')

    # ------------------------------------------------------------------
    # Object storage
    # ------------------------------------------------------------------

    def upload(self, bucket, path, blob):
        if self.storage is None:
            raise TransportError("Object storage is not configured")
        return self.storage.upload(bucket, path, blob)

    def public_url(self, bucket, path):
        if self.storage is None:
            raise TransportError("Object storage is not configured")
        return self.storage.public_url(bucket, path)


def get_data_store():
    """The data store bound to the current application"""
    from flask import current_app
    return current_app.extensions['stockroom']['store']
