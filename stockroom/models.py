"""
Database Models
SQLAlchemy ORM models for the inventory system
"""

import uuid
from datetime import datetime
from decimal import Decimal
from flask_sqlalchemy import SQLAlchemy
from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash

db = SQLAlchemy()


def new_uuid():
    return str(uuid.uuid4())


class RecordMixin:
    """Column-level serialization used at the data access boundary"""

    def to_dict(self):
        record = {}
        for column in self.__table__.columns:
            value = getattr(self, column.name)
            if isinstance(value, datetime):
                value = value.isoformat()
            elif isinstance(value, Decimal):
                value = float(value)
            record[column.name] = value
        return record


class User(UserMixin, RecordMixin, db.Model):
    """User profile for authentication and approval"""
    __tablename__ = 'users'

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    full_name = db.Column(db.String(128), nullable=False)
    role = db.Column(db.String(16), nullable=False, default='staff')
    # Roles: admin, staff
    department = db.Column(db.String(128))
    status = db.Column(db.String(16), nullable=False, default='pending')
    # Statuses: pending, approved, rejected
    avatar_url = db.Column(db.String(512))
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def set_password(self, password):
        """Hash and set password"""
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        """Verify password"""
        return check_password_hash(self.password_hash, password)

    @property
    def is_admin(self):
        return self.role == 'admin'

    @property
    def is_approved(self):
        return self.is_admin or self.status == 'approved'

    def to_dict(self):
        record = super().to_dict()
        record.pop('password_hash', None)
        return record

    def __repr__(self):
        return f'<User {self.email}>'


class InventoryItem(RecordMixin, db.Model):
    """A single tracked unit (or stock line) in the organization's inventory"""
    __tablename__ = 'inventory_items'

    id = db.Column(db.String(64), primary_key=True)
    item_name = db.Column(db.String(255), nullable=False, index=True)
    category = db.Column(db.String(128), index=True)
    department = db.Column(db.String(128), index=True)
    location = db.Column(db.String(128))  # legacy name for department
    unit = db.Column(db.String(32), default='pcs')
    unit_price = db.Column(db.Numeric(12, 2), default=0)
    min_stock_level = db.Column(db.Integer, default=5)
    quantity = db.Column(db.Integer, nullable=False, default=1)

    condition = db.Column(db.String(32), default='good')
    # Conditions: good, damaged, lost, stolen, Lost/Stolen
    status = db.Column(db.String(32), default='available')
    # Statuses: available, assigned, issued, transferred
    assigned_to = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=True)

    description = db.Column(db.Text)
    image_url = db.Column(db.String(512))
    brand = db.Column(db.String(128))
    type = db.Column(db.String(128))
    supplier = db.Column(db.String(255))

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    assigned_user = db.relationship('User', foreign_keys=[assigned_to])

    def __repr__(self):
        return f'<InventoryItem {self.id} {self.item_name}>'


class StockMovement(RecordMixin, db.Model):
    """Append-only log of custody and condition changes"""
    __tablename__ = 'stock_movements'

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    item_id = db.Column(db.String(64), db.ForeignKey('inventory_items.id', ondelete='SET NULL'), index=True)
    user_id = db.Column(db.String(36), db.ForeignKey('users.id'))

    movement_type = db.Column(db.String(16), nullable=False)
    # Kinds: in, out, adjustment
    display_type = db.Column(db.String(16))
    # Issue, Return, Transfer, Lost/Stolen, Damaged (null on legacy rows)
    quantity = db.Column(db.Integer, nullable=False, default=1)
    reason = db.Column(db.Text)
    from_location = db.Column(db.String(128))
    to_location = db.Column(db.String(128))
    assigned_to = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    # Relationships
    item = db.relationship('InventoryItem', foreign_keys=[item_id])
    user = db.relationship('User', foreign_keys=[user_id])

    def __repr__(self):
        return f'<StockMovement {self.movement_type} {self.item_id}>'


class ItemRequest(RecordMixin, db.Model):
    """Staff request for a quantity of an item"""
    __tablename__ = 'requests'

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    user_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False, index=True)
    item_id = db.Column(db.String(64), db.ForeignKey('inventory_items.id', ondelete='CASCADE'), nullable=False)
    quantity = db.Column(db.Integer, nullable=False, default=1)
    reason = db.Column(db.Text)
    status = db.Column(db.String(16), nullable=False, default='pending', index=True)
    # Statuses: pending, approved, rejected, fulfilled
    admin_notes = db.Column(db.Text)
    department = db.Column(db.String(128))

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    item = db.relationship('InventoryItem', foreign_keys=[item_id])
    user = db.relationship('User', foreign_keys=[user_id])

    def __repr__(self):
        return f'<ItemRequest {self.id} {self.status}>'


class ErrorLog(db.Model):
    """Unhandled application errors with sanitized request context"""
    __tablename__ = 'error_logs'

    id = db.Column(db.Integer, primary_key=True)
    timestamp = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    error_type = db.Column(db.String(128))
    error_message = db.Column(db.Text)
    traceback = db.Column(db.Text)
    request_url = db.Column(db.String(512))
    request_method = db.Column(db.String(16))
    request_data = db.Column(db.Text)
    user_id = db.Column(db.String(36))
    ip_address = db.Column(db.String(64))
    user_agent = db.Column(db.String(512))
    status_code = db.Column(db.Integer)
    blueprint = db.Column(db.String(64))
    endpoint = db.Column(db.String(128))
    is_resolved = db.Column(db.Boolean, default=False)

    def __repr__(self):
        return f'<ErrorLog {self.error_type} {self.status_code}>'
