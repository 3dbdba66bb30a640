"""
Inventory Lifecycle Service
Validates inventory actions and issues the resulting writes through the
data store, in an order that keeps the movement log truthful:
- Item creation (single and bulk) with id assignment
- Item edit and delete (single and bulk)
- Movement recording and the item mutation it implies
- Request creation, approval, rejection and fulfillment

Multi-step actions never roll back earlier successful steps; they report
an aggregate or partial outcome instead.
"""

import uuid
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from stockroom.errors import (
    StockroomError, ValidationError, InvalidTransitionError, SchemaMismatchError, ConflictError
)
from stockroom.utils.helpers import clean_text, parse_float, parse_int
from stockroom.utils.movement_view import (
    ISSUE, RETURN, TRANSFER, LOST_STOLEN, DAMAGED, MOVEMENT_KINDS,
    normalize_display_type, movement_reason
)
from stockroom.utils.view_model import DEFAULT_MIN_STOCK, bulk_names, is_defective
from stockroom.utils.view_state import clear_selection

logger = logging.getLogger(__name__)

OPTIONAL_ITEM_FIELDS = ('brand', 'type', 'supplier')
WRITE_OFF_CONDITIONS = {LOST_STOLEN: 'Lost/Stolen', DAMAGED: 'Damaged'}


@dataclass
class ActionResult:
    """Outcome of a single action, shown to the user as a notification"""
    level: str
    message: str
    data: Dict = field(default_factory=dict)

    @property
    def success(self):
        return self.level != 'error'

    def to_dict(self):
        return {'success': self.success, 'level': self.level, 'message': self.message, **self.data}


@dataclass
class BulkResult:
    """Aggregate outcome of a sequential bulk action"""
    success_count: int = 0
    fail_count: int = 0
    last_error: Optional[str] = None
    ids: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    message: str = ''
    view_state: Optional[object] = None

    @property
    def level(self):
        if self.fail_count == 0:
            return 'success'
        return 'warning' if self.success_count else 'error'

    @property
    def success(self):
        return self.success_count > 0 or self.fail_count == 0

    def to_dict(self):
        payload = {
            'success': self.success,
            'level': self.level,
            'message': self.message,
            'success_count': self.success_count,
            'fail_count': self.fail_count,
            'last_error': self.last_error,
            'ids': self.ids,
            'failed': self.failed,
        }
        if self.view_state is not None:
            payload['state'] = self.view_state.to_dict()
        return payload


class InventoryLifecycleService:
    """Business actions over inventory items, movements and requests"""

    def __init__(self, store, default_unit='pcs', default_min_stock=DEFAULT_MIN_STOCK):
        self.store = store
        self.default_unit = default_unit
        self.default_min_stock = default_min_stock

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------

    def _require(self, form, *names):
        labels = {
            'item_name': 'Item name', 'category': 'Category', 'department': 'Department',
            'unit': 'Unit',
        }
        missing = [labels.get(n, n) for n in names if not clean_text(form.get(n))]
        if missing:
            raise ValidationError(f"Please fill in all required fields: {', '.join(missing)}")

    def _item_fields(self, form, name=None):
        """Core and full (with optional columns) field sets for an item write"""
        department = clean_text(form.get('department') or form.get('location'))
        core = {
            'item_name': name or clean_text(form.get('item_name')),
            'category': clean_text(form.get('category')),
            'department': department,
            'unit': clean_text(form.get('unit')) or self.default_unit,
            'description': clean_text(form.get('description')) or None,
            'unit_price': parse_float(form.get('unit_price'), 0.0),
            'min_stock_level': parse_int(form.get('min_stock_level'), None) or self.default_min_stock,
            'image_url': clean_text(form.get('image_url')) or None,
        }
        full = dict(core)
        for column in OPTIONAL_ITEM_FIELDS:
            value = clean_text(form.get(column))
            if value:
                full[column] = value
        return core, self._negotiate(full)

    def _negotiate(self, fields):
        """Drop optional columns the live table is known not to have"""
        supported = self.store.supported_fields('inventory_items')
        if not supported:
            return fields
        dropped = [n for n in OPTIONAL_ITEM_FIELDS if n in fields and n not in supported]
        if dropped:
            logger.info(f"Skipping unsupported item columns: {', '.join(dropped)}")
        return {k: v for k, v in fields.items() if k not in dropped}

    def _new_item_id(self, category):
        try:
            item_id = self.store.generate_item_id(category)
        except StockroomError as e:
            logger.warning(f"Item id service failed, using a random id: {e}")
            item_id = None
        return item_id or str(uuid.uuid4())

    def _insert_item(self, core, full):
        """
        Create an item, retrying once with the core columns on a schema
        mismatch and once with a fresh id on an id conflict
        """
        item_id = self._new_item_id(core['category'])
        payload = full
        schema_retried = conflict_retried = False

        while True:
            try:
                return self.store.create_record('inventory_items', {'id': item_id, **payload})
            except SchemaMismatchError as e:
                if schema_retried or payload == core:
                    raise
                schema_retried = True
                logger.warning(f"Item insert rejected ({e.message}); retrying with core fields")
                payload = core
            except ConflictError:
                if conflict_retried:
                    raise
                conflict_retried = True
                logger.warning(f"Item id {item_id} already taken; retrying with a new id")
                item_id = self._new_item_id(core['category'])

    def add_item(self, form):
        """Create one item: quantity 1, available, in good condition"""
        self._require(form, 'item_name', 'category', 'department')
        core, full = self._item_fields(form)
        defaults = {'quantity': 1, 'status': 'available', 'condition': 'good'}

        item = self._insert_item({**core, **defaults}, {**full, **defaults})
        logger.info(f"Inventory item created: {item['id']} {item['item_name']}")
        return ActionResult('success', 'Item added successfully', {'item': item})

    def edit_item(self, item_id, form):
        """Update item details; quantity, status and condition are left alone"""
        self._require(form, 'item_name', 'category', 'department')
        core, full = self._item_fields(form)

        # Fields the form leaves out keep their stored values
        submitted = set(form) | ({'department'} if 'location' in form else set())
        core = {k: v for k, v in core.items() if k in submitted}
        full = {k: v for k, v in full.items() if k in submitted}

        try:
            item = self.store.update_record('inventory_items', item_id, full)
        except SchemaMismatchError as e:
            if full == core:
                raise
            logger.warning(f"Item update rejected ({e.message}); retrying with core fields")
            item = self.store.update_record('inventory_items', item_id, core)

        logger.info(f"Inventory item updated: {item_id}")
        return ActionResult('success', 'Item updated successfully', {'item': item})

    def bulk_add_items(self, form):
        """
        Create count items named "<name> - 001", "<name> - 002", ...

        Items are created one after another; a failure is counted and the
        loop moves on to the next name.
        """
        self._require(form, 'item_name', 'category', 'department', 'unit')
        count = parse_int(form.get('count') or form.get('quantity'), 0)
        if not count or count < 1:
            raise ValidationError("Please enter a valid number of items to create")

        base_name = clean_text(form.get('item_name'))
        defaults = {'quantity': 1, 'status': 'available', 'condition': 'good'}
        result = BulkResult()

        for name in bulk_names(base_name, count):
            core, full = self._item_fields(form, name=name)
            try:
                item = self._insert_item({**core, **defaults}, {**full, **defaults})
            except StockroomError as e:
                result.fail_count += 1
                result.last_error = e.message
                result.failed.append(name)
                logger.warning(f"Bulk add failed for {name}: {e.message}")
                continue
            result.success_count += 1
            result.ids.append(item['id'])

        if result.fail_count:
            result.message = (f"Created {result.success_count}, Failed {result.fail_count}: "
                              f"{result.last_error}")
        else:
            result.message = f"{result.success_count} item(s) created successfully"
        logger.info(f"Bulk add of {base_name}: {result.success_count} created, {result.fail_count} failed")
        return result

    def delete_item(self, item_id):
        self.store.delete_record('inventory_items', item_id)
        logger.info(f"Inventory item deleted: {item_id}")
        return ActionResult('success', 'Item deleted successfully', {'id': item_id})

    def bulk_delete(self, state):
        """
        Delete every selected item, one at a time

        The returned result carries the view state with its selection
        cleared, whatever the outcome.
        """
        if not state.selected:
            raise ValidationError("No items selected")

        result = BulkResult()
        for item_id in sorted(state.selected):
            try:
                self.store.delete_record('inventory_items', item_id)
            except StockroomError as e:
                result.fail_count += 1
                result.last_error = e.message
                result.failed.append(item_id)
                logger.warning(f"Bulk delete failed for {item_id}: {e.message}")
                continue
            result.success_count += 1
            result.ids.append(item_id)

        if result.fail_count:
            result.message = f"Failed to delete {result.fail_count} item(s)"
        else:
            result.message = f"{result.success_count} item(s) deleted successfully!"
        result.view_state = clear_selection(state)
        return result

    # ------------------------------------------------------------------
    # Movements
    # ------------------------------------------------------------------

    def _validate_movement(self, form):
        item_id = clean_text(form.get('item_id'))
        raw_type = clean_text(form.get('movement_type') or form.get('display_type'))
        person = clean_text(form.get('person') or form.get('person_name'))
        from_location = clean_text(form.get('from_location'))
        to_location = clean_text(form.get('to_location'))

        if not item_id:
            raise ValidationError("Please select an item")
        if not raw_type:
            raise ValidationError("Please select a movement type")
        display_type = normalize_display_type(raw_type)
        if display_type is None:
            raise ValidationError(f"Unknown movement type: {raw_type}")
        if not person:
            raise ValidationError("Please enter the person's name")
        if display_type == TRANSFER and not (from_location and to_location):
            raise ValidationError("Please select both From and To locations for transfer")

        return {
            'item_id': item_id,
            'display_type': display_type,
            'person': person,
            'person_id': clean_text(form.get('person_id')) or None,
            'from_location': from_location or None,
            'to_location': to_location or None,
            'remarks': clean_text(form.get('remarks')),
        }

    def _check_movement_allowed(self, item, display_type):
        if is_defective(item):
            raise InvalidTransitionError(f"{item.get('item_name')} has been written off ({item.get('condition')})")
        issued = (item.get('status') or '').lower() == 'issued'
        if display_type == ISSUE and issued:
            raise InvalidTransitionError(f"{item.get('item_name')} is already issued")
        if display_type == RETURN and not issued:
            raise InvalidTransitionError(f"Only issued items can be returned ({item.get('item_name')})")

    def _create_movement(self, fields):
        supported = self.store.supported_fields('stock_movements')
        if supported and 'display_type' not in supported:
            fields = {k: v for k, v in fields.items() if k != 'display_type'}
        try:
            return self.store.create_record('stock_movements', fields)
        except SchemaMismatchError as e:
            if 'display_type' not in fields:
                raise
            logger.warning(f"Movement insert rejected ({e.message}); retrying without display type")
            return self.store.create_record(
                'stock_movements', {k: v for k, v in fields.items() if k != 'display_type'}
            )

    def _item_mutation(self, movement):
        display_type = movement['display_type']
        if display_type in WRITE_OFF_CONDITIONS:
            return {'condition': WRITE_OFF_CONDITIONS[display_type], 'quantity': 0}
        if display_type == ISSUE:
            fields = {'status': 'issued'}
            if movement['person_id']:
                fields['assigned_to'] = movement['person_id']
            return fields
        if display_type == RETURN:
            return {'status': 'available', 'assigned_to': None}
        return {'department': movement['to_location'], 'status': 'transferred'}

    def record_movement(self, form, actor=None):
        """
        Log a movement, then apply its effect to the item

        The log entry is written first. If the item update fails after
        that, the movement stands and a warning is returned.
        """
        movement = self._validate_movement(form)
        item = self.store.get_record('inventory_items', movement['item_id'])
        self._check_movement_allowed(item, movement['display_type'])

        display_type = movement['display_type']
        record = self._create_movement({
            'item_id': movement['item_id'],
            'user_id': (actor or {}).get('id'),
            'movement_type': MOVEMENT_KINDS[display_type],
            'display_type': display_type,
            'quantity': 1,
            'reason': movement_reason(display_type, movement['person'], movement['remarks']),
            'from_location': movement['from_location'],
            'to_location': movement['to_location'],
            'assigned_to': movement['person_id'] if display_type == ISSUE else None,
        })
        logger.info(f"Movement recorded: {display_type} {movement['item_id']} ({movement['person']})")

        try:
            updated = self.store.update_record('inventory_items', movement['item_id'],
                                               self._item_mutation(movement))
        except StockroomError as e:
            logger.warning(f"Movement {record['id']} recorded but item update failed: {e.message}")
            return ActionResult('warning', f"Movement recorded but failed to label item: {e.message}",
                                {'movement': record})

        return ActionResult('success', f"{display_type} recorded successfully",
                            {'movement': record, 'item': updated})

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def create_request(self, form, actor):
        if not actor:
            raise ValidationError("You must be signed in to make a request")
        item_id = clean_text(form.get('item_id'))
        if not item_id:
            raise ValidationError("Please select an item")
        quantity = parse_int(form.get('quantity'), 0)
        if not quantity or quantity < 1:
            raise ValidationError("Please enter a valid quantity")

        item = self.store.get_record('inventory_items', item_id)
        reason = clean_text(form.get('reason')) or f"Request for {item.get('item_name')}"

        record = self.store.create_record('requests', {
            'user_id': actor['id'],
            'item_id': item_id,
            'quantity': quantity,
            'reason': reason,
            'status': 'pending',
            'department': actor.get('department') or 'General',
        })
        logger.info(f"Request created: {record['id']} by {actor.get('email')}")
        return ActionResult('success', 'Request submitted successfully', {'request': record})

    def _request_in(self, request_id, status, action):
        item_request = self.store.get_record('requests', request_id)
        if item_request.get('status') != status:
            raise InvalidTransitionError(
                f"Cannot {action} a request that is {item_request.get('status')}"
            )
        return item_request

    def approve_request(self, request_id, notes=None):
        self._request_in(request_id, 'pending', 'approve')
        self.store.update_request_status(request_id, 'approved', clean_text(notes))
        logger.info(f"Request approved: {request_id}")
        return ActionResult('success', 'Request approved', {'id': request_id})

    def reject_request(self, request_id, notes):
        notes = clean_text(notes)
        if not notes:
            raise ValidationError("Please provide a reason for rejection")
        self._request_in(request_id, 'pending', 'reject')
        self.store.update_request_status(request_id, 'rejected', notes)
        logger.info(f"Request rejected: {request_id}")
        return ActionResult('success', 'Request rejected', {'id': request_id})

    def fulfill_request(self, request_id):
        """Hand an approved request to the store's atomic fulfillment procedure"""
        self._request_in(request_id, 'approved', 'fulfill')
        self.store.fulfill_request(request_id)
        logger.info(f"Request fulfilled: {request_id}")
        return ActionResult('success', 'Request fulfilled', {'id': request_id})


def get_lifecycle_service():
    """Lifecycle service over the current application's data store"""
    from flask import current_app
    from stockroom.services.data_store import get_data_store

    return InventoryLifecycleService(
        get_data_store(),
        default_unit=current_app.config.get('DEFAULT_UNIT', 'pcs'),
        default_min_stock=current_app.config.get('DEFAULT_MIN_STOCK_LEVEL', DEFAULT_MIN_STOCK),
    )
