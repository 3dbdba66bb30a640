"""
Report Service
Dashboard figures and admin reports computed from data store reads
"""

import logging
from collections import Counter, defaultdict
from typing import Dict

from stockroom.utils.movement_view import (
    ISSUE, count_by_display_type, display_type_of, movement_rows, request_rows, request_stats
)
from stockroom.utils.view_model import (
    DEFAULT_MIN_STOCK, is_defective, item_department, summary_stats
)
from stockroom.utils.helpers import parse_int

logger = logging.getLogger(__name__)

INVENTORY_EXPORT_COLUMNS = {
    'id': 'ID',
    'item_name': 'Item Name',
    'category': 'Category',
    'department': 'Department',
    'quantity': 'Quantity',
    'min_stock_level': 'Min Stock',
    'unit_price': 'Unit Price',
    'condition': 'Condition',
    'status': 'Status',
    'created_at': 'Created At',
}


def is_low_stock(item):
    if is_defective(item):
        return False
    min_stock = parse_int(item.get('min_stock_level'), None) or DEFAULT_MIN_STOCK
    return (parse_int(item.get('quantity'), 0) or 0) <= min_stock


class ReportService:
    """Read-only aggregates for dashboards and reports"""

    def __init__(self, store):
        self.store = store

    def admin_dashboard(self) -> Dict:
        items = self.store.list_records('inventory_items')
        pending = self.store.list_records('requests', filters={'status': 'pending'})
        active_users = self.store.list_records('users', filters={'status': 'approved'})
        recent = self.store.list_records('stock_movements', order_by='-created_at', limit=5)
        issued = self.store.list_records('inventory_items', filters={'status': 'issued'},
                                         order_by='-updated_at', limit=10)

        return {
            'total_items': len(items),
            'low_stock_count': sum(1 for item in items if is_low_stock(item)),
            'pending_requests': len(pending),
            'active_users': len(active_users),
            'recent_movements': movement_rows(recent),
            'issued_items': issued,
            'stats': summary_stats(items),
        }

    def staff_dashboard(self, user) -> Dict:
        department = user.get('department')
        items = self.store.list_records('inventory_items', filters={'department': department}) \
            if department else []
        my_requests = self.store.list_records('requests', filters={'user_id': user['id']},
                                              order_by='-created_at')
        assigned = self.store.list_records('inventory_items', filters={'assigned_to': user['id']})

        active = [item for item in items if not is_defective(item)]
        return {
            'department': department,
            'inventory': {
                'total': len(active),
                'available': sum(1 for item in active if (parse_int(item.get('quantity'), 0) or 0) > 0),
                'out_of_stock': sum(1 for item in active if (parse_int(item.get('quantity'), 0) or 0) == 0),
            },
            'requests': request_stats(my_requests),
            'recent_requests': request_rows(my_requests[:5]),
            'assigned_items': assigned,
        }

    def inventory_report(self, date_from=None, date_to=None) -> Dict:
        items = self.store.list_records('inventory_items', order_by='item_name')
        movements = self.store.list_records('stock_movements', date_from=date_from, date_to=date_to)

        by_category = defaultdict(int)
        by_department = defaultdict(int)
        for item in items:
            if is_defective(item):
                continue
            by_category[item.get('category') or 'Uncategorized'] += parse_int(item.get('quantity'), 0) or 0
            by_department[item_department(item) or 'Unassigned'] += parse_int(item.get('quantity'), 0) or 0

        return {
            'total_items': len(items),
            'total_quantity': sum(parse_int(item.get('quantity'), 0) or 0 for item in items),
            'total_value': round(sum(
                (parse_int(item.get('quantity'), 0) or 0) * float(item.get('unit_price') or 0)
                for item in items
            ), 2),
            'low_stock_count': sum(1 for item in items if is_low_stock(item)),
            'movement_count': len(movements),
            'by_category': dict(sorted(by_category.items())),
            'by_department': dict(sorted(by_department.items())),
            'items': items,
        }

    def movement_report(self, date_from=None, date_to=None) -> Dict:
        movements = self.store.list_records('stock_movements', date_from=date_from, date_to=date_to,
                                            order_by='-created_at')
        kinds = Counter((m.get('movement_type') or '').lower() for m in movements)
        return {
            'total': len(movements),
            'in': kinds.get('in', 0),
            'out': kinds.get('out', 0),
            'adjustments': kinds.get('adjustment', 0),
            'by_type': count_by_display_type(movements),
            'movements': movement_rows(movements),
        }

    def request_report(self, date_from=None, date_to=None) -> Dict:
        requests = self.store.list_records('requests', date_from=date_from, date_to=date_to,
                                           order_by='-created_at')
        statuses = Counter((r.get('status') or '').lower() for r in requests)
        return {
            'total': len(requests),
            'pending': statuses.get('pending', 0),
            'approved': statuses.get('approved', 0),
            'rejected': statuses.get('rejected', 0),
            'fulfilled': statuses.get('fulfilled', 0),
            'requests': request_rows(requests),
        }

    def usage_trends(self, date_from=None, date_to=None, limit=10):
        """Items ranked by issued quantity"""
        movements = self.store.list_records('stock_movements', filters={'movement_type': 'out'},
                                            date_from=date_from, date_to=date_to)
        usage = Counter()
        for movement in movements:
            if display_type_of(movement) != ISSUE:
                continue
            name = (movement.get('item') or {}).get('item_name') or 'Unknown Item'
            usage[name] += parse_int(movement.get('quantity'), 1) or 1
        return [{'item_name': name, 'quantity': qty} for name, qty in usage.most_common(limit)]

    def low_stock_report(self):
        items = self.store.low_stock_items()
        report = []
        for item in items:
            min_stock = parse_int(item.get('min_stock_level'), None) or DEFAULT_MIN_STOCK
            quantity = parse_int(item.get('quantity'), 0) or 0
            report.append({**item, 'shortfall': max(0, min_stock - quantity)})
        return report

    def inventory_export_rows(self):
        items = self.store.list_records('inventory_items', order_by='item_name')
        rows = []
        for item in items:
            row = {key: item.get(key) for key in INVENTORY_EXPORT_COLUMNS}
            row['department'] = item_department(item)
            row['quantity'] = parse_int(item.get('quantity'), 0) or 0
            row['unit_price'] = float(item.get('unit_price') or 0)
            row['condition'] = item.get('condition') or 'good'
            row['status'] = item.get('status') or 'available'
            row['created_at'] = (item.get('created_at') or '')[:19].replace('T', ' ')
            rows.append(row)
        logger.info(f"Prepared {len(rows)} inventory rows for export")
        return rows
