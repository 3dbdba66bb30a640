"""
Inventory View Model
Pure functions turning inventory records into the filtered, grouped and
paginated structures the inventory screen renders.

None of these functions perform I/O, and none raise on a missing
optional field; every accessor has a documented default.
"""

from typing import Dict, Iterable, List, Optional

from stockroom.utils.helpers import parse_datetime, parse_float, parse_int

DEFECTIVE_CONDITIONS = frozenset(['lost', 'stolen', 'damaged', 'lost/stolen'])
OUT_STATUSES = frozenset(['issued', 'assigned'])
DEFAULT_MIN_STOCK = 5
UNCATEGORIZED = 'Uncategorized'

ITEM_STATUSES = {
    'assigned': ('Assigned', 'status-assigned'),
    'issued': ('Issued', 'status-issued'),
    'transferred': ('Transferred', 'status-transferred'),
}
AVAILABLE_STATUS = ('Available', 'in-stock')


def _text(value):
    return str(value).strip() if value is not None else ''


def is_defective(item):
    """Lost, stolen or damaged items are written off"""
    return _text(item.get('condition')).lower() in DEFECTIVE_CONDITIONS


def item_department(item):
    return item.get('department') or item.get('location') or ''


def item_status(item):
    """
    Allocation status of a single item

    Returns:
        dict: key (available/assigned/issued/transferred), label and css_class
    """
    key = _text(item.get('status')).lower() or 'available'
    label, css_class = ITEM_STATUSES.get(key, AVAILABLE_STATUS)
    if key not in ITEM_STATUSES:
        key = 'available'
    return {'key': key, 'label': label, 'css_class': css_class}


def _matches_status(item, status_filter):
    wanted = status_filter.lower()
    status = item_status(item)
    return wanted in (status['key'], status['css_class'], status['label'].lower())


def apply_filters(items: Iterable[Dict], filters: Optional[Dict] = None) -> List[Dict]:
    """
    Active items matching every given filter

    Args:
        items: Inventory records
        filters: search (substring of name or id, case-insensitive),
                 department, category and status (derived status key)

    Defective items are always excluded, even with no filters.
    """
    filters = filters or {}
    search = _text(filters.get('search')).lower()
    department = _text(filters.get('department'))
    category = _text(filters.get('category'))
    status = _text(filters.get('status'))

    result = []
    for item in items:
        if is_defective(item):
            continue
        if search and search not in _text(item.get('item_name')).lower() \
                and search not in _text(item.get('id')).lower():
            continue
        if department and item_department(item) != department:
            continue
        if category and item.get('category') != category:
            continue
        if status and not _matches_status(item, status):
            continue
        result.append(item)
    return result


def group_key_of(item):
    return item.get('category') or UNCATEGORIZED


def _group_quantity(item):
    quantity = item.get('quantity')
    if quantity is None or quantity == '':
        return 1
    return parse_int(quantity, 1)


def stock_status(quantity, min_stock):
    if quantity == 0:
        return {'label': 'Out of Stock', 'css_class': 'out-of-stock'}
    if quantity <= min_stock:
        return {'label': 'Low Stock', 'css_class': 'low-stock'}
    return {'label': 'In Stock', 'css_class': 'in-stock'}


def assigned_display(names: List[str]) -> str:
    if not names:
        return 'Unassigned'
    if len(names) > 2:
        return f"{names[0]} + {len(names) - 1} others"
    return ', '.join(names)


def group_by_category(items: Iterable[Dict]) -> List[Dict]:
    """
    Summary rows, one per category, in order of first appearance

    Each group carries the summed quantity (an item without a quantity
    counts as 1), the first member's minimum stock level, the earliest
    created_at and latest updated_at, distinct assignee names, member ids
    and the derived stock status.
    """
    groups = {}
    for item in items:
        key = group_key_of(item)
        group = groups.get(key)
        if group is None:
            group = groups[key] = {
                'group_key': key,
                'category': key,
                'item_name': item.get('item_name') or '',
                'department': item_department(item),
                'quantity': 0,
                'min_stock': parse_int(item.get('min_stock_level'), None) or DEFAULT_MIN_STOCK,
                'unit': item.get('unit') or 'pcs',
                'unit_price': parse_float(item.get('unit_price'), 0.0),
                'first_added': None,
                'last_updated': None,
                'assigned_names': [],
                'ids': [],
            }

        group['quantity'] += _group_quantity(item)
        group['ids'].append(item.get('id'))

        created = parse_datetime(item.get('created_at'))
        if created and (group['first_added'] is None or created < group['first_added']):
            group['first_added'] = created
        updated = parse_datetime(item.get('updated_at'))
        if updated and (group['last_updated'] is None or updated > group['last_updated']):
            group['last_updated'] = updated

        assigned_user = item.get('assigned_user')
        name = assigned_user.get('full_name') if isinstance(assigned_user, dict) else None
        if name and name not in group['assigned_names']:
            group['assigned_names'].append(name)

    result = []
    for group in groups.values():
        group['status'] = stock_status(group['quantity'], group['min_stock'])
        group['assigned_display'] = assigned_display(group['assigned_names'])
        group['member_count'] = len(group['ids'])
        for name in ('first_added', 'last_updated'):
            if group[name] is not None:
                group[name] = group[name].isoformat()
        result.append(group)
    return result


def detail_rows(items: Iterable[Dict], group_key: str) -> List[Dict]:
    """Rows of one category group with derived status and display defaults"""
    rows = []
    for item in items:
        if group_key_of(item) != group_key:
            continue
        assigned_user = item.get('assigned_user')
        assigned_name = assigned_user.get('full_name') if isinstance(assigned_user, dict) else None
        brand_type = ' '.join(v for v in (item.get('brand'), item.get('type')) if v)
        row = dict(item)
        row.update({
            'department': item_department(item),
            'status_info': item_status(item),
            'condition_display': item.get('condition') or 'Good',
            'brand_type': brand_type or '-',
            'supplier_display': item.get('supplier') or '-',
            'assigned_name': assigned_name or 'Unassigned',
        })
        rows.append(row)
    return rows


def paginate(sequence, page, page_size) -> Dict:
    """
    One page of a sequence (pages are 1-indexed)

    Returns:
        dict: items, page, page_size, start (1-based), end, total,
              total_pages, prev_disabled, next_disabled and a display label
    """
    sequence = list(sequence)
    total = len(sequence)
    page = max(1, int(page or 1))
    page_size = max(1, int(page_size or 1))

    start_index = (page - 1) * page_size
    end = min(start_index + page_size, total)
    page_items = sequence[start_index:end] if start_index < total else []

    # A page past the end has no range to show
    if page_items:
        label = f"{start_index + 1}-{end} of {total}"
    else:
        label = f"0 of {total}"

    return {
        'items': page_items,
        'page': page,
        'page_size': page_size,
        'start': start_index + 1 if total else 0,
        'end': end if total else 0,
        'total': total,
        'total_pages': max(1, -(-total // page_size)),
        'prev_disabled': page <= 1,
        'next_disabled': end >= total,
        'label': label,
    }


def _quantity(item):
    return parse_int(item.get('quantity'), 0) or 0


def summary_stats(items: Iterable[Dict]) -> Dict:
    """
    Card totals over every item, written-off ones included

    Available is computed from its own predicate (neither out nor
    defective) rather than by subtracting the other totals.
    """
    items = list(items)

    def is_out(item):
        return _text(item.get('status')).lower() in OUT_STATUSES

    return {
        'total_items': len(items),
        'total_quantity': sum(_quantity(i) for i in items),
        'assigned_quantity': sum(_quantity(i) for i in items if is_out(i)),
        'damaged_quantity': sum(_quantity(i) for i in items if is_defective(i)),
        'available_quantity': sum(_quantity(i) for i in items if not is_out(i) and not is_defective(i)),
    }


def build_inventory_view(items: Iterable[Dict], state) -> Dict:
    """
    Everything the inventory screen renders for a view state

    Summary mode pages over category groups; detail mode pages over the
    rows of state.group_key.
    """
    items = list(items)
    filtered = apply_filters(items, state.filters)

    if state.is_detail:
        rows = detail_rows(filtered, state.group_key)
        page = paginate(rows, state.page, state.page_size)
        page_ids = [row.get('id') for row in page['items']]
        selection = {
            'selected': sorted(state.selected),
            'count': len(state.selected),
            'page_all_selected': bool(page_ids) and all(i in state.selected for i in page_ids),
        }
    else:
        page = paginate(group_by_category(filtered), state.page, state.page_size)
        selection = {'selected': [], 'count': 0, 'page_all_selected': False}

    return {
        'stats': summary_stats(items),
        'mode': state.mode,
        'group_key': state.group_key,
        'filters': state.filters,
        'filtered_count': len(filtered),
        'rows': page.pop('items'),
        'pagination': page,
        'selection': selection,
        'state': state.to_dict(),
    }


def merge_options(defaults: Iterable[str], distinct: Iterable[str]) -> List[str]:
    """Sorted union of configured defaults and values found in the store"""
    return sorted({_text(v) for v in list(defaults) + list(distinct) if _text(v)})


def bulk_names(name, count):
    return [f"{name} - {i:03d}" for i in range(1, count + 1)]


def bulk_preview(name, count, limit=4):
    """First few generated names plus a '+N more' marker"""
    name = _text(name)
    count = parse_int(count, 0) or 0
    if not name or count < 1:
        return {'names': [], 'more': None, 'count': 0}
    names = bulk_names(name, min(count, limit))
    more = f"+{count - limit} more" if count > limit else None
    return {'names': names, 'more': more, 'count': count}
