"""
Movement and Request View Helpers
Display-type classification, reference ids and table shaping for the
movement log and the request queue
"""

import re
from collections import Counter

from stockroom.utils.view_model import is_defective

ISSUE = 'Issue'
RETURN = 'Return'
TRANSFER = 'Transfer'
LOST_STOLEN = 'Lost/Stolen'
DAMAGED = 'Damaged'
DISPLAY_TYPES = (ISSUE, RETURN, TRANSFER, LOST_STOLEN, DAMAGED)

# Display type -> coarse kind stored alongside it
MOVEMENT_KINDS = {
    ISSUE: 'out',
    RETURN: 'in',
    TRANSFER: 'adjustment',
    LOST_STOLEN: 'out',
    DAMAGED: 'out',
}

BADGE_CLASSES = {
    ISSUE: 'badge-issue',
    RETURN: 'badge-return',
    TRANSFER: 'badge-transfer',
    LOST_STOLEN: 'badge-lost',
    DAMAGED: 'badge-damaged',
}

TAG_PATTERN = re.compile(r'\[(Issue|Return|Transfer|Lost/Stolen|Damaged)\]\s*', re.IGNORECASE)
PERSON_PATTERN = re.compile(r'Person:\s*([^.]+)')

REQUEST_STATUS_CLASSES = {
    'pending': 'status-pending',
    'approved': 'status-approved',
    'rejected': 'status-rejected',
    'fulfilled': 'status-fulfilled',
}


def normalize_display_type(value):
    """Canonical display type for user input such as 'issue' or 'lost/stolen'"""
    wanted = (value or '').strip().lower()
    for display_type in DISPLAY_TYPES:
        if display_type.lower() == wanted:
            return display_type
    return None


def classify_movement(movement):
    """
    Display type recovered from the reason text

    First match wins, in this order: lost/stolen, damaged, transfer,
    return, issue/assign. Without a match the coarse kind decides:
    out -> Issue, in -> Return, anything else -> Issue.
    """
    reason = (movement.get('reason') or '').lower()
    if 'lost/stolen' in reason or 'lost' in reason or 'stolen' in reason:
        return LOST_STOLEN
    if 'damaged' in reason:
        return DAMAGED
    if 'transfer' in reason:
        return TRANSFER
    if 'return' in reason:
        return RETURN
    if 'issue' in reason or 'assign' in reason:
        return ISSUE

    kind = (movement.get('movement_type') or '').lower()
    if kind == 'in':
        return RETURN
    return ISSUE


def display_type_of(movement):
    """Stored display type, falling back to reason classification for legacy rows"""
    stored = normalize_display_type(movement.get('display_type'))
    return stored or classify_movement(movement)


def format_ref_id(movement):
    movement_id = movement.get('id')
    return f"MOV-{str(movement_id)[:8].upper()}" if movement_id else 'MOV-00000000'


def clean_remarks(reason):
    """Reason text without its [Type] tag"""
    return TAG_PATTERN.sub('', reason or '').strip()


def counterpart_name(reason):
    match = PERSON_PATTERN.search(reason or '')
    return match.group(1).strip() if match else ''


def movement_reason(display_type, person, remarks=None):
    """Reason text persisted with a movement"""
    remarks = (remarks or '').strip()
    if remarks:
        return f"[{display_type}] Person: {person}. {remarks}"
    return f"[{display_type}] Person: {person}"


def movement_rows(movements):
    """Movement records decorated for the log table"""
    rows = []
    for movement in movements:
        display_type = display_type_of(movement)
        item = movement.get('item') or {}
        user = movement.get('user') or {}
        row = dict(movement)
        row.update({
            'display_type': display_type,
            'ref_id': format_ref_id(movement),
            'badge_class': BADGE_CLASSES[display_type],
            'remarks': clean_remarks(movement.get('reason')),
            'person': counterpart_name(movement.get('reason')),
            'item_name': item.get('item_name') or 'Unknown Item',
            'performed_by': user.get('full_name') or 'System',
        })
        rows.append(row)
    return rows


def filter_movements(rows, search='', display_type=''):
    """
    Movement rows matching a search over item name or reference id and
    an optional display type ('' or 'all' for every type)
    """
    search = (search or '').strip().lower()
    wanted = normalize_display_type(display_type) if display_type and display_type != 'all' else None

    result = []
    for row in rows:
        if search:
            item_name = (row.get('item_name') or (row.get('item') or {}).get('item_name') or '').lower()
            ref_id = (row.get('ref_id') or format_ref_id(row)).lower()
            if search not in item_name and search not in ref_id:
                continue
        if wanted and (row.get('display_type') or display_type_of(row)) != wanted:
            continue
        result.append(row)
    return result


def count_by_display_type(movements):
    counts = Counter(display_type_of(m) for m in movements)
    return {display_type: counts.get(display_type, 0) for display_type in DISPLAY_TYPES}


def movable_items(items, display_type):
    """
    Items a movement of the given type may be recorded against

    Written-off items are never movable; Issue needs an item that is not
    already issued and Return needs one that is.
    """
    display_type = normalize_display_type(display_type)
    result = []
    for item in items:
        if is_defective(item):
            continue
        issued = (item.get('status') or '').lower() == 'issued'
        if display_type == ISSUE and issued:
            continue
        if display_type == RETURN and not issued:
            continue
        result.append(item)
    return result


def request_status_class(status):
    return REQUEST_STATUS_CLASSES.get((status or '').lower(), 'status-pending')


def filter_requests(requests, status=None):
    if not status or status == 'all':
        return list(requests)
    return [r for r in requests if (r.get('status') or '').lower() == status.lower()]


def request_stats(requests):
    """Totals for a request list; approved counts fulfilled requests too"""
    statuses = Counter((r.get('status') or '').lower() for r in requests)
    return {
        'total': sum(statuses.values()),
        'pending': statuses.get('pending', 0),
        'approved': statuses.get('approved', 0) + statuses.get('fulfilled', 0),
        'rejected': statuses.get('rejected', 0),
    }


def request_rows(requests):
    rows = []
    for item_request in requests:
        item = item_request.get('item') or {}
        user = item_request.get('user') or {}
        row = dict(item_request)
        row.update({
            'item_name': item.get('item_name') or 'Unknown Item',
            'requester': user.get('full_name') or 'Unknown',
            'status_class': request_status_class(item_request.get('status')),
        })
        rows.append(row)
    return rows
