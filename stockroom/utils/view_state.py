"""
Inventory View State
The serializable filter / pagination / selection state of the inventory
screen, and the transitions applied to it by user actions.

Transitions never mutate their input; each returns a new ViewState.
"""

import math
from dataclasses import dataclass, field, replace
from typing import Iterable, Optional, Set

from stockroom.utils.helpers import clean_text, parse_int

FILTER_FIELDS = ('search', 'department', 'category', 'status')
VIEW_MODES = ('summary', 'detail')
DEFAULT_PAGE_SIZE = 10


@dataclass
class ViewState:
    search: str = ''
    department: str = ''
    category: str = ''
    status: str = ''
    mode: str = 'summary'
    group_key: Optional[str] = None
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE
    selected: Set[str] = field(default_factory=set)

    @property
    def filters(self):
        return {name: getattr(self, name) for name in FILTER_FIELDS}

    @property
    def is_detail(self):
        return self.mode == 'detail'

    def to_dict(self):
        return {
            'search': self.search,
            'department': self.department,
            'category': self.category,
            'status': self.status,
            'mode': self.mode,
            'group_key': self.group_key,
            'page': self.page,
            'page_size': self.page_size,
            'selected': sorted(self.selected),
        }

    @classmethod
    def from_dict(cls, data, default_page_size=DEFAULT_PAGE_SIZE, page_size_choices=None):
        """
        Rebuild a state from untrusted input, falling back to defaults

        Args:
            data: Mapping with any subset of the to_dict() keys
            default_page_size: Used when page_size is missing or invalid
            page_size_choices: Allowed page sizes (any positive size when None)
        """
        data = data or {}
        mode = data.get('mode') if data.get('mode') in VIEW_MODES else 'summary'
        page_size = parse_int(data.get('page_size'), default_page_size)
        if page_size is None or page_size < 1 or (page_size_choices and page_size not in page_size_choices):
            page_size = default_page_size

        selected = data.get('selected') or []
        if isinstance(selected, str):
            selected = selected.split(',')

        return cls(
            search=clean_text(data.get('search')),
            department=clean_text(data.get('department')),
            category=clean_text(data.get('category')),
            status=clean_text(data.get('status')),
            mode=mode,
            group_key=(data.get('group_key') or None) if mode == 'detail' else None,
            page=max(1, parse_int(data.get('page'), 1) or 1),
            page_size=page_size,
            selected={clean_text(s) for s in selected if clean_text(s)},
        )

    @classmethod
    def from_args(cls, args, default_page_size=DEFAULT_PAGE_SIZE, page_size_choices=None):
        """Build a state from request query arguments"""
        data = {key: args.get(key) for key in (
            'search', 'department', 'category', 'status', 'mode', 'group_key', 'page', 'page_size'
        )}
        if hasattr(args, 'getlist'):
            selected = []
            for value in args.getlist('selected'):
                selected.extend(value.split(','))
            data['selected'] = selected
        else:
            data['selected'] = args.get('selected')
        return cls.from_dict(data, default_page_size, page_size_choices)


def total_pages(total, page_size):
    return max(1, math.ceil(total / page_size)) if page_size else 1


def with_filters(state, **changes):
    """Apply filter changes; resets to page 1, summary mode and an empty selection"""
    unknown = set(changes) - set(FILTER_FIELDS)
    if unknown:
        raise ValueError(f"Unknown filter(s): {', '.join(sorted(unknown))}")
    changes = {name: clean_text(value) for name, value in changes.items()}
    return replace(state, page=1, selected=set(), mode='summary', group_key=None, **changes)


def view_group(state, group_key):
    """Expand one category group into its detail rows"""
    return replace(state, mode='detail', group_key=group_key, page=1, selected=set())


def back_to_summary(state):
    return replace(state, mode='summary', group_key=None, page=1, selected=set())


def change_page(state, delta, total):
    page = max(1, min(state.page + delta, total_pages(total, state.page_size)))
    return replace(state, page=page, selected=set(state.selected))


def change_page_size(state, page_size):
    page_size = parse_int(page_size, state.page_size)
    if not page_size or page_size < 1:
        page_size = state.page_size
    return replace(state, page_size=page_size, page=1, selected=set(state.selected))


def toggle_item(state, item_id, checked):
    """Select or deselect one row; selection only exists in detail mode"""
    if not state.is_detail:
        return state
    selected = set(state.selected)
    if checked:
        selected.add(item_id)
    else:
        selected.discard(item_id)
    return replace(state, selected=selected)


def toggle_page(state, page_item_ids: Iterable[str], checked):
    """Select or deselect every row on the current page"""
    if not state.is_detail:
        return state
    selected = set(state.selected)
    if checked:
        selected.update(page_item_ids)
    else:
        selected.difference_update(page_item_ids)
    return replace(state, selected=selected)


def clear_selection(state):
    return replace(state, selected=set())
