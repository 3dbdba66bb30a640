"""
Live Screens
Long-lived load + view-model pipelines. Attached screens re-run their load
on every change notification for their entity; no diffing is attempted.
"""

import logging

from stockroom.utils.movement_view import (
    filter_movements, filter_requests, movement_rows, request_rows, request_stats
)
from stockroom.utils.view_model import build_inventory_view, paginate
from stockroom.utils.view_state import ViewState

logger = logging.getLogger(__name__)


class Screen:
    """Base class: subscribe on attach, reload on every change"""
    entity = None

    def __init__(self, store):
        self.store = store
        self.view = None
        self.load_count = 0
        self._records = []
        self._subscription = None

    @property
    def attached(self):
        return self._subscription is not None

    def fetch(self):
        return self.store.list_records(self.entity, order_by='-created_at')

    def render(self, records):
        raise NotImplementedError

    def load(self):
        self._records = self.fetch()
        self.load_count += 1
        self.view = self.render(self._records)
        return self.view

    def refresh(self):
        """Recompute the view from the last load without reading again"""
        self.view = self.render(self._records)
        return self.view

    def _on_change(self, change):
        logger.debug(f"{self.entity} {change['event']}; reloading {type(self).__name__}")
        self.load()

    def attach(self):
        if self._subscription is None:
            self._subscription = self.store.subscribe(self.entity, self._on_change)
        return self.load()

    def detach(self):
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None


class InventoryScreen(Screen):
    entity = 'inventory_items'

    def __init__(self, store, state=None):
        super().__init__(store)
        self.state = state or ViewState()

    def render(self, records):
        return build_inventory_view(records, self.state)

    def apply(self, transition, *args, **kwargs):
        """Move to a new view state, e.g. screen.apply(view_group, 'Laptops')"""
        self.state = transition(self.state, *args, **kwargs)
        return self.refresh()


class MovementLogScreen(Screen):
    entity = 'stock_movements'

    def __init__(self, store, search='', display_type='', page=1, page_size=10):
        super().__init__(store)
        self.search = search
        self.display_type = display_type
        self.page = page
        self.page_size = page_size

    def render(self, records):
        rows = filter_movements(movement_rows(records), self.search, self.display_type)
        page = paginate(rows, self.page, self.page_size)
        return {'rows': page.pop('items'), 'pagination': page}

    def set_filters(self, search=None, display_type=None):
        if search is not None:
            self.search = search
        if display_type is not None:
            self.display_type = display_type
        self.page = 1
        return self.refresh()


class RequestQueueScreen(Screen):
    entity = 'requests'

    def __init__(self, store, status='all', user_id=None):
        super().__init__(store)
        self.status = status
        self.user_id = user_id

    def fetch(self):
        filters = {'user_id': self.user_id} if self.user_id else None
        return self.store.list_records(self.entity, filters=filters, order_by='-created_at')

    def render(self, records):
        return {
            'stats': request_stats(records),
            'rows': request_rows(filter_requests(records, self.status)),
        }

    def set_status(self, status):
        self.status = status
        return self.refresh()
