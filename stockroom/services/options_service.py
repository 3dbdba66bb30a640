"""
Dropdown Options
Category and department choices: configured defaults merged with the
distinct values already in the store. The independent reads are issued
concurrently and joined before merging.
"""

import logging
from concurrent.futures import ThreadPoolExecutor

from flask import current_app

from stockroom.utils.cache import cache, OPTIONS_CACHE_KEY
from stockroom.utils.view_model import merge_options

logger = logging.getLogger(__name__)

OPTION_QUERIES = {
    'categories': ('inventory_items', 'category'),
    'departments': ('inventory_items', 'department'),
    'user_departments': ('users', 'department'),
}


def _fetch_distinct(app, store, entity, field):
    with app.app_context():
        return store.distinct_values(entity, field)


def fetch_options(store, default_categories=(), default_departments=(), workers=3):
    """
    Read every option source concurrently

    Returns:
        dict: categories and departments, each sorted and de-duplicated
    """
    app = current_app._get_current_object()
    with ThreadPoolExecutor(max_workers=max(1, workers)) as executor:
        futures = {
            name: executor.submit(_fetch_distinct, app, store, entity, field)
            for name, (entity, field) in OPTION_QUERIES.items()
        }
        results = {name: future.result() for name, future in futures.items()}

    return {
        'categories': merge_options(default_categories, results['categories']),
        'departments': merge_options(
            default_departments, results['departments'] + results['user_departments']
        ),
    }


def load_options(store):
    """Cached dropdown options for the current application"""
    options = cache.get(OPTIONS_CACHE_KEY)
    if options is None:
        config = current_app.config
        options = fetch_options(
            store,
            config.get('DEFAULT_CATEGORIES', []),
            config.get('DEFAULT_DEPARTMENTS', []),
            config.get('OPTIONS_FANOUT_WORKERS', 3),
        )
        cache.set(OPTIONS_CACHE_KEY, options)
        logger.info(f"Loaded {len(options['categories'])} categories and "
                    f"{len(options['departments'])} departments")
    return options
