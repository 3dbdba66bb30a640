"""
Caching utilities
Dropdown options are cached with Flask-Caching and dropped whenever the
change feed reports a write to the entities they are read from
"""

from flask_caching import Cache

cache = Cache()

OPTIONS_CACHE_KEY = 'dropdown_options'
OPTION_SOURCES = ('inventory_items', 'users')


def init_cache(app, store):
    """Initialize the cache and wire invalidation to the store's change feed"""
    cache.init_app(app)
    for entity in OPTION_SOURCES:
        store.subscribe(entity, lambda change: invalidate_options())
    app.logger.info(f"Cache initialized with type: {app.config.get('CACHE_TYPE', 'SimpleCache')}")
    return cache


def invalidate_options():
    cache.delete(OPTIONS_CACHE_KEY)
