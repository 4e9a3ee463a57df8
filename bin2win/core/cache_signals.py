"""
Cache invalidation signals
Automatically invalidate cache when data changes
"""
from django.db import transaction
from django.db.models.signals import post_save, post_delete
from django.dispatch import receiver
from django.core.cache import cache
import logging
import threading
from contextlib import contextmanager

from .model_cache import LEADERBOARD_KEY_PREFIX, invalidate_booth_cache, invalidate_waste_rates_cache

logger = logging.getLogger(__name__)

# Thread-local storage to track signal suspension
_thread_locals = threading.local()


@contextmanager
def suspend_cache_signals():
    """
    Context manager to temporarily suspend cache invalidation signals.
    Useful for bulk operations to prevent excessive cache clearing.
    Remember to manually invalidate cache after the block!
    """
    try:
        _thread_locals.suspended = True
        yield
    finally:
        _thread_locals.suspended = False


def is_suspended():
    return getattr(_thread_locals, 'suspended', False)


def invalidate_cache_pattern(pattern):
    """
    Invalidate all cache keys matching a pattern
    Uses Redis SCAN to find and delete matching keys. Backends without
    pattern support (local memory in development and tests) are cleared.
    """
    try:
        from django_redis import get_redis_connection
        redis_conn = get_redis_connection("default")
    except NotImplementedError:
        cache.clear()
        logger.debug(f"Cache backend has no pattern support, cleared cache for pattern: {pattern}")
        return

    try:
        keys = []
        cursor = 0
        while True:
            cursor, partial_keys = redis_conn.scan(cursor, match=f"*{pattern}*", count=100)
            keys.extend(partial_keys)
            if cursor == 0:
                break

        if keys:
            redis_conn.delete(*keys)
            logger.info(f"Cache invalidation requested for pattern: {pattern} - Deleted {len(keys)} keys")
        else:
            logger.info(f"Cache invalidation requested for pattern: {pattern} - No keys found")
    except Exception as e:
        logger.warning(f"Could not invalidate cache pattern {pattern}: {str(e)}")


def invalidate_leaderboard_cache():
    invalidate_cache_pattern(LEADERBOARD_KEY_PREFIX)


# --- Signal Handlers ---

@receiver([post_save, post_delete])
def invalidate_waste_rates(sender, instance, **kwargs):
    """Invalidate the rate table when waste types change"""
    if is_suspended() or sender.__name__ != 'WasteType':
        return
    invalidate_waste_rates_cache()


@receiver([post_save, post_delete])
def invalidate_booth(sender, instance, **kwargs):
    """Invalidate cached booth details when a booth changes"""
    if is_suspended() or sender.__name__ != 'CollectionBooth':
        return
    invalidate_booth_cache(instance.pk)


@receiver([post_save, post_delete])
def invalidate_leaderboard(sender, instance, **kwargs):
    """Leaderboards depend on balances, so every ledger write clears them after commit"""
    if is_suspended() or sender.__name__ != 'CreditTransaction':
        return
    transaction.on_commit(invalidate_leaderboard_cache)
