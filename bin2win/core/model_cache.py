"""
Caching for frequently read, rarely written data: the waste rate table,
booth details and leaderboards.

Invalidation is driven by signals in cache_signals.py.
"""
from django.core.cache import cache
import logging

logger = logging.getLogger(__name__)

# Cache key prefixes
WASTE_RATES_KEY = 'waste_rates:all'
BOOTH_KEY_PREFIX = 'booth:'
LEADERBOARD_KEY_PREFIX = 'leaderboard:'

# Cache TTL (Time To Live) in seconds
WASTE_RATES_CACHE_TTL = 3600  # 1 hour, admins rarely touch rates
BOOTH_CACHE_TTL = 300  # 5 minutes, daily load changes with every drop-off
LEADERBOARD_CACHE_TTL = 120  # 2 minutes


# ==================== WASTE RATES ====================

def get_waste_rate_table():
    """
    {code: {'name', 'points_per_kg', 'co2_factor'}} for active waste types.

    Falls back to the built-in defaults when no WasteType rows exist yet.
    """
    cached_data = cache.get(WASTE_RATES_KEY)
    if cached_data is not None:
        logger.debug("Cache hit for waste rate table")
        return cached_data

    from bin2win.waste.models import WasteType
    from .rules import DEFAULT_CO2_FACTORS, DEFAULT_POINTS_PER_KG, WASTE_TYPE_CHOICES

    table = {
        waste_type.code: {
            'name': waste_type.name,
            'points_per_kg': waste_type.points_per_kg,
            'co2_factor': waste_type.co2_factor,
        }
        for waste_type in WasteType.objects.filter(is_active=True)
    }
    if not table and not WasteType.objects.exists():
        table = {
            code: {
                'name': name,
                'points_per_kg': DEFAULT_POINTS_PER_KG[code],
                'co2_factor': DEFAULT_CO2_FACTORS[code],
            }
            for code, name in WASTE_TYPE_CHOICES
        }
    cache.set(WASTE_RATES_KEY, table, WASTE_RATES_CACHE_TTL)
    return table


def get_points_rates():
    return {code: row['points_per_kg'] for code, row in get_waste_rate_table().items()}


def get_co2_factors():
    return {code: row['co2_factor'] for code, row in get_waste_rate_table().items()}


def invalidate_waste_rates_cache():
    cache.delete(WASTE_RATES_KEY)
    logger.debug("Invalidated waste rate table cache")


# ==================== BOOTH CACHING ====================

def get_booth_cache_key(booth_id: int) -> str:
    """Get cache key for booth by ID"""
    return f"{BOOTH_KEY_PREFIX}{booth_id}"


def cache_booth_data(booth_id: int, data, ttl: int = None):
    ttl = ttl or BOOTH_CACHE_TTL
    cache.set(get_booth_cache_key(booth_id), data, ttl)
    logger.debug(f"Cached booth data (ID: {booth_id})")


def get_cached_booth(booth_id: int):
    """Get cached booth data by ID"""
    cached_data = cache.get(get_booth_cache_key(booth_id))
    if cached_data:
        logger.debug(f"Cache hit for booth: {booth_id}")
    return cached_data


def invalidate_booth_cache(booth_id: int):
    cache.delete(get_booth_cache_key(booth_id))
    logger.debug(f"Invalidated cache for booth ID: {booth_id}")


# ==================== LEADERBOARD ====================

def get_leaderboard_cache_key(period: str, limit: int) -> str:
    return f"{LEADERBOARD_KEY_PREFIX}{period}:{limit}"
