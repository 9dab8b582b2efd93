"""Dashboard read services: recommendation lists, performance and strategy payloads."""

from .cache import PayloadCache
from .performance import build_fallback_series, build_performance_series, load_performance_series
from .premium import PremiumAccessError, load_premium_history
from .quotes import load_index_members, lookup_price, normalize_symbol
from .recommendations import load_daily_recommendations, load_weekly_recommendations
from .strategy import EMPTY_PAYLOAD, build_strategy_payload, load_strategy_payload

__all__ = [
    'PayloadCache',
    'build_fallback_series',
    'build_performance_series',
    'load_performance_series',
    'PremiumAccessError',
    'load_premium_history',
    'load_index_members',
    'lookup_price',
    'normalize_symbol',
    'load_daily_recommendations',
    'load_weekly_recommendations',
    'EMPTY_PAYLOAD',
    'build_strategy_payload',
    'load_strategy_payload',
]
