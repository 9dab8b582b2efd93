"""Data access layer: recommendation store, market data and the static stock catalog."""

from .base import RecommendationStore, StoreError, StoreUnavailableError
from .market_data import MarketDataClient, MarketDataError
from .sqlite_store import SQLiteRecommendationStore
from .store import get_recommendation_store
from .supabase_store import SupabaseRecommendationStore

__all__ = [
    'RecommendationStore',
    'StoreError',
    'StoreUnavailableError',
    'MarketDataClient',
    'MarketDataError',
    'SQLiteRecommendationStore',
    'SupabaseRecommendationStore',
    'get_recommendation_store',
]
