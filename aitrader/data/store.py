"""Store selection by configured provider."""

import logging
from typing import Optional

from .base import RecommendationStore
from .sqlite_store import SQLiteRecommendationStore
from .supabase_store import SupabaseRecommendationStore
from ..config import Config, get_config

logger = logging.getLogger(__name__)


def get_recommendation_store(config: Optional[Config] = None) -> RecommendationStore:
    """
    Factory function to get the configured recommendation store.

    Args:
        config: Config instance (defaults to the global one)

    Returns:
        RecommendationStore instance
    """
    config = config or get_config()
    provider = config.database_provider

    if provider == 'supabase':
        return SupabaseRecommendationStore(
            url=config.get_secret('database.url'),
            key=config.get_secret('database.key'),
        )
    if provider == 'sqlite':
        return SQLiteRecommendationStore(config.db_path)

    raise ValueError(f"Unknown database provider: {provider}")
