"""Index membership and latest price lookups."""

import logging
from typing import Any, Dict, List, Optional

from ..data.base import RecommendationStore, StoreError

logger = logging.getLogger(__name__)


def load_index_members(store: RecommendationStore) -> Optional[List[Dict[str, str]]]:
    """
    Members of the latest Nasdaq-100 snapshot sorted by symbol.

    Returns:
        None when there is no snapshot or the store failed
    """
    try:
        members = store.get_latest_snapshot_members()
    except StoreError as e:
        logger.warning(f"Failed to load index members: {e}")
        return None

    if members is None:
        return None

    listed = [
        {'symbol': member['symbol'], 'name': member.get('company_name') or member['symbol']}
        for member in members
        if member.get('symbol')
    ]
    return sorted(listed, key=lambda member: member['symbol'])


def normalize_symbol(symbol: Optional[str]) -> str:
    return (symbol or '').strip().upper()


def lookup_price(store: RecommendationStore, symbol: str) -> Dict[str, Any]:
    """
    Latest stored quote for an upper-cased symbol.

    Raises:
        StoreError: If the quote query fails
    """
    quote = store.get_latest_quote(symbol)
    if not quote:
        return {'found': False, 'symbol': symbol}

    return {
        'found': True,
        'symbol': quote['symbol'],
        'companyName': quote.get('company_name'),
        'lastSalePrice': quote.get('last_sale_price'),
        'netChange': quote.get('net_change'),
        'percentageChange': quote.get('percentage_change'),
        'asOf': quote.get('run_date'),
    }
