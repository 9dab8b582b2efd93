"""Per-stock rating history for premium users."""

import logging
from typing import Any, Dict, List, Optional

from .values import is_number, to_nullable_number
from ..data.base import RecommendationStore, StoreError, StoreUnavailableError

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 30


class PremiumAccessError(Exception):
    """Request rejected before the history lookup; carries the HTTP status."""

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


def to_risk_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str)]


def history_entry(row: Dict[str, Any]) -> Dict[str, Any]:
    run_date = row.get('run_date')
    if isinstance(run_date, str):
        entry_date = run_date
    else:
        entry_date = str(row.get('created_at') or '')[:10]

    confidence = row.get('confidence')
    return {
        'date': entry_date,
        'score': row['score'] if is_number(row.get('score')) else None,
        'bucket': row.get('bucket'),
        'confidence': None if confidence is None else to_nullable_number(confidence),
        'summary': row.get('reason_1s'),
        'risks': to_risk_list(row.get('risks')),
        'changeExplanation': row.get('bucket_change_explanation'),
    }


def _lookup(action: str, fn, *args):
    """Run an access-check query; a failed query counts as no match."""
    try:
        return fn(*args)
    except StoreUnavailableError:
        raise
    except StoreError as e:
        logger.warning(f"{action} failed: {e}")
        return None


def load_premium_history(store: RecommendationStore, token: Optional[str], symbol: str) -> List[Dict[str, Any]]:
    """
    Rating history of a stock, oldest first, for a premium user.

    Raises:
        PremiumAccessError: 401 without a valid token, 403 for non-premium users,
            404 for unknown stocks
        StoreError: If the history query fails
    """
    user_id = _lookup("Token lookup", store.get_user_id_for_token, token) if token else None
    if not user_id:
        raise PremiumAccessError(401, "Unauthorized")

    if not _lookup("Profile lookup", store.is_premium_user, user_id):
        raise PremiumAccessError(403, "Premium required")

    stock_id = _lookup("Stock lookup", store.get_stock_id, symbol.upper())
    if not stock_id:
        raise PremiumAccessError(404, "Stock not found")

    rows = store.get_analysis_history(stock_id, limit=HISTORY_LIMIT)
    return [history_entry(row) for row in rows]
