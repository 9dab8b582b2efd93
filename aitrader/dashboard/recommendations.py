"""Daily and weekly recommendation lists for the platform dashboard."""

import logging
from typing import Any, Dict, List

from .values import is_number
from ..data.base import RecommendationStore, StoreError, StoreUnavailableError
from ..data.stock_catalog import ALL_STOCKS

logger = logging.getLogger(__name__)

DAILY_ERROR = "Unable to load current recommendations right now."
NO_STRATEGY_ERROR = "No active strategy version found yet."
NO_WEEKLY_RUN_ERROR = "No weekly AI run found yet."
WEEKLY_ERROR = "Unable to load weekly rankings right now."


def _number_or_none(value: Any):
    return value if is_number(value) else None


def _daily_sort_key(row: Dict[str, Any]):
    score = row['score']
    latent_rank = row['latentRank']
    return (
        score is None,
        -score if score is not None else 0,
        latent_rank is None,
        -latent_rank if latent_rank is not None else 0,
    )


def _weekly_sort_key(row: Dict[str, Any]):
    latent_rank = row['latentRank'] if row['latentRank'] is not None else -1
    score = row['score'] if row['score'] is not None else -999
    return (-latent_rank, -score, row['symbol'])


def _catalog_daily_rows() -> List[Dict[str, Any]]:
    return [
        {
            'symbol': stock['symbol'],
            'name': stock['name'],
            'score': None,
            'latentRank': None,
            'confidence': None,
            'bucket': None,
            'updatedAt': None,
        }
        for stock in ALL_STOCKS
    ]


def _catalog_weekly_rows() -> List[Dict[str, Any]]:
    return [
        {
            'stockId': stock['symbol'],
            'symbol': stock['symbol'],
            'name': stock['name'],
            'score': None,
            'latentRank': None,
            'isTop20': False,
            'runDate': None,
        }
        for stock in ALL_STOCKS
    ]


def load_daily_recommendations(store: RecommendationStore) -> Dict[str, Any]:
    """
    Current recommendation rows, best score first.

    Returns:
        {"rows": [...], "errorMessage": str or None}
    """
    try:
        records = store.get_current_recommendations()
    except StoreUnavailableError as e:
        logger.warning(f"Store unavailable, serving catalog rows: {e}")
        return {'rows': _catalog_daily_rows(), 'errorMessage': None}
    except StoreError as e:
        logger.error(f"Failed to load current recommendations: {e}")
        return {'rows': [], 'errorMessage': DAILY_ERROR}

    rows = []
    for record in records:
        symbol = record.get('symbol')
        if not symbol:
            continue
        rows.append({
            'symbol': symbol,
            'name': record.get('company_name') or symbol,
            'score': _number_or_none(record.get('score')),
            'latentRank': _number_or_none(record.get('latent_rank')),
            'confidence': _number_or_none(record.get('confidence')),
            'bucket': record.get('bucket'),
            'updatedAt': record.get('updated_at'),
        })

    rows.sort(key=_daily_sort_key)
    return {'rows': rows, 'errorMessage': None}


def _weekly_error(message: str) -> Dict[str, Any]:
    return {'rows': [], 'indexExitActions': [], 'errorMessage': message}


def _weekly_from_store(store: RecommendationStore) -> Dict[str, Any]:
    try:
        strategy = store.get_default_strategy(active_only=False)
    except StoreUnavailableError:
        raise
    except StoreError as e:
        logger.error(f"Failed to load default strategy: {e}")
        strategy = None
    if not strategy:
        return _weekly_error(NO_STRATEGY_ERROR)

    try:
        batch = store.get_latest_batch(strategy['id'], 'weekly')
    except StoreUnavailableError:
        raise
    except StoreError as e:
        logger.error(f"Failed to load latest weekly batch: {e}")
        batch = None
    if not batch:
        return _weekly_error(NO_WEEKLY_RUN_ERROR)

    try:
        analyses = store.get_batch_analyses(batch['id'])
        holdings = store.get_portfolio_holdings(strategy['id'], batch['run_date'])
        exit_actions = store.get_rebalance_actions(strategy['id'], batch['run_date'], 'exit_index')
    except StoreUnavailableError:
        raise
    except StoreError as e:
        logger.error(f"Failed to load weekly rankings: {e}")
        return _weekly_error(WEEKLY_ERROR)

    top_ids = {row.get('stock_id') for row in holdings}
    rows = []
    for analysis in analyses:
        symbol = analysis.get('symbol')
        if not symbol:
            continue
        rows.append({
            'stockId': analysis.get('stock_id'),
            'symbol': symbol,
            'name': analysis.get('company_name') or symbol,
            'score': _number_or_none(analysis.get('score')),
            'latentRank': _number_or_none(analysis.get('latent_rank')),
            'isTop20': analysis.get('stock_id') in top_ids,
            'runDate': batch.get('run_date'),
        })
    rows.sort(key=_weekly_sort_key)

    return {
        'rows': rows,
        'indexExitActions': [
            {'symbol': action['symbol'], 'action_label': action.get('action_label')}
            for action in exit_actions
        ],
        'errorMessage': None,
    }


def load_weekly_recommendations(store: RecommendationStore) -> Dict[str, Any]:
    """
    Latest weekly ranking of the default strategy with its index exits.

    Returns:
        {"rows": [...], "indexExitActions": [...], "errorMessage": str or None}
    """
    try:
        return _weekly_from_store(store)
    except StoreUnavailableError as e:
        logger.warning(f"Store unavailable, serving catalog rows: {e}")
        return {'rows': _catalog_weekly_rows(), 'indexExitActions': [], 'errorMessage': None}
