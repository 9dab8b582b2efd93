"""Strategy performance payload: equity series, metrics, holdings, actions and research."""

import copy
import logging
from typing import Any, Dict, List, Optional

from .metrics import (
    compute_cagr,
    compute_max_drawdown,
    compute_pct_months_beating,
    compute_sharpe_weekly,
    compute_total_return,
)
from .values import to_nullable_number, to_number
from ..data.base import RecommendationStore, StoreError

logger = logging.getLogger(__name__)

INITIAL_CAPITAL = 10_000
DEFAULT_TRANSACTION_COST_BPS = 15

BACKTESTING_POLICY = (
    "Official performance is forward-only live tracking. "
    "Any historical simulation must be labeled simulated historical results."
)

EMPTY_PAYLOAD: Dict[str, Any] = {
    'strategy': None,
    'series': [],
    'metrics': None,
    'latestHoldings': [],
    'latestActions': [],
    'research': None,
}

def empty_payload() -> Dict[str, Any]:
    return copy.deepcopy(EMPTY_PAYLOAD)


def _strategy_block(strategy: Dict[str, Any]) -> Dict[str, Any]:
    return {
        'id': strategy['id'],
        'slug': strategy.get('slug'),
        'name': strategy.get('name'),
        'version': strategy.get('version'),
        'description': strategy.get('description'),
        'rebalanceFrequency': strategy.get('rebalance_frequency'),
        'rebalanceDayOfWeek': strategy.get('rebalance_day_of_week'),
        'portfolioSize': strategy.get('portfolio_size'),
        'transactionCostBps': to_number(strategy.get('transaction_cost_bps'), DEFAULT_TRANSACTION_COST_BPS),
    }


def _series_point(row: Dict[str, Any]) -> Dict[str, Any]:
    return {
        'date': row['run_date'],
        'aiTop20': to_number(row.get('ending_equity'), INITIAL_CAPITAL),
        'nasdaq100CapWeight': to_number(row.get('nasdaq100_cap_weight_equity'), INITIAL_CAPITAL),
        'nasdaq100EqualWeight': to_number(row.get('nasdaq100_equal_weight_equity'), INITIAL_CAPITAL),
        'sp500': to_number(row.get('sp500_equity'), INITIAL_CAPITAL),
    }


def _benchmark_metrics(series: List[Dict[str, Any]], key: str) -> Dict[str, Any]:
    first, last = series[0], series[-1]
    return {
        'endingValue': last[key],
        'totalReturn': compute_total_return(first[key], last[key]),
        'cagr': compute_cagr(first[key], last[key], first['date'], last['date']),
        'maxDrawdown': compute_max_drawdown([point[key] for point in series]),
    }


def build_metrics(series: List[Dict[str, Any]], net_returns: List[float]) -> Optional[Dict[str, Any]]:
    """Headline metrics for the AI portfolio plus per-benchmark summaries."""
    if not series:
        return None

    ai = _benchmark_metrics(series, 'aiTop20')
    return {
        'startingCapital': INITIAL_CAPITAL,
        'endingValue': ai['endingValue'],
        'totalReturn': ai['totalReturn'],
        'cagr': ai['cagr'],
        'maxDrawdown': ai['maxDrawdown'],
        'sharpeRatio': compute_sharpe_weekly(net_returns),
        'pctMonthsBeatingNasdaq100': compute_pct_months_beating([
            {
                'date': point['date'],
                'ai_value': point['aiTop20'],
                'benchmark_value': point['nasdaq100CapWeight'],
            }
            for point in series
        ]),
        'benchmarks': {
            'nasdaq100CapWeight': _benchmark_metrics(series, 'nasdaq100CapWeight'),
            'nasdaq100EqualWeight': _benchmark_metrics(series, 'nasdaq100EqualWeight'),
            'sp500': _benchmark_metrics(series, 'sp500'),
        },
    }


def select_latest_quintile_set(rows: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Rows of the newest run date (rows arrive newest first), sorted by quintile."""
    if not rows:
        return None

    latest_run_date = rows[0]['run_date']
    latest = sorted(
        (row for row in rows if row['run_date'] == latest_run_date),
        key=lambda row: row['quintile']
    )
    return {
        'runDate': latest_run_date,
        'rows': [
            {
                'quintile': row['quintile'],
                'stockCount': row.get('stock_count'),
                'return': to_number(row.get('return_value'), 0),
            }
            for row in latest
        ],
    }


def _regression_block(row: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not row:
        return None
    return {
        'runDate': row['run_date'],
        'sampleSize': row.get('sample_size'),
        'alpha': to_nullable_number(row.get('alpha')),
        'beta': to_nullable_number(row.get('beta')),
        'rSquared': to_nullable_number(row.get('r_squared')),
    }


def build_strategy_payload(store: RecommendationStore) -> Dict[str, Any]:
    """
    Assemble the strategy payload for the default active strategy.

    Raises:
        StoreError: If a store query fails
    """
    strategy = store.get_default_strategy(active_only=True)
    if not strategy:
        return empty_payload()

    strategy_block = _strategy_block(strategy)
    performance = store.get_weekly_performance(strategy['id'])
    if not performance:
        payload = empty_payload()
        payload['strategy'] = strategy_block
        return payload

    series = [_series_point(row) for row in performance]
    net_returns = [to_number(row.get('net_return'), 0) for row in performance]
    latest_run_date = series[-1]['date']

    holdings = store.get_portfolio_holdings(strategy['id'], latest_run_date)
    actions = store.get_rebalance_actions(strategy['id'], latest_run_date)

    return {
        'strategy': strategy_block,
        'latestRunDate': latest_run_date,
        'series': series,
        'metrics': build_metrics(series, net_returns),
        'latestHoldings': [
            {
                'symbol': row['symbol'],
                'companyName': row.get('company_name') or row['symbol'],
                'rank': row.get('rank_position'),
                'weight': to_number(row.get('target_weight'), 0),
                'score': to_nullable_number(row.get('score')),
                'latentRank': to_nullable_number(row.get('latent_rank')),
            }
            for row in holdings
        ],
        'latestActions': [
            {
                'symbol': row['symbol'],
                'actionType': row.get('action_type'),
                'label': row.get('action_label'),
                'previousWeight': to_nullable_number(row.get('previous_weight')),
                'newWeight': to_nullable_number(row.get('new_weight')),
            }
            for row in actions
        ],
        'research': {
            'weeklyQuintiles': select_latest_quintile_set(store.get_quintile_returns(strategy['id'], 1)),
            'fourWeekQuintiles': select_latest_quintile_set(store.get_quintile_returns(strategy['id'], 4)),
            'regression': _regression_block(store.get_latest_regression(strategy['id'], 1)),
        },
        'notes': {
            'forwardOnly': True,
            'backtestingPolicy': BACKTESTING_POLICY,
        },
    }


def load_strategy_payload(store: RecommendationStore) -> Dict[str, Any]:
    """Strategy payload for the API; store failures yield the empty payload."""
    try:
        return build_strategy_payload(store)
    except StoreError as e:
        logger.warning(f"Strategy payload unavailable: {e}")
        return empty_payload()
