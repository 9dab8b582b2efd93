"""Performance chart series: AI buy basket vs. S&P 500, compounded from 100."""

import logging
import math
from collections import defaultdict
from datetime import date, timedelta
from typing import Any, Dict, Iterable, List, Optional

import pandas as pd

from .values import parse_percentage
from ..data.base import RecommendationStore, StoreError

logger = logging.getLogger(__name__)

INDEX_NAME = "nasdaq100"
MAX_DAYS = 120
FALLBACK_POINTS = 30
BASE_VALUE = 100.0


def _average(values: List[float]) -> Optional[float]:
    if not values:
        return None
    return sum(values) / len(values)


def build_fallback_series(today: Optional[date] = None) -> List[Dict[str, Any]]:
    """Deterministic 30-day illustrative series ending today."""
    today = today or date.today()
    ai_trader = BASE_VALUE
    sp500 = BASE_VALUE
    points = []

    for index in range(FALLBACK_POINTS - 1, -1, -1):
        ai_drift = 0.22 + math.sin(index / 3) * 0.15
        sp_drift = 0.14 + math.cos(index / 4) * 0.1

        ai_trader *= 1 + ai_drift / 100
        sp500 *= 1 + sp_drift / 100

        points.append({
            'date': (today - timedelta(days=index)).isoformat(),
            'aiTrader': round(ai_trader, 2),
            'sp500': round(sp500, 2),
        })

    return points


def sp500_close_map(run_dates: Iterable[str], closes: pd.DataFrame) -> Dict[str, float]:
    """
    Map each run date to the last S&P 500 close on or before it.

    Args:
        run_dates: Ascending ISO dates
        closes: DataFrame with date/close sorted by date
    """
    close_by_run_date = {}
    rows = list(zip(closes['date'], closes['close']))
    row_index = 0
    latest_close = None

    for run_date in run_dates:
        while row_index < len(rows) and rows[row_index][0] <= run_date:
            latest_close = float(rows[row_index][1])
            row_index += 1
        if latest_close is not None:
            close_by_run_date[run_date] = latest_close

    return close_by_run_date


def build_performance_series(
    store: RecommendationStore,
    market_data,
    today: Optional[date] = None
) -> List[Dict[str, Any]]:
    """
    Build the chart series from stored batches and daily quote changes.

    The AI line compounds the mean daily change of the stocks rated "buy";
    the benchmark compounds S&P 500 close-to-close moves, falling back to the
    mean change of all stored quotes when a close is unknown.

    Raises:
        StoreError: If a store query fails
    """
    batches = store.get_index_batches(INDEX_NAME, MAX_DAYS)
    if not batches:
        return build_fallback_series(today)

    batch_to_date = {batch['id']: batch['run_date'] for batch in batches}
    run_dates = sorted({batch['run_date'] for batch in batches})

    analyses = store.get_batch_buckets(list(batch_to_date))
    quotes = store.get_daily_changes(run_dates)

    buy_symbols = defaultdict(set)
    for row in analyses:
        if row.get('bucket') != 'buy':
            continue
        run_date = batch_to_date.get(row.get('batch_id'))
        if run_date and row.get('symbol'):
            buy_symbols[run_date].add(row['symbol'])

    change_by_symbol = {}
    all_changes = defaultdict(list)
    for row in quotes:
        change = parse_percentage(row.get('percentage_change'))
        if change is None:
            continue
        change_by_symbol[(row['run_date'], row['symbol'])] = change
        all_changes[row['run_date']].append(change)

    closes = market_data.fetch_sp500_closes() if market_data is not None else None
    close_by_date = sp500_close_map(run_dates, closes) if closes is not None else {}

    ai_trader = BASE_VALUE
    sp500 = BASE_VALUE
    previous_close = None
    series = []

    for run_date in run_dates:
        buy_returns = [
            change_by_symbol[(run_date, symbol)]
            for symbol in buy_symbols.get(run_date, ())
            if (run_date, symbol) in change_by_symbol
        ]
        ai_return = _average(buy_returns) or 0.0
        ai_trader *= 1 + ai_return / 100

        close = close_by_date.get(run_date)
        if close is not None and previous_close is not None and previous_close > 0:
            sp500 *= 1 + (close - previous_close) / previous_close
        else:
            market_proxy = _average(all_changes.get(run_date, [])) or 0.0
            sp500 *= 1 + market_proxy / 100

        if close is not None:
            previous_close = close

        series.append({
            'date': run_date,
            'aiTrader': round(ai_trader, 2),
            'sp500': round(sp500, 2),
        })

    return series


def load_performance_series(
    store: RecommendationStore,
    market_data,
    today: Optional[date] = None
) -> List[Dict[str, Any]]:
    """Chart series for the API; any failure yields the fallback series."""
    try:
        return build_performance_series(store, market_data, today)
    except StoreError as e:
        logger.warning(f"Performance series unavailable: {e}")
    except Exception:
        logger.exception("Unexpected error while building performance series")
    return build_fallback_series(today)
