"""Strategy performance metrics over weekly equity series."""

from datetime import date
from typing import Dict, List, Optional, Sequence

import numpy as np
import pandas as pd

DAYS_PER_YEAR = 365.25
WEEKS_PER_YEAR = 52


def compute_total_return(start_value: float, end_value: float) -> Optional[float]:
    if start_value <= 0:
        return None
    return end_value / start_value - 1


def compute_cagr(start_value: float, end_value: float, start_date: str, end_date: str) -> Optional[float]:
    """
    Compound annual growth rate between two ISO dates.

    Returns None for non-positive values, identical or reversed dates.
    """
    if start_value <= 0 or end_value <= 0 or start_date == end_date:
        return None

    try:
        days = (date.fromisoformat(end_date[:10]) - date.fromisoformat(start_date[:10])).days
    except ValueError:
        return None
    if days <= 0:
        return None

    years = days / DAYS_PER_YEAR
    return (end_value / start_value) ** (1 / years) - 1


def compute_max_drawdown(values: Sequence[float]) -> Optional[float]:
    """Most negative drop from a running peak (0 when the series never falls)."""
    if not len(values):
        return None

    series = pd.Series(values, dtype=float)
    peak = series.cummax()
    drawdown = ((series - peak) / peak).where(peak > 0, 0.0)
    return float(min(0.0, drawdown.min()))


def compute_sharpe_weekly(returns: Sequence[float]) -> Optional[float]:
    """Annualised Sharpe ratio of weekly returns (sample stdev, zero risk-free rate)."""
    if len(returns) < 2:
        return None

    series = pd.Series(returns, dtype=float)
    std = series.std(ddof=1)
    if not np.isfinite(std) or std <= 0:
        return None

    return float(series.mean() / std * np.sqrt(WEEKS_PER_YEAR))


def compute_pct_months_beating(points: List[Dict[str, float]]) -> Optional[float]:
    """
    Share of month-over-month periods where the strategy beat the benchmark.

    Args:
        points: Dicts with date, ai_value and benchmark_value

    Returns:
        Fraction in [0, 1], or None without at least one valid period
    """
    if len(points) < 2:
        return None

    df = pd.DataFrame(points, columns=['date', 'ai_value', 'benchmark_value'])
    df['month'] = df['date'].str.slice(0, 7)
    month_ends = (
        df.drop_duplicates('month', keep='last')
        .sort_values('date', kind='mergesort')
        .reset_index(drop=True)
    )
    if len(month_ends) < 2:
        return None

    beats = 0
    total = 0
    for index in range(1, len(month_ends)):
        previous = month_ends.iloc[index - 1]
        current = month_ends.iloc[index]

        if previous['ai_value'] <= 0 or previous['benchmark_value'] <= 0:
            continue

        ai_return = current['ai_value'] / previous['ai_value'] - 1
        benchmark_return = current['benchmark_value'] / previous['benchmark_value'] - 1
        if not (np.isfinite(ai_return) and np.isfinite(benchmark_return)):
            continue

        total += 1
        if ai_return > benchmark_return:
            beats += 1

    if total == 0:
        return None
    return beats / total
