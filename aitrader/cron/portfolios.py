"""Weekly paper portfolios built from 7-day average scores."""

from datetime import date, timedelta
from typing import Any, Dict, List, Tuple

PORTFOLIO_METHOD = "paper_bins_7d_avg"
MIN_BIN_SIZE = 5


def add_days(date_string: str, days: int) -> str:
    return (date.fromisoformat(date_string) + timedelta(days=days)).isoformat()


def week_start(date_string: str) -> str:
    """Monday of the week containing the given ISO date."""
    day = date.fromisoformat(date_string)
    return (day - timedelta(days=day.weekday())).isoformat()


def _initial_bins() -> List[Dict[str, Any]]:
    return [
        {'name': 'P1', 'range': 'score<=-3', 'items': []},
        {'name': 'P2', 'range': '-3<score<=0', 'items': []},
        {'name': 'P3', 'range': '0<score<=3', 'items': []},
        {'name': 'P4', 'range': 'score>3', 'items': []},
    ]


def _bin_index(score: float) -> int:
    if score <= -3:
        return 0
    if score <= 0:
        return 1
    if score <= 3:
        return 2
    return 3


def build_portfolios(items: List[Dict[str, Any]], min_size: int = MIN_BIN_SIZE) -> Tuple[List[Dict[str, Any]], List[str]]:
    """
    Split rollup items into score bins, merging undersized bins into a neighbour.

    The first bin smaller than min_size merges with its only neighbour at the
    edges, otherwise with the smaller neighbour (left on a tie). Repeats until
    every bin is big enough or one bin is left.

    Args:
        items: Dicts with stock_id, ticker and score_7d_avg

    Returns:
        (bins, merges) where merges lists merged names like "P1+P2"
    """
    bins = _initial_bins()
    for item in items:
        bins[_bin_index(item['score_7d_avg'])]['items'].append(item)

    merges = []
    while len(bins) > 1:
        small_index = next((i for i, b in enumerate(bins) if len(b['items']) < min_size), None)
        if small_index is None:
            break

        if small_index == 0:
            left_index = 0
        elif small_index == len(bins) - 1:
            left_index = small_index - 1
        else:
            left_count = len(bins[small_index - 1]['items'])
            right_count = len(bins[small_index + 1]['items'])
            left_index = small_index - 1 if left_count <= right_count else small_index

        left, right = bins[left_index], bins[left_index + 1]
        name = f"{left['name']}+{right['name']}"
        merges.append(name)
        bins[left_index:left_index + 2] = [{
            'name': name,
            'range': f"{left['range']} + {right['range']}",
            'items': left['items'] + right['items'],
        }]

    return bins, merges


def portfolio_document(week: str, bins: List[Dict[str, Any]], merges: List[str]) -> Dict[str, Any]:
    return {
        'week_start': week,
        'method': PORTFOLIO_METHOD,
        'merges': merges,
        'portfolios': [
            {
                'name': b['name'],
                'range': b['range'],
                'count': len(b['items']),
                'constituents': [
                    {
                        'stock_id': item['stock_id'],
                        'ticker': item['ticker'],
                        'score_7d_avg': item['score_7d_avg'],
                    }
                    for item in b['items']
                ],
            }
            for b in bins
        ],
    }
