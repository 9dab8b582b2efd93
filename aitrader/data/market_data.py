"""Market data clients: Nasdaq-100 list API and S&P 500 daily closes."""

import logging
from io import StringIO
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd
import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..config import Config, get_config

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 15
NASDAQ_100_ENDPOINT = "https://api.nasdaq.com/api/quote/list-type/nasdaq100"
SP500_CSV_URL = "https://stooq.com/q/d/l/?s=%5Espx&i=d"

NASDAQ_HEADERS = {
    "user-agent": "Mozilla/5.0 (NASDAQ 100 fetch)",
    "accept": "application/json",
}


class MarketDataError(Exception):
    """A market data request failed."""


class TimeoutSession(requests.Session):
    """Session that applies a default timeout to every request."""

    def __init__(self, timeout: float = DEFAULT_TIMEOUT):
        super().__init__()
        self._timeout = timeout

    def request(self, *args, **kwargs):
        kwargs.setdefault("timeout", self._timeout)
        return super().request(*args, **kwargs)


def build_session(retries: int = 2, timeout: float = DEFAULT_TIMEOUT, backoff: float = 0.5) -> requests.Session:
    """Create a session that retries 429/5xx responses for GET and POST."""
    retry = Retry(
        total=retries,
        read=retries,
        connect=retries,
        backoff_factor=backoff,
        status_forcelist=(429, 500, 502, 503, 504),
        allowed_methods=("GET", "POST"),
        raise_on_status=False,
    )
    session = TimeoutSession(timeout=timeout)
    adapter = HTTPAdapter(max_retries=retry)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    return session


def parse_nasdaq_rows(payload: Any) -> List[Dict[str, Any]]:
    """
    Map the Nasdaq list API payload to quote rows.

    Rows live at payload.data.data.rows; rows without a symbol are dropped.
    """
    rows = None
    if isinstance(payload, dict):
        data = payload.get('data')
        if isinstance(data, dict):
            inner = data.get('data')
            if isinstance(inner, dict):
                rows = inner.get('rows')

    if not isinstance(rows, list):
        return []

    parsed = []
    for row in rows:
        if not isinstance(row, dict) or not row.get('symbol'):
            continue
        parsed.append({
            'symbol': row['symbol'],
            'company_name': row.get('companyName'),
            'market_cap': row.get('marketCap'),
            'last_sale_price': row.get('lastSalePrice'),
            'net_change': row.get('netChange'),
            'percentage_change': row.get('percentageChange'),
            'delta_indicator': row.get('deltaIndicator'),
        })
    return parsed


def fallback_symbols(raw: Optional[str]) -> List[Dict[str, Any]]:
    """Turn a comma-separated symbol list into minimal quote rows."""
    if not raw:
        return []
    symbols = [symbol.strip() for symbol in raw.split(",")]
    return [{'symbol': symbol, 'company_name': symbol} for symbol in symbols if symbol]


def parse_sp500_csv(text: str) -> Optional[pd.DataFrame]:
    """
    Parse a stooq daily CSV (Date,Open,High,Low,Close,...) into date/close rows.

    Returns None when no valid rows remain.
    """
    if not text or not text.strip():
        return None

    df = pd.read_csv(StringIO(text.strip()), dtype=str)
    if df.empty or df.shape[1] < 5:
        return None

    closes = pd.DataFrame({
        'date': df.iloc[:, 0].fillna('').str.strip(),
        'close': pd.to_numeric(df.iloc[:, 4], errors='coerce'),
    })
    closes = closes[(closes['date'] != '') & np.isfinite(closes['close'])]
    if closes.empty:
        return None

    return closes.sort_values('date', kind='mergesort').reset_index(drop=True)


class MarketDataClient:
    """HTTP client for the market data sources used by the dashboard and the cron job."""

    def __init__(self, config: Optional[Config] = None, session: Optional[requests.Session] = None):
        self.config = config or get_config()
        self.nasdaq_endpoint = self.config.get('cron.nasdaq_endpoint', NASDAQ_100_ENDPOINT)
        self.sp500_csv_url = self.config.get('market_data.sp500_csv_url', SP500_CSV_URL)
        self.session = session or build_session(
            retries=int(self.config.get('market_data.retries', 2)),
            timeout=float(self.config.get('market_data.timeout', DEFAULT_TIMEOUT)),
        )

    def fetch_nasdaq100(self) -> List[Dict[str, Any]]:
        """
        Fetch the current Nasdaq-100 constituents with their latest quote.

        Raises:
            MarketDataError: On a network failure, a non-2xx status or a non-JSON body
        """
        try:
            response = self.session.get(self.nasdaq_endpoint, headers=NASDAQ_HEADERS)
        except requests.RequestException as e:
            raise MarketDataError(f"Nasdaq API request failed: {e}") from e

        if not response.ok:
            raise MarketDataError(f"Nasdaq API error: {response.status_code}")

        try:
            payload = response.json()
        except ValueError as e:
            raise MarketDataError(f"Nasdaq API returned invalid JSON: {e}") from e

        return parse_nasdaq_rows(payload)

    def fetch_sp500_closes(self) -> Optional[pd.DataFrame]:
        """Fetch S&P 500 daily closes sorted by date, or None when unavailable."""
        try:
            response = self.session.get(self.sp500_csv_url)
            if not response.ok:
                logger.warning(f"S&P 500 CSV request failed: {response.status_code}")
                return None
            return parse_sp500_csv(response.text)
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"S&P 500 CSV unavailable: {e}")
            return None
