"""In-test stand-ins for the network clients."""

import pandas as pd
import requests

from aitrader.cron.rating import RatingError
from aitrader.data.market_data import MarketDataError


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    @property
    def ok(self):
        return 200 <= self.status_code < 300

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON body")
        return self._payload


class FakeSession:
    """Returns queued responses (or raises queued exceptions) and records calls."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def _next(self, method, url, kwargs):
        self.calls.append((method, url, kwargs))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def get(self, url, **kwargs):
        return self._next("GET", url, kwargs)

    def post(self, url, **kwargs):
        return self._next("POST", url, kwargs)


class FakeMarketData:
    def __init__(self, rows=None, error=None, closes=None):
        self.rows = rows or []
        self.error = error
        self.closes = closes
        self.nasdaq_calls = 0

    def fetch_nasdaq100(self):
        self.nasdaq_calls += 1
        if self.error:
            raise MarketDataError(self.error)
        return list(self.rows)

    def fetch_sp500_closes(self):
        if self.closes is None:
            return None
        return pd.DataFrame(self.closes, columns=["date", "close"])


class FakeRater:
    """Scores by ticker; tickers in `failures` raise RatingError."""

    def __init__(self, scores=None, failures=(), default_score=0):
        self.scores = scores or {}
        self.failures = set(failures)
        self.default_score = default_score
        self.calls = []

    def rate(self, stock, run_date, previous=None):
        self.calls.append((stock["ticker"], run_date, previous))
        if stock["ticker"] in self.failures:
            raise RatingError(f"model unavailable for {stock['ticker']}")
        return {
            "parsed": {
                "ticker": stock["ticker"],
                "date": run_date,
                "score": self.scores.get(stock["ticker"], self.default_score),
                "confidence": 0.7,
                "reason_1s": f"{stock['ticker']} looks fine.",
                "risks": ["Macro"],
            },
            "sources": [{"url": "https://example.com/a", "title": "A"}],
            "citations": [{"url": "https://example.com/a", "title": "A"}],
            "raw": {"id": f"resp-{stock['ticker']}"},
        }


class FakeNotifier:
    def __init__(self):
        self.calls = []

    def notify(self, subject, error, context=None):
        self.calls.append((subject, str(error), context))
        return False

    @property
    def subjects(self):
        return [call[0] for call in self.calls]


def nasdaq_row(symbol, company_name=None, change="1.00%"):
    return {
        "symbol": symbol,
        "company_name": company_name or f"{symbol} Inc.",
        "market_cap": "1,000,000",
        "last_sale_price": "$100.00",
        "net_change": "1.00",
        "percentage_change": change,
        "delta_indicator": "up",
    }


CONNECTION_ERROR = requests.ConnectionError("connection reset")
