import pytest

from aitrader.data.market_data import (
    MarketDataClient,
    MarketDataError,
    fallback_symbols,
    parse_nasdaq_rows,
    parse_sp500_csv,
)
from helpers import CONNECTION_ERROR, FakeResponse, FakeSession

NASDAQ_PAYLOAD = {
    'data': {
        'data': {
            'rows': [
                {
                    'symbol': 'AAPL',
                    'companyName': 'Apple Inc. Common Stock',
                    'marketCap': '3,450,000,000,000',
                    'lastSalePrice': '$230.10',
                    'netChange': '3.40',
                    'percentageChange': '1.50%',
                    'deltaIndicator': 'up',
                },
                {'companyName': 'No symbol'},
                {'symbol': 'MSFT', 'companyName': 'Microsoft Corporation'},
            ]
        }
    }
}

SP500_CSV = """Date,Open,High,Low,Close,Volume
2026-02-03,6010,6050,6000,6040.5,100
2026-01-30,5950,5990,5940,5980,100
2026-02-02,5980,6010,5970,n/a,100
,1,1,1,1,1
"""


def test_parse_nasdaq_rows_maps_fields_and_drops_symbolless_rows():
    rows = parse_nasdaq_rows(NASDAQ_PAYLOAD)

    assert [row['symbol'] for row in rows] == ['AAPL', 'MSFT']
    assert rows[0]['company_name'] == 'Apple Inc. Common Stock'
    assert rows[0]['percentage_change'] == '1.50%'
    assert rows[1]['market_cap'] is None


@pytest.mark.parametrize('payload', [None, {}, {'data': None}, {'data': {'data': {'rows': 'x'}}}])
def test_parse_nasdaq_rows_tolerates_missing_rows(payload):
    assert parse_nasdaq_rows(payload) == []


def test_fallback_symbols():
    assert fallback_symbols(' AAPL, ,MSFT ') == [
        {'symbol': 'AAPL', 'company_name': 'AAPL'},
        {'symbol': 'MSFT', 'company_name': 'MSFT'},
    ]
    assert fallback_symbols(None) == []


def test_parse_sp500_csv_drops_invalid_rows_and_sorts():
    closes = parse_sp500_csv(SP500_CSV)

    assert list(closes['date']) == ['2026-01-30', '2026-02-03']
    assert list(closes['close']) == [5980.0, 6040.5]


@pytest.mark.parametrize('text', ['', '   ', 'Date,Close\n2026-01-30,1\n', 'Date,Open,High,Low,Close\n'])
def test_parse_sp500_csv_returns_none_without_usable_rows(text):
    assert parse_sp500_csv(text) is None


def test_fetch_nasdaq100(config):
    session = FakeSession(FakeResponse(200, NASDAQ_PAYLOAD))
    client = MarketDataClient(config, session=session)

    rows = client.fetch_nasdaq100()

    assert [row['symbol'] for row in rows] == ['AAPL', 'MSFT']
    method, url, kwargs = session.calls[0]
    assert url.endswith('/nasdaq100')
    assert kwargs['headers']['accept'] == 'application/json'


@pytest.mark.parametrize('response, message', [
    (FakeResponse(503, text='down'), 'Nasdaq API error: 503'),
    (FakeResponse(200, None), 'invalid JSON'),
    (CONNECTION_ERROR, 'request failed'),
])
def test_fetch_nasdaq100_failures(config, response, message):
    client = MarketDataClient(config, session=FakeSession(response))

    with pytest.raises(MarketDataError, match=message):
        client.fetch_nasdaq100()


def test_fetch_sp500_closes(config):
    client = MarketDataClient(config, session=FakeSession(FakeResponse(200, text=SP500_CSV)))
    closes = client.fetch_sp500_closes()
    assert len(closes) == 2


@pytest.mark.parametrize('response', [FakeResponse(404, text='nope'), CONNECTION_ERROR])
def test_fetch_sp500_closes_returns_none_on_failure(config, response):
    client = MarketDataClient(config, session=FakeSession(response))
    assert client.fetch_sp500_closes() is None
