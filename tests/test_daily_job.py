import pytest

from aitrader.cron import CronJobError, DailyRatingJob
from aitrader.cron.prompt import PROMPT_NAME, PROMPT_VERSION
from aitrader.data.base import StoreError
from helpers import FakeMarketData, FakeNotifier, FakeRater, nasdaq_row

RUN_DATE = '2026-02-04'


def make_job(store, market_data=None, rater=None, notifier=None, **kwargs):
    return DailyRatingJob(
        store=store,
        rater=rater or FakeRater(),
        market_data=market_data or FakeMarketData(rows=[nasdaq_row('AAPL'), nasdaq_row('MSFT')]),
        notifier=notifier or FakeNotifier(),
        concurrency=2,
        model='gpt-test',
        **kwargs
    )


def test_run_rates_every_stock_and_saves_the_portfolio(store):
    rater = FakeRater(scores={'AAPL': 4, 'MSFT': -3})
    result = make_job(store, rater=rater).run(RUN_DATE)

    assert result['runDate'] == RUN_DATE
    assert result['weekStart'] == '2026-02-02'
    assert result['total'] == 2
    assert result['results'] == [
        {'ticker': 'AAPL', 'status': 'ok', 'score': 4, 'bucket': 'buy'},
        {'ticker': 'MSFT', 'status': 'ok', 'score': -3, 'bucket': 'sell'},
    ]

    assert [row['symbol'] for row in store.get_latest_nasdaq_daily()] == ['AAPL', 'MSFT']
    prompt = store._fetch_one("SELECT name, version FROM prompts")
    assert prompt == {'name': PROMPT_NAME, 'version': PROMPT_VERSION}

    ratings = store._fetch_all("SELECT stock_id, score, bucket, risks FROM stock_daily_ratings ORDER BY score")
    assert [row['bucket'] for row in ratings] == ['sell', 'buy']
    assert ratings[0]['risks'] == '["Macro"]'

    portfolio = store.get_weekly_portfolio('2026-02-02')['portfolio_json']
    assert portfolio['method'] == 'paper_bins_7d_avg'
    assert portfolio['merges'] == ['P1+P2', 'P1+P2+P3', 'P1+P2+P3+P4']
    tickers = sorted(item['ticker'] for item in portfolio['portfolios'][0]['constituents'])
    assert tickers == ['AAPL', 'MSFT']


def test_previous_day_rating_is_passed_to_the_rater(store):
    rater = FakeRater(scores={'AAPL': 3, 'MSFT': 0})
    make_job(store, rater=rater).run('2026-02-03')
    make_job(store, rater=rater).run(RUN_DATE)

    previous = {ticker: prev for ticker, date, prev in rater.calls if date == RUN_DATE}
    assert previous['AAPL'] == {'score': 3, 'bucket': 'buy'}
    assert previous['MSFT'] == {'score': 0, 'bucket': 'hold'}


def test_rollup_averages_the_last_seven_days(store):
    make_job(store, rater=FakeRater(scores={'AAPL': 5})).run('2026-01-28')
    make_job(store, rater=FakeRater(scores={'AAPL': 4})).run('2026-01-29')
    make_job(store, rater=FakeRater(scores={'AAPL': 1})).run(RUN_DATE)

    rollup = store._fetch_one("""
        SELECT r.score_7d_avg, r.bucket_7d, r.window_start, r.window_end, r.sample_size
        FROM stock_score_rollups r JOIN nasdaq100_stocks s ON s.id = r.stock_id
        WHERE s.ticker = 'AAPL' AND r.date = ?
    """, (RUN_DATE,))
    assert rollup == {
        'score_7d_avg': 2.5,
        'bucket_7d': 'buy',
        'window_start': '2026-01-29',
        'window_end': RUN_DATE,
        'sample_size': 2,
    }


def test_rating_failure_stores_neutral_fallback(store):
    notifier = FakeNotifier()
    rater = FakeRater(scores={'AAPL': 4}, failures={'MSFT'})
    result = make_job(store, rater=rater, notifier=notifier).run(RUN_DATE)

    assert result['results'][1] == {'ticker': 'MSFT', 'status': 'ok', 'score': 0, 'bucket': 'hold'}
    assert ('OpenAI stock rating failed', 'model unavailable for MSFT', 'Ticker: MSFT') in notifier.calls

    row = store._fetch_one("""
        SELECT d.confidence, d.reason_1s, d.raw_response
        FROM stock_daily_ratings d JOIN nasdaq100_stocks s ON s.id = d.stock_id
        WHERE s.ticker = 'MSFT'
    """)
    assert row['confidence'] == 0
    assert row['reason_1s'] == 'Model evaluation unavailable due to an error.'
    assert 'model unavailable for MSFT' in row['raw_response']


def test_nasdaq_failure_falls_back_to_stored_snapshot(seeded_store):
    notifier = FakeNotifier()
    market_data = FakeMarketData(error='Nasdaq API error: 503')
    result = make_job(seeded_store, market_data=market_data, notifier=notifier).run(RUN_DATE)

    assert notifier.subjects[0] == 'Nasdaq API fetch failed'
    assert [r['ticker'] for r in result['results']] == ['AAPL', 'MSFT', 'NVDA']


def test_nasdaq_failure_falls_back_to_configured_symbols(store):
    notifier = FakeNotifier()
    job = make_job(store, market_data=FakeMarketData(rows=[]), notifier=notifier, fallback_symbols='TSLA, AMZN')

    result = job.run(RUN_DATE)

    assert [r['ticker'] for r in result['results']] == ['AMZN', 'TSLA']
    assert store.list_universe_stocks()[0]['company_name'] == 'AMZN'


def test_no_universe_at_all_raises(store):
    notifier = FakeNotifier()
    job = make_job(store, market_data=FakeMarketData(error='down'), notifier=notifier)

    with pytest.raises(CronJobError, match='No Nasdaq-100 stocks available'):
        job.run(RUN_DATE)
    assert 'No Nasdaq 100 symbols available' in notifier.subjects


def test_fatal_store_failure_notifies_and_raises(store, monkeypatch):
    notifier = FakeNotifier()

    def broken_upsert(*args):
        raise StoreError('disk full')

    monkeypatch.setattr(store, 'upsert_prompt', broken_upsert)

    with pytest.raises(CronJobError, match='disk full'):
        make_job(store, notifier=notifier).run(RUN_DATE)
    assert notifier.calls == [('Prompt upsert failed', 'disk full', None)]


def test_daily_snapshot_failure_is_not_fatal(store, monkeypatch):
    notifier = FakeNotifier()

    def broken_save(rows):
        raise StoreError('constraint failed')

    monkeypatch.setattr(store, 'save_nasdaq_daily', broken_save)

    result = make_job(store, notifier=notifier).run(RUN_DATE)

    assert result['total'] == 2
    assert notifier.subjects == ['Failed to store Nasdaq 100 daily snapshot']


def test_rating_upsert_failure_marks_the_stock_failed(store, monkeypatch):
    notifier = FakeNotifier()
    original = store.save_daily_rating

    def flaky_save(row):
        if row['score'] == -1:
            raise StoreError('write failed')
        original(row)

    monkeypatch.setattr(store, 'save_daily_rating', flaky_save)

    result = make_job(store, rater=FakeRater(scores={'AAPL': 2, 'MSFT': -1}), notifier=notifier).run(RUN_DATE)

    assert result['results'][0]['status'] == 'ok'
    assert result['results'][1] == {'ticker': 'MSFT', 'status': 'failed', 'error': 'write failed'}
    assert ('Daily rating upsert failed', 'write failed', 'Ticker: MSFT') in notifier.calls
