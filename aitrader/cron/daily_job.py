"""Daily Nasdaq-100 rating job: universe refresh, AI ratings, rollups and weekly bins."""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .portfolios import PORTFOLIO_METHOD, add_days, build_portfolios, portfolio_document, week_start
from .prompt import PROMPT_NAME, PROMPT_VERSION, STOCK_RATING_PROMPT_TEMPLATE
from .rating import RatingError, bucket_from_score, clamp_confidence, clamp_score, fallback_rating
from ..data.base import RecommendationStore, StoreError
from ..data.market_data import MarketDataError, fallback_symbols

logger = logging.getLogger(__name__)

UNIVERSE = "nasdaq100"
ROLLUP_WINDOW_DAYS = 7


class CronJobError(Exception):
    """A step the job cannot continue without failed."""


def utc_today() -> str:
    return datetime.now(timezone.utc).date().isoformat()


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class DailyRatingJob:
    """Rate every Nasdaq-100 stock for one day and refresh the weekly paper portfolio."""

    def __init__(
        self,
        store: RecommendationStore,
        rater,
        market_data,
        notifier,
        concurrency: int = 4,
        fallback_symbols: Optional[str] = None,
        model: str = "gpt-5"
    ):
        """
        Args:
            store: Recommendation store
            rater: Object with rate(stock, run_date, previous) -> rating dict
            market_data: Object with fetch_nasdaq100() -> quote rows
            notifier: Object with notify(subject, error, context=None)
            concurrency: Number of parallel rating workers
            fallback_symbols: Comma-separated symbols used when no universe is available
            model: Model name recorded on the run
        """
        self.store = store
        self.rater = rater
        self.market_data = market_data
        self.notifier = notifier
        self.concurrency = max(1, int(concurrency))
        self.fallback_symbols = fallback_symbols
        self.model = model

    def _fail(self, subject: str, error: Any) -> CronJobError:
        self.notifier.notify(subject, error)
        return CronJobError(str(error) or subject)

    def _load_universe_rows(self) -> List[Dict[str, Any]]:
        """Nasdaq API first, then the latest stored snapshot, then configured fallback symbols."""
        rows = []
        try:
            rows = self.market_data.fetch_nasdaq100()
            if not rows:
                raise MarketDataError("Nasdaq API returned empty rows")
        except MarketDataError as e:
            self.notifier.notify("Nasdaq API fetch failed", e)
            try:
                rows = self.store.get_latest_nasdaq_daily()
            except StoreError as store_error:
                logger.warning(f"Stored Nasdaq snapshot unavailable: {store_error}")
                rows = []

        if not rows:
            rows = fallback_symbols(self.fallback_symbols)
        return rows

    def _save_universe(self, run_date: str, rows: List[Dict[str, Any]]) -> None:
        updated_at = _utc_now()
        daily_rows = [
            {
                'run_date': run_date,
                'symbol': row['symbol'],
                'company_name': row.get('company_name') or None,
                'market_cap': row.get('market_cap') or None,
                'last_sale_price': row.get('last_sale_price') or None,
                'net_change': row.get('net_change') or None,
                'percentage_change': row.get('percentage_change') or None,
                'delta_indicator': row.get('delta_indicator') or None,
                'updated_at': updated_at,
            }
            for row in rows
        ]
        try:
            self.store.save_nasdaq_daily(daily_rows)
        except StoreError as e:
            self.notifier.notify("Failed to store Nasdaq 100 daily snapshot", e)

        stock_rows = [
            {
                'ticker': row['symbol'],
                'company_name': row.get('company_name') or row['symbol'],
                'updated_at': updated_at,
            }
            for row in rows
        ]
        try:
            self.store.upsert_universe_stocks(stock_rows)
        except StoreError as e:
            raise self._fail("Nasdaq 100 stock upsert failed", e) from e

    def _load_previous(self, date: str) -> Dict[str, Dict[str, Any]]:
        try:
            rows = self.store.get_daily_ratings(date)
        except StoreError as e:
            logger.warning(f"Previous ratings for {date} unavailable: {e}")
            return {}
        return {
            row['stock_id']: {'score': row['score'], 'bucket': bucket_from_score(row['score'])}
            for row in rows
            if row.get('score') is not None
        }

    def rate_stock(
        self,
        stock: Dict[str, Any],
        run_id: str,
        run_date: str,
        previous: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Rate, store and roll up one stock; returns its result entry."""
        ticker = stock['ticker']
        try:
            rating = self.rater.rate(stock, run_date, previous)
        except RatingError as e:
            self.notifier.notify("OpenAI stock rating failed", e, f"Ticker: {ticker}")
            rating = fallback_rating(ticker, run_date, previous.get('bucket'), str(e))

        parsed = rating['parsed']
        score = clamp_score(parsed.get('score'))
        confidence = clamp_confidence(parsed.get('confidence'))
        bucket = bucket_from_score(score)

        try:
            self.store.save_daily_rating({
                'run_id': run_id,
                'stock_id': stock['id'],
                'date': run_date,
                'score': score,
                'confidence': confidence,
                'reason_1s': parsed.get('reason_1s') or None,
                'risks': parsed.get('risks') or [],
                'bucket': bucket,
                'citations': rating.get('citations') or [],
                'sources': rating.get('sources') or [],
                'raw_response': rating.get('raw'),
            })
        except StoreError as e:
            self.notifier.notify("Daily rating upsert failed", e, f"Ticker: {ticker}")
            return {'ticker': ticker, 'status': 'failed', 'error': str(e)}

        window_start = add_days(run_date, -(ROLLUP_WINDOW_DAYS - 1))
        try:
            scores = self.store.get_scores_between(stock['id'], window_start, run_date)
        except StoreError as e:
            logger.warning(f"Rating window for {ticker} unavailable: {e}")
            scores = []

        if scores:
            average = round(sum(scores) / len(scores), 4)
            try:
                self.store.save_score_rollup({
                    'stock_id': stock['id'],
                    'date': run_date,
                    'score_7d_avg': average,
                    'bucket_7d': bucket_from_score(average),
                    'window_start': window_start,
                    'window_end': run_date,
                    'sample_size': len(scores),
                })
            except StoreError as e:
                self.notifier.notify("Score rollup upsert failed", e, f"Ticker: {ticker}")
                return {'ticker': ticker, 'status': 'failed', 'error': str(e)}

        return {'ticker': ticker, 'status': 'ok', 'score': score, 'bucket': bucket}

    def _rate_all(
        self,
        stocks: List[Dict[str, Any]],
        run_id: str,
        run_date: str,
        previous_by_stock: Dict[str, Dict[str, Any]]
    ) -> List[Dict[str, Any]]:
        results: Dict[str, Dict[str, Any]] = {}
        with ThreadPoolExecutor(max_workers=self.concurrency) as executor:
            futures = {}
            for stock in stocks:
                previous = previous_by_stock.get(stock['id'], {'score': None, 'bucket': None})
                futures[executor.submit(self.rate_stock, stock, run_id, run_date, previous)] = stock
            for future in as_completed(futures):
                stock = futures[future]
                try:
                    results[stock['id']] = future.result()
                except Exception as e:
                    logger.exception(f"Rating worker for {stock['ticker']} crashed")
                    self.notifier.notify("Stock rating worker failed", e, f"Ticker: {stock['ticker']}")
                    results[stock['id']] = {'ticker': stock['ticker'], 'status': 'failed', 'error': str(e)}

        return [results[stock['id']] for stock in stocks]

    def _rollup_items(self, run_date: str, stocks: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        try:
            rollups = self.store.get_score_rollups(run_date)
        except StoreError as e:
            logger.warning(f"Rollups for {run_date} unavailable: {e}")
            rollups = []

        tickers = {stock['id']: stock['ticker'] for stock in stocks}
        return [
            {
                'stock_id': row['stock_id'],
                'ticker': tickers.get(row['stock_id'], 'N/A'),
                'score_7d_avg': row['score_7d_avg'],
            }
            for row in rollups
            if row.get('score_7d_avg') is not None
        ]

    def run(self, run_date: Optional[str] = None) -> Dict[str, Any]:
        """
        Run the job for a date (default: today in UTC).

        Returns:
            {"runDate", "total", "weekStart", "results"}

        Raises:
            CronJobError: If a required step fails
        """
        run_date = run_date or utc_today()
        logger.info(f"Starting daily rating run for {run_date}")

        try:
            prompt_id = self.store.upsert_prompt(PROMPT_NAME, PROMPT_VERSION, STOCK_RATING_PROMPT_TEMPLATE)
        except StoreError as e:
            raise self._fail("Prompt upsert failed", e) from e

        try:
            run_id = self.store.upsert_universe_run(run_date, UNIVERSE, prompt_id, self.model)
        except StoreError as e:
            raise self._fail("Run upsert failed", e) from e

        rows = self._load_universe_rows()
        if rows:
            self._save_universe(run_date, rows)
        else:
            self.notifier.notify("No Nasdaq 100 symbols available", "All fallbacks failed.")

        try:
            stocks = self.store.list_universe_stocks()
        except StoreError as e:
            raise self._fail("Nasdaq 100 stock fetch failed", e) from e
        if not stocks:
            raise CronJobError("No Nasdaq-100 stocks available")

        try:
            self.store.add_run_members(run_id, [stock['id'] for stock in stocks])
        except StoreError as e:
            raise self._fail("Universe membership upsert failed", e) from e

        previous_by_stock = self._load_previous(add_days(run_date, -1))
        results = self._rate_all(stocks, run_id, run_date, previous_by_stock)
        failed = sum(1 for result in results if result['status'] != 'ok')
        logger.info(f"Rated {len(results)} stocks for {run_date} ({failed} failed)")

        bins, merges = build_portfolios(self._rollup_items(run_date, stocks))
        week = week_start(run_date)
        try:
            self.store.save_weekly_portfolio(week, PORTFOLIO_METHOD, portfolio_document(week, bins, merges))
        except StoreError as e:
            raise self._fail("Weekly portfolio upsert failed", e) from e

        return {
            'runDate': run_date,
            'total': len(results),
            'weekStart': week,
            'results': results,
        }
