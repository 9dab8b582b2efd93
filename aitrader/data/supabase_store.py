"""Supabase (managed Postgres) recommendation store."""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from supabase import create_client

from .base import RecommendationStore, StoreError, StoreUnavailableError

logger = logging.getLogger(__name__)


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _embedded(value: Any) -> Dict[str, Any]:
    """PostgREST returns an embedded row as a dict or a one-item list."""
    if isinstance(value, list):
        value = value[0] if value else None
    return value if isinstance(value, dict) else {}


def _flatten_stock(row: Dict[str, Any], key: str = "stocks") -> Dict[str, Any]:
    stock = _embedded(row.pop(key, None))
    row['symbol'] = row.get('symbol') or stock.get('symbol')
    row['company_name'] = stock.get('company_name')
    return row


class SupabaseRecommendationStore(RecommendationStore):
    """Recommendation store backed by supabase-py; the client is created on first use."""

    name = "supabase"

    def __init__(self, url: Optional[str], key: Optional[str]):
        self.url = url
        self.key = key
        self._client = None

    @property
    def client(self):
        if self._client is None:
            if not self.url or not self.key:
                raise StoreUnavailableError("Supabase URL or key is not configured.")
            try:
                self._client = create_client(self.url, self.key)
            except Exception as e:
                raise StoreUnavailableError(f"Cannot create Supabase client: {e}") from e
        return self._client

    def _table(self, name: str):
        return self.client.table(name)

    def _execute(self, query, action: str) -> List[Dict[str, Any]]:
        try:
            response = query.execute()
        except Exception as e:
            raise StoreError(f"{action}: {e}") from e
        return list(response.data or [])

    def _first(self, query, action: str) -> Optional[Dict[str, Any]]:
        rows = self._execute(query.limit(1), action)
        return rows[0] if rows else None

    # Index membership and quotes
    def get_latest_snapshot_members(self) -> Optional[List[Dict[str, Any]]]:
        snapshot = self._first(
            self._table("nasdaq100_snapshots")
            .select("id, effective_date")
            .order("effective_date", desc=True)
            .order("created_at", desc=True),
            "Load latest snapshot"
        )
        if not snapshot:
            return None

        rows = self._execute(
            self._table("nasdaq100_snapshot_stocks")
            .select("stocks(symbol, company_name)")
            .eq("snapshot_id", snapshot['id']),
            "Load snapshot members"
        )

        members = []
        for row in rows:
            stock = _embedded(row.get('stocks'))
            if stock.get('symbol'):
                members.append({'symbol': stock['symbol'], 'company_name': stock.get('company_name')})
        return members

    def get_latest_quote(self, symbol: str) -> Optional[Dict[str, Any]]:
        return self._first(
            self._table("nasdaq_100_daily_raw")
            .select("symbol, company_name, last_sale_price, net_change, percentage_change, run_date")
            .eq("symbol", symbol)
            .order("run_date", desc=True),
            f"Load quote for {symbol}"
        )

    # Dashboard reads
    def get_current_recommendations(self) -> List[Dict[str, Any]]:
        rows = self._execute(
            self._table("nasdaq100_recommendations_current")
            .select("score, latent_rank, confidence, bucket, updated_at, stocks(symbol, company_name)"),
            "Load current recommendations"
        )
        return [_flatten_stock(row) for row in rows]

    def get_default_strategy(self, active_only: bool = True) -> Optional[Dict[str, Any]]:
        query = (
            self._table("trading_strategies")
            .select(
                "id, slug, name, version, description, rebalance_frequency, "
                "rebalance_day_of_week, portfolio_size, transaction_cost_bps"
            )
            .eq("is_default", True)
        )
        if active_only:
            query = query.eq("status", "active")
        return self._first(query.order("created_at", desc=True), "Load default strategy")

    def get_latest_batch(self, strategy_id: str, run_frequency: str = "weekly") -> Optional[Dict[str, Any]]:
        return self._first(
            self._table("ai_run_batches")
            .select("id, run_date")
            .eq("strategy_id", strategy_id)
            .eq("run_frequency", run_frequency)
            .order("run_date", desc=True),
            "Load latest batch"
        )

    def get_batch_analyses(self, batch_id: str) -> List[Dict[str, Any]]:
        rows = self._execute(
            self._table("ai_analysis_runs")
            .select("stock_id, score, latent_rank, stocks(symbol, company_name)")
            .eq("batch_id", batch_id),
            "Load batch analyses"
        )
        return [_flatten_stock(row) for row in rows]

    def get_portfolio_holdings(self, strategy_id: str, run_date: str) -> List[Dict[str, Any]]:
        rows = self._execute(
            self._table("strategy_portfolio_holdings")
            .select("stock_id, symbol, rank_position, target_weight, score, latent_rank, stocks(company_name)")
            .eq("strategy_id", strategy_id)
            .eq("run_date", run_date)
            .order("rank_position"),
            "Load portfolio holdings"
        )
        return [_flatten_stock(row) for row in rows]

    def get_rebalance_actions(
        self,
        strategy_id: str,
        run_date: str,
        action_type: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        query = (
            self._table("strategy_rebalance_actions")
            .select("symbol, action_type, action_label, previous_weight, new_weight")
            .eq("strategy_id", strategy_id)
            .eq("run_date", run_date)
        )
        if action_type:
            query = query.eq("action_type", action_type)
        return self._execute(query.order("action_type").order("symbol"), "Load rebalance actions")

    def get_weekly_performance(self, strategy_id: str) -> List[Dict[str, Any]]:
        return self._execute(
            self._table("strategy_performance_weekly")
            .select(
                "run_date, net_return, ending_equity, nasdaq100_cap_weight_equity, "
                "nasdaq100_equal_weight_equity, sp500_equity"
            )
            .eq("strategy_id", strategy_id)
            .order("run_date"),
            "Load weekly performance"
        )

    def get_quintile_returns(
        self,
        strategy_id: str,
        horizon_weeks: int,
        limit: int = 100
    ) -> List[Dict[str, Any]]:
        return self._execute(
            self._table("strategy_quintile_returns")
            .select("run_date, quintile, stock_count, return_value")
            .eq("strategy_id", strategy_id)
            .eq("horizon_weeks", horizon_weeks)
            .order("run_date", desc=True)
            .order("quintile")
            .limit(limit),
            f"Load {horizon_weeks}w quintile returns"
        )

    def get_latest_regression(self, strategy_id: str, horizon_weeks: int) -> Optional[Dict[str, Any]]:
        return self._first(
            self._table("strategy_cross_sectional_regressions")
            .select("run_date, sample_size, alpha, beta, r_squared")
            .eq("strategy_id", strategy_id)
            .eq("horizon_weeks", horizon_weeks)
            .order("run_date", desc=True),
            "Load latest regression"
        )

    def get_index_batches(self, index_name: str, limit: int) -> List[Dict[str, Any]]:
        rows = self._execute(
            self._table("ai_run_batches")
            .select("id, run_date")
            .eq("index_name", index_name)
            .order("run_date", desc=True)
            .limit(limit),
            "Load index batches"
        )
        return list(reversed(rows))

    def get_batch_buckets(self, batch_ids: Iterable[str]) -> List[Dict[str, Any]]:
        batch_ids = list(batch_ids)
        if not batch_ids:
            return []
        rows = self._execute(
            self._table("ai_analysis_runs")
            .select("batch_id, bucket, stocks(symbol)")
            .in_("batch_id", batch_ids),
            "Load batch buckets"
        )
        return [_flatten_stock(row) for row in rows]

    def get_daily_changes(self, run_dates: Iterable[str]) -> List[Dict[str, Any]]:
        run_dates = list(run_dates)
        if not run_dates:
            return []
        return self._execute(
            self._table("nasdaq_100_daily_raw")
            .select("run_date, symbol, percentage_change")
            .in_("run_date", run_dates),
            "Load daily changes"
        )

    # Premium history
    def get_user_id_for_token(self, token: str) -> Optional[str]:
        try:
            response = self.client.auth.get_user(token)
        except StoreUnavailableError:
            raise
        except Exception as e:
            logger.info(f"Rejected access token: {e}")
            return None
        user = getattr(response, 'user', None)
        return getattr(user, 'id', None)

    def is_premium_user(self, user_id: str) -> bool:
        row = self._first(
            self._table("user_profiles").select("is_premium").eq("id", user_id),
            "Load user profile"
        )
        return bool(row and row.get('is_premium'))

    def get_stock_id(self, symbol: str) -> Optional[str]:
        row = self._first(self._table("stocks").select("id").eq("symbol", symbol), f"Load stock {symbol}")
        return row['id'] if row else None

    def get_analysis_history(self, stock_id: str, limit: int = 30) -> List[Dict[str, Any]]:
        rows = self._execute(
            self._table("ai_analysis_runs")
            .select(
                "score, confidence, bucket, reason_1s, risks, bucket_change_explanation, "
                "created_at, ai_run_batches(run_date)"
            )
            .eq("stock_id", stock_id)
            .order("created_at")
            .limit(limit),
            "Load analysis history"
        )
        for row in rows:
            row['run_date'] = _embedded(row.pop('ai_run_batches', None)).get('run_date')
        return rows

    # Newsletter
    def upsert_newsletter_subscriber(self, email: str, source: str, status: str) -> None:
        self._execute(
            self._table("newsletter_subscribers")
            .upsert({'email': email, 'source': source, 'status': status}, on_conflict="email"),
            "Save newsletter subscriber"
        )

    # Daily rating job
    def upsert_prompt(self, name: str, version: str, template: str) -> str:
        rows = self._execute(
            self._table("prompts").upsert(
                {'name': name, 'version': version, 'template': template, 'updated_at': _utc_now()},
                on_conflict="name,version"
            ),
            "Upsert prompt"
        )
        if not rows:
            raise StoreError(f"Prompt {name}/{version} missing after upsert")
        return rows[0]['id']

    def upsert_universe_run(self, run_date: str, universe: str, prompt_id: str, model: str) -> str:
        rows = self._execute(
            self._table("universe_runs").upsert(
                {'run_date': run_date, 'universe': universe, 'prompt_id': prompt_id, 'model': model},
                on_conflict="run_date,universe"
            ),
            "Upsert universe run"
        )
        if not rows:
            raise StoreError(f"Universe run {run_date}/{universe} missing after upsert")
        return rows[0]['id']

    def get_latest_nasdaq_daily(self) -> List[Dict[str, Any]]:
        latest = self._first(
            self._table("nasdaq_100_daily_raw").select("run_date").order("run_date", desc=True),
            "Load latest Nasdaq snapshot date"
        )
        if not latest:
            return []
        return self._execute(
            self._table("nasdaq_100_daily_raw")
            .select(
                "symbol, company_name, market_cap, last_sale_price, net_change, "
                "percentage_change, delta_indicator"
            )
            .eq("run_date", latest['run_date'])
            .order("symbol"),
            "Load latest Nasdaq snapshot"
        )

    def save_nasdaq_daily(self, rows: List[Dict[str, Any]]) -> None:
        if rows:
            self._execute(
                self._table("nasdaq_100_daily_raw").upsert(rows, on_conflict="run_date,symbol"),
                "Save Nasdaq daily rows"
            )

    def upsert_universe_stocks(self, rows: List[Dict[str, Any]]) -> None:
        if rows:
            self._execute(
                self._table("nasdaq100_stocks").upsert(rows, on_conflict="ticker"),
                "Upsert universe stocks"
            )

    def list_universe_stocks(self) -> List[Dict[str, Any]]:
        return self._execute(
            self._table("nasdaq100_stocks").select("id, ticker, company_name").order("ticker"),
            "List universe stocks"
        )

    def add_run_members(self, run_id: str, stock_ids: List[str]) -> None:
        if stock_ids:
            self._execute(
                self._table("universe_run_stocks").upsert(
                    [{'run_id': run_id, 'stock_id': stock_id} for stock_id in stock_ids],
                    on_conflict="run_id,stock_id",
                    ignore_duplicates=True
                ),
                "Save run membership"
            )

    def get_daily_ratings(self, date: str) -> List[Dict[str, Any]]:
        return self._execute(
            self._table("stock_daily_ratings").select("stock_id, score").eq("date", date),
            f"Load ratings for {date}"
        )

    def save_daily_rating(self, row: Dict[str, Any]) -> None:
        self._execute(
            self._table("stock_daily_ratings").upsert(row, on_conflict="stock_id,date"),
            "Save daily rating"
        )

    def get_scores_between(self, stock_id: str, start: str, end: str) -> List[float]:
        rows = self._execute(
            self._table("stock_daily_ratings")
            .select("score")
            .eq("stock_id", stock_id)
            .gte("date", start)
            .lte("date", end),
            "Load rating window"
        )
        return [row['score'] for row in rows if row.get('score') is not None]

    def save_score_rollup(self, row: Dict[str, Any]) -> None:
        self._execute(
            self._table("stock_score_rollups").upsert(row, on_conflict="stock_id,date"),
            "Save score rollup"
        )

    def get_score_rollups(self, date: str) -> List[Dict[str, Any]]:
        return self._execute(
            self._table("stock_score_rollups").select("stock_id, score_7d_avg").eq("date", date),
            f"Load rollups for {date}"
        )

    def save_weekly_portfolio(self, week_start: str, method: str, portfolio_json: Dict[str, Any]) -> None:
        self._execute(
            self._table("weekly_portfolios").upsert(
                {
                    'week_start': week_start,
                    'method': method,
                    'portfolio_json': portfolio_json,
                    'created_at': _utc_now(),
                },
                on_conflict="week_start"
            ),
            "Save weekly portfolio"
        )
