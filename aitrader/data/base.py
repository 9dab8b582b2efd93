"""Base classes and interfaces for the recommendation store."""

from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional


class StoreError(Exception):
    """A query against the recommendation store failed."""


class StoreUnavailableError(StoreError):
    """The store is not configured or cannot be reached."""


class DataProvider(ABC):
    """Base class for all data providers."""

    @abstractmethod
    def health_check(self) -> bool:
        """Check if the provider is accessible."""
        pass


class RecommendationStore(DataProvider):
    """
    Abstract interface over the relational backend.

    Rows are returned as plain dicts keyed by column name. Joined stock
    columns are flattened into `symbol` / `company_name`.
    """

    name = "base"

    # Index membership and quotes
    @abstractmethod
    def get_latest_snapshot_members(self) -> Optional[List[Dict[str, Any]]]:
        """
        Get members of the most recent index snapshot.

        Returns:
            None when no snapshot exists, else a list of {symbol, company_name}
        """
        pass

    @abstractmethod
    def get_latest_quote(self, symbol: str) -> Optional[Dict[str, Any]]:
        """Get the newest daily quote row for a symbol."""
        pass

    # Dashboard reads
    @abstractmethod
    def get_current_recommendations(self) -> List[Dict[str, Any]]:
        """
        Get current daily recommendation rows.

        Returns:
            Rows with score, latent_rank, confidence, bucket, updated_at, symbol, company_name
        """
        pass

    @abstractmethod
    def get_default_strategy(self, active_only: bool = True) -> Optional[Dict[str, Any]]:
        """Get the newest default trading strategy."""
        pass

    @abstractmethod
    def get_latest_batch(self, strategy_id: str, run_frequency: str = "weekly") -> Optional[Dict[str, Any]]:
        """Get the newest AI run batch (id, run_date) for a strategy."""
        pass

    @abstractmethod
    def get_batch_analyses(self, batch_id: str) -> List[Dict[str, Any]]:
        """Get analysis rows (stock_id, score, latent_rank, symbol, company_name) of a batch."""
        pass

    @abstractmethod
    def get_portfolio_holdings(self, strategy_id: str, run_date: str) -> List[Dict[str, Any]]:
        """Get strategy holdings on a run date, ordered by rank."""
        pass

    @abstractmethod
    def get_rebalance_actions(
        self,
        strategy_id: str,
        run_date: str,
        action_type: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """Get rebalance actions on a run date, ordered by action type then symbol."""
        pass

    @abstractmethod
    def get_weekly_performance(self, strategy_id: str) -> List[Dict[str, Any]]:
        """Get weekly performance rows in ascending run_date order."""
        pass

    @abstractmethod
    def get_quintile_returns(
        self,
        strategy_id: str,
        horizon_weeks: int,
        limit: int = 100
    ) -> List[Dict[str, Any]]:
        """Get quintile returns, newest run_date first, quintile ascending."""
        pass

    @abstractmethod
    def get_latest_regression(self, strategy_id: str, horizon_weeks: int) -> Optional[Dict[str, Any]]:
        """Get the newest cross-sectional regression row."""
        pass

    @abstractmethod
    def get_index_batches(self, index_name: str, limit: int) -> List[Dict[str, Any]]:
        """Get the most recent `limit` batches of an index, oldest first."""
        pass

    @abstractmethod
    def get_batch_buckets(self, batch_ids: Iterable[str]) -> List[Dict[str, Any]]:
        """Get (batch_id, bucket, symbol) for all analyses of the given batches."""
        pass

    @abstractmethod
    def get_daily_changes(self, run_dates: Iterable[str]) -> List[Dict[str, Any]]:
        """Get (run_date, symbol, percentage_change) quote rows for the given dates."""
        pass

    # Premium history
    @abstractmethod
    def get_user_id_for_token(self, token: str) -> Optional[str]:
        """Resolve a bearer token to a user id."""
        pass

    @abstractmethod
    def is_premium_user(self, user_id: str) -> bool:
        pass

    @abstractmethod
    def get_stock_id(self, symbol: str) -> Optional[str]:
        pass

    @abstractmethod
    def get_analysis_history(self, stock_id: str, limit: int = 30) -> List[Dict[str, Any]]:
        """Get analysis rows for a stock in creation order, with the batch run_date."""
        pass

    # Newsletter
    @abstractmethod
    def upsert_newsletter_subscriber(self, email: str, source: str, status: str) -> None:
        pass

    # Daily rating job
    @abstractmethod
    def upsert_prompt(self, name: str, version: str, template: str) -> str:
        """Upsert a prompt on (name, version) and return its id."""
        pass

    @abstractmethod
    def upsert_universe_run(self, run_date: str, universe: str, prompt_id: str, model: str) -> str:
        """Upsert a universe run on (run_date, universe) and return its id."""
        pass

    @abstractmethod
    def get_latest_nasdaq_daily(self) -> List[Dict[str, Any]]:
        """Get all quote rows of the most recent stored run date."""
        pass

    @abstractmethod
    def save_nasdaq_daily(self, rows: List[Dict[str, Any]]) -> None:
        """Upsert daily quote rows on (run_date, symbol)."""
        pass

    @abstractmethod
    def upsert_universe_stocks(self, rows: List[Dict[str, Any]]) -> None:
        """Upsert (ticker, company_name) rows on ticker."""
        pass

    @abstractmethod
    def list_universe_stocks(self) -> List[Dict[str, Any]]:
        """Get (id, ticker, company_name) for all universe stocks ordered by ticker."""
        pass

    @abstractmethod
    def add_run_members(self, run_id: str, stock_ids: List[str]) -> None:
        pass

    @abstractmethod
    def get_daily_ratings(self, date: str) -> List[Dict[str, Any]]:
        """Get (stock_id, score) of ratings stored for a date."""
        pass

    @abstractmethod
    def save_daily_rating(self, row: Dict[str, Any]) -> None:
        """Upsert a daily rating on (stock_id, date)."""
        pass

    @abstractmethod
    def get_scores_between(self, stock_id: str, start: str, end: str) -> List[float]:
        """Get rating scores of a stock for dates in [start, end]."""
        pass

    @abstractmethod
    def save_score_rollup(self, row: Dict[str, Any]) -> None:
        """Upsert a score rollup on (stock_id, date)."""
        pass

    @abstractmethod
    def get_score_rollups(self, date: str) -> List[Dict[str, Any]]:
        """Get (stock_id, score_7d_avg) rollups for a date."""
        pass

    @abstractmethod
    def save_weekly_portfolio(self, week_start: str, method: str, portfolio_json: Dict[str, Any]) -> None:
        """Upsert the weekly portfolio document on week_start."""
        pass

    def health_check(self) -> bool:
        """Default health check - can be overridden."""
        try:
            self.get_latest_snapshot_members()
            return True
        except StoreError:
            return False
