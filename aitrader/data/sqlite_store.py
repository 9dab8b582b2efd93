"""SQLite-backed recommendation store for local development and tests."""

import json
import sqlite3
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .base import RecommendationStore, StoreError, StoreUnavailableError

_JSON_COLUMNS = {"risks", "citations", "sources", "raw_response", "portfolio_json"}

_SCHEMA = [
    # Read side
    """
    CREATE TABLE IF NOT EXISTS stocks (
        id TEXT PRIMARY KEY,
        symbol TEXT UNIQUE NOT NULL,
        company_name TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS nasdaq100_snapshots (
        id TEXT PRIMARY KEY,
        effective_date DATE NOT NULL,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS nasdaq100_snapshot_stocks (
        snapshot_id TEXT NOT NULL,
        stock_id TEXT NOT NULL,
        PRIMARY KEY (snapshot_id, stock_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS nasdaq_100_daily_raw (
        run_date DATE NOT NULL,
        symbol TEXT NOT NULL,
        company_name TEXT,
        market_cap TEXT,
        last_sale_price TEXT,
        net_change TEXT,
        percentage_change TEXT,  -- e.g. "1.25%"
        delta_indicator TEXT,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        UNIQUE(run_date, symbol)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS nasdaq100_recommendations_current (
        stock_id TEXT PRIMARY KEY,
        score NUMERIC,
        latent_rank NUMERIC,
        confidence NUMERIC,
        bucket TEXT,  -- buy, hold, sell
        updated_at TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS trading_strategies (
        id TEXT PRIMARY KEY,
        slug TEXT UNIQUE,
        name TEXT,
        version TEXT,
        description TEXT,
        rebalance_frequency TEXT,
        rebalance_day_of_week INTEGER,
        portfolio_size INTEGER,
        transaction_cost_bps NUMERIC,
        is_default INTEGER DEFAULT 0,
        status TEXT DEFAULT 'active',
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS ai_run_batches (
        id TEXT PRIMARY KEY,
        run_date DATE NOT NULL,
        index_name TEXT,
        strategy_id TEXT,
        run_frequency TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS ai_analysis_runs (
        id TEXT PRIMARY KEY,
        batch_id TEXT NOT NULL,
        stock_id TEXT NOT NULL,
        score NUMERIC,
        latent_rank NUMERIC,
        confidence NUMERIC,
        bucket TEXT,
        reason_1s TEXT,
        risks TEXT,  -- JSON list
        bucket_change_explanation TEXT,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS strategy_portfolio_holdings (
        strategy_id TEXT NOT NULL,
        run_date DATE NOT NULL,
        stock_id TEXT,
        symbol TEXT NOT NULL,
        rank_position INTEGER,
        target_weight NUMERIC,
        score NUMERIC,
        latent_rank NUMERIC
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS strategy_rebalance_actions (
        strategy_id TEXT NOT NULL,
        run_date DATE NOT NULL,
        symbol TEXT NOT NULL,
        action_type TEXT NOT NULL,  -- enter, exit_rank, exit_index
        action_label TEXT,
        previous_weight NUMERIC,
        new_weight NUMERIC
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS strategy_performance_weekly (
        strategy_id TEXT NOT NULL,
        run_date DATE NOT NULL,
        net_return NUMERIC,
        ending_equity NUMERIC,
        nasdaq100_cap_weight_equity NUMERIC,
        nasdaq100_equal_weight_equity NUMERIC,
        sp500_equity NUMERIC
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS strategy_quintile_returns (
        strategy_id TEXT NOT NULL,
        run_date DATE NOT NULL,
        horizon_weeks INTEGER NOT NULL,
        quintile INTEGER NOT NULL,
        stock_count INTEGER,
        return_value NUMERIC
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS strategy_cross_sectional_regressions (
        strategy_id TEXT NOT NULL,
        run_date DATE NOT NULL,
        horizon_weeks INTEGER NOT NULL,
        sample_size INTEGER,
        alpha NUMERIC,
        beta NUMERIC,
        r_squared NUMERIC
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS user_profiles (
        id TEXT PRIMARY KEY,
        is_premium INTEGER DEFAULT 0
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS user_sessions (
        token TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        expires_at TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS newsletter_subscribers (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        email TEXT UNIQUE NOT NULL,
        source TEXT,
        status TEXT,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    # Daily rating job
    """
    CREATE TABLE IF NOT EXISTS prompts (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        version TEXT NOT NULL,
        template TEXT,
        updated_at TIMESTAMP,
        UNIQUE(name, version)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS universe_runs (
        id TEXT PRIMARY KEY,
        run_date DATE NOT NULL,
        universe TEXT NOT NULL,
        prompt_id TEXT,
        model TEXT,
        UNIQUE(run_date, universe)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS nasdaq100_stocks (
        id TEXT PRIMARY KEY,
        ticker TEXT UNIQUE NOT NULL,
        company_name TEXT,
        updated_at TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS universe_run_stocks (
        run_id TEXT NOT NULL,
        stock_id TEXT NOT NULL,
        UNIQUE(run_id, stock_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS stock_daily_ratings (
        run_id TEXT,
        stock_id TEXT NOT NULL,
        date DATE NOT NULL,
        score INTEGER NOT NULL,  -- -5..5
        confidence REAL,  -- 0..1
        reason_1s TEXT,
        risks TEXT,
        bucket TEXT,
        citations TEXT,
        sources TEXT,
        raw_response TEXT,
        UNIQUE(stock_id, date)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS stock_score_rollups (
        stock_id TEXT NOT NULL,
        date DATE NOT NULL,
        score_7d_avg REAL,
        bucket_7d TEXT,
        window_start DATE,
        window_end DATE,
        sample_size INTEGER,
        UNIQUE(stock_id, date)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS weekly_portfolios (
        week_start DATE PRIMARY KEY,
        method TEXT,
        portfolio_json TEXT,
        created_at TIMESTAMP
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_daily_raw_symbol_date ON nasdaq_100_daily_raw(symbol, run_date)",
    "CREATE INDEX IF NOT EXISTS idx_analysis_stock_created ON ai_analysis_runs(stock_id, created_at)",
    "CREATE INDEX IF NOT EXISTS idx_analysis_batch ON ai_analysis_runs(batch_id)",
    "CREATE INDEX IF NOT EXISTS idx_ratings_date ON stock_daily_ratings(date)",
]

TABLES = frozenset({
    "stocks", "nasdaq100_snapshots", "nasdaq100_snapshot_stocks", "nasdaq_100_daily_raw",
    "nasdaq100_recommendations_current", "trading_strategies", "ai_run_batches",
    "ai_analysis_runs", "strategy_portfolio_holdings", "strategy_rebalance_actions",
    "strategy_performance_weekly", "strategy_quintile_returns",
    "strategy_cross_sectional_regressions", "user_profiles", "user_sessions",
    "newsletter_subscribers", "prompts", "universe_runs", "nasdaq100_stocks",
    "universe_run_stocks", "stock_daily_ratings", "stock_score_rollups", "weekly_portfolios",
})


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


def _new_id() -> str:
    return str(uuid.uuid4())


def _encode(column: str, value: Any) -> Any:
    if column in _JSON_COLUMNS and value is not None and not isinstance(value, str):
        return json.dumps(value)
    if isinstance(value, bool):
        return int(value)
    return value


def _decode_json(value: Any) -> Any:
    if not isinstance(value, str):
        return value
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        return value


class SQLiteRecommendationStore(RecommendationStore):
    """Recommendation store on a local SQLite file."""

    name = "sqlite"

    def __init__(self, db_path: str):
        """
        Initialize the store. The directory and schema are created on first use.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path
        self._schema_ready = False

    def _connect(self) -> sqlite3.Connection:
        try:
            conn = sqlite3.connect(self.db_path, timeout=30)
        except sqlite3.Error as e:
            raise StoreUnavailableError(f"Cannot open database {self.db_path}: {e}") from e
        conn.row_factory = sqlite3.Row
        return conn

    def _get_connection(self) -> sqlite3.Connection:
        """Get database connection, creating the schema on first use."""
        if not self._schema_ready:
            self._init_schema()
        return self._connect()

    def _init_schema(self):
        """Initialize database directory and schema."""
        try:
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreUnavailableError(f"Cannot create database directory for {self.db_path}: {e}") from e

        conn = self._connect()
        try:
            for statement in _SCHEMA:
                conn.execute(statement)
            conn.commit()
        except sqlite3.Error as e:
            raise StoreUnavailableError(f"Cannot initialize schema: {e}") from e
        finally:
            conn.close()
        self._schema_ready = True

    def _fetch_all(self, query: str, params: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        conn = self._get_connection()
        try:
            rows = conn.execute(query, tuple(params)).fetchall()
            return [dict(row) for row in rows]
        except sqlite3.Error as e:
            raise StoreError(str(e)) from e
        finally:
            conn.close()

    def _fetch_one(self, query: str, params: Sequence[Any] = ()) -> Optional[Dict[str, Any]]:
        rows = self._fetch_all(query, params)
        return rows[0] if rows else None

    def _execute(self, query: str, params_list: List[Sequence[Any]]) -> None:
        if not params_list:
            return
        conn = self._get_connection()
        try:
            conn.executemany(query, [tuple(params) for params in params_list])
            conn.commit()
        except sqlite3.Error as e:
            raise StoreError(str(e)) from e
        finally:
            conn.close()

    def insert_rows(self, table: str, rows: List[Dict[str, Any]]) -> None:
        """
        Insert raw rows into a table (used for seeding and imports).

        JSON columns accept lists/dicts; booleans are stored as integers.
        """
        if table not in TABLES:
            raise ValueError(f"Unknown table: {table}")
        for row in rows:
            columns = list(row.keys())
            placeholders = ", ".join("?" for _ in columns)
            self._execute(
                f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders})",
                [[_encode(column, row[column]) for column in columns]],
            )

    # Index membership and quotes
    def get_latest_snapshot_members(self) -> Optional[List[Dict[str, Any]]]:
        snapshot = self._fetch_one("""
            SELECT id FROM nasdaq100_snapshots
            ORDER BY effective_date DESC, created_at DESC
            LIMIT 1
        """)
        if not snapshot:
            return None

        return self._fetch_all("""
            SELECT s.symbol, s.company_name
            FROM nasdaq100_snapshot_stocks m
            JOIN stocks s ON s.id = m.stock_id
            WHERE m.snapshot_id = ?
        """, (snapshot['id'],))

    def get_latest_quote(self, symbol: str) -> Optional[Dict[str, Any]]:
        return self._fetch_one("""
            SELECT symbol, company_name, last_sale_price, net_change, percentage_change, run_date
            FROM nasdaq_100_daily_raw
            WHERE symbol = ?
            ORDER BY run_date DESC
            LIMIT 1
        """, (symbol,))

    # Dashboard reads
    def get_current_recommendations(self) -> List[Dict[str, Any]]:
        return self._fetch_all("""
            SELECT r.score, r.latent_rank, r.confidence, r.bucket, r.updated_at,
                   s.symbol, s.company_name
            FROM nasdaq100_recommendations_current r
            LEFT JOIN stocks s ON s.id = r.stock_id
            ORDER BY r.rowid
        """)

    def get_default_strategy(self, active_only: bool = True) -> Optional[Dict[str, Any]]:
        query = """
            SELECT id, slug, name, version, description, rebalance_frequency,
                   rebalance_day_of_week, portfolio_size, transaction_cost_bps
            FROM trading_strategies
            WHERE is_default = 1
        """
        if active_only:
            query += " AND status = 'active'"
        query += " ORDER BY created_at DESC LIMIT 1"
        return self._fetch_one(query)

    def get_latest_batch(self, strategy_id: str, run_frequency: str = "weekly") -> Optional[Dict[str, Any]]:
        return self._fetch_one("""
            SELECT id, run_date FROM ai_run_batches
            WHERE strategy_id = ? AND run_frequency = ?
            ORDER BY run_date DESC
            LIMIT 1
        """, (strategy_id, run_frequency))

    def get_batch_analyses(self, batch_id: str) -> List[Dict[str, Any]]:
        return self._fetch_all("""
            SELECT a.stock_id, a.score, a.latent_rank, s.symbol, s.company_name
            FROM ai_analysis_runs a
            LEFT JOIN stocks s ON s.id = a.stock_id
            WHERE a.batch_id = ?
        """, (batch_id,))

    def get_portfolio_holdings(self, strategy_id: str, run_date: str) -> List[Dict[str, Any]]:
        return self._fetch_all("""
            SELECT h.stock_id, h.symbol, h.rank_position, h.target_weight, h.score,
                   h.latent_rank, s.company_name
            FROM strategy_portfolio_holdings h
            LEFT JOIN stocks s ON s.id = h.stock_id
            WHERE h.strategy_id = ? AND h.run_date = ?
            ORDER BY h.rank_position ASC
        """, (strategy_id, run_date))

    def get_rebalance_actions(
        self,
        strategy_id: str,
        run_date: str,
        action_type: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        query = """
            SELECT symbol, action_type, action_label, previous_weight, new_weight
            FROM strategy_rebalance_actions
            WHERE strategy_id = ? AND run_date = ?
        """
        params: List[Any] = [strategy_id, run_date]

        if action_type:
            query += " AND action_type = ?"
            params.append(action_type)

        query += " ORDER BY action_type ASC, symbol ASC"
        return self._fetch_all(query, params)

    def get_weekly_performance(self, strategy_id: str) -> List[Dict[str, Any]]:
        return self._fetch_all("""
            SELECT run_date, net_return, ending_equity, nasdaq100_cap_weight_equity,
                   nasdaq100_equal_weight_equity, sp500_equity
            FROM strategy_performance_weekly
            WHERE strategy_id = ?
            ORDER BY run_date ASC
        """, (strategy_id,))

    def get_quintile_returns(
        self,
        strategy_id: str,
        horizon_weeks: int,
        limit: int = 100
    ) -> List[Dict[str, Any]]:
        return self._fetch_all("""
            SELECT run_date, quintile, stock_count, return_value
            FROM strategy_quintile_returns
            WHERE strategy_id = ? AND horizon_weeks = ?
            ORDER BY run_date DESC, quintile ASC
            LIMIT ?
        """, (strategy_id, horizon_weeks, limit))

    def get_latest_regression(self, strategy_id: str, horizon_weeks: int) -> Optional[Dict[str, Any]]:
        return self._fetch_one("""
            SELECT run_date, sample_size, alpha, beta, r_squared
            FROM strategy_cross_sectional_regressions
            WHERE strategy_id = ? AND horizon_weeks = ?
            ORDER BY run_date DESC
            LIMIT 1
        """, (strategy_id, horizon_weeks))

    def get_index_batches(self, index_name: str, limit: int) -> List[Dict[str, Any]]:
        rows = self._fetch_all("""
            SELECT id, run_date FROM ai_run_batches
            WHERE index_name = ?
            ORDER BY run_date DESC
            LIMIT ?
        """, (index_name, limit))
        return list(reversed(rows))

    def get_batch_buckets(self, batch_ids: Iterable[str]) -> List[Dict[str, Any]]:
        batch_ids = list(batch_ids)
        if not batch_ids:
            return []
        placeholders = ", ".join("?" for _ in batch_ids)
        return self._fetch_all(f"""
            SELECT a.batch_id, a.bucket, s.symbol
            FROM ai_analysis_runs a
            LEFT JOIN stocks s ON s.id = a.stock_id
            WHERE a.batch_id IN ({placeholders})
        """, batch_ids)

    def get_daily_changes(self, run_dates: Iterable[str]) -> List[Dict[str, Any]]:
        run_dates = list(run_dates)
        if not run_dates:
            return []
        placeholders = ", ".join("?" for _ in run_dates)
        return self._fetch_all(f"""
            SELECT run_date, symbol, percentage_change
            FROM nasdaq_100_daily_raw
            WHERE run_date IN ({placeholders})
        """, run_dates)

    # Premium history
    def get_user_id_for_token(self, token: str) -> Optional[str]:
        row = self._fetch_one("""
            SELECT user_id FROM user_sessions
            WHERE token = ? AND (expires_at IS NULL OR expires_at > ?)
        """, (token, _now()))
        return row['user_id'] if row else None

    def is_premium_user(self, user_id: str) -> bool:
        row = self._fetch_one("SELECT is_premium FROM user_profiles WHERE id = ?", (user_id,))
        return bool(row and row['is_premium'])

    def get_stock_id(self, symbol: str) -> Optional[str]:
        row = self._fetch_one("SELECT id FROM stocks WHERE symbol = ?", (symbol,))
        return row['id'] if row else None

    def get_analysis_history(self, stock_id: str, limit: int = 30) -> List[Dict[str, Any]]:
        rows = self._fetch_all("""
            SELECT a.score, a.confidence, a.bucket, a.reason_1s, a.risks,
                   a.bucket_change_explanation, a.created_at, b.run_date
            FROM ai_analysis_runs a
            LEFT JOIN ai_run_batches b ON b.id = a.batch_id
            WHERE a.stock_id = ?
            ORDER BY a.created_at ASC
            LIMIT ?
        """, (stock_id, limit))
        for row in rows:
            row['risks'] = _decode_json(row['risks'])
        return rows

    # Newsletter
    def upsert_newsletter_subscriber(self, email: str, source: str, status: str) -> None:
        self._execute("""
            INSERT INTO newsletter_subscribers (email, source, status)
            VALUES (?, ?, ?)
            ON CONFLICT(email) DO UPDATE SET
                source = excluded.source,
                status = excluded.status,
                updated_at = CURRENT_TIMESTAMP
        """, [(email, source, status)])

    # Daily rating job
    def upsert_prompt(self, name: str, version: str, template: str) -> str:
        self._execute("""
            INSERT INTO prompts (id, name, version, template, updated_at)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(name, version) DO UPDATE SET
                template = excluded.template,
                updated_at = excluded.updated_at
        """, [(_new_id(), name, version, template, _now())])

        row = self._fetch_one("SELECT id FROM prompts WHERE name = ? AND version = ?", (name, version))
        if not row:
            raise StoreError(f"Prompt {name}/{version} missing after upsert")
        return row['id']

    def upsert_universe_run(self, run_date: str, universe: str, prompt_id: str, model: str) -> str:
        self._execute("""
            INSERT INTO universe_runs (id, run_date, universe, prompt_id, model)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(run_date, universe) DO UPDATE SET
                prompt_id = excluded.prompt_id,
                model = excluded.model
        """, [(_new_id(), run_date, universe, prompt_id, model)])

        row = self._fetch_one(
            "SELECT id FROM universe_runs WHERE run_date = ? AND universe = ?",
            (run_date, universe)
        )
        if not row:
            raise StoreError(f"Universe run {run_date}/{universe} missing after upsert")
        return row['id']

    def get_latest_nasdaq_daily(self) -> List[Dict[str, Any]]:
        return self._fetch_all("""
            SELECT symbol, company_name, market_cap, last_sale_price, net_change,
                   percentage_change, delta_indicator
            FROM nasdaq_100_daily_raw
            WHERE run_date = (SELECT MAX(run_date) FROM nasdaq_100_daily_raw)
            ORDER BY symbol
        """)

    def save_nasdaq_daily(self, rows: List[Dict[str, Any]]) -> None:
        self._execute("""
            INSERT INTO nasdaq_100_daily_raw (
                run_date, symbol, company_name, market_cap, last_sale_price,
                net_change, percentage_change, delta_indicator, updated_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(run_date, symbol) DO UPDATE SET
                company_name = excluded.company_name,
                market_cap = excluded.market_cap,
                last_sale_price = excluded.last_sale_price,
                net_change = excluded.net_change,
                percentage_change = excluded.percentage_change,
                delta_indicator = excluded.delta_indicator,
                updated_at = excluded.updated_at
        """, [
            (
                row['run_date'],
                row['symbol'],
                row.get('company_name'),
                row.get('market_cap'),
                row.get('last_sale_price'),
                row.get('net_change'),
                row.get('percentage_change'),
                row.get('delta_indicator'),
                row.get('updated_at') or _now(),
            )
            for row in rows
        ])

    def upsert_universe_stocks(self, rows: List[Dict[str, Any]]) -> None:
        self._execute("""
            INSERT INTO nasdaq100_stocks (id, ticker, company_name, updated_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(ticker) DO UPDATE SET
                company_name = excluded.company_name,
                updated_at = excluded.updated_at
        """, [
            (_new_id(), row['ticker'], row.get('company_name'), row.get('updated_at') or _now())
            for row in rows
        ])

    def list_universe_stocks(self) -> List[Dict[str, Any]]:
        return self._fetch_all("SELECT id, ticker, company_name FROM nasdaq100_stocks ORDER BY ticker")

    def add_run_members(self, run_id: str, stock_ids: List[str]) -> None:
        self._execute("""
            INSERT INTO universe_run_stocks (run_id, stock_id)
            VALUES (?, ?)
            ON CONFLICT(run_id, stock_id) DO NOTHING
        """, [(run_id, stock_id) for stock_id in stock_ids])

    def get_daily_ratings(self, date: str) -> List[Dict[str, Any]]:
        return self._fetch_all("SELECT stock_id, score FROM stock_daily_ratings WHERE date = ?", (date,))

    def save_daily_rating(self, row: Dict[str, Any]) -> None:
        columns = [
            'run_id', 'stock_id', 'date', 'score', 'confidence', 'reason_1s',
            'risks', 'bucket', 'citations', 'sources', 'raw_response',
        ]
        updates = ", ".join(f"{column} = excluded.{column}" for column in columns if column not in ('stock_id', 'date'))
        self._execute(f"""
            INSERT INTO stock_daily_ratings ({', '.join(columns)})
            VALUES ({', '.join('?' for _ in columns)})
            ON CONFLICT(stock_id, date) DO UPDATE SET {updates}
        """, [[_encode(column, row.get(column)) for column in columns]])

    def get_scores_between(self, stock_id: str, start: str, end: str) -> List[float]:
        rows = self._fetch_all("""
            SELECT score FROM stock_daily_ratings
            WHERE stock_id = ? AND date >= ? AND date <= ?
        """, (stock_id, start, end))
        return [row['score'] for row in rows if row['score'] is not None]

    def save_score_rollup(self, row: Dict[str, Any]) -> None:
        self._execute("""
            INSERT INTO stock_score_rollups (
                stock_id, date, score_7d_avg, bucket_7d, window_start, window_end, sample_size
            )
            VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(stock_id, date) DO UPDATE SET
                score_7d_avg = excluded.score_7d_avg,
                bucket_7d = excluded.bucket_7d,
                window_start = excluded.window_start,
                window_end = excluded.window_end,
                sample_size = excluded.sample_size
        """, [(
            row['stock_id'],
            row['date'],
            row['score_7d_avg'],
            row['bucket_7d'],
            row['window_start'],
            row['window_end'],
            row['sample_size'],
        )])

    def get_score_rollups(self, date: str) -> List[Dict[str, Any]]:
        return self._fetch_all("""
            SELECT stock_id, score_7d_avg FROM stock_score_rollups
            WHERE date = ?
            ORDER BY rowid
        """, (date,))

    def save_weekly_portfolio(self, week_start: str, method: str, portfolio_json: Dict[str, Any]) -> None:
        self._execute("""
            INSERT INTO weekly_portfolios (week_start, method, portfolio_json, created_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(week_start) DO UPDATE SET
                method = excluded.method,
                portfolio_json = excluded.portfolio_json,
                created_at = excluded.created_at
        """, [(week_start, method, json.dumps(portfolio_json), _now())])

    def get_weekly_portfolio(self, week_start: str) -> Optional[Dict[str, Any]]:
        """Get a stored weekly portfolio document."""
        row = self._fetch_one(
            "SELECT week_start, method, portfolio_json, created_at FROM weekly_portfolios WHERE week_start = ?",
            (week_start,)
        )
        if row:
            row['portfolio_json'] = _decode_json(row['portfolio_json'])
        return row
