import pytest
import yaml
from fastapi.testclient import TestClient

from aitrader.api import create_app
from aitrader.config import Config
from aitrader.data.sqlite_store import SQLiteRecommendationStore
from helpers import FakeMarketData, FakeNotifier, FakeRater, nasdaq_row


@pytest.fixture
def config_factory(tmp_path):
    """Write a config YAML under tmp_path; overrides are merged per section."""
    def make(**sections):
        data = {
            'database': {'provider': 'sqlite', 'path': str(tmp_path / 'aitrader.db')},
            'cron': {'secret': 'test-secret', 'error_email': '', 'ai_concurrency': 2},
            'openai': {'api_key': 'sk-test', 'model': 'gpt-test'},
            'api': {'cors_origins': ['*'], 'payload_ttl_seconds': 300},
        }
        for section, values in sections.items():
            data.setdefault(section, {}).update(values)

        path = tmp_path / 'config.yaml'
        path.write_text(yaml.safe_dump(data))
        return Config(str(path))

    return make


@pytest.fixture
def config(config_factory):
    return config_factory()


@pytest.fixture
def store(tmp_path):
    return SQLiteRecommendationStore(str(tmp_path / 'store.db'))


def seed_store(store):
    store.insert_rows('stocks', [
        {'id': 'aapl', 'symbol': 'AAPL', 'company_name': 'Apple Inc.'},
        {'id': 'msft', 'symbol': 'MSFT', 'company_name': 'Microsoft Corporation'},
        {'id': 'nvda', 'symbol': 'NVDA', 'company_name': 'NVIDIA Corporation'},
        {'id': 'amd', 'symbol': 'AMD', 'company_name': None},
    ])

    store.insert_rows('nasdaq100_snapshots', [
        {'id': 'snap-old', 'effective_date': '2025-12-22'},
        {'id': 'snap-new', 'effective_date': '2026-01-02'},
    ])
    store.insert_rows('nasdaq100_snapshot_stocks', [
        {'snapshot_id': 'snap-old', 'stock_id': 'aapl'},
        {'snapshot_id': 'snap-new', 'stock_id': 'nvda'},
        {'snapshot_id': 'snap-new', 'stock_id': 'aapl'},
        {'snapshot_id': 'snap-new', 'stock_id': 'msft'},
    ])

    store.save_nasdaq_daily([
        {'run_date': '2026-02-02', 'symbol': 'AAPL', 'company_name': 'Apple Inc.',
         'last_sale_price': '$230.10', 'net_change': '3.40', 'percentage_change': '1.50%'},
        {'run_date': '2026-02-02', 'symbol': 'MSFT', 'company_name': 'Microsoft Corporation',
         'last_sale_price': '$410.00', 'net_change': '-2.05', 'percentage_change': '-0.50%'},
        {'run_date': '2026-02-02', 'symbol': 'NVDA', 'company_name': 'NVIDIA Corporation',
         'last_sale_price': '$180.00', 'net_change': '3.53', 'percentage_change': '2.00%'},
        {'run_date': '2026-02-03', 'symbol': 'AAPL', 'company_name': 'Apple Inc.',
         'last_sale_price': '$227.80', 'net_change': '-2.30', 'percentage_change': '-1.00%'},
        {'run_date': '2026-02-03', 'symbol': 'MSFT', 'company_name': 'Microsoft Corporation',
         'last_sale_price': '$414.10', 'net_change': '4.10', 'percentage_change': '1.00%'},
        {'run_date': '2026-02-03', 'symbol': 'NVDA', 'company_name': 'NVIDIA Corporation',
         'last_sale_price': '$185.40', 'net_change': '5.40', 'percentage_change': '3.00%'},
    ])

    store.insert_rows('nasdaq100_recommendations_current', [
        {'stock_id': 'nvda', 'score': None, 'latent_rank': 0.95, 'confidence': 0.4, 'bucket': 'hold',
         'updated_at': '2026-02-03 12:00:00'},
        {'stock_id': 'aapl', 'score': 3, 'latent_rank': 0.8, 'confidence': 0.7, 'bucket': 'buy',
         'updated_at': '2026-02-03 12:00:00'},
        {'stock_id': 'amd', 'score': -2, 'latent_rank': 0.1, 'confidence': 0.6, 'bucket': 'sell',
         'updated_at': '2026-02-03 12:00:00'},
        {'stock_id': 'msft', 'score': 3, 'latent_rank': 0.9, 'confidence': 0.8, 'bucket': 'buy',
         'updated_at': '2026-02-03 12:00:00'},
        {'stock_id': 'missing', 'score': 5, 'latent_rank': 1.0, 'confidence': 0.9, 'bucket': 'buy',
         'updated_at': '2026-02-03 12:00:00'},
    ])

    store.insert_rows('trading_strategies', [{
        'id': 'strat-1',
        'slug': 'ai-top-20',
        'name': 'AI Top 20',
        'version': 'v1',
        'description': 'Weekly equal-weight top 20 by latent rank.',
        'rebalance_frequency': 'weekly',
        'rebalance_day_of_week': 1,
        'portfolio_size': 20,
        'transaction_cost_bps': None,
        'is_default': True,
        'status': 'active',
    }])

    store.insert_rows('ai_run_batches', [
        {'id': 'b1', 'run_date': '2026-02-02', 'index_name': 'nasdaq100', 'strategy_id': 'strat-1',
         'run_frequency': 'weekly'},
        {'id': 'b2', 'run_date': '2026-02-03', 'index_name': 'nasdaq100', 'strategy_id': 'strat-1',
         'run_frequency': 'daily'},
    ])
    store.insert_rows('ai_analysis_runs', [
        {'id': 'a1', 'batch_id': 'b1', 'stock_id': 'aapl', 'score': 3, 'latent_rank': 0.7,
         'confidence': 0.7, 'bucket': 'buy', 'reason_1s': 'Services growth.',
         'risks': ['Regulation', 7, 'China demand'], 'created_at': '2026-02-02 13:00:00'},
        {'id': 'a2', 'batch_id': 'b1', 'stock_id': 'msft', 'score': 1, 'latent_rank': 0.7,
         'confidence': 0.5, 'bucket': 'hold', 'created_at': '2026-02-02 13:00:00'},
        {'id': 'a3', 'batch_id': 'b1', 'stock_id': 'nvda', 'score': 4, 'latent_rank': None,
         'confidence': 0.6, 'bucket': 'buy', 'created_at': '2026-02-02 13:00:00'},
        {'id': 'a4', 'batch_id': 'b1', 'stock_id': 'amd', 'score': 2, 'latent_rank': 0.9,
         'confidence': 0.6, 'bucket': 'buy', 'created_at': '2026-02-02 13:00:00'},
        {'id': 'a5', 'batch_id': 'b2', 'stock_id': 'nvda', 'score': 4, 'latent_rank': 0.8,
         'confidence': 0.6, 'bucket': 'buy', 'created_at': '2026-02-03 13:00:00'},
        {'id': 'a6', 'batch_id': 'b2', 'stock_id': 'aapl', 'score': 1, 'latent_rank': 0.6,
         'confidence': None, 'bucket': 'hold', 'reason_1s': 'Valuation stretched.',
         'risks': 'not a list', 'bucket_change_explanation': 'Downgraded on valuation.',
         'created_at': '2026-02-03 13:00:00'},
        {'id': 'a7', 'batch_id': 'gone', 'stock_id': 'aapl', 'score': 2, 'latent_rank': 0.5,
         'confidence': 0.5, 'bucket': 'buy', 'created_at': '2026-01-15 09:30:00'},
    ])

    store.insert_rows('strategy_portfolio_holdings', [
        {'strategy_id': 'strat-1', 'run_date': '2026-02-02', 'stock_id': 'aapl', 'symbol': 'AAPL',
         'rank_position': 2, 'target_weight': 0.5, 'score': 3, 'latent_rank': 0.7},
        {'strategy_id': 'strat-1', 'run_date': '2026-02-02', 'stock_id': 'amd', 'symbol': 'AMD',
         'rank_position': 1, 'target_weight': 0.5, 'score': 2, 'latent_rank': 0.9},
    ])
    store.insert_rows('strategy_rebalance_actions', [
        {'strategy_id': 'strat-1', 'run_date': '2026-02-02', 'symbol': 'AAPL', 'action_type': 'enter',
         'action_label': 'Entered top 20', 'previous_weight': 0, 'new_weight': 0.5},
        {'strategy_id': 'strat-1', 'run_date': '2026-02-02', 'symbol': 'INTC', 'action_type': 'exit_index',
         'action_label': 'Removed from Nasdaq-100', 'previous_weight': 0.05, 'new_weight': 0},
        {'strategy_id': 'strat-1', 'run_date': '2026-02-02', 'symbol': 'TSLA', 'action_type': 'exit_rank',
         'action_label': 'Dropped out of top 20', 'previous_weight': 0.05, 'new_weight': 0},
    ])

    store.insert_rows('strategy_performance_weekly', [
        {'strategy_id': 'strat-1', 'run_date': '2026-01-05', 'net_return': 0, 'ending_equity': 10000,
         'nasdaq100_cap_weight_equity': 10000, 'nasdaq100_equal_weight_equity': 10000, 'sp500_equity': 10000},
        {'strategy_id': 'strat-1', 'run_date': '2026-01-12', 'net_return': 0.02, 'ending_equity': 10200,
         'nasdaq100_cap_weight_equity': 10100, 'nasdaq100_equal_weight_equity': 10050, 'sp500_equity': None},
        {'strategy_id': 'strat-1', 'run_date': '2026-01-26', 'net_return': -0.01, 'ending_equity': 10098,
         'nasdaq100_cap_weight_equity': 10000, 'nasdaq100_equal_weight_equity': 10100, 'sp500_equity': 10050},
        {'strategy_id': 'strat-1', 'run_date': '2026-02-02', 'net_return': 0.03, 'ending_equity': 10500,
         'nasdaq100_cap_weight_equity': 10000, 'nasdaq100_equal_weight_equity': 10200, 'sp500_equity': 10100},
    ])

    store.insert_rows('strategy_quintile_returns', [
        {'strategy_id': 'strat-1', 'run_date': '2026-01-26', 'horizon_weeks': 1, 'quintile': 1,
         'stock_count': 20, 'return_value': 0.001},
        {'strategy_id': 'strat-1', 'run_date': '2026-02-02', 'horizon_weeks': 1, 'quintile': 5,
         'stock_count': 20, 'return_value': 0.012},
        {'strategy_id': 'strat-1', 'run_date': '2026-02-02', 'horizon_weeks': 1, 'quintile': 1,
         'stock_count': 20, 'return_value': -0.004},
        {'strategy_id': 'strat-1', 'run_date': '2026-02-02', 'horizon_weeks': 4, 'quintile': 1,
         'stock_count': 19, 'return_value': None},
    ])
    store.insert_rows('strategy_cross_sectional_regressions', [
        {'strategy_id': 'strat-1', 'run_date': '2026-01-26', 'horizon_weeks': 1, 'sample_size': 98,
         'alpha': 0.002, 'beta': 0.3, 'r_squared': 0.02},
        {'strategy_id': 'strat-1', 'run_date': '2026-02-02', 'horizon_weeks': 1, 'sample_size': 100,
         'alpha': '0.001', 'beta': 0.5, 'r_squared': 0.04},
    ])

    store.insert_rows('user_profiles', [
        {'id': 'user-premium', 'is_premium': True},
        {'id': 'user-free', 'is_premium': False},
    ])
    store.insert_rows('user_sessions', [
        {'token': 'tok-premium', 'user_id': 'user-premium', 'expires_at': '2999-01-01 00:00:00'},
        {'token': 'tok-free', 'user_id': 'user-free', 'expires_at': None},
        {'token': 'tok-expired', 'user_id': 'user-premium', 'expires_at': '2000-01-01 00:00:00'},
    ])
    return store


@pytest.fixture
def seeded_store(store):
    return seed_store(store)


@pytest.fixture
def market_data():
    return FakeMarketData(rows=[nasdaq_row('AAPL'), nasdaq_row('MSFT')])


@pytest.fixture
def rater():
    return FakeRater()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def client(config, seeded_store, market_data, rater, notifier):
    app = create_app(config, store=seeded_store, market_data=market_data, rater=rater, notifier=notifier)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def offline_client(config_factory, tmp_path):
    """Client whose SQLite database sits under a regular file and cannot be created."""
    blocker = tmp_path / 'blocker'
    blocker.write_text('not a directory')
    config = config_factory(database={'path': str(blocker / 'aitrader.db')})

    app = create_app(config, market_data=FakeMarketData(), notifier=FakeNotifier())
    with TestClient(app) as test_client:
        yield test_client
