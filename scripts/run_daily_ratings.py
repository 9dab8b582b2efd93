"""Script to run the daily AI rating job outside the HTTP cron route."""

import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from aitrader.config import get_config
from aitrader.cron import CronJobError, DailyRatingJob, OpenAIStockRater
from aitrader.data import MarketDataClient, get_recommendation_store
from aitrader.logger import setup_logging_from_config
from aitrader.notify import CronErrorNotifier


def main(run_date: str = None) -> int:
    """
    Run the daily rating job.

    Args:
        run_date: ISO date to rate (default: today in UTC)

    Returns:
        Process exit code
    """
    config = get_config()
    setup_logging_from_config(config)

    job = DailyRatingJob(
        store=get_recommendation_store(config),
        rater=OpenAIStockRater(config),
        market_data=MarketDataClient(config),
        notifier=CronErrorNotifier(config),
        concurrency=config.ai_concurrency,
        fallback_symbols=config.get_secret('cron.nasdaq_fallback'),
        model=config.openai_model,
    )

    try:
        result = job.run(run_date)
    except CronJobError as e:
        print(f"Daily rating run failed: {e}")
        return 1

    failed = [r for r in result['results'] if r['status'] != 'ok']
    print(f"Run date: {result['runDate']}  (week of {result['weekStart']})")
    print(f"Rated {result['total']} stocks, {len(failed)} failed")
    for r in failed:
        print(f"  {r['ticker']}: {r.get('error')}")
    return 0


if __name__ == '__main__':
    import argparse

    parser = argparse.ArgumentParser(description='Run the daily Nasdaq-100 AI rating job')
    parser.add_argument('--run-date', type=str, default=None, help='Run date (YYYY-MM-DD), defaults to today (UTC)')

    args = parser.parse_args()
    sys.exit(main(args.run_date))
