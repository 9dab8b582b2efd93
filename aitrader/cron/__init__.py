"""Scheduled jobs: the daily AI rating run."""

from .daily_job import CronJobError, DailyRatingJob
from .rating import OpenAIStockRater, RatingError

__all__ = [
    'CronJobError',
    'DailyRatingJob',
    'OpenAIStockRater',
    'RatingError',
]
