"""
AITrader: AI-rated Nasdaq-100 recommendations.

Dashboard read API, daily AI rating job and strategy performance payloads.
"""

__version__ = "0.1.0"
