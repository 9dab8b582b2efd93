"""FastAPI server for the AITrader dashboard, premium and cron routes."""

import logging
import re
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import BaseModel

from .security import CronAuthorizationError, bearer_token, verify_cron_request
from ..config import Config, get_config
from ..cron import CronJobError, DailyRatingJob, OpenAIStockRater
from ..dashboard import (
    PayloadCache,
    PremiumAccessError,
    load_daily_recommendations,
    load_index_members,
    load_performance_series,
    load_premium_history,
    load_strategy_payload,
    load_weekly_recommendations,
    lookup_price,
    normalize_symbol,
)
from ..data import MarketDataClient, RecommendationStore, StoreError, StoreUnavailableError, get_recommendation_store
from ..data.stock_catalog import get_recommendation_history, get_stock_by_symbol, rating_score, search_stocks
from ..notify import CronErrorNotifier

logger = logging.getLogger(__name__)

VERSION = "0.1.0"

MEMBERS_CACHE_CONTROL = "public, s-maxage=3600, stale-while-revalidate=7200"
PRICE_CACHE_CONTROL = "public, s-maxage=300, stale-while-revalidate=600"
PAYLOAD_CACHE_CONTROL = "public, s-maxage=300, stale-while-revalidate=1800"

EMAIL_PATTERN = re.compile(r"^\S+@\S+\.\S+$")


# Request models
class NewsletterRequest(BaseModel):
    email: str = ""
    source: str = "popup"


def _json(content: Any, status_code: int = 200, cache_control: Optional[str] = None) -> JSONResponse:
    headers = {"Cache-Control": cache_control} if cache_control else None
    return JSONResponse(content=content, status_code=status_code, headers=headers)


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse(content={"error": message}, status_code=status_code)


# Dependencies
def get_store(request: Request) -> RecommendationStore:
    """Resolve the store from app state, creating it from config on first use."""
    state = request.app.state
    if state.store is None:
        state.store = get_recommendation_store(state.config)
    return state.store


def get_market_data(request: Request) -> MarketDataClient:
    state = request.app.state
    if state.market_data is None:
        state.market_data = MarketDataClient(state.config)
    return state.market_data


def get_notifier(request: Request) -> CronErrorNotifier:
    state = request.app.state
    if state.notifier is None:
        state.notifier = CronErrorNotifier(state.config)
    return state.notifier


def get_rater(request: Request) -> OpenAIStockRater:
    state = request.app.state
    if state.rater is None:
        state.rater = OpenAIStockRater(state.config)
    return state.rater


def create_app(
    config: Optional[Config] = None,
    store: Optional[RecommendationStore] = None,
    market_data=None,
    rater=None,
    notifier=None
) -> FastAPI:
    """
    Create the FastAPI app.

    Args:
        config: Config instance (defaults to the global one)
        store: Recommendation store; resolved from config on first request when omitted
        market_data: Market data client (Nasdaq list and S&P 500 closes)
        rater: Stock rater used by the daily cron route
        notifier: Cron error notifier
    """
    config = config or get_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"AITrader API starting (store provider: {config.database_provider})")
        yield
        logger.info("AITrader API stopped")

    app = FastAPI(title="AITrader API", version=VERSION, lifespan=lifespan)
    app.state.config = config
    app.state.store = store
    app.state.market_data = market_data
    app.state.rater = rater
    app.state.notifier = notifier
    app.state.payload_cache = PayloadCache(ttl_seconds=config.payload_ttl_seconds)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(StoreUnavailableError)
    async def store_unavailable_handler(request: Request, exc: StoreUnavailableError):
        logger.error(f"Store unavailable: {exc}")
        return _error("Service temporarily unavailable", 503)

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "message": "AITrader API",
            "version": VERSION,
            "status": "running"
        }

    @app.get("/health")
    def health(request: Request):
        """Health check endpoint."""
        try:
            store = get_store(request)
            healthy = store.health_check()
            provider = store.name
        except StoreUnavailableError as e:
            logger.warning(f"Health check: store unavailable: {e}")
            healthy = False
            provider = config.database_provider

        return {
            "status": "healthy" if healthy else "degraded",
            "store": provider
        }

    # Market data
    @app.get("/api/nasdaq100/members")
    def nasdaq100_members(store: RecommendationStore = Depends(get_store)):
        """Latest Nasdaq-100 snapshot members."""
        members = load_index_members(store)
        if members is None:
            return _json({"members": []})
        return _json({"members": members}, cache_control=MEMBERS_CACHE_CONTROL)

    @app.get("/api/stocks/price")
    def stock_price(symbol: Optional[str] = None, store: RecommendationStore = Depends(get_store)):
        """Latest stored quote for a symbol."""
        symbol = normalize_symbol(symbol)
        if not symbol:
            return _error("Missing symbol parameter", 400)

        try:
            result = lookup_price(store, symbol)
        except StoreError as e:
            logger.error(f"Price lookup failed for {symbol}: {e}")
            return _error(str(e), 500)

        if not result["found"]:
            return _json(result)
        return _json(result, cache_control=PRICE_CACHE_CONTROL)

    # Stock catalog
    @app.get("/api/stocks")
    async def list_stocks(q: str = ""):
        """Search the stock catalog by symbol or name."""
        return {"stocks": search_stocks(q)}

    @app.get("/api/stocks/{symbol}")
    async def stock_detail(symbol: str):
        """Catalog entry and sample rating history for a stock."""
        stock = get_stock_by_symbol(symbol.upper())
        if not stock:
            return _error("Stock not found", 404)

        history = get_recommendation_history(stock["symbol"])
        latest_rating = history[-1]["rating"] if history else None
        return {
            "stock": stock,
            "history": history,
            "latestRating": latest_rating,
            "ratingScore": rating_score(latest_rating),
        }

    @app.get("/api/stocks/{symbol}/premium")
    def premium_history(symbol: str, request: Request, store: RecommendationStore = Depends(get_store)):
        """Stored AI rating history of a stock (premium users only)."""
        try:
            history = load_premium_history(store, bearer_token(request), symbol)
        except PremiumAccessError as e:
            return _error(e.message, e.status_code)
        except StoreError as e:
            logger.error(f"Premium history failed for {symbol}: {e}")
            return _error(str(e), 500)

        return {"history": history}

    # Platform dashboard
    @app.get("/api/platform/daily")
    def platform_daily(request: Request, store: RecommendationStore = Depends(get_store)):
        """Current daily recommendations."""
        payload = request.app.state.payload_cache.get_or_build(
            "daily", lambda: load_daily_recommendations(store)
        )
        return _json(payload, cache_control=PAYLOAD_CACHE_CONTROL)

    @app.get("/api/platform/weekly")
    def platform_weekly(request: Request, store: RecommendationStore = Depends(get_store)):
        """Latest weekly ranking of the default strategy."""
        payload = request.app.state.payload_cache.get_or_build(
            "weekly", lambda: load_weekly_recommendations(store)
        )
        return _json(payload, cache_control=PAYLOAD_CACHE_CONTROL)

    @app.get("/api/platform/performance")
    def platform_performance(request: Request, store: RecommendationStore = Depends(get_store)):
        """AI buy basket vs. S&P 500 chart series."""
        series = load_performance_series(store, get_market_data(request))
        return _json({"series": series}, cache_control=PAYLOAD_CACHE_CONTROL)

    @app.get("/api/platform/strategy")
    def platform_strategy(request: Request, store: RecommendationStore = Depends(get_store)):
        """Default strategy performance payload."""
        payload = request.app.state.payload_cache.get_or_build(
            "strategy", lambda: load_strategy_payload(store)
        )
        return _json(payload, cache_control=PAYLOAD_CACHE_CONTROL)

    # Newsletter
    @app.post("/api/newsletter/subscribe")
    def newsletter_subscribe(body: NewsletterRequest, store: RecommendationStore = Depends(get_store)):
        """Subscribe an email address to the newsletter."""
        email = body.email.strip()
        if not EMAIL_PATTERN.match(email):
            return _error("Please enter a valid email address", 400)

        try:
            store.upsert_newsletter_subscriber(email, body.source or "popup", "subscribed")
        except StoreUnavailableError:
            raise
        except StoreError as e:
            logger.error(f"Newsletter signup failed: {e}")
            return _error("Unable to subscribe right now.", 500)

        return {"subscribed": True}

    # Cron
    @app.api_route("/api/cron/daily", methods=["GET", "POST"])
    def cron_daily(request: Request):
        """Run the daily rating job."""
        notifier = get_notifier(request)
        try:
            verify_cron_request(request, config.cron_secret)
        except CronAuthorizationError as e:
            notifier.notify("Cron authorization failed", e.message)
            return _error(e.message, e.status_code)

        job = DailyRatingJob(
            store=get_store(request),
            rater=get_rater(request),
            market_data=get_market_data(request),
            notifier=notifier,
            concurrency=config.ai_concurrency,
            fallback_symbols=config.get_secret('cron.nasdaq_fallback'),
            model=config.openai_model,
        )
        try:
            result = job.run()
        except CronJobError as e:
            return _error(str(e), 500)

        request.app.state.payload_cache.clear()
        return result

    @app.api_route("/api/cron/weekly", methods=["GET", "POST"])
    async def cron_weekly(request: Request):
        """Weekly schedule alias of the daily job."""
        return RedirectResponse(url=str(request.url.replace(path="/api/cron/daily")), status_code=308)

    return app
