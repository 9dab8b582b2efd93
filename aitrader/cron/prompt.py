"""Stock rating prompt and its structured-output schema."""

from typing import Optional

PROMPT_NAME = "stock_rating"
PROMPT_VERSION = "research-v1"

RESEARCH_EXCERPT = "\n".join([
    "Use findings from two Finance Research Letters papers:",
    "1) 'Can ChatGPT assist in picking stocks?' (2023) reports that ChatGPT",
    "   earnings forecasts correlate with actual earnings and that its",
    "   attractiveness ratings correlate with future stock returns, updating",
    "   in response to news and earnings surprises.",
    "2) 'Can ChatGPT improve investment decisions? From a portfolio management",
    "   perspective' (2024) shows ChatGPT-driven selections improve portfolio",
    "   diversification and produce higher Sharpe ratios versus random selection.",
])

STOCK_RATING_PROMPT_TEMPLATE = "\n".join([
    "You are an AI equity analyst producing a daily rating for one Nasdaq-100 stock.",
    "Score the stock on an integer scale from -5 (strong sell) to 5 (strong buy).",
    "Scores >= 2 map to buy, scores <= -2 map to sell, anything else is hold.",
    "Use one web search for the latest news, earnings and price action.",
    "If data is sparse, stay close to 0 and lower your confidence.",
    "",
    "{research}",
    "",
    "Ticker: {ticker}",
    "Company: {company_name}",
    "Date: {run_date}",
    "Yesterday's score: {yesterday_score}",
    "Yesterday's bucket: {yesterday_bucket}",
    "",
    "Return JSON only. reason_1s is a single sentence. List up to three risks.",
    "Explain any bucket change versus yesterday in change.change_explanation.",
])

STOCK_RATING_SCHEMA = {
    "type": "object",
    "additionalProperties": False,
    "required": ["ticker", "date", "score", "confidence", "reason_1s", "risks", "change"],
    "properties": {
        "ticker": {"type": "string"},
        "date": {"type": "string"},
        "score": {"type": "integer", "minimum": -5, "maximum": 5},
        "confidence": {"type": "number", "minimum": 0, "maximum": 1},
        "reason_1s": {"type": "string"},
        "risks": {"type": "array", "items": {"type": "string"}, "maxItems": 3},
        "change": {
            "type": "object",
            "additionalProperties": False,
            "required": ["changed_bucket", "previous_bucket", "current_bucket", "change_explanation"],
            "properties": {
                "changed_bucket": {"type": "boolean"},
                "previous_bucket": {"type": ["string", "null"], "enum": ["buy", "hold", "sell", None]},
                "current_bucket": {"type": "string", "enum": ["buy", "hold", "sell"]},
                "change_explanation": {"type": ["string", "null"]},
            },
        },
    },
}


def build_stock_rating_prompt(
    ticker: str,
    company_name: Optional[str],
    run_date: str,
    yesterday_score: Optional[float] = None,
    yesterday_bucket: Optional[str] = None
) -> str:
    """Fill the rating template for one stock; missing history renders as N/A."""
    return STOCK_RATING_PROMPT_TEMPLATE.format(
        research=RESEARCH_EXCERPT,
        ticker=ticker,
        company_name=company_name or ticker,
        run_date=run_date,
        yesterday_score="N/A" if yesterday_score is None else yesterday_score,
        yesterday_bucket=yesterday_bucket or "N/A",
    )
