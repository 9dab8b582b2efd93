"""Static stock catalog and sample recommendation histories for the stock detail pages."""

from typing import Any, Dict, List, Optional


def _stock(
    symbol: str,
    name: str,
    price: Optional[float] = None,
    change: Optional[float] = None,
    ai_rating: Optional[str] = None,
    is_premium: bool = False
) -> Dict[str, Any]:
    stock = {'symbol': symbol, 'name': name, 'isPremium': is_premium}
    if price is not None:
        stock['price'] = price
    if change is not None:
        stock['change'] = change
    if ai_rating is not None:
        stock['aiRating'] = ai_rating
    return stock


# Top 30 free stocks
FREE_STOCKS: List[Dict[str, Any]] = [
    _stock('AAPL', 'Apple Inc.', 187.32, 1.42, 'Strong Buy'),
    _stock('MSFT', 'Microsoft Corporation', 402.56, 1.2, 'Buy'),
    _stock('GOOGL', 'Alphabet Inc.', 138.45, -0.75, 'Buy'),
    _stock('AMZN', 'Amazon.com Inc.', 178.12, 2.15, 'Strong Buy'),
    _stock('META', 'Meta Platforms Inc.', 463.15, 0.91, 'Buy'),
    _stock('TSLA', 'Tesla Inc.', 183.87, -1.53, 'Hold'),
    _stock('BRK.B', 'Berkshire Hathaway Inc.', 405.32, 0.17, 'Buy'),
    _stock('NVDA', 'NVIDIA Corporation', 841.26, 3.78, 'Strong Buy'),
    _stock('JPM', 'JPMorgan Chase & Co.', 186.34, 0.43, 'Buy'),
    _stock('V', 'Visa Inc.', 274.39, 0.65, 'Buy'),
    _stock('JNJ', 'Johnson & Johnson', 152.63, -0.29, 'Hold'),
    _stock('UNH', 'UnitedHealth Group Inc.', 517.28, 1.12, 'Buy'),
    _stock('WMT', 'Walmart Inc.', 62.41, 0.31, 'Buy'),
    _stock('MA', 'Mastercard Inc.', 458.36, 0.84, 'Buy'),
    _stock('PG', 'Procter & Gamble Co.', 162.88, 0.12, 'Buy'),
    _stock('HD', 'Home Depot Inc.', 347.15, 0.63, 'Buy'),
    _stock('XOM', 'Exxon Mobil Corporation', 113.95, -1.24, 'Hold'),
    _stock('AVGO', 'Broadcom Inc.', 1336.1, 2.27, 'Strong Buy'),
    _stock('CVX', 'Chevron Corporation', 155.39, -1.03, 'Hold'),
    _stock('COST', 'Costco Wholesale Corporation', 725.73, 1.18, 'Buy'),
    _stock('BAC', 'Bank of America Corporation', 37.15, 0.28, 'Hold'),
    _stock('KO', 'Coca-Cola Company', 62.24, 0.09, 'Buy'),
    _stock('ABBV', 'AbbVie Inc.', 167.89, 0.44, 'Buy'),
    _stock('PEP', 'PepsiCo Inc.', 169.55, 0.21, 'Buy'),
    _stock('LLY', 'Eli Lilly and Company', 764.01, 1.86, 'Strong Buy'),
    _stock('MRK', 'Merck & Co., Inc.', 125.45, 0.32, 'Buy'),
    _stock('CSCO', 'Cisco Systems, Inc.', 49.12, -0.41, 'Hold'),
    _stock('TMO', 'Thermo Fisher Scientific Inc.', 573.23, 1.04, 'Buy'),
    _stock('CRM', 'Salesforce, Inc.', 252.48, 0.87, 'Buy'),
    _stock('ACN', 'Accenture plc', 328.15, 0.63, 'Buy'),
]

PREMIUM_STOCKS: List[Dict[str, Any]] = [
    _stock('ADBE', 'Adobe Inc.', is_premium=True),
    _stock('NKE', 'Nike, Inc.', is_premium=True),
    _stock('DIS', 'The Walt Disney Company', is_premium=True),
    _stock('ORCL', 'Oracle Corporation', is_premium=True),
    _stock('NFLX', 'Netflix, Inc.', is_premium=True),
    _stock('CMCSA', 'Comcast Corporation', is_premium=True),
    _stock('INTC', 'Intel Corporation', is_premium=True),
    _stock('VZ', 'Verizon Communications Inc.', is_premium=True),
    _stock('AMD', 'Advanced Micro Devices, Inc.', is_premium=True),
    _stock('IBM', 'International Business Machines Corporation', is_premium=True),
    _stock('QCOM', 'QUALCOMM Incorporated', is_premium=True),
    _stock('TXN', 'Texas Instruments Incorporated', is_premium=True),
    _stock('SBUX', 'Starbucks Corporation', is_premium=True),
    _stock('PYPL', 'PayPal Holdings, Inc.', is_premium=True),
    _stock('AMT', 'American Tower Corporation', is_premium=True),
    _stock('RTX', 'Raytheon Technologies Corporation', is_premium=True),
    _stock('HON', 'Honeywell International Inc.', is_premium=True),
    _stock('NEE', 'NextEra Energy, Inc.', is_premium=True),
    _stock('LIN', 'Linde plc', is_premium=True),
    _stock('UPS', 'United Parcel Service, Inc.', is_premium=True),
]

ALL_STOCKS: List[Dict[str, Any]] = FREE_STOCKS + PREMIUM_STOCKS


def _entry(date, rating, confidence, summary, change_reason, drivers, risks) -> Dict[str, Any]:
    return {
        'date': date,
        'rating': rating,
        'confidence': confidence,
        'summary': summary,
        'changeReason': change_reason,
        'drivers': drivers,
        'risks': risks,
    }


DEFAULT_HISTORY: List[Dict[str, Any]] = [
    _entry(
        "2026-01-20", "hold", 0.42,
        "Balanced outlook with mixed signals.",
        "Initial baseline from limited signals.",
        ["Stable demand", "Neutral earnings outlook"],
        ["Macro uncertainty", "Competitive pressure"],
    ),
    _entry(
        "2026-01-27", "buy", 0.58,
        "Improving sentiment and earnings resilience.",
        "Stronger guidance and positive news flow.",
        ["Margin improvement", "Positive guidance"],
        ["Valuation stretch", "Sector rotation risk"],
    ),
    _entry(
        "2026-02-03", "hold", 0.5,
        "Momentum cooled after rapid gains.",
        "Mixed market reaction to recent updates.",
        ["Revenue durability", "Product cycle strength"],
        ["Profit-taking", "Macro slowdown"],
    ),
]

STOCK_HISTORY: Dict[str, List[Dict[str, Any]]] = {
    'AAPL': [
        _entry(
            "2026-01-20", "hold", 0.45,
            "Steady demand with moderate growth.",
            "Initial baseline from limited signals.",
            ["Installed base strength", "Services growth"],
            ["China softness", "Hardware cycle risk"],
        ),
        _entry(
            "2026-01-27", "buy", 0.62,
            "Services momentum and resilient margins.",
            "Guidance held firm despite macro noise.",
            ["Services expansion", "Margin stability"],
            ["Regulatory scrutiny", "FX headwinds"],
        ),
        _entry(
            "2026-02-03", "buy", 0.64,
            "Positive sentiment persists ahead of product cycle.",
            "Demand indicators improving.",
            ["Product cycle tailwinds", "Ecosystem lock-in"],
            ["Supply chain constraints", "Premium valuation"],
        ),
    ],
    'MSFT': [
        _entry(
            "2026-01-20", "buy", 0.6,
            "AI-led cloud demand remains robust.",
            "Initial baseline from strong cloud indicators.",
            ["Cloud growth", "AI product adoption"],
            ["Capex intensity", "Competitive pricing"],
        ),
        _entry(
            "2026-01-27", "buy", 0.63,
            "Enterprise renewals remain healthy.",
            "Renewal rates and pipeline stable.",
            ["Enterprise stickiness", "Productivity suite strength"],
            ["IT budget tightening", "Execution risk"],
        ),
        _entry(
            "2026-02-03", "hold", 0.52,
            "Near-term valuation pressure after rally.",
            "Market cooled following rapid gains.",
            ["Platform dominance", "Recurring revenue"],
            ["Valuation reset", "Macro sensitivity"],
        ),
    ],
}

RATING_SCORES = {'buy': 3, 'hold': 2, 'sell': 1}


def get_stock_by_symbol(symbol: str) -> Optional[Dict[str, Any]]:
    """Exact (case-sensitive) symbol lookup."""
    for stock in ALL_STOCKS:
        if stock['symbol'] == symbol:
            return stock
    return None


def search_stocks(query: str) -> List[Dict[str, Any]]:
    """Case-insensitive substring match on symbol or name."""
    normalized = (query or '').lower().strip()
    return [
        stock for stock in ALL_STOCKS
        if normalized in stock['symbol'].lower() or normalized in stock['name'].lower()
    ]


def get_recommendation_history(symbol: str) -> List[Dict[str, Any]]:
    return STOCK_HISTORY.get(symbol.upper(), DEFAULT_HISTORY)


def rating_score(rating: Optional[str]) -> int:
    """Map a buy/hold/sell rating to a 3/2/1 chart score (unknown ratings count as hold)."""
    return RATING_SCORES.get(rating, 2)
