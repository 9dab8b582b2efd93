"""Per-stock AI ratings through the OpenAI Responses API."""

import json
import logging
import math
import time
from typing import Any, Dict, List, Optional, Tuple

import requests

from .prompt import STOCK_RATING_SCHEMA, build_stock_rating_prompt
from ..config import Config, get_config
from ..data.market_data import build_session

logger = logging.getLogger(__name__)

OPENAI_BASE_URL = "https://api.openai.com/v1"
SYSTEM_MESSAGE = "Use exactly one web_search call. Output only JSON matching the schema."
FALLBACK_REASON = "Model evaluation unavailable due to an error."
FALLBACK_RISKS = ["Data unavailable", "Model error"]
RETRY_DELAY_SECONDS = 0.5


class RatingError(Exception):
    """The model could not produce a rating for a stock."""


def _to_float(value: Any) -> float:
    if value is None:
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return math.nan


def clamp_score(value: Any) -> int:
    """Round half up and clamp to [-5, 5]; unusable input scores 0."""
    score = _to_float(value)
    if math.isnan(score):
        return 0
    if math.isinf(score):
        return 5 if score > 0 else -5
    return max(-5, min(5, int(math.floor(score + 0.5))))


def clamp_confidence(value: Any) -> float:
    confidence = _to_float(value)
    if math.isnan(confidence):
        return 0.0
    return max(0.0, min(1.0, confidence))


def bucket_from_score(score: float) -> str:
    if score >= 2:
        return "buy"
    if score <= -2:
        return "sell"
    return "hold"


def extract_output_text(payload: Any) -> str:
    """Prefer output_text; otherwise join the text chunks of all output items."""
    if not isinstance(payload, dict):
        return ""
    if isinstance(payload.get('output_text'), str):
        return payload['output_text']

    output = payload.get('output')
    if not isinstance(output, list):
        return ""

    chunks = []
    for item in output:
        content = item.get('content') if isinstance(item, dict) else None
        if not isinstance(content, list):
            continue
        for content_item in content:
            if isinstance(content_item, dict) and content_item.get('text'):
                chunks.append(content_item['text'])

    return "\n".join(chunks).strip()


def unique_by_url(items: List[Any]) -> List[Any]:
    """De-duplicate by url (or link), keeping the first occurrence; items without one are dropped."""
    seen = {}
    for item in items:
        if not isinstance(item, dict):
            continue
        url = item.get('url') or item.get('link')
        if url and url not in seen:
            seen[url] = item
    return list(seen.values())


def extract_sources_and_citations(payload: Any) -> Tuple[List[Any], List[Dict[str, Any]]]:
    """
    Collect web search sources and url citations from a Responses payload.

    Returns:
        (sources, citations), both de-duplicated by url
    """
    sources = []
    citations = []
    output = payload.get('output') if isinstance(payload, dict) else None

    if isinstance(output, list):
        for item in output:
            if not isinstance(item, dict):
                continue

            action = item.get('action')
            if item.get('type') == 'web_search_call' and isinstance(action, dict) and action.get('sources'):
                sources.extend(action['sources'])

            content = item.get('content')
            if not isinstance(content, list):
                continue
            for content_item in content:
                annotations = content_item.get('annotations') if isinstance(content_item, dict) else None
                if not isinstance(annotations, list):
                    continue
                for annotation in annotations:
                    if isinstance(annotation, dict) and annotation.get('url'):
                        citations.append({
                            'url': annotation['url'],
                            'title': annotation.get('title') or annotation.get('text'),
                        })

    normalized_sources = unique_by_url(sources)
    citations_from_sources = [
        {
            'url': source.get('url') or source.get('link'),
            'title': source.get('title') or source.get('source') or source.get('snippet'),
        }
        for source in normalized_sources
    ]

    return normalized_sources, unique_by_url(citations + citations_from_sources)


def fallback_rating(ticker: str, run_date: str, previous_bucket: Optional[str], error: str) -> Dict[str, Any]:
    """Neutral rating stored when the model call fails."""
    return {
        'parsed': {
            'ticker': ticker,
            'date': run_date,
            'score': 0,
            'confidence': 0,
            'reason_1s': FALLBACK_REASON,
            'risks': list(FALLBACK_RISKS),
            'change': {
                'changed_bucket': False,
                'previous_bucket': previous_bucket,
                'current_bucket': 'hold',
                'change_explanation': None,
            },
        },
        'sources': [],
        'citations': [],
        'raw': {'error': error or 'unknown error'},
    }


class OpenAIStockRater:
    """Rate one stock per call using a forced web search and strict JSON output."""

    def __init__(self, config: Optional[Config] = None, session: Optional[requests.Session] = None):
        config = config or get_config()
        self.api_key = config.openai_api_key
        self.model = config.openai_model
        self.base_url = str(config.get('openai.base_url', OPENAI_BASE_URL)).rstrip('/')
        self.temperature = float(config.get('openai.temperature', 0.2))
        self.max_output_tokens = int(config.get('openai.max_output_tokens', 450))
        self.session = session or build_session(retries=0, timeout=float(config.get('openai.timeout', 90)))

    def build_request(self, stock: Dict[str, Any], run_date: str, previous: Dict[str, Any]) -> Dict[str, Any]:
        prompt = build_stock_rating_prompt(
            ticker=stock['ticker'],
            company_name=stock.get('company_name'),
            run_date=run_date,
            yesterday_score=previous.get('score'),
            yesterday_bucket=previous.get('bucket'),
        )
        return {
            'model': self.model,
            'temperature': self.temperature,
            'max_output_tokens': self.max_output_tokens,
            'tools': [{'type': 'web_search'}],
            'tool_choice': {'type': 'web_search'},
            'include': ['web_search_call.action.sources'],
            'input': [
                {'role': 'system', 'content': SYSTEM_MESSAGE},
                {'role': 'user', 'content': prompt},
            ],
            'text': {
                'format': {
                    'type': 'json_schema',
                    'name': 'stock_rating',
                    'schema': STOCK_RATING_SCHEMA,
                    'strict': True,
                },
            },
        }

    def _post(self, body: Dict[str, Any]) -> requests.Response:
        url = f"{self.base_url}/responses"
        headers = {
            'Authorization': f"Bearer {self.api_key}",
            'Content-Type': 'application/json',
        }
        for attempt in range(2):
            try:
                return self.session.post(url, headers=headers, json=body)
            except (requests.ConnectionError, requests.Timeout) as e:
                if attempt:
                    raise RatingError(f"OpenAI request failed: {e}") from e
                logger.warning(f"OpenAI request failed, retrying once: {e}")
                time.sleep(RETRY_DELAY_SECONDS)
            except requests.RequestException as e:
                raise RatingError(f"OpenAI request failed: {e}") from e

    def rate(self, stock: Dict[str, Any], run_date: str, previous: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Request a rating for one stock.

        Args:
            stock: Universe row with ticker and company_name
            run_date: ISO run date
            previous: Yesterday's {score, bucket}, if any

        Returns:
            Dict with parsed (model JSON), sources, citations and raw (full payload)

        Raises:
            RatingError: On a missing key, a non-2xx response or unusable output
        """
        if not self.api_key:
            raise RatingError("Missing OPENAI_API_KEY")

        response = self._post(self.build_request(stock, run_date, previous or {}))
        if not response.ok:
            raise RatingError(f"OpenAI error {response.status_code}: {response.text}")

        try:
            payload = response.json()
        except ValueError as e:
            raise RatingError(f"OpenAI returned invalid JSON: {e}") from e

        output_text = extract_output_text(payload)
        if not output_text:
            raise RatingError("OpenAI response missing output_text")

        try:
            parsed = json.loads(output_text)
        except json.JSONDecodeError as e:
            raise RatingError(f"Model output is not valid JSON: {e}") from e
        if not isinstance(parsed, dict):
            raise RatingError("Model output is not a JSON object")

        sources, citations = extract_sources_and_citations(payload)
        return {'parsed': parsed, 'sources': sources, 'citations': citations, 'raw': payload}
