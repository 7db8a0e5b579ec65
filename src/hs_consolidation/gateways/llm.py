# gateways/llm.py
import json
import logging
from typing import Optional, Sequence

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..config.settings import Settings, get_settings
from ..models import ProductCategory, ProductVariant
from ..util.errors import LLMResponseError
from ..util.timing import timed

logger = logging.getLogger(__name__)


class LLMCategorization(BaseModel):
    """The only reply shape accepted from the model."""

    model_config = ConfigDict(extra="forbid")

    category_id: str = Field(min_length=1)
    confidence: float = Field(ge=0.0, le=1.0)
    reasoning: str = ""


def _user_prompt(
    products: Sequence[ProductVariant],
    categories: Sequence[ProductCategory],
    max_examples: int,
) -> str:
    """
    Build the user message: catalog first, then the grouped listings.
    """
    catalog = "\n".join(
        f"- {c.id}: {c.name}. {c.description}".rstrip() for c in categories
    )
    listings = "\n".join(
        f"- {p.name}" + (f": {p.description}" if p.description else "")
        for p in list(products)[:max_examples]
    )
    return (
        f"CATEGORIES:\n{catalog}\n\n"
        f"PRODUCT LISTINGS ({len(products)} total, showing up to {max_examples}):\n{listings}\n\n"
        "Return JSON only."
    )


def _strip_fences(text: str) -> str:
    raw = (text or "").strip()
    if raw.startswith("```"):
        raw = raw.strip("`")
        if raw.startswith("json"):
            raw = raw[4:]
    return raw.strip()


def parse_categorization(text: str, allowed_ids: Sequence[str]) -> LLMCategorization:
    """
    Validate a raw model reply against the strict schema.

    Raises
    ------
    LLMResponseError
        On invalid JSON, missing or extra keys, out-of-range confidence,
        or a category id that is not in the catalog.
    """
    raw = _strip_fences(text)
    try:
        parsed = LLMCategorization.model_validate(json.loads(raw))
    except json.JSONDecodeError as e:
        raise LLMResponseError(f"LLM reply is not JSON: {e}") from e
    except ValidationError as e:
        raise LLMResponseError(f"LLM reply does not match schema: {e.error_count()} error(s)") from e

    if parsed.category_id not in set(allowed_ids):
        raise LLMResponseError(f"LLM chose unknown category {parsed.category_id!r}")
    return parsed


class LLMCategorizer:
    """
    Optional collaborator that asks a messages-API model to pick the
    category for a cluster of listings.

    Transport errors surface as `httpx.HTTPError`, malformed replies as
    `LLMResponseError`. The engine treats both as a signal to use the
    heuristic matcher instead.
    """

    def __init__(self, settings: Optional[Settings] = None, client: Optional[httpx.AsyncClient] = None):
        self.settings = settings or get_settings()
        self._client = client

    @property
    def enabled(self) -> bool:
        return bool(self.settings.ENABLE_LLM and self.settings.ANTHROPIC_API_KEY)

    async def _post(self, payload: dict) -> dict:
        s = self.settings
        headers = {
            "x-api-key": s.ANTHROPIC_API_KEY or "",
            "anthropic-version": s.ANTHROPIC_VERSION,
            "content-type": "application/json",
        }
        if self._client is not None:
            resp = await self._client.post(s.ANTHROPIC_API_URL, headers=headers, json=payload)
        else:
            async with httpx.AsyncClient(timeout=s.LLM_TIMEOUT_SECONDS) as client:
                resp = await client.post(s.ANTHROPIC_API_URL, headers=headers, json=payload)
        resp.raise_for_status()
        try:
            return resp.json()
        except ValueError as e:
            raise LLMResponseError("LLM response body is not JSON") from e

    async def categorize(
        self,
        products: Sequence[ProductVariant],
        categories: Sequence[ProductCategory],
    ) -> LLMCategorization:
        s = self.settings
        payload = {
            "model": s.ANTHROPIC_MODEL,
            "max_tokens": 300,
            "system": s.CATEGORIZE_SYSTEM_PROMPT,
            "messages": [
                {"role": "user", "content": _user_prompt(products, categories, s.LLM_MAX_EXAMPLES)}
            ],
            "temperature": 0.0,
        }
        with timed(logger, "ai.categorize", model=s.ANTHROPIC_MODEL, n=len(products)):
            data = await self._post(payload)

        content = data.get("content") if isinstance(data, dict) else None
        if not content or not isinstance(content, list) or not isinstance(content[0], dict):
            raise LLMResponseError("LLM response has no content blocks")
        node = content[0]
        if node.get("type") != "text":
            raise LLMResponseError(f"Unexpected content block type {node.get('type')!r}")

        result = parse_categorization(node.get("text") or "", [c.id for c in categories])
        logger.info("ai.categorize.result category=%s conf=%.2f", result.category_id, result.confidence)
        return result
