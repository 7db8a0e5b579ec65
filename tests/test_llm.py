import asyncio
import json

import httpx
import pytest

from hs_consolidation.config.settings import Settings
from hs_consolidation.gateways.llm import LLMCategorizer, parse_categorization
from hs_consolidation.models import ProductVariant
from hs_consolidation.util.errors import LLMResponseError

ALLOWED = ["food_products", "beverages"]


def test_parse_valid_reply():
    parsed = parse_categorization('{"category_id": "beverages", "confidence": 0.9}', ALLOWED)
    assert parsed.category_id == "beverages"
    assert parsed.confidence == 0.9


def test_parse_strips_code_fences():
    text = '```json\n{"category_id": "beverages", "confidence": 0.8, "reasoning": "wine"}\n```'
    assert parse_categorization(text, ALLOWED).reasoning == "wine"


@pytest.mark.parametrize(
    "text",
    [
        "not json",
        '{"category_id": "beverages"}',
        '{"category_id": "beverages", "confidence": 1.5}',
        '{"category_id": "beverages", "confidence": 0.9, "extra": 1}',
        '{"category_id": "apparel", "confidence": 0.9}',
    ],
)
def test_parse_rejects_bad_replies(text):
    with pytest.raises(LLMResponseError):
        parse_categorization(text, ALLOWED)


def _categorizer(handler):
    settings = Settings(ENABLE_LLM=True, ANTHROPIC_API_KEY="test-key")
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return LLMCategorizer(settings, client=client)


def _reply(text):
    return httpx.Response(200, json={"content": [{"type": "text", "text": text}]})


def test_categorize_sends_messages_request(categories):
    seen = {}

    def handler(request):
        seen["headers"] = request.headers
        seen["body"] = json.loads(request.content)
        return _reply('{"category_id": "beverages", "confidence": 0.92}')

    llm = _categorizer(handler)
    products = [ProductVariant(id="1", name="Red Wine Cabernet")]
    result = asyncio.run(llm.categorize(products, categories))

    assert result.category_id == "beverages"
    assert seen["headers"]["x-api-key"] == "test-key"
    assert seen["body"]["messages"][0]["role"] == "user"
    assert "Red Wine Cabernet" in seen["body"]["messages"][0]["content"]


def test_categorize_http_error_propagates(categories):
    llm = _categorizer(lambda request: httpx.Response(500, json={"error": "boom"}))
    with pytest.raises(httpx.HTTPStatusError):
        asyncio.run(llm.categorize([ProductVariant(id="1", name="x")], categories))


def test_categorize_rejects_unknown_category(categories):
    llm = _categorizer(lambda request: _reply('{"category_id": "toys", "confidence": 0.9}'))
    with pytest.raises(LLMResponseError):
        asyncio.run(llm.categorize([ProductVariant(id="1", name="x")], categories))


def test_categorize_rejects_non_text_block(categories):
    llm = _categorizer(lambda request: httpx.Response(200, json={"content": [{"type": "tool_use"}]}))
    with pytest.raises(LLMResponseError):
        asyncio.run(llm.categorize([ProductVariant(id="1", name="x")], categories))


def test_enabled_requires_flag_and_key():
    assert not LLMCategorizer(Settings(ENABLE_LLM=True, ANTHROPIC_API_KEY=None)).enabled
    assert not LLMCategorizer(Settings(ENABLE_LLM=False, ANTHROPIC_API_KEY="k")).enabled
    assert LLMCategorizer(Settings(ENABLE_LLM=True, ANTHROPIC_API_KEY="k")).enabled
