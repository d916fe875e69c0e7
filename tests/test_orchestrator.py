import json
from types import SimpleNamespace

import pytest

from planbot import ai_fallback_parser, orchestrator
from planbot.config import Settings
from planbot.errors import CatalogUnavailableError
from planbot.orchestrator import handle
from planbot.query_plan import QueryContext


def _unreachable_catalog():
    raise AssertionError("catalog should not be loaded")


def test_small_talk_never_loads_catalog(settings):
    outcome = handle("hi", {}, _unreachable_catalog, settings=settings)
    assert outcome.conversational is True
    assert outcome.context is None
    assert outcome.filtered == []


def test_rule_based_query(catalog, settings):
    outcome = handle("show me jio prepaid plans under 500", {}, catalog, settings=settings)
    assert outcome.context.operator == "jio"
    assert [p["price"] for p in outcome.filtered] == ["149", "399", "99"]
    assert (outcome.offset, outcome.shown, outcome.total) == (0, 3, 3)
    assert outcome.debug["parser_mode"] == "regex"
    assert outcome.text.startswith("Here are JIO PREPAID plans under ₹500:")


def test_page_metadata_follows_offset(catalog, settings):
    settings.max_plans_to_show = 2
    outcome = handle("jio plans", {}, catalog, offset=2, settings=settings)
    assert (outcome.offset, outcome.shown, outcome.total) == (2, 2, 4)
    assert outcome.text.endswith("(Showing plans 3-4 out of 4 available plans)")


def test_catalog_failure_propagates(settings):
    def broken():
        raise CatalogUnavailableError("Request timeout while fetching plans data")

    with pytest.raises(CatalogUnavailableError):
        handle("jio plans", {}, broken, settings=settings)


def test_ai_mode_uses_model_context(catalog, settings, monkeypatch):
    monkeypatch.setattr(
        orchestrator,
        "ai_fallback_parse_query_to_context",
        lambda text, params=None, settings=None: QueryContext(query_text=text, operator="vi", plan_type="postpaid"),
    )
    outcome = handle("something for my vodafone postpaid", {}, catalog, parser_mode="ai", settings=settings)
    assert outcome.ai_used is True
    assert [(p["provider"], p["price"]) for p in outcome.filtered] == [("vi", "399")]


def test_ai_mode_falls_back_to_rules(catalog, settings):
    outcome = handle("airtel postpaid plans", {}, catalog, parser_mode="ai", settings=settings)
    assert settings.openai_api_key is None
    assert outcome.ai_used is False
    assert outcome.context.operator == "airtel"
    assert outcome.context.plan_type == "postpaid"


class FakeOpenAI:
    def __init__(self, payload):
        message = SimpleNamespace(content=json.dumps(payload))
        response = SimpleNamespace(choices=[SimpleNamespace(message=message)])
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=lambda **kwargs: response))


AI_EMPTY_PAYLOAD = {"operator": None, "plan_type": None, "features": [], "voice_only": False}


def _use_fake_openai(monkeypatch, payload):
    monkeypatch.setattr(ai_fallback_parser, "_get_client", lambda settings: FakeOpenAI(payload))


def test_ai_mode_keeps_operator_parameter(catalog, monkeypatch):
    _use_fake_openai(monkeypatch, dict(AI_EMPTY_PAYLOAD, budget=200))
    outcome = handle(
        "show me plans under 200",
        {"operator": "airtel"},
        catalog,
        parser_mode="ai",
        settings=Settings(openai_api_key="x"),
    )
    assert outcome.ai_used is True
    assert outcome.context.operator == "airtel"
    assert [(p["provider"], p["price"]) for p in outcome.filtered] == [("airtel", "179")]
    assert outcome.text.startswith("Here's a AIRTEL PREPAID plan under ₹200:")


def test_ai_mode_fills_gaps_from_parameters(catalog, monkeypatch):
    _use_fake_openai(monkeypatch, AI_EMPTY_PAYLOAD)
    outcome = handle(
        "something affordable",
        {"operator": "geo", "budget": {"amount": 200}, "duration": {"amount": 1, "unit": "month"}},
        catalog,
        parser_mode="ai",
        settings=Settings(openai_api_key="x"),
    )
    ctx = outcome.context
    assert (ctx.operator, ctx.corrected_operator, ctx.budget, ctx.target_duration) == ("jio", "jio", 200, 28)
    assert [p["price"] for p in outcome.filtered] == ["149", "99"]
    assert outcome.text.startswith("(Assuming you meant JIO instead of GEO)")
