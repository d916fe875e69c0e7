import json
import logging
from typing import Any, List, Mapping, Optional

from openai import OpenAI  # pip install openai>=1.0.0

from .config import Settings, get_settings
from .constants import KNOWN_FEATURES, PLAN_TYPES, SUPPORTED_OPERATORS
from .nlp_parser import (
    budget_from_param,
    correct_operator_name,
    detect_plan_type,
    duration_from_param,
    resolve_operator,
)
from .query_plan import QueryContext

log = logging.getLogger(__name__)

_client: Optional[OpenAI] = None

SYSTEM_PROMPT = """
You are a strict JSON API that converts natural language questions about
Indian mobile recharge plans into structured filters.

Only output JSON using this schema:

{
  "operator": "jio" | "airtel" | "vi" | null,
  "plan_type": "prepaid" | "postpaid" | null,
  "budget": int or null,
  "duration_days": int or null,
  "min_daily_data_gb": float or null,
  "features": [ "international roaming", "ott", "amazon prime", "netflix", "hotstar" ],
  "voice_only": bool,
  "sort_by": "price" | "value" | null
}

Rules:
- Be conservative; if you are unsure, leave fields empty or null.
- "vodafone", "idea" and "vodafone idea" are the operator "vi"; "geo" means "jio".
- A month of validity is a 28 day billing cycle: 1 month = 28, 2 months = 56,
  3 months = 84.
- "budget" is the maximum price in rupees ("under 500" -> 500).
- "voice_only" is true only for calling-only plans without data.
- "cheapest" means sort_by="price"; "best", "highest" or "most" means sort_by="value".
- Always output valid JSON and nothing else.
"""

JSON_SCHEMA_SPEC = {
    "name": "PlanQueryExtraction",
    "schema": {
        "type": "object",
        "properties": {
            "operator": {"type": ["string", "null"], "enum": ["jio", "airtel", "vi", None]},
            "plan_type": {"type": ["string", "null"], "enum": ["prepaid", "postpaid", None]},
            "budget": {"type": ["integer", "null"]},
            "duration_days": {"type": ["integer", "null"]},
            "min_daily_data_gb": {"type": ["number", "null"]},
            "features": {"type": "array", "items": {"type": "string"}},
            "voice_only": {"type": "boolean"},
            "sort_by": {"type": ["string", "null"], "enum": ["price", "value", None]},
        },
        "required": ["operator", "plan_type", "features", "voice_only"],
        "additionalProperties": False,
    },
}


def _get_client(settings: Settings) -> OpenAI:
    global _client
    if _client is None:
        _client = OpenAI(api_key=settings.openai_api_key, base_url=settings.openai_base_url)
    return _client


def _sanitize_features(raw: Any) -> List[str]:
    if not isinstance(raw, list):
        return []
    features: List[str] = []
    for item in raw:
        name = str(item).strip().lower()
        if name in ("prime video", "prime"):
            name = "amazon prime"
        if name in KNOWN_FEATURES and name not in features:
            features.append(name)
    return features


def context_from_ai_payload(
    data: Mapping[str, Any], text: str, params: Optional[Mapping[str, Any]] = None
) -> QueryContext:
    """
    Clamp the model's answer onto the same vocabulary the rule-based parser uses.

    Agent parameters keep their usual priority: an explicit operator wins over
    the model, and budget/duration/plan type fill in what the model left empty.
    """
    params = params or {}
    query_text = (text or "").lower()

    original = None
    corrected = None
    param_operator = params.get("operator")
    if isinstance(param_operator, str) and param_operator.strip():
        operator, original, corrected, missing = resolve_operator(params, query_text)
    else:
        raw_operator = data.get("operator")
        operator = correct_operator_name(raw_operator) if raw_operator else None
        missing = None
        if raw_operator and operator not in SUPPORTED_OPERATORS:
            missing = str(raw_operator).lower()
            operator = None

    plan_type = data.get("plan_type")
    if plan_type not in PLAN_TYPES:
        plan_type = detect_plan_type(params, query_text)

    budget = budget_from_param(data.get("budget")) or budget_from_param(params.get("budget"))
    target_duration = duration_from_param(data.get("duration_days")) or duration_from_param(
        params.get("duration")
    )

    min_daily = data.get("min_daily_data_gb")
    if not isinstance(min_daily, (int, float)) or isinstance(min_daily, bool) or min_daily <= 0:
        min_daily = None

    sort_by = data.get("sort_by")
    if sort_by not in ("price", "value"):
        sort_by = None

    return QueryContext(
        query_text=query_text,
        operator=operator,
        plan_type=plan_type,
        budget=budget,
        target_duration=target_duration,
        min_daily_data=float(min_daily) if min_daily is not None else None,
        requested_features=_sanitize_features(data.get("features")),
        is_voice_only=bool(data.get("voice_only")),
        is_international_query="international" in query_text,
        sort_by=sort_by,
        original_operator=original,
        corrected_operator=corrected,
        missing_operator=missing,
        debug={"source": "ai_fallback", "raw_ai": dict(data)},
    )


def ai_fallback_parse_query_to_context(
    text: str,
    params: Optional[Mapping[str, Any]] = None,
    settings: Optional[Settings] = None,
    client: Optional[Any] = None,
) -> Optional[QueryContext]:
    """
    Ask the LLM to extract the query signals; agent parameters are merged in
    with the same priority the rule-based parser gives them.

    Returns a QueryContext if parsing works, otherwise None so the caller
    can fall back to the rule-based parser.
    """
    settings = settings or get_settings()
    if client is None:
        if not settings.openai_api_key:
            log.warning("AI fallback disabled: OPENAI_API_KEY not set")
            return None
        client = _get_client(settings)

    user_prompt = f'User query:\n"{text}"'
    try:
        chat_resp = client.chat.completions.create(
            model=settings.ai_model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": user_prompt},
            ],
            response_format={
                "type": "json_schema",
                "json_schema": JSON_SCHEMA_SPEC,
            },
            temperature=0,
        )
        content = chat_resp.choices[0].message.content
    except Exception as exc:
        log.warning("AI fallback: OpenAI request failed via chat.completions: %s", exc)
        return None

    if not content:
        return None

    try:
        data = json.loads(content)
    except ValueError as exc:
        log.warning("AI fallback: model returned non-JSON content: %s", exc)
        return None
    if not isinstance(data, dict):
        log.warning("AI fallback: model returned %s instead of an object", type(data).__name__)
        return None

    context = context_from_ai_payload(data, text, params)
    log.info("AI context: %s", context.model_dump(exclude={"debug"}))
    return context
