# nlp_parser.py
import re
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

import spacy

from .constants import (
    DEFAULT_PLAN_TYPE,
    FEATURE_KEYWORDS,
    MONTH_MAPPINGS,
    OPERATOR_CORRECTIONS,
    OPERATOR_SUBSTRINGS,
    PLAN_TYPES,
    SUPPORTED_OPERATORS,
    UNDATED_VALIDITIES,
    VOICE_ONLY_PHRASES,
)
from .query_plan import QueryContext

# Tokenizer only; no trained pipeline is needed for the fixed vocabulary.
nlp = spacy.blank("en")

Number = Union[int, float]

# Pre-compiled regex helpers
FIRST_INT_RE = re.compile(r"(\d+)")
DAYS_RE = re.compile(r"(\d+)\s*days?", re.IGNORECASE)
GB_RE = re.compile(r"(\d+(?:\.\d+)?)\s*GB", re.IGNORECASE)
MB_RE = re.compile(r"(\d+(?:\.\d+)?)\s*MB", re.IGNORECASE)
DAILY_DATA_RE = re.compile(r"(\d+(?:\.\d+)?)\s*GB\s*(?:per day|daily)", re.IGNORECASE)
BUDGET_RES = [
    re.compile(r"under\s+(?:rs\.?|₹)?\s*(\d+)", re.IGNORECASE),
    re.compile(r"less\s+than\s+(?:rs\.?|₹)?\s*(\d+)", re.IGNORECASE),
    re.compile(r"budget\s+of\s+(?:rs\.?|₹)?\s*(\d+)", re.IGNORECASE),
]
NON_DIGIT_RE = re.compile(r"[^0-9]")

BILLING_MONTH_DAYS = {1: 28, 2: 56, 3: 84}


def _add_signal(debug: Dict[str, Any], name: str, payload: Any = None) -> None:
    signals: List[str] = debug.setdefault("signals", [])
    signals.append(name)
    if payload is not None:
        debug.setdefault("details", {})[name] = payload


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _positive_int(value: Any) -> Optional[int]:
    try:
        number = int(round(float(value)))
    except (TypeError, ValueError, OverflowError):
        return None
    return number if number > 0 else None


# ---------------------------------------------------------------------------
# Value parsers shared with the filter pipeline
# ---------------------------------------------------------------------------


def parse_validity(validity: Any) -> Optional[Number]:
    """
    Convert a catalog validity into days.

    Numbers pass through untouched. Month/week/year strings use 30/7/365 days
    per unit; "bill cycle", "base plan" and "plan validity" have no day count
    and give None.
    """
    if _is_number(validity):
        return validity
    if not validity or not isinstance(validity, str):
        return None

    text = validity.strip().lower()
    if text in UNDATED_VALIDITIES:
        return None

    number = FIRST_INT_RE.search(text)
    if "month" in text:
        return int(number.group(1)) * 30 if number else None
    if "week" in text:
        return int(number.group(1)) * 7 if number else None
    if "year" in text:
        return int(number.group(1)) * 365 if number else None
    if "day" in text:
        days = DAYS_RE.search(text)
        return int(days.group(1)) if days else None
    return int(number.group(1)) if number else None


def parse_data_allowance(data: Any) -> Optional[float]:
    """Data allowance in GB; "unlimited" is infinite, anything unreadable is None."""
    if not data or not isinstance(data, str):
        return None
    if "unlimited" in data.lower():
        return float("inf")
    gb = GB_RE.search(data)
    if gb:
        return float(gb.group(1))
    mb = MB_RE.search(data)
    if mb:
        return float(mb.group(1)) / 1024
    return None


def parse_price(price: Any) -> Optional[Number]:
    """Numeric price; strings lose every non-digit character first."""
    if _is_number(price):
        return price
    if not isinstance(price, str):
        return None
    digits = NON_DIGIT_RE.sub("", price)
    return int(digits) if digits else None


# ---------------------------------------------------------------------------
# Operator
# ---------------------------------------------------------------------------


def correct_operator_name(value: Optional[str]) -> Optional[str]:
    """Map misspellings ("geo", "vodaphone", ...) onto a supported operator."""
    if not value or not isinstance(value, str):
        return None
    lowered = value.strip().lower()
    if lowered in OPERATOR_CORRECTIONS:
        return OPERATOR_CORRECTIONS[lowered]
    return extract_operator_from_query(lowered)


def extract_operator_from_query(query_text: str) -> Optional[str]:
    for operator, hints in OPERATOR_SUBSTRINGS:
        if any(hint in query_text for hint in hints):
            return operator
    return None


def resolve_operator(
    params: Mapping[str, Any], query_text: str
) -> Tuple[Optional[str], Optional[str], Optional[str], Optional[str]]:
    """
    Returns (operator, original_operator, corrected_operator, missing_operator).

    An explicit operator parameter beats the text. Anything outside the
    supported set is reported as missing and the search widens to all operators.
    """
    raw = params.get("operator")
    original = None
    corrected = None
    if isinstance(raw, str) and raw.strip():
        original = raw.strip().lower()
        candidate = correct_operator_name(original)
        operator = candidate or original
        if candidate and candidate != original:
            corrected = candidate
    else:
        operator = extract_operator_from_query(query_text)

    missing = None
    if operator and operator not in SUPPORTED_OPERATORS:
        missing = operator
        operator = None
    return operator, original, corrected, missing


# ---------------------------------------------------------------------------
# Plan type, budget, duration, daily data
# ---------------------------------------------------------------------------


def detect_plan_type(params: Mapping[str, Any], query_text: str) -> str:
    raw = params.get("plan_type")
    if isinstance(raw, str) and raw.strip().lower() in PLAN_TYPES:
        return raw.strip().lower()
    if "prepaid" in query_text:
        return "prepaid"
    if "postpaid" in query_text:
        return "postpaid"
    return DEFAULT_PLAN_TYPE


def extract_budget_from_query(query_text: str) -> Optional[int]:
    for pattern in BUDGET_RES:
        match = pattern.search(query_text)
        if match:
            return _positive_int(match.group(1))
    return None


def budget_from_param(value: Any) -> Optional[int]:
    """Budget entity as a number, an {amount: ...} object, or a string holding digits."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Mapping):
        return budget_from_param(value.get("amount"))
    if isinstance(value, str):
        match = FIRST_INT_RE.search(value)
        return _positive_int(match.group(1)) if match else None
    if _is_number(value):
        return _positive_int(value)
    return None


def process_budget_parameter(params: Mapping[str, Any], query_text: str) -> Optional[int]:
    return budget_from_param(params.get("budget")) or extract_budget_from_query(query_text)


def extract_duration_from_query(query_text: str) -> Optional[int]:
    """Target validity from text: billing-cycle months first, then "<N> days"."""
    for phrase, days in MONTH_MAPPINGS.items():
        if phrase in query_text:
            return days
    match = DAYS_RE.search(query_text)
    if match:
        return _positive_int(match.group(1))
    return None


def duration_from_param(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Mapping):
        try:
            amount = float(value.get("amount"))
        except (TypeError, ValueError):
            return None
        if not amount:
            return None
        unit = str(value.get("unit") or "").lower()
        if "month" in unit:
            if amount in BILLING_MONTH_DAYS:
                return BILLING_MONTH_DAYS[int(amount)]
            return _positive_int(amount * 30)
        if "week" in unit:
            return _positive_int(amount * 7)
        if "year" in unit:
            return _positive_int(amount * 365)
        return _positive_int(amount)
    if _is_number(value):
        return _positive_int(value)
    if isinstance(value, str):
        return _positive_int(parse_validity(value))
    return None


def process_duration_parameter(params: Mapping[str, Any], query_text: str) -> Optional[int]:
    """Text wins; the duration entity is only consulted when the text has nothing."""
    return extract_duration_from_query(query_text) or duration_from_param(params.get("duration"))


def extract_daily_data_from_query(query_text: str) -> Optional[float]:
    match = DAILY_DATA_RE.search(query_text)
    if not match:
        return None
    amount = float(match.group(1))
    return amount if amount > 0 else None


# ---------------------------------------------------------------------------
# Features, voice-only, sorting
# ---------------------------------------------------------------------------


def extract_features(query_text: str) -> List[str]:
    features: List[str] = []
    for keyword, canonical in FEATURE_KEYWORDS:
        if keyword in query_text and canonical not in features:
            features.append(canonical)
    if "international" in query_text and "roaming" in query_text and "international roaming" not in features:
        features.append("international roaming")
    return features


def detect_voice_only(query_text: str) -> bool:
    if any(phrase in query_text for phrase in VOICE_ONLY_PHRASES):
        return True
    if "only" in query_text and "data" not in query_text:
        return "call" in query_text or "voice" in query_text
    return False


def detect_sort_preference(query_text: str) -> Optional[str]:
    if "cheapest" in query_text:
        return "price"
    if any(word in query_text for word in ("best", "highest", "most")):
        return "value"
    return None


def parse_query_to_context(text: str, params: Optional[Mapping[str, Any]] = None) -> QueryContext:
    """
    Rule-based extractor that turns the raw query and the agent's entity
    parameters into a QueryContext.

    Supports:
      - operator names and their misspellings (parameter first, then text)
      - prepaid/postpaid
      - budgets ("under 500", "less than rs. 300", "budget of ₹200")
      - durations ("2 months" as billing cycles, "28 days", duration entities)
      - daily data floors ("1.5GB per day")
      - OTT / roaming features, voice-only requests and sort cues
    """
    params = params or {}
    query_text = (text or "").lower()
    doc = nlp(query_text)
    debug: Dict[str, Any] = {"tokens": [t.text for t in doc], "signals": []}

    operator, original, corrected, missing = resolve_operator(params, query_text)
    if corrected:
        _add_signal(debug, "operator_corrected", {"original": original, "operator": corrected})
    elif operator:
        _add_signal(debug, "operator", {"operator": operator, "source": "param" if original else "text"})
    if missing:
        _add_signal(debug, "operator_unsupported", {"operator": missing})

    plan_type = detect_plan_type(params, query_text)
    _add_signal(debug, "plan_type", {"plan_type": plan_type})

    budget = process_budget_parameter(params, query_text)
    if budget is not None:
        _add_signal(debug, "budget", {"budget": budget})

    target_duration = process_duration_parameter(params, query_text)
    if target_duration is not None:
        _add_signal(debug, "duration", {"days": target_duration})

    min_daily_data = extract_daily_data_from_query(query_text)
    if min_daily_data is not None:
        _add_signal(debug, "min_daily_data", {"gb_per_day": min_daily_data})

    features = extract_features(query_text)
    if features:
        _add_signal(debug, "features", {"features": features})

    is_voice_only = detect_voice_only(query_text)
    if is_voice_only:
        _add_signal(debug, "voice_only")

    sort_by = detect_sort_preference(query_text)
    if sort_by:
        _add_signal(debug, "sort", {"sort_by": sort_by})

    is_international = "international" in query_text
    if is_international:
        _add_signal(debug, "international")

    return QueryContext(
        query_text=query_text,
        operator=operator,
        plan_type=plan_type,
        budget=budget,
        target_duration=target_duration,
        min_daily_data=min_daily_data,
        requested_features=features,
        is_voice_only=is_voice_only,
        is_international_query=is_international,
        sort_by=sort_by,
        original_operator=original,
        corrected_operator=corrected,
        missing_operator=missing,
        debug=debug,
    )
