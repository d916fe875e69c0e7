# responder.py
import random
import re
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .constants import CONVERSATIONAL_RESPONSES
from .executor import cheapest_price
from .nlp_parser import parse_price
from .query_plan import Plan, PipelineResult, QueryContext

DEFAULT_PAGE_SIZE = 8

TEMPLATES: Dict[str, str] = {
    "plans_found_single": "Here's a {operator}{plan_type} plan{budget}{duration}{sort}:",
    "plans_found_multiple": "Here are {operator}{plan_type} plans{budget}{duration}{sort}:",
    "limited_first_page": "(Showing {shown} out of {total} available plans)",
    "limited_later_page": "(Showing plans {start}-{end} out of {total} available plans)",
    "alternatives_duration": "No exact {operator}{plan_type} plans with {duration} days validity{budget} found. Here are some alternatives:",
    "no_plans_budget": "No {operator}{plan_type} plans found under ₹{budget}. The cheapest available plan is ₹{min_price}.",
    "no_plans_duration": "No matching {operator}{plan_type} plans found with {duration} days validity{budget}. Try adjusting your filters.",
    "no_plans_filters": "No matching {operator}{plan_type} plans found{budget}. Try adjusting your filters.",
    "no_plans_operator": "No {plan_type} plans available for {operator_name}. Would you like to check {alternative} plans instead?",
    "no_plans_features": "No {operator}{plan_type} plans found with {features}.",
    "no_plans_international": "No {operator}international roaming plans found. Please check the operator's website or customer care for international roaming activation and rates.",
    "partial_features": " Plans with {available} are available, but none include {unavailable}.",
    "correction_note": "(Assuming you meant {corrected} instead of {original}) ",
    "missing_operator": "Note: I don't have information on {operator} plans. ",
    "voice_only_fallback": "Note: I couldn't find plans without data, so here are all matching plans.",
    "plan_item": "- {provider}₹{price}: {data}{validity}{benefits}",
}

_TRIGGER_RES: List[Tuple[re.Pattern, List[str]]] = [
    (re.compile(r"\b" + re.escape(trigger) + r"\b"), replies)
    for trigger, replies in CONVERSATIONAL_RESPONSES.items()
]


def conversational_reply(query_text: str, rng: Optional[random.Random] = None) -> Optional[str]:
    """Canned greeting/farewell for small talk, or None for a real query."""
    normalized = (query_text or "").lower().strip()
    for pattern, replies in _TRIGGER_RES:
        if pattern.search(normalized):
            return (rng or random).choice(replies)
    return None


def format_validity(validity: Any, plan_type: str) -> str:
    if not validity:
        return "monthly bill cycle" if plan_type == "postpaid" else ""
    if validity == "base plan":
        return "with base plan"
    if validity in ("bill cycle", "monthly"):
        return "monthly bill cycle"
    if isinstance(validity, (int, float)) and not isinstance(validity, bool):
        return f"{validity} days"
    return str(validity)


def _join(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value if v)
    return str(value) if value else ""


def format_plan_item(plan: Mapping[str, Any], show_provider: bool, plan_type: str) -> str:
    validity = format_validity(plan.get("validity"), plan_type)
    provider = plan.get("provider")
    benefits = ", ".join(b for b in (_join(plan.get("benefits")), _join(plan.get("additional_benefits"))) if b)
    price = parse_price(plan.get("price"))
    return TEMPLATES["plan_item"].format(
        provider=f"[{provider.upper()}] " if show_provider and provider else "",
        price=price if price is not None else plan.get("price", "?"),
        data=plan.get("data") or "",
        validity=f" ({validity})" if validity else "",
        benefits=f" {benefits}" if benefits else "",
    )


def _format_plans(plans: Sequence[Plan], context: QueryContext) -> str:
    show_provider = context.operator is None
    return "\n".join(format_plan_item(p, show_provider, context.plan_type) for p in plans)


def context_strings(context: QueryContext, voice_tag: bool = True) -> Dict[str, str]:
    """Fragments shared by every template for this request."""
    plan_type = context.plan_type.upper()
    if context.is_voice_only and voice_tag:
        plan_type += " VOICE-ONLY"
    sort = ""
    if context.sort_by == "price":
        sort = " (cheapest first)"
    elif context.sort_by == "value":
        sort = " (best value first)"
    return {
        "operator": f"{context.operator.upper()} " if context.operator else "",
        "operator_name": context.operator.upper() if context.operator else "any operator",
        "plan_type": plan_type,
        "budget": f" under ₹{context.budget}" if context.budget else "",
        "duration": f" with {context.target_duration} days validity" if context.target_duration else "",
        "sort": sort,
    }


def operator_notes(context: QueryContext) -> str:
    notes = ""
    if context.corrected_operator and context.original_operator:
        notes += TEMPLATES["correction_note"].format(
            corrected=context.corrected_operator.upper(),
            original=context.original_operator.upper(),
        )
    if context.missing_operator:
        notes += TEMPLATES["missing_operator"].format(operator=context.missing_operator.upper())
    return notes


def page_bounds(total: int, offset: int = 0, page_size: int = DEFAULT_PAGE_SIZE) -> Tuple[int, int]:
    """[start, end) of the requested page; out-of-range offsets restart at 0."""
    if offset < 0 or offset >= total:
        offset = 0
    return offset, min(offset + page_size, total)


def compose_plans_found(
    context: QueryContext,
    result: PipelineResult,
    offset: int = 0,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> str:
    plans = result.filtered
    total = len(plans)
    start, end = page_bounds(total, offset, page_size)
    page = plans[start:end]

    voice_fallback = context.is_voice_only and not result.voice_only_applied
    strings = context_strings(context, voice_tag=not voice_fallback)

    response = operator_notes(context)
    if voice_fallback:
        response += TEMPLATES["voice_only_fallback"] + "\n\n"

    key = "plans_found_single" if len(page) == 1 else "plans_found_multiple"
    response += TEMPLATES[key].format(**strings)
    response += "\n\n" + _format_plans(page, context)

    if start > 0:
        response += "\n\n" + TEMPLATES["limited_later_page"].format(start=start + 1, end=end, total=total)
    elif total > end:
        response += "\n\n" + TEMPLATES["limited_first_page"].format(shown=end, total=total)
    return response


def compose_alternatives(context: QueryContext, result: PipelineResult) -> str:
    voice_fallback = context.is_voice_only and not result.voice_only_applied
    strings = context_strings(context, voice_tag=not voice_fallback)
    response = operator_notes(context)
    response += TEMPLATES["alternatives_duration"].format(
        operator=strings["operator"],
        plan_type=strings["plan_type"],
        duration=context.target_duration,
        budget=strings["budget"],
    )
    return response + "\n\n" + _format_plans(result.alternatives, context)


def compose_no_plans(context: QueryContext, result: PipelineResult) -> str:
    """
    Pick the message for the constraint that emptied the result:
    features > international > budget > duration > generic.
    """
    strings = context_strings(context)
    response = operator_notes(context)

    if result.short_circuit == "features":
        response += TEMPLATES["no_plans_features"].format(
            operator=strings["operator"],
            plan_type=strings["plan_type"],
            features=" and ".join(context.requested_features),
        )
        if result.available_features and result.unavailable_features:
            response += TEMPLATES["partial_features"].format(
                available=" and ".join(result.available_features),
                unavailable=" or ".join(result.unavailable_features),
            )
        return response

    if result.short_circuit == "international":
        return response + TEMPLATES["no_plans_international"].format(operator=strings["operator"])

    if not result.plans:
        alternative = "postpaid" if context.plan_type == "prepaid" else "prepaid"
        return response + TEMPLATES["no_plans_operator"].format(
            plan_type=strings["plan_type"],
            operator_name=strings["operator_name"],
            alternative=alternative,
        )

    min_price = cheapest_price(result.plans)
    if context.budget and min_price is not None and min_price > context.budget:
        return response + TEMPLATES["no_plans_budget"].format(
            operator=strings["operator"],
            plan_type=strings["plan_type"],
            budget=context.budget,
            min_price=min_price,
        )

    if context.target_duration:
        return response + TEMPLATES["no_plans_duration"].format(
            operator=strings["operator"],
            plan_type=strings["plan_type"],
            duration=context.target_duration,
            budget=strings["budget"],
        )

    return response + TEMPLATES["no_plans_filters"].format(
        operator=strings["operator"],
        plan_type=strings["plan_type"],
        budget=strings["budget"],
    )


def compose_response(
    context: QueryContext,
    result: PipelineResult,
    offset: int = 0,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> str:
    if result.filtered:
        return compose_plans_found(context, result, offset=offset, page_size=page_size)
    if result.alternatives:
        return compose_alternatives(context, result)
    return compose_no_plans(context, result)
