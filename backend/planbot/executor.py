# executor.py
import logging
import math
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple

from .constants import INTERNATIONAL_MARKERS
from .normalizer import normalize_plans
from .nlp_parser import parse_data_allowance, parse_price, parse_validity
from .query_plan import Plan, PipelineResult, QueryContext

log = logging.getLogger(__name__)

DEFAULT_SIMILAR_LIMIT = 3


def _text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (list, tuple)):
        return " ".join(str(v) for v in value if v)
    return ""


def plan_search_text(plan: Mapping[str, Any]) -> str:
    fields = ("benefits", "additional_benefits", "description", "name")
    return " ".join(t for t in (_text(plan.get(f)) for f in fields) if t).lower()


def has_feature(plan: Mapping[str, Any], feature: str) -> bool:
    if not plan or not feature:
        return False
    return feature.lower() in plan_search_text(plan)


def daily_data_rate(plan: Mapping[str, Any]) -> Optional[float]:
    """GB per day; a missing validity counts as a single day."""
    amount = parse_data_allowance(plan.get("data"))
    if amount is None:
        return None
    days = parse_validity(plan.get("validity")) or 1
    if amount == math.inf:
        return math.inf
    return amount / days


# ---------------------------------------------------------------------------
# Filter stages. Each returns a new list and leaves its input untouched.
# ---------------------------------------------------------------------------


def is_voice_only_plan(plan: Mapping[str, Any]) -> bool:
    data = plan.get("data")
    data_text = data.strip().lower() if isinstance(data, str) else ""
    # "10GB" must not read as zero data, so compare the parsed amount.
    zero_data = data_text == "no data" or parse_data_allowance(data) == 0

    benefits = _text(plan.get("benefits")).lower()
    voice_benefits = (
        bool(benefits)
        and "data" not in benefits
        and "gb" not in benefits
        and ("voice" in benefits or "calls" in benefits)
    )
    return zero_data and voice_benefits


def filter_voice_only_plans(plans: Sequence[Plan]) -> List[Plan]:
    return [plan for plan in plans if is_voice_only_plan(plan)]


def filter_by_daily_data(plans: Sequence[Plan], min_daily_data: float) -> List[Plan]:
    kept: List[Plan] = []
    for plan in plans:
        rate = daily_data_rate(plan)
        if not rate:
            continue
        if rate >= min_daily_data:
            kept.append(plan)
    return kept


def matches_constraints(plan: Mapping[str, Any], target_duration: Optional[int], budget: Optional[int]) -> bool:
    if target_duration is not None and parse_validity(plan.get("validity")) != target_duration:
        return False
    if budget is not None:
        price = parse_price(plan.get("price"))
        if price is None or price > budget:
            return False
    return True


def filter_plans_by_constraints(
    plans: Sequence[Plan], target_duration: Optional[int], budget: Optional[int]
) -> List[Plan]:
    kept: List[Plan] = []
    for plan in plans:
        if matches_constraints(plan, target_duration, budget):
            kept.append(plan)
        else:
            log.debug(
                "Plan filtered out: price=%s validity=%s (target=%s, budget=%s)",
                plan.get("price"),
                plan.get("validity"),
                target_duration,
                budget,
            )
    return kept


def filter_plans_by_features(plans: Sequence[Plan], features: Iterable[str]) -> List[Plan]:
    wanted = list(features)
    return [plan for plan in plans if all(has_feature(plan, f) for f in wanted)]


def check_feature_availability(plans: Sequence[Plan], features: Iterable[str]) -> Tuple[List[str], List[str]]:
    available: List[str] = []
    unavailable: List[str] = []
    for feature in features:
        if any(has_feature(plan, feature) for plan in plans):
            available.append(feature)
        else:
            unavailable.append(feature)
    return available, unavailable


def is_international_plan(plan: Mapping[str, Any]) -> bool:
    text = plan_search_text(plan)
    return any(marker in text for marker in INTERNATIONAL_MARKERS)


def filter_international_plans(plans: Sequence[Plan]) -> List[Plan]:
    return [plan for plan in plans if is_international_plan(plan)]


# ---------------------------------------------------------------------------
# Fallback and ordering
# ---------------------------------------------------------------------------


def find_similar_plans(
    plans: Sequence[Plan],
    target_duration: int,
    budget: Optional[int] = None,
    max_results: int = DEFAULT_SIMILAR_LIMIT,
) -> List[Plan]:
    """
    Plans closest to the requested validity, within budget when one is set.
    sorted() is stable, so equal distances keep catalog order.
    """
    scored = []
    for plan in plans:
        days = parse_validity(plan.get("validity"))
        if days is None:
            continue
        if budget is not None:
            price = parse_price(plan.get("price"))
            if price is None or price > budget:
                continue
        scored.append((abs(days - target_duration), plan))
    scored = sorted(scored, key=lambda item: item[0])
    return [plan for _, plan in scored[: max(max_results, 0)]]


def sort_plans(plans: Sequence[Plan], sort_by: Optional[str]) -> List[Plan]:
    """Stable ordering for "cheapest" (price asc) and "best" (daily data desc)."""
    if sort_by == "price":
        def price_key(plan: Plan):
            price = parse_price(plan.get("price"))
            return (price is None, price if price is not None else 0)

        return sorted(plans, key=price_key)
    if sort_by == "value":
        def value_key(plan: Plan):
            rate = daily_data_rate(plan)
            return (rate is None, -(rate if rate is not None else 0))

        return sorted(plans, key=value_key)
    return list(plans)


def cheapest_price(plans: Sequence[Plan]) -> Optional[Any]:
    prices = [p for p in (parse_price(plan.get("price")) for plan in plans) if p is not None]
    return min(prices) if prices else None


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


def run_pipeline(
    context: QueryContext,
    plans: Sequence[Plan],
    similar_limit: int = DEFAULT_SIMILAR_LIMIT,
) -> PipelineResult:
    """
    Apply voice-only -> daily data -> duration/budget -> features ->
    international to an already normalized plan list.
    """
    result = PipelineResult(plans=list(plans))
    counts = {"catalog": len(plans)}
    candidates: List[Plan] = list(plans)

    if context.is_voice_only:
        voice_plans = filter_voice_only_plans(candidates)
        log.info("Found %d voice-only plans", len(voice_plans))
        if voice_plans:
            candidates = voice_plans
            result.voice_only_applied = True
        else:
            log.info("No specific voice-only plans found, continuing with all plans")
        counts["voice_only"] = len(candidates)

    if context.min_daily_data:
        candidates = filter_by_daily_data(candidates, context.min_daily_data)
        counts["daily_data"] = len(candidates)

    filtered = filter_plans_by_constraints(candidates, context.target_duration, context.budget)
    counts["constraints"] = len(filtered)
    log.info("Filtered to %d matching plans", len(filtered))

    if context.requested_features:
        available, unavailable = check_feature_availability(filtered, context.requested_features)
        result.available_features = available
        result.unavailable_features = unavailable
        filtered = filter_plans_by_features(filtered, context.requested_features)
        counts["features"] = len(filtered)
        if not filtered:
            result.short_circuit = "features"
            result.counts = counts
            return result

    if context.is_international_query:
        filtered = filter_international_plans(filtered)
        counts["international"] = len(filtered)
        if not filtered:
            result.short_circuit = "international"
            result.counts = counts
            return result

    if filtered:
        result.filtered = sort_plans(filtered, context.sort_by)
    elif context.target_duration and candidates:
        result.alternatives = find_similar_plans(
            candidates, context.target_duration, context.budget, similar_limit
        )
        counts["alternatives"] = len(result.alternatives)

    result.counts = counts
    return result


def execute_context(
    context: QueryContext,
    catalog: Mapping[str, Any],
    similar_limit: int = DEFAULT_SIMILAR_LIMIT,
) -> PipelineResult:
    """Normalize the catalog snapshot for the context and run the pipeline on it."""
    plans = normalize_plans(catalog, context.operator, context.plan_type)
    return run_pipeline(context, plans, similar_limit=similar_limit)
