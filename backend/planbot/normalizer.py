# normalizer.py
import logging
from typing import Any, List, Mapping, Optional

from .constants import SUPPORTED_OPERATORS
from .query_plan import Plan

log = logging.getLogger(__name__)


def flatten_prepaid_plans(prepaid: Any) -> List[Plan]:
    """
    Flatten {category: [plans]} or {category: {subcategory: [plans]}}.

    Only one extra level of nesting is read for prepaid catalogs.
    """
    plans: List[Plan] = []
    if not isinstance(prepaid, Mapping):
        return plans
    for category in prepaid.values():
        if isinstance(category, list):
            plans.extend(category)
        elif isinstance(category, Mapping):
            for sub_category in category.values():
                if isinstance(sub_category, list):
                    plans.extend(sub_category)
    return plans


def flatten_postpaid_plans(postpaid: Any) -> List[Plan]:
    """Postpaid lists pass through; mappings are walked up to three levels deep."""
    if isinstance(postpaid, list):
        return postpaid
    plans: List[Plan] = []
    if not isinstance(postpaid, Mapping):
        return plans
    for category in postpaid.values():
        if isinstance(category, list):
            plans.extend(category)
        elif isinstance(category, Mapping):
            for sub_category in category.values():
                if isinstance(sub_category, list):
                    plans.extend(sub_category)
                elif isinstance(sub_category, Mapping):
                    for third_level in sub_category.values():
                        if isinstance(third_level, list):
                            plans.extend(third_level)
    return plans


def raw_plans_for(catalog: Mapping[str, Any], operator: str, plan_type: str) -> Optional[Any]:
    """Raw plan-type subtree for one operator, or None when the catalog has none."""
    providers = catalog.get("telecom_providers")
    if not isinstance(providers, Mapping):
        return None
    provider = providers.get(operator)
    if not isinstance(provider, Mapping):
        return None
    plans = provider.get("plans")
    if not isinstance(plans, Mapping):
        return None
    return plans.get(plan_type)


def _stamp(plans: List[Any], operator: str) -> List[Plan]:
    return [{**plan, "provider": operator} for plan in plans if isinstance(plan, Mapping)]


def normalize_operator_plans(catalog: Mapping[str, Any], operator: str, plan_type: str) -> List[Plan]:
    raw = raw_plans_for(catalog, operator, plan_type)
    if raw is None:
        return []
    if plan_type == "postpaid":
        flat = flatten_postpaid_plans(raw)
    else:
        flat = flatten_prepaid_plans(raw)
    return _stamp(flat, operator)


def normalize_plans(catalog: Mapping[str, Any], operator: Optional[str], plan_type: str) -> List[Plan]:
    """
    Flat, provider-stamped plan list for an operator, or for every known
    operator in turn when operator is None.
    """
    operators = [operator] if operator else list(SUPPORTED_OPERATORS)
    plans: List[Plan] = []
    for op in operators:
        plans.extend(normalize_operator_plans(catalog, op, plan_type))

    for index, plan in enumerate(plans):
        if not plan.get("price") or not plan.get("data"):
            log.warning("Plan at index %d has missing required fields: %s", index, plan)

    log.info(
        "Found %d %s plans for %s",
        len(plans),
        plan_type,
        operator or "all operators",
    )
    return plans
