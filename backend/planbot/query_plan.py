# query_plan.py
from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

# Raw catalog entry. Every field is optional and may be str or number.
Plan = Dict[str, Any]

PlanType = Literal["prepaid", "postpaid"]
SortBy = Literal["price", "value"]


class QueryContext(BaseModel):
    """Signals extracted from one request; frozen once built."""

    model_config = ConfigDict(frozen=True)

    query_text: str = ""
    operator: Optional[str] = None
    plan_type: PlanType = "prepaid"
    budget: Optional[int] = None
    target_duration: Optional[int] = None
    min_daily_data: Optional[float] = None
    requested_features: Tuple[str, ...] = ()
    is_voice_only: bool = False
    is_international_query: bool = False
    sort_by: Optional[SortBy] = None

    # Operator bookkeeping for the user-facing notes
    original_operator: Optional[str] = None
    corrected_operator: Optional[str] = None
    missing_operator: Optional[str] = None

    debug: Dict[str, Any] = Field(default_factory=dict)


ShortCircuit = Literal["features", "international"]


class PipelineResult(BaseModel):
    # Every normalized candidate for operator/plan type
    plans: List[Plan] = Field(default_factory=list)
    filtered: List[Plan] = Field(default_factory=list)
    alternatives: List[Plan] = Field(default_factory=list)

    available_features: List[str] = Field(default_factory=list)
    unavailable_features: List[str] = Field(default_factory=list)

    voice_only_applied: bool = False
    short_circuit: Optional[ShortCircuit] = None
    counts: Dict[str, int] = Field(default_factory=dict)
