import re
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

MAX_QUERY_LENGTH = 500

_UNSAFE_CHARS_RE = re.compile(r"[<>{}\[\]`]")


def sanitize_query_text(value: str) -> str:
    """Strip markup-ish characters and surrounding whitespace."""
    return _UNSAFE_CHARS_RE.sub("", value).strip()


class WebhookParameters(BaseModel):
    """Agent entities; each may be a scalar, a string or an {amount, unit} object."""

    model_config = ConfigDict(extra="allow")

    operator: Optional[str] = None
    plan_type: Optional[str] = None
    budget: Optional[Any] = None
    duration: Optional[Any] = None
    offset: Optional[int] = None


class QueryResult(BaseModel):
    model_config = ConfigDict(extra="ignore")

    queryText: str = Field(min_length=1, max_length=MAX_QUERY_LENGTH)
    parameters: WebhookParameters = Field(default_factory=WebhookParameters)
    languageCode: Optional[str] = None

    @field_validator("queryText")
    @classmethod
    def _clean_query_text(cls, value: str) -> str:
        cleaned = sanitize_query_text(value)
        if not cleaned:
            raise ValueError("Query text cannot be empty")
        return cleaned


class WebhookRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    queryResult: QueryResult
    session: Optional[str] = None
    responseId: Optional[str] = None


class WebhookResponse(BaseModel):
    fulfillmentText: str
    payload: Dict[str, Any] = Field(default_factory=dict)


class QueryRequest(BaseModel):
    query: str = Field(min_length=1, max_length=MAX_QUERY_LENGTH)
    parameters: Dict[str, Any] = Field(default_factory=dict)
    parser_mode: Literal["regex", "ai"] = "regex"
    offset: int = Field(default=0, ge=0)

    @field_validator("query")
    @classmethod
    def _clean_query(cls, value: str) -> str:
        cleaned = sanitize_query_text(value)
        if not cleaned:
            raise ValueError("Query text cannot be empty")
        return cleaned


class QueryFilters(BaseModel):
    operator: Optional[str] = None
    plan_type: str = "prepaid"
    budget: Optional[int] = None
    target_duration: Optional[int] = None
    min_daily_data: Optional[float] = None
    requested_features: List[str] = Field(default_factory=list)
    is_voice_only: bool = False
    sort_by: Optional[str] = None


class QueryMeta(BaseModel):
    query: str
    conversational: bool = False
    filters: Optional[QueryFilters] = None
    offset: int = 0
    shown: int = 0
    total: int = 0
    debug: Dict[str, Any] = Field(default_factory=dict)


class QueryResponse(BaseModel):
    ok: bool
    text: str = ""
    meta: QueryMeta
    plans: List[Dict[str, Any]] = Field(default_factory=list)
    alternatives: List[Dict[str, Any]] = Field(default_factory=list)
    error: Optional[str] = None


class ErrorDetail(BaseModel):
    code: str
    message: str


class ErrorResponse(BaseModel):
    fulfillmentText: str
    error: ErrorDetail
