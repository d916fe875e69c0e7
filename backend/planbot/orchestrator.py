# orchestrator.py
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from .ai_fallback_parser import ai_fallback_parse_query_to_context
from .config import Settings, get_settings
from .executor import execute_context
from .nlp_parser import parse_query_to_context
from .query_plan import Plan, PipelineResult, QueryContext
from .responder import compose_response, conversational_reply, page_bounds

log = logging.getLogger(__name__)


@dataclass
class HandleResult:
    text: str
    context: Optional[QueryContext] = None
    result: Optional[PipelineResult] = None
    conversational: bool = False
    ai_used: bool = False
    offset: int = 0
    shown: int = 0
    total: int = 0
    debug: Dict[str, Any] = field(default_factory=dict)

    @property
    def filtered(self) -> List[Plan]:
        return self.result.filtered if self.result else []


def handle(
    query_text: str,
    params: Optional[Mapping[str, Any]],
    catalog: Union[Mapping[str, Any], Callable[[], Mapping[str, Any]]],
    offset: int = 0,
    parser_mode: str = "regex",
    settings: Optional[Settings] = None,
) -> HandleResult:
    """
    Runs one query end to end:
    1) canned reply for small talk
    2) signal extraction (rules, or the LLM when parser_mode="ai")
    3) normalization + filter pipeline + similarity fallback
    4) response text
    """
    settings = settings or get_settings()
    params = params or {}

    canned = conversational_reply(query_text)
    if canned is not None:
        return HandleResult(text=canned, conversational=True)

    context = None
    ai_used = False
    if parser_mode == "ai":
        context = ai_fallback_parse_query_to_context(query_text, params, settings=settings)
        ai_used = context is not None
    if context is None:
        context = parse_query_to_context(query_text, params)

    # Resolved only now so small talk never touches the catalog.
    snapshot = catalog() if callable(catalog) else catalog
    result = execute_context(context, snapshot, similar_limit=settings.similar_plans_limit)
    text = compose_response(context, result, offset=offset, page_size=settings.max_plans_to_show)

    total = len(result.filtered)
    start, end = page_bounds(total, offset, settings.max_plans_to_show)
    log.info("Response: %s", text)
    return HandleResult(
        text=text,
        context=context,
        result=result,
        ai_used=ai_used,
        offset=start,
        shown=end - start,
        total=total,
        debug={"counts": result.counts, "parser_mode": parser_mode, "ai_fallback_used": ai_used},
    )
