import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from .catalog import CatalogLoader
from .config import Settings, get_settings
from .errors import CatalogUnavailableError, PlanBotError, QueryValidationError
from .orchestrator import HandleResult, handle
from .schemas import (
    ErrorDetail,
    ErrorResponse,
    QueryFilters,
    QueryMeta,
    QueryRequest,
    QueryResponse,
    WebhookRequest,
    WebhookResponse,
)

log = logging.getLogger(__name__)


def _error_payload(exc: PlanBotError) -> dict:
    return ErrorResponse(
        fulfillmentText=exc.message,
        error=ErrorDetail(code=exc.error_code, message=exc.message),
    ).model_dump()


def _filters_for(outcome: HandleResult) -> Optional[QueryFilters]:
    if outcome.context is None:
        return None
    return QueryFilters(**outcome.context.model_dump(include=set(QueryFilters.model_fields)))


def create_app(settings: Optional[Settings] = None, catalog_loader: Optional[CatalogLoader] = None) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(level=settings.log_level)
    loader = catalog_loader or CatalogLoader.from_settings(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        log.info("Shutting down, closing catalog loader")
        app.state.catalog_loader.close()

    app = FastAPI(title="Telecom Plan Finder API", lifespan=lifespan)
    app.state.settings = settings
    app.state.catalog_loader = loader

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        messages = [str(err.get("msg", "")) for err in exc.errors()]
        error = QueryValidationError(f"Validation failed: {', '.join(messages)}")
        log.warning("Rejected %s %s: %s", request.method, request.url.path, error.message)
        return JSONResponse(status_code=error.status_code, content=_error_payload(error))

    @app.exception_handler(PlanBotError)
    async def planbot_exception_handler(request: Request, exc: PlanBotError):
        log.error("Error occurred on %s %s: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content=_error_payload(exc))

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        log.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content=_error_payload(PlanBotError()))

    @app.get("/", response_class=PlainTextResponse)
    def root():
        return "Telecom Plan Suggestion API is running"

    @app.get("/healthz")
    @app.get("/api/healthz")
    def health(request: Request):
        return {"status": "ok", **request.app.state.catalog_loader.status()}

    @app.post("/webhook", response_model=WebhookResponse)
    def webhook(req: WebhookRequest, request: Request):
        """
        Dialogflow fulfillment endpoint. Catalog outages surface as 503 through
        the PlanBotError handler, never as an empty "no plans" reply.
        """
        params = req.queryResult.parameters.model_dump(exclude_none=True)
        offset = int(params.pop("offset", 0) or 0)
        log.info("Received webhook query: %r params=%s", req.queryResult.queryText, params)

        loader: CatalogLoader = request.app.state.catalog_loader
        outcome = handle(
            req.queryResult.queryText,
            params,
            loader.get,
            offset=offset,
            settings=request.app.state.settings,
        )
        filters = _filters_for(outcome)
        return WebhookResponse(
            fulfillmentText=outcome.text,
            payload={
                "filters": filters.model_dump() if filters else None,
                "offset": outcome.offset,
                "shown": outcome.shown,
                "total": outcome.total,
            },
        )

    @app.post("/query", response_model=QueryResponse)
    @app.post("/api/query", response_model=QueryResponse)
    def query_endpoint(req: QueryRequest, request: Request):
        """
        Explicit parser selection:
          - parser_mode="regex": always use the rule-based extractor.
          - parser_mode="ai": try the LLM extractor first, fall back to rules on failure.
        """
        loader: CatalogLoader = request.app.state.catalog_loader
        try:
            outcome = handle(
                req.query,
                req.parameters,
                loader.get,
                offset=req.offset,
                parser_mode=req.parser_mode,
                settings=request.app.state.settings,
            )
        except CatalogUnavailableError as exc:
            return QueryResponse(
                ok=False,
                meta=QueryMeta(query=req.query, debug={"parser_mode": req.parser_mode}),
                error=exc.message,
            )

        debug = dict(outcome.debug)
        if outcome.context is not None:
            debug.update(outcome.context.debug)
        result = outcome.result
        return QueryResponse(
            ok=True,
            text=outcome.text,
            meta=QueryMeta(
                query=req.query,
                conversational=outcome.conversational,
                filters=_filters_for(outcome),
                offset=outcome.offset,
                shown=outcome.shown,
                total=outcome.total,
                debug=debug,
            ),
            plans=outcome.filtered[outcome.offset : outcome.offset + outcome.shown],
            alternatives=result.alternatives if result else [],
        )

    return app


app = create_app()
