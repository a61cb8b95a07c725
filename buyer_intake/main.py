import json
import logging
import math
import time
from typing import Any, Dict, List, Optional
from fastapi import APIRouter, Body, Depends, FastAPI, File, Header, HTTPException, Query, Request, Response, UploadFile
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import ValidationError

from .config import load_settings, save_settings
from .gateway import MutationGateway, RateLimitExceeded
from .ingest import export_csv, ingest_upload
from .models import BuyerPage, BuyerQuery, ImportResponse, IngestResult, Lead, Pagination, ValidationOutcome
from .rate_limit import RateLimiterRegistry
from .store import InMemoryLeadStore, LeadNotFound, LeadStore, StoreRateLimited
from .validator import validate


logger = logging.getLogger("buyer_intake")
logging.basicConfig(level=logging.INFO, format="%(message)s")

ANONYMOUS = "anonymous"

router = APIRouter()


def _gateway(request: Request) -> MutationGateway:
    return request.app.state.gateway


def _settings(request: Request) -> Dict[str, Any]:
    return request.app.state.settings


def _caller(user_id: Optional[str]) -> str:
    return (user_id or "").strip() or ANONYMOUS


def _invalid(outcome: ValidationOutcome) -> JSONResponse:
    return JSONResponse(status_code=422, content={"errors": [e.model_dump() for e in outcome.errors]})


def _require_csv(file: UploadFile) -> None:
    if not file.filename or not file.filename.lower().endswith(".csv"):
        raise HTTPException(status_code=400, detail="Expected a CSV file")


@router.get("/health")
def health() -> Dict[str, bool]:
    return {"ok": True}


@router.post("/buyers/validate")
def validate_buyer(request: Request, body: Dict[str, Any] = Body(...)):
    outcome = validate(body, tag_separator=_settings(request)["tag_separator"])
    if not outcome.ok:
        return _invalid(outcome)
    return outcome.lead.model_dump(by_alias=True)


@router.post("/buyers", status_code=201)
def create_buyer(request: Request, body: Dict[str, Any] = Body(...), x_user_id: Optional[str] = Header(default=None)):
    outcome = validate(body, tag_separator=_settings(request)["tag_separator"])
    if not outcome.ok:
        return _invalid(outcome)
    return _gateway(request).create(_caller(x_user_id), outcome.lead)


@router.put("/buyers/{lead_id}")
def update_buyer(lead_id: str, request: Request, body: Dict[str, Any] = Body(...), x_user_id: Optional[str] = Header(default=None)):
    outcome = validate(body, tag_separator=_settings(request)["tag_separator"])
    if not outcome.ok:
        return _invalid(outcome)
    return _gateway(request).update(_caller(x_user_id), lead_id, outcome.lead)


@router.delete("/buyers/{lead_id}", status_code=204)
def delete_buyer(lead_id: str, request: Request) -> Response:
    _gateway(request).delete_lead(lead_id)
    return Response(status_code=204)


def buyer_query(
    search: Optional[str] = Query(default=None),
    city: Optional[str] = Query(default=None),
    property_type: Optional[str] = Query(default=None, alias="propertyType"),
    status: Optional[str] = Query(default=None),
    timeline: Optional[str] = Query(default=None),
    page: int = Query(default=1),
    limit: int = Query(default=10),
    sort_by: str = Query(default="updatedAt", alias="sortBy"),
    sort_order: str = Query(default="desc", alias="sortOrder"),
) -> BuyerQuery:
    try:
        return BuyerQuery(
            search=search,
            city=city,
            property_type=property_type,
            status=status,
            timeline=timeline,
            page=page,
            limit=limit,
            sort_by=sort_by,
            sort_order=sort_order,
        )
    except ValidationError as e:
        detail = [{"loc": list(err["loc"]), "msg": err["msg"]} for err in e.errors()]
        raise HTTPException(status_code=422, detail=detail)


@router.get("/buyers", response_model=BuyerPage)
def list_buyers(request: Request, query: BuyerQuery = Depends(buyer_query)) -> BuyerPage:
    records, total = _gateway(request).search(query)
    pagination = Pagination(page=query.page, limit=query.limit, total=total, total_pages=math.ceil(total / query.limit))
    return BuyerPage(data=records, pagination=pagination)


@router.get("/buyers/export")
def export_buyers(request: Request, query: BuyerQuery = Depends(buyer_query)) -> StreamingResponse:
    records, _ = _gateway(request).search(query, paged=False)
    leads = [Lead.model_validate(r) for r in records]
    body = export_csv(leads, tag_separator=_settings(request)["tag_separator"])
    headers = {"Content-Disposition": f"attachment; filename=buyers_{int(time.time())}.csv"}
    return StreamingResponse(iter([body]), media_type="text/csv", headers=headers)


@router.get("/buyers/{lead_id}")
def get_buyer(lead_id: str, request: Request) -> Dict[str, Any]:
    record = _gateway(request).get_lead(lead_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"Lead {lead_id} not found")
    return record


@router.post("/buyers/import/validate", response_model=IngestResult)
async def validate_import(request: Request, file: UploadFile = File(...)) -> IngestResult:
    _require_csv(file)
    settings = _settings(request)
    return await ingest_upload(file, max_rows=settings["max_import_rows"], tag_separator=settings["tag_separator"])


@router.post("/buyers/import", response_model=ImportResponse)
async def import_buyers(request: Request, file: UploadFile = File(...), x_user_id: Optional[str] = Header(default=None)) -> ImportResponse:
    _require_csv(file)
    settings = _settings(request)
    result = await ingest_upload(file, max_rows=settings["max_import_rows"], tag_separator=settings["tag_separator"])
    created: List[Dict[str, Any]] = []
    if result.accepted_rows:
        created = _gateway(request).import_leads(_caller(x_user_id), result.accepted_rows)
    return ImportResponse(result=result, created=created)


@router.get("/config/settings")
def get_settings(request: Request) -> Dict[str, Any]:
    return _settings(request)


@router.put("/config/settings")
def put_settings(request: Request, body: Dict[str, Any] = Body(...)) -> Dict[str, Any]:
    try:
        saved = save_settings(body)
    except (ValidationError, ValueError) as e:
        raise HTTPException(status_code=422, detail=str(e))
    # rate limit budgets are fixed for the life of the registry; the rest applies immediately
    request.app.state.settings = saved
    return saved


async def request_id_middleware(request: Request, call_next):
    rid = request.headers.get("X-Request-ID") or str(int(time.time() * 1000))
    start = time.time()
    response: Response
    try:
        response = await call_next(request)
    finally:
        duration_ms = int((time.time() - start) * 1000)
        logger.info(json.dumps({
            "request_id": rid,
            "endpoint": request.url.path,
            "method": request.method,
            "status": getattr(response, "status_code", 0) if "response" in locals() else 500,
            "latency_ms": duration_ms,
        }))
    response.headers["X-Request-ID"] = rid
    return response


async def rate_limited_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    return JSONResponse(
        status_code=429,
        headers={"Retry-After": str(exc.wait_seconds)},
        content={
            "error": "rate_limited",
            "operation": exc.operation,
            "message": str(exc),
            "retry_after": exc.wait_seconds,
        },
    )


async def store_rate_limited_handler(request: Request, exc: StoreRateLimited) -> JSONResponse:
    return JSONResponse(status_code=429, content={"error": "store_rate_limited", "message": str(exc)})


async def not_found_handler(request: Request, exc: LeadNotFound) -> JSONResponse:
    return JSONResponse(status_code=404, content={"error": "not_found", "message": str(exc)})


def create_app(
    settings: Optional[Dict[str, Any]] = None,
    store: Optional[LeadStore] = None,
    limiters: Optional[RateLimiterRegistry] = None,
) -> FastAPI:
    settings = settings if settings is not None else load_settings()
    app = FastAPI(title="Buyer Lead Intake API")
    app.state.settings = settings
    app.state.gateway = MutationGateway(
        store if store is not None else InMemoryLeadStore(),
        limiters if limiters is not None else RateLimiterRegistry.from_settings(settings),
    )
    app.middleware("http")(request_id_middleware)
    app.add_exception_handler(RateLimitExceeded, rate_limited_handler)
    app.add_exception_handler(StoreRateLimited, store_rate_limited_handler)
    app.add_exception_handler(LeadNotFound, not_found_handler)
    app.include_router(router)
    return app


app = create_app()
