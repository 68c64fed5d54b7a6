import logging
import time
from uuid import uuid4

from fastapi import FastAPI
from fastapi import HTTPException
from fastapi import Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.concurrency import run_in_threadpool

from app.api.v1.availability import router as availability_router
from app.api.v1.bookings import router as bookings_router
from app.api.v1.payments import router as payments_router
from app.api.v1.proofs import legacy_router as legacy_proofs_router
from app.api.v1.proofs import router as proofs_router
from app.core.config import settings
from app.core.exceptions import http_exception_handler, payment_required_response, validation_exception_handler
from app.core.logging import setup_logging
from app.core.metrics import PAYMENT_GATE_DECISIONS, REQUEST_COUNT, REQUEST_LATENCY, render_metrics
from app.core.request_context import request_id_ctx_var
from app.services.payment_gate import (
    PAYMENT_HEADER,
    PAYMENT_RESPONSE_HEADER,
    SERVICE_CREDENTIAL_HEADER,
    X402_VERSION,
    PaymentGateError,
    build_payment_gate,
    build_requirements,
    encode_payment_response,
    guarded_routes,
)

app = FastAPI(title="PWYC Booking API", version="0.1.0")
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
setup_logging(settings.log_level)
logger = logging.getLogger("app.request")
gate_logger = logging.getLogger("app.payment_gate")

app.state.settings = settings
app.state.payment_gate = build_payment_gate(settings)

app.include_router(availability_router)
app.include_router(bookings_router)
app.include_router(payments_router)
app.include_router(proofs_router)
app.include_router(legacy_proofs_router)


@app.middleware("http")
async def payment_gate_middleware(request: Request, call_next):
    config = request.app.state.settings
    gate = request.app.state.payment_gate
    route = guarded_routes(config).get((request.method, request.url.path))
    if gate is None or route is None:
        return await call_next(request)

    if route.admits_service_call(request.headers.get(SERVICE_CREDENTIAL_HEADER)):
        PAYMENT_GATE_DECISIONS.labels(outcome="service_credential").inc()
        request.state.payment_payer = "service"
        return await call_next(request)

    requirements = build_requirements(config, route, str(request.url))
    payment_header = request.headers.get(PAYMENT_HEADER)
    if not payment_header:
        PAYMENT_GATE_DECISIONS.labels(outcome="missing").inc()
        return payment_required_response("X-PAYMENT header is required", [requirements], X402_VERSION)

    decision = await run_in_threadpool(gate.verify, payment_header, requirements)
    if not decision.is_valid:
        PAYMENT_GATE_DECISIONS.labels(outcome="invalid").inc()
        gate_logger.info("payment_rejected path=%s reason=%s", route.path, decision.reason)
        return payment_required_response(decision.reason or "Invalid payment", [requirements], X402_VERSION)

    request.state.payment_payer = decision.payer
    response = await call_next(request)
    if response.status_code >= 400:
        PAYMENT_GATE_DECISIONS.labels(outcome="handler_failed").inc()
        return response

    try:
        settlement = await run_in_threadpool(gate.settle, payment_header, requirements)
    except PaymentGateError as exc:
        PAYMENT_GATE_DECISIONS.labels(outcome="settle_failed").inc()
        gate_logger.error("payment_settlement_failed path=%s reason=%s", route.path, exc)
        return payment_required_response(str(exc), [requirements], X402_VERSION)

    PAYMENT_GATE_DECISIONS.labels(outcome="settled").inc()
    response.headers[PAYMENT_RESPONSE_HEADER] = encode_payment_response(settlement)
    return response


@app.middleware("http")
async def observability_middleware(request: Request, call_next):
    request_id = request.headers.get("x-request-id") or str(uuid4())
    token = request_id_ctx_var.set(request_id)
    start = time.perf_counter()
    path = request.url.path
    method = request.method
    try:
        response = await call_next(request)
    except Exception:
        elapsed = time.perf_counter() - start
        REQUEST_COUNT.labels(method=method, path=path, status_code=500).inc()
        REQUEST_LATENCY.labels(method=method, path=path).observe(elapsed)
        logger.exception(
            "request_failed method=%s path=%s status=500 duration_ms=%.2f",
            method,
            path,
            elapsed * 1000,
        )
        request_id_ctx_var.reset(token)
        raise

    elapsed = time.perf_counter() - start
    REQUEST_COUNT.labels(method=method, path=path, status_code=response.status_code).inc()
    REQUEST_LATENCY.labels(method=method, path=path).observe(elapsed)
    response.headers["X-Request-ID"] = request_id
    logger.info(
        "request_completed method=%s path=%s status=%s duration_ms=%.2f",
        method,
        path,
        response.status_code,
        elapsed * 1000,
    )
    request_id_ctx_var.reset(token)
    return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=[PAYMENT_RESPONSE_HEADER, "X-Request-ID"],
)


@app.get("/health", tags=["health"])
def health() -> dict[str, str]:
    return {"status": "healthy"}


@app.get("/metrics", tags=["observability"])
def metrics() -> Response:
    payload, content_type = render_metrics()
    return Response(content=payload, media_type=content_type)
