import logging
import time

from fastapi import Depends, FastAPI, Response, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration

from .config import CORS_ORIGINS, SENTRY_DSN, TESTING
from .database import get_db
from .limits import limiter
from .routes import (
    auth,
    users,
    departments,
    projects,
    proposals,
    invitations,
    applications,
    reports,
    covenant,
    audit,
)

_logger = logging.getLogger(__name__)

if SENTRY_DSN:
    sentry_sdk.init(dsn=SENTRY_DSN, integrations=[FastApiIntegration()])

REQUEST_COUNT = Counter("request_count", "Total requests", ["method", "endpoint", "status"])
REQUEST_LATENCY = Histogram(
    "request_latency_seconds", "Request latency", ["endpoint"]
)

app = FastAPI(title="Ouroboros Foundation API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.state.limiter = limiter
if not TESTING:
    app.add_middleware(SlowAPIMiddleware)


def _error(status_code: int, message, headers=None) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code, headers=headers)


@app.exception_handler(StarletteHTTPException)
async def http_error(request: Request, exc: StarletteHTTPException):
    return _error(exc.status_code, exc.detail, getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_error(request: Request, exc: RequestValidationError):
    first = exc.errors()[0] if exc.errors() else {}
    loc = [str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path")]
    message = first.get("msg", "Invalid request")
    if message.startswith("Value error, "):
        message = message[len("Value error, "):]
    return _error(400, f"{loc[-1]}: {message}" if loc else message)


@app.exception_handler(RateLimitExceeded)
async def rate_limited(request: Request, exc: RateLimitExceeded):
    return _error(429, "Too Many Requests")


@app.exception_handler(IntegrityError)
async def conflict(request: Request, exc: IntegrityError):
    _logger.warning("Integrity violation on %s %s: %s", request.method, request.url.path, exc.orig)
    return _error(409, "Conflicting record")


@app.exception_handler(SQLAlchemyError)
async def data_layer_error(request: Request, exc: SQLAlchemyError):
    _logger.exception("Data layer failure on %s %s", request.method, request.url.path)
    return _error(500, "Operation failed")


@app.middleware("http")
async def record_metrics(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    endpoint = request.url.path
    REQUEST_COUNT.labels(request.method, endpoint, response.status_code).inc()
    REQUEST_LATENCY.labels(endpoint).observe(time.time() - start)
    return response


@app.get("/metrics")
def metrics():
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.get("/api/health")
def health(db: Session = Depends(get_db)):
    db.execute(text("SELECT 1"))
    return {"status": "ok"}


app.include_router(auth.router)
app.include_router(users.router)
app.include_router(departments.router)
app.include_router(projects.router)
app.include_router(proposals.router)
app.include_router(invitations.router)
app.include_router(applications.router)
app.include_router(reports.router)
app.include_router(covenant.router)
app.include_router(audit.router)


PUBLIC_ROUTES = {
    ("/api/auth/login", "POST"),
    ("/api/health", "GET"),
    ("/api/public/departments", "GET"),
    ("/api/applications", "POST"),
    ("/api/invitations/{token}", "GET"),
    ("/api/invitations/{token}", "POST"),
    ("/api/covenant/invitations/{token}", "GET"),
    ("/api/covenant/invitations/{token}", "POST"),
}


def audit_routes():
    from fastapi.routing import APIRoute
    from .auth import get_current_user

    for route in app.routes:
        if not isinstance(route, APIRoute) or not route.path.startswith("/api"):
            continue
        if all((route.path, method) in PUBLIC_ROUTES for method in route.methods):
            continue
        calls = [dep.call for dep in route.dependant.dependencies]
        if get_current_user not in calls:
            raise RuntimeError(f"Route {route.path} missing authentication")


audit_routes()
