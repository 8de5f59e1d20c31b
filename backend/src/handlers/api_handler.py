"""Main FastAPI application handler for Lambda deployment."""

import logging
import os
import time
from datetime import UTC, datetime
from pathlib import Path

import boto3
from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from fastapi.staticfiles import StaticFiles
from mangum import Mangum
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.formparsers import MultiPartException

from models.submission import NewSubmission, SubmissionSummary
from services.submission_store import (
    MAX_LIST_LIMIT,
    DynamoDBSubmissionStore,
    InMemorySubmissionStore,
    StorageUnavailableError,
    SubmissionStore,
)
from services.submission_validator import validate_submission
from utils.body_limit import BodySizeLimitMiddleware
from utils.rate_limit import (
    DEFAULT_MAX_REQUESTS,
    DEFAULT_WINDOW_SECONDS,
    RateLimiter,
)

logger = logging.getLogger(__name__)
logger.setLevel(os.environ.get("LOG_LEVEL", "INFO").upper())

DEFAULT_MAX_BODY_BYTES = 10 * 1024 * 1024  # 10 MB
DEFAULT_STATIC_DIR = Path(__file__).resolve().parents[2] / "public"

CONTENT_SECURITY_POLICY = (
    "default-src 'self'; "
    "style-src 'self' 'unsafe-inline'; "
    "script-src 'self'; "
    "img-src 'self' data: https:"
)
SECURITY_HEADERS = {
    "Content-Security-Policy": CONTENT_SECURITY_POLICY,
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Referrer-Policy": "no-referrer",
    "Strict-Transport-Security": "max-age=15552000; includeSubDomains",
}

# Initialize FastAPI app
app = FastAPI(
    title="Form Submission API",
    description="API for collecting and listing contact form submissions",
    version="1.0.0",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
)

CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)


# Lazy-initialized AWS resource, store and limiter
# Required for Lambda SnapStart - connections must be re-established after restore
_dynamodb = None
_submission_store = None
_rate_limiter = None


def reset_services():
    """Reset all lazy-initialized services. Useful for testing.

    Also resets boto3's default session so that subsequent calls to
    boto3.resource() create fresh sessions within the current mock context
    (e.g., moto's mock_aws).
    """
    global _dynamodb, _submission_store, _rate_limiter
    _dynamodb = None
    _submission_store = None
    _rate_limiter = None
    boto3.DEFAULT_SESSION = None


def get_dynamodb():
    """Get or create DynamoDB resource (lazy init for SnapStart)."""
    global _dynamodb
    if _dynamodb is None:
        region = os.environ.get("AWS_DEFAULT_REGION", "us-west-2")
        endpoint_url = os.environ.get("DYNAMODB_ENDPOINT_URL") or None
        _dynamodb = boto3.resource(
            "dynamodb", region_name=region, endpoint_url=endpoint_url
        )
    return _dynamodb


def get_submission_store() -> SubmissionStore:
    """Get or create the configured submission store (lazy init for SnapStart)."""
    global _submission_store
    if _submission_store is None:
        mode = os.environ.get("STORAGE_MODE", "dynamodb").lower()
        if mode == "memory":
            logger.info("Running in demo mode with in-memory storage")
            _submission_store = InMemorySubmissionStore()
        elif mode == "dynamodb":
            table_name = os.environ.get("SUBMISSIONS_TABLE", "form-submissions-dev")
            logger.info("Using DynamoDB table %s", table_name)
            _submission_store = DynamoDBSubmissionStore(
                get_dynamodb().Table(table_name)
            )
        else:
            raise ValueError(f"Unknown STORAGE_MODE: {mode}")
    return _submission_store


def get_rate_limiter() -> RateLimiter:
    """Get or create the per-client rate limiter."""
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = RateLimiter(
            max_requests=int(
                os.environ.get("RATE_LIMIT_MAX_REQUESTS", DEFAULT_MAX_REQUESTS)
            ),
            window_seconds=int(
                os.environ.get("RATE_LIMIT_WINDOW_SECONDS", DEFAULT_WINDOW_SECONDS)
            ),
        )
    return _rate_limiter


def get_static_dir() -> Path:
    return Path(os.environ.get("STATIC_DIR", DEFAULT_STATIC_DIR))


def get_client_ip(request: Request) -> str:
    """Origin address of the request, or "unknown" when unavailable."""
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def get_max_body_bytes() -> int:
    return int(os.environ.get("MAX_BODY_BYTES", DEFAULT_MAX_BODY_BYTES))


def error_response(
    status_code: int, message: str, headers: dict | None = None, **extra
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message, **extra},
        headers=headers,
    )


# MARK: - Middleware


@app.middleware("http")
async def enforce_request_limits(request: Request, call_next):
    """Reject oversized bodies and clients over their request quota."""
    content_length = request.headers.get("content-length", "")
    if content_length.isdigit() and int(content_length) > get_max_body_bytes():
        return error_response(
            status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, "Request entity too large"
        )

    client_ip = get_client_ip(request)
    if not get_rate_limiter().allow(client_ip):
        logger.warning("Rate limit exceeded for %s", client_ip)
        return error_response(
            status.HTTP_429_TOO_MANY_REQUESTS,
            "Too many requests from this IP, please try again later.",
        )

    return await call_next(request)


@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    """Attach browser security headers to every response."""
    response = await call_next(request)
    for header, value in SECURITY_HEADERS.items():
        response.headers.setdefault(header, value)
    return response


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all API requests with timing."""
    start = time.time()
    response = await call_next(request)
    duration_ms = (time.time() - start) * 1000

    # Log slow requests (>1s) at WARNING level for monitoring
    path = request.url.path
    if duration_ms > 1000:
        logger.warning(
            "[SLOW] %s %s %.0fms status=%d",
            request.method,
            path,
            duration_ms,
            response.status_code,
        )
    elif response.status_code >= 500:
        logger.error(
            "[ERROR] %s %s %.0fms status=%d",
            request.method,
            path,
            duration_ms,
            response.status_code,
        )
    elif response.status_code >= 400:
        logger.info(
            "[CLIENT_ERROR] %s %s %.0fms status=%d",
            request.method,
            path,
            duration_ms,
            response.status_code,
        )
    else:
        logger.info(
            "%s %s %.0fms status=%d",
            request.method,
            path,
            duration_ms,
            response.status_code,
        )

    return response


def chunked_body_too_large() -> JSONResponse:
    logger.warning("Rejected chunked request body over %d bytes", get_max_body_bytes())
    # Outermost middleware, so the security headers are not added for us
    return error_response(
        status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
        "Request entity too large",
        headers=SECURITY_HEADERS,
    )


# Outermost; caps chunked bodies that carry no Content-Length
app.add_middleware(
    BodySizeLimitMiddleware,
    get_max_bytes=get_max_body_bytes,
    too_large_response=chunked_body_too_large,
)


# MARK: - Static Entry Page


@app.get("/", include_in_schema=False)
async def index():
    """Serve the static entry page."""
    index_path = get_static_dir() / "index.html"
    if not index_path.is_file():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
    return FileResponse(index_path)


app.mount(
    "/static",
    StaticFiles(directory=get_static_dir(), check_dir=False),
    name="static",
)


# MARK: - Submission Endpoints


async def read_payload(request: Request) -> dict:
    """Read the request body as JSON or form fields.

    Malformed bodies and non-object JSON are treated as an empty payload so
    that validation reports every field as missing.
    """
    content_type = request.headers.get("content-type", "").lower()
    if content_type.startswith(
        ("application/x-www-form-urlencoded", "multipart/form-data")
    ):
        try:
            form = await request.form()
        except (StarletteHTTPException, MultiPartException) as e:
            logger.info("Unparseable form body on %s: %s", request.url.path, e)
            return {}
        return dict(form.items())

    try:
        body = await request.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


@app.post("/api/submit", status_code=status.HTTP_201_CREATED)
async def submit_form(
    request: Request, store: SubmissionStore = Depends(get_submission_store)
):
    """Validate and store a contact form submission."""
    payload = await read_payload(request)
    result = validate_submission(payload)
    if not result.is_valid:
        return error_response(
            status.HTTP_400_BAD_REQUEST,
            "Validation failed",
            errors=[error.to_dict() for error in result.errors],
        )

    record = NewSubmission(
        **result.form.model_dump(), ip_address=get_client_ip(request)
    )
    try:
        submission_id = await run_in_threadpool(store.append, record)
    except Exception:
        logger.exception("Error saving submission")
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Internal server error. Please try again later.",
        )

    logger.info("New submission saved: id=%s name=%s", submission_id, record.name)
    return JSONResponse(
        status_code=status.HTTP_201_CREATED,
        content={
            "success": True,
            "message": "Data saved successfully",
            "id": submission_id,
        },
    )


@app.get("/api/submissions")
async def list_submissions(store: SubmissionStore = Depends(get_submission_store)):
    """List the most recent submissions without IP addresses."""
    try:
        submissions = await run_in_threadpool(store.list_recent, MAX_LIST_LIMIT)
    except Exception:
        logger.exception("Error fetching submissions")
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR, "Error fetching submissions"
        )

    return {
        "success": True,
        "data": [
            SubmissionSummary.from_submission(s).model_dump(by_alias=True)
            for s in submissions
        ],
    }


# MARK: - Health Check


@app.get("/api/health")
async def health_check(store: SubmissionStore = Depends(get_submission_store)):
    """Health check endpoint. Always 200; reports storage connectivity."""
    database_status = await run_in_threadpool(store.status_label)
    try:
        submissions_count = await run_in_threadpool(store.count)
    except StorageUnavailableError:
        submissions_count = None

    return {
        "status": "healthy",
        "timestamp": datetime.now(UTC).isoformat(),
        "database_status": database_status,
        "submissions_count": submissions_count,
    }


# MARK: - Error Handlers


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    """Map routing and HTTP errors to the JSON error envelope."""
    if exc.status_code in (
        status.HTTP_404_NOT_FOUND,
        status.HTTP_405_METHOD_NOT_ALLOWED,
    ):
        return error_response(status.HTTP_404_NOT_FOUND, "Route not found")
    return error_response(exc.status_code, str(exc.detail))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    """Catch-all - never leaks internal details.

    Runs outside the http middleware stack, so it sets the security headers
    itself.
    """
    logger.error(
        "Unhandled exception on %s %s: %s",
        request.method,
        request.url.path,
        exc,
        exc_info=True,
    )
    return error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Internal server error",
        headers=SECURITY_HEADERS,
    )


# MARK: - Lambda Handler

# Create the Lambda handler
api_handler = Mangum(app, lifespan="off")


# For local development
if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(
        level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    port = int(os.environ.get("PORT", "3000"))
    logger.info("Server running on port %d", port)
    logger.info("Environment: %s", os.environ.get("ENVIRONMENT", "development"))
    uvicorn.run(app, host="0.0.0.0", port=port)
