import logging
from contextlib import asynccontextmanager
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

from .core.config import Settings, get_settings
from .core.errors import PortalError
from .core.logging import configure_logging
from .api.routes_company import router as company_router
from .api.routes_meta import router as meta_router
from .api.routes_user import router as user_router
from .services.connectors import ApolloConnector
from .services.identity import FirebaseIdentityVerifier, IdentityVerifier

logger = logging.getLogger(__name__)


def _cors_origins(settings: Settings) -> list[str]:
    # - In prod, FRONTEND_ORIGIN is required and we never fall back to "*".
    # - In non-prod, wide-open CORS is only enabled if CORS_ALLOW_ALL_ORIGINS=True
    #   or no origin is configured at all.
    configured = [
        o.strip()
        for o in (settings.FRONTEND_ORIGIN or "").split(",")
        if o.strip()
    ]
    if settings.ENV.lower() == "prod":
        if not configured:
            raise RuntimeError(
                "FRONTEND_ORIGIN must be set in production; refusing to start with wide-open CORS."
            )
        return configured
    if settings.CORS_ALLOW_ALL_ORIGINS or not configured:
        return ["*"]
    return configured


def _validation_details(errors) -> list[dict]:
    # loc/msg/type only: ctx and input may echo values we should not reflect
    return [
        {
            "loc": [str(part) for part in e.get("loc", ())],
            "msg": e.get("msg"),
            "type": e.get("type"),
        }
        for e in errors
    ]


def _error_body(error: str, details=None) -> dict:
    body = {"success": False, "error": error}
    if details is not None:
        body["details"] = details
    return body


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(PortalError)
    async def handle_portal_error(request: Request, exc: PortalError):
        level = logging.ERROR if exc.status_code >= 500 else logging.INFO
        logger.log(
            level,
            "%s on %s: %s", exc.__class__.__name__, request.url.path, exc.message,
            extra={"status_code": exc.status_code, "step": "error_handler"},
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc.message, exc.details),
        )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content=_error_body("Invalid request data", _validation_details(exc.errors())),
        )

    @app.exception_handler(PydanticValidationError)
    async def handle_model_validation(request: Request, exc: PydanticValidationError):
        return JSONResponse(
            status_code=400,
            content=_error_body(
                "Invalid request data",
                _validation_details(exc.errors(include_url=False)),
            ),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.exception(
            "Unhandled error on %s", request.url.path,
            extra={"status_code": 500, "step": "error_handler"},
        )
        return JSONResponse(status_code=500, content=_error_body("Internal server error"))


def create_app(
    settings: Settings | None = None,
    identity_verifier: IdentityVerifier | None = None,
    apollo_connector: ApolloConnector | None = None,
) -> FastAPI:
    """
    Build the API. The Firebase verifier and Apollo connector are created
    here (or injected, e.g. by tests) and live on `app.state` for the
    lifetime of the process.

    Run with: uvicorn portal.main:create_app --factory
    """
    settings = settings or get_settings()
    configure_logging(settings.LOG_LEVEL.upper())

    owns_verifier = identity_verifier is None
    if identity_verifier is None:
        identity_verifier = FirebaseIdentityVerifier.from_settings(settings)
    if apollo_connector is None:
        apollo_connector = ApolloConnector.from_settings(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        if owns_verifier:
            identity_verifier.close()

    app = FastAPI(title="Management Portal API", lifespan=lifespan)
    app.state.settings = settings
    app.state.identity_verifier = identity_verifier
    app.state.apollo_connector = apollo_connector

    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(settings),
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        allow_credentials=False,
    )

    register_exception_handlers(app)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid4())
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        logger.info(
            "%s %s", request.method, request.url.path,
            extra={
                "request_id": request_id,
                "status_code": response.status_code,
                "step": "http",
            },
        )
        return response

    app.include_router(meta_router, prefix=settings.API_PREFIX)
    app.include_router(company_router, prefix=settings.API_PREFIX)
    app.include_router(user_router, prefix=settings.API_PREFIX)
    return app
