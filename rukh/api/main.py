"""
Rukh HTTP gateway.

create_app() wires settings and a service container into a FastAPI app:
the ask, context, SIWE, session and usage routers, the audit and
security-header middleware, and error handlers that turn RukhException
subclasses and request validation failures into JSON bodies. The
module-level `app` is what uvicorn serves.

Run with: uvicorn rukh.api.main:app --reload
"""
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse

from rukh import __version__
from rukh.api.routes import (
    ask_router,
    context_router,
    health_router,
    sessions_router,
    siwe_router,
    usage_router,
)
from rukh.core.audit import AuditMiddleware, SecurityHeadersMiddleware
from rukh.core.config import Settings, get_settings
from rukh.core.exceptions import RateLimitExceeded, RukhException
from rukh.core.logging_config import get_logger, setup_logging
from rukh.services.container import Services, build_services

logger = get_logger(__name__)

WELCOME_PAGE = """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>Welcome to Rukh</title>
    <style>
        body {
            margin: 0;
            min-height: 100vh;
            display: flex;
            justify-content: center;
            align-items: center;
            background-color: #1a1a1a;
            color: #ffffff;
            font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", Roboto, Helvetica, Arial, sans-serif;
        }
        .container { text-align: center; padding: 2rem; max-width: 800px; }
        h1 { font-size: 2.5rem; color: #6574cd; }
        p { font-size: 1.2rem; line-height: 1.6; color: #a0aec0; }
        .button {
            display: inline-block;
            padding: 0.8rem 1.6rem;
            margin: 0.5rem;
            background: #3490dc;
            color: white;
            text-decoration: none;
            border-radius: 5px;
        }
    </style>
</head>
<body>
    <div class="container">
        <h1>Welcome to Rukh</h1>
        <p>A lightweight gateway for building AI agents with Web3 integration.</p>
        <p>Session memory, per-wallet cost tracking and provider fallback (Mistral, Anthropic).</p>
        <div>
            <a href="/docs" class="button">API Docs</a>
            <a href="/health" class="button">Health</a>
        </div>
    </div>
</body>
</html>"""


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Build services when none were injected, replay the cost ledger on
    startup and close the shared HTTP client on shutdown.
    """
    settings: Settings = app.state.settings
    logger.info(f"Starting {settings.app_name} in {settings.app_env} mode")
    logger.info(f"Default model: {settings.default_model}")
    logger.info(
        f"Rate Limit: {settings.rate_limit_requests} req / {settings.rate_limit_period_seconds}s"
    )
    logger.info(f"Audit Logging: {settings.enable_audit_logging}")

    if getattr(app.state, "services", None) is None:
        app.state.services = build_services(settings)
    services: Services = app.state.services
    await services.startup()

    yield  # Application runs here

    logger.info(f"Shutting down {settings.app_name}")
    try:
        await services.aclose()
    except Exception as e:
        logger.error(f"Error closing HTTP client: {e}")


def _register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
        """429 with Retry-After and the quota headers."""
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_dict(),
            headers={
                "Retry-After": str(exc.retry_after),
                "X-RateLimit-Limit": str(exc.limit),
                "X-RateLimit-Remaining": "0",
            }
        )

    @app.exception_handler(RukhException)
    async def rukh_exception_handler(request: Request, exc: RukhException):
        """Handle all custom exceptions."""
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_dict()
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        """Malformed bodies, headers and query strings are plain 400s."""
        errors = exc.errors()
        first = errors[0] if errors else {}
        loc = [str(part) for part in first.get("loc", ()) if part not in ("body", "query", "header", "path")]
        message = str(first.get("msg", "Invalid request"))
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        return JSONResponse(
            status_code=400,
            content={
                "error": "validation_error",
                "message": message,
                "details": f"field={'.'.join(loc)}" if loc else None,
            }
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """
        Last-resort 500. The exception text is echoed only in development.
        """
        logger.exception(f"Unhandled exception: {exc}")

        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_error",
                "message": "An unexpected error occurred",
                "details": str(exc) if settings.is_development() else None,
                "timestamp": datetime.utcnow().isoformat()
            }
        )


def create_app(settings: Optional[Settings] = None, services: Optional[Services] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Settings to use; defaults to the environment
        services: Pre-built container (tests inject one rooted in tmp dirs)
    """
    settings = settings or get_settings()
    setup_logging(settings.log_level, settings.log_dir)

    app = FastAPI(
        title=f"{settings.app_name} API",
        description="""
        Gateway to Mistral and Anthropic with conversation memory,
        per-wallet cost tracking and an on-chain reward per request.

        ## Features

        - **Provider fallback**: the other provider answers when one fails
        - **Session memory**: conversations continue across requests
        - **Contexts**: password-protected markdown injected on the first message
        - **Cost ledger**: token usage and USD cost per wallet and model
        - **SIWE**: Ethereum signatures unlock the gated context
        """,
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.settings = settings
    app.state.services = services

    # Added last runs first: CORS, then audit, then security headers

    app.add_middleware(SecurityHeadersMiddleware)

    if settings.enable_audit_logging:
        app.add_middleware(AuditMiddleware)
        logger.info("Audit logging middleware enabled")

    if settings.is_development():
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
        logger.warning("CORS configured for development (all origins allowed)")

    _register_exception_handlers(app, settings)

    # Routers

    app.include_router(health_router)
    app.include_router(ask_router)
    app.include_router(context_router)
    app.include_router(siwe_router)
    app.include_router(sessions_router)
    app.include_router(usage_router)

    @app.get("/", response_class=HTMLResponse, include_in_schema=False)
    async def root() -> HTMLResponse:
        """Static welcome page; not rate limited."""
        return HTMLResponse(WELCOME_PAGE)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "rukh.api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=get_settings().is_development()
    )
