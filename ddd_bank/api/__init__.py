"""
DDD Bank API Application Factory
"""

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse

from .bank import router as bank_router
from .client import router as client_router
from .. import __version__
from ..errors import (
    BankError, DomainInvariantViolation, DuplicateAccess, DuplicateUsername,
    InsufficientFunds, InvalidAmountFormat, InvalidBirthDate, NotAuthorized, NotFound
)
from ..logging_config import get_logger, log_action


# HTTP status per error kind
ERROR_STATUS = {
    InvalidAmountFormat.kind: 400,
    InvalidBirthDate.kind: 400,
    DomainInvariantViolation.kind: 400,
    NotAuthorized.kind: 403,
    NotFound.kind: 404,
    DuplicateUsername.kind: 409,
    DuplicateAccess.kind: 409,
    InsufficientFunds.kind: 422,
}

WELCOME_PAGE = """<!DOCTYPE html>
<html>
<head><title>DDD Bank</title></head>
<body>
<h1>DDD Bank</h1>
<p>Ledger core for clients, accounts and transfers.</p>
<p>See the <a href="/docs">API documentation</a>.</p>
</body>
</html>
"""

logger = get_logger("ddd_bank.api")


async def bank_error_handler(request: Request, exc: BankError) -> JSONResponse:
    status_code = ERROR_STATUS.get(exc.kind, 400)
    log_action(
        logger, "warning", f"{request.method} {request.url.path} failed: {exc.kind}",
        action="http_error", resource=request.url.path,
        extra=dict(exc.to_dict(), status=status_code)
    )
    return JSONResponse(status_code=status_code, content=exc.to_dict())


def create_app() -> FastAPI:
    """Create and configure the FastAPI application"""
    app = FastAPI(
        title="DDD Bank API",
        description="Banking ledger core with clients, accounts and transactional transfers",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc"
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(BankError, bank_error_handler)

    # Include routers
    app.include_router(bank_router, prefix="/bank", tags=["Bank"])
    app.include_router(client_router, prefix="/client", tags=["Client"])

    # Health check endpoint
    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "ddd_bank_api",
            "version": __version__
        }

    # Root endpoint
    @app.get("/", response_class=HTMLResponse)
    async def welcome():
        """Welcome page linking the API documentation"""
        return WELCOME_PAGE

    return app


app = create_app()


def run_server(host: str = "0.0.0.0", port: int = 8080, debug: bool = False, log_level: str = "info"):
    """Run the FastAPI server"""
    uvicorn.run(
        "ddd_bank.api:app",
        host=host,
        port=port,
        reload=debug,
        log_level=log_level
    )
