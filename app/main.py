from fastapi import FastAPI
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from slowapi.errors import RateLimitExceeded
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from app.core import config
from app.core.database.engine import init_db
from app.core.exceptions import PersistenceError, TeamAccessError
from app.core.limiter import limiter
from app.core.middleware import TimingMiddleware
from app.features.permissions.routes import router as permission_router
from app.features.members.routes import router as member_router
from app.utils import get_logger


log = get_logger(__name__)
log.info("Initializing server")
app = FastAPI(
    title="Team Access Backend",
    description="Role-based team access control with JWT authentication",
    version="0.1.0",
    docs_url="/docs" if config.ENABLE_DOCS else None,
    redoc_url="/redoc" if config.ENABLE_DOCS else None,
    openapi_url="/openapi.json" if config.ENABLE_DOCS else None
)
app.state.limiter = limiter

app.add_middleware(TimingMiddleware)

if config.ENABLE_DOCS:
    log.warning("Docs enabled")
if config.AUTHORIZATION_MODE == config.AuthorizationMode.ALLOW_ALL:
    log.warning("Authorization checks disabled (AUTHORIZATION_MODE=allow_all)")
if config.ALLOW_ORIGIN:
    log.warning("Setting allow origin to %s", config.ALLOW_ORIGIN)
    origins = [config.ALLOW_ORIGIN]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(_request: Request, exc: RequestValidationError):
    errors = dict()
    for error in exc.errors():
        if "loc" not in error or "msg" not in error:
            continue
        key = error["loc"][-1]
        if key == "__root__":
            key = "root"
        errors[key] = error["msg"]
    log.info("Request validation error %s", errors)
    return JSONResponse(status_code=400, content=jsonable_encoder(errors))


@app.exception_handler(TeamAccessError)
async def team_access_exception_handler(request: Request, exc: TeamAccessError):
    if isinstance(exc, PersistenceError):
        log.error("Persistence failure on %s %s: %s", request.method, request.url.path, exc.original)
    else:
        log.info("%s on %s %s: %s", exc.kind, request.method, request.url.path, exc)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RateLimitExceeded)
def rate_limit_exceeded_handler(_request: Request, _exc: RateLimitExceeded) -> Response:
    return JSONResponse({"error": "You are going too fast"}, status_code=429)


@app.on_event("startup")
async def startup():
    """Initialize database on application startup."""
    log.info("Initializing database...")
    await init_db()
    log.info("Database initialized successfully")


@app.get("/")
async def root():
    """Root endpoint - API health check."""
    return {
        "message": "Team Access API",
        "version": "0.1.0",
        "status": "online",
        "docs": "/docs" if config.ENABLE_DOCS else None,
        "authorization_mode": config.AUTHORIZATION_MODE.value,
        "authentication": {
            "info": "Protected endpoints require Bearer token in Authorization header",
            "protected_endpoints": ["/permissions/*", "/members/*"],
            "public_endpoints": ["/", "/health"]
        },
        "features": {
            "permissions": "Module catalog, roles with per-module permission levels, summaries and audit log",
            "members": "Team invitations, role assignment, removal and first-owner bootstrap"
        }
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


# Include routers
app.include_router(permission_router, prefix="/permissions", tags=["permissions"])
app.include_router(member_router, prefix="/members", tags=["members"])
