from fastapi import FastAPI
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy.exc import SQLAlchemyError
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from timing_asgi import TimingMiddleware, TimingClient  # type: ignore
from timing_asgi.integrations import StarletteScopeToName  # type: ignore

from app.core import config
from app.core.database.engine import init_db
from app.core.errors import INTERNAL_ERROR_MESSAGE
from app.features.users.routes import router as user_router, auth_router
from app.features.organizations.routes import router as organization_router
from app.features.employees.routes import router as employee_router
from app.features.departments.routes import router as department_router
from app.features.teams.routes import router as team_router
from app.features.projects.routes import router as project_router
from app.features.announcements.routes import router as announcement_router
from app.features.notifications.routes import router as notification_router
from app.features.messages.routes import router as message_router
from app.features.realtime.broker import ChannelBroker
from app.features.realtime.routes import router as realtime_router
from app.features.users.dependencies import get_authorization_header
from app.utils import get_logger


log = get_logger(__name__)
log.info("Initializing server")
app = FastAPI(
    title="HR Backend",
    description="Multi-tenant HR API with role-scoped directory, announcements and realtime notifications",
    version="0.1.0",
    docs_url="/docs" if config.ENABLE_DOCS else None,
    redoc_url="/redoc" if config.ENABLE_DOCS else None,
    openapi_url="/openapi.json" if config.ENABLE_DOCS else None
)
limiter = Limiter(key_func=get_authorization_header, default_limits=[config.RATE_LIMIT])
app.state.limiter = limiter
app.state.broker = ChannelBroker()
app.add_middleware(SlowAPIMiddleware)


class PrintTimings(TimingClient):
    def timing(self, metric_name, timing, tags):
        log.debug(dict(route=metric_name.removeprefix("main.app.features."), timing=timing, tags=tags))


app.add_middleware(TimingMiddleware, client=PrintTimings(), metric_namer=StarletteScopeToName("main", app))

if config.ENABLE_DOCS:
    log.warning("Docs enabled")
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


@app.exception_handler(RateLimitExceeded)
def rate_limit_exceeded_handler(_request: Request, _exc: RateLimitExceeded) -> Response:
    return JSONResponse({"error": "You are going too fast"}, status_code=429)


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(request: Request, exc: SQLAlchemyError):
    log.error("Database error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse({"detail": INTERNAL_ERROR_MESSAGE}, status_code=500)


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
        "message": "HR Backend API",
        "version": "0.1.0",
        "status": "online",
        "docs": "/docs" if config.ENABLE_DOCS else None,
        "authentication": {
            "info": "Protected endpoints require Bearer token in Authorization header",
            "realtime": "Connect to /realtime/ws?token=<token>",
            "public_endpoints": ["/auth/login", "/health"]
        },
        "features": {
            "employees": "Role-scoped employee directory with edit and termination rules",
            "departments": "Departments with heads and members",
            "teams": "Teams with leads and members",
            "projects": "Projects with managers and members",
            "announcements": "Organization-wide or targeted announcements",
            "notifications": "Per-user notification inbox with seen receipts",
            "messages": "Organization-scoped message threads"
        }
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


# Include routers
app.include_router(auth_router, prefix="/auth", tags=["auth"])
app.include_router(user_router, prefix="/users", tags=["users"])

# HR routes
app.include_router(organization_router, prefix="/hr/organization", tags=["organizations"])
app.include_router(employee_router, prefix="/hr/employees", tags=["employees"])
app.include_router(department_router, prefix="/hr/departments", tags=["departments"])
app.include_router(team_router, prefix="/hr/teams", tags=["teams"])
app.include_router(project_router, prefix="/hr/projects", tags=["projects"])
app.include_router(announcement_router, prefix="/hr/announcements", tags=["announcements"])

app.include_router(notification_router, prefix="/notifications", tags=["notifications"])
app.include_router(message_router, prefix="/messages", tags=["messages"])
app.include_router(realtime_router, prefix="/realtime", tags=["realtime"])
