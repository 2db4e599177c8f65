import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded

from groupride.config import settings
from groupride.database.supabase_client import SupabaseClients
from groupride.modules.users import routes as users_routes
from groupride.modules.auth import routes as auth_routes
from groupride.modules.rides import routes as rides_routes
from groupride.modules.groups import routes as groups_routes
from groupride.roster import RosterError, RosterSyncEngine, SupabaseRideStore

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%SZ",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application startup")
    clients = await SupabaseClients.create(settings)
    store = SupabaseRideStore(clients.realtime_client) if clients.realtime_client else None
    roster = RosterSyncEngine(store, fetch_timeout=settings.roster_fetch_timeout_seconds)

    app.state.settings = settings
    app.state.supabase = clients
    app.state.roster = roster

    if store is not None:
        try:
            await roster.start()
            logger.info("Realtime roster feed started")
        except Exception as e:
            # Requests still load the roster on demand through the caller's client
            logger.error(f"Failed to start realtime roster feed: {e}")
    else:
        logger.info("Realtime roster feed disabled")

    yield

    logger.info("Application shutdown")
    await roster.stop()
    await clients.close()


limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit])
app = FastAPI(
    title=settings.app_name,
    debug=settings.debug,
    redirect_slashes=False,
    lifespan=lifespan,
)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(RosterError)
async def roster_exception_handler(request: Request, exc: RosterError):
    if exc.status_code >= 500:
        logger.warning("Roster error on %s %s: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception: %s", exc)
    if settings.is_production:
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})
    return JSONResponse(status_code=500, content={"detail": str(exc)})


class SecurityHeadersMiddleware:
    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        async def send_with_headers(message):
            if message["type"] == "http.response.start":
                message.setdefault("headers", [])
                message["headers"].extend([
                    (b"X-Content-Type-Options", b"nosniff"),
                    (b"X-Frame-Options", b"DENY"),
                    (b"Referrer-Policy", b"same-origin"),
                ])
            await send(message)

        await self.app(scope, receive, send_with_headers)


app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include module routes
app.include_router(auth_routes.router, prefix="/api/v1")
app.include_router(users_routes.router, prefix="/api/v1")
app.include_router(rides_routes.router, prefix="/api/v1")
app.include_router(groups_routes.router, prefix="/api/v1")


@app.get("/")
async def root():
    return {"message": "Welcome to groupride", "status": "healthy"}


@app.get("/health")
@limiter.exempt
async def health():
    return {"status": "healthy"}


@app.get("/ready")
@limiter.exempt
async def ready(request: Request):
    """Readiness probe: ready once the roster has been loaded at least once."""
    roster = getattr(request.app.state, "roster", None)
    if roster is None or not roster.projection.loaded:
        return JSONResponse(status_code=503, content={"status": "loading"})
    return {"status": "ready", "roster_version": roster.projection.version}
