"""FastAPI mod registry API."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import config
from registry.cache import ReadCache
from registry.errors import RegistryError
from registry.models.base import async_session_factory, engine, init_db
from registry.services.maintenance import HealthMonitor, ensure_server_admin, log_integrity_check

from web.api.approval_routes import router as approval_router
from web.api.auth_routes import router as auth_router
from web.api.mod_routes import router as mod_router
from web.api.motd_routes import router as motd_router
from web.api.version_routes import router as version_router

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("modvault.api")

cache = ReadCache(async_session_factory)
health_monitor = HealthMonitor(engine)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    async with async_session_factory() as session:
        await ensure_server_admin(session)
    await cache.start()
    await health_monitor.start()
    logger.info("modvault API started (devmode=%s)", config.DEVMODE)
    yield
    await health_monitor.stop()
    await cache.stop()


app = FastAPI(title="modvault API", lifespan=lifespan)
app.state.cache = cache

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RegistryError)
async def registry_error_handler(request: Request, exc: RegistryError):
    return JSONResponse(exc.to_dict(), status_code=exc.status_code)


app.include_router(version_router)
app.include_router(mod_router)
app.include_router(approval_router)
app.include_router(motd_router)
app.include_router(auth_router)


@app.get("/api/health")
async def health():
    """Liveness plus a fresh store integrity check."""
    ok = await log_integrity_check(engine)
    return {"status": "ok" if ok else "degraded", "cache_running": cache.running}
