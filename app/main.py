import socket
from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from app.api.errors import register_exception_handlers
from app.api.router import api_router
from app.config import get_settings
from app.core.logging import get_logger, setup_logging
from app.core.scheduler import start_scheduler, stop_scheduler

settings = get_settings()
logger = get_logger(__name__)

INSTANCE_NAME = settings.instance_name or socket.gethostname()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Start logging and the optional in-process scheduler."""
    setup_logging()
    logger.bind(instance=INSTANCE_NAME).info("app_started")
    await start_scheduler()
    yield
    await stop_scheduler()


app = FastAPI(
    title="Access Request Jobs",
    description="Access request expiry reminders and revocation with cross-server job locking",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/api/docs" if settings.debug else None,
    redoc_url="/api/redoc" if settings.debug else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["X-Served-By"],
)


@app.middleware("http")
async def served_by_header(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    # Several servers sit behind one URL; tell the client which one answered
    response = await call_next(request)
    response.headers["X-Served-By"] = INSTANCE_NAME
    return response


register_exception_handlers(app)
app.include_router(api_router)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint for load balancers."""
    return {"status": "healthy"}
