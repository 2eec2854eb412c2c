import sys
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from app.core.config import settings
from app.api.mcp import router as mcp_router

logger.remove()
logger.add(sys.stderr, level=settings.LOG_LEVEL.upper())


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        f"Starting {settings.PROJECT_NAME} v{settings.VERSION} "
        f"(poll every {settings.POLL_INTERVAL_SECONDS}s, up to {settings.POLL_MAX_ATTEMPTS} checks)"
    )
    if not settings.ALLDEBRID_API_KEY:
        logger.warning("ALLDEBRID_API_KEY not set; resolve and unlock need a key from the client")
    yield
    logger.info(f"{settings.PROJECT_NAME} stopped")


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    lifespan=lifespan,
)

# MCP clients and players connect from arbitrary origins; keys travel in the body, not cookies
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

@app.get("/")
async def root():
    return {
        "message": f"{settings.PROJECT_NAME} is running",
        "version": settings.VERSION,
        "mcp": "/mcp/messages",
    }

app.include_router(mcp_router, prefix="/mcp")
