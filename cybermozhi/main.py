import logging

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pymongo.errors import PyMongoError

from cybermozhi.core.config import get_settings
from cybermozhi.core.deps import get_key_pool
from cybermozhi.db.chat_store import MongoChatStore
from cybermozhi.db.connection import close_client, get_db
from cybermozhi.utils.logging import configure_logging

# Routers
from cybermozhi.routers.auth_route import router as auth_router
from cybermozhi.routers.chat_route import router as chat_router
from cybermozhi.routers.generate_doc import router as generate_doc_router
from cybermozhi.routers.profile_route import router as profile_router
from cybermozhi.routers.summarizer_route import router as summarizer_router

settings = get_settings()
configure_logging(settings.log_level)
logger = logging.getLogger("cybermozhi")


# Lifespan Events (Startup/Shutdown)
@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting up {settings.app_name} ({settings.environment})...")
    pool_size = get_key_pool().size
    if pool_size == 0:
        logger.warning("GEMINI_API_KEYS is empty: every model call will fail until it is configured")
    else:
        logger.info(f"Loaded {pool_size} Gemini API key(s)")

    try:
        await MongoChatStore(get_db()).ensure_indexes()
    except PyMongoError as e:
        logger.error(f"Could not create chat indexes, continuing without them: {e}")

    yield
    close_client()
    logger.info(f"Shutting down {settings.app_name}...")


# FastAPI App Setup
app = FastAPI(
    title=settings.app_name,
    description="Bilingual (Tamil/English) cyber-law assistant API.",
    version="1.0.0",
    docs_url=settings.docs_url,
    lifespan=lifespan,
)

# Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(auth_router, prefix="/auth", tags=["Authentication"])

app.include_router(chat_router, prefix=settings.api_prefix, tags=["Chat"])

app.include_router(generate_doc_router, prefix=settings.api_prefix, tags=["Document Generation"])

app.include_router(summarizer_router, prefix=settings.api_prefix, tags=["Attack Summary"])

app.include_router(profile_router, prefix=settings.api_prefix, tags=["Profile"])


# Health & Root Endpoints
@app.get("/health", tags=["System"], summary="Health Check")
async def health_check():
    """Check if the API is healthy and how many model credentials are loaded."""
    logger.info("Health check requested")
    return {"status": "ok", "keyPoolSize": get_key_pool().size}


@app.get("/", tags=["Root"], summary="API Root")
async def root():
    """Welcome message and basic info."""
    return {"message": f"Welcome to {settings.app_name}"}
