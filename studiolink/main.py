import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from . import models  # noqa: F401  registers tables on Base
from .config import ADMIN_PASSWORD, CORS_ORIGINS, NOTIFY_EMAILS, RESEND_API_KEY
from .database import Base, engine
from .domain.catalog.router import router as services_router
from .domain.clients.router import router as clients_router
from .domain.editors.router import router as editors_router
from .domain.magic_links.router import public_router as downloads_router
from .domain.magic_links.router import router as links_router
from .domain.projects.router import router as projects_router
from .domain.webhooks.router import router as webhooks_router
from .errors import StudioLinkError, sqlalchemy_error_handler, studiolink_error_handler
from .security_headers import SecurityHeadersMiddleware

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
for noisy in ("httpx", "httpcore", "botocore", "boto3", "s3transfer", "urllib3"):
    logging.getLogger(noisy).setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting up...")
    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
        logger.info("Database tables created successfully")
    except SQLAlchemyError as e:
        error_msg = str(e)
        if "already exists" in error_msg:
            logger.info("Database tables already exist (created by another worker)")
        else:
            logger.error(f"Failed to create database tables: {e}")
            raise

    if not ADMIN_PASSWORD:
        logger.warning("⚠️ ADMIN_PASSWORD is not set - the admin API will refuse every request")
    if not RESEND_API_KEY:
        logger.warning("⚠️ RESEND_API_KEY is not set - no email will be sent")
    if not NOTIFY_EMAILS:
        logger.warning("⚠️ NOTIFY_EMAILS is empty - internal alerts have nowhere to go")

    yield
    logger.info("Application shutting down...")


app = FastAPI(title="StudioLink API", version="1.0.0", lifespan=lifespan)

app.add_exception_handler(StudioLinkError, studiolink_error_handler)
app.add_exception_handler(SQLAlchemyError, sqlalchemy_error_handler)

app.add_middleware(SecurityHeadersMiddleware, exclude_paths=["/health", "/docs", "/openapi.json"])

logger.info(f"CORS allowed origins: {CORS_ORIGINS}")
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=False,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
)

# Routes
app.include_router(clients_router)
app.include_router(services_router)
app.include_router(editors_router)
app.include_router(projects_router)
app.include_router(links_router)
app.include_router(downloads_router)
app.include_router(webhooks_router)


@app.get("/health")
def health():
    return {"status": "healthy"}
