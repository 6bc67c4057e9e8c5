import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.responses import register_exception_handlers
from app.api.v1.api import api_router
from app.config import CORS_ORIGINS, LOG_LEVEL
from app.database import engine, Base
from app.models import Account, Company, Student, PlacementDrive  # noqa: F401

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Campus Placement API",
    description="Placement drive lifecycle, eligibility, registration and results",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)


@app.on_event("startup")
def on_startup():
    """Create database tables on startup."""
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created/verified")


app.include_router(api_router)


@app.get("/")
def health_check():
    return {"status": "ok"}
