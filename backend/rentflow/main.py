import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from rentflow.core.config import settings
from rentflow.core.exceptions import CommissionEngineError
from rentflow.api import commissions as commissions_api
from rentflow.api import agent_portal as agent_portal_api

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def init_database():
    """Initialize database tables and seed data on startup."""
    from rentflow.core.database import engine, Base, SessionLocal
    import rentflow.models  # noqa: F401  register every table on Base
    from rentflow.services.commission_rules import seed_default_rules

    logger.info("Creating database tables...")
    Base.metadata.create_all(bind=engine)
    logger.info("Tables created successfully")

    if settings.SEED_DEFAULT_RULES:
        db = SessionLocal()
        try:
            created = seed_default_rules(db)
            if created:
                logger.info(f"Seeded {created} default commission rules")
        finally:
            db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Run database init on startup."""
    init_database()
    yield


# Disable API docs in production
docs_url = "/docs" if settings.ENVIRONMENT != "production" else None
redoc_url = "/redoc" if settings.ENVIRONMENT != "production" else None

app = FastAPI(
    title=settings.APP_NAME,
    description="Rentflow - Agent Commission API",
    version="1.0.0",
    lifespan=lifespan,
    docs_url=docs_url,
    redoc_url=redoc_url,
)


@app.exception_handler(CommissionEngineError)
async def commission_error_handler(request: Request, exc: CommissionEngineError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message},
    )


# Always return JSON (never plain text)
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
def health_check():
    return {"status": "healthy", "service": "rentflow-commissions-api", "version": "1.0.0"}


@app.get("/")
def root():
    return {"message": "Rentflow Agent Commission API", "version": "1.0.0", "docs": "/docs"}


# Include routers
app.include_router(commissions_api.router)
app.include_router(agent_portal_api.router)
