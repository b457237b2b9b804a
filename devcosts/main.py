import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from devcosts.config import get_settings
from devcosts.database import Base, engine
from devcosts.app.dependencies import get_vault
from devcosts.app.routes import connections, alerts, cron, dashboard

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )

    # A missing or mis-sized ENCRYPTION_KEY stops startup here
    get_vault()

    Base.metadata.create_all(bind=engine)
    logger.info("DevCosts API started")
    yield


app = FastAPI(
    title="DevCosts API",
    description="Usage and billing aggregation for third-party developer APIs",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(connections.router, prefix="/api")
app.include_router(alerts.router, prefix="/api")
app.include_router(dashboard.router, prefix="/api")
app.include_router(cron.router, prefix="/api")


@app.get("/api/health")
def health_check():
    return {"status": "healthy"}
