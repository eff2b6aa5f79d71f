from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI

from src.registry.api.routers import jobs_router, catalog_router
from src.registry.core.settings import settings
from src.registry.infra.mq import start_broker, stop_broker

logging.basicConfig(level=settings.LOG_LEVEL)

# Определение жизненного цикла
@asynccontextmanager
async def lifespan(app: FastAPI):
    await start_broker()
    yield
    await stop_broker()

app = FastAPI(
    title="Ingestion Job Registry",
    version="0.1.0",
    docs_url="/docs",
    redoc_url=None,
    lifespan=lifespan,
)

app.include_router(jobs_router)
app.include_router(catalog_router)

@app.get("/health")
def health():
    return {"status": "ok"}
