import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core.config import settings
from db.database import create_db_and_tables
from routers.inventory import router as inventory_router
from routers.items import router as items_router
from routers.locations import router as locations_router
from routers.reports import router as reports_router

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await create_db_and_tables()
    yield


app = FastAPI(
    title="OrderFlow Inventory API",
    description="Stock ledger, transfers and kit availability for OrderFlow warehouses",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allowed_origins,
    allow_credentials="*" not in settings.cors_allowed_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health", tags=["health"])
def health():
    return {"status": "ok"}


# Inventory routes
app.include_router(items_router, prefix="/inventory/items", tags=["inventory-items"])
app.include_router(inventory_router, prefix="/inventory", tags=["inventory"])
app.include_router(locations_router, prefix="/locations", tags=["locations"])
app.include_router(reports_router, prefix="/reports", tags=["reports"])

if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
