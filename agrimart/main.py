# agrimart/main.py
from contextlib import asynccontextmanager

from fastapi import FastAPI
import uvicorn

from agrimart.data.database import Base, engine
from agrimart.api.routers import carts, health, inventory, orders, payments, pricing
from agrimart.utils.logging import get_logger

# every model has to be registered on Base.metadata before create_all
import agrimart.data.models  # noqa: F401

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Initializing database, tables: {list(Base.metadata.tables.keys())}")
    try:
        Base.metadata.create_all(bind=engine)
    except Exception as e:
        logger.error(f"Failed to create tables: {e}")
        raise
    yield


def create_app(init_db: bool = True) -> FastAPI:
    app = FastAPI(
        title="Agrimart Ordering Service",
        version="1.0.0",
        lifespan=lifespan if init_db else None,
    )

    app.include_router(health.router)
    app.include_router(carts.router)
    app.include_router(orders.router)
    app.include_router(payments.router)
    app.include_router(inventory.router)
    app.include_router(pricing.router)

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
