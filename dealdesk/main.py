# dealdesk/main.py

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from .chat_routes import router as chat_router
from .config import HOST, LOG_LEVEL, PORT
from .db import init_db
from .document_routes import router as document_router
from .portfolio_routes import router as portfolio_router
from .routes import router

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    logger.info("Database tables ready")
    yield


app = FastAPI(title="Deal Desk", lifespan=lifespan)

app.include_router(router)
app.include_router(portfolio_router)
app.include_router(document_router)
app.include_router(chat_router)


if __name__ == "__main__":
    uvicorn.run("dealdesk.main:app", host=HOST, port=PORT)
