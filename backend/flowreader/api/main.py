"""
FlowReader FastAPI Application Main
"""
import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from flowreader.db.sqlite import initialise_db
from flowreader.api.routes import books, progress
from flowreader.core.config import settings
from flowreader.services.library_service import BookLibrary

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

initialise_db()

app = FastAPI(
    title=f"{settings.APP_NAME} API",
    description="Reflowable e-book segmentation and stable reading positions",
    version="0.1.0",
)

app.state.library = BookLibrary()

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(books.router, prefix="/api/books", tags=["Books"])
app.include_router(progress.router, prefix="/api/progress", tags=["Reading Progress"])
