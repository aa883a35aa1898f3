# file: main.py

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from findora.config import settings
from findora.controllers.auth import router as auth_router
from findora.controllers.places import router as places_router
from findora.controllers.search_history import router as search_history_router
from findora.database.connection import init_db
from findora.services.context import build_service_context

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(title="FinD-ora API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router, prefix="/auth", tags=["auth"])
app.include_router(places_router, prefix="/places", tags=["places"])
app.include_router(search_history_router, prefix="/search-history", tags=["search-history"])


@app.get("/")
async def root():
    return {"message": "FinD-ora API is running"}

@app.on_event("startup")
async def startup_event():
    await init_db()
    app.state.services = build_service_context(settings)
