"""FastAPI application setup for the RunMate dashboard service."""

from fastapi import FastAPI

from .api import router as api_router

app = FastAPI(title="RunMate Dashboard")

# API routes
app.include_router(api_router, prefix="/v1")
