from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from alf.api.routes import research, tools
from alf.config import settings
from alf.services import logger as log_service


@asynccontextmanager
async def lifespan(app: FastAPI):
    log_service.log_event(
        event_type="startup",
        message="ALF service starting",
        search_provider=settings.search_provider,
        scrape_provider=settings.scrape_provider,
        model=settings.research_model,
    )
    yield
    log_service.log_event(event_type="shutdown", message="ALF service stopped")


app = FastAPI(
    title="ALF",
    description="Deep research service: search, rerank, scrape and a streamed cited brief",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routes
app.include_router(research.router)
app.include_router(tools.router)


@app.exception_handler(Exception)
async def unhandled_exception(request: Request, exc: Exception):
    log_service.logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse({"error": "Internal server error", "details": str(exc)}, status_code=500)


@app.get("/api/health")
async def health():
    return {"status": "ok", "service": "alf"}
