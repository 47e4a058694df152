from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from deep_research.api.host import FastAPIHost
from deep_research.config import Settings
from deep_research.plugin import PLUGIN_VERSION, register
from deep_research.services.logger import configure_logging

settings = Settings()
host = FastAPIHost()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    configure_logging(settings.app_log_level, noisy_level=settings.noisy_log_level, log_dir=settings.log_dir)
    yield
    # Shutdown


register(host)

app = FastAPI(
    title="Deep Research",
    description="Parallel research across Exa, Firecrawl and Perplexity",
    version=PLUGIN_VERSION,
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
app.include_router(host.router())


@app.get("/api/health")
async def health():
    return {"status": "ok", "service": "deep-research"}
