"""
FastAPI main application for the comparable-sales engine.
"""

# Load environment variables from .env file
from dotenv import load_dotenv
load_dotenv()

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging

from comparables.config import get_engine_settings
from comparables.marketplace import MarketplaceSearchClient
from comparables.orchestrator import ComparableSalesOrchestrator
from comparables.query import QueryAuthority, QueryGenerator
from comparables.settings_store import create_settings_store

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    # Startup
    logger.info("Starting comparable-sales API...")
    settings = get_engine_settings()
    settings_store = create_settings_store(settings)
    authority = QueryAuthority(settings.marketplace.search_page_url)

    app.state.settings = settings
    app.state.settings_store = settings_store
    app.state.authority = authority
    app.state.generator = QueryGenerator(authority, settings.generator)
    app.state.orchestrator = ComparableSalesOrchestrator(
        client=MarketplaceSearchClient(settings),
        authority=authority,
        settings_store=settings_store,
        settings=settings,
    )
    logger.info(f"Marketplace: {settings.marketplace.base_url} ({settings.marketplace.reference_currency})")

    yield

    # Shutdown
    logger.info("Shutting down comparable-sales API...")
    await app.state.orchestrator.close()


app = FastAPI(
    title="Comparable Sales API",
    description="Market analysis from comparable auction sales",
    version=VERSION,
    lifespan=lifespan
)

# CORS middleware - allow all origins for development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "version": VERSION
    }


# Import and include routers
from comparables.api.routers import analysis, query, settings

app.include_router(analysis.router, prefix="/api", tags=["analysis"])
app.include_router(query.router, prefix="/api", tags=["query"])
app.include_router(settings.router, prefix="/api", tags=["settings"])
