# coopbus/main.py

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from coopbus.core.config import settings
from coopbus.utils.logger import setup_app_logging, get_logger
# Local application imports - Routes
from coopbus.surplus.router import router as surplus_routes
from coopbus.subsidy.router import router as subsidy_routes
from coopbus.allocation.router import router as allocation_routes
from coopbus.costing.router import router as costing_routes
from coopbus.pricing.router import router as pricing_routes
from coopbus.members.router import router as member_routes
from coopbus.dividends.router import router as dividend_routes


# Create the FastAPI app
coop_app = FastAPI(
    title=f"Cooperative Bus Surplus Engine - {settings.environment}",
    description="Cost-based pricing, surplus pools and member dividends for cooperative bus services",
    docs_url="/docs",
    redoc_url="/redoc",
)

# Configure logging
if settings.environment.lower() != "production":
    setup_app_logging(
        coop_app,
        log_level=settings.log_level,
        use_json=False,
        log_file=settings.log_file,
        app_name="Cooperative Bus Surplus Engine",
        environment=settings.environment,
    )
else:
    setup_app_logging(
        coop_app,
        log_level=settings.log_level,
        use_json=True,
        log_file=settings.log_file,
        app_name="Cooperative Bus Surplus Engine",
        environment="production",
    )
logger = get_logger(__name__)

# Add CORS middleware
coop_app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_cors_urls.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
coop_app.include_router(surplus_routes)
coop_app.include_router(subsidy_routes)
coop_app.include_router(allocation_routes)
coop_app.include_router(costing_routes)
coop_app.include_router(pricing_routes)
coop_app.include_router(member_routes)
coop_app.include_router(dividend_routes)


# Root API to check if the server is up
@coop_app.get("/", tags=["Base"])
async def health_check():
    """
    Root API to check if the server is up
    """
    logger.info("Calling root API for testing")
    return {"status": "ok"}
