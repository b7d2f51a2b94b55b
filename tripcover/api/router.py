from fastapi import APIRouter

from tripcover.api.health import router as health_router
from tripcover.api.policies import router as policies_router
from tripcover.api.products import router as products_router
from tripcover.api.quotes import router as quotes_router

api_router = APIRouter()

# Include sub-routers
api_router.include_router(health_router, tags=["health"])
api_router.include_router(products_router)
api_router.include_router(quotes_router)
api_router.include_router(policies_router)
