# photosku/api/v1/router.py
from fastapi import APIRouter
from photosku.api.v1.endpoints import auth, health, upload, process, delivery, images

# Create API v1 router
api_router = APIRouter()

# Include all endpoint routers
api_router.include_router(
    health.router,
    tags=["Health"]
)

api_router.include_router(
    auth.router,
    prefix="/auth",
    tags=["Authentication"]
)

api_router.include_router(
    upload.router,
    tags=["Upload"]
)

api_router.include_router(
    process.router,
    tags=["Batch Processing"]
)

api_router.include_router(
    delivery.router,
    tags=["Delivery"]
)

api_router.include_router(
    images.router,
    tags=["Images"]
)
