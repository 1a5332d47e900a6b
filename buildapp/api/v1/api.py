# buildapp/api/v1/api.py

from fastapi import APIRouter

from buildapp.api.v1.endpoints import health, offers, orders, realtime, rentals, rfqs

api_router = APIRouter()

api_router.include_router(health.router)
api_router.include_router(rfqs.router)
api_router.include_router(offers.router, prefix="/offers", tags=["Offers"])
api_router.include_router(orders.router)
api_router.include_router(rentals.router)
api_router.include_router(realtime.router)
