"""API layer module.

Contains FastAPI routers and request/response schemas.
"""

from tailorshop.api.admin_settings import router as admin_settings_router
from tailorshop.api.appointments import router as appointments_router
from tailorshop.api.health import router as health_router
from tailorshop.api.orders import router as orders_router

__all__ = [
    "admin_settings_router",
    "appointments_router",
    "health_router",
    "orders_router",
]
