"""Application layer module.

Contains application services (use cases) that orchestrate
domain logic and infrastructure.
"""

from tailorshop.application.appointment_service import (
    AppointmentService,
    get_appointment_service,
)
from tailorshop.application.order_service import (
    OrderService,
    get_order_service,
)

__all__ = [
    "AppointmentService",
    "get_appointment_service",
    "OrderService",
    "get_order_service",
]
