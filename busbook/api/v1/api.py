from fastapi import APIRouter, Depends

from busbook.roles import Role
from busbook.security import role_required
from busbook.api.v1.endpoints import trips, bookings, admin


# Create main API router
api_v1_router = APIRouter()

# Include trip search endpoints (public access)
api_v1_router.include_router(
    trips.router,
    prefix="/trips",
    tags=["trips"]
)

# Include booking endpoints (signed-in passengers and admins)
api_v1_router.include_router(
    bookings.router,
    prefix="/bookings",
    tags=["bookings"],
    dependencies=[Depends(role_required(Role.passenger, Role.admin))]
)

# Include admin endpoints (admin access)
api_v1_router.include_router(
    admin.router,
    prefix="/admin",
    tags=["admin"],
    dependencies=[Depends(role_required(Role.admin))]
)
