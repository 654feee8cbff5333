from typing import Annotated
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from busbook.core import get_settings
from busbook.infrastructure import get_session
from busbook.locks import TripLockManager
from busbook.security import current_user
from busbook.services import (
    BookingService, TripService, NotificationService, RequestContext
)


def get_lock_manager(request: Request) -> TripLockManager:
    return request.app.state.trip_locks


def get_notifier(request: Request) -> NotificationService:
    return request.app.state.notifier


async def get_request_context(request: Request, user: Annotated[dict, Depends(current_user)]) -> RequestContext:
    """Per-request actor, built from the token and the client id"""
    client_id = getattr(request.state, "client_id", None) or request.headers.get("X-Client-Id")
    return RequestContext.from_claims(user, client_id=client_id)


# Type aliases for dependency injection
SessionDep = Annotated[AsyncSession, Depends(get_session)]
LocksDep = Annotated[TripLockManager, Depends(get_lock_manager)]
NotifierDep = Annotated[NotificationService, Depends(get_notifier)]
ContextDep = Annotated[RequestContext, Depends(get_request_context)]


def get_booking_service(sess: SessionDep, locks: LocksDep, notifier: NotifierDep) -> BookingService:
    return BookingService(sess, locks, notifier, phone_region=get_settings().DEFAULT_PHONE_REGION)


def get_trip_service(sess: SessionDep, locks: LocksDep) -> TripService:
    return TripService(sess, locks, timezone=get_settings().TIMEZONE)


BookingServiceDep = Annotated[BookingService, Depends(get_booking_service)]
TripServiceDep = Annotated[TripService, Depends(get_trip_service)]
