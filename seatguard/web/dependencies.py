"""FastAPI dependency injection and shared state."""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any

import structlog
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncEngine

from seatguard.config.settings import get_settings
from seatguard.notifications.email import InvitationNotifier, ResendNotifier
from seatguard.storage.database import get_engine
from seatguard.storage.ownership import UserDeletionService
from seatguard.storage.repositories.scoped import TenantScopedRepository
from seatguard.storage.repositories.users import DatabaseUserRepository
from seatguard.tenancy.admission import SeatAdmissionController
from seatguard.tenancy.context import TenantContextLoader
from seatguard.tenancy.invitations import InvitationService
from seatguard.tenancy.ledger import LicenseLedger
from seatguard.web.auth.session import SessionAuth, get_session_auth

if TYPE_CHECKING:
    from sqlmodel import SQLModel

    from seatguard.types import ResourceType

logger = structlog.get_logger(__name__)


def get_db_engine() -> AsyncEngine:
    """Engine used by every request; tests override this dependency."""
    return get_engine()


def get_identity() -> SessionAuth:
    return get_session_auth()


def get_notifier() -> InvitationNotifier:
    settings = get_settings()
    return ResendNotifier(settings.resend_api_key, settings.resend_from_email)


def get_user_repo(engine: AsyncEngine = Depends(get_db_engine)) -> DatabaseUserRepository:
    return DatabaseUserRepository(engine)


def get_context_loader(
    identity: SessionAuth = Depends(get_identity),
    users: DatabaseUserRepository = Depends(get_user_repo),
) -> TenantContextLoader:
    return TenantContextLoader(identity, users)


def get_ledger(engine: AsyncEngine = Depends(get_db_engine)) -> LicenseLedger:
    return LicenseLedger(engine)


def get_admission(
    engine: AsyncEngine = Depends(get_db_engine),
    ledger: LicenseLedger = Depends(get_ledger),
) -> SeatAdmissionController:
    settings = get_settings()
    return SeatAdmissionController(
        engine,
        ledger,
        max_attempts=settings.admission_max_attempts,
        retry_delay_ms=settings.admission_retry_delay_ms,
    )


def get_invitation_service(
    engine: AsyncEngine = Depends(get_db_engine),
    admission: SeatAdmissionController = Depends(get_admission),
    notifier: InvitationNotifier = Depends(get_notifier),
) -> InvitationService:
    settings = get_settings()
    return InvitationService(
        engine,
        admission,
        notifier,
        ttl_days=settings.invitation_ttl_days,
        app_base_url=settings.app_base_url,
    )


def get_deletion_service(
    engine: AsyncEngine = Depends(get_db_engine),
    ledger: LicenseLedger = Depends(get_ledger),
) -> UserDeletionService:
    return UserDeletionService(engine, ledger)


def scoped_repository(
    model: type[SQLModel], resource_type: ResourceType
) -> Callable[..., TenantScopedRepository[Any]]:
    """Build a dependency yielding a TenantScopedRepository for ``model``."""

    def _dependency(engine: AsyncEngine = Depends(get_db_engine)) -> TenantScopedRepository[Any]:
        return TenantScopedRepository(engine, model, resource_type)

    return _dependency
