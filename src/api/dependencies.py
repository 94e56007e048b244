"""FastAPI dependencies for injection."""
from fastapi import Depends, Header, HTTPException

from core.config import Settings, get_settings
from core.user_session import UserSession
from services.current_person_cache import CurrentPersonCache
from services.person_service import PersonService


# Global person service state using a container to avoid global statement
class _ServiceState:
    """Container for the person service built during app startup."""

    service: PersonService | None = None


_state = _ServiceState()


def set_person_service(service: PersonService | None) -> None:
    """Set the global person service instance."""
    _state.service = service


def get_person_service() -> PersonService:
    """Dependency returning the person service."""
    if _state.service is None:
        raise HTTPException(status_code=503, detail="Person service is not initialized")
    return _state.service


def get_user_session(
    user_identifier: str | None = Header(default=None, alias="X-User-Identifier"),
    session_key: str | None = Header(default=None, alias="X-Session-Key"),
    service_account: bool = Header(default=False, alias="X-Service-Account"),
    settings: Settings = Depends(get_settings),
) -> UserSession:
    """
    Build the caller session from headers set by the upstream authentication gateway.

    Authentication happens before requests reach this service; override this
    dependency to take the session from somewhere else.
    """
    if not user_identifier:
        return UserSession.anonymous()
    return UserSession(
        user_identifier=user_identifier,
        session_cache_key=session_key or user_identifier,
        session_ttl=settings.session_ttl,
        is_authenticated=True,
        is_service_account=service_account,
    )


def get_current_person_cache(
    session: UserSession = Depends(get_user_session),
    service: PersonService = Depends(get_person_service),
) -> CurrentPersonCache:
    """Request-scoped current person cache (FastAPI resolves it once per request)."""
    return service.for_session(session)


__all__ = [
    "get_current_person_cache",
    "get_person_service",
    "get_settings",
    "get_user_session",
    "set_person_service",
]
