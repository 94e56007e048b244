"""Caller session information needed to resolve the current person."""
from dataclasses import dataclass


@dataclass(frozen=True)
class UserSession:
    """
    The principal making the request, as established by the authentication layer.

    session_cache_key scopes distributed cache entries to one login session;
    session_ttl is the lifetime of that session in seconds.
    """

    user_identifier: str | None
    session_cache_key: str
    session_ttl: int
    is_authenticated: bool = True
    is_service_account: bool = False

    @property
    def current_identifier(self) -> str | None:
        """Identifier of the interactive caller, or None for anonymous/service callers."""
        if not self.is_authenticated or self.is_service_account:
            return None
        return self.user_identifier or None

    @classmethod
    def anonymous(cls) -> "UserSession":
        """Session for a request without an authenticated caller."""
        return cls(
            user_identifier=None,
            session_cache_key="anonymous",
            session_ttl=0,
            is_authenticated=False,
        )
