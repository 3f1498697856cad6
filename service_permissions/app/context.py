"""
Per-request authentication context.
"""

import uuid
from dataclasses import dataclass
from typing import Mapping, Optional

from .policies.models import UserRecord


@dataclass(frozen=True)
class AuthenticationContext:
    """Caller identity and request metadata for a single inbound call.

    Built once per request and passed by value into every check.
    """
    user_id: Optional[str] = None
    user: Optional[UserRecord] = None
    session_id: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    request_id: Optional[str] = None
    token: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None

    @classmethod
    def anonymous(cls, request_id: Optional[str] = None) -> "AuthenticationContext":
        return cls(request_id=request_id or str(uuid.uuid4()))

    @classmethod
    def for_user(cls, user: UserRecord, **kwargs) -> "AuthenticationContext":
        return cls(user_id=user.id, user=user, **kwargs)

    @classmethod
    def from_request(
        cls,
        user: Optional[UserRecord],
        headers: Mapping[str, str],
        client_ip: Optional[str] = None,
    ) -> "AuthenticationContext":
        """Build a context from resolved caller and inbound request headers.

        Header names are matched case-insensitively. The first hop of
        ``x-forwarded-for`` wins over ``client_ip``; a request id is generated
        when the caller did not send one.
        """
        lowered = {k.lower(): v for k, v in headers.items()}

        forwarded = lowered.get("x-forwarded-for")
        ip_address = forwarded.split(",")[0].strip() if forwarded else client_ip

        token = None
        authorization = lowered.get("authorization", "")
        if authorization.lower().startswith("bearer "):
            token = authorization[7:].strip() or None

        return cls(
            user_id=user.id if user else None,
            user=user,
            session_id=lowered.get("x-session-id"),
            ip_address=ip_address,
            user_agent=lowered.get("user-agent"),
            request_id=lowered.get("x-request-id") or str(uuid.uuid4()),
            token=token,
        )
