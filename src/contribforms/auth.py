from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from fastapi import HTTPException, Request

from contribforms.config import Settings


@dataclass(frozen=True)
class Identity:
    """The signed-in user as reported by the identity provider.

    It is captured once per request and handed to the gate, the session and
    the writer; nothing re-derives it later.
    """

    uid: str
    email: str
    display_name: str = ""

    @property
    def name(self) -> str:
        return self.display_name or self.email


class AuthProvider(Protocol):
    def identify(self, request: Request) -> Identity | None: ...


class HeaderAuthProvider:
    """Reads the identity forwarded by the authenticating proxy."""

    uid_header = "x-auth-uid"
    email_header = "x-auth-email"
    name_header = "x-auth-name"

    def identify(self, request: Request) -> Identity | None:
        uid = request.headers.get(self.uid_header, "").strip()
        email = request.headers.get(self.email_header, "").strip()
        if not uid or not email:
            return None
        name = request.headers.get(self.name_header, "").strip()
        return Identity(uid=uid, email=email, display_name=name)


class DevAuthProvider:
    def __init__(self, identity: Identity) -> None:
        self._identity = identity

    def identify(self, request: Request) -> Identity | None:
        return self._identity


def get_auth_provider(settings: Settings) -> AuthProvider:
    if settings.auth_mode == "dev":
        return DevAuthProvider(
            Identity(
                uid=settings.dev_user_uid,
                email=settings.dev_user_email,
                display_name=settings.dev_user_name,
            )
        )
    return HeaderAuthProvider()


def current_identity(request: Request) -> Identity | None:
    return request.app.state.auth_provider.identify(request)


def require_identity(request: Request) -> Identity:
    identity = current_identity(request)
    if identity is None:
        raise HTTPException(status_code=401, detail="Sign in to continue")
    return identity


def require_admin(request: Request) -> Identity:
    identity = require_identity(request)
    admins = request.app.state.settings.admin_emails
    if identity.email.lower() not in admins:
        raise HTTPException(status_code=403, detail="Admin access required")
    return identity
