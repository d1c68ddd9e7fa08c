"""Operator session context.

Holds what the transport needs to authenticate as the logged-in operator.
Constructed once and passed to the client explicitly.
"""
from __future__ import annotations

from dataclasses import dataclass

from hostsync.config import Settings

TOKEN_COOKIE = "ZCPToken"
USERNAME_COOKIE = "ZUsername"


@dataclass(frozen=True)
class SessionContext:
    username: str = ""
    token: str = ""

    @classmethod
    def from_settings(cls, settings: Settings) -> "SessionContext":
        return cls(username=settings.username, token=settings.auth_token)

    @property
    def logged_in(self) -> bool:
        return bool(self.token)

    def cookies(self) -> dict[str, str]:
        """Session cookies the control plane expects on every request."""
        cookies: dict[str, str] = {}
        if self.token:
            cookies[TOKEN_COOKIE] = self.token
        if self.username:
            cookies[USERNAME_COOKIE] = self.username
        return cookies
