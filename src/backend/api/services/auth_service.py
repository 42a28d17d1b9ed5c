from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt

from core.constants import Settings, get_settings
from models.api_models import UserInfo


class AuthService:
    """Validates session JWTs issued by the identity provider."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    def decode(self, token: str) -> dict[str, Any]:
        """Decode and verify a bearer token.

        Raises:
            ValueError: If the signature, expiry, audience or issuer is invalid,
                or the token has no subject
        """
        options = {"verify_aud": self.settings.jwt_audience is not None}
        try:
            payload: dict[str, Any] = jwt.decode(
                token,
                self.settings.jwt_secret,
                algorithms=[self.settings.jwt_algorithm],
                audience=self.settings.jwt_audience,
                issuer=self.settings.jwt_issuer,
                options=options,
            )
        except JWTError as exc:
            raise ValueError("Invalid token") from exc

        if not payload.get("sub"):
            raise MissingSubjectError("Token has no subject")
        return payload

    def user_from_token(self, token: str) -> UserInfo:
        payload = self.decode(token)
        return UserInfo(id=str(payload["sub"]), email=payload.get("email"), name=payload.get("name"))

    def issue_access_token(
        self,
        sub: str,
        email: str | None = None,
        name: str | None = None,
        expires_minutes: int = 60,
    ) -> str:
        """Sign a token with the configured secret. Used by local tooling and tests."""
        payload: dict[str, Any] = {
            "sub": sub,
            "exp": datetime.now(timezone.utc) + timedelta(minutes=expires_minutes),
        }
        if email:
            payload["email"] = email
        if name:
            payload["name"] = name
        if self.settings.jwt_audience:
            payload["aud"] = self.settings.jwt_audience
        if self.settings.jwt_issuer:
            payload["iss"] = self.settings.jwt_issuer
        token: str = jwt.encode(payload, self.settings.jwt_secret, algorithm=self.settings.jwt_algorithm)
        return token


class MissingSubjectError(ValueError):
    """A verified token without a `sub` claim."""


__all__ = ["AuthService", "MissingSubjectError"]
