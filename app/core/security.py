import hashlib
from datetime import datetime, timezone
from typing import Dict, Optional
from pydantic import BaseModel, Field


class AuthContext(BaseModel):
    """Credentials forwarded to the upstream API on behalf of the caller.

    The upstream authenticates every request with the X-User-Email /
    X-User-Password header pair; a bearer token is forwarded as well when the
    caller has one. The context is passed explicitly to every fetch so a
    report's inputs are fully determined by its arguments.
    """
    email: Optional[str] = None
    password: Optional[str] = None
    token: Optional[str] = None
    established_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Config:
        frozen = True

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token) or bool(self.email and self.password)

    @property
    def identity(self) -> str:
        """Who the caller is, for logs and audit lines."""
        return self.email or self.token or "anonymous"

    def headers(self) -> Dict[str, str]:
        """Request headers carrying these credentials."""
        headers = {}
        if self.email and self.password:
            headers["X-User-Email"] = self.email
            headers["X-User-Password"] = self.password
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def credential_key(self) -> str:
        """Digest of the forwarded credentials; one report session per distinct set."""
        material = "\n".join(f"{name}:{value}" for name, value in sorted(self.headers().items()))
        return hashlib.sha256(material.encode("utf-8")).hexdigest()

    def is_fresh(self, window_seconds: float, now: Optional[datetime] = None) -> bool:
        """True if the credentials were set up within the last `window_seconds`.

        Requests dispatched right after credential setup can race the
        upstream's credential propagation and fail authorization once.
        """
        now = now or datetime.now(timezone.utc)
        return (now - self.established_at).total_seconds() <= window_seconds
