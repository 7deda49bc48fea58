import jwt
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any

from ..config import settings


class TokenManager:
    """Issues and verifies signed demo-identity tokens.

    The session layer that signs users in mints a token for the user's email
    with ``create_demo_token``; the gateway checks it with
    ``verify_demo_token`` when ``settings.demo_require_token`` is on.
    """

    def __init__(self, secret_key: Optional[str] = None):
        self.secret_key = secret_key or settings.secret_key
        self.algorithm = "HS256"
        self.default_expiry = timedelta(hours=1)

    def create_demo_token(
        self, email: str, expires_in: Optional[timedelta] = None
    ) -> Dict[str, Any]:
        """Create a JWT asserting that ``email`` has a verified session."""
        if expires_in is None:
            expires_in = self.default_expiry

        now = datetime.now(timezone.utc)
        expiry = now + expires_in

        payload = {
            "sub": email,  # Subject (demo identity)
            "iat": now,  # Issued at
            "exp": expiry,  # Expires at
            "jti": secrets.token_hex(16),  # JWT ID (unique identifier)
            "type": "demo",  # Token type
        }

        token = jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

        return {
            "access_token": token,
            "token_type": "bearer",
            "expires_in": int(expires_in.total_seconds()),
            "expires_at": expiry.isoformat(),
            "email": email,
        }

    def verify_demo_token(self, token: str) -> Optional[str]:
        """Return the email a valid demo token was issued for, else None."""
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except jwt.InvalidTokenError:
            # Covers expired, malformed and badly signed tokens
            return None

        if payload.get("type") != "demo":
            return None

        return payload.get("sub") or None
