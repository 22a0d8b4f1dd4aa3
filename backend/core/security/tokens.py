"""
JWT token service for dashboard authentication.

Tokens are issued by the main ChatGrow API; this service only needs to verify
them and read the tenant claim.  ``create_access_token`` exists so tests and
internal tooling can mint compatible tokens.
"""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from jose import JWTError, jwt


@dataclass
class TokenPayload:
    """JWT token payload structure."""

    sub: str  # Subject (user ID)
    exp: datetime  # Expiration time
    iat: datetime  # Issued at
    type: str  # Token type: "access"
    business_id: str | None = None  # Tenant the user acts for
    role: str | None = None


class TokenService:
    """Service for creating and validating JWT tokens."""

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        access_token_expire_minutes: int = 60,
    ):
        """
        Initialize the token service.

        Args:
            secret_key: Secret key for signing tokens
            algorithm: JWT algorithm (default: HS256)
            access_token_expire_minutes: Access token expiration in minutes
        """
        self._secret_key = secret_key
        self._algorithm = algorithm
        self._access_token_expire_minutes = access_token_expire_minutes

    def create_access_token(
        self,
        user_id: str,
        business_id: str | None = None,
        role: str | None = None,
        expires_delta: timedelta | None = None,
    ) -> str:
        """
        Create an access token.

        Args:
            user_id: User ID to encode in the token
            business_id: Tenant claim
            role: Optional role to include
            expires_delta: Override the configured lifetime

        Returns:
            Encoded JWT access token
        """
        now = datetime.now(UTC)
        expire = now + (expires_delta or timedelta(minutes=self._access_token_expire_minutes))

        payload = {
            "sub": user_id,
            "exp": expire,
            "iat": now,
            "type": "access",
        }

        if business_id:
            payload["business_id"] = business_id
        if role:
            payload["role"] = role

        return jwt.encode(payload, self._secret_key, algorithm=self._algorithm)

    def decode_token(self, token: str) -> TokenPayload | None:
        """
        Decode and validate a JWT token.

        Args:
            token: JWT token to decode

        Returns:
            TokenPayload if valid, None if invalid or expired
        """
        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self._algorithm],
            )

            required_fields = ["sub", "exp", "type"]
            for field in required_fields:
                if field not in payload:
                    raise JWTError(f"Missing required field: {field}")

            return TokenPayload(
                sub=payload.get("sub"),
                exp=datetime.fromtimestamp(payload.get("exp"), tz=UTC),
                iat=datetime.fromtimestamp(payload.get("iat", 0), tz=UTC),
                type=payload.get("type"),
                business_id=payload.get("business_id") or payload.get("businessId"),
                role=payload.get("role"),
            )
        except JWTError:
            return None

    def verify_access_token(self, token: str) -> TokenPayload | None:
        """
        Verify an access token.

        Args:
            token: JWT token to verify

        Returns:
            TokenPayload if valid access token, None otherwise
        """
        payload = self.decode_token(token)
        if payload and payload.type == "access":
            return payload
        return None
