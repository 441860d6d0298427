"""Bearer token verification for gateway callers."""

from jose import ExpiredSignatureError, JWTError, jwt
from jose.exceptions import JWTClaimsError

from toolgate.config.models.auth import AuthConfig
from toolgate.observability.logging import get_logger
from toolgate.users.models import User

logger = get_logger(__name__)

AUTH_REQUIRED = "AUTH_REQUIRED"
AUTH_MISSING_TOKEN = "AUTH_MISSING_TOKEN"
AUTH_INVALID_TOKEN = "AUTH_INVALID_TOKEN"
AUTH_TOKEN_EXPIRED = "AUTH_TOKEN_EXPIRED"


class AuthenticationFailed(Exception):
    """Raised when a request carries no usable identity."""

    def __init__(self, error_type: str, message: str) -> None:
        super().__init__(message)
        self.error_type = error_type
        self.message = message


def bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


class IdentityVerifier:
    """Decodes a signed JWT into the caller's user record.

    Required claims are ``sub`` and ``email``. ``tier`` and a display name
    (``name`` or ``user_metadata.full_name``) are optional.
    """

    def __init__(self, config: AuthConfig) -> None:
        self._config = config

    def verify(self, authorization: str | None) -> User:
        token = bearer_token(authorization)
        if token is None:
            raise AuthenticationFailed(AUTH_MISSING_TOKEN, "Missing bearer token")

        options = {"verify_aud": self._config.audience is not None}
        try:
            claims = jwt.decode(
                token,
                self._config.jwt_secret,
                algorithms=[self._config.jwt_algorithm],
                audience=self._config.audience,
                issuer=self._config.issuer,
                options=options,
            )
        except ExpiredSignatureError:
            logger.info("auth_token_expired")
            raise AuthenticationFailed(AUTH_TOKEN_EXPIRED, "Token has expired") from None
        except JWTClaimsError as e:
            logger.warning("auth_claims_error", error=str(e))
            raise AuthenticationFailed(AUTH_INVALID_TOKEN, f"Invalid token claims: {e}") from None
        except JWTError as e:
            logger.warning("auth_jwt_error", error=str(e))
            raise AuthenticationFailed(AUTH_INVALID_TOKEN, "Invalid JWT") from None

        subject = claims.get("sub")
        email = claims.get("email")
        if not subject or not email:
            raise AuthenticationFailed(AUTH_REQUIRED, "Token is missing the sub or email claim")

        metadata = claims.get("user_metadata") or {}
        display_name = claims.get("name") or metadata.get("full_name") or metadata.get("name")
        return User(
            id=str(subject),
            email=str(email).lower(),
            display_name=display_name,
            tier=claims.get("tier") or self._config.default_tier,
        )
