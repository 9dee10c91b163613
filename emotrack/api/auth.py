"""Bearer-token check for private routes. Tokens are issued elsewhere."""
import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from emotrack.utils.config import settings
from emotrack.utils.logger import logger

bearer_scheme = HTTPBearer(auto_error=False)


def _unauthorized(message: str, code: str) -> HTTPException:
    return HTTPException(
        status_code=401,
        detail={"success": False, "message": message, "code": code},
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme)) -> dict:
    """Decode the JWT and return its claims; requires a `userId` claim."""
    if credentials is None or not credentials.credentials:
        raise _unauthorized("Authentification requise - Token manquant", "TOKEN_MISSING")
    try:
        claims = jwt.decode(
            credentials.credentials,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
        )
    except jwt.ExpiredSignatureError:
        raise _unauthorized("Token expiré", "TOKEN_EXPIRED")
    except jwt.InvalidTokenError as e:
        logger.warning("auth_failed", error=str(e))
        raise _unauthorized("Token invalide", "TOKEN_INVALID")
    if not claims.get("userId"):
        raise _unauthorized("Token invalide", "TOKEN_INVALID")
    return claims
