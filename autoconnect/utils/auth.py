"""
Utilitaires d'authentification / Authentication utilities.
Les tokens sont émis par le service d'authentification ; ici ils sont seulement décodés.
Tokens are issued by the authentication service; here they are only decoded.
"""

from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from autoconnect.config import settings


def create_access_token(user_id: int, role: str | None = None) -> str:
    """Créer un access token JWT / Create a JWT access token."""
    expire = datetime.now(timezone.utc) + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    payload = {"sub": str(user_id), "type": "access", "exp": expire}
    if role:
        payload["role"] = role
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> dict | None:
    """Décoder un token JWT / Decode a JWT token. Returns None if invalid."""
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        return None
