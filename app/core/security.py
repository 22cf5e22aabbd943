from datetime import datetime, timedelta

from jose import jwt

from app.core.config import settings

SECRET_KEY = settings.secret_key
ALGORITHM = settings.algorithm


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    """
    Firma un token como lo haría el proveedor de identidad.
    'sub' debe ser el id externo estable del usuario.
    """
    to_encode = data.copy()
    expire = datetime.utcnow() + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)
