from collections.abc import Generator

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from app.core.security import SECRET_KEY, ALGORITHM
from app.db.session import SessionLocal
from app.db.models.user import User
from app.services.f1_provider import RaceDataProvider, build_provider

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token")


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_race_data_provider() -> RaceDataProvider:
    return build_provider()


def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> User:
    """
    El proveedor de identidad firma el token; aquí solo usamos el id externo ('sub').
    Si es la primera vez que vemos a este usuario lo creamos (para las relaciones).
    """
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        raise HTTPException(status_code=401, detail="Token inválido")

    external_id = payload.get("sub")
    if not external_id:
        raise HTTPException(status_code=401, detail="Token inválido")

    user = db.query(User).filter(User.external_id == str(external_id)).first()

    if not user:
        user = User(
            external_id=str(external_id),
            username=payload.get("name") or payload.get("username") or str(external_id),
            email=payload.get("email"),
            avatar_url=payload.get("picture"),
        )
        db.add(user)
        db.commit()
        db.refresh(user)

    return user


def require_admin(
    current_user: User = Depends(get_current_user),
):
    if current_user.role != "admin":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin privileges required",
        )
    return current_user
