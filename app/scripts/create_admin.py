import sys

from sqlalchemy.orm import Session

from app.db.session import SessionLocal
from app.db.models import _all
from app.db.models.user import User


def grant_admin(db: Session, external_id: str, username: str | None = None) -> User:
    """
    Da rol de administrador al usuario con ese id externo.
    Si aún no ha entrado nunca lo creamos ya con el rol.
    """
    user = db.query(User).filter(User.external_id == external_id).first()

    if not user:
        user = User(external_id=external_id, username=username or external_id, role="admin")
        db.add(user)
    else:
        user.role = "admin"

    db.commit()
    db.refresh(user)
    return user


def create_admin_user(external_id: str):
    db = SessionLocal()

    try:
        user = grant_admin(db, external_id)
        print("✅ Usuario administrador listo")
        print("➡️  Id externo:", user.external_id)
        print("➡️  Usuario:", user.username)

    except Exception as e:
        db.rollback()
        print("❌ Error creando el usuario administrador")
        print(e)
        raise

    finally:
        db.close()


if __name__ == "__main__":
    if len(sys.argv) != 2:
        print("Uso: python -m app.scripts.create_admin <id-externo>")
        sys.exit(1)
    create_admin_user(sys.argv[1])
