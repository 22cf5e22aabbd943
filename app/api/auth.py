from fastapi import APIRouter, Depends

from app.core.deps import get_current_user
from app.schemas.user import UserOut

router = APIRouter(prefix="/auth", tags=["Auth"])


# El login lo hace el proveedor de identidad; aquí solo devolvemos quién eres
@router.get("/me", response_model=UserOut)
def me(current_user = Depends(get_current_user)):
    return current_user
