from fastapi import APIRouter, Depends

from scheduler.auth.dependencies import get_current_user
from scheduler.models.user import User
from scheduler.scheduling.state_machine import ADMIN_ROLES

router = APIRouter(tags=['auth'])


@router.get("/me")
def me(current_user: User = Depends(get_current_user)):
    return {
        "id": current_user.id,
        "email": current_user.email,
        "name": current_user.name,
        "role": current_user.role,
        "is_admin": current_user.role in ADMIN_ROLES,
    }
