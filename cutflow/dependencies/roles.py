from fastapi import Depends, HTTPException
from cutflow.models.user import User, UserRole
from cutflow.utils.token import get_current_user


def require_role(*roles: UserRole):
    allowed = set(roles)

    def dependency(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in allowed:
            raise HTTPException(
                status_code=403,
                detail=f"Requires role: {', '.join(sorted(r.value for r in allowed))}",
            )
        return current_user

    return dependency


require_creator = require_role(UserRole.CREATOR)
require_editor = require_role(UserRole.EDITOR)
require_admin = require_role(UserRole.ADMIN)
require_creator_or_admin = require_role(UserRole.CREATOR, UserRole.ADMIN)
