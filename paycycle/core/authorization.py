from enum import Enum

from fastapi import Depends, HTTPException, Request

from paycycle.deps.auth import require_auth


class Role(Enum):
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    EMPLOYEE = "EMPLOYEE"


ROLE_RANK = {
    Role.EMPLOYEE: 1,
    Role.MANAGER: 2,
    Role.ADMIN: 3,
}

# Tokens minted without a role claim act as managers.
DEFAULT_ROLE = Role.MANAGER


def require_role(role: Role):
    def dependency(request: Request, _auth: tuple[str, int] = Depends(require_auth)):
        claim_role = request.state.claims.get("role")
        if not claim_role:
            user_role = DEFAULT_ROLE
        else:
            try:
                user_role = Role(str(claim_role).upper())
            except ValueError as exc:
                raise HTTPException(status_code=403, detail="Invalid role claim") from exc

        if ROLE_RANK[user_role] < ROLE_RANK[role]:
            raise HTTPException(status_code=403, detail="Insufficient role")

        request.state.role = user_role.value
        return user_role

    return dependency
