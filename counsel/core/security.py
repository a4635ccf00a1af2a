import uuid
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from pydantic import BaseModel
from counsel.core.config import settings

http_bearer = HTTPBearer(auto_error=False)

ROLES = ("customer", "consultant", "admin")

class Principal(BaseModel):
    user_id: uuid.UUID
    roles: list[str] = []
    consultant_id: uuid.UUID | None = None  # set for consultant accounts

    def has_role(self, *roles: str) -> bool:
        return bool(set(roles) & set(self.roles))

    @property
    def is_admin(self) -> bool:
        return "admin" in self.roles

def _decode_token(token: str) -> dict:
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALG], audience=settings.REQUIRED_AUDIENCE)
        return payload
    except JWTError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=f"Invalid token: {e}")

async def get_principal(creds: HTTPAuthorizationCredentials | None = Depends(http_bearer)) -> Principal:
    # In local, allow missing token and act as admin
    if creds is None and settings.ENV == "local":
        return Principal(user_id=uuid.uuid4(), roles=["admin"])
    if creds is None:
        raise HTTPException(status_code=401, detail="Missing token")

    data = _decode_token(creds.credentials)
    try:
        user_id = uuid.UUID(str(data.get("sub") or data.get("user_id")))
        consultant_id = uuid.UUID(str(data["consultant_id"])) if data.get("consultant_id") else None
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid token subject")
    roles = [r for r in data.get("roles", []) if r in ROLES]
    if data.get("role") in ROLES and data["role"] not in roles:
        roles.append(data["role"])
    return Principal(user_id=user_id, roles=roles, consultant_id=consultant_id)

def require_roles(*needed: str):
    def dep(principal: Principal = Depends(get_principal)) -> Principal:
        if principal.is_admin:
            return principal
        if not principal.has_role(*needed):
            raise HTTPException(status_code=403, detail="Insufficient role")
        return principal
    return dep
