from dataclasses import dataclass
from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from kiosk_orders.auth_local import decode_access_token
from kiosk_orders.core import set_request_context
from kiosk_orders.domain.models import Kiosk
from kiosk_orders.infrastructure.db import get_db

BEARER_PREFIX = "Bearer "

@dataclass(frozen=True)
class Principal:
    subject: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @property
    def is_kiosk(self) -> bool:
        return self.role == "kiosk"

async def get_principal(request: Request) -> Principal:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith(BEARER_PREFIX):
        raise HTTPException(status_code=401, detail="Missing token")
    token_data = decode_access_token(auth_header[len(BEARER_PREFIX):])
    if not token_data or not token_data.get("sub") or token_data.get("role") not in ("admin", "kiosk"):
        raise HTTPException(status_code=401, detail="Invalid token")
    principal = Principal(subject=token_data["sub"], role=token_data["role"])
    set_request_context(principal=f"{principal.role}:{principal.subject}")
    return principal

def require_admin(principal: Principal = Depends(get_principal)) -> Principal:
    if not principal.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return principal

def require_kiosk(principal: Principal = Depends(get_principal), db: Session = Depends(get_db)) -> Kiosk:
    """The kiosk behind a kiosk token."""
    if not principal.is_kiosk:
        raise HTTPException(status_code=403, detail="Kiosk access required")
    kiosk = db.get(Kiosk, principal.subject)
    if kiosk is None:
        raise HTTPException(status_code=403, detail="Unknown kiosk")
    return kiosk
