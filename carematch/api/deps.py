# carematch/api/deps.py
"""
Caller identity as forwarded by the authenticating gateway.
Routes receive it explicitly and pass it down; nothing reads it from globals.
"""
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header

from carematch.core.errors import Forbidden, Unauthorized
from carematch.core.logging import set_caller_context

SPECIALIST = "specialist"
PARENT = "parent"


@dataclass(frozen=True)
class Caller:
    user_id: str
    role: str


async def get_caller(
    x_user_id: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
) -> Caller:
    if not x_user_id or not x_user_id.strip():
        raise Unauthorized("Missing caller identity")
    caller = Caller(user_id=x_user_id.strip(), role=(x_user_role or "").strip().lower())
    set_caller_context(user_id=caller.user_id, role=caller.role)
    return caller


def require_role(role: str):
    async def _dep(caller: Caller = Depends(get_caller)) -> Caller:
        if caller.role != role:
            raise Forbidden(f"{role} role required")
        return caller
    return _dep


require_specialist = require_role(SPECIALIST)
require_parent = require_role(PARENT)
