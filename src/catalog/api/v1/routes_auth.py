from __future__ import annotations

from fastapi import APIRouter, Depends

from src.catalog.api.schemas import dump, ok
from src.catalog.security import Caller, get_caller

router = APIRouter(prefix="/auth", tags=["auth"])


@router.get("/me")
async def who_am_i(caller: Caller = Depends(get_caller)) -> dict:
    """Report how the presented credential was classified.

    Identity itself is issued elsewhere; this only echoes verified claims so
    clients can decide whether to show admin controls.
    """

    return ok(
        {
            "access": caller.access.value,
            "isAdmin": caller.identity is not None and caller.identity.is_admin,
            "user": dump(caller.identity) if caller.identity is not None else None,
            "credentialError": caller.credential_error,
        }
    )
