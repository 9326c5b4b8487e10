"""Credit transactions router."""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from models.user import User
from routers.auth_scope import get_current_account
from routers.rate_limit import rate_limit
from services.credits import list_credits, list_transfer_targets, reverse_transfer, transfer

router = APIRouter()
logger = logging.getLogger(__name__)


class CreditCreateRequest(BaseModel):
    # Type and amount are validated by the ledger so the caller gets its messages.
    model_config = ConfigDict(populate_by_name=True)

    type: Optional[str] = None
    amount: Any = None
    user_id: Optional[str] = Field(default=None, alias="user")


@router.get("")
async def get_credits(
    type: Optional[str] = Query(default=None),
    search: Optional[str] = Query(default=None),
    account: User = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    credits = await list_credits(db, actor_id=account.id, type_filter=type, search=search)
    return {"credits": credits}


@router.get("/users")
async def get_transfer_targets(
    account: User = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    return {"users": await list_transfer_targets(db, actor_id=account.id)}


@router.post("", status_code=201)
async def create_credit(
    request: CreditCreateRequest,
    _rate_limit: None = Depends(rate_limit("credit_transfer", limit=60, window_seconds=3600)),
    account: User = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    return await transfer(
        db,
        actor_id=account.id,
        target_id=request.user_id,
        transfer_type=request.type,
        amount=request.amount,
    )


@router.delete("/{credit_id}")
async def delete_credit(
    credit_id: str,
    _rate_limit: None = Depends(rate_limit("credit_reverse", limit=60, window_seconds=3600)),
    account: User = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    return await reverse_transfer(db, actor_id=account.id, credit_id=credit_id)
