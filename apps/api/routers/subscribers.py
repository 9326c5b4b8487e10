"""Subscriber package renewal and update router."""

from __future__ import annotations

from typing import Any, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from models.user import User
from routers.auth_scope import get_current_account
from routers.rate_limit import rate_limit
from services.renewals import (
    activate_subscriber,
    get_subscriber,
    list_subscribers,
    renew_subscriber_packages,
    update_subscriber_packages,
)

router = APIRouter()


class RenewRequest(BaseModel):
    duration: Any = None


class ActivateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    expiry_date: Optional[str] = Field(default=None, alias="expiryDate")


class SubscriberUpdateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    packages: List[str] = Field(default_factory=list)
    expiry_date: Optional[str] = Field(default=None, alias="expiryDate")
    subscriber_name: Optional[str] = Field(default=None, alias="subscriberName")
    mac_address: Optional[str] = Field(default=None, alias="macAddress")
    serial_number: Optional[str] = Field(default=None, alias="serialNumber")
    status: Optional[str] = None


@router.get("")
async def get_subscribers(
    status: Optional[str] = Query(default=None),
    search: Optional[str] = Query(default=None),
    account: User = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    subscribers = await list_subscribers(db, actor_id=account.id, status=status, search=search)
    return {"subscribers": subscribers}


@router.get("/{subscriber_id}")
async def get_subscriber_detail(
    subscriber_id: str,
    account: User = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    return {"subscriber": await get_subscriber(db, actor_id=account.id, subscriber_id=subscriber_id)}


@router.patch("/{subscriber_id}/activate")
async def activate(
    subscriber_id: str,
    request: Optional[ActivateRequest] = None,
    account: User = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    return await activate_subscriber(
        db,
        actor_id=account.id,
        subscriber_id=subscriber_id,
        expiry_date=request.expiry_date if request else None,
    )


@router.patch("/{subscriber_id}/renew")
async def renew(
    subscriber_id: str,
    request: RenewRequest,
    _rate_limit: None = Depends(rate_limit("subscriber_renew", limit=120, window_seconds=3600)),
    account: User = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    return await renew_subscriber_packages(
        db,
        actor_id=account.id,
        subscriber_id=subscriber_id,
        duration_days=request.duration,
    )


@router.put("/{subscriber_id}")
async def update_subscriber(
    subscriber_id: str,
    request: SubscriberUpdateRequest,
    _rate_limit: None = Depends(rate_limit("subscriber_update", limit=120, window_seconds=3600)),
    account: User = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    return await update_subscriber_packages(
        db,
        actor_id=account.id,
        subscriber_id=subscriber_id,
        package_ids=request.packages,
        expiry_date=request.expiry_date,
        subscriber_name=request.subscriber_name,
        mac_address=request.mac_address,
        serial_number=request.serial_number,
        status=request.status,
    )
