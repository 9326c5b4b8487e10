"""Subscriber package renewal and package-change billing.

The subscriber never holds a balance: every cost computed here is charged to
the reseller that owns the subscriber, through the guarded deduction in
`services.balances`. A charge and the subscriber change it pays for are
committed together.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload

from config import settings
from models.package import Package
from models.subscriber import (
    SUBSCRIBER_STATUS_ACTIVE,
    SUBSCRIBER_STATUSES,
    Subscriber,
)
from models.user import ROLE_ADMIN, ROLE_DISTRIBUTOR, ROLE_RESELLER, User
from services.balances import deduct_balance_guarded, format_money
from services.ledger_errors import (
    DuplicateDevice,
    Forbidden,
    InsufficientFunds,
    InvalidDuration,
    InvalidExpiry,
    InvalidPackageSelection,
    InvalidStatus,
    NotFound,
)

logger = logging.getLogger(__name__)

# A hundred years.
MAX_DURATION_DAYS = 36500


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def renewal_cost(packages: Iterable[Package]) -> Decimal:
    """Flat sum of package costs; the renewal duration does not scale it."""
    return sum((Decimal(package.cost or 0) for package in packages), Decimal("0"))


def package_cost_delta(
    current: Sequence[Package],
    new_package_ids: Sequence[str],
    catalog: Dict[str, Package],
) -> Tuple[Decimal, List[str], List[str]]:
    """Return (cost of added - cost of removed, added ids, removed ids).

    `catalog` must hold every id in `new_package_ids`.
    """
    current_ids = [package.id for package in current]
    added_ids = [package_id for package_id in new_package_ids if package_id not in current_ids]
    removed_ids = [package_id for package_id in current_ids if package_id not in new_package_ids]

    added_cost = renewal_cost(catalog[package_id] for package_id in added_ids)
    removed_cost = renewal_cost(package for package in current if package.id in removed_ids)
    return added_cost - removed_cost, added_ids, removed_ids


def extend_expiry(current_expiry: Optional[datetime], duration_days: int, now: Optional[datetime] = None) -> datetime:
    """Extend from the current expiry when it is still in the future, otherwise from now."""
    reference = _as_utc(now) or datetime.now(timezone.utc)
    current = _as_utc(current_expiry) or reference
    base = current if current > reference else reference
    return base + timedelta(days=duration_days)


def parse_duration_days(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        days = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not days.is_finite() or days != days.to_integral_value() or days <= 0 or days > MAX_DURATION_DAYS:
        return None
    return int(days)


def parse_expiry(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return _as_utc(value)
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return _as_utc(datetime.fromisoformat(text))
    except ValueError as exc:
        raise InvalidExpiry("Expiry date is not a valid date") from exc


def _serialize_package(package: Optional[Package]) -> Optional[Dict[str, Any]]:
    if package is None:
        return None
    return {
        "id": package.id,
        "name": package.name,
        "cost": float(package.cost or 0),
        "duration": package.duration,
    }


def _serialize_subscriber(subscriber: Subscriber) -> Dict[str, Any]:
    packages = list(subscriber.packages)
    primary = next((package for package in packages if package.id == subscriber.primary_package_id), None)
    expiry = _as_utc(subscriber.expiry_date)
    return {
        "id": subscriber.id,
        "subscriber_name": subscriber.subscriber_name,
        "serial_number": subscriber.serial_number,
        "mac_address": subscriber.mac_address,
        "status": subscriber.status,
        "expiry_date": expiry.isoformat() if expiry else None,
        "reseller_id": subscriber.reseller_id,
        "packages": [_serialize_package(package) for package in packages],
        "primary_package_id": subscriber.primary_package_id,
        "primary_package": _serialize_package(primary),
    }


async def _get_actor(db: AsyncSession, actor_id: str) -> User:
    result = await db.execute(select(User).where(User.id == actor_id))
    actor = result.scalar_one_or_none()
    if not actor:
        raise NotFound("User not found")
    return actor


async def _scoped_reseller_ids(db: AsyncSession, actor: User) -> Optional[List[str]]:
    """None means every reseller is in scope."""
    if actor.role == ROLE_ADMIN:
        return None
    if actor.role == ROLE_DISTRIBUTOR:
        result = await db.execute(
            select(User.id).where(User.role == ROLE_RESELLER, User.created_by == actor.id)
        )
        return list(result.scalars().all())
    if actor.role == ROLE_RESELLER:
        return [actor.id]
    raise Forbidden("Unauthorized access")


async def _load_subscriber(db: AsyncSession, actor: User, subscriber_id: str) -> Subscriber:
    result = await db.execute(
        select(Subscriber)
        .options(selectinload(Subscriber.packages))
        .where(Subscriber.id == subscriber_id)
    )
    subscriber = result.scalar_one_or_none()
    if not subscriber:
        raise NotFound("Subscriber not found")

    reseller_ids = await _scoped_reseller_ids(db, actor)
    if reseller_ids is not None and subscriber.reseller_id not in reseller_ids:
        raise Forbidden("Unauthorized access")
    return subscriber


async def _check_reseller_funds(db: AsyncSession, reseller_id: str, cost: Decimal) -> User:
    result = await db.execute(select(User).where(User.id == reseller_id))
    reseller = result.scalar_one_or_none()
    if not reseller:
        raise NotFound("Reseller not found")
    if Decimal(reseller.balance or 0) < cost:
        raise InsufficientFunds(
            f"Insufficient balance. Required: {format_money(cost)}, "
            f"Available: {format_money(reseller.balance)}",
            side="reseller",
        )
    return reseller


async def _charge_reseller(db: AsyncSession, reseller: User, cost: Decimal) -> None:
    """Guarded deduction; a concurrent charge that got there first fails this one."""
    if not await deduct_balance_guarded(db, reseller.id, cost):
        await db.rollback()
        raise InsufficientFunds("Failed to deduct balance. Insufficient funds.", side="reseller")


async def _commit_or_rollback(db: AsyncSession) -> None:
    try:
        await db.commit()
    except Exception:
        await db.rollback()
        raise


async def _reseller_balance(db: AsyncSession, reseller: Optional[User]) -> Optional[float]:
    if reseller is None:
        return None
    await db.refresh(reseller, attribute_names=["balance"])
    return float(reseller.balance or 0)


async def get_subscriber(db: AsyncSession, *, actor_id: str, subscriber_id: str) -> Dict[str, Any]:
    actor = await _get_actor(db, actor_id)
    subscriber = await _load_subscriber(db, actor, subscriber_id)
    return _serialize_subscriber(subscriber)


async def list_subscribers(
    db: AsyncSession,
    *,
    actor_id: str,
    status: Optional[str] = None,
    search: Optional[str] = None,
) -> List[Dict[str, Any]]:
    actor = await _get_actor(db, actor_id)
    reseller_ids = await _scoped_reseller_ids(db, actor)

    query = select(Subscriber).options(selectinload(Subscriber.packages))
    if reseller_ids is not None:
        if not reseller_ids:
            return []
        query = query.where(Subscriber.reseller_id.in_(reseller_ids))
    if status:
        query = query.where(Subscriber.status == status)
    needle = str(search or "").strip()
    if needle:
        pattern = f"%{needle}%"
        query = query.where(
            or_(
                Subscriber.subscriber_name.ilike(pattern),
                Subscriber.mac_address.ilike(pattern),
                Subscriber.serial_number.ilike(pattern),
            )
        )

    result = await db.execute(query.order_by(Subscriber.created_at.desc()))
    return [_serialize_subscriber(subscriber) for subscriber in result.scalars().all()]


async def renew_subscriber_packages(
    db: AsyncSession,
    *,
    actor_id: str,
    subscriber_id: str,
    duration_days: Any,
) -> Dict[str, Any]:
    actor = await _get_actor(db, actor_id)
    subscriber = await _load_subscriber(db, actor, subscriber_id)

    days = parse_duration_days(duration_days)
    if days is None:
        raise InvalidDuration("Valid duration is required")

    try:
        new_expiry = extend_expiry(subscriber.expiry_date, days)
    except OverflowError as exc:
        raise InvalidDuration("Valid duration is required") from exc

    cost = renewal_cost(subscriber.packages)
    reseller = await _check_reseller_funds(db, subscriber.reseller_id, cost)

    if cost > 0:
        await _charge_reseller(db, reseller, cost)
    subscriber.expiry_date = new_expiry
    subscriber.status = SUBSCRIBER_STATUS_ACTIVE
    await _commit_or_rollback(db)

    logger.info(
        "subscriber_renew subscriber=%s reseller=%s cost=%s days=%s expiry=%s",
        subscriber.id,
        reseller.id,
        cost,
        days,
        new_expiry.isoformat(),
    )

    return {
        "message": f"Package renewed successfully. {format_money(cost)} deducted from balance.",
        "subscriber": _serialize_subscriber(subscriber),
        "deducted_amount": float(cost),
        "new_expiry_date": new_expiry.isoformat(),
        "reseller_balance": await _reseller_balance(db, reseller),
    }


async def update_subscriber_packages(
    db: AsyncSession,
    *,
    actor_id: str,
    subscriber_id: str,
    package_ids: Optional[Sequence[str]],
    expiry_date: Any = None,
    subscriber_name: Optional[str] = None,
    mac_address: Optional[str] = None,
    serial_number: Optional[str] = None,
    status: Optional[str] = None,
) -> Dict[str, Any]:
    actor = await _get_actor(db, actor_id)
    subscriber = await _load_subscriber(db, actor, subscriber_id)

    new_ids: List[str] = []
    for package_id in package_ids or []:
        package_id = str(package_id)
        if package_id not in new_ids:
            new_ids.append(package_id)
    if not new_ids:
        raise InvalidPackageSelection("At least one package must be selected")

    if status is not None and status not in SUBSCRIBER_STATUSES:
        raise InvalidStatus(f"Status must be one of: {', '.join(SUBSCRIBER_STATUSES)}")

    normalized_mac = mac_address.strip().lower() if mac_address else None
    if normalized_mac:
        duplicate = await db.execute(
            select(Subscriber.id).where(
                Subscriber.mac_address == normalized_mac,
                Subscriber.id != subscriber.id,
            )
        )
        if duplicate.scalar_one_or_none():
            raise DuplicateDevice("MAC address already exists")

    requested_expiry = parse_expiry(expiry_date)
    current_expiry = _as_utc(subscriber.expiry_date)
    if requested_expiry and current_expiry and requested_expiry < current_expiry:
        raise InvalidExpiry("New expiry date cannot be before the current expiry date")

    result = await db.execute(select(Package).where(Package.id.in_(new_ids)))
    catalog = {package.id: package for package in result.scalars().all()}
    missing = [package_id for package_id in new_ids if package_id not in catalog]
    if missing:
        raise NotFound(f"Package not found: {', '.join(missing)}")

    cost_delta, added_ids, removed_ids = package_cost_delta(subscriber.packages, new_ids, catalog)

    reseller = None
    if cost_delta > 0:
        reseller = await _check_reseller_funds(db, subscriber.reseller_id, cost_delta)
        await _charge_reseller(db, reseller, cost_delta)

    subscriber.packages = [catalog[package_id] for package_id in new_ids]
    if subscriber.primary_package_id not in new_ids:
        subscriber.primary_package_id = new_ids[0]
    if requested_expiry:
        subscriber.expiry_date = requested_expiry
    if subscriber_name and subscriber_name.strip():
        subscriber.subscriber_name = subscriber_name.strip()
    if normalized_mac:
        subscriber.mac_address = normalized_mac
    if serial_number and serial_number.strip():
        subscriber.serial_number = serial_number.strip()
    subscriber.status = status or SUBSCRIBER_STATUS_ACTIVE
    await _commit_or_rollback(db)

    logger.info(
        "subscriber_update subscriber=%s reseller=%s added=%s removed=%s delta=%s",
        subscriber.id,
        subscriber.reseller_id,
        added_ids,
        removed_ids,
        cost_delta,
    )

    deducted = cost_delta if cost_delta > 0 else Decimal("0")
    if deducted > 0:
        message = f"Subscriber updated successfully. {format_money(deducted)} deducted from balance."
    else:
        message = "Subscriber updated successfully"

    return {
        "message": message,
        "subscriber": _serialize_subscriber(subscriber),
        "deducted_amount": float(deducted),
        "cost_delta": float(cost_delta),
        "added_package_ids": added_ids,
        "removed_package_ids": removed_ids,
        "reseller_balance": await _reseller_balance(db, reseller),
    }


async def activate_subscriber(
    db: AsyncSession,
    *,
    actor_id: str,
    subscriber_id: str,
    expiry_date: Any = None,
) -> Dict[str, Any]:
    actor = await _get_actor(db, actor_id)
    subscriber = await _load_subscriber(db, actor, subscriber_id)

    requested_expiry = parse_expiry(expiry_date)
    subscriber.status = SUBSCRIBER_STATUS_ACTIVE
    subscriber.expiry_date = requested_expiry or (
        datetime.now(timezone.utc) + timedelta(days=max(int(settings.DEFAULT_ACTIVATION_DAYS), 1))
    )
    await _commit_or_rollback(db)

    logger.info("subscriber_activate subscriber=%s expiry=%s", subscriber.id, subscriber.expiry_date)
    return {
        "message": "Subscriber activated successfully",
        "subscriber": _serialize_subscriber(subscriber),
    }
