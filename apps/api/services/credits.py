"""Credit ledger: balance transfers between accounts and their reversal."""

from __future__ import annotations

import logging
import uuid
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import String, cast, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload

from config import settings
from models.credit import CREDIT_TYPE_DEBIT, CREDIT_TYPE_REVERSE_CREDIT, CREDIT_TYPES, Credit
from models.user import ROLE_ADMIN, ROLE_DISTRIBUTOR, ROLE_RESELLER, User
from services.balances import (
    MAX_AMOUNT,
    add_balance,
    deduct_balance_guarded,
    format_money,
    parse_amount,
    refresh_balances,
)
from services.ledger_errors import Forbidden, InsufficientFunds, InvalidAmount, InvalidType, NotFound
from services.transfer_policy import evaluate_transfer

logger = logging.getLogger(__name__)

_TYPE_ALIASES = {
    "debit": CREDIT_TYPE_DEBIT,
    "reversecredit": CREDIT_TYPE_REVERSE_CREDIT,
}


def normalize_credit_type(value: Any) -> Optional[str]:
    """Map "Reverse Credit", "ReverseCredit" and "reverse_credit" to the stored value."""
    if not isinstance(value, str):
        return None
    key = value.strip().lower().replace(" ", "").replace("_", "").replace("-", "")
    return _TYPE_ALIASES.get(key)


def _account_summary(account: Optional[User]) -> Optional[Dict[str, Any]]:
    if account is None:
        return None
    return {
        "id": account.id,
        "name": account.name,
        "email": account.email,
        "role": account.role,
        "balance": float(account.balance or 0),
    }


def _serialize_credit(credit: Credit, user: Optional[User] = None) -> Dict[str, Any]:
    return {
        "id": credit.id,
        "type": credit.type,
        "amount": float(credit.amount),
        "user": _account_summary(user if user is not None else credit.user),
        "sender_id": credit.sender_id,
        "created_at": credit.created_at.isoformat() if credit.created_at else None,
    }


async def _get_account(db: AsyncSession, account_id: Optional[str]) -> Optional[User]:
    if not account_id:
        return None
    result = await db.execute(select(User).where(User.id == str(account_id)))
    return result.scalar_one_or_none()


async def _require_actor(db: AsyncSession, actor_id: str) -> User:
    actor = await _get_account(db, actor_id)
    if not actor:
        raise NotFound("User not found")
    return actor


async def _owned_reseller_ids(db: AsyncSession, distributor_id: str) -> List[str]:
    result = await db.execute(
        select(User.id).where(User.role == ROLE_RESELLER, User.created_by == distributor_id)
    )
    return list(result.scalars().all())


async def transfer(
    db: AsyncSession,
    *,
    actor_id: str,
    target_id: Optional[str],
    transfer_type: Any,
    amount: Any,
) -> Dict[str, Any]:
    """Move `amount` between the acting account and `target_id`.

    Debit pays from actor to target; Reverse Credit claws back from target to
    actor. Both balance writes and the Credit row share one transaction.
    """
    parsed_amount = parse_amount(amount)
    if parsed_amount is None or parsed_amount <= 0:
        raise InvalidAmount("Amount must be greater than 0")
    if parsed_amount > MAX_AMOUNT:
        raise InvalidAmount(f"Amount cannot exceed {format_money(MAX_AMOUNT)}")

    credit_type = normalize_credit_type(transfer_type)
    if credit_type is None:
        raise InvalidType("Type must be either Debit or Reverse Credit")

    target = await _get_account(db, target_id)
    if not target:
        raise NotFound("User not found")

    actor = await _require_actor(db, actor_id)
    decision = evaluate_transfer(actor.role, actor.id, target.role, target.created_by)
    if not decision.allowed:
        raise Forbidden(decision.reason)

    if credit_type == CREDIT_TYPE_DEBIT:
        payer, receiver, payer_side = actor, target, "actor"
        shortfall_message = f"Insufficient balance. Your balance: {format_money(actor.balance)}"
    else:
        payer, receiver, payer_side = target, actor, "target"
        shortfall_message = f"Insufficient balance. Current balance: {format_money(target.balance)}"

    if Decimal(payer.balance or 0) < parsed_amount:
        raise InsufficientFunds(shortfall_message, side=payer_side)

    try:
        if not await deduct_balance_guarded(db, payer.id, parsed_amount):
            await db.rollback()
            raise InsufficientFunds(shortfall_message, side=payer_side)
        await add_balance(db, receiver.id, parsed_amount)

        credit = Credit(
            id=str(uuid.uuid4()),
            type=credit_type,
            amount=parsed_amount,
            user_id=target.id,
            sender_id=actor.id,
        )
        db.add(credit)
        await db.commit()
    except InsufficientFunds:
        raise
    except Exception:
        await db.rollback()
        raise

    await refresh_balances(db, actor, target)
    await db.refresh(credit, attribute_names=["created_at"])

    logger.info(
        "credit_transfer credit=%s type=%s amount=%s actor=%s target=%s",
        credit.id,
        credit_type,
        parsed_amount,
        actor.id,
        target.id,
    )

    return {
        "message": "Credit transaction created successfully",
        "credit": _serialize_credit(credit, user=target),
        "actor": _account_summary(actor),
        "target": _account_summary(target),
    }


async def reverse_transfer(db: AsyncSession, *, actor_id: str, credit_id: str) -> Dict[str, Any]:
    """Undo a transfer on both sides and delete its Credit record."""
    actor = await _require_actor(db, actor_id)
    if actor.role != ROLE_ADMIN:
        raise Forbidden("Only admins can delete credit transactions")

    result = await db.execute(select(Credit).where(Credit.id == credit_id))
    credit = result.scalar_one_or_none()
    if not credit:
        raise NotFound("Credit transaction not found")

    target = await _get_account(db, credit.user_id)
    if not target:
        raise NotFound("User not found")
    sender = await _get_account(db, credit.sender_id)

    amount = Decimal(credit.amount)
    credit_type = credit.type
    if credit_type == CREDIT_TYPE_DEBIT:
        payer, receiver, payer_side = target, sender, "target"
    else:
        payer, receiver, payer_side = sender, target, "sender"

    shortfall_message = None
    if payer is not None:
        shortfall_message = f"Insufficient balance to reverse. {payer.name}'s balance: {format_money(payer.balance)}"
        if Decimal(payer.balance or 0) < amount:
            raise InsufficientFunds(shortfall_message, side=payer_side)

    try:
        if payer is not None and not await deduct_balance_guarded(db, payer.id, amount):
            await db.rollback()
            raise InsufficientFunds(shortfall_message, side=payer_side)
        if receiver is not None:
            await add_balance(db, receiver.id, amount)
        await db.delete(credit)
        await db.commit()
    except InsufficientFunds:
        raise
    except Exception:
        await db.rollback()
        raise

    await refresh_balances(db, target, sender)
    if sender is None:
        logger.warning("credit_reverse credit=%s has no sender; only target balance corrected", credit_id)
    logger.info(
        "credit_reverse credit=%s type=%s amount=%s target=%s sender=%s",
        credit_id,
        credit_type,
        amount,
        target.id,
        sender.id if sender else None,
    )

    return {
        "message": "Credit transaction deleted and balance reversed",
        "credit_id": credit_id,
        "target": _account_summary(target),
        "sender": _account_summary(sender),
    }


async def list_credits(
    db: AsyncSession,
    *,
    actor_id: str,
    type_filter: Optional[str] = None,
    search: Optional[str] = None,
) -> List[Dict[str, Any]]:
    actor = await _require_actor(db, actor_id)

    query = select(Credit).options(selectinload(Credit.user))
    if actor.role == ROLE_ADMIN:
        pass
    elif actor.role == ROLE_DISTRIBUTOR:
        reseller_ids = await _owned_reseller_ids(db, actor.id)
        if not reseller_ids:
            return []
        query = query.where(Credit.user_id.in_(reseller_ids))
    else:
        raise Forbidden("You do not have permission to view credit transactions")

    if type_filter:
        credit_type = normalize_credit_type(type_filter)
        if credit_type is None:
            raise InvalidType(f"Type must be one of: {', '.join(CREDIT_TYPES)}")
        query = query.where(Credit.type == credit_type)

    needle = str(search or "").strip()
    if needle:
        pattern = f"%{needle}%"
        conditions = [User.name.ilike(pattern), User.email.ilike(pattern)]
        amount_text = needle.replace(settings.CURRENCY_SYMBOL, "").replace(",", "").strip()
        if amount_text:
            conditions.append(cast(Credit.amount, String).ilike(f"%{amount_text}%"))
        query = query.join(User, Credit.user_id == User.id).where(or_(*conditions))

    query = query.order_by(Credit.created_at.desc()).limit(max(int(settings.CREDIT_LIST_LIMIT), 1))
    result = await db.execute(query)
    return [_serialize_credit(credit) for credit in result.scalars().all()]


async def list_transfer_targets(db: AsyncSession, *, actor_id: str) -> List[Dict[str, Any]]:
    """Accounts the actor may pick as a transfer target."""
    actor = await _require_actor(db, actor_id)

    if actor.role == ROLE_ADMIN:
        condition = User.role.in_([ROLE_DISTRIBUTOR, ROLE_RESELLER])
    elif actor.role == ROLE_DISTRIBUTOR:
        condition = (User.role == ROLE_RESELLER) & (User.created_by == actor.id)
    else:
        raise Forbidden("You do not have permission to view users")

    result = await db.execute(select(User).where(condition).order_by(User.name.asc()))
    return [_account_summary(account) for account in result.scalars().all()]
