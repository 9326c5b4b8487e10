"""Balance primitives shared by credit transfers and subscriber renewals.

Only this module writes `User.balance`. Nothing here commits; callers own the
transaction so that a balance change and the records describing it are
persisted together.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from models.user import User


CENT = Decimal("0.01")
# Largest value a Numeric(12, 2) column holds.
MAX_AMOUNT = Decimal("9999999999.99")


def parse_amount(value: Any) -> Optional[Decimal]:
    """Return `value` as a two-place Decimal, or None when it is not a finite number.

    Values beyond MAX_AMOUNT come back unrounded so the caller can reject them.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        amount = Decimal(str(value))
        if not amount.is_finite():
            return None
        if amount.copy_abs() > MAX_AMOUNT:
            return amount
        return amount.quantize(CENT)
    except (InvalidOperation, ValueError):
        return None


def format_money(value: Any) -> str:
    amount = Decimal(str(value or 0)).quantize(CENT)
    text = f"{amount:f}"
    if text.endswith(".00"):
        text = text[:-3]
    return f"{settings.CURRENCY_SYMBOL}{text}"


async def deduct_balance_guarded(db: AsyncSession, account_id: str, amount: Decimal) -> bool:
    """Decrement by `amount` only if the stored balance covers it.

    The sufficiency check and the write are one UPDATE statement, so two
    concurrent deductions cannot both succeed against the same funds.
    """
    result = await db.execute(
        update(User)
        .where(User.id == account_id, User.balance >= amount)
        .values(balance=User.balance - amount)
        .execution_options(synchronize_session=False)
    )
    return (result.rowcount or 0) == 1


async def add_balance(db: AsyncSession, account_id: str, amount: Decimal) -> bool:
    result = await db.execute(
        update(User)
        .where(User.id == account_id)
        .values(balance=User.balance + amount)
        .execution_options(synchronize_session=False)
    )
    return (result.rowcount or 0) == 1


async def refresh_balances(db: AsyncSession, *accounts: Optional[User]) -> None:
    """Reload balances written by the UPDATE statements above."""
    for account in accounts:
        if account is not None:
            await db.refresh(account, attribute_names=["balance"])
