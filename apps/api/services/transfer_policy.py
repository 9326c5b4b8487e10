"""Who may move balance to whom.

The policy is a static table keyed by (actor role, target role). A rule is
either `ANY` (allowed for every target of that role) or `OWNED` (allowed only
when the target was created by the actor). Pairs missing from the table are
denied.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from models.user import ROLE_ADMIN, ROLE_DISTRIBUTOR, ROLE_RESELLER


ANY = "any"
OWNED = "owned"

TRANSFER_RULES: Dict[Tuple[str, str], str] = {
    (ROLE_ADMIN, ROLE_DISTRIBUTOR): ANY,
    (ROLE_ADMIN, ROLE_RESELLER): ANY,
    (ROLE_DISTRIBUTOR, ROLE_RESELLER): OWNED,
}

DENIAL_MESSAGES: Dict[str, str] = {
    ROLE_ADMIN: "Credit can only be transferred to distributors and resellers",
    ROLE_DISTRIBUTOR: "You can only manage credit for your resellers",
    ROLE_RESELLER: "You do not have permission to create credit transactions",
}
DEFAULT_DENIAL = "You do not have permission to create credit transactions"


@dataclass(frozen=True)
class TransferDecision:
    allowed: bool
    reason: Optional[str] = None


def evaluate_transfer(
    actor_role: Optional[str],
    actor_id: Optional[str],
    target_role: Optional[str],
    target_created_by: Optional[str],
) -> TransferDecision:
    rule = TRANSFER_RULES.get((actor_role, target_role))
    if rule == ANY:
        return TransferDecision(allowed=True)
    if rule == OWNED and actor_id and target_created_by and str(target_created_by) == str(actor_id):
        return TransferDecision(allowed=True)
    return TransferDecision(allowed=False, reason=DENIAL_MESSAGES.get(actor_role, DEFAULT_DENIAL))


def can_transfer(actor, target) -> bool:
    """True when `actor` may start a credit transaction against `target`."""
    return evaluate_transfer(actor.role, actor.id, target.role, target.created_by).allowed
