"""Pure derivations of allowed actions, winner, and pot from a record snapshot.

Nothing in this module performs I/O or keeps state: every function is a
function of ``(record, identity, now)`` and may be evaluated freely on cached
data. The ledger re-checks everything on submission; these gates only decide
what the client is willing to attempt.
"""

from __future__ import annotations

from decimal import ROUND_DOWN, Decimal

from xo.errors import ActionNotAllowed

from .address import same_address
from .models import Action, Identity, Prediction, PredictionOption, PredictionStatus

CANNOT_JOIN_OWN = "You cannot join your own prediction."
PREDICTION_EXPIRED = "This prediction has expired."
NOT_OPEN = "This prediction is no longer open."
NOT_CONNECTED = "Wallet not connected."
NOT_CREATOR = "Only the creator can cancel this prediction."
NOT_WINNER = "You are not the winner of this prediction."
ALREADY_CLAIMED = "Winnings have already been claimed."
NOT_RESOLVED = "This prediction has not been resolved yet."
NOT_PRIVILEGED = "Only the ledger admin can perform this action."
NOT_MATCHED = "Only matched predictions can be resolved or refunded."


def is_expired(record: Prediction, now: int) -> bool:
    return now > record.expiry_time


def is_creator(record: Prediction, identity: Identity) -> bool:
    return same_address(identity.address, record.creator)


def is_participant(record: Prediction, identity: Identity) -> bool:
    return is_creator(record, identity) or same_address(identity.address, record.opponent)


def can_join(record: Prediction, identity: Identity, now: int) -> bool:
    return (
        record.status is PredictionStatus.OPEN
        and not is_expired(record, now)
        and identity.connected
        and not is_creator(record, identity)
    )


def can_cancel(record: Prediction, identity: Identity) -> bool:
    return record.status is PredictionStatus.OPEN and is_creator(record, identity)


def winner(record: Prediction) -> str | None:
    """Return the winning participant once the record is Resolved or Claimed."""

    if record.status not in (PredictionStatus.RESOLVED, PredictionStatus.CLAIMED):
        return None
    if record.creator_choice == record.winning_option:
        return record.creator
    return record.opponent


def can_claim(record: Prediction, identity: Identity) -> bool:
    return record.status is PredictionStatus.RESOLVED and same_address(
        identity.address, winner(record)
    )


def can_resolve(record: Prediction, identity: Identity) -> bool:
    return identity.connected and identity.privileged and record.status is PredictionStatus.MATCHED


can_refund = can_resolve


def opponent_required_choice(record: Prediction) -> PredictionOption:
    """The joining side is fixed: always the option the creator did not pick."""

    if record.creator_choice is PredictionOption.NONE:
        raise ValueError(f"Prediction {record.id} has no creator choice")
    return record.creator_choice.opposite


def displayed_pot(record: Prediction) -> int:
    if record.status is PredictionStatus.OPEN:
        return record.bet_amount
    return record.bet_amount * 2


def net_payout(record: Prediction, fee_rate: Decimal) -> int:
    """Pot minus the platform fee, floored to minor units.

    ``fee_rate`` is a fraction (``Decimal("0.02")`` for 2%) sourced from the ledger.
    """

    if fee_rate < 0 or fee_rate > 1:
        raise ValueError(f"fee_rate must be within [0, 1], got {fee_rate}")
    payout = Decimal(displayed_pot(record)) * (Decimal(1) - fee_rate)
    return int(payout.to_integral_value(rounding=ROUND_DOWN))


def fee_rate_from_percent(percent: int | Decimal) -> Decimal:
    return Decimal(percent) / Decimal(100)


def allowed_actions(record: Prediction, identity: Identity, now: int) -> frozenset[Action]:
    allowed: set[Action] = set()
    if can_join(record, identity, now):
        allowed.add(Action.JOIN)
    if can_cancel(record, identity):
        allowed.add(Action.CANCEL)
    if can_claim(record, identity):
        allowed.add(Action.CLAIM)
    if can_resolve(record, identity):
        allowed.add(Action.RESOLVE)
    if can_refund(record, identity):
        allowed.add(Action.REFUND)
    return frozenset(allowed)


def denial_reason(action: Action, record: Prediction, identity: Identity, now: int) -> str | None:
    """Return why ``action`` is not allowed, or ``None`` when it is."""

    if action is Action.JOIN:
        if not identity.connected:
            return NOT_CONNECTED
        if record.status is not PredictionStatus.OPEN:
            return NOT_OPEN
        if is_creator(record, identity):
            return CANNOT_JOIN_OWN
        if is_expired(record, now):
            return PREDICTION_EXPIRED
        return None
    if action is Action.CANCEL:
        if record.status is not PredictionStatus.OPEN:
            return NOT_OPEN
        if not is_creator(record, identity):
            return NOT_CREATOR
        return None
    if action is Action.CLAIM:
        if record.status is PredictionStatus.CLAIMED:
            return ALREADY_CLAIMED
        if record.status is not PredictionStatus.RESOLVED:
            return NOT_RESOLVED
        if not can_claim(record, identity):
            return NOT_WINNER
        return None
    if action in (Action.RESOLVE, Action.REFUND):
        if not (identity.connected and identity.privileged):
            return NOT_PRIVILEGED
        if record.status is not PredictionStatus.MATCHED:
            return NOT_MATCHED
        return None
    raise ValueError(f"Unknown action: {action!r}")


def ensure_allowed(action: Action, record: Prediction, identity: Identity, now: int) -> None:
    reason = denial_reason(action, record, identity, now)
    if reason is not None:
        raise ActionNotAllowed(action.value, reason)


__all__ = [
    "allowed_actions",
    "can_cancel",
    "can_claim",
    "can_join",
    "can_refund",
    "can_resolve",
    "denial_reason",
    "displayed_pot",
    "ensure_allowed",
    "fee_rate_from_percent",
    "is_creator",
    "is_expired",
    "is_participant",
    "net_payout",
    "opponent_required_choice",
    "winner",
]
