from __future__ import annotations

from typing import Any, Sequence

from xo.domain import Prediction, PredictionOption, PredictionStatus
from xo.domain.address import participant_or_none
from xo.errors import MalformedRecord

_PARTICIPANT_STATUSES = {
    PredictionStatus.MATCHED,
    PredictionStatus.RESOLVED,
    PredictionStatus.CLAIMED,
}
_SETTLED_STATUSES = {PredictionStatus.RESOLVED, PredictionStatus.CLAIMED}


def _coerce_enum(enum_cls: Any, value: Any, field_name: str) -> Any:
    try:
        return enum_cls(int(value))
    except (TypeError, ValueError) as exc:
        raise MalformedRecord(f"Unexpected {field_name} value {value!r}") from exc


def normalize_prediction(raw: Sequence[Any]) -> Prediction:
    """Build a :class:`Prediction` from the decoded ``getPrediction`` tuple."""

    if len(raw) != 14:
        raise MalformedRecord(f"Expected 14 prediction fields, got {len(raw)}")

    (
        prediction_id,
        creator,
        opponent,
        title,
        description,
        option_a,
        option_b,
        bet_amount,
        creator_choice,
        opponent_choice,
        status,
        winning_option,
        created_at,
        expiry_time,
    ) = raw

    creator_address = participant_or_none(creator)
    if creator_address is None:
        raise MalformedRecord(f"Prediction {prediction_id} does not exist")

    record = Prediction(
        id=int(prediction_id),
        creator=creator_address,
        opponent=participant_or_none(opponent),
        title=str(title),
        description=str(description),
        option_a=str(option_a),
        option_b=str(option_b),
        bet_amount=int(bet_amount),
        creator_choice=_coerce_enum(PredictionOption, creator_choice, "creatorChoice"),
        opponent_choice=_coerce_enum(PredictionOption, opponent_choice, "opponentChoice"),
        status=_coerce_enum(PredictionStatus, status, "status"),
        winning_option=_coerce_enum(PredictionOption, winning_option, "winningOption"),
        created_at=int(created_at),
        expiry_time=int(expiry_time),
    )
    validate_prediction(record)
    return record


def validate_prediction(record: Prediction) -> None:
    """Raise :class:`MalformedRecord` when ``record`` breaks a data-model invariant."""

    problems: list[str] = []
    if record.bet_amount <= 0:
        problems.append("betAmount must be positive")
    if record.expiry_time <= record.created_at:
        problems.append("expiryTime must be after createdAt")
    if record.creator_choice is PredictionOption.NONE:
        problems.append("creatorChoice is unset")

    if record.status is PredictionStatus.OPEN:
        if record.opponent is not None:
            problems.append("an open prediction cannot have an opponent")
        if record.opponent_choice is not PredictionOption.NONE:
            problems.append("an open prediction cannot have an opponent choice")
    elif record.status in _PARTICIPANT_STATUSES:
        if record.opponent is None:
            problems.append(f"a {record.status.label.lower()} prediction needs an opponent")
        if record.opponent_choice is PredictionOption.NONE:
            problems.append(f"a {record.status.label.lower()} prediction needs an opponent choice")

    if record.opponent_choice is not PredictionOption.NONE and (
        record.opponent_choice == record.creator_choice
    ):
        problems.append("creator and opponent picked the same side")

    settled = record.status in _SETTLED_STATUSES
    if settled and record.winning_option is PredictionOption.NONE:
        problems.append("a settled prediction needs a winning option")
    if not settled and record.winning_option is not PredictionOption.NONE:
        problems.append("only settled predictions carry a winning option")

    if problems:
        raise MalformedRecord(f"Prediction {record.id}: " + "; ".join(problems))


__all__ = ["normalize_prediction", "validate_prediction"]
