"""
Peer recognition: immutable rows; the recipient is credited from
RECOGNITION_COINS in the same transaction.
"""
from __future__ import annotations

from dataclasses import replace
from typing import TYPE_CHECKING

from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.core.errors import NotFoundError, ValidationFailedError
from app.models.coin_mutation import CoinSource
from app.models.notification import NotificationType
from app.models.recognition import Recognition, RecognitionType
from app.models.user import User
from app.services.coins import RECOGNITION_COINS
from app.services.events import DomainEvent, EventKind

if TYPE_CHECKING:
    from app.services.engine import EngineContext

MAX_MESSAGE_LENGTH = 500


def send(
    ctx: "EngineContext",
    from_user_id: str,
    to_user_id: str,
    recognition_type: RecognitionType | str,
    message: str,
) -> Recognition:
    db = ctx.db
    if from_user_id == to_user_id:
        raise ValidationFailedError("You cannot recognize yourself.", {"field": "to_user_id"})
    try:
        recognition_type = RecognitionType(recognition_type)
    except ValueError:
        raise ValidationFailedError(
            f"Unknown recognition type: {recognition_type}.", {"field": "type"}
        )
    message = (message or "").strip()
    if not message or len(message) > MAX_MESSAGE_LENGTH:
        raise ValidationFailedError(
            f"Message must be 1-{MAX_MESSAGE_LENGTH} characters.", {"field": "message"}
        )

    sender = db.get(User, from_user_id)
    if sender is None:
        raise NotFoundError("User", from_user_id)
    recipient = db.get(User, to_user_id)
    if recipient is None or not recipient.is_active:
        raise NotFoundError("User", to_user_id)

    coins = RECOGNITION_COINS[recognition_type]
    row = Recognition(
        from_user_id=from_user_id,
        to_user_id=to_user_id,
        type=recognition_type,
        message=message,
        happy_coins_awarded=coins,
        created_at=ctx.clock.now(),
    )
    db.add(row)
    db.flush()

    ctx.store.update_atomically(
        to_user_id,
        lambda agg: replace(agg, coin_balance=agg.coin_balance + coins),
        source=CoinSource.recognition,
        reference=f"recognition:{row.id}",
    )

    ctx.outbox.emit(to_user_id, NotificationType.RECOGNITION_RECEIVED, {
        "from_user_id": from_user_id,
        "from_name": sender.name,
        "recognition_type": recognition_type.value,
        "message": message,
        "coins": coins,
    })
    for uid in (from_user_id, to_user_id):
        ctx.publish(DomainEvent(EventKind.RECOGNITION_SENT, uid, reference=f"recognition:{row.id}"))
    return row


def list_recognitions(
    db: Session,
    user_id: str,
    direction: str = "received",
    limit: int = 20,
    offset: int = 0,
) -> tuple[int, list[Recognition]]:
    q = db.query(Recognition)
    if direction == "received":
        q = q.filter(Recognition.to_user_id == user_id)
    elif direction == "sent":
        q = q.filter(Recognition.from_user_id == user_id)
    else:
        q = q.filter(or_(Recognition.to_user_id == user_id, Recognition.from_user_id == user_id))
    total = q.count()
    items = (
        q.order_by(Recognition.created_at.desc(), Recognition.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return total, items
