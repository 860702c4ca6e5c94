"""
Group event journal repository

Every mutation of a group's obligations, payments or memberships is recorded
as an immutable event in the same transaction as the write.
"""
from datetime import datetime, timezone
from typing import Optional, Dict, Any, List
from sqlalchemy.orm import Session

from cuentas.infrastructure.db.models import GroupEvent


class EventLogRepository:
    """
    Repository для работы с журналом событий группы
    """

    def __init__(self, db: Session):
        self.db = db

    def append_event(
        self,
        group_id: int,
        event_type: str,
        payload: Dict[str, Any],
        occurred_at: Optional[datetime] = None,
        actor_user_id: Optional[int] = None,
    ) -> int:
        """
        Добавить событие в журнал группы (без commit)

        Args:
            group_id: ID группы
            event_type: Тип события (например, "obligation_created")
            payload: Данные события (сохраняются как JSONB)
            occurred_at: Когда произошло событие (default: now)
            actor_user_id: Кто совершил действие

        Returns:
            event_id: ID созданного события

        Example:
            >>> repo = EventLogRepository(db)
            >>> repo.append_event(
            ...     group_id=1,
            ...     event_type="payment_recorded",
            ...     payload={"payment_id": 7, "amount": 30000},
            ...     actor_user_id=2,
            ... )
        """
        if occurred_at is None:
            occurred_at = datetime.now(timezone.utc)

        event = GroupEvent(
            group_id=group_id,
            actor_user_id=actor_user_id,
            event_type=event_type,
            payload_json=payload,
            occurred_at=occurred_at,
        )

        self.db.add(event)
        self.db.flush()  # Получить ID без commit

        return event.id

    def list_group_events(
        self,
        group_id: int,
        limit: int = 50,
        event_types: Optional[List[str]] = None,
    ) -> List[GroupEvent]:
        """
        Последние события группы, новые первыми
        """
        query = self.db.query(GroupEvent).filter(GroupEvent.group_id == group_id)

        if event_types:
            query = query.filter(GroupEvent.event_type.in_(event_types))

        return query.order_by(GroupEvent.id.desc()).limit(limit).all()

    def delete_group_events(self, group_id: int) -> int:
        return (
            self.db.query(GroupEvent)
            .filter(GroupEvent.group_id == group_id)
            .delete(synchronize_session=False)
        )
