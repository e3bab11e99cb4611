"""
이벤트 발행/구독 시스템

레벨업, 승급 등 엔진 결과를 알림/피드 같은 외부 소비자에게 전달한다.
엔진 자체는 구독자 실패의 영향을 받지 않는다.
"""
import json
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from loguru import logger


class EventType(str, Enum):
    """이벤트 유형"""
    # XP 관련
    XP_AWARDED = "xp.awarded"
    XP_BANKED = "xp.banked"
    LEVEL_UP = "level.up"

    # 승급 관련
    BREAKTHROUGH_READY = "breakthrough.ready"
    BREAKTHROUGH_COMPLETED = "breakthrough.completed"

    # 제출물 관련
    SUBMISSION_APPROVED = "submission.approved"
    SUBMISSION_ARCHIVED = "submission.archived"


@dataclass
class ProgressionEvent:
    """진행 이벤트"""
    event_type: EventType
    athlete_id: str
    domain_id: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)
    source: str = "progression"
    correlation_id: Optional[str] = None  # 같은 제출물에서 발생한 이벤트 묶음

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_type": self.event_type.value,
            "athlete_id": self.athlete_id,
            "domain_id": self.domain_id,
            "data": self.data,
            "timestamp": self.timestamp.isoformat(),
            "source": self.source,
            "correlation_id": self.correlation_id,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, default=str)


class EventPublisher:
    """이벤트 발행자"""

    def __init__(self, max_log_size: int = 1000):
        self.local_subscribers: Dict[EventType, List[Callable]] = defaultdict(list)
        self._event_log: List[ProgressionEvent] = []
        self._max_log_size = max_log_size

    def subscribe(self, event_type: EventType, handler: Callable[[ProgressionEvent], None]) -> None:
        """구독자 등록"""
        self.local_subscribers[event_type].append(handler)
        logger.debug(f"구독 등록: {event_type.value} → {getattr(handler, '__name__', handler)}")

    def unsubscribe(self, event_type: EventType, handler: Callable) -> None:
        """구독 해제"""
        if handler in self.local_subscribers.get(event_type, []):
            self.local_subscribers[event_type].remove(handler)

    def publish(self, event: ProgressionEvent) -> None:
        """이벤트 발행"""
        logger.info(
            f"📢 Event published: {event.event_type.value} - "
            f"{event.athlete_id}:{event.domain_id or '-'}"
        )

        self._event_log.append(event)
        if len(self._event_log) > self._max_log_size:
            self._event_log = self._event_log[-self._max_log_size:]

        for subscriber in self.local_subscribers.get(event.event_type, []):
            try:
                subscriber(event)
            except Exception as e:
                logger.error(f"구독자 호출 실패: {e}")

    def get_recent_events(
        self,
        event_type: Optional[EventType] = None,
        athlete_id: Optional[str] = None,
        limit: int = 100
    ) -> List[ProgressionEvent]:
        """최근 이벤트 조회"""
        events = self._event_log
        if event_type:
            events = [e for e in events if e.event_type == event_type]
        if athlete_id:
            events = [e for e in events if e.athlete_id == athlete_id]
        return events[-limit:]
