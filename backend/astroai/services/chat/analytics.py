"""
Chat analytics.

Collects lightweight events emitted by the orchestrator and the
recommendation endpoint, and aggregates them into a summary for reporting.

Event types:
- session_created
- message_exchanged (intent, tokens, response_time_ms)
- session_closed
- recommendations_generated (services)

Events are kept in a bounded in-memory buffer; the oldest are dropped first.
"""
import csv
import io
from collections import Counter, deque
from datetime import datetime
from typing import Callable, Deque, List, Literal, Optional

from pydantic import BaseModel, Field

from astroai.core.logging import get_logger
from astroai.models.chat import utcnow

logger = get_logger(__name__)

EventType = Literal["session_created", "message_exchanged", "session_closed", "recommendations_generated"]

MAX_EVENTS = 10_000
TOP_N = 5


class AnalyticsEvent(BaseModel):
    type: EventType
    session_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=utcnow)
    intent: Optional[str] = None
    tokens: int = 0
    response_time_ms: Optional[float] = None
    services: List[str] = Field(default_factory=list)


class CountItem(BaseModel):
    name: str
    count: int


class AnalyticsSummary(BaseModel):
    period_start: Optional[datetime] = None
    period_end: Optional[datetime] = None
    sessions_total: int = 0
    sessions_active: int = 0
    sessions_closed: int = 0
    messages_total: int = 0
    avg_messages_per_session: float = 0.0
    avg_response_time_ms: float = 0.0
    total_tokens: int = 0
    recommendations_generated: int = 0
    top_intents: List[CountItem] = Field(default_factory=list)
    top_services: List[CountItem] = Field(default_factory=list)


def _top(counter: Counter, n: int = TOP_N) -> List[CountItem]:
    # Counter.most_common keeps first-seen order among equal counts
    return [CountItem(name=name, count=count) for name, count in counter.most_common(n)]


class ChatAnalytics:
    def __init__(self, max_events: int = MAX_EVENTS, clock: Callable[[], datetime] = utcnow):
        self._events: Deque[AnalyticsEvent] = deque(maxlen=max_events)
        self._clock = clock

    def record(self, event_type: EventType, session_id: Optional[str] = None, **fields) -> AnalyticsEvent:
        event = AnalyticsEvent(type=event_type, session_id=session_id, timestamp=self._clock(), **fields)
        self._events.append(event)
        logger.debug("analytics_event_recorded", event_type=event_type)
        return event

    def events(self, start: Optional[datetime] = None, end: Optional[datetime] = None) -> List[AnalyticsEvent]:
        """Events with `start <= timestamp <= end` (bounds optional)."""
        return [
            event for event in self._events
            if (start is None or event.timestamp >= start) and (end is None or event.timestamp <= end)
        ]

    def summary(self, start: Optional[datetime] = None, end: Optional[datetime] = None) -> AnalyticsSummary:
        events = self.events(start, end)

        created = {e.session_id for e in events if e.type == "session_created"}
        closed = {e.session_id for e in events if e.type == "session_closed"}
        exchanges = [e for e in events if e.type == "message_exchanged"]
        recommendations = [e for e in events if e.type == "recommendations_generated"]

        response_times = [e.response_time_ms for e in exchanges if e.response_time_ms is not None]
        # Each exchange is one user message plus one reply; each session starts with a welcome message
        messages_total = len(created) + 2 * len(exchanges)

        return AnalyticsSummary(
            period_start=start,
            period_end=end,
            sessions_total=len(created),
            sessions_active=len(created - closed),
            sessions_closed=len(closed),
            messages_total=messages_total,
            avg_messages_per_session=round(messages_total / len(created), 2) if created else 0.0,
            avg_response_time_ms=round(sum(response_times) / len(response_times), 2) if response_times else 0.0,
            total_tokens=sum(e.tokens for e in exchanges),
            recommendations_generated=sum(len(e.services) for e in recommendations),
            top_intents=_top(Counter(e.intent for e in exchanges if e.intent)),
            top_services=_top(Counter(s for e in recommendations for s in e.services)),
        )

    def export(
        self,
        format: Literal["json", "csv"] = "json",
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> str:
        summary = self.summary(start, end)
        if format == "csv":
            return self._to_csv(summary)
        return summary.model_dump_json(indent=2)

    @staticmethod
    def _to_csv(summary: AnalyticsSummary) -> str:
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(["Metric", "Value"])
        writer.writerow(["Total Sessions", summary.sessions_total])
        writer.writerow(["Active Sessions", summary.sessions_active])
        writer.writerow(["Closed Sessions", summary.sessions_closed])
        writer.writerow(["Total Messages", summary.messages_total])
        writer.writerow(["Average Messages Per Session", f"{summary.avg_messages_per_session:.2f}"])
        writer.writerow(["Average Response Time (ms)", f"{summary.avg_response_time_ms:.2f}"])
        writer.writerow(["Total Tokens", summary.total_tokens])
        writer.writerow(["Recommendations Generated", summary.recommendations_generated])
        writer.writerow([])
        writer.writerow(["Intent", "Count", "Percentage"])
        exchanged = sum(item.count for item in summary.top_intents) or 1
        for item in summary.top_intents:
            writer.writerow([item.name, item.count, f"{item.count / exchanged * 100:.2f}%"])
        writer.writerow([])
        writer.writerow(["Service", "Recommendations"])
        for item in summary.top_services:
            writer.writerow([item.name, item.count])
        return buffer.getvalue()

    def clear(self) -> None:
        self._events.clear()
