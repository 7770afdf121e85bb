"""Task execution and live output broadcast."""

from .dispatcher import TaskDispatcher, resolve_task
from .event_bus import Event, EventBus, EventKind, Subscription
from .runner import TaskRunner
from .session import StreamSession, StreamSessionManager
from .sse import SSEEvent, format_sse, parse_sse_lines
from .tasks import Task, TaskPlan
from .tracker import TaskTracker, TrackedTask

__all__ = [
    "Event",
    "EventBus",
    "EventKind",
    "SSEEvent",
    "StreamSession",
    "StreamSessionManager",
    "Subscription",
    "Task",
    "TaskDispatcher",
    "TaskPlan",
    "TaskRunner",
    "TaskTracker",
    "TrackedTask",
    "format_sse",
    "parse_sse_lines",
    "resolve_task",
]
