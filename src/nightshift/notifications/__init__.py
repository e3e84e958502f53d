"""Engine notifications — event bus, SSE payloads and webhooks."""

from .events import (
    CheckDone,
    CheckStarted,
    EventBus,
    ExecuteCheck,
    NightshiftEvent,
    RunCompleted,
    RunFailed,
    RunStarted,
)
from .webhook import WebhookNotifier
