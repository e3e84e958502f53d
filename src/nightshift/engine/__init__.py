"""Orchestration engine — run state machine, completion bridge, scheduler."""

from .bridge import CheckCompletion, CompletionBridge, CompletionChannel
from .orchestrator import NightshiftEngine, effective_cooldown_hours, resolve_prompt
from .run_state import RunRegistry
from .scheduler import NightshiftScheduler
