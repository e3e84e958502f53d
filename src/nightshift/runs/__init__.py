"""Run history — models and bounded JSON storage."""

from .models import CheckResult, NightshiftRun, RunStatus, RunTrigger
from .store import RunStore
