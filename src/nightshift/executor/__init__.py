"""Optional executor adapter for running check prompts on a remote runner."""

from .client import ExecutorClient, ExecutorError, ExecutorOfflineError
from .dispatcher import ExecutorDispatcher
from .models import CheckRunRequest, CmdResult
