from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Central configuration loaded from environment / .env file."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    # Storage
    data_dir: str = "data"
    projects_file: str = "projects.yaml"
    worktrees_dir: str = "data/worktrees"  # per-project override in projects.yaml

    # Engine
    check_timeout_seconds: float = 600.0  # 10 minutes per check
    max_runs_per_project: int = 50
    scheduler_poll_interval: int = 60  # seconds, schedule is minute-granular
    git_timeout_seconds: int = 120

    # API
    api_host: str = "127.0.0.1"
    api_port: int = 8100

    # Logging
    log_level: str = "INFO"

    # Notifications (optional)
    slack_webhook_url: str = ""

    # Executor (optional): remote runner that executes check prompts
    executor_base_url: str = ""
    executor_token: str = ""


settings = Settings()
