from nightshift.projects.registry import (
    CheckConfig,
    NightshiftConfig,
    PostAction,
    Project,
    ProjectRegistry,
    Worktree,
)

__all__ = [
    "CheckConfig",
    "NightshiftConfig",
    "PostAction",
    "Project",
    "ProjectRegistry",
    "Worktree",
]
