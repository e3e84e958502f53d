"""Maintenance worktree provisioning."""

from .provisioner import BRANCH_NAME, WORKTREE_NAME, WorktreeProvisioner
