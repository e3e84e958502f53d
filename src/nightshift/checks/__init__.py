"""Check catalog — built-in maintenance checks and their default prompts."""

from .catalog import (
    CheckCategory,
    CheckDefinition,
    CostTier,
    all_check_metadata,
    all_checks,
    find_check,
    get_default_prompt,
)
