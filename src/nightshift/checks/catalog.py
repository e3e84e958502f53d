"""Built-in maintenance check catalog.

Static, process-lifetime table of check definitions. The order of
``CHECKS`` is the order checks execute within a run.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class CheckCategory(str, Enum):
    LINT = "lint"
    DEAD_CODE = "dead_code"
    DOCUMENTATION = "documentation"
    SECURITY = "security"
    TESTS = "tests"
    DEPENDENCIES = "dependencies"
    PERFORMANCE = "performance"
    CODE_QUALITY = "code_quality"
    TYPE_SAFETY = "type_safety"
    CONFIGURATION = "configuration"


class CostTier(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class CheckDefinition:
    """A built-in check with its default prompt."""

    id: str
    name: str
    description: str
    category: CheckCategory
    cost_tier: CostTier
    cooldown_hours: int  # minimum hours between completed runs
    default_enabled: bool
    prompt_template: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Metadata for listings (prompt omitted)."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category.value,
            "cost_tier": self.cost_tier.value,
            "cooldown_hours": self.cooldown_hours,
            "default_enabled": self.default_enabled,
        }


# ── Prompt templates ─────────────────────────────────────────────────────────
# Prompts ask the agent to fix issues in place, not to write a report.

_LINT_FIX = """You are running a lint maintenance pass on this repository.

TASK: Fix lint violations and code style problems.

STEPS:
1. Run the project's configured linter if there is one.
2. Apply the auto-fixable fixes.
3. Fix the remaining violations by hand.
4. Re-run the linter and confirm it is clean.

RULES:
- Do not change behavior.
- Do not reformat whole files; touch only real violations.
- Skip any fix you are unsure about."""

_DEAD_CODE = """You are running a dead code cleanup on this repository.

TASK: Remove code that is no longer used.

STEPS:
1. Look for unused imports, functions, classes, variables and constants.
2. Remove unreachable branches and stale commented-out blocks.
3. Drop dependencies that nothing imports.
4. Run the test suite after removals.

RULES:
- Public API exports may have external users; leave them.
- Check for dynamic imports and reflection before deleting anything.
- Keep test helpers and fixtures."""

_DOC_DRIFT = """You are running a documentation pass on this repository.

TASK: Fix stale, missing or wrong documentation.

STEPS:
1. Compare docstrings and doc comments with the signatures they describe.
2. Document public APIs that have no documentation.
3. Remove TODO/FIXME notes for work that is already done.
4. Update README sections that no longer match the code.

RULES:
- Keep it short and useful.
- Do not document trivial accessors.
- Fix only docs that are wrong or misleading."""

_SECURITY_AUDIT = """You are running a security audit on this repository.

TASK: Find and fix security vulnerabilities.

STEPS:
1. Move hardcoded secrets, keys and tokens into environment configuration.
2. Fix injection (SQL, shell, template), XSS and path traversal issues.
3. Replace weak hashing or encryption.
4. Validate input at system boundaries.
5. Run the tests after each fix.

RULES:
- Focus on the OWASP Top 10.
- Code that never sees user input is out of scope.
- Fixes must not break existing behavior."""

_TEST_GAPS = """You are closing test coverage gaps in this repository.

TASK: Write tests for untested code paths.

STEPS:
1. Find public functions without tests and cover them.
2. Add edge cases: empty, missing and boundary values.
3. Cover error paths.
4. Run the whole suite.

RULES:
- Follow the existing test framework and style.
- Prioritize business logic over boilerplate.
- Every new test must pass."""

_DEPENDENCY_AUDIT = """You are auditing the dependencies of this repository.

TASK: Fix outdated, deprecated or vulnerable dependencies.

STEPS:
1. Read the package manifests.
2. Replace deprecated or unmaintained packages.
3. Remove duplicates and packages that are never imported.
4. Run the tests after each change.

RULES:
- Do not bump major versions without checking compatibility.
- Respect intentional pins.
- Keep dev-only dependencies that CI uses."""

_TYPE_SAFETY = """You are improving type safety in this repository.

TASK: Tighten loose types and add missing annotations.

STEPS:
1. Replace catch-all types (any, object, Any) with specific ones.
2. Add missing return type annotations.
3. Replace unchecked casts with proper narrowing.
4. Run the type checker.

RULES:
- Only typed languages and typed files.
- Leave deliberate catch-all types at library boundaries.
- Every change must pass the type checker."""

_ERROR_HANDLING = """You are improving error handling in this repository.

TASK: Fix poor error handling.

STEPS:
1. Replace empty catch/except blocks with real handling or logging.
2. Stop swallowing errors that callers need to see.
3. Handle errors where callers currently ignore them.
4. Make error messages carry useful context.

RULES:
- Leave suppression that is commented as intentional.
- Follow the framework's error handling conventions.
- Run the tests afterwards."""

_PERFORMANCE_REVIEW = """You are running a performance pass on this repository.

TASK: Find and fix performance problems.

STEPS:
1. Fix N+1 query patterns.
2. Cache or memoize expensive repeated computation.
3. Move blocking work off hot paths.
4. Fix leaks: listeners never removed, caches that only grow.

RULES:
- Only fix problems with measurable impact.
- Skip rarely executed code.
- Run the tests afterwards."""

_CONFIG_HYGIENE = """You are cleaning up configuration in this repository.

TASK: Tidy configuration files and environment setup.

STEPS:
1. Remove configuration keys nothing reads.
2. Add variables the code reads to the example env file.
3. Fix inconsistencies between environments.
4. Move hardcoded values into configuration where it helps.

RULES:
- Keep keys the framework requires.
- Some differences between environments are intentional."""


CHECKS: tuple[CheckDefinition, ...] = (
    CheckDefinition(
        id="lint-fix",
        name="Lint Fix",
        description="Fix linting issues and code style violations",
        category=CheckCategory.LINT,
        cost_tier=CostTier.LOW,
        cooldown_hours=24,
        default_enabled=True,
        prompt_template=_LINT_FIX,
    ),
    CheckDefinition(
        id="dead-code",
        name="Dead Code Removal",
        description="Find and remove unused imports, functions, variables, and types",
        category=CheckCategory.DEAD_CODE,
        cost_tier=CostTier.MEDIUM,
        cooldown_hours=72,
        default_enabled=True,
        prompt_template=_DEAD_CODE,
    ),
    CheckDefinition(
        id="doc-drift",
        name="Documentation Drift",
        description="Fix stale, missing, or inaccurate documentation and comments",
        category=CheckCategory.DOCUMENTATION,
        cost_tier=CostTier.MEDIUM,
        cooldown_hours=48,
        default_enabled=True,
        prompt_template=_DOC_DRIFT,
    ),
    CheckDefinition(
        id="security-audit",
        name="Security Audit",
        description="Find and fix security vulnerabilities (OWASP top 10, hardcoded secrets)",
        category=CheckCategory.SECURITY,
        cost_tier=CostTier.HIGH,
        cooldown_hours=168,
        default_enabled=True,
        prompt_template=_SECURITY_AUDIT,
    ),
    CheckDefinition(
        id="test-gaps",
        name="Test Coverage Gaps",
        description="Write tests for untested code paths and missing edge cases",
        category=CheckCategory.TESTS,
        cost_tier=CostTier.HIGH,
        cooldown_hours=72,
        default_enabled=True,
        prompt_template=_TEST_GAPS,
    ),
    CheckDefinition(
        id="dependency-audit",
        name="Dependency Audit",
        description="Update outdated, deprecated, or vulnerable dependencies",
        category=CheckCategory.DEPENDENCIES,
        cost_tier=CostTier.MEDIUM,
        cooldown_hours=168,
        default_enabled=True,
        prompt_template=_DEPENDENCY_AUDIT,
    ),
    CheckDefinition(
        id="type-safety",
        name="Type Safety",
        description="Fix loose types and add missing type annotations",
        category=CheckCategory.TYPE_SAFETY,
        cost_tier=CostTier.MEDIUM,
        cooldown_hours=48,
        default_enabled=True,
        prompt_template=_TYPE_SAFETY,
    ),
    CheckDefinition(
        id="error-handling",
        name="Error Handling",
        description="Improve error handling: missing catches, swallowed errors, poor messages",
        category=CheckCategory.CODE_QUALITY,
        cost_tier=CostTier.MEDIUM,
        cooldown_hours=48,
        default_enabled=True,
        prompt_template=_ERROR_HANDLING,
    ),
    CheckDefinition(
        id="performance-review",
        name="Performance Review",
        description="Fix performance issues: N+1 queries, memory leaks, redundant work",
        category=CheckCategory.PERFORMANCE,
        cost_tier=CostTier.HIGH,
        cooldown_hours=168,
        default_enabled=False,
        prompt_template=_PERFORMANCE_REVIEW,
    ),
    CheckDefinition(
        id="config-hygiene",
        name="Config Hygiene",
        description="Clean up configuration files: unused keys, inconsistencies, env gaps",
        category=CheckCategory.CONFIGURATION,
        cost_tier=CostTier.LOW,
        cooldown_hours=168,
        default_enabled=False,
        prompt_template=_CONFIG_HYGIENE,
    ),
)

_BY_ID = {c.id: c for c in CHECKS}


def all_checks() -> list[CheckDefinition]:
    return list(CHECKS)


def find_check(check_id: str) -> CheckDefinition | None:
    return _BY_ID.get(check_id)


def all_check_metadata() -> list[dict[str, Any]]:
    """Catalog listing without prompt templates."""
    return [c.to_dict() for c in CHECKS]


def get_default_prompt(check_id: str) -> str | None:
    check = _BY_ID.get(check_id)
    return check.prompt_template if check else None
