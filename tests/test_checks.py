"""Tests for the built-in check catalog."""

from __future__ import annotations

from conftest import DEFAULT_CHECKS

from nightshift.checks.catalog import (
    CHECKS,
    CheckCategory,
    all_check_metadata,
    all_checks,
    find_check,
    get_default_prompt,
)


class TestCatalog:
    def test_ten_checks_in_order(self):
        ids = [c.id for c in all_checks()]
        assert ids == DEFAULT_CHECKS + ["performance-review", "config-hygiene"]

    def test_ids_are_unique(self):
        ids = [c.id for c in CHECKS]
        assert len(ids) == len(set(ids))

    def test_default_enabled(self):
        enabled = [c.id for c in all_checks() if c.default_enabled]
        assert enabled == DEFAULT_CHECKS

    def test_cooldowns(self):
        assert find_check("lint-fix").cooldown_hours == 24
        assert find_check("security-audit").cooldown_hours == 168
        assert find_check("doc-drift").cooldown_hours == 48
        assert find_check("dead-code").cooldown_hours == 72

    def test_every_check_has_a_prompt(self):
        for check in all_checks():
            assert check.prompt_template.strip(), check.id

    def test_find_unknown(self):
        assert find_check("nope") is None

    def test_category(self):
        assert find_check("security-audit").category == CheckCategory.SECURITY


class TestMetadata:
    def test_metadata_omits_prompt(self):
        meta = all_check_metadata()
        assert len(meta) == 10
        assert "prompt_template" not in meta[0]
        assert meta[0]["id"] == "lint-fix"
        assert meta[0]["category"] == "lint"
        assert meta[0]["cost_tier"] in ("low", "medium", "high")

    def test_default_prompt(self):
        assert get_default_prompt("lint-fix") == find_check("lint-fix").prompt_template

    def test_default_prompt_unknown(self):
        assert get_default_prompt("nope") is None
