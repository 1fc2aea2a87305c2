"""Tests for version comparison and classification."""

import pytest

from depsync.enums import UpdateType
from depsync.processors.version_classifier import (
    apply_range_prefix,
    classify,
    highest_update_type,
    is_in_range,
    is_newer,
    range_prefix,
    strip_range_prefix,
    version_tuple,
)


class TestStripRangePrefix:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("^1.2.3", "1.2.3"),
            ("~2.0.0", "2.0.0"),
            (">=3.1", "3.1"),
            ("v4", "4"),
            ("  1.0.0 ", "1.0.0"),
            ("1.0.0", "1.0.0"),
        ],
    )
    def test_strips_operators(self, raw, expected):
        assert strip_range_prefix(raw) == expected


class TestRangePrefix:
    def test_caret(self):
        assert range_prefix("^1.2.3") == "^"

    def test_compound_operator(self):
        assert range_prefix(">=1.0.0") == ">="

    def test_plain_version(self):
        assert range_prefix("1.2.3") == ""

    def test_apply_keeps_caret(self):
        assert apply_range_prefix("^1.2.3", "1.2.9") == "^1.2.9"

    def test_apply_keeps_tilde(self):
        assert apply_range_prefix("~4.18.0", "4.18.3") == "~4.18.3"

    def test_apply_to_pinned(self):
        assert apply_range_prefix("4.9.5", "5.4.2") == "5.4.2"

    def test_apply_leaves_proposed_operator(self):
        assert apply_range_prefix("^1.0.0", "~1.1.0") == "~1.1.0"


class TestVersionTuple:
    def test_numeric_segments(self):
        assert version_tuple("1.2.3") == (1, 2, 3)

    def test_prerelease_suffix_ignored(self):
        assert version_tuple("1.2.3-beta.1") == (1, 2, 3)

    def test_build_suffix_ignored(self):
        assert version_tuple("1.2.3+build.5") == (1, 2, 3)

    def test_non_numeric_segment_is_zero(self):
        assert version_tuple("1.x.3") == (1, 0, 3)

    def test_empty(self):
        assert version_tuple("") == ()


class TestClassify:
    def test_patch_within_caret_range(self):
        assert classify("^1.2.3", "1.2.9") == UpdateType.PATCH

    def test_minor(self):
        assert classify("~2.0.0", "2.1.0") == UpdateType.MINOR

    def test_major(self):
        assert classify("4.9.5", "5.4.2") == UpdateType.MAJOR

    def test_missing_segments_are_zero(self):
        assert classify("v4", "v4.1") == UpdateType.MINOR
        assert classify("v3", "v4") == UpdateType.MAJOR

    def test_equal_versions_classify_as_patch(self):
        assert classify("1.0.0", "1.0.0") == UpdateType.PATCH


class TestIsNewer:
    def test_strictly_greater(self):
        assert is_newer("^1.2.3", "1.2.9")

    def test_equal_is_not_newer(self):
        assert not is_newer("1.2.3", "1.2.3")

    def test_downgrade_is_not_newer(self):
        assert not is_newer("2.0.0", "1.9.9")

    def test_padding(self):
        assert is_newer("1", "1.0.1")
        assert not is_newer("1.0.0", "1")

    def test_numeric_not_lexicographic(self):
        assert is_newer("1.9.0", "1.10.0")


class TestIsInRange:
    def test_caret_same_major(self):
        assert is_in_range("^1.2.3", "1.2.9")
        assert is_in_range("^1.2.3", "1.9.0")

    def test_caret_rejects_next_major(self):
        assert not is_in_range("^1.2.3", "2.0.0")

    def test_caret_rejects_lower(self):
        assert not is_in_range("^1.2.3", "1.2.0")

    def test_tilde_same_minor(self):
        assert is_in_range("~2.0.0", "2.0.5")

    def test_tilde_rejects_next_minor(self):
        assert not is_in_range("~2.0.0", "2.1.0")

    def test_other_operators_are_exact(self):
        assert is_in_range("1.2.3", "1.2.3")
        assert not is_in_range(">=1.2.3", "1.2.4")


class TestHighestUpdateType:
    def test_picks_most_severe(self):
        assert highest_update_type([UpdateType.PATCH, UpdateType.MAJOR, UpdateType.MINOR]) == UpdateType.MAJOR

    def test_empty_is_patch(self):
        assert highest_update_type([]) == UpdateType.PATCH
