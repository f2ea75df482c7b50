"""
Tests for Version Comparison.

============================================================
TEST COVERAGE
============================================================
1. Ordering of well-formed versions
2. Trailing zero normalization
3. Malformed versions
4. Minimum version gate
============================================================
"""

import pytest

from core.exceptions import InvalidVersionFormat, MirrorException
from core.versioning import compare_versions, is_version_satisfied


# ============================================================
# ORDERING TESTS
# ============================================================

class TestCompareVersions:
    """Test compare_versions ordering."""

    def test_equal_versions(self):
        """Identical versions compare equal."""
        assert compare_versions("2.1.0", "2.1.0") == 0

    def test_greater_segment_wins(self):
        """First differing segment decides."""
        assert compare_versions("2.10", "2.9") > 0
        assert compare_versions("1.9.9", "2.0") < 0

    def test_numeric_not_lexical(self):
        """Segments compare as integers."""
        assert compare_versions("1.10.0", "1.2.0") > 0

    def test_longer_version_wins_on_equal_prefix(self):
        """Extra non-zero segments make a version greater."""
        assert compare_versions("1.2.0.1", "1.2") > 0
        assert compare_versions("1.2", "1.2.0.1") < 0

    def test_antisymmetric(self):
        """Swapping arguments flips the sign."""
        for a, b in [("1.0", "1.1"), ("3", "2.99"), ("1.2.3", "1.2.3.4")]:
            assert (compare_versions(a, b) > 0) == (compare_versions(b, a) < 0)


# ============================================================
# NORMALIZATION TESTS
# ============================================================

class TestTrailingZeros:
    """Test trailing zero normalization."""

    def test_trailing_zeros_are_insignificant(self):
        """1.2.0 equals 1.2."""
        assert compare_versions("1.2.0", "1.2") == 0
        assert compare_versions("1.2.0.0.0", "1.2") == 0

    def test_multi_digit_zero_segments(self):
        """Segments made of several zeros are still zero."""
        assert compare_versions("1.00", "1") == 0

    def test_all_zero_version(self):
        """0.0 keeps one segment and equals 0."""
        assert compare_versions("0.0", "0") == 0
        assert compare_versions("0.0.0", "0.0") == 0

    def test_inner_zeros_are_significant(self):
        """Only trailing zeros are stripped."""
        assert compare_versions("1.0.1", "1.1") < 0
        assert compare_versions("1.20", "1.2") > 0


# ============================================================
# MALFORMED INPUT TESTS
# ============================================================

class TestInvalidVersions:
    """Test malformed versions raise InvalidVersionFormat."""

    @pytest.mark.parametrize("version", ["", "1..2", "1.a", "v1.2", "1.2-beta", "1.-2"])
    def test_malformed_segments(self, version):
        """Empty or non-numeric segments are rejected."""
        with pytest.raises(InvalidVersionFormat) as exc_info:
            compare_versions(version, "1.0")
        assert exc_info.value.version == version

    def test_non_ascii_digits_rejected(self):
        """Digits outside ASCII are not version digits."""
        with pytest.raises(InvalidVersionFormat):
            compare_versions("1.٣", "1.0")

    def test_non_string_rejected(self):
        """None is not a version."""
        with pytest.raises(InvalidVersionFormat):
            compare_versions(None, "1.0")

    def test_error_hierarchy(self):
        """InvalidVersionFormat is both a MirrorException and a ValueError."""
        with pytest.raises(ValueError):
            compare_versions("1.0", "x")
        with pytest.raises(MirrorException):
            compare_versions("1.0", "x")


# ============================================================
# GATE TESTS
# ============================================================

class TestIsVersionSatisfied:
    """Test the minimum version gate."""

    def test_equal_is_satisfied(self):
        assert is_version_satisfied("2.0.0", "2.0")

    def test_newer_is_satisfied(self):
        assert is_version_satisfied("2.1", "2.0.5")

    def test_older_is_not_satisfied(self):
        assert not is_version_satisfied("1.9.9", "2.0")
