"""Tests for version arithmetic."""

import pytest

from toolgate.apps.versioning import bump_version, is_valid_version


class TestBumpVersion:
    @pytest.mark.parametrize(
        ("current", "expected"),
        [
            (None, "1.0.1"),
            ("1.0.9", "1.0.10"),
            ("2.5", "2.5.1"),
            ("3", "3.0.1"),
            ("2.0.0-beta", "2.0.1"),
        ],
    )
    def test_patch_increment(self, current: str | None, expected: str) -> None:
        assert bump_version(current) == expected

    def test_explicit_wins(self) -> None:
        assert bump_version("1.0.0", "4.0.0") == "4.0.0"

    def test_unparseable_current_raises(self) -> None:
        with pytest.raises(ValueError):
            bump_version("latest")


@pytest.mark.parametrize(
    ("value", "valid"),
    [("1.2.3", True), ("2.5", True), ("1.0.0-rc.1", True), ("v1", False), ("1..2", False)],
)
def test_is_valid_version(value: str, valid: bool) -> None:
    assert is_valid_version(value) is valid
