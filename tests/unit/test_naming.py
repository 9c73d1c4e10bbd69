"""
Unit tests for the archive naming scheme (rotator/backup/naming.py).
"""

from datetime import datetime

import pytest

from rotator.backup.naming import (
    Archive,
    archive_name,
    display_path,
    format_timestamp,
    parse_archive,
    parse_listing,
    suffix_of
)


class TestSuffixOf:
    """Test suffix derivation from target paths."""

    @pytest.mark.parametrize("path,expected", [
        ("/", ""),
        ("", ""),
        (".", ""),
        ("//", ""),
        ("/foo/bar", "-foobar"),
        ("/home", "-home"),
        ("var/lib/", "-varlib"),
    ])
    def test_suffix_of(self, path, expected):
        assert suffix_of(path) == expected

    def test_suffix_collision_is_possible(self):
        """Different paths can map to the same suffix."""
        assert suffix_of("/foo/bar") == suffix_of("/foob/ar")


class TestArchiveName:
    """Test archive name construction."""

    def test_archive_name_with_suffix(self):
        name = archive_name("H", "daily", "2024-01-15_12-00-00", "-home")
        assert name == "H-daily-2024-01-15_12-00-00-home"

    def test_archive_name_without_suffix(self):
        name = archive_name("H", "yearly", "2024-01-15_12-00-00", "")
        assert name == "H-yearly-2024-01-15_12-00-00"

    def test_format_timestamp_is_fixed_width(self):
        assert format_timestamp(datetime(2024, 1, 2, 3, 4, 5)) == "2024-01-02_03-04-05"

    def test_display_path(self):
        assert display_path("home") == "/home"
        assert display_path("/home") == "/home"


class TestParseArchive:
    """Test parsing listed names back into Archive records."""

    def test_parse_round_trip(self):
        name = archive_name("H", "monthly", "2024-02-01_00-00-00", "-foobar")
        archive = parse_archive(name, "H")

        assert archive == Archive(
            name=name,
            host="H",
            tier="monthly",
            timestamp="2024-02-01_00-00-00",
            suffix="-foobar"
        )
        assert archive.year == "2024"
        assert archive.month == "2024-02"

    def test_parse_hostname_with_dashes(self):
        archive = parse_archive("web-01-daily-2024-01-15_12-00-00-etc", "web-01")

        assert archive.tier == "daily"
        assert archive.suffix == "-etc"

    @pytest.mark.parametrize("name", [
        "other-daily-2024-01-15_12-00-00",
        "H-weekly-2024-01-15_12-00-00",
        "H-daily-20240115",
        "H-daily-2024-01-15_12-00-00.part1",
        "H-daily",
        "unrelated",
    ])
    def test_parse_rejects_foreign_names(self, name):
        assert parse_archive(name, "H") is None

    def test_in_group_requires_exact_suffix(self):
        archive = parse_archive("H-daily-2024-01-15_12-00-00-homeuser", "H")

        assert archive.in_group("H", "daily", "-homeuser")
        assert not archive.in_group("H", "daily", "-home")
        assert not archive.in_group("H", "monthly", "-homeuser")

    def test_root_target_group_excludes_other_targets(self):
        archives = parse_listing([
            "H-daily-2024-01-15_12-00-00",
            "H-daily-2024-01-15_12-00-00-home",
        ], "H")

        root_group = [a for a in archives if a.in_group("H", "daily", "")]
        assert [a.name for a in root_group] == ["H-daily-2024-01-15_12-00-00"]

    def test_parse_listing_drops_unparseable(self):
        archives = parse_listing([
            "H-daily-2024-01-15_12-00-00",
            "garbage",
            "X-daily-2024-01-15_12-00-00",
        ], "H")

        assert len(archives) == 1
