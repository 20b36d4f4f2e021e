"""Tests for the unit configuration file and the raw CSV cache writer."""

import json

import pytest

from _support import read_json

from perfspine.collection.raw_cache import RawCacheWriter
from perfspine.collection.unit_config import UnitConfigLoader, UnitConfiguration
from perfspine.core.errors import ConfigError
from perfspine.snapshots.builder import ReportType


class TestUnitConfigLoader:
    """Tests for UnitConfigLoader."""

    def test_missing_file_is_empty(self, tmp_path):
        config = UnitConfigLoader(tmp_path / "units.json").load()
        assert config == UnitConfiguration()

    def test_load(self, tmp_path):
        path = tmp_path / "units.json"
        path.write_text(
            json.dumps({"configuredUnits": ["42", " 61 ", "F"], "version": 3, "updatedBy": "admin"}),
            encoding="utf-8",
        )
        config = UnitConfigLoader(path).load()
        assert config.configured_units == ["42", "61", "F"]
        assert config.version == 3

    def test_invalid_json_raises(self, tmp_path):
        path = tmp_path / "units.json"
        path.write_text("{", encoding="utf-8")
        with pytest.raises(ConfigError):
            UnitConfigLoader(path).load()

    @pytest.mark.parametrize(
        "payload",
        [["42"], {"configuredUnits": "42"}, {"configuredUnits": ["42", "4/2"]}],
    )
    def test_malformed_config_raises(self, tmp_path, payload):
        path = tmp_path / "units.json"
        path.write_text(json.dumps(payload), encoding="utf-8")
        with pytest.raises(ConfigError):
            UnitConfigLoader(path).load()

    def test_save_bumps_version(self, tmp_path):
        loader = UnitConfigLoader(tmp_path / "config" / "units.json")
        first = loader.save(["42"], updated_by="ops")
        second = loader.save(["42", "61"])
        assert (first.version, second.version) == (1, 2)
        assert loader.configured_units() == ["42", "61"]
        assert read_json(loader.path)["updatedBy"] == "cli"

    def test_save_rejects_invalid_ids(self, tmp_path):
        with pytest.raises(ConfigError):
            UnitConfigLoader(tmp_path / "units.json").save(["ok", ""])


class TestRawCacheWriter:
    """Tests for RawCacheWriter."""

    def test_write_unit_report_and_metadata(self, cache_dir):
        cache = RawCacheWriter(cache_dir)

        path = cache.write_report(
            "2025-01-05",
            ReportType.CLUB_PERFORMANCE,
            "a,b\n1,2\n",
            "42",
            requested_date="2025-01-05",
            is_closing_period=True,
            data_month="2024-12",
        )

        assert path == cache_dir / "raw-csv" / "2025-01-05" / "unit-42" / "club-performance.csv"
        metadata = read_json(cache_dir / "raw-csv" / "2025-01-05" / "metadata.json")
        assert metadata["isClosingPeriod"] is True
        assert metadata["dataMonth"] == "2024-12"
        assert metadata["programYear"] == "2024-2025"
        assert metadata["source"] == "collector"
        assert metadata["csvFiles"]["units"]["42"] == {
            "clubPerformance": True,
            "divisionPerformance": False,
            "unitPerformance": False,
        }
        assert metadata["integrity"]["fileCount"] == 1
        assert metadata["integrity"]["totalSize"] == len("a,b\n1,2\n")
        assert "unit-42/club-performance.csv" in metadata["integrity"]["checksums"]
        assert metadata["downloadStats"]["totalDownloads"] == 1

    def test_rewrite_keeps_total_size_consistent(self, cache_dir):
        cache = RawCacheWriter(cache_dir)
        cache.write_report("2025-01-05", ReportType.CLUB_PERFORMANCE, "aaaa", "42")
        cache.write_report("2025-01-05", ReportType.CLUB_PERFORMANCE, "bb", "42")
        metadata = cache.read_metadata("2025-01-05")
        assert metadata["integrity"]["totalSize"] == 2
        assert metadata["integrity"]["fileCount"] == 1

    def test_summary_report(self, cache_dir):
        cache = RawCacheWriter(cache_dir)
        path = cache.write_report("2025-01-05", "all-units", "x\n")
        assert path.name == "all-units.csv"
        assert cache.has_cached("2025-01-05", "all-units") is True
        assert cache.read_metadata("2025-01-05")["csvFiles"]["allUnits"] is True

    def test_has_cached_unit_requires_every_report(self, cache_dir):
        cache = RawCacheWriter(cache_dir)
        cache.write_report("2025-01-05", ReportType.CLUB_PERFORMANCE, "x", "42")
        assert cache.has_cached_unit("2025-01-05", "42") is False
        for report_type in ReportType.ALL[1:]:
            cache.write_report("2025-01-05", report_type, "x", "42")
        assert cache.has_cached_unit("2025-01-05", "42") is True

    def test_record_cache_hit(self, cache_dir):
        cache = RawCacheWriter(cache_dir)
        cache.record_cache_hit("2025-01-05")
        cache.record_cache_hit("2025-01-05")
        assert cache.read_metadata("2025-01-05")["downloadStats"]["cacheHits"] == 2
