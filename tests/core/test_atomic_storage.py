"""Tests for atomic JSON storage and checksums."""

import os
from unittest.mock import patch

import pytest

from perfspine.core.errors import ParseError, StorageError
from perfspine.core.hashing import checksum_payload, sha256_bytes, sha256_file
from perfspine.core.storage import dump_json, read_json, write_json_atomic, write_text_atomic


class TestWriteAtomic:
    """Tests for write_json_atomic / write_text_atomic."""

    def test_creates_parents_and_writes(self, tmp_path):
        target = tmp_path / "a" / "b" / "c.json"
        write_json_atomic(target, {"ok": True})
        assert read_json(target) == {"ok": True}

    def test_format_is_indented_with_trailing_newline(self, tmp_path):
        target = write_json_atomic(tmp_path / "x.json", {"b": 1})
        text = target.read_text(encoding="utf-8")
        assert text == dump_json({"b": 1})
        assert text.endswith("\n")
        assert '  "b": 1' in text

    def test_overwrites_existing(self, tmp_path):
        target = tmp_path / "x.txt"
        write_text_atomic(target, "one")
        write_text_atomic(target, "two")
        assert target.read_text(encoding="utf-8") == "two"

    def test_no_temp_files_left_behind(self, tmp_path):
        write_json_atomic(tmp_path / "x.json", [1, 2, 3])
        assert [p.name for p in tmp_path.iterdir()] == ["x.json"]

    def test_failed_rename_raises_storage_error_and_cleans_up(self, tmp_path):
        target = tmp_path / "x.json"
        write_json_atomic(target, {"v": 1})

        with patch("perfspine.core.storage.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(StorageError) as exc_info:
                write_json_atomic(target, {"v": 2})

        assert exc_info.value.context.path == str(target)
        # Original content survives, temp file is gone
        assert read_json(target) == {"v": 1}
        assert [p.name for p in tmp_path.iterdir()] == ["x.json"]


class TestReadJson:
    """Tests for read_json."""

    def test_missing_returns_none(self, tmp_path):
        assert read_json(tmp_path / "missing.json") is None

    def test_invalid_raises_parse_error(self, tmp_path):
        bad = tmp_path / "bad.json"
        bad.write_text("{not json", encoding="utf-8")
        with pytest.raises(ParseError):
            read_json(bad)


class TestHashing:
    """Tests for checksum helpers."""

    def test_sha256_bytes_known_value(self):
        assert sha256_bytes(b"abc").startswith("ba7816bf")

    def test_file_checksum_matches_bytes(self, tmp_path):
        path = tmp_path / "f.bin"
        path.write_bytes(os.urandom(200_000))
        assert sha256_file(path) == sha256_bytes(path.read_bytes())

    def test_payload_checksum_ignores_key_order(self):
        assert checksum_payload({"b": 1, "a": [1, 2]}) == checksum_payload({"a": [1, 2], "b": 1})

    def test_payload_checksum_detects_change(self):
        assert checksum_payload({"a": 1}) != checksum_payload({"a": 2})
