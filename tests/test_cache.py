"""Cache layout, retrieval, and verified storage."""

from __future__ import annotations

import hashlib
import io
import logging

import pytest

from DataflowShell.download import Cache, EtagIndex, download_file_for_url
from DataflowShell.errors import (
    ChecksumMismatchError,
    ConfigurationError,
    EtagIndexUpdateError,
)

URL = "https://repo.example.com/releases/spring-cloud-dataflow-shell-2.1.0.jar"
PAYLOAD = b"PK\x03\x04 pretend this is a jar"
SHA256 = hashlib.sha256(PAYLOAD).hexdigest()


def _cache_root(home):
    return home / ".cf" / "spring-cloud-dataflow-for-pcf" / "cache"


class _FailingStream(io.RawIOBase):
    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        raise OSError("connection dropped")


class _BrokenStore:
    def get_etag_for_url(self, url: str) -> str:
        return ""

    def set_etag_for_url(self, url: str, etag: str) -> None:
        raise OSError("index is read-only")


def test_download_file_for_url_uses_last_segment(tmp_path):
    assert download_file_for_url(URL, tmp_path) == tmp_path / "spring-cloud-dataflow-shell-2.1.0.jar"
    assert download_file_for_url("no-slashes.jar", tmp_path) == tmp_path / "no-slashes.jar"


def test_create_lays_out_cache_under_cf_home(cf_home):
    cache = Cache.create()

    root = _cache_root(cf_home)
    assert cache.downloads_directory == root
    assert root.is_dir()
    assert (root / ".cachedata").is_file()
    assert cache.entry(URL).download_file == root / "spring-cloud-dataflow-shell-2.1.0.jar"


def test_create_falls_back_to_home(tmp_path, monkeypatch):
    monkeypatch.delenv("CF_HOME")
    monkeypatch.setenv("HOME", str(tmp_path))

    cache = Cache.create()

    assert cache.downloads_directory == _cache_root(tmp_path)


def test_create_without_any_home_fails(monkeypatch):
    monkeypatch.delenv("CF_HOME")
    monkeypatch.delenv("HOME", raising=False)

    with pytest.raises(ConfigurationError):
        Cache.create()


def test_create_fails_when_path_component_is_a_file(cf_home):
    (cf_home / ".cf").write_text("not a directory", encoding="utf-8")

    with pytest.raises(OSError):
        Cache.create()


def test_create_is_idempotent_and_keeps_index(cf_home):
    Cache.create().entry(URL).etag_store.set_etag_for_url(URL, '"v1"')

    assert Cache.create().etag_store.get_etag_for_url(URL) == '"v1"'


def test_retrieve_on_empty_cache():
    path, etag = Cache.create().entry(URL).retrieve()

    assert path is None
    assert etag == ""


def test_store_then_retrieve():
    entry = Cache.create().entry(URL)
    contents = io.BytesIO(PAYLOAD)

    entry.store(contents, '"v1"', SHA256, hashlib.sha256())

    assert contents.closed
    path, etag = entry.retrieve()
    assert path == entry.download_file
    assert path.read_bytes() == PAYLOAD
    assert etag == '"v1"'


def test_store_with_sha1():
    entry = Cache.create().entry(URL)

    entry.store(io.BytesIO(PAYLOAD), "etag", hashlib.sha1(PAYLOAD).hexdigest(), hashlib.sha1())

    assert entry.retrieve()[1] == "etag"


def test_store_replaces_previous_content():
    entry = Cache.create().entry(URL)
    entry.store(io.BytesIO(b"old"), "v0", hashlib.sha256(b"old").hexdigest(), hashlib.sha256())

    entry.store(io.BytesIO(PAYLOAD), "v1", SHA256, hashlib.sha256())

    assert entry.download_file.read_bytes() == PAYLOAD
    assert entry.retrieve()[1] == "v1"


def test_checksum_mismatch_keeps_file_but_not_etag():
    entry = Cache.create().entry(URL)
    wrong = "0" * 64

    with pytest.raises(ChecksumMismatchError) as excinfo:
        entry.store(io.BytesIO(PAYLOAD), '"v1"', wrong, hashlib.sha256())

    message = str(excinfo.value)
    assert SHA256 in message and wrong in message
    assert entry.download_file.exists()
    assert entry.retrieve() == (entry.download_file, "")


def test_checksum_mismatch_preserves_earlier_etag():
    entry = Cache.create().entry(URL)
    entry.store(io.BytesIO(PAYLOAD), '"v1"', SHA256, hashlib.sha256())

    with pytest.raises(ChecksumMismatchError):
        entry.store(io.BytesIO(b"tampered"), '"v2"', SHA256, hashlib.sha256())

    assert entry.retrieve()[1] == '"v1"'


def test_empty_etag_leaves_index_untouched():
    cache = Cache.create()
    entry = cache.entry(URL)
    index_before = (cache.downloads_directory / ".cachedata").read_text(encoding="utf-8")

    entry.store(io.BytesIO(PAYLOAD), "", SHA256, hashlib.sha256())

    assert entry.download_file.read_bytes() == PAYLOAD
    assert (cache.downloads_directory / ".cachedata").read_text(encoding="utf-8") == index_before


def test_failed_read_leaves_no_partial_file(caplog):
    cache = Cache.create()
    entry = cache.entry(URL)
    stream = _FailingStream()
    caplog.set_level(logging.ERROR, logger="DataflowShell")

    with pytest.raises(OSError, match="connection dropped"):
        entry.store(stream, '"v1"', SHA256, hashlib.sha256())

    assert stream.closed
    assert sorted(path.name for path in cache.downloads_directory.iterdir()) == [".cachedata"]
    assert cache.etag_store.get_etag_for_url(URL) == ""
    assert any(record.message.startswith("Error downloading") for record in caplog.records)


def test_etag_update_failure_is_reported(tmp_path):
    cache = Cache(tmp_path, _BrokenStore())
    entry = cache.entry(URL)

    with pytest.raises(EtagIndexUpdateError) as excinfo:
        entry.store(io.BytesIO(PAYLOAD), '"v1"', SHA256, hashlib.sha256())

    assert isinstance(excinfo.value.__cause__, OSError)
    assert entry.download_file.read_bytes() == PAYLOAD


def test_corrupt_index_during_update_is_reported(tmp_path):
    index = EtagIndex(tmp_path / ".cachedata")
    entry = Cache(tmp_path, index).entry(URL)
    (tmp_path / ".cachedata").write_text("{broken", encoding="utf-8")

    with pytest.raises(EtagIndexUpdateError):
        entry.store(io.BytesIO(PAYLOAD), '"v1"', SHA256, hashlib.sha256())


def test_entries_share_one_index(tmp_path):
    cache = Cache(tmp_path, EtagIndex(tmp_path / ".cachedata"))
    other_url = "https://repo.example.com/releases/spring-cloud-skipper-shell-2.0.0.jar"

    cache.entry(URL).store(io.BytesIO(PAYLOAD), "a", SHA256, hashlib.sha256())
    cache.entry(other_url).store(io.BytesIO(PAYLOAD), "b", SHA256, hashlib.sha256())

    assert cache.entry(URL).retrieve()[1] == "a"
    assert cache.entry(other_url).retrieve()[1] == "b"


def test_undecodable_index_during_update_is_reported(tmp_path):
    entry = Cache(tmp_path, EtagIndex(tmp_path / ".cachedata")).entry(URL)
    (tmp_path / ".cachedata").write_bytes(b"\xff\xfe\x00garbage")

    with pytest.raises(EtagIndexUpdateError):
        entry.store(io.BytesIO(PAYLOAD), '"v1"', SHA256, hashlib.sha256())

    assert entry.download_file.read_bytes() == PAYLOAD


def test_url_naming_a_directory_is_not_cached(tmp_path):
    cache = Cache(tmp_path, EtagIndex(tmp_path / ".cachedata"))
    entry = cache.entry("https://repo.example.com/releases/")

    assert entry.download_file == tmp_path
    assert entry.retrieve() == (None, "")
