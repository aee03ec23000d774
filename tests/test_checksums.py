"""Checksum selection and file digest calculation."""

from __future__ import annotations

import hashlib

import pytest

from DataflowShell.download import (
    DigestAlgorithm,
    ExpectedChecksum,
    FileChecksumCalculator,
    select_expected_checksum,
)
from DataflowShell.errors import ConfigurationError

SHA1 = "a" * 40
SHA256 = "b" * 64


@pytest.mark.parametrize(
    "sha256,sha1,expected",
    [
        (SHA256, SHA1, ExpectedChecksum("sha256", SHA256)),
        (SHA256, None, ExpectedChecksum("sha256", SHA256)),
        ("", SHA1, ExpectedChecksum("sha1", SHA1)),
        (None, SHA1.upper(), ExpectedChecksum("sha1", SHA1)),
        (f"  {SHA256.upper()}  ", "", ExpectedChecksum("sha256", SHA256)),
    ],
)
def test_select_expected_checksum(sha256, sha1, expected):
    assert select_expected_checksum(sha256, sha1) == expected


@pytest.mark.parametrize("sha256,sha1", [(None, None), ("", "  "), ("not-hex", None)])
def test_select_expected_checksum_rejects_unusable_input(sha256, sha1):
    with pytest.raises(ConfigurationError):
        select_expected_checksum(sha256, sha1)


def test_new_digest_is_fresh_each_time():
    expected = ExpectedChecksum("sha256", SHA256)
    first = expected.new_digest()
    first.update(b"data")

    assert expected.new_digest().hexdigest() == hashlib.sha256().hexdigest()
    assert isinstance(first, DigestAlgorithm)


@pytest.mark.parametrize("algorithm", ["sha1", "sha256"])
def test_calculate_checksum_matches_hashlib(tmp_path, algorithm):
    payload = b"shell-jar" * 5000
    path = tmp_path / "shell.jar"
    path.write_bytes(payload)

    result = FileChecksumCalculator(chunk_size=1024).calculate_checksum(
        path, hashlib.new(algorithm)
    )

    assert result == hashlib.new(algorithm, payload).hexdigest()


def test_calculate_checksum_lowercases_digest(tmp_path):
    class UpperDigest:
        def update(self, data: bytes) -> None:
            pass

        def hexdigest(self) -> str:
            return "ABCDEF"

    path = tmp_path / "file"
    path.write_bytes(b"x")

    assert FileChecksumCalculator().calculate_checksum(path, UpperDigest()) == "abcdef"


def test_calculate_checksum_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        FileChecksumCalculator().calculate_checksum(tmp_path / "absent", hashlib.sha1())


def test_digest_failures_propagate(tmp_path):
    class BrokenDigest:
        def update(self, data: bytes) -> None:
            raise ValueError("digest exploded")

        def hexdigest(self) -> str:
            return ""

    path = tmp_path / "file"
    path.write_bytes(b"x")

    with pytest.raises(ValueError, match="digest exploded"):
        FileChecksumCalculator().calculate_checksum(path, BrokenDigest())
