"""Download cache and conditional-fetch engine.

Public surface::

    cache = Cache.create(logger)
    downloader = Downloader(cache, build_http_client(config))
    path = downloader.download_file(url, expected.value, expected.new_digest())
"""

from .cache import Cache, CacheEntry, download_file_for_url
from .checksums import (
    ChecksumCalculator,
    DigestAlgorithm,
    ExpectedChecksum,
    FileChecksumCalculator,
    select_expected_checksum,
)
from .downloader import ETAG_HEADER, IF_NONE_MATCH_HEADER, Downloader
from .etag_index import EtagIndex, EtagStore

__all__ = [
    "Cache",
    "CacheEntry",
    "ChecksumCalculator",
    "DigestAlgorithm",
    "Downloader",
    "ETAG_HEADER",
    "EtagIndex",
    "EtagStore",
    "ExpectedChecksum",
    "FileChecksumCalculator",
    "IF_NONE_MATCH_HEADER",
    "download_file_for_url",
    "select_expected_checksum",
]
