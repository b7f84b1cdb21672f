"""Persistent state kept between scans."""

from .scan_cache import CACHE_RELATIVE_PATH, ScanCache, repo_fingerprint, text_digest

__all__ = ["CACHE_RELATIVE_PATH", "ScanCache", "repo_fingerprint", "text_digest"]
