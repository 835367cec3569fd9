"""
obstacle_sensing.assets
-----------------------
Model-asset loading with an ordered list of fallback sources.

Each source is either a local file path or an ``http(s)`` URL.  Sources are
tried in order; every network attempt is bounded by a timeout.  The first
source that yields a file wins.  Only when the whole list is exhausted is
:class:`~obstacle_sensing.errors.AssetUnavailable` raised, chained to the
last underlying error.

Downloaded files are cached under ``cache_dir`` keyed by a hash of the URL,
so later runs do not touch the network.
"""

from __future__ import annotations

import hashlib
import logging
import os
from pathlib import Path
from typing import Callable, Optional, Sequence, Union
from urllib.parse import urlparse
from urllib.request import urlopen

from .errors import AssetUnavailable

_logger = logging.getLogger(__name__)


def _is_url(source: str) -> bool:
    return urlparse(source).scheme in ("http", "https")


def _cache_path(cache_dir: Path, url: str) -> Path:
    name = os.path.basename(urlparse(url).path) or "asset"
    url_hash = hashlib.md5(url.encode()).hexdigest()[:8]
    return cache_dir / f"{url_hash}_{name}"


def _download(url: str, dest: Path, timeout: float, opener: Callable) -> Path:
    with opener(url, timeout=timeout) as resp:
        payload = resp.read()
    if not payload:
        raise IOError(f"empty response from {url}")
    tmp = dest.with_suffix(dest.suffix + ".part")
    tmp.write_bytes(payload)
    tmp.replace(dest)
    return dest


def fetch_asset(
    sources: Sequence[Union[str, Path]],
    cache_dir: Union[str, Path],
    timeout: float = 5.0,
    opener: Optional[Callable] = None,
) -> Path:
    """Return a local path for the first reachable source.

    Parameters
    ----------
    sources   : ordered local paths / URLs.
    cache_dir : directory for downloaded copies.
    timeout   : per-attempt network timeout in seconds.
    opener    : ``urlopen``-compatible callable (injectable for tests).

    Raises
    ------
    AssetUnavailable
        When every source failed (or the list is empty).
    """
    if not sources:
        raise AssetUnavailable("no asset sources configured")

    opener = opener or urlopen
    cache_dir = Path(cache_dir)
    cache_dir.mkdir(parents=True, exist_ok=True)

    last_error: Optional[BaseException] = None
    for source in sources:
        source = str(source)
        try:
            if not _is_url(source):
                path = Path(source).expanduser()
                if not path.is_file():
                    raise FileNotFoundError(f"asset not found: {path}")
                return path

            cached = _cache_path(cache_dir, source)
            if cached.is_file():
                _logger.debug("Asset cache hit: %s", cached)
                return cached

            _logger.info("Fetching asset from %s (timeout=%.1fs)", source, timeout)
            return _download(source, cached, timeout, opener)
        except Exception as e:
            _logger.warning("Asset source failed: %s (%s)", source, e)
            last_error = e

    raise AssetUnavailable(
        f"all {len(sources)} asset source(s) failed; last error: {last_error}"
    ) from last_error
