"""
Asset URL normalization for profile pictures and uploaded documents.

Stored paths are sometimes development-host URLs, sometimes a malformed
doubled domain, sometimes bare relative paths.
"""
from __future__ import annotations

import re
from pathlib import PurePosixPath
from typing import Optional
from urllib.parse import urlsplit

from config import settings

_DEV_HOSTS = re.compile(r"https?://localhost:(5253|7174)", re.IGNORECASE)
_DOUBLED_DOMAIN = re.compile(r"https?://ndaid\.help/\.ndaid\.help/api", re.IGNORECASE)


def resolve_asset_url(path: str, asset_base_url: Optional[str] = None) -> str:
    if not path:
        return path
    base = (asset_base_url or settings.asset_base_url).rstrip("/")
    url = _DOUBLED_DOMAIN.sub(base, path)
    url = _DEV_HOSTS.sub(base, url)
    if not url.lower().startswith("http"):
        url = f"{base}/{url.lstrip('/')}"
    return url


def is_asset_host(url: str) -> bool:
    """True when url points at the configured asset host or the remote API host."""
    parts = urlsplit(url)
    if parts.scheme.lower() not in ("http", "https"):
        return False
    trusted = {urlsplit(u).netloc.lower() for u in (settings.asset_base_url, settings.remote_api_url)}
    return parts.netloc.lower() in trusted


def download_filename(url: str, fallback: str = "download") -> str:
    name = PurePosixPath(urlsplit(url).path).name
    return name or fallback


def content_disposition(filename: str) -> str:
    safe = re.sub(r'[\r\n"]', "_", filename)
    return f'attachment; filename="{safe}"'
