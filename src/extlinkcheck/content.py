"""Collect external link targets from a markdown content tree."""

from __future__ import annotations

from pathlib import Path

import structlog

from extlinkcheck.parser import extract_markdown_links
from extlinkcheck.urls import (
    is_http_url,
    is_protocol_relative,
    is_skippable_url,
    normalize_protocol_relative,
    normalize_url,
)

log = structlog.get_logger()


def iter_markdown_files(root: Path, *, include_hidden: bool = True) -> list[Path]:
    """All ``.md`` files under ``root``, sorted. Hidden files and dirs are opt-out."""
    files: list[Path] = []
    for path in root.rglob("*.md"):
        if not path.is_file():
            continue
        hidden = any(part.startswith(".") for part in path.relative_to(root).parts)
        if hidden and not include_hidden:
            continue
        files.append(path)
    return sorted(files)


def collect_external_links(root: str | Path) -> set[str]:
    """Every http(s) link referenced by markdown under ``root``, normalized.

    Protocol-relative links are taken as https. A missing root yields an
    empty set.
    """
    root = Path(root)
    urls: set[str] = set()
    if not root.is_dir():
        log.warning("content_dir_missing", path=str(root))
        return urls

    files = iter_markdown_files(root)
    for path in files:
        for occurrence in extract_markdown_links(path.read_text(encoding="utf-8")):
            raw_url = normalize_url(occurrence.url)
            if is_skippable_url(raw_url):
                continue
            url = normalize_protocol_relative(raw_url) if is_protocol_relative(raw_url) else raw_url
            if is_http_url(url):
                urls.add(url)

    log.info("content_scanned", path=str(root), files=len(files), external_links=len(urls))
    return urls
