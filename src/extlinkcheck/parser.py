"""Link extractor for markdown content.

Single-pass scanner that pulls link targets out of Markdown, suppressing
anything inside fenced code blocks or inline code spans. Recognises inline
links and images, reference definitions, and ``<...>`` autolinks. Targets
are returned raw; deciding which of them are external HTTP links is the
caller's job (see content.py).
"""

from __future__ import annotations

import re
from dataclasses import dataclass

_FENCE_RE = re.compile(r"^\s*(```+|~~~+)")
_INLINE_CODE_RE = re.compile(r"`[^`]*`")
_INLINE_LINK_RE = re.compile(r"!?\[[^\]]*\]\(([^)]+)\)")
_REFERENCE_LINK_RE = re.compile(r"^\s*\[[^\]]+\]:\s*(.+)$")
_AUTOLINK_RE = re.compile(r"<([^\s>]+)>")
_CLOSING_TAG_RE = re.compile(r"^/[A-Za-z][A-Za-z0-9:-]*$")
_SCHEME_RE = re.compile(r"^[a-z][a-z0-9+.-]*:")

CONTEXT_MAX_LENGTH = 160


@dataclass(frozen=True)
class LinkOccurrence:
    url: str
    line: int  # 1-based
    context: str


def _normalize_target(raw_target: str) -> str:
    target = raw_target.strip()
    if not target:
        return ""
    if target.startswith("<") and target.endswith(">"):
        target = target[1:-1]
    # Drop an optional link title: [text](url "title")
    tokens = target.split(maxsplit=1)
    if not tokens:
        return ""
    return tokens[0].removeprefix("<").removesuffix(">")


def _looks_like_autolink(raw: str) -> bool:
    if not raw:
        return False
    if raw.startswith(("#", "/", "./", "../", "http://", "https://", "//", "www.")):
        return True
    if raw.startswith(("mailto:", "tel:", "data:")) or "@" in raw:
        return True
    if _SCHEME_RE.match(raw):
        return True
    return "/" in raw or "." in raw


def _context_snippet(line: str, match_index: int, match_length: int) -> str:
    """Trimmed line, or a window of it centred on the match with ``...`` markers."""
    if len(line.strip()) <= CONTEXT_MAX_LENGTH:
        return line.strip()

    safe_index = max(0, min(match_index, len(line)))
    half = max(0, (CONTEXT_MAX_LENGTH - match_length) // 2)
    start = max(0, safe_index - half)
    end = min(len(line), start + CONTEXT_MAX_LENGTH)
    if end - start < CONTEXT_MAX_LENGTH:
        start = max(0, end - CONTEXT_MAX_LENGTH)

    snippet = line[start:end].strip()
    if start > 0:
        snippet = f"...{snippet}"
    if end < len(line):
        snippet = f"{snippet}..."
    return snippet


def extract_markdown_links(content: str) -> list[LinkOccurrence]:
    """Return every link target in ``content`` with its line number and context."""
    occurrences: list[LinkOccurrence] = []

    in_fence = False
    fence_char: str | None = None

    for lineno, line in enumerate(content.splitlines(), start=1):
        # Rule 1: fenced code blocks close only on the same fence character
        fence_match = _FENCE_RE.match(line)
        if fence_match:
            current = fence_match.group(1)[0]
            if not in_fence:
                in_fence = True
                fence_char = current
                continue
            if current == fence_char:
                in_fence = False
                fence_char = None
                continue

        if in_fence:
            continue

        # Rule 2: inline code never contributes links
        cleaned = _INLINE_CODE_RE.sub("", line)

        for regex in (_INLINE_LINK_RE, _REFERENCE_LINK_RE):
            for match in regex.finditer(cleaned):
                target = _normalize_target(match.group(1))
                if not target:
                    continue
                occurrences.append(
                    LinkOccurrence(
                        url=target,
                        line=lineno,
                        context=_context_snippet(cleaned, match.start(), len(match.group(0))),
                    )
                )

        # Rule 3: autolinks, minus closing HTML tags and plain words in angle brackets
        for match in _AUTOLINK_RE.finditer(cleaned):
            target = _normalize_target(match.group(1))
            if not target or _CLOSING_TAG_RE.match(target) or not _looks_like_autolink(target):
                continue
            occurrences.append(
                LinkOccurrence(
                    url=target,
                    line=lineno,
                    context=_context_snippet(cleaned, match.start(), len(match.group(0))),
                )
            )

    return occurrences
