"""URL helpers shared by the content scanner and the link cache."""

from __future__ import annotations

from urllib.parse import urlsplit

_HTML_ENTITIES: tuple[tuple[str, str], ...] = (
    ("&amp;", "&"),
    ("&#38;", "&"),
    ("&#x26;", "&"),
    ("&quot;", '"'),
    ("&#34;", '"'),
    ("&#x22;", '"'),
    ("&#39;", "'"),
    ("&#x27;", "'"),
    ("&lt;", "<"),
    ("&gt;", ">"),
)

_SKIPPABLE_PREFIXES = ("#", "mailto:", "tel:", "javascript:", "data:")


def decode_html_entities(value: str) -> str:
    """Decode the handful of entities that show up in hrefs copied from HTML."""
    for entity, char in _HTML_ENTITIES:
        value = value.replace(entity, char)
    return value


def normalize_url(raw_url: str) -> str:
    """Cache key form of a URL: trimmed and entity-decoded, case preserved."""
    return decode_html_entities(raw_url.strip())


def is_skippable_url(url: str) -> bool:
    return not url or url.startswith(_SKIPPABLE_PREFIXES)


def is_http_url(url: str) -> bool:
    return url.startswith(("http://", "https://"))


def is_protocol_relative(url: str) -> bool:
    return url.startswith("//")


def normalize_protocol_relative(url: str) -> str:
    if not is_protocol_relative(url):
        return url
    return f"https:{url}"


def url_hostname(url: str) -> str | None:
    """Lowercased hostname, or None when the URL cannot be parsed."""
    try:
        hostname = urlsplit(url).hostname
    except ValueError:
        return None
    return hostname or None


def host_matches(hostname: str, domains: frozenset[str]) -> bool:
    """True if ``hostname`` equals one of ``domains`` or is a subdomain of one."""
    hostname = hostname.lower().rstrip(".")
    return any(hostname == domain or hostname.endswith(f".{domain}") for domain in domains)
