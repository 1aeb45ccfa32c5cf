"""URL parsing helpers: host, path segments, query keys, subproject keys."""

import re
from urllib.parse import parse_qsl, unquote, urlsplit

from exceptions import InvalidInput

_NETWORK_SCHEMES = {"http", "https", "ftp", "ws", "wss"}

# Code points a hostname may never contain
_FORBIDDEN_HOST_CHARS = re.compile(r"[\s\x00-\x1f\x7f<>^|%\\\"'`{}\[\]#/?@]")
_BAD_ESCAPE = re.compile(r"%(?![0-9a-fA-F]{2})")


def _decode_segment(segment: str, url: str) -> str:
    if _BAD_ESCAPE.search(segment):
        raise InvalidInput(f"Malformed percent-escape in URL: {url!r}")
    try:
        return unquote(segment, errors="strict").lower()
    except UnicodeDecodeError as e:
        raise InvalidInput(f"Malformed percent-escape in URL: {url!r}") from e


def parse_url(url: str) -> tuple[str, list[str], list[str]]:
    """Split a URL into (host, path_tokens, query_keys).

    Path segments are URL-decoded and lowercased. Raises InvalidInput when
    the URL has no scheme, a network scheme without a host, a host with
    characters no hostname may carry, or a path with broken percent-escapes.
    """
    try:
        parsed = urlsplit(url.strip())
        host = parsed.hostname or ""
    except (ValueError, AttributeError) as e:
        raise InvalidInput(f"Unparseable URL: {url!r}") from e

    if not parsed.scheme or (parsed.scheme in _NETWORK_SCHEMES and not host):
        raise InvalidInput(f"Unparseable URL: {url!r}")
    if _FORBIDDEN_HOST_CHARS.search(host):
        raise InvalidInput(f"Invalid host in URL: {url!r}")

    path_tokens = [_decode_segment(seg, url) for seg in parsed.path.split("/") if seg]
    query_keys = list(dict.fromkeys(k for k, _ in parse_qsl(parsed.query, keep_blank_values=True)))
    return host, path_tokens, query_keys


def extract_domain(host: str) -> str:
    """Registrable domain approximation: the last two dot-separated labels."""
    parts = host.split(".")
    if len(parts) <= 2:
        return host
    return ".".join(parts[-2:])


def get_path_prefix(path_tokens: list[str], depth: int) -> str:
    return "/".join(path_tokens[:depth])


def subproject_key(host: str, path_tokens: list[str], depth: int = 2) -> str:
    return f"{host}:{get_path_prefix(path_tokens, depth)}"


def strip_www(host: str) -> str:
    return host[4:] if host.startswith("www.") else host
