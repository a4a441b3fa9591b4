"""Link canonicalization used for storage and duplicate checks."""

from __future__ import annotations

from urllib.parse import urlparse

_DEFAULT_PORTS = {"http": 80, "https": 443}


def normalize_link(link: str) -> str | None:
    """Canonicalize a link to ``scheme://host``.

    Strips ``www.``, lowercases the host, drops default ports, path, query and
    fragment. A bare host (``example.com/page``) is treated as ``https``.
    Returns ``None`` when no host can be extracted. The scheme is kept for
    storage; duplicate checks use :func:`link_domain`.
    """

    candidate = link.strip()
    if not candidate:
        return None
    if "://" not in candidate:
        candidate = f"https://{candidate.lstrip('/')}"

    parsed = urlparse(candidate)
    scheme = parsed.scheme.lower()
    if scheme not in _DEFAULT_PORTS:
        return None
    try:
        host = (parsed.hostname or "").rstrip(".")
        port = parsed.port
    except ValueError:
        return None
    if not host:
        return None
    host = host.removeprefix("www.")
    if not host:
        return None

    if port is not None and port != _DEFAULT_PORTS[scheme]:
        return f"{scheme}://{host}:{port}"
    return f"{scheme}://{host}"


def link_domain(link: str) -> str | None:
    """Scheme-independent duplicate key for a link: ``host`` or ``host:port``.

    ``http://example.pl/a`` and ``https://www.example.pl/b`` share the key
    ``example.pl``.
    """

    normalized = normalize_link(link)
    if normalized is None:
        return None
    return normalized.split("://", 1)[1]


def is_valid_url(value: str) -> bool:
    """Whether value is an absolute http(s) URL with a host."""

    parsed = urlparse(value.strip())
    if parsed.scheme not in _DEFAULT_PORTS:
        return False
    try:
        return bool(parsed.hostname)
    except ValueError:
        return False
