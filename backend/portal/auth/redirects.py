from urllib.parse import urlsplit


def _origin(url: str) -> str:
    parts = urlsplit(url.strip())
    if not parts.scheme or not parts.netloc:
        return ""
    return f"{parts.scheme}://{parts.netloc}".lower()


def normalize_origins(origins: list[str]) -> set[str]:
    out: set[str] = set()
    for origin in origins:
        val = _origin(origin)
        if val:
            out.add(val)
    return out


def sanitize_redirect(target: str | None, *, allowed_origins: set[str], default: str) -> str:
    """Return ``target`` if it stays on the portal or goes to a registered app.

    Relative paths are accepted; protocol-relative (``//host``) and
    backslash tricks are not.
    """
    if not target:
        return default
    target = target.strip()
    if target.startswith("/") and not target.startswith("//") and "\\" not in target:
        return target
    if _origin(target) in allowed_origins:
        return target
    return default
