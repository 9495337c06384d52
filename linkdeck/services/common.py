from urllib.parse import quote


FAVICON_SERVICE = "https://www.google.com/s2/favicons"


def bookmark_href(url: str) -> str:
    url = (url or "").strip()
    if not url:
        return ""
    return url if url.startswith("http") else f"https://{url}"


def favicon_url(url: str, size: int = 32) -> str:
    domain = quote((url or "").strip() or "example.com", safe=":/")
    return f"{FAVICON_SERVICE}?domain={domain}&sz={size}"


def to_bool(value, default=False):
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "on"}
