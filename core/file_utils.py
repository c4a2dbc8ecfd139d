"""
Helpers for stored file references.
"""
import re
from typing import Optional
from urllib.parse import unquote, urlsplit

_OBJECT_URL_PATTERN = re.compile(r"/storage/v1/object/(?:public|sign|authenticated)/(?P<bucket>[^/]+)/(?P<path>.+)")


def normalize_storage_path(file_url: Optional[str], bucket: str = "notes") -> Optional[str]:
    """
    Reduce a stored file reference to a bucket-relative object path.

    Accepts full storage URLs (public or signed), ``<bucket>/...`` prefixed
    paths and plain relative paths. Query strings and leading slashes are
    dropped. Returns None for empty references.

    Examples:
        >>> normalize_storage_path("https://x.supabase.co/storage/v1/object/public/notes/al/maths/1.pdf")
        'al/maths/1.pdf'
        >>> normalize_storage_path("notes/al/maths/1.pdf")
        'al/maths/1.pdf'
    """
    if not file_url or not file_url.strip():
        return None

    path = file_url.strip()
    if "/storage/v1/object/" in path:
        match = _OBJECT_URL_PATTERN.search(urlsplit(path).path)
        if match and match.group("bucket") == bucket:
            path = match.group("path")
    elif "://" not in path:
        path = path.split("?", 1)[0]

    path = unquote(path).lstrip("/")
    prefix = f"{bucket}/"
    if path.startswith(prefix):
        path = path[len(prefix):]

    return path or None
