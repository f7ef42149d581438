import re
from typing import Optional
from urllib.parse import quote

from config import Config

COVER_URL_TEMPLATE = "{base}/{identifier}-M.jpg"

_NON_ISBN_CHARS = re.compile(r"[^0-9Xx]")


def sanitize_isbn(isbn: Optional[str]) -> str:
    """Strip everything but digits and the ISBN-10 check character."""
    return _NON_ISBN_CHARS.sub("", isbn or "")


def cover_url(isbn: Optional[str], base_url: Optional[str] = None) -> Optional[str]:
    """Return the Open Library cover URL for an ISBN, or None when there is nothing to look up."""
    identifier = sanitize_isbn(isbn)
    if not identifier:
        return None
    base = (base_url or Config.COVER_BASE_URL).rstrip("/")
    return COVER_URL_TEMPLATE.format(base=base, identifier=quote(identifier))
