# sugar/utils/slug.py
import re

_OPEN_RE = re.compile(r"[\[{]")
_CLOSE_RE = re.compile(r"[\]}]")
_UNSAFE_RE = re.compile(r"[^\w!$&'()*,;=\-]+")
# "!!" -> "!", "--" -> "-"
_REPEAT_RE = re.compile(r"([!$&'*,;=\-])\1+")

SEPARATOR = ";"


def slugify_title(title: str) -> str:
    slug = (title or "").lower()
    slug = _OPEN_RE.sub("(", slug)
    slug = _CLOSE_RE.sub(")", slug)
    slug = _UNSAFE_RE.sub("-", slug)
    slug = _REPEAT_RE.sub(r"\1", slug)
    return slug.strip("-")


def thread_param(thread_id: int, title: str, work_safe_urls: bool = False) -> str:
    """Humanized thread id for URLs, e.g. ``7;hello-(world)!``.

    With ``work_safe_urls`` only the numeric id is emitted, so titles never
    leak into links.
    """
    if work_safe_urls:
        return str(thread_id)
    slug = slugify_title(title)
    return f"{thread_id}{SEPARATOR}{slug}" if slug else str(thread_id)


def parse_thread_param(param: str) -> int:
    """Numeric id from either ``7`` or ``7;some-title``; ValueError otherwise."""
    head = (param or "").split(SEPARATOR, 1)[0].strip()
    if not head.isdigit():
        raise ValueError(f"Invalid thread identifier: {param!r}")
    return int(head)
