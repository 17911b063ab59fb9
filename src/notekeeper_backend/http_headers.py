from __future__ import annotations

from urllib.parse import quote


def sanitize_filename(filename: str | None, *, fallback: str = "download") -> str:
    v = (filename or "").strip()
    v = v.split("/")[-1].split("\\")[-1]
    # No header injection through attachment keys.
    v = v.replace("\r", "").replace("\n", "").replace("\x00", "")
    return v[:150] or fallback


def build_content_disposition_attachment(filename: str) -> str:
    """Content-Disposition with an ASCII ``filename=`` and an RFC 5987 ``filename*=``."""

    name = sanitize_filename(filename)
    ascii_name = name.encode("ascii", errors="ignore").decode("ascii") or "download"
    ascii_name = ascii_name.replace('"', "'")
    return f"attachment; filename=\"{ascii_name}\"; filename*=UTF-8''{quote(name, safe='')}"
