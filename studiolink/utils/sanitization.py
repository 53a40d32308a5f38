import html
import os
import re
import secrets
from typing import Optional

EMAIL_ADDRESS_RE = re.compile(r"<([^<>]+)>")


def sanitize_string(value: Optional[str]) -> Optional[str]:
    """
    Sanitize a string by escaping HTML special characters to prevent XSS.
    Returns None if input is None.
    """
    if value is None:
        return None
    if not isinstance(value, str):
        return value
    return html.escape(str(value), quote=True)


def sanitize_filename(filename: str) -> str:
    """
    Make an uploaded filename safe to use inside a storage key.

    Path components are dropped, characters outside word/space/dash/dot are removed,
    spaces become dashes and the result is capped at 200 characters.
    """
    filename = os.path.basename((filename or "").replace("\\", "/"))
    filename = re.sub(r"[^\w\s\-\.]", "", filename)
    filename = re.sub(r"\s+", "-", filename.strip(". "))

    if len(filename) > 200:
        name, ext = os.path.splitext(filename)
        filename = name[: 200 - len(ext)] + ext

    if not filename:
        filename = f"file_{secrets.token_hex(4)}"

    return filename


def extract_email_address(value: Optional[str]) -> str:
    """'Jane Doe <jane@x.com>' -> 'jane@x.com'; bare addresses pass through."""
    if not value:
        return ""
    match = EMAIL_ADDRESS_RE.search(value)
    return (match.group(1) if match else value).strip()
