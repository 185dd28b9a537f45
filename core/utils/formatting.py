"""Formatting helpers for slugs and log-safe display values."""

import re

_NON_SLUG_CHARS = re.compile(r"[^a-z0-9]+")


def slugify(text: str) -> str:
    """
    Convert text to a URL-safe slug.

    Every run of characters outside ``[a-z0-9]`` (after lower-casing)
    collapses to a single hyphen, and leading/trailing hyphens are removed.
    Non-ASCII letters are dropped, so the result may be empty.

    Args:
        text: Text to convert

    Returns:
        URL-safe slug, e.g. ``"Senior Engineer (Remote)"`` -> ``"senior-engineer-remote"``
    """
    return _NON_SLUG_CHARS.sub("-", text.lower()).strip("-")


def mask_email(email: str) -> str:
    """
    Mask an email address for log output.

    Returns:
        Masked email (e.g., "j***n@example.com")
    """
    if "@" not in email:
        return email

    local, domain = email.split("@", 1)

    if len(local) <= 2:
        masked_local = local[:1] + "*"
    else:
        masked_local = local[0] + "*" * (len(local) - 2) + local[-1]

    return f"{masked_local}@{domain}"
