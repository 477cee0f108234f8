"""
Migration identifier construction and parsing.

An identifier looks like ``2023_05_01_101112_123456_add_users_table``: a
date/time part (date, time, microseconds) followed by the migration name.
Lexical order of identifiers is their creation order.
"""

import re
from datetime import datetime, timedelta
from typing import Iterable, Optional

DATE_SEGMENTS = 5

IDENTIFIER_RE = re.compile(r"^\d{4}_\d{2}_\d{2}_\d{6}_\d{6}_[a-z][a-z0-9_]*$")
NAME_RE = re.compile(r"^[a-z][a-z0-9_]*$")


def validate_name(name: str) -> str:
    """
    Check a human migration name.

    Raises:
        ValueError: If the name is not lowercase letters, digits and
            underscores starting with a letter.
    """
    if not NAME_RE.match(name):
        raise ValueError(
            f"Invalid migration name '{name}': use lowercase letters, digits and underscores"
        )
    return name


def is_identifier(value: str) -> bool:
    """Whether ``value`` is a well-formed migration identifier."""
    return bool(IDENTIFIER_RE.match(value))


def construct_identifier(name: str, now: Optional[datetime] = None) -> str:
    """Build an identifier for ``name`` stamped with ``now`` (default: current time)."""
    validate_name(name)
    now = now or datetime.now()
    return f"{now.strftime('%Y_%m_%d_%H%M%S')}_{now.microsecond:06d}_{name}"


def split_identifier(identifier: str) -> tuple[str, str]:
    """
    Split an identifier into its date/time part and its name part.

    Raises:
        ValueError: If the identifier has no name after the date/time part.
    """
    segments = identifier.split("_")
    if len(segments) <= DATE_SEGMENTS:
        raise ValueError(f"Malformed migration identifier: {identifier}")
    return "_".join(segments[:DATE_SEGMENTS]), "_".join(segments[DATE_SEGMENTS:])


def next_identifier(
    name: str, existing: Iterable[str], now: Optional[datetime] = None
) -> str:
    """
    Build an identifier that sorts after every identifier in ``existing``.

    Two migrations created within the same microsecond, or a clock that went
    backwards, would otherwise break the ordering guarantee. The timestamp is
    moved forward one microsecond at a time until the new identifier's
    date/time part is strictly greater than the latest existing one.
    """
    now = now or datetime.now()
    latest = max((split_identifier(i)[0] for i in existing if is_identifier(i)), default=None)

    identifier = construct_identifier(name, now)
    if latest is None:
        return identifier

    floor = datetime.strptime(latest, "%Y_%m_%d_%H%M%S_%f")
    if now <= floor:
        identifier = construct_identifier(name, floor + timedelta(microseconds=1))
    return identifier


def class_name_for(identifier: str) -> str:
    """
    Derive the script class name for an identifier.

    The name words are capitalized and joined, then the date/time part is
    appended unchanged: ``2023_05_01_101112_123456_add_users_table`` becomes
    ``AddUsersTable2023_05_01_101112_123456``.
    """
    date_part, name_part = split_identifier(identifier)
    studly = "".join(word[:1].upper() + word[1:] for word in name_part.split("_") if word)
    return f"{studly}{date_part}"
