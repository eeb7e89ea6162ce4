"""Timestamp image tags.

A tag is the UTC time of the run at second resolution, e.g. ``20240101T000000Z``.
Tags sort in the same order as the runs that produced them. Two runs started
within the same second produce the same tag; that collision is not detected.
"""
from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Optional

TAG_FORMAT = "%Y%m%dT%H%M%SZ"
_TAG_PATTERN = re.compile(r"^\d{8}T\d{6}Z$")


def generate_image_tag(now: Optional[datetime] = None) -> str:
    """Return the tag for a run started at ``now`` (current time when omitted)."""
    moment = now or datetime.now(timezone.utc)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).strftime(TAG_FORMAT)


def is_valid_image_tag(tag: str) -> bool:
    if not _TAG_PATTERN.match(tag):
        return False
    try:
        parse_image_tag(tag)
    except ValueError:
        return False
    return True


def parse_image_tag(tag: str) -> datetime:
    """Return the aware UTC datetime encoded in ``tag``."""
    return datetime.strptime(tag, TAG_FORMAT).replace(tzinfo=timezone.utc)
