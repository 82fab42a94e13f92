"""Backup artifact naming: `<target>-<tier>-<YYYYMMDD>-<dayname>.<ext>`."""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import Optional, Tuple

from labops.domain.enums import DAY_NAMES, Tier


PARITY_EXTENSION = ".par2"

_DAY_ALTERNATION = "|".join(DAY_NAMES)

_ARTIFACT_RE = re.compile(
    r"^(?P<base>.+?)-(?P<tier>daily|weekly|monthly)-(?P<date>\d{8})-(?P<day>[A-Za-z]+)(?P<ext>\..*)?$"
)
_DATE_SUFFIX_RE = re.compile(rf"-\d{{8}}-(?:{_DAY_ALTERNATION})(?:\.|$)", re.IGNORECASE)


def day_name(value: date) -> str:
    return DAY_NAMES[value.weekday()]


def split_extension(filename: str) -> Tuple[str, str]:
    """Split at the first dot so compound extensions (`.7z.001`, `.7z.par2`) stay whole.

    A leading dot (hidden file) is part of the stem.
    """
    idx = filename.find(".", 1)
    if idx == -1:
        return filename, ""
    return filename[:idx], filename[idx:]


def has_date_suffix(filename: str) -> bool:
    """True when `filename` already carries a `-YYYYMMDD-<Dayname>` suffix."""
    return _DATE_SUFFIX_RE.search(filename) is not None


def is_parity_file(filename: str) -> bool:
    return filename.lower().endswith(PARITY_EXTENSION)


@dataclass(frozen=True)
class BackupArtifact:
    """A backup file identified purely by its name."""

    base: str
    tier: Tier
    date: date
    day: str
    extension: str = ""

    @classmethod
    def parse(cls, filename: str) -> Optional["BackupArtifact"]:
        """Parse a tiered file name; returns None when it does not follow the convention."""
        match = _ARTIFACT_RE.match(filename)
        if match is None:
            return None
        try:
            parsed = datetime.strptime(match.group("date"), "%Y%m%d").date()
        except ValueError:
            return None
        return cls(
            base=match.group("base"),
            tier=Tier(match.group("tier")),
            date=parsed,
            day=match.group("day"),
            extension=match.group("ext") or "",
        )

    @classmethod
    def for_file(cls, filename: str, tier: Tier, when: date) -> "BackupArtifact":
        """Build the tiered identity for an untagged file produced on `when`."""
        stem, ext = split_extension(filename)
        return cls(base=stem, tier=tier, date=when, day=day_name(when), extension=ext)

    @property
    def filename(self) -> str:
        return f"{self.base}-{self.tier.value}-{self.date:%Y%m%d}-{self.day}{self.extension}"

    @property
    def is_parity(self) -> bool:
        return is_parity_file(self.extension)

    def with_tier(self, tier: Tier) -> "BackupArtifact":
        return replace(self, tier=tier)
