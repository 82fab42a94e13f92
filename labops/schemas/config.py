"""Schemas for the backup configuration document (TOML)."""

from __future__ import annotations

import re
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from labops.domain.enums import DAY_NAMES


_TARGET_NAME_RE = re.compile(r"^[A-Za-z0-9_-]+$")


class _Strict(BaseModel):
    model_config = ConfigDict(extra="forbid")


class Strategy(_Strict):
    """Retention counts per tier and the promotion weekday."""

    number_of_daily_backups: int = Field(default=7, description="Daily dates to keep; <= 0 disables cleanup")
    number_of_weekly_backups: int = Field(default=4, description="Weekly dates to keep; <= 0 disables cleanup")
    number_of_monthly_backups: int = Field(default=6, description="Monthly dates to keep; <= 0 disables cleanup")
    day_of_week: str = Field(default="Sunday", description="English day name used for promotion")

    @field_validator("day_of_week")
    @classmethod
    def _normalize_day(cls, value: str) -> str:
        for name in DAY_NAMES:
            if name.lower() == value.strip().lower():
                return name
        raise ValueError(f"day_of_week must be one of {', '.join(DAY_NAMES)}")


class HandlerOptions(_Strict):
    """Options shared by every tool handler section."""

    options: List[str] = Field(default_factory=list, description="Extra flags; prefixes are normalized")


class SevenZipOptions(HandlerOptions):
    volume_size: Optional[str] = Field(None, description="Split archive into volumes, e.g. '4g'")
    archive_type: str = Field(default="7z", description="Archive format / extension")

    @field_validator("volume_size")
    @classmethod
    def _check_volume(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        if not re.match(r"^\d+[bkmg]?$", value.strip(), re.IGNORECASE):
            raise ValueError("volume_size must look like '700m' or '4g'")
        return value.strip().lower()


class MultiParOptions(HandlerOptions):
    redundancy_rate: int = Field(default=10, ge=0, le=100, description="Recovery data percentage; 0 disables")


class Handlers(_Strict):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    robocopy: HandlerOptions = Field(default_factory=HandlerOptions)
    sevenzip: SevenZipOptions = Field(default_factory=SevenZipOptions, alias="7zip")
    multipar: MultiParOptions = Field(default_factory=MultiParOptions)


class Target(_Strict):
    """One source directory to back up."""

    name: str
    source: str
    destination: Optional[str] = Field(None, description="Sub-folder under each destination root")
    description: str = ""

    @field_validator("name")
    @classmethod
    def _check_name(cls, value: str) -> str:
        if not _TARGET_NAME_RE.match(value):
            raise ValueError("target name may only contain letters, digits, '_' and '-'")
        return value

    @property
    def folder(self) -> str:
        return self.destination or self.name


class LocalDrive(_Strict):
    path: str
    targets: Optional[List[str]] = Field(None, description="Restrict to these targets; default all")


class SmbShare(_Strict):
    path: str
    targets: Optional[List[str]] = None


class MirrorClone(_Strict):
    path: str
    owner: Optional[str] = Field(None, description="GitHub owner; default is the authenticated account")
    limit: int = Field(default=1000, ge=1)


class GitBundle(_Strict):
    source: str = Field(..., description="Directory holding mirror clones")
    path: str = Field(..., description="Bundle rotation root")
    pattern: str = "*.git"


class Destinations(_Strict):
    local_drives: List[LocalDrive] = Field(default_factory=list)
    smb_shares: List[SmbShare] = Field(default_factory=list)
    mirror_clones: List[MirrorClone] = Field(default_factory=list)
    git_bundles: List[GitBundle] = Field(default_factory=list)


class BackupConfig(BaseModel):
    """Root document. Unknown top-level sections are ignored."""

    model_config = ConfigDict(extra="ignore")

    strategy: Strategy = Field(default_factory=Strategy)
    handlers: Handlers = Field(default_factory=Handlers)
    targets: List[Target] = Field(default_factory=list)
    destinations: Destinations = Field(default_factory=Destinations)

    @model_validator(mode="after")
    def _unique_targets(self) -> "BackupConfig":
        seen: Dict[str, int] = {}
        for target in self.targets:
            seen[target.name] = seen.get(target.name, 0) + 1
        duplicates = sorted(name for name, count in seen.items() if count > 1)
        if duplicates:
            raise ValueError(f"duplicate target names: {', '.join(duplicates)}")
        known = set(seen)
        for drive in [*self.destinations.local_drives, *self.destinations.smb_shares]:
            unknown = sorted(set(drive.targets or []) - known)
            if unknown:
                raise ValueError(f"destination {drive.path} references unknown targets: {', '.join(unknown)}")
        return self

    def get_target(self, name: str) -> Optional[Target]:
        return next((t for t in self.targets if t.name == name), None)
