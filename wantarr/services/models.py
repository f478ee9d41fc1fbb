"""Pydantic models for PVR API responses."""
import re
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

# .NET timestamps carry up to 7 fractional digits
_FRACTION = re.compile(r"\.(\d+)")
_ZERO_YEAR = 1


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO 8601 timestamp as returned by the *arr APIs.

    Empty values and the .NET zero date (0001-01-01) map to None.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip().replace("Z", "+00:00")
        text = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    if parsed.year == _ZERO_YEAR:
        return None
    return parsed.astimezone(timezone.utc)


def parse_bare_date(value: Any) -> Optional[datetime]:
    """Parse a YYYY-MM-DD date into a UTC midnight timestamp."""
    if value is None or value == "":
        return None
    return datetime.strptime(str(value), "%Y-%m-%d").replace(tzinfo=timezone.utc)


class ApiModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class SystemStatus(ApiModel):
    version: str

    @field_validator("version")
    @classmethod
    def version_not_empty(cls, v: str) -> str:
        if not v:
            raise ValueError("empty version string")
        return v


class QueuePage(ApiModel):
    total_records: int = Field(alias="totalRecords")


class WantedPage(ApiModel):
    page: Optional[int] = None
    page_size: Optional[int] = Field(default=None, alias="pageSize")
    total_records: Optional[int] = Field(default=None, alias="totalRecords")
    records: List[Dict[str, Any]] = Field(default_factory=list)


class MovieFile(ApiModel):
    quality_cutoff_not_met: bool = Field(default=False, alias="qualityCutoffNotMet")


class MovieRecord(ApiModel):
    id: int
    status: Optional[str] = None
    monitored: bool = False
    has_file: bool = Field(default=False, alias="hasFile")
    in_cinemas: Optional[datetime] = Field(default=None, alias="inCinemas")
    digital_release: Optional[datetime] = Field(default=None, alias="digitalRelease")
    physical_release: Optional[datetime] = Field(default=None, alias="physicalRelease")
    movie_file: Optional[MovieFile] = Field(default=None, alias="movieFile")

    @field_validator("in_cinemas", "digital_release", "physical_release", mode="before")
    @classmethod
    def _timestamp(cls, v):
        return parse_timestamp(v)

    def release_date(self) -> Optional[datetime]:
        """Latest of the cinema, digital and physical release dates."""
        dates = [d for d in (self.in_cinemas, self.digital_release, self.physical_release) if d is not None]
        return max(dates) if dates else None


class CommandResponse(ApiModel):
    id: int


class CommandStatusResponse(ApiModel):
    id: Optional[int] = None
    name: Optional[str] = None
    status: str
    message: Optional[str] = None
    started: Optional[datetime] = None
    ended: Optional[datetime] = None

    @field_validator("started", "ended", mode="before")
    @classmethod
    def _timestamp(cls, v):
        return parse_timestamp(v)
