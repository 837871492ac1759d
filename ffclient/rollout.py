"""Rollout strategies attached to a flag: experimentation, progressive and scheduled."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import TYPE_CHECKING, Any, Mapping

if TYPE_CHECKING:
    from .flag_data import FlagData


def parse_datetime(value: Any) -> datetime | None:
    """Return ``value`` as an aware datetime; naive values are taken as UTC.

    Accepts None, a datetime, a date or an ISO 8601 / RFC 3339 string.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, date):
        moment = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        try:
            moment = datetime.fromisoformat(value.strip())
        except ValueError as exc:
            raise ValueError(f"invalid date {value!r}") from exc
    else:
        raise TypeError(f"cannot read a date from {type(value).__name__}")
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


def _rfc3339_utc(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass
class Experimentation:
    """A time window outside which the flag serves its default value."""

    start: datetime | None = None
    end: datetime | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> Experimentation:
        data = data or {}
        return cls(start=parse_datetime(data.get("start")), end=parse_datetime(data.get("end")))

    def __str__(self) -> str:
        parts = []
        if self.start is not None:
            parts.append(f"start:[{_rfc3339_utc(self.start)}]")
        if self.end is not None:
            parts.append(f"end:[{_rfc3339_utc(self.end)}]")
        return " ".join(parts)


@dataclass
class ProgressivePercentage:
    """Percentages at the start and end of a progressive rollout (end 0 means 100)."""

    initial: float = 0.0
    end: float = 0.0


@dataclass
class ProgressiveReleaseRamp:
    """The period over which a progressive rollout ramps up."""

    start: datetime | None = None
    end: datetime | None = None


@dataclass
class Progressive:
    """A rollout whose percentage grows linearly over the release ramp."""

    percentage: ProgressivePercentage = field(default_factory=ProgressivePercentage)
    release_ramp: ProgressiveReleaseRamp = field(default_factory=ProgressiveReleaseRamp)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> Progressive:
        data = data or {}
        percentage = data.get("percentage") or {}
        ramp = data.get("releaseRamp") or {}
        return cls(
            percentage=ProgressivePercentage(
                initial=float(percentage.get("initial") or 0),
                end=float(percentage.get("end") or 0),
            ),
            release_ramp=ProgressiveReleaseRamp(
                start=parse_datetime(ramp.get("start")),
                end=parse_datetime(ramp.get("end")),
            ),
        )


@dataclass
class ScheduledStep:
    """Changes applied to a flag once ``date`` has passed; steps without a date are skipped."""

    flag_data: FlagData
    date: datetime | None = None


@dataclass
class ScheduledRollout:
    """An ordered list of dated changes to a flag."""

    steps: list[ScheduledStep] = field(default_factory=list)


@dataclass
class Rollout:
    """How a flag is rolled out; each strategy is optional."""

    experimentation: Experimentation | None = None
    progressive: Progressive | None = None
    scheduled: ScheduledRollout | None = None

    def __str__(self) -> str:
        if self.experimentation is None:
            return ""
        return "experimentation: " + str(self.experimentation)