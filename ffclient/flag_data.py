"""Flags described by a rule, a percentage and true/false/default values."""

from __future__ import annotations

import math
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Mapping

from . import rules
from .flag import (
    VARIATION_SDK_DEFAULT,
    EvaluationContext,
    Flag,
    ResolutionDetails,
    ResolutionReason,
)
from .rollout import (
    Experimentation,
    Progressive,
    Rollout,
    ScheduledRollout,
    ScheduledStep,
    parse_datetime,
)
from .utils import hash32, user_to_map

VARIATION_TRUE = "True"
VARIATION_FALSE = "False"
VARIATION_DEFAULT = "Default"

# Percentages are scaled so that fractions of a percent can be targeted.
PERCENTAGE_MULTIPLIER = 1000.0
_MAX_PERCENTAGE = int(100 * PERCENTAGE_MULTIPLIER)

_MERGEABLE = (
    "rule",
    "percentage",
    "true",
    "false",
    "default",
    "rollout",
    "_track_events",
    "_disable",
    "_version",
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _aware(moment: datetime) -> datetime:
    return moment if moment.tzinfo is not None else moment.replace(tzinfo=timezone.utc)


def _unix(moment: datetime) -> int:
    return math.floor(_aware(moment).timestamp())


def _format_float(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    if value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    return repr(value)


def _format_float_plain(value: float) -> str:
    if not math.isfinite(value):
        return _format_float(value)
    if value.is_integer():
        return str(int(value))
    return format(Decimal(repr(value)), "f")


def _go_format(value: Any) -> str:
    if value is None:
        return "<nil>"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return _format_float(value)
    return str(value)


def _nil_empty(value: Any) -> str:
    return "" if value is None else _go_format(value)


def _round_half_away(value: float) -> int:
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def _format_time(moment: datetime) -> str:
    utc = _aware(moment).astimezone(timezone.utc)
    text = utc.strftime("%Y-%m-%dT%H:%M:%S")
    if utc.microsecond:
        text += "." + f"{utc.microsecond:06d}".rstrip("0")
    return text + "Z"


def _lookup(data: Mapping[Any, Any], name: str) -> Any:
    """Find ``name`` in data, also matching YAML's boolean ``true``/``false`` keys."""
    if name in data:
        return data[name]
    for key, value in data.items():
        if isinstance(key, bool) and str(key).lower() == name:
            return value
    return None


def _number(value: Any, name: str) -> float | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"field {name!r} must be a number, got {value!r}")
    return float(value)


def _boolean(value: Any, name: str) -> bool | None:
    if value is None or isinstance(value, bool):
        return value
    raise ValueError(f"field {name!r} must be a boolean, got {value!r}")


def _text(value: Any, name: str) -> str | None:
    if value is None or isinstance(value, str):
        return value
    raise ValueError(f"field {name!r} must be a string, got {value!r}")


def _mapping(value: Any, name: str) -> Mapping[Any, Any] | None:
    if value is None or isinstance(value, Mapping):
        return value
    raise ValueError(f"field {name!r} must be a mapping, got {value!r}")


def _rollout_from_dict(data: Mapping[Any, Any] | None) -> Rollout | None:
    if data is None:
        return None
    experimentation = _mapping(data.get("experimentation"), "experimentation")
    progressive = _mapping(data.get("progressive"), "progressive")
    scheduled = _mapping(data.get("scheduled"), "scheduled")
    steps = []
    if scheduled is not None:
        raw_steps = scheduled.get("steps") or []
        if not isinstance(raw_steps, list):
            raise ValueError(f"field 'steps' must be a list, got {raw_steps!r}")
        for raw_step in raw_steps:
            step = _mapping(raw_step, "steps") or {}
            steps.append(
                ScheduledStep(
                    flag_data=FlagData.from_dict(step),
                    date=parse_datetime(step.get("date")),
                )
            )
    return Rollout(
        experimentation=(
            Experimentation.from_dict(experimentation) if experimentation is not None else None
        ),
        progressive=Progressive.from_dict(progressive) if progressive is not None else None,
        scheduled=ScheduledRollout(steps=steps) if scheduled is not None else None,
    )


def _window_to_dict(start: datetime | None, end: datetime | None) -> dict[str, str]:
    out = {}
    if start is not None:
        out["start"] = _format_time(start)
    if end is not None:
        out["end"] = _format_time(end)
    return out


def _rollout_to_dict(rollout: Rollout) -> dict[str, Any]:
    out: dict[str, Any] = {}
    if rollout.experimentation is not None:
        exp = rollout.experimentation
        out["experimentation"] = _window_to_dict(exp.start, exp.end)
    if rollout.progressive is not None:
        progressive = rollout.progressive
        percentage = {}
        if progressive.percentage.initial:
            percentage["initial"] = progressive.percentage.initial
        if progressive.percentage.end:
            percentage["end"] = progressive.percentage.end
        out["progressive"] = {
            "percentage": percentage,
            "releaseRamp": _window_to_dict(
                progressive.release_ramp.start, progressive.release_ramp.end
            ),
        }
    if rollout.scheduled is not None:
        steps = []
        for step in rollout.scheduled.steps:
            entry = step.flag_data.to_dict()
            if step.date is not None:
                entry["date"] = _format_time(step.date)
            steps.append(entry)
        out["scheduled"] = {"steps": steps} if steps else {}
    return out


class FlagData(Flag):
    """A flag served to the users matching ``rule``, split by ``percentage``.

    Unset fields are None. Dates in the rollout should be timezone-aware;
    naive ones are read as UTC.
    """

    def __init__(
        self,
        *,
        rule: str | None = None,
        percentage: float | None = None,
        true: Any = None,
        false: Any = None,
        default: Any = None,
        track_events: bool | None = None,
        disable: bool | None = None,
        rollout: Rollout | None = None,
        version: float | None = None,
    ):
        self.rule = rule
        self.percentage = percentage
        self.true = true
        self.false = false
        self.default = default
        self.rollout = rollout
        self._track_events = track_events
        self._disable = disable
        self._version = version

    @classmethod
    def from_dict(cls, data: Mapping[Any, Any] | None) -> FlagData:
        """Build a flag from its configuration-file form; raise ValueError on bad types."""
        data = _mapping(data, "flag") or {}
        return cls(
            rule=_text(_lookup(data, "rule"), "rule"),
            percentage=_number(_lookup(data, "percentage"), "percentage"),
            true=_lookup(data, "true"),
            false=_lookup(data, "false"),
            default=_lookup(data, "default"),
            track_events=_boolean(_lookup(data, "trackEvents"), "trackEvents"),
            disable=_boolean(_lookup(data, "disable"), "disable"),
            rollout=_rollout_from_dict(_mapping(_lookup(data, "rollout"), "rollout")),
            version=_number(_lookup(data, "version"), "version"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the configuration-file form of the flag, leaving out unset fields."""
        items = (
            ("rule", self.rule),
            ("percentage", self.percentage),
            ("true", self.true),
            ("false", self.false),
            ("default", self.default),
            ("trackEvents", self._track_events),
            ("disable", self._disable),
            ("rollout", _rollout_to_dict(self.rollout) if self.rollout is not None else None),
            ("version", self._version),
        )
        return {name: value for name, value in items if value is not None}

    def _items(self) -> tuple[tuple[str, Any], ...]:
        return (
            ("rule", self.rule),
            ("percentage", self.percentage),
            ("true", self.true),
            ("false", self.false),
            ("default", self.default),
            ("track_events", self._track_events),
            ("disable", self._disable),
            ("rollout", self.rollout),
            ("version", self._version),
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FlagData):
            return NotImplemented
        return self._items() == other._items()

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        shown = ", ".join(f"{name}={value!r}" for name, value in self._items() if value is not None)
        return f"FlagData({shown})"

    def __str__(self) -> str:
        parts = [f"percentage={_round_half_away(self._percentage())}%"]
        if self._rule():
            parts.append(f'rule="{self._rule()}"')
        parts.append(f'true="{_go_format(self.true)}"')
        parts.append(f'false="{_go_format(self.false)}"')
        parts.append(f'default="{_go_format(self.default)}"')
        parts.append(f'disable="{_go_format(self.disable())}"')
        if self._track_events is not None:
            parts.append(f'trackEvents="{_go_format(self.track_events())}"')
        if self._version is not None:
            parts.append(f"version={_format_float_plain(float(self.version()))}")
        return ", ".join(parts)

    def value(
        self, flag_name: str, user: Any, evaluation_ctx: EvaluationContext | None = None
    ) -> tuple[Any, ResolutionDetails]:
        """Return the value served to ``user`` and how it was resolved."""
        ctx = evaluation_ctx if evaluation_ctx is not None else EvaluationContext()
        self._update_flag_stage()
        if self._is_experimentation_over():
            return self.default, ResolutionDetails(VARIATION_DEFAULT, ResolutionReason.DEFAULT)

        if self.disable():
            return ctx.default_sdk_value, ResolutionDetails(
                VARIATION_SDK_DEFAULT, ResolutionReason.DISABLED
            )

        if self._rule() == "" and self._percentage() == 100:
            return self.true, ResolutionDetails(VARIATION_TRUE, ResolutionReason.TARGETING_MATCH)

        if self.evaluate_rule(user, ctx.environment):
            if self.is_in_percentage(flag_name, user):
                return self.true, ResolutionDetails(VARIATION_TRUE, ResolutionReason.SPLIT)
            return self.false, ResolutionDetails(VARIATION_FALSE, ResolutionReason.SPLIT)

        return self.default, ResolutionDetails(VARIATION_DEFAULT, ResolutionReason.DEFAULT)

    def _is_experimentation_over(self) -> bool:
        exp = self.rollout.experimentation if self.rollout is not None else None
        if exp is None:
            return False
        now = _now()
        return (exp.start is not None and now < _aware(exp.start)) or (
            exp.end is not None and now > _aware(exp.end)
        )

    def is_in_percentage(self, flag_name: str, user: Any) -> bool:
        """Return whether the user falls in the cohort served the true value."""
        actual = self.actual_percentage()
        if math.isnan(actual):
            return False
        percentage = int(actual)
        if percentage <= 0:
            return False
        if percentage >= _MAX_PERCENTAGE:
            return True
        return hash32(flag_name + user.key) % _MAX_PERCENTAGE < percentage

    def evaluate_rule(self, user: Any, environment: str = "") -> bool:
        """Return whether the rule applies to the user; no rule applies to everyone."""
        rule = self._rule()
        if rule == "":
            return True
        user_map = user_to_map(user)
        if environment:
            user_map["env"] = environment
        return rules.evaluate(rule, user_map)

    def actual_percentage(self) -> float:
        """Return the current percentage, scaled by PERCENTAGE_MULTIPLIER."""
        flag_percentage = self._percentage() * PERCENTAGE_MULTIPLIER
        progressive = self.rollout.progressive if self.rollout is not None else None
        if progressive is None:
            return flag_percentage

        ramp = progressive.release_ramp
        if ramp.start is None or ramp.end is None:
            return flag_percentage

        initial_percentage = progressive.percentage.initial * PERCENTAGE_MULTIPLIER
        if progressive.percentage.end == 0:
            progressive.percentage.end = 100
        end_percentage = progressive.percentage.end * PERCENTAGE_MULTIPLIER

        if progressive.percentage.initial > progressive.percentage.end:
            return flag_percentage

        now = _now()
        if now < _aware(ramp.start):
            return initial_percentage
        if now > _aware(ramp.end):
            return end_percentage

        nb_sec = _unix(ramp.end) - _unix(ramp.start)
        if nb_sec == 0:
            return end_percentage
        percent_per_sec = (end_percentage - initial_percentage) / nb_sec
        elapsed = math.floor(now.timestamp()) - _unix(ramp.start)
        return elapsed * percent_per_sec + initial_percentage

    def _update_flag_stage(self) -> None:
        scheduled = self.rollout.scheduled if self.rollout is not None else None
        if scheduled is None or not scheduled.steps:
            return
        now = _now()
        for step in list(scheduled.steps):
            if step.date is None:
                continue
            moment = _aware(step.date)
            if now < moment:
                break
            if now > moment:
                self._merge_changes(step.flag_data)

    def _merge_changes(self, changes: FlagData) -> None:
        for name in _MERGEABLE:
            new_value = getattr(changes, name)
            if new_value is not None:
                setattr(self, name, new_value)

    def _rule(self) -> str:
        return self.rule or ""

    def _percentage(self) -> float:
        return self.percentage if self.percentage is not None else 0.0

    def track_events(self) -> bool:
        return True if self._track_events is None else self._track_events

    def disable(self) -> bool:
        return False if self._disable is None else self._disable

    def version(self) -> float:
        return 0 if self._version is None else self._version

    def default_variation(self) -> str:
        return VARIATION_DEFAULT

    def variation_value(self, variation_name: str) -> Any:
        return {
            VARIATION_DEFAULT: self.default,
            VARIATION_TRUE: self.true,
            VARIATION_FALSE: self.false,
        }.get(variation_name)

    def raw_values(self) -> dict[str, str]:
        return {
            "Rule": self._rule(),
            "Percentage": f"{self._percentage():.2f}",
            "Rollout": "" if self.rollout is None else str(self.rollout),
            "True": _nil_empty(self.true),
            "False": _nil_empty(self.false),
            "Default": _nil_empty(self.default),
            "TrackEvents": _go_format(self.track_events()),
            "Disable": _go_format(self.disable()),
            "Version": _go_format(self.version()),
        }