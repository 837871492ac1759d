import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from ffclient.flag import (
    VARIATION_SDK_DEFAULT,
    EvaluationContext,
    ResolutionDetails,
    ResolutionReason,
)
from ffclient.flag_data import (
    PERCENTAGE_MULTIPLIER,
    VARIATION_DEFAULT,
    VARIATION_FALSE,
    VARIATION_TRUE,
    FlagData,
)
from ffclient.rollout import (
    Experimentation,
    Progressive,
    ProgressivePercentage,
    ProgressiveReleaseRamp,
    Rollout,
    ScheduledRollout,
    ScheduledStep,
)


@dataclass
class _User:
    key: str
    anonymous: bool = False
    custom: dict[str, Any] = field(default_factory=dict)


USER_A = "7e50ee61-06ad-4bb0-9034-38ad7cdea9f5"
RULE_A = f'key == "{USER_A}"'


def _in(minutes):
    return datetime.now(timezone.utc) + timedelta(minutes=minutes)


@pytest.mark.parametrize(
    "rule, key, env, expected",
    [
        ("", "random-key", "", True),
        ('key == "random-key"', "random-key", "", True),
        ('key == "incorrect-key"', "random-key", "", False),
        ('key == "random-key"', "", "", False),
        ('env == "staging"', "", "staging", True),
        ('env != "production"', "", "production", False),
    ],
)
def test_evaluate_rule(rule, key, env, expected):
    flag = FlagData(disable=False, rule=rule, percentage=0)
    assert flag.evaluate_rule(_User(key, anonymous=True), env) is expected


@pytest.mark.parametrize(
    "percentage, flag_name, key, expected",
    [
        (100, "test_689025", "test_689053", True),
        (105, "test_689025", "test_689053", True),
        (0, "test_689025", "test_689053", False),
        (-1, "test_689025", "test_689053", False),
        (10, "test-flag", "86fe0fd9-d19c-4c35-bd05-07b434a21c04", True),
        (10, "test-flag", "7e50ee61-06ad-4bb0-9034-38ad7cdea9f5", True),
        (10, "test-flag", "a287f16a-b50b-4151-a50f-a97fe334a4bf", False),
        (10, "test-flag", "a4599f14-f7a3-4c14-b3b9-0c0d728224ff", True),
        (10, "test-flag", "ffc35559-bc1d-4cf3-8e21-7f95c432d1c2", False),
        (10.123, "test-flag", "ffc35559-bc1d-4cf3-8e21-7f95c432d1c2", False),
    ],
)
def test_is_in_percentage(percentage, flag_name, key, expected):
    flag = FlagData(disable=False, rule="", percentage=percentage)
    assert flag.is_in_percentage(flag_name, _User(key)) is expected


@pytest.mark.parametrize("percentage", [100, 0, 50])
def test_actual_percentage_without_rollout(percentage):
    flag = FlagData(percentage=percentage)
    assert flag.actual_percentage() == percentage * PERCENTAGE_MULTIPLIER


def _progressive(start, end, initial=0.0, end_pct=0.0, percentage=None):
    return FlagData(
        percentage=percentage,
        rollout=Rollout(
            progressive=Progressive(
                percentage=ProgressivePercentage(initial=initial, end=end_pct),
                release_ramp=ProgressiveReleaseRamp(
                    start=None if start is None else _in(start),
                    end=None if end is None else _in(end),
                ),
            )
        ),
    )


@pytest.mark.parametrize(
    "start, end, initial, end_pct, want",
    [
        (-1, 1, 0, 0, 50000.0),
        (-1, 1, 20, 0, 60000.0),
        (-1, 1, 0, 20, 10000.0),
        (-1, 1, 10, 20, 15000.0),
    ],
)
def test_actual_percentage_during_ramp(start, end, initial, end_pct, want):
    flag = _progressive(start, end, initial, end_pct)
    # one second of clock drift moves the result by less than 1000
    assert flag.actual_percentage() == pytest.approx(want, abs=1000)


@pytest.mark.parametrize(
    "start, end, initial, end_pct, percentage, want",
    [
        (1, 2, 10, 20, None, 10000.0),
        (-1, -2, 10, 80, None, 80000.0),
        (-1, 1, 80, 10, None, 0.0),
        (-1, None, 0, 0, None, 0.0),
        (None, -1, 0, 0, None, 0.0),
        (None, -1, 0, 0, 46, 46000.0),
    ],
)
def test_actual_percentage_outside_ramp(start, end, initial, end_pct, percentage, want):
    flag = _progressive(start, end, initial, end_pct, percentage)
    assert flag.actual_percentage() == want


_VALUE_CASES = [
    ("rule pass", RULE_A, None, "test-flag", USER_A, 10, "true", VARIATION_TRUE, ResolutionReason.SPLIT),
    ("exp start past", RULE_A, (-1, None), "test-flag", USER_A, 10, "true", VARIATION_TRUE, ResolutionReason.SPLIT),
    ('exp start future', 'key == "user66"', (1, None), "test-flag", "user66", 10, "default", VARIATION_DEFAULT, ResolutionReason.DEFAULT),
    ("exp running", RULE_A, (-1, 1), "test-flag", USER_A, 10, "true", VARIATION_TRUE, ResolutionReason.SPLIT),
    ("exp not started", 'key == "user66"', (1, 2), "test-flag", "user66", 10, "default", VARIATION_DEFAULT, ResolutionReason.DEFAULT),
    ("exp finished", 'key == "user66"', (-2, -1), "test-flag", "user66", 10, "default", VARIATION_DEFAULT, ResolutionReason.DEFAULT),
    ("exp only end finished", 'key == "user66"', (None, -1), "test-flag", "user66", 10, "default", VARIATION_DEFAULT, ResolutionReason.DEFAULT),
    ("exp only end not finished", RULE_A, (None, 1), "test-flag", USER_A, 10, "true", VARIATION_TRUE, ResolutionReason.SPLIT),
    ("exp no dates", RULE_A, (None, None), "test-flag", USER_A, 10, "true", VARIATION_TRUE, ResolutionReason.SPLIT),
    ("exp inverted dates", 'key == "user66"', (1, -1), "test-flag", "user66", 10, "default", VARIATION_DEFAULT, ResolutionReason.DEFAULT),
    ("rule fails", 'key == "7e50ee61-06ad-4bb0-9034-38ad7"', None, "test-flag", USER_A, 10, "default", VARIATION_DEFAULT, ResolutionReason.DEFAULT),
    ("not in cohort", RULE_A, None, "test-flag2", USER_A, 10, "false", VARIATION_FALSE, ResolutionReason.SPLIT),
    ("target everyone", "", None, "test-flag2", USER_A, 100, "true", VARIATION_TRUE, ResolutionReason.TARGETING_MATCH),
]


@pytest.mark.parametrize(
    "name, rule, window, flag_name, key, percentage, want_value, want_variant, want_reason",
    _VALUE_CASES,
    ids=[case[0] for case in _VALUE_CASES],
)
def test_value(name, rule, window, flag_name, key, percentage, want_value, want_variant, want_reason):
    rollout = Rollout()
    if window is not None:
        start, end = window
        rollout = Rollout(
            experimentation=Experimentation(
                start=None if start is None else _in(start),
                end=None if end is None else _in(end),
            )
        )
    flag = FlagData(
        disable=False,
        rule=rule,
        percentage=percentage,
        true="true",
        false="false",
        default="default",
        rollout=rollout,
    )
    user = _User(key, custom={"name": "john"})
    value, details = flag.value(flag_name, user, EvaluationContext(default_sdk_value=""))
    assert value == want_value
    assert details == ResolutionDetails(want_variant, want_reason)


def test_value_disabled_returns_sdk_default():
    flag = FlagData(disable=True, rule="", percentage=0, true="true", false="false", default="default")
    value, details = flag.value(
        "test_689483", _User("test_689483"), EvaluationContext(default_sdk_value="defaultSDK")
    )
    assert value == "defaultSDK"
    assert details == ResolutionDetails(VARIATION_SDK_DEFAULT, ResolutionReason.DISABLED)


@pytest.mark.parametrize("start, end, expected", [(1, 2, "False"), (-2, -1, "True")])
def test_progressive_rollout_value(start, end, expected):
    flag = FlagData(
        percentage=0,
        true="True",
        false="False",
        default="Default",
        rollout=Rollout(
            progressive=Progressive(
                release_ramp=ProgressiveReleaseRamp(start=_in(start), end=_in(end))
            )
        ),
    )
    value, details = flag.value("test-flag", _User("test", anonymous=True), EvaluationContext())
    assert value == expected
    assert details.reason == ResolutionReason.SPLIT


def _wait_until(moment):
    delay = (moment - datetime.now(timezone.utc)).total_seconds()
    if delay > 0:
        time.sleep(delay)


def test_scheduled_rollout():
    step = 0.3
    base = datetime.now(timezone.utc)

    def at(k):
        return base + timedelta(seconds=k * step)

    flag = FlagData(
        rule='key eq "test"',
        percentage=0,
        true="True",
        false="False",
        default="Default",
        rollout=Rollout(
            scheduled=ScheduledRollout(
                steps=[
                    ScheduledStep(FlagData(version=1.1), at(1)),
                    ScheduledStep(FlagData(percentage=100), at(1)),
                    ScheduledStep(
                        FlagData(true="True2", false="False2", default="Default2", rule='key eq "test2"'),
                        at(2),
                    ),
                    ScheduledStep(
                        FlagData(true="True2", false="False2", default="Default2", rule='key eq "test"'),
                        at(3),
                    ),
                    ScheduledStep(FlagData(disable=True), at(4)),
                    ScheduledStep(FlagData(percentage=0)),
                    ScheduledStep(
                        FlagData(
                            disable=False,
                            track_events=True,
                            rollout=Rollout(experimentation=Experimentation(start=at(6), end=at(7))),
                        ),
                        at(5),
                    ),
                ]
            )
        ),
    )
    user = _User("test", anonymous=True)
    expected = ["False", "True", "Default2", "True2", "Default2", "Default2", "True2", "Default2"]
    seen = []
    for k, _ in enumerate(expected):
        _wait_until(at(k + 0.5))
        ctx = EvaluationContext(default_sdk_value="Default2") if k == 4 else EvaluationContext()
        value, _details = flag.value("test-flag", user, ctx)
        seen.append(value)
        if k == 1:
            assert flag.version() == 1.1
    assert seen == expected


@pytest.mark.parametrize(
    "flag, want",
    [
        (
            FlagData(
                disable=False, rule='key eq "toto"', percentage=10, true=True, false=False,
                default=False, track_events=True, version=12,
            ),
            'percentage=10%, rule="key eq "toto"", true="true", false="false", default="false", '
            'disable="false", trackEvents="true", version=12',
        ),
        (
            FlagData(disable=False, rule="", percentage=10, true=True, false=False, default=False),
            'percentage=10%, true="true", false="false", default="false", disable="false"',
        ),
        (
            FlagData(disable=False, rule="", percentage=0, true=True, false=False, default=False),
            'percentage=0%, true="true", false="false", default="false", disable="false"',
        ),
    ],
)
def test_string(flag, want):
    assert str(flag) == want


def test_getters_all_default():
    flag = FlagData()
    assert flag.disable() is False
    assert flag.track_events() is True
    assert flag.version() == 0
    assert flag.default_variation() == VARIATION_DEFAULT
    assert flag.variation_value(flag.default_variation()) is None
    assert flag.raw_values() == {
        "Default": "",
        "Disable": "false",
        "False": "",
        "Percentage": "0.00",
        "Rollout": "",
        "Rule": "",
        "TrackEvents": "true",
        "True": "",
        "Version": "0",
    }


def test_getters_custom_flag():
    flag = FlagData(
        rule="test", percentage=90, true=12.2, false=13.2, default=14.2,
        track_events=False, disable=True, version=127,
    )
    assert flag.disable() is True
    assert flag.track_events() is False
    assert flag.version() == 127
    assert flag.default_variation() == VARIATION_DEFAULT
    assert flag.variation_value(flag.default_variation()) == 14.2
    assert flag.raw_values() == {
        "Default": "14.2",
        "Disable": "true",
        "False": "13.2",
        "Percentage": "90.00",
        "Rollout": "",
        "Rule": "test",
        "TrackEvents": "false",
        "True": "12.2",
        "Version": "127",
    }


def test_variation_value_by_name():
    flag = FlagData(true="t", false="f", default="d")
    assert flag.variation_value(VARIATION_TRUE) == "t"
    assert flag.variation_value(VARIATION_FALSE) == "f"
    assert flag.variation_value("unknown") is None


def test_raw_values_show_experimentation():
    flag = FlagData(
        rollout=Rollout(
            experimentation=Experimentation(
                start=datetime.fromtimestamp(1095379400, timezone.utc),
                end=datetime.fromtimestamp(1095379500, timezone.utc),
            )
        )
    )
    assert flag.raw_values()["Rollout"] == (
        "experimentation: start:[2004-09-17T00:03:20Z] end:[2004-09-17T00:05:00Z]"
    )


def test_from_dict_accepts_boolean_keys():
    data = {
        "rule": 'key eq "random-key"',
        "percentage": 100,
        True: True,
        False: False,
        "default": False,
        "trackEvents": False,
    }
    assert FlagData.from_dict(data) == FlagData(
        rule='key eq "random-key"',
        percentage=100.0,
        true=True,
        false=False,
        default=False,
        track_events=False,
    )


@pytest.mark.parametrize(
    "data",
    [
        {"percentage": "toot"},
        {"rule": 12},
        {"disable": "yes"},
        {"rollout": "nope"},
    ],
)
def test_from_dict_rejects_bad_types(data):
    with pytest.raises(ValueError):
        FlagData.from_dict(data)


def test_to_dict_omits_unset_fields():
    flag = FlagData(percentage=5, true="test", false="false", default="default")
    assert flag.to_dict() == {"percentage": 5, "true": "test", "false": "false", "default": "default"}


def test_dict_round_trip_with_rollout():
    flag = FlagData(
        rule='key eq "a"',
        percentage=10.0,
        true=1,
        false=2,
        default=3,
        track_events=False,
        disable=False,
        version=1.5,
        rollout=Rollout(
            experimentation=Experimentation(
                start=datetime(2004, 9, 17, 0, 3, 20, tzinfo=timezone.utc),
                end=datetime(2004, 9, 17, 0, 5, 0, tzinfo=timezone.utc),
            ),
            progressive=Progressive(
                percentage=ProgressivePercentage(initial=10.0, end=50.0),
                release_ramp=ProgressiveReleaseRamp(
                    start=datetime(2020, 1, 1, tzinfo=timezone.utc),
                    end=datetime(2020, 2, 1, tzinfo=timezone.utc),
                ),
            ),
            scheduled=ScheduledRollout(
                steps=[ScheduledStep(FlagData(percentage=20.0), datetime(2021, 1, 1, tzinfo=timezone.utc))]
            ),
        ),
    )
    data = flag.to_dict()
    assert data["rollout"]["experimentation"] == {
        "start": "2004-09-17T00:03:20Z",
        "end": "2004-09-17T00:05:00Z",
    }
    assert data["rollout"]["scheduled"]["steps"] == [{"percentage": 20.0, "date": "2021-01-01T00:00:00Z"}]
    assert FlagData.from_dict(data) == flag


def test_scheduled_step_from_dict_is_applied():
    flag = FlagData.from_dict(
        {
            "percentage": 0,
            "true": "on",
            "false": "off",
            "default": "default",
            "rollout": {
                "scheduled": {
                    "steps": [
                        {"date": "2000-01-01T00:00:00Z", "percentage": 100},
                        {"date": "2999-01-01T00:00:00Z", "percentage": 0},
                    ]
                }
            },
        }
    )
    value, details = flag.value("flag", _User("someone"), EvaluationContext())
    assert value == "on"
    assert details == ResolutionDetails(VARIATION_TRUE, ResolutionReason.TARGETING_MATCH)
    assert flag.percentage == 100


def test_equality_compares_fields():
    assert FlagData(percentage=1, true=True) == FlagData(percentage=1.0, true=True)
    assert not FlagData(percentage=1, default=True) == FlagData(percentage=1, default=False)