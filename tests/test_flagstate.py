import json

from ffclient.flag import ErrorCode, ResolutionReason
from ffclient.flagstate import AllFlags, FlagState


def _state(failed=False):
    return FlagState(
        value="value",
        timestamp=1095379400,
        variation_type="True",
        track_events=True,
        failed=failed,
        error_code=ErrorCode.GENERAL if failed else "",
        reason=ResolutionReason.ERROR if failed else ResolutionReason.SPLIT,
    )


def test_flag_state_dict_keys_leave_out_failed():
    assert set(_state(True).to_dict()) == {
        "value",
        "timestamp",
        "variationType",
        "trackEvents",
        "errorCode",
        "reason",
    }


def test_flag_state_renders_enums_as_strings():
    data = _state(True).to_dict()
    assert data["errorCode"] == "GENERAL"
    assert data["reason"] == "ERROR"


def test_new_all_flags_is_valid_and_empty():
    all_flags = AllFlags()
    assert all_flags.is_valid() is True
    assert all_flags.flags() == {}


def test_empty_to_json_omits_flags():
    assert json.loads(AllFlags().to_json()) == {"valid": True}


def test_failed_flag_makes_it_invalid_for_good():
    all_flags = AllFlags()
    all_flags.add_flag("ok", _state())
    assert all_flags.is_valid() is True
    all_flags.add_flag("bad", _state(True))
    all_flags.add_flag("ok2", _state())
    assert all_flags.is_valid() is False
    assert set(all_flags.flags()) == {"ok", "bad", "ok2"}


def test_to_json_round_trip():
    all_flags = AllFlags()
    state = _state()
    all_flags.add_flag("test-flag", state)
    decoded = json.loads(all_flags.to_json())
    assert decoded == {"flags": {"test-flag": state.to_dict()}, "valid": True}