import logging
import re

import pytest

from ffclient.diff_cache import DiffCache, DiffUpdated, Notifier, NotifierError
from ffclient.flag_data import FlagData
from ffclient.fflog import RFC3339_REGEX
from ffclient.notification_service import NotificationService


def _flag(default=False):
    return FlagData(percentage=100, true=True, false=False, default=default)


class _Recorder(Notifier):
    def __init__(self):
        self.received = []

    def notify(self, diff):
        self.received.append(diff)


class _Failing(Notifier):
    def notify(self, diff):
        raise NotifierError("boom")


class _ListHandler(logging.Handler):
    def __init__(self):
        super().__init__()
        self.messages = []

    def emit(self, record):
        self.messages.append(record.getMessage())


@pytest.mark.parametrize(
    "old, new, want",
    [
        (
            {"test-flag": _flag(), "test-flag2": _flag()},
            {"test-flag": _flag()},
            DiffCache(deleted={"test-flag2": _flag()}),
        ),
        (
            {"test-flag": _flag()},
            {"test-flag": _flag(), "test-flag2": _flag()},
            DiffCache(added={"test-flag2": _flag()}),
        ),
        (
            {"test-flag": _flag()},
            {"test-flag": _flag(True)},
            DiffCache(updated={"test-flag": DiffUpdated(before=_flag(), after=_flag(True))}),
        ),
    ],
    ids=["deleted", "added", "updated"],
)
def test_get_differences(old, new, want):
    assert NotificationService([]).get_differences(old, new) == want


def test_notify_calls_every_notifier():
    first, second = _Recorder(), _Recorder()
    service = NotificationService([first, second])
    service.notify({}, {"test-flag": _flag()}, None)
    service.close()
    expected = DiffCache(added={"test-flag": _flag()})
    assert first.received == [expected]
    assert second.received == [expected]


def test_notify_without_diff_does_nothing():
    recorder = _Recorder()
    service = NotificationService([recorder])
    service.notify({"test-flag": _flag()}, {"test-flag": _flag()}, None)
    service.close()
    assert recorder.received == []


def test_failing_notifier_is_logged():
    handler = _ListHandler()
    logger = logging.getLogger("test-notification-service")
    logger.setLevel(logging.INFO)
    logger.propagate = False
    logger.addHandler(handler)
    try:
        recorder = _Recorder()
        service = NotificationService([_Failing(), recorder])
        service.notify({"test-flag": _flag()}, {}, logger)
        service.close()
    finally:
        logger.removeHandler(handler)
    assert recorder.received == [DiffCache(deleted={"test-flag": _flag()})]
    assert len(handler.messages) == 1
    assert re.match(
        r"^\[" + RFC3339_REGEX + r"\] error while calling the notifier: boom$",
        handler.messages[0],
    )