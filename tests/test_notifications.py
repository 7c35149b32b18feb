from unittest.mock import MagicMock

from ado_dashboard.notifications import LoggingProgressNotifier, ProgressNotifier, notify


def test_notify_without_connection_id_sends_nothing():
    notifier = MagicMock(spec=ProgressNotifier)

    for connection_id in (None, ""):
        assert notify(notifier, connection_id, "hello"), "Expected True without a connection id"

    notifier.send.assert_not_called()


def test_notify_sends_to_connection():
    notifier = MagicMock(spec=ProgressNotifier)

    assert notify(notifier, "conn-1", "Loaded pipeline: A"), "Expected delivery to succeed"

    notifier.send.assert_called_once_with("conn-1", "Loaded pipeline: A")


def test_notify_swallows_channel_errors():
    notifier = MagicMock(spec=ProgressNotifier)
    notifier.send.side_effect = ConnectionError("gone")

    assert notify(notifier, "conn-1", "hello") is False, "Expected False when the channel fails"


def test_logging_notifier(caplog):
    with caplog.at_level("INFO", logger="ado_dashboard.notifications"):
        LoggingProgressNotifier().send("conn-1", "Loading pipeline dashboard...")

    assert "[conn-1] Loading pipeline dashboard..." in caplog.text, (
        f"Expected progress in the log but got '{caplog.text}'"
    )
