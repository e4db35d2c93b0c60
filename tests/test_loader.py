from __future__ import annotations

import json
import logging
from datetime import timedelta
from pathlib import Path

import pytest

from devnotify.lib.broker import (
    Subscription,
    SubscriptionLoadError,
    load_subscription_files,
    load_subscriptions,
    parse_duration,
)


def _write_json(path: Path, payload) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def _record(key: str, receiver: str = "slack", window: str = "5m", **extra) -> dict:
    record = {"key": key, "receiver": receiver, "distinct_time_window": window, "filter": []}
    record.update(extra)
    return record


@pytest.fixture
def subscription_dir(tmp_path: Path) -> Path:
    root = tmp_path / "subscriptions"
    _write_json(
        root / "slack.json",
        [
            _record("slack-errors", filter=[{"type": "tag", "value": "error"}]),
            _record("slack-warning", filter=[{"type": "tag", "value": "warning"}]),
        ],
    )
    _write_json(
        root / "nested" / "deeper" / "mail.json",
        [
            _record("mail-errors", receiver="mail", window="24h", filter=[{"type": "tag", "value": "error"}]),
            _record("mail-disabled", receiver="mail", window="not-a-duration", disabled=True),
        ],
    )
    (root / "README.md").write_text("# docs", encoding="utf-8")
    return root


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("5m", timedelta(minutes=5)),
        ("24h", timedelta(hours=24)),
        ("1h30m", timedelta(hours=1, minutes=30)),
        ("1.5h", timedelta(minutes=90)),
        ("300ms", timedelta(milliseconds=300)),
        ("0", timedelta(0)),
        ("-10s", timedelta(seconds=-10)),
        (" 2m ", timedelta(minutes=2)),
    ],
)
def test_parse_duration_accepts_go_style_values(raw, expected):
    assert parse_duration(raw) == expected


@pytest.mark.parametrize("raw", ["", "5", "5d", "abc", "m", "-", "1h 30m", "9999999999999h"])
def test_parse_duration_rejects_malformed_values(raw):
    with pytest.raises(ValueError):
        parse_duration(raw)


def test_directory_scan_is_recursive_and_ignores_markdown(subscription_dir: Path, caplog):
    with caplog.at_level(logging.WARNING, logger="devnotify.loader"):
        loaded = load_subscription_files(subscription_dir)

    keys = {subscription.key for subscription in loaded}
    assert keys == {"slack-errors", "slack-warning", "mail-errors", "mail-disabled"}
    assert caplog.records == []


def test_unknown_extension_warns_without_failing(subscription_dir: Path, caplog):
    (subscription_dir / "notes.txt").write_text("ignored", encoding="utf-8")

    with caplog.at_level(logging.WARNING, logger="devnotify.loader"):
        loaded = load_subscription_files(subscription_dir)

    assert len(loaded) == 4
    assert "Unknown file type" in caplog.text
    assert "notes.txt" in caplog.text


def test_malformed_json_file_is_skipped(subscription_dir: Path, caplog):
    (subscription_dir / "broken.json").write_text("[{not json", encoding="utf-8")
    _write_json(subscription_dir / "object.json", {"key": "not-a-list"})

    with caplog.at_level(logging.WARNING, logger="devnotify.loader"):
        loaded = load_subscription_files(subscription_dir)

    assert len(loaded) == 4
    assert "broken.json" in caplog.text
    assert "object.json" in caplog.text


def test_missing_directory_is_fatal(tmp_path: Path):
    with pytest.raises(SubscriptionLoadError):
        load_subscription_files(tmp_path / "missing")


def test_load_combines_static_and_files_and_drops_disabled(subscription_dir: Path):
    subscriptions = load_subscriptions([_record("default")], subscription_dir)

    keys = [subscription.key for subscription in subscriptions]
    assert keys[0] == "default"
    assert set(keys) == {"default", "slack-errors", "slack-warning", "mail-errors"}
    assert all(subscription.disabled is False for subscription in subscriptions)
    durations = {subscription.key: subscription.distinct_time_window_duration for subscription in subscriptions}
    assert durations["default"] == timedelta(minutes=5)
    assert durations["mail-errors"] == timedelta(hours=24)


@pytest.mark.parametrize("directory", [None, "", "-"])
def test_directory_sentinel_disables_scan(directory):
    subscriptions = load_subscriptions([_record("default")], directory)

    assert [subscription.key for subscription in subscriptions] == ["default"]


def test_static_subscription_objects_are_accepted():
    subscription = Subscription(key="default", receiver="slack", distinct_time_window="1m")

    loaded = load_subscriptions([subscription])

    assert loaded[0].key == "default"
    assert loaded[0].distinct_time_window_duration == timedelta(minutes=1)
    assert subscription.distinct_time_window_duration is None


def test_invalid_window_on_enabled_subscription_is_fatal(subscription_dir: Path):
    _write_json(subscription_dir / "bad.json", [_record("bad-window", window="soon")])

    with pytest.raises(SubscriptionLoadError, match="bad-window"):
        load_subscriptions([], subscription_dir)


def test_invalid_window_in_static_config_is_fatal():
    with pytest.raises(SubscriptionLoadError):
        load_subscriptions([_record("default", window="")])


def test_invalid_static_record_is_fatal():
    with pytest.raises(SubscriptionLoadError):
        load_subscriptions([{"key": "missing-receiver", "distinct_time_window": "1m"}])


def test_unknown_receivers_are_dropped_with_warning(subscription_dir: Path, caplog):
    with caplog.at_level(logging.WARNING, logger="devnotify.loader"):
        subscriptions = load_subscriptions(
            [_record("default"), _record("unknown", receiver="pager")],
            subscription_dir,
            receivers={"slack"},
        )

    keys = {subscription.key for subscription in subscriptions}
    assert keys == {"default", "slack-errors", "slack-warning"}
    assert "unknown" in caplog.text
    assert "mail-errors" in caplog.text


def test_oversized_window_is_a_load_error():
    with pytest.raises(SubscriptionLoadError):
        load_subscriptions([_record("default", window="9999999999999h")])


def test_quoted_false_keeps_subscription_enabled():
    subscriptions = load_subscriptions([_record("default", disabled="false")])

    assert [subscription.key for subscription in subscriptions] == ["default"]


def test_invalid_disabled_value_in_static_record_is_fatal():
    with pytest.raises(SubscriptionLoadError):
        load_subscriptions([_record("default", disabled="maybe")])


def test_invalid_disabled_value_skips_file_with_warning(tmp_path: Path, caplog):
    root = tmp_path / "subscriptions"
    _write_json(root / "good.json", [_record("slack-errors")])
    _write_json(root / "bad.json", [_record("slack-warning", disabled="maybe")])

    with caplog.at_level(logging.WARNING, logger="devnotify.loader"):
        loaded = load_subscription_files(root)

    assert [subscription.key for subscription in loaded] == ["slack-errors"]
    assert "bad.json" in caplog.text


def test_incomplete_disabled_record_does_not_discard_its_file(tmp_path: Path):
    root = tmp_path / "subscriptions"
    _write_json(root / "mixed.json", [_record("slack-errors"), {"disabled": True}])

    subscriptions = load_subscriptions([], root)

    assert [subscription.key for subscription in subscriptions] == ["slack-errors"]
