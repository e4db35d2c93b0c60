from __future__ import annotations

from pathlib import Path

from devnotify import main as main_module


class _RecordingClient:
    sent = []

    def __init__(self, base_url: str) -> None:
        self.base_url = base_url

    def __enter__(self):
        return self

    def __exit__(self, *_exc_info):
        return False

    def send_message(self, message) -> None:
        _RecordingClient.sent.append((self.base_url, message))


def test_send_command_posts_message(monkeypatch, capsys):
    _RecordingClient.sent = []
    monkeypatch.setattr(main_module, "NotificationClient", _RecordingClient)

    exit_code = main_module.main(
        ["send", "--url", "http://notify.local", "--sender", "ci", "--title", "build failed",
         "--tag", "error", "--tag", "warning"]
    )

    assert exit_code == 0
    base_url, message = _RecordingClient.sent[0]
    assert base_url == "http://notify.local"
    assert message.tags == ("error", "warning")
    assert "accepted" in capsys.readouterr().out


def test_serve_rejects_invalid_subscriptions(tmp_path: Path, monkeypatch):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        "subscriptions:\n"
        "  - key: default\n"
        "    receiver: slack\n"
        "    distinct_time_window: soon\n",
        encoding="utf-8",
    )
    monkeypatch.setattr(main_module, "setup_logging", lambda **_kwargs: None)

    def _fail_run(*_args, **_kwargs):
        raise AssertionError("server must not start")

    monkeypatch.setattr(main_module.uvicorn, "run", _fail_run)

    assert main_module.main(["serve", "--config", str(config_path)]) == 1
