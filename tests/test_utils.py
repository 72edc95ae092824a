import json

import pytest
from rich.console import Console
from rich.text import Text

from mediahub.cli.formatters import format_error_with_suggestions, summarize_results
from mediahub.exceptions import AuthRejectedError, ConfigurationError
from mediahub.models.instance import ConnectionTestResult
from mediahub.utils.formatting import format_duration, format_eta, format_size, format_speed
from mediahub.utils.structured_logger import create_structured_logger, redact


def render(renderable) -> str:
    console = Console(record=True, width=120)
    console.print(renderable)
    return console.export_text()


@pytest.mark.parametrize(
    "size, expected",
    [
        (None, "?"),
        (0, "0 B"),
        (1536, "1.5 KB"),
        (5 * 1024**4, "5.0 TB"),
    ],
)
def test_format_size(size, expected):
    assert format_size(size) == expected


def test_format_speed_and_eta():
    assert format_speed(2048).endswith("/s")
    assert format_eta(8640000) == "∞"
    assert format_speed(0) == "-"
    assert format_duration(3725) == "1h 2m 5s"
    assert format_eta(3725) == "1h 2m 5s"


def test_redact_masks_secrets():
    assert redact({"api_key": "abc", "page": 2, "Password": "pw"}) == {
        "api_key": "***",
        "page": 2,
        "Password": "***",
    }
    assert redact(None) == {}


def test_structured_logger_writes_jsonl(tmp_path):
    base, api, connection = create_structured_logger(tmp_path, enable_json=True)
    api.request_failed("GET", "http://nas/api", "boom", 12.345, 500)
    connection.batch_completed(total=3, succeeded=2, duration_s=1.234)
    base.close()

    (log_file,) = tmp_path.glob("mediahub_*.jsonl")
    entries = [json.loads(line) for line in log_file.read_text().splitlines()]
    assert [e["event"] for e in entries] == [
        "api_request_failed",
        "connection_batch_completed",
    ]
    assert entries[0]["status_code"] == 500
    assert entries[1]["failed"] == 1


def test_error_panel_uses_recovery_suggestion():
    panel = format_error_with_suggestions(
        AuthRejectedError(401, "Authentication failed (401)")
    )

    assert "API key" in render(panel)


def test_error_panel_falls_back_to_known_suggestions():
    panel = format_error_with_suggestions(ConfigurationError("bad value"))

    assert "config.ini" in render(panel)


def test_summarize_results():
    summary = summarize_results(
        {
            1: ConnectionTestResult(success=True, message="ok"),
            2: ConnectionTestResult(success=False, message="no"),
        }
    )

    assert isinstance(summary, Text)
    assert summary.plain == "1 connected, 1 failed"
