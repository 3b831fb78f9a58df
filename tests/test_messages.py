r"""
Tests for contention_bench.messages module.
"""

import pytest

from contention_bench.errors import MalformedCompletionEvent
from contention_bench.messages import (
    CONTEXT_READY,
    START_TEST,
    TEST_COMPLETE,
    parse_completion,
    ready_signal,
    start_command,
)

from conftest import completion


class TestBuilders:
    def test_ready_signal(self):
        assert ready_signal(4) == {"type": CONTEXT_READY, "contextId": 4}

    def test_start_command(self):
        command = start_command(1, ("https://a/x.js",), generation=7)
        assert command == {
            "type": START_TEST,
            "contextId": 1,
            "urls": ["https://a/x.js"],
            "generation": 7,
        }

    def test_completion_event(self):
        event = completion(2, 120.0)
        assert event["type"] == TEST_COMPLETE
        assert event["contextId"] == 2
        assert event["totalDuration"] == 120.0
        assert event["timings"][0]["duration"] == 120.0


class TestParseCompletion:
    def test_valid_event(self):
        result = parse_completion(completion(1, 110.0), 3)
        assert result.context_id == 1
        assert result.total_duration == 110.0
        assert result.timings[0].url == "https://cdn.example.com/a.js"

    def test_type_is_optional(self):
        event = completion(0, 5.0)
        del event["type"]
        assert parse_completion(event, 1).context_id == 0

    def test_duration_computed_when_missing(self):
        event = completion(0, 5.0)
        del event["timings"][0]["duration"]
        assert parse_completion(event, 1).timings[0].duration == 5.0

    def test_extra_timing_fields_preserved(self):
        event = completion(0, 5.0)
        event["timings"][0]["status"] = 404
        assert parse_completion(event, 1).timings[0].extra == {"status": 404}

    @pytest.mark.parametrize(
        "event",
        [
            None,
            "TEST_COMPLETE",
            {"type": "OTHER", "contextId": 0, "timings": [], "totalDuration": 1},
            {"contextId": 0, "timings": []},
            {"contextId": 0, "timings": [], "totalDuration": "fast"},
            {"contextId": 0, "timings": [], "totalDuration": float("nan")},
            {"contextId": 0, "timings": "none", "totalDuration": 1},
            {"contextId": 0, "totalDuration": 1},
            {"contextId": "0", "timings": [], "totalDuration": 1},
            {"contextId": True, "timings": [], "totalDuration": 1},
            {"contextId": 3, "timings": [], "totalDuration": 1},
            {"contextId": -1, "timings": [], "totalDuration": 1},
            {"contextId": 0, "timings": [{"url": "u"}], "totalDuration": 1},
            {"contextId": 0, "timings": [42], "totalDuration": 1},
        ],
    )
    def test_malformed_events(self, event):
        with pytest.raises(MalformedCompletionEvent):
            parse_completion(event, 3)

    def test_malformed_carries_context_id(self):
        with pytest.raises(MalformedCompletionEvent) as exc_info:
            parse_completion({"contextId": 9, "timings": [], "totalDuration": 1}, 3)
        assert exc_info.value.context_id == 9
