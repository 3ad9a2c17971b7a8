import logging
import threading
import OSC_Bridge.state as state
from OSC_Bridge.dashboard.server import DashboardLogHandler, build_status_json, summarize_args


class TestStateThreadSafety:
    def test_locks_exist(self):
        assert isinstance(state.tool_call_lock, type(threading.Lock()))
        assert isinstance(state.server_log_lock, type(threading.Lock()))

    def test_concurrent_tool_call_counting(self):
        """Multiple threads counting tool calls should not lose updates."""
        original = dict(state.tool_call_counts)
        state.tool_call_counts.clear()
        errors = []

        def writer():
            try:
                for _ in range(100):
                    with state.tool_call_lock:
                        state.tool_call_counts["track_list"] = state.tool_call_counts.get("track_list", 0) + 1
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=writer) for _ in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        try:
            assert errors == []
            assert state.tool_call_counts["track_list"] == 500
        finally:
            state.tool_call_counts.clear()
            state.tool_call_counts.update(original)


class TestDashboard:
    def test_log_handler_fills_ring_buffer(self):
        logger = logging.getLogger("ParanoidAbleton.test")
        handler = DashboardLogHandler()
        logger.addHandler(handler)
        try:
            logger.warning("port %d busy", 11000)
        finally:
            logger.removeHandler(handler)
        _created, level, message = state.server_log_buffer[-1]
        assert level == "WARNING"
        assert message == "port 11000 busy"

    def test_summarize_args(self):
        assert summarize_args({}) == ""
        assert summarize_args({"track": 0, "volume": "-6dB"}) == "track=0, volume=-6dB"
        summary = summarize_args({"a": 1, "b": 2, "c": 3, "d": "x" * 50})
        assert summary.endswith("+1 more")

    def test_summarize_truncates_long_values(self):
        assert summarize_args({"name": "x" * 50}) == "name=" + "x" * 37 + "..."

    def test_status_without_session(self):
        state.osc_session = None
        status = build_status_json()
        assert status["connection"] == {"state": "uninitialized"}
        assert status["read_only"] is False
        assert "server_logs" in status

    def test_status_with_session(self, live):
        status = build_status_json()
        assert status["connection"]["state"] == "verified"
