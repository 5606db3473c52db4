"""
Tests for tutor_gateway.monitoring: Sentry setup and event scrubbing.
"""

from tutor_gateway.monitoring import SCRUBBED, capture_exception, init_monitoring, scrub_event


def test_init_without_dsn_is_noop(settings):
    assert init_monitoring(settings) is False


def test_capture_without_init_does_not_raise():
    capture_exception(RuntimeError("boom"), learner="abc123def456")


class TestScrubEvent:

    def test_sensitive_keys_masked(self):
        event = {"extra": {"user_id": "student-10", "learner": "abc123def456", "Prompt": "hi"}}
        scrubbed = scrub_event(event)
        assert scrubbed["extra"]["user_id"] == SCRUBBED
        assert scrubbed["extra"]["Prompt"] == SCRUBBED
        assert scrubbed["extra"]["learner"] == "abc123def456"

    def test_contact_like_values_masked_in_nested_sections(self):
        event = {
            "contexts": {"gateway": {"notes": ["reach me at kid@example.com", "ok"]}},
            "request": {"headers": {"Authorization": "Bearer secret", "X-Trace": "555-123-4567"}},
        }
        scrubbed = scrub_event(event)
        assert scrubbed["contexts"]["gateway"]["notes"] == [SCRUBBED, "ok"]
        assert scrubbed["request"]["headers"]["Authorization"] == SCRUBBED
        assert scrubbed["request"]["headers"]["X-Trace"] == SCRUBBED

    def test_untouched_sections_kept(self):
        event = {"message": "kid@example.com", "level": "error"}
        assert scrub_event(event) == {"message": "kid@example.com", "level": "error"}
