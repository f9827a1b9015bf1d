"""Tests for structured logging."""

import json
from io import StringIO

import pytest
import structlog

from profilefields.observability.logging import (
    PIIRedactor,
    build_processors,
    get_logger,
    setup_logging,
)


class TestSetupLogging:
    """Tests for setup_logging function."""

    def test_setup_json_format(self) -> None:
        """Should configure JSON format for production."""
        setup_logging(level="INFO", format="json", redact_pii=False)
        logger = get_logger("test")
        # Should not raise
        logger.info("test_message")

    def test_setup_console_format(self) -> None:
        """Should configure console format for development."""
        setup_logging(level="DEBUG", format="console", redact_pii=False)
        get_logger("test").debug("test_message")

    def test_setup_with_pii_redaction(self) -> None:
        setup_logging(level="INFO", format="json", redact_pii=True)
        get_logger("test").info("test_message", email="user@example.com")

    def test_redaction_can_be_disabled(self) -> None:
        assert not any(isinstance(p, PIIRedactor) for p in build_processors(redact_pii=False))
        assert isinstance(build_processors()[-2], PIIRedactor)


class TestPIIRedactor:
    """Tests for PII redaction."""

    @pytest.fixture
    def redactor(self) -> PIIRedactor:
        return PIIRedactor()

    def test_redacts_value_keys(self, redactor: PIIRedactor) -> None:
        """Attribute values are personal data and always masked."""
        event_dict = {"value": "brown", "default_value": "blue", "name": "eye_color"}
        result = redactor(None, None, event_dict)  # type: ignore
        assert result["value"] == "[REDACTED]"
        assert result["default_value"] == "[REDACTED]"
        assert result["name"] == "eye_color"

    def test_redacts_address(self, redactor: PIIRedactor) -> None:
        result = redactor(None, None, {"address": "10.0.0.1"})  # type: ignore
        assert result["address"] == "[REDACTED]"

    def test_redacts_email_pattern_in_string_value(self, redactor: PIIRedactor) -> None:
        """Should redact email patterns found in string values."""
        event_dict = {"error": "Invalid value user@example.com for field contact"}
        result = redactor(None, None, event_dict)  # type: ignore
        assert "user@example.com" not in result["error"]
        assert "[EMAIL]" in result["error"]

    def test_redacts_phone_pattern_in_string_value(self, redactor: PIIRedactor) -> None:
        event_dict = {"error": "Call me at +1-555-123-4567 please"}
        result = redactor(None, None, event_dict)  # type: ignore
        assert "[PHONE]" in result["error"]

    def test_handles_nested_dicts_and_lists(self, redactor: PIIRedactor) -> None:
        event_dict = {
            "record": {"value": "secret", "name": "nickname"},
            "messages": ["mail user@example.com"],
        }
        result = redactor(None, None, event_dict)  # type: ignore
        assert result["record"] == {"value": "[REDACTED]", "name": "nickname"}
        assert result["messages"] == ["mail [EMAIL]"]

    def test_extra_keys(self) -> None:
        """Deployments can mask additional keys."""
        result = PIIRedactor(extra_keys=["Nickname_Hint"])(None, None, {"nickname_hint": "Rex"})  # type: ignore
        assert result["nickname_hint"] == "[REDACTED]"

    def test_snapshots_are_masked(self, redactor: PIIRedactor) -> None:
        result = redactor(None, None, {"old_values": {"label": "Eye Color"}})  # type: ignore
        assert result["old_values"] == "[REDACTED]"

    def test_preserves_non_pii_data(self, redactor: PIIRedactor) -> None:
        event_dict = {
            "event": "definition_created",
            "kind": "select",
            "order": 10,
            "group": "basic",
        }
        result = redactor(None, None, event_dict)  # type: ignore
        assert result == event_dict


class TestJSONLogging:
    """Tests for JSON log output format."""

    def test_json_output_is_valid_json(self) -> None:
        """Should produce valid JSON output with redaction applied."""
        output = StringIO()
        structlog.configure(
            processors=[
                structlog.processors.add_log_level,
                PIIRedactor(),
                structlog.processors.JSONRenderer(),
            ],
            wrapper_class=structlog.make_filtering_bound_logger(0),
            context_class=dict,
            logger_factory=structlog.PrintLoggerFactory(output),
            cache_logger_on_first_use=False,
        )

        structlog.get_logger("test").info("attribute_value_saved", name="eye_color", value="brown")

        parsed = json.loads(output.getvalue().strip())
        assert parsed["event"] == "attribute_value_saved"
        assert parsed["name"] == "eye_color"
        assert parsed["value"] == "[REDACTED]"
        structlog.reset_defaults()
