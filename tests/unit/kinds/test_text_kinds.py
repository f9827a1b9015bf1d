"""Unit tests for the free-text kinds."""

from profilefields.kinds.base import clean_multiline, clean_text, is_empty, to_number
from profilefields.kinds.text import EmailKind, TextareaKind, TextKind, UrlKind


class TestHelpers:
    """Tests for the shared cleaning helpers."""

    def test_is_empty(self) -> None:
        """Blank strings and empty containers count as empty, zero does not."""
        assert is_empty(None)
        assert is_empty("   ")
        assert is_empty([])
        assert not is_empty(0)
        assert not is_empty(False)

    def test_clean_text_strips_markup_and_collapses_whitespace(self) -> None:
        """Tags are removed and whitespace runs collapse to one space."""
        assert clean_text("<b>Hello</b>   \n world ") == "Hello world"

    def test_clean_multiline_keeps_line_breaks(self) -> None:
        """Line breaks survive while each line is cleaned."""
        assert clean_multiline("line one\r\n<i>line</i>  two") == "line one\nline two"

    def test_to_number(self) -> None:
        """Numbers and numeric strings parse; booleans and junk do not."""
        assert to_number("3.5") == 3.5
        assert to_number(4) == 4.0
        assert to_number(True) is None
        assert to_number("abc") is None


class TestTextKind:
    """Tests for single line text."""

    def test_optional_empty_value_is_valid(self, make_definition) -> None:
        """An empty optional value needs no further checks."""
        result = TextKind().validate(make_definition(), "")
        assert result.is_valid

    def test_required_empty_value_fails(self, make_definition) -> None:
        """A required field rejects a blank value."""
        result = TextKind().validate(make_definition(is_required=True), "  ")
        assert result.codes() == ["required"]

    def test_length_bounds(self, make_definition) -> None:
        """Both length bounds are checked."""
        definition = make_definition(min_length=3, max_length=5)
        assert TextKind().validate(definition, "ab").codes() == ["text_too_short"]
        assert TextKind().validate(definition, "abcdef").codes() == ["text_too_long"]
        assert TextKind().validate(definition, "abcd").is_valid

    def test_validation_rules_override_columns(self, make_definition) -> None:
        """A bound in validation_rules wins over the column."""
        definition = make_definition(max_length=10, validation_rules={"max_length": 2})
        assert TextKind().validate(definition, "abc").codes() == ["text_too_long"]

    def test_regex_mismatch(self, make_definition) -> None:
        """A value not matching the pattern fails with invalid_format."""
        definition = make_definition(regex_pattern="^[A-Z]+$")
        assert TextKind().validate(definition, "abc").codes() == ["invalid_format"]
        assert TextKind().validate(definition, "ABC").is_valid

    def test_unusable_regex_reports_error(self, make_definition) -> None:
        """A broken stored pattern is reported instead of raising."""
        definition = make_definition(regex_pattern="(")
        assert TextKind().validate(definition, "abc").codes() == ["invalid_pattern"]

    def test_non_text_value_rejected(self, make_definition) -> None:
        """Lists are not text."""
        result = TextKind().validate(make_definition(), ["a"])
        assert result.codes() == ["invalid_type"]

    def test_sanitize_strips_markup(self, make_definition) -> None:
        """Sanitizing removes tags."""
        assert TextKind().sanitize(make_definition(), "<em>Bob</em> ") == "Bob"

    def test_render_escapes_value(self, make_definition) -> None:
        """Rendered values are HTML-escaped."""
        html = TextKind().render(make_definition(), '"><script>')
        assert "<script>" not in html
        assert "&lt;script&gt;" in html
        assert 'name="test_field"' in html
        assert 'maxlength="255"' in html

    def test_render_with_name_prefix(self, make_definition) -> None:
        """A name prefix wraps the input name."""
        html = TextKind().render(make_definition(), None, name_prefix="profile")
        assert 'name="profile[test_field]"' in html

    def test_render_marks_required(self, make_definition) -> None:
        """Required fields carry the required attribute and marker."""
        html = TextKind().render(make_definition(is_required=True), "")
        assert " required" in html
        assert "pf-required" in html


class TestTextareaKind:
    """Tests for multi-line text."""

    def test_sanitize_keeps_newlines(self, make_definition) -> None:
        """Line breaks are kept."""
        definition = make_definition(kind="textarea")
        assert TextareaKind().sanitize(definition, "a\n<b>b</b>") == "a\nb"

    def test_render_uses_rows(self, make_definition) -> None:
        """Default rows come from the kind options."""
        html = TextareaKind().render(make_definition(kind="textarea"), "hello")
        assert "<textarea" in html
        assert 'rows="4"' in html
        assert "hello" in html


class TestEmailKind:
    """Tests for email addresses."""

    def test_valid_address(self, make_definition) -> None:
        """A well-formed address passes."""
        assert EmailKind().validate(make_definition(kind="email"), "user@example.com").is_valid

    def test_invalid_address(self, make_definition) -> None:
        """A malformed address fails with invalid_email."""
        result = EmailKind().validate(make_definition(kind="email"), "not-an-email")
        assert result.codes() == ["invalid_email"]

    def test_sanitize_drops_disallowed_characters(self, make_definition) -> None:
        """Characters outside the address alphabet are removed."""
        definition = make_definition(kind="email")
        assert EmailKind().sanitize(definition, " user<>@example.com ") == "user@example.com"


class TestUrlKind:
    """Tests for website URLs."""

    def test_valid_url(self, make_definition) -> None:
        """http and https URLs pass."""
        assert UrlKind().validate(make_definition(kind="url"), "https://example.com").is_valid

    def test_disallowed_protocol(self, make_definition) -> None:
        """Protocols outside allowed_protocols fail."""
        result = UrlKind().validate(make_definition(kind="url"), "ftp://example.com")
        assert result.codes() == ["invalid_url"]

    def test_sanitize_adds_scheme(self, make_definition) -> None:
        """Bare hosts get an http scheme."""
        assert UrlKind().sanitize(make_definition(kind="url"), "example.com") == "http://example.com"

    def test_sanitize_drops_disallowed_protocol(self, make_definition) -> None:
        """A URL with a disallowed protocol sanitizes to empty."""
        assert UrlKind().sanitize(make_definition(kind="url"), "ftp://example.com") == ""
