"""Free-text kinds: text, textarea, email and url."""

import re
from typing import Any
from urllib.parse import urlparse

from profilefields.enums import Capability
from profilefields.kinds.base import AttributeKind, clean_multiline, clean_text
from profilefields.models.definition import AttributeDefinition
from profilefields.models.validation import ValidationResult
from profilefields.observability.logging import get_logger

logger = get_logger(__name__)

EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
EMAIL_ALLOWED = re.compile(r"[^a-zA-Z0-9._%+\-@]")


class TextKind(AttributeKind):
    """Single line text. Also the registry's fallback kind."""

    name = "text"
    label = "Text Input"
    description = "Single line text input field"
    capabilities = frozenset({
        Capability.PLACEHOLDER,
        Capability.DEFAULT_VALUE,
        Capability.MIN_MAX_LENGTH,
        Capability.REGEX,
    })
    validation_options = frozenset({"required", "min_length", "max_length", "regex"})
    input_type = "text"

    def default_options(self) -> dict[str, Any]:
        return {"input_type": "text", "maxlength": 255}

    def render(
        self, definition: AttributeDefinition, value: Any, **render_args: Any
    ) -> str:
        options = self.options(definition)
        attrs: dict[str, Any] = {}
        if definition.placeholder:
            attrs["placeholder"] = definition.placeholder
        maxlength = definition.rule("max_length") or options.get("maxlength")
        if maxlength:
            attrs["maxlength"] = maxlength
        if definition.rule("min_length"):
            attrs["minlength"] = definition.rule("min_length")
        return self.render_template(
            self.template,
            definition,
            value,
            render_args,
            input_type=options.get("input_type", self.input_type),
            attrs=attrs,
        )

    def validate(self, definition: AttributeDefinition, value: Any) -> ValidationResult:
        empty = self.check_required(definition, value)
        if empty is not None:
            return empty
        if not isinstance(value, (str, int, float)) or isinstance(value, bool):
            return ValidationResult.failure(
                definition.name,
                "invalid_type",
                f"The {definition.label} field must be text.",
            )
        return self.check_length(definition, str(value))

    def check_length(self, definition: AttributeDefinition, text: str) -> ValidationResult:
        result = ValidationResult()
        min_length = definition.rule("min_length")
        max_length = definition.rule("max_length")
        if min_length and len(text) < int(min_length):
            result.add(
                definition.name,
                "text_too_short",
                f"The {definition.label} field must be at least {min_length} characters.",
            )
        if max_length and len(text) > int(max_length):
            result.add(
                definition.name,
                "text_too_long",
                f"The {definition.label} field must be no more than {max_length} characters.",
            )
        pattern = definition.rule("regex")
        if pattern:
            try:
                matched = re.search(pattern, text) is not None
            except re.error as e:
                logger.warning(
                    "value_pattern_invalid", field_name=definition.name, error=str(e)
                )
                result.add(
                    definition.name,
                    "invalid_pattern",
                    f"The {definition.label} field has an unusable pattern.",
                )
            else:
                if not matched:
                    result.add(
                        definition.name,
                        "invalid_format",
                        f"The {definition.label} field format is invalid.",
                    )
        return result

    def sanitize(self, definition: AttributeDefinition, value: Any) -> Any:
        return clean_text(value)


class TextareaKind(TextKind):
    name = "textarea"
    label = "Textarea"
    description = "Multi-line text input field"
    capabilities = frozenset({
        Capability.PLACEHOLDER,
        Capability.DEFAULT_VALUE,
        Capability.MIN_MAX_LENGTH,
    })
    validation_options = frozenset({"required", "min_length", "max_length"})
    template = "textarea.html"

    def default_options(self) -> dict[str, Any]:
        return {"rows": 4, "cols": 50, "maxlength": 1000}

    def render(
        self, definition: AttributeDefinition, value: Any, **render_args: Any
    ) -> str:
        options = self.options(definition)
        attrs: dict[str, Any] = {"rows": options["rows"], "cols": options["cols"]}
        if definition.placeholder:
            attrs["placeholder"] = definition.placeholder
        maxlength = definition.rule("max_length") or options.get("maxlength")
        if maxlength:
            attrs["maxlength"] = maxlength
        return self.render_template(self.template, definition, value, render_args, attrs=attrs)

    def sanitize(self, definition: AttributeDefinition, value: Any) -> Any:
        return clean_multiline(value)


class EmailKind(TextKind):
    name = "email"
    label = "Email"
    description = "Email address input field"
    capabilities = frozenset({Capability.PLACEHOLDER, Capability.DEFAULT_VALUE})
    validation_options = frozenset({"required"})
    input_type = "email"

    def default_options(self) -> dict[str, Any]:
        return {"input_type": "email", "verify_email": False}

    def validate(self, definition: AttributeDefinition, value: Any) -> ValidationResult:
        empty = self.check_required(definition, value)
        if empty is not None:
            return empty
        if not isinstance(value, str) or not EMAIL_PATTERN.match(value.strip()):
            return ValidationResult.failure(
                definition.name,
                "invalid_email",
                f"The {definition.label} field must be a valid email address.",
            )
        return ValidationResult.ok()

    def sanitize(self, definition: AttributeDefinition, value: Any) -> Any:
        if value is None:
            return ""
        return EMAIL_ALLOWED.sub("", str(value).strip())


class UrlKind(TextKind):
    name = "url"
    label = "URL"
    description = "Website URL input field"
    capabilities = frozenset({Capability.PLACEHOLDER, Capability.DEFAULT_VALUE})
    validation_options = frozenset({"required"})
    input_type = "url"

    def default_options(self) -> dict[str, Any]:
        return {"input_type": "url", "allowed_protocols": ["http", "https"]}

    def validate(self, definition: AttributeDefinition, value: Any) -> ValidationResult:
        empty = self.check_required(definition, value)
        if empty is not None:
            return empty
        allowed = self.options(definition).get("allowed_protocols", ["http", "https"])
        parsed = urlparse(value.strip()) if isinstance(value, str) else None
        if parsed is None or parsed.scheme not in allowed or not parsed.netloc:
            return ValidationResult.failure(
                definition.name,
                "invalid_url",
                f"The {definition.label} field must be a valid URL.",
            )
        return ValidationResult.ok()

    def sanitize(self, definition: AttributeDefinition, value: Any) -> Any:
        text = clean_text(value).replace(" ", "")
        if not text:
            return ""
        if "://" not in text:
            text = f"http://{text}"
        allowed = self.options(definition).get("allowed_protocols", ["http", "https"])
        return text if urlparse(text).scheme in allowed else ""
