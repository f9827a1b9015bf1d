"""Base class and shared helpers for attribute kinds.

An attribute kind knows how to render, validate and sanitize values of
one type. The registry dispatches to kinds by name; a kind that leaves
an operation unimplemented (raises NotImplementedError) is served by the
registry's text fallback.
"""

import json
import re
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, select_autoescape
from markupsafe import Markup

from profilefields.enums import Capability
from profilefields.models.definition import AttributeDefinition
from profilefields.models.validation import ValidationResult

TEMPLATES_DIR = Path(__file__).parent / "templates"

_environment = Environment(
    loader=FileSystemLoader(str(TEMPLATES_DIR)),
    autoescape=select_autoescape(["html"]),
    trim_blocks=True,
    lstrip_blocks=True,
)

_WHITESPACE = re.compile(r"\s+")
_KEY_CHARS = re.compile(r"[^a-z0-9_\-]")


def is_empty(value: Any) -> bool:
    """True for values that count as "not provided"."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, tuple, set, dict)):
        return len(value) == 0
    return False


def clean_text(value: Any) -> str:
    """Strip markup and collapse whitespace to a single line."""
    if value is None:
        return ""
    text = Markup(str(value)).striptags()
    return _WHITESPACE.sub(" ", text).strip()


def clean_multiline(value: Any) -> str:
    """Strip markup but keep line breaks."""
    if value is None:
        return ""
    lines = str(value).replace("\r\n", "\n").split("\n")
    return "\n".join(clean_text(line) for line in lines).strip()


def clean_key(value: Any) -> str:
    """Lowercase key with only alphanumerics, dashes and underscores."""
    return _KEY_CHARS.sub("", str(value).lower())


def to_int(value: Any, default: int = 0) -> int:
    """Non-negative integer coercion; junk becomes ``default``."""
    try:
        return abs(int(float(value)))
    except (TypeError, ValueError):
        return default


def to_number(value: Any) -> float | None:
    """Parse a numeric value, or None when it is not a number."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def decode_mapping(value: Any) -> dict[str, Any] | None:
    """Accept a mapping or its JSON encoding."""
    if isinstance(value, dict):
        return value
    if isinstance(value, str):
        try:
            decoded = json.loads(value)
        except json.JSONDecodeError:
            return None
        return decoded if isinstance(decoded, dict) else None
    return None


def choice_pairs(choices: Any) -> list[tuple[str, str]]:
    """Normalize a choice list into ordered (key, label) pairs.

    Accepts ``{"key": "Label"}``, ``[{"value": ..., "label": ...}]`` and
    a plain list of strings.
    """
    if isinstance(choices, dict):
        return [(str(key), str(label)) for key, label in choices.items()]
    pairs: list[tuple[str, str]] = []
    if isinstance(choices, (list, tuple)):
        for item in choices:
            if isinstance(item, dict):
                key = item.get("value", item.get("key", ""))
                pairs.append((str(key), str(item.get("label", key))))
            else:
                pairs.append((str(item), str(item)))
    return pairs


class AttributeKind:
    """A pluggable attribute type.

    Subclasses set the descriptive class attributes and override
    ``render``, ``validate`` and ``sanitize``.
    """

    name: str = ""
    label: str = ""
    description: str = ""
    capabilities: frozenset[Capability] = frozenset()
    validation_options: frozenset[str] = frozenset({"required"})
    template: str = "input.html"

    def default_options(self) -> dict[str, Any]:
        return {}

    def options(self, definition: AttributeDefinition) -> dict[str, Any]:
        """Kind defaults overlaid with the definition's own options."""
        merged = self.default_options()
        merged.update(definition.options)
        return merged

    def supports(self, capability: Capability) -> bool:
        return capability in self.capabilities

    def describe(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "label": self.label,
            "description": self.description,
            "capabilities": sorted(c.value for c in self.capabilities),
            "validation_options": sorted(self.validation_options),
            "default_options": self.default_options(),
        }

    def render(
        self, definition: AttributeDefinition, value: Any, **render_args: Any
    ) -> str:
        raise NotImplementedError

    def validate(self, definition: AttributeDefinition, value: Any) -> ValidationResult:
        raise NotImplementedError

    def sanitize(self, definition: AttributeDefinition, value: Any) -> Any:
        raise NotImplementedError

    # Helpers for subclasses

    def check_required(
        self, definition: AttributeDefinition, value: Any
    ) -> ValidationResult | None:
        """Result for an empty value, or None when the value is present.

        Empty optional values are valid and need no further checks.
        """
        if not is_empty(value):
            return None
        if definition.rule("required", False):
            return ValidationResult.failure(
                definition.name,
                "required",
                f"The {definition.label} field is required.",
            )
        return ValidationResult.ok()

    def render_template(
        self,
        template: str,
        definition: AttributeDefinition,
        value: Any,
        render_args: dict[str, Any],
        **context: Any,
    ) -> str:
        """Render one of the bundled templates with the common field context."""
        prefix = render_args.get("name_prefix")
        input_name = f"{prefix}[{definition.name}]" if prefix else definition.name
        classes = ["pf-field", f"pf-kind-{definition.kind}", f"pf-width-{definition.width.value}"]
        if definition.css_class:
            classes.append(definition.css_class)
        if render_args.get("class"):
            classes.append(str(render_args["class"]))
        conditions = ""
        if definition.conditional_logic:
            conditions = json.dumps(definition.conditional_logic, sort_keys=True)

        base = {
            "definition": definition,
            "value": value,
            "field_id": render_args.get("id", f"pf_{definition.name}"),
            "input_name": input_name,
            "wrapper_class": " ".join(classes),
            "required": bool(definition.rule("required", False)),
            "readonly": bool(render_args.get("readonly", not definition.is_editable)),
            "placeholder": definition.placeholder,
            "conditions": conditions,
            "attrs": {},
        }
        base.update(context)
        return _environment.get_template(template).render(**base)
