"""Numeric and date kinds."""

from datetime import date, datetime
from typing import Any

from profilefields.enums import Capability
from profilefields.kinds.base import AttributeKind, clean_text, to_number
from profilefields.models.definition import AttributeDefinition
from profilefields.models.validation import ValidationResult

DATE_FORMAT = "%Y-%m-%d"


def _format_bound(bound: float) -> str:
    return str(int(bound)) if float(bound).is_integer() else str(bound)


class NumberKind(AttributeKind):
    name = "number"
    label = "Number"
    description = "Numeric input field"
    capabilities = frozenset({
        Capability.PLACEHOLDER,
        Capability.DEFAULT_VALUE,
        Capability.MIN_MAX_VALUE,
    })
    validation_options = frozenset({"required", "min_value", "max_value"})

    def default_options(self) -> dict[str, Any]:
        return {"step": 1, "decimal_places": 0}

    def bounds(self, definition: AttributeDefinition) -> tuple[float | None, float | None]:
        return definition.rule("min_value"), definition.rule("max_value")

    def render(
        self, definition: AttributeDefinition, value: Any, **render_args: Any
    ) -> str:
        options = self.options(definition)
        low, high = self.bounds(definition)
        attrs: dict[str, Any] = {"step": options.get("step", 1)}
        if low is not None:
            attrs["min"] = _format_bound(low)
        if high is not None:
            attrs["max"] = _format_bound(high)
        if definition.placeholder:
            attrs["placeholder"] = definition.placeholder
        return self.render_template(
            self.template, definition, value, render_args, input_type="number", attrs=attrs
        )

    def validate(self, definition: AttributeDefinition, value: Any) -> ValidationResult:
        empty = self.check_required(definition, value)
        if empty is not None:
            return empty
        number = to_number(value)
        if number is None:
            return ValidationResult.failure(
                definition.name,
                "invalid_number",
                f"The {definition.label} field must be a valid number.",
            )
        low, high = self.bounds(definition)
        if low is not None and number < float(low):
            return ValidationResult.failure(
                definition.name,
                "number_too_small",
                f"The {definition.label} field must be at least {_format_bound(low)}.",
            )
        if high is not None and number > float(high):
            return ValidationResult.failure(
                definition.name,
                "number_too_large",
                f"The {definition.label} field must be no more than {_format_bound(high)}.",
            )
        return ValidationResult.ok()

    def sanitize(self, definition: AttributeDefinition, value: Any) -> Any:
        number = to_number(value)
        if number is None:
            return None
        places = int(self.options(definition).get("decimal_places") or 0)
        if places <= 0:
            return int(round(number))
        return round(number, places)


class RangeKind(NumberKind):
    """Slider; falls back to the option bounds when the definition has none."""

    name = "range"
    label = "Range Slider"
    description = "Range slider for numeric values"
    capabilities = frozenset({Capability.DEFAULT_VALUE, Capability.MIN_MAX_VALUE})

    def default_options(self) -> dict[str, Any]:
        return {"min": 0, "max": 100, "step": 1, "decimal_places": 0, "show_value": True}

    def bounds(self, definition: AttributeDefinition) -> tuple[float | None, float | None]:
        options = self.options(definition)
        low, high = super().bounds(definition)
        return (
            low if low is not None else options.get("min"),
            high if high is not None else options.get("max"),
        )

    def render(
        self, definition: AttributeDefinition, value: Any, **render_args: Any
    ) -> str:
        options = self.options(definition)
        low, high = self.bounds(definition)
        attrs: dict[str, Any] = {"step": options.get("step", 1)}
        if low is not None:
            attrs["min"] = _format_bound(low)
        if high is not None:
            attrs["max"] = _format_bound(high)
        return self.render_template(
            self.template, definition, value, render_args, input_type="range", attrs=attrs
        )


def parse_date(value: Any) -> date | None:
    """Strict ``YYYY-MM-DD`` parse; anything else is None."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    try:
        parsed = datetime.strptime(value.strip(), DATE_FORMAT).date()
    except ValueError:
        return None
    return parsed if parsed.strftime(DATE_FORMAT) == value.strip() else None


class DateKind(AttributeKind):
    """Calendar date stored as ``YYYY-MM-DD``.

    Bounds come from ``min_date`` / ``max_date`` in the validation rules
    or options.
    """

    name = "date"
    label = "Date"
    description = "Date picker field"
    capabilities = frozenset({Capability.DEFAULT_VALUE, Capability.MIN_MAX_VALUE})
    validation_options = frozenset({"required", "min_date", "max_date"})

    def default_options(self) -> dict[str, Any]:
        return {"date_format": "Y-m-d", "enable_time": False}

    def bounds(self, definition: AttributeDefinition) -> tuple[date | None, date | None]:
        options = self.options(definition)
        low = definition.validation_rules.get("min_date", options.get("min_date"))
        high = definition.validation_rules.get("max_date", options.get("max_date"))
        return parse_date(low), parse_date(high)

    def render(
        self, definition: AttributeDefinition, value: Any, **render_args: Any
    ) -> str:
        low, high = self.bounds(definition)
        attrs: dict[str, Any] = {}
        if low is not None:
            attrs["min"] = low.strftime(DATE_FORMAT)
        if high is not None:
            attrs["max"] = high.strftime(DATE_FORMAT)
        parsed = parse_date(value)
        shown = parsed.strftime(DATE_FORMAT) if parsed else value
        return self.render_template(
            self.template, definition, shown, render_args, input_type="date", attrs=attrs
        )

    def validate(self, definition: AttributeDefinition, value: Any) -> ValidationResult:
        empty = self.check_required(definition, value)
        if empty is not None:
            return empty
        parsed = parse_date(value)
        if parsed is None:
            return ValidationResult.failure(
                definition.name,
                "invalid_date",
                f"The {definition.label} field must be a valid date.",
            )
        low, high = self.bounds(definition)
        if low is not None and parsed < low:
            return ValidationResult.failure(
                definition.name,
                "date_too_early",
                f"The {definition.label} field must be no earlier than {low.isoformat()}.",
            )
        if high is not None and parsed > high:
            return ValidationResult.failure(
                definition.name,
                "date_too_late",
                f"The {definition.label} field must be no later than {high.isoformat()}.",
            )
        return ValidationResult.ok()

    def sanitize(self, definition: AttributeDefinition, value: Any) -> Any:
        parsed = parse_date(value if not isinstance(value, str) else clean_text(value))
        return parsed.strftime(DATE_FORMAT) if parsed else ""
