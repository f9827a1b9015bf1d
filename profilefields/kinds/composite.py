"""Composite kinds whose values carry several sub-fields."""

from typing import Any

from profilefields.enums import Capability
from profilefields.kinds.base import (
    AttributeKind,
    choice_pairs,
    clean_key,
    clean_text,
    decode_mapping,
    is_empty,
    to_int,
    to_number,
)
from profilefields.models.definition import AttributeDefinition
from profilefields.models.validation import ValidationResult

PART_MAX_LENGTH = 100
CM_PER_INCH = 2.54
KG_PER_LB = 0.45359237


def _part(
    key: str,
    label: str,
    value: Any,
    choices: list[tuple[str, str]] | None = None,
    input_type: str = "text",
    attrs: dict[str, Any] | None = None,
) -> dict[str, Any]:
    return {
        "key": key,
        "label": label,
        "value": value,
        "choices": choices,
        "input_type": input_type,
        "attrs": attrs or {},
    }


class CompositeKind(AttributeKind):
    """Base for kinds whose value is a mapping of sub-fields."""

    capabilities = frozenset({Capability.DEFAULT_VALUE, Capability.COMPOSITE})
    template = "composite.html"

    def parts(self, definition: AttributeDefinition, value: dict[str, Any]) -> list[dict[str, Any]]:
        raise NotImplementedError

    def render(
        self, definition: AttributeDefinition, value: Any, **render_args: Any
    ) -> str:
        data = decode_mapping(value) or {}
        return self.render_template(
            self.template, definition, data, render_args, parts=self.parts(definition, data)
        )

    def check_mapping(
        self, definition: AttributeDefinition, value: Any
    ) -> tuple[dict[str, Any] | None, ValidationResult | None]:
        """Decode a submitted value; returns (mapping, early result)."""
        data = decode_mapping(value) if not is_empty(value) else None
        if data is not None and all(is_empty(v) for v in data.values()):
            data = None
        if data is None and not is_empty(value) and decode_mapping(value) is None:
            return None, ValidationResult.failure(
                definition.name,
                "invalid_format",
                f"Invalid {definition.label} format.",
            )
        if data is None:
            return None, self.check_required(definition, None)
        return data, None

    def check_text_parts(
        self, definition: AttributeDefinition, data: dict[str, Any], allowed: list[str]
    ) -> ValidationResult:
        result = ValidationResult()
        for key, part in data.items():
            if key not in allowed:
                result.add(
                    f"{definition.name}.{key}",
                    "invalid_part",
                    f"Unknown {definition.label} entry: {key}.",
                )
            elif part is not None and not isinstance(part, (str, int, float)):
                result.add(
                    f"{definition.name}.{key}",
                    "invalid_type",
                    f"The {definition.label} {key} must be text.",
                )
            elif part is not None and len(str(part)) > PART_MAX_LENGTH:
                result.add(
                    f"{definition.name}.{key}",
                    "text_too_long",
                    f"The {definition.label} {key} must be no more than "
                    f"{PART_MAX_LENGTH} characters.",
                )
        return result

    def clean_parts(self, value: Any, allowed: list[str]) -> dict[str, str]:
        data = decode_mapping(value)
        if data is None:
            return {}
        cleaned: dict[str, str] = {}
        for key, part in data.items():
            key = clean_key(key)
            if key in allowed and not isinstance(part, (list, dict)):
                cleaned[key] = clean_text(part)
        return cleaned


class AgeRangeKind(CompositeKind):
    """Preferred partner age range ``{"min": int, "max": int}``."""

    name = "age_range"
    label = "Age Range"
    description = "Age range selector for dating preferences"

    def default_options(self) -> dict[str, Any]:
        return {"min_age": 18, "max_age": 99, "step": 1, "display_format": "range"}

    def limits(self, definition: AttributeDefinition) -> tuple[int, int]:
        options = self.options(definition)
        return int(options["min_age"]), int(options["max_age"])

    def parts(self, definition: AttributeDefinition, value: dict[str, Any]) -> list[dict[str, Any]]:
        low, high = self.limits(definition)
        attrs = {"min": low, "max": high, "step": self.options(definition).get("step", 1)}
        return [
            _part("min", "From", value.get("min", low), input_type="number", attrs=attrs),
            _part("max", "To", value.get("max", high), input_type="number", attrs=attrs),
        ]

    def validate(self, definition: AttributeDefinition, value: Any) -> ValidationResult:
        data, early = self.check_mapping(definition, value)
        if early is not None:
            return early
        low = to_number(data.get("min"))
        high = to_number(data.get("max"))
        if low is None or high is None:
            return ValidationResult.failure(
                definition.name, "invalid_format", "Invalid age range format."
            )
        min_age, max_age = self.limits(definition)
        if low < min_age or high > max_age or low > high:
            return ValidationResult.failure(
                definition.name, "invalid_range", "Invalid age range values."
            )
        return ValidationResult.ok()

    def sanitize(self, definition: AttributeDefinition, value: Any) -> Any:
        min_age, max_age = self.limits(definition)
        data = decode_mapping(value) or {}
        return {
            "min": to_int(data.get("min"), min_age),
            "max": to_int(data.get("max"), max_age),
        }


class MeasureKind(CompositeKind):
    """A physical measurement entered in metric or imperial units.

    The value is either a bare metric number or a mapping of unit parts;
    validation converts to the metric unit before checking bounds.
    """

    metric_unit = ""
    unit_parts: tuple[str, ...] = ()

    def to_metric(self, data: dict[str, Any]) -> float | None:
        raise NotImplementedError

    def limits(self, definition: AttributeDefinition) -> tuple[float, float]:
        raise NotImplementedError

    def validate(self, definition: AttributeDefinition, value: Any) -> ValidationResult:
        if isinstance(value, (int, float, str)) and not isinstance(value, bool):
            empty = self.check_required(definition, value)
            if empty is not None:
                return empty
            if to_number(value) is not None:
                value = {self.metric_unit: value}
        data, early = self.check_mapping(definition, value)
        if early is not None:
            return early
        unknown = [key for key in data if key not in self.unit_parts]
        if unknown:
            return ValidationResult.failure(
                definition.name,
                "invalid_part",
                f"Unknown {definition.label} unit: {', '.join(sorted(unknown))}.",
            )
        measured = self.to_metric(data)
        if measured is None:
            return ValidationResult.failure(
                definition.name,
                "invalid_number",
                f"The {definition.label} field must be a valid number.",
            )
        low, high = self.limits(definition)
        if measured < low or measured > high:
            return ValidationResult.failure(
                definition.name,
                "out_of_range",
                f"The {definition.label} field must be between {low:g} and "
                f"{high:g} {self.metric_unit}.",
            )
        return ValidationResult.ok()

    def sanitize(self, definition: AttributeDefinition, value: Any) -> Any:
        if is_empty(value):
            return None
        data = decode_mapping(value)
        if data is None:
            return to_int(value)
        return {
            clean_key(key): to_int(part)
            for key, part in data.items()
            if clean_key(key) in self.unit_parts and not is_empty(part)
        }


class HeightKind(MeasureKind):
    name = "height"
    label = "Height"
    description = "Height input with metric/imperial units"
    metric_unit = "cm"
    unit_parts = ("cm", "feet", "inches")

    def default_options(self) -> dict[str, Any]:
        return {
            "units": "metric",
            "imperial_format": "feet_inches",
            "min_height_cm": 120,
            "max_height_cm": 250,
        }

    def limits(self, definition: AttributeDefinition) -> tuple[float, float]:
        options = self.options(definition)
        return float(options["min_height_cm"]), float(options["max_height_cm"])

    def to_metric(self, data: dict[str, Any]) -> float | None:
        if not is_empty(data.get("cm")):
            return to_number(data["cm"])
        feet = to_number(data.get("feet") or 0)
        inches = to_number(data.get("inches") or 0)
        if feet is None or inches is None:
            return None
        return (feet * 12 + inches) * CM_PER_INCH

    def parts(self, definition: AttributeDefinition, value: dict[str, Any]) -> list[dict[str, Any]]:
        units = self.options(definition)["units"]
        low, high = self.limits(definition)
        parts: list[dict[str, Any]] = []
        if units in ("metric", "both"):
            parts.append(
                _part("cm", "cm", value.get("cm"), input_type="number",
                      attrs={"min": int(low), "max": int(high)})
            )
        if units in ("imperial", "both"):
            parts.append(
                _part("feet", "ft", value.get("feet"), input_type="number",
                      attrs={"min": 3, "max": 8})
            )
            parts.append(
                _part("inches", "in", value.get("inches"), input_type="number",
                      attrs={"min": 0, "max": 11})
            )
        return parts


class WeightKind(MeasureKind):
    name = "weight"
    label = "Weight"
    description = "Weight input with metric/imperial units"
    metric_unit = "kg"
    unit_parts = ("kg", "lbs")

    def default_options(self) -> dict[str, Any]:
        return {"units": "metric", "min_weight_kg": 30, "max_weight_kg": 300}

    def limits(self, definition: AttributeDefinition) -> tuple[float, float]:
        options = self.options(definition)
        return float(options["min_weight_kg"]), float(options["max_weight_kg"])

    def to_metric(self, data: dict[str, Any]) -> float | None:
        if not is_empty(data.get("kg")):
            return to_number(data["kg"])
        pounds = to_number(data.get("lbs"))
        return pounds * KG_PER_LB if pounds is not None else None

    def parts(self, definition: AttributeDefinition, value: dict[str, Any]) -> list[dict[str, Any]]:
        units = self.options(definition)["units"]
        low, high = self.limits(definition)
        parts: list[dict[str, Any]] = []
        if units in ("metric", "both"):
            parts.append(
                _part("kg", "kg", value.get("kg"), input_type="number",
                      attrs={"min": int(low), "max": int(high)})
            )
        if units in ("imperial", "both"):
            parts.append(
                _part("lbs", "lbs", value.get("lbs"), input_type="number",
                      attrs={"min": round(low / KG_PER_LB), "max": round(high / KG_PER_LB)})
            )
        return parts


class LocationKind(CompositeKind):
    """City/state/country with a principal-chosen privacy level."""

    name = "location"
    label = "Location"
    description = "Geographic location with privacy controls"
    text_parts = ["city", "state", "country", "postal_code"]

    def default_options(self) -> dict[str, Any]:
        return {
            "location_type": "city_state",
            "show_distance": True,
            "privacy_levels": {
                "exact": "Exact Location",
                "city": "City Only",
                "region": "Region/State Only",
                "country": "Country Only",
                "hidden": "Hidden",
            },
            "default_privacy": "city",
        }

    def parts(self, definition: AttributeDefinition, value: dict[str, Any]) -> list[dict[str, Any]]:
        options = self.options(definition)
        if options["location_type"] == "postal_code":
            parts = [_part("postal_code", "Postal/ZIP Code", value.get("postal_code"))]
        else:
            parts = [
                _part("city", "City", value.get("city")),
                _part("state", "State/Province", value.get("state")),
                _part("country", "Country", value.get("country")),
            ]
        levels = choice_pairs(options.get("privacy_levels"))
        if levels:
            parts.append(
                _part(
                    "privacy",
                    "Privacy Level",
                    value.get("privacy", options.get("default_privacy")),
                    choices=levels,
                )
            )
        return parts

    def validate(self, definition: AttributeDefinition, value: Any) -> ValidationResult:
        if isinstance(value, str) and decode_mapping(value) is None:
            value = {"postal_code": value} if value.strip() else None
        data, early = self.check_mapping(definition, value)
        if early is not None:
            return early
        place = {key: part for key, part in data.items() if key != "privacy"}
        result = self.check_text_parts(definition, place, self.text_parts)
        if definition.rule("required", False) and all(is_empty(part) for part in place.values()):
            result.add(definition.name, "required", "Location is required.")
        privacy = data.get("privacy")
        levels = [key for key, _ in choice_pairs(self.options(definition).get("privacy_levels"))]
        if not is_empty(privacy) and str(privacy) not in levels:
            result.add(
                f"{definition.name}.privacy",
                "invalid_choice",
                "Invalid location privacy level.",
            )
        return result

    def sanitize(self, definition: AttributeDefinition, value: Any) -> Any:
        if isinstance(value, str) and decode_mapping(value) is None:
            return clean_text(value)
        cleaned = self.clean_parts(value, self.text_parts + ["privacy"])
        levels = [key for key, _ in choice_pairs(self.options(definition).get("privacy_levels"))]
        if cleaned.get("privacy") and cleaned["privacy"] not in levels:
            cleaned["privacy"] = self.options(definition).get("default_privacy", "city")
        return cleaned


class ProfessionKind(CompositeKind):
    name = "profession"
    label = "Profession/Occupation"
    description = "Job title and industry"
    capabilities = frozenset({Capability.DEFAULT_VALUE, Capability.COMPOSITE, Capability.PLACEHOLDER})

    def default_options(self) -> dict[str, Any]:
        return {"include_industry": True, "include_company": False, "default_privacy": "public"}

    def allowed_parts(self, definition: AttributeDefinition) -> list[str]:
        options = self.options(definition)
        allowed = ["title"]
        if options.get("include_industry"):
            allowed.append("industry")
        if options.get("include_company"):
            allowed.append("company")
        return allowed

    def parts(self, definition: AttributeDefinition, value: dict[str, Any]) -> list[dict[str, Any]]:
        labels = {"title": "Job Title", "industry": "Industry", "company": "Company"}
        return [
            _part(key, labels[key], value.get(key), attrs=(
                {"placeholder": definition.placeholder}
                if key == "title" and definition.placeholder else {}
            ))
            for key in self.allowed_parts(definition)
        ]

    def validate(self, definition: AttributeDefinition, value: Any) -> ValidationResult:
        if isinstance(value, str) and decode_mapping(value) is None:
            value = {"title": value} if value.strip() else None
        data, early = self.check_mapping(definition, value)
        if early is not None:
            return early
        return self.check_text_parts(definition, data, self.allowed_parts(definition))

    def sanitize(self, definition: AttributeDefinition, value: Any) -> Any:
        if isinstance(value, str) and decode_mapping(value) is None:
            return {"title": clean_text(value)}
        return self.clean_parts(value, self.allowed_parts(definition))


class LifestyleKind(CompositeKind):
    """One choice per lifestyle category, e.g. ``{"smoking": "never"}``."""

    name = "lifestyle"
    label = "Lifestyle"
    description = "Lifestyle preferences and habits"

    def default_options(self) -> dict[str, Any]:
        return {
            "categories": {
                "smoking": {
                    "label": "Smoking",
                    "choices": {
                        "never": "Never",
                        "socially": "Socially",
                        "regularly": "Regularly",
                        "trying_to_quit": "Trying to Quit",
                    },
                },
                "drinking": {
                    "label": "Drinking",
                    "choices": {
                        "never": "Never",
                        "socially": "Socially",
                        "regularly": "Regularly",
                        "occasionally": "Occasionally",
                    },
                },
                "exercise": {
                    "label": "Exercise",
                    "choices": {
                        "never": "Never",
                        "sometimes": "Sometimes",
                        "regularly": "Regularly",
                        "daily": "Daily",
                    },
                },
            },
            "allow_multiple_categories": True,
        }

    def categories(self, definition: AttributeDefinition) -> dict[str, dict[str, Any]]:
        categories = self.options(definition).get("categories") or {}
        return categories if isinstance(categories, dict) else {}

    def parts(self, definition: AttributeDefinition, value: dict[str, Any]) -> list[dict[str, Any]]:
        return [
            _part(
                key,
                category.get("label", key),
                value.get(key),
                choices=choice_pairs(category.get("choices")),
            )
            for key, category in self.categories(definition).items()
        ]

    def validate(self, definition: AttributeDefinition, value: Any) -> ValidationResult:
        data, early = self.check_mapping(definition, value)
        if early is not None:
            return early
        result = ValidationResult()
        categories = self.categories(definition)
        for key, choice in data.items():
            if key not in categories:
                result.add(
                    f"{definition.name}.{key}",
                    "invalid_part",
                    f"Unknown {definition.label} category: {key}.",
                )
                continue
            if is_empty(choice):
                continue
            keys = [k for k, _ in choice_pairs(categories[key].get("choices"))]
            if str(choice) not in keys:
                result.add(
                    f"{definition.name}.{key}",
                    "invalid_choice",
                    f"Invalid choice for {categories[key].get('label', key)}.",
                )
        return result

    def sanitize(self, definition: AttributeDefinition, value: Any) -> Any:
        return self.clean_parts(value, list(self.categories(definition)))
