"""Choice kinds: single and multiple selection from a choice list."""

from typing import Any

from profilefields.enums import Capability
from profilefields.kinds.base import (
    AttributeKind,
    choice_pairs,
    clean_text,
    is_empty,
)
from profilefields.models.definition import AttributeDefinition
from profilefields.models.validation import ValidationResult

CUSTOM_VALUE_MAX_LENGTH = 100
FALSY_STRINGS = frozenset({"", "0", "false", "no", "off"})


class SelectKind(AttributeKind):
    """Single choice rendered as a dropdown.

    A submitted value may be either a choice key or its label; sanitizing
    maps labels back to keys.
    """

    name = "select"
    label = "Select Dropdown"
    description = "Single selection dropdown field"
    capabilities = frozenset({Capability.OPTIONS, Capability.CHOICES, Capability.DEFAULT_VALUE})
    template = "select.html"
    predefined: dict[str, str] = {}

    def default_options(self) -> dict[str, Any]:
        return {"choices": dict(self.predefined), "allow_other": False}

    def choices(self, definition: AttributeDefinition) -> list[tuple[str, str]]:
        return choice_pairs(self.options(definition).get("choices"))

    def allows_custom(self, definition: AttributeDefinition) -> bool:
        options = self.options(definition)
        return bool(options.get("allow_custom") or options.get("allow_other"))

    def resolve(self, definition: AttributeDefinition, value: Any) -> str | None:
        """Choice key for a submitted key or label, None when unknown."""
        text = str(value)
        pairs = self.choices(definition)
        for key, _ in pairs:
            if key == text:
                return key
        for key, choice_label in pairs:
            if choice_label == text:
                return key
        return None

    def render(
        self, definition: AttributeDefinition, value: Any, **render_args: Any
    ) -> str:
        selected = {str(value)} if not is_empty(value) else set()
        return self.render_template(
            self.template,
            definition,
            value,
            render_args,
            choices=self.choices(definition),
            selected=selected,
            multiple=False,
        )

    def validate(self, definition: AttributeDefinition, value: Any) -> ValidationResult:
        empty = self.check_required(definition, value)
        if empty is not None:
            return empty
        if isinstance(value, (list, dict)):
            return ValidationResult.failure(
                definition.name,
                "invalid_type",
                f"The {definition.label} field accepts a single choice.",
            )
        if self.resolve(definition, value) is None:
            if self.allows_custom(definition) and len(str(value)) <= CUSTOM_VALUE_MAX_LENGTH:
                return ValidationResult.ok()
            return ValidationResult.failure(
                definition.name,
                "invalid_choice",
                f"Invalid choice for {definition.label} field.",
            )
        return ValidationResult.ok()

    def sanitize(self, definition: AttributeDefinition, value: Any) -> Any:
        text = clean_text(value)
        if not text:
            return ""
        key = self.resolve(definition, text)
        return key if key is not None else text


class RadioKind(SelectKind):
    name = "radio"
    label = "Radio Buttons"
    description = "Single selection from radio button options"
    template = "choices.html"

    def default_options(self) -> dict[str, Any]:
        return {"choices": {}, "layout": "vertical"}

    def render(
        self, definition: AttributeDefinition, value: Any, **render_args: Any
    ) -> str:
        selected = {str(value)} if not is_empty(value) else set()
        return self.render_template(
            self.template,
            definition,
            value,
            render_args,
            choices=self.choices(definition),
            selected=selected,
            input_type="radio",
        )


class GenderKind(SelectKind):
    name = "gender"
    label = "Gender"
    description = "Gender identity selector"
    predefined = {
        "male": "Male",
        "female": "Female",
        "non_binary": "Non-binary",
        "other": "Other",
        "prefer_not_to_say": "Prefer not to say",
    }

    def default_options(self) -> dict[str, Any]:
        return {"choices": dict(self.predefined), "allow_custom": True, "include_pronouns": False}


class RelationshipStatusKind(SelectKind):
    name = "relationship_status"
    label = "Relationship Status"
    description = "Current relationship status selector"
    predefined = {
        "single": "Single",
        "divorced": "Divorced",
        "widowed": "Widowed",
        "separated": "Separated",
        "in_relationship": "In a Relationship",
        "its_complicated": "It's Complicated",
    }


class EducationKind(SelectKind):
    name = "education"
    label = "Education Level"
    description = "Educational background selector"
    predefined = {
        "high_school": "High School",
        "some_college": "Some College",
        "bachelors": "Bachelor's Degree",
        "masters": "Master's Degree",
        "doctorate": "Doctorate",
        "trade_school": "Trade School",
        "other": "Other",
    }


class ZodiacKind(SelectKind):
    name = "zodiac"
    label = "Zodiac Sign"
    description = "Astrological sign selector"
    predefined = {
        "aries": "Aries",
        "taurus": "Taurus",
        "gemini": "Gemini",
        "cancer": "Cancer",
        "leo": "Leo",
        "virgo": "Virgo",
        "libra": "Libra",
        "scorpio": "Scorpio",
        "sagittarius": "Sagittarius",
        "capricorn": "Capricorn",
        "aquarius": "Aquarius",
        "pisces": "Pisces",
    }


class MultiselectKind(SelectKind):
    """Several choices; value is a list of choice keys.

    ``min_selections`` / ``max_selections`` of 0 mean unbounded.
    """

    name = "multiselect"
    label = "Multi-Select"
    description = "Multiple selection dropdown field"
    capabilities = frozenset({
        Capability.OPTIONS,
        Capability.CHOICES,
        Capability.MULTIPLE,
        Capability.DEFAULT_VALUE,
    })
    validation_options = frozenset({"required", "min_selections", "max_selections"})
    min_selections = 0
    max_selections = 0

    def default_options(self) -> dict[str, Any]:
        return {
            "choices": dict(self.predefined),
            "min_selections": self.min_selections,
            "max_selections": self.max_selections,
            "display_as": "select",
        }

    def as_list(self, value: Any) -> list[Any]:
        if is_empty(value):
            return []
        if isinstance(value, (list, tuple, set)):
            return [item for item in value if not is_empty(item)]
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        return [value]

    def bounds(self, definition: AttributeDefinition) -> tuple[int, int]:
        options = self.options(definition)
        low = definition.validation_rules.get("min_selections", options.get("min_selections", 0))
        high = definition.validation_rules.get("max_selections", options.get("max_selections", 0))
        return int(low or 0), int(high or 0)

    def render(
        self, definition: AttributeDefinition, value: Any, **render_args: Any
    ) -> str:
        selected = {str(item) for item in self.as_list(value)}
        choices = self.choices(definition)
        if self.options(definition).get("display_as") in ("checkboxes", "tags", "pills"):
            return self.render_template(
                "choices.html",
                definition,
                value,
                render_args,
                choices=choices,
                selected=selected,
                input_type="checkbox",
            )
        return self.render_template(
            self.template,
            definition,
            value,
            render_args,
            choices=choices,
            selected=selected,
            multiple=True,
        )

    def validate(self, definition: AttributeDefinition, value: Any) -> ValidationResult:
        values = self.as_list(value)
        empty = self.check_required(definition, values)
        if empty is not None:
            return empty
        result = ValidationResult()
        custom = self.allows_custom(definition)
        for item in values:
            if isinstance(item, (list, dict)):
                result.add(
                    definition.name,
                    "invalid_type",
                    f"The {definition.label} field accepts a list of choices.",
                )
                break
            if self.resolve(definition, item) is None and not (
                custom and len(str(item)) <= CUSTOM_VALUE_MAX_LENGTH
            ):
                result.add(
                    definition.name,
                    "invalid_choice",
                    f"Invalid choice for {definition.label} field.",
                )
                break
        low, high = self.bounds(definition)
        if low and len(values) < low:
            result.add(
                definition.name,
                "too_few_selections",
                f"Please select at least {low} option(s) for {definition.label}.",
            )
        if high and len(values) > high:
            result.add(
                definition.name,
                "too_many_selections",
                f"Please select no more than {high} option(s) for {definition.label}.",
            )
        return result

    def sanitize(self, definition: AttributeDefinition, value: Any) -> Any:
        cleaned: list[str] = []
        for item in self.as_list(value):
            if isinstance(item, (list, dict)):
                continue
            text = clean_text(item)
            if not text:
                continue
            key = self.resolve(definition, text)
            text = key if key is not None else text
            if text not in cleaned:
                cleaned.append(text)
        return cleaned


class LookingForKind(MultiselectKind):
    name = "looking_for"
    label = "Looking For"
    description = "What the principal is seeking in a relationship"
    predefined = {
        "serious_relationship": "Serious Relationship",
        "casual_dating": "Casual Dating",
        "friendship": "Friendship",
        "activity_partner": "Activity Partner",
        "marriage": "Marriage",
        "fun": "Just for Fun",
    }
    max_selections = 3

    def default_options(self) -> dict[str, Any]:
        options = super().default_options()
        options.update({"allow_multiple": True, "display_as": "checkboxes"})
        return options


class InterestsKind(MultiselectKind):
    name = "interests"
    label = "Interests & Hobbies"
    description = "Multiple selection of interests and hobbies"
    predefined = {
        "sports": "Sports",
        "music": "Music",
        "movies": "Movies",
        "reading": "Reading",
        "travel": "Travel",
        "cooking": "Cooking",
        "art": "Art",
        "technology": "Technology",
        "fitness": "Fitness",
        "nature": "Nature",
        "gaming": "Gaming",
        "photography": "Photography",
    }
    min_selections = 1
    max_selections = 10

    def default_options(self) -> dict[str, Any]:
        options = super().default_options()
        options.update({"allow_custom": True, "display_as": "tags"})
        return options


class CheckboxKind(AttributeKind):
    """Single yes/no checkbox stored as checked/unchecked marker values."""

    name = "checkbox"
    label = "Checkbox"
    description = "Single checkbox for yes/no questions"
    capabilities = frozenset({Capability.DEFAULT_VALUE})
    template = "checkbox.html"

    def default_options(self) -> dict[str, Any]:
        return {"checked_value": "1", "unchecked_value": "0"}

    def is_checked(self, definition: AttributeDefinition, value: Any) -> bool:
        options = self.options(definition)
        if value is None or value is False:
            return False
        if str(value) == str(options["unchecked_value"]):
            return False
        if str(value) == str(options["checked_value"]):
            return True
        return str(value).strip().lower() not in FALSY_STRINGS

    def render(
        self, definition: AttributeDefinition, value: Any, **render_args: Any
    ) -> str:
        options = self.options(definition)
        return self.render_template(
            self.template,
            definition,
            value,
            render_args,
            checked=self.is_checked(definition, value),
            checked_value=options["checked_value"],
            unchecked_value=options["unchecked_value"],
        )

    def validate(self, definition: AttributeDefinition, value: Any) -> ValidationResult:
        if definition.rule("required", False) and not self.is_checked(definition, value):
            return ValidationResult.failure(
                definition.name,
                "required",
                f"The {definition.label} field is required.",
            )
        return ValidationResult.ok()

    def sanitize(self, definition: AttributeDefinition, value: Any) -> Any:
        options = self.options(definition)
        if self.is_checked(definition, value):
            return options["checked_value"]
        return options["unchecked_value"]
