"""Validation of attribute definitions and submitted values.

Definition validation runs every check and accumulates the failures so a
caller can report all of them in one round trip. Value validation and
sanitization delegate to the kind registry. Nothing here touches storage.
"""

import re
from collections.abc import Mapping
from typing import Any
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError

from profilefields.config.models.engine import ValidationConfig
from profilefields.enums import AttributeStatus, FieldWidth, RequiredPrivatePolicy
from profilefields.kinds import CHOICE_KINDS, NUMERIC_KINDS, TEXT_KINDS
from profilefields.kinds.base import choice_pairs, is_empty, to_number
from profilefields.kinds.numeric import parse_date
from profilefields.models.definition import MAX_ORDER, AttributeDefinition
from profilefields.models.validation import ValidationResult
from profilefields.observability.logging import get_logger
from profilefields.observability.metrics import VALIDATION_FAILURES
from profilefields.registry import KindRegistry

logger = get_logger(__name__)

NAME_PATTERN = re.compile(r"^[a-z][a-z0-9_]*[a-z0-9]$")
KIND_PATTERN = re.compile(r"^[a-z][a-z0-9_\-]*$")
HTML_PATTERN = re.compile(r"<[^>]*>")
CSS_CLASS_PATTERN = re.compile(r"^[A-Za-z0-9_\- ]*$")

NAME_MAX_LENGTH = 100
LABEL_MAX_LENGTH = 255
DESCRIPTION_MAX_LENGTH = 1000
HELP_TEXT_MAX_LENGTH = 500
PLACEHOLDER_MAX_LENGTH = 255
REGEX_MAX_LENGTH = 500
DEFAULT_VALUE_MAX_LENGTH = 1000
CSS_CLASS_MAX_LENGTH = 255
MAX_CHOICES = 100
CHOICE_LABEL_MAX_LENGTH = 255
MAX_MIN_LENGTH = 10000
MAX_MAX_LENGTH = 10000

RESERVED_NAMES: frozenset[str] = frozenset({
    "id",
    "user_id",
    "username",
    "password",
    "email",
    "login",
    "user_login",
    "user_pass",
    "user_email",
    "user_url",
    "user_nicename",
    "display_name",
    "nickname",
    "first_name",
    "last_name",
    "description",
    "rich_editing",
    "syntax_highlighting",
    "comment_shortcuts",
    "admin_color",
    "use_ssl",
    "show_admin_bar_front",
    "locale",
    "wp_capabilities",
    "wp_user_level",
    "dismissed_wp_pointers",
    "show_welcome_panel",
    "created_at",
    "updated_at",
    "action",
    "nonce",
    "_wpnonce",
    "_wp_http_referer",
    "submit",
})

CONDITION_OPERATORS: frozenset[str] = frozenset({
    "equals",
    "not_equals",
    "contains",
    "not_contains",
    "greater_than",
    "less_than",
    "empty",
    "not_empty",
})

VALUELESS_OPERATORS: frozenset[str] = frozenset({"empty", "not_empty"})

BOOLEAN_FLAGS = ("is_required", "is_searchable", "is_public", "is_editable")

TRUE_STRINGS = frozenset({"1", "true", "yes", "on"})
FALSE_STRINGS = frozenset({"0", "false", "no", "off", ""})


def coerce_flag(value: Any) -> bool | None:
    """Interpret a boolean flag from JSON or form input; None if unreadable."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in TRUE_STRINGS:
            return True
        if lowered in FALSE_STRINGS:
            return False
    return None


def evaluate_condition(rule: Mapping[str, Any], values: Mapping[str, Any]) -> bool:
    """Evaluate one show_if / hide_if rule against submitted values."""
    operator = rule.get("operator")
    actual = values.get(rule.get("field", ""))
    expected = rule.get("value")
    if operator == "empty":
        return is_empty(actual)
    if operator == "not_empty":
        return not is_empty(actual)
    if operator == "equals":
        return str(actual) == str(expected) if actual is not None else expected is None
    if operator == "not_equals":
        return not evaluate_condition({**rule, "operator": "equals"}, values)
    if operator == "contains":
        if isinstance(actual, (list, tuple, set)):
            return str(expected) in {str(item) for item in actual}
        return actual is not None and str(expected) in str(actual)
    if operator == "not_contains":
        return not evaluate_condition({**rule, "operator": "contains"}, values)
    if operator in ("greater_than", "less_than"):
        left, right = to_number(actual), to_number(expected)
        if left is None or right is None:
            return False
        return left > right if operator == "greater_than" else left < right
    return False


def is_visible(definition: AttributeDefinition, values: Mapping[str, Any]) -> bool:
    """Whether conditional logic shows the definition for these values.

    All ``show_if`` rules must hold; any matching ``hide_if`` rule hides.
    """
    logic = definition.conditional_logic or {}
    show_if = logic.get("show_if") or []
    hide_if = logic.get("hide_if") or []
    if show_if and not all(evaluate_condition(rule, values) for rule in show_if):
        return False
    return not any(evaluate_condition(rule, values) for rule in hide_if)


class DefinitionValidator:
    """Validates definition configuration and submitted values.

    Per-key checks are looked up in KEY_VALIDATORS, then kind-specific
    structural rules and cross-field rules run over the whole record.
    """

    KEY_VALIDATORS = {
        "name": "_validate_name",
        "label": "_validate_label",
        "kind": "_validate_kind",
        "description": "_validate_description",
        "help_text": "_validate_help_text",
        "placeholder": "_validate_placeholder",
        "options": "_validate_options",
        "validation_rules": "_validate_rules",
        "display_options": "_validate_display_options",
        "conditional_logic": "_validate_conditional_logic",
        "min_value": "_validate_number",
        "max_value": "_validate_number",
        "min_length": "_validate_min_length",
        "max_length": "_validate_max_length",
        "regex_pattern": "_validate_regex_pattern",
        "width": "_validate_width",
        "css_class": "_validate_css_class",
        "group": "_validate_group",
        "order": "_validate_order",
        "status": "_validate_status",
        "is_required": "_validate_flag",
        "is_searchable": "_validate_flag",
        "is_public": "_validate_flag",
        "is_editable": "_validate_flag",
    }

    def __init__(
        self,
        registry: KindRegistry,
        config: ValidationConfig | None = None,
    ) -> None:
        self._registry = registry
        self._config = config or ValidationConfig()
        self._reserved = RESERVED_NAMES | set(self._config.extra_reserved_names)

    @property
    def registry(self) -> KindRegistry:
        return self._registry

    # Definition validation

    def validate_definition(
        self,
        data: Mapping[str, Any],
        existing_id: UUID | None = None,
    ) -> ValidationResult:
        """Validate a definition payload.

        Args:
            data: Full definition record (create) or merged record (update)
            existing_id: Id of the definition being updated, if any

        Returns:
            ValidationResult holding every problem found
        """
        result = ValidationResult()

        required = ("label", "kind") if existing_id else ("name", "label", "kind")
        for key in required:
            if is_empty(data.get(key)):
                result.add(
                    key,
                    "required",
                    f"The {key.replace('_', ' ')} field is required.",
                )

        for key, method_name in self.KEY_VALIDATORS.items():
            if key not in data or data[key] is None:
                continue
            if key in required and is_empty(data[key]):
                continue
            getattr(self, method_name)(key, data[key], result)

        if "default_value" in data and not is_empty(data["default_value"]):
            self._validate_default_value(data, result)

        self._validate_kind_rules(data, result)
        self._validate_cross_field(data, result)

        if result.errors:
            VALIDATION_FAILURES.labels(surface="definition").inc()
            logger.warning(
                "definition_validation_failed",
                field_name=data.get("name"),
                existing_id=str(existing_id) if existing_id else None,
                error_count=len(result.errors),
                error_types=result.codes(),
            )
        return result

    def _validate_name(self, key: str, value: Any, result: ValidationResult) -> None:
        if not isinstance(value, str):
            result.add(key, "invalid_type", "Field name must be a string.")
            return
        if len(value) > NAME_MAX_LENGTH:
            result.add(
                key,
                "name_too_long",
                f"Field name must be {NAME_MAX_LENGTH} characters or less.",
            )
        if not NAME_PATTERN.match(value):
            result.add(
                key,
                "invalid_name",
                "Field name must start with a letter, contain only lowercase letters, "
                "numbers, and underscores, and end with a letter or number.",
            )
        if value in self._reserved:
            result.add(
                key,
                "reserved_name",
                f'"{value}" is a reserved field name and cannot be used.',
            )
        if any(value.startswith(prefix) for prefix in self._config.forbidden_prefixes):
            prefixes = ", ".join(f'"{p}"' for p in self._config.forbidden_prefixes)
            result.add(
                key,
                "forbidden_prefix",
                f"Field names cannot start with {prefixes}.",
            )

    def _validate_label(self, key: str, value: Any, result: ValidationResult) -> None:
        if not isinstance(value, str):
            result.add(key, "invalid_type", "Field label must be a string.")
            return
        if not value.strip():
            result.add(key, "required", "Field label cannot be empty.")
        if len(value) > LABEL_MAX_LENGTH:
            result.add(
                key,
                "label_too_long",
                f"Field label must be {LABEL_MAX_LENGTH} characters or less.",
            )
        if HTML_PATTERN.search(value):
            result.add(key, "label_contains_html", "Field label cannot contain HTML tags.")

    def _validate_kind(self, key: str, value: Any, result: ValidationResult) -> None:
        if not isinstance(value, str) or not KIND_PATTERN.match(value):
            result.add(key, "invalid_kind", f'"{value}" is not a valid field type.')
            return
        if not self._registry.has(value):
            result.add(key, "unknown_kind", f'Field type "{value}" is not registered.')

    def _check_length(
        self, key: str, value: Any, limit: int, label: str, result: ValidationResult
    ) -> None:
        if not isinstance(value, str):
            result.add(key, "invalid_type", f"{label} must be a string.")
        elif len(value) > limit:
            result.add(key, f"{key}_too_long", f"{label} must be {limit} characters or less.")

    def _validate_description(self, key: str, value: Any, result: ValidationResult) -> None:
        self._check_length(key, value, DESCRIPTION_MAX_LENGTH, "Field description", result)

    def _validate_help_text(self, key: str, value: Any, result: ValidationResult) -> None:
        self._check_length(key, value, HELP_TEXT_MAX_LENGTH, "Help text", result)

    def _validate_placeholder(self, key: str, value: Any, result: ValidationResult) -> None:
        self._check_length(key, value, PLACEHOLDER_MAX_LENGTH, "Placeholder text", result)

    def _validate_options(self, key: str, value: Any, result: ValidationResult) -> None:
        if not isinstance(value, Mapping):
            result.add(key, "invalid_options", "Field options must be an object.")
            return
        if "choices" in value:
            self._validate_choices(value["choices"], result)
        if "step" in value and (to_number(value["step"]) is None or to_number(value["step"]) <= 0):
            result.add(f"{key}.step", "invalid_step", "Step value must be a positive number.")
        if "decimal_places" in value:
            places = value["decimal_places"]
            if not isinstance(places, int) or isinstance(places, bool) or places < 0:
                result.add(
                    f"{key}.decimal_places",
                    "invalid_decimal_places",
                    "Decimal places must be a non-negative number.",
                )
        for low_key, high_key in (
            ("min", "max"),
            ("min_selections", "max_selections"),
            ("min_age", "max_age"),
        ):
            low, high = value.get(low_key), value.get(high_key)
            if low is None and high is None:
                continue
            low_num, high_num = to_number(low), to_number(high)
            if (low is not None and low_num is None) or (high is not None and high_num is None):
                result.add(
                    f"{key}.{low_key}",
                    "invalid_number",
                    f"Options {low_key}/{high_key} must be numeric.",
                )
            elif low_num is not None and high_num is not None and high_num != 0 and low_num > high_num:
                result.add(
                    f"{key}.{low_key}",
                    "invalid_range",
                    f"Option {low_key} must not exceed {high_key}.",
                )

    def _validate_choices(self, choices: Any, result: ValidationResult) -> None:
        if not isinstance(choices, (Mapping, list, tuple)):
            result.add("options.choices", "invalid_choices", "Choices must be a list or object.")
            return
        pairs = choice_pairs(choices)
        if len(pairs) > MAX_CHOICES:
            result.add(
                "options.choices",
                "too_many_choices",
                f"Maximum {MAX_CHOICES} choices allowed.",
            )
        for _, choice_label in pairs:
            if not choice_label.strip():
                result.add("options.choices", "empty_choice_label", "Choice labels cannot be empty.")
                break
        for _, choice_label in pairs:
            if len(choice_label) > CHOICE_LABEL_MAX_LENGTH:
                result.add(
                    "options.choices",
                    "choice_label_too_long",
                    f"Choice labels must be {CHOICE_LABEL_MAX_LENGTH} characters or less.",
                )
                break
        keys = [choice_key for choice_key, _ in pairs]
        if len(keys) != len(set(keys)):
            result.add(
                "options.choices",
                "duplicate_choice",
                "Duplicate choice values are not allowed.",
            )

    def _validate_rules(self, key: str, value: Any, result: ValidationResult) -> None:
        if not isinstance(value, Mapping):
            result.add(key, "invalid_rules", "Validation rules must be an object.")
            return
        for rule, setting in value.items():
            path = f"{key}.{rule}"
            if rule == "required":
                if not isinstance(setting, bool):
                    result.add(path, "invalid_type", "Required rule must be boolean.")
            elif rule in ("min_length", "max_length", "min_selections", "max_selections"):
                if not isinstance(setting, int) or isinstance(setting, bool) or setting < 0:
                    result.add(path, "invalid_number", f"{rule} must be a non-negative number.")
            elif rule in ("min_value", "max_value"):
                if to_number(setting) is None:
                    result.add(path, "invalid_number", f"{rule} must be numeric.")
            elif rule in ("min_date", "max_date"):
                if parse_date(setting) is None:
                    result.add(path, "invalid_date", f"{rule} must be a YYYY-MM-DD date.")
            elif rule == "regex":
                self._validate_regex_pattern(path, setting, result)

    def _validate_display_options(self, key: str, value: Any, result: ValidationResult) -> None:
        if not isinstance(value, Mapping):
            result.add(key, "invalid_display_options", "Display options must be an object.")

    def _validate_conditional_logic(self, key: str, value: Any, result: ValidationResult) -> None:
        if not isinstance(value, Mapping):
            result.add(key, "invalid_conditional_logic", "Conditional logic must be an object.")
            return
        for section in ("show_if", "hide_if"):
            rules = value.get(section)
            if rules is None:
                continue
            if not isinstance(rules, list):
                result.add(
                    f"{key}.{section}",
                    "invalid_conditional_logic",
                    f"{section} must be a list of rules.",
                )
                continue
            for index, rule in enumerate(rules):
                self._validate_condition(f"{key}.{section}[{index}]", rule, result)

    def _validate_condition(self, path: str, rule: Any, result: ValidationResult) -> None:
        if not isinstance(rule, Mapping):
            result.add(path, "invalid_conditional_rule", "Conditional rule must be an object.")
            return
        operator = rule.get("operator")
        needed = ("field", "operator") if operator in VALUELESS_OPERATORS else ("field", "operator", "value")
        for required_key in needed:
            if required_key not in rule:
                result.add(
                    path,
                    "invalid_conditional_rule",
                    f"Conditional rule missing required key: {required_key}",
                )
        if operator is not None and operator not in CONDITION_OPERATORS:
            result.add(path, "invalid_operator", f"Invalid conditional operator: {operator}")
        field = rule.get("field")
        if field is not None and (not isinstance(field, str) or not NAME_PATTERN.match(field)):
            result.add(path, "invalid_conditional_rule", "Conditional rule field must be a field name.")

    def _validate_number(self, key: str, value: Any, result: ValidationResult) -> None:
        if to_number(value) is None:
            label = "Minimum value" if key == "min_value" else "Maximum value"
            result.add(key, "invalid_number", f"{label} must be numeric.")

    def _validate_min_length(self, key: str, value: Any, result: ValidationResult) -> None:
        if not isinstance(value, int) or isinstance(value, bool) or not 0 <= value <= MAX_MIN_LENGTH:
            result.add(
                key,
                "invalid_min_length",
                f"Minimum length must be between 0 and {MAX_MIN_LENGTH}.",
            )

    def _validate_max_length(self, key: str, value: Any, result: ValidationResult) -> None:
        if not isinstance(value, int) or isinstance(value, bool) or not 1 <= value <= MAX_MAX_LENGTH:
            result.add(
                key,
                "invalid_max_length",
                f"Maximum length must be between 1 and {MAX_MAX_LENGTH}.",
            )

    def _validate_regex_pattern(self, key: str, value: Any, result: ValidationResult) -> None:
        if not isinstance(value, str):
            result.add(key, "invalid_regex", "Regex pattern must be a string.")
            return
        if len(value) > REGEX_MAX_LENGTH:
            result.add(
                key,
                "regex_too_long",
                f"Regex pattern must be {REGEX_MAX_LENGTH} characters or less.",
            )
            return
        try:
            re.compile(value)
        except re.error:
            result.add(key, "invalid_regex", "Invalid regular expression pattern.")

    def _validate_width(self, key: str, value: Any, result: ValidationResult) -> None:
        allowed = [width.value for width in FieldWidth]
        if str(getattr(value, "value", value)) not in allowed:
            result.add(key, "invalid_width", f"Field width must be one of: {', '.join(allowed)}")

    def _validate_css_class(self, key: str, value: Any, result: ValidationResult) -> None:
        if not isinstance(value, str):
            result.add(key, "invalid_type", "Field class must be a string.")
            return
        if len(value) > CSS_CLASS_MAX_LENGTH:
            result.add(
                key,
                "css_class_too_long",
                f"Field class must be {CSS_CLASS_MAX_LENGTH} characters or less.",
            )
        if not CSS_CLASS_PATTERN.match(value):
            result.add(key, "invalid_css_class", "Field class contains invalid characters.")

    def _validate_group(self, key: str, value: Any, result: ValidationResult) -> None:
        if not isinstance(value, str) or not NAME_PATTERN.match(value) or len(value) > NAME_MAX_LENGTH:
            result.add(
                key,
                "invalid_group",
                "Field group must contain only lowercase letters, numbers, and underscores.",
            )

    def _validate_order(self, key: str, value: Any, result: ValidationResult) -> None:
        if not isinstance(value, int) or isinstance(value, bool) or not 0 <= value <= MAX_ORDER:
            result.add(key, "invalid_order", f"Field order must be between 0 and {MAX_ORDER}.")

    def _validate_status(self, key: str, value: Any, result: ValidationResult) -> None:
        allowed = [status.value for status in AttributeStatus]
        if str(getattr(value, "value", value)) not in allowed:
            result.add(key, "invalid_status", f"Status must be one of: {', '.join(allowed)}")

    def _validate_flag(self, key: str, value: Any, result: ValidationResult) -> None:
        if coerce_flag(value) is None:
            result.add(key, "invalid_type", f"{key} must be a boolean.")

    def _validate_default_value(self, data: Mapping[str, Any], result: ValidationResult) -> None:
        default = data["default_value"]
        if isinstance(default, str) and len(default) > DEFAULT_VALUE_MAX_LENGTH:
            result.add(
                "default_value",
                "default_value_too_long",
                f"Default value must be {DEFAULT_VALUE_MAX_LENGTH} characters or less.",
            )
            return
        if not self._registry.has(str(data.get("kind"))):
            return
        rules = data.get("validation_rules")
        rules = dict(rules) if isinstance(rules, Mapping) else {}
        try:
            candidate = AttributeDefinition.model_validate({
                **{k: v for k, v in data.items() if k in AttributeDefinition.model_fields},
                "name": data.get("name") or "default_check",
                "is_required": False,
                "validation_rules": {**rules, "required": False},
            })
        except PydanticValidationError:
            # Field-level errors for the payload are already reported above
            return
        outcome = self._registry.validate(candidate, default)
        for error in outcome.errors:
            result.add(
                "default_value",
                "invalid_default_value",
                f"Default value is not valid for this field type: {error.message}",
            )

    def _validate_kind_rules(self, data: Mapping[str, Any], result: ValidationResult) -> None:
        kind = data.get("kind")
        options = data.get("options") if isinstance(data.get("options"), Mapping) else {}

        if kind in CHOICE_KINDS and not choice_pairs(options.get("choices")):
            result.add(
                "options.choices",
                "choices_required",
                f"{str(kind).capitalize()} fields must have at least one choice option.",
            )

        if kind in NUMERIC_KINDS:
            low, high = to_number(data.get("min_value")), to_number(data.get("max_value"))
            if low is not None and high is not None and low >= high:
                result.add(
                    "min_value",
                    "invalid_range",
                    "Minimum value must be less than maximum value.",
                )

        if kind in TEXT_KINDS or kind is None:
            low, high = data.get("min_length"), data.get("max_length")
            if isinstance(low, int) and isinstance(high, int) and low >= high:
                result.add(
                    "min_length",
                    "invalid_range",
                    "Minimum length must be less than maximum length.",
                )

    def _validate_cross_field(self, data: Mapping[str, Any], result: ValidationResult) -> None:
        searchable = coerce_flag(data.get("is_searchable", False))
        public = coerce_flag(data.get("is_public", True))
        required = coerce_flag(data.get("is_required", False))

        if searchable and public is False:
            result.add(
                "is_searchable",
                "searchable_requires_public",
                "Searchable fields must be public.",
            )

        if required and public is False:
            policy = self._config.required_private_policy
            message = "Required fields that are not public cannot be seen by other members."
            if policy == RequiredPrivatePolicy.ERROR:
                result.add("is_required", "required_requires_public", message)
            elif policy == RequiredPrivatePolicy.WARN:
                result.warn("is_required", "required_requires_public", message)
                logger.info("definition_required_private", field_name=data.get("name"))

    # Value validation

    def validate_value(self, definition: AttributeDefinition, value: Any) -> ValidationResult:
        """Validate one submitted value against its definition."""
        result = self._registry.validate(definition, value)
        if result.errors:
            VALIDATION_FAILURES.labels(surface="value").inc()
            logger.warning(
                "value_validation_failed",
                field_name=definition.name,
                kind=definition.kind,
                error_count=len(result.errors),
                error_types=result.codes(),
            )
        return result

    def sanitize_value(self, definition: AttributeDefinition, value: Any) -> Any:
        """Clean a submitted value into its stored form."""
        return self._registry.sanitize(definition, value)

    def validate_values(
        self,
        definitions: list[AttributeDefinition],
        values: Mapping[str, Any],
    ) -> ValidationResult:
        """Validate a whole form submission keyed by definition name.

        Definitions hidden by their conditional logic are skipped.
        """
        result = ValidationResult()
        for definition in definitions:
            if not is_visible(definition, values):
                continue
            result.merge(self.validate_value(definition, values.get(definition.name)))
        return result
