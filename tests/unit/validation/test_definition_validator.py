"""Unit tests for DefinitionValidator."""

import pytest

from profilefields.config.models.engine import ValidationConfig
from profilefields.enums import RequiredPrivatePolicy
from profilefields.models import MAX_ORDER
from profilefields.registry import build_default_registry
from profilefields.validation import (
    DefinitionValidator,
    coerce_flag,
    evaluate_condition,
    is_visible,
)


@pytest.fixture
def valid_payload() -> dict:
    return {"name": "eye_color", "label": "Eye Color", "kind": "text"}


class TestCoerceFlag:
    """Tests for boolean flag parsing."""

    @pytest.mark.parametrize("raw", [True, 1, "1", "true", "Yes", "on"])
    def test_truthy(self, raw) -> None:
        assert coerce_flag(raw) is True

    @pytest.mark.parametrize("raw", [False, 0, "0", "false", "no", ""])
    def test_falsy(self, raw) -> None:
        assert coerce_flag(raw) is False

    def test_unreadable(self) -> None:
        assert coerce_flag("maybe") is None
        assert coerce_flag(2) is None


class TestNameRules:
    """Tests for name validation."""

    def test_valid_definition(self, validator, valid_payload) -> None:
        assert validator.validate_definition(valid_payload).is_valid

    @pytest.mark.parametrize("name", ["123bad", "Eye", "eye_", "a", "eye-color"])
    def test_invalid_names(self, validator, valid_payload, name) -> None:
        result = validator.validate_definition({**valid_payload, "name": name})
        assert "invalid_name" in result.codes()

    def test_reserved_name(self, validator, valid_payload) -> None:
        result = validator.validate_definition({**valid_payload, "name": "username"})
        assert "reserved_name" in result.codes()

    def test_extra_reserved_names_from_config(self, valid_payload) -> None:
        """Configured names are reserved in addition to the built-in list."""
        validator = DefinitionValidator(
            build_default_registry(), ValidationConfig(extra_reserved_names=["eye_color"])
        )
        assert "reserved_name" in validator.validate_definition(valid_payload).codes()

    def test_forbidden_prefix(self, validator, valid_payload) -> None:
        result = validator.validate_definition({**valid_payload, "name": "wp_color"})
        assert "forbidden_prefix" in result.codes()

    def test_name_too_long(self, validator, valid_payload) -> None:
        result = validator.validate_definition({**valid_payload, "name": "a" * 101})
        assert "name_too_long" in result.codes()

    def test_name_not_required_on_update(self, validator, valid_payload) -> None:
        """Updates validate a merged record without the name."""
        from uuid import uuid4

        payload = {"label": "Eye Color", "kind": "text"}
        assert validator.validate_definition(payload, existing_id=uuid4()).is_valid


class TestAccumulation:
    """Validation reports every problem at once."""

    def test_bad_name_and_long_label_both_reported(self, validator) -> None:
        result = validator.validate_definition(
            {"name": "123bad", "label": "x" * 300, "kind": "text"}
        )
        assert {"invalid_name", "label_too_long"} <= set(result.codes())
        assert len(set(result.messages())) >= 2

    def test_missing_required_keys(self, validator) -> None:
        result = validator.validate_definition({})
        assert [e.field for e in result.errors] == ["name", "label", "kind"]


class TestKeyRules:
    """Tests for individual keys."""

    def test_label_with_html(self, validator, valid_payload) -> None:
        result = validator.validate_definition({**valid_payload, "label": "<b>Eye</b>"})
        assert "label_contains_html" in result.codes()

    def test_unknown_kind(self, validator, valid_payload) -> None:
        result = validator.validate_definition({**valid_payload, "kind": "hologram"})
        assert result.codes() == ["unknown_kind"]

    def test_bad_regex(self, validator, valid_payload) -> None:
        result = validator.validate_definition({**valid_payload, "regex_pattern": "("})
        assert result.codes() == ["invalid_regex"]

    @pytest.mark.parametrize("order", [-1, MAX_ORDER + 1])
    def test_order_range(self, validator, valid_payload, order) -> None:
        result = validator.validate_definition({**valid_payload, "order": order})
        assert result.codes() == ["invalid_order"]

    def test_order_beyond_three_digits(self, validator, valid_payload) -> None:
        """Groups with more than a hundred definitions get positions past 999."""
        result = validator.validate_definition({**valid_payload, "order": 1010})
        assert result.is_valid

    def test_width_and_status(self, validator, valid_payload) -> None:
        result = validator.validate_definition(
            {**valid_payload, "width": "huge", "status": "gone"}
        )
        assert set(result.codes()) == {"invalid_width", "invalid_status"}

    def test_css_class_characters(self, validator, valid_payload) -> None:
        result = validator.validate_definition({**valid_payload, "css_class": "a;b"})
        assert result.codes() == ["invalid_css_class"]

    def test_flag_type(self, validator, valid_payload) -> None:
        result = validator.validate_definition({**valid_payload, "is_required": "maybe"})
        assert result.codes() == ["invalid_type"]

    def test_group_key(self, validator, valid_payload) -> None:
        result = validator.validate_definition({**valid_payload, "group": "Bad Group"})
        assert result.codes() == ["invalid_group"]

    def test_rules_shape(self, validator, valid_payload) -> None:
        result = validator.validate_definition(
            {**valid_payload, "validation_rules": {"min_length": -1, "min_date": "soon"}}
        )
        assert set(result.codes()) == {"invalid_number", "invalid_date"}


class TestOptionsAndChoices:
    """Tests for kind-specific structure."""

    def test_select_needs_choices(self, validator) -> None:
        result = validator.validate_definition(
            {"name": "eye_color", "label": "Eye Color", "kind": "select"}
        )
        assert result.codes() == ["choices_required"]

    def test_duplicate_choices(self, validator) -> None:
        result = validator.validate_definition({
            "name": "eye_color",
            "label": "Eye Color",
            "kind": "radio",
            "options": {"choices": [{"value": "a", "label": "A"}, {"value": "a", "label": "B"}]},
        })
        assert result.codes() == ["duplicate_choice"]

    def test_too_many_choices(self, validator) -> None:
        choices = {f"c{i}": f"Choice {i}" for i in range(101)}
        result = validator.validate_definition(
            {"name": "eye_color", "label": "Eye Color", "kind": "select", "options": {"choices": choices}}
        )
        assert "too_many_choices" in result.codes()

    def test_numeric_range_ordered(self, validator) -> None:
        result = validator.validate_definition(
            {"name": "age", "label": "Age", "kind": "number", "min_value": 10, "max_value": 5}
        )
        assert result.codes() == ["invalid_range"]

    def test_text_length_ordered(self, validator, valid_payload) -> None:
        result = validator.validate_definition(
            {**valid_payload, "min_length": 10, "max_length": 5}
        )
        assert result.codes() == ["invalid_range"]

    def test_option_step(self, validator) -> None:
        result = validator.validate_definition(
            {"name": "score", "label": "Score", "kind": "number", "options": {"step": 0}}
        )
        assert result.codes() == ["invalid_step"]


class TestDefaultValue:
    """The default value must be valid for its own definition."""

    def test_invalid_default_choice(self, validator) -> None:
        result = validator.validate_definition({
            "name": "eye_color",
            "label": "Eye Color",
            "kind": "select",
            "options": {"choices": {"brown": "Brown"}},
            "default_value": "green",
        })
        assert result.codes() == ["invalid_default_value"]

    def test_valid_default(self, validator) -> None:
        result = validator.validate_definition({
            "name": "eye_color",
            "label": "Eye Color",
            "kind": "select",
            "options": {"choices": {"brown": "Brown"}},
            "default_value": "brown",
            "is_required": True,
        })
        assert result.is_valid


class TestCrossField:
    """Tests for rules spanning several keys."""

    def test_searchable_requires_public(self, validator, valid_payload) -> None:
        result = validator.validate_definition(
            {**valid_payload, "is_searchable": True, "is_public": False}
        )
        assert result.codes() == ["searchable_requires_public"]

    def test_required_private_warns_by_default(self, validator, valid_payload) -> None:
        result = validator.validate_definition(
            {**valid_payload, "is_required": True, "is_public": False}
        )
        assert result.is_valid
        assert [w.code for w in result.warnings] == ["required_requires_public"]

    @pytest.mark.parametrize(
        ("policy", "valid", "warnings"),
        [
            (RequiredPrivatePolicy.ERROR, False, 0),
            (RequiredPrivatePolicy.ALLOW, True, 0),
        ],
    )
    def test_required_private_policy(self, valid_payload, policy, valid, warnings) -> None:
        validator = DefinitionValidator(
            build_default_registry(), ValidationConfig(required_private_policy=policy)
        )
        result = validator.validate_definition(
            {**valid_payload, "is_required": True, "is_public": False}
        )
        assert result.is_valid is valid
        assert len(result.warnings) == warnings


class TestConditionalLogic:
    """Tests for show_if / hide_if structure and evaluation."""

    def test_rule_missing_value(self, validator, valid_payload) -> None:
        result = validator.validate_definition({
            **valid_payload,
            "conditional_logic": {"show_if": [{"field": "gender", "operator": "equals"}]},
        })
        assert result.codes() == ["invalid_conditional_rule"]

    def test_unknown_operator(self, validator, valid_payload) -> None:
        result = validator.validate_definition({
            **valid_payload,
            "conditional_logic": {"hide_if": [{"field": "gender", "operator": "like", "value": 1}]},
        })
        assert result.codes() == ["invalid_operator"]

    def test_valueless_operator(self, validator, valid_payload) -> None:
        result = validator.validate_definition({
            **valid_payload,
            "conditional_logic": {"show_if": [{"field": "gender", "operator": "not_empty"}]},
        })
        assert result.is_valid

    def test_evaluate_operators(self) -> None:
        values = {"age": "30", "tags": ["a", "b"]}
        assert evaluate_condition({"field": "age", "operator": "greater_than", "value": 18}, values)
        assert evaluate_condition({"field": "tags", "operator": "contains", "value": "a"}, values)
        assert evaluate_condition({"field": "missing", "operator": "empty"}, values)
        assert not evaluate_condition({"field": "age", "operator": "equals", "value": "31"}, values)

    def test_hidden_definition_skipped(self, validator, make_definition) -> None:
        """A required field hidden by its conditions is not validated."""
        definition = make_definition(
            name="partner_name",
            is_required=True,
            conditional_logic={
                "show_if": [{"field": "relationship", "operator": "equals", "value": "married"}]
            },
        )
        assert not is_visible(definition, {"relationship": "single"})
        assert validator.validate_values([definition], {"relationship": "single"}).is_valid
        result = validator.validate_values([definition], {"relationship": "married"})
        assert result.codes() == ["required"]


class TestValueValidation:
    """Value validation and sanitization delegate to the registry."""

    def test_eye_color_values(self, validator, make_definition) -> None:
        definition = make_definition(
            name="eye_color",
            label="Eye Color",
            kind="select",
            options={"choices": {"brown": "Brown", "blue": "Blue"}},
        )
        assert validator.validate_value(definition, "green").codes() == ["invalid_choice"]
        assert validator.validate_value(definition, "brown").is_valid
        assert validator.sanitize_value(definition, "brown") == "brown"
