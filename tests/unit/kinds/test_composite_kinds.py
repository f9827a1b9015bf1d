"""Unit tests for composite kinds."""

from profilefields.kinds.composite import (
    AgeRangeKind,
    HeightKind,
    LifestyleKind,
    LocationKind,
    ProfessionKind,
    WeightKind,
)


class TestAgeRangeKind:
    """Tests for age range preferences."""

    def test_valid_range(self, make_definition) -> None:
        definition = make_definition(kind="age_range")
        assert AgeRangeKind().validate(definition, {"min": 25, "max": 35}).is_valid

    def test_json_encoded_range(self, make_definition) -> None:
        """A JSON string is decoded before checking."""
        definition = make_definition(kind="age_range")
        assert AgeRangeKind().validate(definition, '{"min": 25, "max": 35}').is_valid

    def test_inverted_range(self, make_definition) -> None:
        definition = make_definition(kind="age_range")
        result = AgeRangeKind().validate(definition, {"min": 40, "max": 30})
        assert result.codes() == ["invalid_range"]

    def test_below_minimum_age(self, make_definition) -> None:
        definition = make_definition(kind="age_range")
        result = AgeRangeKind().validate(definition, {"min": 10, "max": 30})
        assert result.codes() == ["invalid_range"]

    def test_not_a_mapping(self, make_definition) -> None:
        definition = make_definition(kind="age_range")
        assert AgeRangeKind().validate(definition, "junk").codes() == ["invalid_format"]

    def test_required_missing(self, make_definition) -> None:
        definition = make_definition(kind="age_range", is_required=True)
        assert AgeRangeKind().validate(definition, None).codes() == ["required"]

    def test_sanitize_fills_limits(self, make_definition) -> None:
        """Missing parts default to the configured limits."""
        definition = make_definition(kind="age_range")
        assert AgeRangeKind().sanitize(definition, {"min": "25.6"}) == {"min": 25, "max": 99}

    def test_render_parts(self, make_definition) -> None:
        html = AgeRangeKind().render(make_definition(kind="age_range"), {"min": 20, "max": 30})
        assert 'name="test_field[min]"' in html
        assert 'name="test_field[max]"' in html


class TestMeasureKinds:
    """Tests for height and weight."""

    def test_bare_number_is_metric(self, make_definition) -> None:
        assert HeightKind().validate(make_definition(kind="height"), 180).is_valid

    def test_imperial_height(self, make_definition) -> None:
        """Feet and inches convert to centimetres before the bounds check."""
        definition = make_definition(kind="height")
        assert HeightKind().validate(definition, {"feet": 6, "inches": 0}).is_valid

    def test_height_out_of_range(self, make_definition) -> None:
        definition = make_definition(kind="height")
        assert HeightKind().validate(definition, {"cm": 300}).codes() == ["out_of_range"]

    def test_unknown_unit(self, make_definition) -> None:
        definition = make_definition(kind="height")
        assert HeightKind().validate(definition, {"stone": 5}).codes() == ["invalid_part"]

    def test_weight_in_pounds(self, make_definition) -> None:
        definition = make_definition(kind="weight")
        assert WeightKind().validate(definition, {"lbs": 150}).is_valid

    def test_sanitize_height(self, make_definition) -> None:
        definition = make_definition(kind="height")
        assert HeightKind().sanitize(definition, {"cm": "180", "bogus": 1}) == {"cm": 180}
        assert HeightKind().sanitize(definition, 175) == 175
        assert HeightKind().sanitize(definition, "") is None


class TestLocationKind:
    """Tests for locations with privacy."""

    def test_valid_location(self, make_definition) -> None:
        definition = make_definition(kind="location")
        value = {"city": "Paris", "country": "FR", "privacy": "city"}
        assert LocationKind().validate(definition, value).is_valid

    def test_bad_privacy_level(self, make_definition) -> None:
        """The privacy part must be one of the configured levels."""
        definition = make_definition(kind="location")
        result = LocationKind().validate(definition, {"city": "Paris", "privacy": "bogus"})
        assert result.codes() == ["invalid_choice"]
        assert result.errors[0].field == "test_field.privacy"

    def test_unknown_part(self, make_definition) -> None:
        definition = make_definition(kind="location")
        result = LocationKind().validate(definition, {"planet": "Mars"})
        assert "invalid_part" in result.codes()

    def test_sanitize_resets_bad_privacy(self, make_definition) -> None:
        definition = make_definition(kind="location")
        value = {"city": "<b>Paris</b>", "privacy": "bogus"}
        assert LocationKind().sanitize(definition, value) == {"city": "Paris", "privacy": "city"}


class TestProfessionKind:
    def test_plain_title(self, make_definition) -> None:
        """A bare string is treated as the job title."""
        definition = make_definition(kind="profession")
        assert ProfessionKind().validate(definition, "Engineer").is_valid
        assert ProfessionKind().sanitize(definition, "Engineer") == {"title": "Engineer"}

    def test_company_disabled_by_default(self, make_definition) -> None:
        definition = make_definition(kind="profession")
        result = ProfessionKind().validate(definition, {"company": "Acme"})
        assert result.codes() == ["invalid_part"]


class TestLifestyleKind:
    def test_valid_choice(self, make_definition) -> None:
        definition = make_definition(kind="lifestyle")
        assert LifestyleKind().validate(definition, {"smoking": "never"}).is_valid

    def test_invalid_choice(self, make_definition) -> None:
        definition = make_definition(kind="lifestyle")
        result = LifestyleKind().validate(definition, {"smoking": "sometimes"})
        assert result.codes() == ["invalid_choice"]

    def test_unknown_category(self, make_definition) -> None:
        definition = make_definition(kind="lifestyle")
        result = LifestyleKind().validate(definition, {"diet": "vegan"})
        assert result.codes() == ["invalid_part"]

    def test_render_category_selects(self, make_definition) -> None:
        html = LifestyleKind().render(make_definition(kind="lifestyle"), {"smoking": "never"})
        assert 'name="test_field[smoking]"' in html
        assert '<option value="never" selected>Never</option>' in html
