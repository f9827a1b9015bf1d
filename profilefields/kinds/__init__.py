"""Built-in attribute kinds."""

from profilefields.kinds.base import AttributeKind
from profilefields.kinds.choice import (
    CheckboxKind,
    EducationKind,
    GenderKind,
    InterestsKind,
    LookingForKind,
    MultiselectKind,
    RadioKind,
    RelationshipStatusKind,
    SelectKind,
    ZodiacKind,
)
from profilefields.kinds.composite import (
    AgeRangeKind,
    HeightKind,
    LifestyleKind,
    LocationKind,
    ProfessionKind,
    WeightKind,
)
from profilefields.kinds.numeric import DateKind, NumberKind, RangeKind
from profilefields.kinds.text import EmailKind, TextareaKind, TextKind, UrlKind

BUILTIN_KINDS: tuple[type[AttributeKind], ...] = (
    TextKind,
    TextareaKind,
    SelectKind,
    MultiselectKind,
    CheckboxKind,
    RadioKind,
    NumberKind,
    DateKind,
    EmailKind,
    UrlKind,
    RangeKind,
    AgeRangeKind,
    HeightKind,
    WeightKind,
    RelationshipStatusKind,
    LookingForKind,
    GenderKind,
    InterestsKind,
    LocationKind,
    EducationKind,
    ProfessionKind,
    ZodiacKind,
    LifestyleKind,
)

# Kinds whose definitions must carry at least one choice
CHOICE_KINDS: frozenset[str] = frozenset({"select", "multiselect", "radio"})

# Kinds whose min/max values must be ordered
NUMERIC_KINDS: frozenset[str] = frozenset({"number", "range"})

# Kinds whose min/max lengths must be ordered
TEXT_KINDS: frozenset[str] = frozenset({"text", "textarea"})

__all__ = [
    "AttributeKind",
    "BUILTIN_KINDS",
    "CHOICE_KINDS",
    "NUMERIC_KINDS",
    "TEXT_KINDS",
    "AgeRangeKind",
    "CheckboxKind",
    "DateKind",
    "EducationKind",
    "EmailKind",
    "GenderKind",
    "HeightKind",
    "InterestsKind",
    "LifestyleKind",
    "LocationKind",
    "LookingForKind",
    "MultiselectKind",
    "NumberKind",
    "ProfessionKind",
    "RadioKind",
    "RangeKind",
    "RelationshipStatusKind",
    "SelectKind",
    "TextKind",
    "TextareaKind",
    "UrlKind",
    "WeightKind",
    "ZodiacKind",
]
