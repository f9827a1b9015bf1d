"""Starter schema for a fresh deployment.

``DefinitionManager.install_default_definitions`` seeds these as system
definitions. Options only list what differs from the kind's own defaults.
"""

from typing import Any

DEFAULT_GROUPS: tuple[dict[str, Any], ...] = (
    {
        "name": "basic",
        "label": "Basic Information",
        "description": "Essential profile information",
        "icon": "admin-users",
        "order": 10,
    },
    {
        "name": "physical",
        "label": "Physical Attributes",
        "description": "Physical characteristics and appearance",
        "icon": "universal-access",
        "order": 20,
    },
    {
        "name": "lifestyle",
        "label": "Lifestyle",
        "description": "Lifestyle choices and habits",
        "icon": "heart",
        "order": 30,
    },
    {
        "name": "interests",
        "label": "Interests & Hobbies",
        "description": "Activities, hobbies, and interests",
        "icon": "star-filled",
        "order": 40,
    },
    {
        "name": "relationship",
        "label": "Relationship Goals",
        "description": "Dating intentions and relationship preferences",
        "icon": "groups",
        "order": 50,
    },
    {
        "name": "background",
        "label": "Background",
        "description": "Education, career, and cultural background",
        "icon": "building",
        "order": 60,
    },
)

DEFAULT_DEFINITIONS: tuple[dict[str, Any], ...] = (
    {
        "name": "gender",
        "label": "Gender",
        "kind": "gender",
        "description": "Your gender identity",
        "group": "basic",
        "is_required": True,
        "is_searchable": True,
    },
    {
        "name": "age_range_seeking",
        "label": "Age Range Seeking",
        "kind": "age_range",
        "description": "Age range you are looking for in a partner",
        "group": "preferences",
        "is_searchable": True,
    },
    {
        "name": "height",
        "label": "Height",
        "kind": "height",
        "description": "Your height",
        "group": "basic",
        "is_searchable": True,
        "options": {"units": "both"},
    },
    {
        "name": "location",
        "label": "Location",
        "kind": "location",
        "description": "Your location for matching purposes",
        "group": "basic",
        "is_required": True,
        "is_searchable": True,
        "options": {"enable_map": True},
    },
    {
        "name": "relationship_status",
        "label": "Relationship Status",
        "kind": "relationship_status",
        "description": "Your current relationship status",
        "group": "relationship",
        "is_required": True,
        "is_searchable": True,
    },
    {
        "name": "looking_for",
        "label": "Looking For",
        "kind": "looking_for",
        "description": "What you are seeking in a relationship",
        "group": "preferences",
        "is_required": True,
        "is_searchable": True,
        "options": {"max_selections": 3},
    },
    {
        "name": "about_me",
        "label": "About Me",
        "kind": "textarea",
        "description": "Tell others about yourself",
        "placeholder": (
            "Share a bit about your personality, interests, and what makes you unique..."
        ),
        "group": "about",
        "is_searchable": True,
        "options": {"rows": 6, "maxlength": 1000},
        "validation_rules": {"max_length": 1000},
    },
    {
        "name": "interests",
        "label": "Interests & Hobbies",
        "kind": "interests",
        "description": "Select your interests and hobbies",
        "group": "about",
        "is_searchable": True,
    },
)
