"""
Blueprint selection - which documents a suite generates.

A pure function of the project type and detected feature flags the interview
classified.
"""

from typing import Iterable

DEFAULT_PROJECT_TYPE = "saas"

# Every project gets these
CORE_BLUEPRINTS = ("mvp-features", "backend", "database", "security")

PROJECT_TYPE_BLUEPRINTS: dict[str, tuple[str, ...]] = {
    "saas": ("design-system", "frontend"),
    "marketplace": ("design-system", "frontend", "payment-integration", "trust-safety"),
    "mobile": ("mobile-architecture", "push-notifications"),
    "ecommerce": ("design-system", "frontend", "payment-integration"),
    "internal": ("frontend",),
    "api": ("api-documentation",),
    "ai-product": ("design-system", "frontend", "prompt-engineering"),
    "cli": ("cli-architecture",),
    "iot": ("device-communication", "frontend"),
}

FEATURE_BLUEPRINTS: dict[str, str] = {
    "payments": "payment-integration",
    "real-time": "real-time-architecture",
    "notifications": "notification-system",
}

BLUEPRINT_TITLES: dict[str, str] = {
    "mvp-features": "MVP Feature List",
    "backend": "Backend Architecture PRD",
    "database": "Database Architecture",
    "security": "Security PRD",
    "design-system": "Design System PRD",
    "frontend": "Frontend Architecture PRD",
    "payment-integration": "Payment Integration PRD",
    "trust-safety": "Trust & Safety PRD",
    "mobile-architecture": "Mobile Architecture PRD",
    "push-notifications": "Push Notifications PRD",
    "api-documentation": "API Documentation PRD",
    "prompt-engineering": "Prompt Engineering PRD",
    "cli-architecture": "CLI Architecture PRD",
    "device-communication": "Device Communication PRD",
    "real-time-architecture": "Real-time Architecture PRD",
    "notification-system": "Notification System PRD",
}


def select_blueprints(
    project_type: str | None,
    detected_features: Iterable[str] | None,
) -> list[str]:
    """
    Core types, then project-type types, then feature types.

    De-duplicated, first occurrence wins. Unknown project types get only the
    core set; an absent one is treated as saas.
    """
    selected: dict[str, None] = dict.fromkeys(CORE_BLUEPRINTS)
    selected.update(dict.fromkeys(PROJECT_TYPE_BLUEPRINTS.get(project_type or DEFAULT_PROJECT_TYPE, ())))
    for feature in detected_features or ():
        blueprint = FEATURE_BLUEPRINTS.get(feature)
        if blueprint:
            selected.setdefault(blueprint, None)
    return list(selected)


def get_blueprint_title(blueprint_type: str) -> str:
    return BLUEPRINT_TITLES.get(blueprint_type, f"{blueprint_type} PRD")
