"""NAPWATCH — Recommendation Engine.

One recommendation per discrepancy, ranked by priority and capped:
- Priority from severity (critical → critical, major → high, minor → medium)
- Impact from the discrepancy's impact category
- Effort from the affected field
"""

from typing import List

from app.core.logging import get_logger
from app.models.audit_models import (
    Discrepancy,
    Impact,
    Level,
    PlatformSnapshot,
    Priority,
    Recommendation,
    Severity,
)

logger = get_logger("analyzer.recommendation")

MAX_RECOMMENDATIONS = 10

SEVERITY_TO_PRIORITY = {
    Severity.CRITICAL: Priority.CRITICAL,
    Severity.MAJOR: Priority.HIGH,
    Severity.MINOR: Priority.MEDIUM,
}

PRIORITY_ORDER = {
    Priority.CRITICAL: 4,
    Priority.HIGH: 3,
    Priority.MEDIUM: 2,
    Priority.LOW: 1,
}

IMPACT_TO_LEVEL = {
    Impact.LOCAL_PACK: Level.HIGH,
    Impact.ORGANIC: Level.MEDIUM,
    Impact.CITATIONS: Level.MEDIUM,
    Impact.BRAND: Level.LOW,
}

FIELD_EFFORT = {
    "phone": Level.LOW,
    "email": Level.LOW,
    "name": Level.HIGH,
}


def priority_for(severity: Severity) -> Priority:
    # LOW is reserved for advisories that do not come from a discrepancy
    return SEVERITY_TO_PRIORITY.get(severity, Priority.LOW)


def impact_for(discrepancy: Discrepancy) -> Level:
    return IMPACT_TO_LEVEL.get(discrepancy.impact, Level.LOW)


def effort_for(discrepancy: Discrepancy) -> Level:
    return FIELD_EFFORT.get(discrepancy.field, Level.MEDIUM)


def fix_instructions(discrepancy: Discrepancy) -> List[str]:
    """Ordered, human-readable steps to correct the listing."""
    expected = discrepancy.expected_value
    if discrepancy.field == "name":
        return [
            "1. Log into your account on the platform",
            "2. Navigate to business information section",
            f'3. Update business name to exact match: "{expected}"',
            "4. Verify the change and save",
        ]
    if discrepancy.field == "phone":
        return [
            "1. Access business listing management",
            f"2. Update phone number to: {expected}",
            "3. Ensure international format consistency",
            "4. Test the number to confirm it works",
        ]
    if discrepancy.field == "address":
        component = (discrepancy.component or "address").replace("_", " ")
        return [
            "1. Locate address section in business profile",
            f'2. Update the {component} to match master data: "{expected}"',
            "3. Verify address formatting standards",
            "4. Confirm changes save properly",
        ]
    return [
        "1. Access business information settings",
        f'2. Update the {discrepancy.field} to match master data: "{expected}"',
        "3. Save changes and verify update",
    ]


def _action(discrepancy: Discrepancy) -> str:
    if discrepancy.field == "address" and discrepancy.component:
        return f"Fix address {discrepancy.component} inconsistency"
    return f"Fix {discrepancy.field} inconsistency"


def compute_recommendations(
    platforms: List[PlatformSnapshot],
    auto_fix_enabled: bool = False,
    limit: int = MAX_RECOMMENDATIONS,
) -> List[Recommendation]:
    """Rank remediation steps for every discrepancy across all platforms."""
    recommendations: List[Recommendation] = []

    for platform in platforms:
        for d in platform.discrepancies:
            recommendations.append(
                Recommendation(
                    priority=priority_for(d.severity),
                    action=_action(d),
                    platform=platform.platform,
                    field=d.field,
                    expected_value=d.expected_value,
                    estimated_impact=impact_for(d),
                    effort=effort_for(d),
                    instructions=fix_instructions(d),
                    auto_fix_eligible=auto_fix_enabled and d.fixable,
                )
            )

    # Stable: equal priorities keep platform / field order
    recommendations.sort(key=lambda r: PRIORITY_ORDER[r.priority], reverse=True)

    logger.info(
        f"Generated {len(recommendations)} recommendations, keeping top {min(limit, len(recommendations))}"
    )
    return recommendations[:limit]
