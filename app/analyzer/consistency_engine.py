"""NAPWATCH — Consistency Engine.

Compares one platform snapshot field-by-field against the master record:
- Name: exact match; severity by missing brand / category token
- Phone: normalized digits; any mismatch is critical
- Address: each component independently; severity from policy
- Email: only when the platform publishes one
- Website: scheme / www / trailing slash insensitive
"""

from typing import List, Optional

from app.analyzer.normalization import (
    normalize_address_component,
    normalize_email,
    normalize_phone,
    normalize_website,
)
from app.core.logging import get_logger
from app.models.audit_models import Discrepancy, Impact, Severity
from app.models.config_models import ComparisonPolicy
from app.models.identity_models import (
    ADDRESS_COMPONENTS,
    MasterIdentityRecord,
    RawSnapshot,
)

logger = get_logger("analyzer.consistency")


def _name_tokens(name: str) -> List[str]:
    return [t for t in name.casefold().replace("-", " ").split() if t]


def brand_and_category_tokens(
    master_name: str, policy: ComparisonPolicy
) -> tuple[List[str], List[str]]:
    """Resolve brand/category tokens, deriving them from the master name if unset."""
    tokens = _name_tokens(master_name)
    brand = [t.casefold() for t in policy.brand_tokens] or tokens[:1]
    category = [t.casefold() for t in policy.category_tokens] or tokens[1:]
    return brand, category


def name_severity(
    platform_name: str, master_name: str, policy: ComparisonPolicy
) -> Severity:
    """Critical without a brand token, major when any category token is missing."""
    lowered = platform_name.casefold()
    brand, category = brand_and_category_tokens(master_name, policy)
    if brand and not any(t in lowered for t in brand):
        return Severity.CRITICAL
    if category and not all(t in lowered for t in category):
        return Severity.MAJOR
    return Severity.MINOR


def _discrepancy(
    field: str,
    current: Optional[str],
    expected: Optional[str],
    severity: Severity,
    impact: Impact,
    platform: str,
    component: Optional[str] = None,
) -> Discrepancy:
    return Discrepancy(
        field=field,
        current_value=current or "",
        expected_value=expected or "",
        severity=severity,
        impact=impact,
        fixable=True,
        platform=platform,
        component=component,
    )


def compare_address(
    raw: RawSnapshot, master: MasterIdentityRecord, policy: ComparisonPolicy
) -> List[Discrepancy]:
    """One discrepancy per mismatching address component."""
    discrepancies: List[Discrepancy] = []
    for component in ADDRESS_COMPONENTS:
        current = getattr(raw.address, component)
        expected = getattr(master.address, component)
        if policy.normalize_address:
            same = normalize_address_component(current) == normalize_address_component(
                expected
            )
        else:
            same = current == expected
        if same:
            continue
        severity = policy.address_component_severity.get(component, Severity.MINOR)
        discrepancies.append(
            _discrepancy(
                "address",
                current,
                expected,
                severity,
                Impact.LOCAL_PACK,
                raw.platform,
                component=component,
            )
        )
    return discrepancies


def compare(
    raw: RawSnapshot,
    master: MasterIdentityRecord,
    policy: ComparisonPolicy | None = None,
) -> List[Discrepancy]:
    """Return every field-level discrepancy between ``raw`` and ``master``."""
    policy = policy or ComparisonPolicy()
    discrepancies: List[Discrepancy] = []

    # 1. Name — literal comparison
    if raw.name != master.name:
        discrepancies.append(
            _discrepancy(
                "name",
                raw.name,
                master.name,
                name_severity(raw.name, master.name, policy),
                Impact.BRAND,
                raw.platform,
            )
        )

    # 2. Phone
    if policy.normalize_phone:
        phone_differs = normalize_phone(
            raw.phone, policy.default_country_code
        ) != normalize_phone(master.phone, policy.default_country_code)
    else:
        phone_differs = raw.phone != master.phone
    if phone_differs:
        discrepancies.append(
            _discrepancy(
                "phone",
                raw.phone,
                master.phone,
                Severity.CRITICAL,
                Impact.LOCAL_PACK,
                raw.platform,
            )
        )

    # 3. Address components
    discrepancies.extend(compare_address(raw, master, policy))

    # 4. Email — only when published
    if raw.email and normalize_email(raw.email) != normalize_email(master.email or ""):
        discrepancies.append(
            _discrepancy(
                "email",
                raw.email,
                master.email,
                Severity.MINOR,
                Impact.CITATIONS,
                raw.platform,
            )
        )

    # 5. Website
    if policy.check_website and normalize_website(raw.website) != normalize_website(
        master.website
    ):
        discrepancies.append(
            _discrepancy(
                "website",
                raw.website,
                master.website,
                Severity.MINOR,
                Impact.ORGANIC,
                raw.platform,
            )
        )

    logger.info(
        f"{raw.platform}: {len(discrepancies)} discrepancies",
        extra={"platform": raw.platform},
    )
    return discrepancies
