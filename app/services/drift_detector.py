# app/services/drift_detector.py
"""
Field-level comparison of a local catalog record against its Stripe mirror.

The detector is pure: it never calls Stripe or the database. Given the same
inputs it returns the same discrepancies in the same order.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional

from app.core.config import GENERIC_TAX_CODE
from app.core.enums import DriftKind
from app.schemas.platform.stripe import RemoteProduct, RemotePrice
from app.services.catalog_store import LocalProductRecord, CENT

logger = logging.getLogger(__name__)

# Metadata keys compared by the detector, in report order
COMPARED_METADATA_KEYS = ("weight", "selling_price", "regular_price")


def format_weight(weight: Decimal) -> str:
    """``Decimal("45.00")`` -> ``"45"``, ``Decimal("2.50")`` -> ``"2.5"``."""
    value = Decimal(weight)
    if value == value.to_integral_value():
        return str(value.to_integral_value())
    return format(value.normalize(), "f")


def format_money(amount: Optional[Decimal]) -> str:
    if amount is None:
        return ""
    return str(Decimal(amount).quantize(CENT))


def format_cents(cents: Optional[int]) -> str:
    if cents is None:
        return "unknown"
    return f"${Decimal(cents) / 100:.2f}"


def metadata_value(local: LocalProductRecord, key: str) -> str:
    """String form of one compared metadata key, as it is written to Stripe."""
    if key == "weight":
        return format_weight(local.weight)
    if key == "selling_price":
        return format_money(local.selling_price)
    if key == "regular_price":
        return format_money(local.regular_price)
    raise KeyError(key)


@dataclass
class DriftIssue:
    """One discrepancy and the corrective action it calls for."""
    kind: DriftKind
    message: str
    action: str
    metadata_key: Optional[str] = None
    local_value: Optional[str] = None
    remote_value: Optional[str] = None


@dataclass
class DriftReport:
    """Ordered discrepancies for one product. Never persisted."""
    product_id: int
    issues: List[DriftIssue] = field(default_factory=list)
    recommended_tax_code: Optional[str] = None

    @property
    def discrepancies(self) -> List[str]:
        return [issue.message for issue in self.issues]

    @property
    def actions(self) -> List[str]:
        return [issue.action for issue in self.issues]

    @property
    def has_drift(self) -> bool:
        return bool(self.issues)

    @property
    def never_synced(self) -> bool:
        return any(issue.kind == DriftKind.NOT_SYNCED for issue in self.issues)

    @property
    def needs_new_price(self) -> bool:
        return any(issue.kind.is_price for issue in self.issues)

    @property
    def kinds(self) -> List[DriftKind]:
        return [issue.kind for issue in self.issues]

    def has(self, kind: DriftKind) -> bool:
        return kind in self.kinds

    def to_dict(self) -> Dict:
        return {
            "product_id": self.product_id,
            "discrepancies": self.discrepancies,
            "actions": self.actions,
            "recommended_tax_code": self.recommended_tax_code,
        }


class DriftDetector:
    """
    Compares local state with Stripe state.

    ``default_tax_code`` is the resolved business tax code (configuration or
    the generic tangible-goods code). The placeholder advisory is only raised
    when a business-specific code has been configured.
    """

    def __init__(self, default_tax_code: str = GENERIC_TAX_CODE,
                 description_template: str = "Hi-Temp {weight}lb Bumper Plate - Factory Second"):
        self.default_tax_code = default_tax_code or GENERIC_TAX_CODE
        self.description_template = description_template

    def expected_description(self, local: LocalProductRecord) -> str:
        description = (local.description or "").strip()
        if description:
            return description
        return self.description_template.format(weight=format_weight(local.weight))

    def detect(
        self,
        local: LocalProductRecord,
        remote: Optional[RemoteProduct],
        remote_price: Optional[RemotePrice] = None,
    ) -> DriftReport:
        report = DriftReport(product_id=local.id, recommended_tax_code=self.default_tax_code)

        if remote is None:
            report.issues.append(DriftIssue(
                kind=DriftKind.NOT_SYNCED,
                message="not synced",
                action="create remote product + price",
            ))
            return report

        # Name
        if remote.name != local.title:
            report.issues.append(DriftIssue(
                kind=DriftKind.NAME,
                message=f"name mismatch: remote '{remote.name}' vs local '{local.title}'",
                action=f"update name to '{local.title}'",
                local_value=local.title,
                remote_value=remote.name,
            ))

        # Description
        expected = self.expected_description(local)
        if (remote.description or "") != expected:
            report.issues.append(DriftIssue(
                kind=DriftKind.DESCRIPTION,
                message=f"description mismatch: remote '{remote.description or ''}' vs expected '{expected}'",
                action="update description",
                local_value=expected,
                remote_value=remote.description,
            ))

        # Metadata, one issue per key
        for key in COMPARED_METADATA_KEYS:
            expected_value = metadata_value(local, key)
            remote_value = remote.metadata.get(key, "")
            if remote_value != expected_value:
                report.issues.append(DriftIssue(
                    kind=DriftKind.METADATA,
                    message=f"metadata {key} mismatch: remote '{remote_value}' vs local '{expected_value}'",
                    action=f"update metadata {key} to '{expected_value}'",
                    metadata_key=key,
                    local_value=expected_value,
                    remote_value=remote_value,
                ))

        # Tax code
        if not remote.tax_code:
            report.issues.append(DriftIssue(
                kind=DriftKind.TAX_CODE_MISSING,
                message="missing tax code",
                action=f"set tax code to {self.default_tax_code}",
                local_value=self.default_tax_code,
            ))
        elif remote.tax_code == GENERIC_TAX_CODE and self.default_tax_code != GENERIC_TAX_CODE:
            report.issues.append(DriftIssue(
                kind=DriftKind.TAX_CODE_PLACEHOLDER,
                message="uses default placeholder, should be business-specific code",
                action=f"set tax code to {self.default_tax_code}",
                local_value=self.default_tax_code,
                remote_value=remote.tax_code,
            ))

        # Price
        expected_cents = local.selling_price_cents
        if remote_price is None:
            report.issues.append(DriftIssue(
                kind=DriftKind.PRICE_UNRESOLVABLE,
                message="current price id not resolvable",
                action=f"create new price at {format_cents(expected_cents)}",
                local_value=str(expected_cents),
                remote_value=local.stripe_price_id,
            ))
        elif remote_price.unit_amount != expected_cents:
            report.issues.append(DriftIssue(
                kind=DriftKind.PRICE_AMOUNT,
                message=(f"price mismatch: remote {remote_price.unit_amount} cents "
                         f"vs local {expected_cents} cents"),
                action=f"create new price at {format_cents(expected_cents)}",
                local_value=str(expected_cents),
                remote_value=str(remote_price.unit_amount),
            ))

        if report.issues:
            logger.debug(f"Product {local.id}: {len(report.issues)} discrepancies")
        return report
