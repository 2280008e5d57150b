"""Input and output contracts of the draft generator."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

ScopeItems = list[str] | list["ScopeSection"]


@dataclass(slots=True)
class JobDescriptor:
    """What the requester asked to have proposed."""

    job_id: int
    client_name: str
    address: str
    trade_id: str
    trade_name: str | None
    job_type_id: str
    job_type_name: str
    job_size: int
    job_notes: str | None = None


@dataclass(slots=True)
class TemplateSpec:
    """Baseline scope, price and duration for one trade/job type."""

    trade_id: str
    trade_name: str
    job_type_id: str
    job_type_name: str
    base_scope: list[Any]
    base_price_low: int
    base_price_high: int
    estimated_days_low: int | None = None
    estimated_days_high: int | None = None
    warranty: str | None = None
    exclusions: list[str] = field(default_factory=list)


@dataclass(slots=True)
class UserMultipliers:
    """Contractor pricing adjustments, in percent (100 = unchanged)."""

    price_multiplier: int = 100
    trade_multipliers: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class PhotoDescriptor:
    public_url: str
    kind: str
    findings: dict[str, Any] | None = None


@dataclass(slots=True)
class DraftInputs:
    """Everything the generator needs, resolved from the store by the worker."""

    job: JobDescriptor
    template: TemplateSpec
    user: UserMultipliers
    photos: list[PhotoDescriptor] = field(default_factory=list)


@dataclass(slots=True)
class ScopeSection:
    title: str
    items: list[str]

    def to_json(self) -> dict[str, Any]:
        return {"title": self.title, "items": list(self.items)}


@dataclass(slots=True)
class LineItem:
    """One priced trade line of a proposal draft."""

    line_item_id: str
    trade_id: str
    trade_name: str | None
    job_type_id: str
    job_type_name: str
    job_size: int
    scope: ScopeItems
    price_low: int
    price_high: int
    estimated_days_low: int | None = None
    estimated_days_high: int | None = None
    warranty: str | None = None
    exclusions: list[str] = field(default_factory=list)

    def to_json(self) -> dict[str, Any]:
        return {
            "id": self.line_item_id,
            "trade_id": self.trade_id,
            "trade_name": self.trade_name,
            "job_type_id": self.job_type_id,
            "job_type_name": self.job_type_name,
            "job_size": self.job_size,
            "scope": [
                item.to_json() if isinstance(item, ScopeSection) else item for item in self.scope
            ],
            "price_low": self.price_low,
            "price_high": self.price_high,
            "estimated_days_low": self.estimated_days_low,
            "estimated_days_high": self.estimated_days_high,
            "warranty": self.warranty,
            "exclusions": list(self.exclusions),
        }


@dataclass(slots=True)
class PackageTier:
    label: str
    line_items: list[LineItem]


@dataclass(slots=True)
class DraftResult:
    """Generator output persisted as the draft payload."""

    line_items: list[LineItem]
    confidence: int
    questions: list[str]
    packages: dict[str, PackageTier] = field(default_factory=dict)
    default_package: str | None = None
    scope_enhanced: bool = False
    pricing: dict[str, Any] = field(default_factory=dict)

    def to_payload(self) -> dict[str, Any]:
        return {
            "line_items": [item.to_json() for item in self.line_items],
            "packages": {
                key: {
                    "label": tier.label,
                    "line_items": [item.to_json() for item in tier.line_items],
                }
                for key, tier in self.packages.items()
            },
            "default_package": self.default_package,
            "confidence": self.confidence,
            "questions": list(self.questions),
            "scope_enhanced": self.scope_enhanced,
            "pricing": dict(self.pricing),
        }
