"""Template-based draft generator: scope, price range, packages, confidence."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, replace
from typing import Any, Protocol
from uuid import uuid4

from proposal_drafts.generator.enhancer import (
    ScopeEnhancementError,
    ScopeEnhancer,
    ScopeEnhanceRequest,
    UnconfiguredScopeEnhancer,
)
from proposal_drafts.generator.models import (
    DraftInputs,
    DraftResult,
    LineItem,
    PackageTier,
    PhotoDescriptor,
    ScopeItems,
    ScopeSection,
)
from proposal_drafts.generator.pricing import (
    PricingInputs,
    compute_duration_range,
    compute_price_range,
    market_multiplier,
    percent_to_factor,
    round_half_up,
    trade_multiplier,
)

logger = logging.getLogger(__name__)

REVIEW_SCOPE_QUESTION = "Review the generated scope and adjust for site-specific conditions."
ADD_PHOTO_QUESTION = "Add at least 1 photo to improve accuracy."

ENHANCED_BASE_CONFIDENCE = 70
UNENHANCED_BASE_CONFIDENCE = 45
MAX_CONFIDENCE = 95
DEGRADED_CONFIDENCE_CEILING = 60
MAX_PHOTO_QUESTIONS = 5
MAX_VISION_LABELS = 12

DEFAULT_PACKAGE = "better"
_UNTITLED_SECTION = "General"


class DraftGenerator(Protocol):
    """Protocol implemented by draft generators."""

    def generate(self, inputs: DraftInputs) -> DraftResult:
        """Compute a draft from resolved inputs."""


@dataclass(slots=True, frozen=True)
class _PackageSpec:
    key: str
    label: str
    price_factor: float
    extra_scope: tuple[str, ...]


_PACKAGE_SPECS: tuple[_PackageSpec, ...] = (
    _PackageSpec(key="good", label="Good", price_factor=1.0, extra_scope=()),
    _PackageSpec(
        key="better",
        label="Better",
        price_factor=1.08,
        extra_scope=(
            "Confirm field measurements and verify existing conditions prior to install.",
        ),
    ),
    _PackageSpec(
        key="best",
        label="Best",
        price_factor=1.18,
        extra_scope=(
            "Include premium protection of adjacent finishes and enhanced daily jobsite cleanup.",
            "Provide photo documentation of key in-wall conditions as discovered.",
        ),
    ),
)


class TemplateDraftGenerator:
    """Builds a draft from the matching template, user multipliers and photo findings.

    Deterministic given its inputs except for scope enhancement. An enhancement
    failure never propagates: the baseline template scope is used instead,
    confidence is capped and the requester is asked to review the scope.
    """

    def __init__(
        self,
        *,
        enhancer: ScopeEnhancer | None = None,
        labor_rates: Mapping[str, Sequence[float]] | None = None,
        pricebook_version: str = "v1",
    ) -> None:
        self.enhancer = enhancer or UnconfiguredScopeEnhancer()
        self.labor_rates = dict(labor_rates or {})
        self.pricebook_version = pricebook_version

    def generate(self, inputs: DraftInputs) -> DraftResult:
        job = inputs.job
        template = inputs.template
        photos = inputs.photos

        needs_more_photos, vision_labels = _collect_findings(photos)
        baseline_scope = normalize_scope(template.base_scope)
        scope, enhanced = self._enhance_scope(
            inputs=inputs,
            baseline_scope=baseline_scope,
            vision_labels=vision_labels,
        )

        market = market_multiplier(template.trade_id, self.labor_rates)
        pricing_inputs = PricingInputs(
            base_price_low=template.base_price_low,
            base_price_high=template.base_price_high,
            job_size=job.job_size,
            user_multiplier=percent_to_factor(inputs.user.price_multiplier),
            trade_multiplier=trade_multiplier(inputs.user.trade_multipliers, template.trade_id),
            market_multiplier=market.multiplier,
        )
        price_low, price_high = compute_price_range(pricing_inputs)
        days_low, days_high = compute_duration_range(
            days_low=template.estimated_days_low,
            days_high=template.estimated_days_high,
            job_size=job.job_size,
        )

        line_item = LineItem(
            line_item_id=uuid4().hex,
            trade_id=template.trade_id,
            trade_name=template.trade_name,
            job_type_id=template.job_type_id,
            job_type_name=template.job_type_name,
            job_size=job.job_size,
            scope=scope,
            price_low=price_low,
            price_high=price_high,
            estimated_days_low=days_low,
            estimated_days_high=days_high,
            warranty=template.warranty,
            exclusions=list(template.exclusions),
        )

        questions: list[str] = []
        if not enhanced:
            questions.append(REVIEW_SCOPE_QUESTION)
        if not photos:
            questions.append(ADD_PHOTO_QUESTION)
        questions.extend(needs_more_photos[:MAX_PHOTO_QUESTIONS])

        confidence = _score_confidence(
            enhanced=enhanced,
            photo_count=len(photos),
            job_notes=job.job_notes,
            needs_more_photos=bool(needs_more_photos),
            has_market_data=market.basis != "none",
        )

        return DraftResult(
            line_items=[line_item],
            confidence=confidence,
            questions=questions,
            packages=_build_packages(line_item),
            default_package=DEFAULT_PACKAGE,
            scope_enhanced=enhanced,
            pricing={
                "pricebook_version": self.pricebook_version,
                "inputs": {**pricing_inputs.to_json(), "market_basis": market.basis},
            },
        )

    def _enhance_scope(
        self,
        *,
        inputs: DraftInputs,
        baseline_scope: ScopeItems,
        vision_labels: list[str],
    ) -> tuple[ScopeItems, bool]:
        job = inputs.job
        notes = job.job_notes
        if not notes and inputs.photos:
            notes = f"Photos captured: {len(inputs.photos)}."
            if vision_labels:
                notes += f" Vision labels: {', '.join(vision_labels[:MAX_VISION_LABELS])}"
        request = ScopeEnhanceRequest(
            job_type_name=inputs.template.job_type_name,
            base_scope=flatten_scope(baseline_scope),
            client_name=job.client_name,
            address=job.address,
            job_notes=notes,
        )
        try:
            return self.enhancer.enhance(request), True
        except ScopeEnhancementError as error:
            logger.warning(
                "Scope enhancement failed for job %s (%s): %s",
                job.job_id,
                error.code,
                error,
            )
        except Exception:  # noqa: BLE001
            logger.warning("Scope enhancement crashed for job %s", job.job_id, exc_info=True)
        return baseline_scope, False


def normalize_scope(raw: Sequence[Any]) -> ScopeItems:
    """Template scope as a flat list, or as titled sections when any entry is a section."""

    if all(isinstance(item, str) for item in raw):
        return [item for item in raw if item.strip()]

    sections: list[ScopeSection] = []
    loose: list[str] = []
    for item in raw:
        if isinstance(item, str):
            if item.strip():
                loose.append(item)
        elif isinstance(item, Mapping):
            items = [str(line) for line in item.get("items") or [] if str(line).strip()]
            sections.append(ScopeSection(title=str(item.get("title") or _UNTITLED_SECTION), items=items))
    if loose:
        sections.insert(0, ScopeSection(title=_UNTITLED_SECTION, items=loose))
    return sections


def flatten_scope(scope: ScopeItems) -> list[str]:
    lines: list[str] = []
    for item in scope:
        if isinstance(item, ScopeSection):
            lines.extend(item.items)
        else:
            lines.append(item)
    return lines


def _extend_scope(scope: ScopeItems, extra: Sequence[str]) -> ScopeItems:
    if not extra:
        return list(scope)
    if scope and isinstance(scope[0], ScopeSection):
        return [*scope, ScopeSection(title="Additional", items=list(extra))]
    return [*scope, *extra]


def _collect_findings(photos: Sequence[PhotoDescriptor]) -> tuple[list[str], list[str]]:
    """Distinct "needs more photos" prompts and summary labels, in first-seen order."""

    needs_more: dict[str, None] = {}
    labels: dict[str, None] = {}
    for photo in photos:
        combined = (photo.findings or {}).get("combined")
        if not isinstance(combined, Mapping):
            continue
        for prompt in combined.get("needs_more_photos") or []:
            if isinstance(prompt, str) and prompt.strip():
                needs_more.setdefault(prompt.strip(), None)
        for label in combined.get("summary_labels") or []:
            if isinstance(label, str) and label.strip():
                labels.setdefault(label.strip(), None)
    return list(needs_more), list(labels)


def _score_confidence(
    *,
    enhanced: bool,
    photo_count: int,
    job_notes: str | None,
    needs_more_photos: bool,
    has_market_data: bool,
) -> int:
    confidence = ENHANCED_BASE_CONFIDENCE if enhanced else UNENHANCED_BASE_CONFIDENCE
    if photo_count >= 3:
        confidence += 10
    if job_notes and len(job_notes) > 20:
        confidence += 5
    if not needs_more_photos and photo_count >= 3:
        confidence += 5
    if has_market_data:
        confidence += 5
    ceiling = MAX_CONFIDENCE if enhanced else DEGRADED_CONFIDENCE_CEILING
    return max(0, min(ceiling, confidence))


def _build_packages(line_item: LineItem) -> dict[str, PackageTier]:
    packages: dict[str, PackageTier] = {}
    for tier in _PACKAGE_SPECS:
        tier_item = replace(
            line_item,
            line_item_id=line_item.line_item_id if tier.price_factor == 1.0 else uuid4().hex,
            scope=_extend_scope(line_item.scope, tier.extra_scope),
            price_low=round_half_up(line_item.price_low * tier.price_factor),
            price_high=round_half_up(line_item.price_high * tier.price_factor),
            exclusions=list(line_item.exclusions),
        )
        packages[tier.key] = PackageTier(label=tier.label, line_items=[tier_item])
    return packages
