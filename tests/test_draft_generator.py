from __future__ import annotations

import allure
import pytest

from proposal_drafts.generator import DraftInputs, TemplateDraftGenerator
from proposal_drafts.generator.enhancer import ScopeEnhanceRequest, ScopeEnhancementError
from proposal_drafts.generator.models import (
    JobDescriptor,
    PhotoDescriptor,
    ScopeSection,
    TemplateSpec,
    UserMultipliers,
)
from proposal_drafts.generator.pipeline import (
    ADD_PHOTO_QUESTION,
    REVIEW_SCOPE_QUESTION,
    normalize_scope,
)
from proposal_drafts.generator.pricing import round_half_up

pytestmark = [
    allure.epic("Draft Generation"),
    allure.feature("Template Pricing & Confidence"),
]


class _StaticEnhancer:
    def __init__(self, lines: list[str]) -> None:
        self.lines = lines
        self.requests: list[ScopeEnhanceRequest] = []

    def enhance(self, request: ScopeEnhanceRequest) -> list[str]:
        self.requests.append(request)
        return list(self.lines)


class _RaisingEnhancer:
    def __init__(self, error: Exception) -> None:
        self.error = error

    def enhance(self, request: ScopeEnhanceRequest) -> list[str]:
        raise self.error


def _inputs(
    *,
    job_size: int = 2,
    job_notes: str | None = None,
    photos: list[PhotoDescriptor] | None = None,
    price_multiplier: int = 100,
    trade_multipliers: dict[str, int] | None = None,
    base_scope: list | None = None,
) -> DraftInputs:
    return DraftInputs(
        job=JobDescriptor(
            job_id=42,
            client_name="Sam Client",
            address="1 Main St",
            trade_id="bathroom",
            trade_name="Bathroom",
            job_type_id="vanity",
            job_type_name="Vanity replacement",
            job_size=job_size,
            job_notes=job_notes,
        ),
        template=TemplateSpec(
            trade_id="bathroom",
            trade_name="Bathroom",
            job_type_id="vanity",
            job_type_name="Vanity replacement",
            base_scope=base_scope or ["Remove existing vanity.", "Install new vanity."],
            base_price_low=1000,
            base_price_high=1400,
            estimated_days_low=1,
            estimated_days_high=2,
            warranty="1 year workmanship",
            exclusions=["Drywall repair"],
        ),
        user=UserMultipliers(
            price_multiplier=price_multiplier,
            trade_multipliers=trade_multipliers or {},
        ),
        photos=photos or [],
    )


def _photos(count: int, *, needs_more: list[str] | None = None) -> list[PhotoDescriptor]:
    photos = [
        PhotoDescriptor(public_url=f"https://cdn.example.com/{index}.jpg", kind="site")
        for index in range(count)
    ]
    if needs_more and photos:
        photos[0].findings = {
            "combined": {"needs_more_photos": needs_more, "summary_labels": ["vanity"]},
        }
    return photos


def test_medium_job_keeps_template_price_range() -> None:
    result = TemplateDraftGenerator().generate(_inputs())

    [item] = result.line_items
    assert (item.price_low, item.price_high) == (1000, 1400)
    assert (item.estimated_days_low, item.estimated_days_high) == (1, 2)
    assert item.warranty == "1 year workmanship"
    assert item.exclusions == ["Drywall repair"]


def test_size_and_user_multipliers_scale_price() -> None:
    result = TemplateDraftGenerator().generate(
        _inputs(job_size=3, price_multiplier=110, trade_multipliers={"bathroom": 120}),
    )

    [item] = result.line_items
    # 1.35 * 1.10 * 1.20 = 1.782
    assert (item.price_low, item.price_high) == (1782, 2495)
    assert (item.estimated_days_low, item.estimated_days_high) == (2, 3)
    assert result.pricing["inputs"]["size_factor"] == 1.35


def test_small_job_discounts_price_and_keeps_one_day_minimum() -> None:
    result = TemplateDraftGenerator().generate(_inputs(job_size=1))

    [item] = result.line_items
    assert (item.price_low, item.price_high) == (850, 1190)
    assert (item.estimated_days_low, item.estimated_days_high) == (1, 2)


def test_market_multiplier_is_clamped() -> None:
    expensive = TemplateDraftGenerator(labor_rates={"bathroom": [200.0]}).generate(_inputs())
    cheap = TemplateDraftGenerator(labor_rates={"bathroom": [10.0]}).generate(_inputs())

    assert expensive.pricing["inputs"]["market_multiplier"] == 1.15
    assert (expensive.line_items[0].price_low, expensive.line_items[0].price_high) == (1150, 1610)
    assert cheap.pricing["inputs"]["market_multiplier"] == 0.9
    assert (cheap.line_items[0].price_low, cheap.line_items[0].price_high) == (900, 1260)
    assert cheap.pricing["inputs"]["market_basis"] == "labor"


def test_enhancement_failure_degrades_to_baseline_scope() -> None:
    result = TemplateDraftGenerator(
        enhancer=_RaisingEnhancer(ScopeEnhancementError("down", code="HTTP_STATUS")),
    ).generate(_inputs(job_notes="Customer wants a double sink vanity", photos=_photos(3)))

    assert not result.scope_enhanced
    assert result.line_items[0].scope == ["Remove existing vanity.", "Install new vanity."]
    assert result.confidence <= 60
    assert REVIEW_SCOPE_QUESTION in result.questions


def test_unexpected_enhancer_crash_never_propagates() -> None:
    result = TemplateDraftGenerator(enhancer=_RaisingEnhancer(KeyError("oops"))).generate(
        _inputs(),
    )

    assert not result.scope_enhanced
    assert result.questions == [REVIEW_SCOPE_QUESTION, ADD_PHOTO_QUESTION]
    assert result.confidence == 45


def test_enhanced_scope_and_full_confidence() -> None:
    enhancer = _StaticEnhancer(["Demo vanity.", "Set new vanity level and plumb."])

    result = TemplateDraftGenerator(
        enhancer=enhancer,
        labor_rates={"bathroom": [85.0]},
    ).generate(_inputs(job_notes="Customer wants a double sink vanity", photos=_photos(3)))

    assert result.scope_enhanced
    assert result.line_items[0].scope == ["Demo vanity.", "Set new vanity level and plumb."]
    # 70 + 10 photos + 5 notes + 5 clean findings + 5 market data
    assert result.confidence == 95
    assert result.questions == []
    [request] = enhancer.requests
    assert request.base_scope == ["Remove existing vanity.", "Install new vanity."]
    assert request.job_notes == "Customer wants a double sink vanity"


def test_photo_findings_become_questions_and_notes_fallback() -> None:
    enhancer = _StaticEnhancer(["Scope line."])
    needs_more = [f"Photo {index}" for index in range(7)]

    result = TemplateDraftGenerator(enhancer=enhancer).generate(
        _inputs(photos=_photos(3, needs_more=needs_more)),
    )

    assert result.questions == needs_more[:5]
    # 70 + 10 photos, no clean-findings bonus
    assert result.confidence == 80
    [request] = enhancer.requests
    assert request.job_notes == "Photos captured: 3. Vision labels: vanity"


def test_package_tiers_scale_price_and_extend_scope() -> None:
    result = TemplateDraftGenerator().generate(_inputs())

    assert result.default_package == "better"
    good = result.packages["good"].line_items[0]
    better = result.packages["better"].line_items[0]
    best = result.packages["best"].line_items[0]
    assert (good.price_low, good.price_high) == (1000, 1400)
    assert (better.price_low, better.price_high) == (1080, 1512)
    assert (best.price_low, best.price_high) == (1180, 1652)
    assert len(better.scope) == len(good.scope) + 1
    assert len(best.scope) == len(good.scope) + 2


def test_sectioned_template_scope_is_preserved() -> None:
    scope = normalize_scope(
        [
            "Protect floors.",
            {"title": "Demolition", "items": ["Remove vanity.", " "]},
            {"title": "Install", "items": ["Set vanity."]},
        ],
    )

    assert scope == [
        ScopeSection(title="General", items=["Protect floors."]),
        ScopeSection(title="Demolition", items=["Remove vanity."]),
        ScopeSection(title="Install", items=["Set vanity."]),
    ]


def test_payload_shape() -> None:
    payload = TemplateDraftGenerator(pricebook_version="2026-10").generate(_inputs()).to_payload()

    assert set(payload) == {
        "line_items",
        "packages",
        "default_package",
        "confidence",
        "questions",
        "scope_enhanced",
        "pricing",
    }
    assert payload["pricing"]["pricebook_version"] == "2026-10"
    assert payload["line_items"][0]["price_low"] == 1000
    assert set(payload["packages"]) == {"good", "better", "best"}


@pytest.mark.parametrize(("value", "expected"), [(2.5, 3), (1.5, 2), (1499.4, 1499), (0.5, 1)])
def test_round_half_up(value: float, expected: int) -> None:
    assert round_half_up(value) == expected
