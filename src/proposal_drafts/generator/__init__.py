"""Draft generation: template pricing, scope enhancement, confidence scoring."""

from proposal_drafts.generator.models import DraftInputs, DraftResult
from proposal_drafts.generator.pipeline import DraftGenerator, TemplateDraftGenerator

__all__ = ["DraftGenerator", "DraftInputs", "DraftResult", "TemplateDraftGenerator"]
