"""
Visual Verifiers
================
Post-deploy screenshot comparisons judged by Claude vision.

VisualParityVerifier
    How closely the clone's first fold reproduces the target's (layout,
    colors, typography, components, spacing). Unparseable answers score 0
    and never pass: a missing verdict must not read as a visual match.

DifferentiationChecker
    How DIFFERENT the clone looks from the target; higher is safer.
    Legal risk: low >= 70, medium >= 50, else high. Unparseable answers
    fall back to 50 with a "Manual review needed" note (medium risk, not
    passing the 60 bar).

Screenshots are written next to the generated project (target.png,
generated.png) so operators can inspect what was compared.
"""
import logging
import os
from typing import Any, List, Optional

from cloneforge.core.config import DIFFERENTIATION_THRESHOLD, PARITY_THRESHOLD
from cloneforge.core.constants import LOW_RISK_DIFFERENTIATION, MEDIUM_RISK_DIFFERENTIATION
from cloneforge.core.scoring import passes_threshold
from cloneforge.llm.client import ClaudeClient, ImageInput
from cloneforge.llm.prompts import DIFFERENTIATION_PROMPT, VISUAL_PARITY_PROMPT
from cloneforge.models.parity import DifferentiationReport, VisualParityReport, VisualScores
from cloneforge.services.browser import screenshot_b64

logger = logging.getLogger(__name__)

MANUAL_REVIEW_NOTE = "Manual review needed"
FALLBACK_DIFFERENTIATION = 50

# Sub-scores below this produce a targeted fix suggestion
_FIX_BAR = 80
_VISUAL_FIXES = (
    ("colors", "Update color palette to match target - check primary, secondary, and accent colors"),
    ("layout", "Adjust layout structure - check sidebar width, header height, content positioning"),
    ("typography", "Match typography - font family, sizes, weights, and line heights"),
    ("components", "Restyle components - buttons, cards, inputs should match target design"),
    ("spacing", "Adjust spacing - padding, margins, and gaps between elements"),
)


def _clamp_int(value: Any) -> int:
    try:
        return max(0, min(100, int(round(float(value)))))
    except (TypeError, ValueError):
        return 0


def _str_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(v) for v in value]


def legal_risk_for(score: int) -> str:
    if score >= LOW_RISK_DIFFERENTIATION:
        return "low"
    if score >= MEDIUM_RISK_DIFFERENTIATION:
        return "medium"
    return "high"


async def _capture_pair(target_url: str, generated_url: str, output_dir: str, suffix: str = ""):
    os.makedirs(output_dir, exist_ok=True)
    target = await screenshot_b64(target_url, os.path.join(output_dir, f"target{suffix}.png"))
    generated = await screenshot_b64(generated_url, os.path.join(output_dir, f"generated{suffix}.png"))
    return [ImageInput(data=target), ImageInput(data=generated)]


class VisualParityVerifier:

    def __init__(self, client: ClaudeClient, threshold: int = PARITY_THRESHOLD) -> None:
        self.client = client
        self.threshold = threshold

    async def compare(self, target_url: str, generated_url: str, output_dir: str) -> VisualParityReport:
        logger.info("Comparing visuals: %s vs %s", target_url, generated_url)
        images = await _capture_pair(target_url, generated_url, output_dir)
        data = await self.client.complete_json(
            VISUAL_PARITY_PROMPT, max_tokens=2048, images=images, stage="visual_parity"
        )
        scores = self.parse_scores(data)
        return VisualParityReport(
            target_url=target_url,
            generated_url=generated_url,
            scores=scores,
            passes_threshold=passes_threshold(scores.overall, self.threshold) and data is not None,
            fixes=visual_fixes(scores),
        )

    @staticmethod
    def parse_scores(data: Optional[Any]) -> VisualScores:
        if not isinstance(data, dict):
            logger.warning("Failed to parse visual parity response")
            return VisualScores(mismatches=["Unable to analyze"], suggestions=[MANUAL_REVIEW_NOTE])
        details = data.get("details") if isinstance(data.get("details"), dict) else {}
        return VisualScores(
            overall=_clamp_int(data.get("overall")),
            layout=_clamp_int(data.get("layout")),
            colors=_clamp_int(data.get("colors")),
            typography=_clamp_int(data.get("typography")),
            components=_clamp_int(data.get("components")),
            spacing=_clamp_int(data.get("spacing")),
            matches=_str_list(details.get("matches")),
            mismatches=_str_list(details.get("mismatches")),
            suggestions=_str_list(details.get("suggestions")),
        )


def visual_fixes(scores: VisualScores) -> List[str]:
    fixes = [text for field, text in _VISUAL_FIXES if getattr(scores, field) < _FIX_BAR]
    fixes.extend(scores.suggestions)
    return fixes


class DifferentiationChecker:

    def __init__(self, client: ClaudeClient, threshold: int = DIFFERENTIATION_THRESHOLD) -> None:
        self.client = client
        self.threshold = threshold

    async def check(self, target_url: str, generated_url: str, output_dir: str) -> DifferentiationReport:
        logger.info("Checking differentiation: %s vs %s", target_url, generated_url)
        images = await _capture_pair(target_url, generated_url, output_dir, suffix="-diff")
        data = await self.client.complete_json(
            DIFFERENTIATION_PROMPT, max_tokens=2048, images=images, stage="differentiation"
        )
        report = self.build_report(target_url, generated_url, data)
        logger.info("Differentiation %d%% (legal risk: %s)", report.overall, report.legal_risk)
        return report

    def build_report(self, target_url: str, generated_url: str, data: Optional[Any]) -> DifferentiationReport:
        if not isinstance(data, dict):
            logger.warning("Failed to parse differentiation response")
            return DifferentiationReport(
                target_url=target_url,
                generated_url=generated_url,
                overall=FALLBACK_DIFFERENTIATION,
                layout_different=True,
                colors_different=True,
                components_different=True,
                similarities=["Unable to analyze"],
                differences=["Unable to analyze"],
                suggestions=[MANUAL_REVIEW_NOTE],
                passes_threshold=passes_threshold(FALLBACK_DIFFERENTIATION, self.threshold),
                legal_risk=legal_risk_for(FALLBACK_DIFFERENTIATION),
                note=MANUAL_REVIEW_NOTE,
            )

        details = data.get("details") if isinstance(data.get("details"), dict) else {}
        overall = _clamp_int(data.get("overall"))
        return DifferentiationReport(
            target_url=target_url,
            generated_url=generated_url,
            overall=overall,
            layout_different=bool(data.get("layoutDifferent", False)),
            colors_different=bool(data.get("colorsDifferent", False)),
            components_different=bool(data.get("componentsDifferent", False)),
            similarities=_str_list(details.get("similarities")),
            differences=_str_list(details.get("differences")),
            suggestions=_str_list(details.get("suggestions")),
            passes_threshold=passes_threshold(overall, self.threshold),
            legal_risk=legal_risk_for(overall),
        )
