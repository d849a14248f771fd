"""
Parity Verifier
===============
Pre-deploy feature parity: scores how much of a usable SaaS surface the
generated source tree contains, without running it.

Each feature in FEATURE_WEIGHTS gets a FeatureCheck scored 0–100 from
structural evidence (expected files exist) or keyword presence across the
generated sources. The checks are aggregated by core.scoring with the
feature weight table; ``passes_threshold`` only comes from that aggregate,
so an empty or unreadable project always scores 0 and never passes.

Recommendations are written for the (up to) five heaviest missing features
and are fed to the Generator on the next pass.
"""
import logging
import os
from typing import Dict, List

from cloneforge.core.config import PARITY_THRESHOLD
from cloneforge.core.constants import FEATURE_WEIGHTS, MAX_RECOMMENDATIONS
from cloneforge.core.scoring import ScoredCheck, summarize
from cloneforge.models.analysis import SaaSAnalysis
from cloneforge.models.parity import FeatureCheck, PreDeployParity
from cloneforge.utils.path_utils import iter_source_files, to_relative

logger = logging.getLogger(__name__)

_PARITY_EXTENSIONS = (".ts", ".tsx", ".js", ".jsx", ".css", ".json")

# A keyword-scored feature counts as implemented from this score on
IMPLEMENTED_SCORE = 50

_RECOMMENDATIONS = {
    "landing_page": "Add a landing page at apps/web/src/app/page.tsx with hero section, feature highlights and a call to action",
    "navigation": "Add a header with <nav> links to every entity list page",
    "list_view": "Create list pages for each entity with table/card layouts showing all records",
    "detail_view": "Add a detail page (app/<entity>/[id]/page.tsx) for each entity",
    "create_form": "Add create forms with validation and an onSubmit handler",
    "edit_form": "Allow editing existing records from the detail page",
    "delete_action": "Add a delete action with confirmation on detail or list pages",
    "search": "Implement search/filter functionality on list pages",
    "api_integration": "Create CRUD API endpoints in apps/api/src/routes/ and call them with fetch()",
    "mock_data": "Add mock data arrays or seed records for demonstration",
}


def keyword_score(code: str, keywords: List[str]) -> float:
    """Percentage of ``keywords`` found in ``code``."""
    if not keywords:
        return 0.0
    found = sum(1 for k in keywords if k in code)
    return min(100.0, found / len(keywords) * 100.0)


def gather_files(output_dir: str) -> Dict[str, str]:
    files: Dict[str, str] = {}
    for path in iter_source_files(output_dir, _PARITY_EXTENSIONS):
        try:
            with open(path, "r", encoding="utf-8", errors="replace") as f:
                files[to_relative(path, output_dir)] = f.read()
        except OSError as e:
            logger.warning("Could not read %s: %s", path, e)
    return files


class ParityVerifier:

    def __init__(self, threshold: int = PARITY_THRESHOLD) -> None:
        self.threshold = threshold

    async def check_parity(self, analysis: SaaSAnalysis, output_dir: str) -> PreDeployParity:
        logger.info("Checking parity for %s", analysis.name)

        files = gather_files(output_dir)
        checks = self.check_features(analysis, files)

        summary = summarize(
            [ScoredCheck(key=c.feature, score=c.score) for c in checks],
            threshold=self.threshold,
            weights=FEATURE_WEIGHTS,
        )
        missing = [c.feature for c in checks if not c.implemented]

        report = PreDeployParity(
            overall=summary.overall,
            passes_threshold=summary.passes_threshold,
            target_name=analysis.name,
            generated_app=os.path.basename(os.path.normpath(output_dir)),
            feature_checks=checks,
            missing_features=missing,
            recommendations=self.recommendations(missing),
        )
        logger.info("Parity score: %d%% (threshold: %d%%)", report.overall, self.threshold)
        return report

    # -------------------------------------------------------------------
    # Feature checks
    # -------------------------------------------------------------------
    def check_features(self, analysis: SaaSAnalysis, files: Dict[str, str]) -> List[FeatureCheck]:
        all_code = "\n".join(files.values())
        checks: List[FeatureCheck] = []

        def keyword_check(feature: str, keywords: List[str], notes: str, required: bool = True) -> None:
            score = keyword_score(all_code, keywords)
            checks.append(FeatureCheck(
                feature=feature,
                required=required,
                implemented=score >= IMPLEMENTED_SCORE,
                score=score,
                notes=notes,
            ))

        def coverage_check(feature: str, rel_template: str, notes: str) -> None:
            entities = analysis.entities
            if not entities:
                checks.append(FeatureCheck(feature=feature, notes="No entities in analysis"))
                return
            present = sum(1 for e in entities if rel_template.format(slug=e.slug) in files)
            score = present / len(entities) * 100.0
            checks.append(FeatureCheck(
                feature=feature,
                implemented=present == len(entities),
                score=score,
                notes=f"{notes}: {present}/{len(entities)} entities",
            ))

        # Landing page
        has_home = "apps/web/src/app/page.tsx" in files
        landing = keyword_score(all_code, ["Get Started", "hero", "<section", "<footer"])
        checks.append(FeatureCheck(
            feature="landing_page",
            implemented=has_home and landing >= IMPLEMENTED_SCORE,
            score=landing if has_home else 0.0,
            notes="Home page with hero section and CTA",
        ))

        keyword_check("navigation", ["<nav", "<header", "href=", "Link"], "Navigation header with links")
        coverage_check("list_view", "apps/web/src/app/{slug}/page.tsx", "List pages")
        coverage_check("detail_view", "apps/web/src/app/{slug}/[id]/page.tsx", "Detail pages")
        keyword_check("create_form", ["<form", "onSubmit", "<input", "<button"], "Forms for creating data")
        keyword_check("edit_form", ["PUT", "edit", "Edit", "defaultValue"], "Editing existing records")
        keyword_check("delete_action", ["DELETE", "delete", "confirm("], "Deleting records")
        keyword_check("search", ["search", "filter", "Search", "query"], "Search or filter functionality")

        has_routes = any(rel.startswith("apps/api/src/routes/") for rel in files)
        has_fetch = "fetch(" in all_code or "axios" in all_code
        checks.append(FeatureCheck(
            feature="api_integration",
            implemented=has_routes,
            score=(100.0 if has_fetch else 70.0) if has_routes else 0.0,
            notes="Backend API with CRUD endpoints",
        ))

        keyword_check("mock_data", ["mock", "Mock", "sample", "seed"], "Mock/sample data for demonstration")
        keyword_check("responsive_design", ["sm:", "md:", "lg:", "@media"], "Mobile-responsive layout", False)
        keyword_check("loading_states", ["loading", "Loading", "isLoading", "animate-"], "Loading indicators", False)
        keyword_check("error_handling", ["catch", "error", "Error", "try {"], "Error handling and display", False)
        keyword_check("empty_states", ["empty", "No ", "no results", "length === 0"], "Empty state messages", False)

        return checks

    @staticmethod
    def recommendations(missing: List[str]) -> List[str]:
        if not missing:
            return ["All core features implemented!"]
        ranked = sorted(missing, key=lambda f: -FEATURE_WEIGHTS.get(f, 0))
        return [
            _RECOMMENDATIONS.get(f, f"Implement {f.replace('_', ' ')} functionality")
            for f in ranked[:MAX_RECOMMENDATIONS]
        ]
