"""
Generator
=========
Writes one version of the clone into ``OUTPUT_ROOT/<slug>``.

Passes:
    1. Scaffold: deterministic monorepo skeleton (agents.templates)
    2. Landing : LLM landing page, template fallback on failure
    3. Entities: per entity: list, detail and create pages + a Fastify route
    4. API entry: registers every route module that was written

Every later pass overwrites the same directory. Feedback from the previous
pass's parity report is appended to every LLM prompt.

Failure policy:
    - A single LLM file failing is recorded in ``errors`` and generation goes on
    - Failing to write the scaffold (disk, permissions) raises CollaboratorError
"""
import logging
import os
import re
from typing import Callable, List, Optional, Tuple

from cloneforge.agents import templates
from cloneforge.core.config import OUTPUT_ROOT
from cloneforge.core.errors import CollaboratorError
from cloneforge.llm.client import ClaudeClient, strip_code_block
from cloneforge.llm.prompts import (
    GENERATION_SYSTEM_PROMPT,
    build_api_route_prompt,
    build_landing_prompt,
    build_page_prompt,
    format_feedback,
)
from cloneforge.models.analysis import Entity, SaaSAnalysis
from cloneforge.models.generation import GenerationResult
from cloneforge.models.parity import PreDeployParity

logger = logging.getLogger(__name__)

WEB_APP_ROOT = "apps/web/src/app"
API_ROUTES_ROOT = "apps/api/src/routes"

# (page type for the prompt, path under the entity's list directory)
ENTITY_PAGES = (
    ("list", "page.tsx"),
    ("detail", "[id]/page.tsx"),
    ("create form", "new/page.tsx"),
)


def route_module_name(entity: Entity) -> str:
    return re.sub(r"[^a-z0-9]", "", entity.name.lower()) or "entity"


class Generator:

    def __init__(self, client: ClaudeClient, output_root: str = OUTPUT_ROOT) -> None:
        self.client = client
        self.output_root = output_root

    # -------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------
    async def generate(
        self,
        analysis: SaaSAnalysis,
        slug: str,
        feedback: Optional[PreDeployParity] = None,
    ) -> GenerationResult:
        output_dir = os.path.join(self.output_root, slug)
        files: List[str] = []
        errors: List[str] = []
        hints = format_feedback(feedback)

        logger.info("Generating %s into %s (feedback=%s)", analysis.name, output_dir, bool(hints))

        try:
            self._scaffold(output_dir, analysis, slug, files)
        except OSError as e:
            raise CollaboratorError("generation", f"Could not write project scaffold: {e}") from e

        # Landing page
        landing_path = f"{WEB_APP_ROOT}/page.tsx"
        landing = await self._llm_file(build_landing_prompt(analysis, hints), landing_path, errors)
        self._write(output_dir, landing_path, landing or templates.home_page(analysis), files)

        # Entities
        route_modules: List[str] = []
        for entity in analysis.entities:
            for page_type, rel in ENTITY_PAGES:
                path = f"{WEB_APP_ROOT}/{entity.slug}/{rel}"
                body = await self._llm_file(
                    build_page_prompt(entity, page_type, analysis, hints), path, errors
                )
                if body:
                    self._write(output_dir, path, body, files)

            module = route_module_name(entity)
            path = f"{API_ROUTES_ROOT}/{module}.ts"
            body = await self._llm_file(build_api_route_prompt(entity, analysis, hints), path, errors)
            if body:
                self._write(output_dir, path, body, files)
                route_modules.append(module)

        self._write(output_dir, "apps/api/src/index.ts", templates.api_index(route_modules), files)

        logger.info("Generated %d files (%d errors)", len(files), len(errors))
        return GenerationResult(output_dir=output_dir, files=sorted(set(files)), errors=errors)

    # -------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------
    async def _llm_file(self, prompt: str, path: str, errors: List[str]) -> Optional[str]:
        try:
            raw = await self.client.complete(prompt, system=GENERATION_SYSTEM_PROMPT, stage="generation")
        except CollaboratorError as e:
            logger.warning("Generation failed for %s: %s", path, e.message)
            errors.append(f"{path}: {e.message}")
            return None
        return strip_code_block(raw)

    @staticmethod
    def _write(output_dir: str, rel: str, content: str, files: List[str]) -> None:
        full = os.path.join(output_dir, rel)
        os.makedirs(os.path.dirname(full), exist_ok=True)
        with open(full, "w", encoding="utf-8") as f:
            f.write(content)
        files.append(rel)

    def _scaffold(self, output_dir: str, analysis: SaaSAnalysis, slug: str, files: List[str]) -> None:
        static: List[Tuple[str, Callable[[], str]]] = [
            ("package.json", lambda: templates.root_package_json(slug)),
            ("pnpm-workspace.yaml", lambda: templates.PNPM_WORKSPACE),
            (".gitignore", lambda: templates.GITIGNORE),
            (".env.example", lambda: templates.env_example(slug)),
            ("README.md", lambda: templates.readme(analysis, slug)),
            ("apps/web/package.json", lambda: templates.web_package_json(slug)),
            ("apps/web/next.config.js", lambda: templates.NEXT_CONFIG),
            ("apps/web/tailwind.config.js", lambda: templates.TAILWIND_CONFIG),
            ("apps/web/postcss.config.js", lambda: templates.POSTCSS_CONFIG),
            ("apps/web/tsconfig.json", lambda: templates.TSCONFIG_WEB),
            ("apps/web/next-env.d.ts", lambda: templates.NEXT_ENV_DTS),
            (f"{WEB_APP_ROOT}/layout.tsx", lambda: templates.root_layout(analysis.name, analysis.description)),
            (f"{WEB_APP_ROOT}/globals.css", lambda: templates.GLOBALS_CSS),
            ("apps/api/package.json", lambda: templates.api_package_json(slug)),
            ("apps/api/tsconfig.json", lambda: templates.TSCONFIG_API),
        ]
        for rel, render in static:
            self._write(output_dir, rel, render(), files)
