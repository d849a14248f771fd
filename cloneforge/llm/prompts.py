"""
LLM Prompts
===========
Centralised store for every prompt the stage collaborators send to Claude.

Prompt Design Rules:
    - Research produces an ORIGINAL interpretation of the product category,
      never a copy of proprietary elements
    - Generated features are fully functional: no paywalls, no "coming soon"
    - Structured answers are requested as raw JSON (no markdown); parsing
      still tolerates fences (see llm.client.extract_json)
    - Iteration feedback (missing features, recommendations) is appended to
      generation prompts from the second pass on
"""
from typing import List, Optional

from cloneforge.models.analysis import Entity, SaaSAnalysis
from cloneforge.models.parity import PreDeployParity


# ---------------------------------------------------------------------------
# Research
# ---------------------------------------------------------------------------
RESEARCH_SYSTEM_PROMPT = (
    "You are a senior product analyst. You write precise, buildable product "
    "specifications and you answer with raw JSON only."
)

_RESEARCH_SCHEMA = """{
  "name": "string - original name for our version",
  "category": "string - product category",
  "description": "string - what this type of product does",
  "coreFeatures": [
    {"name": "string", "description": "string",
     "priority": "core|secondary|nice-to-have", "complexity": "simple|medium|complex"}
  ],
  "entities": [
    {"name": "string - PascalCase",
     "fields": [{"name": "string", "type": "string|number|boolean|date|text|email|enum", "required": true}],
     "relations": [{"target": "EntityName", "type": "one-to-many|many-to-one|many-to-many"}]}
  ],
  "userFlows": [{"name": "string", "steps": ["step1", "step2"]}],
  "uiPatterns": ["pattern1", "pattern2"],
  "techStack": {"frontend": "Next.js 14 + Tailwind + shadcn/ui", "backend": "Fastify + TypeScript",
                "database": "PostgreSQL + Prisma", "auth": "NextAuth.js"},
  "pricing": [{"name": "tier name", "features": ["feature1", "feature2"]}]
}"""


def build_research_prompt(context: str) -> str:
    return (
        "Analyze this SaaS product and create a detailed specification for "
        "building a similar application.\n\n"
        f"{context}\n\n"
        "IMPORTANT: Do NOT copy proprietary elements. Create an ORIGINAL "
        "interpretation based on the CATEGORY and general functionality.\n\n"
        f"Provide your analysis as JSON with this exact structure:\n{_RESEARCH_SCHEMA}\n\n"
        "Include at least:\n"
        "- 8-12 core features\n"
        "- 4-8 entities with realistic fields\n"
        "- 3-5 user flows\n"
        "- All features FULLY FUNCTIONAL (no paywalls, no \"coming soon\")\n\n"
        "Return ONLY valid JSON, no markdown."
    )


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------
GENERATION_SYSTEM_PROMPT = (
    "You are a senior full-stack engineer writing production TypeScript for a "
    "Next.js 14 (app router, Tailwind) frontend and a Fastify backend. "
    "Return only the requested file inside a single fenced code block."
)


def format_feedback(feedback: Optional[PreDeployParity]) -> str:
    """Previous pass's verdict, phrased as instructions for the next pass."""
    if feedback is None or feedback.passes_threshold:
        return ""
    lines = [f"Previous version scored {feedback.overall}% feature parity."]
    if feedback.missing_features:
        lines.append("Missing features: " + ", ".join(feedback.missing_features))
    for rec in feedback.recommendations[:3]:
        lines.append(f"- {rec}")
    return "\n".join(lines)


def _entity_summary(entity: Entity) -> str:
    fields = ", ".join(
        f"{f.name}: {f.type}{'' if f.required else '?'}" for f in entity.fields
    )
    return f"{entity.name} {{ {fields} }}"


def build_page_prompt(
    entity: Entity,
    page_type: str,
    analysis: SaaSAnalysis,
    feedback: str = "",
) -> str:
    others = ", ".join(e.name for e in analysis.entities if e.name != entity.name)
    prompt = (
        f"Write the Next.js {page_type} page for the {entity.name} entity of "
        f"\"{analysis.name}\" ({analysis.category}).\n\n"
        f"Entity: {_entity_summary(entity)}\n"
        f"Related entities: {others or 'none'}\n"
        f"API base: process.env.NEXT_PUBLIC_API_URL + '/api/{entity.slug}'\n\n"
        "Requirements:\n"
        "1. 'use client' component with useState/useEffect data loading via fetch()\n"
        "2. Loading, error and empty states\n"
        "3. Search/filter input on list pages\n"
        "4. Forms use onSubmit with validation and a submit <button>\n"
        "5. Responsive Tailwind classes (sm:, md:, lg:)\n"
        "6. Fall back to realistic mock data when the API is unreachable\n"
        "7. TypeScript interfaces for the entity\n"
        "8. No paywalls, trials, upgrade prompts or \"coming soon\" text\n"
    )
    if feedback:
        prompt += f"\nFix these gaps from the previous version:\n{feedback}\n"
    return prompt


def build_api_route_prompt(entity: Entity, analysis: SaaSAnalysis, feedback: str = "") -> str:
    prompt = (
        f"Write a Fastify TypeScript plugin exposing CRUD routes for {entity.name} "
        f"in \"{analysis.name}\".\n\n"
        f"Entity: {_entity_summary(entity)}\n"
        f"Routes: GET/POST /api/{entity.slug}, GET/PUT/DELETE /api/{entity.slug}/:id\n"
        "Keep an in-memory array seeded with 5 realistic sample records. "
        "Validate request bodies and return 404 for unknown ids.\n"
        "Export default async function (app: FastifyInstance).\n"
    )
    if feedback:
        prompt += f"\nFix these gaps from the previous version:\n{feedback}\n"
    return prompt


def build_landing_prompt(analysis: SaaSAnalysis, feedback: str = "") -> str:
    features = "\n".join(f"- {f.name}: {f.description}" for f in analysis.core_features[:8])
    prompt = (
        f"Write the Next.js landing page (app/page.tsx) for \"{analysis.name}\", "
        f"a {analysis.category} product: {analysis.description}\n\n"
        f"Key features:\n{features}\n\n"
        "Include a <header> with <nav> links to every entity list page "
        f"({', '.join('/' + e.slug for e in analysis.entities)}), a hero section "
        "with a 'Get Started' call to action, a feature grid and a footer. "
        "Responsive Tailwind, no pricing gates.\n"
    )
    if feedback:
        prompt += f"\nFix these gaps from the previous version:\n{feedback}\n"
    return prompt


# ---------------------------------------------------------------------------
# Fixing
# ---------------------------------------------------------------------------
FIX_SYSTEM_PROMPT = (
    "You are a minimal auto-fixer for a Next.js + Fastify monorepo. Fix only the "
    "reported errors with the smallest possible replacements. Answer with raw JSON."
)


def build_fix_prompt(errors: List[str]) -> str:
    joined = "\n\n".join(e[:2000] for e in errors[:10])
    return (
        "I have these errors in a Next.js + Fastify project:\n\n"
        f"{joined}\n\n"
        "For each error, provide a JSON array of fixes:\n"
        "[\n"
        "  {\n"
        '    "file": "relative/path/to/file.ts",\n'
        '    "issue": "description of the issue",\n'
        '    "originalCode": "the problematic code snippet (exact text)",\n'
        '    "fixedCode": "the corrected code snippet"\n'
        "  }\n"
        "]\n\n"
        "Return ONLY a valid JSON array, no markdown."
    )


# ---------------------------------------------------------------------------
# Vision comparisons (post-deploy)
# ---------------------------------------------------------------------------
VISUAL_PARITY_PROMPT = """Compare these two app screenshots. The FIRST is the target product, the SECOND is our generated app.

Score how closely the SECOND reproduces the FIRST (0-100 each): layout, colors, typography, components, spacing.

Return JSON:
{
  "overall": <weighted average 0-100>,
  "layout": <score>,
  "colors": <score>,
  "typography": <score>,
  "components": <score>,
  "spacing": <score>,
  "details": {
    "matches": ["..."],
    "mismatches": ["..."],
    "suggestions": ["..."]
  }
}

Return ONLY valid JSON."""

DIFFERENTIATION_PROMPT = """Compare these two app screenshots. The FIRST is an existing product, the SECOND is our new product.

We need to ensure our product is DIFFERENT ENOUGH to avoid copyright/trade dress claims.
Analyze how DIFFERENT they are (NOT how similar): layout, colors, components, overall feel.

Return JSON:
{
  "overall": <0-100, higher = more different>,
  "layoutDifferent": true/false,
  "colorsDifferent": true/false,
  "componentsDifferent": true/false,
  "details": {
    "similarities": ["things that are TOO SIMILAR"],
    "differences": ["things that ARE DIFFERENT"],
    "suggestions": ["how to differentiate more if needed"]
  }
}

Scoring guide: 80-100 very different, 60-79 sufficiently different, 40-59 medium risk, 0-39 too similar.
Be strict about identifying similarities. Return ONLY valid JSON."""
