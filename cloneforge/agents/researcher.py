"""
Researcher
==========
Turns a job's input (product name, optional description and public URL)
into a SaaSAnalysis the Generator can build from.

Runs once per job; manual re-iterations reuse the stored analysis.
An answer that is not a JSON object, or does not fit the analysis model,
raises CollaboratorError (there is no safe default for a product spec).
"""
import logging

from pydantic import ValidationError as SchemaError

from cloneforge.core.errors import CollaboratorError
from cloneforge.llm.client import ClaudeClient
from cloneforge.llm.prompts import RESEARCH_SYSTEM_PROMPT, build_research_prompt
from cloneforge.models.analysis import SaaSAnalysis
from cloneforge.models.job import JobInput
from cloneforge.services.browser import scrape_public_info

logger = logging.getLogger(__name__)


class Researcher:

    def __init__(self, client: ClaudeClient, scrape: bool = True) -> None:
        self.client = client
        self.scrape = scrape

    async def build_context(self, job_input: JobInput) -> str:
        context = f"SaaS Product: {job_input.target_name}\n"
        if job_input.description:
            context += f"Description: {job_input.description}\n"
        if job_input.source_url and self.scrape:
            public_info = await scrape_public_info(job_input.source_url)
            if public_info:
                context += f"\nPublic website ({job_input.source_url}):\n{public_info}\n"
        return context

    async def analyze(self, job_input: JobInput) -> SaaSAnalysis:
        logger.info("Researching SaaS: %s", job_input.target_name)
        context = await self.build_context(job_input)

        data = await self.client.complete_json(
            build_research_prompt(context),
            system=RESEARCH_SYSTEM_PROMPT,
            stage="research",
        )
        if not isinstance(data, dict):
            raise CollaboratorError("research", "Failed to parse SaaS analysis")

        try:
            analysis = SaaSAnalysis.model_validate(data)
        except SchemaError as e:
            logger.error("Analysis did not match the expected shape: %s", e)
            raise CollaboratorError(
                "research", f"Malformed SaaS analysis ({e.error_count()} field errors)"
            ) from e

        if job_input.custom_name:
            analysis = analysis.model_copy(update={"name": job_input.custom_name})

        logger.info(
            "Analysis complete: %d features, %d entities",
            len(analysis.core_features), len(analysis.entities),
        )
        return analysis
