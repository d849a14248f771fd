"""
Shared fakes for runner / service / API tests.
All stage collaborators are mocks: no Docker, GitHub, Render, Playwright or LLM.
"""
import pytest
from unittest.mock import AsyncMock, MagicMock

from cloneforge.agents.collaborators import StageCollaborators
from cloneforge.models.analysis import Entity, Feature, SaaSAnalysis
from cloneforge.models.deployment import DeployResult
from cloneforge.models.generation import GenerationResult
from cloneforge.models.parity import PreDeployParity
from cloneforge.models.test_result import TestResult


def make_analysis(name="Notion"):
    return SaaSAnalysis(
        name=name,
        category="productivity",
        core_features=[Feature(name="Pages"), Feature(name="Search")],
        entities=[Entity(name="Page"), Entity(name="Workspace")],
    )


def make_parity(score, threshold=90):
    return PreDeployParity(
        overall=score,
        passes_threshold=score >= threshold,
        target_name="Notion",
        missing_features=[] if score >= threshold else ["search", "edit_form"],
    )


def make_collaborators(scores=(95,), tests_pass=True, deployment=None):
    """
    Mock collaborators. ``scores`` are returned by successive parity checks;
    the last one repeats once the list is exhausted.
    """
    scores = list(scores)
    calls = {"n": 0}

    async def check_parity(analysis, output_dir):
        idx = min(calls["n"], len(scores) - 1)
        calls["n"] += 1
        return make_parity(scores[idx])

    researcher = MagicMock()
    researcher.analyze = AsyncMock(return_value=make_analysis())

    generator = MagicMock()
    generator.generate = AsyncMock(
        return_value=GenerationResult(output_dir="/tmp/notion-abc123", files=["apps/web/src/app/page.tsx"])
    )

    tester = MagicMock()
    tester.run = AsyncMock(return_value=TestResult(passed=tests_pass))
    tester.fix = AsyncMock(return_value=[])

    verifier = MagicMock()
    verifier.check_parity = AsyncMock(side_effect=check_parity)

    deployer = MagicMock()
    deployer.deploy = AsyncMock(return_value=deployment or DeployResult())
    deployer.teardown = AsyncMock(return_value=[])

    return StageCollaborators(
        researcher=researcher,
        generator=generator,
        tester=tester,
        verifier=verifier,
        deployer=deployer,
    )


@pytest.fixture
def collaborators():
    return make_collaborators()
