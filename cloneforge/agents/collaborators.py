"""
Stage Collaborators
===================
The bundle of stage implementations one job runs with, built from the
job's credentials (each job may bring its own Anthropic key).

The runner only relies on the collaborator contracts; tests hand it a
bundle of mocks instead.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from cloneforge.agents.browser_verifier import BrowserVerifier
from cloneforge.agents.deployer import Deployer
from cloneforge.agents.generator import Generator
from cloneforge.agents.researcher import Researcher
from cloneforge.agents.tester import Tester
from cloneforge.agents.verifier import ParityVerifier
from cloneforge.agents.visual_verifier import DifferentiationChecker, VisualParityVerifier
from cloneforge.core.config import ENABLE_POST_DEPLOY_CHECKS, GITHUB_OWNER, RENDER_API_KEY
from cloneforge.llm.client import ClaudeClient

logger = logging.getLogger(__name__)


@dataclass
class StageCollaborators:
    researcher: Researcher
    generator: Generator
    tester: Tester
    verifier: ParityVerifier
    deployer: Deployer
    # Post-deploy (best-effort); None disables the stage
    browser_verifier: Optional[BrowserVerifier] = None
    visual_verifier: Optional[VisualParityVerifier] = None
    differentiation: Optional[DifferentiationChecker] = None
    client: Optional[ClaudeClient] = None

    async def aclose(self) -> None:
        if self.client is not None:
            await self.client.close()


def build_collaborators(
    api_key: str,
    github_owner: Optional[str] = None,
    render_api_key: Optional[str] = None,
    post_deploy_checks: bool = ENABLE_POST_DEPLOY_CHECKS,
) -> StageCollaborators:
    """Real collaborators sharing one Claude client."""
    client = ClaudeClient(api_key)
    collaborators = StageCollaborators(
        researcher=Researcher(client),
        generator=Generator(client),
        tester=Tester(client),
        verifier=ParityVerifier(),
        deployer=Deployer(
            github_owner=github_owner or GITHUB_OWNER,
            render_api_key=render_api_key or RENDER_API_KEY,
        ),
        client=client,
    )
    if post_deploy_checks:
        collaborators.browser_verifier = BrowserVerifier()
        collaborators.visual_verifier = VisualParityVerifier(client)
        collaborators.differentiation = DifferentiationChecker(client)
    logger.debug("Collaborators built (post-deploy checks: %s)", post_deploy_checks)
    return collaborators
