"""
Deployment Model
Pydantic model for what the Deployer created, kept so delete() can tear it down.
"""
from typing import List, Optional

from pydantic import BaseModel


class DeployResult(BaseModel):
    github_repo: Optional[str] = None      # "owner/name"
    github_url: Optional[str] = None
    frontend_url: Optional[str] = None
    backend_url: Optional[str] = None
    render_service_ids: List[str] = []

    def absorb(self, previous: "DeployResult") -> None:
        """Keep track of resources an earlier deploy created that this one did not reuse."""
        for service_id in previous.render_service_ids:
            if service_id and service_id not in self.render_service_ids:
                self.render_service_ids.append(service_id)
        if not self.github_repo:
            self.github_repo = previous.github_repo
            self.github_url = self.github_url or previous.github_url

    @property
    def deployed_urls(self) -> List[str]:
        return [u for u in (self.frontend_url, self.backend_url) if u]
