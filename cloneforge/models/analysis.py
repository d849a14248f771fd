"""
SaaS Analysis Model
===================
Pydantic model for the Researcher's output: a product specification the
Generator builds from. Written once per job and reused by every iteration
(including manual re-iterations).

The LLM answers in camelCase JSON (``coreFeatures``, ``userFlows``...);
aliases accept that shape while the Python side keeps snake_case.
"""
from typing import List, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Feature(_CamelModel):
    name: str
    description: str = ""
    priority: Literal["core", "secondary", "nice-to-have"] = "core"
    complexity: Literal["simple", "medium", "complex"] = "medium"


class EntityField(_CamelModel):
    name: str
    type: str = "string"
    required: bool = False


class EntityRelation(_CamelModel):
    target: str
    type: str = "many-to-one"


class Entity(_CamelModel):
    name: str
    fields: List[EntityField] = []
    relations: List[EntityRelation] = []

    @property
    def slug(self) -> str:
        """URL segment for the entity's list page (``Task`` → ``tasks``)."""
        return self.name.lower() + "s"


class UserFlow(_CamelModel):
    name: str
    steps: List[str] = []


class TechStack(_CamelModel):
    frontend: str = "Next.js 14 + Tailwind + shadcn/ui"
    backend: str = "Fastify + TypeScript"
    database: str = "PostgreSQL + Prisma"
    auth: str = "NextAuth.js"


class PricingTier(_CamelModel):
    name: str
    features: List[str] = []


class SaaSAnalysis(_CamelModel):
    name: str
    category: str = ""
    description: str = ""
    core_features: List[Feature] = []
    entities: List[Entity] = []
    user_flows: List[UserFlow] = []
    ui_patterns: List[str] = []
    tech_stack: TechStack = Field(default_factory=TechStack)
    pricing: List[PricingTier] = []
