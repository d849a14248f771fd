"""
Parity Report Models
====================
Every verification stage produces a report with the same projection:

    overall          : integer percentage 0–100
    passes_threshold : overall >= the context's threshold

ParityReport is a tagged union over ``kind`` so the runner and the scoring
aggregator consume one normalized shape:

    PreDeployParity : source-level feature presence (inside the loop)
    PostDeployParity: live-browser checks against the deployed clone

Visual parity and differentiation are separate post-deploy reports; the
differentiation score has inverted semantics (higher = more different =
lower legal risk).
"""
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field


class FeatureCheck(BaseModel):
    feature: str
    required: bool = True
    implemented: bool = False
    score: float = 0.0
    notes: str = ""


class BrowserCheck(BaseModel):
    name: str
    category: Literal["ui", "navigation", "crud", "search", "forms"]
    passed: bool = False
    score: float = 0.0
    details: str = ""


class PreDeployParity(BaseModel):
    kind: Literal["pre_deploy"] = "pre_deploy"
    overall: int = 0
    passes_threshold: bool = False
    target_name: str = ""
    generated_app: str = ""
    feature_checks: List[FeatureCheck] = []
    missing_features: List[str] = []
    recommendations: List[str] = []


class PostDeployParity(BaseModel):
    kind: Literal["post_deploy"] = "post_deploy"
    overall: int = 0
    passes_threshold: bool = False
    url: str = ""
    checks: List[BrowserCheck] = []
    missing_features: List[str] = []
    recommendations: List[str] = []


ParityReport = Annotated[
    Union[PreDeployParity, PostDeployParity],
    Field(discriminator="kind"),
]


class VisualScores(BaseModel):
    overall: int = 0
    layout: int = 0
    colors: int = 0
    typography: int = 0
    components: int = 0
    spacing: int = 0
    matches: List[str] = []
    mismatches: List[str] = []
    suggestions: List[str] = []


class VisualParityReport(BaseModel):
    target_url: str
    generated_url: str
    scores: VisualScores
    passes_threshold: bool = False
    fixes: List[str] = []

    @property
    def overall(self) -> int:
        return self.scores.overall


class DifferentiationReport(BaseModel):
    target_url: str
    generated_url: str
    overall: int = 0
    layout_different: bool = False
    colors_different: bool = False
    components_different: bool = False
    similarities: List[str] = []
    differences: List[str] = []
    suggestions: List[str] = []
    passes_threshold: bool = False
    legal_risk: Literal["low", "medium", "high"] = "high"
    note: Optional[str] = None
