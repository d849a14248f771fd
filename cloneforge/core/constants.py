"""
Constants
Centralised storage for job statuses, scoring weight tables and thresholds.
"""
from enum import Enum


class JobStatus(str, Enum):
    PENDING = "pending"
    RESEARCHING = "researching"
    GENERATING = "generating"
    ITERATING = "iterating"
    TESTING = "testing"
    FIXING = "fixing"
    VERIFYING = "verifying"
    DEPLOYING = "deploying"
    POST_DEPLOY_VERIFYING = "post_deploy_verifying"
    COMPLETE = "complete"
    PAUSED = "paused"
    CANCELLED = "cancelled"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset({JobStatus.COMPLETE, JobStatus.CANCELLED, JobStatus.FAILED})

# Statuses a paused job may return to
RESUMABLE_STATUSES = frozenset({
    JobStatus.RESEARCHING,
    JobStatus.GENERATING,
    JobStatus.ITERATING,
    JobStatus.TESTING,
    JobStatus.FIXING,
    JobStatus.VERIFYING,
    JobStatus.DEPLOYING,
    JobStatus.POST_DEPLOY_VERIFYING,
})

_ABORT = {JobStatus.PAUSED, JobStatus.CANCELLED, JobStatus.FAILED}

# Forward edges of the pipeline. PAUSED may return to any resumable status.
ALLOWED_TRANSITIONS = {
    JobStatus.PENDING: {JobStatus.RESEARCHING, JobStatus.CANCELLED, JobStatus.FAILED},
    JobStatus.RESEARCHING: {JobStatus.GENERATING} | _ABORT,
    JobStatus.GENERATING: {JobStatus.TESTING} | _ABORT,
    JobStatus.ITERATING: {JobStatus.TESTING} | _ABORT,
    JobStatus.TESTING: {JobStatus.FIXING, JobStatus.VERIFYING} | _ABORT,
    JobStatus.FIXING: {JobStatus.TESTING} | _ABORT,
    JobStatus.VERIFYING: {JobStatus.ITERATING, JobStatus.DEPLOYING} | _ABORT,
    JobStatus.DEPLOYING: {JobStatus.POST_DEPLOY_VERIFYING, JobStatus.COMPLETE} | _ABORT,
    JobStatus.POST_DEPLOY_VERIFYING: {JobStatus.COMPLETE} | _ABORT,
    JobStatus.PAUSED: set(RESUMABLE_STATUSES) | {JobStatus.CANCELLED, JobStatus.FAILED},
    # Manual re-iteration is the only way out of COMPLETE
    JobStatus.COMPLETE: {JobStatus.ITERATING},
    JobStatus.CANCELLED: set(),
    JobStatus.FAILED: set(),
}

# Statuses from which a manual "iterate again" is accepted
ITERABLE_STATUSES = frozenset({JobStatus.COMPLETE, JobStatus.PAUSED})

CANCELLED_MESSAGE = "Job cancelled by user"

# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------
DEFAULT_CHECK_WEIGHT = 5

# Pre-deploy feature-presence checks, weighted by feature importance
FEATURE_WEIGHTS = {
    "landing_page": 10,
    "navigation": 8,
    "list_view": 10,
    "detail_view": 8,
    "create_form": 10,
    "edit_form": 8,
    "delete_action": 5,
    "search": 8,
    "responsive_design": 5,
    "loading_states": 3,
    "error_handling": 5,
    "empty_states": 3,
    "api_integration": 10,
    "mock_data": 7,
}

# Post-deploy live-browser checks, weighted by functional category
BROWSER_CATEGORY_WEIGHTS = {
    "ui": 20,
    "navigation": 15,
    "crud": 25,
    "forms": 20,
    "search": 10,
}

MAX_HISTORY_MISSING_FEATURES = 5
MAX_RECOMMENDATIONS = 5

# Differentiation legal-risk bands (higher = more different = safer)
LOW_RISK_DIFFERENTIATION = 70
MEDIUM_RISK_DIFFERENTIATION = 50

# Phrases that indicate gated / fake functionality in a generated app
FORBIDDEN_PATTERNS = (
    "unlock", "demo version", "trial", "upgrade to", "pro feature",
    "locked", "subscribe", "license key", "feature disabled", "paywall",
    "coming soon", "beta", "request access", "waitlist", "contact sales",
)
