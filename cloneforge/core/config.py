"""
Configuration
=============
Loads environment variables from .env file using python-dotenv.

Environment Variables:
    ANTHROPIC_API_KEY         : Claude credential (a request may supply its own)
    ANTHROPIC_MODEL           : Model used by every stage collaborator
    MAX_ITERATIONS            : Generate → Test → Fix → Verify ceiling (default: 5)
    PARITY_THRESHOLD          : Feature / browser / visual parity bar (default: 90)
    DIFFERENTIATION_THRESHOLD : Minimum "how different" score (default: 60)
    PAUSE_POLL_INTERVAL       : Seconds between pause-wait polls (default: 2)
    DOCKER_IMAGE              : Sandbox image for the Tester (default: node:20-slim)
    GITHUB_TOKEN / GITHUB_OWNER     : Deployer repository credentials
    RENDER_API_KEY / RENDER_OWNER_ID: Optional hosted deployment

Iteration Ceiling:
    MAX_ITERATIONS bounds cost: each pass is a full LLM-driven generation.
    A manual "iterate again" on a finished job extends the ceiling by one
    for that job only.
"""
import os
from dotenv import load_dotenv

load_dotenv()


def _as_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


# LLM
ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY")
ANTHROPIC_MODEL = os.getenv("ANTHROPIC_MODEL", "claude-sonnet-4-20250514")
ANTHROPIC_BASE_URL = os.getenv("ANTHROPIC_BASE_URL", "https://api.anthropic.com/v1")
ANTHROPIC_API_VERSION = "2023-06-01"
LLM_TIMEOUT_SECONDS = float(os.getenv("LLM_TIMEOUT_SECONDS", 120))
LLM_MAX_RETRIES = int(os.getenv("LLM_MAX_RETRIES", 2))

# Iteration loop
MAX_ITERATIONS = int(os.getenv("MAX_ITERATIONS", 5))
PARITY_THRESHOLD = int(os.getenv("PARITY_THRESHOLD", 90))
DIFFERENTIATION_THRESHOLD = int(os.getenv("DIFFERENTIATION_THRESHOLD", 60))
PAUSE_POLL_INTERVAL = float(os.getenv("PAUSE_POLL_INTERVAL", 2.0))

# Job listing
JOB_LIST_LIMIT = int(os.getenv("JOB_LIST_LIMIT", 50))

# Filesystem
OUTPUT_ROOT = os.getenv("OUTPUT_ROOT", os.path.abspath("generated"))
RESULTS_DIR = os.getenv("RESULTS_DIR", os.path.abspath("results"))

# Tester sandbox
DOCKER_IMAGE = os.getenv("DOCKER_IMAGE", "node:20-slim")
TEST_TIMEOUT_SECONDS = int(os.getenv("TEST_TIMEOUT_SECONDS", 600))

# Deployment
GITHUB_TOKEN = os.getenv("GITHUB_TOKEN")
GITHUB_OWNER = os.getenv("GITHUB_OWNER", "appbuster")
RENDER_API_KEY = os.getenv("RENDER_API_KEY")
RENDER_OWNER_ID = os.getenv("RENDER_OWNER_ID")

# Post-deploy verification (browser, visual parity, differentiation)
ENABLE_POST_DEPLOY_CHECKS = _as_bool(os.getenv("ENABLE_POST_DEPLOY_CHECKS", "true"))
