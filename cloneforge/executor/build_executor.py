"""
Build Executor
==============
Sandboxed command runner for generated projects. Each call starts a fresh
container from DOCKER_IMAGE with the project bind-mounted at /workspace,
waits for the command, collects its combined output and removes the
container again.

The executor never touches project files itself and never talks to the LLM;
it reports what happened and the Tester decides what it means.

All docker SDK calls block, so the Tester dispatches through
``asyncio.to_thread``.
"""
import time
import logging
from dataclasses import dataclass, field
from typing import Optional

import docker
from docker.errors import APIError, ContainerError, ImageNotFound

from cloneforge.core.config import DOCKER_IMAGE, TEST_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)

SANDBOX_ROOT = "/workspace"
SANDBOX_MEMORY = "2g"
SANDBOX_CPUS = 2
SANDBOX_ENV = {"CI": "true", "NEXT_TELEMETRY_DISABLED": "1"}

EXCERPT_HEAD = 30
EXCERPT_TAIL = 30


@dataclass
class ExecutionResult:
    """
    Outcome of one sandboxed command.

    exit_code is -1 when the sandbox itself could not run the command; in
    that case ``error`` explains why. A non-zero exit with ``error`` unset is
    an ordinary failing check.
    """
    label: str = ""
    command: str = ""
    exit_code: int = -1
    full_log: str = ""
    log_excerpt: str = ""
    execution_time_seconds: float = 0.0
    environment_metadata: dict = field(default_factory=dict)
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0 and self.error is None


def create_log_excerpt(full_log: str, head: int = EXCERPT_HEAD, tail: int = EXCERPT_TAIL) -> str:
    """Keep the first ``head`` and last ``tail`` lines of a long log."""
    lines = full_log.splitlines()
    hidden = len(lines) - head - tail
    if hidden <= 0:
        return full_log
    marker = f"\n... ({hidden} lines omitted) ...\n"
    return "\n".join(lines[:head] + [marker] + lines[-tail:])


def _build_shell_command(command: str) -> str:
    # node images ship corepack, which provides pnpm
    return f"corepack enable >/dev/null 2>&1; {command}"


def _sandbox_workdir(working_dir: str) -> str:
    sub = working_dir.strip("/")
    return f"{SANDBOX_ROOT}/{sub}" if sub else SANDBOX_ROOT


def _start_container(client, workspace_path: str, command: str, workdir: str, image: str):
    return client.containers.run(
        image=image,
        command=["bash", "-c", _build_shell_command(command)],
        volumes={workspace_path: {"bind": SANDBOX_ROOT, "mode": "rw"}},
        environment=SANDBOX_ENV,
        working_dir=workdir,
        mem_limit=SANDBOX_MEMORY,
        nano_cpus=SANDBOX_CPUS * 1_000_000_000,
        name=f"cloneforge-sandbox-{int(time.time() * 1000)}",
        labels={"project": "cloneforge", "role": "sandbox"},
        detach=True,
    )


def _discard(container) -> None:
    try:
        container.remove(force=True)
    except Exception:
        logger.warning("Could not remove sandbox container %s", container.short_id, exc_info=True)


def run_in_container(
    workspace_path: str,
    command: str,
    label: str = "",
    timeout_seconds: int = TEST_TIMEOUT_SECONDS,
    docker_image: str = DOCKER_IMAGE,
    working_dir: str = "",
) -> ExecutionResult:
    """
    Run ``command`` in a throwaway container and return its result.

    ``working_dir`` is relative to the project root (e.g. "apps/web").
    Never raises: sandbox failures come back as exit_code -1 with ``error``.
    """
    result = ExecutionResult(label=label or command, command=command)
    workdir = _sandbox_workdir(working_dir)
    started = time.monotonic()
    container = None

    logger.info("[sandbox] %s | image=%s | workdir=%s", result.label, docker_image, workdir)
    try:
        container = _start_container(docker.from_env(), workspace_path, command, workdir, docker_image)
        status = container.wait(timeout=timeout_seconds)
        result.exit_code = status.get("StatusCode", -1)
        result.full_log = container.logs(stdout=True, stderr=True).decode("utf-8", errors="replace")
        result.environment_metadata = {
            "image": docker_image,
            "container_id": container.short_id,
            "timeout_applied": timeout_seconds,
        }
    except ImageNotFound:
        result.error = f"Docker image '{docker_image}' not found"
        logger.error(result.error)
    except ContainerError as e:
        result.error = f"Container execution error: {e}"
        result.exit_code = getattr(e, "exit_status", -1)
        result.full_log = str(e)
        logger.error(result.error)
    except APIError as e:
        result.error = f"Docker API error: {e}"
        logger.error(result.error)
    except Exception as e:
        # daemon unreachable, wait timeout: still a result for the Tester
        result.error = f"Sandbox failure: {type(e).__name__}: {e}"
        result.exit_code = -1
        logger.exception(result.error)
    finally:
        if container is not None:
            _discard(container)

    result.execution_time_seconds = round(time.monotonic() - started, 3)
    result.log_excerpt = create_log_excerpt(result.full_log)
    logger.info("[sandbox] %s exited %d in %.2fs",
                result.label, result.exit_code, result.execution_time_seconds)
    return result
