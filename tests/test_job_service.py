"""
Job Service Tests
=================
create / get / list / control / iterate / delete with mock collaborators.
"""
import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from cloneforge.core.constants import CANCELLED_MESSAGE, JobStatus
from cloneforge.core.errors import ConfigError, NotFoundError, PreconditionError, ValidationError
from cloneforge.models.deployment import DeployResult
from cloneforge.models.generation import GenerationResult
from cloneforge.models.job import Job, JobInput
from cloneforge.services.job_queue import JobQueue
from cloneforge.services.job_service import JobService
from cloneforge.state.control import ControlChannel
from cloneforge.state.registry import JobRegistry

from conftest import make_analysis, make_collaborators


def _service(collaborators=None, api_key="sk-test", **kwargs):
    bundle = collaborators or make_collaborators()
    factory = MagicMock(return_value=bundle)
    service = JobService(
        JobRegistry(),
        ControlChannel(),
        JobQueue(),
        collaborator_factory=factory,
        default_api_key=api_key,
        poll_interval=0.01,
        cancel_grace_seconds=1.0,
        **kwargs,
    )
    return service, factory


def _add_job(service, status=None, with_analysis=True):
    job = Job(input=JobInput(target_name="Notion"))
    if with_analysis:
        job.analysis = make_analysis()
    if status is not None:
        job.status = status
    service.registry.add(job)
    return job


# ===================================================================
# create
# ===================================================================
def test_create_without_any_api_key_raises_config_error():
    service, factory = _service(api_key=None)

    with pytest.raises(ConfigError):
        asyncio.run(service.create("Notion"))

    assert len(service.registry) == 0
    factory.assert_not_called()


@pytest.mark.parametrize("name", [None, "", "   "])
def test_create_rejects_blank_target_name(name):
    service, _ = _service()
    with pytest.raises(ValidationError):
        asyncio.run(service.create(name))
    assert len(service.registry) == 0


def test_create_runs_job_to_completion():
    service, factory = _service()

    async def run_test():
        created = await service.create("  Notion ", description="Notes", api_key="sk-request")
        assert created.status == JobStatus.PENDING
        await service.queue.wait(created.id, timeout=2)
        return created

    created = asyncio.run(run_test())

    job = service.get(created.id)
    assert job.status == JobStatus.COMPLETE
    assert job.input.target_name == "Notion"
    assert job.input.description == "Notes"
    assert job.iteration_count == 1
    factory.assert_called_once_with("sk-request", None, None)


def test_request_key_falls_back_to_environment_key():
    service, factory = _service(api_key="sk-env")

    async def run_test():
        created = await service.create("Notion", github_owner="acme")
        await service.queue.wait(created.id, timeout=2)

    asyncio.run(run_test())
    factory.assert_called_once_with("sk-env", "acme", None)


def test_invalid_iteration_ceiling_is_a_config_error():
    with pytest.raises(ConfigError):
        _service(max_iterations=0)


# ===================================================================
# get / list
# ===================================================================
def test_get_unknown_job_raises_not_found():
    service, _ = _service()
    with pytest.raises(NotFoundError):
        service.get("job_missing")


def test_get_returns_isolated_snapshot():
    service, _ = _service()
    job = _add_job(service)
    snap = service.get(job.id)
    snap.error = "edited"
    assert job.error is None


def test_list_is_bounded():
    service, _ = _service(list_limit=2)
    for _ in range(4):
        _add_job(service)
    assert len(service.list()) == 2


# ===================================================================
# pause / continue / accept / cancel
# ===================================================================
@pytest.mark.parametrize("status", [JobStatus.COMPLETE, JobStatus.FAILED, JobStatus.CANCELLED])
def test_control_operations_rejected_on_terminal_jobs(status):
    service, _ = _service()
    job = _add_job(service, status=status)

    with pytest.raises(PreconditionError):
        service.pause(job.id)
    with pytest.raises(PreconditionError):
        service.resume(job.id)
    with pytest.raises(PreconditionError):
        service.accept(job.id)
    with pytest.raises(PreconditionError):
        asyncio.run(service.cancel(job.id))


def test_pause_and_accept_set_signals():
    service, _ = _service()
    job = _add_job(service, status=JobStatus.TESTING)

    service.pause(job.id)
    service.accept(job.id)
    service.accept(job.id)

    signals = service.control.get(job.id)
    assert signals.paused and signals.accepted
    service.resume(job.id)
    assert not signals.paused


def test_cancel_without_live_task_finalises_directly():
    service, _ = _service()
    job = _add_job(service)

    result = asyncio.run(service.cancel(job.id))

    assert result.status == JobStatus.CANCELLED
    assert result.error == CANCELLED_MESSAGE
    assert job.id not in service.control


def test_cancel_running_job():
    c = make_collaborators()
    started = {}

    async def slow_generate(analysis, slug, feedback=None):
        started["event"].set()
        await asyncio.sleep(10)
        return GenerationResult(output_dir="/tmp/x")

    c.generator.generate = AsyncMock(side_effect=slow_generate)
    service, _ = _service(collaborators=c)

    async def run_test():
        started["event"] = asyncio.Event()
        created = await service.create("Notion")
        await asyncio.wait_for(started["event"].wait(), timeout=1)
        return await service.cancel(created.id)

    result = asyncio.run(run_test())

    assert result.status == JobStatus.CANCELLED
    assert result.iterations == []


# ===================================================================
# iterate
# ===================================================================
def test_iterate_on_failed_job_is_rejected_and_record_unchanged():
    service, factory = _service()
    job = _add_job(service, status=JobStatus.FAILED)
    job.error = "Build failed"
    before = job.model_dump()

    with pytest.raises(PreconditionError):
        asyncio.run(service.iterate(job.id))

    assert job.model_dump() == before
    factory.assert_not_called()


def test_iterate_requires_an_analysis():
    service, _ = _service()
    job = _add_job(service, status=JobStatus.COMPLETE, with_analysis=False)
    with pytest.raises(PreconditionError):
        asyncio.run(service.iterate(job.id))


def test_iterate_on_complete_job_runs_one_more_pass():
    c = make_collaborators(scores=(95,))
    service, _ = _service(collaborators=c)

    async def run_test():
        created = await service.create("Notion")
        await service.queue.wait(created.id, timeout=2)
        await service.iterate(created.id)
        await service.queue.wait(created.id, timeout=2)
        return created.id

    job_id = asyncio.run(run_test())

    job = service.get(job_id)
    assert job.status == JobStatus.COMPLETE
    assert job.iteration_count == 2
    assert job.max_iterations == service.max_iterations + 1
    assert c.researcher.analyze.await_count == 1


def test_iterate_on_paused_job_requests_extra_pass():
    service, _ = _service()
    job = _add_job(service, status=JobStatus.PAUSED)
    signals = service.control.open(job.id)
    signals.pause()

    asyncio.run(service.iterate(job.id))

    assert not signals.paused
    assert signals.take_requested_iterations() == 1


# ===================================================================
# delete
# ===================================================================
def test_delete_tears_down_deployment_and_forgets_job():
    c = make_collaborators()
    c.deployer.teardown = AsyncMock(return_value=["Render teardown failed: HTTP 500"])
    service, _ = _service(collaborators=c)
    job = _add_job(service, status=JobStatus.COMPLETE)
    job.deployment = DeployResult(github_repo="appbuster/notion-abc123")

    errors = asyncio.run(service.delete(job.id))

    assert errors == ["Render teardown failed: HTTP 500"]
    c.deployer.teardown.assert_awaited_once()
    assert job.id not in service.registry
    assert job.id not in service.control


def test_delete_reports_teardown_exception():
    c = make_collaborators()
    c.deployer.teardown = AsyncMock(side_effect=RuntimeError("network down"))
    service, _ = _service(collaborators=c)
    job = _add_job(service, status=JobStatus.COMPLETE)
    job.deployment = DeployResult(github_repo="appbuster/notion-abc123")

    errors = asyncio.run(service.delete(job.id))

    assert errors == ["teardown: network down"]
    assert job.id not in service.registry


def test_delete_unknown_job_raises_not_found():
    service, _ = _service()
    with pytest.raises(NotFoundError):
        asyncio.run(service.delete("job_missing"))


def test_concurrent_iterate_on_complete_job_runs_once():
    c = make_collaborators(scores=(95,))
    service, _ = _service(collaborators=c)

    async def run_test():
        created = await service.create("Notion")
        await service.queue.wait(created.id, timeout=2)
        outcomes = await asyncio.gather(
            service.iterate(created.id), service.iterate(created.id), return_exceptions=True
        )
        await service.queue.wait(created.id, timeout=2)
        return created.id, outcomes

    job_id, outcomes = asyncio.run(run_test())

    errors = [o for o in outcomes if isinstance(o, Exception)]
    assert len(errors) == 1
    assert isinstance(errors[0], PreconditionError)
    job = service.get(job_id)
    assert job.status == JobStatus.COMPLETE
    assert job.iteration_count == 2


def test_delete_after_iteration_tears_down_every_render_service():
    c = make_collaborators(scores=(95,))
    c.deployer.deploy = AsyncMock(side_effect=[
        DeployResult(github_repo="appbuster/notion-abc123", render_service_ids=["srv-api-1", "srv-web-1"]),
        DeployResult(github_repo="appbuster/notion-abc123", render_service_ids=["srv-api-2", "srv-web-2"]),
    ])
    service, _ = _service(collaborators=c)

    async def run_test():
        created = await service.create("Notion")
        await service.queue.wait(created.id, timeout=2)
        await service.iterate(created.id)
        await service.queue.wait(created.id, timeout=2)
        return await service.delete(created.id)

    assert asyncio.run(run_test()) == []

    torn_down = c.deployer.teardown.await_args.args[0]
    assert sorted(torn_down.render_service_ids) == ["srv-api-1", "srv-api-2", "srv-web-1", "srv-web-2"]
