"""
FastAPI dependency wiring: the one place the process-wide registry,
control channel, queue and job service are constructed.
"""
from cloneforge.services.job_queue import JobQueue
from cloneforge.services.job_service import JobService
from cloneforge.services.results_writer import ResultsWriter
from cloneforge.state.control import ControlChannel
from cloneforge.state.registry import JobRegistry

registry = JobRegistry()
control = ControlChannel()
queue = JobQueue()
job_service = JobService(registry, control, queue, results_writer=ResultsWriter())


def get_job_service() -> JobService:
    return job_service


def get_queue() -> JobQueue:
    return queue
