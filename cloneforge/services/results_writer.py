"""
Results Writer
==============
Serializes a finished Job into ``RESULTS_DIR/<job_id>.json`` for the
dashboard and for post-mortems after the process restarts (the registry
itself is in-memory only).
"""
import json
import logging
import os

from cloneforge.core.config import RESULTS_DIR
from cloneforge.models.job import Job

logger = logging.getLogger(__name__)


class ResultsWriter:
    """
    Writes one JSON document per job: the full record plus a short summary
    of the iteration trend.
    """

    def __init__(self, results_dir: str = RESULTS_DIR) -> None:
        self.results_dir = results_dir

    def path_for(self, job_id: str) -> str:
        return os.path.join(self.results_dir, f"{job_id}.json")

    @staticmethod
    def build_document(job: Job) -> dict:
        data = job.model_dump(mode="json")
        scores = [entry.parity_score for entry in job.iterations]
        data["summary"] = {
            "status": job.status.value,
            "passes": job.iteration_count,
            "parity_trend": scores,
            "best_parity": max(scores) if scores else 0,
            "deployed_urls": job.deployment.deployed_urls if job.deployment else [],
            "error": job.error,
        }
        return data

    def write_job(self, job: Job) -> bool:
        """Write the job's results file. Failures are logged, never raised."""
        try:
            os.makedirs(self.results_dir, exist_ok=True)
            output_path = self.path_for(job.id)
            logger.info("Writing results for %s to %s", job.id, output_path)
            with open(output_path, "w", encoding="utf-8") as f:
                json.dump(self.build_document(job), f, indent=2)
            return True
        except (OSError, TypeError, ValueError) as e:
            logger.error("Failed to write results for %s: %s", job.id, e, exc_info=True)
            return False
