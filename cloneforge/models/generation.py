"""
Generation Result Model
Output of one Generator pass: where the project lives and what was written.
"""
from typing import List

from pydantic import BaseModel


class GenerationResult(BaseModel):
    output_dir: str
    files: List[str] = []
    errors: List[str] = []

    @property
    def file_count(self) -> int:
        return len(self.files)
