"""
Exception taxonomy for the raster catalog pipeline.

Per-file problems (unreadable rasters, encoder failures, assumption
violations) are recorded on the affected row and never raised out of a
batch loop. The exceptions below are reserved for conditions that stop a
step, or a single STAC item, outright.
"""

from pathlib import Path
from typing import Iterable, Union


class PipelineError(Exception):
    """Base exception for pipeline errors."""
    pass


class MissingArtifactError(PipelineError):
    """A file produced by an earlier step is not on disk."""

    def __init__(self, path: Union[str, Path], producer: str):
        self.path = Path(path)
        self.producer = producer
        super().__init__(
            f"Missing file: {self.path}. Run `{producer}` first to create it."
        )


class MissingColumnsError(PipelineError):
    """An upstream table exists but lacks columns this step needs."""

    def __init__(self, path: Union[str, Path], columns: Iterable[str]):
        self.path = Path(path)
        self.columns = sorted(columns)
        super().__init__(
            f"{self.path} is missing required columns: {', '.join(self.columns)}"
        )


class EmptyResultError(PipelineError):
    """A step would produce no primary output."""
    pass


class OutputCollisionError(PipelineError):
    """Two source rows resolve to the same output file or item id."""

    def __init__(self, what: str, value: str, sources: Iterable[str]):
        self.what = what
        self.value = value
        self.sources = list(sources)
        super().__init__(
            f"Duplicate {what} '{value}' produced by: {', '.join(self.sources)}"
        )


class StacItemError(PipelineError):
    """A single STAC item cannot be built from its source record."""
    pass
