"""Exceptions shared across the pipeline."""

from __future__ import annotations


class SourceError(Exception):
    """The input repository could not be read or fetched."""


class ConnectivityError(Exception):
    """The language model endpoint is unreachable. Fatal for a run."""


class UnusableResponseError(Exception):
    """A model response had no usable content for its phase."""


class RunSuperseded(Exception):
    """A newer run replaced the one doing the work."""

    def __init__(self, run_id: str) -> None:
        super().__init__(f"Run {run_id} was superseded")
        self.run_id = run_id
