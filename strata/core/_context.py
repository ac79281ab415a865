from __future__ import annotations

from typing import Any

from .data_model import DataModel


class Context(DataModel):
    id: str | None = None
    data: dict[str, Any] | None = None


class RunContext(DataModel):
    """
    Run context.
    """

    path: str = "."
    manifest: str = "strata.yaml"
    variables: dict[str, Any] = dict()
