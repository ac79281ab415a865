from __future__ import annotations

from typing import Any

from pydantic import ValidationError

from ._yaml_loader import YamlLoader
from .data_model import DataModel, StrictDataModel
from .exceptions import LoadError

__all__ = [
    "BackoffConfig",
    "Manifest",
    "ManifestMetadata",
    "MANIFEST_FILE",
    "ProviderConfig",
    "ResourceConfig",
    "Settings",
]


MANIFEST_FILE = "strata.yaml"


class ManifestMetadata(DataModel):
    name: str | None = None
    description: str | None = None
    version: str | None = None


class ProviderConfig(StrictDataModel):
    type: str
    parameters: dict[str, Any] = dict()


class BackoffConfig(StrictDataModel):
    """Bounded exponential backoff.

    Attributes:
        max_attempts: Attempts before giving up, including the first one.
        initial_delay: Delay in seconds after the first attempt.
        max_delay: Upper bound for a single delay in seconds.
        multiplier: Growth factor between consecutive delays.
    """

    max_attempts: int = 5
    initial_delay: float = 1.0
    max_delay: float = 30.0
    multiplier: float = 2.0

    def delay(self, attempt: int) -> float:
        """Delay after the given zero-based attempt."""
        return min(
            self.max_delay,
            self.initial_delay * (self.multiplier**attempt),
        )


class Settings(StrictDataModel):
    workers: int = 4
    retry: BackoffConfig = BackoffConfig()
    poll: BackoffConfig = BackoffConfig(
        max_attempts=60, initial_delay=2.0, max_delay=15.0
    )


class ResourceConfig(StrictDataModel):
    attributes: dict[str, Any] = dict()
    depends_on: list[str] = list()
    pinned: list[str] = list()


class Manifest(StrictDataModel):
    metadata: ManifestMetadata = ManifestMetadata()
    variables: dict[str, Any] = dict()
    settings: Settings = Settings()
    state: ProviderConfig = ProviderConfig(type="local")
    cloud: ProviderConfig | None = None
    external: dict[str, dict[str, dict[str, Any]]] = dict()
    resources: dict[str, dict[str, ResourceConfig]] = dict()
    outputs: dict[str, Any] = dict()

    @staticmethod
    def parse(path: str) -> Manifest:
        return Manifest.validate_obj(YamlLoader.load(path=path), path)

    @staticmethod
    def validate_obj(obj: dict, path: str = "manifest") -> Manifest:
        try:
            return Manifest.from_dict(obj)
        except ValidationError as e:
            raise LoadError(f"Invalid {path}: {e}")
