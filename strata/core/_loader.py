from __future__ import annotations

import copy
import importlib
import inspect
import os
import re
from enum import Enum
from typing import Any

from ._log_helper import get_logger, warn
from ._provider import Provider
from ._type_converter import TypeConverter
from ._yaml_loader import YamlLoader
from .exceptions import LoadError
from .manifest import MANIFEST_FILE, Manifest

ROOT_PACKAGE_NAME = "strata"

logger = get_logger(__name__)

_REF_PATTERN = re.compile(r"\$\{([^}]+)\}")
_FULL_REF_PATTERN = re.compile(r"^\$\{([^}]+)\}$")


class RefType(str, Enum):
    ENV = "env"
    METADATA = "metadata"
    VARIABLE = "variables"


class Loader:
    """Load a project manifest and the components it configures.

    `${variables.name}`, `${env.NAME}` and `${metadata.name}` are
    substituted while loading. Any other `${...}` value is a resource
    reference and is left for the graph builder.
    """

    path: str
    manifest_path: str
    manifest: Manifest

    def __init__(
        self,
        path: str = ".",
        manifest: str = MANIFEST_FILE,
        variables: dict[str, Any] | None = None,
    ):
        self.path = path
        self.manifest_path = os.path.join(path, manifest)
        obj = YamlLoader.load(path=self.manifest_path)
        self.manifest = self.resolve(obj, variables)

    @staticmethod
    def from_manifest(manifest: Manifest, path: str = ".") -> Loader:
        """Loader over an already resolved manifest."""
        loader = Loader.__new__(Loader)
        loader.path = path
        loader.manifest_path = os.path.join(path, MANIFEST_FILE)
        loader.manifest = manifest
        return loader

    @staticmethod
    def resolve(
        obj: dict[str, Any],
        variables: dict[str, Any] | None = None,
    ) -> Manifest:
        obj = copy.deepcopy(obj)
        declared = obj.get("variables") or dict()
        if not isinstance(declared, dict):
            raise LoadError("variables must be a mapping")
        merged = dict(declared)
        if variables:
            unknown = [k for k in variables if k not in declared]
            for name in unknown:
                warn(f"Variable {name} is not declared in the manifest")
            merged.update(variables)
        metadata = obj.get("metadata") or dict()
        resolver = _ParamResolver(variables=merged, metadata=metadata)
        merged = {k: resolver.resolve(v) for k, v in merged.items()}
        resolver.variables = merged
        obj["variables"] = merged
        for key, value in obj.items():
            if key != "variables":
                obj[key] = resolver.resolve(value)
        return Manifest.validate_obj(obj)

    def load_state_store(self) -> Any:
        from strata.state import StateStore

        config = self.manifest.state
        parameters = dict(config.parameters)
        path = parameters.get("path")
        if isinstance(path, str) and not os.path.isabs(path):
            parameters["path"] = os.path.join(self.path, path)
        return StateStore(
            __provider__=dict(type=config.type, parameters=parameters)
        )

    def load_cloud(self) -> Any:
        from strata.cloud import Cloud

        if self.manifest.cloud is None:
            raise LoadError("Manifest does not configure a cloud provider")
        return Cloud(__provider__=self.manifest.cloud.model_dump())

    @staticmethod
    def load_provider_instance(
        path: str,
        parameters: dict[str, Any] | None = None,
    ) -> Provider:
        provider = Loader.load_class(path, Provider)
        converted_parameters = TypeConverter.convert_args(
            provider.__init__, parameters or dict()
        )
        logger.debug("Loading provider %s", path)
        return provider(**converted_parameters)

    @staticmethod
    def get_provider_path(package_name: str, provider_type: str) -> str:
        if ":" in provider_type:
            return provider_type
        elif provider_type.startswith(f"{ROOT_PACKAGE_NAME}."):
            if ".providers." in provider_type:
                return provider_type
            return f"{provider_type}.providers.default"
        return f"{package_name}.providers.{provider_type}"

    @staticmethod
    def load_class(path: str, type: Any) -> Any:
        class_name = None
        if ":" in path:
            module_name, class_name = path.split(":", 1)
        else:
            module_name = path
        try:
            module = importlib.import_module(module_name)
        except ModuleNotFoundError as e:
            raise LoadError(f"Cannot load {path}: {e}")
        if class_name is not None:
            cls = getattr(module, class_name, None)
            if cls is None:
                raise LoadError(f"{class_name} not found in {module_name}")
            return cls
        for _, cls in inspect.getmembers(module, inspect.isclass):
            if issubclass(cls, type) and cls.__module__ == module_name:
                return cls
        raise LoadError(f"{type.__name__} not found at {module_name}")


class _ParamResolver:
    variables: dict[str, Any]
    metadata: dict[str, Any]

    def __init__(self, variables: dict[str, Any], metadata: dict[str, Any]):
        self.variables = variables
        self.metadata = metadata

    def resolve(self, value: Any) -> Any:
        if isinstance(value, dict):
            return {k: self.resolve(v) for k, v in value.items()}
        elif isinstance(value, list):
            return [self.resolve(item) for item in value]
        elif isinstance(value, str):
            return self._resolve_str(value)
        return value

    def _resolve_str(self, value: str) -> Any:
        match = _FULL_REF_PATTERN.match(value)
        if match:
            found, resolved = self._lookup(match.group(1))
            return self.resolve(resolved) if found else value

        def replace(m: re.Match) -> str:
            found, resolved = self._lookup(m.group(1))
            if not found:
                return m.group(0)
            return str(self.resolve(resolved))

        return _REF_PATTERN.sub(replace, value)

    def _lookup(self, ref: str) -> tuple[bool, Any]:
        prefix, _, param = ref.partition(".")
        if prefix == RefType.VARIABLE.value:
            if param not in self.variables:
                raise LoadError(f"Undefined variable {param}")
            return True, self.variables[param]
        if prefix == RefType.ENV.value:
            value = os.getenv(param)
            if value is None:
                raise LoadError(f"Environment variable {param} is not set")
            return True, value
        if prefix == RefType.METADATA.value:
            return True, self.metadata.get(param)
        return False, None
