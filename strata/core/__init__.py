from ._component import Component
from ._context import Context, RunContext
from ._decorators import operation
from ._loader import Loader
from ._log_helper import configure, get_logger, warn
from ._operation import Operation
from ._provider import Provider
from ._response import Response, unwrap
from ._type_converter import TypeConverter
from .data_model import DataModel, StrictDataModel
from .time import Time

__all__ = [
    "Component",
    "Context",
    "DataModel",
    "Loader",
    "Operation",
    "Provider",
    "Response",
    "RunContext",
    "StrictDataModel",
    "Time",
    "TypeConverter",
    "configure",
    "get_logger",
    "operation",
    "unwrap",
    "warn",
]
