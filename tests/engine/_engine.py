from typing import Any

from common.resources import manifest

from strata.core import Loader
from strata.engine import Engine


def no_sleep(seconds: float) -> None:
    pass


def get_engine(**kwargs: Any) -> Engine:
    return Engine(
        manifest=Loader.resolve(manifest(**kwargs)),
        sleep=no_sleep,
    )
