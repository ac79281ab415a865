import inspect
from functools import wraps
from typing import Any, Callable, TypeVar, cast

from ._operation import Operation
from .exceptions import NotSupportedError

T = TypeVar("T", bound=Callable[..., Any])


def operation(**config: Any) -> Callable[[T], T]:
    """Route a component method to the bound provider.

    Components without a provider, or whose provider does not implement
    the operation, run the decorated body instead.
    """

    def decorator(func: T) -> T:
        setattr(func, "__operation__", True)
        setattr(func, "__config__", config)
        sig = inspect.signature(func)

        def to_operation(args, kwargs) -> Operation:
            bound_args = sig.bind(*args, **kwargs)
            bound_args.apply_defaults()
            locals = dict(bound_args.arguments)
            locals.pop("self", None)
            name = func.__name__
            if inspect.iscoroutinefunction(func):
                name = name[1:]
            return Operation.normalize(name=name, args=locals)

        if not inspect.iscoroutinefunction(func):

            @wraps(func)
            def wrapper(*args, **kwargs) -> Any:
                self = args[0]
                context = kwargs.pop("__context__", None)
                if hasattr(self, "__provider__"):
                    try:
                        return self.__run__(
                            to_operation(args, kwargs), context
                        )
                    except NotSupportedError:
                        return func(*args, **kwargs)
                return func(*args, **kwargs)

            return cast(T, wrapper)

        @wraps(func)
        async def awrapper(*args, **kwargs) -> Any:
            self = args[0]
            context = kwargs.pop("__context__", None)
            if hasattr(self, "__provider__"):
                try:
                    return await self.__arun__(
                        to_operation(args, kwargs), context
                    )
                except NotSupportedError:
                    return await func(*args, **kwargs)
            return await func(*args, **kwargs)

        return cast(T, awrapper)

    return decorator
