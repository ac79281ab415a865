__all__ = [
    "BaseError",
    "BadRequestError",
    "ConflictError",
    "CycleError",
    "GraphError",
    "InternalError",
    "LoadError",
    "NotFoundError",
    "NotSupportedError",
    "PlanConflictError",
    "PreconditionFailedError",
    "ProviderError",
    "ProviderPermanentError",
    "ProviderTransientError",
    "UnresolvedReferenceError",
    "StateLockedError",
]


class BaseError(Exception):
    status_code: int

    identity: str | None = None
    action: str | None = None

    def __init__(
        self,
        message: str | None = None,
        identity: str | None = None,
        action: str | None = None,
    ):
        self.message = message
        if identity is not None:
            self.identity = identity
        if action is not None:
            self.action = action
        super().__init__(*([message] if message is not None else []))

    def __str__(self) -> str:
        message = self.message or self.__class__.__name__
        prefix = " ".join(p for p in (self.action, self.identity) if p)
        if prefix:
            return f"{prefix}: {message}"
        return message


class BadRequestError(BaseError):
    status_code = 400


class NotFoundError(BaseError):
    status_code = 404


class ConflictError(BaseError):
    status_code = 409


class PreconditionFailedError(BaseError):
    status_code = 412


class NotSupportedError(BaseError):
    status_code = 415


class GraphError(BadRequestError):
    """Invalid resource graph."""


class CycleError(GraphError):
    cycle: list[str]

    def __init__(self, cycle: list[str]):
        self.cycle = cycle
        super().__init__(
            "dependency cycle " + " -> ".join(cycle),
            identity=cycle[0] if cycle else None,
        )


class UnresolvedReferenceError(GraphError):
    reference: str

    def __init__(self, identity: str | None, reference: str):
        self.reference = reference
        super().__init__(
            f"reference to undeclared resource {reference}",
            identity=identity,
        )


class PlanConflictError(ConflictError):
    """Plan computed against a snapshot version that is no longer current."""


class StateLockedError(ConflictError):
    """Snapshot is held by another apply."""


class ProviderError(BaseError):
    status_code = 500


class ProviderTransientError(ProviderError):
    status_code = 503


class ProviderPermanentError(ProviderError):
    status_code = 400


class InternalError(Exception):
    status_code = 500


class LoadError(Exception):
    status_code = 500
