from __future__ import annotations

from enum import Enum

from strata.core import DataModel
from strata.graph import LifecycleState
from strata.plan import Action, Plan


class OperationStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"
    CANCELLED = "cancelled"


class OperationResult(DataModel):
    """Outcome of one plan operation.

    Attributes:
        identity: Resource identity.
        action: Planned action.
        status: Outcome.
        lifecycle: Lifecycle recorded in state, None if the record
            was removed or never written.
        resource_id: Cloud id after the operation.
        attempts: Cloud calls made for the mutating request.
        error: Error message for failed or skipped operations.
    """

    identity: str
    action: Action
    status: OperationStatus
    lifecycle: LifecycleState | None = None
    resource_id: str | None = None
    attempts: int = 0
    error: str | None = None


class ApplyResult(DataModel):
    plan: Plan
    results: list[OperationResult] = list()
    version: int = 0
    """Snapshot version after the last recorded outcome."""

    @property
    def succeeded(self) -> bool:
        return all(r.status == OperationStatus.SUCCEEDED for r in self.results)

    @property
    def exit_code(self) -> int:
        return 0 if self.succeeded else 1

    def get(self, identity: str) -> OperationResult | None:
        for result in self.results:
            if result.identity == identity:
                return result
        return None

    def counts(self) -> dict[str, int]:
        counts = {status.value: 0 for status in OperationStatus}
        for result in self.results:
            counts[result.status.value] += 1
        return counts

    def render(self) -> str:
        lines = []
        for result in self.results:
            status = result.status.value
            line = f"{status:<9} {result.action.value} {result.identity}"
            if result.error:
                line = f"{line}: {result.error}"
            lines.append(line)
        counts = self.counts()
        lines.append("")
        lines.append(
            f"Apply complete: {counts['succeeded']} succeeded, "
            f"{counts['failed']} failed, {counts['skipped']} skipped, "
            f"{counts['cancelled']} cancelled."
        )
        return "\n".join(lines) + "\n"
