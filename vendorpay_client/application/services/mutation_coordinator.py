"""
Mutation coordinator.

Runs one logical write against the remote API while keeping the query cache
optimistic:

    idle -> optimistic_applied -> settled_success | settled_failure

The optimistic transform is applied to every cached key under the mutation's
affected prefixes after each prefix has been snapshotted. A failed request
restores the snapshots exactly and publishes one error notification, except
on 401: session teardown has already emptied the cache and announced the
expiry, so nothing is restored. A
successful request keeps the optimistic state, purges deleted keys and
invalidates the affected prefixes so observed queries refetch authoritative
data.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional, Sequence, Union

from shared.utils.constants import NotificationTitles, QueryKey
from shared.utils.exceptions import (
    ApiException,
    SchemaMismatchException,
    UnauthorizedException,
    VendorPayException,
)
from shared.utils.logging_config import get_logger
from vendorpay_client.application.interfaces.service_interfaces import NotifierInterface
from vendorpay_client.application.services.optimistic_transforms import Transform
from vendorpay_client.application.services.query_cache import CacheSnapshot, QueryCache

logger = get_logger(__name__)


class MutationState(str, Enum):
    IDLE = "idle"
    OPTIMISTIC_APPLIED = "optimistic_applied"
    SETTLED_SUCCESS = "settled_success"
    SETTLED_FAILURE = "settled_failure"


_TRANSITIONS = {
    MutationState.IDLE: [MutationState.OPTIMISTIC_APPLIED],
    MutationState.OPTIMISTIC_APPLIED: [MutationState.SETTLED_SUCCESS, MutationState.SETTLED_FAILURE],
    MutationState.SETTLED_SUCCESS: [],
    MutationState.SETTLED_FAILURE: [],
}


@dataclass
class MutationSpec:
    """Everything the coordinator needs to run one mutation."""
    name: str
    request: Callable[[], Awaitable[Any]]
    affected: Sequence[QueryKey]
    failure_title: str
    fallback_message: str
    transform: Optional[Transform] = None
    invalidate: Optional[Sequence[QueryKey]] = None
    purge: Sequence[QueryKey] = ()
    # plain text, or built from the response data
    success_message: Union[str, Callable[[Any], str], None] = None

    def describe_success(self, data: Any) -> Optional[str]:
        if callable(self.success_message):
            return self.success_message(data)
        return self.success_message


@dataclass
class MutationResult:
    name: str
    state: MutationState = MutationState.IDLE
    data: Any = None
    error: Optional[VendorPayException] = None
    history: List[MutationState] = field(default_factory=lambda: [MutationState.IDLE])

    @property
    def succeeded(self) -> bool:
        return self.state == MutationState.SETTLED_SUCCESS

    @property
    def settled(self) -> bool:
        return self.state in (MutationState.SETTLED_SUCCESS, MutationState.SETTLED_FAILURE)

    def transition_to(self, new_state: MutationState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise ValueError(f"Invalid mutation transition from {self.state} to {new_state}")
        self.state = new_state
        self.history.append(new_state)

    def raise_for_error(self) -> Any:
        """Re-raise the failure, or return the data when the mutation succeeded."""
        if self.error is not None:
            raise self.error
        return self.data


SettledCallback = Callable[[MutationResult], None]


def error_message(error: Exception, fallback: str) -> str:
    """Server message when there is one, the per-operation fallback otherwise."""
    if isinstance(error, ApiException) and error.message:
        return error.message
    return fallback


class MutationCoordinator:

    def __init__(self, cache: QueryCache, notifier: NotifierInterface, await_refetch: bool = True):
        self.cache = cache
        self.notifier = notifier
        self.await_refetch = await_refetch

    async def execute(self, spec: MutationSpec, on_settled: Optional[SettledCallback] = None) -> MutationResult:
        """
        Run a mutation.

        Pre-flight validation belongs to the caller and must happen before this
        call; nothing here touches the network before the cache is snapshotted.

        Args:
            spec: Mutation description
            on_settled: Called once with the result, on success and on failure

        Returns:
            MutationResult carrying the response data or the error
        """
        result = MutationResult(name=spec.name)
        snapshots = self._apply_optimistic(spec)
        result.transition_to(MutationState.OPTIMISTIC_APPLIED)

        try:
            try:
                result.data = await spec.request()
            except UnauthorizedException as e:
                # session teardown already cleared the cache and told the user
                logger.warning(
                    "Mutation failed, session expired",
                    extra={"mutation": spec.name, "status_code": e.status_code},
                )
                result.error = e
                result.transition_to(MutationState.SETTLED_FAILURE)
                return result
            except (ApiException, SchemaMismatchException) as e:
                self._rollback(spec, snapshots, e)
                result.error = e
                result.transition_to(MutationState.SETTLED_FAILURE)
                return result

            await self._reconcile(spec)
            result.transition_to(MutationState.SETTLED_SUCCESS)
            logger.info("Mutation succeeded", extra={"mutation": spec.name})
            message = spec.describe_success(result.data)
            if message:
                self.notifier.success(NotificationTitles.SUCCESS, message)
            return result
        finally:
            if not result.settled:
                # an unexpected error escaped the request; never leave optimistic state behind
                self._restore(snapshots)
            if on_settled is not None:
                on_settled(result)

    def _apply_optimistic(self, spec: MutationSpec) -> List[CacheSnapshot]:
        snapshots = []
        for prefix in spec.affected:
            self.cache.cancel(prefix)
            snapshots.append(self.cache.snapshot(prefix))
        if spec.transform is not None:
            changed = sum(self.cache.update(prefix, spec.transform) for prefix in spec.affected)
            logger.debug("Optimistic update applied", extra={"mutation": spec.name, "changed_entries": changed})
        return snapshots

    def _restore(self, snapshots: List[CacheSnapshot]) -> None:
        for snapshot in reversed(snapshots):
            self.cache.restore(snapshot)

    def _rollback(self, spec: MutationSpec, snapshots: List[CacheSnapshot], error: Exception) -> None:
        self._restore(snapshots)
        message = error_message(error, spec.fallback_message)
        logger.warning(
            "Mutation failed, cache restored",
            extra={
                "mutation": spec.name,
                "error_type": type(error).__name__,
                "status_code": getattr(error, "status_code", None),
                "error_details": message,
            },
        )
        self.notifier.error(spec.failure_title, message)

    async def _reconcile(self, spec: MutationSpec) -> None:
        for prefix in spec.purge:
            self.cache.remove(prefix)
        tasks = []
        for prefix in spec.invalidate if spec.invalidate is not None else spec.affected:
            tasks.extend(self.cache.invalidate(prefix))
        if self.await_refetch and tasks:
            for task in tasks:
                await task
