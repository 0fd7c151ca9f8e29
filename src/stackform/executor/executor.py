"""Apply planned actions against providers in dependency order."""

import threading
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from ..ingest.models import Interpolation, Reference, Template, to_symbolic
from ..planner.models import ActionType, Plan, PlannedAction
from ..provider.base import ProviderRegistry
from ..schema.registry import SchemaRegistry, get_default_registry
from ..state.models import StateRecord
from ..state.store import StateStore
from ..utils.errors import ActionFailedError, StackformError, UnresolvedReferenceError
from ..utils.logging import get_logger
from .models import ActionOutcome, ActionStatus, ApplyResult

logger = get_logger("executor.executor")

DEFAULT_PARALLELISM = 10
_BLOCKING = (ActionStatus.FAILED, ActionStatus.SKIPPED, ActionStatus.CANCELED)
_SATISFIED = (ActionStatus.SUCCEEDED, ActionStatus.UNCHANGED)


class Executor:
    """
    Runs a Plan against providers and records every completed action.

    Independent actions run concurrently on a bounded thread pool; an
    action starts only after every action it requires has succeeded. A
    failure marks the action failed and every action depending on it,
    directly or transitively, skipped. Nothing is retried.
    """

    def __init__(
        self,
        store: StateStore,
        providers: ProviderRegistry,
        registry: Optional[SchemaRegistry] = None,
        parallelism: int = DEFAULT_PARALLELISM
    ):
        if parallelism < 1:
            raise ValueError("parallelism must be >= 1")
        self.store = store
        self.providers = providers
        self.registry = registry or get_default_registry()
        self.parallelism = parallelism
        self._cancel = threading.Event()

    def cancel(self) -> None:
        """Stop scheduling new actions; in-flight actions run to completion."""
        if not self._cancel.is_set():
            logger.warning("Cancellation requested, no new actions will be started")
        self._cancel.set()

    @property
    def canceled(self) -> bool:
        return self._cancel.is_set()

    def execute(self, plan: Plan) -> ApplyResult:
        """
        Apply every action of ``plan``.

        Returns:
            ApplyResult with one outcome per action, in plan order
        """
        actions = {action.key: action for action in plan.actions}
        outcomes: Dict[str, ActionOutcome] = {}
        running: Dict[Future, str] = {}

        logger.info(f"Applying {len(plan.changes())} change(s) with parallelism {self.parallelism}")

        with ThreadPoolExecutor(max_workers=self.parallelism, thread_name_prefix="stackform-apply") as pool:
            while True:
                if not self._cancel.is_set():
                    self._schedule(plan, outcomes, running, pool)
                if not running:
                    break
                try:
                    done, _ = wait(list(running), return_when=FIRST_COMPLETED)
                except KeyboardInterrupt:
                    self.cancel()
                    continue
                for future in done:
                    key = running.pop(future)
                    outcomes[key] = future.result()

        for key, action in actions.items():
            if key not in outcomes:
                outcomes[key] = _outcome(action, ActionStatus.CANCELED)

        result = ApplyResult(
            outcomes=[outcomes[action.key] for action in plan.actions],
            canceled=self._cancel.is_set() and any(
                o.status == ActionStatus.CANCELED for o in outcomes.values()
            ),
        )
        logger.info(f"Apply finished: {result.summary()}")
        return result

    def _schedule(
        self,
        plan: Plan,
        outcomes: Dict[str, ActionOutcome],
        running: Dict[Future, str],
        pool: ThreadPoolExecutor
    ) -> None:
        in_flight = set(running.values())
        # plan order is topological, so one pass sees every requirement first
        for action in plan.actions:
            key = action.key
            if key in outcomes or key in in_flight:
                continue

            blocker = next(
                (r for r in action.requires if r in outcomes and outcomes[r].status in _BLOCKING),
                None,
            )
            if blocker is not None:
                root = outcomes[blocker].failed_dependency or blocker
                outcomes[key] = _outcome(action, ActionStatus.SKIPPED, failed_dependency=root)
                logger.warning(f"Skipping {key}: depends on failed {root}")
                continue

            if not all(r in outcomes and outcomes[r].status in _SATISFIED for r in action.requires):
                continue

            if action.action == ActionType.NO_OP:
                outcomes[key] = _outcome(action, ActionStatus.UNCHANGED,
                                         provider_id=action.prior.provider_id if action.prior else None)
                continue

            logger.debug(f"Starting {key}")
            running[pool.submit(self._run, action)] = key
            in_flight.add(key)

    def _run(self, action: PlannedAction) -> ActionOutcome:
        try:
            provider_id = self.apply_action(action)
        except Exception as e:
            error = ActionFailedError(action.logical_name, action.action.value, e)
            if isinstance(e, StackformError):
                logger.error(str(error))
            else:
                logger.error(str(error), exc_info=True)
            return _outcome(action, ActionStatus.FAILED, message=str(e), error=error)
        return _outcome(action, ActionStatus.SUCCEEDED, provider_id=provider_id)

    def apply_action(self, action: PlannedAction) -> Optional[str]:
        """
        Perform one action against its provider and record the result.

        Returns:
            Provider identifier of the affected resource
        """
        resource_type = self.registry.get(action.resource_type)
        provider = self.providers.for_type(resource_type)
        now = datetime.now(timezone.utc)

        if action.action == ActionType.DELETE:
            provider.delete(resource_type, action.prior.provider_id)
            current = self.store.get(action.logical_name)
            # a create-first replacement has already recorded the new resource
            if current is None or current.provider_id == action.prior.provider_id:
                self.store.remove(action.logical_name)
            logger.info(f"Deleted {action.logical_name} ({action.prior.provider_id})")
            return action.prior.provider_id

        attributes = self.resolve(action.desired or {}, action.logical_name)

        if action.action == ActionType.CREATE:
            result = provider.create(resource_type, attributes)
            record = StateRecord(
                logical_name=action.logical_name,
                resource_type=action.resource_type,
                provider_id=result.id,
                config=to_symbolic(action.desired or {}),
                attributes=attributes,
                outputs=result.outputs,
                dependencies=list(action.dependencies),
                created_at=now,
                updated_at=now,
            )
        elif action.action == ActionType.UPDATE:
            prior = action.prior
            result = provider.update(resource_type, prior.provider_id, attributes, prior.attributes)
            record = prior.model_copy(update={
                "config": to_symbolic(action.desired or {}),
                "attributes": attributes,
                "outputs": {**prior.outputs, **result.outputs},
                "dependencies": list(action.dependencies),
                "updated_at": now,
            })
        else:
            raise ValueError(f"Cannot apply action type {action.action}")

        try:
            self.store.put(record)
        except StackformError:
            logger.error(
                f"{action.logical_name} was {action.action.value}d as {result.id} but the state write failed; "
                "the next run will not know about it until state is repaired"
            )
            raise
        logger.info(f"{action.action.value.capitalize()}d {action.logical_name} ({result.id})")
        return result.id

    def resolve(self, value: Any, logical_name: str) -> Any:
        """Substitute references with values recorded for the referenced instances."""
        return resolve_value(value, self.store, logical_name)


def _outcome(action: PlannedAction, status: ActionStatus, **kwargs) -> ActionOutcome:
    return ActionOutcome(
        key=action.key,
        logical_name=action.logical_name,
        action=action.action,
        status=status,
        replace=action.replace,
        **kwargs
    )


def resolve_value(value: Any, store: StateStore, logical_name: str) -> Any:
    """
    Replace references in ``value`` with recorded ids and outputs.

    Raises:
        UnresolvedReferenceError: If a referenced instance or attribute is not recorded
    """
    if isinstance(value, Reference):
        return _lookup(value, store, logical_name)
    if isinstance(value, Interpolation):
        return value.substitute({ref: _lookup(ref, store, logical_name) for ref in value.references})
    if isinstance(value, dict):
        return {k: resolve_value(v, store, logical_name) for k, v in value.items()}
    if isinstance(value, list):
        return [resolve_value(v, store, logical_name) for v in value]
    return value


def _lookup(ref: Reference, store: StateStore, logical_name: str) -> Any:
    record = store.get(ref.target)
    if record is None:
        raise UnresolvedReferenceError(ref.target, logical_name)
    try:
        return record.value_of(ref.attribute)
    except KeyError:
        raise UnresolvedReferenceError(f"{ref.target}.{ref.attribute}", logical_name)


def resolve_outputs(template: Template, store: StateStore) -> Dict[str, Any]:
    """
    Resolve template outputs against recorded state.

    Outputs whose referenced instances are not (yet) recorded resolve to None.
    """
    values = {}
    for name, value in template.outputs.items():
        try:
            values[name] = resolve_value(value, store, f"output.{name}")
        except UnresolvedReferenceError as e:
            logger.debug(f"Output {name} unresolved: {e}")
            values[name] = None
    return values
