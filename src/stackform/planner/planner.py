"""Diff desired instances against recorded state to produce an ordered plan."""

import networkx as nx
from typing import Dict, List, Optional, Sequence, Set, Tuple
from ..graph.dependency_graph import DependencyGraph
from ..ingest.models import ResourceInstance, Template, collect_references
from ..schema.models import Operation, ResourceType
from ..schema.registry import SchemaRegistry, get_default_registry
from ..state.models import StateRecord
from ..utils.errors import CycleDetectedError, UnsupportedOperationError
from ..utils.logging import get_logger
from .models import ActionType, AttributeChange, Plan, PlannedAction, action_key

logger = get_logger("planner.planner")

CREATE, UPDATE, REPLACE, NO_OP = "create", "update", "replace", "no-op"

_OPERATIONS = {
    ActionType.CREATE: Operation.CREATE,
    ActionType.UPDATE: Operation.UPDATE,
    ActionType.DELETE: Operation.DELETE,
}


def create_plan(
    template: Optional[Template],
    records: Sequence[StateRecord],
    registry: Optional[SchemaRegistry] = None,
    destroy: bool = False,
    refreshed: bool = False,
    state_serial: int = 0
) -> Plan:
    """
    Compute the actions that reconcile recorded state with the template.

    Never mutates state. Create/update actions follow their dependencies,
    deletes precede the deletion of what they depend on. A replacement
    whose recorded dependents are only updated creates the new resource
    first and deletes the old one after those updates.

    Args:
        template: Parsed template (ignored for destroy plans)
        records: Current state records, in state order
        registry: Schema registry (defaults to the built-in registry)
        destroy: Plan a full teardown (empty desired set)
        refreshed: Whether records were refreshed from providers
        state_serial: Serial of the state snapshot the records came from

    Returns:
        Plan with actions in execution order

    Raises:
        CycleDetectedError: If the desired references form a cycle
        UnsupportedOperationError: If an action needs an operation its type lacks
    """
    registry = registry or get_default_registry()
    desired: List[ResourceInstance] = [] if destroy or template is None else list(template.resources)
    graph = DependencyGraph().build_from_instances(desired)
    order = graph.topological_order()
    by_name = {instance.logical_name: instance for instance in desired}
    recorded = {record.logical_name: record for record in records}

    decisions: Dict[str, Tuple[str, List[AttributeChange], List[str]]] = {}
    for name in order:
        decisions[name] = _classify(by_name[name], recorded.get(name), registry)

    _cascade_replacements(order, by_name, recorded, decisions, registry)
    create_first = _create_first_replacements(decisions, records)

    actions: Dict[str, PlannedAction] = {}
    for name in order:
        instance = by_name[name]
        record = recorded.get(name)
        kind, changes, reasons = decisions[name]
        common = dict(
            logical_name=name,
            resource_type=instance.resource_type,
            desired=dict(instance.attributes),
            prior=record,
            dependencies=instance.dependency_names(),
            changes=changes,
        )
        if kind == REPLACE:
            _add(actions, PlannedAction(
                logical_name=name,
                resource_type=record.resource_type,
                action=ActionType.DELETE,
                replace=True,
                replace_reason=reasons,
                create_before_delete=name in create_first,
                prior=record,
            ))
            _add(actions, PlannedAction(
                action=ActionType.CREATE,
                replace=True,
                replace_reason=reasons,
                create_before_delete=name in create_first,
                **common
            ))
        elif kind == CREATE:
            _add(actions, PlannedAction(action=ActionType.CREATE, **common))
        elif kind == UPDATE:
            _add(actions, PlannedAction(action=ActionType.UPDATE, **common))
        else:
            _add(actions, PlannedAction(action=ActionType.NO_OP, **common))

    for record in records:
        if record.logical_name not in by_name:
            _add(actions, PlannedAction(
                logical_name=record.logical_name,
                resource_type=record.resource_type,
                action=ActionType.DELETE,
                prior=record,
            ))

    _check_operations(actions, registry)
    _link_requirements(actions, by_name, records)
    ordered = _order_actions(actions, by_name, records)

    plan = Plan(
        actions=ordered,
        destroy=destroy,
        refreshed=refreshed,
        template_digest=template.digest if template is not None else None,
        state_serial=state_serial,
    )
    logger.info(f"Planned {len(plan.changes())} change(s): {plan.summary()}")
    return plan


def diff_attributes(
    record: StateRecord,
    instance: ResourceInstance,
    resource_type: ResourceType
) -> List[AttributeChange]:
    """Attribute-level diff between the recorded config and the desired instance."""
    desired = instance.symbolic_config()
    changes = []
    names = list(desired) + [name for name in record.config if name not in desired]
    for name in names:
        before = record.config.get(name)
        after = desired.get(name)
        if before == after:
            continue
        attr = resource_type.attribute(name)
        changes.append(AttributeChange(
            name=name,
            before=before,
            after=after,
            forces_replacement=bool(attr and attr.immutable),
            sensitive=bool(attr and attr.sensitive),
        ))
    return changes


def _classify(
    instance: ResourceInstance,
    record: Optional[StateRecord],
    registry: SchemaRegistry
) -> Tuple[str, List[AttributeChange], List[str]]:
    resource_type = registry.get(instance.resource_type)

    if record is None:
        changes = [
            AttributeChange(name=name, after=value, sensitive=name in resource_type.sensitive_attributes)
            for name, value in instance.symbolic_config().items()
        ]
        return CREATE, changes, []

    if record.resource_type != instance.resource_type:
        return REPLACE, [], [f"resource type {record.resource_type} -> {instance.resource_type}"]

    changes = diff_attributes(record, instance, resource_type)
    if not changes:
        return NO_OP, [], []
    reasons = [c.name for c in changes if c.forces_replacement]
    if reasons:
        return REPLACE, changes, reasons
    if not resource_type.supports(Operation.UPDATE):
        return REPLACE, changes, [c.name for c in changes]
    return UPDATE, changes, []


def _cascade_replacements(
    order: List[str],
    by_name: Dict[str, ResourceInstance],
    recorded: Dict[str, StateRecord],
    decisions: Dict[str, Tuple[str, List[AttributeChange], List[str]]],
    registry: SchemaRegistry
) -> None:
    """A replaced instance gets new outputs, so instances referencing it must follow."""
    for name in order:
        kind, changes, reasons = decisions[name]
        if kind in (CREATE, REPLACE):
            continue
        instance = by_name[name]
        resource_type = registry.get(instance.resource_type)
        record = recorded[name]
        changed = {c.name for c in changes}
        for attr_name, value in instance.attributes.items():
            replaced = [ref for ref in collect_references(value) if decisions[ref.target][0] == REPLACE]
            if not replaced or attr_name in changed:
                continue
            attr = resource_type.attribute(attr_name)
            immutable = bool(attr and attr.immutable)
            changes.append(AttributeChange(
                name=attr_name,
                before=record.attributes.get(attr_name),
                after=instance.symbolic_config()[attr_name],
                forces_replacement=immutable,
                sensitive=bool(attr and attr.sensitive),
            ))
            changed.add(attr_name)
            if immutable:
                reasons.append(attr_name)
                kind = REPLACE
            elif kind == NO_OP:
                kind = UPDATE
            logger.debug(f"{name} follows replacement of {', '.join(r.target for r in replaced)}")
        if kind == UPDATE and not resource_type.supports(Operation.UPDATE):
            kind, reasons = REPLACE, [c.name for c in changes]
        decisions[name] = (kind, changes, reasons)


def _create_first_replacements(
    decisions: Dict[str, Tuple[str, List[AttributeChange], List[str]]],
    records: Sequence[StateRecord]
) -> Set[str]:
    """
    Replacements that must create the new resource before deleting the old one.

    A recorded dependent that stays and is only updated still holds the old
    resource until its update runs, and the update needs the new resource.
    """
    create_first = set()
    for record in records:
        if decisions.get(record.logical_name, (None,))[0] != UPDATE:
            continue
        for dependency in record.dependencies:
            if dependency != record.logical_name and decisions.get(dependency, (None,))[0] == REPLACE:
                create_first.add(dependency)
    return create_first


def _add(actions: Dict[str, PlannedAction], action: PlannedAction) -> None:
    actions[action.key] = action


def _check_operations(actions: Dict[str, PlannedAction], registry: SchemaRegistry) -> None:
    for action in actions.values():
        operation = _OPERATIONS.get(action.action)
        if operation is None or not registry.has(action.resource_type):
            continue
        if not registry.get(action.resource_type).supports(operation):
            raise UnsupportedOperationError(action.logical_name, action.resource_type, operation.value)


def _link_requirements(
    actions: Dict[str, PlannedAction],
    by_name: Dict[str, ResourceInstance],
    records: Sequence[StateRecord]
) -> None:
    def require(action: PlannedAction, key: str) -> None:
        if key in actions and key not in action.requires:
            action.requires.append(key)

    for action in actions.values():
        name = action.logical_name
        if action.action in (ActionType.CREATE, ActionType.UPDATE):
            for dependency in by_name[name].dependency_names():
                create_key = action_key(ActionType.CREATE, dependency)
                if create_key in actions:
                    require(action, create_key)
                else:
                    require(action, action_key(ActionType.UPDATE, dependency))
            if action.replace and not action.create_before_delete:
                require(action, action_key(ActionType.DELETE, name))

        elif action.action == ActionType.DELETE:
            if action.create_before_delete:
                require(action, action_key(ActionType.CREATE, name))
            for record in records:
                if name not in record.dependencies or record.logical_name == name:
                    continue
                # dependents go first, whether they are removed or moved off this resource
                require(action, action_key(ActionType.DELETE, record.logical_name))
                if not action.replace or action.create_before_delete:
                    require(action, action_key(ActionType.UPDATE, record.logical_name))


def _order_actions(
    actions: Dict[str, PlannedAction],
    by_name: Dict[str, ResourceInstance],
    records: Sequence[StateRecord]
) -> List[PlannedAction]:
    state_position = {record.logical_name: i for i, record in enumerate(records)}
    phase = {ActionType.DELETE: 0, ActionType.CREATE: 1, ActionType.UPDATE: 1, ActionType.NO_OP: 1}

    def sort_key(key: str) -> Tuple[int, int]:
        action = actions[key]
        instance = by_name.get(action.logical_name)
        if instance is not None:
            return (instance.index, phase[action.action])
        return (len(by_name) + state_position.get(action.logical_name, 0), 0)

    graph = nx.DiGraph()
    for key, action in actions.items():
        graph.add_node(key)
        for required in action.requires:
            graph.add_edge(required, key)

    try:
        ordered_keys = list(nx.lexicographical_topological_sort(graph, key=sort_key))
    except nx.NetworkXUnfeasible:
        raise CycleDetectedError([edge[0] for edge in nx.find_cycle(graph)])
    return [actions[key] for key in ordered_keys]
