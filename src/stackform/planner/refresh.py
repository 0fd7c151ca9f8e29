"""Refresh recorded state from live provider data before planning."""

from typing import List, Sequence
from ..provider.base import ProviderRegistry
from ..schema.models import Operation
from ..schema.registry import SchemaRegistry, get_default_registry
from ..state.models import StateRecord
from ..utils.logging import get_logger

logger = get_logger("planner.refresh")


def refresh_records(
    records: Sequence[StateRecord],
    providers: ProviderRegistry,
    registry: SchemaRegistry = None
) -> List[StateRecord]:
    """
    Return copies of ``records`` reconciled with what providers report.

    The state store is not written; the refreshed copies only feed the
    planner. Records whose resource no longer exists are dropped so the
    planner re-creates them. Types without a read operation keep their
    recorded values. Attributes changed outside stackform are
    written into the copy's config, so the planner sets them back.

    Provider errors propagate unchanged.
    """
    registry = registry or get_default_registry()
    refreshed = []
    for record in records:
        resource_type = registry.get(record.resource_type)
        if not resource_type.supports(Operation.READ):
            logger.debug(f"{record.logical_name}: {resource_type.name} cannot be read, keeping recorded state")
            refreshed.append(record.model_copy(deep=True))
            continue
        live = providers.for_type(resource_type).read(resource_type, record.provider_id)
        if live is None:
            logger.warning(f"{record.logical_name} ({record.provider_id}) no longer exists, it will be re-created")
            continue

        copy = record.model_copy(deep=True)
        copy.outputs.update(live.outputs)
        for name, value in (live.attributes or {}).items():
            if name not in copy.attributes or copy.attributes[name] == value:
                continue
            logger.warning(f"{record.logical_name}: attribute '{name}' drifted from {copy.attributes[name]!r} to {value!r}")
            # only literal config values can be compared with the live value
            if copy.config.get(name) == copy.attributes[name]:
                copy.config[name] = value
            copy.attributes[name] = value
        refreshed.append(copy)

    logger.info(f"Refreshed {len(records)} record(s), {len(records) - len(refreshed)} missing")
    return refreshed
