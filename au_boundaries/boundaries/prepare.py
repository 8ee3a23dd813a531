"""Map an event's native geography to a comparison target."""

from __future__ import annotations

import pandas as pd

from au_boundaries.boundaries.allocation import get_allocation_table
from au_boundaries.boundaries.correspondence import find_hop_path, get_correspondence
from au_boundaries.boundaries.redistribution import apply_redistribution_adjustments
from au_boundaries.boundaries.session import BoundarySession
from au_boundaries.common.codes import sa1_key_columns
from au_boundaries.common.config_loader import ConfigBundle
from au_boundaries.common.errors import ConfigError, ContractError, InvalidCombinationError
from au_boundaries.common.logging import log_event
from au_boundaries.common.models import ComparisonSpec, EventSpec, Geography


def validate_combination(event: str, compare_to: str, config: ConfigBundle) -> tuple[EventSpec, ComparisonSpec]:
    if event not in config.events:
        raise ConfigError(f"Unknown event {event!r}; expected one of {', '.join(config.events)}")
    if compare_to not in config.comparisons:
        raise ConfigError(f"Unknown comparison {compare_to!r}; expected one of {', '.join(config.comparisons)}")

    event_spec = config.events[event]
    target = config.comparisons[compare_to]
    base = event_spec.base
    target_sa1 = Geography(type="SA1", year=target.sa1_year)

    if target.sa1_year < base.year:
        raise InvalidCombinationError(
            f"Invalid combination: Cannot correspond from {base} to earlier SA1 year {target.sa1_year}"
        )
    if find_hop_path(config.hops, base, target_sa1) is None:
        raise InvalidCombinationError(f"Invalid combination: No correspondence path from {base} to {target_sa1}")
    if target.type != "SA1" and (target.type, target.unit_year) not in config.allocations:
        raise InvalidCombinationError(
            f"Invalid combination: No allocation recipe for {target.type} {target.unit_year}"
        )
    return event_spec, target


def prepare_boundaries(
    event: str,
    compare_to: str,
    strict: bool = True,
    *,
    session: BoundarySession,
) -> pd.DataFrame:
    event_spec, target = validate_combination(event, compare_to, session.config)
    base = event_spec.base
    log_event(
        session.logger,
        f"preparing {event} against {compare_to}",
        stage="prepare",
        event="PREPARE_START",
        status="ok",
    )

    table = get_correspondence(base.type, base.year, target.sa1_year, strict, session=session)
    if target.type != "SA1":
        allocation = get_allocation_table(target.unit_year, target.type, session=session)
        on = [
            column
            for column in sa1_key_columns(target.sa1_year)
            if column in table.columns and column in allocation.columns
        ]
        if not on:
            raise ContractError(f"No shared SA1 {target.sa1_year} column between correspondence and allocation")
        table = table.merge(allocation, on=on, how="outer")
        if target.redistribution:
            table = apply_redistribution_adjustments(table, target.redistribution, session=session)

    log_event(
        session.logger,
        f"prepared {event} against {compare_to}",
        stage="prepare",
        event="PREPARE_END",
        status="ok",
        rows_out=len(table),
    )
    return table
