"""Build correspondence tables from an event's base geography to an SA1 edition."""

from __future__ import annotations

from collections import deque
from typing import Iterable

import pandas as pd

from au_boundaries.boundaries.ratios import combine_ratios, verify_ratios
from au_boundaries.boundaries.session import BoundarySession
from au_boundaries.common.cache import make_key
from au_boundaries.common.codes import (
    amend_maincode,
    as_code_series,
    ratio_column_name,
    sa1_7digit_column,
    sa1_code_column,
)
from au_boundaries.common.errors import ContractError, UnsupportedCombinationError
from au_boundaries.common.logging import log_event
from au_boundaries.common.models import Geography, HopSpec

BASE_TYPES = ("CD", "SA1")


def find_hop_path(hops: Iterable[HopSpec], source: Geography, target: Geography) -> list[HopSpec] | None:
    """Shortest forward chain of hops from ``source`` to ``target``.

    Returns an empty list when they are the same geography and ``None`` when
    no chain exists.
    """
    if source == target:
        return []
    hops = list(hops)
    queue: deque[tuple[Geography, list[HopSpec]]] = deque([(source, [])])
    seen = {source}
    while queue:
        current, path = queue.popleft()
        for hop in hops:
            if hop.source != current or hop.target in seen:
                continue
            if hop.target.year <= current.year:
                continue
            next_path = [*path, hop]
            if hop.target == target:
                return next_path
            seen.add(hop.target)
            queue.append((hop.target, next_path))
    return None


def hop_ratio_column(hop: HopSpec) -> str:
    return ratio_column_name(hop.source.type, hop.source.year, hop.target.type, hop.target.year)


def load_hop(hop: HopSpec, strict: bool, *, session: BoundarySession) -> pd.DataFrame:
    raw = session.boundaries.fetch_boundary(hop.boundary.ref_date, hop.boundary.level, hop.boundary.type)
    raw_columns = [hop.source_column, hop.target_column, hop.ratio_column]
    missing = [column for column in raw_columns if column not in raw.columns]
    if missing:
        raise ContractError(f"{hop.source} to {hop.target} correspondence is missing columns: {', '.join(missing)}")

    source_column = hop.source.code_column
    target_column = hop.target.code_column
    ratio_column = hop_ratio_column(hop)
    table = raw[raw_columns].rename(
        columns={
            hop.source_column: source_column,
            hop.target_column: target_column,
            hop.ratio_column: ratio_column,
        }
    )
    table[source_column] = as_code_series(table[source_column])
    table[target_column] = as_code_series(table[target_column])
    table[ratio_column] = pd.to_numeric(table[ratio_column], errors="coerce")

    complete = table.notna().all(axis=1)
    incomplete = int((~complete).sum())
    if incomplete:
        session.audit.record(
            "CORRESPONDENCE_ROWS_SKIPPED",
            f"Skipped {incomplete} row(s) of the {hop.source} to {hop.target} file without a code or ratio.",
            stage="correspondence",
            count=incomplete,
        )
        table = table.loc[complete].reset_index(drop=True)

    return verify_ratios(table, ratio_column, [source_column], strict, session.tolerance, audit=session.audit)


def sa1_identity_table(year: int, *, session: BoundarySession) -> pd.DataFrame:
    raw = session.boundaries.fetch_boundary(year, "SA1", "allocation")
    code_column = sa1_code_column(year)
    if code_column not in raw.columns:
        raise ContractError(f"SA1 {year} allocation file has no {code_column} column")
    table = pd.DataFrame({code_column: as_code_series(raw[code_column])})
    table = table.dropna().drop_duplicates().sort_values(code_column).reset_index(drop=True)
    return amend_maincode(table, code_column)


def _chain(base: Geography, path: list[HopSpec], strict: bool, session: BoundarySession) -> pd.DataFrame:
    base_column = base.code_column
    table = load_hop(path[0], strict, session=session)
    current_ratio = hop_ratio_column(path[0])

    for hop in path[1:]:
        step = load_hop(hop, strict, session=session)
        step_ratio = hop_ratio_column(hop)
        merged = table.merge(step, on=hop.source.code_column, how="outer")
        output_ratio = ratio_column_name(base.type, base.year, hop.target.type, hop.target.year)
        table = combine_ratios(
            merged,
            output_ratio,
            current_ratio,
            step_ratio,
            [base_column, hop.target.code_column],
            strict,
            tolerance=session.tolerance,
            audit=session.audit,
        )
        current_ratio = output_ratio

    if base.type == "SA1":
        table = amend_maincode(table, base_column)
        target_column = path[-1].target.code_column
        table = table[[base_column, sa1_7digit_column(base.year), target_column, current_ratio]]
    return table


def _build_correspondence(base: Geography, target: Geography, strict: bool, session: BoundarySession) -> pd.DataFrame:
    if base == target:
        table = sa1_identity_table(base.year, session=session)
    else:
        path = find_hop_path(session.config.hops, base, target)
        if not path:
            raise UnsupportedCombinationError(f"Unsupported base_type or year combination: {base} to {target}")
        table = _chain(base, path, strict, session)

    log_event(
        session.logger,
        f"correspondence {base} to {target} built",
        stage="correspondence",
        event="CORRESPONDENCE_BUILT",
        status="ok",
        rows_out=len(table),
    )
    return table


def get_correspondence(
    base_type: str,
    base_year: int,
    target_sa1_year: int,
    strict: bool = True,
    *,
    session: BoundarySession,
) -> pd.DataFrame:
    """Correspondence from ``base_type`` ``base_year`` areas to SA1s of ``target_sa1_year``.

    Multi-hop requests are composed from the configured hops with
    ``combine_ratios``. A same-edition SA1 request returns the SA1 code list
    with its 7-digit form and no ratio column.
    """
    if base_type not in BASE_TYPES:
        raise UnsupportedCombinationError(
            f"Unsupported base_type or year combination: {base_type} {base_year}; "
            f"base_type must be one of {', '.join(BASE_TYPES)}"
        )
    base = Geography(type=base_type, year=int(base_year))
    target = Geography(type="SA1", year=int(target_sa1_year))
    key = make_key("correspondence", base.type, base.year, target.year, bool(strict))
    return session.cache.get_or_compute(key, lambda: _build_correspondence(base, target, strict, session))
