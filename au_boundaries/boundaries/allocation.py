"""SA1 to POA / CED / SED allocation tables."""

from __future__ import annotations

import pandas as pd

from au_boundaries.boundaries.session import BoundarySession
from au_boundaries.common.cache import make_key
from au_boundaries.common.codes import amend_maincode, as_code_series, sa1_code_column
from au_boundaries.common.errors import ContractError, UnsupportedCombinationError
from au_boundaries.common.logging import log_event
from au_boundaries.common.models import AllocationSpec


def _select(raw: pd.DataFrame, columns: list[str], ctx: str) -> pd.DataFrame:
    missing = [column for column in columns if column not in raw.columns]
    if missing:
        raise ContractError(f"{ctx} is missing columns: {', '.join(missing)}")
    return raw[columns].copy()


def _direct(spec: AllocationSpec, session: BoundarySession) -> pd.DataFrame:
    raw = session.boundaries.fetch_boundary(spec.year, spec.unit_type, "allocation")
    return _select(raw, [spec.sa1_column, spec.name_column], f"{spec.unit_type} {spec.year} allocation file")


def _via_mesh_blocks(spec: AllocationSpec, session: BoundarySession) -> pd.DataFrame:
    units = _select(
        session.boundaries.fetch_boundary(spec.year, spec.unit_type, "allocation"),
        [spec.mb_column, spec.name_column],
        f"{spec.unit_type} {spec.year} allocation file",
    )
    mesh_blocks = _select(
        session.boundaries.fetch_boundary(spec.mb_year, "MB", "allocation"),
        [spec.mb_column, spec.sa1_column],
        f"MB {spec.mb_year} allocation file",
    )
    units[spec.mb_column] = as_code_series(units[spec.mb_column])
    mesh_blocks[spec.mb_column] = as_code_series(mesh_blocks[spec.mb_column])

    joined = mesh_blocks.merge(units, on=spec.mb_column, how="outer")
    joined = joined.drop(columns=[spec.mb_column]).dropna(subset=[spec.sa1_column]).drop_duplicates()

    # An SA1 keeps an unnamed row only when none of its Mesh Blocks has a unit.
    named = joined[spec.name_column].notna()
    assigned = joined.loc[named, spec.sa1_column].unique()
    joined = joined.loc[named | ~joined[spec.sa1_column].isin(assigned)]
    unassigned = int(joined[spec.sa1_column].nunique() - len(assigned))
    if unassigned:
        session.audit.warn(
            "ALLOCATION_UNASSIGNED_SA1",
            f"{unassigned} SA1(s) have no Mesh Block in the {spec.unit_type} {spec.year} allocation file.",
            stage="allocation",
            count=unassigned,
        )
    return joined


def _build_allocation(spec: AllocationSpec, session: BoundarySession) -> pd.DataFrame:
    table = _direct(spec, session) if spec.method == "direct" else _via_mesh_blocks(spec, session)

    code_column = sa1_code_column(spec.sa1_year)
    table = table.rename(columns={spec.sa1_column: code_column})
    table[code_column] = as_code_series(table[code_column])
    table = table.dropna(subset=[code_column]).drop_duplicates()
    table = table.sort_values([code_column, spec.name_column]).reset_index(drop=True)

    split = int(table[code_column].duplicated().sum())
    if split:
        session.audit.warn(
            "ALLOCATION_SPLIT_SA1",
            f"{split} SA1(s) are allocated to more than one {spec.unit_type} {spec.year}.",
            stage="allocation",
            count=split,
        )

    table = amend_maincode(table, code_column)
    log_event(
        session.logger,
        f"{spec.unit_type} {spec.year} allocation built",
        stage="allocation",
        event="ALLOCATION_BUILT",
        status="ok",
        rows_out=len(table),
    )
    return table


def get_allocation_table(year: int, target_type: str, *, session: BoundarySession) -> pd.DataFrame:
    spec = session.config.allocations.get((target_type, int(year)))
    if spec is None:
        known = ", ".join(f"{unit} {unit_year}" for unit, unit_year in sorted(session.config.allocations))
        raise UnsupportedCombinationError(
            f"No allocation recipe for {target_type} {year}; available: {known}"
        )
    key = make_key("allocation", spec.unit_type, spec.year)
    return session.cache.get_or_compute(key, lambda: _build_allocation(spec, session))
