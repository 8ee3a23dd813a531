"""Apply AEC redistributions that the ABS CED allocation does not yet reflect.

The AEC publishes each redistribution's final SA1 to division mapping as a
spreadsheet. Those SA1 codes are 7-digit and may belong to an earlier ASGS
edition than the table being patched, in which case they are carried to
``SA1_CODE_2021`` through a bridge table before matching.
"""

from __future__ import annotations

import pandas as pd

from au_boundaries.boundaries.correspondence import get_correspondence
from au_boundaries.boundaries.session import BoundarySession
from au_boundaries.common.codes import amend_maincode, as_code_series, sa1_7digit_column, sa1_code_column
from au_boundaries.common.errors import ConfigError, ContractError
from au_boundaries.common.logging import log_event
from au_boundaries.common.models import RedistributionSpec

PATCHED_SA1_YEAR = 2021


def load_redistribution(spec: RedistributionSpec, *, session: BoundarySession) -> pd.DataFrame:
    code_column = sa1_7digit_column(spec.code_year)
    frames = []
    for source in spec.sources:
        raw = session.tabular.fetch(source.url, sheets=source.sheets, skiprows=source.skiprows)
        missing = [c for c in (source.code_column, source.division_column) if c not in raw.columns]
        if missing:
            raise ContractError(f"Redistribution file {source.url} is missing columns: {', '.join(map(repr, missing))}")
        frame = raw[[source.code_column, source.division_column]].rename(
            columns={source.code_column: code_column, source.division_column: spec.division_column}
        )
        frames.append(frame)

    supplement = pd.concat(frames, ignore_index=True)
    supplement[code_column] = as_code_series(supplement[code_column])
    supplement[spec.division_column] = supplement[spec.division_column].astype("string").str.strip().astype("object")
    if spec.title_case:
        supplement[spec.division_column] = supplement[spec.division_column].str.title()
    if spec.drop_values:
        dropped = supplement[code_column].isin(spec.drop_values) | supplement[spec.division_column].isin(
            spec.drop_values
        )
        supplement = supplement.loc[~dropped]
    supplement = supplement.dropna(subset=[code_column, spec.division_column])
    return supplement.reset_index(drop=True)


def _default_bridge(table: pd.DataFrame, code_year: int, session: BoundarySession) -> pd.DataFrame:
    short_column = sa1_7digit_column(code_year)
    target_column = sa1_code_column(PATCHED_SA1_YEAR)
    if short_column in table.columns and target_column in table.columns:
        return table
    return get_correspondence("SA1", code_year, PATCHED_SA1_YEAR, True, session=session)


def _match_keys(
    table: pd.DataFrame,
    supplement: pd.DataFrame,
    spec: RedistributionSpec,
    bridge: pd.DataFrame | None,
    session: BoundarySession,
) -> tuple[pd.DataFrame, pd.DataFrame, str]:
    """Express table and supplement over one shared SA1 key column."""
    short_column = sa1_7digit_column(spec.code_year)
    if spec.code_year == PATCHED_SA1_YEAR:
        if short_column not in table.columns:
            table = amend_maincode(table, sa1_code_column(PATCHED_SA1_YEAR))
        return table, supplement, short_column

    target_column = sa1_code_column(PATCHED_SA1_YEAR)
    if bridge is None:
        bridge = _default_bridge(table, spec.code_year, session)
    missing = [c for c in (short_column, target_column) if c not in bridge.columns]
    if missing:
        raise ContractError(f"SA1 bridge is missing columns: {', '.join(missing)}")
    pairs = bridge[[short_column, target_column]].copy()
    for column in (short_column, target_column):
        pairs[column] = as_code_series(pairs[column])
    pairs = pairs.dropna().drop_duplicates()
    bridged = supplement.merge(pairs, on=short_column, how="left")
    return table, bridged, target_column


def apply_redistribution_adjustments(
    table: pd.DataFrame,
    redistribution_id: str,
    sa1_2021_bridge: pd.DataFrame | None = None,
    *,
    session: BoundarySession,
) -> pd.DataFrame:
    spec = session.config.redistributions.get(redistribution_id)
    if spec is None:
        known = ", ".join(sorted(session.config.redistributions))
        raise ConfigError(f"Unknown redistribution {redistribution_id!r}; expected one of {known}")
    if spec.division_column not in table.columns:
        raise ContractError(f"Table has no {spec.division_column} column to patch")
    target_column = sa1_code_column(PATCHED_SA1_YEAR)
    if target_column not in table.columns:
        raise ContractError(f"Table has no {target_column} column to match redistributed SA1s on")

    supplement = load_redistribution(spec, session=session)
    patched, supplement, key = _match_keys(table.copy(), supplement, spec, sa1_2021_bridge, session)

    present = supplement[key].notna() & supplement[key].isin(patched[key].dropna())
    unmatched = int((~present).sum())
    if unmatched:
        session.audit.warn(
            "REDISTRIBUTION_UNMATCHED",
            f"Some SA1s in AEC data not found in ABS data; dropped {unmatched} row(s) from {spec.id}.",
            stage="redistribution",
            count=unmatched,
        )
    supplement = supplement.loc[present]

    conflicts = int((supplement.groupby(key)[spec.division_column].nunique() > 1).sum())
    if conflicts:
        session.audit.warn(
            "REDISTRIBUTION_CONFLICT",
            f"{conflicts} SA1(s) have more than one new division in {spec.id}; the last listed is used.",
            stage="redistribution",
            count=conflicts,
        )
    mapping = supplement.drop_duplicates(subset=[key], keep="last").set_index(key)[spec.division_column]

    new_values = patched[key].map(mapping)
    hit = new_values.notna()
    current = patched[spec.division_column]
    changed = hit & (current.isna() | (current != new_values))
    patched.loc[hit, spec.division_column] = new_values[hit]

    session.audit.record(
        "REDISTRIBUTION_APPLIED",
        f"{int(changed.sum())} ABS CEDs changed based on AEC redistribution data in {spec.description or spec.id}.",
        stage="redistribution",
        count=int(changed.sum()),
        redistribution=spec.id,
        rows_matched=int(hit.sum()),
    )
    log_event(
        session.logger,
        f"redistribution {spec.id} applied",
        stage="redistribution",
        event="REDISTRIBUTION_DONE",
        status="ok",
        rows_in=len(table),
        rows_out=len(patched),
    )
    if key not in table.columns:
        patched = patched.drop(columns=[key])
    return patched
