"""Apportion AEC vote counts onto a prepared boundary table."""

from __future__ import annotations

import re
from typing import Sequence

import pandas as pd

from au_boundaries.boundaries.ratios import ratio_totals
from au_boundaries.boundaries.session import BoundarySession
from au_boundaries.common.codes import as_code_series, find_ratio_columns
from au_boundaries.common.errors import ConfigError, ContractError
from au_boundaries.common.logging import log_event

AEC_AREA_COLUMN = "StatisticalAreaID"
UNIT_NAME_RE = re.compile(r"^(CED|POA|SED)_NAME_(\d{4})$")
SA1_CODE_RE = re.compile(r"^SA1_(?:MAINCODE|CODE)_(\d{4})$")


def default_output_columns(boundaries: pd.DataFrame) -> list[str]:
    """Unit name column of a prepared table, else its latest SA1 code column."""
    names = [column for column in boundaries.columns if UNIT_NAME_RE.match(column)]
    if names:
        return names[:1]
    codes = sorted(
        (int(match.group(1)), column)
        for column in boundaries.columns
        if (match := SA1_CODE_RE.match(column))
    )
    if not codes:
        raise ContractError("Boundary table has no unit name or SA1 code column to aggregate by")
    return [codes[-1][1]]


def _audit_ratio_totals(
    boundaries: pd.DataFrame, area_column: str, ratio_column: str, areas: pd.Series, session: BoundarySession
) -> None:
    totals = ratio_totals(boundaries.loc[boundaries[area_column].isin(areas)], ratio_column, [area_column])
    deviation = totals["total"] - 1
    over = int((deviation > session.tolerance).sum())
    under = int((deviation < -session.tolerance).sum())
    if over or under:
        session.audit.warn(
            "RESULT_RATIO_DEVIATION",
            f"{over} area(s) are over-counted and {under} under-counted because their {ratio_column} "
            f"totals deviate from 1 by more than {session.tolerance}.",
            stage="results",
            count=over + under,
            over=over,
            under=under,
        )


def prepare_results(
    votes: pd.DataFrame,
    boundaries: pd.DataFrame,
    event: str,
    *,
    value_columns: Sequence[str],
    by: str | Sequence[str] | None = None,
    keys: Sequence[str] = (),
    session: BoundarySession,
) -> pd.DataFrame:
    """Weight ``value_columns`` by the boundary ratio and sum them by ``keys`` + ``by``.

    ``votes`` is an AEC "Votes by SA1" style table. Its ``StatisticalAreaID``
    column is renamed to the event's area column before the join, and vote
    rows that find no boundary row are reported and left out of the totals.
    """
    event_spec = session.config.events.get(event)
    if event_spec is None:
        raise ConfigError(f"Unknown event {event!r}; expected one of {', '.join(session.config.events)}")
    area_column = event_spec.area_column

    votes = votes.rename(columns={AEC_AREA_COLUMN: area_column})
    for frame, name in ((votes, "Vote table"), (boundaries, "Boundary table")):
        if area_column not in frame.columns:
            raise ContractError(f"{name} has no {area_column} column")
    missing_values = [column for column in value_columns if column not in votes.columns]
    if missing_values:
        raise ContractError(f"Vote table is missing value columns: {', '.join(missing_values)}")

    if by is None:
        by = default_output_columns(boundaries)
    elif isinstance(by, str):
        by = [by]
    else:
        by = list(by)
    keys = list(keys)
    ratio_columns = find_ratio_columns(boundaries.columns)
    if len(ratio_columns) > 1:
        raise ContractError(f"Boundary table has more than one ratio column: {', '.join(ratio_columns)}")
    ratio_column = ratio_columns[0] if ratio_columns else None

    votes = votes.copy()
    votes[area_column] = as_code_series(votes[area_column])
    boundaries = boundaries.copy()
    boundaries[area_column] = as_code_series(boundaries[area_column])
    if ratio_column is not None:
        _audit_ratio_totals(boundaries, area_column, ratio_column, votes[area_column].dropna(), session)

    overlap = [column for column in boundaries.columns if column in votes.columns and column != area_column]
    merged = votes.merge(boundaries.drop(columns=overlap), on=area_column, how="outer", indicator=True)
    unmatched = int((merged["_merge"] == "left_only").sum())
    if unmatched:
        session.audit.warn(
            "RESULTS_UNMATCHED",
            f"{unmatched} vote row(s) have no {area_column} match in the boundary table and are excluded.",
            stage="results",
            count=unmatched,
        )
    merged = merged.loc[merged["_merge"] == "both"].drop(columns=["_merge"])

    weight = pd.to_numeric(merged[ratio_column], errors="coerce") if ratio_column else 1.0
    for column in value_columns:
        merged[column] = pd.to_numeric(merged[column], errors="coerce") * weight

    group_columns = [*keys, *[column for column in by if column not in keys]]
    result = merged.groupby(group_columns, dropna=False, sort=True, as_index=False)[list(value_columns)].sum()

    log_event(
        session.logger,
        f"results for {event} aggregated by {', '.join(group_columns)}",
        stage="results",
        event="RESULTS_AGGREGATED",
        status="ok",
        rows_in=len(votes),
        rows_out=len(result),
    )
    return result
