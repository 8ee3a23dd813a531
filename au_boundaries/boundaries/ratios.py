"""Checks and composition for apportionment ratios.

A correspondence table apportions each source area across one or more target
areas. For every source area the ratios must sum to 1 within ``tolerance``;
``verify_ratios`` checks that and, in strict mode, drops offending source
areas. ``combine_ratios`` chains A -> B and B -> C tables into A -> C.
"""

from __future__ import annotations

from typing import Sequence

import pandas as pd

from au_boundaries.common.audit import AuditLog
from au_boundaries.common.codes import group_label
from au_boundaries.common.constants import DEFAULT_RATIO_TOLERANCE
from au_boundaries.common.errors import ContractError


def _as_list(fields: str | Sequence[str]) -> list[str]:
    if isinstance(fields, str):
        return [fields]
    return list(fields)


def _require_columns(table: pd.DataFrame, columns: Sequence[str], ctx: str) -> None:
    missing = [column for column in columns if column not in table.columns]
    if missing:
        raise ContractError(f"{ctx} is missing columns: {', '.join(missing)}")


def ratio_totals(records: pd.DataFrame, ratio_field: str, group_fields: Sequence[str]) -> pd.DataFrame:
    """Sum of ``ratio_field`` per group, ignoring missing ratios and keys."""
    ratios = pd.to_numeric(records[ratio_field], errors="coerce")
    frame = records[list(group_fields)].assign(_ratio=ratios)
    totals = frame.groupby(list(group_fields), sort=True)["_ratio"].sum()
    return totals.rename("total").reset_index()


def offending_groups(
    records: pd.DataFrame,
    ratio_field: str,
    group_fields: Sequence[str],
    tolerance: float = DEFAULT_RATIO_TOLERANCE,
) -> pd.DataFrame:
    totals = ratio_totals(records, ratio_field, group_fields)
    return totals.loc[(totals["total"] - 1).abs() > tolerance].reset_index(drop=True)


def _rows_in_groups(records: pd.DataFrame, groups: pd.DataFrame, group_fields: list[str]) -> pd.Series:
    flagged = groups[group_fields].assign(_flagged=True)
    merged = records[group_fields].merge(flagged, how="left", on=group_fields)
    return pd.Series(merged["_flagged"].eq(True).to_numpy(), index=records.index)


def verify_ratios(
    records: pd.DataFrame,
    ratio_field: str,
    group_fields: str | Sequence[str],
    strict: bool,
    tolerance: float = DEFAULT_RATIO_TOLERANCE,
    *,
    reverify: bool = True,
    audit: AuditLog | None = None,
) -> pd.DataFrame:
    group_fields = _as_list(group_fields)
    _require_columns(records, [ratio_field, *group_fields], "Ratio table")
    audit = audit if audit is not None else AuditLog()
    label = group_label(group_fields[0])

    offending = offending_groups(records, ratio_field, group_fields, tolerance)
    if offending.empty:
        audit.record(
            "RATIO_CHECK",
            f"No groups found with total ratios deviating from 1 by more than {tolerance}.",
            stage="verify",
            count=0,
            ratio_field=ratio_field,
        )
        return records

    if not strict:
        audit.warn(
            "RATIO_DEVIATION",
            f"Some total ratios of the {label}s deviate from 1 by more than {tolerance}; "
            f"{len(offending)} {label}(s) affected and kept.",
            stage="verify",
            count=len(offending),
            ratio_field=ratio_field,
        )
        return records

    drop_mask = _rows_in_groups(records, offending, group_fields)
    cleaned = records.loc[~drop_mask].reset_index(drop=True)
    audit.warn(
        "RATIO_GROUPS_REMOVED",
        f"Removed {len(offending)} {label}(s) with total ratios deviating from 1 by more than {tolerance}.",
        stage="verify",
        count=len(offending),
        ratio_field=ratio_field,
        rows_removed=int(drop_mask.sum()),
    )

    if reverify:
        remaining = offending_groups(cleaned, ratio_field, group_fields, tolerance)
        if remaining.empty:
            audit.record(
                "RATIO_RECHECK",
                f"All total ratios are now within the acceptable range of 1 ± {tolerance}.",
                stage="verify",
                count=0,
                ratio_field=ratio_field,
            )
        else:
            audit.warn(
                "RATIO_RECHECK",
                f"Some total ratios still deviate from 1 by more than {tolerance} after cleaning.",
                stage="verify",
                count=len(remaining),
                ratio_field=ratio_field,
            )
    return cleaned


def combine_ratios(
    merged_table: pd.DataFrame,
    output_field: str,
    ratio_field_a: str,
    ratio_field_b: str,
    group_fields: Sequence[str],
    strict: bool,
    *,
    source_fields: str | Sequence[str] | None = None,
    tolerance: float = DEFAULT_RATIO_TOLERANCE,
    audit: AuditLog | None = None,
) -> pd.DataFrame:
    group_fields = _as_list(group_fields)
    _require_columns(merged_table, [ratio_field_a, ratio_field_b, *group_fields], "Merged correspondence")
    audit = audit if audit is not None else AuditLog()

    table = merged_table[group_fields].copy()
    table[output_field] = pd.to_numeric(merged_table[ratio_field_a], errors="coerce") * pd.to_numeric(
        merged_table[ratio_field_b], errors="coerce"
    )

    # Outer joins leave rows with only one side of the chain.
    usable = table[group_fields].notna().all(axis=1) & table[output_field].notna()
    unpaired = int((~usable).sum())
    if unpaired:
        audit.warn(
            "RATIO_ROWS_UNPAIRED",
            f"Dropped {unpaired} row(s) without both a {group_label(group_fields[0])} and a "
            f"{group_label(group_fields[-1])} match while combining {ratio_field_a} and {ratio_field_b}.",
            stage="combine",
            count=unpaired,
        )

    combined = (
        table.loc[usable]
        .groupby(group_fields, as_index=False, sort=True)[output_field]
        .sum()
    )
    return verify_ratios(
        combined,
        output_field,
        _as_list(source_fields) if source_fields is not None else group_fields[:1],
        strict,
        tolerance,
        audit=audit,
    )
