"""Look up and fetch ABS allocation and correspondence files."""

from __future__ import annotations

import logging
from typing import Iterable

import pandas as pd

from au_boundaries.common.constants import BOUNDARY_LEVELS, BOUNDARY_TYPES, MAX_REF_DATE, MIN_REF_DATE
from au_boundaries.common.errors import ConfigError, ContractError, DataUnavailableError
from au_boundaries.common.logging import default_logger, log_event
from au_boundaries.common.models import BoundaryIndexEntry, BoundaryKey
from au_boundaries.fetch.tabular import TabularFetcher


def validate_boundary_request(ref_date: int, level: str, type: str) -> BoundaryKey:
    if isinstance(ref_date, bool) or not isinstance(ref_date, int):
        raise ConfigError(f"ref_date must be an integer year; got {ref_date!r}")
    if not MIN_REF_DATE <= ref_date <= MAX_REF_DATE:
        raise ConfigError(f"ref_date must be between {MIN_REF_DATE} and {MAX_REF_DATE}; got {ref_date}")
    if level not in BOUNDARY_LEVELS:
        raise ConfigError(f"level must be one of {', '.join(BOUNDARY_LEVELS)}; got {level!r}")
    if type not in BOUNDARY_TYPES:
        raise ConfigError(f"type must be one of {', '.join(BOUNDARY_TYPES)}; got {type!r}")
    return BoundaryKey(ref_date=ref_date, level=level, type=type)


class BoundaryFetcher:
    def __init__(
        self,
        index: Iterable[BoundaryIndexEntry],
        tabular: TabularFetcher,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self.index = tuple(index)
        self.tabular = tabular
        self.logger = logger or default_logger()

    def entries_for(self, key: BoundaryKey) -> list[BoundaryIndexEntry]:
        return [entry for entry in self.index if entry.key == key]

    def fetch_boundary(self, ref_date: int, level: str, type: str) -> pd.DataFrame:
        key = validate_boundary_request(ref_date, level, type)
        entries = self.entries_for(key)
        if not entries:
            raise DataUnavailableError(f"No {level} {type} file indexed for {ref_date}")

        frames = [
            self.tabular.fetch(entry.url, sheets=entry.sheets, member=entry.member, skiprows=entry.skiprows)
            for entry in entries
        ]
        if len(frames) > 1:
            columns = list(frames[0].columns)
            for entry, frame in zip(entries[1:], frames[1:]):
                if list(frame.columns) != columns:
                    raise ContractError(
                        f"Boundary file {entry.id} has different columns from {entries[0].id}; cannot combine"
                    )
        table = frames[0] if len(frames) == 1 else pd.concat(frames, ignore_index=True)

        log_event(
            self.logger,
            f"{level} {type} {ref_date} loaded",
            stage="fetch",
            event="FETCH_BOUNDARY",
            status="ok",
            source=",".join(entry.id for entry in entries),
            rows_out=len(table),
        )
        return table
