"""Session object wiring configuration, fetchers, cache and audit log."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from types import TracebackType
from typing import Any, Protocol

import pandas as pd

from au_boundaries.common.audit import AuditLog
from au_boundaries.common.cache import SessionCache
from au_boundaries.common.config_loader import ConfigBundle, load_all_configs
from au_boundaries.common.constants import DEFAULT_RATIO_TOLERANCE
from au_boundaries.common.http import HttpClient
from au_boundaries.common.logging import default_logger
from au_boundaries.fetch.boundary import BoundaryFetcher
from au_boundaries.fetch.tabular import TabularFetcher


class BoundarySource(Protocol):
    def fetch_boundary(self, ref_date: int, level: str, type: str) -> pd.DataFrame: ...


class TableSource(Protocol):
    def fetch(self, url: str, **options: Any) -> pd.DataFrame: ...


@dataclass
class BoundarySession:
    config: ConfigBundle
    boundaries: BoundarySource
    tabular: TableSource
    cache: SessionCache = field(default_factory=SessionCache)
    audit: AuditLog = field(default_factory=AuditLog)
    logger: logging.Logger = field(default_factory=default_logger)
    tolerance: float = DEFAULT_RATIO_TOLERANCE
    client: HttpClient | None = None

    def close(self) -> None:
        if self.client is not None:
            self.client.close()

    def __enter__(self) -> "BoundarySession":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


def build_session(
    config_dir: Path | None = None,
    *,
    overlay_config_dir: Path | None = None,
    logger: logging.Logger | None = None,
    run_id: str | None = None,
    client: HttpClient | None = None,
    tolerance: float = DEFAULT_RATIO_TOLERANCE,
) -> BoundarySession:
    config = load_all_configs(config_dir, overlay_config_dir=overlay_config_dir)
    logger = logger or default_logger()
    client = client or HttpClient()
    cache = SessionCache()
    tabular = TabularFetcher(client, cache=cache, logger=logger)
    return BoundarySession(
        config=config,
        boundaries=BoundaryFetcher(config.boundary_index, tabular, logger=logger),
        tabular=tabular,
        cache=cache,
        audit=AuditLog(logger=logger, run_id=run_id),
        logger=logger,
        tolerance=tolerance,
        client=client,
    )
