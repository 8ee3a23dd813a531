from __future__ import annotations

import pandas as pd
import pytest

from au_boundaries.boundaries.session import BoundarySession
from au_boundaries.common.audit import AuditLog
from au_boundaries.common.config_loader import load_all_configs
from au_boundaries.common.errors import DataUnavailableError


class FakeBoundaryFetcher:
    def __init__(self, tables: dict | None = None):
        self.tables = dict(tables or {})
        self.calls: list[tuple[int, str, str]] = []

    def fetch_boundary(self, ref_date, level, type):
        key = (ref_date, level, type)
        self.calls.append(key)
        if key not in self.tables:
            raise DataUnavailableError(f"No {level} {type} file indexed for {ref_date}")
        return self.tables[key].copy()


class FakeTabularFetcher:
    def __init__(self, tables: dict | None = None):
        self.tables = dict(tables or {})
        self.calls: list[str] = []

    def fetch(self, url, **_options):
        self.calls.append(url)
        if url not in self.tables:
            raise DataUnavailableError(f"Resource not found (HTTP 404): {url}")
        return self.tables[url].copy()


def frame(columns: list[str], rows: list[tuple]) -> pd.DataFrame:
    return pd.DataFrame([list(row) for row in rows], columns=columns, dtype=object)


def cd_to_sa1_2011(rows):
    return frame(["CD_CODE_2006", "SA1_MAINCODE_2011", "RATIO_FROM_TO"], rows)


def sa1_2011_to_2016(rows):
    return frame(["SA1_MAINCODE_2011", "SA1_MAINCODE_2016", "RATIO_FROM_TO"], rows)


def sa1_2016_to_2021(rows):
    return frame(["SA1_MAINCODE_2016", "SA1_CODE_2021", "RATIO_FROM_TO"], rows)


@pytest.fixture(scope="session")
def repo_config():
    return load_all_configs()


@pytest.fixture
def make_session(repo_config):
    def _make(boundaries: dict | None = None, tables: dict | None = None) -> BoundarySession:
        return BoundarySession(
            config=repo_config,
            boundaries=FakeBoundaryFetcher(boundaries),
            tabular=FakeTabularFetcher(tables),
            audit=AuditLog(run_id="run-test"),
        )

    return _make
