"""Read CSV, Excel and zipped tables from remote sources as string frames."""

from __future__ import annotations

import io
import logging
import zipfile
from pathlib import PurePosixPath
from typing import Iterable

import pandas as pd

from au_boundaries.common.cache import SessionCache, make_key
from au_boundaries.common.errors import ContractError, DataUnavailableError
from au_boundaries.common.http import HttpClient
from au_boundaries.common.logging import default_logger, log_event

TABLE_FORMATS = ("csv", "xls", "xlsx")
EXCEL_ENGINES = {"xls": "xlrd", "xlsx": "openpyxl"}
ZIP_MAGIC = b"PK\x03\x04"
OLE_MAGIC = b"\xd0\xcf\x11\xe0"


def detect_format(content: bytes, filename: str) -> str:
    suffix = PurePosixPath(filename.lower()).suffix.lstrip(".")
    if suffix in (*TABLE_FORMATS, "zip"):
        return suffix
    # ABS data cube links end in a query string, so fall back to sniffing.
    if content.startswith(OLE_MAGIC):
        return "xls"
    if content.startswith(ZIP_MAGIC):
        with zipfile.ZipFile(io.BytesIO(content)) as archive:
            names = set(archive.namelist())
        return "xlsx" if "[Content_Types].xml" in names else "zip"
    return "csv"


def _read_csv(content: bytes, skiprows: int | None) -> pd.DataFrame:
    return pd.read_csv(
        io.BytesIO(content),
        dtype=str,
        skiprows=skiprows,
        encoding="utf-8-sig",
        encoding_errors="replace",
    )


def _stack_shared_columns(frames: list[pd.DataFrame]) -> pd.DataFrame:
    shared = [column for column in frames[0].columns if all(column in frame.columns for frame in frames[1:])]
    if not shared:
        raise ContractError("Worksheets have no columns in common")
    return pd.concat([frame[shared] for frame in frames], ignore_index=True)


def _read_excel(
    content: bytes,
    file_format: str,
    sheets: Iterable[str] | None,
    skiprows: int | None,
) -> pd.DataFrame:
    sheet_names = list(sheets) if sheets else [0]
    try:
        loaded = pd.read_excel(
            io.BytesIO(content),
            sheet_name=sheet_names,
            dtype=str,
            skiprows=skiprows,
            engine=EXCEL_ENGINES[file_format],
        )
    except ValueError as exc:
        # pandas reports a missing worksheet as ValueError.
        raise ContractError(f"Cannot read worksheets {sheet_names}: {exc}") from exc
    frames = [loaded[name] for name in sheet_names]
    if len(frames) == 1:
        return frames[0]
    return _stack_shared_columns(frames)


def _read_zip(
    content: bytes,
    sheets: Iterable[str] | None,
    member: str | None,
    skiprows: int | None,
) -> pd.DataFrame:
    with zipfile.ZipFile(io.BytesIO(content)) as archive:
        names = [name for name in archive.namelist() if not name.endswith("/")]
        if member is not None:
            if member not in names:
                raise DataUnavailableError(f"Archive has no member {member}; found {', '.join(sorted(names))}")
            selected = [member]
        else:
            selected = sorted(
                name for name in names if PurePosixPath(name.lower()).suffix.lstrip(".") in TABLE_FORMATS
            )
        if not selected:
            raise DataUnavailableError("Archive contains no CSV or Excel files")
        frames = [
            read_table(archive.read(name), name, sheets=sheets, skiprows=skiprows)
            for name in selected
        ]

    if len(frames) == 1:
        return frames[0]
    columns = list(frames[0].columns)
    for name, frame in zip(selected[1:], frames[1:]):
        if list(frame.columns) != columns:
            raise ContractError(f"Archive member {name} has different columns from {selected[0]}")
    return pd.concat(frames, ignore_index=True)


def read_table(
    content: bytes,
    filename: str,
    *,
    sheets: Iterable[str] | None = None,
    member: str | None = None,
    skiprows: int | None = None,
) -> pd.DataFrame:
    """Parse downloaded bytes into a DataFrame of strings.

    ``sheets`` selects and stacks Excel worksheets over their shared columns;
    ``member`` picks a single file from a zip archive, otherwise every table
    in the archive is read and stacked (their columns must agree).
    Rows that are entirely empty, such as spreadsheet footers, are dropped.
    """
    file_format = detect_format(content, filename)
    if file_format == "zip":
        table = _read_zip(content, sheets, member, skiprows)
    elif file_format == "csv":
        table = _read_csv(content, skiprows)
    else:
        table = _read_excel(content, file_format, sheets, skiprows)
    return table.dropna(how="all").reset_index(drop=True)


class TabularFetcher:
    def __init__(
        self,
        client: HttpClient,
        *,
        cache: SessionCache | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.client = client
        self.cache = cache if cache is not None else SessionCache()
        self.logger = logger or default_logger()

    def fetch(
        self,
        url: str,
        *,
        sheets: Iterable[str] | None = None,
        member: str | None = None,
        skiprows: int | None = None,
    ) -> pd.DataFrame:
        sheet_key = tuple(sheets) if sheets else None
        key = make_key("tabular", url, sheet_key, member, skiprows)
        return self.cache.get_or_compute(
            key,
            lambda: self._fetch(url, sheets=sheet_key, member=member, skiprows=skiprows),
        )

    def _fetch(
        self,
        url: str,
        *,
        sheets: tuple[str, ...] | None,
        member: str | None,
        skiprows: int | None,
    ) -> pd.DataFrame:
        download = self.client.download(url)
        table = read_table(download.content, download.filename, sheets=sheets, member=member, skiprows=skiprows)
        if table.empty:
            raise DataUnavailableError(f"No rows in {url}")
        log_event(
            self.logger,
            "table fetched",
            stage="fetch",
            event="FETCH_TABLE",
            status="ok",
            source=url,
            rows_out=len(table),
        )
        return table
