"""Area-code conventions for ABS geographies.

SA1 codes come in two forms. The 11-digit maincode (``SA1_MAINCODE_2011``,
``SA1_MAINCODE_2016``; the 2021 edition calls it ``SA1_CODE_2021``) is what the
ABS publishes, while AEC vote tables use the 7-digit form
(``SA1_7DIGITCODE_<year>``): the first digit of the maincode followed by its
last six digits.
"""

from __future__ import annotations

import re
from typing import Iterable

import pandas as pd

from au_boundaries.common.errors import ContractError

RATIO_COLUMN_RE = re.compile(r"^RATIO_\d{2}[A-Z0-9]+_\d{2}[A-Z0-9]+$")
_YEAR_SUFFIX_RE = re.compile(r"(\d{4})$")
_DIGITS_RE = re.compile(r"^\d+$")


def sa1_code_column(year: int) -> str:
    if int(year) >= 2021:
        return f"SA1_CODE_{year}"
    return f"SA1_MAINCODE_{year}"


def sa1_7digit_column(year: int) -> str:
    return f"SA1_7DIGITCODE_{year}"


def sa1_key_columns(year: int) -> list[str]:
    return [sa1_code_column(year), sa1_7digit_column(year)]


def area_code_column(area_type: str, year: int) -> str:
    if area_type == "SA1":
        return sa1_code_column(year)
    return f"{area_type}_CODE_{year}"


def ratio_column_name(source_type: str, source_year: int, target_type: str, target_year: int) -> str:
    return f"RATIO_{int(source_year) % 100:02d}{source_type}_{int(target_year) % 100:02d}{target_type}"


def find_ratio_columns(columns: Iterable[str]) -> list[str]:
    return [column for column in columns if RATIO_COLUMN_RE.match(str(column))]


def derive_7digit_code(maincode: object) -> str | None:
    text = normalise_code(maincode)
    if text is None or not _DIGITS_RE.match(text) or len(text) < 7:
        return None
    return text[0] + text[-6:]


def _is_missing(value: object) -> bool:
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def normalise_code(value: object) -> str | None:
    """Render an area code as a plain string, undoing float coercion."""
    if value is None or _is_missing(value):
        return None
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    text = str(value).strip()
    if not text or text.lower() == "nan":
        return None
    if text.endswith(".0") and _DIGITS_RE.match(text[:-2]):
        text = text[:-2]
    return text


def as_code_series(series: pd.Series) -> pd.Series:
    return series.map(normalise_code).astype("object")


def amend_maincode(table: pd.DataFrame, column_name: str) -> pd.DataFrame:
    if column_name not in table.columns:
        raise ContractError(f"Column `{column_name}` does not exist in the data frame.")
    match = _YEAR_SUFFIX_RE.search(column_name)
    if match is None:
        raise ContractError(f"Column `{column_name}` does not end in a four digit year.")

    out = table.copy()
    out[sa1_7digit_column(int(match.group(1)))] = out[column_name].map(derive_7digit_code).astype("object")
    return out


def group_label(column_name: str) -> str:
    return column_name.split("_")[0]
