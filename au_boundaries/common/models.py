"""Configuration records shared across boundary processing."""

from __future__ import annotations

from dataclasses import dataclass, field

from au_boundaries.common.codes import area_code_column


@dataclass(frozen=True)
class Geography:
    type: str
    year: int

    @property
    def code_column(self) -> str:
        return area_code_column(self.type, self.year)

    def __str__(self) -> str:
        return f"{self.type} {self.year}"


@dataclass(frozen=True)
class BoundaryKey:
    ref_date: int
    level: str
    type: str


@dataclass(frozen=True)
class EventSpec:
    name: str
    base: Geography
    area_column: str


@dataclass(frozen=True)
class ComparisonSpec:
    name: str
    type: str
    sa1_year: int
    unit_year: int | None = None
    redistribution: str | None = None


@dataclass(frozen=True)
class HopSpec:
    source: Geography
    target: Geography
    boundary: BoundaryKey
    source_column: str
    target_column: str
    ratio_column: str


@dataclass(frozen=True)
class AllocationSpec:
    unit_type: str
    year: int
    method: str
    sa1_year: int
    sa1_column: str
    name_column: str
    mb_year: int | None = None
    mb_column: str | None = None

    @property
    def boundary(self) -> BoundaryKey:
        return BoundaryKey(ref_date=self.year, level=self.unit_type, type="allocation")


@dataclass(frozen=True)
class BoundaryIndexEntry:
    id: str
    ref_date: int
    level: str
    type: str
    url: str
    notes: str = ""
    sheets: tuple[str, ...] | None = None
    member: str | None = None
    skiprows: int | None = None

    @property
    def key(self) -> BoundaryKey:
        return BoundaryKey(ref_date=self.ref_date, level=self.level, type=self.type)


@dataclass(frozen=True)
class RedistributionSource:
    url: str
    code_column: str
    division_column: str
    sheets: tuple[str, ...] | None = None
    skiprows: int | None = None


@dataclass(frozen=True)
class RedistributionSpec:
    id: str
    description: str
    division_column: str
    code_year: int
    sources: tuple[RedistributionSource, ...]
    title_case: bool = False
    drop_values: tuple[str, ...] = field(default_factory=tuple)
