"""Configuration loading and validation."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from au_boundaries.common.errors import ConfigError
from au_boundaries.common.fs import read_yaml
from au_boundaries.common.models import (
    AllocationSpec,
    BoundaryIndexEntry,
    BoundaryKey,
    ComparisonSpec,
    EventSpec,
    Geography,
    HopSpec,
    RedistributionSource,
    RedistributionSpec,
)
from au_boundaries.common.schema import (
    validate_boundary_index_config,
    validate_events_config,
    validate_geography_config,
    validate_redistributions_config,
)

CONFIG_FILES = {
    "events": "events.yml",
    "geography": "geography.yml",
    "boundary_index": "boundary_index.yml",
    "redistributions": "redistributions.yml",
}
DEFAULT_CONFIG_DIR = Path(__file__).resolve().parents[1] / "config"


@dataclass(frozen=True)
class ConfigBundle:
    events: dict[str, EventSpec]
    comparisons: dict[str, ComparisonSpec]
    hops: tuple[HopSpec, ...]
    allocations: dict[tuple[str, int], AllocationSpec]
    boundary_index: tuple[BoundaryIndexEntry, ...]
    redistributions: dict[str, RedistributionSpec]

    @property
    def sa1_vintages(self) -> list[int]:
        years = {hop.target.year for hop in self.hops}
        years.update(hop.source.year for hop in self.hops if hop.source.type == "SA1")
        return sorted(years)


def _deep_merge(base: Any, overlay: Any) -> Any:
    if isinstance(base, dict) and isinstance(overlay, dict):
        merged = dict(base)
        for key, value in overlay.items():
            if key in merged:
                merged[key] = _deep_merge(merged[key], value)
            else:
                merged[key] = value
        return merged
    return overlay


def _load_yaml_with_overlay(path: Path, overlay_path: Path | None) -> dict:
    if not path.exists():
        raise ConfigError(f"Missing config file: {path}")
    base = read_yaml(path)
    if not isinstance(base, dict):
        raise ConfigError(f"Config file must contain a mapping: {path}")
    if overlay_path is None or not overlay_path.exists():
        return base
    overlay = read_yaml(overlay_path)
    if overlay is None:
        return base
    if not isinstance(overlay, dict):
        raise ConfigError(f"Overlay config must contain a mapping: {overlay_path}")
    return _deep_merge(base, overlay)


def _geography(obj: dict) -> Geography:
    return Geography(type=str(obj["type"]), year=int(obj["year"]))


def _optional_tuple(value) -> tuple[str, ...] | None:
    if value is None:
        return None
    return tuple(str(v) for v in value)


def _build_events(cfg: dict) -> tuple[dict[str, EventSpec], dict[str, ComparisonSpec]]:
    events = {
        name: EventSpec(name=name, base=_geography(event["base"]), area_column=event["area_column"])
        for name, event in cfg["events"].items()
    }
    comparisons = {}
    for name, target in cfg["comparisons"].items():
        unit_year = target.get("unit_year")
        comparisons[name] = ComparisonSpec(
            name=name,
            type=target["type"],
            sa1_year=int(target["sa1_year"]),
            unit_year=int(unit_year) if unit_year is not None else None,
            redistribution=target.get("redistribution"),
        )
    return events, comparisons


def _build_hops(cfg: dict) -> tuple[HopSpec, ...]:
    hops = []
    for hop in cfg["hops"]:
        boundary = hop["boundary"]
        columns = hop["columns"]
        hops.append(
            HopSpec(
                source=_geography(hop["source"]),
                target=_geography(hop["target"]),
                boundary=BoundaryKey(
                    ref_date=int(boundary["ref_date"]),
                    level=boundary["level"],
                    type=boundary["type"],
                ),
                source_column=columns["source"],
                target_column=columns["target"],
                ratio_column=columns["ratio"],
            )
        )
    return tuple(hops)


def _build_allocations(cfg: dict) -> dict[tuple[str, int], AllocationSpec]:
    allocations = {}
    for unit_type, by_year in cfg["allocations"].items():
        for year, spec in by_year.items():
            allocations[(unit_type, int(year))] = AllocationSpec(
                unit_type=unit_type,
                year=int(year),
                method=spec["method"],
                sa1_year=int(spec["sa1_year"]),
                sa1_column=spec["sa1_column"],
                name_column=spec["name_column"],
                mb_year=int(spec["mb_year"]) if spec.get("mb_year") is not None else None,
                mb_column=spec.get("mb_column"),
            )
    return allocations


def _build_boundary_index(cfg: dict) -> tuple[BoundaryIndexEntry, ...]:
    entries = []
    for file_id, entry in sorted(cfg["files"].items()):
        entries.append(
            BoundaryIndexEntry(
                id=file_id,
                ref_date=int(entry["ref_date"]),
                level=entry["level"],
                type=entry["type"],
                url=entry["url"],
                notes=entry.get("notes") or "",
                sheets=_optional_tuple(entry.get("sheets")),
                member=entry.get("member"),
                skiprows=entry.get("skiprows"),
            )
        )
    return tuple(entries)


def _build_redistributions(cfg: dict) -> dict[str, RedistributionSpec]:
    out = {}
    for redistribution_id, spec in cfg["redistributions"].items():
        sources = tuple(
            RedistributionSource(
                url=source["url"],
                code_column=source["code_column"],
                division_column=source["division_column"],
                sheets=_optional_tuple(source.get("sheets")),
                skiprows=source.get("skiprows"),
            )
            for source in spec["sources"]
        )
        out[redistribution_id] = RedistributionSpec(
            id=redistribution_id,
            description=spec.get("description", ""),
            division_column=spec["division_column"],
            code_year=int(spec["code_year"]),
            sources=sources,
            title_case=bool(spec.get("title_case", False)),
            drop_values=tuple(spec.get("drop_values") or ()),
        )
    return out


def load_all_configs(
    config_dir: Path | None = None,
    *,
    allow_unknown: bool = False,
    overlay_config_dir: Path | None = None,
) -> ConfigBundle:
    config_dir = config_dir or DEFAULT_CONFIG_DIR

    raw = {}
    for name, filename in CONFIG_FILES.items():
        overlay_path = overlay_config_dir / filename if overlay_config_dir is not None else None
        raw[name] = _load_yaml_with_overlay(config_dir / filename, overlay_path)

    events_cfg = validate_events_config(raw["events"], allow_unknown=allow_unknown)
    geography_cfg = validate_geography_config(raw["geography"], allow_unknown=allow_unknown)
    index_cfg = validate_boundary_index_config(raw["boundary_index"], allow_unknown=allow_unknown)
    redistributions_cfg = validate_redistributions_config(raw["redistributions"], allow_unknown=allow_unknown)

    events, comparisons = _build_events(events_cfg)
    redistributions = _build_redistributions(redistributions_cfg)
    for target in comparisons.values():
        if target.redistribution and target.redistribution not in redistributions:
            raise ConfigError(f"Comparison {target.name} names unknown redistribution {target.redistribution}")

    return ConfigBundle(
        events=events,
        comparisons=comparisons,
        hops=_build_hops(geography_cfg),
        allocations=_build_allocations(geography_cfg),
        boundary_index=_build_boundary_index(index_cfg),
        redistributions=redistributions,
    )
