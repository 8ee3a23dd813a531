"""Minimal strict schemas for YAML config validation."""

from __future__ import annotations

from au_boundaries.common.constants import BOUNDARY_LEVELS, BOUNDARY_TYPES, SA1_VINTAGES
from au_boundaries.common.errors import ConfigError

GEOGRAPHY_TYPES = ("CD", "SA1")
COMPARISON_TYPES = ("SA1", "POA", "CED", "SED")
ALLOCATION_METHODS = ("direct", "mesh_block")


def _assert_mapping(obj, ctx: str) -> None:
    if not isinstance(obj, dict):
        raise ConfigError(f"{ctx} must be a mapping")


def _assert_required_keys(obj: dict, required: set[str], ctx: str) -> None:
    _assert_mapping(obj, ctx)
    missing = required - set(obj)
    if missing:
        missing_str = ", ".join(sorted(missing))
        raise ConfigError(f"Missing keys in {ctx}: {missing_str}")


def _assert_no_unknown_keys(obj: dict, known: set[str], ctx: str, allow_unknown: bool) -> None:
    if allow_unknown:
        return
    unknown = set(obj) - known
    if unknown:
        unknown_str = ", ".join(sorted(unknown))
        raise ConfigError(f"Unknown keys in {ctx}: {unknown_str}")


def _assert_choice(value, choices, ctx: str) -> None:
    if value not in choices:
        raise ConfigError(f"{ctx} must be one of {', '.join(str(c) for c in choices)}; got {value!r}")


def _assert_year(value, ctx: str) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"{ctx} must be an integer year; got {value!r}")


def _validate_geography(obj: dict, ctx: str) -> None:
    _assert_required_keys(obj, {"type", "year"}, ctx)
    _assert_choice(obj["type"], GEOGRAPHY_TYPES, f"{ctx}.type")
    _assert_year(obj["year"], f"{ctx}.year")


def validate_events_config(cfg: dict, *, allow_unknown: bool = False) -> dict:
    _assert_required_keys(cfg, {"events", "comparisons"}, "events config")
    _assert_no_unknown_keys(cfg, {"events", "comparisons"}, "events config", allow_unknown)

    _assert_mapping(cfg["events"], "events")
    if not cfg["events"]:
        raise ConfigError("events must be a non-empty mapping")
    for name, event in cfg["events"].items():
        ctx = f"events[{name}]"
        _assert_required_keys(event, {"base", "area_column"}, ctx)
        _assert_no_unknown_keys(event, {"base", "area_column", "notes"}, ctx, allow_unknown)
        _validate_geography(event["base"], f"{ctx}.base")

    _assert_mapping(cfg["comparisons"], "comparisons")
    if not cfg["comparisons"]:
        raise ConfigError("comparisons must be a non-empty mapping")
    for name, target in cfg["comparisons"].items():
        ctx = f"comparisons[{name}]"
        _assert_required_keys(target, {"type", "sa1_year"}, ctx)
        _assert_no_unknown_keys(
            target,
            {"type", "sa1_year", "unit_year", "redistribution", "notes"},
            ctx,
            allow_unknown,
        )
        _assert_choice(target["type"], COMPARISON_TYPES, f"{ctx}.type")
        _assert_choice(target["sa1_year"], SA1_VINTAGES, f"{ctx}.sa1_year")
        if target["type"] != "SA1" and "unit_year" not in target:
            raise ConfigError(f"{ctx}.unit_year is required for {target['type']} targets")
        if target.get("redistribution") and target["type"] != "CED":
            raise ConfigError(f"{ctx}.redistribution only applies to CED targets")

    return cfg


def validate_geography_config(cfg: dict, *, allow_unknown: bool = False) -> dict:
    _assert_required_keys(cfg, {"hops", "allocations"}, "geography config")
    _assert_no_unknown_keys(cfg, {"hops", "allocations"}, "geography config", allow_unknown)

    if not isinstance(cfg["hops"], list) or not cfg["hops"]:
        raise ConfigError("geography.hops must be a non-empty list")
    for idx, hop in enumerate(cfg["hops"]):
        ctx = f"hops[{idx}]"
        _assert_required_keys(hop, {"source", "target", "boundary", "columns"}, ctx)
        _validate_geography(hop["source"], f"{ctx}.source")
        _validate_geography(hop["target"], f"{ctx}.target")
        if hop["target"]["type"] != "SA1":
            raise ConfigError(f"{ctx}.target must be an SA1 vintage")
        if hop["target"]["year"] <= hop["source"]["year"]:
            raise ConfigError(f"{ctx} must map forward in time")
        _assert_required_keys(hop["boundary"], {"ref_date", "level", "type"}, f"{ctx}.boundary")
        _assert_required_keys(hop["columns"], {"source", "target", "ratio"}, f"{ctx}.columns")

    _assert_mapping(cfg["allocations"], "allocations")
    for unit_type, by_year in cfg["allocations"].items():
        _assert_choice(unit_type, ("POA", "CED", "SED"), "allocations key")
        _assert_mapping(by_year, f"allocations.{unit_type}")
        for year, spec in by_year.items():
            ctx = f"allocations.{unit_type}.{year}"
            _assert_year(year, ctx)
            _assert_required_keys(spec, {"method", "sa1_year", "sa1_column", "name_column"}, ctx)
            _assert_choice(spec["method"], ALLOCATION_METHODS, f"{ctx}.method")
            if spec["method"] == "mesh_block":
                _assert_required_keys(spec, {"mb_year", "mb_column"}, ctx)

    return cfg


def validate_boundary_index_config(cfg: dict, *, allow_unknown: bool = False) -> dict:
    _assert_required_keys(cfg, {"files"}, "boundary index")
    _assert_mapping(cfg["files"], "boundary index files")
    if not cfg["files"]:
        raise ConfigError("boundary index files must be a non-empty mapping")

    known = {"ref_date", "level", "type", "url", "notes", "sheets", "member", "skiprows"}
    for file_id, entry in cfg["files"].items():
        ctx = f"files[{file_id}]"
        _assert_required_keys(entry, {"ref_date", "level", "type", "url"}, ctx)
        _assert_no_unknown_keys(entry, known, ctx, allow_unknown)
        _assert_year(entry["ref_date"], f"{ctx}.ref_date")
        _assert_choice(entry["level"], BOUNDARY_LEVELS, f"{ctx}.level")
        _assert_choice(entry["type"], BOUNDARY_TYPES, f"{ctx}.type")
        if entry.get("sheets") is not None and not isinstance(entry["sheets"], list):
            raise ConfigError(f"{ctx}.sheets must be a list of sheet names")

    return cfg


def validate_redistributions_config(cfg: dict, *, allow_unknown: bool = False) -> dict:
    _assert_required_keys(cfg, {"redistributions"}, "redistributions config")
    _assert_mapping(cfg["redistributions"], "redistributions")

    for redistribution_id, spec in cfg["redistributions"].items():
        ctx = f"redistributions[{redistribution_id}]"
        _assert_required_keys(spec, {"division_column", "code_year", "sources"}, ctx)
        _assert_no_unknown_keys(
            spec,
            {"description", "division_column", "code_year", "sources", "title_case", "drop_values"},
            ctx,
            allow_unknown,
        )
        _assert_choice(spec["code_year"], SA1_VINTAGES, f"{ctx}.code_year")
        if not isinstance(spec["sources"], list) or not spec["sources"]:
            raise ConfigError(f"{ctx}.sources must be a non-empty list")
        for idx, source in enumerate(spec["sources"]):
            _assert_required_keys(source, {"url", "code_column", "division_column"}, f"{ctx}.sources[{idx}]")

    return cfg
