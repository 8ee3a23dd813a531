from pathlib import Path

import pytest

from au_boundaries.common.config_loader import CONFIG_FILES, DEFAULT_CONFIG_DIR, load_all_configs
from au_boundaries.common.errors import ConfigError
from au_boundaries.common.models import BoundaryKey, Geography


def _copy_repo_config(target: Path) -> None:
    target.mkdir()
    for filename in CONFIG_FILES.values():
        (target / filename).write_text((DEFAULT_CONFIG_DIR / filename).read_text(encoding="utf-8"), encoding="utf-8")


def test_load_all_configs_from_repo_config_dir():
    bundle = load_all_configs()

    assert bundle.events["2013 Federal Election"].base == Geography("CD", 2006)
    assert bundle.events["2022 Federal Election"].area_column == "SA1_7DIGITCODE_2016"
    assert bundle.comparisons["2022 Federal Election"].redistribution == "Vic_WA"
    assert bundle.comparisons["2025 Federal Election"].redistribution == "NT"
    assert bundle.sa1_vintages == [2011, 2016, 2021]
    assert set(bundle.redistributions) == {"Vic_WA", "NT"}


def test_every_hop_and_allocation_has_an_indexed_file():
    bundle = load_all_configs()
    indexed = {entry.key for entry in bundle.boundary_index}

    for hop in bundle.hops:
        assert hop.boundary in indexed
    for spec in bundle.allocations.values():
        assert spec.boundary in indexed
        if spec.method == "mesh_block":
            assert BoundaryKey(spec.mb_year, "MB", "allocation") in indexed
    for year in bundle.sa1_vintages:
        assert BoundaryKey(year, "SA1", "allocation") in indexed


def test_load_all_configs_applies_overlay_values(tmp_path: Path):
    base = tmp_path / "base"
    overlay = tmp_path / "overlay"
    _copy_repo_config(base)
    overlay.mkdir()
    (overlay / "boundary_index.yml").write_text(
        """files:
  sa1_correspondence_2021:
    url: https://mirror.example/CG_SA1_2016_SA1_2021.csv
""",
        encoding="utf-8",
    )

    bundle = load_all_configs(base, overlay_config_dir=overlay)

    entry = next(e for e in bundle.boundary_index if e.id == "sa1_correspondence_2021")
    assert entry.url == "https://mirror.example/CG_SA1_2016_SA1_2021.csv"
    assert entry.level == "SA1"
    assert entry.ref_date == 2021


def test_load_all_configs_ignores_empty_overlay_file(tmp_path: Path):
    base = tmp_path / "base"
    overlay = tmp_path / "overlay"
    _copy_repo_config(base)
    overlay.mkdir()
    (overlay / "events.yml").write_text("", encoding="utf-8")

    bundle = load_all_configs(base, overlay_config_dir=overlay)
    assert "2019 Federal Election" in bundle.events


def test_load_all_configs_rejects_non_mapping_overlay(tmp_path: Path):
    base = tmp_path / "base"
    overlay = tmp_path / "overlay"
    _copy_repo_config(base)
    overlay.mkdir()
    (overlay / "geography.yml").write_text("- not\n- a\n- mapping\n", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_all_configs(base, overlay_config_dir=overlay)


def test_load_all_configs_rejects_unknown_redistribution(tmp_path: Path):
    base = tmp_path / "base"
    overlay = tmp_path / "overlay"
    _copy_repo_config(base)
    overlay.mkdir()
    (overlay / "events.yml").write_text(
        """comparisons:
  "2022 Federal Election": {redistribution: SA_2024}
""",
        encoding="utf-8",
    )

    with pytest.raises(ConfigError, match="SA_2024"):
        load_all_configs(base, overlay_config_dir=overlay)


def test_load_all_configs_missing_file(tmp_path: Path):
    with pytest.raises(ConfigError, match="Missing config file"):
        load_all_configs(tmp_path)
