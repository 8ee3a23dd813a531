from __future__ import annotations

import pytest

from au_boundaries.boundaries.prepare import prepare_boundaries, validate_combination
from au_boundaries.common.errors import ConfigError, InvalidCombinationError

from conftest import cd_to_sa1_2011, frame, sa1_2011_to_2016, sa1_2016_to_2021


def test_backward_mapping_rejected_before_any_fetch(make_session):
    session = make_session()

    with pytest.raises(
        InvalidCombinationError,
        match="Invalid combination: Cannot correspond from SA1 2016 to earlier SA1 year 2011",
    ):
        prepare_boundaries("2019 Federal Election", "2011 Census", session=session)
    assert session.boundaries.calls == []
    assert session.tabular.calls == []


def test_unknown_event_and_target_list_choices(repo_config):
    with pytest.raises(ConfigError, match="2019 Federal Election"):
        validate_combination("2010 Federal Election", "2016 Census", repo_config)
    with pytest.raises(ConfigError, match="2016 Census"):
        validate_combination("2019 Federal Election", "2031 Census", repo_config)


def test_validate_combination_returns_specs(repo_config):
    event, target = validate_combination("2013 Federal Election", "2022 Federal Election", repo_config)

    assert str(event.base) == "CD 2006"
    assert (target.type, target.sa1_year, target.unit_year, target.redistribution) == ("CED", 2021, 2021, "Vic_WA")


def test_sa1_target_returns_correspondence(make_session):
    session = make_session(
        {(2016, "SA1", "correspondence"): sa1_2011_to_2016([("10101100101", "20101100101", "1")])}
    )

    table = prepare_boundaries("2016 Federal Election", "2016 Census", session=session)

    assert list(table.columns) == [
        "SA1_MAINCODE_2011",
        "SA1_7DIGITCODE_2011",
        "SA1_MAINCODE_2016",
        "RATIO_11SA1_16SA1",
    ]


def test_postcode_target_outer_joins_on_both_sa1_keys(make_session):
    session = make_session(
        {
            (2016, "SA1", "allocation"): frame(["SA1_MAINCODE_2016"], [("10101100101",), ("10101100102",)]),
            (2016, "POA", "allocation"): frame(
                ["MB_CODE_2016", "POA_NAME_2016"], [("1", "2000"), ("2", "2001"), ("3", "2999")]
            ),
            (2016, "MB", "allocation"): frame(
                ["MB_CODE_2016", "SA1_MAINCODE_2016"],
                [("1", "10101100101"), ("2", "10101100101"), ("3", "10101100199")],
            ),
        }
    )

    table = prepare_boundaries("2019 Federal Election", "2016 Postcodes", session=session)

    assert list(table.columns) == ["SA1_MAINCODE_2016", "SA1_7DIGITCODE_2016", "POA_NAME_2016"]
    rows = sorted(map(tuple, table.fillna("<NA>").values.tolist()))
    assert rows == [
        ("10101100101", "1100101", "2000"),
        ("10101100101", "1100101", "2001"),
        ("10101100102", "1100102", "<NA>"),
        ("10101100199", "1100199", "2999"),
    ]


def test_2022_election_from_2013_geography_applies_vic_wa(make_session, repo_config):
    vic, wa = repo_config.redistributions["Vic_WA"].sources
    session = make_session(
        boundaries={
            (2011, "SA1", "correspondence"): cd_to_sa1_2011(
                [("2010101", "20101100101", "0.6"), ("2010101", "20101100102", "0.4")]
            ),
            (2016, "SA1", "correspondence"): sa1_2011_to_2016(
                [("20101100101", "21010100101", "1"), ("20101100102", "21010100102", "1")]
            ),
            (2021, "SA1", "correspondence"): sa1_2016_to_2021(
                [("21010100101", "20101100101", "1"), ("21010100102", "20101100102", "1")]
            ),
            (2021, "CED", "allocation"): frame(["MB_CODE_2021", "CED_NAME_2021"], [("1", "Old"), ("2", "Old")]),
            (2021, "MB", "allocation"): frame(
                ["MB_CODE_2021", "SA1_CODE_2021"], [("1", "20101100101"), ("2", "20101100102")]
            ),
        },
        tables={
            vic.url: frame([vic.code_column, vic.division_column], [("2100101", "Hawke")]),
            wa.url: frame([wa.code_column, wa.division_column], [("5100101", "Bullwinkel")]),
        },
    )

    table = prepare_boundaries("2013 Federal Election", "2022 Federal Election", session=session)

    by_sa1 = dict(zip(table["SA1_CODE_2021"], table["CED_NAME_2021"]))
    assert by_sa1 == {"20101100101": "Hawke", "20101100102": "Old"}
    assert table["RATIO_06CD_21SA1"].sum() == pytest.approx(1.0)
    assert session.audit.events_of("REDISTRIBUTION_APPLIED")[0].count == 1


def test_2025_election_applies_nt(make_session, repo_config):
    (nt,) = repo_config.redistributions["NT"].sources
    session = make_session(
        boundaries={
            (2021, "SA1", "allocation"): frame(["SA1_CODE_2021"], [("70101100101",), ("80101100101",)]),
            (2024, "CED", "allocation"): frame(["MB_CODE_2021", "CED_NAME_2024"], [("7", "Solomon"), ("8", "Canberra")]),
            (2021, "MB", "allocation"): frame(["MB_CODE_2021", "SA1_CODE_2021"], [("7", "70101100101"), ("8", "80101100101")]),
        },
        tables={nt.url: frame([nt.code_column, nt.division_column], [("7100101", "LINGIARI")])},
    )

    table = prepare_boundaries("2025 Federal Election", "2025 Federal Election", session=session)

    assert dict(zip(table["SA1_CODE_2021"], table["CED_NAME_2024"])) == {
        "70101100101": "Lingiari",
        "80101100101": "Canberra",
    }
