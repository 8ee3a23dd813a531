from __future__ import annotations

import pandas as pd
import pytest

from au_boundaries.boundaries.results import default_output_columns, prepare_results
from au_boundaries.common.errors import ConfigError, ContractError

from conftest import frame


def _cd_boundaries():
    return frame(
        ["CD_CODE_2006", "SA1_CODE_2021", "RATIO_06CD_21SA1", "CED_NAME_2021"],
        [
            ("1010101", "10101100101", 0.6, "Sydney"),
            ("1010101", "10101100102", 0.4, "Wentworth"),
            ("1010102", "10101100103", 1.0, "Sydney"),
        ],
    )


def _votes():
    return frame(
        ["StatisticalAreaID", "PollingPlaceID", "Count"],
        [("1010101", "p1", "100"), ("1010102", "p1", "10"), ("1010101", "p2", "50"), ("9999999", "p2", "7")],
    )


def test_prepare_results_weights_and_aggregates_by_unit(make_session):
    session = make_session()

    result = prepare_results(_votes(), _cd_boundaries(), "2013 Federal Election", value_columns=["Count"], session=session)

    totals = dict(zip(result["CED_NAME_2021"], result["Count"]))
    assert totals == {"Sydney": pytest.approx(100.0), "Wentworth": pytest.approx(60.0)}
    unmatched = session.audit.events_of("RESULTS_UNMATCHED")[0]
    assert unmatched.count == 1


def test_prepare_results_keeps_keys(make_session):
    result = prepare_results(
        _votes(),
        _cd_boundaries(),
        "2013 Federal Election",
        value_columns=["Count"],
        keys=["PollingPlaceID"],
        session=make_session(),
    )

    assert list(result.columns) == ["PollingPlaceID", "CED_NAME_2021", "Count"]
    rows = {(row.PollingPlaceID, row.CED_NAME_2021): row.Count for row in result.itertuples()}
    assert rows == {
        ("p1", "Sydney"): pytest.approx(70.0),
        ("p1", "Wentworth"): pytest.approx(40.0),
        ("p2", "Sydney"): pytest.approx(30.0),
        ("p2", "Wentworth"): pytest.approx(20.0),
    }


def test_prepare_results_without_ratio_column_uses_unit_weight(make_session):
    boundaries = frame(
        ["SA1_MAINCODE_2016", "SA1_7DIGITCODE_2016", "POA_NAME_2016"],
        [("12345678901", "1678901", "2000"), ("22222222222", "2222222", "3000")],
    )
    votes = frame(["StatisticalAreaID", "Count"], [("1678901", 3), ("2222222", 4), ("1678901", 1)])

    result = prepare_results(votes, boundaries, "2019 Federal Election", value_columns=["Count"], session=make_session())

    assert result.to_dict("list") == {"POA_NAME_2016": ["2000", "3000"], "Count": [4, 4]}


def test_prepare_results_reports_ratio_totals_off_one(make_session):
    boundaries = _cd_boundaries()
    boundaries.loc[2, "RATIO_06CD_21SA1"] = 0.5
    session = make_session()

    prepare_results(_votes(), boundaries, "2013 Federal Election", value_columns=["Count"], session=session)

    deviation = session.audit.events_of("RESULT_RATIO_DEVIATION")[0]
    assert deviation.details == {"over": 0, "under": 1}


def test_default_output_columns_falls_back_to_latest_sa1():
    table = pd.DataFrame(columns=["SA1_MAINCODE_2016", "SA1_7DIGITCODE_2016", "SA1_CODE_2021", "RATIO_16SA1_21SA1"])
    assert default_output_columns(table) == ["SA1_CODE_2021"]
    with pytest.raises(ContractError):
        default_output_columns(pd.DataFrame(columns=["X"]))


def test_prepare_results_validates_inputs(make_session):
    session = make_session()

    with pytest.raises(ConfigError):
        prepare_results(_votes(), _cd_boundaries(), "1901 Federal Election", value_columns=["Count"], session=session)
    with pytest.raises(ContractError, match="Formal"):
        prepare_results(_votes(), _cd_boundaries(), "2013 Federal Election", value_columns=["Formal"], session=session)
    with pytest.raises(ContractError, match="SA1_7DIGITCODE_2016"):
        prepare_results(_votes(), _cd_boundaries(), "2019 Federal Election", value_columns=["Count"], session=session)
