from pathlib import Path

import pytest

from au_boundaries import cli
from au_boundaries.cli import parse_args, run_command

from conftest import frame


def _boundaries():
    # Rows deliberately out of order so output ordering is exercised.
    return {
        (2016, "SA1", "allocation"): frame(
            ["SA1_MAINCODE_2016"], [("30101100101",), ("10101100101",), ("20101100101",)]
        ),
        (2016, "POA", "allocation"): frame(["MB_CODE_2016", "POA_NAME_2016"], [("3", "4000"), ("1", "2000"), ("2", "3000")]),
        (2016, "MB", "allocation"): frame(
            ["MB_CODE_2016", "SA1_MAINCODE_2016"],
            [("2", "20101100101"), ("3", "30101100101"), ("1", "10101100101")],
        ),
    }


def _run_once(tmp_path: Path, run_id: str, make_session, monkeypatch) -> bytes:
    monkeypatch.setattr(cli, "build_session", lambda *_args, **_kwargs: make_session(_boundaries()))
    out = tmp_path / f"{run_id}.csv"
    args = parse_args(
        [
            "prepare",
            "--event",
            "2019 Federal Election",
            "--compare-to",
            "2016 Postcodes",
            "--data-dir",
            str(tmp_path / "data"),
            "--run-id",
            run_id,
            "--out",
            str(out),
        ]
    )
    assert run_command(args) == 0
    return out.read_bytes()


@pytest.mark.regression
def test_prepared_outputs_are_byte_stable_for_same_inputs(tmp_path: Path, make_session, monkeypatch):
    first = _run_once(tmp_path, "run-a", make_session, monkeypatch)
    second = _run_once(tmp_path, "run-b", make_session, monkeypatch)

    assert first == second
    assert first.decode("utf-8").splitlines() == [
        "SA1_MAINCODE_2016,SA1_7DIGITCODE_2016,POA_NAME_2016",
        "10101100101,1100101,2000",
        "20101100101,2100101,3000",
        "30101100101,3100101,4000",
    ]
