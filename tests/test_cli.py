# SPDX-FileCopyrightText: 2025 adamws <adamws@users.noreply.github.com>
#
# SPDX-License-Identifier: GPL-3.0-or-later

import json
import logging
import sys
from argparse import ArgumentTypeError
from contextlib import contextmanager
from typing import List
from unittest.mock import patch

import pytest

from kblayout.__main__ import app, pitch_value
from kblayout.zmk import import_zmk

logger = logging.getLogger(__name__)


class ExitTest(Exception):
    pass


@pytest.fixture
def cli_isolation(monkeypatch):
    def mock_exit(*args, **kwargs):
        raise ExitTest(*args, **kwargs)

    monkeypatch.setattr("sys.exit", mock_exit)

    @contextmanager
    def _isolation(args: List):
        args.insert(0, "")
        with patch.object(sys, "argv", args):
            yield

    yield _isolation


# fmt: off
@pytest.mark.parametrize(
    "value,expectation",
    [
        ("19.05", 19.05),
        ("18",    18.0),
        ("0",     pytest.raises(ArgumentTypeError, match=r"'0' invalid unit pitch")),
        ("-1",    pytest.raises(ArgumentTypeError, match=r"'-1' invalid unit pitch")),
        ("nan",   pytest.raises(ArgumentTypeError, match=r"'nan' invalid unit pitch")),
        ("abc",   pytest.raises(ArgumentTypeError, match=r"'abc' invalid unit pitch")),
    ]
)
# fmt: on
def test_pitch_value(value, expectation) -> None:
    if isinstance(expectation, float):
        assert pitch_value(value) == expectation
    else:
        with expectation:
            pitch_value(value)


def test_kle_to_zmk_stdout(capsys, cli_isolation, data_dir) -> None:
    with cli_isolation(["-i", str(data_dir / "3x2.json")]):
        app()
    out = capsys.readouterr().out
    keys = import_zmk(out)
    assert [k.primary_legend for k in keys] == ["Q", "W", "E", "A", "S", "D"]
    assert keys[3].w == 1.5


def test_kle_yaml_to_qmk_file(tmpdir, capsys, cli_isolation, data_dir) -> None:
    output = f"{tmpdir}/result.json"
    args = ["-i", str(data_dir / "rotated.yaml"), "-o", output, "--outform", "QMK"]
    with cli_isolation(args):
        app()
    assert capsys.readouterr().out == ""
    with open(output, encoding="utf-8") as f:
        assert json.load(f) == {
            "layout": "CUSTOM",
            "keymap": ["Esc", "F1", "Thumb", "Space"],
        }


def test_output_file_and_text(tmpdir, capsys, cli_isolation, data_dir) -> None:
    output = f"{tmpdir}/layout.keymap"
    args = ["-i", str(data_dir / "3x2.json"), "-o", output, "--text"]
    with cli_isolation(args):
        app()
    with open(output, encoding="utf-8") as f:
        assert capsys.readouterr().out == f.read()


@pytest.mark.parametrize(
    "outform,filename", [("ZMK", "layout.keymap"), ("QMK", "layout_qmk.json")]
)
def test_output_directory(tmpdir, cli_isolation, data_dir, outform, filename) -> None:
    args = ["-i", str(data_dir / "3x2.json"), "-o", str(tmpdir), "--outform", outform]
    with cli_isolation(args):
        app()
    assert (tmpdir / filename).isfile()


def test_zmk_input(capsys, cli_isolation, data_dir) -> None:
    args = ["-i", str(data_dir / "corne-left.keymap"), "--inform", "ZMK", "--outform", "QMK"]
    with cli_isolation(args):
        app()
    result = json.loads(capsys.readouterr().out)
    assert result["keymap"] == ["TAB", "Q", "&mt LSHFT SPACE", "LC(A)"]


def test_pitch_option(capsys, cli_isolation) -> None:
    with cli_isolation(["-i", "unused", "--pitch", "38.1"]):
        with patch("kblayout.__main__.read_keys") as read_keys:
            read_keys.return_value = import_zmk(
                "/ { l { keys = <&key_physical_attrs 100 100 100 0 0 0 0>; }; };"
            )
            app()
    read_keys.assert_called_once_with("unused", "KLE")
    assert "<&key_physical_attrs 200 200  200    0       0     0     0>" in (
        capsys.readouterr().out
    )


def test_same_input_and_output_format(caplog, capsys, cli_isolation, data_dir) -> None:
    args = ["-i", str(data_dir / "corne-left.keymap"), "--inform", "ZMK"]
    with cli_isolation(args):
        app()
    assert "result will be reformatted" in caplog.text
    assert len(import_zmk(capsys.readouterr().out)) == 4


def test_invalid_layout(tmpdir, caplog, cli_isolation) -> None:
    layout = f"{tmpdir}/invalid.json"
    with open(layout, "w") as f:
        json.dump([["A"], 5], f)
    with cli_isolation(["-i", layout]):
        with pytest.raises(ExitTest):
            app()
    error_records = [r for r in caplog.records if r.levelname == "ERROR"]
    assert len(error_records) == 1
    assert error_records[0].message == (
        f"Unable to load layout '{layout}': "
        "Unexpected row 1: 5, expected list of keys"
    )


def test_invalid_yaml(tmpdir, caplog, cli_isolation) -> None:
    layout = f"{tmpdir}/invalid.yaml"
    with open(layout, "w") as f:
        f.write("- [a, b\n- c: [")
    with cli_isolation(["-i", layout]):
        with pytest.raises(ExitTest):
            app()
    assert "Could not load yaml file" in caplog.text


def test_missing_file(tmpdir, caplog, cli_isolation) -> None:
    layout = f"{tmpdir}/missing.json"
    with cli_isolation(["-i", layout]):
        with pytest.raises(ExitTest):
            app()
    assert caplog.records[-1].message.startswith(f"Unable to read '{layout}'")
