# SPDX-FileCopyrightText: 2025 adamws <adamws@users.noreply.github.com>
#
# SPDX-License-Identifier: GPL-3.0-or-later

import argparse
import logging
import math
import os
import sys
from typing import Any, List

import yaml

from . import __version__
from .defaults import DEFAULT_PITCH_MM, QMK_DEFAULT_FILENAME, ZMK_DEFAULT_FILENAME
from .key_layout import KeyLayout
from .kle_import import load_kle, parse_kle
from .layout_error import LayoutError
from .qmk import export_qmk_json
from .zmk import export_zmk, import_zmk

logger = logging.getLogger(__name__)

INPUT_FORMATS = ["KLE", "ZMK"]
OUTPUT_FORMATS = ["ZMK", "QMK"]
DEFAULT_FILENAMES = {"ZMK": ZMK_DEFAULT_FILENAME, "QMK": QMK_DEFAULT_FILENAME}


def pitch_value(value: str) -> float:
    try:
        pitch = float(value)
    except ValueError:
        pitch = 0
    if not math.isfinite(pitch) or pitch <= 0:
        msg = f"'{value}' invalid unit pitch, it must be positive number of millimetres"
        raise argparse.ArgumentTypeError(msg)
    return pitch


def read_keys(input_path: str, input_format: str) -> List[KeyLayout]:
    # Layout downloaded from keyboard-layout-editor is most likely using utf-8.
    # Use it explicitly in case the platform locale sets different encoding.
    with open(input_path, "r", encoding="utf-8") as f:
        text = f.read()
    logger.info(f"Read {len(text)} characters from {input_path}")

    if input_format == "ZMK":
        return import_zmk(text)
    if input_path.endswith("yaml") or input_path.endswith("yml"):
        try:
            layout: Any = yaml.safe_load(text)
        except yaml.YAMLError as e:
            msg = f"Could not load yaml file: {e}"
            raise LayoutError(msg) from e
        return parse_kle(layout)
    return load_kle(text)


def convert(keys: List[KeyLayout], output_format: str, pitch: float) -> str:
    if output_format == "ZMK":
        return export_zmk(keys, pitch)
    return export_qmk_json(keys) + "\n"


def app() -> None:
    parser = argparse.ArgumentParser(
        description="Keyboard layout converter",
        formatter_class=argparse.RawTextHelpFormatter,
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    parser.add_argument("-i", "--in", required=True, help="Layout file")
    parser.add_argument(
        "--inform",
        required=False,
        default="KLE",
        choices=INPUT_FORMATS,
        help=(
            "Specifies the input format, default=%(default)s\n"
            "KLE layouts can be provided as JSON or YAML file."
        ),
    )
    parser.add_argument(
        "-o",
        "--out",
        required=False,
        help=(
            "Result file or directory, printed to stdout when not specified\n"
            "Directory output uses layout.keymap (ZMK) or layout_qmk.json (QMK) name."
        ),
    )
    parser.add_argument(
        "--outform",
        required=False,
        default="ZMK",
        choices=OUTPUT_FORMATS,
        help="Specifies the output format, default=%(default)s",
    )
    parser.add_argument(
        "--pitch",
        required=False,
        default=DEFAULT_PITCH_MM,
        type=pitch_value,
        help=(
            "Physical size of one key unit in millimetres, default=%(default)s\n"
            "Used for scaling ZMK physical layout."
        ),
    )
    parser.add_argument(
        "--text", required=False, action="store_true", help="Print result"
    )
    parser.add_argument(
        "--log-level",
        required=False,
        default="WARNING",
        choices=logging._nameToLevel.keys(),
        type=str,
        help="Provide logging level, default=%(default)s",
    )

    args = parser.parse_args()
    input_path = getattr(args, "in")
    output_path = args.out
    if output_path and os.path.isdir(output_path):
        output_path = os.path.join(output_path, DEFAULT_FILENAMES[args.outform])

    # set up logger
    logging.basicConfig(
        level=args.log_level, format="%(asctime)s: %(message)s", datefmt="%H:%M:%S"
    )

    if args.inform == args.outform:
        logger.warning("Output format equal input format, result will be reformatted")

    try:
        keys = read_keys(input_path, args.inform)
    except LayoutError as e:
        logger.error(f"Unable to load layout '{input_path}': {e.message}")
        sys.exit(1)
    except OSError as e:
        logger.error(f"Unable to read '{input_path}': {e}")
        sys.exit(1)

    logger.info(f"Loaded {len(keys)} keys")
    result = convert(keys, args.outform, args.pitch)

    if output_path:
        with open(output_path, "w", encoding="utf-8") as f:
            f.write(result)
        logger.info(f"Saved {args.outform} layout to {output_path}")
    if args.text or not output_path:
        sys.stdout.write(result)

    logging.shutdown()


if __name__ == "__main__":
    app()
