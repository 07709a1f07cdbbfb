# SPDX-FileCopyrightText: 2025 adamws <adamws@users.noreply.github.com>
#
# SPDX-License-Identifier: GPL-3.0-or-later

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List

from .defaults import LABEL_COUNT, PRIMARY_LABEL_INDEX
from .document import LayoutDocument
from .key_layout import (
    KeyLayout,
    Point,
    binding_for_legend,
    is_finite_number,
    normalize_labels,
)
from .layout_error import LayoutError

logger = logging.getLogger(__name__)

NUMERIC_PROPERTIES = ("r", "rx", "ry", "x", "y", "w", "h")


def _number(item: Dict[str, Any], name: str) -> float:
    value = item[name]
    if not is_finite_number(value):
        msg = f"Invalid '{name}' value: {value!r} in {json.dumps(item)}"
        raise LayoutError(msg)
    return value


def _labels(item: Any) -> List[str]:
    if isinstance(item, str):
        return normalize_labels(None, item)

    labels = item.get("labels")
    if isinstance(labels, str):
        return normalize_labels(None, labels)
    if labels is not None and not isinstance(labels, list):
        msg = f"Unexpected key labels: {labels!r}"
        raise LayoutError(msg)
    if labels and len(labels) > LABEL_COUNT:
        logger.warning(
            f"Key can have up to {LABEL_COUNT} labels, ignoring redundant values: "
            f"{labels[LABEL_COUNT:]}"
        )
    return normalize_labels(labels, item.get("label"))


def parse_kle(layout: Any) -> List[KeyLayout]:
    """Converts keyboard-layout-editor raw data (list of rows) to keys.

    Rotation (`r`, `rx`, `ry`) persists until overridden, pending key size
    (`w`, `h`) applies to the next key only.
    """
    if not isinstance(layout, list):
        msg = "Expected an list of rows"
        raise LayoutError(msg)

    keys: List[KeyLayout] = []
    x: float = 0
    y: float = 0
    w: float = 1
    h: float = 1
    r: float = 0
    rx: float = 0
    ry: float = 0

    for i, row in enumerate(layout):
        if isinstance(row, dict) and i == 0:
            logger.debug(f"Skipping layout metadata: {row}")
            continue
        if not isinstance(row, list):
            msg = f"Unexpected row {i}: {row!r}, expected list of keys"
            raise LayoutError(msg)

        x = rx
        for item in row:
            if isinstance(item, dict) and "labels" not in item:
                values = {
                    name: _number(item, name)
                    for name in NUMERIC_PROPERTIES
                    if name in item
                }
                if "r" in values:
                    r = values["r"]
                if "rx" in values:
                    rx = values["rx"]
                    x = rx
                if "ry" in values:
                    ry = values["ry"]
                    y = ry
                x += values.get("x", 0)
                y += values.get("y", 0)
                w = values.get("w", w)
                h = values.get("h", h)
            elif isinstance(item, (str, dict)):
                labels = _labels(item)
                keys.append(
                    KeyLayout(
                        x=x,
                        y=y,
                        w=w,
                        h=h,
                        rotation_angle=r,
                        rotation_center=Point(rx, ry),
                        labels=labels,
                        binding=binding_for_legend(labels[PRIMARY_LABEL_INDEX]),
                    )
                )
                x += w
                w = 1
                h = 1
            else:
                msg = f"Unexpected item type in row {i}: {item!r}"
                raise LayoutError(msg)

        # end of the row:
        x = rx
        y += 1

    logger.debug(f"Parsed {len(keys)} keys from {len(layout)} rows")
    return keys


def import_kle(layout: Any) -> LayoutDocument:
    return LayoutDocument().set_keys(parse_kle(layout))


def load_kle(text: str) -> List[KeyLayout]:
    """Parses JSON text, accepts raw data copied from keyboard-layout-editor
    which lacks enclosing brackets"""
    try:
        layout = json.loads(text)
    except json.JSONDecodeError:
        try:
            layout = json.loads("[" + text + "]")
        except json.JSONDecodeError as e:
            msg = f"Invalid KLE JSON: {e}"
            raise LayoutError(msg) from e
    if isinstance(layout, list) and not any(isinstance(r, list) for r in layout):
        # raw data of single row layout
        layout = [layout]
    return parse_kle(layout)
