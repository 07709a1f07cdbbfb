# SPDX-FileCopyrightText: 2025 adamws <adamws@users.noreply.github.com>
#
# SPDX-License-Identifier: GPL-3.0-or-later

import logging
from pathlib import Path
from typing import Callable, List

import pytest

from kblayout.document import LayoutDocument
from kblayout.key_layout import KeyLayout, Point

logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).parent / "data"


@pytest.fixture
def data_dir() -> Path:
    return DATA_DIR


def make_key(
    key_id: str,
    x: float = 0,
    y: float = 0,
    w: float = 1,
    h: float = 1,
    angle: float = 0,
    center: Point = Point(0, 0),
    legend: str = "",
) -> KeyLayout:
    labels = 9 * [""]
    labels[4] = legend
    return KeyLayout(
        id=key_id,
        x=x,
        y=y,
        w=w,
        h=h,
        rotation_angle=angle,
        rotation_center=center,
        labels=labels,
    )


@pytest.fixture
def key_factory() -> Callable[..., KeyLayout]:
    return make_key


@pytest.fixture
def row_keys() -> List[KeyLayout]:
    return [
        make_key("a", x=0, legend="A"),
        make_key("b", x=1, legend="B"),
        make_key("c", x=2, legend="C"),
    ]


@pytest.fixture
def document(row_keys) -> LayoutDocument:
    return LayoutDocument().set_keys(row_keys)
