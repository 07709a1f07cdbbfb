# SPDX-FileCopyrightText: 2025 adamws <adamws@users.noreply.github.com>
#
# SPDX-License-Identifier: GPL-3.0-or-later

from __future__ import annotations

import math
import uuid
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Type, Union

from .defaults import (
    DEFAULT_BINDING_PREFIX,
    LABEL_COUNT,
    NO_KEY_LABEL,
    PRIMARY_LABEL_INDEX,
)

# alternative spellings accepted by KeyLayout.from_dict
_FIELD_ALIASES = {
    "rotationAngle": "rotation_angle",
    "rotationCenter": "rotation_center",
    "width": "w",
    "height": "h",
}


@dataclass(frozen=True)
class Point:
    x: float = 0
    y: float = 0

    @classmethod
    def from_any(cls: Type[Point], value: Any) -> Point:
        if isinstance(value, Point):
            return value
        if value is None:
            return cls()
        if isinstance(value, Mapping):
            return cls(value.get("x", 0), value.get("y", 0))
        x, y = value
        return cls(x, y)

    def translated(self, dx: float, dy: float) -> Point:
        return Point(self.x + dx, self.y + dy)


def new_key_id() -> str:
    return uuid.uuid4().hex


def normalize_angle(angle: float) -> float:
    result = angle % 360
    # tiny negative values wrap to exactly 360.0
    if result >= 360:
        result = 0.0
    return result


def normalize_labels(
    labels: Optional[Iterable[Optional[str]]] = None,
    legacy_label: Optional[str] = None,
) -> List[str]:
    """Returns list of exactly LABEL_COUNT strings.

    When `labels` is missing (or empty) the legacy single label value,
    if given, is used as primary legend.
    """
    result = LABEL_COUNT * [""]
    items = list(labels) if labels is not None else []
    if items:
        for i, label in enumerate(items[0:LABEL_COUNT]):
            result[i] = "" if label is None else str(label)
    elif legacy_label:
        result[PRIMARY_LABEL_INDEX] = str(legacy_label)
    return result


def binding_for_legend(legend: Optional[str]) -> str:
    return f"{DEFAULT_BINDING_PREFIX} {legend or NO_KEY_LABEL}"


def _default_labels() -> Tuple[str, ...]:
    return tuple(normalize_labels())


@dataclass(frozen=True)
class KeyLayout:
    """Single physical key, immutable.

    Use `dataclasses.replace` to derive changed copies. Labels are stored
    as a tuple of exactly LABEL_COUNT strings, any other iterable passed
    to the constructor is normalized.
    """

    id: str = field(default_factory=new_key_id)
    x: float = 0
    y: float = 0
    w: float = 1
    h: float = 1
    rotation_angle: float = 0
    rotation_center: Point = field(default_factory=Point)
    labels: Tuple[str, ...] = field(default_factory=_default_labels)
    binding: Optional[str] = None

    def __post_init__(self: KeyLayout) -> None:
        # frozen dataclass, normalized values have to bypass __setattr__
        if not isinstance(self.rotation_center, Point):
            center = Point.from_any(self.rotation_center)
            object.__setattr__(self, "rotation_center", center)
        if (
            not isinstance(self.labels, tuple)
            or len(self.labels) != LABEL_COUNT
            or any(not isinstance(label, str) for label in self.labels)
        ):
            object.__setattr__(self, "labels", tuple(normalize_labels(self.labels)))
        object.__setattr__(
            self, "rotation_angle", normalize_angle(self.rotation_angle)
        )

    @property
    def primary_legend(self) -> str:
        return self.labels[PRIMARY_LABEL_INDEX]

    @classmethod
    def from_dict(cls: Type[KeyLayout], data: Mapping[str, Any]) -> KeyLayout:
        values: Dict[str, Any] = {}
        for name, value in data.items():
            name = _FIELD_ALIASES.get(name, name)
            if name in cls.__dataclass_fields__:
                values[name] = value
        labels = values.pop("labels", None)
        values["labels"] = normalize_labels(labels, data.get("label"))
        if values.get("id") is None:
            values["id"] = new_key_id()
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["labels"] = list(self.labels)
        return data


KeyLike = Union[KeyLayout, Mapping[str, Any]]


def to_key_layout(value: KeyLike) -> KeyLayout:
    if isinstance(value, KeyLayout):
        return value
    return KeyLayout.from_dict(value)


def is_finite_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)
