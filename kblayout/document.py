# SPDX-FileCopyrightText: 2025 adamws <adamws@users.noreply.github.com>
#
# SPDX-License-Identifier: GPL-3.0-or-later

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .defaults import (
    DEFAULT_PITCH_MM,
    DUPLICATE_OFFSET,
    LABEL_COUNT,
    PRIMARY_LABEL_INDEX,
)
from .geometry import Rect, key_bounding_rect, nearest_snap_offset, rects_intersect
from .history import History
from .key_layout import (
    KeyLayout,
    KeyLike,
    Point,
    binding_for_legend,
    is_finite_number,
    new_key_id,
    normalize_angle,
    normalize_labels,
    to_key_layout,
)

logger = logging.getLogger(__name__)

NUMERIC_FIELDS = ("x", "y", "w", "h", "rotation_angle")
PATCH_ALIASES = {
    "rotationAngle": "rotation_angle",
    "rotationCenter": "rotation_center",
}


class ViewMode(str, Enum):
    CANVAS = "canvas"
    NODE = "node"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def get(cls, name: str) -> ViewMode:
        if isinstance(name, str):
            try:
                return ViewMode(name.lower())
            except ValueError:
                # fallback to error below to use 'name' before converting to lowercase
                pass
        msg = f"'{name}' is not a valid ViewMode"
        raise ValueError(msg)


def _merge_center(current: Point, value: Any) -> Point:
    if isinstance(value, Mapping):
        items = value.items()
    else:
        new = Point.from_any(value)
        items = (("x", new.x), ("y", new.y))
    x, y = current.x, current.y
    for name, v in items:
        if not is_finite_number(v):
            logger.debug(f"Ignoring invalid rotation center {name} value: {v!r}")
        elif name == "x":
            x = v
        elif name == "y":
            y = v
    return Point(x, y)


def apply_patch(key: KeyLayout, patch: Mapping[str, Any]) -> KeyLayout:
    """Returns copy of `key` with `patch` merged in.

    Invalid numeric values are dropped, rotation center is merged field by
    field and labels are replaced as a whole. Changing the primary legend
    regenerates the binding unless the patch sets one explicitly.
    """
    changes: Dict[str, Any] = {}
    for name, value in patch.items():
        name = PATCH_ALIASES.get(name, name)
        if name in NUMERIC_FIELDS:
            if is_finite_number(value):
                changes[name] = value
            else:
                logger.debug(f"Ignoring invalid '{name}' value: {value!r}")
        elif name == "binding":
            changes[name] = value
        elif value is None:
            continue
        elif name == "rotation_center":
            changes[name] = _merge_center(key.rotation_center, value)
        elif name == "labels":
            changes[name] = normalize_labels(value)

    if "labels" not in changes and "label" in patch:
        labels = list(key.labels)
        labels[PRIMARY_LABEL_INDEX] = patch["label"] or ""
        changes["labels"] = labels

    updated = replace(key, **changes)
    if "binding" not in changes and updated.primary_legend != key.primary_legend:
        updated = replace(updated, binding=binding_for_legend(updated.primary_legend))
    return updated


@dataclass(frozen=True)
class LayoutDocument:
    """Ordered key sequence with selection and undo history.

    Every operation returns new document, the instance it was called on is
    left untouched. Operations which do not change anything return `self`.
    """

    keys: Tuple[KeyLayout, ...] = ()
    selection: Tuple[str, ...] = ()
    unit_pitch_mm: float = DEFAULT_PITCH_MM
    view_mode: ViewMode = ViewMode.CANVAS
    history: History = field(default_factory=History)

    def get_key(self, key_id: str) -> Optional[KeyLayout]:
        for key in self.keys:
            if key.id == key_id:
                return key
        return None

    def _index(self, key_id: str) -> Optional[int]:
        for i, key in enumerate(self.keys):
            if key.id == key_id:
                return i
        return None

    @property
    def primary_key(self) -> Optional[KeyLayout]:
        if self.selection:
            return self.get_key(self.selection[0])
        return None

    @property
    def selected_keys(self) -> List[KeyLayout]:
        keys = {k.id: k for k in self.keys}
        return [keys[i] for i in self.selection if i in keys]

    def _commit(
        self,
        keys: Iterable[KeyLayout],
        *,
        skip_history: bool = False,
        **changes: Any,
    ) -> LayoutDocument:
        if not skip_history:
            changes["history"] = self.history.record(self.keys)
        return replace(self, keys=tuple(keys), **changes)

    def _map_selected(self, function) -> List[KeyLayout]:
        selected = set(self.selection)
        return [function(k) if k.id in selected else k for k in self.keys]

    def set_keys(self, new_keys: Iterable[KeyLike]) -> LayoutDocument:
        keys: List[KeyLayout] = []
        seen = set()
        for item in new_keys:
            key = to_key_layout(item)
            if key.id in seen:
                logger.debug(f"Duplicated key id '{key.id}', assigning new one")
                key = replace(key, id=new_key_id())
            seen.add(key.id)
            keys.append(key)
        logger.debug(f"Loaded layout with {len(keys)} keys")
        return replace(
            self, keys=tuple(keys), selection=(), history=self.history.cleared()
        )

    def update_key(
        self, key_id: str, patch: Mapping[str, Any], *, skip_history: bool = False
    ) -> LayoutDocument:
        index = self._index(key_id)
        if index is None:
            logger.debug(f"Key '{key_id}' not found, ignoring update")
            return self
        current = self.keys[index]
        updated = apply_patch(current, patch)
        if updated == current:
            return self
        keys = list(self.keys)
        keys[index] = updated
        return self._commit(keys, skip_history=skip_history)

    def set_key_position(
        self,
        key_id: str,
        x: Optional[float] = None,
        y: Optional[float] = None,
        *,
        skip_history: bool = False,
    ) -> LayoutDocument:
        """Moves key to new position, rotation center follows the key"""
        current = self.get_key(key_id)
        if current is None:
            return self
        patch: Dict[str, Any] = {}
        dx = dy = 0.0
        if is_finite_number(x):
            dx = x - current.x
            patch["x"] = x
        if is_finite_number(y):
            dy = y - current.y
            patch["y"] = y
        if not patch:
            return self
        patch["rotation_center"] = current.rotation_center.translated(dx, dy)
        return self.update_key(key_id, patch, skip_history=skip_history)

    def set_legend(
        self, key_id: str, index: int, value: str, *, skip_history: bool = False
    ) -> LayoutDocument:
        if index > LABEL_COUNT - 1 or index < 0:
            msg = "Illegal key label index"
            raise RuntimeError(msg)
        current = self.get_key(key_id)
        if current is None:
            return self
        labels = list(current.labels)
        labels[index] = value
        return self.update_key(key_id, {"labels": labels}, skip_history=skip_history)

    def move_key(
        self,
        key_id: str,
        center: Point,
        unit_px: float,
        *,
        snap: bool = True,
        skip_history: bool = False,
    ) -> LayoutDocument:
        """Drags key so its rotation center lands on `center` (in units).

        With `snap` enabled the key is additionally moved to align its
        closest corner with a corner of another key, if there is one
        within snapping threshold.
        """
        current = self.get_key(key_id)
        if current is None:
            return self

        def _draft(target: Point) -> KeyLayout:
            dx = target.x - current.rotation_center.x
            dy = target.y - current.rotation_center.y
            return replace(
                current, x=current.x + dx, y=current.y + dy, rotation_center=target
            )

        draft = _draft(center)
        if snap:
            offset = nearest_snap_offset(draft, self.keys, unit_px)
            if offset:
                draft = _draft(
                    center.translated(offset.x / unit_px, offset.y / unit_px)
                )

        patch = {"x": draft.x, "y": draft.y, "rotation_center": draft.rotation_center}
        return self.update_key(key_id, patch, skip_history=skip_history)

    def toggle_select(self, key_id: str) -> LayoutDocument:
        if key_id in self.selection:
            selection = tuple(i for i in self.selection if i != key_id)
        elif self.get_key(key_id) is not None:
            selection = self.selection + (key_id,)
        else:
            return self
        return replace(self, selection=selection)

    def select_key(self, key_id: str) -> LayoutDocument:
        if self.get_key(key_id) is None:
            return self
        return replace(self, selection=(key_id,))

    def set_selected_keys(self, ids: Iterable[str]) -> LayoutDocument:
        existing = {k.id for k in self.keys}
        selection = tuple(i for i in dict.fromkeys(ids) if i in existing)
        return replace(self, selection=selection)

    def clear_selection(self) -> LayoutDocument:
        if not self.selection:
            return self
        return replace(self, selection=())

    def select_in_rect(
        self, rect: Rect, unit_px: float, offset: Point = Point(0, 0)
    ) -> LayoutDocument:
        ids = [
            k.id
            for k in self.keys
            if rects_intersect(rect, key_bounding_rect(k, unit_px, offset))
        ]
        return self.set_selected_keys(ids)

    def select_next(self, step: int = 1) -> LayoutDocument:
        """Moves primary selection `step` keys forward in document order,
        wrapping around. Does nothing when there is no primary key"""
        current = self._index(self.selection[0]) if self.selection else None
        if current is None:
            return self
        return self.select_key(self.keys[(current + step) % len(self.keys)].id)

    def rotate_selected(self, delta: float) -> LayoutDocument:
        if not self.selection or not is_finite_number(delta):
            return self
        keys = self._map_selected(
            lambda k: replace(
                k, rotation_angle=normalize_angle(k.rotation_angle + delta)
            )
        )
        return self._commit(keys)

    def nudge_selected(self, dx: float, dy: float) -> LayoutDocument:
        if not self.selection:
            return self
        if not (is_finite_number(dx) and is_finite_number(dy)):
            return self
        keys = self._map_selected(
            lambda k: replace(
                k,
                x=k.x + dx,
                y=k.y + dy,
                rotation_center=k.rotation_center.translated(dx, dy),
            )
        )
        return self._commit(keys)

    def duplicate_selected(self) -> LayoutDocument:
        if not self.selection:
            return self
        selected = set(self.selection)
        copies = [
            replace(
                k,
                id=new_key_id(),
                x=k.x + DUPLICATE_OFFSET,
                y=k.y + DUPLICATE_OFFSET,
                rotation_center=k.rotation_center.translated(
                    DUPLICATE_OFFSET, DUPLICATE_OFFSET
                ),
            )
            for k in self.keys
            if k.id in selected
        ]
        return self._commit(
            self.keys + tuple(copies), selection=tuple(k.id for k in copies)
        )

    def delete_selected(self) -> LayoutDocument:
        if not self.selection:
            return self
        selected = set(self.selection)
        remaining = [k for k in self.keys if k.id not in selected]
        return self._commit(remaining, selection=())

    def annotate_selected(
        self, prefix: str = "SW", start: int = 1, digits: Optional[int] = None
    ) -> LayoutDocument:
        """Writes sequential reference designators (like SW01, SW02...)
        to top-left legend of selected keys, ordered by position
        """
        selected = sorted(self.selected_keys, key=lambda k: (k.x, k.y))
        if not selected:
            return self
        if digits is None:
            digits = max(2, len(str(start + len(selected) - 1)))

        annotations = {
            key.id: f"{prefix}{str(start + i).zfill(digits)}"
            for i, key in enumerate(selected)
        }
        keys = []
        for key in self.keys:
            if key.id in annotations:
                labels = list(key.labels)
                labels[0] = annotations[key.id]
                key = apply_patch(key, {"labels": labels})
            keys.append(key)
        if tuple(keys) == self.keys:
            return self
        return self._commit(keys)

    def set_unit_pitch(self, pitch_mm: float) -> LayoutDocument:
        if not is_finite_number(pitch_mm) or pitch_mm <= 0:
            logger.debug(f"Invalid unit pitch {pitch_mm!r}, using default")
            pitch_mm = DEFAULT_PITCH_MM
        if pitch_mm == self.unit_pitch_mm:
            return self
        return replace(self, unit_pitch_mm=pitch_mm)

    def set_view_mode(self, mode: str) -> LayoutDocument:
        view_mode = ViewMode.get(mode)
        if view_mode == self.view_mode:
            return self
        return replace(self, view_mode=view_mode)

    def commit_history(self, snapshot: Sequence[KeyLike]) -> LayoutDocument:
        keys = [to_key_layout(k) for k in snapshot]
        return replace(self, history=self.history.record(keys))

    def undo(self) -> LayoutDocument:
        if not self.history.can_undo:
            return self
        history, keys = self.history.undo(self.keys)
        return replace(self, keys=keys, selection=(), history=history)

    def redo(self) -> LayoutDocument:
        if not self.history.can_redo:
            return self
        history, keys = self.history.redo(self.keys)
        return replace(self, keys=keys, selection=(), history=history)

