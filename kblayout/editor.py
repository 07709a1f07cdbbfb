# SPDX-FileCopyrightText: 2025 adamws <adamws@users.noreply.github.com>
#
# SPDX-License-Identifier: GPL-3.0-or-later

from __future__ import annotations

from dataclasses import replace
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence

from .document import LayoutDocument
from .geometry import Rect
from .history import History, Snapshot, take_snapshot
from .key_layout import KeyLike, Point
from .kle_import import load_kle, parse_kle
from .qmk import export_qmk
from .zmk import export_zmk_document, import_zmk


Listener = Callable[[LayoutDocument], None]


class LayoutEditor:
    """Owns current layout document and notifies subscribers about changes.

    All editing operations delegate to `LayoutDocument`, subscribers are
    called only when operation produced new document.
    """

    def __init__(
        self,
        document: Optional[LayoutDocument] = None,
        *,
        max_history: Optional[int] = None,
    ) -> None:
        if document is None:
            document = LayoutDocument(history=History(max_depth=max_history))
        elif max_history is not None:
            history = document.history.with_max_depth(max_history)
            document = replace(document, history=history)
        self._document = document
        self._listeners: List[Listener] = []
        self._drag_snapshot: Optional[Snapshot] = None

    @property
    def document(self) -> LayoutDocument:
        return self._document

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _apply(self, document: LayoutDocument) -> LayoutDocument:
        if document is not self._document:
            self._document = document
            for listener in list(self._listeners):
                listener(document)
        return document

    def load_kle(self, layout: Any) -> LayoutDocument:
        """Replaces keys with keyboard-layout-editor layout, `layout` can be
        already parsed JSON or JSON text"""
        keys = load_kle(layout) if isinstance(layout, str) else parse_kle(layout)
        return self.set_keys(keys)

    def load_zmk(self, text: str) -> LayoutDocument:
        return self.set_keys(import_zmk(text))

    def to_zmk(self) -> str:
        return export_zmk_document(self._document)

    def to_qmk(self) -> Dict[str, Any]:
        return export_qmk(self._document.keys)

    def set_keys(self, keys: Iterable[KeyLike]) -> LayoutDocument:
        self._drag_snapshot = None
        return self._apply(self._document.set_keys(keys))

    def update_key(
        self, key_id: str, patch: Mapping[str, Any], *, skip_history: bool = False
    ) -> LayoutDocument:
        return self._apply(
            self._document.update_key(key_id, patch, skip_history=skip_history)
        )

    def set_key_position(
        self, key_id: str, x: Optional[float] = None, y: Optional[float] = None
    ) -> LayoutDocument:
        return self._apply(self._document.set_key_position(key_id, x, y))

    def set_legend(self, key_id: str, index: int, value: str) -> LayoutDocument:
        return self._apply(self._document.set_legend(key_id, index, value))

    def begin_drag(self) -> None:
        self._drag_snapshot = take_snapshot(self._document.keys)

    def drag_key(
        self, key_id: str, center: Point, unit_px: float, *, snap: bool = True
    ) -> LayoutDocument:
        """Moves key without recording history, call `end_drag` to make
        the whole drag a single undo step"""
        if self._drag_snapshot is None:
            self.begin_drag()
        return self._apply(
            self._document.move_key(
                key_id, center, unit_px, snap=snap, skip_history=True
            )
        )

    def end_drag(self) -> LayoutDocument:
        snapshot, self._drag_snapshot = self._drag_snapshot, None
        if snapshot is None or snapshot == self._document.keys:
            return self._document
        return self.commit_history(snapshot)

    def move_key(
        self, key_id: str, center: Point, unit_px: float, *, snap: bool = True
    ) -> LayoutDocument:
        return self._apply(self._document.move_key(key_id, center, unit_px, snap=snap))

    def toggle_select(self, key_id: str) -> LayoutDocument:
        return self._apply(self._document.toggle_select(key_id))

    def select_key(self, key_id: str) -> LayoutDocument:
        return self._apply(self._document.select_key(key_id))

    def set_selected_keys(self, ids: Iterable[str]) -> LayoutDocument:
        return self._apply(self._document.set_selected_keys(ids))

    def clear_selection(self) -> LayoutDocument:
        return self._apply(self._document.clear_selection())

    def select_in_rect(
        self, rect: Rect, unit_px: float, offset: Point = Point(0, 0)
    ) -> LayoutDocument:
        return self._apply(self._document.select_in_rect(rect, unit_px, offset))

    def select_next(self, step: int = 1) -> LayoutDocument:
        return self._apply(self._document.select_next(step))

    def rotate_selected(self, delta: float) -> LayoutDocument:
        return self._apply(self._document.rotate_selected(delta))

    def nudge_selected(self, dx: float, dy: float) -> LayoutDocument:
        return self._apply(self._document.nudge_selected(dx, dy))

    def duplicate_selected(self) -> LayoutDocument:
        return self._apply(self._document.duplicate_selected())

    def delete_selected(self) -> LayoutDocument:
        return self._apply(self._document.delete_selected())

    def annotate_selected(
        self, prefix: str = "SW", start: int = 1, digits: Optional[int] = None
    ) -> LayoutDocument:
        return self._apply(self._document.annotate_selected(prefix, start, digits))

    def set_unit_pitch(self, pitch_mm: float) -> LayoutDocument:
        return self._apply(self._document.set_unit_pitch(pitch_mm))

    def set_view_mode(self, mode: str) -> LayoutDocument:
        return self._apply(self._document.set_view_mode(mode))

    def commit_history(self, snapshot: Sequence[KeyLike]) -> LayoutDocument:
        return self._apply(self._document.commit_history(snapshot))

    def undo(self) -> LayoutDocument:
        return self._apply(self._document.undo())

    def redo(self) -> LayoutDocument:
        return self._apply(self._document.redo())
