# SPDX-FileCopyrightText: 2025 adamws <adamws@users.noreply.github.com>
#
# SPDX-License-Identifier: GPL-3.0-or-later

from __future__ import annotations

import json
from unittest.mock import MagicMock

import pytest

from kblayout import LayoutEditor, LayoutError, ViewMode
from kblayout.document import LayoutDocument
from kblayout.geometry import Rect
from kblayout.key_layout import Point

from .conftest import make_key


@pytest.fixture
def editor(row_keys) -> LayoutEditor:
    editor = LayoutEditor()
    editor.set_keys(row_keys)
    return editor


def test_default_document() -> None:
    editor = LayoutEditor(max_history=5)
    assert editor.document.keys == ()
    assert editor.document.history.max_depth == 5


def test_wraps_existing_document() -> None:
    document = LayoutDocument().set_keys([make_key("a")])
    assert LayoutEditor(document).document is document


def test_max_history_applied_to_existing_document() -> None:
    document = LayoutDocument().set_keys([make_key("a")])
    for i in range(1, 5):
        document = document.update_key("a", {"x": i})
    assert len(document.history.past) == 4

    editor = LayoutEditor(document, max_history=2)
    assert editor.document.history.max_depth == 2
    assert len(editor.document.history.past) == 2
    assert editor.document.keys == document.keys

    editor.update_key("a", {"x": 10})
    assert len(editor.document.history.past) == 2
    editor.undo()
    editor.undo()
    assert editor.document.get_key("a").x == 3
    assert editor.undo().get_key("a").x == 3


def test_subscribers_notified_on_change(editor) -> None:
    listener = MagicMock()
    unsubscribe = editor.subscribe(listener)

    document = editor.update_key("a", {"x": 3})
    listener.assert_called_once_with(document)
    assert editor.document is document

    # nothing changes, no notification
    editor.update_key("a", {"x": 3})
    editor.select_key("missing")
    editor.undo()
    editor.redo()
    assert listener.call_count == 3

    unsubscribe()
    editor.update_key("a", {"x": 4})
    assert listener.call_count == 3
    unsubscribe()


def test_load_kle(editor) -> None:
    editor.select_key("a")
    editor.load_kle([["Q", "W"]])
    assert [k.primary_legend for k in editor.document.keys] == ["Q", "W"]
    assert editor.document.selection == ()

    editor.load_kle(json.dumps([["E"]]))
    assert [k.primary_legend for k in editor.document.keys] == ["E"]


def test_failed_import_keeps_document(editor) -> None:
    listener = MagicMock()
    editor.subscribe(listener)
    before = editor.document
    with pytest.raises(LayoutError):
        editor.load_kle([["A"], 1])
    with pytest.raises(LayoutError, match="ZMK physical layout not found"):
        editor.load_zmk("/ { };")
    assert editor.document is before
    listener.assert_not_called()


def test_zmk_round_trip(editor) -> None:
    editor.set_unit_pitch(19.05)
    text = editor.to_zmk()
    other = LayoutEditor()
    other.load_zmk(text)
    assert [k.primary_legend for k in other.document.keys] == ["A", "B", "C"]
    assert [k.x for k in other.document.keys] == [0, 1, 2]


def test_to_qmk(editor) -> None:
    assert editor.to_qmk() == {"layout": "CUSTOM", "keymap": ["A", "B", "C"]}


def test_drag_records_single_history_step(editor) -> None:
    editor.begin_drag()
    for x in [0.5, 1.5, 5.0]:
        editor.drag_key("c", Point(x, 3), 60, snap=False)
    assert not editor.document.history.can_undo

    document = editor.end_drag()
    assert document.get_key("c").x == 7
    assert len(document.history.past) == 1

    editor.undo()
    assert editor.document.get_key("c").x == 2
    assert editor.document.get_key("c").y == 0


def test_drag_without_begin(editor) -> None:
    editor.drag_key("a", Point(0, 4), 60, snap=False)
    editor.end_drag()
    assert editor.document.get_key("a").y == 4
    assert editor.undo().get_key("a").y == 0


def test_drag_without_change(editor) -> None:
    editor.begin_drag()
    document = editor.end_drag()
    assert not document.history.can_undo
    assert editor.end_drag() is document


def test_move_key_with_snap() -> None:
    editor = LayoutEditor()
    editor.set_keys([make_key("a"), make_key("b", x=5, center=Point(5, 0))])
    editor.move_key("b", Point(1.05, 0.05), 60)
    key = editor.document.get_key("b")
    assert key.x == pytest.approx(1)
    assert key.y == pytest.approx(0)


def test_editing_operations(editor) -> None:
    editor.set_legend("a", 0, "top")
    editor.set_key_position("a", x=0, y=1)
    editor.toggle_select("a")
    editor.toggle_select("b")
    editor.rotate_selected(90)
    editor.nudge_selected(0, 1)
    editor.annotate_selected("K", start=1)
    editor.duplicate_selected()
    assert len(editor.document.keys) == 5
    assert len(editor.document.selection) == 2

    editor.delete_selected()
    assert len(editor.document.keys) == 3
    keys = editor.document.keys
    assert keys[0].labels[0] == "K01"
    assert (keys[0].x, keys[0].y, keys[0].rotation_angle) == (0, 2, 90)

    editor.set_selected_keys(["c"])
    editor.select_next()
    assert editor.document.selection == (keys[0].id,)
    editor.clear_selection()
    assert editor.document.selection == ()

    editor.select_in_rect(Rect(0, 0, 1000, 1000), 60)
    assert len(editor.document.selection) == 3


def test_view_mode(editor) -> None:
    editor.set_view_mode("node")
    assert editor.document.view_mode == ViewMode.NODE


def test_commit_history(editor) -> None:
    snapshot = editor.document.keys
    editor.update_key("a", {"x": 2}, skip_history=True)
    editor.commit_history(snapshot)
    assert editor.undo().get_key("a").x == 0
