# SPDX-FileCopyrightText: 2025 adamws <adamws@users.noreply.github.com>
#
# SPDX-License-Identifier: GPL-3.0-or-later

from __future__ import annotations

import copy
from dataclasses import dataclass, replace
from typing import Iterable, Optional, Tuple

from .key_layout import KeyLayout

Snapshot = Tuple[KeyLayout, ...]


def take_snapshot(keys: Iterable[KeyLayout]) -> Snapshot:
    return tuple(copy.deepcopy(list(keys)))


@dataclass(frozen=True)
class History:
    """Undo/redo stacks of key sequence snapshots.

    Snapshots are deep copies, changes made to the live key sequence
    never reach stored history. When `max_depth` is set, the oldest
    `past` entries are dropped once the limit is exceeded.
    """

    past: Tuple[Snapshot, ...] = ()
    future: Tuple[Snapshot, ...] = ()
    max_depth: Optional[int] = None

    @property
    def can_undo(self) -> bool:
        return bool(self.past)

    @property
    def can_redo(self) -> bool:
        return bool(self.future)

    def _trimmed(self, past: Tuple[Snapshot, ...]) -> Tuple[Snapshot, ...]:
        if self.max_depth is not None and len(past) > self.max_depth:
            return past[len(past) - self.max_depth :]
        return past

    def record(self, keys: Iterable[KeyLayout]) -> History:
        past = self._trimmed(self.past + (take_snapshot(keys),))
        return replace(self, past=past, future=())

    def undo(self, current: Iterable[KeyLayout]) -> Tuple[History, Snapshot]:
        if not self.past:
            msg = "Nothing to undo"
            raise IndexError(msg)
        previous = self.past[-1]
        history = replace(
            self,
            past=self.past[:-1],
            future=(take_snapshot(current),) + self.future,
        )
        return history, take_snapshot(previous)

    def redo(self, current: Iterable[KeyLayout]) -> Tuple[History, Snapshot]:
        if not self.future:
            msg = "Nothing to redo"
            raise IndexError(msg)
        following = self.future[0]
        history = replace(
            self,
            past=self._trimmed(self.past + (take_snapshot(current),)),
            future=self.future[1:],
        )
        return history, take_snapshot(following)

    def cleared(self) -> History:
        return History(max_depth=self.max_depth)

    def with_max_depth(self, max_depth: Optional[int]) -> History:
        history = replace(self, max_depth=max_depth)
        return replace(history, past=history._trimmed(history.past))
