# SPDX-FileCopyrightText: 2025 adamws <adamws@users.noreply.github.com>
#
# SPDX-License-Identifier: GPL-3.0-or-later

from __future__ import annotations

import json
from typing import Any, Dict, Iterable, Mapping, Optional

from .defaults import PRIMARY_LABEL_INDEX, QMK_NO_KEY
from .key_layout import KeyLike

QMK_LAYOUT_NAME = "CUSTOM"


def _keycode(key: KeyLike) -> str:
    if isinstance(key, Mapping):
        labels = key.get("labels") or []
        legend = labels[PRIMARY_LABEL_INDEX] if len(labels) > PRIMARY_LABEL_INDEX else ""
        return legend or key.get("label") or QMK_NO_KEY
    return key.labels[PRIMARY_LABEL_INDEX] or QMK_NO_KEY


def export_qmk(keys: Iterable[KeyLike]) -> Dict[str, Any]:
    return {
        "layout": QMK_LAYOUT_NAME,
        "keymap": [_keycode(key) for key in keys],
    }


def export_qmk_json(keys: Iterable[KeyLike], indent: Optional[int] = 2) -> str:
    return json.dumps(export_qmk(keys), indent=indent)
