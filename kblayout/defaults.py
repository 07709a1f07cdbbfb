# SPDX-FileCopyrightText: 2025 adamws <adamws@users.noreply.github.com>
#
# SPDX-License-Identifier: GPL-3.0-or-later

DEFAULT_PITCH_MM = 19.05
LABEL_COUNT = 9
PRIMARY_LABEL_INDEX = 4
NO_KEY_LABEL = "NO"
DEFAULT_BINDING_PREFIX = "&kp"

DUPLICATE_OFFSET = 0.25

# canvas geometry, in pixels
BASE_UNIT_PX = 60
CANVAS_PADDING = 120
CANVAS_MIN_WIDTH = 600
CANVAS_MIN_HEIGHT = 400
CANVAS_MAX_WIDTH = 2000
CANVAS_MAX_HEIGHT = 1200
SNAP_THRESHOLD_PX = 10

ZMK_DEFAULT_FILENAME = "layout.keymap"
QMK_DEFAULT_FILENAME = "layout_qmk.json"
QMK_NO_KEY = "KC_NO"
