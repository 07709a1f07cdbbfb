# SPDX-FileCopyrightText: 2025 adamws <adamws@users.noreply.github.com>
#
# SPDX-License-Identifier: GPL-3.0-or-later

import logging
from logging import NullHandler

try:
    from ._version import __version__
except ImportError:
    __version__ = "not-found"

__license__ = "GPL-3.0-or-later"
__version__ = __version__

logging.getLogger(__name__).addHandler(NullHandler())
del NullHandler

from .document import LayoutDocument, ViewMode  # noqa: E402
from .editor import LayoutEditor  # noqa: E402
from .key_layout import KeyLayout, Point  # noqa: E402
from .layout_error import LayoutError  # noqa: E402

__all__ = [
    "KeyLayout",
    "LayoutDocument",
    "LayoutEditor",
    "LayoutError",
    "Point",
    "ViewMode",
]
