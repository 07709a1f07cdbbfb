# SPDX-FileCopyrightText: 2025 adamws <adamws@users.noreply.github.com>
#
# SPDX-License-Identifier: GPL-3.0-or-later

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from .defaults import DEFAULT_BINDING_PREFIX, DEFAULT_PITCH_MM, NO_KEY_LABEL
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

KEY_ATTRS_REFERENCE = "&key_physical_attrs"
KEY_ATTRS_COUNT = 7
NONE_BINDING = "&none"

LAYOUT_NODE = "imported_layout"
LAYOUT_DISPLAY_NAME = "Imported Layout"
POSITION_MAP_NODE = "imported_layout_map"
KEYMAP_COMPATIBLE = "zmk,keymap"

# (header, width) of each key_physical_attrs column
ATTRS_COLUMNS: List[Tuple[str, int]] = [
    ("w", 3),
    ("h", 3),
    ("x", 4),
    ("y", 4),
    ("rot", 7),
    ("rx", 5),
    ("ry", 5),
]

PUNCTUATION = "<>;=,{}"
# comma is allowed inside names, for example `zmk,physical-layout`
WORD_TERMINATORS = "<>;={}\"&"
PREPROCESSOR_PATTERN = re.compile(
    r"#\s*(include|define|undef|ifdef|ifndef|if|elif|else|endif|pragma|error|warning|line)\b"
)
# hexadecimal or decimal integer, optionally negative
CELL_NUMBER_PATTERN = re.compile(r"-?(0[xX][0-9a-fA-F]+|[0-9]+)")

STRING_ESCAPES = {"n": "\n", "t": "\t", "r": "\r"}
_QUOTE_TABLE = str.maketrans(
    {"\\": "\\\\", '"': '\\"', "\n": "\\n", "\t": "\\t", "\r": "\\r"}
)


class TokenKind(Enum):
    WORD = auto()
    REFERENCE = auto()
    STRING = auto()
    PUNCTUATION = auto()


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    text: str
    line: int

    def is_punctuation(self, text: str) -> bool:
        return self.kind is TokenKind.PUNCTUATION and self.text == text


class ZmkTokenizer:
    """Tokenizer for the devicetree subset used by ZMK keymaps.

    Comments and preprocessor lines are skipped. Parenthesized expressions
    are kept together with the word they are attached to, so `LC(A)` or
    `(-100)` are single tokens.
    """

    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0
        self.line = 1

    def __iter__(self) -> Iterator[Token]:
        return self.tokens()

    def _peek(self, offset: int = 0) -> str:
        index = self.pos + offset
        return self.text[index] if index < len(self.text) else ""

    def _advance(self, count: int = 1) -> str:
        chunk = self.text[self.pos : self.pos + count]
        self.line += chunk.count("\n")
        self.pos += len(chunk)
        return chunk

    def _skip_line(self) -> None:
        while True:
            end = self.text.find("\n", self.pos)
            if end == -1:
                self._advance(len(self.text) - self.pos)
                return
            continued = self.text[self.pos : end].rstrip().endswith("\\")
            self._advance(end + 1 - self.pos)
            if not continued:
                return

    def _at_line_start(self) -> bool:
        start = self.text.rfind("\n", 0, self.pos) + 1
        return not self.text[start : self.pos].strip()

    def _comment_start(self) -> bool:
        return self._peek() == "/" and self._peek(1) in ("/", "*")

    def _group(self) -> str:
        start = self.pos
        start_line = self.line
        depth = 0
        while self.pos < len(self.text):
            ch = self._advance()
            if ch == "(":
                depth += 1
            elif ch == ")":
                depth -= 1
                if depth == 0:
                    return self.text[start : self.pos]
        msg = f"Unbalanced parentheses at line {start_line}"
        raise LayoutError(msg)

    def _word(self) -> str:
        chunks = []
        while self.pos < len(self.text):
            ch = self._peek()
            if ch.isspace() or ch in WORD_TERMINATORS or self._comment_start():
                break
            if ch == "(":
                chunks.append(self._group())
            elif ch == ")":
                msg = f"Unexpected ')' at line {self.line}"
                raise LayoutError(msg)
            else:
                chunks.append(self._advance())
        return "".join(chunks)

    def _string(self) -> str:
        start_line = self.line
        self._advance()
        chunks = []
        while self.pos < len(self.text):
            ch = self._advance()
            if ch == "\\":
                escaped = self._advance()
                chunks.append(STRING_ESCAPES.get(escaped, escaped))
            elif ch == '"':
                return "".join(chunks)
            else:
                chunks.append(ch)
        msg = f"Unterminated string at line {start_line}"
        raise LayoutError(msg)

    def tokens(self) -> Iterator[Token]:
        while self.pos < len(self.text):
            ch = self._peek()
            if ch.isspace():
                self._advance()
                continue
            if ch == "/" and self._peek(1) == "/":
                self._skip_line()
                continue
            if ch == "/" and self._peek(1) == "*":
                end = self.text.find("*/", self.pos + 2)
                if end == -1:
                    msg = f"Unterminated comment at line {self.line}"
                    raise LayoutError(msg)
                self._advance(end + 2 - self.pos)
                continue
            if (
                ch == "#"
                and self._at_line_start()
                and PREPROCESSOR_PATTERN.match(self.text, self.pos)
            ):
                self._skip_line()
                continue

            line = self.line
            if ch in PUNCTUATION:
                yield Token(TokenKind.PUNCTUATION, self._advance(), line)
            elif ch == '"':
                yield Token(TokenKind.STRING, self._string(), line)
            elif ch == "&":
                self._advance()
                name = self._word()
                if not name:
                    msg = f"Missing reference name after '&' at line {line}"
                    raise LayoutError(msg)
                yield Token(TokenKind.REFERENCE, "&" + name, line)
            else:
                yield Token(TokenKind.WORD, self._word(), line)


@dataclass
class Node:
    name: str
    label: Optional[str] = None
    properties: Dict[str, List[Token]] = field(default_factory=dict)
    children: List[Node] = field(default_factory=list)

    def walk(self) -> Iterator[Node]:
        yield self
        for child in self.children:
            yield from child.walk()

    def compatible(self) -> Optional[str]:
        values = self.properties.get("compatible", [])
        strings = [t.text for t in values if t.kind is TokenKind.STRING]
        return strings[0] if strings else None


class ZmkParser:
    """Builds node tree out of tokens, property values are kept as raw tokens"""

    def __init__(self, tokens: Iterable[Token]) -> None:
        self.tokens = list(tokens)
        self.pos = 0

    def _peek(self) -> Optional[Token]:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def _next(self, context: str) -> Token:
        token = self._peek()
        if token is None:
            msg = f"Unexpected end of input while parsing {context}"
            raise LayoutError(msg)
        self.pos += 1
        return token

    def parse(self) -> Node:
        root = Node("")
        self._body(root, top_level=True)
        return root

    def _body(self, node: Node, *, top_level: bool) -> None:
        while True:
            token = self._peek()
            if token is None:
                if top_level:
                    return
                msg = f"Unexpected end of input, node '{node.name}' not closed"
                raise LayoutError(msg)
            if token.is_punctuation("}"):
                if top_level:
                    msg = f"Unexpected '}}' at line {token.line}"
                    raise LayoutError(msg)
                self.pos += 1
                next_token = self._peek()
                if next_token and next_token.is_punctuation(";"):
                    self.pos += 1
                return
            if token.is_punctuation(";"):
                self.pos += 1
                continue
            self._statement(node)

    def _statement(self, node: Node) -> None:
        token = self._next("statement")
        if token.kind not in (TokenKind.WORD, TokenKind.REFERENCE):
            msg = f"Unexpected '{token.text}' at line {token.line}"
            raise LayoutError(msg)

        label = None
        name = token.text
        if name.endswith(":"):
            label = name[:-1]
            name = self._next(f"node labeled '{label}'").text

        following = self._peek()
        if following is None or following.kind not in (TokenKind.PUNCTUATION,):
            if "(" in name:
                logger.debug(f"Skipping macro invocation '{name}'")
                return
            msg = f"Unexpected token after '{name}' at line {token.line}"
            raise LayoutError(msg)

        self.pos += 1
        if following.is_punctuation("{"):
            child = Node(name, label)
            self._body(child, top_level=False)
            node.children.append(child)
        elif following.is_punctuation("="):
            values = []
            while True:
                value = self._next(f"property '{name}'")
                if value.is_punctuation(";"):
                    break
                if value.is_punctuation("{") or value.is_punctuation("}"):
                    msg = (
                        f"Unexpected '{value.text}' in property '{name}' "
                        f"at line {value.line}"
                    )
                    raise LayoutError(msg)
                values.append(value)
            node.properties[name] = values
        elif following.is_punctuation(";"):
            node.properties[name] = []
        elif "(" in name:
            # macro invocation followed by other statement
            self.pos -= 1
            logger.debug(f"Skipping macro invocation '{name}'")
        else:
            msg = f"Unexpected '{following.text}' after '{name}' at line {following.line}"
            raise LayoutError(msg)


def fixed_point(value: float) -> int:
    return math.floor(value * 100 + 0.5)


def format_field(value: float, width: int) -> str:
    scaled = fixed_point(value)
    if scaled < 0:
        return f"(-{abs(scaled)})".rjust(width)
    return str(scaled).rjust(width)


def parse_fixed_point(raw: str, fragment: str) -> float:
    """Converts devicetree cell, for example `150`, `(-25)` or `0x64`,
    to key units"""
    cleaned = "".join(raw.replace("(", "").replace(")", "").split())
    # python literals would also accept `1_000`, cells do not
    if not CELL_NUMBER_PATTERN.fullmatch(cleaned):
        msg = f"Invalid numeric value: {raw} in {fragment}"
        raise LayoutError(msg)
    base = 16 if "x" in cleaned.lower() else 10
    return int(cleaned, base) / 100


def quote_string(text: str) -> str:
    return f'"{text.translate(_QUOTE_TABLE)}"'


def _is_cell_word(text: str) -> bool:
    try:
        tokens = list(ZmkTokenizer(text))
    except LayoutError:
        return False
    return tokens == [Token(TokenKind.WORD, text, 1)]


def encode_binding(legend: Optional[str]) -> str:
    """Returns `&kp` binding for legend which `legend_for_binding` turns
    back into the same legend.

    Legends which would not survive tokenization as a single word,
    for example `{`, `//` or multi-line ones, are written as string.
    """
    if not legend:
        return binding_for_legend(None)
    if legend != NO_KEY_LABEL and _is_cell_word(legend):
        return binding_for_legend(legend)
    return f"{DEFAULT_BINDING_PREFIX} {quote_string(legend)}"


def legend_for_binding(binding: Optional[str]) -> str:
    if not binding:
        return ""
    try:
        tokens = list(ZmkTokenizer(binding))
    except LayoutError:
        return binding
    if not tokens or tokens[0].kind is not TokenKind.REFERENCE:
        return binding
    behavior, params = tokens[0].text, tokens[1:]
    if behavior == NONE_BINDING:
        return ""
    if behavior != DEFAULT_BINDING_PREFIX or not params:
        return binding
    if len(params) == 1 and params[0].kind is TokenKind.STRING:
        return params[0].text
    if any(t.kind is not TokenKind.WORD for t in params):
        return binding
    legend = " ".join(t.text for t in params)
    return "" if legend == NO_KEY_LABEL else legend


def _key_binding(key: KeyLayout) -> str:
    # binding derived from legend is re-encoded, custom ones are kept
    if not key.binding or key.binding == binding_for_legend(key.primary_legend):
        return encode_binding(key.primary_legend)
    return key.binding


def _attrs_line(key: KeyLayout, pitch_scale: float) -> str:
    values = [
        key.w * pitch_scale,
        key.h * pitch_scale,
        key.x * pitch_scale,
        key.y * pitch_scale,
        key.rotation_angle,
        key.rotation_center.x * pitch_scale,
        key.rotation_center.y * pitch_scale,
    ]
    fields = [
        format_field(value, width) for value, (_, width) in zip(values, ATTRS_COLUMNS)
    ]
    return f"<{KEY_ATTRS_REFERENCE} {' '.join(fields)}>"


def export_zmk(keys: Iterable[KeyLayout], unit_pitch_mm: float = DEFAULT_PITCH_MM) -> str:
    keys = list(keys)
    if not is_finite_number(unit_pitch_mm) or unit_pitch_mm <= 0:
        unit_pitch_mm = DEFAULT_PITCH_MM
    pitch_scale = unit_pitch_mm / DEFAULT_PITCH_MM

    indent = 12 * " "
    attrs_prefix = f"{indent}= "
    header = "        keys  //"
    header = header.ljust(len(attrs_prefix) + len(f"<{KEY_ATTRS_REFERENCE} "))
    header += " ".join(name.rjust(width) for name, width in ATTRS_COLUMNS)

    if keys:
        attrs = [
            f"{attrs_prefix if i == 0 else indent + ', '}{_attrs_line(k, pitch_scale)}"
            for i, k in enumerate(keys)
        ]
        keys_property = [header.rstrip(), *attrs, f"{indent};"]
    else:
        keys_property = ["        keys = <>;"]

    bindings = [f"{indent}    {_key_binding(k)}" for k in keys]
    positions = " ".join(str(i) for i in range(len(keys)))

    lines = [
        "#include <behaviors.dtsi>",
        "#include <dt-bindings/zmk/keys.h>",
        "#include <dt-bindings/zmk/matrix_transform.h>",
        "#include <physical_layouts.dtsi>",
        "",
        "/ {",
        f"    {LAYOUT_NODE}: {LAYOUT_NODE} {{",
        '        compatible = "zmk,physical-layout";',
        f'        display-name = "{LAYOUT_DISPLAY_NAME}";',
        "",
        *keys_property,
        "    };",
        "",
        "    keymap {",
        f'        compatible = "{KEYMAP_COMPATIBLE}";',
        "",
        "        default_layer {",
        f"{indent}bindings = <",
        *bindings,
        f"{indent}>;",
        "        };",
        "    };",
        "",
        "    position_map {",
        '        compatible = "zmk,physical-layout-position-map";',
        "        complete;",
        "",
        f"        {POSITION_MAP_NODE}: {POSITION_MAP_NODE} {{",
        f"{indent}physical-layout = <&{LAYOUT_NODE}>;",
        f"{indent}positions = <{positions}>;",
        "        };",
        "    };",
        "};",
        "",
    ]
    return "\n".join(lines)


def export_zmk_document(document: LayoutDocument) -> str:
    return export_zmk(document.keys, document.unit_pitch_mm)


def _physical_attrs(root: Node) -> List[Tuple[List[str], int]]:
    entries: List[Tuple[List[str], int]] = []
    for node in root.walk():
        for values in node.properties.values():
            current: Optional[List[str]] = None
            for token in values:
                if token.kind is TokenKind.REFERENCE:
                    current = None
                    if token.text == KEY_ATTRS_REFERENCE:
                        current = []
                        entries.append((current, token.line))
                elif token.kind is TokenKind.WORD and current is not None:
                    current.append(token.text)
                else:
                    current = None
    return entries


def _bindings_property(root: Node) -> Optional[List[Token]]:
    for node in root.walk():
        if node.compatible() == KEYMAP_COMPATIBLE:
            for layer in node.children:
                if "bindings" in layer.properties:
                    return layer.properties["bindings"]
    # not a keymap node, use first bindings found
    for node in root.walk():
        if "bindings" in node.properties:
            return node.properties["bindings"]
    return None


def parse_bindings(tokens: Iterable[Token]) -> List[str]:
    """Groups cell tokens into bindings, each binding starts with
    '&' reference followed by its parameters.

    Cells have to be enclosed in `<>` lists, any other punctuation
    is rejected. String parameters are kept quoted.
    """
    bindings: List[Tuple[List[str], int]] = []
    in_cells = False
    last_line = 1
    for token in tokens:
        last_line = token.line
        if token.kind is TokenKind.PUNCTUATION:
            if token.text == "<" and not in_cells:
                in_cells = True
            elif token.text == ">" and in_cells:
                in_cells = False
            elif token.text != "," or in_cells:
                msg = f"Unexpected '{token.text}' in bindings at line {token.line}"
                raise LayoutError(msg)
        elif not in_cells:
            msg = (
                f"Unexpected '{token.text}' outside of '<>' in bindings "
                f"at line {token.line}"
            )
            raise LayoutError(msg)
        elif token.kind is TokenKind.REFERENCE:
            bindings.append(([token.text], token.line))
        elif not bindings:
            msg = f"Parameter '{token.text}' without behavior at line {token.line}"
            raise LayoutError(msg)
        elif token.kind is TokenKind.STRING:
            bindings[-1][0].append(quote_string(token.text))
        else:
            bindings[-1][0].append(token.text)
    if in_cells:
        msg = f"Unterminated bindings list at line {last_line}"
        raise LayoutError(msg)

    for parts, line in bindings:
        if parts == [DEFAULT_BINDING_PREFIX]:
            msg = f"Missing key code for '{DEFAULT_BINDING_PREFIX}' at line {line}"
            raise LayoutError(msg)
    return [" ".join(parts) for parts, _ in bindings]


def _key_from_attrs(fields: List[str], line: int, binding: Optional[str]) -> KeyLayout:
    fragment = f"<{KEY_ATTRS_REFERENCE} {' '.join(fields)}>"
    if len(fields) < KEY_ATTRS_COUNT:
        msg = f"Invalid key definition at line {line}: {fragment}"
        raise LayoutError(msg)
    if len(fields) > KEY_ATTRS_COUNT:
        logger.debug(f"Ignoring redundant values of {fragment}")

    w, h, x, y, rotation, rx, ry = (
        parse_fixed_point(raw, fragment) for raw in fields[0:KEY_ATTRS_COUNT]
    )
    return KeyLayout(
        x=x,
        y=y,
        w=w,
        h=h,
        rotation_angle=rotation,
        rotation_center=Point(rx, ry),
        labels=normalize_labels(None, legend_for_binding(binding)),
        binding=binding,
    )


def import_zmk(text: str) -> List[KeyLayout]:
    root = ZmkParser(ZmkTokenizer(text)).parse()

    attrs = _physical_attrs(root)
    if not attrs:
        msg = "ZMK physical layout not found"
        raise LayoutError(msg)

    bindings: List[Optional[str]]
    bindings_tokens = _bindings_property(root)
    if bindings_tokens is None:
        logger.debug("Keymap bindings not found, importing physical layout only")
        bindings = len(attrs) * [None]
    else:
        bindings = list(parse_bindings(bindings_tokens))
        if len(bindings) != len(attrs):
            msg = (
                f"Number of keymap bindings ({len(bindings)}) does not match "
                f"number of physical layout keys ({len(attrs)})"
            )
            raise LayoutError(msg)

    keys = [
        _key_from_attrs(fields, line, binding)
        for (fields, line), binding in zip(attrs, bindings)
    ]
    logger.debug(f"Imported {len(keys)} keys from ZMK keymap")
    return keys


def import_zmk_document(text: str) -> LayoutDocument:
    return LayoutDocument().set_keys(import_zmk(text))
