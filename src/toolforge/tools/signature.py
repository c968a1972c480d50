"""Static signature extraction for tool snippets.

Snippets are stored as source text of a single JavaScript (optionally
TypeScript-annotated) function declaration. This module never evaluates
them: a small tokenizer skips comments and string literals, finds the
first top-level ``function`` declaration and reads its parameter list.

Recognized forms:

* one destructured object parameter, ``function f({ query, topK })``,
  optionally typed (``{ query }: Params``);
* plain positional parameters, ``function f(x: string, y?: number)``.

Anything else (arrow functions, nested destructuring, array patterns,
a destructured object mixed with positionals) yields no parameters. This
is a header recognizer, not a JavaScript parser.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import StrEnum

logger = logging.getLogger(__name__)

_TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+)
    |(?P<comment>//[^\n]*|/\*.*?(?:\*/|\Z))
    |(?P<string>"(?:\\.|[^"\\\n])*"?|'(?:\\.|[^'\\\n])*'?|`(?:\\.|[^`\\])*`?)
    |(?P<ident>[A-Za-z_$][\w$]*)
    |(?P<number>\d[\w.]*)
    |(?P<punct>=>|\.\.\.|.)
    """,
    re.VERBOSE | re.DOTALL,
)

_OPEN = frozenset("([{")
_CLOSE = frozenset(")]}")
# Tokens after which a type annotation still expects another type atom.
_TYPE_JOINERS = frozenset({"|", "&", "<", ",", "=>", ":", "(", "[", "?"})


class ParameterStyle(StrEnum):
    """How a snippet declares its inputs."""

    DESTRUCTURED = "destructured"
    POSITIONAL = "positional"
    NONE = "none"


@dataclass(frozen=True, slots=True)
class Token:
    kind: str
    text: str
    start: int
    end: int


@dataclass(frozen=True, slots=True)
class FunctionHeader:
    """Character spans of one ``function`` declaration header."""

    name: str
    is_async: bool
    decl_start: int
    keyword_start: int
    type_params: tuple[int, int] | None
    params_open: int
    params_close: int
    return_type: tuple[int, int] | None
    body_start: int
    segments: tuple[tuple[Token, ...], ...]


@dataclass(frozen=True, slots=True)
class Signature:
    """Result of static extraction."""

    function_name: str | None
    parameters: tuple[str, ...]
    style: ParameterStyle


def tokenize(code: str) -> list[Token]:
    """Split *code* into tokens, dropping whitespace and comments."""
    tokens: list[Token] = []
    for m in _TOKEN_RE.finditer(code):
        kind = m.lastgroup or "punct"
        if kind in ("ws", "comment"):
            continue
        tokens.append(Token(kind, m.group(), m.start(), m.end()))
    return tokens


def _is_punct(token: Token, chars: str | frozenset[str]) -> bool:
    return token.kind == "punct" and token.text in chars


def _find_close(tokens: list[Token] | tuple[Token, ...], index: int) -> int | None:
    """Index of the bracket closing the one at *index*, or None."""
    angle = tokens[index].text == "<"
    depth = 0
    for i in range(index, len(tokens)):
        t = tokens[i]
        if t.kind != "punct":
            continue
        if t.text in _OPEN or (angle and t.text == "<"):
            depth += 1
        elif t.text in _CLOSE or (angle and t.text == ">"):
            depth -= 1
            if depth == 0:
                return i
    return None


def _split_top_level(tokens: list[Token] | tuple[Token, ...]) -> list[list[Token]]:
    """Split on commas outside any bracket pair (``<>`` included)."""
    segments: list[list[Token]] = [[]]
    depth = 0
    for t in tokens:
        if t.kind == "punct":
            if t.text in _OPEN or t.text == "<":
                depth += 1
            elif t.text in _CLOSE or t.text == ">":
                depth -= 1
            elif t.text == "," and depth == 0:
                segments.append([])
                continue
        segments[-1].append(t)
    return [s for s in segments if s]


def _find_body(tokens: list[Token], index: int) -> tuple[int, tuple[int, int] | None]:
    """Locate the body ``{`` after a parameter list.

    Returns the body token index (or -1) and the span of a return type
    annotation when one is present.
    """
    if index >= len(tokens):
        return -1, None
    if _is_punct(tokens[index], "{"):
        return index, None
    if not _is_punct(tokens[index], ":"):
        return -1, None

    depth = 0
    expect_type = True
    m = index + 1
    while m < len(tokens):
        t = tokens[m]
        if _is_punct(t, "{"):
            if depth == 0 and not expect_type:
                return m, (tokens[index].start, t.start)
            close = _find_close(tokens, m)
            if close is None:
                return -1, None
            m = close + 1
            expect_type = False
            continue
        if t.kind == "punct":
            if t.text in "([<":
                depth += 1
            elif t.text in ")]>":
                depth -= 1
        expect_type = t.kind == "punct" and t.text in _TYPE_JOINERS
        m += 1
    return -1, None


def _parse_header(tokens: list[Token], index: int) -> tuple[FunctionHeader | None, int]:
    """Parse a declaration whose ``function`` keyword is at *index*."""
    n = len(tokens)
    j = index + 1
    if j < n and _is_punct(tokens[j], "*"):
        j += 1
    if j >= n or tokens[j].kind != "ident":
        return None, -1
    name = tokens[j].text
    j += 1

    type_params = None
    if j < n and _is_punct(tokens[j], "<"):
        close = _find_close(tokens, j)
        if close is None:
            return None, -1
        type_params = (tokens[j].start, tokens[close].end)
        j = close + 1

    if j >= n or not _is_punct(tokens[j], "("):
        return None, -1
    close = _find_close(tokens, j)
    if close is None:
        return None, -1

    body, return_type = _find_body(tokens, close + 1)
    if body < 0:
        return None, -1

    keyword = index
    is_async = index > 0 and tokens[index - 1].text == "async"
    if is_async:
        keyword = index - 1
    decl = keyword
    if decl > 0 and tokens[decl - 1].text == "default":
        decl -= 1
    if decl > 0 and tokens[decl - 1].text == "export":
        decl -= 1

    header = FunctionHeader(
        name=name,
        is_async=is_async,
        decl_start=tokens[decl].start,
        keyword_start=tokens[keyword].start,
        type_params=type_params,
        params_open=tokens[j].start,
        params_close=tokens[close].start,
        return_type=return_type,
        body_start=tokens[body].start,
        segments=tuple(tuple(s) for s in _split_top_level(tokens[j + 1 : close])),
    )
    return header, body


def scan_headers(code: str, tokens: list[Token] | None = None) -> list[FunctionHeader]:
    """Return every top-level named function declaration in *code*."""
    if tokens is None:
        tokens = tokenize(code)
    headers: list[FunctionHeader] = []
    depth = 0
    i = 0
    while i < len(tokens):
        t = tokens[i]
        if depth == 0 and t.kind == "ident" and t.text == "function":
            header, body = _parse_header(tokens, i)
            if header is not None:
                headers.append(header)
                i = body
                continue
        if t.kind == "punct":
            if t.text in _OPEN:
                depth += 1
            elif t.text in _CLOSE:
                depth = max(depth - 1, 0)
        i += 1
    return headers


def scan_header(code: str) -> FunctionHeader | None:
    """Return the first top-level function declaration, if any."""
    headers = scan_headers(code)
    return headers[0] if headers else None


def _destructured_names(segment: tuple[Token, ...]) -> tuple[str, ...] | None:
    close = _find_close(segment, 0)
    if close is None:
        return None
    names: list[str] = []
    for entry in _split_top_level(segment[1:close]):
        head = entry[0]
        if _is_punct(head, "..."):
            continue
        if head.kind == "ident":
            names.append(head.text)
        elif head.kind == "string" and len(head.text) >= 2:
            names.append(head.text[1:-1])
        else:
            return None
    return tuple(dict.fromkeys(names))


def _positional_names(segments: list[tuple[Token, ...]]) -> tuple[str, ...] | None:
    names: list[str] = []
    for seg in segments:
        head = seg[0]
        if head.kind != "ident":
            return None
        if len(seg) > 1 and not _is_punct(seg[1], ":?="):
            return None
        names.append(head.text)
    return tuple(dict.fromkeys(names))


def _classify(header: FunctionHeader) -> tuple[ParameterStyle, tuple[str, ...]]:
    # Rest parameters carry nothing the schema can describe.
    params = [s for s in header.segments if not _is_punct(s[0], "...")]
    if not params:
        return ParameterStyle.NONE, ()

    if _is_punct(params[0][0], "{"):
        names = _destructured_names(params[0]) if len(params) == 1 else None
        if names is None:
            return ParameterStyle.NONE, ()
        return ParameterStyle.DESTRUCTURED, names

    positional = _positional_names(params)
    if positional is None:
        return ParameterStyle.NONE, ()
    return ParameterStyle.POSITIONAL, positional


def extract_signature(code: str) -> Signature:
    """Infer the function name, parameter names and parameter style."""
    header = scan_header(code)
    if header is None:
        logger.debug("No function declaration found in snippet")
        return Signature(None, (), ParameterStyle.NONE)

    style, names = _classify(header)
    if style is ParameterStyle.NONE and header.segments:
        logger.debug("Unrecognized parameter list for %s()", header.name)
    return Signature(header.name, names, style)


def extract_parameters(code: str) -> list[str]:
    """Ordered parameter names of the snippet's function; ``[]`` if unknown."""
    return list(extract_signature(code).parameters)


def extract_function_name(code: str) -> str | None:
    header = scan_header(code)
    return header.name if header else None


def _annotation_edits(segment: tuple[Token, ...]) -> list[tuple[int, int, str]]:
    """Edits removing ``?`` and ``: Type`` from one parameter."""
    edits: list[tuple[int, int, str]] = []
    depth = 0
    colon: Token | None = None
    for idx, t in enumerate(segment):
        if t.kind != "punct":
            continue
        if t.text in _OPEN or t.text == "<":
            depth += 1
        elif t.text in _CLOSE or t.text == ">":
            depth -= 1
        elif depth == 0:
            if t.text == "?" and idx == 1 and colon is None:
                edits.append((t.start, t.end, ""))
            elif t.text == ":" and colon is None:
                colon = t
            elif t.text == "=":
                if colon is not None:
                    edits.append((colon.start, t.start, " "))
                return edits
    if colon is not None:
        edits.append((colon.start, segment[-1].end, ""))
    return edits


def _type_declaration_edits(tokens: list[Token]) -> list[tuple[int, int, str]]:
    """Edits removing top-level ``interface`` and ``type`` declarations."""
    edits: list[tuple[int, int, str]] = []
    depth = 0
    i = 0
    while i < len(tokens):
        t = tokens[i]
        nxt = tokens[i + 1] if i + 1 < len(tokens) else None
        if depth == 0 and t.kind == "ident" and nxt is not None and nxt.kind == "ident":
            start = t.start
            if i > 0 and tokens[i - 1].text == "export":
                start = tokens[i - 1].start
            end_index = -1
            if t.text == "interface":
                brace = next(
                    (k for k in range(i + 2, len(tokens)) if _is_punct(tokens[k], "{")),
                    None,
                )
                close = _find_close(tokens, brace) if brace is not None else None
                end_index = close if close is not None else -1
            elif t.text == "type":
                end_index = _statement_end(tokens, i + 2)
            if end_index >= 0:
                edits.append((start, tokens[end_index].end, ""))
                i = end_index + 1
                continue
        if t.kind == "punct":
            if t.text in _OPEN:
                depth += 1
            elif t.text in _CLOSE:
                depth = max(depth - 1, 0)
        i += 1
    return edits


def _statement_end(tokens: list[Token], index: int) -> int:
    depth = 0
    for k in range(index, len(tokens)):
        t = tokens[k]
        if t.kind != "punct":
            continue
        if t.text in _OPEN:
            depth += 1
        elif t.text in _CLOSE:
            depth -= 1
        elif t.text == ";" and depth == 0:
            return k
    return -1


def strip_type_annotations(code: str) -> str:
    """Rewrite *code* so its function header is plain JavaScript.

    Removes ``export``/``export default`` before the declaration, generic
    parameters, parameter annotations, the return type, and top-level
    ``interface``/``type`` declarations. Annotations inside the body are
    left untouched.
    """
    tokens = tokenize(code)
    headers = scan_headers(code, tokens)
    edits = _type_declaration_edits(tokens)
    if headers:
        header = headers[0]
        if header.decl_start != header.keyword_start:
            edits.append((header.decl_start, header.keyword_start, ""))
        if header.type_params is not None:
            edits.append((*header.type_params, ""))
        for segment in header.segments:
            edits.extend(_annotation_edits(segment))
        if header.return_type is not None:
            edits.append((*header.return_type, " "))

    stripped = code
    for start, end, replacement in sorted(edits, reverse=True):
        stripped = stripped[:start] + replacement + stripped[end:]
    return stripped
