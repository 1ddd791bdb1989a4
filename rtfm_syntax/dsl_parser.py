"""
Parser for application configuration blocks.

Parses a token-tree stream into an App AST. Every construct is a
delimited group walked by one of two primitives: `delimited` enters a group of
an expected kind, and `fields` walks a comma-separated `key: value` list.
Failures propagate as ParseError; each named sub-construct re-raises with a
context note so the final error reads from the outermost field inwards.
"""

import logging
from contextlib import contextmanager
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, TypeVar

from .dsl_ast import App, Fragment, Idents, Idle, Init, Static, Statics, Task, Tasks
from .dsl_lexer import Delimited, Delimiter, LiteralKind, Token, TokenTree, describe, tokenize

LOGGER = logging.getLogger(__name__)

# Priorities must fit in a u8
U8_LIMIT = 256

R = TypeVar('R')


class ParseError(Exception):
    """Raised when the token stream does not match the configuration grammar.

    Context notes are layered with ``raise ParseError(note) from inner``, so the
    exception's ``__cause__`` chain is the context chain.
    """
    def __init__(self, message: str, token: Optional[TokenTree] = None):
        self.message = message
        self.token = token
        self.line = token.line if token is not None else 0
        self.column = token.column if token is not None else 0
        if self.line:
            super().__init__(f"Line {self.line}, column {self.column}: {message}")
        else:
            super().__init__(message)

    def chain(self) -> List[str]:
        """Messages from the outermost context note to the root failure."""
        messages = []
        err = self
        while isinstance(err, ParseError):
            messages.append(err.message)
            err = err.__cause__
        return messages

    def root(self) -> 'ParseError':
        err = self
        while isinstance(err.__cause__, ParseError):
            err = err.__cause__
        return err

    def describe(self) -> str:
        lines = []
        err = self
        while isinstance(err, ParseError):
            prefix = "error" if err is self else "caused by"
            lines.append(f"{prefix}: {err}")
            err = err.__cause__
        return "\n".join(lines)


@contextmanager
def context(note: str, token: Optional[TokenTree] = None):
    """Re-raise a ParseError from the block under a context note."""
    try:
        yield
    except ParseError as err:
        raise ParseError(note, token) from err


class TokenCursor:
    """Forward-only cursor over one token sequence."""

    def __init__(self, tokens: Sequence[TokenTree]):
        self.tokens = tokens
        self.pos = 0

    def at_end(self) -> bool:
        return self.pos >= len(self.tokens)

    def peek(self) -> Optional[TokenTree]:
        if self.at_end():
            return None
        return self.tokens[self.pos]

    def advance(self) -> Optional[TokenTree]:
        tt = self.peek()
        if tt is not None:
            self.pos += 1
        return tt


def _is_punct(tt: Optional[TokenTree], value: str) -> bool:
    return isinstance(tt, Token) and tt.is_punct(value)


def _expect_ident(cursor: TokenCursor) -> Token:
    tt = cursor.advance()
    if isinstance(tt, Token) and tt.is_ident():
        return tt
    raise ParseError(f"expected identifier, found {describe(tt)}", tt)


def _expect_punct(cursor: TokenCursor, value: str) -> Token:
    tt = cursor.advance()
    if _is_punct(tt, value):
        return tt
    raise ParseError(f"expected `{value}`, found {describe(tt)}", tt)


# =============================================================================
# Token-stream primitives
# =============================================================================

def delimited(cursor: TokenCursor, delimiter: Delimiter, f: Callable[[Sequence[TokenTree]], R]) -> R:
    """Consume one delimited group of the given kind and hand its inner tokens to f."""
    tt = cursor.advance()
    if not isinstance(tt, Delimited):
        raise ParseError(f"expected a delimited {delimiter} group, found {describe(tt)}", tt)
    if tt.delimiter != delimiter:
        raise ParseError(f"expected {delimiter}, found {tt.delimiter}", tt)
    return f(tt.tokens)


def fields(tokens: Sequence[TokenTree], handler: Callable[[Token, TokenCursor], None]) -> None:
    """Walk `key: value, ...` calling handler(key, cursor) for each value.

    The handler consumes as many tokens as its grammar needs; a comma or the
    end of the sequence must follow.
    """
    cursor = TokenCursor(tokens)
    while not cursor.at_end():
        key = _expect_ident(cursor)
        _expect_punct(cursor, ':')

        handler(key, cursor)

        tt = cursor.advance()
        if tt is not None and not _is_punct(tt, ','):
            raise ParseError(f"expected `,`, found {describe(tt)}", tt)


# =============================================================================
# Literal coercers
# =============================================================================

def parse_bool(cursor: TokenCursor) -> bool:
    tt = cursor.advance()
    if isinstance(tt, Token) and tt.literal == LiteralKind.BOOL:
        return tt.value == 'true'
    raise ParseError(f"expected boolean, found {describe(tt)}", tt)


def parse_u8(cursor: TokenCursor) -> int:
    """Parse an unsuffixed integer literal below 256."""
    tt = cursor.advance()
    if not (isinstance(tt, Token) and tt.literal == LiteralKind.INT and tt.suffix is None):
        raise ParseError(f"expected integer, found {describe(tt)}", tt)

    value = _int_value(tt.value)
    if value is None:
        raise ParseError(f"expected integer, found {describe(tt)}", tt)
    if value >= U8_LIMIT:
        raise ParseError(f"{value} is out of the `u8` range", tt)
    return value


def _int_value(text: str) -> Optional[int]:
    digits = text.replace('_', '')
    base = 10
    for prefix, prefix_base in (('0x', 16), ('0o', 8), ('0b', 2)):
        if digits.startswith(prefix):
            digits = digits[len(prefix):]
            base = prefix_base
            break
    try:
        return int(digits, base)
    except ValueError:
        return None


def _scan_until(cursor: TokenCursor, value: str) -> Tuple[List[TokenTree], Token]:
    """Collect token trees up to a top-level punctuation token, consuming it.

    Groups are single tokens here, so separators nested inside them are skipped.
    """
    collected = []
    while True:
        tt = cursor.advance()
        if tt is None:
            raise ParseError(f"expected `{value}`, found end of group")
        if _is_punct(tt, value):
            return collected, tt
        collected.append(tt)


def parse_static(cursor: TokenCursor) -> Static:
    """Parse: ty = expr ;"""
    ty, eq = _scan_until(cursor, '=')
    if not ty:
        raise ParseError("type is missing", eq)

    expr, semi = _scan_until(cursor, ';')
    if not expr:
        raise ParseError("initial value is missing", semi)

    return Static(ty=Fragment(tuple(ty)), expr=Fragment(tuple(expr)))


# =============================================================================
# Field parsers
# =============================================================================

def parse_path(cursor: TokenCursor) -> Fragment:
    """Capture tokens up to the next top-level comma (or the end of the list)."""
    collected = []
    while not cursor.at_end() and not _is_punct(cursor.peek(), ','):
        collected.append(cursor.advance())
    if not collected:
        raise ParseError(f"expected path, found {describe(cursor.peek())}", cursor.peek())
    return Fragment(tuple(collected))


def parse_idents(cursor: TokenCursor) -> Idents:
    """Parse: [ IDENT, IDENT, ... ]"""
    def body(tokens):
        idents = set()
        inner = TokenCursor(tokens)
        while not inner.at_end():
            ident = _expect_ident(inner)
            if ident.value in idents:
                raise ParseError(f"ident `{ident.value}` listed more than once", ident)
            idents.add(ident.value)

            if inner.at_end():
                break
            _expect_punct(inner, ',')
        return frozenset(idents)

    return delimited(cursor, Delimiter.BRACKET, body)


def parse_statics(cursor: TokenCursor) -> Statics:
    """Parse: { NAME: ty = expr; ... }"""
    def body(tokens):
        statics = {}
        inner = TokenCursor(tokens)
        while not inner.at_end():
            name = _expect_ident(inner)
            if name.value in statics:
                raise ParseError(f"resource `{name.value}` listed more than once", name)
            _expect_punct(inner, ':')

            with context(f"parsing `{name.value}`", name):
                statics[name.value] = parse_static(inner)
        return statics

    return delimited(cursor, Delimiter.BRACE, body)


def _parse_record(cursor: TokenCursor, table: Dict[str, Callable[[TokenCursor], Any]]) -> Dict[str, Any]:
    """Parse a brace group whose keys come from a fixed table.

    Returns the parsed values of the keys that were present.
    """
    def body(tokens):
        values = {}

        def field(key: Token, cursor: TokenCursor):
            name = key.value
            parser = table.get(name)
            if parser is None:
                raise ParseError(f"unknown field: `{name}`", key)
            if name in values:
                raise ParseError(f"duplicated `{name}` field", key)

            with context(f"parsing `{name}`", key):
                values[name] = parser(cursor)

        fields(tokens, field)
        return values

    return delimited(cursor, Delimiter.BRACE, body)


def _require(values: Dict[str, Any], name: str, group: Optional[TokenTree]) -> Any:
    if name not in values:
        raise ParseError(f"`{name}` field is missing", group)
    return values[name]


def parse_init(cursor: TokenCursor) -> Init:
    group = cursor.peek()
    values = _parse_record(cursor, INIT_FIELDS)
    return Init(path=_require(values, 'path', group))


def parse_idle(cursor: TokenCursor) -> Idle:
    group = cursor.peek()
    values = _parse_record(cursor, IDLE_FIELDS)
    return Idle(
        path=_require(values, 'path', group),
        locals=values.get('locals', {}),
        resources=values.get('resources', frozenset()),
    )


def parse_task(cursor: TokenCursor) -> Task:
    values = _parse_record(cursor, TASK_FIELDS)
    return Task(
        enabled=values.get('enabled'),
        priority=values.get('priority'),
        resources=values.get('resources', frozenset()),
    )


def parse_tasks(cursor: TokenCursor) -> Tasks:
    """Parse: { NAME: { task fields }, ... }"""
    def body(tokens):
        tasks = {}

        def task(key: Token, cursor: TokenCursor):
            if key.value in tasks:
                raise ParseError(f"task `{key.value}` listed more than once", key)

            with context(f"parsing task `{key.value}`", key):
                tasks[key.value] = parse_task(cursor)

        fields(tokens, task)
        return tasks

    return delimited(cursor, Delimiter.BRACE, body)


def parse_app(cursor: TokenCursor) -> App:
    group = cursor.peek()
    values = _parse_record(cursor, APP_FIELDS)
    return App(
        device=_require(values, 'device', group),
        idle=_require(values, 'idle', group),
        init=_require(values, 'init', group),
        resources=values.get('resources', {}),
        tasks=values.get('tasks', {}),
    )


# Recognized keys per construct
APP_FIELDS = {
    'device': parse_path,
    'idle': parse_idle,
    'init': parse_init,
    'resources': parse_statics,
    'tasks': parse_tasks,
}

INIT_FIELDS = {
    'path': parse_path,
}

IDLE_FIELDS = {
    'path': parse_path,
    'locals': parse_statics,
    'resources': parse_idents,
}

TASK_FIELDS = {
    'enabled': parse_bool,
    'priority': parse_u8,
    'resources': parse_idents,
}


# =============================================================================
# Entry points
# =============================================================================

class Parser:
    """Recursive descent parser for a configuration block's token trees."""

    def __init__(self, tokens: Sequence[TokenTree]):
        self.tokens = list(tokens)

    def parse(self) -> App:
        """Parse the token trees into an App AST."""
        cursor = TokenCursor(self.tokens)
        app = parse_app(cursor)

        tt = cursor.advance()
        if tt is not None:
            raise ParseError(f"unexpected {describe(tt)} after the configuration block", tt)

        LOGGER.debug("parsed app with %d resources and %d tasks", len(app.resources), len(app.tasks))
        return app


def parse_tokens(tokens: Sequence[TokenTree]) -> App:
    """Parse an already tokenized configuration block."""
    return Parser(tokens).parse()


def parse(source: str) -> App:
    """Convenience function to tokenize and parse source text."""
    return parse_tokens(tokenize(source))
