"""
Tokenizer for application configuration blocks.

Turns source text into a list of token trees: leaf tokens (identifiers,
punctuation, literals) and bracket-matched delimited groups. Uses the Lark
grammar in token_tree.lark.
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterable, List, Optional, Tuple, Union

from lark import Lark, Transformer, v_args
from lark.exceptions import UnexpectedCharacters, UnexpectedInput, UnexpectedToken

LOGGER = logging.getLogger(__name__)

# Load grammar from file
GRAMMAR_PATH = Path(__file__).parent / "token_tree.lark"


class Delimiter(Enum):
    PAREN = ("(", ")")
    BRACE = ("{", "}")
    BRACKET = ("[", "]")

    @property
    def open(self) -> str:
        return self.value[0]

    @property
    def close(self) -> str:
        return self.value[1]

    def __str__(self):
        return self.name.capitalize()


class TokenKind(Enum):
    IDENT = "ident"
    LIFETIME = "lifetime"
    PUNCT = "punct"
    LITERAL = "literal"


class LiteralKind(Enum):
    BOOL = "bool"
    INT = "int"
    FLOAT = "float"
    STR = "str"
    CHAR = "char"


@dataclass(frozen=True)
class Token:
    """A leaf token. Position is not part of equality."""
    kind: TokenKind
    value: str
    literal: Optional[LiteralKind] = None
    suffix: Optional[str] = None
    line: int = field(default=0, compare=False)
    column: int = field(default=0, compare=False)

    def is_ident(self) -> bool:
        return self.kind == TokenKind.IDENT

    def is_punct(self, value: str) -> bool:
        return self.kind == TokenKind.PUNCT and self.value == value

    def __repr__(self):
        return f"Token({self.kind.name}, {self.value!r}, {self.line}:{self.column})"


@dataclass(frozen=True)
class Delimited:
    """A bracket-matched group of token trees."""
    delimiter: Delimiter
    tokens: Tuple['TokenTree', ...] = ()
    line: int = field(default=0, compare=False)
    column: int = field(default=0, compare=False)

    def __repr__(self):
        return f"Delimited({self.delimiter}, {len(self.tokens)} tokens, {self.line}:{self.column})"


TokenTree = Union[Token, Delimited]


class LexerError(Exception):
    """Raised when the source cannot be split into token trees."""
    def __init__(self, message: str, line: int, column: int):
        self.message = message
        self.line = line
        self.column = column
        super().__init__(f"Line {line}, column {column}: {message}")


INT_SUFFIX_RE = re.compile(
    r'(?:0x[0-9a-fA-F_]+|0o[0-7_]+|0b[01_]+|[0-9][0-9_]*)(?P<suffix>[iu](?:8|16|32|64|128|size))?'
)
FLOAT_SUFFIX_RE = re.compile(r'[0-9][0-9_.eE+-]*?(?P<suffix>f32|f64)?')


def _suffix(pattern: re.Pattern, text: str) -> Optional[str]:
    match = pattern.fullmatch(text)
    return match.group('suffix') if match else None


@v_args(inline=True)
class TokenTreeTransformer(Transformer):
    """Transform the Lark parse tree into token trees."""

    def start(self, *items):
        return list(items)

    @v_args(inline=True, meta=True)
    def paren(self, meta, *items):
        return self._group(Delimiter.PAREN, meta, items)

    @v_args(inline=True, meta=True)
    def brace(self, meta, *items):
        return self._group(Delimiter.BRACE, meta, items)

    @v_args(inline=True, meta=True)
    def bracket(self, meta, *items):
        return self._group(Delimiter.BRACKET, meta, items)

    def _group(self, delimiter, meta, items):
        line = 0 if meta.empty else meta.line
        column = 0 if meta.empty else meta.column
        return Delimited(delimiter, tuple(items), line=line, column=column)

    # Terminals

    def IDENT(self, tok):
        return self._leaf(tok, TokenKind.IDENT)

    def LIFETIME(self, tok):
        return self._leaf(tok, TokenKind.LIFETIME)

    def PUNCT(self, tok):
        return self._leaf(tok, TokenKind.PUNCT)

    def BOOL(self, tok):
        return self._leaf(tok, TokenKind.LITERAL, LiteralKind.BOOL)

    def INT(self, tok):
        return self._leaf(tok, TokenKind.LITERAL, LiteralKind.INT, _suffix(INT_SUFFIX_RE, str(tok)))

    def FLOAT(self, tok):
        return self._leaf(tok, TokenKind.LITERAL, LiteralKind.FLOAT, _suffix(FLOAT_SUFFIX_RE, str(tok)))

    def STRING(self, tok):
        return self._leaf(tok, TokenKind.LITERAL, LiteralKind.STR)

    def CHAR(self, tok):
        return self._leaf(tok, TokenKind.LITERAL, LiteralKind.CHAR)

    def _leaf(self, tok, kind, literal=None, suffix=None):
        return Token(kind, str(tok), literal, suffix, line=tok.line, column=tok.column)


_lark = None


def get_lark() -> Lark:
    """Get or create the Lark parser instance."""
    global _lark
    if _lark is None:
        with open(GRAMMAR_PATH) as f:
            grammar = f.read()
        _lark = Lark(
            grammar,
            parser='lalr',
            lexer='basic',
            propagate_positions=True,
        )
    return _lark


def tokenize(source: str) -> List[TokenTree]:
    """Tokenize source text into token trees."""
    try:
        tree = get_lark().parse(source)
    except UnexpectedInput as e:
        raise LexerError(_describe_unexpected(e), _position(e.line), _position(e.column)) from e
    tokens = TokenTreeTransformer().transform(tree)
    LOGGER.debug("tokenized %d top-level token trees", len(tokens))
    return tokens


def _position(value) -> int:
    # Lark reports -1 or '?' when the error has no source position
    return value if isinstance(value, int) and value > 0 else 0


def _describe_unexpected(error: UnexpectedInput) -> str:
    if isinstance(error, UnexpectedCharacters):
        return f"Unexpected character: {error.char!r}"
    if isinstance(error, UnexpectedToken) and error.token.type != '$END':
        return f"Unbalanced delimiter: unexpected {str(error.token)!r}"
    return "Unbalanced delimiter: unexpected end of input"


# =============================================================================
# Rendering
# =============================================================================

_TIGHT_PUNCT = {'::', '.'}
_NO_SPACE_BEFORE = {',', ';'}


def _is_punct_in(tt: TokenTree, values) -> bool:
    return isinstance(tt, Token) and tt.kind == TokenKind.PUNCT and tt.value in values


def _is_name_like(tt: TokenTree) -> bool:
    return isinstance(tt, Delimited) or tt.kind in (TokenKind.IDENT, TokenKind.LIFETIME)


def _needs_space(prev: TokenTree, cur: TokenTree) -> bool:
    if _is_punct_in(cur, _NO_SPACE_BEFORE):
        return False
    prev_tight = _is_punct_in(prev, _TIGHT_PUNCT)
    cur_tight = _is_punct_in(cur, _TIGHT_PUNCT)
    if prev_tight != cur_tight:
        # A literal next to '.' could re-lex as a float
        return not _is_name_like(cur if prev_tight else prev)
    if isinstance(cur, Delimited) and cur.delimiter != Delimiter.BRACE and _is_name_like(prev):
        return False
    return True


def render(tokens: Iterable[TokenTree]) -> str:
    """Serialize token trees back to source text.

    Re-tokenizing the result yields an equal token sequence.
    """
    parts = []
    prev = None
    for tt in tokens:
        if prev is not None and _needs_space(prev, tt):
            parts.append(' ')
        parts.append(_render_tree(tt))
        prev = tt
    return ''.join(parts)


def _render_tree(tt: TokenTree) -> str:
    if isinstance(tt, Token):
        return tt.value
    inner = render(tt.tokens)
    if tt.delimiter == Delimiter.BRACE and inner:
        return f"{{ {inner} }}"
    return f"{tt.delimiter.open}{inner}{tt.delimiter.close}"


def describe(tt: Optional[TokenTree]) -> str:
    """Short description of a token tree for error messages."""
    if tt is None:
        return "end of input"
    if isinstance(tt, Delimited):
        return f"{tt.delimiter} group `{_truncate(_render_tree(tt))}`"
    return f"`{tt.value}`"


def _truncate(text: str, limit: int = 40) -> str:
    if len(text) <= limit:
        return text
    return text[:limit - 3] + '...'
