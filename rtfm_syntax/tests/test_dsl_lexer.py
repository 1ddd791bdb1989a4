"""
Tests for the token-tree lexer and fragment rendering.
"""

import pytest

from rtfm_syntax.dsl_lexer import (
    Delimited, Delimiter, LexerError, LiteralKind, Token, TokenKind,
    describe, render, tokenize,
)


def leaf_values(tokens):
    return [t.value for t in tokens]


class TestLexer:
    """Tests for leaf tokens."""

    def test_empty_input(self):
        assert tokenize("") == []

    def test_identifiers(self):
        tokens = tokenize("foo Bar BAZ_123 _private r#type")
        assert all(t.kind == TokenKind.IDENT for t in tokens)
        assert leaf_values(tokens) == ["foo", "Bar", "BAZ_123", "_private", "r#type"]

    def test_booleans_are_literals(self):
        tokens = tokenize("true false trueish")
        assert [t.literal for t in tokens] == [LiteralKind.BOOL, LiteralKind.BOOL, None]
        assert tokens[2].kind == TokenKind.IDENT

    def test_integers(self):
        tokens = tokenize("42 0xff 0b1010 1_000")
        assert all(t.literal == LiteralKind.INT for t in tokens)
        assert all(t.suffix is None for t in tokens)
        assert leaf_values(tokens) == ["42", "0xff", "0b1010", "1_000"]

    def test_integer_suffix(self):
        tokens = tokenize("1u8 7i32 3usize")
        assert [t.suffix for t in tokens] == ["u8", "i32", "usize"]

    def test_floats(self):
        tokens = tokenize("3.14 0.5f32")
        assert [t.literal for t in tokens] == [LiteralKind.FLOAT, LiteralKind.FLOAT]
        assert tokens[1].suffix == "f32"

    def test_range_is_not_a_float(self):
        tokens = tokenize("0..10")
        assert leaf_values(tokens) == ["0", "..", "10"]

    def test_negative_number_is_two_tokens(self):
        tokens = tokenize("-1")
        assert tokens[0] == Token(TokenKind.PUNCT, "-")
        assert tokens[1].literal == LiteralKind.INT

    def test_strings_and_chars(self):
        tokens = tokenize('"hello" b"raw" \'a\' \'\\n\'')
        assert [t.literal for t in tokens] == [
            LiteralKind.STR, LiteralKind.STR, LiteralKind.CHAR, LiteralKind.CHAR,
        ]

    def test_lifetime_is_not_a_char(self):
        tokens = tokenize("&'static str")
        assert leaf_values(tokens) == ["&", "'static", "str"]
        assert tokens[1].kind == TokenKind.LIFETIME
        assert not tokens[1].is_ident()

    def test_escaped_chars(self):
        tokens = tokenize(r"'\'' '\\' b'\'' '\u{1F600}'")
        assert [t.literal for t in tokens] == [LiteralKind.CHAR] * 4
        assert leaf_values(tokens) == [r"'\''", r"'\\'", r"b'\''", r"'\u{1F600}'"]

    def test_escaped_quote_in_static(self):
        tokens = tokenize(r"Q: char = '\'';")
        assert tokens[4] == Token(TokenKind.LITERAL, r"'\''", LiteralKind.CHAR)
        assert tokens[5].value == ";"

    def test_punctuation_longest_match(self):
        tokens = tokenize(":: -> => == != <= >= .. ..= : = < >")
        assert all(t.kind == TokenKind.PUNCT for t in tokens)
        assert leaf_values(tokens) == [
            "::", "->", "=>", "==", "!=", "<=", ">=", "..", "..=", ":", "=", "<", ">",
        ]

    def test_comments(self):
        tokens = tokenize("foo // this is a comment\nbar /* block\ncomment */ baz")
        assert leaf_values(tokens) == ["foo", "bar", "baz"]

    def test_block_comments_do_not_nest(self):
        tokens = tokenize("/* a /* b */ c */")
        assert leaf_values(tokens) == ["c", "*", "/"]

    def test_line_tracking(self):
        tokens = tokenize("line1\nline2\n  line3")
        assert [(t.line, t.column) for t in tokens] == [(1, 1), (2, 1), (3, 3)]

    def test_position_not_part_of_equality(self):
        assert tokenize("foo") == tokenize("\n\n    foo")

    def test_unexpected_character(self):
        with pytest.raises(LexerError) as exc:
            tokenize("foo \\ bar")
        assert "Unexpected character" in str(exc.value)
        assert exc.value.line == 1

    def test_unterminated_string(self):
        with pytest.raises(LexerError):
            tokenize('"unclosed string')


class TestDelimitedGroups:
    """Tests for bracket matching."""

    def test_nested_groups(self):
        tokens = tokenize("{ a: [b, c], d: (e) }")
        assert len(tokens) == 1
        group = tokens[0]
        assert isinstance(group, Delimited)
        assert group.delimiter == Delimiter.BRACE
        inner = group.tokens
        assert inner[2] == Delimited(Delimiter.BRACKET, tuple(tokenize("b, c")))
        assert inner[6] == Delimited(Delimiter.PAREN, tuple(tokenize("e")))

    def test_empty_groups(self):
        tokens = tokenize("() [] {}")
        assert [t.delimiter for t in tokens] == [Delimiter.PAREN, Delimiter.BRACKET, Delimiter.BRACE]
        assert all(t.tokens == () for t in tokens)

    def test_group_position(self):
        tokens = tokenize("a\n  (b)")
        assert (tokens[1].line, tokens[1].column) == (2, 3)

    def test_mismatched_delimiters(self):
        with pytest.raises(LexerError) as exc:
            tokenize("{ ( }")
        assert "Unbalanced delimiter" in str(exc.value)

    def test_unclosed_group(self):
        with pytest.raises(LexerError) as exc:
            tokenize("{ a: [b, c }")
        assert "Unbalanced delimiter" in str(exc.value)

    def test_unopened_group(self):
        with pytest.raises(LexerError):
            tokenize("a )")


class TestRender:
    """Tests for serializing token trees back to text."""

    def test_simple_path(self):
        assert render(tokenize("stm32f103xx :: Peripherals")) == "stm32f103xx::Peripherals"

    def test_call(self):
        assert render(tokenize("Foo :: new ( )")) == "Foo::new()"

    def test_separators(self):
        assert render(tokenize("[0 ; 4]")) == "[0; 4]"
        assert render(tokenize("f(a , b)")) == "f(a, b)"

    def test_braces_are_padded(self):
        assert render(tokenize("S{x:1}")) == "S { x : 1 }"

    @pytest.mark.parametrize("source", [
        "u8",
        "Foo<Bar>",
        "Foo::new()",
        "[u8; 4]",
        "[0; 4]",
        "Option<&'static mut [u8]>",
        "x.0.1",
        "1.5f32 .. 2",
        "a - > b",
        "- 1",
        "Mutex::new(RefCell::new(None))",
        "S { a: 1, b: [2, 3] }",
        "'a' b'x' \"s;=\" 0xffu8",
        "a::b.c(d)[e]",
    ])
    def test_round_trip(self, source):
        tokens = tokenize(source)
        assert tokenize(render(tokens)) == tokens

    def test_describe(self):
        assert describe(None) == "end of input"
        assert describe(tokenize("foo")[0]) == "`foo`"
        assert describe(tokenize("[a]")[0]) == "Bracket group `[a]`"
