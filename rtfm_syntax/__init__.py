"""
Parser for real-time application configuration blocks.

    from rtfm_syntax import parse

    app = parse(source)
    app.tasks['t1'].priority
"""

from .dsl_ast import App, Fragment, Idents, Idle, Init, Static, Statics, Task, Tasks
from .dsl_converter import app_to_yaml, ast_to_dict, load_app
from .dsl_lexer import Delimited, Delimiter, LexerError, LiteralKind, Token, TokenKind, TokenTree, render, tokenize
from .dsl_parser import ParseError, Parser, parse, parse_tokens
from .dsl_validate import ValidationResult, validate_app

__all__ = [
    "App", "Fragment", "Idents", "Idle", "Init", "Static", "Statics", "Task", "Tasks",
    "app_to_yaml", "ast_to_dict", "load_app",
    "Delimited", "Delimiter", "LexerError", "LiteralKind", "Token", "TokenKind", "TokenTree",
    "render", "tokenize",
    "ParseError", "Parser", "parse", "parse_tokens",
    "ValidationResult", "validate_app",
]
