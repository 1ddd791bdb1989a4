"""
AST node definitions for application configuration blocks.
"""

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterator, Optional, Tuple

from .dsl_lexer import TokenTree, render


@dataclass(frozen=True)
class Fragment:
    """Opaque token run (path, type or expression) passed through verbatim."""
    tokens: Tuple[TokenTree, ...] = ()

    def __iter__(self) -> Iterator[TokenTree]:
        return iter(self.tokens)

    def __len__(self) -> int:
        return len(self.tokens)

    def __str__(self):
        return render(self.tokens)


Idents = FrozenSet[str]


@dataclass(frozen=True)
class Static:
    """Statically allocated storage: `ty = expr`."""
    ty: Fragment
    expr: Fragment


Statics = Dict[str, Static]


@dataclass(frozen=True)
class Init:
    """Initialization routine."""
    path: Fragment


@dataclass(frozen=True)
class Idle:
    """Idle routine, its local statics and the resources it may access."""
    path: Fragment
    locals: Statics = field(default_factory=dict)
    resources: Idents = frozenset()


@dataclass(frozen=True)
class Task:
    """A task.

    `enabled` and `priority` stay None when not written; what that means is
    up to the code generator.
    """
    enabled: Optional[bool] = None
    priority: Optional[int] = None
    resources: Idents = frozenset()


Tasks = Dict[str, Task]


@dataclass(frozen=True)
class App:
    """Root of a parsed configuration."""
    device: Fragment
    idle: Idle
    init: Init
    resources: Statics = field(default_factory=dict)
    tasks: Tasks = field(default_factory=dict)
