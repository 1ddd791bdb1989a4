"""
Semantic checks for parsed applications.

The parser only checks structure. These checks run afterwards, on request,
for tools that want to catch references the grammar can't see (a task
listing a resource that was never declared, for instance).
"""

from dataclasses import dataclass, field
from typing import Iterable, List, Set

from .dsl_ast import App, Idents


@dataclass
class ValidationError:
    """A validation finding."""
    message: str
    severity: str = "error"  # "error" or "warning"

    def __str__(self):
        return f"[{self.severity}] {self.message}"


@dataclass
class ValidationResult:
    """Result of validation."""
    errors: List[ValidationError] = field(default_factory=list)
    warnings: List[ValidationError] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return len(self.errors) > 0

    @property
    def has_warnings(self) -> bool:
        return len(self.warnings) > 0

    def add_error(self, message: str):
        self.errors.append(ValidationError(message, "error"))

    def add_warning(self, message: str):
        self.warnings.append(ValidationError(message, "warning"))

    def merge(self, other: 'ValidationResult'):
        self.errors.extend(other.errors)
        self.warnings.extend(other.warnings)

    def __str__(self):
        lines = []
        for err in self.errors:
            lines.append(str(err))
        for warn in self.warnings:
            lines.append(str(warn))
        return "\n".join(lines)


# =============================================================================
# Suggestions
# =============================================================================

def levenshtein_distance(a: str, b: str) -> int:
    """Edit distance between two strings."""
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, 1):
        current = [i]
        for j, cb in enumerate(b, 1):
            current.append(min(
                previous[j] + 1,              # deletion
                current[j - 1] + 1,           # insertion
                previous[j - 1] + (ca != cb),  # substitution
            ))
        previous = current
    return previous[-1]


def find_similar(name: str, candidates: Iterable[str], max_distance: int = 2) -> List[str]:
    """Candidates within max_distance edits of name, closest first (case-insensitive)."""
    scored = []
    for candidate in candidates:
        distance = levenshtein_distance(name.lower(), candidate.lower())
        if distance <= max_distance:
            scored.append((distance, candidate))
    return [candidate for _, candidate in sorted(scored)]


def format_alternatives(name: str, candidates: Set[str]) -> str:
    """Hint text for an unknown name."""
    if not candidates:
        return "(none defined)"
    similar = find_similar(name, candidates)
    if similar:
        return f"Did you mean '{similar[0]}'?"
    if len(candidates) <= 5:
        return f"Valid options: {', '.join(sorted(candidates))}"
    return f"({len(candidates)} declared)"


# =============================================================================
# Main Validation Entry Points
# =============================================================================

def validate_app(app: App) -> ValidationResult:
    """Run all validations on an app."""
    result = ValidationResult()
    declared = set(app.resources)

    result.merge(validate_references("idle", app.idle.resources, declared))
    for name, task in sorted(app.tasks.items()):
        result.merge(validate_references(f"task `{name}`", task.resources, declared))

    result.merge(check_unused_resources(app))
    result.merge(check_shadowed_locals(app))

    return result


def validate_and_report(app: App, raise_on_error: bool = True) -> ValidationResult:
    """
    Validate an app and optionally raise on errors.

    Args:
        app: The app to validate
        raise_on_error: If True, raise ValueError on validation errors

    Returns:
        ValidationResult with all errors and warnings
    """
    result = validate_app(app)

    if result.has_errors and raise_on_error:
        raise ValueError(f"App validation failed:\n{result}")

    return result


def validate_references(owner: str, resources: Idents, declared: Set[str]) -> ValidationResult:
    """Every resource an owner lists must be declared in `resources`."""
    result = ValidationResult()
    for name in sorted(resources):
        if name not in declared:
            hint = format_alternatives(name, declared)
            result.add_error(f"{owner} uses undeclared resource `{name}`. {hint}")
    return result


def check_unused_resources(app: App) -> ValidationResult:
    result = ValidationResult()
    used = set(app.idle.resources)
    for task in app.tasks.values():
        used.update(task.resources)

    for name in sorted(set(app.resources) - used):
        result.add_warning(f"resource `{name}` is never used")
    return result


def check_shadowed_locals(app: App) -> ValidationResult:
    result = ValidationResult()
    for name in sorted(set(app.idle.locals) & set(app.resources)):
        result.add_warning(f"idle local `{name}` shadows a resource of the same name")
    return result
