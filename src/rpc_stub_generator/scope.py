"""Indentation scopes for writing nested code blocks."""

from __future__ import annotations

INDENT = "    "


class NoParentError(Exception):
    """Raised when returning from a scope that has no parent."""

    pass


class Scope:
    """A block of code lines, indented relative to its parent scope.

    Lines are added without indentation. When the writer returns from a scope, its lines are
    indented by one level and appended to the parent, right below the heading that opened it.
    """

    def __init__(self, name: str, parent: Scope | None = None):
        self.name = name
        self.parent = parent
        self.lines: list[str] = []

    @property
    def is_root(self) -> bool:
        return self.parent is None

    @property
    def scoped_name(self) -> str:
        """The dotted name of this scope, e.g. `EchoServer._serve`."""
        if self.parent is None or self.parent.is_root:
            return self.name

        return f"{self.parent.scoped_name}.{self.name}"

    def add(self, *lines: str):
        """Add lines to this scope. An empty string adds a blank line."""
        self.lines.extend(lines)

    def close(self) -> Scope:
        """Move this scope's lines into the parent scope and return the parent.

        Raises:
            NoParentError: If this is the root scope.
        """
        if self.parent is None:
            raise NoParentError(f"The scope '{self.name}' has no parent.")

        body = self.lines or ["pass"]
        self.parent.lines.extend(f"{INDENT}{line}" if line else "" for line in body)
        self.lines = []
        return self.parent

    def __str__(self) -> str:
        return "\n".join(self.lines)
