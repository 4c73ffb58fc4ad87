"""Common machinery of the writers that generate the messages, client and server modules."""

from __future__ import annotations

import logging
from typing import ClassVar, Literal

from rpc_stub_generator import helper
from rpc_stub_generator.model import SignatureModel
from rpc_stub_generator.scope import NoParentError, Scope

logger = logging.getLogger(__name__)

# The package that generated modules import their runtime support from.
RUNTIME_MODULE = "rpc_stub_generator.runtime"

ImportSection = Literal["future", "stdlib", "third_party", "runtime", "local"]

_SECTION_ORDER: tuple[ImportSection, ...] = ("future", "stdlib", "third_party", "runtime", "local")


class Writer:
    """Base class of the writers. Each writer turns a signature model into the text of one module."""

    ARTIFACT: ClassVar[str] = ""

    VALID_TYPING_IMPORTS = Literal["Protocol"]

    def __init__(self, model: SignatureModel):
        """Initialize the writer with the signature model to generate code for.

        Args:
            model (SignatureModel): The model of the compiled interface.
        """
        self.model = model
        self.scope = Scope(name="", parent=None)
        self._generated = False

        self._imports: dict[ImportSection, list[str]] = {section: [] for section in _SECTION_ORDER}
        self._from_imports: dict[tuple[ImportSection, str], set[str]] = {}
        self._typing_imports: set[Writer.VALID_TYPING_IMPORTS] = set()

        self._add_import("from __future__ import annotations", "future")

        source = f" for `{model.source_name}`" if model.source_name else ""
        self.docstring = helper.new_docstring(f"This is an automatically generated {self.ARTIFACT} module{source}.")

    @property
    def module_name(self) -> str:
        """The name of the generated module, without the `.py` suffix."""
        raise NotImplementedError

    def _add_typing_import(self, name: Writer.VALID_TYPING_IMPORTS):
        """Add a name to the `from typing import ...` line.

        Args:
            name (Writer.VALID_TYPING_IMPORTS): The name to import from `typing`.
        """
        self._typing_imports.add(name)

    def _add_import(self, import_line: str, section: ImportSection = "stdlib"):
        """Add a full import line, e.g. 'import logging'.

        Args:
            import_line (str): The import line to add.
            section (ImportSection, optional): The import block the line belongs to. Defaults to "stdlib".
        """
        lines = self._imports[section]
        if import_line not in lines:
            lines.append(import_line)

    def _add_from_import(self, module: str, names: list[str], section: ImportSection):
        """Add names to a `from <module> import ...` line. Names of the same module are merged.

        Args:
            module (str): The module to import from.
            names (list[str]): The names to import.
            section (ImportSection): The import block the line belongs to.
        """
        self._from_imports.setdefault((section, module), set()).update(names)

    @property
    def imports(self) -> list[str]:
        """Get the import block of the generated module.

        Sections are separated by a blank line; within a section, plain imports come first and names
        are sorted, so that the output is stable.

        Returns:
            list[str]: The import lines.
        """
        if self._typing_imports:
            self._add_from_import("typing", sorted(self._typing_imports), "stdlib")

        import_lines: list[str] = []

        for section in _SECTION_ORDER:
            section_lines = sorted(self._imports[section])

            for (from_section, module), names in sorted(self._from_imports.items()):
                if from_section == section:
                    section_lines.append(f"from {module} import {', '.join(sorted(names))}")

            if not section_lines:
                continue

            if import_lines:
                import_lines.append("")

            import_lines.extend(section_lines)

        return import_lines

    def new_scope(self, name: str, scope_heading: str) -> Scope:
        """Add a heading to the current scope and continue writing in a new scope below it.

        Args:
            name (str): The name of the new scope.
            scope_heading (str): The line of code that starts the new scope, e.g. a class declaration.

        Returns:
            Scope: The parent of the new scope.
        """
        parent_scope = self.scope
        parent_scope.add(scope_heading)

        self.scope = Scope(name=name, parent=parent_scope)

        return parent_scope

    def return_from_scope(self):
        """Return from the current scope."""
        if self.scope.is_root:
            raise NoParentError("The current scope is the root scope and cannot be returned from.")

        logger.debug(f"Closing scope '{self.scope.scoped_name}' of the {self.ARTIFACT} module.")
        self.scope = self.scope.close()

    def add_top_level_separator(self):
        """Separate top-level definitions by two blank lines."""
        assert self.scope.is_root

        if self.scope.lines:
            self.scope.add("", "")

    def generate(self):
        """Write the module body into the root scope."""
        raise NotImplementedError

    def dumps_py(self) -> str:
        """Generates string output for the module.

        Returns:
            str: The output string.
        """
        if not self._generated:
            self.generate()
            self._generated = True

        assert self.scope.is_root

        out: list[str] = []
        out.append(self.docstring)
        out.append("")
        out.extend(self.imports)
        out.append("")

        if self.scope.lines:
            out.append("")
            out.extend(self.scope.lines)

        logger.debug(f"Generated {self.ARTIFACT} module '{self.module_name}' for '{self.model.type_name}'.")

        return "\n".join(out) + "\n"
