"""Tests for driving the scanner and the writers over declaration files."""

from __future__ import annotations

import argparse
import logging
import shutil
import subprocess

import pytest

from conftest import ECHO_DECLARATION, KEY_VALUE_DECLARATION, PING_DECLARATION
from rpc_stub_generator import run as run_module
from rpc_stub_generator.run import (
    GeneratorError,
    NoOutputDirectoryError,
    SourcesDirectoryDoesNotExistError,
    format_output,
    generate,
    generate_client,
    generate_directory,
    generate_messages,
    generate_server,
    run,
)


@pytest.fixture
def declarations_dir(tmp_path):
    """A directory with valid and invalid declarations, including a nested one."""
    sources = tmp_path / "sources"
    nested = sources / "nested"
    nested.mkdir(parents=True)

    shutil.copy(ECHO_DECLARATION, sources / "echo.pyi")
    shutil.copy(KEY_VALUE_DECLARATION, nested / "key_value.pyi")
    (sources / "no_type.pyi").write_text("def ping(self) -> str: ...\n", encoding="utf-8")
    (sources / "empty.pyi").write_text("class Empty(Protocol):\n    pass\n", encoding="utf-8")
    (sources / "notes.txt").write_text("class Ignored:\n    def ping(self) -> str: ...\n", encoding="utf-8")

    return sources


class TestGenerate:
    """Generating the modules of a single declaration file."""

    def test_writes_three_modules(self, tmp_path):
        written = generate(ECHO_DECLARATION, tmp_path / "out", format_output=False)

        assert [path.name for path in written] == ["echo_messages.py", "echo_client.py", "echo_server.py"]
        assert all(path.is_file() for path in written)

    def test_creates_output_directory(self, tmp_path):
        output_dir = tmp_path / "a" / "b"
        generate(PING_DECLARATION, output_dir, format_output=False)

        assert (output_dir / "pinger_messages.py").is_file()

    def test_regeneration_is_byte_identical(self, tmp_path):
        first = [path.read_bytes() for path in generate(ECHO_DECLARATION, tmp_path, format_output=False)]
        second = [path.read_bytes() for path in generate(ECHO_DECLARATION, tmp_path, format_output=False)]

        assert first == second

    @pytest.mark.skipif(shutil.which("ruff") is None, reason="ruff is not on the PATH")
    def test_formatted_regeneration_is_byte_identical(self, tmp_path):
        first = [path.read_bytes() for path in generate(ECHO_DECLARATION, tmp_path)]
        second = [path.read_bytes() for path in generate(ECHO_DECLARATION, tmp_path)]

        assert first == second
        for text in first:
            compile(text, "generated.py", "exec")

    def test_no_temporary_files_are_left(self, tmp_path):
        generate(ECHO_DECLARATION, tmp_path, format_output=False)

        assert sorted(path.name for path in tmp_path.iterdir()) == [
            "__init__.py",
            "echo_client.py",
            "echo_messages.py",
            "echo_server.py",
            "py.typed",
        ]

    def test_declaration_without_type_is_skipped(self, tmp_path, caplog):
        declaration = tmp_path / "no_type.pyi"
        declaration.write_text("def ping(self) -> str: ...\n", encoding="utf-8")

        with caplog.at_level(logging.ERROR):
            assert generate(declaration, tmp_path / "out", format_output=False) == []

        assert "No type declaration found" in caplog.text
        assert not (tmp_path / "out").exists()

    def test_declaration_with_two_types_is_skipped(self, tmp_path, caplog):
        declaration = tmp_path / "two.pyi"
        declaration.write_text("class A:\n    def a(self) -> int: ...\n\nclass B:\n    pass\n", encoding="utf-8")

        with caplog.at_level(logging.ERROR):
            assert generate(declaration, tmp_path / "out", format_output=False) == []

        assert "2 type declarations" in caplog.text

    def test_declaration_without_functions_is_skipped(self, tmp_path, caplog):
        declaration = tmp_path / "empty.pyi"
        declaration.write_text("class Empty(Protocol):\n    pass\n", encoding="utf-8")

        with caplog.at_level(logging.WARNING):
            assert generate(declaration, tmp_path / "out", format_output=False) == []

        assert "no usable function declarations" in caplog.text

    def test_marks_output_as_package(self, tmp_path):
        """Client and server import the messages module relatively, so the output must be a package."""
        generate(ECHO_DECLARATION, tmp_path, format_output=False)

        assert (tmp_path / "__init__.py").is_file()
        assert (tmp_path / "py.typed").is_file()

    def test_undecodable_declaration_is_skipped(self, tmp_path, caplog):
        declaration = tmp_path / "binary.pyi"
        declaration.write_bytes(b"cl\xffass Broken:\n")

        with caplog.at_level(logging.ERROR):
            assert generate(declaration, tmp_path / "out", format_output=False) == []

        assert "cannot be read" in caplog.text

    def test_missing_declaration_is_skipped(self, tmp_path, caplog):
        with caplog.at_level(logging.ERROR):
            assert generate(tmp_path / "missing.pyi", tmp_path / "out", format_output=False) == []

        assert "cannot be read" in caplog.text

    def test_single_artifact_variants(self, tmp_path):
        assert [path.name for path in generate_messages(ECHO_DECLARATION, tmp_path, False)] == ["echo_messages.py"]
        assert [path.name for path in generate_client(ECHO_DECLARATION, tmp_path, False)] == ["echo_client.py"]
        assert [path.name for path in generate_server(ECHO_DECLARATION, tmp_path, False)] == ["echo_server.py"]

    def test_unwritable_output_directory(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("", encoding="utf-8")

        with pytest.raises(NoOutputDirectoryError):
            generate(ECHO_DECLARATION, blocker, format_output=False)


class TestGenerateDirectory:
    """Generating the modules of every declaration below a directory."""

    def test_compiles_every_declaration(self, declarations_dir, tmp_path):
        output_dir = tmp_path / "generated"
        written = generate_directory(declarations_dir, output_dir, format_output=False)

        assert sorted(path.name for path in written) == [
            "echo_client.py",
            "echo_messages.py",
            "echo_server.py",
            "key_value_store_client.py",
            "key_value_store_messages.py",
            "key_value_store_server.py",
        ]

    def test_marks_output_as_package(self, declarations_dir, tmp_path):
        output_dir = tmp_path / "generated"
        generate_directory(declarations_dir, output_dir, format_output=False)

        assert (output_dir / "__init__.py").is_file()
        assert (output_dir / "py.typed").is_file()

    def test_existing_init_is_kept(self, declarations_dir, tmp_path):
        output_dir = tmp_path / "generated"
        output_dir.mkdir()
        (output_dir / "__init__.py").write_text('"""Keep me."""\n', encoding="utf-8")

        generate_directory(declarations_dir, output_dir, format_output=False)

        assert (output_dir / "__init__.py").read_text(encoding="utf-8") == '"""Keep me."""\n'

    def test_unreadable_declaration_does_not_stop_the_batch(self, declarations_dir, tmp_path):
        (declarations_dir / "a_binary.pyi").write_bytes(b"cl\xffass Broken:\n")
        output_dir = tmp_path / "generated"

        generate_directory(declarations_dir, output_dir, format_output=False)

        assert (output_dir / "echo_messages.py").is_file()
        assert (output_dir / "key_value_store_messages.py").is_file()

    def test_pattern(self, declarations_dir, tmp_path):
        written = generate_directory(declarations_dir, tmp_path / "generated", pattern="*.pyi", format_output=False)

        assert {path.name for path in written} == {"echo_client.py", "echo_messages.py", "echo_server.py"}

    def test_missing_sources_directory(self, tmp_path):
        with pytest.raises(SourcesDirectoryDoesNotExistError):
            generate_directory(tmp_path / "missing", tmp_path / "generated")

    def test_output_directory_cannot_be_created(self, declarations_dir, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("", encoding="utf-8")

        with pytest.raises(NoOutputDirectoryError):
            generate_directory(declarations_dir, blocker / "generated")

    def test_errors_share_a_base_class(self):
        assert issubclass(SourcesDirectoryDoesNotExistError, GeneratorError)
        assert issubclass(NoOutputDirectoryError, GeneratorError)


class TestRun:
    """Resolving command-line paths and excludes."""

    @staticmethod
    def _args(**kwargs) -> argparse.Namespace:
        defaults = dict(paths=["**/*.pyi"], excludes=[], output_dir="generated", recursive=False, no_format=True)
        defaults.update(kwargs)
        return argparse.Namespace(**defaults)

    def test_directory_without_recursion(self, declarations_dir, tmp_path):
        run(self._args(paths=[str(declarations_dir)]), str(tmp_path))

        generated = tmp_path / "generated"
        assert (generated / "echo_client.py").is_file()
        assert not (generated / "key_value_store_client.py").exists()

    def test_directory_with_recursion(self, declarations_dir, tmp_path):
        run(self._args(paths=[str(declarations_dir)], recursive=True), str(tmp_path))

        generated = tmp_path / "generated"
        assert (generated / "echo_client.py").is_file()
        assert (generated / "key_value_store_client.py").is_file()
        assert (generated / "py.typed").is_file()

    def test_recursive_glob_relative_to_root(self, declarations_dir, tmp_path):
        run(self._args(paths=["sources/**/*.pyi"], recursive=True), str(tmp_path))

        assert (tmp_path / "generated" / "key_value_store_server.py").is_file()

    def test_unreadable_declaration_does_not_stop_the_run(self, declarations_dir, tmp_path):
        (declarations_dir / "a_binary.pyi").write_bytes(b"cl\xffass Broken:\n")

        run(self._args(paths=[str(declarations_dir)]), str(tmp_path))

        assert (tmp_path / "generated" / "echo_server.py").is_file()

    def test_excludes(self, declarations_dir, tmp_path):
        run(
            self._args(paths=[str(declarations_dir)], excludes=["sources/nested/*.pyi"], recursive=True),
            str(tmp_path),
        )

        generated = tmp_path / "generated"
        assert (generated / "echo_client.py").is_file()
        assert not (generated / "key_value_store_client.py").exists()

    def test_no_matches(self, tmp_path, caplog):
        with caplog.at_level(logging.WARNING):
            run(self._args(paths=["missing/*.pyi"]), str(tmp_path))

        assert "No declaration files found" in caplog.text
        assert not (tmp_path / "generated").exists()


class TestFormatOutput:
    """Formatting generated text with ruff."""

    def test_missing_ruff_keeps_raw_text(self, monkeypatch, caplog):
        def missing(*args, **kwargs):
            raise FileNotFoundError("ruff")

        monkeypatch.setattr(run_module.subprocess, "run", missing)

        with caplog.at_level(logging.WARNING):
            assert format_output("x  =  1\n") == "x  =  1\n"

        assert "Ruff is not available" in caplog.text

    def test_failing_ruff_keeps_raw_text(self, monkeypatch, caplog):
        def failing(command, **kwargs):
            if command[1] == "format":
                raise subprocess.CalledProcessError(2, command, output=b"", stderr=b"boom")

        monkeypatch.setattr(run_module.subprocess, "run", failing)

        with caplog.at_level(logging.WARNING):
            assert format_output("x  =  1\n") == "x  =  1\n"

        assert "Ruff formatting failed" in caplog.text

    @pytest.mark.skipif(shutil.which("ruff") is None, reason="ruff is not on the PATH")
    def test_formats_text(self):
        assert format_output("x  =  1\n") == "x = 1\n"
