"""Top-level module for code generation."""

from __future__ import annotations

import argparse
import glob
import logging
import os
import os.path
import subprocess
import tempfile
from pathlib import Path

from rpc_stub_generator.model import SignatureModel
from rpc_stub_generator.scanner import ScannerError, scan
from rpc_stub_generator.writer import Writer
from rpc_stub_generator.writer_client import ClientWriter
from rpc_stub_generator.writer_messages import MessagesWriter
from rpc_stub_generator.writer_server import ServerWriter

logger = logging.getLogger(__name__)

DECLARATION_SUFFIX = ".pyi"
PY_SUFFIX = ".py"
DEFAULT_PATTERN = f"**/*{DECLARATION_SUFFIX}"

PACKAGE_MARKERS = ("__init__.py", "py.typed")

WRITERS: tuple[type[Writer], ...] = (MessagesWriter, ClientWriter, ServerWriter)


class GeneratorError(Exception):
    """Base class for errors that abort a generator run."""

    pass


class SourcesDirectoryDoesNotExistError(GeneratorError):
    """Raised when the directory of declaration files does not exist."""

    pass


class NoOutputDirectoryError(GeneratorError):
    """Raised when the output directory cannot be created."""

    pass


def format_output(raw_input: str) -> str:
    """Formats raw input using ruff.

    Args:
        raw_input (str): The unformatted input.

    Returns:
        str: The formatted output, or the raw input if ruff is not available or fails.
    """
    try:
        with tempfile.NamedTemporaryFile(mode="w", suffix=PY_SUFFIX, delete=False, encoding="utf-8") as f:
            temp_path = Path(f.name)
            f.write(raw_input)

        try:
            # Sort imports first, the formatter does not touch them.
            subprocess.run(
                ["ruff", "check", "--fix", "--select", "I", str(temp_path)],
                capture_output=True,
                check=False,
            )

            subprocess.run(
                ["ruff", "format", "--line-length", "120", str(temp_path)],
                capture_output=True,
                check=True,
            )

            return temp_path.read_text(encoding="utf-8")

        finally:
            temp_path.unlink(missing_ok=True)

    except subprocess.CalledProcessError as e:
        logger.warning(f"Ruff formatting failed, keeping unformatted output: {e}")
        logger.debug(f"Stderr: {e.stderr.decode('utf-8', errors='replace')}")
        return raw_input

    except OSError as e:
        logger.warning(f"Ruff is not available, keeping unformatted output: {e}")
        return raw_input


def load_model(input_path: str | os.PathLike[str]) -> SignatureModel | None:
    """Read a declaration file and build its signature model.

    Args:
        input_path (str | os.PathLike[str]): The declaration file.

    Returns:
        SignatureModel | None: The model, or None if the file cannot be compiled.
    """
    path = Path(input_path)

    try:
        text = path.read_text(encoding="utf-8")

    except (OSError, UnicodeDecodeError) as e:
        logger.error(f"Skipping '{path}', it cannot be read: {e}")
        return None

    try:
        model = scan(text, source_name=path.name)

    except ScannerError as e:
        logger.error(f"Skipping '{path}': {e}")
        return None

    if not model.functions:
        logger.warning(f"Skipping '{path}': '{model.type_name}' has no usable function declarations.")
        return None

    return model


def render(writer_class: type[Writer], model: SignatureModel, format_output_: bool = True) -> tuple[str, str]:
    """Render one module for a model.

    Args:
        writer_class (type[Writer]): The writer of the module.
        model (SignatureModel): The model to generate code for.
        format_output_ (bool, optional): Whether to pass the text through ruff. Defaults to True.

    Returns:
        tuple[str, str]: The file name and the text of the module.
    """
    writer = writer_class(model)
    text = writer.dumps_py()

    if format_output_:
        text = format_output(text)

    return writer.module_name + PY_SUFFIX, text


def write_atomically(path: Path, text: str):
    """Write `text` to `path` so that readers see either the old or the complete new file."""
    with tempfile.NamedTemporaryFile(
        mode="w", dir=path.parent, prefix=f".{path.name}.", suffix=".tmp", delete=False, encoding="utf-8"
    ) as f:
        temp_path = Path(f.name)
        f.write(text)

    try:
        os.replace(temp_path, path)

    except OSError:
        temp_path.unlink(missing_ok=True)
        raise


def ensure_output_directory(output_dir: str | os.PathLike[str]) -> Path:
    """Create the output directory if needed.

    Raises:
        NoOutputDirectoryError: If the directory cannot be created.
    """
    output_path = Path(output_dir)

    try:
        output_path.mkdir(parents=True, exist_ok=True)

    except OSError as e:
        raise NoOutputDirectoryError(f"Cannot create the output directory '{output_path}': {e}") from e

    return output_path


def mark_package(output_dir: str | os.PathLike[str]):
    """Make the output directory an importable, typed package, unless it already is one."""
    for marker in PACKAGE_MARKERS:
        marker_path = Path(output_dir) / marker
        if not marker_path.exists():
            marker_path.write_text("", encoding="utf-8")


def _generate_with(
    writer_classes: tuple[type[Writer], ...],
    input_path: str | os.PathLike[str],
    output_dir: str | os.PathLike[str],
    format_output_: bool,
) -> list[Path]:
    model = load_model(input_path)
    if model is None:
        return []

    output_path = ensure_output_directory(output_dir)

    # Render everything before writing anything.
    rendered = [render(writer_class, model, format_output_) for writer_class in writer_classes]

    written: list[Path] = []
    for file_name, text in rendered:
        file_path = output_path / file_name
        write_atomically(file_path, text)
        written.append(file_path)

    mark_package(output_path)

    logger.info(f"Wrote {', '.join(path.name for path in written)} for '{model.type_name}' to '{output_path}'.")

    return written


def generate(
    input_path: str | os.PathLike[str], output_dir: str | os.PathLike[str], format_output: bool = True
) -> list[Path]:
    """Generate the messages, client and server modules for one declaration file.

    The output directory is made a package, since the client and server import the messages module
    relatively.

    Args:
        input_path (str | os.PathLike[str]): The declaration file.
        output_dir (str | os.PathLike[str]): The directory to write the modules to.
        format_output (bool, optional): Whether to format the modules with ruff. Defaults to True.

    Raises:
        NoOutputDirectoryError: If the output directory cannot be created.

    Returns:
        list[Path]: The written files, empty if the declaration was skipped.
    """
    return _generate_with(WRITERS, input_path, output_dir, format_output)


def generate_messages(
    input_path: str | os.PathLike[str], output_dir: str | os.PathLike[str], format_output: bool = True
) -> list[Path]:
    """Generate only the messages module for one declaration file."""
    return _generate_with((MessagesWriter,), input_path, output_dir, format_output)


def generate_client(
    input_path: str | os.PathLike[str], output_dir: str | os.PathLike[str], format_output: bool = True
) -> list[Path]:
    """Generate only the client module for one declaration file.

    The client imports the messages module, which has to be generated as well.
    """
    return _generate_with((ClientWriter,), input_path, output_dir, format_output)


def generate_server(
    input_path: str | os.PathLike[str], output_dir: str | os.PathLike[str], format_output: bool = True
) -> list[Path]:
    """Generate only the server module for one declaration file.

    The server imports the messages module, which has to be generated as well.
    """
    return _generate_with((ServerWriter,), input_path, output_dir, format_output)


def generate_directory(
    sources: str | os.PathLike[str],
    output_dir: str | os.PathLike[str],
    pattern: str = DEFAULT_PATTERN,
    format_output: bool = True,
) -> list[Path]:
    """Generate modules for every declaration file below a directory.

    Args:
        sources (str | os.PathLike[str]): The directory of declaration files.
        output_dir (str | os.PathLike[str]): The directory to write the modules to.
        pattern (str, optional): The glob pattern, relative to `sources`. Defaults to DEFAULT_PATTERN.
        format_output (bool, optional): Whether to format the modules with ruff. Defaults to True.

    Raises:
        SourcesDirectoryDoesNotExistError: If `sources` is not a directory.
        NoOutputDirectoryError: If the output directory cannot be created.

    Returns:
        list[Path]: All written files.
    """
    sources_path = Path(sources)
    if not sources_path.is_dir():
        raise SourcesDirectoryDoesNotExistError(f"The sources directory '{sources_path}' does not exist.")

    ensure_output_directory(output_dir)

    written: list[Path] = []
    for input_path in sorted(path for path in sources_path.glob(pattern) if path.is_file()):
        written.extend(generate(input_path, output_dir, format_output=format_output))

    mark_package(output_dir)

    return written


def find_declarations(paths: list[str], excludes: list[str], root_directory: str, recursive: bool) -> list[str]:
    """Resolve paths, directories and glob expressions to declaration files.

    Args:
        paths (list[str]): Files, directories or glob expressions, relative to `root_directory`.
        excludes (list[str]): Files or glob expressions to remove from the matches.
        root_directory (str): The directory that relative paths are resolved against.
        recursive (bool): Whether directories and `**` globs are searched recursively.

    Returns:
        list[str]: The declaration files, sorted.
    """
    excluded_paths: set[str] = set()
    for exclude in excludes:
        exclude_path = os.path.join(root_directory, exclude)
        if os.path.isfile(exclude_path):
            excluded_paths.add(exclude_path)
        else:
            excluded_paths = excluded_paths.union(glob.glob(exclude_path, recursive=recursive))

    search_paths: set[str] = set()
    for path in paths:
        search_path = os.path.join(root_directory, path)

        if recursive and os.path.isdir(search_path):
            for root, _, files in os.walk(search_path):
                for file in files:
                    if file.endswith(DECLARATION_SUFFIX):
                        search_paths.add(os.path.join(root, file))

        elif os.path.isdir(search_path):
            for file in os.listdir(search_path):
                file_path = os.path.join(search_path, file)
                if os.path.isfile(file_path) and file.endswith(DECLARATION_SUFFIX):
                    search_paths.add(file_path)

        else:
            search_paths = search_paths.union(glob.glob(search_path, recursive=recursive))

    excluded = {os.path.abspath(path) for path in excluded_paths}
    return sorted(path for path in search_paths if os.path.abspath(path) not in excluded and os.path.isfile(path))


def run(args: argparse.Namespace, root_directory: str):
    """Run the generator on a set of paths that point to declaration files.

    Uses `generate` on each input file.

    Args:
        args (argparse.Namespace): The arguments that were passed when calling the generator.
        root_directory (str): The directory, from which the generator is executed.

    Raises:
        NoOutputDirectoryError: If the output directory cannot be created.
    """
    output_dir = os.path.join(root_directory, args.output_dir)
    format_output_: bool = not getattr(args, "no_format", False)

    valid_paths = find_declarations(args.paths, args.excludes, root_directory, args.recursive)
    if not valid_paths:
        logger.warning(f"No declaration files found for {', '.join(args.paths)}.")
        return

    ensure_output_directory(output_dir)

    written: list[Path] = []
    for path in valid_paths:
        logger.debug(f"Compiling '{path}'.")
        written.extend(generate(path, output_dir, format_output=format_output_))

    mark_package(output_dir)

    logger.info(f"Generated {len(written)} modules from {len(valid_paths)} declaration files.")
