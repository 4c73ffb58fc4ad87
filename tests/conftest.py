"""Pytest configuration and fixtures for rpc stub generator tests."""

from __future__ import annotations

import importlib
import importlib.util
import queue
import sys
import threading
import uuid
from pathlib import Path
from types import ModuleType

import pytest

from rpc_stub_generator.run import generate

# Test directory structure
TESTS_DIR = Path(__file__).parent
DECLARATIONS_DIR = TESTS_DIR / "declarations"

ECHO_DECLARATION = DECLARATIONS_DIR / "echo.pyi"
PING_DECLARATION = DECLARATIONS_DIR / "ping.pyi"
KEY_VALUE_DECLARATION = DECLARATIONS_DIR / "key_value.pyi"


class FakeConnection:
    """An in-memory connection that replays canned frames and records written ones.

    Reading past the last canned frame returns None, like a closed stream.
    """

    def __init__(self, frames: list[bytes] | None = None, accept_writes: bool = True):
        self._frames = list(frames or [])
        self.accept_writes = accept_writes
        self.written: list[bytes] = []
        self.exhausted = threading.Event()
        self.closed = threading.Event()

    def write_framed(self, data: bytes) -> bool:
        if not self.accept_writes:
            return False

        self.written.append(data)
        return True

    def read_framed(self) -> bytes | None:
        if not self._frames:
            self.exhausted.set()
            return None

        return self._frames.pop(0)

    def close(self) -> None:
        self.closed.set()


class FakeListener:
    """A listener that hands out the connections put into it.

    Putting an exception makes `accept` raise it. `waiting` is set while a call to `accept` blocks.
    """

    def __init__(self):
        self.incoming: queue.Queue[FakeConnection | Exception] = queue.Queue()
        self.accepted = 0
        self.waiting = threading.Event()

    def accept(self) -> FakeConnection:
        self.waiting.set()
        item = self.incoming.get()
        self.waiting.clear()
        if isinstance(item, Exception):
            raise item

        self.accepted += 1
        return item


@pytest.fixture
def fake_listener() -> FakeListener:
    return FakeListener()


def load_generated_package(output_dir: Path) -> str:
    """Import a directory of generated modules as a package with a unique name.

    Args:
        output_dir (Path): A directory containing an `__init__.py`.

    Returns:
        str: The name the package was registered under in `sys.modules`.
    """
    package_name = f"generated_{uuid.uuid4().hex}"
    spec = importlib.util.spec_from_file_location(
        package_name, output_dir / "__init__.py", submodule_search_locations=[str(output_dir)]
    )
    assert spec is not None and spec.loader is not None

    package = importlib.util.module_from_spec(spec)
    sys.modules[package_name] = package
    spec.loader.exec_module(package)

    return package_name


@pytest.fixture
def generated_modules(tmp_path):
    """Generate the modules for a declaration file and import them.

    The fixture value is a function that takes the declaration path and returns the messages,
    client and server modules.
    """
    registered: list[str] = []

    def _generate(declaration: Path) -> tuple[ModuleType, ModuleType, ModuleType]:
        output_dir = tmp_path / f"out_{len(registered)}"
        written = generate(declaration, output_dir, format_output=False)
        assert len(written) == 3

        package_name = load_generated_package(output_dir)
        registered.append(package_name)

        messages, client, server = (
            importlib.import_module(f"{package_name}.{path.stem}") for path in written
        )
        return messages, client, server

    yield _generate

    for name in list(sys.modules):
        if name.split(".")[0] in registered:
            del sys.modules[name]
