"""Pattern-based extraction of interface signatures from declaration text.

The scanner understands only a narrow subset of Python declarations:

    class Echo(Protocol):
        def ping(self) -> str: ...
        def add(self, x: int, y: int) -> int: ...  # raises

Each `def` is matched by a regular expression and then taken apart by plain string splitting.
Parameters are separated by `", "` and split into name and type by `": "`, so type expressions
must not contain `", "` themselves (`dict[str, int]` is out of grammar). Signatures that do not
follow the convention are dropped without notice, the remaining ones are still returned.
"""

from __future__ import annotations

import re

from rpc_stub_generator.model import Function, Parameter, SignatureModel

TYPE_NAME_PATTERN = re.compile(r"^class ([A-Za-z0-9]+)", re.MULTILINE)

FUNCTION_PATTERN = re.compile(
    r"(?:^[ \t]*@[^\n]*\n)*"  # decorator lines belong to the candidate
    r"^[ \t]*def [A-Za-z][A-Za-z0-9_]*\([^)]*\)"
    r"(?:[ \t]*->[ \t]*[^:\n]+)?"
    r"[ \t]*:[^\n]*",
    re.MULTILINE,
)

FUNCTION_KEYWORD = "def "
RECEIVER = "self"
PARAMETER_SEPARATOR = ", "
ANNOTATION_SEPARATOR = ": "
RETURN_ARROW = "->"
THROWING_MARKER = "raises"
ATTRIBUTE_MARKER = "@"
POSITIONAL_MARKERS = ("*", "/")


class ScannerError(Exception):
    """Base class for errors raised while scanning declaration text."""

    pass


class NoMatchError(ScannerError):
    """Raised when the declaration text does not declare any type."""

    pass


class AmbiguousMatchError(ScannerError):
    """Raised when the declaration text declares more than one type."""

    pass


class BadFunctionFormatError(ScannerError):
    """Raised when a signature candidate does not follow the supported declaration subset."""

    pass


def extract_type_name(text: str) -> str:
    """Find the name of the single type declared in `text`.

    Args:
        text (str): The declaration text.

    Raises:
        NoMatchError: If no type is declared.
        AmbiguousMatchError: If more than one type is declared.

    Returns:
        str: The type name.
    """
    matches = TYPE_NAME_PATTERN.findall(text)

    if not matches:
        raise NoMatchError("No type declaration found.")

    if len(matches) > 1:
        raise AmbiguousMatchError(f"Found {len(matches)} type declarations: {', '.join(matches)}.")

    return matches[0]


def extract_functions(text: str) -> list[Function]:
    """Find all exported method signatures in `text`, in declaration order.

    Candidates that fail to parse are skipped.

    Args:
        text (str): The declaration text.

    Returns:
        list[Function]: The functions that could be recovered.
    """
    functions: list[Function] = []

    for match in FUNCTION_PATTERN.finditer(text):
        try:
            functions.append(parse_function(match.group(0)))

        except BadFunctionFormatError:
            continue

    return functions


def scan(text: str, source_name: str = "") -> SignatureModel:
    """Build the signature model of a declaration.

    Args:
        text (str): The declaration text.
        source_name (str, optional): The name of the declaration file. Defaults to "".

    Returns:
        SignatureModel: The model, possibly without any functions.
    """
    type_name = extract_type_name(text)
    functions = extract_functions(text)
    return SignatureModel(type_name=type_name, functions=tuple(functions), source_name=source_name)


def parse_function(candidate: str) -> Function:
    """Parse a single signature candidate, as matched by `FUNCTION_PATTERN`.

    Args:
        candidate (str): The candidate text, including any decorator lines.

    Raises:
        BadFunctionFormatError: If any part of the candidate is malformed.

    Returns:
        Function: The parsed function.
    """
    return Function(
        name=find_function_name(candidate),
        parameters=tuple(find_parameters(candidate)),
        return_type=find_return_type(candidate),
        throwing=find_throwing(candidate),
    )


def find_function_name(candidate: str) -> str:
    head = candidate.split("(")[0]
    if FUNCTION_KEYWORD not in head:
        raise BadFunctionFormatError(f"Missing '{FUNCTION_KEYWORD.strip()}' keyword: {candidate!r}")

    return head.split(FUNCTION_KEYWORD)[-1].strip()


def find_parameters(candidate: str) -> list[Parameter]:
    """Split the parameter list of a candidate into named and typed parameters.

    The `self` receiver is not part of the result.

    Args:
        candidate (str): The candidate text.

    Raises:
        BadFunctionFormatError: If the candidate is decorated, uses `*` or `/` markers, or a parameter
            is not of the form `name: type`.

    Returns:
        list[Parameter]: The parameters in declaration order.
    """
    if ATTRIBUTE_MARKER in candidate:
        raise BadFunctionFormatError(f"Decorated signatures are not supported: {candidate!r}")

    start = candidate.find("(")
    end = candidate.find(")", start)
    if start == -1 or end == -1:
        raise BadFunctionFormatError(f"Missing parameter list: {candidate!r}")

    inner = candidate[start + 1 : end]
    if "\n" in inner:
        raise BadFunctionFormatError(f"Parameter lists must fit on one line: {candidate!r}")

    inner = inner.strip()
    if any(marker in inner for marker in POSITIONAL_MARKERS):
        raise BadFunctionFormatError(f"Starred or positional-only parameters are not supported: {candidate!r}")

    if not inner:
        return []

    parts = inner.split(PARAMETER_SEPARATOR)
    if parts[0] == RECEIVER:
        parts = parts[1:]

    parameters: list[Parameter] = []
    for part in parts:
        subparts = part.split(ANNOTATION_SEPARATOR)
        if len(subparts) != 2:
            raise BadFunctionFormatError(f"Expected 'name: type', got {part!r}")

        name, type_ = subparts
        if not name.isidentifier() or not type_ or "=" in type_:
            raise BadFunctionFormatError(f"Expected 'name: type', got {part!r}")

        parameters.append(Parameter(name=name, type=type_))

    return parameters


def find_return_type(candidate: str) -> str | None:
    """The declared return type, or None if there is no arrow or the method returns `None`."""
    head = _signature_tail(candidate).partition(":")[0]
    if RETURN_ARROW not in head:
        return None

    return_type = head.split(RETURN_ARROW, 1)[1].strip()
    if not return_type:
        raise BadFunctionFormatError(f"Missing return type after '{RETURN_ARROW}': {candidate!r}")

    if return_type == "None":
        return None

    return return_type


def find_throwing(candidate: str) -> bool:
    """Whether the trailing comment of a candidate carries the `raises` marker."""
    body = _signature_tail(candidate).partition(":")[2]
    comment = body.partition("#")[2]
    return THROWING_MARKER in comment.split()


def _signature_tail(candidate: str) -> str:
    """Everything after the closing parenthesis of the parameter list."""
    end = candidate.find(")")
    if end == -1:
        raise BadFunctionFormatError(f"Missing parameter list: {candidate!r}")

    return candidate[end + 1 :]
