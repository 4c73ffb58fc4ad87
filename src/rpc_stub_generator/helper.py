"""Helper functionality that is used in other modules of this package."""

from __future__ import annotations

import re
from collections.abc import Sequence

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")
_UNDERSCORE_LETTER = re.compile(r"_+([A-Za-z0-9])")


def capitalize_name(name: str) -> str:
    """Turn a function name into the name of its parameter container type.

    The first letter is upper-cased and every underscore is dropped, upper-casing the character that follows it.

    Args:
        name (str): The function name.

    Returns:
        str: The container type name.

    Examples:
        >>> capitalize_name("add")
        'Add'
        >>> capitalize_name("get_value")
        'GetValue'
        >>> capitalize_name("getValue")
        'GetValue'
    """
    joined = _UNDERSCORE_LETTER.sub(lambda match: match.group(1).upper(), name)
    return joined[:1].upper() + joined[1:]


def snake_case(name: str) -> str:
    """Convert a CamelCase type name into a snake_case module name.

    For example, `Echo` becomes `echo` and `HTTPCache` becomes `http_cache`.

    Args:
        name (str): The type name.

    Returns:
        str: The snake_case variant.
    """
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def join_parameters(parameters: Sequence[str] | None) -> str:
    """Joins parameters by means of ', '.

    Args:
        parameters (Sequence[str] | None): The parameters to join.

    Returns:
        str: The joined parameters.
    """
    if parameters:
        return ", ".join(str(p) for p in parameters if p)

    else:
        return ""


def new_function(
    name: str,
    parameters: Sequence[str] | None = None,
    return_type: str | None = None,
    body: str = "",
) -> str:
    """Create the header line of a function.

    Args:
        name (str): The function name.
        parameters (Sequence[str] | None, optional): The function parameters, if any. Defaults to None.
        return_type (str | None, optional): The function's return type. Defaults to None.
        body (str, optional): An inline body, such as `...` for protocol members. Defaults to "".

    Returns:
        str: The function header.
    """
    if return_type is None:
        return_type = "None"

    arguments = join_parameters(parameters)
    header = f"def {name}({arguments}) -> {return_type}:"

    if body:
        return f"{header} {body}"

    return header


def new_class_declaration(name: str, parameters: Sequence[str] | None = None) -> str:
    """Creates a string for declaring a class.

    For example, for a name of 'SomeClass' and a list of parameters that is 'BaseModel', the output
    will be 'class SomeClass(BaseModel):'.

    If no parameters are provided, the output is just 'class SomeClass:'.

    Args:
        name (str): The class name.
        parameters (Sequence[str] | None, optional):
            A list of parameters that are part of the class declaration. Defaults to None.

    Returns:
        str: The class declaration.
    """
    if parameters:
        return f"class {name}({join_parameters(parameters)}):"
    else:
        return f"class {name}:"


def new_docstring(text: str) -> str:
    """Wrap a single line of text into a docstring."""
    return f'"""{text}"""'


def new_keyword_arguments(names: Sequence[str], source: str = "") -> str:
    """Create a keyword argument list that forwards same-named values.

    Args:
        names (Sequence[str]): The argument names, in call order.
        source (str, optional): An object to read the values from. If empty, the values are read
            from same-named local variables. Defaults to "".

    Returns:
        str: The argument list, e.g. `x=x, y=y` or `x=value.x, y=value.y`.
    """
    prefix = f"{source}." if source else ""
    return join_parameters([f"{name}={prefix}{name}" for name in names])
