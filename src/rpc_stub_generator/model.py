"""The signature model that is shared by all writers."""

from __future__ import annotations

from dataclasses import dataclass, field

from rpc_stub_generator import helper


@dataclass(frozen=True)
class Parameter:
    """A single named and annotated parameter of an interface method.

    Attributes:
        name: The parameter name, as declared.
        type: The type expression, copied verbatim from the declaration.
    """

    name: str
    type: str

    @property
    def typed(self) -> str:
        """The parameter as it appears in a signature, e.g. `x: int`."""
        return f"{self.name}: {self.type}"


@dataclass(frozen=True)
class Function:
    """An exported method of the compiled interface.

    Attributes:
        name: The method name. It is also the case name in both tagged unions.
        parameters: The parameters in declaration order, without the `self` receiver.
        return_type: The declared return type, or None if the method returns nothing.
        throwing: Whether the declaration carries the `raises` marker.
    """

    name: str
    parameters: tuple[Parameter, ...] = field(default_factory=tuple)
    return_type: str | None = None
    throwing: bool = False

    @property
    def has_parameters(self) -> bool:
        return bool(self.parameters)

    @property
    def has_return(self) -> bool:
        return self.return_type is not None

    @property
    def container_name(self) -> str:
        """The name of the parameter container type, e.g. `GetValue` for `get_value`."""
        return helper.capitalize_name(self.name)


@dataclass(frozen=True)
class SignatureModel:
    """Everything the writers need to know about one compiled interface.

    Attributes:
        type_name: The name of the declared interface type.
        functions: The recovered functions, in declaration order.
        source_name: The file name of the declaration, only used for generated docstrings.
    """

    type_name: str
    functions: tuple[Function, ...]
    source_name: str = ""

    @property
    def module_base_name(self) -> str:
        """The snake_case stem shared by all generated modules."""
        return helper.snake_case(self.type_name)

    @property
    def messages_module(self) -> str:
        return f"{self.module_base_name}_messages"

    @property
    def client_module(self) -> str:
        return f"{self.module_base_name}_client"

    @property
    def server_module(self) -> str:
        return f"{self.module_base_name}_server"

    @property
    def request_name(self) -> str:
        return f"{self.type_name}Request"

    @property
    def response_name(self) -> str:
        return f"{self.type_name}Response"

    @property
    def client_name(self) -> str:
        return f"{self.type_name}Client"

    @property
    def server_name(self) -> str:
        return f"{self.type_name}Server"

    @property
    def handler_name(self) -> str:
        return f"{self.type_name}Handler"

    @property
    def containers(self) -> tuple[Function, ...]:
        """The functions that get a parameter container, in declaration order."""
        return tuple(function for function in self.functions if function.has_parameters)
