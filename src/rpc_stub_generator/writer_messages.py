"""Writer for the messages module: parameter containers and the request/response unions."""

from __future__ import annotations

from rpc_stub_generator import helper
from rpc_stub_generator.model import Function
from rpc_stub_generator.writer import RUNTIME_MODULE, Writer


class MessagesWriter(Writer):
    """Writes the parameter container types and the request and response tagged unions.

    For every function, in declaration order, the request union gets a case that carries the
    function's parameter container (or no payload for functions without parameters), and the
    response union gets a case that carries the declared return type (or no payload).
    """

    ARTIFACT = "messages"

    @property
    def module_name(self) -> str:
        return self.model.messages_module

    def generate(self):
        for function in self.model.containers:
            self.add_top_level_separator()
            self.gen_container(function)

        self.add_top_level_separator()
        self.gen_request_union()

        self.add_top_level_separator()
        self.gen_response_union()

    def gen_container(self, function: Function):
        """Generate the container that carries the arguments of one call.

        Fields keep the parameter names and types verbatim and in declaration order, so the
        keyword constructor takes the same arguments as the function itself.

        Args:
            function (Function): A function with at least one parameter.
        """
        assert function.has_parameters, f"'{function.name}' has no parameters and needs no container."

        self._add_from_import("pydantic", ["BaseModel", "ConfigDict"], "third_party")

        self.new_scope(
            function.container_name,
            helper.new_class_declaration(function.container_name, ["BaseModel"]),
        )
        self.scope.add(helper.new_docstring(f"Parameters of `{self.model.type_name}.{function.name}`."), "")
        self.scope.add('model_config = ConfigDict(frozen=True, ser_json_bytes="base64", val_json_bytes="base64")', "")

        for parameter in function.parameters:
            self.scope.add(parameter.typed)

        self.return_from_scope()

    def gen_request_union(self):
        """Generate the union of all requests, with one case per function."""
        cases = [self._request_case(function) for function in self.model.functions]
        self._gen_union(self.model.request_name, f"Requests sent by `{self.model.client_name}`.", cases)

    def gen_response_union(self):
        """Generate the union of all responses, with one case per function."""
        cases = [self._response_case(function) for function in self.model.functions]
        self._gen_union(self.model.response_name, f"Responses sent by `{self.model.server_name}`.", cases)

    def _gen_union(self, name: str, docstring: str, cases: list[str]):
        self._add_from_import(RUNTIME_MODULE, ["TaggedUnion"], "runtime")

        self.new_scope(name, helper.new_class_declaration(name, ["TaggedUnion"]))
        self.scope.add(helper.new_docstring(docstring), "")
        self.scope.add(*cases)
        self.return_from_scope()

    @staticmethod
    def _request_case(function: Function) -> str:
        if function.has_parameters:
            return f"{function.name}: {function.container_name} | None = None"

        return f"{function.name}: None = None"

    @staticmethod
    def _response_case(function: Function) -> str:
        if function.return_type is not None:
            return f"{function.name}: {function.return_type} | None = None"

        return f"{function.name}: None = None"
