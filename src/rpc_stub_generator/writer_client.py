"""Writer for the client module."""

from __future__ import annotations

from rpc_stub_generator import helper
from rpc_stub_generator.model import Function
from rpc_stub_generator.writer import RUNTIME_MODULE, Writer


class ClientWriter(Writer):
    """Writes a client class with one method per function.

    Each method sends exactly one request frame and waits for exactly one response frame.
    """

    ARTIFACT = "client"

    @property
    def module_name(self) -> str:
        return self.model.client_module

    @property
    def checks_response_case(self) -> bool:
        """Whether a response can answer another function than the one that was called.

        With a single function, a correctly generated server cannot send any other case.
        """
        return len(self.model.functions) > 1

    def generate(self):
        self._add_from_import(RUNTIME_MODULE, ["Connection", "ReadFailed", "WriteFailed"], "runtime")
        message_names = [self.model.request_name, self.model.response_name]
        message_names.extend(function.container_name for function in self.model.containers)
        self._add_from_import(f".{self.model.messages_module}", message_names, "local")

        client_name = self.model.client_name

        self.add_top_level_separator()
        self.new_scope(client_name, helper.new_class_declaration(client_name))
        self.scope.add(
            helper.new_docstring(
                f"Client of the `{self.model.type_name}` interface. Every call is one request/response round trip."
            ),
            "",
        )

        self.new_scope("__init__", helper.new_function("__init__", ["self", "connection: Connection"]))
        self.scope.add("self._connection = connection")
        self.return_from_scope()

        for function in self.model.functions:
            self.scope.add("")
            self.gen_method(function)

        self.return_from_scope()

    def gen_method(self, function: Function):
        """Generate the client method that calls `function` on the server.

        Args:
            function (Function): The function to call.
        """
        parameters = ["self"] + [parameter.typed for parameter in function.parameters]
        self.new_scope(function.name, helper.new_function(function.name, parameters, function.return_type))

        self.scope.add(helper.new_docstring(f"Call `{function.name}` on the server."), "")
        self.scope.add(f"message = {self._request_expression(function)}")
        self.scope.add("data = message.to_bytes()")
        self.scope.add("if not self._connection.write_framed(data):")
        self.scope.add(f"    raise WriteFailed(\"Failed to write the '{function.name}' request.\")")
        self.scope.add("")
        self.scope.add("response_data = self._connection.read_framed()")
        self.scope.add("if response_data is None:")
        self.scope.add(f"    raise ReadFailed(\"Failed to read the '{function.name}' response.\")")
        self.scope.add("")
        self.scope.add(f"response = {self.model.response_name}.from_bytes(response_data)")
        self.gen_response_match(function)

        self.return_from_scope()

    def gen_response_match(self, function: Function):
        """Generate the match that unwraps the response to `function`.

        Args:
            function (Function): The function that was called.
        """
        self.new_scope("match", "match response.which():")

        self.new_scope("case", f'case "{function.name}":')
        if function.has_return:
            self.scope.add(f"return response.{function.name}")
        else:
            self.scope.add("return")
        self.return_from_scope()

        if self.checks_response_case:
            self._add_from_import(RUNTIME_MODULE, ["BadReturnType"], "runtime")

            self.new_scope("case", "case other:")
            self.scope.add(f"raise BadReturnType(f\"Expected a '{function.name}' response, got '{{other}}'.\")")
            self.return_from_scope()

        self.return_from_scope()

    def _request_expression(self, function: Function) -> str:
        """The expression that builds the request for a call of `function`."""
        if not function.has_parameters:
            return f"{self.model.request_name}({function.name}=None)"

        arguments = helper.new_keyword_arguments([parameter.name for parameter in function.parameters])
        return f"{self.model.request_name}({function.name}={function.container_name}({arguments}))"

