"""Writer for the server module."""

from __future__ import annotations

from rpc_stub_generator import helper
from rpc_stub_generator.model import Function
from rpc_stub_generator.writer import RUNTIME_MODULE, Writer


class ServerWriter(Writer):
    """Writes the handler protocol and a threaded server that dispatches requests to a handler.

    The server runs one accept loop thread, and one more thread per accepted connection. A single
    `threading.Event` tells the loops whether the server is still running.
    """

    ARTIFACT = "server"

    @property
    def module_name(self) -> str:
        return self.model.server_module

    def generate(self):
        self._add_import("import logging")
        self._add_import("import threading")
        self._add_from_import(RUNTIME_MODULE, ["Connection", "Listener", "ReadFailed", "RpcError", "WriteFailed"], "runtime")
        self._add_from_import(
            f".{self.model.messages_module}", [self.model.request_name, self.model.response_name], "local"
        )

        self.add_top_level_separator()
        self.scope.add("logger = logging.getLogger(__name__)")

        self.add_top_level_separator()
        self.gen_handler_protocol()

        self.add_top_level_separator()
        self.gen_server_class()

    def gen_handler_protocol(self):
        """Generate the protocol that a handler has to satisfy: one method per function."""
        self._add_typing_import("Protocol")

        handler_name = self.model.handler_name
        self.new_scope(handler_name, helper.new_class_declaration(handler_name, ["Protocol"]))
        self.scope.add(
            helper.new_docstring(f"The functions of `{self.model.type_name}` that a `{self.model.server_name}` calls.")
        )

        for function in self.model.functions:
            parameters = ["self"] + [parameter.typed for parameter in function.parameters]
            self.scope.add("", helper.new_function(function.name, parameters, function.return_type, body="..."))

        self.return_from_scope()

    def gen_server_class(self):
        server_name = self.model.server_name

        self.new_scope(server_name, helper.new_class_declaration(server_name))
        self.scope.add(f'"""Serves `{self.model.type_name}` requests from every connection accepted by a listener.')
        self.scope.add("")
        self.scope.add("The accept loop starts right away and runs in a daemon thread. Every accepted connection")
        self.scope.add("is served by a daemon thread of its own, one request after the other.")
        self.scope.add('"""')
        self.scope.add("")

        self._gen_init()
        self.scope.add("")
        self._gen_running()
        self.scope.add("")
        self._gen_shutdown()
        self.scope.add("")
        self._gen_accept_loop()
        self.scope.add("")
        self._gen_handle_connection()
        self.scope.add("")
        self._gen_serve_request()
        self.scope.add("")
        self._gen_reply()

        self.return_from_scope()

    def _gen_init(self):
        server_name = self.model.server_name
        parameters = ["self", "listener: Listener", f"handler: {self.model.handler_name}"]

        self.new_scope("__init__", helper.new_function("__init__", parameters))
        self.scope.add("self.listener = listener")
        self.scope.add("self.handler = handler")
        self.scope.add("")
        self.scope.add("self._running = threading.Event()")
        self.scope.add("self._running.set()")
        self.scope.add("")
        self.scope.add(
            "self._accept_thread = threading.Thread("
            f'target=self._accept_loop, name="{server_name}-accept", daemon=True)'
        )
        self.scope.add("self._accept_thread.start()")
        self.return_from_scope()

    def _gen_running(self):
        self.scope.add("@property")
        self.new_scope("running", helper.new_function("running", ["self"], "bool"))
        self.scope.add("return self._running.is_set()")
        self.return_from_scope()

    def _gen_shutdown(self):
        self.new_scope("shutdown", helper.new_function("shutdown", ["self"]))
        self.scope.add(
            helper.new_docstring("Stop accepting new connections. Connections that are being served stay open.")
        )
        self.scope.add("self._running.clear()")
        self.return_from_scope()

    def _gen_accept_loop(self):
        server_name = self.model.server_name

        self.new_scope("_accept_loop", helper.new_function("_accept_loop", ["self"]))
        self.scope.add("while self._running.is_set():")
        self.scope.add("    try:")
        self.scope.add("        connection = self.listener.accept()")
        self.scope.add("    except Exception:")
        self.scope.add(f'        logger.exception("{server_name} failed to accept a connection and stops accepting.")')
        self.scope.add("        self._running.clear()")
        self.scope.add("        return")
        self.scope.add("")
        self.scope.add("    threading.Thread(")
        self.scope.add(
            f'        target=self._handle_connection, args=(connection,), name="{server_name}-connection", daemon=True'
        )
        self.scope.add("    ).start()")
        self.return_from_scope()

    def _gen_handle_connection(self):
        server_name = self.model.server_name

        self.new_scope("_handle_connection", helper.new_function("_handle_connection", ["self", "connection: Connection"]))
        self.scope.add("try:")
        self.scope.add("    while self._running.is_set():")
        self.scope.add("        try:")
        self.scope.add("            self._serve_request(connection)")
        self.scope.add("        except RpcError as error:")
        self.scope.add(f'            logger.error(f"{server_name} dropped a connection: {{error}}")')
        self.scope.add("            return")
        self.scope.add("        except Exception:")
        self.scope.add(f'            logger.exception("{server_name} dropped a connection.")')
        self.scope.add("            return")
        self.scope.add("finally:")
        self.scope.add("    connection.close()")
        self.return_from_scope()

    def _gen_serve_request(self):
        """Generate the method that reads one request, dispatches it, and writes the response."""
        self.new_scope("_serve_request", helper.new_function("_serve_request", ["self", "connection: Connection"]))
        self.scope.add("request_data = connection.read_framed()")
        self.scope.add("if request_data is None:")
        self.scope.add('    raise ReadFailed("Failed to read a request.")')
        self.scope.add("")
        self.scope.add(f"request = {self.model.request_name}.from_bytes(request_data)")

        self.new_scope("match", "match request.which():")
        for function in self.model.functions:
            self.gen_dispatch_case(function)
        self.return_from_scope()

        self.return_from_scope()

    def gen_dispatch_case(self, function: Function):
        """Generate the match case that calls the handler for `function` and replies.

        Args:
            function (Function): The function to dispatch.
        """
        self.new_scope("case", f'case "{function.name}":')

        if function.has_parameters:
            self.scope.add(f"value = request.{function.name}")
            arguments = helper.new_keyword_arguments([parameter.name for parameter in function.parameters], "value")
        else:
            arguments = ""

        call = f"self.handler.{function.name}({arguments})"
        if function.has_return:
            self.scope.add(f"result = {call}")
            self.scope.add(f"self._reply(connection, {self.model.response_name}({function.name}=result))")
        else:
            self.scope.add(call)
            self.scope.add(f"self._reply(connection, {self.model.response_name}({function.name}=None))")

        self.return_from_scope()

    def _gen_reply(self):
        parameters = ["self", "connection: Connection", f"response: {self.model.response_name}"]

        self.new_scope("_reply", helper.new_function("_reply", parameters))
        self.scope.add("if not connection.write_framed(response.to_bytes()):")
        self.scope.add('    raise WriteFailed(f"Failed to write the \'{response.which()}\' response.")')
        self.return_from_scope()
