"""Generate message, client and server modules for request/response interfaces declared in Python stubs."""
