"""Plugin metrics and health monitoring, resource sandboxes, a placeholder plugin runtime and server administration commands."""

__version__ = "0.1.0"
__all__ = ["commands_help", "monitoring", "sandbox", "server_commands", "wasm_runtime"]