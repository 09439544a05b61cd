"""Plugin runtime environment; modules are recorded and instances track their lifecycle."""

from __future__ import annotations

import enum
import os
from pathlib import Path


class InstanceState(enum.Enum):
    """Lifecycle stage of a plugin instance."""

    CREATED = "created"
    INITIALIZED = "initialized"
    RUNNING = "running"
    STOPPED = "stopped"
    CLEANED_UP = "cleaned_up"


class PluginInstance:
    """An instantiated plugin module.

    Entry points never fail; the instance records which stage of its
    lifecycle it has reached and which functions were called on it.
    """

    def __init__(self, module_path: str | os.PathLike[str] | None = None) -> None:
        self.module_path = Path(module_path) if module_path is not None else None
        self.state = InstanceState.CREATED
        self.calls: list[tuple[str, bytes]] = []

    async def initialize(self) -> None:
        self.state = InstanceState.INITIALIZED

    async def start(self) -> None:
        self.state = InstanceState.RUNNING

    async def stop(self) -> None:
        self.state = InstanceState.STOPPED

    async def call(self, name: str, args: bytes) -> bytes:
        """Call a plugin function; the call is recorded and produces no output."""
        self.calls.append((name, bytes(args)))
        return b""

    async def cleanup(self) -> None:
        self.calls.clear()
        self.state = InstanceState.CLEANED_UP


class WasmRuntime:
    """Loads and instantiates plugin modules."""

    def __init__(self) -> None:
        self.loaded_modules: list[Path] = []

    def load_module(self, path: str | os.PathLike[str]) -> None:
        """Record a module as loaded; loading the same path twice keeps one entry."""
        module = Path(path)
        if module not in self.loaded_modules:
            self.loaded_modules.append(module)

    def instantiate_plugin(self, module_path: str | os.PathLike[str]) -> PluginInstance:
        return PluginInstance(module_path)