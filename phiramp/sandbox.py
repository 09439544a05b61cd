"""Resource limits and security policies enforced on plugins."""

from __future__ import annotations

import dataclasses
import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator

logger = logging.getLogger(__name__)

_TERMINATION_THRESHOLD = 10


class SecurityViolation(Exception):
    """Raised when a plugin exceeds a limit or breaks its security policy."""


def _to_millis(duration: float) -> int:
    return int(duration * 1000)


@dataclass
class ResourceLimits:
    """Upper bounds on what a plugin may consume."""

    max_memory: int = 256 * 1024 * 1024
    max_cpu_time_ms: int = 1000
    max_execution_time_ms: int = 5000
    max_open_files: int = 32
    max_network_connections: int = 8
    max_allocation_size: int = 16 * 1024 * 1024
    max_total_allocation: int = 128 * 1024 * 1024
    max_stack_size: int = 8 * 1024 * 1024


@dataclass
class ResourceUsage:
    """Running totals of a plugin's resource consumption.

    Durations passed to the ``record_*`` methods are in seconds.
    """

    memory_used: int = 0
    cpu_time_used_ms: int = 0
    execution_time_used_ms: int = 0
    open_files: int = 0
    network_connections: int = 0
    allocation_count: int = 0
    total_allocated: int = 0
    peak_memory: int = 0
    security_violations: int = 0
    last_violation_time: float | None = None

    def record_allocation(self, size: int) -> None:
        self.memory_used += size
        self.total_allocated += size
        self.allocation_count += 1
        self.peak_memory = max(self.peak_memory, self.memory_used)

    def record_deallocation(self, size: int) -> None:
        self.memory_used = self.memory_used - size if size <= self.memory_used else 0

    def record_cpu_time(self, duration: float) -> None:
        self.cpu_time_used_ms += _to_millis(duration)

    def record_execution_time(self, duration: float) -> None:
        self.execution_time_used_ms += _to_millis(duration)

    def record_security_violation(self) -> None:
        self.security_violations += 1
        self.last_violation_time = time.monotonic()

    def check_limits(self, limits: ResourceLimits) -> None:
        """Raise SecurityViolation for the first limit that is exceeded."""
        checks = (
            ("Memory limit exceeded", self.memory_used, limits.max_memory, " bytes"),
            ("CPU time limit exceeded", self.cpu_time_used_ms, limits.max_cpu_time_ms, " ms"),
            (
                "Execution time limit exceeded",
                self.execution_time_used_ms,
                limits.max_execution_time_ms,
                " ms",
            ),
            ("Open files limit exceeded", self.open_files, limits.max_open_files, ""),
            (
                "Network connections limit exceeded",
                self.network_connections,
                limits.max_network_connections,
                "",
            ),
            (
                "Total allocation limit exceeded",
                self.total_allocated,
                limits.max_total_allocation,
                " bytes",
            ),
        )
        for label, used, limit, unit in checks:
            if used > limit:
                raise SecurityViolation(f"{label}: {used} > {limit}{unit}")

    def reset(self) -> None:
        """Clear usage counters; security violations are kept."""
        self.memory_used = 0
        self.cpu_time_used_ms = 0
        self.execution_time_used_ms = 0
        self.open_files = 0
        self.network_connections = 0
        self.allocation_count = 0
        self.total_allocated = 0
        self.peak_memory = 0


@dataclass
class SecurityPolicy:
    """What a plugin is permitted to access."""

    allow_filesystem: bool = False
    allow_network: bool = False
    allow_subprocesses: bool = False
    allow_environment: bool = False
    allow_system_info: bool = False
    allowed_filesystem_paths: list[str] = field(default_factory=list)
    allowed_network_hosts: list[str] = field(default_factory=list)
    allowed_environment_vars: list[str] = field(default_factory=list)
    max_recursion_depth: int = 100
    enable_stack_protection: bool = True
    enable_memory_sandbox: bool = True

    @classmethod
    def restrictive(cls) -> SecurityPolicy:
        return cls()

    @classmethod
    def permissive(cls) -> SecurityPolicy:
        """A policy for trusted plugins."""
        return cls(
            allow_filesystem=True,
            allow_network=True,
            allow_subprocesses=False,
            allow_environment=True,
            allow_system_info=True,
            allowed_filesystem_paths=["/tmp"],
            allowed_network_hosts=["localhost", "127.0.0.1"],
            allowed_environment_vars=["PATH", "HOME"],
            max_recursion_depth=1000,
        )

    def is_filesystem_path_allowed(self, path: str) -> bool:
        if not self.allow_filesystem:
            return False
        if not self.allowed_filesystem_paths:
            return True
        return any(path.startswith(allowed) for allowed in self.allowed_filesystem_paths)

    def is_network_host_allowed(self, host: str) -> bool:
        if not self.allow_network:
            return False
        if not self.allowed_network_hosts:
            return True
        return host in self.allowed_network_hosts

    def is_environment_var_allowed(self, var: str) -> bool:
        if not self.allow_environment:
            return False
        if not self.allowed_environment_vars:
            return True
        return var in self.allowed_environment_vars


class Sandbox:
    """Tracks resource usage and enforces the policy of one plugin."""

    def __init__(
        self, plugin_name: str, limits: ResourceLimits, policy: SecurityPolicy
    ) -> None:
        self.plugin_name = plugin_name
        self.limits = limits
        self.policy = policy
        self._lock = threading.RLock()
        self._usage = ResourceUsage()
        self._operation_start: float | None = None
        self._active = False

    @property
    def is_active(self) -> bool:
        with self._lock:
            return self._active

    @property
    def resource_usage(self) -> ResourceUsage:
        """A copy of the current usage figures."""
        with self._lock:
            return dataclasses.replace(self._usage)

    @property
    def security_violations(self) -> int:
        with self._lock:
            return self._usage.security_violations

    def start_operation(self) -> None:
        with self._lock:
            if self._active:
                raise SecurityViolation("Another operation is already in progress")
            self._active = True
            self._operation_start = time.monotonic()

    def end_operation(self) -> None:
        """Finish the operation, record its duration and check limits."""
        with self._lock:
            if not self._active:
                raise SecurityViolation("No operation is in progress")
            if self._operation_start is not None:
                self._usage.record_execution_time(time.monotonic() - self._operation_start)
            self._active = False
            self._operation_start = None
            self.check_limits()

    @contextmanager
    def operation(self) -> Iterator[Sandbox]:
        """Run the enclosed block as one sandboxed operation."""
        self.start_operation()
        try:
            yield self
        finally:
            self.end_operation()

    def check_limits(self) -> None:
        with self._lock:
            self._usage.check_limits(self.limits)

    def record_allocation(self, size: int) -> None:
        if size > self.limits.max_allocation_size:
            raise SecurityViolation(
                f"Allocation size limit exceeded: {size} > "
                f"{self.limits.max_allocation_size} bytes"
            )
        with self._lock:
            self._usage.record_allocation(size)
            self._usage.check_limits(self.limits)

    def record_deallocation(self, size: int) -> None:
        with self._lock:
            self._usage.record_deallocation(size)

    def record_cpu_time(self, duration: float) -> None:
        """Add ``duration`` seconds of CPU time and check limits."""
        with self._lock:
            self._usage.record_cpu_time(duration)
            self._usage.check_limits(self.limits)

    def _deny(self, message: str) -> None:
        self.record_security_violation()
        raise SecurityViolation(message)

    def check_filesystem_access(self, path: str) -> None:
        if not self.policy.is_filesystem_path_allowed(path):
            self._deny(f"Filesystem access denied to path: {path}")

    def check_network_access(self, host: str) -> None:
        if not self.policy.is_network_host_allowed(host):
            self._deny(f"Network access denied to host: {host}")

    def check_environment_access(self, var: str) -> None:
        if not self.policy.is_environment_var_allowed(var):
            self._deny(f"Environment variable access denied: {var}")

    def check_subprocess_execution(self) -> None:
        if not self.policy.allow_subprocesses:
            self._deny("Subprocess execution not allowed")

    def check_system_info_access(self) -> None:
        if not self.policy.allow_system_info:
            self._deny("System information access not allowed")

    def check_recursion_depth(self, depth: int) -> None:
        if depth > self.policy.max_recursion_depth:
            self._deny(
                f"Recursion depth limit exceeded: {depth} > "
                f"{self.policy.max_recursion_depth}"
            )

    def record_security_violation(self) -> None:
        with self._lock:
            self._usage.record_security_violation()
            total = self._usage.security_violations
        logger.error(
            "Security violation recorded for plugin '%s' (total: %d)",
            self.plugin_name,
            total,
        )

    def reset_usage(self) -> None:
        with self._lock:
            self._usage.reset()

    def should_terminate(self) -> bool:
        """True once the plugin has accumulated too many violations."""
        return self.security_violations >= _TERMINATION_THRESHOLD


@dataclass
class SandboxManagerStats:
    total_sandboxes: int
    active_sandboxes: int
    total_violations: int
    total_memory_used: int


class SandboxManager:
    """Holds the sandboxes of all plugins."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._sandboxes: dict[str, Sandbox] = {}

    def create_sandbox(
        self, plugin_name: str, limits: ResourceLimits, policy: SecurityPolicy
    ) -> Sandbox:
        sandbox = Sandbox(plugin_name, limits, policy)
        with self._lock:
            self._sandboxes[plugin_name] = sandbox
        return sandbox

    def get_sandbox(self, plugin_name: str) -> Sandbox | None:
        with self._lock:
            return self._sandboxes.get(plugin_name)

    def remove_sandbox(self, plugin_name: str) -> None:
        with self._lock:
            self._sandboxes.pop(plugin_name, None)

    def get_all_sandboxes(self) -> list[Sandbox]:
        with self._lock:
            return list(self._sandboxes.values())

    def check_for_termination(self) -> list[str]:
        with self._lock:
            return [
                name for name, sandbox in self._sandboxes.items() if sandbox.should_terminate()
            ]

    def stats(self) -> SandboxManagerStats:
        sandboxes = self.get_all_sandboxes()
        usages = [sandbox.resource_usage for sandbox in sandboxes]
        return SandboxManagerStats(
            total_sandboxes=len(sandboxes),
            active_sandboxes=sum(1 for sandbox in sandboxes if sandbox.is_active),
            total_violations=sum(usage.security_violations for usage in usages),
            total_memory_used=sum(usage.memory_used for usage in usages),
        )