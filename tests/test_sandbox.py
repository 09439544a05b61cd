import time

import pytest

from phiramp.sandbox import (
    ResourceLimits,
    ResourceUsage,
    Sandbox,
    SandboxManager,
    SecurityPolicy,
    SecurityViolation,
)


def _small_limits():
    return ResourceLimits(
        max_memory=1000,
        max_cpu_time_ms=100,
        max_execution_time_ms=1000,
        max_open_files=10,
        max_network_connections=5,
        max_allocation_size=100,
        max_total_allocation=500,
        max_stack_size=1000,
    )


def _sandbox(limits=None, policy=None):
    return Sandbox("test_plugin", limits or ResourceLimits(), policy or SecurityPolicy())


def test_resource_limits():
    usage = ResourceUsage()
    usage.record_allocation(600)
    with pytest.raises(SecurityViolation, match="Total allocation limit exceeded: 600 > 500 bytes"):
        usage.check_limits(_small_limits())


def test_sandbox_operation():
    sandbox = _sandbox()
    sandbox.start_operation()
    assert sandbox.is_active
    with pytest.raises(SecurityViolation):
        sandbox.start_operation()
    time.sleep(0.01)
    sandbox.end_operation()
    assert not sandbox.is_active
    with pytest.raises(SecurityViolation):
        sandbox.end_operation()


def test_security_policy():
    policy = SecurityPolicy(allow_filesystem=True, allowed_filesystem_paths=["/tmp", "/home"])
    assert policy.is_filesystem_path_allowed("/tmp/file.txt")
    assert policy.is_filesystem_path_allowed("/home/user/doc.txt")
    assert not policy.is_filesystem_path_allowed("/etc/passwd")
    assert not SecurityPolicy.restrictive().is_filesystem_path_allowed("/tmp/file.txt")


def test_defaults():
    limits = ResourceLimits()
    assert limits.max_memory == 256 * 1024 * 1024
    assert limits.max_open_files == 32
    policy = SecurityPolicy()
    assert policy.max_recursion_depth == 100
    assert not policy.allow_network


def test_allocation_tracks_peak_and_deallocation_floors_at_zero():
    usage = ResourceUsage()
    usage.record_allocation(300)
    usage.record_allocation(200)
    usage.record_deallocation(400)
    assert usage.memory_used == 100
    assert usage.peak_memory == 500
    assert usage.allocation_count == 2
    usage.record_deallocation(1000)
    assert usage.memory_used == 0
    assert usage.total_allocated == 500


def test_time_recording_in_milliseconds():
    usage = ResourceUsage()
    usage.record_cpu_time(0.25)
    usage.record_execution_time(1.5)
    assert usage.cpu_time_used_ms == 250
    assert usage.execution_time_used_ms == 1500


def test_reset_keeps_violations():
    usage = ResourceUsage()
    usage.record_allocation(10)
    usage.record_security_violation()
    usage.reset()
    assert usage.memory_used == 0
    assert usage.total_allocated == 0
    assert usage.security_violations == 1
    assert usage.last_violation_time is not None and usage.last_violation_time > 0


def test_permissive_policy():
    policy = SecurityPolicy.permissive()
    assert policy.is_network_host_allowed("localhost")
    assert not policy.is_network_host_allowed("example.com")
    assert policy.is_environment_var_allowed("HOME")
    assert not policy.is_environment_var_allowed("SHELL")
    assert not policy.allow_subprocesses


def test_empty_allow_lists_allow_everything_when_enabled():
    policy = SecurityPolicy(allow_filesystem=True, allow_network=True, allow_environment=True)
    assert policy.is_filesystem_path_allowed("/anything")
    assert policy.is_network_host_allowed("example.com")
    assert policy.is_environment_var_allowed("ANY")


def test_allocation_size_limit_is_not_recorded():
    sandbox = _sandbox(limits=_small_limits())
    with pytest.raises(SecurityViolation, match="Allocation size limit exceeded"):
        sandbox.record_allocation(101)
    assert sandbox.resource_usage.allocation_count == 0


def test_allocation_exceeding_total_raises():
    sandbox = _sandbox(limits=_small_limits())
    for _ in range(5):
        sandbox.record_allocation(100)
    with pytest.raises(SecurityViolation, match="Total allocation"):
        sandbox.record_allocation(100)


def test_cpu_time_limit():
    sandbox = _sandbox(limits=_small_limits())
    sandbox.record_cpu_time(0.05)
    with pytest.raises(SecurityViolation, match="CPU time limit exceeded"):
        sandbox.record_cpu_time(0.06)


def test_end_operation_checks_execution_time():
    limits = ResourceLimits(max_execution_time_ms=0)
    sandbox = _sandbox(limits=limits)
    with pytest.raises(SecurityViolation, match="Execution time limit exceeded"):
        with sandbox.operation():
            time.sleep(0.01)
    assert not sandbox.is_active


def test_operation_context_manager():
    sandbox = _sandbox()
    with sandbox.operation() as inside:
        assert inside.is_active
    assert not sandbox.is_active


def test_denied_access_records_violation():
    sandbox = _sandbox()
    with pytest.raises(SecurityViolation, match="Filesystem access denied to path: /etc"):
        sandbox.check_filesystem_access("/etc")
    with pytest.raises(SecurityViolation, match="Network access denied"):
        sandbox.check_network_access("localhost")
    with pytest.raises(SecurityViolation, match="Environment variable access denied"):
        sandbox.check_environment_access("PATH")
    with pytest.raises(SecurityViolation, match="Subprocess execution not allowed"):
        sandbox.check_subprocess_execution()
    with pytest.raises(SecurityViolation, match="System information access not allowed"):
        sandbox.check_system_info_access()
    assert sandbox.security_violations == 5


def test_recursion_depth():
    sandbox = _sandbox()
    sandbox.check_recursion_depth(100)
    assert sandbox.security_violations == 0
    with pytest.raises(SecurityViolation, match="Recursion depth limit exceeded: 101 > 100"):
        sandbox.check_recursion_depth(101)
    assert sandbox.security_violations == 1


def test_should_terminate_after_ten_violations():
    sandbox = _sandbox()
    for _ in range(9):
        sandbox.record_security_violation()
    assert not sandbox.should_terminate()
    sandbox.record_security_violation()
    assert sandbox.should_terminate()


def test_reset_usage():
    sandbox = _sandbox()
    sandbox.record_allocation(1024)
    sandbox.reset_usage()
    assert sandbox.resource_usage.memory_used == 0


def test_manager_lifecycle_and_stats():
    manager = SandboxManager()
    first = manager.create_sandbox("a", ResourceLimits(), SecurityPolicy())
    second = manager.create_sandbox("b", ResourceLimits(), SecurityPolicy())
    assert manager.get_sandbox("a") is first
    first.record_allocation(100)
    second.record_allocation(50)
    second.start_operation()
    for _ in range(10):
        first.record_security_violation()
    assert manager.check_for_termination() == ["a"]
    stats = manager.stats()
    assert stats.total_sandboxes == 2
    assert stats.active_sandboxes == 1
    assert stats.total_violations == 10
    assert stats.total_memory_used == 150
    manager.remove_sandbox("a")
    assert manager.get_sandbox("a") is None
    assert manager.get_all_sandboxes() == [second]