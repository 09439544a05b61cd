# phiramp

Building blocks for the plugin side of a multiplayer rhythm game server:
plugin metrics and health monitoring, per-plugin resource sandboxes, a
placeholder plugin runtime, and the set of server administration commands.
The package has no dependencies outside the standard library.

## Installation

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Modules

### `phiramp.monitoring`

Tracks per-plugin metrics and derives a health status from them.

```python
from phiramp.monitoring import MetricsCollector, HealthMonitor, HealthThresholds

collector = MetricsCollector(max_history_size=10, aggregation_interval=1.0)
metrics = collector.register_plugin("example")
metrics.update_memory_usage(150 * 1024 * 1024)

monitor = HealthMonitor(HealthThresholds(), collector, max_status_history=100)
print(monitor.get_plugin_health("example"))  # warning
```

- `PluginMetrics` keeps an exponential moving average of request latency and a
  running error rate. Durations are given in seconds; `to_json()` returns a
  plain dict.
- `MetricsCollector.register_plugin()` returns the live `PluginMetrics` object;
  `get_plugin_metrics()` and `get_all_metrics()` return copies.
- `collect_metrics()` takes a snapshot into a bounded history once
  `aggregation_interval` seconds have passed, and pushes the current metrics
  into every queue handed out by `subscribe()` (a `queue.Queue` holding up to
  100 items; full queues drop new items).
- `get_aggregated_metrics(window)` builds `AggregatedMetrics` per plugin over
  the whole history; the `window` argument is accepted but not applied.
- `HealthStatus.from_metrics()` classifies metrics against `HealthThresholds`
  (memory, CPU, error rate, latency) as `HEALTHY`, `WARNING` or `CRITICAL`;
  `HealthMonitor` returns `UNKNOWN` for untracked plugins and keeps a bounded
  history of checks.

### `phiramp.sandbox`

Resource limits and security policies for plugins. Every refusal raises
`SecurityViolation`.

```python
from phiramp.sandbox import Sandbox, ResourceLimits, SecurityPolicy, SecurityViolation

sandbox = Sandbox("example", ResourceLimits(), SecurityPolicy.restrictive())
with sandbox.operation():
    sandbox.record_allocation(1024)

try:
    sandbox.check_filesystem_access("/etc/passwd")
except SecurityViolation as err:
    print(err)  # Filesystem access denied to path: /etc/passwd
```

- `ResourceLimits` and `ResourceUsage` hold limits and running totals;
  `ResourceUsage.check_limits()` raises for the first exceeded limit.
- `SecurityPolicy.restrictive()` denies everything; `SecurityPolicy.permissive()`
  allows `/tmp`, `localhost`/`127.0.0.1` and the `PATH`/`HOME` variables.
- Each denied access check on a `Sandbox` counts as a security violation;
  `should_terminate()` becomes true after 10 of them.
- `SandboxManager` holds sandboxes for many plugins, lists those to terminate
  with `check_for_termination()` and sums usage in `stats()`.

### `phiramp.wasm_runtime`

`WasmRuntime` records loaded module paths and creates `PluginInstance`
objects. An instance goes through the lifecycle `initialize`, `start`, `stop`,
`cleanup` (all coroutines), tracking its stage in an `InstanceState`; `call()`
records the function name and arguments and returns empty bytes. No module
code is executed.

### `phiramp.server_commands` and `phiramp.commands_help`

`ServerCommands` parses and validates administration commands such as
`kick`, `banid`, `createroom` or `broadcastall` (each also under a Chinese
alias) and forwards them to a host API object you supply, which must provide
the matching methods (`kick_user`, `ban_user_by_id`, `create_room`, ...).
`execute(command, args)` dispatches by exact name and returns the reply text;
unknown commands and bad input raise `CommandError`.

```python
from phiramp.server_commands import ServerCommands

commands = ServerCommands(host_api)
print(commands.execute("help", []))
print(commands.execute("kick", ["123"]))
```

`phiramp.commands_help.help_text(args)` returns the command overview, or the
usage of one command when its name is given. `is_valid_ip()` is the loose
IPv4/IPv6 check used by the IP-based commands.

## What this package does not do

There is no game server here: no network listener, no sessions, rooms or
authentication, and no command-line program. No host API implementation is
included, so `ServerCommands` only works with an object you provide. Plugins
are not discovered, loaded or executed; `WasmRuntime` and `PluginInstance`
only track lifecycle state.