import json

import pytest

from phiramp.commands_help import CommandError
from phiramp.server_commands import ServerCommands, is_valid_ip


class FakeHost:
    """Records every host call and answers from a table of responses."""

    def __init__(self, **responses):
        self.calls = []
        self.responses = responses

    def __getattr__(self, name):
        if name.startswith("_"):
            raise AttributeError(name)

        def method(*args):
            self.calls.append((name, args))
            response = self.responses.get(name)
            if isinstance(response, Exception):
                raise response
            return response

        return method


@pytest.fixture
def host():
    return FakeHost()


@pytest.fixture
def commands(host):
    return ServerCommands(host)


def test_is_valid_ip_cases_from_source():
    assert is_valid_ip("192.168.1.1")
    assert is_valid_ip("127.0.0.1")
    assert is_valid_ip("255.255.255.255")
    assert not is_valid_ip("256.0.0.1")
    assert not is_valid_ip("192.168.1")
    assert not is_valid_ip("192.168.1.1.1")


def test_is_valid_ip_ipv6_and_garbage():
    assert is_valid_ip("::1")
    assert is_valid_ip("fe80::abcd:1")
    assert not is_valid_ip("fe80::zzzz")
    assert not is_valid_ip("12345::1")
    assert not is_valid_ip("localhost")


def test_help_without_args_lists_commands(commands):
    text = commands.help([])
    assert text.startswith("可用的服务器命令:")
    assert "/kick <用户ID>" in text


def test_help_for_command_and_unknown(commands):
    assert commands.help(["kick"]) == "踢出用户命令\n用法: /kick <用户ID>\n示例: /kick 123"
    with pytest.raises(CommandError, match="未知命令: nope"):
        commands.help(["nope"])


def test_kick_user(commands, host):
    assert commands.kick_user(["123"]) == "用户 123 已被踢出"
    assert host.calls == [("kick_user", (123,))]


@pytest.mark.parametrize("bad", ["abc", "-1", "4294967296", " 1", ""])
def test_kick_user_invalid_id(commands, host, bad):
    with pytest.raises(CommandError, match="无效的用户ID"):
        commands.kick_user([bad])
    assert host.calls == []


def test_kick_user_wrong_arg_count(commands):
    with pytest.raises(CommandError, match="用法: /kick <用户ID>"):
        commands.kick_user([])


def test_ban_user_by_id_joins_reason(commands, host):
    assert commands.ban_user_by_id(["7", "bad", "play"]) == "用户 7 已被封禁，原因: bad play"
    assert host.calls == [("ban_user_by_id", (7, "bad play"))]


def test_ban_user_by_ip_rejects_invalid_ip(commands, host):
    with pytest.raises(CommandError, match="无效的IP地址"):
        commands.ban_user_by_ip(["300.1.1.1", "spam"])
    assert host.calls == []


def test_room_ban_by_ip_checks_room_id_before_ip(commands):
    with pytest.raises(CommandError, match="无效的房间ID"):
        commands.ban_user_from_room_by_ip(["bad-ip", "x"])
    with pytest.raises(CommandError, match="无效的IP地址"):
        commands.ban_user_from_room_by_ip(["bad-ip", "1"])


def test_user_playtime_formatting():
    commands = ServerCommands(FakeHost(get_user_playtime=3725))
    assert commands.get_user_playtime(["5"]) == "用户 5 的游玩时间: 1小时2分钟5秒"


def test_playtime_leaderboard_default_limit():
    host = FakeHost(get_playtime_leaderboard=[{"id": 1, "time": 10}])
    commands = ServerCommands(host)
    out = commands.get_playtime_leaderboard([])
    assert host.calls == [("get_playtime_leaderboard", (10,))]
    assert json.loads(out) == [{"id": 1, "time": 10}]
    with pytest.raises(CommandError, match="无效的数量"):
        commands.get_playtime_leaderboard(["many"])


def test_json_output_is_pretty():
    commands = ServerCommands(FakeHost(get_online_user_ids=[1, 2]))
    assert commands.get_online_user_ids([]) == "[\n  1,\n  2\n]"


def test_unserialisable_result_raises():
    commands = ServerCommands(FakeHost(get_room_list={1, 2}))
    with pytest.raises(CommandError, match="序列化失败"):
        commands.get_room_list([])


@pytest.mark.parametrize("value", ["0", "101"])
def test_create_room_range(commands, value):
    with pytest.raises(CommandError, match="最大人数必须在1-100之间"):
        commands.create_room([value])


def test_create_room_reports_room_id():
    host = FakeHost(create_room=42)
    assert ServerCommands(host).create_room(["4"]) == "创建房间 42，最大人数: 4"
    assert host.calls == [("create_room", (4,))]


@pytest.mark.parametrize(
    "word, locked, label",
    [("是", True, "锁定"), ("YES", True, "锁定"), ("0", False, "未锁定"), ("否", False, "未锁定")],
)
def test_set_room_lock(commands, host, word, locked, label):
    assert commands.set_room_lock(["3", word]) == f"房间 3 锁定状态设置为 {label}"
    assert host.calls == [("set_room_lock", (3, locked))]


def test_set_room_lock_invalid_choice(commands):
    with pytest.raises(CommandError, match="锁定状态必须是"):
        commands.set_room_lock(["3", "maybe"])


def test_checkban_messages():
    banned = ServerCommands(FakeHost(is_user_banned_by_id=True))
    free = ServerCommands(FakeHost(is_user_banned_by_id=False))
    assert banned.is_user_banned_by_id(["9"]) == "用户 9 已被封禁"
    assert free.is_user_banned_by_id(["9"]) == "用户 9 未被封禁"


def test_broadcast_requires_message(commands, host):
    with pytest.raises(CommandError, match="用法: /broadcastall <消息>"):
        commands.broadcast_message_to_all([])
    assert commands.broadcast_message_to_all(["hello", "all"]) == "消息已广播给所有用户"
    assert host.calls == [("broadcast_message_to_all", ("hello all",))]


def test_execute_english_and_chinese_aliases(commands, host):
    assert commands.execute("kick", ["1"]) == "用户 1 已被踢出"
    assert commands.execute("踢出", ["2"]) == "用户 2 已被踢出"
    assert host.calls == [("kick_user", (1,)), ("kick_user", (2,))]


def test_execute_unknown_command(commands):
    with pytest.raises(CommandError, match="未知命令: fly"):
        commands.execute("fly", [])


def test_execute_help(commands):
    assert commands.execute("帮助", ["rooms"]) == "获取房间列表\n用法: /rooms"


def test_host_errors_propagate():
    commands = ServerCommands(FakeHost(disband_room=RuntimeError("no such room")))
    with pytest.raises(RuntimeError, match="no such room"):
        commands.disband_room(["1"])


def test_server_control_messages(commands, host):
    assert commands.shutdown_server([]) == "服务器将在5秒后关闭"
    assert commands.restart_server([]) == "服务器将在5秒后重启"
    assert commands.reload_plugin(["demo"]) == "插件 demo 正在重载"
    assert [name for name, _ in host.calls] == [
        "shutdown_server",
        "restart_server",
        "reload_plugin",
    ]