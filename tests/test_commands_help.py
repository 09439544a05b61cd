import re

import pytest

from phiramp.commands_help import CommandError, help_text


def _listed_commands():
    overview = help_text([])
    return [
        name
        for name in re.findall(r"^\s+/(\w+)", overview, flags=re.MULTILINE)
        if name != "help"
    ]


def test_overview_header_and_footer():
    overview = help_text([])
    assert overview.startswith("可用的服务器命令:")
    assert overview.endswith("输入 /help <命令名> 获取特定命令的详细用法")


def test_overview_lists_kick():
    assert "/kick <用户ID>" in help_text([])


def test_kick_detail():
    assert help_text(["kick"]) == "踢出用户命令\n用法: /kick <用户ID>\n示例: /kick 123"


def test_shutdown_detail():
    assert help_text(["shutdown"]) == "关闭服务器\n用法: /shutdown\n注意: 需要管理员权限"


def test_extra_arguments_ignored():
    assert help_text(["rooms", "extra", "more"]) == help_text(["rooms"])


def test_every_listed_command_has_detail_with_usage():
    for name in _listed_commands():
        detail = help_text([name])
        assert f"用法: /{name}" in detail


def test_details_are_distinct():
    names = _listed_commands()
    details = {help_text([name]) for name in names}
    assert len(details) == len(names)


@pytest.mark.parametrize("name", ["unknown", "help", "KICK", ""])
def test_unknown_command_raises(name):
    with pytest.raises(CommandError) as excinfo:
        help_text([name])
    assert str(excinfo.value) == f"未知命令: {name}"


def test_empty_tuple_gives_overview():
    assert help_text(()) == help_text([])