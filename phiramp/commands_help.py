"""Help texts for the server administration commands."""

from __future__ import annotations

import unicodedata
from dataclasses import dataclass
from typing import Sequence


class CommandError(Exception):
    """Raised when a server command is unknown, malformed or fails."""


@dataclass(frozen=True)
class _Command:
    name: str
    params: str
    description: str
    example: str | None = None
    note: str | None = None
    title: str | None = None

    @property
    def usage(self) -> str:
        return f"/{self.name} {self.params}" if self.params else f"/{self.name}"

    def detail(self) -> str:
        lines = [self.title or self.description, f"用法: {self.usage}"]
        if self.example is not None:
            lines.append(f"示例: /{self.name} {self.example}")
        if self.note is not None:
            lines.append(f"注意: {self.note}")
        return "\n".join(lines)


_USER = "<用户ID>"
_IP = "<IP地址>"
_ROOM = "<房间ID>"
_ADMIN = "需要管理员权限"
_SAMPLE_IP = "192.168.1.1"

_SECTIONS: list[tuple[str, list[_Command]]] = [
    ("用户管理", [
        _Command("kick", _USER, "踢出用户", "123", title="踢出用户命令"),
        _Command("banid", f"{_USER} <原因>", "封禁用户(ID)", '123 "作弊"'),
        _Command("unbanid", _USER, "解封用户(ID)", "123"),
        _Command("banip", f"{_IP} <原因>", "封禁用户(IP)", f'{_SAMPLE_IP} "滥用"'),
        _Command("unbanip", _IP, "解封用户(IP)", _SAMPLE_IP),
        _Command("userinfo", _USER, "获取用户完整信息", "123"),
        _Command("username", _USER, "获取用户名", "123"),
        _Command("userlang", _USER, "获取用户语言", "123"),
        _Command("playtime", _USER, "获取用户游玩时间", "123"),
        _Command("playtop", "<数量>", "获取用户游玩时间总排行", "10"),
        _Command("bannedids", "", "获取封禁用户列表(ID)"),
        _Command("bannedips", "", "获取封禁用户列表(IP)"),
        _Command("checkbanid", _USER, "查询用户是否被封禁(ID)", "123"),
        _Command("checkbanip", _IP, "查询用户是否被封禁(IP)", _SAMPLE_IP),
    ]),
    ("房间封禁", [
        _Command("banroomid", f"{_USER} {_ROOM}", "封禁用户进入特定房间(ID)", "123 1"),
        _Command("unbanroomid", f"{_USER} {_ROOM}", "解封用户进入特定房间(ID)", "123 1"),
        _Command("banroomip", f"{_IP} {_ROOM}", "封禁用户进入特定房间(IP)", f"{_SAMPLE_IP} 1"),
        _Command("unbanroomip", f"{_IP} {_ROOM}", "解封用户进入特定房间(IP)", f"{_SAMPLE_IP} 1"),
        _Command("checkroomban", f"{_USER} {_ROOM}", "查询用户是否被特定房间封禁", "123 1"),
    ]),
    ("房间管理", [
        _Command("createroom", "<最大人数>", "创建房间", "4"),
        _Command("disbandroom", _ROOM, "解散房间", "1"),
        _Command("joinroom", f"{_USER} {_ROOM}", "将用户加入至房间", "123 1"),
        _Command("kickroom", f"{_USER} {_ROOM}", "将用户踢出房间", "123 1"),
        _Command("roominfo", _ROOM, "获取房间完整信息", "1"),
        _Command("roomusers", _ROOM, "获取房间用户数", "1"),
        _Command("roomuserids", _ROOM, "获取房间内用户ID列表", "1"),
        _Command("roomhost", _ROOM, "获取房间房主ID", "1"),
        _Command("setmaxusers", f"{_ROOM} <数量>", "设置房间最大人数", "1 8"),
        _Command("startprep", _ROOM, "开始房间内准备游戏", "1"),
        _Command("endprep", _ROOM, "结束房间内准备游戏", "1"),
        _Command("forcestart", _ROOM, "强制开始房间内游戏", "1"),
        _Command("setlock", f"{_ROOM} <是/否>", "设定房间锁定状态", "1 是"),
        _Command("normalmode", _ROOM, "切换房间为普通模式", "1"),
        _Command("cyclemode", _ROOM, "切换房间为循环模式", "1"),
        _Command("selectchart", f"{_ROOM} <谱面ID>", "选择房间谱面ID", "1 100"),
    ]),
    ("消息管理", [
        _Command("sendmsg", f"{_USER} <消息>", "向指定用户发送消息", '123 "你好"'),
        _Command("broadcastall", "<消息>", "向所有用户广播消息", '"服务器重启中..."'),
        _Command("broadcastroom", f"{_ROOM} <消息>", "向指定房间广播消息", '1 "准备开始游戏"'),
        _Command("broadcastrooms", "<消息>", "向所有房间广播消息", '"活动即将开始"'),
    ]),
    ("服务器管理", [
        _Command("shutdown", "", "关闭服务器", note=_ADMIN),
        _Command("restart", "", "重启服务器", note=_ADMIN),
        _Command("reloadall", "", "重载所有插件"),
        _Command("reload", "<插件名>", "重载指定插件", "test-plugin"),
        _Command("plugins", "", "获取插件列表"),
    ]),
    ("查询统计", [
        _Command("playtotal", "", "获取用户游玩时间总排行榜"),
        _Command("onlinecount", "", "获取在线用户数"),
        _Command("availablerooms", "", "获取可加入房间数"),
        _Command("rooms", "", "获取房间列表"),
        _Command("availableroomlist", "", "获取可加入房间列表"),
        _Command("onlineusers", "", "获取在线用户ID列表"),
    ]),
]

_USAGE_COLUMN = 34


def _display_width(text: str) -> int:
    return sum(2 if unicodedata.east_asian_width(ch) in ("W", "F") else 1 for ch in text)


def _overview_line(command: _Command) -> str:
    padding = " " * max(_USAGE_COLUMN - _display_width(command.usage), 1)
    return f"  {command.usage}{padding}- {command.description}"


def _build_overview() -> str:
    sections = [
        "\n".join([f"{title}:", *(_overview_line(cmd) for cmd in commands)])
        for title, commands in _SECTIONS
    ]
    return "\n\n".join(
        ["可用的服务器命令:", *sections, "输入 /help <命令名> 获取特定命令的详细用法"]
    )


_OVERVIEW = _build_overview()
_DETAILS: dict[str, str] = {
    cmd.name: cmd.detail() for _, commands in _SECTIONS for cmd in commands
}


def help_text(args: Sequence[str]) -> str:
    """Return the command overview, or the usage of the command named by ``args[0]``.

    Raises CommandError for an unknown command name.
    """
    if not args:
        return _OVERVIEW
    command = args[0]
    try:
        return _DETAILS[command]
    except KeyError:
        raise CommandError(f"未知命令: {command}") from None