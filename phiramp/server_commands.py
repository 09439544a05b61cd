"""Server administration commands executed against a host API."""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Callable, Sequence

from phiramp.commands_help import CommandError, help_text

logger = logging.getLogger(__name__)

_DECIMAL = re.compile(r"\+?[0-9]+")
_HEXADECIMAL = re.compile(r"\+?[0-9A-Fa-f]+")

_INVALID_USER_ID = "无效的用户ID"
_INVALID_ROOM_ID = "无效的房间ID"
_INVALID_IP = "无效的IP地址"
_INVALID_MAX_USERS = "无效的最大人数"
_MAX_USERS_RANGE = "最大人数必须在1-100之间"

_LOCK_TRUE = {"是", "true", "1", "yes"}
_LOCK_FALSE = {"否", "false", "0", "no"}


def _unsigned(text: str, bits: int, base: int = 10) -> int | None:
    pattern = _DECIMAL if base == 10 else _HEXADECIMAL
    if not pattern.fullmatch(text):
        return None
    value = int(text, base)
    return value if value < (1 << bits) else None


def _parse_u32(text: str, message: str) -> int:
    value = _unsigned(text, 32)
    if value is None:
        raise CommandError(message)
    return value


def _user_id(text: str) -> int:
    return _parse_u32(text, _INVALID_USER_ID)


def _room_id(text: str) -> int:
    return _parse_u32(text, _INVALID_ROOM_ID)


def _max_users(text: str) -> int:
    value = _parse_u32(text, _INVALID_MAX_USERS)
    if not 1 <= value <= 100:
        raise CommandError(_MAX_USERS_RANGE)
    return value


def _require_ip(ip: str) -> None:
    if not is_valid_ip(ip):
        raise CommandError(_INVALID_IP)


def _pretty_json(value: Any) -> str:
    try:
        return json.dumps(value, indent=2, ensure_ascii=False)
    except (TypeError, ValueError) as exc:
        raise CommandError(f"序列化失败: {exc}") from exc


def _expect_count(args: Sequence[str], count: int, usage: str) -> None:
    if len(args) != count:
        raise CommandError(f"用法: {usage}")


def _expect_at_least(args: Sequence[str], count: int, usage: str) -> None:
    if len(args) < count:
        raise CommandError(f"用法: {usage}")


def is_valid_ip(ip: str) -> bool:
    """Loosely check that ``ip`` looks like an IPv4 or IPv6 address."""
    parts = ip.split(".")
    if len(parts) == 4:
        return all(_unsigned(part, 8) is not None for part in parts)
    if ":" in ip:
        return all(
            not part or _unsigned(part, 16, base=16) is not None
            for part in ip.split(":")
        )
    return False


class ServerCommands:
    """Parses administration command arguments and forwards them to the host API."""

    def __init__(self, host_api: Any) -> None:
        self.host_api = host_api

    def help(self, args: Sequence[str]) -> str:
        return help_text(args)

    def kick_user(self, args: Sequence[str]) -> str:
        _expect_count(args, 1, "/kick <用户ID>")
        user_id = _user_id(args[0])
        self.host_api.kick_user(user_id)
        logger.info("用户 %s 已被踢出", user_id)
        return f"用户 {user_id} 已被踢出"

    def ban_user_by_id(self, args: Sequence[str]) -> str:
        _expect_at_least(args, 2, "/banid <用户ID> <原因>")
        user_id = _user_id(args[0])
        reason = " ".join(args[1:])
        self.host_api.ban_user_by_id(user_id, reason)
        logger.info("用户 %s 已被封禁，原因: %s", user_id, reason)
        return f"用户 {user_id} 已被封禁，原因: {reason}"

    def unban_user_by_id(self, args: Sequence[str]) -> str:
        _expect_count(args, 1, "/unbanid <用户ID>")
        user_id = _user_id(args[0])
        self.host_api.unban_user_by_id(user_id)
        logger.info("用户 %s 已解封", user_id)
        return f"用户 {user_id} 已解封"

    def ban_user_by_ip(self, args: Sequence[str]) -> str:
        _expect_at_least(args, 2, "/banip <IP地址> <原因>")
        ip = args[0]
        reason = " ".join(args[1:])
        _require_ip(ip)
        self.host_api.ban_user_by_ip(ip, reason)
        logger.info("IP %s 已被封禁，原因: %s", ip, reason)
        return f"IP {ip} 已被封禁，原因: {reason}"

    def unban_user_by_ip(self, args: Sequence[str]) -> str:
        _expect_count(args, 1, "/unbanip <IP地址>")
        ip = args[0]
        _require_ip(ip)
        self.host_api.unban_user_by_ip(ip)
        logger.info("IP %s 已解封", ip)
        return f"IP {ip} 已解封"

    def get_user_info(self, args: Sequence[str]) -> str:
        _expect_count(args, 1, "/userinfo <用户ID>")
        user_id = _user_id(args[0])
        return _pretty_json(self.host_api.get_user_info(user_id))

    def get_username(self, args: Sequence[str]) -> str:
        _expect_count(args, 1, "/username <用户ID>")
        user_id = _user_id(args[0])
        name = self.host_api.get_username(user_id)
        return f"用户 {user_id} 的用户名: {name}"

    def get_user_language(self, args: Sequence[str]) -> str:
        _expect_count(args, 1, "/userlang <用户ID>")
        user_id = _user_id(args[0])
        language = self.host_api.get_user_language(user_id)
        return f"用户 {user_id} 的语言: {language}"

    def get_user_playtime(self, args: Sequence[str]) -> str:
        _expect_count(args, 1, "/playtime <用户ID>")
        user_id = _user_id(args[0])
        playtime = self.host_api.get_user_playtime(user_id)
        hours, rest = divmod(playtime, 3600)
        minutes, seconds = divmod(rest, 60)
        return f"用户 {user_id} 的游玩时间: {hours}小时{minutes}分钟{seconds}秒"

    def get_playtime_leaderboard(self, args: Sequence[str]) -> str:
        limit = _parse_u32(args[0], "无效的数量") if args else 10
        return _pretty_json(self.host_api.get_playtime_leaderboard(limit))

    def get_banned_users_by_id(self, args: Sequence[str]) -> str:
        return _pretty_json(self.host_api.get_banned_users_by_id())

    def get_banned_users_by_ip(self, args: Sequence[str]) -> str:
        return _pretty_json(self.host_api.get_banned_users_by_ip())

    def is_user_banned_by_id(self, args: Sequence[str]) -> str:
        _expect_count(args, 1, "/checkbanid <用户ID>")
        user_id = _user_id(args[0])
        if self.host_api.is_user_banned_by_id(user_id):
            return f"用户 {user_id} 已被封禁"
        return f"用户 {user_id} 未被封禁"

    def is_user_banned_by_ip(self, args: Sequence[str]) -> str:
        _expect_count(args, 1, "/checkbanip <IP地址>")
        ip = args[0]
        _require_ip(ip)
        if self.host_api.is_user_banned_by_ip(ip):
            return f"IP {ip} 已被封禁"
        return f"IP {ip} 未被封禁"

    def ban_user_from_room_by_id(self, args: Sequence[str]) -> str:
        _expect_count(args, 2, "/banroomid <用户ID> <房间ID>")
        user_id = _user_id(args[0])
        room_id = _room_id(args[1])
        self.host_api.ban_user_from_room_by_id(user_id, room_id)
        logger.info("用户 %s 已被封禁进入房间 %s", user_id, room_id)
        return f"用户 {user_id} 已被封禁进入房间 {room_id}"

    def unban_user_from_room_by_id(self, args: Sequence[str]) -> str:
        _expect_count(args, 2, "/unbanroomid <用户ID> <房间ID>")
        user_id = _user_id(args[0])
        room_id = _room_id(args[1])
        self.host_api.unban_user_from_room_by_id(user_id, room_id)
        logger.info("用户 %s 已解封进入房间 %s", user_id, room_id)
        return f"用户 {user_id} 已解封进入房间 {room_id}"

    def ban_user_from_room_by_ip(self, args: Sequence[str]) -> str:
        _expect_count(args, 2, "/banroomip <IP地址> <房间ID>")
        ip = args[0]
        room_id = _room_id(args[1])
        _require_ip(ip)
        self.host_api.ban_user_from_room_by_ip(ip, room_id)
        logger.info("IP %s 已被封禁进入房间 %s", ip, room_id)
        return f"IP {ip} 已被封禁进入房间 {room_id}"

    def unban_user_from_room_by_ip(self, args: Sequence[str]) -> str:
        _expect_count(args, 2, "/unbanroomip <IP地址> <房间ID>")
        ip = args[0]
        room_id = _room_id(args[1])
        _require_ip(ip)
        self.host_api.unban_user_from_room_by_ip(ip, room_id)
        logger.info("IP %s 已解封进入房间 %s", ip, room_id)
        return f"IP {ip} 已解封进入房间 {room_id}"

    def is_user_banned_from_room(self, args: Sequence[str]) -> str:
        _expect_count(args, 2, "/checkroomban <用户ID> <房间ID>")
        user_id = _user_id(args[0])
        room_id = _room_id(args[1])
        if self.host_api.is_user_banned_from_room(user_id, room_id):
            return f"用户 {user_id} 在房间 {room_id} 中被封禁"
        return f"用户 {user_id} 在房间 {room_id} 中未被封禁"

    def create_room(self, args: Sequence[str]) -> str:
        _expect_count(args, 1, "/createroom <最大人数>")
        max_users = _max_users(args[0])
        room_id = self.host_api.create_room(max_users)
        logger.info("创建房间 %s，最大人数: %s", room_id, max_users)
        return f"创建房间 {room_id}，最大人数: {max_users}"

    def disband_room(self, args: Sequence[str]) -> str:
        _expect_count(args, 1, "/disbandroom <房间ID>")
        room_id = _room_id(args[0])
        self.host_api.disband_room(room_id)
        logger.info("解散房间 %s", room_id)
        return f"房间 {room_id} 已解散"

    def add_user_to_room(self, args: Sequence[str]) -> str:
        _expect_count(args, 2, "/joinroom <用户ID> <房间ID>")
        user_id = _user_id(args[0])
        room_id = _room_id(args[1])
        self.host_api.add_user_to_room(user_id, room_id)
        logger.info("用户 %s 加入房间 %s", user_id, room_id)
        return f"用户 {user_id} 已加入房间 {room_id}"

    def kick_user_from_room(self, args: Sequence[str]) -> str:
        _expect_count(args, 2, "/kickroom <用户ID> <房间ID>")
        user_id = _user_id(args[0])
        room_id = _room_id(args[1])
        self.host_api.kick_user_from_room(user_id, room_id)
        logger.info("用户 %s 被踢出房间 %s", user_id, room_id)
        return f"用户 {user_id} 已被踢出房间 {room_id}"

    def get_room_info(self, args: Sequence[str]) -> str:
        _expect_count(args, 1, "/roominfo <房间ID>")
        room_id = _room_id(args[0])
        return _pretty_json(self.host_api.get_room_info(room_id))

    def get_room_user_count(self, args: Sequence[str]) -> str:
        _expect_count(args, 1, "/roomusers <房间ID>")
        room_id = _room_id(args[0])
        count = self.host_api.get_room_user_count(room_id)
        return f"房间 {room_id} 的用户数: {count}"

    def get_room_user_ids(self, args: Sequence[str]) -> str:
        _expect_count(args, 1, "/roomuserids <房间ID>")
        room_id = _room_id(args[0])
        return _pretty_json(self.host_api.get_room_user_ids(room_id))

    def get_room_host_id(self, args: Sequence[str]) -> str:
        _expect_count(args, 1, "/roomhost <房间ID>")
        room_id = _room_id(args[0])
        host_id = self.host_api.get_room_host_id(room_id)
        return f"房间 {room_id} 的房主ID: {host_id}"

    def set_room_max_users(self, args: Sequence[str]) -> str:
        _expect_count(args, 2, "/setmaxusers <房间ID> <数量>")
        room_id = _room_id(args[0])
        max_users = _max_users(args[1])
        self.host_api.set_room_max_users(room_id, max_users)
        logger.info("设置房间 %s 最大人数为 %s", room_id, max_users)
        return f"房间 {room_id} 最大人数设置为 {max_users}"

    def start_room_preparation(self, args: Sequence[str]) -> str:
        _expect_count(args, 1, "/startprep <房间ID>")
        room_id = _room_id(args[0])
        self.host_api.start_room_preparation(room_id)
        logger.info("开始房间 %s 的准备游戏", room_id)
        return f"房间 {room_id} 开始准备游戏"

    def end_room_preparation(self, args: Sequence[str]) -> str:
        _expect_count(args, 1, "/endprep <房间ID>")
        room_id = _room_id(args[0])
        self.host_api.end_room_preparation(room_id)
        logger.info("结束房间 %s 的准备游戏", room_id)
        return f"房间 {room_id} 结束准备游戏"

    def force_start_room_game(self, args: Sequence[str]) -> str:
        _expect_count(args, 1, "/forcestart <房间ID>")
        room_id = _room_id(args[0])
        self.host_api.force_start_room_game(room_id)
        logger.info("强制开始房间 %s 的游戏", room_id)
        return f"房间 {room_id} 强制开始游戏"

    def set_room_lock(self, args: Sequence[str]) -> str:
        _expect_count(args, 2, "/setlock <房间ID> <是/否>")
        room_id = _room_id(args[0])
        choice = args[1].lower()
        if choice in _LOCK_TRUE:
            locked = True
        elif choice in _LOCK_FALSE:
            locked = False
        else:
            raise CommandError("锁定状态必须是'是'或'否'")
        self.host_api.set_room_lock(room_id, locked)
        label = "锁定" if locked else "未锁定"
        logger.info("设置房间 %s 锁定状态为 %s", room_id, label)
        return f"房间 {room_id} 锁定状态设置为 {label}"

    def switch_room_to_normal_mode(self, args: Sequence[str]) -> str:
        _expect_count(args, 1, "/normalmode <房间ID>")
        room_id = _room_id(args[0])
        self.host_api.switch_room_to_normal_mode(room_id)
        logger.info("切换房间 %s 为普通模式", room_id)
        return f"房间 {room_id} 切换为普通模式"

    def switch_room_to_cycle_mode(self, args: Sequence[str]) -> str:
        _expect_count(args, 1, "/cyclemode <房间ID>")
        room_id = _room_id(args[0])
        self.host_api.switch_room_to_cycle_mode(room_id)
        logger.info("切换房间 %s 为循环模式", room_id)
        return f"房间 {room_id} 切换为循环模式"

    def select_room_chart(self, args: Sequence[str]) -> str:
        _expect_count(args, 2, "/selectchart <房间ID> <谱面ID>")
        room_id = _room_id(args[0])
        chart_id = _parse_u32(args[1], "无效的谱面ID")
        self.host_api.select_room_chart(room_id, chart_id)
        logger.info("房间 %s 选择谱面 %s", room_id, chart_id)
        return f"房间 {room_id} 选择谱面 {chart_id}"

    def send_message_to_user(self, args: Sequence[str]) -> str:
        _expect_at_least(args, 2, "/sendmsg <用户ID> <消息>")
        user_id = _user_id(args[0])
        message = " ".join(args[1:])
        self.host_api.send_message_to_user(user_id, message)
        logger.info("向用户 %s 发送消息: %s", user_id, message)
        return f"消息已发送给用户 {user_id}"

    def broadcast_message_to_all(self, args: Sequence[str]) -> str:
        _expect_at_least(args, 1, "/broadcastall <消息>")
        message = " ".join(args)
        self.host_api.broadcast_message_to_all(message)
        logger.info("向所有用户广播消息: %s", message)
        return "消息已广播给所有用户"

    def broadcast_message_to_room(self, args: Sequence[str]) -> str:
        _expect_at_least(args, 2, "/broadcastroom <房间ID> <消息>")
        room_id = _room_id(args[0])
        message = " ".join(args[1:])
        self.host_api.broadcast_message_to_room(room_id, message)
        logger.info("向房间 %s 广播消息: %s", room_id, message)
        return f"消息已广播给房间 {room_id}"

    def broadcast_message_to_all_rooms(self, args: Sequence[str]) -> str:
        _expect_at_least(args, 1, "/broadcastrooms <消息>")
        message = " ".join(args)
        self.host_api.broadcast_message_to_all_rooms(message)
        logger.info("向所有房间广播消息: %s", message)
        return "消息已广播给所有房间"

    def shutdown_server(self, args: Sequence[str]) -> str:
        self.host_api.shutdown_server()
        logger.info("服务器关闭请求已发送")
        return "服务器将在5秒后关闭"

    def restart_server(self, args: Sequence[str]) -> str:
        self.host_api.restart_server()
        logger.info("服务器重启请求已发送")
        return "服务器将在5秒后重启"

    def reload_all_plugins(self, args: Sequence[str]) -> str:
        self.host_api.reload_all_plugins()
        logger.info("重载所有插件请求已发送")
        return "所有插件正在重载"

    def reload_plugin(self, args: Sequence[str]) -> str:
        _expect_count(args, 1, "/reload <插件名>")
        plugin_name = args[0]
        self.host_api.reload_plugin(plugin_name)
        logger.info("重载插件请求已发送: %s", plugin_name)
        return f"插件 {plugin_name} 正在重载"

    def get_plugin_list(self, args: Sequence[str]) -> str:
        return _pretty_json(self.host_api.get_plugin_list())

    def get_playtime_total_leaderboard(self, args: Sequence[str]) -> str:
        return _pretty_json(self.host_api.get_playtime_total_leaderboard())

    def get_online_user_count(self, args: Sequence[str]) -> str:
        return f"在线用户数: {self.host_api.get_online_user_count()}"

    def get_available_room_count(self, args: Sequence[str]) -> str:
        return f"可加入房间数: {self.host_api.get_available_room_count()}"

    def get_room_list(self, args: Sequence[str]) -> str:
        return _pretty_json(self.host_api.get_room_list())

    def get_available_room_list(self, args: Sequence[str]) -> str:
        return _pretty_json(self.host_api.get_available_room_list())

    def get_online_user_ids(self, args: Sequence[str]) -> str:
        return _pretty_json(self.host_api.get_online_user_ids())

    def execute(self, command: str, args: Sequence[str]) -> str:
        """Run the command named ``command`` (English or Chinese alias)."""
        handler = _DISPATCH.get(command)
        if handler is None:
            raise CommandError(f"未知命令: {command}")
        return handler(self, args)


_ALIASES: list[tuple[tuple[str, str], Callable[[ServerCommands, Sequence[str]], str]]] = [
    (("help", "帮助"), ServerCommands.help),
    (("kick", "踢出"), ServerCommands.kick_user),
    (("banid", "封禁id"), ServerCommands.ban_user_by_id),
    (("unbanid", "解封id"), ServerCommands.unban_user_by_id),
    (("banip", "封禁ip"), ServerCommands.ban_user_by_ip),
    (("unbanip", "解封ip"), ServerCommands.unban_user_by_ip),
    (("userinfo", "用户信息"), ServerCommands.get_user_info),
    (("username", "用户名"), ServerCommands.get_username),
    (("userlang", "用户语言"), ServerCommands.get_user_language),
    (("playtime", "游玩时间"), ServerCommands.get_user_playtime),
    (("playtop", "游玩排行"), ServerCommands.get_playtime_leaderboard),
    (("bannedids", "封禁列表id"), ServerCommands.get_banned_users_by_id),
    (("bannedips", "封禁列表ip"), ServerCommands.get_banned_users_by_ip),
    (("checkbanid", "检查封禁id"), ServerCommands.is_user_banned_by_id),
    (("checkbanip", "检查封禁ip"), ServerCommands.is_user_banned_by_ip),
    (("banroomid", "房间封禁id"), ServerCommands.ban_user_from_room_by_id),
    (("unbanroomid", "房间解封id"), ServerCommands.unban_user_from_room_by_id),
    (("banroomip", "房间封禁ip"), ServerCommands.ban_user_from_room_by_ip),
    (("unbanroomip", "房间解封ip"), ServerCommands.unban_user_from_room_by_ip),
    (("checkroomban", "检查房间封禁"), ServerCommands.is_user_banned_from_room),
    (("createroom", "创建房间"), ServerCommands.create_room),
    (("disbandroom", "解散房间"), ServerCommands.disband_room),
    (("joinroom", "加入房间"), ServerCommands.add_user_to_room),
    (("kickroom", "踢出房间"), ServerCommands.kick_user_from_room),
    (("roominfo", "房间信息"), ServerCommands.get_room_info),
    (("roomusers", "房间用户"), ServerCommands.get_room_user_count),
    (("roomuserids", "房间用户id"), ServerCommands.get_room_user_ids),
    (("roomhost", "房间房主"), ServerCommands.get_room_host_id),
    (("setmaxusers", "设置最大用户"), ServerCommands.set_room_max_users),
    (("startprep", "开始准备"), ServerCommands.start_room_preparation),
    (("endprep", "结束准备"), ServerCommands.end_room_preparation),
    (("forcestart", "强制开始"), ServerCommands.force_start_room_game),
    (("setlock", "设置锁定"), ServerCommands.set_room_lock),
    (("normalmode", "普通模式"), ServerCommands.switch_room_to_normal_mode),
    (("cyclemode", "循环模式"), ServerCommands.switch_room_to_cycle_mode),
    (("selectchart", "选择谱面"), ServerCommands.select_room_chart),
    (("sendmsg", "发送消息"), ServerCommands.send_message_to_user),
    (("broadcastall", "广播所有"), ServerCommands.broadcast_message_to_all),
    (("broadcastroom", "广播房间"), ServerCommands.broadcast_message_to_room),
    (("broadcastrooms", "广播所有房间"), ServerCommands.broadcast_message_to_all_rooms),
    (("shutdown", "关闭"), ServerCommands.shutdown_server),
    (("restart", "重启"), ServerCommands.restart_server),
    (("reloadall", "重载所有"), ServerCommands.reload_all_plugins),
    (("reload", "重载"), ServerCommands.reload_plugin),
    (("plugins", "插件列表"), ServerCommands.get_plugin_list),
    (("playtotal", "总游玩排行"), ServerCommands.get_playtime_total_leaderboard),
    (("onlinecount", "在线数量"), ServerCommands.get_online_user_count),
    (("availablerooms", "可用房间"), ServerCommands.get_available_room_count),
    (("rooms", "房间列表"), ServerCommands.get_room_list),
    (("availableroomlist", "可用房间列表"), ServerCommands.get_available_room_list),
    (("onlineusers", "在线用户"), ServerCommands.get_online_user_ids),
]

_DISPATCH: dict[str, Callable[[ServerCommands, Sequence[str]], str]] = {
    name: handler for names, handler in _ALIASES for name in names
}