"""
客户端主程序入口（控制台版）

    doodlehub-client host --name 小明
    doodlehub-client join ABC234 --name 小红

输入的每一行是聊天/猜词；以 / 开头的是命令：
/start 开始游戏  /choose N 选第 N 个词  /set key=value 修改设置
/again 再来一局  /end 结束游戏  /quit 退出
画布保存在内存中，不做显示。
"""

import argparse
import json
import logging
import os
import sys
import threading
import time
from pathlib import Path
from queue import Empty, SimpleQueue
from typing import Any, Callable, Dict, List, Optional

from doodlehub.app import Participant
from doodlehub.game import SessionObserver
from doodlehub.server.registry import RemoteRegistry
from doodlehub.shared.constants import DEFAULT_HOST, DEFAULT_REGISTRY_PORT
from doodlehub.shared.errors import (
    ConnectionTimeoutError,
    GameRuleError,
    PeerDisconnectedError,
    SessionCreationError,
    SessionNotFoundError,
)

logger = logging.getLogger(__name__)

SETTINGS_PATH = Path(os.environ.get("DOODLEHUB_SETTINGS", "settings.json"))

DEFAULT_SETTINGS: Dict[str, Any] = {
    "player_name": "玩家",
    "registry_host": DEFAULT_HOST,
    "registry_port": DEFAULT_REGISTRY_PORT,
}

# /set 命令可修改的设置项及其类型
SETTING_TYPES: Dict[str, Callable[[str], Any]] = {
    "max_players": int,
    "draw_time": int,
    "total_rounds": int,
    "hint_count": int,
    "word_choices": int,
    "language": str,
    "custom_words": str,
    "custom_words_only": lambda v: v.lower() in ("1", "true", "yes", "on"),
}


def load_settings(path: Path = SETTINGS_PATH) -> Dict[str, Any]:
    """从 JSON 文件加载设置（如果存在）。"""
    settings = dict(DEFAULT_SETTINGS)
    try:
        if path.exists():
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            if isinstance(data, dict):
                for k in DEFAULT_SETTINGS:
                    if k in data:
                        settings[k] = data[k]
    except (OSError, ValueError) as exc:
        logger.warning("加载设置失败: %s", exc)
    return settings


def save_settings(settings: Dict[str, Any], path: Path = SETTINGS_PATH) -> None:
    """将当前设置保存到 JSON 文件。"""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump({k: settings[k] for k in DEFAULT_SETTINGS if k in settings}, f, ensure_ascii=False, indent=2)
    except OSError as exc:
        logger.warning("保存设置失败: %s", exc)


class ConsoleObserver(SessionObserver):
    """把会话事件打印到控制台"""

    def __init__(self, out: Callable[[str], None] = print):
        self.out = out
        self.words: List[str] = []

    def on_state_change(self, phase: str) -> None:
        self.out(f"[阶段] {phase}")

    def on_timer_update(self, time_left: int, max_time: int, phase: str) -> None:
        if time_left in (10, 5, 3, 2, 1):
            self.out(f"[计时] 剩余 {time_left}s")

    def on_word_select(self, words: Optional[List[str]], drawer_id: str) -> None:
        if words:
            self.words = list(words)
            options = "  ".join(f"{i}. {w}" for i, w in enumerate(words, 1))
            self.out(f"[选词] 轮到你画了，输入 /choose N：{options}")
        else:
            self.words = []
            self.out(f"[选词] {drawer_id} 正在选词...")

    def on_your_word(self, word: str) -> None:
        self.out(f"[谜底] 你要画的是: {word.upper()}")

    def on_hint_reveal(self, masked_word: str) -> None:
        self.out(f"[提示] {masked_word}")

    def on_player_update(self, players: List[Dict[str, Any]]) -> None:
        roster = ", ".join(f"{p['name']}({p['score']})" for p in players)
        self.out(f"[玩家] {roster}")

    def on_settings_update(self, settings: Dict[str, Any]) -> None:
        self.out(f"[设置] {settings}")

    def on_chat(self, player_name: str, message: str) -> None:
        self.out(f"{player_name}: {message}")

    def on_correct_guess(self, player_id: str, player_name: str, score: int) -> None:
        self.out(f"[猜中] {player_name} +{score}")

    def on_close_guess(self, player_name: str) -> None:
        self.out(f"[接近] {player_name} 很接近了！")

    def on_round_end(self, word: str, scores: List[Dict[str, Any]]) -> None:
        gained = ", ".join(f"{s['name']} +{s['score']}" for s in scores) or "无人得分"
        self.out(f"[回合结束] 谜底: {word.upper()}  {gained}")

    def on_game_end(self, standings: List[Dict[str, Any]]) -> None:
        self.out("[游戏结束]")
        for s in standings:
            self.out(f"  {s['rank']}. {s['name']} {s['score']}")

    def on_error(self, reason: str) -> None:
        self.out(f"[错误] {reason}")


def handle_line(participant: Participant, observer: ConsoleObserver, line: str) -> bool:
    """处理一行输入；返回 False 表示退出"""
    line = line.strip()
    if not line:
        return True
    if not line.startswith("/"):
        participant.chat(line)
        return True

    cmd, _, arg = line[1:].partition(" ")
    try:
        if cmd == "quit":
            return False
        elif cmd == "start":
            participant.start_game()
        elif cmd == "choose":
            try:
                word = observer.words[int(arg) - 1]
            except (ValueError, IndexError):
                observer.out("用法: /choose N（N 为候选词序号）")
                return True
            participant.choose_word(word)
        elif cmd == "set":
            key, _, value = arg.partition("=")
            key = key.strip()
            if key not in SETTING_TYPES:
                observer.out(f"可修改的设置: {', '.join(SETTING_TYPES)}")
                return True
            participant.update_settings(**{key: SETTING_TYPES[key](value.strip())})
        elif cmd == "again":
            participant.play_again()
        elif cmd == "end":
            participant.terminate_game()
        else:
            observer.out(f"未知命令: /{cmd}")
    except (GameRuleError, ValueError) as exc:
        observer.out(f"[错误] {exc}")
    return True


def _read_stdin(lines: "SimpleQueue[Optional[str]]") -> None:
    for line in sys.stdin:
        lines.put(line)
    lines.put(None)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="doodlehub-client", description="DoodleHub 控制台客户端")
    sub = p.add_subparsers(dest="command", required=True)
    host = sub.add_parser("host", help="创建房间")
    host.add_argument("--listen", default=os.environ.get("HOST", DEFAULT_HOST), help="监听地址")
    host.add_argument("--port", type=int, default=int(os.environ.get("PORT", 0)), help="监听端口（0 为自动）")
    host.add_argument("--advertise", default=None, help="登记给玩家的地址（默认同监听地址）")
    join = sub.add_parser("join", help="加入房间")
    join.add_argument("code", help="房间号")
    for sp in (host, join):
        sp.add_argument("--name", default=None, help="玩家名")
        sp.add_argument("--registry-host", default=os.environ.get("REGISTRY_HOST"), help="注册服务地址")
        sp.add_argument("--registry-port", type=int, default=os.environ.get("REGISTRY_PORT"), help="注册服务端口")
    return p.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.FileHandler("client.log")],
    )

    settings = load_settings()
    if args.name:
        settings["player_name"] = args.name
    if args.registry_host:
        settings["registry_host"] = args.registry_host
    if args.registry_port:
        settings["registry_port"] = int(args.registry_port)

    observer = ConsoleObserver()
    registry = RemoteRegistry(settings["registry_host"], int(settings["registry_port"]))
    participant = Participant(settings["player_name"], registry, observer)
    try:
        if args.command == "host":
            code = participant.host(args.listen, args.port, args.advertise)
            print(f"房间已创建，房间号: {code}（把它告诉朋友）")
        else:
            participant.join(args.code)
            print(f"已加入房间 {args.code.strip().upper()}")
    except SessionNotFoundError:
        print(f"房间 {args.code} 不存在，请检查房间号")
        return 1
    except ConnectionTimeoutError:
        print("无法连接房主，请稍后重试")
        return 1
    except (SessionCreationError, OSError) as exc:
        print(f"无法创建房间: {exc}")
        return 1
    save_settings(settings)

    lines: "SimpleQueue[Optional[str]]" = SimpleQueue()
    threading.Thread(target=_read_stdin, args=(lines,), daemon=True).start()
    try:
        while True:
            participant.pump()
            try:
                line = lines.get_nowait()
            except Empty:
                time.sleep(0.05)
                continue
            if line is None or not handle_line(participant, observer, line):
                return 0
    except PeerDisconnectedError:
        room = args.code.strip().upper() if args.command == "join" else ""
        print(f"与房主的连接已断开，请使用房间号重新加入 {room}".rstrip())
        return 1
    except KeyboardInterrupt:
        return 0
    finally:
        participant.close()
        registry.close()


if __name__ == "__main__":
    sys.exit(main())
