"""
房主端模块

房主即星型网络的中心：监听玩家连接、运行权威状态机并转发消息。

模块组成：
- network: 房主传输层（HostTransport）
- registry: 房间注册（信令）服务与客户端
- main: 注册服务入口
"""

from .network import HostTransport, PeerConnection
from .registry import MemoryRegistry, RegistryServer, RemoteRegistry, SessionRegistry, generate_room_code

__all__ = [
    "HostTransport",
    "PeerConnection",
    "MemoryRegistry",
    "RegistryServer",
    "RemoteRegistry",
    "SessionRegistry",
    "generate_room_code",
]
