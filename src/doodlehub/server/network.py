"""
房主传输层（星型网络中心）

房主监听一个 TCP 端口并在注册服务登记房间号；玩家连接后先握手：

    玩家 -> {"frame": "hello", "room": CODE, "peer_id": ID}
    房主 -> {"frame": "welcome", "peer_id": ID} 或 {"frame": "reject", "reason": "not_found"}

之后双方只交换 {"frame": "data", "message": {...}}。
连接线程只负责收发与入队，事件由主循环通过 poll_events() 取出处理。
"""

from __future__ import annotations

import logging
import random
import socket
import threading
import uuid
from typing import Dict, List, Optional, Tuple

from doodlehub.shared.constants import (
	BUFFER_SIZE,
	CREATE_MAX_ATTEMPTS,
	DEFAULT_HOST,
	FRAME_DATA,
	FRAME_HELLO,
	FRAME_REJECT,
	FRAME_WELCOME,
	REJECT_NOT_FOUND,
)
from doodlehub.shared.errors import ProtocolError, SessionCreationError
from doodlehub.shared.protocols import Message
from doodlehub.shared.transport import (
	EventQueue,
	LineReader,
	MessageReceived,
	PeerJoined,
	PeerLeft,
	TransportEvent,
	data_frame,
	encode_frame,
)

from .registry import SessionRegistry, generate_room_code, normalize_code

logger = logging.getLogger(__name__)


class PeerConnection:
	"""一条玩家连接；握手成功后 is_open 为真"""

	def __init__(self, conn: socket.socket, addr: Tuple[str, int]):
		self.conn = conn
		self.addr = addr
		self.peer_id: Optional[str] = None
		self.is_open = False
		self.reader = LineReader()
		self._send_lock = threading.Lock()

	def send_frame(self, frame: dict) -> None:
		data = encode_frame(frame)
		with self._send_lock:
			self.conn.sendall(data)

	def close(self) -> None:
		self.is_open = False
		try:
			self.conn.shutdown(socket.SHUT_RDWR)
		except OSError:
			pass
		try:
			self.conn.close()
		except OSError:
			pass


class HostTransport:
	"""房主端传输：接受玩家连接、广播与单播消息"""

	def __init__(
		self,
		registry: SessionRegistry,
		host: str = DEFAULT_HOST,
		port: int = 0,
		advertise_host: Optional[str] = None,
		rng: Optional[random.Random] = None,
	):
		self.registry = registry
		self.host = host
		self.port = port
		self.advertise_host = advertise_host or host
		self.code: Optional[str] = None
		self.events = EventQueue()
		self.peers: Dict[str, PeerConnection] = {}
		self._rng = rng
		self._sock: Optional[socket.socket] = None
		self._accept_thread: Optional[threading.Thread] = None
		self._running = threading.Event()
		self._lock = threading.Lock()

	@property
	def local_id(self) -> Optional[str]:
		# // 房主的玩家 ID 即房间号
		return self.code

	@property
	def peer_ids(self) -> List[str]:
		with self._lock:
			return [pid for pid, p in self.peers.items() if p.is_open]

	# 生命周期
	def create_session(self) -> str:
		"""开始监听并登记房间号；多次冲突后抛出 SessionCreationError"""
		if self.code is not None:
			return self.code
		self._listen()
		address = (self.advertise_host, self.port)
		for attempt in range(1, CREATE_MAX_ATTEMPTS + 1):
			code = generate_room_code(self._rng)
			try:
				ok = self.registry.register(code, address)
			except OSError as exc:
				logger.warning(f"登记房间失败 (第{attempt}次): {exc}")
				continue
			if ok:
				self.code = code
				logger.info(f"房间已创建: {code}，监听 {address[0]}:{address[1]}")
				return code
			logger.info(f"房间号冲突，重新生成 (第{attempt}次): {code}")
		self.close()
		raise SessionCreationError(f"could not register a room code after {CREATE_MAX_ATTEMPTS} attempts")

	def close(self) -> None:
		"""关闭监听、断开所有玩家并注销房间号"""
		self._running.clear()
		if self.code is not None:
			try:
				self.registry.unregister(self.code)
			except OSError as exc:
				logger.warning(f"注销房间失败: {exc}")
		try:
			if self._sock:
				# // 触发 accept 退出
				try:
					self._sock.shutdown(socket.SHUT_RDWR)
				except OSError:
					pass
				self._sock.close()
		finally:
			self._sock = None
		with self._lock:
			peers = list(self.peers.values())
			self.peers.clear()
		for peer in peers:
			peer.close()

	# 发送
	def broadcast(self, message: Message, exclude_id: Optional[str] = None) -> None:
		"""发给所有已握手的玩家；尚未握手的连接静默跳过"""
		frame = data_frame(message)
		with self._lock:
			targets = [p for pid, p in self.peers.items() if pid != exclude_id and p.is_open]
		for peer in targets:
			self._send(peer, frame)

	def send_to(self, peer_id: str, message: Message) -> None:
		with self._lock:
			peer = self.peers.get(peer_id)
		if peer is None or not peer.is_open:
			return
		self._send(peer, data_frame(message))

	def disconnect(self, peer_id: str) -> None:
		with self._lock:
			peer = self.peers.get(peer_id)
		if peer is not None:
			self._drop(peer)

	def poll_events(self) -> List[TransportEvent]:
		return self.events.drain()

	# 接入与连接线程
	def _listen(self) -> None:
		self._sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
		self._sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
		self._sock.bind((self.host, self.port))
		self.port = self._sock.getsockname()[1]
		self._sock.listen(32)
		self._running.set()
		self._accept_thread = threading.Thread(target=self._accept_loop, name="host-accept", daemon=True)
		self._accept_thread.start()

	def _accept_loop(self) -> None:
		while self._running.is_set():
			try:
				conn, addr = self._sock.accept()  # type: ignore[union-attr]
			except OSError:
				# // 套接字已关闭，退出循环
				break
			peer = PeerConnection(conn, addr)
			threading.Thread(target=self._peer_loop, args=(peer,), daemon=True).start()

	def _peer_loop(self, peer: PeerConnection) -> None:
		"""单连接接收循环：按行读取帧并处理"""
		try:
			while self._running.is_set():
				data = peer.conn.recv(BUFFER_SIZE)
				if not data:
					break
				for frame in peer.reader.feed(data):
					self._handle_frame(peer, frame)
		except OSError as exc:
			logger.debug(f"连接异常 {peer.addr}: {exc}")
		finally:
			self._drop(peer)

	def _handle_frame(self, peer: PeerConnection, frame: dict) -> None:
		kind = frame.get("frame")
		if not peer.is_open:
			if kind != FRAME_HELLO:
				logger.debug(f"握手前收到 {kind!r} 帧，忽略")
				return
			self._handshake(peer, frame)
			return
		if kind != FRAME_DATA:
			logger.debug(f"忽略未知帧: {kind!r}")
			return
		try:
			message = Message.from_dict(frame.get("message"), sender_id=peer.peer_id)
		except ProtocolError as exc:
			logger.debug(f"丢弃来自 {peer.peer_id} 的非法消息: {exc}")
			return
		self.events.put(MessageReceived(peer.peer_id, message))  # type: ignore[arg-type]

	def _handshake(self, peer: PeerConnection, frame: dict) -> None:
		room = normalize_code(str(frame.get("room") or ""))
		if self.code is None or room != self.code:
			logger.info(f"拒绝连接 {peer.addr}: 房间号 {room!r} 不存在")
			try:
				peer.send_frame({"frame": FRAME_REJECT, "reason": REJECT_NOT_FOUND})
			except OSError:
				pass
			peer.close()
			return
		with self._lock:
			peer_id = str(frame.get("peer_id") or "")
			# // ID 冲突（或与房主相同）时由房主重新分配
			if not peer_id or peer_id == self.code or peer_id in self.peers:
				peer_id = uuid.uuid4().hex[:8]
			peer.peer_id = peer_id
			self.peers[peer_id] = peer
		try:
			peer.send_frame({"frame": FRAME_WELCOME, "peer_id": peer_id})
		except OSError:
			self._drop(peer)
			return
		# welcome 之后才参与广播，保证它是玩家收到的第一帧
		peer.is_open = True
		logger.info(f"玩家连接: {peer_id} ({peer.addr[0]}:{peer.addr[1]})")
		self.events.put(PeerJoined(peer_id))

	def _send(self, peer: PeerConnection, frame: dict) -> None:
		try:
			peer.send_frame(frame)
		except OSError as exc:
			logger.info(f"发送失败，断开 {peer.peer_id}: {exc}")
			self._drop(peer)

	def _drop(self, peer: PeerConnection) -> None:
		"""断开清理；每条已握手的连接只产生一次 PeerLeft"""
		with self._lock:
			known = peer.peer_id is not None and self.peers.get(peer.peer_id) is peer
			if known:
				del self.peers[peer.peer_id]  # type: ignore[arg-type]
		peer.close()
		if known:
			logger.info(f"玩家断开: {peer.peer_id}")
			self.events.put(PeerLeft(peer.peer_id))  # type: ignore[arg-type]


__all__ = ["PeerConnection", "HostTransport"]
