"""
房间注册（信令）服务

房主把自己监听的地址登记在房间号下，玩家凭房间号查询地址后直连房主。

- MemoryRegistry: 进程内实现（测试与单机使用）
- RegistryServer: 基于 TCP 的按行 JSON 服务，连接断开时自动注销该连接登记的房间
- RemoteRegistry: RegistryServer 的客户端
"""

from __future__ import annotations

import logging
import random
import socket
import threading
from typing import Dict, Optional, Set, Tuple

from doodlehub.shared.constants import (
	BUFFER_SIZE,
	CONNECT_TIMEOUT,
	DEFAULT_HOST,
	DEFAULT_REGISTRY_PORT,
	ROOM_CODE_ALPHABET,
	ROOM_CODE_LENGTH,
)
from doodlehub.shared.transport import LineReader, send_frame

logger = logging.getLogger(__name__)

Address = Tuple[str, int]


def generate_room_code(rng: Optional[random.Random] = None) -> str:
	"""生成 6 位房间号（不含易混淆字符）"""
	rng = rng or random.SystemRandom()
	return "".join(rng.choice(ROOM_CODE_ALPHABET) for _ in range(ROOM_CODE_LENGTH))


def normalize_code(code: str) -> str:
	return (code or "").strip().upper()


class SessionRegistry:
	"""注册表接口"""

	def register(self, code: str, address: Address) -> bool:
		"""登记房间号；已被占用时返回 False"""
		raise NotImplementedError

	def lookup(self, code: str) -> Optional[Address]:
		raise NotImplementedError

	def unregister(self, code: str) -> None:
		raise NotImplementedError

	def close(self) -> None:
		pass


class MemoryRegistry(SessionRegistry):
	def __init__(self) -> None:
		self._entries: Dict[str, Address] = {}
		self._lock = threading.Lock()

	def register(self, code: str, address: Address) -> bool:
		code = normalize_code(code)
		with self._lock:
			if code in self._entries:
				return False
			self._entries[code] = (str(address[0]), int(address[1]))
		return True

	def lookup(self, code: str) -> Optional[Address]:
		with self._lock:
			return self._entries.get(normalize_code(code))

	def unregister(self, code: str) -> None:
		with self._lock:
			self._entries.pop(normalize_code(code), None)

	def __contains__(self, code: str) -> bool:
		with self._lock:
			return normalize_code(code) in self._entries

	def __len__(self) -> int:
		with self._lock:
			return len(self._entries)


class _RegistryClient:
	"""RegistryServer 端的一条连接，记录它登记过的房间号"""

	def __init__(self, conn: socket.socket, addr: Address):
		self.conn = conn
		self.addr = addr
		self.codes: Set[str] = set()
		self.reader = LineReader()

	def close(self) -> None:
		try:
			self.conn.close()
		except OSError:
			pass


class RegistryServer:
	"""信令服务器：register / lookup / unregister"""

	def __init__(
		self,
		host: str = DEFAULT_HOST,
		port: int = DEFAULT_REGISTRY_PORT,
		registry: Optional[MemoryRegistry] = None,
	):
		self.host = host
		self.port = port
		self.registry = registry or MemoryRegistry()
		self._sock: Optional[socket.socket] = None
		self._accept_thread: Optional[threading.Thread] = None
		self._running = threading.Event()
		self._clients: Dict[int, _RegistryClient] = {}
		self._lock = threading.Lock()

	@property
	def address(self) -> Address:
		return (self.host, self.port)

	# 服务器生命周期
	def start(self) -> None:
		self._sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
		# // 允许快速重启服务
		self._sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
		self._sock.bind((self.host, self.port))
		# // 端口为 0 时取系统分配的实际端口
		self.port = self._sock.getsockname()[1]
		self._sock.listen(32)
		self._running.set()
		self._accept_thread = threading.Thread(target=self._accept_loop, name="registry-accept", daemon=True)
		self._accept_thread.start()
		logger.info(f"注册服务监听于 {self.host}:{self.port}")

	def stop(self) -> None:
		self._running.clear()
		try:
			if self._sock:
				try:
					self._sock.shutdown(socket.SHUT_RDWR)
				except OSError:
					pass
				self._sock.close()
		finally:
			self._sock = None
		with self._lock:
			clients = list(self._clients.values())
			self._clients.clear()
		for client in clients:
			client.close()

	def _accept_loop(self) -> None:
		while self._running.is_set():
			try:
				conn, addr = self._sock.accept()  # type: ignore[union-attr]
			except OSError:
				break
			client = _RegistryClient(conn, addr)
			with self._lock:
				self._clients[id(client)] = client
			threading.Thread(target=self._client_loop, args=(client,), daemon=True).start()

	def _client_loop(self, client: _RegistryClient) -> None:
		try:
			while self._running.is_set():
				data = client.conn.recv(BUFFER_SIZE)
				if not data:
					break
				for request in client.reader.feed(data):
					send_frame(client.conn, self._handle_request(client, request))
		except OSError as exc:
			logger.debug(f"注册连接异常 {client.addr}: {exc}")
		finally:
			self._on_disconnect(client)

	def _handle_request(self, client: _RegistryClient, request: dict) -> dict:
		op = request.get("op")
		code = normalize_code(str(request.get("code") or ""))
		if not code:
			return {"ok": False, "reason": "bad_request"}
		if op == "register":
			try:
				address = (str(request["host"]), int(request["port"]))
			except (KeyError, TypeError, ValueError):
				return {"ok": False, "reason": "bad_request"}
			if not self.registry.register(code, address):
				return {"ok": False, "reason": "taken"}
			client.codes.add(code)
			logger.info(f"房间登记: {code} -> {address[0]}:{address[1]}")
			return {"ok": True}
		if op == "lookup":
			address = self.registry.lookup(code)
			if address is None:
				return {"ok": False, "reason": "not_found"}
			return {"ok": True, "host": address[0], "port": address[1]}
		if op == "unregister":
			if code in client.codes:
				client.codes.discard(code)
				self.registry.unregister(code)
				logger.info(f"房间注销: {code}")
			return {"ok": True}
		return {"ok": False, "reason": "unknown_op"}

	def _on_disconnect(self, client: _RegistryClient) -> None:
		for code in client.codes:
			self.registry.unregister(code)
			logger.info(f"房主断开，注销房间: {code}")
		client.codes.clear()
		client.close()
		with self._lock:
			self._clients.pop(id(client), None)


class RemoteRegistry(SessionRegistry):
	"""通过一条长连接访问 RegistryServer；连接断开后下次请求自动重连"""

	def __init__(self, host: str = DEFAULT_HOST, port: int = DEFAULT_REGISTRY_PORT, timeout: float = CONNECT_TIMEOUT):
		self.host = host
		self.port = port
		self.timeout = timeout
		self._sock: Optional[socket.socket] = None
		self._reader = LineReader()
		self._lock = threading.Lock()

	def register(self, code: str, address: Address) -> bool:
		reply = self._request({"op": "register", "code": code, "host": address[0], "port": address[1]})
		return bool(reply.get("ok"))

	def lookup(self, code: str) -> Optional[Address]:
		reply = self._request({"op": "lookup", "code": code})
		if not reply.get("ok"):
			return None
		return (str(reply["host"]), int(reply["port"]))

	def unregister(self, code: str) -> None:
		self._request({"op": "unregister", "code": code})

	def close(self) -> None:
		with self._lock:
			self._close_socket()

	def _request(self, request: dict) -> dict:
		"""发送一条请求并等待一行应答；网络错误以 OSError 抛出"""
		with self._lock:
			try:
				if self._sock is None:
					self._sock = socket.create_connection((self.host, self.port), timeout=self.timeout)
					self._reader = LineReader()
				send_frame(self._sock, request)
				while True:
					data = self._sock.recv(BUFFER_SIZE)
					if not data:
						raise ConnectionError("registry closed the connection")
					replies = self._reader.feed(data)
					if replies:
						return replies[0]
			except OSError:
				self._close_socket()
				raise

	def _close_socket(self) -> None:
		if self._sock is not None:
			try:
				self._sock.close()
			except OSError:
				pass
			self._sock = None


__all__ = [
	"Address",
	"generate_room_code",
	"normalize_code",
	"SessionRegistry",
	"MemoryRegistry",
	"RegistryServer",
	"RemoteRegistry",
]
