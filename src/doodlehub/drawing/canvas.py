"""
画布组件

以 pygame.Surface 作为像素缓冲区：
- 绘者的本地输入（笔划/填充/清空/撤销）立即落到本地画面，并通过 on_draw 回调同步
- 其他人的画布只通过 apply() 接收远端操作
坐标在线路上一律使用比例坐标，接收方按自己的逻辑尺寸还原。
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Callable, Deque, Optional, Tuple

import pygame

from doodlehub.shared.constants import BACKGROUND, BLACK, DEFAULT_BRUSH_SIZE, FILL_TOLERANCE, UNDO_DEPTH

from .operations import (
	Clear,
	DrawOperation,
	FloodFill,
	StrokeSegment,
	StrokeStart,
	UndoSnapshot,
	denormalize_point,
	normalize_point,
)
from .raster import Color, RasterImage, flood_fill

logger = logging.getLogger(__name__)


class UndoStack:
	"""有界撤销栈：超过容量时丢弃最旧的快照"""

	def __init__(self, capacity: int = UNDO_DEPTH):
		self._items: Deque[RasterImage] = deque(maxlen=max(1, capacity))

	@property
	def capacity(self) -> int:
		return self._items.maxlen or 0

	def push(self, image: RasterImage) -> None:
		self._items.append(image)

	def pop(self) -> Optional[RasterImage]:
		return self._items.pop() if self._items else None

	def clear(self) -> None:
		self._items.clear()

	def __len__(self) -> int:
		return len(self._items)


class Canvas:
	"""画布组件：处理本地绘图并通过回调同步"""

	def __init__(
		self,
		width: int,
		height: int,
		pixel_ratio: float = 1.0,
		on_draw: Optional[Callable[[DrawOperation], None]] = None,
		background: Color = BACKGROUND,
	):
		self.logical_size: Tuple[int, int] = (max(1, int(width)), max(1, int(height)))
		self.pixel_ratio = max(0.1, float(pixel_ratio))
		self.background = background
		self.surface = pygame.Surface(self.pixel_size, 0, 32)
		self.surface.fill(self.background)
		self.undo_stack = UndoStack()
		# // 只有当前绘者的画布才接受本地输入
		self.enabled = False
		self.on_draw = on_draw
		self.brush_color: Color = BLACK
		self.brush_size: int = DEFAULT_BRUSH_SIZE
		self.mode = "draw"
		self._last: Optional[Tuple[float, float]] = None
		self._stroke: Optional[Tuple[Color, int]] = None

	@property
	def pixel_size(self) -> Tuple[int, int]:
		w, h = self.logical_size
		return (max(1, round(w * self.pixel_ratio)), max(1, round(h * self.pixel_ratio)))

	# 工具设置
	def set_enabled(self, enabled: bool) -> None:
		self.enabled = bool(enabled)
		if not self.enabled:
			self._last = None
			self._stroke = None

	def set_color(self, color: Color) -> None:
		self.brush_color = tuple(color)  # type: ignore[assignment]

	def set_brush_size(self, size: int) -> None:
		self.brush_size = max(1, int(size))

	def set_mode(self, mode: str) -> None:
		# // draw / erase / fill
		self.mode = mode

	# 本地输入（绘者）
	def begin_stroke(self, pos: Tuple[float, float], color: Optional[Color] = None, width: Optional[int] = None) -> None:
		if not self.enabled:
			return
		if color is None:
			color = self.background if self.mode == "erase" else self.brush_color
		width = self.brush_size if width is None else max(1, int(width))
		self.undo_stack.push(self.snapshot())
		self._stroke = (tuple(color), width)  # type: ignore[assignment]
		self._last = (pos[0], pos[1])
		self._dot(self._last, self._stroke[0], width)
		self._emit(StrokeStart(normalize_point(pos, self.logical_size), self._stroke[0], width))

	def extend_stroke(self, pos: Tuple[float, float]) -> None:
		if not self.enabled or self._last is None or self._stroke is None:
			return
		color, width = self._stroke
		end = (pos[0], pos[1])
		self._line(self._last, end, color, width)
		self._emit(
			StrokeSegment(
				normalize_point(self._last, self.logical_size),
				normalize_point(end, self.logical_size),
				color,
				width,
			)
		)
		self._last = end

	def end_stroke(self) -> None:
		self._last = None
		self._stroke = None

	def fill(self, pos: Tuple[float, float], color: Optional[Color] = None) -> int:
		if not self.enabled:
			return 0
		color = tuple(color or self.brush_color)  # type: ignore[assignment]
		before = self.snapshot()
		filled = self._flood(pos, color)
		if filled:
			self.undo_stack.push(before)
			self._emit(FloodFill(normalize_point(pos, self.logical_size), color))
		return filled

	def clear(self, broadcast: bool = True) -> None:
		"""清空画面与撤销历史；broadcast 为真且可绘制时同步给其他人"""
		self.surface.fill(self.background)
		self.undo_stack.clear()
		self.end_stroke()
		if broadcast and self.enabled:
			self._emit(Clear())

	def undo(self) -> bool:
		if not self.enabled:
			return False
		image = self.undo_stack.pop()
		if image is None:
			return False
		self.restore(image)
		# // 广播整幅栅格，接收方无需回放历史
		self._emit(UndoSnapshot(image))
		return True

	# 远端操作
	def apply(self, op: DrawOperation) -> None:
		if isinstance(op, StrokeStart):
			self._dot(denormalize_point(op.point, self.logical_size), op.color, op.width)
		elif isinstance(op, StrokeSegment):
			self._line(
				denormalize_point(op.start, self.logical_size),
				denormalize_point(op.end, self.logical_size),
				op.color,
				op.width,
			)
		elif isinstance(op, FloodFill):
			self._flood(denormalize_point(op.seed, self.logical_size), op.color)
		elif isinstance(op, Clear):
			self.clear(broadcast=False)
		elif isinstance(op, UndoSnapshot):
			self.restore(op.image)
		else:
			raise TypeError(f"unsupported draw operation: {op!r}")

	# 快照
	def snapshot(self) -> RasterImage:
		w, h = self.surface.get_size()
		return RasterImage(w, h, pygame.image.tobytes(self.surface, "RGB"))

	def restore(self, image: RasterImage) -> None:
		"""还原快照；尺寸不一致时缩放到当前像素尺寸"""
		img = pygame.image.frombytes(image.data, (image.width, image.height), "RGB")
		if img.get_size() != self.surface.get_size():
			img = pygame.transform.smoothscale(img, self.surface.get_size())
		self.surface.blit(img, (0, 0))

	def resize(self, width: int, height: int, pixel_ratio: Optional[float] = None) -> None:
		"""改变逻辑尺寸（或像素密度），保留现有画面"""
		old = self.surface
		self.logical_size = (max(1, int(width)), max(1, int(height)))
		if pixel_ratio is not None:
			self.pixel_ratio = max(0.1, float(pixel_ratio))
		self.surface = pygame.Surface(self.pixel_size, 0, 32)
		self.surface.fill(self.background)
		self.surface.blit(pygame.transform.smoothscale(old, self.pixel_size), (0, 0))
		logger.debug(f"画布尺寸变为 {self.logical_size}，像素 {self.pixel_size}")

	def get_pixel(self, pos: Tuple[float, float]) -> Color:
		c = self.surface.get_at(self._to_pixel(pos))
		return (c.r, c.g, c.b)

	# pygame 集成
	def handle_event(self, event: pygame.event.Event, origin: Tuple[int, int] = (0, 0)) -> None:
		# // 将窗口坐标换算为画布逻辑坐标
		if event.type not in (pygame.MOUSEBUTTONDOWN, pygame.MOUSEMOTION, pygame.MOUSEBUTTONUP):
			return
		x, y = event.pos[0] - origin[0], event.pos[1] - origin[1]
		if event.type == pygame.MOUSEBUTTONDOWN and event.button == 1:
			if self.mode == "fill":
				self.fill((x, y))
			else:
				self.begin_stroke((x, y))
		elif event.type == pygame.MOUSEMOTION and self._last is not None:
			self.extend_stroke((x, y))
		elif event.type == pygame.MOUSEBUTTONUP and event.button == 1:
			self.end_stroke()

	def render(self, target: pygame.Surface, dest: Tuple[int, int] = (0, 0)) -> None:
		if self.pixel_ratio == 1.0:
			target.blit(self.surface, dest)
		else:
			target.blit(pygame.transform.smoothscale(self.surface, self.logical_size), dest)

	# 内部
	def _emit(self, op: DrawOperation) -> None:
		if self.on_draw:
			self.on_draw(op)

	def _to_pixel(self, pos: Tuple[float, float]) -> Tuple[int, int]:
		pw, ph = self.surface.get_size()
		x = int(pos[0] * self.pixel_ratio)
		y = int(pos[1] * self.pixel_ratio)
		return (min(pw - 1, max(0, x)), min(ph - 1, max(0, y)))

	def _dot(self, pos: Tuple[float, float], color: Color, width: int) -> None:
		radius = max(1, round(width * self.pixel_ratio / 2))
		pygame.draw.circle(self.surface, color, self._to_pixel(pos), radius)

	def _line(self, a: Tuple[float, float], b: Tuple[float, float], color: Color, width: int) -> None:
		w = max(1, round(width * self.pixel_ratio))
		pa, pb = self._to_pixel(a), self._to_pixel(b)
		pygame.draw.line(self.surface, color, pa, pb, w)
		# // 圆头端点，避免粗线段之间出现缺口
		if w > 2:
			pygame.draw.circle(self.surface, color, pa, w // 2)
			pygame.draw.circle(self.surface, color, pb, w // 2)

	def _flood(self, pos: Tuple[float, float], color: Color) -> int:
		pw, ph = self.surface.get_size()
		buf = bytearray(pygame.image.tobytes(self.surface, "RGB"))
		filled = flood_fill(buf, pw, ph, self._to_pixel(pos), color, FILL_TOLERANCE)
		if filled:
			# // 整个区域一次性写回
			self.surface.blit(pygame.image.frombytes(bytes(buf), (pw, ph), "RGB"), (0, 0))
		return filled


__all__ = ["Canvas", "UndoStack"]
