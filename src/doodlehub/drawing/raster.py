"""
栅格工具

- RasterImage: 整幅画布的 RGB 快照（撤销栈与撤销广播使用）
- flood_fill: 基于工作栈的 4 连通油漆桶填充，带颜色容差
"""

from __future__ import annotations

import base64
import binascii
import zlib
from dataclasses import dataclass
from typing import Any, Dict, Tuple

from doodlehub.shared.constants import FILL_TOLERANCE, MAX_RASTER_PIXELS
from doodlehub.shared.errors import ProtocolError

Color = Tuple[int, int, int]


@dataclass(frozen=True)
class RasterImage:
    """RGB 像素快照，每像素 3 字节，按行存放"""

    width: int
    height: int
    data: bytes

    def to_dict(self) -> Dict[str, Any]:
        packed = base64.b64encode(zlib.compress(self.data)).decode("ascii")
        return {"width": self.width, "height": self.height, "data": packed}

    @classmethod
    def from_dict(cls, obj: Dict[str, Any]) -> "RasterImage":
        try:
            width, height = int(obj["width"]), int(obj["height"])
            packed = base64.b64decode(obj["data"])
        except (KeyError, TypeError, ValueError, OverflowError, binascii.Error) as exc:
            raise ProtocolError(f"invalid raster image: {exc}") from exc
        if width <= 0 or height <= 0 or width * height > MAX_RASTER_PIXELS:
            raise ProtocolError(f"invalid raster image size: {width}x{height}")
        expected = width * height * 3
        # 解压长度不超过声明尺寸，多出的数据视为不匹配
        inflater = zlib.decompressobj()
        try:
            data = inflater.decompress(packed, expected + 1)
        except zlib.error as exc:
            raise ProtocolError(f"invalid raster image: {exc}") from exc
        if len(data) != expected or not inflater.eof or inflater.unconsumed_tail:
            raise ProtocolError("raster image size does not match its data")
        return cls(width, height, data)


def colors_match(a: Color, b: Color, tolerance: int = 0) -> bool:
    return (
        abs(a[0] - b[0]) <= tolerance
        and abs(a[1] - b[1]) <= tolerance
        and abs(a[2] - b[2]) <= tolerance
    )


def pixel_at(buf: bytearray, width: int, x: int, y: int) -> Color:
    o = (y * width + x) * 3
    return buf[o], buf[o + 1], buf[o + 2]


def flood_fill(
    buf: bytearray,
    width: int,
    height: int,
    seed: Tuple[int, int],
    color: Color,
    tolerance: int = FILL_TOLERANCE,
) -> int:
    """在 RGB 缓冲区上原地填充，返回被改写的像素数

    与种子颜色逐分量相差不超过 tolerance 的相连像素都会被填充，
    以容忍抗锯齿边缘；种子颜色已等于目标颜色时什么也不做。
    使用显式工作栈而非递归，大面积区域也不会耗尽调用栈。
    """
    x, y = seed
    if not (0 <= x < width and 0 <= y < height):
        return 0
    target = pixel_at(buf, width, x, y)
    if colors_match(target, color):
        return 0

    fill = bytes(color)
    visited = bytearray(width * height)
    stack = [(x, y)]
    filled = 0
    while stack:
        cx, cy = stack.pop()
        if cx < 0 or cx >= width or cy < 0 or cy >= height:
            continue
        idx = cy * width + cx
        if visited[idx]:
            continue
        visited[idx] = 1
        o = idx * 3
        if not colors_match((buf[o], buf[o + 1], buf[o + 2]), target, tolerance):
            continue
        buf[o:o + 3] = fill
        filled += 1
        stack.append((cx + 1, cy))
        stack.append((cx - 1, cy))
        stack.append((cx, cy + 1))
        stack.append((cx, cy - 1))
    return filled


__all__ = ["Color", "RasterImage", "colors_match", "pixel_at", "flood_fill"]
