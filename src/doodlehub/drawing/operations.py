"""
绘图操作

线路上的绘图操作是封闭的标签联合：{"kind": ..., ...}。
所有坐标都是相对发送方逻辑画布尺寸的比例（0..1），
接收方按自己的画布尺寸还原，因此与窗口大小和像素密度无关。
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Callable, Dict, Sequence, Tuple, Union

from doodlehub.shared.errors import ProtocolError

from .raster import Color, RasterImage

Point = Tuple[float, float]


def normalize_point(point: Sequence[float], extent: Tuple[int, int]) -> Point:
    """逻辑坐标 -> 比例坐标（裁剪到 [0, 1]）"""
    w, h = max(1, extent[0]), max(1, extent[1])
    return (min(1.0, max(0.0, point[0] / w)), min(1.0, max(0.0, point[1] / h)))


def denormalize_point(point: Sequence[float], extent: Tuple[int, int]) -> Point:
    return (point[0] * extent[0], point[1] * extent[1])


def parse_color(value: Any) -> Color:
    """支持 [r, g, b] 或 "#rrggbb" 两种写法"""
    try:
        if isinstance(value, str):
            text = value.lstrip("#")
            if len(text) != 6:
                raise ValueError(value)
            rgb = (int(text[0:2], 16), int(text[2:4], 16), int(text[4:6], 16))
        else:
            rgb = tuple(int(c) for c in value)
        if len(rgb) != 3 or not all(0 <= c <= 255 for c in rgb):
            raise ValueError(value)
    except (TypeError, ValueError) as exc:
        raise ProtocolError(f"invalid color: {value!r}") from exc
    return rgb  # type: ignore[return-value]


def _point(value: Any) -> Point:
    try:
        x, y = float(value[0]), float(value[1])
    except (TypeError, ValueError, IndexError) as exc:
        raise ProtocolError(f"invalid point: {value!r}") from exc
    if not (math.isfinite(x) and math.isfinite(y)):
        raise ProtocolError(f"invalid point: {value!r}")
    return (x, y)


def _width(value: Any) -> int:
    """笔宽必须是有限的正数"""
    try:
        width = int(value)
    except (TypeError, ValueError, OverflowError) as exc:
        raise ProtocolError(f"invalid width: {value!r}") from exc
    if width <= 0:
        raise ProtocolError(f"invalid width: {value!r}")
    return width


@dataclass(frozen=True)
class StrokeStart:
    point: Point
    color: Color
    width: int

    kind = "start"

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "point": list(self.point), "color": list(self.color), "width": self.width}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "StrokeStart":
        return cls(_point(d["point"]), parse_color(d["color"]), _width(d["width"]))


@dataclass(frozen=True)
class StrokeSegment:
    start: Point
    end: Point
    color: Color
    width: int

    kind = "segment"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "from": list(self.start),
            "to": list(self.end),
            "color": list(self.color),
            "width": self.width,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "StrokeSegment":
        return cls(_point(d["from"]), _point(d["to"]), parse_color(d["color"]), _width(d["width"]))


@dataclass(frozen=True)
class FloodFill:
    seed: Point
    color: Color

    kind = "fill"

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "seed": list(self.seed), "color": list(self.color)}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "FloodFill":
        return cls(_point(d["seed"]), parse_color(d["color"]))


@dataclass(frozen=True)
class Clear:
    kind = "clear"

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Clear":
        return cls()


@dataclass(frozen=True)
class UndoSnapshot:
    """撤销后的整幅画面（栅格），而非操作回放"""

    image: RasterImage

    kind = "undo"

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "image": self.image.to_dict()}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "UndoSnapshot":
        return cls(RasterImage.from_dict(d["image"]))


DrawOperation = Union[StrokeStart, StrokeSegment, FloodFill, Clear, UndoSnapshot]

_DECODERS: Dict[str, Callable[[Dict[str, Any]], Any]] = {
    cls.kind: cls.from_dict for cls in (StrokeStart, StrokeSegment, FloodFill, Clear, UndoSnapshot)
}


def operation_from_dict(data: Any) -> DrawOperation:
    if not isinstance(data, dict):
        raise ProtocolError("draw operation must be an object")
    decoder = _DECODERS.get(data.get("kind"))
    if decoder is None:
        raise ProtocolError(f"unknown draw operation: {data.get('kind')!r}")
    try:
        return decoder(data)
    except (KeyError, TypeError, ValueError) as exc:
        raise ProtocolError(f"invalid {data['kind']} operation: {exc}") from exc


__all__ = [
    "Point",
    "normalize_point",
    "denormalize_point",
    "parse_color",
    "StrokeStart",
    "StrokeSegment",
    "FloodFill",
    "Clear",
    "UndoSnapshot",
    "DrawOperation",
    "operation_from_dict",
]
