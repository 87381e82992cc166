"""
绘图同步模块

- operations: 线路上的绘图操作（比例坐标）
- raster: 栅格快照与油漆桶填充
- canvas: 基于 pygame.Surface 的画布与撤销栈
"""

from .canvas import Canvas, UndoStack
from .operations import (
    Clear,
    DrawOperation,
    FloodFill,
    StrokeSegment,
    StrokeStart,
    UndoSnapshot,
    denormalize_point,
    normalize_point,
    operation_from_dict,
)
from .raster import RasterImage, flood_fill

__all__ = [
    "Canvas",
    "UndoStack",
    "Clear",
    "DrawOperation",
    "FloodFill",
    "StrokeSegment",
    "StrokeStart",
    "UndoSnapshot",
    "denormalize_point",
    "normalize_point",
    "operation_from_dict",
    "RasterImage",
    "flood_fill",
]
