"""
词语遮罩与提示

mask_word 决定猜词者看到的形式；hint_offsets 计算提示揭示的时间点。
"""

from __future__ import annotations

from typing import AbstractSet, List


def mask_word(word: str, revealed: AbstractSet[int], is_drawer: bool = False) -> str:
    """按请求者身份生成显示文本

    - 绘者：完整的大写词语
    - 其他人：未揭示的非空格字符显示为 `_`，已揭示的显示为大写，空格保留
    """
    if is_drawer:
        return word.upper()
    out = []
    for i, ch in enumerate(word):
        if ch == " ":
            out.append(" ")
        elif i in revealed:
            out.append(ch.upper())
        else:
            out.append("_")
    return "".join(out)


def letter_indices(word: str) -> List[int]:
    return [i for i, ch in enumerate(word) if ch != " "]


def hint_offsets(draw_time: int, hint_count: int) -> List[int]:
    """把绘画时长分成 hint_count + 1 段，在每个内部分界点（按剩余秒数，四舍五入）揭示一次"""
    segments = hint_count + 1
    offsets = []
    for i in range(1, hint_count + 1):
        elapsed = (2 * draw_time * i + segments) // (2 * segments)
        offsets.append(draw_time - elapsed)
    return offsets


__all__ = ["mask_word", "letter_indices", "hint_offsets"]
