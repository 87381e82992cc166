"""
计时器注册表

所有阶段计时器都登记在这里，并绑定所属阶段：
- 每次阶段切换调用 sweep(new_phase)，清除其它阶段的计时器
- 到期时若所属阶段已不是当前阶段，直接丢弃而不触发

计时器不自带线程，由主循环调用 run_due() 推进，时钟可注入便于测试。
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Hashable, Optional

logger = logging.getLogger(__name__)


@dataclass
class Timer:
    phase: Hashable
    name: str
    deadline: float
    callback: Callable[[], None]
    interval: Optional[float] = None
    cancelled: bool = False


class TimerRegistry:
    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        phase_getter: Optional[Callable[[], Hashable]] = None,
    ):
        self.clock = clock
        self._phase_getter = phase_getter
        self._timers: Dict[str, Timer] = {}

    def __len__(self) -> int:
        return len(self._timers)

    def __contains__(self, name: str) -> bool:
        return name in self._timers

    def schedule(
        self,
        phase: Hashable,
        name: str,
        delay: float,
        callback: Callable[[], None],
        interval: Optional[float] = None,
    ) -> Timer:
        """登记计时器；同名计时器会被替换"""
        self.cancel(name)
        timer = Timer(phase, name, self.clock() + delay, callback, interval)
        self._timers[name] = timer
        return timer

    def cancel(self, name: str) -> None:
        timer = self._timers.pop(name, None)
        if timer is not None:
            timer.cancelled = True

    def sweep(self, phase: Hashable) -> int:
        """取消所有不属于 phase 的计时器，返回取消数量"""
        stale = [name for name, t in self._timers.items() if t.phase != phase]
        for name in stale:
            self.cancel(name)
        return len(stale)

    def cancel_all(self) -> None:
        for name in list(self._timers):
            self.cancel(name)

    def next_deadline(self) -> Optional[float]:
        if not self._timers:
            return None
        return min(t.deadline for t in self._timers.values())

    def run_due(self, now: Optional[float] = None) -> int:
        """按到期顺序触发所有已到期的计时器，返回触发次数"""
        now = self.clock() if now is None else now
        fired = 0
        while True:
            due = [t for t in self._timers.values() if t.deadline <= now]
            if not due:
                return fired
            timer = min(due, key=lambda t: t.deadline)
            if self._phase_getter is not None and timer.phase != self._phase_getter():
                logger.debug("丢弃过期阶段的计时器: %s (%s)", timer.name, timer.phase)
                self.cancel(timer.name)
                continue
            if timer.interval is None:
                self._timers.pop(timer.name, None)
            else:
                timer.deadline += timer.interval
            timer.callback()
            fired += 1


__all__ = ["Timer", "TimerRegistry"]
