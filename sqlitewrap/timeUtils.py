from __future__ import annotations


def getDurationMs(startMonotonic: float, endMonotonic: float) -> float:
    """
    Назначение:
        Длительность в миллисекундах по monotonic timestamps.
        Дробная: большинство операций с БД короче миллисекунды.
    """
    return (endMonotonic - startMonotonic) * 1000
