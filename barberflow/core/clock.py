from datetime import datetime
from typing import Callable


Clock = Callable[[], datetime]


def system_clock() -> datetime:
    return datetime.now().replace(microsecond=0)


def fixed_clock(instant: datetime) -> Clock:
    return lambda: instant


def get_clock() -> Clock:
    return system_clock
