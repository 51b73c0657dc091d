"""
Clock and identifier sources for the simulation engine.

The engine never reads the wall clock or generates random ids on its own;
every call that needs "now" or a new id takes an Environment. Tests and the
simulation driver use ManualClock + SequentialIds so runs are reproducible.
"""

import itertools
import secrets
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, tzinfo
from typing import Optional


SECONDS_PER_HOUR = 60 * 60
SECONDS_PER_DAY = 24 * SECONDS_PER_HOUR


class Clock(ABC):
    """Supplies POSIX timestamps (seconds) and calendar-day boundaries"""

    def __init__(self, tz: Optional[tzinfo] = None):
        # None = local time of the process
        self.tz = tz

    @abstractmethod
    def now(self) -> float:
        ...

    def day_start(self, ts: float) -> float:
        """Timestamp of midnight starting the calendar day that contains ts"""
        moment = datetime.fromtimestamp(ts, self.tz)
        midnight = moment.replace(hour=0, minute=0, second=0, microsecond=0)
        return midnight.timestamp()


class SystemClock(Clock):
    """Wall clock"""

    def now(self) -> float:
        return time.time()


class ManualClock(Clock):
    """Deterministic clock moved forward explicitly by the caller"""

    def __init__(self, start: float = 0.0, tz: Optional[tzinfo] = None):
        super().__init__(tz)
        self._now = float(start)

    def now(self) -> float:
        return self._now

    def set(self, ts: float):
        if ts < self._now:
            raise ValueError(f"Clock cannot move backwards ({ts} < {self._now})")
        self._now = float(ts)

    def advance(self, seconds: float = 0.0, hours: float = 0.0, days: float = 0.0) -> float:
        """Move forward and return the new time"""
        self.set(self._now + seconds + hours * SECONDS_PER_HOUR + days * SECONDS_PER_DAY)
        return self._now


class IdSource(ABC):
    """Produces opaque identifiers, unique within a running state"""

    @abstractmethod
    def new_id(self) -> str:
        ...


class RandomIds(IdSource):
    """Random hex identifiers from the secrets module"""

    def __init__(self, nbytes: int = 8):
        self.nbytes = nbytes

    def new_id(self) -> str:
        return secrets.token_hex(self.nbytes)


class SequentialIds(IdSource):
    """prefix-1, prefix-2, ..."""

    def __init__(self, prefix: str = "id"):
        self.prefix = prefix
        self._counter = itertools.count(1)

    def new_id(self) -> str:
        return f"{self.prefix}-{next(self._counter)}"


@dataclass(frozen=True)
class Environment:
    clock: Clock = field(default_factory=SystemClock)
    ids: IdSource = field(default_factory=RandomIds)


def default_environment() -> Environment:
    return Environment(SystemClock(), RandomIds())


def resolve(env: Optional[Environment]) -> Environment:
    return env if env is not None else default_environment()
