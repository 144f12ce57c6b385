from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True, kw_only=True)
class EventInstance:
    start: datetime
    end: datetime | None
    position: int

    def __post_init__(self) -> None:
        if self.end is not None and self.start > self.end:
            raise ValueError(
                f"EventInstance start ({self.start}) must be <= end ({self.end})"
            )
        if self.position < 0:
            raise ValueError(f"EventInstance position must be >= 0, got {self.position}")

    @property
    def duration(self) -> int | None:
        """Length in whole seconds, or None for open-ended instances."""
        if self.end is None:
            return None
        return int((self.end - self.start).total_seconds())

    def __str__(self) -> str:
        """Human-friendly string showing position, start and duration."""
        if self.end is None:
            return f"EventInstance(#{self.position}, {self.start.isoformat()}, no end)"
        return (
            f"EventInstance(#{self.position}, {self.start.isoformat()}"
            f"→{self.end.isoformat()}, {self.duration}s)"
        )
