"""Rotation policy: periodic timer or line-count ceiling, never both."""

from dataclasses import dataclass

from comlog.errors import ConfigurationError

DEFAULT_MAX_LINES_PER_FILE = 500_000


@dataclass(frozen=True)
class RotationPolicy:
    """Decides when the current output file is replaced.

    A positive period selects timed rotation and disables the line-count
    ceiling. A period of zero selects size rotation.
    """

    period_minutes: int = 0
    max_lines_per_file: int = DEFAULT_MAX_LINES_PER_FILE

    def __post_init__(self):
        if self.period_minutes < 0:
            raise ConfigurationError(
                f"rotation period must be >= 0 minutes, got {self.period_minutes}"
            )
        if self.max_lines_per_file <= 0:
            raise ConfigurationError(
                f"max lines per file must be > 0, got {self.max_lines_per_file}"
            )

    @property
    def timed(self) -> bool:
        return self.period_minutes > 0

    @property
    def interval_seconds(self) -> float | None:
        if not self.timed:
            return None
        return self.period_minutes * 60.0

    def should_rotate_after_write(self, line_count: int) -> bool:
        if self.timed:
            return False
        return line_count >= self.max_lines_per_file

    def should_rotate_on_tick(self) -> bool:
        return self.timed

    def describe(self) -> str:
        if self.timed:
            return f"every {self.period_minutes} min"
        return f"every {self.max_lines_per_file} lines"
