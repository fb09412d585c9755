import math
import re
from managed_exceptions import InvalidArgumentException

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h|d)")
_UNIT_SECONDS: dict[str, float] = {
    "ms": 0.001,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
    "d": 86400.0,
}

class DurationUtil:

    @staticmethod
    def parse_seconds(value: "str | float | int") -> float:
        """Parse ``30s``, ``5m``, ``1h30m`` or bare seconds into seconds."""
        if isinstance(value, (int, float)):
            return DurationUtil.__assert_non_negative(float(value), str(value))

        text: str = value.strip().lower().replace(" ", "")
        if not text:
            raise InvalidArgumentException("Duration must not be empty")

        try:
            return DurationUtil.__assert_non_negative(float(text), value)
        except ValueError:
            pass

        position: int = 0
        total: float = 0.0
        for match in _DURATION_PART.finditer(text):
            if match.start() != position:
                break
            total += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
            position = match.end()

        if position == 0 or position != len(text):
            raise InvalidArgumentException(
                f"'{value}' is not a valid duration, expected e.g. 30s, 5m or 1h30m",
                diagnostic_details={"duration": str(value)}
            )
        return total

    @staticmethod
    def format_seconds(seconds: float) -> str:
        whole: int = int(seconds)
        if whole != seconds or whole == 0:
            return f"{seconds:g}s"
        hours, remainder = divmod(whole, 3600)
        minutes, secs = divmod(remainder, 60)
        parts: list[str] = []
        if hours:
            parts.append(f"{hours}h")
        if minutes:
            parts.append(f"{minutes}m")
        if secs:
            parts.append(f"{secs}s")
        return "".join(parts)

    @staticmethod
    def __assert_non_negative(seconds: float, raw: str) -> float:
        if not math.isfinite(seconds) or seconds < 0:
            raise InvalidArgumentException(
                f"Duration must be a finite, non-negative number, got: {raw}",
                diagnostic_details={"duration": str(raw)}
            )
        return seconds
