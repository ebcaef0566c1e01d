"""Wall-clock helpers shared by the generator, engine and notifier."""

from collections.abc import Callable
from datetime import datetime

type Clock = Callable[[], datetime]


def local_now() -> datetime:
    """Timezone-aware local time; hour-of-day patterns follow the building's clock."""
    return datetime.now().astimezone()
