"""The fixed set of bookable time-of-day slots for a clinic day."""

import re
from datetime import date, datetime, time, timedelta

from backend.core import config
from backend.scheduling.errors import InvalidSlot

MILLIS_PER_MINUTE = 60 * 1000
MINUTES_PER_DAY = 24 * 60

_SLOT_LABEL_PATTERN = re.compile(r'^(\d{1,2}):(\d{2})\s*([AaPp][Mm])$')


def format_slot_label(slot_time: time) -> str:
    """Render a time of day as a 12-hour label such as ``"02:30 PM"``."""
    meridiem = 'AM' if slot_time.hour < 12 else 'PM'
    hour = slot_time.hour % 12 or 12
    return f'{hour:02d}:{slot_time.minute:02d} {meridiem}'


def parse_slot_label(label: str) -> time:
    match = _SLOT_LABEL_PATTERN.match(label.strip()) if isinstance(label, str) else None
    if match is None:
        raise InvalidSlot(f'Invalid slot label: {label!r}.')

    hour, minute, meridiem = int(match.group(1)), int(match.group(2)), match.group(3).upper()
    if not 1 <= hour <= 12 or minute > 59:
        raise InvalidSlot(f'Invalid slot label: {label!r}.')

    # 12 AM is midnight and 12 PM is noon.
    if hour == 12:
        hour = 0
    if meridiem == 'PM':
        hour += 12

    return time(hour, minute)


class SlotCatalog:
    """Ordered, duplicate-free sequence of slot labels shared by all doctors and days."""

    def __init__(
        self,
        open_hour: int = config.CLINIC_OPEN_HOUR,
        close_hour: int = config.CLINIC_CLOSE_HOUR,
        step_minutes: int = config.SLOT_STEP_MINUTES,
        include_close: bool = config.SLOT_INCLUDE_CLOSE,
    ):
        if step_minutes <= 0:
            raise ValueError('step_minutes must be positive.')
        if not 0 <= open_hour < close_hour <= 24:
            raise ValueError('Opening hours must satisfy 0 <= open_hour < close_hour <= 24.')

        self.open_hour = open_hour
        self.close_hour = close_hour
        self.step_minutes = step_minutes

        start = open_hour * 60
        end = close_hour * 60
        minutes = list(range(start, end, step_minutes))
        if include_close and end < MINUTES_PER_DAY and end - minutes[-1] == step_minutes:
            minutes.append(end)

        self._slots = tuple(format_slot_label(time(m // 60, m % 60)) for m in minutes)
        self._positions = {label: position for position, label in enumerate(self._slots)}

    def __len__(self) -> int:
        return len(self._slots)

    def __iter__(self):
        return iter(self._slots)

    def all_slots(self) -> tuple[str, ...]:
        return self._slots

    def contains(self, label: str) -> bool:
        return self.index_of(label) is not None

    def index_of(self, label: str) -> int | None:
        try:
            return self._positions.get(format_slot_label(parse_slot_label(label)))
        except InvalidSlot:
            return None

    def normalize(self, label: str) -> str:
        """Return the catalog's spelling of ``label`` (``"2:30 pm"`` -> ``"02:30 PM"``)."""
        return format_slot_label(parse_slot_label(label))

    @staticmethod
    def to_offset_millis(label: str) -> int:
        slot_time = parse_slot_label(label)
        return (slot_time.hour * 60 + slot_time.minute) * MILLIS_PER_MINUTE

    @classmethod
    def combine(cls, slot_date: date, label: str) -> datetime:
        midnight = datetime.combine(slot_date, time(0, 0))
        return midnight + timedelta(milliseconds=cls.to_offset_millis(label))
