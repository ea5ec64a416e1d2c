"""Date range values, validation and the dashboard range presets."""

# Standard Library
import dataclasses
import re
from datetime import datetime
from datetime import timedelta
from datetime import timezone

from dashlib.errors import InvalidRangeError

DATE_ONLY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

# (label, trailing days)
RANGE_PRESETS = (
	("2 weeks", 14),
	("1 month", 30),
	("2 months", 60),
	("6 months", 180),
	("1 year", 365),
)
DEFAULT_PRESET_DAYS = 14


#============================================
@dataclasses.dataclass(frozen=True)
class DateRange:
	"""
	Inclusive [start, end] interval of timezone-aware UTC datetimes.
	"""
	start: datetime
	end: datetime
	label: str = ""

	def contains(self, value: datetime) -> bool:
		return self.start <= value <= self.end

	def describe(self) -> str:
		text = f"{self.start.date().isoformat()} -> {self.end.date().isoformat()}"
		if self.label:
			return f"{self.label} ({text})"
		return text


#============================================
def to_utc(value: datetime) -> datetime:
	"""
	Normalize datetime to timezone-aware UTC.
	"""
	if value.tzinfo is None:
		return value.replace(tzinfo=timezone.utc)
	return value.astimezone(timezone.utc)


#============================================
def validate_range(date_range: DateRange) -> DateRange:
	"""
	Reject inverted ranges and return a UTC-normalized copy.

	Raises:
		InvalidRangeError: when start is after end.
	"""
	start = to_utc(date_range.start)
	end = to_utc(date_range.end)
	if start > end:
		raise InvalidRangeError(
			f"Range start {start.isoformat()} is after range end {end.isoformat()}."
		)
	return DateRange(start, end, date_range.label)


#============================================
def make_range(start: datetime, end: datetime, label: str = "") -> DateRange:
	"""
	Build and validate one range.
	"""
	return validate_range(DateRange(start, end, label))


#============================================
def preset_label(days: int) -> str:
	"""
	Return the display label for a preset length, or a generic one.
	"""
	for label, preset_days in RANGE_PRESETS:
		if preset_days == days:
			return label
	return f"{days} days"


#============================================
def preset_range(days: int, now: datetime | None = None) -> DateRange:
	"""
	Build a trailing range ending now and starting `days` earlier.
	"""
	if days < 1:
		raise InvalidRangeError(f"Preset length must be >= 1 day; got {days}")
	end = to_utc(now or datetime.now(timezone.utc))
	start = end - timedelta(days=days)
	return DateRange(start, end, preset_label(days))


#============================================
def parse_range_bound(text: str, is_end: bool) -> datetime:
	"""
	Parse one CLI/settings date bound.

	Date-only values expand to the first or last second of that UTC day.
	"""
	value = (text or "").strip()
	if not value:
		raise InvalidRangeError("Empty date value.")
	try:
		if DATE_ONLY_RE.match(value):
			day = datetime.strptime(value, "%Y-%m-%d").replace(tzinfo=timezone.utc)
			if is_end:
				return day.replace(hour=23, minute=59, second=59)
			return day
		parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
	except ValueError as error:
		raise InvalidRangeError(f"Invalid date value: {value}") from error
	return to_utc(parsed)


#============================================
def custom_range(start_text: str, end_text: str) -> DateRange:
	"""
	Build a validated custom range from two date strings.
	"""
	start = parse_range_bound(start_text, is_end=False)
	end = parse_range_bound(end_text, is_end=True)
	return make_range(start, end, "custom")
