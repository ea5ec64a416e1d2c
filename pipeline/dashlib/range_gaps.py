"""Gap calculation between the cached coverage interval and a new request.

Coverage is always one contiguous interval, so a request can extend it on
the left, on the right, or both. Each side is checked on its own and at
most two gaps are produced.
"""

# Standard Library
import dataclasses
from datetime import datetime

from dashlib.date_ranges import DateRange


#============================================
@dataclasses.dataclass(frozen=True)
class GapPlan:
	"""
	Sub-intervals to fetch plus the coverage that results once all succeed.
	"""
	gaps: tuple
	new_start: datetime
	new_end: datetime

	@property
	def is_cache_hit(self) -> bool:
		return len(self.gaps) == 0


#============================================
def compute_gap_plan(
	covered_start: datetime | None,
	covered_end: datetime | None,
	requested: DateRange,
) -> GapPlan:
	"""
	Compute the fetches needed so coverage includes `requested`.

	Args:
		covered_start: start of current coverage, None when nothing is cached.
		covered_end: end of current coverage, None when nothing is cached.
		requested: validated range the caller wants to display.

	Returns:
		GapPlan with zero, one or two gaps in (before, after) order.
	"""
	if covered_start is None or covered_end is None:
		whole = DateRange(requested.start, requested.end)
		return GapPlan((whole,), requested.start, requested.end)

	gaps = []
	new_start = covered_start
	new_end = covered_end
	if requested.start < covered_start:
		gaps.append(DateRange(requested.start, covered_start))
		new_start = requested.start
	if requested.end > covered_end:
		gaps.append(DateRange(covered_end, requested.end))
		new_end = requested.end
	return GapPlan(tuple(gaps), new_start, new_end)
