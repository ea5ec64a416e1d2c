"""Tests for pipeline/dashlib/fetch_orchestrator.py."""

# Standard Library
import os
import sys
from datetime import datetime
from datetime import timezone

import pytest

# add pipeline directory to path for dashlib imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "pipeline"))

from dashlib import commit_records
from dashlib import fetch_orchestrator
from dashlib.date_ranges import DateRange
from dashlib.errors import FetchInProgressError
from dashlib.errors import InvalidRangeError
from dashlib.errors import TransportError

CONTEXT = fetch_orchestrator.FetchContext("github", "octocat", token="t")


#============================================
def day(month: int, dom: int) -> datetime:
	return datetime(2024, month, dom, tzinfo=timezone.utc)


#============================================
def commit_on(sha: str, when: datetime, message: str = "feat: work"):
	return commit_records.github_record({
		"sha": sha,
		"commit": {"message": message, "committer": {"date": when.isoformat()}},
		"repository": {"name": "alpha"},
	})


#============================================
class FakeProvider:
	"""
	Serves commits from a fixed timeline and records every call.
	"""

	def __init__(self, timeline: list, fail_on_call: int | None = None):
		self.timeline = timeline
		self.fail_on_call = fail_on_call
		self.calls = []

	def __call__(self, identity, range_start, range_end, context):
		self.calls.append((range_start, range_end))
		if self.fail_on_call is not None and len(self.calls) == self.fail_on_call:
			raise ConnectionError("network down")
		found = []
		for sha, when in self.timeline:
			if range_start <= when <= range_end:
				found.append(commit_on(sha, when))
		return found


TIMELINE = [
	("jan10", day(1, 10)),
	("jan25", day(1, 25)),
	("feb05", day(2, 5)),
	("feb12", day(2, 12)),
	("feb20", day(2, 20)),
]


#============================================
def make_session(provider: FakeProvider) -> fetch_orchestrator.DashboardSession:
	session = fetch_orchestrator.DashboardSession(lambda context: provider)
	session.connect(CONTEXT)
	return session


#============================================
def test_first_request_fetches_full_range():
	"""An empty cache fetches exactly the requested range."""
	provider = FakeProvider(TIMELINE)
	session = make_session(provider)
	stats = session.request_range_update(DateRange(day(2, 1), day(2, 15)))
	assert provider.calls == [(day(2, 1), day(2, 15))]
	assert stats["total_commits"] == 2
	assert stats["cache_hit"] is False
	assert (session.cache.covered_start, session.cache.covered_end) == (day(2, 1), day(2, 15))


#============================================
def test_narrower_request_is_cache_hit():
	"""A request inside coverage makes no provider call but refilters."""
	provider = FakeProvider(TIMELINE)
	session = make_session(provider)
	session.request_range_update(DateRange(day(2, 1), day(2, 15)))
	stats = session.request_range_update(DateRange(day(2, 10), day(2, 15)))
	assert len(provider.calls) == 1
	assert stats["cache_hit"] is True
	assert stats["total_commits"] == 1
	assert stats["cached_total"] == 2


#============================================
def test_wider_request_fetches_both_gaps_only():
	"""Extending both sides fetches only the two missing intervals."""
	provider = FakeProvider(TIMELINE)
	session = make_session(provider)
	session.request_range_update(DateRange(day(2, 1), day(2, 15)))
	stats = session.request_range_update(DateRange(day(1, 15), day(3, 1)))
	assert provider.calls[1:] == [(day(1, 15), day(2, 1)), (day(2, 15), day(3, 1))]
	assert stats["total_commits"] == 4
	assert (session.cache.covered_start, session.cache.covered_end) == (day(1, 15), day(3, 1))


#============================================
def test_coverage_monotonic_over_cycles():
	"""Coverage start never increases and end never decreases."""
	provider = FakeProvider(TIMELINE)
	session = make_session(provider)
	previous = None
	for requested in (
		DateRange(day(2, 1), day(2, 15)),
		DateRange(day(2, 5), day(2, 6)),
		DateRange(day(1, 1), day(2, 2)),
		DateRange(day(2, 10), day(3, 1)),
	):
		session.request_range_update(requested)
		bounds = (session.cache.covered_start, session.cache.covered_end)
		if previous is not None:
			assert bounds[0] <= previous[0]
			assert bounds[1] >= previous[1]
		previous = bounds


#============================================
def test_failure_on_second_gap_leaves_cache_untouched():
	"""A failing gap aborts the cycle without merging or widening coverage."""
	provider = FakeProvider(TIMELINE, fail_on_call=3)
	session = make_session(provider)
	first_stats = session.request_range_update(DateRange(day(2, 1), day(2, 15)))
	before_records = sorted(commit_records.identity_key(r) for r in session.cache.records)
	before_bounds = (session.cache.covered_start, session.cache.covered_end)

	with pytest.raises(TransportError):
		session.request_range_update(DateRange(day(1, 15), day(3, 1)))

	after_records = sorted(commit_records.identity_key(r) for r in session.cache.records)
	assert after_records == before_records
	assert (session.cache.covered_start, session.cache.covered_end) == before_bounds
	assert session.last_stats is first_stats


#============================================
def test_transport_error_passes_through_unchanged():
	"""Provider TransportError subclasses propagate as-is."""
	def failing(identity, range_start, range_end, context):
		raise TransportError("rate limited")
	session = fetch_orchestrator.DashboardSession(lambda context: failing)
	session.connect(CONTEXT)
	with pytest.raises(TransportError, match="rate limited"):
		session.request_range_update(DateRange(day(2, 1), day(2, 2)))
	assert session.cache.is_empty


#============================================
def test_invalid_range_rejected_before_fetch():
	"""Inverted ranges never reach the provider."""
	provider = FakeProvider(TIMELINE)
	session = make_session(provider)
	with pytest.raises(InvalidRangeError):
		session.request_range_update(DateRange(day(2, 15), day(2, 1)))
	assert provider.calls == []


#============================================
def test_reentrant_request_is_rejected():
	"""A range update started from inside a fetch is refused."""
	holder = {}

	def reentrant(identity, range_start, range_end, context):
		with pytest.raises(FetchInProgressError):
			holder["session"].request_range_update(DateRange(day(2, 1), day(2, 2)))
		return []

	session = fetch_orchestrator.DashboardSession(lambda context: reentrant)
	holder["session"] = session
	session.connect(CONTEXT)
	session.request_range_update(DateRange(day(2, 1), day(2, 15)))
	# the guard is released afterwards
	session.request_range_update(DateRange(day(2, 1), day(2, 15)))


#============================================
def test_connect_new_identity_resets_cache():
	"""Switching identity clears cached records and coverage."""
	provider = FakeProvider(TIMELINE)
	session = make_session(provider)
	session.request_range_update(DateRange(day(2, 1), day(2, 15)))
	session.connect(fetch_orchestrator.FetchContext("github", "octocat", token="new"))
	assert len(session.cache) == 2
	session.connect(fetch_orchestrator.FetchContext("github", "hubot"))
	assert len(session.cache) == 0
	assert session.cache.is_empty
	assert session.last_stats is None


#============================================
def test_disconnect_requires_reconnect():
	"""After disconnect the session refuses updates."""
	provider = FakeProvider(TIMELINE)
	session = make_session(provider)
	session.request_range_update(DateRange(day(2, 1), day(2, 15)))
	session.disconnect()
	assert session.cache.is_empty
	assert session.is_connected is False
	with pytest.raises(RuntimeError):
		session.request_range_update(DateRange(day(2, 1), day(2, 15)))
