"""Tests for pipeline/dashlib/commit_cache.py."""

# Standard Library
import os
import sys
from datetime import datetime
from datetime import timezone

import pytest

# add pipeline directory to path for dashlib imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "pipeline"))

from dashlib import commit_cache
from dashlib import commit_records


#============================================
def day(dom: int) -> datetime:
	return datetime(2024, 2, dom, tzinfo=timezone.utc)


#============================================
def make_github(sha: str, message: str = "fix: thing") -> commit_records.RawCommitRecord:
	return commit_records.github_record({
		"sha": sha,
		"commit": {"message": message, "committer": {"date": "2024-02-05T12:00:00Z"}},
	})


#============================================
def test_merge_same_identity_twice_keeps_later():
	"""Merging one identity twice keeps a single, later record."""
	store = commit_cache.CommitCacheStore()
	store.merge([make_github("abc", "old message")])
	store.merge([make_github("abc", "new message")])
	assert len(store) == 1
	assert store.records[0].payload["commit"]["message"] == "new message"


#============================================
def test_merge_dedups_within_batch():
	"""Duplicates inside one batch collapse with last write winning."""
	store = commit_cache.CommitCacheStore()
	merged = store.merge([make_github("a", "one"), make_github("b"), make_github("a", "two")])
	assert len(merged) == 2
	messages = {record.payload["sha"]: record.payload["commit"]["message"] for record in merged}
	assert messages["a"] == "two"


#============================================
def test_merge_keeps_sources_apart():
	"""Same hash from different providers stays as two records."""
	store = commit_cache.CommitCacheStore()
	store.merge([
		commit_records.github_record({"sha": "same"}),
		commit_records.azure_record({"commitId": "same"}),
	])
	assert len(store) == 2


#============================================
def test_merge_drops_malformed_with_log():
	"""Identity-less records are dropped and logged, not fatal."""
	lines = []
	store = commit_cache.CommitCacheStore(log_fn=lines.append)
	store.merge([make_github("a"), commit_records.github_record({"commit": {}})])
	assert len(store) == 1
	assert store.dropped_count == 1
	assert any("Dropped malformed" in line for line in lines)


#============================================
def test_extend_coverage_is_monotonic():
	"""Coverage start never moves later and end never moves earlier."""
	store = commit_cache.CommitCacheStore()
	store.extend_coverage(day(5), day(10))
	assert (store.covered_start, store.covered_end) == (day(5), day(10))
	store.extend_coverage(day(7), day(8))
	assert (store.covered_start, store.covered_end) == (day(5), day(10))
	store.extend_coverage(day(1), day(9))
	assert (store.covered_start, store.covered_end) == (day(1), day(10))
	store.extend_coverage(day(12), day(20))
	assert (store.covered_start, store.covered_end) == (day(1), day(20))


#============================================
def test_extend_coverage_rejects_inverted():
	"""Inverted bounds are a programming error."""
	store = commit_cache.CommitCacheStore()
	with pytest.raises(ValueError):
		store.extend_coverage(day(10), day(5))


#============================================
def test_reset_clears_everything():
	"""Reset empties records and coverage regardless of prior state."""
	store = commit_cache.CommitCacheStore()
	store.merge([make_github("a"), make_github("b")])
	store.extend_coverage(day(1), day(10))
	store.reset()
	assert len(store) == 0
	assert store.records == []
	assert store.covered_start is None
	assert store.covered_end is None
	assert store.is_empty is True
	assert store.describe_coverage() == "empty"
