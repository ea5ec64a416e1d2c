"""In-memory commit cache with a contiguous coverage interval."""

# Standard Library
from datetime import datetime

from dashlib import commit_records
from dashlib.errors import MalformedRecordError


#============================================
class CommitCacheStore:
	"""
	Deduplicated raw commit records plus the date interval they cover.

	If covered_start/covered_end are set, every remote commit inside that
	interval has been fetched into the store. Records only grow until
	reset(), and coverage only widens.
	"""

	def __init__(self, log_fn=None):
		self.log_fn = log_fn
		self._records: dict[str, commit_records.RawCommitRecord] = {}
		self.covered_start: datetime | None = None
		self.covered_end: datetime | None = None
		self.dropped_count = 0

	#============================================
	def log(self, message: str) -> None:
		"""
		Emit one log line when logger is configured.
		"""
		if self.log_fn is not None:
			self.log_fn(message)

	#============================================
	def __len__(self) -> int:
		return len(self._records)

	#============================================
	@property
	def records(self) -> list:
		"""
		Current records; order carries no meaning.
		"""
		return list(self._records.values())

	#============================================
	@property
	def is_empty(self) -> bool:
		return self.covered_start is None or self.covered_end is None

	#============================================
	def merge(self, new_records: list) -> list:
		"""
		Merge fetched records into the store, last write wins per identity.

		Records without an identity are dropped with a diagnostic.

		Returns:
			The merged record list.
		"""
		merged = dict(self._records)
		added = 0
		replaced = 0
		dropped = 0
		for record in new_records:
			try:
				key = commit_records.identity_key(record)
			except MalformedRecordError as error:
				dropped += 1
				self.log(f"Dropped malformed commit record: {error}")
				continue
			if key in merged:
				replaced += 1
			else:
				added += 1
			merged[key] = record
		self._records = merged
		self.dropped_count += dropped
		self.log(
			f"Cache merge: added={added}, replaced={replaced}, dropped={dropped}, "
			+ f"total={len(merged)}"
		)
		return list(merged.values())

	#============================================
	def extend_coverage(self, new_start: datetime, new_end: datetime) -> None:
		"""
		Widen the covered interval; never narrows it.
		"""
		if new_start > new_end:
			raise ValueError("Coverage start must not be after coverage end.")
		if self.covered_start is None or new_start < self.covered_start:
			self.covered_start = new_start
		if self.covered_end is None or new_end > self.covered_end:
			self.covered_end = new_end

	#============================================
	def reset(self) -> None:
		"""
		Drop every record and forget the covered interval.
		"""
		self._records = {}
		self.covered_start = None
		self.covered_end = None
		self.dropped_count = 0
		self.log("Commit cache reset.")

	#============================================
	def describe_coverage(self) -> str:
		if self.is_empty:
			return "empty"
		return f"{self.covered_start.isoformat()} -> {self.covered_end.isoformat()}"
