"""Range update orchestration over the commit cache.

A range update computes the gap plan, fetches every gap, and only then
merges the combined batch and widens coverage. A failure on any gap
leaves the cache exactly as it was before the update started.
"""

# Standard Library
import contextlib
import dataclasses
import threading

from dashlib import commit_analyzer
from dashlib import commit_cache
from dashlib import date_ranges
from dashlib import range_gaps
from dashlib.errors import FetchInProgressError
from dashlib.errors import TransportError


#============================================
@dataclasses.dataclass(frozen=True)
class FetchContext:
	"""
	Who and where to fetch commits for.

	identity is the GitHub username, or the Azure author display string.
	"""
	provider: str
	identity: str
	token: str = ""
	organization: str = ""
	aliases: tuple = ()
	repositories: tuple = ()

	def cache_scope(self) -> tuple:
		"""
		Fields that, when changed, invalidate the cache.
		"""
		return (
			self.provider,
			self.identity,
			self.organization,
			tuple(self.aliases),
			tuple(self.repositories),
		)


#============================================
@dataclasses.dataclass(frozen=True)
class FetchCycleResult:
	"""
	Outcome of one orchestrator run.
	"""
	gap_count: int
	fetched_count: int
	cache_hit: bool


#============================================
class FetchOrchestrator:
	"""
	Fetches gap intervals through one provider fetch function.

	fetch_fn has the signature
	fetch_fn(identity, range_start, range_end, context) -> list of
	RawCommitRecord, and raises on transport or auth failure.
	"""

	def __init__(self, cache: commit_cache.CommitCacheStore, fetch_fn, log_fn=None):
		self.cache = cache
		self.fetch_fn = fetch_fn
		self.log_fn = log_fn

	#============================================
	def log(self, message: str) -> None:
		"""
		Emit one log line when logger is configured.
		"""
		if self.log_fn is not None:
			self.log_fn(message)

	#============================================
	def run(self, plan: range_gaps.GapPlan, context: FetchContext) -> FetchCycleResult:
		"""
		Fetch all gaps in order, then commit the batch to the cache.

		Raises:
			TransportError: when any gap fetch fails; the cache is untouched.
		"""
		if plan.is_cache_hit:
			self.log("Cache hit; no fetch needed.")
			return FetchCycleResult(0, 0, True)
		batch = []
		for index, gap in enumerate(plan.gaps, start=1):
			self.log(
				f"Fetching gap {index}/{len(plan.gaps)}: "
				+ f"{gap.start.isoformat()} -> {gap.end.isoformat()}"
			)
			try:
				fetched = self.fetch_fn(context.identity, gap.start, gap.end, context)
			except TransportError:
				self.log(f"Gap {index} fetch failed; cache left unchanged.")
				raise
			except Exception as error:
				self.log(f"Gap {index} fetch failed; cache left unchanged.")
				raise TransportError(
					f"Fetching commits for {gap.start.date().isoformat()} -> "
					+ f"{gap.end.date().isoformat()} failed: {error}"
				) from error
			batch.extend(fetched)
			self.log(f"Gap {index}: received {len(fetched)} record(s).")
		self.cache.merge(batch)
		self.cache.extend_coverage(plan.new_start, plan.new_end)
		self.log(f"Coverage now {self.cache.describe_coverage()}.")
		return FetchCycleResult(len(plan.gaps), len(batch), False)


#============================================
class DashboardSession:
	"""
	Owns the cache for one active provider/identity context.

	request_range_update() is the only entry point that fetches. A second
	call while one is running raises FetchInProgressError.
	"""

	def __init__(self, fetch_fn_factory, log_fn=None, top_repos: int = commit_analyzer.TOP_REPOS_LIMIT):
		"""
		Args:
			fetch_fn_factory: callable(context) returning the provider fetch function.
			log_fn: optional callable for progress logging.
			top_repos: number of repositories ranked in statistics.
		"""
		self.fetch_fn_factory = fetch_fn_factory
		self.log_fn = log_fn
		self.top_repos = top_repos
		self.cache = commit_cache.CommitCacheStore(log_fn=log_fn)
		self.context: FetchContext | None = None
		self.last_stats: dict | None = None
		self._orchestrator: FetchOrchestrator | None = None
		self._in_flight = threading.Lock()

	#============================================
	def log(self, message: str) -> None:
		"""
		Emit one log line when logger is configured.
		"""
		if self.log_fn is not None:
			self.log_fn(message)

	#============================================
	@property
	def is_connected(self) -> bool:
		return self.context is not None

	#============================================
	def connect(self, context: FetchContext) -> None:
		"""
		Activate a fetch context, resetting the cache on any scope change.
		"""
		with self._guard():
			fetch_fn = self.fetch_fn_factory(context)
			same_scope = (
				self.context is not None
				and self.context.cache_scope() == context.cache_scope()
			)
			if not same_scope:
				self.cache.reset()
				self.last_stats = None
				self.log(f"Connected to {context.provider} as {context.identity}.")
			self.context = context
			self._orchestrator = FetchOrchestrator(self.cache, fetch_fn, log_fn=self.log_fn)

	#============================================
	def disconnect(self) -> None:
		"""
		Forget the context and every cached record.
		"""
		with self._guard():
			self.cache.reset()
			self.context = None
			self.last_stats = None
			self._orchestrator = None

	#============================================
	def request_range_update(self, new_range: date_ranges.DateRange) -> dict:
		"""
		Make the cache cover `new_range` and return its statistics.

		On TransportError the previous statistics stay in last_stats.

		Raises:
			InvalidRangeError: when new_range is inverted.
			FetchInProgressError: when another update is running.
			TransportError: when a gap fetch fails.
		"""
		requested = date_ranges.validate_range(new_range)
		with self._guard():
			if self._orchestrator is None or self.context is None:
				raise RuntimeError("Session is not connected to a provider.")
			plan = range_gaps.compute_gap_plan(
				self.cache.covered_start,
				self.cache.covered_end,
				requested,
			)
			self.log(
				f"Range {requested.describe()}: {len(plan.gaps)} gap(s) against "
				+ f"coverage {self.cache.describe_coverage()}."
			)
			result = self._orchestrator.run(plan, self.context)
			stats = commit_analyzer.recalculate_stats(
				self.cache.records,
				requested,
				cache_hit=result.cache_hit,
				top_limit=self.top_repos,
				log_fn=self.log_fn,
			)
			self.last_stats = stats
			return stats

	#============================================
	@contextlib.contextmanager
	def _guard(self):
		"""
		Hold the in-flight lock for one operation without waiting for it.
		"""
		if not self._in_flight.acquire(blocking=False):
			raise FetchInProgressError(
				"A range update is already running for this session."
			)
		try:
			yield
		finally:
			self._in_flight.release()
