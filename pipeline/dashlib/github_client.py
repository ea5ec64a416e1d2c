import random
import time
from datetime import datetime
from datetime import timezone

from dashlib.errors import RateLimitError
from dashlib.errors import TransportError

SEARCH_PAGE_LIMIT = 100


#============================================
class GitHubClient:
	"""
	Thin PyGithub wrapper for commit search.
	"""

	def __init__(self, token: str, log_fn=None, max_results: int = SEARCH_PAGE_LIMIT):
		self.log_fn = log_fn
		self.max_results = int(max_results)
		self._rate_check_count = 0
		self._low_remaining_threshold = 5
		self._max_proactive_sleep_seconds = 10
		self._api_call_count = 0
		self._api_calls_by_context: dict[str, int] = {}
		try:
			from github import Github
			from github.GithubException import GithubException
		except ModuleNotFoundError as error:
			raise RuntimeError(
				"Missing dependency: PyGithub. Install it with pip install PyGithub."
			) from error
		self._github_exception_class = GithubException
		self.client = self._build_github_client(Github, token)

	#============================================
	def _build_github_client(self, github_class, token: str):
		"""
		Create Github client with retry disabled when supported.
		"""
		if token:
			try:
				return github_class(token, retry=None)
			except TypeError:
				return github_class(token)
		try:
			return github_class(retry=None)
		except TypeError:
			return github_class()

	#============================================
	def log(self, message: str) -> None:
		"""
		Emit one log line when logger is configured.
		"""
		if self.log_fn is not None:
			self.log_fn(message)

	#============================================
	def record_api_call(self, context: str) -> None:
		"""
		Track one outbound GitHub API call.
		"""
		self._api_call_count += 1
		if context not in self._api_calls_by_context:
			self._api_calls_by_context[context] = 0
		self._api_calls_by_context[context] += 1

	#============================================
	def api_usage_snapshot(self) -> dict:
		"""
		Return API call counters for reporting.
		"""
		return {
			"api_call_count": self._api_call_count,
			"api_calls_by_context": dict(self._api_calls_by_context),
		}

	#============================================
	def normalize_datetime(self, value: datetime) -> datetime:
		"""
		Normalize datetime to timezone-aware UTC.
		"""
		if value.tzinfo is None:
			return value.replace(tzinfo=timezone.utc)
		return value.astimezone(timezone.utc)

	#============================================
	def parse_rate_limit_reset(self, reset_value) -> datetime:
		"""
		Normalize PyGithub reset values to timezone-aware UTC datetime.
		"""
		if isinstance(reset_value, datetime):
			return self.normalize_datetime(reset_value)
		if isinstance(reset_value, (int, float)):
			return datetime.fromtimestamp(float(reset_value), tz=timezone.utc)
		if isinstance(reset_value, str):
			return datetime.fromisoformat(reset_value.replace("Z", "+00:00"))
		raise RuntimeError(f"Unsupported rate-limit reset value: {reset_value!r}")

	#============================================
	def get_rate_limit_snapshot(self, resource: str = "search") -> tuple[int, datetime]:
		"""
		Read remaining/reset for one rate-limit resource across PyGithub versions.
		"""
		self.record_api_call("GET /rate_limit")
		overview = self.client.get_rate_limit()
		rate_limit = getattr(overview, resource, None)
		if rate_limit is None:
			resources = getattr(overview, "resources", None)
			if isinstance(resources, dict):
				rate_limit = resources.get(resource)
			elif resources is not None:
				rate_limit = getattr(resources, resource, None)
		if rate_limit is None:
			raise RuntimeError(f"Rate limit data does not expose {resource} resource fields.")
		remaining = int(getattr(rate_limit, "remaining"))
		reset_time = self.parse_rate_limit_reset(getattr(rate_limit, "reset"))
		return remaining, reset_time

	#============================================
	def maybe_wait_for_rate_limit(self, context: str, force: bool = False) -> None:
		"""
		Sleep until reset when the search quota is very low.
		"""
		self._rate_check_count += 1
		if (not force) and (self._rate_check_count % 15 != 0):
			return
		try:
			remaining, reset_time = self.get_rate_limit_snapshot()
		except Exception as error:
			self.log(f"Rate limit check ({context}) unavailable: {error}")
			return
		self.log(
			f"Rate limit check ({context}): remaining={remaining}, "
			+ f"reset_at={reset_time.isoformat()}"
		)
		if remaining > self._low_remaining_threshold:
			return
		sleep_seconds = int((reset_time - datetime.now(timezone.utc)).total_seconds()) + 1
		if sleep_seconds <= 0:
			return
		if sleep_seconds > self._max_proactive_sleep_seconds:
			self.log(
				"Rate limit is low, but proactive wait exceeds cap "
				+ f"({sleep_seconds}s > {self._max_proactive_sleep_seconds}s); "
				+ "skipping proactive sleep and continuing."
			)
			return
		self.log(
			f"Rate limit is low ({remaining}); sleeping {sleep_seconds}s until reset."
		)
		time.sleep(sleep_seconds)

	#============================================
	def sleep_request_jitter(self, context: str) -> None:
		"""
		Add small random jitter before API calls.
		"""
		delay = random.random()
		time.sleep(delay)

	#============================================
	def call_with_retry(self, context: str, call_fn):
		"""
		Run one API call with jitter, converting failures to TransportError.
		"""
		self.sleep_request_jitter(context)
		try:
			self.record_api_call(context)
			return call_fn()
		except self._github_exception_class as error:
			self.raise_from_github_error(error, context)
		except OSError as error:
			raise TransportError(f"GitHub request failed while {context}: {error}") from error

	#============================================
	def raise_from_github_error(self, error: Exception, context: str) -> None:
		"""
		Raise a human-readable rate-limit or transport error.
		"""
		status = getattr(error, "status", None)
		if status != 403:
			raise TransportError(
				f"GitHub API error while {context}: status={status}; {error}"
			) from error
		reset_text = "unknown"
		remaining_text = "unknown"
		try:
			remaining, reset_time = self.get_rate_limit_snapshot()
			reset_text = reset_time.isoformat()
			remaining_text = str(remaining)
		except Exception as snapshot_error:
			self.log(f"Rate limit snapshot unavailable: {snapshot_error}")
		raise RateLimitError(
			"GitHub API rate limit exceeded while "
			+ f"{context}; remaining={remaining_text}; reset_at={reset_text}. "
			+ "Provide settings.yaml github.token for higher limits."
		) from error

	#============================================
	def build_commit_query(self, username: str, since: datetime, until: datetime) -> str:
		"""
		Build the commit search query for one author and day window.
		"""
		since_text = self.normalize_datetime(since).date().isoformat()
		until_text = self.normalize_datetime(until).date().isoformat()
		return f"author:{username} committer-date:{since_text}..{until_text}"

	#============================================
	def search_commits(self, username: str, since: datetime, until: datetime) -> list[dict]:
		"""
		Search commits authored by username inside the window.

		Returns raw REST payload dicts, newest first, capped at max_results.
		"""
		query = self.build_commit_query(username, since, until)
		self.maybe_wait_for_rate_limit(f"search_commits {username}")
		self.log(f"GitHub commit search: {query}")
		return self.call_with_retry(
			"GET /search/commits",
			lambda: self._search_commits_live(query),
		)

	#============================================
	def _search_commits_live(self, query: str) -> list[dict]:
		"""
		Fetch commit search payloads from live API.
		"""
		results = self.client.search_commits(query, sort="committer-date", order="desc")
		payloads = []
		for commit_obj in results:
			if len(payloads) >= self.max_results:
				break
			payloads.append(getattr(commit_obj, "raw_data", {}) or {})
		return payloads
