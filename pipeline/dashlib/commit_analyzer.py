"""Commit normalization, categorization and range statistics."""

# Standard Library
import re

from dashlib import commit_records
from dashlib.date_ranges import DateRange

CATEGORY_FEATURE = "FEATURE"
CATEGORY_FIX = "FIX"
CATEGORY_REFACTOR = "REFACTOR"
CATEGORY_MAINTENANCE = "MAINTENANCE"
CATEGORY_ORDER = (
	CATEGORY_FEATURE,
	CATEGORY_FIX,
	CATEGORY_REFACTOR,
	CATEGORY_MAINTENANCE,
)
CATEGORY_LABELS = {
	CATEGORY_FEATURE: "Features",
	CATEGORY_FIX: "Bug fixes",
	CATEGORY_REFACTOR: "Technical improvements",
	CATEGORY_MAINTENANCE: "Maintenance",
}
CATEGORY_EMOJI = {
	CATEGORY_FEATURE: "\u2728",
	CATEGORY_FIX: "\U0001f6e0\ufe0f",
	CATEGORY_REFACTOR: "\U0001f680",
	CATEGORY_MAINTENANCE: "\U0001f4dd",
}

FEATURE_RE = re.compile(r"^(feat|add|new|create|implement|adiciona|inclui|novo)")
FIX_RE = re.compile(r"^(fix|bug|resolve|patch|hotfix|correct|corrige|ajusta)")
REFACTOR_RE = re.compile(r"^(refactor|perf|optim|improve|cleanup|style|melhoria|otimiza)")
SPRINT_RE = re.compile(r"(Sprint[_-]?\d+)", re.IGNORECASE)
CONVENTIONAL_RE = re.compile(r"^[a-z]+\(([^)]+)\):", re.IGNORECASE)
BRACKET_RE = re.compile(r"^\[([^\]]+)\]")
AZURE_REPO_RE = re.compile(r"_git/([^/]+)/")

PLACEHOLDER_BRANCH = "Geral"
DEFAULT_SCOPE = "General"
DEFAULT_AZURE_REPO = "Azure Repo"
TOP_REPOS_LIMIT = 5


#============================================
def extract_scope(message: str) -> str:
	"""
	Infer a scope label from a commit title.
	"""
	lower = message.lower()
	match = SPRINT_RE.search(message)
	if match:
		return match.group(1)
	match = CONVENTIONAL_RE.match(message)
	if match:
		return match.group(1).strip()
	if lower.startswith("merged pr"):
		return "Merges & Reviews"
	if lower.startswith("merge branch"):
		return "Merges"
	match = BRACKET_RE.match(message)
	if match:
		return match.group(1).strip()
	if lower.startswith("feat:"):
		return "Features"
	if lower.startswith("fix:"):
		return "Bugs"
	if lower.startswith("chore:"):
		return "Maintenance"
	return DEFAULT_SCOPE


#============================================
def categorize_commit(message: str) -> str:
	"""
	Classify a commit title by its leading verb.
	"""
	lower = message.lower()
	if FEATURE_RE.match(lower):
		return CATEGORY_FEATURE
	if FIX_RE.match(lower):
		return CATEGORY_FIX
	if REFACTOR_RE.match(lower):
		return CATEGORY_REFACTOR
	return CATEGORY_MAINTENANCE


#============================================
def split_message(full_message: str) -> tuple[str, str]:
	"""
	Split a commit message into (title, body).
	"""
	lines = (full_message or "").split("\n")
	title = lines[0].strip()
	body = ""
	if len(lines) > 1:
		body = "\n".join(lines[1:]).strip()
	return title, body


#============================================
def normalize_record(record: commit_records.RawCommitRecord) -> dict:
	"""
	Convert one tagged raw record into the canonical commit mapping.
	"""
	payload = record.payload
	branch = None
	context = None
	task_info = None
	if record.source == commit_records.SOURCE_GITHUB:
		commit_data = payload.get("commit") or {}
		full_message = commit_data.get("message") or ""
		sha = payload.get("sha") or ""
		repository = payload.get("repository") or {}
		repo = repository.get("name") or ""
		url = payload.get("html_url") or ""
	else:
		full_message = payload.get("comment") or ""
		sha = payload.get("commitId") or ""
		url = payload.get("remoteUrl") or ""
		match = AZURE_REPO_RE.search(url)
		repo = match.group(1) if match else DEFAULT_AZURE_REPO
		branch = payload.get("branch")
		context = payload.get("context")
		task_info = payload.get("taskInfo")
	title, body = split_message(full_message)
	# a real branch beats any scope guessed from the title
	if branch and branch != PLACEHOLDER_BRANCH:
		scope = branch
	else:
		scope = extract_scope(title)
	commit = {
		"sha": sha,
		"message": title,
		"full_message": full_message,
		"body": body,
		"date": commit_records.record_timestamp_text(record),
		"repo": repo,
		"url": url,
		"scope": scope,
		"branch": branch,
		"context": context,
		"task_info": task_info,
	}
	return commit


#============================================
def analyze_commits(commits: list[dict], top_limit: int = TOP_REPOS_LIMIT) -> dict:
	"""
	Categorize canonical commits and build aggregate counts.
	"""
	categorized = []
	by_category = {name: 0 for name in CATEGORY_ORDER}
	repo_counts: dict[str, int] = {}
	for commit in commits:
		item = dict(commit)
		item["category"] = categorize_commit(item.get("message") or "")
		categorized.append(item)
		by_category[item["category"]] += 1
		repo_name = item.get("repo") or ""
		repo_counts[repo_name] = repo_counts.get(repo_name, 0) + 1
	ranked = sorted(repo_counts.items(), key=lambda pair: (-pair[1], pair[0]))
	top_repos = [{"name": name, "count": count} for name, count in ranked[:top_limit]]
	return {
		"total_commits": len(categorized),
		"by_category": by_category,
		"top_repos": top_repos,
		"categorized_commits": categorized,
	}


#============================================
def filter_records_in_range(records: list, requested: DateRange) -> list:
	"""
	Keep records whose timestamp falls inside the inclusive range.

	Records without a readable timestamp are never in range.
	"""
	selected = []
	for record in records:
		timestamp = commit_records.record_timestamp(record)
		if timestamp is None:
			continue
		if requested.contains(timestamp):
			selected.append((timestamp, record))
	# newest first, matching provider listing order
	selected.sort(key=lambda pair: pair[0], reverse=True)
	return [record for _, record in selected]


#============================================
def recalculate_stats(
	records: list,
	requested: DateRange,
	cache_hit: bool = False,
	top_limit: int = TOP_REPOS_LIMIT,
	log_fn=None,
) -> dict:
	"""
	Build display statistics for exactly the requested range.

	Args:
		records: every cached raw record.
		requested: the range to display, possibly narrower than coverage.
		cache_hit: whether this recalculation needed no fetch.
		top_limit: number of repositories to rank.
		log_fn: optional callable for progress logging.

	Returns:
		RangeStats mapping.
	"""
	in_range = filter_records_in_range(records, requested)
	if log_fn is not None:
		log_fn(
			f"Filtering: {len(in_range)} commit(s) in range out of {len(records)} cached."
		)
	commits = [normalize_record(record) for record in in_range]
	stats = analyze_commits(commits, top_limit=top_limit)
	stats["range_start"] = requested.start.isoformat()
	stats["range_end"] = requested.end.isoformat()
	stats["cached_total"] = len(records)
	stats["cache_hit"] = cache_hit
	return stats
