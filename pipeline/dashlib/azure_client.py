"""Azure DevOps REST client for commit discovery and listing.

Commits for one repository come from two strategies. Completed pull
requests created by one of the author aliases give commits with branch,
PR title and linked work item. Direct commit search per alias picks up
commits that never went through a PR. Both are unified by commitId with
PR-derived entries winning.
"""

# Standard Library
import concurrent.futures
import threading
from datetime import datetime
from datetime import timezone

import requests

from dashlib.errors import TransportError

API_VERSION = "7.0"
DEFAULT_BASE_URL = "https://dev.azure.com"
PR_CHUNK_SIZE = 5
DEFAULT_REPO_BATCH_SIZE = 5
REQUEST_TIMEOUT_SECONDS = 30
PLACEHOLDER_BRANCH = "Geral"
DEFAULT_SPRINT = "Backlog"
UNKNOWN_CREATOR = "Unknown"


#============================================
def match_identity(name: str | None, email: str | None, aliases: list[str]) -> bool:
	"""
	Return True when name or email contains one of the aliases.
	"""
	normalized = [alias.strip().lower() for alias in aliases if alias.strip()]
	name_text = (name or "").lower()
	email_text = (email or "").lower()
	for alias in normalized:
		if name_text and alias in name_text:
			return True
		if email_text and alias in email_text:
			return True
	return False


#============================================
def iteration_leaf(iteration_path: str | None) -> str:
	"""
	Return the last segment of an iteration path like Proj\\Sprint 12.
	"""
	leaf = (iteration_path or "").split("\\")[-1].strip()
	return leaf or DEFAULT_SPRINT


#============================================
def to_iso(value: datetime) -> str:
	if value.tzinfo is None:
		value = value.replace(tzinfo=timezone.utc)
	return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


#============================================
class AzureDevOpsClient:
	"""
	requests-based client scoped to one Azure DevOps organization.
	"""

	def __init__(
		self,
		organization: str,
		token: str,
		log_fn=None,
		base_url: str = DEFAULT_BASE_URL,
		repo_batch_size: int = DEFAULT_REPO_BATCH_SIZE,
		session=None,
	):
		if not organization:
			raise ValueError("Azure DevOps organization is required.")
		self.organization = organization
		self.log_fn = log_fn
		self.base_url = base_url.rstrip("/")
		self.repo_batch_size = max(1, int(repo_batch_size))
		self.session = session or requests.Session()
		# PAT auth: empty user name, token as password
		self.session.auth = ("", token or "")
		self.session.headers.update({"Content-Type": "application/json"})
		self._api_call_count = 0
		self._api_call_lock = threading.Lock()

	#============================================
	def log(self, message: str) -> None:
		"""
		Emit one log line when logger is configured.
		"""
		if self.log_fn is not None:
			self.log_fn(message)

	#============================================
	def api_usage_snapshot(self) -> dict:
		with self._api_call_lock:
			return {"api_call_count": self._api_call_count}

	#============================================
	def _url(self, *parts: str) -> str:
		return "/".join([self.base_url, self.organization] + [part.strip("/") for part in parts])

	#============================================
	def get_json(self, url: str, params: dict | None = None) -> dict:
		"""
		GET one endpoint and decode JSON.

		Raises:
			TransportError: on network failure or non-2xx status.
		"""
		query = {"api-version": API_VERSION}
		if params:
			query.update(params)
		# _run_batch workers share this counter
		with self._api_call_lock:
			self._api_call_count += 1
		try:
			response = self.session.get(url, params=query, timeout=REQUEST_TIMEOUT_SECONDS)
			response.raise_for_status()
			payload = response.json()
		except requests.exceptions.HTTPError as error:
			status = getattr(error.response, "status_code", None)
			raise TransportError(f"Azure DevOps request failed ({status}): {url}") from error
		except requests.exceptions.RequestException as error:
			raise TransportError(f"Azure DevOps request failed: {url}: {error}") from error
		except ValueError as error:
			raise TransportError(f"Azure DevOps returned invalid JSON: {url}") from error
		if not isinstance(payload, dict):
			raise TransportError(f"Unexpected Azure DevOps response format: {url}")
		return payload

	#============================================
	def list_projects(self) -> list[dict]:
		payload = self.get_json(self._url("_apis/projects"))
		projects = []
		for item in payload.get("value") or []:
			projects.append({
				"id": item.get("id"),
				"name": item.get("name"),
				"url": item.get("url"),
			})
		return projects

	#============================================
	def list_repositories(self, project_name: str) -> list[dict]:
		payload = self.get_json(self._url(project_name, "_apis/git/repositories"))
		repos = []
		for item in payload.get("value") or []:
			project = item.get("project") or {}
			repos.append({
				"id": item.get("id"),
				"name": item.get("name"),
				"url": item.get("webUrl"),
				"project": {
					"id": project.get("id"),
					"name": project.get("name") or project_name,
				},
			})
		return repos

	#============================================
	def discover_repositories(self) -> list[dict]:
		"""
		List every repository in every project of the organization.
		"""
		self.log(f"Discovering repositories for {self.organization}.")
		projects = self.list_projects()
		self.log(f"Found {len(projects)} project(s).")
		repos = []
		for project in projects:
			repos.extend(self.list_repositories(project["name"]))
		self.log(f"Found {len(repos)} repositor(ies).")
		return repos

	#============================================
	def fetch_work_item_for_pr(self, project: str, repo_id: str, pr_id: int) -> dict | None:
		"""
		Return task info for the first work item linked to one PR.
		"""
		refs = self.get_json(
			self._url(project, f"_apis/git/repositories/{repo_id}/pullrequests/{pr_id}/workitems")
		)
		items = refs.get("value") or []
		if not items:
			return None
		work_item_url = items[0].get("url")
		if not work_item_url:
			return None
		item = self.get_json(work_item_url, {"$expand": "relations"})
		fields = item.get("fields") or {}
		created_by = fields.get("System.CreatedBy") or {}
		links = item.get("_links") or {}
		html = links.get("html") or {}
		task_info = {
			"id": str(item.get("id") or ""),
			"title": fields.get("System.Title") or "",
			"description": fields.get("System.Description") or "",
			"createdBy": created_by.get("displayName") or UNKNOWN_CREATOR,
			"sprint": iteration_leaf(fields.get("System.IterationPath")),
			"url": html.get("href") or "",
			"type": fields.get("System.WorkItemType") or "",
		}
		for relation in item.get("relations") or []:
			if relation.get("rel") != "System.LinkTypes.Hierarchy-Reverse":
				continue
			parent = self.get_json(relation.get("url"))
			parent_fields = parent.get("fields") or {}
			task_info["parent"] = {
				"id": str(parent.get("id") or ""),
				"title": parent_fields.get("System.Title") or "",
				"type": parent_fields.get("System.WorkItemType") or "",
			}
			break
		return task_info

	#============================================
	def _commits_for_pr(self, project: str, repo_id: str, pr: dict, aliases: list[str]) -> list[dict]:
		"""
		Return the alias-authored commits of one completed PR.
		"""
		pr_id = pr.get("pullRequestId")
		data = self.get_json(
			self._url(project, f"_apis/git/repositories/{repo_id}/pullrequests/{pr_id}/commits")
		)
		try:
			task_info = self.fetch_work_item_for_pr(project, repo_id, pr_id)
		except TransportError as error:
			# work items only enrich commits; the commit list itself is complete
			self.log(f"Work item lookup failed for PR {pr_id}: {error}")
			task_info = None
		source_ref = pr.get("sourceRefName") or ""
		branch = source_ref.replace("refs/heads/", "")
		commits = []
		for commit in data.get("value") or []:
			author = commit.get("author") or {}
			if not match_identity(author.get("name"), author.get("email"), aliases):
				continue
			commit_id = commit.get("commitId")
			commits.append({
				"commitId": commit_id,
				"comment": commit.get("comment") or "",
				"author": author,
				"remoteUrl": (
					f"{self.base_url}/{self.organization}/{project}/_git/{repo_id}/commit/"
					+ f"{commit_id}?refName={source_ref}"
				),
				"branch": branch,
				"context": pr.get("title"),
				"taskInfo": task_info,
			})
		return commits

	#============================================
	def fetch_commits_via_prs(
		self,
		project: str,
		repo_id: str,
		aliases: list[str],
		start: datetime,
		end: datetime,
	) -> list[dict]:
		"""
		Collect commits from completed PRs created by one of the aliases.
		"""
		payload = self.get_json(
			self._url(project, f"_apis/git/repositories/{repo_id}/pullrequests"),
			{
				"searchCriteria.status": "completed",
				"searchCriteria.minTime": to_iso(start),
				"searchCriteria.maxTime": to_iso(end),
				"$top": "1000",
			},
		)
		my_prs = []
		for pr in payload.get("value") or []:
			created_by = pr.get("createdBy") or {}
			if match_identity(created_by.get("displayName"), created_by.get("uniqueName"), aliases):
				my_prs.append(pr)
		commits_by_id: dict[str, dict] = {}
		for offset in range(0, len(my_prs), PR_CHUNK_SIZE):
			chunk = my_prs[offset:offset + PR_CHUNK_SIZE]
			for commits in self._run_batch(
				lambda pr: self._commits_for_pr(project, repo_id, pr, aliases),
				chunk,
			):
				for commit in commits:
					commits_by_id[commit["commitId"]] = commit
		return list(commits_by_id.values())

	#============================================
	def fetch_commits_directly(
		self,
		project: str,
		repo_id: str,
		aliases: list[str],
		start: datetime,
		end: datetime,
	) -> list[dict]:
		"""
		Collect commits searched by author alias, outside of PRs.
		"""
		commits = []
		for alias in aliases:
			payload = self.get_json(
				self._url(project, f"_apis/git/repositories/{repo_id}/commits"),
				{
					"searchCriteria.author": alias,
					"searchCriteria.fromDate": to_iso(start),
					"searchCriteria.toDate": to_iso(end),
					"$top": "500",
				},
			)
			for commit in payload.get("value") or []:
				commits.append({
					"commitId": commit.get("commitId"),
					"comment": commit.get("comment") or "",
					"author": commit.get("author") or {},
					"remoteUrl": commit.get("remoteUrl") or "",
					"branch": PLACEHOLDER_BRANCH,
					"context": None,
				})
		return commits

	#============================================
	def fetch_repo_commits(
		self,
		repo: dict,
		aliases: list[str],
		start: datetime,
		end: datetime,
	) -> list[dict]:
		"""
		Unify direct and PR-derived commits for one repository.
		"""
		project = (repo.get("project") or {}).get("name") or ""
		repo_name = repo.get("name") or ""
		pr_commits = self.fetch_commits_via_prs(project, repo_name, aliases, start, end)
		direct_commits = self.fetch_commits_directly(project, repo_name, aliases, start, end)
		unified: dict[str, dict] = {}
		for commit in direct_commits:
			unified[commit["commitId"]] = commit
		# PR commits carry branch, context and task info
		for commit in pr_commits:
			unified[commit["commitId"]] = commit
		self.log(
			f"Azure {repo_name}: PR commits={len(pr_commits)}, direct={len(direct_commits)}, "
			+ f"unique={len(unified)}"
		)
		return list(unified.values())

	#============================================
	def fetch_commits_for_repos(
		self,
		repos: list[dict],
		aliases: list[str],
		start: datetime,
		end: datetime,
	) -> list[dict]:
		"""
		Fetch commits across repositories in bounded batches.

		Each batch finishes before the next starts. Any repository failure
		raises TransportError for the whole call.
		"""
		self.log(f"Fetching commits for {len(repos)} selected repositor(ies).")
		commits_by_id: dict[str, dict] = {}
		for offset in range(0, len(repos), self.repo_batch_size):
			batch = repos[offset:offset + self.repo_batch_size]
			for commits in self._run_batch(
				lambda repo: self.fetch_repo_commits(repo, aliases, start, end),
				batch,
			):
				for commit in commits:
					commits_by_id[commit["commitId"]] = commit
		self.log(f"Azure total unique commits: {len(commits_by_id)}")
		return list(commits_by_id.values())

	#============================================
	def _run_batch(self, work_fn, items: list) -> list:
		"""
		Run work_fn over items concurrently and return results in item order.
		"""
		if not items:
			return []
		with concurrent.futures.ThreadPoolExecutor(max_workers=len(items)) as executor:
			futures = [executor.submit(work_fn, item) for item in items]
			return [future.result() for future in futures]
