"""Provider fetch functions for the fetch orchestrator.

Every fetch function has the signature
fetch(identity, range_start, range_end, context) -> list[RawCommitRecord].
"""

from dashlib import azure_client
from dashlib import commit_records
from dashlib import github_client

PROVIDER_GITHUB = "github"
PROVIDER_AZURE = "azure"
PROVIDERS = (PROVIDER_GITHUB, PROVIDER_AZURE)


#============================================
def make_github_fetch_fn(client: github_client.GitHubClient):
	"""
	Wrap a GitHubClient as a provider fetch function.
	"""
	def fetch(identity, range_start, range_end, context):
		payloads = client.search_commits(identity, range_start, range_end)
		return [commit_records.github_record(payload) for payload in payloads]
	return fetch


#============================================
def select_repositories(available: list[dict], names: tuple) -> list[dict]:
	"""
	Pick repositories by name or id; an empty selection means all.
	"""
	if not names:
		return list(available)
	wanted = {name.strip().lower() for name in names if name.strip()}
	selected = []
	for repo in available:
		repo_name = str(repo.get("name") or "").lower()
		repo_id = str(repo.get("id") or "").lower()
		if repo_name in wanted or repo_id in wanted:
			selected.append(repo)
	return selected


#============================================
def make_azure_fetch_fn(client: azure_client.AzureDevOpsClient, repositories: list[dict]):
	"""
	Wrap an AzureDevOpsClient and a fixed repository set as a fetch function.

	The identity is informational; matching uses context.aliases.
	"""
	def fetch(identity, range_start, range_end, context):
		aliases = list(context.aliases) or [identity]
		payloads = client.fetch_commits_for_repos(repositories, aliases, range_start, range_end)
		return [commit_records.azure_record(payload) for payload in payloads]
	return fetch


#============================================
def build_fetch_fn_factory(
	log_fn=None,
	repo_batch_size: int = azure_client.DEFAULT_REPO_BATCH_SIZE,
	clients: list | None = None,
):
	"""
	Return a factory mapping a FetchContext to its provider fetch function.

	When `clients` is a list, every client the factory builds is appended
	to it so callers can report API usage at the end of a run.
	"""
	def factory(context):
		if context.provider == PROVIDER_GITHUB:
			client = github_client.GitHubClient(context.token, log_fn=log_fn)
			if clients is not None:
				clients.append(client)
			return make_github_fetch_fn(client)
		if context.provider == PROVIDER_AZURE:
			client = azure_client.AzureDevOpsClient(
				context.organization,
				context.token,
				log_fn=log_fn,
				repo_batch_size=repo_batch_size,
			)
			if clients is not None:
				clients.append(client)
			available = client.discover_repositories()
			repositories = select_repositories(available, context.repositories)
			if not repositories:
				raise ValueError(
					f"No Azure DevOps repositories matched selection in {context.organization}."
				)
			return make_azure_fetch_fn(client, repositories)
		raise ValueError(f"Unsupported provider: {context.provider!r}")
	return factory
