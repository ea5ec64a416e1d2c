#!/usr/bin/env python3
import argparse
from datetime import datetime
from datetime import timezone

from dashlib import commit_analyzer
from dashlib import commit_sources
from dashlib import dashboard_settings
from dashlib import date_ranges
from dashlib import fetch_orchestrator
from dashlib.errors import DashboardError

try:
	import rich.console
	import rich.table
except ModuleNotFoundError:
	rich = None


RICH_CONSOLE = rich.console.Console() if rich is not None else None


#============================================
def log_step(message: str) -> None:
	"""
	Print one timestamped progress line.
	"""
	now_text = datetime.now().strftime("%H:%M:%S")
	line = f"[show_commit_stats {now_text}] {message}"
	if RICH_CONSOLE is None:
		print(line, flush=True)
		return
	lower = message.lower()
	style = "cyan"
	if ("failed" in lower) or ("error" in lower):
		style = "bold red"
	elif ("rate limit" in lower) or ("dropped" in lower):
		style = "yellow"
	elif "cache hit" in lower:
		style = "green"
	RICH_CONSOLE.print(line, style=style, markup=False)


#============================================
def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
	"""
	Parse command-line arguments.
	"""
	parser = argparse.ArgumentParser(
		description="Show categorized commit statistics for one or more date ranges."
	)
	parser.add_argument(
		"--settings",
		default=dashboard_settings.DEFAULT_SETTINGS_PATH,
		help="YAML settings path for defaults.",
	)
	parser.add_argument(
		"--provider",
		choices=commit_sources.PROVIDERS,
		default="",
		help="Commit provider (falls back to settings.yaml then github).",
	)
	parser.add_argument(
		"--user",
		default="",
		help="GitHub username, or Azure author display name.",
	)
	parser.add_argument(
		"--token",
		default="",
		help="API token (falls back to settings.yaml).",
	)
	parser.add_argument(
		"--org",
		default="",
		help="Azure DevOps organization.",
	)
	parser.add_argument(
		"--aliases",
		default="",
		help="Comma-separated Azure author aliases (names or emails).",
	)
	parser.add_argument(
		"--repos",
		default="",
		help="Comma-separated Azure repository names (default: all discovered).",
	)
	parser.add_argument(
		"--preset",
		dest="presets",
		type=int,
		action="append",
		default=[],
		help="Trailing range in days; repeat to apply several ranges in order.",
	)
	parser.add_argument(
		"--start",
		default="",
		help="Custom range start (YYYY-MM-DD or ISO-8601).",
	)
	parser.add_argument(
		"--end",
		default="",
		help="Custom range end (YYYY-MM-DD or ISO-8601).",
	)
	parser.add_argument(
		"--show-commits",
		type=int,
		default=0,
		help="Print the N newest commits of each range (0 disables).",
	)
	args = parser.parse_args(argv)
	return args


#============================================
def build_context(args: argparse.Namespace, settings: dict) -> fetch_orchestrator.FetchContext:
	"""
	Merge CLI flags over settings into one fetch context.
	"""
	provider = args.provider or dashboard_settings.get_provider(settings)
	if provider == commit_sources.PROVIDER_GITHUB:
		identity = args.user.strip() or dashboard_settings.get_setting_str(
			settings, ["github", "username"], ""
		)
		if not identity:
			raise DashboardError("GitHub username is required (--user or github.username).")
		token = args.token or dashboard_settings.get_setting_str(settings, ["github", "token"], "")
		return fetch_orchestrator.FetchContext(provider, identity, token=token)

	organization = args.org.strip() or dashboard_settings.get_setting_str(
		settings, ["azure", "organization"], ""
	)
	if not organization:
		raise DashboardError("Azure DevOps organization is required (--org or azure.organization).")
	aliases = dashboard_settings.split_csv(args.aliases) or dashboard_settings.get_setting_list(
		settings, ["azure", "aliases"]
	)
	if args.user.strip():
		aliases = aliases or [args.user.strip()]
	if not aliases:
		raise DashboardError("At least one Azure author alias is required (--aliases).")
	repositories = dashboard_settings.split_csv(args.repos) or dashboard_settings.get_setting_list(
		settings, ["azure", "repositories"]
	)
	token = args.token or dashboard_settings.get_setting_str(settings, ["azure", "token"], "")
	return fetch_orchestrator.FetchContext(
		provider,
		args.user.strip() or " / ".join(aliases),
		token=token,
		organization=organization,
		aliases=tuple(aliases),
		repositories=tuple(repositories),
	)


#============================================
def build_ranges(args: argparse.Namespace, settings: dict, now: datetime | None = None) -> list:
	"""
	Resolve the ordered list of ranges to apply.
	"""
	ranges = [date_ranges.preset_range(days, now=now) for days in args.presets]
	if args.start or args.end:
		if not (args.start and args.end):
			raise DashboardError("--start and --end must be given together.")
		ranges.append(date_ranges.custom_range(args.start, args.end))
	if not ranges:
		days = dashboard_settings.get_default_range_days(settings)
		ranges.append(date_ranges.preset_range(days, now=now))
	return ranges


#============================================
def print_line(text: str) -> None:
	if RICH_CONSOLE is None:
		print(text, flush=True)
		return
	RICH_CONSOLE.print(text, markup=False)


#============================================
def render_stats(date_range: date_ranges.DateRange, stats: dict, show_commits: int) -> None:
	"""
	Print category and repository tables for one range.
	"""
	source_text = "cache hit" if stats.get("cache_hit") else "fetched"
	title = f"{date_range.describe()}: {stats['total_commits']} commit(s), {source_text}"
	category_rows = []
	for category in commit_analyzer.CATEGORY_ORDER:
		label = f"{commit_analyzer.CATEGORY_EMOJI[category]} {commit_analyzer.CATEGORY_LABELS[category]}"
		category_rows.append((label, str(stats["by_category"][category])))
	repo_rows = [(repo["name"], str(repo["count"])) for repo in stats["top_repos"]]

	if RICH_CONSOLE is None:
		print_line(title)
		for label, count in category_rows:
			print_line(f"  {label}: {count}")
		print_line("Top repositories")
		for name, count in repo_rows:
			print_line(f"  {name}: {count}")
	else:
		table = rich.table.Table(title=title)
		table.add_column("Category", style="bold cyan")
		table.add_column("Commits", justify="right")
		for label, count in category_rows:
			table.add_row(label, count)
		RICH_CONSOLE.print(table)

		repo_table = rich.table.Table(title="Top repositories")
		repo_table.add_column("Repository", style="bold")
		repo_table.add_column("Commits", justify="right")
		for name, count in repo_rows:
			repo_table.add_row(name, count)
		RICH_CONSOLE.print(repo_table)

	if show_commits <= 0:
		return
	for commit in stats["categorized_commits"][:show_commits]:
		print_line(
			f"{commit['date'][:10]}  {commit['sha'][:8]}  [{commit['category']}] "
			+ f"{commit['repo']}: {commit['message']}"
		)


#============================================
def log_api_usage(clients: list) -> None:
	"""
	Log the API call counters of every provider client used in this run.
	"""
	for client in clients:
		usage = client.api_usage_snapshot()
		line = f"{type(client).__name__} API usage: calls={usage.get('api_call_count', 0)}"
		by_context = usage.get("api_calls_by_context") or {}
		if by_context:
			details = ", ".join(f"{name}={count}" for name, count in sorted(by_context.items()))
			line += f" ({details})"
		log_step(line)


#============================================
def main(argv: list[str] | None = None) -> int:
	"""
	Connect to the provider and apply each requested range in order.
	"""
	args = parse_args(argv)
	# one clock reading so repeated presets share an end and can hit the cache
	now = datetime.now(timezone.utc)
	try:
		settings, settings_path = dashboard_settings.load_settings(args.settings)
		log_step(f"Using settings file: {settings_path}")
		context = build_context(args, settings)
		ranges = build_ranges(args, settings, now=now)
		batch_size = dashboard_settings.get_repo_batch_size(settings)
		top_repos = dashboard_settings.get_setting_int(
			settings, ["dashboard", "top_repos"], commit_analyzer.TOP_REPOS_LIMIT
		)
	except DashboardError as error:
		log_step(f"Configuration error: {error}")
		return 2

	clients = []
	session = fetch_orchestrator.DashboardSession(
		commit_sources.build_fetch_fn_factory(
			log_fn=log_step, repo_batch_size=batch_size, clients=clients
		),
		log_fn=log_step,
		top_repos=top_repos,
	)
	try:
		session.connect(context)
	except (DashboardError, ValueError) as error:
		log_step(f"Connection failed: {error}")
		log_api_usage(clients)
		return 1

	exit_code = 0
	for date_range in ranges:
		try:
			stats = session.request_range_update(date_range)
		except DashboardError as error:
			exit_code = 1
			log_step(f"Range update failed: {error}")
			if session.last_stats is not None:
				log_step("Keeping previous statistics on display.")
			continue
		render_stats(date_range, stats, args.show_commits)
	log_step(
		f"Cache holds {len(session.cache)} commit(s) covering "
		+ f"{session.cache.describe_coverage()}."
	)
	log_api_usage(clients)
	return exit_code


if __name__ == "__main__":
	raise SystemExit(main())
