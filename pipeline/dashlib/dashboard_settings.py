import os

import yaml

from dashlib.errors import SettingsError

DEFAULT_SETTINGS_PATH = "settings.yaml"


#============================================
def get_repo_root() -> str:
	"""
	Return repository root based on this module location.
	"""
	module_dir = os.path.dirname(os.path.abspath(__file__))
	pipeline_dir = os.path.dirname(module_dir)
	return os.path.dirname(pipeline_dir)


#============================================
def resolve_settings_path(path_text: str) -> str:
	"""
	Resolve settings path against cwd first, then repo root.
	"""
	if os.path.isabs(path_text):
		return path_text
	cwd_candidate = os.path.abspath(path_text)
	if os.path.isfile(cwd_candidate):
		return cwd_candidate
	repo_root = get_repo_root()
	repo_candidate = os.path.join(repo_root, path_text)
	return os.path.abspath(repo_candidate)


#============================================
def load_settings(path_text: str = DEFAULT_SETTINGS_PATH) -> tuple[dict, str]:
	"""
	Load YAML settings dict and return it with resolved path.
	"""
	resolved_path = resolve_settings_path(path_text)
	if not os.path.isfile(resolved_path):
		return {}, resolved_path
	with open(resolved_path, "r", encoding="utf-8") as handle:
		data = yaml.safe_load(handle.read())
	if data is None:
		return {}, resolved_path
	if not isinstance(data, dict):
		raise SettingsError(f"Settings file must contain a mapping: {resolved_path}")
	return data, resolved_path


#============================================
def get_nested_value(settings: dict, keys: list[str], default_value):
	"""
	Read nested mapping value by key path.
	"""
	current = settings
	for key in keys:
		if not isinstance(current, dict):
			return default_value
		if key not in current:
			return default_value
		current = current[key]
	return current


#============================================
def get_setting_str(settings: dict, keys: list[str], default_value: str) -> str:
	"""
	Read a string setting from nested path with fallback.
	"""
	value = get_nested_value(settings, keys, default_value)
	if value is None:
		return default_value
	return str(value).strip()


#============================================
def get_setting_int(settings: dict, keys: list[str], default_value: int) -> int:
	"""
	Read an integer setting from nested path with fallback.
	"""
	value = get_nested_value(settings, keys, default_value)
	if value is None:
		return default_value
	try:
		return int(value)
	except ValueError as error:
		raise SettingsError(f"Invalid integer for setting path {'.'.join(keys)}: {value}") from error


#============================================
def get_setting_list(settings: dict, keys: list[str]) -> list[str]:
	"""
	Read a list of strings; a comma-separated string is split.
	"""
	value = get_nested_value(settings, keys, [])
	if value is None:
		return []
	if isinstance(value, str):
		items = value.split(",")
	elif isinstance(value, list):
		items = [str(item) for item in value if item is not None]
	else:
		raise SettingsError(f"Invalid list for setting path {'.'.join(keys)}: {value}")
	return [item.strip() for item in items if item.strip()]


#============================================
def split_csv(text: str) -> list[str]:
	"""
	Split a comma-separated CLI value into trimmed items.
	"""
	return [item.strip() for item in (text or "").split(",") if item.strip()]


#============================================
def get_provider(settings: dict, default_value: str = "github") -> str:
	"""
	Resolve the commit provider name.
	"""
	value = get_setting_str(settings, ["provider"], default_value).lower()
	if value not in {"github", "azure"}:
		raise SettingsError(f"Invalid provider in settings.yaml: {value}")
	return value


#============================================
def get_default_range_days(settings: dict, default_value: int = 14) -> int:
	"""
	Read default trailing range length in days.
	"""
	days = get_setting_int(settings, ["dashboard", "default_range_days"], default_value)
	if days < 1:
		raise SettingsError(f"dashboard.default_range_days must be >= 1; got {days}")
	return days


#============================================
def get_repo_batch_size(settings: dict, default_value: int = 5) -> int:
	"""
	Read how many Azure repositories are fetched concurrently per batch.
	"""
	size = get_setting_int(settings, ["azure", "repo_batch_size"], default_value)
	if size < 1:
		raise SettingsError(f"azure.repo_batch_size must be >= 1; got {size}")
	return size
