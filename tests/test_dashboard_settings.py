import os
import sys

import pytest

# add pipeline directory to path for dashlib imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "pipeline"))

from dashlib import dashboard_settings
from dashlib.errors import SettingsError


#============================================
def test_load_settings_missing_file(tmp_path) -> None:
	"""
	Missing settings file should return empty settings.
	"""
	settings, resolved_path = dashboard_settings.load_settings(str(tmp_path / "missing.yaml"))
	assert settings == {}
	assert resolved_path.endswith("missing.yaml")


#============================================
def test_load_settings_reads_yaml(tmp_path) -> None:
	"""
	YAML settings should be parsed into nested mapping values.
	"""
	settings_path = tmp_path / "settings.yaml"
	settings_path.write_text(
		"provider: azure\n"
		"azure:\n"
		"  organization: acme\n"
		"  aliases: [ana, ana@acme.com]\n"
		"  repo_batch_size: 3\n"
		"dashboard:\n"
		"  default_range_days: 30\n",
		encoding="utf-8",
	)
	settings, _ = dashboard_settings.load_settings(str(settings_path))
	assert dashboard_settings.get_provider(settings) == "azure"
	assert dashboard_settings.get_setting_str(settings, ["azure", "organization"], "") == "acme"
	assert dashboard_settings.get_setting_list(settings, ["azure", "aliases"]) == ["ana", "ana@acme.com"]
	assert dashboard_settings.get_repo_batch_size(settings) == 3
	assert dashboard_settings.get_default_range_days(settings) == 30


#============================================
def test_load_settings_non_mapping_raises(tmp_path) -> None:
	"""
	A YAML list at top level is rejected.
	"""
	settings_path = tmp_path / "settings.yaml"
	settings_path.write_text("- one\n- two\n", encoding="utf-8")
	with pytest.raises(SettingsError):
		dashboard_settings.load_settings(str(settings_path))


#============================================
def test_get_setting_int_invalid_value_raises() -> None:
	"""
	Invalid integer setting should raise SettingsError.
	"""
	settings = {"dashboard": {"top_repos": "abc"}}
	with pytest.raises(SettingsError):
		dashboard_settings.get_setting_int(settings, ["dashboard", "top_repos"], 5)


#============================================
def test_get_setting_list_accepts_csv_text() -> None:
	"""
	Comma-separated strings split into trimmed items.
	"""
	settings = {"azure": {"repositories": "shop, api ,"}}
	assert dashboard_settings.get_setting_list(settings, ["azure", "repositories"]) == ["shop", "api"]
	with pytest.raises(SettingsError):
		dashboard_settings.get_setting_list({"azure": {"repositories": 5}}, ["azure", "repositories"])


#============================================
def test_invalid_provider_and_sizes_raise() -> None:
	"""
	Out-of-range settings raise SettingsError.
	"""
	with pytest.raises(SettingsError):
		dashboard_settings.get_provider({"provider": "gitlab"})
	with pytest.raises(SettingsError):
		dashboard_settings.get_repo_batch_size({"azure": {"repo_batch_size": 0}})
	with pytest.raises(SettingsError):
		dashboard_settings.get_default_range_days({"dashboard": {"default_range_days": 0}})
