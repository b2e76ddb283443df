import os
import stat

import pytest

from ghappauth.core.config import (
    load_config,
    parse_config,
    read_config_data,
    write_config_data,
)
from ghappauth.core.errors import ConfigError, ConfigNotFoundError, ValidationError
from ghappauth.core.models import GITHUB_APP, PAT, GitHubApp, PersonalAccessToken

VALID = {
    "version": "1",
    "github_apps": [{
        "name": "org-app",
        "app_id": 123,
        "installation_id": 456,
        "private_key_path": "~/.config/gh/org.pem",
        "patterns": ["github.com/org/*"],
        "priority": 100,
    }],
    "pats": [{
        "name": "fallback",
        "token_env": "GITHUB_TOKEN",
        "patterns": ["github.com/*"],
    }],
}


class TestLoadConfig:
    def test_valid_config(self, write_config):
        config = load_config(write_config(VALID))
        assert config.version == "1"
        assert [e.name for e in config.entries] == ["org-app", "fallback"]

    def test_entries_are_typed(self, write_config):
        app, pat = load_config(write_config(VALID)).entries
        assert app.kind == GITHUB_APP
        assert app.payload == GitHubApp(
            app_id=123, installation_id=456, private_key_path="~/.config/gh/org.pem",
        )
        assert app.patterns == ("github.com/org/*",)
        assert app.priority == 100
        assert pat.kind == PAT
        assert pat.payload == PersonalAccessToken(token_env="GITHUB_TOKEN")
        assert pat.priority == 0

    def test_file_not_found(self):
        with pytest.raises(ConfigNotFoundError, match="not found"):
            load_config("/nonexistent/config.json5")

    def test_not_found_is_a_config_error(self):
        with pytest.raises(ConfigError):
            load_config("/nonexistent/config.json5")

    def test_permissions_too_open_644(self, write_config):
        path = write_config(VALID, mode=0o644)
        with pytest.raises(ConfigError, match="too-open permissions"):
            load_config(path)

    def test_permissions_too_open_640(self, write_config):
        path = write_config(VALID, mode=0o640)
        with pytest.raises(ConfigError, match="chmod 600"):
            load_config(path)

    def test_invalid_json5(self, tmp_path):
        f = tmp_path / "c.json5"
        f.write_text("{not valid json5 at all")
        os.chmod(f, 0o600)
        with pytest.raises(ConfigError, match="Invalid JSON5"):
            load_config(str(f))

    def test_json5_comments_and_trailing_commas(self, tmp_path):
        f = tmp_path / "c.json5"
        f.write_text(
            "{\n"
            "  // one app\n"
            "  version: '1',\n"
            "  github_apps: [{name: 'a', app_id: 1, private_key_path: '/k.pem',\n"
            "                 patterns: ['github.com/*'],},],\n"
            "}\n"
        )
        os.chmod(f, 0o600)
        assert load_config(str(f)).entries[0].name == "a"

    def test_validation_runs_on_load(self, write_config):
        data = {**VALID, "version": ""}
        with pytest.raises(ValidationError, match="^version is required$"):
            load_config(write_config(data))


class TestParseConfig:
    def test_must_be_object(self):
        with pytest.raises(ConfigError, match="must be a JSON object"):
            parse_config(["array"])

    def test_missing_version(self):
        with pytest.raises(ValidationError, match="^version is required$"):
            parse_config({"github_apps": VALID["github_apps"]})

    @pytest.mark.parametrize("version", [0, 1, 1.5, True, ["1"]])
    def test_non_string_version_rejected(self, version):
        with pytest.raises(ConfigError, match="'version' must be a string"):
            parse_config({**VALID, "version": version})

    def test_null_version_is_missing(self):
        with pytest.raises(ValidationError, match="^version is required$"):
            parse_config({**VALID, "version": None})

    def test_no_entries(self):
        with pytest.raises(ValidationError, match="at least one github_app or pat is required"):
            parse_config({"version": "1"})

    def test_section_must_be_array(self):
        with pytest.raises(ConfigError, match="'github_apps' must be an array"):
            parse_config({"version": "1", "github_apps": {}})

    def test_entry_must_be_object(self):
        with pytest.raises(ConfigError, match=r"pats\[0\] must be an object"):
            parse_config({"version": "1", "pats": ["tok"]})

    def test_integer_field_type(self):
        app = {**VALID["github_apps"][0], "app_id": "123"}
        with pytest.raises(ConfigError, match=r"github_apps\[0\] 'app_id' must be an integer"):
            parse_config({"version": "1", "github_apps": [app]})

    def test_bool_is_not_an_integer(self):
        app = {**VALID["github_apps"][0], "priority": True}
        with pytest.raises(ConfigError, match="'priority' must be an integer"):
            parse_config({"version": "1", "github_apps": [app]})

    def test_patterns_must_be_strings(self):
        app = {**VALID["github_apps"][0], "patterns": ["ok", 3]}
        with pytest.raises(ConfigError, match=r"'patterns'\[1\] must be a string"):
            parse_config({"version": "1", "github_apps": [app]})

    def test_missing_fields_reported_by_validator(self):
        with pytest.raises(ValidationError, match="^entry at index 0: name is required$"):
            parse_config({"version": "1", "github_apps": [{"app_id": 1}]})

    def test_missing_app_id(self):
        with pytest.raises(ValidationError, match="app_id must be positive"):
            parse_config({"version": "1", "github_apps": [{"name": "a"}]})

    def test_pat_index_follows_apps(self):
        data = {**VALID, "pats": [{"name": "p", "patterns": ["*"]}]}
        with pytest.raises(ValidationError, match="^entry at index 1: token or token_env is required$"):
            parse_config(data)

    def test_auto_detect_installation_default(self):
        app = {k: v for k, v in VALID["github_apps"][0].items() if k != "installation_id"}
        config = parse_config({"version": "1", "github_apps": [app]})
        assert config.entries[0].payload.auto_detect_installation


class TestReadConfigData:
    def test_returns_raw_dict(self, write_config):
        assert read_config_data(write_config(VALID)) == VALID

    def test_not_validated(self, write_config):
        data = {"version": "", "github_apps": [{"app_id": -1}]}
        assert read_config_data(write_config(data)) == data

    def test_must_be_object(self, tmp_path):
        f = tmp_path / "c.json5"
        f.write_text('["array"]')
        os.chmod(f, 0o600)
        with pytest.raises(ConfigError, match="must be a JSON object"):
            read_config_data(str(f))

    def test_permissions_checked(self, write_config):
        with pytest.raises(ConfigError, match="too-open permissions"):
            read_config_data(write_config(VALID, mode=0o644))


class TestWriteConfigData:
    def test_creates_file_with_mode_600(self, tmp_path):
        path = str(tmp_path / "nested" / "dir" / "config.json5")
        config = write_config_data(path, VALID)
        assert [e.name for e in config.entries] == ["org-app", "fallback"]
        assert stat.S_IMODE(os.stat(path).st_mode) == 0o600
        assert load_config(path) == config

    def test_tightens_existing_permissions(self, write_config):
        path = write_config({"version": "1"}, mode=0o644)
        write_config_data(path, VALID)
        assert stat.S_IMODE(os.stat(path).st_mode) == 0o600

    def test_invalid_data_is_not_written(self, write_config):
        path = write_config(VALID)
        with pytest.raises(ValidationError, match="app_id must be positive"):
            write_config_data(path, {"version": "1", "github_apps": [
                {**VALID["github_apps"][0], "app_id": 0},
            ]})
        assert read_config_data(path) == VALID

    def test_invalid_data_creates_nothing(self, tmp_path):
        path = tmp_path / "config.json5"
        with pytest.raises(ValidationError):
            write_config_data(str(path), {"version": "1"})
        assert not path.exists()
