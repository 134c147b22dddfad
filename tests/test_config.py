from pathlib import Path

import pytest

from devbox.config import (
    DevboxConfig,
    Timings,
    _deep_merge,
    build_config,
    load_config,
    resolve_config,
)
from devbox.exceptions import ConfigurationError

pytestmark = [pytest.mark.unit]


class TestDeepMerge:
    def test_shallow_override(self):
        base = {"a": 1, "b": 2}
        override = {"b": 3}
        assert _deep_merge(base, override) == {"a": 1, "b": 3}

    def test_nested_merge(self):
        base = {"timings": {"instance_timeout": 300, "volume_timeout": 120}}
        override = {"timings": {"instance_timeout": 600}}
        result = _deep_merge(base, override)
        assert result == {"timings": {"instance_timeout": 600, "volume_timeout": 120}}

    def test_empty_base(self):
        assert _deep_merge({}, {"a": 1}) == {"a": 1}

    def test_empty_override(self):
        assert _deep_merge({"a": 1}, {}) == {"a": 1}

    def test_does_not_mutate_inputs(self):
        base = {"timings": {"retry_delay": 10}}
        _deep_merge(base, {"timings": {"retry_delay": 1}})
        assert base == {"timings": {"retry_delay": 10}}


class TestLoadConfig:
    def test_project_only(self, tmp_path: Path):
        (tmp_path / "devbox.toml").write_text('region = "eu-west-1"\n')
        result = load_config(project_dir=tmp_path, global_path=tmp_path / "nonexistent.toml")
        assert result == {"region": "eu-west-1"}

    def test_global_only(self, tmp_path: Path):
        global_toml = tmp_path / "config.toml"
        global_toml.write_text('dns_name = "box.example.com"\n')
        result = load_config(project_dir=tmp_path / "noproject", global_path=global_toml)
        assert result["dns_name"] == "box.example.com"

    def test_merge_project_overrides_global(self, tmp_path: Path):
        global_toml = tmp_path / "config.toml"
        global_toml.write_text('region = "us-east-1"\n\n[timings]\nretry_attempts = 4\nretry_delay = 2\n')
        project_dir = tmp_path / "project"
        project_dir.mkdir()
        (project_dir / "devbox.toml").write_text("[timings]\nretry_attempts = 8\n")
        result = load_config(project_dir=project_dir, global_path=global_toml)
        assert result == {"region": "us-east-1", "timings": {"retry_attempts": 8, "retry_delay": 2}}

    def test_no_files_returns_empty(self, tmp_path: Path):
        result = load_config(project_dir=tmp_path / "nope", global_path=tmp_path / "nope.toml")
        assert result == {}

    def test_invalid_toml_raises(self, tmp_path: Path):
        (tmp_path / "devbox.toml").write_text("region = \n")
        with pytest.raises(ConfigurationError, match="Invalid TOML"):
            load_config(project_dir=tmp_path, global_path=tmp_path / "nope.toml")


class TestBuildConfig:
    def test_defaults(self):
        config = build_config({})
        assert config == DevboxConfig()
        assert config.region == "us-east-2"
        assert config.timings.instance_timeout == 300.0
        assert config.timings.retry_attempts == 6

    def test_timings_table(self):
        config = build_config({"timings": {"snapshot_interval": 1, "snapshot_timeout": 60}})
        assert config.timings.snapshot_interval == 1
        assert config.timings.snapshot_timeout == 60
        assert config.timings.volume_timeout == 120.0

    def test_overrides_win_over_files(self):
        config = build_config({"region": "us-east-1"}, region="ap-south-1")
        assert config.region == "ap-south-1"

    def test_none_overrides_are_ignored(self):
        config = build_config({"region": "us-east-1"}, region=None, endpoint_url=None)
        assert config.region == "us-east-1"
        assert config.endpoint_url is None

    def test_unknown_key_raises(self):
        with pytest.raises(ConfigurationError, match="Unknown config keys: regoin"):
            build_config({"regoin": "us-east-1"})

    def test_unknown_timing_key_raises(self):
        with pytest.raises(ConfigurationError, match="Unknown timings keys: poll"):
            build_config({"timings": {"poll": 3}})

    @pytest.mark.parametrize(("price", "expected"), [(1.5, "1.5"), (2, "2"), ("0.75", "0.75")])
    def test_numeric_price_becomes_string(self, price: object, expected: str):
        config = build_config({"default_max_price": price})
        assert config.default_max_price == expected
        assert isinstance(config.default_max_price_value, float)

    @pytest.mark.parametrize(
        ("raw", "match"),
        [
            ({"region": 1}, "config key region must be str, got int"),
            ({"endpoint_url": 4566}, "config key endpoint_url"),
            ({"dns_zone": False}, "config key dns_zone"),
            ({"default_max_price": True}, "config key default_max_price"),
            ({"timings": {"volume_timeout": "120"}}, "timings key volume_timeout"),
            ({"timings": {"retry_attempts": 2.5}}, "timings key retry_attempts must be int"),
            ({"timings": 5}, "timings must be a table"),
        ],
        ids=["region", "endpoint", "bool-zone", "bool-price", "str-timeout", "float-attempts", "scalar-timings"],
    )
    def test_wrong_value_types_raise(self, raw: dict, match: str):
        with pytest.raises(ConfigurationError, match=match):
            build_config(raw)


class TestTimings:
    def test_zero_attempts_rejected(self):
        with pytest.raises(ConfigurationError, match="retry_attempts"):
            Timings(retry_attempts=0)

    def test_negative_interval_rejected(self):
        with pytest.raises(ConfigurationError, match="volume_interval"):
            Timings(volume_interval=-1)

    def test_zero_poll_intervals_allowed(self):
        fast = Timings(volume_interval=0, snapshot_interval=0, retry_delay=0)
        assert fast.volume_interval == fast.snapshot_interval == 0

    @pytest.mark.parametrize("interval", [0, -1])
    def test_instance_interval_must_be_positive(self, interval: float):
        with pytest.raises(ConfigurationError, match="instance_interval must be positive"):
            Timings(instance_interval=interval)


class TestDevboxConfig:
    def test_max_price_value(self):
        assert DevboxConfig(default_max_price="0.75").default_max_price_value == 0.75

    def test_max_price_not_a_number(self):
        with pytest.raises(ConfigurationError, match="default_max_price"):
            _ = DevboxConfig(default_max_price="cheap").default_max_price_value


class TestResolveConfig:
    def test_project_file_and_override(self, tmp_path: Path):
        (tmp_path / "devbox.toml").write_text('region = "eu-west-1"\ndns_zone = ""\n')
        config = resolve_config(
            project_dir=tmp_path,
            global_path=tmp_path / "nope.toml",
            endpoint_url="http://localhost:4566",
        )
        assert config.region == "eu-west-1"
        assert config.dns_zone == ""
        assert config.endpoint_url == "http://localhost:4566"
