"""Tests for config module."""

import pytest

from iis_tail.config import Config, build_cli_parser, load_config, load_yaml_config, _parse_bool


class TestParseBool:
    def test_true_values(self):
        for val in ("true", "True", "1", "yes", True):
            assert _parse_bool(val) is True

    def test_false_values(self):
        for val in ("false", "0", "no", "", False):
            assert _parse_bool(val) is False


class TestConfigDefaults:
    def test_defaults(self):
        cfg = Config()
        assert cfg.path == "C:/inetpub/logs/LogFiles/W3SVC*/**/*.log"
        assert cfg.tag == "iis"
        assert cfg.pos_file is None
        assert cfg.refresh_interval == 60
        assert cfg.position_write_interval == 60
        assert cfg.read_interval == 60
        assert cfg.read_line_limit == 1000
        assert cfg.process_fields is False
        assert cfg.output_dir is None
        assert cfg.watch_events is False

    def test_frozen(self):
        cfg = Config()
        with pytest.raises(AttributeError):
            cfg.tag = "other"

    def test_rejects_non_positive_values(self):
        with pytest.raises(ValueError):
            Config(read_line_limit=0)
        with pytest.raises(ValueError):
            Config(read_interval=-1)


class TestYaml:
    def test_no_path(self):
        assert load_yaml_config(None) == {}

    def test_missing_file(self, tmp_path):
        assert load_yaml_config(str(tmp_path / "missing.yml")) == {}

    def test_loads_settings(self, tmp_path):
        f = tmp_path / "iis.yml"
        f.write_text("path: /logs/*.log\nread-line-limit: 50\nprocess_fields: true\n")
        cfg = load_config(None, load_yaml_config(str(f)), environ={})
        assert cfg.path == "/logs/*.log"
        assert cfg.read_line_limit == 50
        assert cfg.process_fields is True

    def test_unknown_keys_ignored(self):
        cfg = load_config(None, {"colour": "blue"}, environ={})
        assert cfg == Config()


class TestPrecedence:
    def test_env_overrides_yaml(self):
        cfg = load_config(None, {"tag": "from-yaml"},
                          environ={"IIS_TAIL_TAG": "from-env", "IIS_TAIL_READ_INTERVAL": "5"})
        assert cfg.tag == "from-env"
        assert cfg.read_interval == 5.0

    def test_cli_overrides_env(self):
        args = build_cli_parser().parse_args(
            ["--tag", "from-cli", "--pos-file", "/tmp/iis.pos", "--process-fields",
             "--read-line-limit", "10"])
        cfg = load_config(args, {}, environ={"IIS_TAIL_TAG": "from-env"})
        assert cfg.tag == "from-cli"
        assert cfg.pos_file == "/tmp/iis.pos"
        assert cfg.process_fields is True
        assert cfg.read_line_limit == 10

    def test_unset_cli_flags_keep_lower_layers(self):
        args = build_cli_parser().parse_args([])
        cfg = load_config(args, {"process_fields": True}, environ={})
        assert cfg.process_fields is True
        assert cfg.tag == "iis"
