import argparse
import json
from datetime import timedelta

import pytest

from mercurehub.config import (
    Config,
    InvalidConfigError,
    add_arguments,
    apply_arguments,
    hub_options_from_config,
    init_config,
    parse_duration,
    set_config_defaults,
    validate_config,
)
from mercurehub.hub import InvalidOriginError, UnexpectedSigningMethodError


def _parsed(args, config=None):
    config = config or Config()
    parser = add_arguments(argparse.ArgumentParser())
    apply_arguments(config, parser.parse_args(args))
    return config


def test_missing_config():
    with pytest.raises(InvalidConfigError) as info:
        validate_config(Config())
    assert str(info.value) == (
        'invalid config: one of "jwt_key" or "publisher_jwt_key" configuration parameter must be defined'
    )


def test_missing_key_file():
    config = Config()
    config.set("jwt_key", "abc")
    config.set("cert_file", "foo")
    with pytest.raises(InvalidConfigError) as info:
        validate_config(config)
    assert str(info.value) == (
        'invalid config: if the "cert_file" configuration parameter is defined, "key_file" must be defined too'
    )


def test_missing_cert_file():
    config = Config()
    config.set("jwt_key", "abc")
    config.set("key_file", "foo")
    with pytest.raises(InvalidConfigError) as info:
        validate_config(config)
    assert str(info.value) == (
        'invalid config: if the "key_file" configuration parameter is defined, "cert_file" must be defined too'
    )


def test_metrics_addr_required():
    config = Config()
    config.set("jwt_key", "abc")
    config.set("metrics_enabled", True)
    with pytest.raises(InvalidConfigError, match='"metrics_addr" must be defined'):
        validate_config(config)


def test_metrics_addr_distinct_from_addr():
    config = Config()
    config.set("jwt_key", "abc")
    config.set("metrics_enabled", True)
    config.set("metrics_addr", "127.0.0.1:4242")
    config.set("addr", "127.0.0.1:4242")
    with pytest.raises(InvalidConfigError, match="must not be the same"):
        validate_config(config)
    config.set("addr", "127.0.0.1:4243")
    assert validate_config(config) is None


def test_set_flags():
    config = _parsed([])
    expected = {
        "cert_file", "compress", "demo", "jwt_algorithm", "transport_url", "acme_hosts",
        "acme_cert_dir", "subscriber_jwt_key", "jwt_key", "allow_anonymous", "debug",
        "read_timeout", "publisher_jwt_algorithm", "write_timeout", "key_file",
        "use_forwarded_headers", "subscriber_jwt_algorithm", "addr", "publisher_jwt_key",
        "heartbeat_interval", "cors_allowed_origins", "publish_allowed_origins",
        "subscriptions", "dispatch_timeout",
    }
    assert expected <= set(config.keys())


def test_init_config(tmp_path):
    config = Config()
    assert init_config(config, environ={"JWT_KEY": "foo"}, search_paths=[tmp_path]) is None
    assert config.get_string("jwt_key") == "foo"


def test_metrics_are_disabled_by_default():
    config = Config()
    set_config_defaults(config)
    assert config.get_bool("metrics_enabled") is False


def test_flags_values():
    config = _parsed([
        "-k", "secret",
        "--cors-allowed-origins", "https://a.example.com,https://b.example.com",
        "-c", "https://c.example.com",
        "-i", "10s",
        "-X",
    ])
    assert config.get_string("jwt_key") == "secret"
    assert config.get_string_list("cors_allowed_origins") == [
        "https://a.example.com", "https://b.example.com", "https://c.example.com",
    ]
    assert config.get_duration("heartbeat_interval") == timedelta(seconds=10)
    assert config.get_bool("allow_anonymous") is True


def test_defaults_beat_unchanged_flag_defaults():
    config = Config()
    set_config_defaults(config)
    _parsed([], config)
    assert config.get_duration("heartbeat_interval") == timedelta(seconds=40)
    assert _parsed([]).get_duration("heartbeat_interval") == timedelta(seconds=15)


def test_flag_beats_environment():
    config = Config(environ={"ADDR": ":1"})
    assert config.get_string("addr") == ":1"
    _parsed(["-a", ":2"], config)
    assert config.get_string("addr") == ":2"
    config.set("addr", ":3")
    assert config.get_string("addr") == ":3"


def test_environment_beats_file(tmp_path):
    (tmp_path / "mercure.toml").write_text('jwt_key = "from-file"\naddr = ":9000"\n', encoding="utf-8")
    config = Config()
    path = init_config(config, environ={"JWT_KEY": "from-env"}, search_paths=[tmp_path])
    assert path == tmp_path / "mercure.toml"
    assert config.get_string("jwt_key") == "from-env"
    assert config.get_string("addr") == ":9000"


def test_json_config_file(tmp_path):
    (tmp_path / "mercure.json").write_text(json.dumps({"DEMO": True}), encoding="utf-8")
    config = Config()
    init_config(config, environ={}, search_paths=[tmp_path])
    assert config.get_bool("demo") is True


def test_invalid_config_file_ignored(tmp_path):
    (tmp_path / "mercure.json").write_text("{not json", encoding="utf-8")
    config = Config()
    assert init_config(config, environ={}, search_paths=[tmp_path]) is None
    assert config.get_string("transport_url") == "bolt://updates.db"


def test_typed_getters():
    config = Config()
    config.set("flag", "true")
    config.set("other", "nope")
    config.set("number", "12")
    config.set("hosts", "a.example.com b.example.com")
    config.set("delay", "1m30s")
    assert config.get_bool("flag") is True
    assert config.get_bool("other") is False
    assert config.get_int("number") == 12
    assert config.get_string_list("hosts") == ["a.example.com", "b.example.com"]
    assert config.get_duration("delay") == timedelta(seconds=90)
    assert config.get("missing", "fallback") == "fallback"
    assert config.get_string("missing") == ""


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("0", timedelta(0)),
        ("40s", timedelta(seconds=40)),
        ("1h", timedelta(hours=1)),
        ("250ms", timedelta(milliseconds=250)),
        ("-5s", timedelta(seconds=-5)),
    ],
)
def test_parse_duration(text, expected):
    assert parse_duration(text) == expected


@pytest.mark.parametrize("text", ["", "5", "5x", "s"])
def test_parse_duration_invalid(text):
    with pytest.raises(ValueError):
        parse_duration(text)


def test_new_hub_validation_error():
    with pytest.raises(InvalidConfigError):
        hub_options_from_config(Config())


def test_hub_options_from_config():
    config = Config()
    set_config_defaults(config)
    config.set("jwt_key", "secret")
    config.set("publisher_jwt_key", "placeholder")
    config.set("demo", True)
    config.set("subscriptions", True)
    config.set("publish_allowed_origins", ["https://app.example.com"])
    config.set("acme_hosts", ["hub.example.com"])
    options = hub_options_from_config(config)
    assert options.publisher_jwt.key == b"placeholder"
    assert options.subscriber_jwt.key == b"secret"
    assert options.publisher_jwt.algorithm == "HS256"
    assert options.demo and options.ui and options.subscriptions
    assert options.publish_origins == ["https://app.example.com"]
    assert options.allowed_hosts == ["hub.example.com"]
    assert options.heartbeat == timedelta(seconds=40)
    assert options.write_timeout == timedelta(seconds=600)
    assert options.anonymous is False


def test_hub_options_invalid_origin():
    config = Config()
    config.set("jwt_key", "secret")
    config.set("cors_allowed_origins", ["https://example.com/path"])
    with pytest.raises(InvalidOriginError):
        hub_options_from_config(config)


def test_hub_options_unexpected_algorithm():
    config = Config()
    config.set("jwt_key", "secret")
    config.set("jwt_algorithm", "ES256")
    with pytest.raises(UnexpectedSigningMethodError):
        hub_options_from_config(config)