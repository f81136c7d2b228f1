import json

import pytest
import yaml

from blockeval.blockeval_config import (
    EngineConfig, deserialize, detect_format, load_config, parse_binding_value,
)
from blockeval.blockeval_datatypes import ConfigurationError


def test_from_mapping_accepts_kebab_and_snake_case():
    kebab = EngineConfig.from_mapping({"binary-path": "/usr/bin/java", "library-paths": ["/n"]})
    snake = EngineConfig.from_mapping({"binary_path": "/usr/bin/java", "library_paths": ["/n"]})
    assert kebab == snake
    assert kebab.library_paths == ("/n",)


def test_from_mapping_defaults():
    cfg = EngineConfig.from_mapping({})
    assert cfg.binary_path is None
    assert cfg.bootstrap_archive_path is None
    assert cfg.runtime_search_paths == ()
    assert cfg.java_command == "java"
    assert cfg.entry_point == "clojure.main"


def test_from_mapping_scalar_path_becomes_list():
    cfg = EngineConfig.from_mapping({"runtime-search-paths": "/src"})
    assert cfg.runtime_search_paths == ("/src",)


def test_from_mapping_rejects_bad_settle_interval():
    with pytest.raises(ConfigurationError):
        EngineConfig.from_mapping({"settle-interval": "soon"})


def test_load_yaml(tmp_path):
    path = tmp_path / "engine.yaml"
    path.write_text(yaml.safe_dump({
        "bootstrap-archive-path": "/opt/clojure.jar",
        "runtime-search-paths": ["/src", "/test"],
        "settle-interval": 2.5,
    }))
    cfg = load_config(str(path))
    assert cfg.bootstrap_archive_path == "/opt/clojure.jar"
    assert cfg.runtime_search_paths == ("/src", "/test")
    assert cfg.settle_interval == 2.5


def test_load_json_relative_to_base_dir(tmp_path):
    (tmp_path / "engine.json").write_text(json.dumps({"binary_path": "/usr/bin/java"}))
    cfg = load_config("engine.json", base_dir=str(tmp_path))
    assert cfg.binary_path == "/usr/bin/java"


def test_load_toml_with_blockeval_table(tmp_path):
    path = tmp_path / "pyproject.toml"
    path.write_text(
        '[blockeval]\n'
        'binary-path = "/usr/bin/java"\n'
        'extra-runtime-flags = ["-Xss4m"]\n'
    )
    cfg = load_config(str(path))
    assert cfg.binary_path == "/usr/bin/java"
    assert cfg.extra_runtime_flags == ("-Xss4m",)


def test_load_empty_yaml_gives_defaults(tmp_path):
    path = tmp_path / "empty.yml"
    path.write_text("")
    assert load_config(str(path)) == EngineConfig()


def test_load_missing_file(tmp_path):
    with pytest.raises(ConfigurationError):
        load_config(str(tmp_path / "nope.yaml"))


def test_load_unsupported_extension(tmp_path):
    path = tmp_path / "engine.ini"
    path.write_text("[x]")
    with pytest.raises(ConfigurationError):
        load_config(str(path))


def test_load_malformed_json(tmp_path):
    path = tmp_path / "engine.json"
    path.write_text("{not json")
    with pytest.raises(ConfigurationError):
        load_config(str(path))


def test_load_non_mapping(tmp_path):
    path = tmp_path / "engine.yaml"
    path.write_text("- a\n- b\n")
    with pytest.raises(ConfigurationError):
        load_config(str(path))


def test_to_mapping_round_trips():
    cfg = EngineConfig(binary_path="/usr/bin/java", library_paths=("/n",))
    assert EngineConfig.from_mapping(cfg.to_mapping()) == cfg


@pytest.mark.parametrize(
    "path,expected",
    [("a.json", "json"), ("a.yaml", "yaml"), ("a.YML", "yaml"), ("a.toml", "toml"), ("a.txt", None)],
)
def test_detect_format(path, expected):
    assert detect_format(path) == expected


def test_deserialize_sniffs_json_then_yaml():
    assert deserialize('{"a": 1}') == {"a": 1}
    assert deserialize(b"a: [1, 2]\n") == {"a": [1, 2]}


def test_parse_binding_value():
    assert parse_binding_value("[1, 2]") == [1, 2]
    assert parse_binding_value("42") == 42
    assert parse_binding_value("hello") == "hello"
    assert parse_binding_value("") == ""
    assert parse_binding_value("[unclosed") == "[unclosed"
