import json
import logging

import pytest

from settings import (
    DEFAULT_TEXT_MAPPINGS_PATH, TEXT_MAPPINGS_ENV_VAR, ConfigurationError, TextMappings,
    load_text_mappings, text_mappings_path,
)


def test_bundled_mappings_file_loads():
    mappings = load_text_mappings(DEFAULT_TEXT_MAPPINGS_PATH)
    assert mappings.capacity_normalizations['16GB+1TB'] == "16+1T"
    assert "HUAWEI" in mappings.brand_aliases['华为']


def test_missing_file_gives_empty_tables(tmp_path, caplog):
    with caplog.at_level(logging.WARNING):
        mappings = load_text_mappings(str(tmp_path / "absent.json"))
    assert mappings == TextMappings()
    assert "not found" in caplog.text


@pytest.mark.parametrize("payload", [
    "{not json",
    json.dumps(["a", "b"]),
    json.dumps({"typoCorrections": ["a"]}),
    json.dumps({"brandAliases": {"华为": "HUAWEI"}}),
])
def test_bad_file_gives_empty_tables(tmp_path, caplog, payload):
    path = tmp_path / "mappings.json"
    path.write_text(payload, encoding="utf-8")
    with caplog.at_level(logging.ERROR):
        mappings = load_text_mappings(str(path))
    assert mappings == TextMappings()
    assert "Failed to load text mappings" in caplog.text


def test_partial_file_keeps_other_tables_empty(tmp_path):
    path = tmp_path / "mappings.json"
    path.write_text(json.dumps({"abbreviations": {"GT5": "Watch GT 5"}}), encoding="utf-8")
    mappings = load_text_mappings(str(path))
    assert mappings.abbreviations == {"GT5": "Watch GT 5"}
    assert mappings.capacity_normalizations == {}


def test_env_var_overrides_default_path(tmp_path, monkeypatch):
    path = tmp_path / "custom.json"
    path.write_text(json.dumps({"typoCorrections": {"雾松蓝": "雾凇蓝"}}), encoding="utf-8")

    monkeypatch.delenv(TEXT_MAPPINGS_ENV_VAR, raising=False)
    assert text_mappings_path() == DEFAULT_TEXT_MAPPINGS_PATH

    monkeypatch.setenv(TEXT_MAPPINGS_ENV_VAR, str(path))
    assert text_mappings_path() == str(path)
    assert load_text_mappings().typo_corrections == {"雾松蓝": "雾凇蓝"}


def test_from_dict_rejects_wrong_shapes():
    with pytest.raises(ConfigurationError):
        TextMappings.from_dict({"capacityNormalizations": "8+256"})
