from pathlib import Path

import pytest

from annot_lib.config import ConfigError, IngestSettings, load_config
from annot_lib.logging_utils import setup_logging
from annot_lib.taxonomy import is_preference_label, load_taxonomy, taxonomy_from_dict


def test_repo_config_loads():
    cfg = load_config()
    settings = IngestSettings.from_config(cfg)
    assert settings.max_intents == 2
    assert settings.probability_tolerance == pytest.approx(0.01)
    assert settings.is_line_delimited("X.JSONL")
    assert not settings.is_line_delimited("x.json")


def test_missing_section_is_reported(tmp_path: Path):
    path = tmp_path / "config.yaml"
    path.write_text("paths:\n  outputs_dir: out\n  autosave_dir: out/.a\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(str(path))


def test_missing_file(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        load_config(str(tmp_path / "nope.yaml"))


def test_taxonomy_tables():
    tax = load_taxonomy()
    assert len(tax.intent_ids) == 8
    assert tax.is_subtype("informational", "factual_queries")
    assert tax.is_memory_label("Preferences/Food")
    assert "Preferences/Music" in tax.labels_by_category("Preferences")
    assert tax.highlight_category("identity").key_prefix == "Identity"
    assert tax.highlight_category("missing").key_prefix == "Memory"
    assert is_preference_label("Preferences/Food")
    assert not is_preference_label("Personal_Background/Identity")


def test_taxonomy_defaults_without_highlights():
    tax = taxonomy_from_dict({"intent_categories": [{"id": "a"}]})
    assert tax.intent_subtypes == {"a": ()}
    assert tax.highlight_category(None).id == "uncategorized"


def test_setup_logging_reads_env(monkeypatch):
    import logging

    monkeypatch.setenv("LOG_LEVEL", "debug")
    setup_logging()
    assert logging.getLogger("annot_lib").level == logging.DEBUG
    setup_logging("WARNING")
    assert logging.getLogger("annot_lib").level == logging.WARNING
