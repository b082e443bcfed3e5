import pytest

from config_cache import (
    DEFAULT_OCCURRENCE_TYPES,
    DEFAULT_SUBJECTS,
    ConfigurationCache,
    normalize_lines,
)
from database import StoreError


def test_normalize_lines():
    assert normalize_lines("A\n\nB\n  C  \n") == ["A", "B", "C"]


def test_normalize_lines_keeps_duplicates_and_order():
    assert normalize_lines("Geografia\r\nArte\nGeografia") == ["Geografia", "Arte", "Geografia"]
    assert normalize_lines("") == []
    assert normalize_lines("   \n\t\n") == []


def test_load_installs_defaults_for_absent_documents(store):
    cache = ConfigurationCache(store)
    cache.load()
    assert cache.subjects == DEFAULT_SUBJECTS
    assert cache.occurrence_types == DEFAULT_OCCURRENCE_TYPES
    assert cache.roster == {}
    assert cache.roster_for("1", "M1") == []


def test_present_document_without_field_is_empty(store):
    store.set_fields("config", "disciplines", {"updated_by": "admin"})
    cache = ConfigurationCache(store)
    cache.load()
    assert cache.subjects == []


def test_load_error_propagates(store):
    store.fail.add("get")
    with pytest.raises(StoreError):
        ConfigurationCache(store).load()


def test_malformed_configuration_is_a_store_error(store):
    store.set_fields("config", "occurrences", {"list": ["Sem material", 42]})
    cache = ConfigurationCache(store)
    with pytest.raises(StoreError):
        cache.load()
    assert cache.occurrence_types == []


def test_saved_lists_survive_reload(store):
    cache = ConfigurationCache(store)
    cache.load()
    cache.save_subjects(["Física", "Química", "Física"])
    cache.save_occurrence_types(["Dormiu em sala"])

    fresh = ConfigurationCache(store)
    fresh.load()
    assert fresh.subjects == ["Física", "Química", "Física"]
    assert fresh.occurrence_types == ["Dormiu em sala"]


def test_save_roster_only_touches_one_class(roster_store):
    cache = ConfigurationCache(roster_store)
    cache.load()
    cache.save_roster("1", "M2", ["Diego", "Eva"])

    assert cache.roster_for("1", "M2") == ["Diego", "Eva"]
    assert roster_store.collections["config"]["students"]["data"] == {
        "1": {"M1": ["Ana Silva", "João", "Bruno"], "M2": ["Diego", "Eva"]},
        "3": {"M4": ["Carla"]},
    }


def test_save_merges_into_existing_document(store):
    store.set_fields("config", "disciplines", {"list": ["Arte"], "note": "keep"})
    cache = ConfigurationCache(store)
    cache.save_subjects(["Música"])
    assert store.collections["config"]["disciplines"] == {"list": ["Música"], "note": "keep"}


def test_failed_save_leaves_cache_unchanged(store):
    cache = ConfigurationCache(store)
    cache.load()
    store.fail.add("set")
    with pytest.raises(StoreError):
        cache.save_subjects(["Música"])
    assert cache.subjects == DEFAULT_SUBJECTS


def test_reset_drops_snapshot(roster_store):
    cache = ConfigurationCache(roster_store)
    cache.load()
    cache.reset()
    assert (cache.subjects, cache.occurrence_types, cache.roster) == ([], [], {})
