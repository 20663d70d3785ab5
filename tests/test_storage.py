import json
import sqlite3

import pytest

from budget_tracker import config
from budget_tracker.errors import PersistenceError
from budget_tracker.storage import (
    STORAGE_KEYS,
    JsonFileStore,
    MemoryStore,
    SqliteStore,
    open_store,
)


@pytest.fixture(params=['memory', 'json', 'sqlite'])
def any_store(request, tmp_path):
    if request.param == 'memory':
        return MemoryStore()
    if request.param == 'json':
        return JsonFileStore(tmp_path / 'store')
    return SqliteStore(tmp_path / 'budget.db')


def test_missing_key_loads_as_empty_list(any_store):
    assert any_store.get(STORAGE_KEYS['GOALS']) is None
    assert any_store.load_list(STORAGE_KEYS['GOALS']) == []


def test_save_lists_writes_every_key(any_store):
    any_store.save_lists({
        'expenses': [{'id': 1, 'amount': 5.0}],
        'income': [{'id': 2, 'amount': 9.0}],
    })
    assert any_store.load_list('expenses') == [{'id': 1, 'amount': 5.0}]
    assert any_store.load_list('income') == [{'id': 2, 'amount': 9.0}]


def test_overwrite_replaces_value(any_store):
    any_store.save_list('goals', [{'id': 1}])
    any_store.save_list('goals', [])
    assert any_store.get('goals') == '[]'


def test_corrupt_or_wrong_shape_loads_as_empty(any_store, caplog):
    any_store.set('expenses', '{not json')
    any_store.set('income', json.dumps({'id': 1}))
    assert any_store.load_list('expenses') == []
    assert any_store.load_list('income') == []
    assert 'not valid JSON' in caplog.text


def test_non_dict_rows_are_dropped():
    store = MemoryStore({'savings': json.dumps([{'id': 1}, 3, 'x'])})
    assert store.load_list('savings') == [{'id': 1}]


def test_json_store_uses_one_file_per_key(tmp_path):
    store = JsonFileStore(tmp_path)
    store.save_list('monthlyArchives', [{'month': '2025-01'}])
    assert (tmp_path / 'monthlyArchives.json').exists()
    assert not list(tmp_path.glob('*.tmp'))


def test_json_store_write_failure_raises_persistence_error(tmp_path):
    blocker = tmp_path / 'not_a_dir'
    blocker.write_text('x')
    store = JsonFileStore(blocker / 'store')
    with pytest.raises(PersistenceError):
        store.set('goals', '[]')


def test_sqlite_set_many_is_a_single_transaction(tmp_path):
    store = SqliteStore(tmp_path / 'budget.db')
    store.save_list('expenses', [{'id': 1}])

    # sqlite rejects a non-text parameter mid-batch; the first key must not land either
    with pytest.raises(PersistenceError):
        store.set_many({'expenses': '[]', 'income': object()})
    assert store.load_list('expenses') == [{'id': 1}]
    assert store.get('income') is None


def test_sqlite_unreadable_database_raises(tmp_path):
    path = tmp_path / 'broken.db'
    path.write_bytes(b'this is not a database' * 100)
    store = SqliteStore(path)
    with pytest.raises(PersistenceError):
        store.get('goals')


def test_sqlite_clear_removes_everything(tmp_path):
    store = SqliteStore(tmp_path / 'budget.db')
    store.save_list('goals', [{'id': 1}])
    store.clear()
    assert store.get('goals') is None
    with sqlite3.connect(str(store.db_path)) as conn:
        assert conn.execute("SELECT COUNT(*) FROM kv_store").fetchone()[0] == 0


def test_open_store_picks_backend(tmp_path, monkeypatch):
    monkeypatch.setattr(config, 'DATA_DIR', tmp_path)
    monkeypatch.setattr(config, 'STORE_DIR', tmp_path / 'store')
    monkeypatch.setattr(config, 'REPORTS_DIR', tmp_path / 'reports')
    monkeypatch.setattr(config, 'DB_PATH', tmp_path / 'budget.db')

    assert isinstance(open_store('memory'), MemoryStore)
    assert isinstance(open_store('json'), JsonFileStore)
    assert isinstance(open_store('SQLITE'), SqliteStore)
    with pytest.raises(ValueError):
        open_store('redis')
