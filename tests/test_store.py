import pytest

from postboard.errors import (DatabaseConnectionError, NotFoundError, SchemaError,
                              StorageError, ValidationError)
from postboard.sqlite_backend import SQLiteBackend
from postboard.store import MAX_KEY_LENGTH, MAX_PREFIX_RESULTS, Store


def test_overwrite_returns_latest_value(store):
    store.put('foo', b'v1')
    store.put('foo', b'v2')
    assert store.get('foo') == b'v2'


def test_get_missing_key_raises_not_found(store):
    with pytest.raises(NotFoundError) as exc:
        store.get('never-written')
    assert exc.value.key == 'never-written'


def test_empty_value_is_not_missing(store):
    store.put('blank', b'')
    assert store.get('blank') == b''


def test_prefix_listing_matches_only_prefix(store):
    for k in ('apple', 'apricot', 'banana'):
        store.put(k, b'x')
    assert set(store.list_by_prefix('a')) == {'apple', 'apricot'}
    assert store.list_by_prefix('ap') == ['apple', 'apricot']  # sorted
    assert store.list_by_prefix('c') == []


def test_prefix_listing_is_case_sensitive(store):
    store.put('Apple', b'x')
    store.put('apple', b'y')
    assert store.list_by_prefix('a') == ['apple']


def test_prefix_wildcards_match_literally(store):
    for k in ('a*z', 'a?y', 'a[1]', 'abc', 'a%b', 'a_c'):
        store.put(k, b'x')
    assert store.list_by_prefix('a*') == ['a*z']
    assert store.list_by_prefix('a?') == ['a?y']
    assert store.list_by_prefix('a[') == ['a[1]']
    assert store.list_by_prefix('a%') == ['a%b']
    assert store.list_by_prefix('a_') == ['a_c']


def test_empty_prefix_lists_everything(store):
    store.put('one', b'1')
    store.put('two', b'2')
    assert store.list_by_prefix('') == ['one', 'two']


def test_prefix_listing_capped(store):
    conn = store.connection
    with conn:
        conn.executemany("INSERT INTO postboard_kvs (k, v) VALUES (?, ?)",
                         [(f"k{i:05d}", b'x') for i in range(MAX_PREFIX_RESULTS + 25)])
    keys = store.list_by_prefix('k')
    assert len(keys) == MAX_PREFIX_RESULTS
    assert keys[0] == 'k00000'


def test_empty_key_rejected_without_write(store):
    with pytest.raises(ValidationError):
        store.put('', b'x')
    assert store.list_by_prefix('') == []


def test_key_length_limit(store):
    store.put('k' * MAX_KEY_LENGTH, b'ok')
    with pytest.raises(ValidationError):
        store.put('k' * (MAX_KEY_LENGTH + 1), b'too long')
    assert store.list_by_prefix('k') == ['k' * MAX_KEY_LENGTH]


def test_non_bytes_value_rejected(store):
    with pytest.raises(ValidationError):
        store.put('k', 'text')  # type: ignore[arg-type]


@pytest.mark.parametrize('payload', [
    b'\x00',
    b'before\x00after',
    bytes(range(256)),
])
def test_binary_round_trip(store, payload):
    store.put('bin', payload)
    assert store.get('bin') == payload


def test_bytearray_and_memoryview_accepted(store):
    store.put('ba', bytearray(b'\x01\x02'))
    store.put('mv', memoryview(b'\x03\x04'))
    assert store.get('ba') == b'\x01\x02'
    assert store.get('mv') == b'\x03\x04'


def test_created_at_kept_on_overwrite(store):
    store.put('stamp', b'first')
    conn = store.connection
    with conn:
        conn.execute("UPDATE postboard_kvs SET created_at = '2000-01-01 00:00:00' WHERE k = 'stamp'")
    store.put('stamp', b'second')
    rec = store.get_record('stamp')
    assert rec.value == b'second'
    assert rec.created_at.year == 2000


def test_created_at_set_on_insert(store):
    store.put('fresh', b'x')
    assert store.get_record('fresh').created_at is not None


def test_delete(store):
    store.put('gone', b'x')
    assert store.delete('gone') is True
    assert store.delete('gone') is False
    with pytest.raises(NotFoundError):
        store.get('gone')


def test_delete_empty_key_rejected(store):
    with pytest.raises(ValidationError):
        store.delete('')


def test_ensure_schema_idempotent(store):
    store.put('keep', b'x')
    store.ensure_schema()
    assert store.get('keep') == b'x'


def test_data_persists_across_stores(sqlite_dsn):
    with Store.open(sqlite_dsn) as s:
        s.ensure_schema()
        s.put('durable', b'yes')
    with Store.open(sqlite_dsn) as s:
        s.ensure_schema()
        assert s.get('durable') == b'yes'


def test_schema_error_when_database_read_only():
    s = Store(SQLiteBackend(':memory:'))
    s.connection.execute("PRAGMA query_only=ON")
    with pytest.raises(SchemaError):
        s.ensure_schema()
    s.close()


def test_storage_error_on_failed_write():
    s = Store(SQLiteBackend(':memory:'))
    s.ensure_schema()
    s.connection.execute("PRAGMA query_only=ON")
    with pytest.raises(StorageError):
        s.put('k', b'v')
    s.close()


def test_closed_store_raises_and_close_is_idempotent(store):
    store.close()
    store.close()
    with pytest.raises(StorageError):
        store.get('k')


def test_unsupported_dsn():
    with pytest.raises(DatabaseConnectionError) as exc:
        Store.open('mysql://root@127.0.0.1/pb')
    assert 'mysql' in str(exc.value)


def test_directory_dsn_rejected(tmp_path):
    with pytest.raises(DatabaseConnectionError):
        Store.open(f"sqlite:///{tmp_path}")


@pytest.mark.parametrize('key', ['a\x00b', '\x00'])
def test_nul_in_key_rejected(store, key):
    with pytest.raises(ValidationError):
        store.put(key, b'x')
    assert store.list_by_prefix('') == []


def test_undecodable_key_rejected(store):
    # os.fsdecode(b'\xff') yields a lone surrogate
    with pytest.raises(ValidationError):
        store.put('\udcff', b'x')
    with pytest.raises(ValidationError):
        store.get('\udcff')
    with pytest.raises(ValidationError):
        store.list_by_prefix('\udcff')
