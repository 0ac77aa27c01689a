import pytest

from kvstore_lib.storage.memory_backend import MemoryBackend
from kvstore_lib.store import (
    DeleteError,
    DuplicateError,
    GetObjectError,
    NotFoundError,
    SaveObjectError,
    TypedStore,
    UnknownError,
    WipeError,
)
from tests.helpers import FlakyBackend, Profile, Settings, Token, Unreadable, Unwritable

NS = 'app'


@pytest.fixture(params=['enumerable', 'plain'])
def store(request):
    backend = MemoryBackend(enumerable=request.param == 'enumerable')
    return TypedStore(backend, NS)


def test_roundtrip(store):
    store.save(Profile('ann', 30))
    assert store.get(Profile) == Profile('ann', 30)
    assert store.exists('profile') is True


def test_duplicate_guard_leaves_value_untouched(store):
    store.save(Profile('ann'))
    before = store.backend.get(NS, 'profile')
    with pytest.raises(DuplicateError):
        store.save(Profile('bob'))
    assert store.backend.get(NS, 'profile') == before
    assert store.get(Profile).name == 'ann'


def test_overwrite_replaces_value(store):
    store.save(Profile('ann'))
    store.save(Profile('bob'), overwrite=True)
    assert store.get(Profile) == Profile('bob')


def test_delete_then_get(store):
    store.save(Token('t-1'))
    store.delete('token')
    assert store.exists('token') is False
    with pytest.raises(GetObjectError):
        store.get(Token)
    assert 'token' not in store.all_keys()


def test_delete_missing_key_is_not_found(store):
    with pytest.raises(NotFoundError):
        store.delete('nothing')


def test_bulk_wipe(store):
    store.save(Profile('ann'))
    store.save(Settings())
    store.delete_all()
    assert store.all_keys() == []
    assert store.exists('profile') is False
    assert store.exists('settings') is False


def test_all_keys_lists_distinct_saved_keys(store):
    store.save(Profile('ann'))
    store.save(Settings(theme='dark'))
    store.save(Token('t'))
    store.save(Token('t2'), overwrite=True)
    keys = store.all_keys()
    assert sorted(keys) == ['profile', 'settings', 'token']
    assert len(keys) == len(set(keys))


def test_profile_scenario(store):
    store.save(Profile('A'))
    with pytest.raises(DuplicateError):
        store.save(Profile('B'))
    assert store.get(Profile) == Profile('A')
    store.save(Profile('B'), overwrite=True)
    assert store.get(Profile) == Profile('B')
    store.delete_all()
    assert store.all_keys() == []


def test_get_missing_or_corrupt_is_get_object_error(store):
    with pytest.raises(GetObjectError):
        store.get(Profile)
    store.backend.put(NS, 'profile', b'not json')
    with pytest.raises(GetObjectError):
        store.get(Profile)


def test_encode_failure_is_save_object_error(store):
    with pytest.raises(SaveObjectError):
        store.save(Unwritable())
    assert store.exists('unwritable') is False


def test_failed_write_verification_is_save_object_error(store):
    with pytest.raises(SaveObjectError):
        store.save(Unreadable())
    # the raw write went through but the key is never reported
    assert store.exists('unreadable') is True
    if store.uses_index:
        assert store.all_keys() == []


def test_stores_share_state_through_backend():
    backend = MemoryBackend(enumerable=False)
    first = TypedStore(backend, NS)
    second = TypedStore(backend, NS)
    first.save(Profile('ann'))
    assert second.get(Profile) == Profile('ann')
    assert second.all_keys() == ['profile']
    with pytest.raises(DuplicateError):
        second.save(Profile('bob'))


def test_namespaces_are_isolated():
    backend = MemoryBackend()
    a = TypedStore(backend, 'a')
    b = TypedStore(backend, 'b')
    a.save(Profile('ann'))
    assert b.exists('profile') is False
    b.save(Profile('bob'))
    a.delete_all()
    assert b.get(Profile) == Profile('bob')


def test_index_is_hidden_and_reserved_on_plain_backend():
    backend = MemoryBackend(enumerable=False)
    store = TypedStore(backend, NS)
    store.save(Profile('ann'))
    assert backend.exists(NS, 'keys') is True
    assert store.all_keys() == ['profile']

    class Clash:
        storage_key = 'keys'

        def encode(self):
            return b'[]'

        @classmethod
        def decode(cls, data):
            return cls()

    with pytest.raises(SaveObjectError):
        store.save(Clash(), overwrite=True)
    assert store.all_keys() == ['profile']


def test_custom_index_key():
    backend = MemoryBackend(enumerable=False)
    store = TypedStore(backend, NS, index_key='__index__')
    store.save(Profile('ann'))
    assert backend.exists(NS, '__index__') is True
    assert backend.exists(NS, 'keys') is False
    assert store.all_keys() == ['profile']


def test_unreadable_index_reads_as_empty():
    backend = MemoryBackend(enumerable=False)
    store = TypedStore(backend, NS)
    backend.put(NS, 'keys', b'{broken')
    assert store.all_keys() == []
    backend.put(NS, 'keys', b'{"a": 1}')
    assert store.all_keys() == []
    backend.put(NS, 'keys', b'["a", 2]')
    assert store.all_keys() == []


def test_backend_failures_map_to_errors():
    backend = FlakyBackend(enumerable=True, fail_put={'profile'}, fail_delete={'token'}, fail_wipe=True)
    store = TypedStore(backend, NS)

    with pytest.raises(SaveObjectError):
        store.save(Profile('ann'))

    store.save(Token('t'))
    with pytest.raises(DeleteError):
        store.delete('token')
    assert store.get(Token) == Token('t')

    with pytest.raises(WipeError):
        store.delete_all()

    # the store is still usable afterwards
    store.save(Settings())
    assert sorted(store.all_keys()) == ['settings', 'token']


def test_unrecognised_backend_failures_are_unknown_errors():
    backend = FlakyBackend(enumerable=True, broken=True)
    store = TypedStore(backend, NS)
    store.save(Token('t'))
    with pytest.raises(UnknownError):
        store.delete('token')
    with pytest.raises(UnknownError):
        store.delete_all()


def test_delete_keeps_going_when_index_rewrite_fails():
    backend = FlakyBackend(enumerable=False)
    store = TypedStore(backend, NS)
    store.save(Profile('ann'))
    store.save(Token('t'))
    backend.fail_put.add('keys')
    store.delete('token')
    assert store.exists('token') is False
    # index is stale until the next successful rewrite
    assert sorted(store.all_keys()) == ['profile', 'token']


def test_constructor_validation():
    with pytest.raises(ValueError):
        TypedStore(MemoryBackend(), '')
    with pytest.raises(ValueError):
        TypedStore(MemoryBackend(), NS, index_policy='whatever')


def test_error_messages_carry_detail():
    store = TypedStore(MemoryBackend(), NS)
    store.save(Profile('ann'))
    with pytest.raises(DuplicateError) as exc:
        store.save(Profile('bob'))
    assert str(exc.value) == 'Duplicate error type: Profile key: profile'
    assert exc.value.detail == 'type: Profile key: profile'
    with pytest.raises(NotFoundError) as exc:
        store.delete('missing')
    assert str(exc.value) == 'Not found missing'


def test_reserved_index_key_refused_regardless_of_overwrite():
    backend = MemoryBackend(enumerable=False)
    store = TypedStore(backend, NS)
    store.save(Profile('ann'))

    class Clash:
        storage_key = 'keys'

        def encode(self):
            return b'[]'

        @classmethod
        def decode(cls, data):
            return cls()

    # the index entry exists, yet this is not a duplicate
    with pytest.raises(SaveObjectError):
        store.save(Clash())
    assert store.all_keys() == ['profile']
