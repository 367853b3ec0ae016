import pytest

from veil.privacy import PRIVACY_STORAGE_PREFIX, PrivacyStorage
from veil.privacy.storage import encrypted_outputs_key, fetch_offset_key, utxo_cache_keys
from veil.services import MemoryKeyValueStore

PK = "So11111111111111111111111111111111111111112"
OTHER = "9xQeWvG816bUx9EPjHmaT23yvVM2ZWbrrpZb9PusVFin"


@pytest.fixture
def store():
    return MemoryKeyValueStore({
        f"{PRIVACY_STORAGE_PREFIX}fetch_offset{PK}": "12",
        f"{PRIVACY_STORAGE_PREFIX}encrypted_outputs{PK}": "[\"abc\"]",
        f"{PRIVACY_STORAGE_PREFIX}fetch_offset{OTHER}": "3",
        "tx:1": {"id": "1"},
    })


class TestPrivacyStorage:
    def test_cache_keys(self):
        assert fetch_offset_key(PK) == f"fetch_offset{PK}"
        assert encrypted_outputs_key(PK) == f"encrypted_outputs{PK}"
        assert utxo_cache_keys(PK) == [fetch_offset_key(PK), encrypted_outputs_key(PK)]

    @pytest.mark.asyncio
    async def test_reads_need_preload(self, store):
        storage = PrivacyStorage(store)

        assert storage.get_item(fetch_offset_key(PK)) is None

        await storage.preload_for(PK)

        assert storage.get_item(fetch_offset_key(PK)) == "12"
        assert storage.get_item(encrypted_outputs_key(PK)) == "[\"abc\"]"
        assert storage.get_item(fetch_offset_key(OTHER)) is None
        assert len(storage) == 2

    @pytest.mark.asyncio
    async def test_initialize_loads_namespace_only(self, store):
        storage = PrivacyStorage(store)

        await storage.initialize()

        assert len(storage) == 3
        assert storage.get_item("tx:1") is None

    @pytest.mark.asyncio
    async def test_writes_are_namespaced(self, store):
        storage = PrivacyStorage(store)

        await storage.set_item("tradeHistory", "[]")

        assert storage.get_item("tradeHistory") == "[]"
        assert await store.get(f"{PRIVACY_STORAGE_PREFIX}tradeHistory") == "[]"

    @pytest.mark.asyncio
    async def test_remove_item(self, store):
        storage = PrivacyStorage(store)
        await storage.preload_for(PK)

        await storage.remove_item(fetch_offset_key(PK))

        assert storage.get_item(fetch_offset_key(PK)) is None
        assert await store.get(f"{PRIVACY_STORAGE_PREFIX}fetch_offset{PK}") is None

    @pytest.mark.asyncio
    async def test_evict_keeps_store(self, store):
        storage = PrivacyStorage(store)
        await storage.preload_for(PK)

        storage.evict(PK)

        assert len(storage) == 0
        assert await store.get(f"{PRIVACY_STORAGE_PREFIX}fetch_offset{PK}") == "12"

    @pytest.mark.asyncio
    async def test_clear_only_touches_namespace(self, store):
        storage = PrivacyStorage(store)
        await storage.initialize()

        await storage.clear()

        assert len(storage) == 0
        assert await store.items(PRIVACY_STORAGE_PREFIX) == []
        assert await store.get("tx:1") == {"id": "1"}
