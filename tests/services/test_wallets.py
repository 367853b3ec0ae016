import asyncio
from decimal import Decimal

import pytest
import pytest_asyncio

from veil.core.networks import Network
from veil.services import MemoryKeyValueStore, Wallet, WalletStore

SOL_ADDRESS = "So11111111111111111111111111111111111111112"
EVM_ADDRESS = "0x" + "ab" * 20


class CountingStore(MemoryKeyValueStore):
    def __init__(self, initial=None):
        super().__init__(initial)
        self.writes = 0

    async def set(self, key, value):
        self.writes += 1
        await super().set(key, value)


class YieldingStore(MemoryKeyValueStore):
    """Store whose reads suspend, so concurrent writers interleave."""

    async def get(self, key):
        value = await super().get(key)
        await asyncio.sleep(0)
        return value


@pytest_asyncio.fixture
async def wallets():
    store = WalletStore(CountingStore())
    await store.store_wallet(Wallet(id=1, index=0, network=Network.SOLANA, address=SOL_ADDRESS, balance=Decimal("2")))
    await store.store_wallet(Wallet(id=2, index=1, network=Network.SOLANA, address=SOL_ADDRESS, archived=True))
    await store.store_wallet(Wallet(id=3, index=0, network=Network.ETHEREUM, address=EVM_ADDRESS))
    return store


class TestWalletStore:
    def test_wallet_key(self):
        wallet = Wallet(index=4, network=Network.AVALANCHE, address=EVM_ADDRESS)

        assert wallet.key == "burner:avalanche:4"

    @pytest.mark.asyncio
    async def test_round_trip_keeps_decimal(self, wallets):
        wallet = await wallets.get_wallet(Network.SOLANA, 0)

        assert wallet.balance == Decimal("2")
        assert wallet.address == SOL_ADDRESS

    @pytest.mark.asyncio
    async def test_get_all_excludes_archived(self, wallets):
        all_wallets = await wallets.get_all()

        assert [(w.network, w.index) for w in all_wallets] == [(Network.ETHEREUM, 0), (Network.SOLANA, 0)]
        assert len(await wallets.get_all(include_archived=True)) == 3

    @pytest.mark.asyncio
    async def test_get_all_by_network(self, wallets):
        solana = await wallets.get_all(Network.SOLANA)

        assert [w.index for w in solana] == [0]

    @pytest.mark.asyncio
    async def test_update_balance_returns_previous(self, wallets):
        previous = await wallets.update_balance(Network.SOLANA, 0, Decimal("2.5"))

        assert previous == Decimal("2")
        assert (await wallets.get_wallet(Network.SOLANA, 0)).balance == Decimal("2.5")

    @pytest.mark.asyncio
    async def test_unchanged_balance_is_not_written(self, wallets):
        writes = wallets._store.writes

        await wallets.update_balance(Network.SOLANA, 0, Decimal("2.0"))

        assert wallets._store.writes == writes

    @pytest.mark.asyncio
    async def test_update_missing_wallet(self, wallets):
        assert await wallets.update_balance(Network.SOLANA, 9, Decimal("1")) is None

    def test_locks_are_per_wallet(self):
        store = WalletStore(MemoryKeyValueStore())

        assert store.lock_for(Network.SOLANA, 0) is store.lock_for(Network.SOLANA, 0)
        assert store.lock_for(Network.SOLANA, 0) is not store.lock_for(Network.SOLANA, 1)
        assert store.lock_for(Network.SOLANA, 0) is not store.lock_for(Network.ETHEREUM, 0)

    @pytest.mark.asyncio
    async def test_concurrent_updates_are_not_lost(self):
        wallets = WalletStore(YieldingStore())
        await wallets.store_wallet(Wallet(id=1, index=0, network=Network.SOLANA, address=SOL_ADDRESS, balance=Decimal("2")))

        previous = await asyncio.gather(
            wallets.update_balance(Network.SOLANA, 0, Decimal("3")),
            wallets.update_balance(Network.SOLANA, 0, Decimal("5")),
        )

        assert previous == [Decimal("2"), Decimal("3")]
        assert (await wallets.get_wallet(Network.SOLANA, 0)).balance == Decimal("5")
