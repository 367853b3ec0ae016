from decimal import Decimal

import pytest

from veil.core.networks import (
    LAMPORTS_PER_SOL,
    Network,
    from_base_units,
    lamports_to_sol,
    native_symbol,
    normalize_network,
    to_base_units,
)


class TestNetworks:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("solana", Network.SOLANA),
            ("SOL", Network.SOLANA),
            ("eth", Network.ETHEREUM),
            (" Arbitrum ", Network.ARBITRUM),
            ("avax", Network.AVALANCHE),
            (Network.AVALANCHE, Network.AVALANCHE),
        ],
    )
    def test_normalize(self, raw, expected):
        assert normalize_network(raw) is expected

    def test_unknown_network(self):
        with pytest.raises(ValueError):
            normalize_network("dogecoin")

    def test_evm_flag(self):
        assert not Network.SOLANA.is_evm
        assert all(n.is_evm for n in (Network.ETHEREUM, Network.ARBITRUM, Network.AVALANCHE))

    def test_symbols(self):
        assert native_symbol(Network.SOLANA) == "SOL"
        assert native_symbol(Network.ARBITRUM) == "ETH"
        assert native_symbol(Network.AVALANCHE) == "AVAX"


class TestUnits:
    def test_lamports(self):
        assert lamports_to_sol(1_500_000_000) == Decimal("1.5")
        assert LAMPORTS_PER_SOL == 10**9

    def test_wei(self):
        assert from_base_units(Network.ETHEREUM, 10**18) == Decimal("1")
        assert from_base_units(Network.AVALANCHE, 25 * 10**16) == Decimal("0.25")

    def test_to_base_units_truncates(self):
        assert to_base_units(Network.SOLANA, Decimal("0.0000000015")) == 1
        assert to_base_units(Network.SOLANA, Decimal("2")) == 2 * LAMPORTS_PER_SOL
