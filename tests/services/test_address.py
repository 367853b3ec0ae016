import pytest

from veil.core.networks import Network
from veil.core.recovery import InvalidAddress
from veil.services.address import (
    is_valid_address_for_network,
    is_valid_evm_address,
    is_valid_solana_address,
    normalize_address,
)


def test_address_validation_evm():
    address = "0x1234567890abcdef1234567890ABCDEF12345678"
    assert is_valid_evm_address(address) is True
    assert is_valid_evm_address(address[:-1]) is False
    assert is_valid_address_for_network(address, Network.ARBITRUM) is True
    assert is_valid_address_for_network(address, Network.SOLANA) is False


def test_address_validation_solana():
    solana_address = "So11111111111111111111111111111111111111112"
    assert is_valid_solana_address(solana_address) is True
    assert is_valid_solana_address("O0lNotBase58") is False
    assert is_valid_address_for_network(solana_address, Network.ETHEREUM) is False


def test_normalize_lowercases_evm():
    address = "0x1234567890abcdef1234567890ABCDEF12345678"
    assert normalize_address(f" {address} ", Network.ETHEREUM) == address.lower()


def test_normalize_keeps_solana_case():
    solana_address = "So11111111111111111111111111111111111111112"
    assert normalize_address(solana_address, Network.SOLANA) == solana_address


@pytest.mark.parametrize("bad", ["", "0x123", None, 42])
def test_normalize_rejects_malformed(bad):
    with pytest.raises(InvalidAddress):
        normalize_address(bad, Network.AVALANCHE)
