"""
XChain Address Validation

Checks that an address belongs to the address family of the network it
will be used on:

- EVM networks: 0x-prefixed 20-byte hex, EIP-55 checksum enforced for
  mixed-case input
- Bitcoin: base58check P2PKH / P2SH, or checksummed bech32/bech32m ``bc1`` segwit
- Solana: base58 public key (32 bytes)
- Tron: base58check, 21 bytes with the 0x41 network prefix
"""

import re
from typing import Any, Callable, Dict

import base58
from eth_utils import is_address, is_checksum_address

from .networks import Network, network_from_id, network_info
from ..exceptions import InvalidAddressError

BITCOIN_VERSION_BYTES = (0x00, 0x05)  # P2PKH, P2SH
TRON_ADDRESS_PREFIX = 0x41
SOLANA_PUBKEY_LENGTH = 32

_BECH32_RE = re.compile(r"^bc1[ac-hj-np-z02-9]{11,71}$")
_BECH32_CHARSET = "qpzry9x8gf2tvdw0s3jn54khce6mua7l"
_BECH32_GENERATOR = (0x3B6A57B2, 0x26508E6D, 0x1EA119FA, 0x3D4233DD, 0x2A1462B3)
# Checksum residues: witness v0 is bech32, v1+ is bech32m (BIP-350)
_BECH32_CONST = 1
_BECH32M_CONST = 0x2BC830A3


def _bech32_polymod(values) -> int:
    chk = 1
    for value in values:
        top = chk >> 25
        chk = (chk & 0x1FFFFFF) << 5 ^ value
        for i, gen in enumerate(_BECH32_GENERATOR):
            if (top >> i) & 1:
                chk ^= gen
    return chk


def _is_bech32_address(address: str) -> bool:
    """BIP-173 / BIP-350 checksum over the ``bc`` human-readable part."""
    if address not in (address.lower(), address.upper()):
        return False
    address = address.lower()
    if not _BECH32_RE.match(address):
        return False
    hrp = address[:2]
    data = [_BECH32_CHARSET.index(c) for c in address[3:]]
    if data[0] > 16:
        return False
    expanded = [ord(c) >> 5 for c in hrp] + [0] + [ord(c) & 31 for c in hrp]
    expected = _BECH32_CONST if data[0] == 0 else _BECH32M_CONST
    return _bech32_polymod(expanded + data) == expected


def _is_evm_address(address: str) -> bool:
    if not (address.startswith("0x") and is_address(address)):
        return False
    body = address[2:]
    # All-lower or all-upper hex carries no checksum
    if body != body.lower() and body != body.upper():
        return is_checksum_address(address)
    return True


def _is_bitcoin_address(address: str) -> bool:
    if address[:3].lower() == "bc1":
        return _is_bech32_address(address)
    try:
        payload = base58.b58decode_check(address)
    except ValueError:
        return False
    return len(payload) == 21 and payload[0] in BITCOIN_VERSION_BYTES


def _is_solana_address(address: str) -> bool:
    if not 32 <= len(address) <= 44:
        return False
    try:
        return len(base58.b58decode(address)) == SOLANA_PUBKEY_LENGTH
    except ValueError:
        return False


def _is_tron_address(address: str) -> bool:
    if not address.startswith("T"):
        return False
    try:
        payload = base58.b58decode_check(address)
    except ValueError:
        return False
    return len(payload) == 21 and payload[0] == TRON_ADDRESS_PREFIX


_NON_EVM_VALIDATORS: Dict[Network, Callable[[str], bool]] = {
    Network.BITCOIN: _is_bitcoin_address,
    Network.SOLANA: _is_solana_address,
    Network.TRON: _is_tron_address,
}


def is_valid_address(network: Any, address: str) -> bool:
    """
    Return True if *address* is well-formed for *network*'s address family.

    Args:
        network: Network enum member or symbolic id
        address: Address string as supplied by the caller
    """
    if not isinstance(address, str) or not address:
        return False
    net = network_from_id(network)
    if network_info(net).is_evm:
        return _is_evm_address(address)
    return _NON_EVM_VALIDATORS[net](address)


def validate_address(network: Any, address: str, role: str = "address") -> None:
    """Raise InvalidAddressError unless *address* is valid on *network*."""
    if not is_valid_address(network, address):
        net = network_from_id(network)
        raise InvalidAddressError(
            f"Invalid {role} for {net.value}: {address!r}"
        )


def validate_transfer_addresses(quote, sender_address: str, recipient_address: str) -> None:
    """
    Check the sender against the source network and the recipient against
    the destination network of *quote*'s route.

    Raises:
        InvalidAddressError: naming the offending side
    """
    validate_address(quote.route.source_network, sender_address, "sender address")
    validate_address(quote.route.dest_network, recipient_address, "recipient address")
