import unicodedata
import re
from pool_discovery.utils.constants import SYMBOL_REPLACEMENTS, UNKNOWN_SYMBOL


def clean_symbol(symbol) -> str:
    """Make an on-chain ERC-20 symbol safe to store (ascii, no punctuation)."""
    if isinstance(symbol, (bytes, bytearray)):
        # some old tokens return bytes32 instead of string
        symbol = bytes(symbol).rstrip(b"\x00").decode("utf-8", "ignore")
    if not symbol:
        return UNKNOWN_SYMBOL

    for weird_char, replacement in SYMBOL_REPLACEMENTS.items():
        symbol = symbol.replace(weird_char, replacement)

    normalized = unicodedata.normalize("NFKD", symbol)
    ascii_only = normalized.encode("ascii", "ignore").decode("ascii")
    cleaned = re.sub(r'[^a-zA-Z0-9.]', '', ascii_only)
    return cleaned[:32] or UNKNOWN_SYMBOL


def normalize_address(address) -> str:
    """Lower-cased 0x address, used as the identity key everywhere."""
    if isinstance(address, (bytes, bytearray)):
        address = "0x" + bytes(address).hex()
    address = str(address).strip().lower()
    if not address.startswith("0x"):
        address = "0x" + address
    return address
