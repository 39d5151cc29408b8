# pool_discovery/utils/log_utils.py
from web3.datastructures import AttributeDict
from hexbytes import HexBytes


def _to_hex(value) -> str:
    # HexBytes.hex() dropped the 0x prefix in hexbytes 1.x
    return "0x" + bytes(value).hex()


def sanitize_log(log):
    """Convert Web3 log to JSON-safe dict (hex strings instead of bytes)."""
    out = {}
    for k, v in dict(log).items():
        if isinstance(v, (bytes, bytearray, HexBytes)):
            out[k] = _to_hex(v)
        elif isinstance(v, AttributeDict):
            out[k] = dict(v)
        elif isinstance(v, (list, tuple)):
            out[k] = [
                _to_hex(item) if isinstance(item, (bytes, bytearray, HexBytes)) else item
                for item in v
            ]
        else:
            out[k] = v
    return out


def fmt_usd(amount: float) -> str:
    if amount >= 1_000_000:
        return f"${amount / 1_000_000:.1f}M"
    return f"${amount:,.0f}"
