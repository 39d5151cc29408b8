from hexbytes import HexBytes
from web3.datastructures import AttributeDict

from pool_discovery.utils.clean_util import clean_symbol, normalize_address
from pool_discovery.utils.log_utils import fmt_usd, sanitize_log


def test_clean_symbol_handles_bytes32_and_unicode():
    assert clean_symbol(b"MKR" + b"\x00" * 29) == "MKR"
    assert clean_symbol("USD₮0") == "USDT0"
    assert clean_symbol("") == "UNKNOWN"
    assert clean_symbol("🚀🚀") == "UNKNOWN"


def test_normalize_address():
    assert normalize_address("0xAbC") == "0xabc"
    assert normalize_address(b"\x01" * 20) == "0x" + "01" * 20


def test_sanitize_log_turns_bytes_into_prefixed_hex():
    log = AttributeDict({
        "topics": [HexBytes(b"\x01" * 32)],
        "data": HexBytes(b"\x02"),
        "blockNumber": 5,
    })

    out = sanitize_log(log)

    assert out["topics"] == ["0x" + "01" * 32]
    assert out["data"] == "0x02"
    assert out["blockNumber"] == 5


def test_fmt_usd():
    assert fmt_usd(15_000) == "$15,000"
    assert fmt_usd(2_500_000) == "$2.5M"
