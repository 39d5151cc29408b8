SYMBOL_REPLACEMENTS = {
    "₮": "T",    # Tether
    "Ξ": "ETH",  # ETH symbol
    "Ƀ": "BTC",  # Bitcoin symbol
}

UNKNOWN_SYMBOL = "UNKNOWN"
DEFAULT_DECIMALS = 18

# Fee tier (hundredths of a bip) assumed for fixed-fee, Uniswap-V2 style pairs
V2_DEFAULT_FEE = 3000

DEFAULT_DATA_QUALITY_SCORE = 75.0

# Arbitrum token address -> (symbol, rough USD liquidity)
KNOWN_TOKEN_LIQUIDITY = {
    "0x82af49447d8a07e3bd95bd0d56f35241523fbab1": ("WETH", 50_000),
    "0xff970a61a04b1ca14834a43f5de4533ebddb5cc8": ("USDC", 30_000),
    "0xfd086bc7cd5c481dcc9c85ebe478a1c0b69fcbb9": ("USDT", 30_000),
    "0x912ce59144191c1204e64559fe8253a0e49e6548": ("ARB", 25_000),
    # camelot ecosystem
    "0x3d9907f9a368ad0a51be60f7da3b97cf940982d8": ("GRAIL", 20_000),
    "0x539bde0d7dbd336b79148aa742883198bbf60342": ("MAGIC", 18_000),
    "0x6c2c06790b3e3e3c38e12ee22f8183b37a13ee55": ("DPX", 15_000),
    "0x32eb7902d4134bf98a28b963d26de779af92a212": ("RDPX", 12_000),
    # other blue chips
    "0x2f2a2543b76a4166549f7aab2e75bef0aefc5b0f": ("WBTC", 45_000),
    "0xda10009cbd5d07dd0cecc66161fc93d7c9000da1": ("DAI", 25_000),
    "0x17fc002b466eec40dae837fc4be5c67993ddbd6f": ("FRAX", 20_000),
    "0xf97f4df75117a78c1a5a0dbb814af92458539fb4": ("LINK", 22_000),
    "0xfa7f8980b0f1e64a2062791cc3b0871572f1f7f0": ("UNI", 18_000),
}

DEFAULT_LIQUIDITY_FLOOR_USD = 15_000
