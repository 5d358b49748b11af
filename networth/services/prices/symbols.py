"""
Symbol Normalization

Turns what the user typed into the symbol each provider expects:
- Crypto tickers map to CoinGecko ids ("BTC" -> "bitcoin"). The cache key
  for crypto stays the uppercased ticker.
- ASX and NZX stocks get Yahoo's exchange suffix ("VAS" on ASX -> "VAS.AX").

All functions here are pure.
"""

from typing import Optional

from networth.models.portfolio import HoldingType
from networth.services.prices.errors import UnknownSymbolError


# Exchanges we recognise on import. ASX/NZX map to Yahoo suffixes.
STOCK_EXCHANGES = frozenset({"ASX", "NZX", "NYSE", "NASDAQ"})

EXCHANGE_SUFFIXES = {
    "ASX": ".AX",
    "NZX": ".NZ",
}

SUFFIX_CURRENCIES = {
    ".AX": "AUD",
    ".NZ": "NZD",
}

# Covers the top 50 by market cap plus a few popular extras
SYMBOL_TO_COINGECKO_ID = {
    "BTC": "bitcoin",
    "ETH": "ethereum",
    "USDT": "tether",
    "BNB": "binancecoin",
    "SOL": "solana",
    "XRP": "ripple",
    "USDC": "usd-coin",
    "ADA": "cardano",
    "DOGE": "dogecoin",
    "AVAX": "avalanche-2",
    "DOT": "polkadot",
    "TRX": "tron",
    "LINK": "chainlink",
    "MATIC": "matic-network",
    "POL": "matic-network",  # Polygon renamed MATIC to POL
    "TON": "the-open-network",
    "SHIB": "shiba-inu",
    "DAI": "dai",
    "LTC": "litecoin",
    "BCH": "bitcoin-cash",
    "ATOM": "cosmos",
    "UNI": "uniswap",
    "XLM": "stellar",
    "XMR": "monero",
    "ETC": "ethereum-classic",
    "FIL": "filecoin",
    "HBAR": "hedera-hashgraph",
    "APT": "aptos",
    "CRO": "crypto-com-chain",
    "ARB": "arbitrum",
    "VET": "vechain",
    "MKR": "maker",
    "OP": "optimism",
    "NEAR": "near",
    "AAVE": "aave",
    "GRT": "the-graph",
    "ALGO": "algorand",
    "QNT": "quant-network",
    "FTM": "fantom",
    "EGLD": "elrond-erd-2",
    "SAND": "the-sandbox",
    "MANA": "decentraland",
    "AXS": "axie-infinity",
    "THETA": "theta-token",
    "XTZ": "tezos",
    "EOS": "eos",
    "FLOW": "flow",
    "CHZ": "chiliz",
    "RUNE": "thorchain",
    "KCS": "kucoin-shares",
    "IMX": "immutable-x",
    "LDO": "lido-dao",
    "INJ": "injective-protocol",
    "SUI": "sui",
    "SEI": "sei-network",
    "STX": "blockstack",
    "RENDER": "render-token",
    "FET": "fetch-ai",
    "PEPE": "pepe",
    "WIF": "dogwifcoin",
}


def get_coingecko_id(symbol: str) -> Optional[str]:
    """CoinGecko id for a crypto ticker, or None if unmapped."""
    return SYMBOL_TO_COINGECKO_ID.get(symbol.strip().upper())


def get_symbol_from_coingecko_id(coingecko_id: str) -> Optional[str]:
    """
    Reverse lookup from CoinGecko id to ticker.

    Where two tickers share an id (MATIC/POL) the first in the table wins.
    """
    wanted = coingecko_id.strip().lower()
    for symbol, cg_id in SYMBOL_TO_COINGECKO_ID.items():
        if cg_id == wanted:
            return symbol
    return None


def is_known_crypto_symbol(symbol: str) -> bool:
    return get_coingecko_id(symbol) is not None


def get_all_known_symbols() -> list[str]:
    return list(SYMBOL_TO_COINGECKO_ID)


def normalize_symbol(
    symbol: str,
    exchange: Optional[str] = None,
    holding_type: HoldingType = HoldingType.STOCK,
) -> str:
    """
    Normalize a symbol for price lookups and cache keys.

    Args:
        symbol: Ticker as entered ("vas", "BTC", "AAPL")
        exchange: Optional exchange code ("ASX", "NZX", "NYSE", ...)
        holding_type: Crypto symbols are validated against the CoinGecko table

    Returns:
        Crypto: the uppercased ticker. Stocks/ETFs: the Yahoo symbol,
        with an exchange suffix for ASX and NZX.

    Raises:
        UnknownSymbolError: Crypto ticker with no CoinGecko mapping
    """
    upper = symbol.strip().upper()

    if holding_type == HoldingType.CRYPTO:
        if upper not in SYMBOL_TO_COINGECKO_ID:
            raise UnknownSymbolError(
                f"Unknown cryptocurrency symbol: {upper}. "
                "Add it to the symbol mapping to fetch prices.",
                symbol=upper,
            )
        return upper

    # Already suffixed (VAS.AX, BRK.B) - leave it alone
    if "." in upper:
        return upper

    suffix = EXCHANGE_SUFFIXES.get((exchange or "").strip().upper())
    return f"{upper}{suffix}" if suffix else upper


def infer_exchange(symbol: str, exchange: Optional[str] = None) -> Optional[str]:
    """Explicit exchange if given, else guessed from a Yahoo suffix."""
    if exchange and exchange.strip():
        return exchange.strip().upper()

    upper = symbol.strip().upper()
    for code, suffix in EXCHANGE_SUFFIXES.items():
        if upper.endswith(suffix):
            return code
    return None


def infer_currency(normalized_symbol: str) -> str:
    """Quote currency implied by a Yahoo symbol's suffix. Defaults to USD."""
    upper = normalized_symbol.upper()
    for suffix, currency in SUFFIX_CURRENCIES.items():
        if upper.endswith(suffix):
            return currency
    return "USD"
