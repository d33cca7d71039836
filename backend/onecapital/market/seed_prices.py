"""Seed prices and per-symbol parameters for the crypto price simulator."""

# Demo-vault starting prices in USD (as of project creation)
SEED_PRICES: dict[str, float] = {
    "BTC": 64000.00,
    "ETH": 3100.00,
    "SOL": 145.00,
    "ADA": 0.45,
    "DOT": 6.80,
    "AVAX": 28.00,
    "MATIC": 0.70,
    "LINK": 14.50,
    "UNI": 7.60,
    "AAVE": 92.00,
    "L1X": 2.40,
    "USDT": 1.00,
    "USDC": 1.00,
    "DAI": 1.00,
}

# Per-symbol parameters
# sigma: annualized volatility (absolute for pegged coins), mu: annualized drift
SYMBOL_PARAMS: dict[str, dict[str, float]] = {
    "BTC": {"sigma": 0.55, "mu": 0.10},
    "ETH": {"sigma": 0.70, "mu": 0.10},
    "SOL": {"sigma": 0.95, "mu": 0.12},
    "ADA": {"sigma": 0.85, "mu": 0.05},
    "DOT": {"sigma": 0.85, "mu": 0.05},
    "AVAX": {"sigma": 0.95, "mu": 0.05},
    "MATIC": {"sigma": 0.90, "mu": 0.05},
    "LINK": {"sigma": 0.85, "mu": 0.06},
    "UNI": {"sigma": 0.90, "mu": 0.05},
    "AAVE": {"sigma": 0.90, "mu": 0.05},
    "L1X": {"sigma": 1.20, "mu": 0.05},  # Thin market, very volatile
    "USDT": {"sigma": 0.005, "mu": 0.0},  # Pegged
    "USDC": {"sigma": 0.005, "mu": 0.0},
    "DAI": {"sigma": 0.008, "mu": 0.0},
}

# Default parameters for symbols not in the list above (dynamically added)
DEFAULT_PARAMS: dict[str, float] = {"sigma": 0.90, "mu": 0.05}

# Correlation groups for the simulator's Cholesky decomposition.
# Members of "stable" are pegged and do not follow the market.
CORRELATION_GROUPS: dict[str, set[str]] = {
    "majors": {"BTC", "ETH", "SOL", "ADA", "DOT", "AVAX", "MATIC"},
    "defi": {"LINK", "UNI", "AAVE"},
    "stable": {"USDT", "USDC", "DAI"},
}

# Correlation coefficients
INTRA_GROUP_CORR: dict[str, float] = {
    "majors": 0.8,  # Large caps follow BTC closely
    "defi": 0.7,
}
CROSS_GROUP_CORR = 0.5  # Between groups and for unknown tokens
STABLE_CORR = 0.0

# Stablecoin peg and its annualized mean-reversion speed (half-life ~7 minutes)
STABLE_PEG = 1.0
PEG_REVERSION_SPEED = 50_000.0

# Spacing of the price checkpoints used for the rolling 24h reference, seconds
CHECKPOINT_SECONDS = 300.0

# CoinGecko ids for the live price source
COINGECKO_IDS: dict[str, str] = {
    "BTC": "bitcoin",
    "ETH": "ethereum",
    "SOL": "solana",
    "ADA": "cardano",
    "DOT": "polkadot",
    "AVAX": "avalanche-2",
    "MATIC": "matic-network",
    "LINK": "chainlink",
    "UNI": "uniswap",
    "AAVE": "aave",
    "L1X": "layer-one-x",
    "USDT": "tether",
    "USDC": "usd-coin",
    "DAI": "dai",
}
