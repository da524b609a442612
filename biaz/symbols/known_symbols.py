"""Allow-list of tickers the deterministic pass accepts, with display metadata."""

from __future__ import annotations

from typing import Dict, Optional, Tuple

# symbol -> (name, exchange, sector)
KNOWN_SYMBOLS: Dict[str, Tuple[str, str, str]] = {
    "AAPL": ("Apple Inc.", "NASDAQ", "Technology"),
    "MSFT": ("Microsoft Corporation", "NASDAQ", "Technology"),
    "GOOGL": ("Alphabet Inc.", "NASDAQ", "Communication Services"),
    "GOOG": ("Alphabet Inc.", "NASDAQ", "Communication Services"),
    "AMZN": ("Amazon.com Inc.", "NASDAQ", "Consumer Discretionary"),
    "META": ("Meta Platforms Inc.", "NASDAQ", "Communication Services"),
    "NVDA": ("NVIDIA Corporation", "NASDAQ", "Technology"),
    "TSLA": ("Tesla Inc.", "NASDAQ", "Consumer Discretionary"),
    "AMD": ("Advanced Micro Devices Inc.", "NASDAQ", "Technology"),
    "INTC": ("Intel Corporation", "NASDAQ", "Technology"),
    "NFLX": ("Netflix Inc.", "NASDAQ", "Communication Services"),
    "AVGO": ("Broadcom Inc.", "NASDAQ", "Technology"),
    "QCOM": ("Qualcomm Inc.", "NASDAQ", "Technology"),
    "ADBE": ("Adobe Inc.", "NASDAQ", "Technology"),
    "CSCO": ("Cisco Systems Inc.", "NASDAQ", "Technology"),
    "ORCL": ("Oracle Corporation", "NYSE", "Technology"),
    "CRM": ("Salesforce Inc.", "NYSE", "Technology"),
    "IBM": ("International Business Machines", "NYSE", "Technology"),
    "TSM": ("Taiwan Semiconductor Manufacturing", "NYSE", "Technology"),
    "ASML": ("ASML Holding N.V.", "NASDAQ", "Technology"),
    "MU": ("Micron Technology Inc.", "NASDAQ", "Technology"),
    "ARM": ("Arm Holdings plc", "NASDAQ", "Technology"),
    "SMCI": ("Super Micro Computer Inc.", "NASDAQ", "Technology"),
    "PLTR": ("Palantir Technologies Inc.", "NASDAQ", "Technology"),
    "SNOW": ("Snowflake Inc.", "NYSE", "Technology"),
    "SHOP": ("Shopify Inc.", "NYSE", "Technology"),
    "UBER": ("Uber Technologies Inc.", "NYSE", "Industrials"),
    "ABNB": ("Airbnb Inc.", "NASDAQ", "Consumer Discretionary"),
    "PYPL": ("PayPal Holdings Inc.", "NASDAQ", "Financials"),
    "COIN": ("Coinbase Global Inc.", "NASDAQ", "Financials"),
    "SPOT": ("Spotify Technology S.A.", "NYSE", "Communication Services"),
    "DIS": ("The Walt Disney Company", "NYSE", "Communication Services"),
    "BABA": ("Alibaba Group Holding", "NYSE", "Consumer Discretionary"),
    "JPM": ("JPMorgan Chase & Co.", "NYSE", "Financials"),
    "BAC": ("Bank of America Corporation", "NYSE", "Financials"),
    "GS": ("The Goldman Sachs Group Inc.", "NYSE", "Financials"),
    "MS": ("Morgan Stanley", "NYSE", "Financials"),
    "WFC": ("Wells Fargo & Company", "NYSE", "Financials"),
    "BRK.B": ("Berkshire Hathaway Inc.", "NYSE", "Financials"),
    "BLK": ("BlackRock Inc.", "NYSE", "Financials"),
    "V": ("Visa Inc.", "NYSE", "Financials"),
    "MA": ("Mastercard Inc.", "NYSE", "Financials"),
    "XOM": ("Exxon Mobil Corporation", "NYSE", "Energy"),
    "CVX": ("Chevron Corporation", "NYSE", "Energy"),
    "WMT": ("Walmart Inc.", "NYSE", "Consumer Staples"),
    "COST": ("Costco Wholesale Corporation", "NASDAQ", "Consumer Staples"),
    "KO": ("The Coca-Cola Company", "NYSE", "Consumer Staples"),
    "PEP": ("PepsiCo Inc.", "NASDAQ", "Consumer Staples"),
    "PG": ("Procter & Gamble Company", "NYSE", "Consumer Staples"),
    "NKE": ("Nike Inc.", "NYSE", "Consumer Discretionary"),
    "SBUX": ("Starbucks Corporation", "NASDAQ", "Consumer Discretionary"),
    "MCD": ("McDonald's Corporation", "NYSE", "Consumer Discretionary"),
    "HD": ("The Home Depot Inc.", "NYSE", "Consumer Discretionary"),
    "BA": ("The Boeing Company", "NYSE", "Industrials"),
    "CAT": ("Caterpillar Inc.", "NYSE", "Industrials"),
    "GE": ("General Electric Company", "NYSE", "Industrials"),
    "F": ("Ford Motor Company", "NYSE", "Consumer Discretionary"),
    "GM": ("General Motors Company", "NYSE", "Consumer Discretionary"),
    "RIVN": ("Rivian Automotive Inc.", "NASDAQ", "Consumer Discretionary"),
    "JNJ": ("Johnson & Johnson", "NYSE", "Health Care"),
    "PFE": ("Pfizer Inc.", "NYSE", "Health Care"),
    "LLY": ("Eli Lilly and Company", "NYSE", "Health Care"),
    "UNH": ("UnitedHealth Group Inc.", "NYSE", "Health Care"),
    "MRNA": ("Moderna Inc.", "NASDAQ", "Health Care"),
    "T": ("AT&T Inc.", "NYSE", "Communication Services"),
    "VZ": ("Verizon Communications Inc.", "NYSE", "Communication Services"),
    "SPY": ("SPDR S&P 500 ETF Trust", "NYSEARCA", "ETF"),
    "QQQ": ("Invesco QQQ Trust", "NASDAQ", "ETF"),
}


def symbol_info(symbol: str) -> Optional[Tuple[str, str, str]]:
    return KNOWN_SYMBOLS.get((symbol or "").strip().upper())


def placeholder_info(symbol: str) -> Tuple[str, str, str]:
    """Display metadata for a ticker we know nothing about."""
    return symbol_info(symbol) or (f"{symbol} Inc.", "NASDAQ", "Unknown")
