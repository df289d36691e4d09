"""
Lump-Sum Dividend Backtest System (drip-pilot)

Simulates investing a lump sum in a single exchange-listed equity over a
historical date range, modeling cash and stock dividends, forward splits,
dividend reinvestment, brokerage fees and transaction tax, and compares the
outcome against a benchmark ETF.
"""

__version__ = "0.1.0"
__author__ = "drip-pilot developers"
