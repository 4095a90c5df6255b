"""Seed prices and per-instrument parameters for the market simulator."""

# Starting mid prices for commonly streamed EPICs
SEED_PRICES: dict[str, float] = {
    "CS.D.EURUSD.CFD.IP": 1.0850,
    "CS.D.GBPUSD.CFD.IP": 1.2700,
    "CS.D.USDJPY.CFD.IP": 150.10,
    "CS.D.AUDUSD.CFD.IP": 0.6550,
    "IX.D.FTSE.DAILY.IP": 7650.0,
    "IX.D.DOW.DAILY.IP": 38900.0,
    "IX.D.NASDAQ.CASH.IP": 18100.0,
    "IX.D.DAX.DAILY.IP": 17800.0,
    "CS.D.USCGC.TODAY.IP": 2030.0,
}

# Per-instrument GBM parameters
# sigma: annualized volatility, mu: annualized drift
INSTRUMENT_PARAMS: dict[str, dict[str, float]] = {
    "CS.D.EURUSD.CFD.IP": {"sigma": 0.07, "mu": 0.0},
    "CS.D.GBPUSD.CFD.IP": {"sigma": 0.08, "mu": 0.0},
    "CS.D.USDJPY.CFD.IP": {"sigma": 0.09, "mu": 0.0},
    "CS.D.AUDUSD.CFD.IP": {"sigma": 0.10, "mu": 0.0},
    "IX.D.FTSE.DAILY.IP": {"sigma": 0.15, "mu": 0.04},
    "IX.D.DOW.DAILY.IP": {"sigma": 0.16, "mu": 0.05},
    "IX.D.NASDAQ.CASH.IP": {"sigma": 0.22, "mu": 0.07},
    "IX.D.DAX.DAILY.IP": {"sigma": 0.17, "mu": 0.05},
    "CS.D.USCGC.TODAY.IP": {"sigma": 0.14, "mu": 0.02},
}

DEFAULT_PARAMS: dict[str, float] = {"sigma": 0.20, "mu": 0.03}

# Bid/offer spread as a fraction of mid
DEFAULT_SPREAD = 0.0002

CORRELATION_GROUPS: dict[str, set[str]] = {
    "fx": {"CS.D.EURUSD.CFD.IP", "CS.D.GBPUSD.CFD.IP", "CS.D.AUDUSD.CFD.IP"},
    "indices": {"IX.D.FTSE.DAILY.IP", "IX.D.DOW.DAILY.IP", "IX.D.NASDAQ.CASH.IP", "IX.D.DAX.DAILY.IP"},
}

INTRA_FX_CORR = 0.6
INTRA_INDEX_CORR = 0.7
CROSS_GROUP_CORR = 0.2

# Starting balances for simulated accounts
STARTING_FUNDS = 10_000.0
