"""GBM-based simulated push transport."""

from __future__ import annotations

import itertools
import json
import logging
import math
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping

import numpy as np

from .errors import MalformedTopicKey, SubscriptionStartError, TransportError
from .instruments import (
    CORRELATION_GROUPS,
    CROSS_GROUP_CORR,
    DEFAULT_PARAMS,
    DEFAULT_SPREAD,
    INSTRUMENT_PARAMS,
    INTRA_FX_CORR,
    INTRA_INDEX_CORR,
    SEED_PRICES,
    STARTING_FUNDS,
)
from .interface import ErrorCallback, PushTransport, UpdateCallback
from .keys import Scale, TopicKind, decode_key
from .subscriptions import FAMILY_FIELDS, SubscriptionDescriptor, SubscriptionMode, UpdateFamily

logger = logging.getLogger(__name__)

SCALE_SECONDS: dict[Scale, int] = {
    Scale.ONE_SECOND: 1,
    Scale.ONE_MINUTE: 60,
    Scale.FIVE_MINUTES: 300,
    Scale.ONE_HOUR: 3600,
}


class GBMSimulator:
    """Geometric Brownian Motion simulator for correlated instrument prices.

    Math:
        S(t+dt) = S(t) * exp((mu - sigma^2/2) * dt + sigma * sqrt(dt) * Z)

    Where:
        S(t)   = current mid price
        mu     = annualized drift
        sigma  = annualized volatility
        dt     = time step as fraction of a trading year
        Z      = correlated standard normal random variable
    """

    # 500ms expressed as a fraction of a year of round-the-clock trading
    TRADING_SECONDS_PER_YEAR = 252 * 24 * 3600
    DEFAULT_DT = 0.5 / TRADING_SECONDS_PER_YEAR

    def __init__(
        self,
        epics: list[str],
        dt: float = DEFAULT_DT,
        event_probability: float = 0.001,
        rng: np.random.Generator | None = None,
    ) -> None:
        self._dt = dt
        self._event_prob = event_probability
        self._rng = rng if rng is not None else np.random.default_rng()

        self._epics: list[str] = []
        self._prices: dict[str, float] = {}
        self._params: dict[str, dict[str, float]] = {}
        self._cholesky: np.ndarray | None = None

        for epic in epics:
            self._add_epic_internal(epic)
        self._rebuild_cholesky()

    # --- Public API ---

    @property
    def epics(self) -> list[str]:
        return list(self._epics)

    def step(self) -> dict[str, float]:
        """Advance all instruments by one time step. Returns {epic: new_mid}."""
        n = len(self._epics)
        if n == 0:
            return {}

        z = self._rng.standard_normal(n)
        if self._cholesky is not None:
            z = self._cholesky @ z

        result: dict[str, float] = {}
        for i, epic in enumerate(self._epics):
            mu = self._params[epic]["mu"]
            sigma = self._params[epic]["sigma"]

            drift = (mu - 0.5 * sigma**2) * self._dt
            diffusion = sigma * math.sqrt(self._dt) * z[i]
            self._prices[epic] *= math.exp(drift + diffusion)

            # Occasional jump of 0.5-2%
            if self._rng.random() < self._event_prob:
                shock = self._rng.uniform(0.005, 0.02) * self._rng.choice([-1, 1])
                self._prices[epic] *= 1 + shock
                logger.debug("Random event on %s: %+.2f%%", epic, shock * 100)

            result[epic] = self._prices[epic]

        return result

    def add_epic(self, epic: str) -> None:
        """Add an instrument. Rebuilds the correlation matrix."""
        if epic in self._prices:
            return
        self._add_epic_internal(epic)
        self._rebuild_cholesky()

    def remove_epic(self, epic: str) -> None:
        if epic not in self._prices:
            return
        self._epics.remove(epic)
        del self._prices[epic]
        del self._params[epic]
        self._rebuild_cholesky()

    def get_price(self, epic: str) -> float | None:
        return self._prices.get(epic)

    # --- Internals ---

    def _add_epic_internal(self, epic: str) -> None:
        if epic in self._prices:
            return
        self._epics.append(epic)
        self._prices[epic] = SEED_PRICES.get(epic, float(self._rng.uniform(50.0, 300.0)))
        self._params[epic] = INSTRUMENT_PARAMS.get(epic, dict(DEFAULT_PARAMS))

    def _rebuild_cholesky(self) -> None:
        n = len(self._epics)
        if n <= 1:
            self._cholesky = None
            return

        corr = np.eye(n)
        for i in range(n):
            for j in range(i + 1, n):
                rho = self._pairwise_correlation(self._epics[i], self._epics[j])
                corr[i, j] = rho
                corr[j, i] = rho

        self._cholesky = np.linalg.cholesky(corr)

    @staticmethod
    def _pairwise_correlation(e1: str, e2: str) -> float:
        fx = CORRELATION_GROUPS["fx"]
        indices = CORRELATION_GROUPS["indices"]
        if e1 in fx and e2 in fx:
            return INTRA_FX_CORR
        if e1 in indices and e2 in indices:
            return INTRA_INDEX_CORR
        return CROSS_GROUP_CORR


@dataclass
class _ActiveSubscription:
    descriptor: SubscriptionDescriptor
    on_update: UpdateCallback
    snapshot: bool
    topics: dict[str, tuple]
    merged: dict[str, dict[str, str | None]] = field(default_factory=dict)


def _fmt(value: float) -> str:
    return f"{value:.5f}"


class SimulatorTransport(PushTransport):
    """PushTransport backed by the GBM simulator.

    A daemon thread calls tick() every ``update_interval`` seconds. Each tick
    advances prices, balances and bars, then pushes one update per active
    topic on that thread, the same way a live transport would.
    """

    def __init__(
        self,
        update_interval: float = 0.5,
        event_probability: float = 0.001,
        trade_probability: float = 0.02,
        seed: int | None = None,
    ) -> None:
        self._interval = update_interval
        self._trade_prob = trade_probability
        self._rng = np.random.default_rng(seed)
        self._sim = GBMSimulator([], event_probability=event_probability, rng=self._rng)

        self._lock = threading.Lock()
        self._subscriptions: dict[int, _ActiveSubscription] = {}
        self._handles = itertools.count(1)
        self._deal_ids = itertools.count(1)
        self._on_error: ErrorCallback | None = None

        self._connected = False
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

        # Shared market state, advanced once per tick
        self._day: dict[str, dict[str, float]] = {}
        self._volume: dict[str, int] = {}
        self._bars: dict[tuple[str, Scale], dict[str, float]] = {}
        self._balances: dict[str, dict[str, float]] = {}

    # --- PushTransport ---

    def connect(self) -> None:
        if self._connected:
            return
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._run_loop, name="simulator-transport", daemon=True)
        self._connected = True
        self._thread.start()
        logger.info("Simulator transport connected (%.2fs interval)", self._interval)

    def disconnect(self) -> None:
        self._connected = False
        self._stop.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=max(1.0, self._interval * 4))
        self._thread = None
        with self._lock:
            self._subscriptions.clear()
        logger.info("Simulator transport disconnected")

    @property
    def is_connected(self) -> bool:
        return self._connected

    def set_error_handler(self, callback: ErrorCallback) -> None:
        self._on_error = callback

    def start_subscription(
        self,
        descriptor: SubscriptionDescriptor,
        on_update: UpdateCallback,
        options: Mapping[str, Any],
    ) -> int:
        if not self._connected:
            raise SubscriptionStartError("Transport is not connected", descriptor)
        if not descriptor.items:
            raise SubscriptionStartError("Subscription has no topics", descriptor)

        allowed = FAMILY_FIELDS[descriptor.family]
        unknown = [f for f in descriptor.fields if f not in allowed]
        if not descriptor.fields or unknown:
            raise SubscriptionStartError(f"Invalid field list: {', '.join(unknown) or '<empty>'}", descriptor)

        topics: dict[str, tuple] = {}
        for item in descriptor.items:
            try:
                topics[item] = decode_key(descriptor.topic_kind, item)
            except MalformedTopicKey as e:
                raise SubscriptionStartError(str(e), descriptor) from e

        handle = next(self._handles)
        with self._lock:
            for identifiers in topics.values():
                if descriptor.topic_kind in (TopicKind.MARKET, TopicKind.CHART_TICK, TopicKind.CHART_CANDLE):
                    self._sim.add_epic(identifiers[0])
            self._subscriptions[handle] = _ActiveSubscription(
                descriptor=descriptor,
                on_update=on_update,
                snapshot=bool(options.get("snapshot")),
                topics=topics,
            )
        logger.debug("Simulator: started subscription %d (%d topics)", handle, len(topics))
        return handle

    def stop_subscription(self, handle: int) -> None:
        with self._lock:
            self._subscriptions.pop(handle, None)
        logger.debug("Simulator: stopped subscription %s", handle)

    # --- Simulation ---

    def inject_error(self, error: TransportError) -> None:
        """Report ``error`` through the error callback. A fatal error drops the connection."""
        if error.fatal:
            self._connected = False
            self._stop.set()
        if self._on_error is not None:
            self._on_error(error)

    def tick(self) -> None:
        """Advance the simulation one step and push one update per active topic."""
        with self._lock:
            active = list(self._subscriptions.values())
            prices = self._sim.step()

        now = time.time()
        for epic, mid in prices.items():
            self._advance_market(epic, mid)

        for sub in active:
            family = sub.descriptor.family
            for item, identifiers in sub.topics.items():
                delta = self._build_delta(family, identifiers, prices, now)
                if delta:
                    self._deliver(sub, item, delta)

    def _run_loop(self) -> None:
        while not self._stop.wait(self._interval):
            try:
                self.tick()
            except Exception:
                logger.exception("Simulator tick failed")

    def _deliver(self, sub: _ActiveSubscription, item: str, delta: dict[str, str | None]) -> None:
        fields = sub.descriptor.fields
        if sub.descriptor.mode is SubscriptionMode.MERGE:
            first = item not in sub.merged
            state = sub.merged.setdefault(item, dict.fromkeys(fields))
            changed = {k: v for k, v in delta.items() if k in state and state[k] != v}
            state.update(changed)
            if first and sub.snapshot:
                changed = dict(state)
            if not changed:
                return
            sub.on_update(item, dict(state), changed)
        else:
            full = {f: delta.get(f) for f in fields}
            sub.on_update(item, full, full)

    def _advance_market(self, epic: str, mid: float) -> None:
        day = self._day.setdefault(epic, {"open": mid, "high": mid, "low": mid})
        day["high"] = max(day["high"], mid)
        day["low"] = min(day["low"], mid)
        self._volume[epic] = self._volume.get(epic, 0) + 1

    def _build_delta(
        self,
        family: UpdateFamily,
        identifiers: tuple,
        prices: dict[str, float],
        now: float,
    ) -> dict[str, str | None]:
        if family is UpdateFamily.ACCOUNTS:
            return self._account_delta(identifiers[0])
        if family is UpdateFamily.TRADES:
            return self._trade_delta(prices, now)

        epic = identifiers[0]
        mid = prices.get(epic)
        if mid is None:
            return {}
        half_spread = mid * DEFAULT_SPREAD / 2
        bid, offer = mid - half_spread, mid + half_spread
        day = self._day[epic]
        day_fields = {
            "DAY_HIGH": _fmt(day["high"]),
            "DAY_LOW": _fmt(day["low"]),
            "DAY_OPEN_MID": _fmt(day["open"]),
            "DAY_NET_CHG_MID": _fmt(mid - day["open"]),
            "DAY_PERC_CHG_MID": f"{(mid - day['open']) / day['open'] * 100:.4f}",
        }

        if family is UpdateFamily.MARKETS:
            return {
                "BID": _fmt(bid),
                "OFFER": _fmt(offer),
                "HIGH": _fmt(day["high"]),
                "LOW": _fmt(day["low"]),
                "MID_OPEN": _fmt(day["open"]),
            }
        if family is UpdateFamily.CHART_TICKS:
            return {
                "BID": _fmt(bid),
                "OFR": _fmt(offer),
                "LTP": _fmt(mid),
                "LTV": "1",
                "TTV": str(self._volume[epic]),
                "UTM": str(int(now * 1000)),
                **day_fields,
            }
        if family is UpdateFamily.CONSOLIDATED_CHART:
            bar = self._advance_bar(epic, identifiers[1], bid, offer, mid, now)
            width = SCALE_SECONDS[identifiers[1]]
            closing = now + self._interval >= bar["start"] + width
            return {
                **{f"{side.upper()}_{point.upper()}": _fmt(bar[f"{side}_{point}"])
                   for side in ("bid", "ofr", "ltp") for point in ("open", "high", "low", "close")},
                "CONS_END": "1" if closing else "0",
                "CONS_TICK_COUNT": str(int(bar["ticks"])),
                "LTV": "1",
                "TTV": str(self._volume[epic]),
                "UTM": str(int(bar["start"] * 1000)),
                **day_fields,
            }
        return {}

    def _advance_bar(self, epic: str, scale: Scale, bid: float, ofr: float, ltp: float, now: float) -> dict:
        width = SCALE_SECONDS[scale]
        start = now - (now % width)
        bar = self._bars.get((epic, scale))
        if bar is None or bar["start"] != start:
            bar = {"start": start, "ticks": 0}
            for side, price in (("bid", bid), ("ofr", ofr), ("ltp", ltp)):
                for point in ("open", "high", "low", "close"):
                    bar[f"{side}_{point}"] = price
            self._bars[(epic, scale)] = bar
        for side, price in (("bid", bid), ("ofr", ofr), ("ltp", ltp)):
            bar[f"{side}_high"] = max(bar[f"{side}_high"], price)
            bar[f"{side}_low"] = min(bar[f"{side}_low"], price)
            bar[f"{side}_close"] = price
        bar["ticks"] += 1
        return bar

    def _account_delta(self, account_id: str) -> dict[str, str | None]:
        balance = self._balances.setdefault(
            account_id,
            {"funds": STARTING_FUNDS, "deposit": 0.0, "margin": 0.0, "pnl": 0.0},
        )
        balance["pnl"] += float(self._rng.normal(0.0, 5.0))
        equity = balance["funds"] + balance["pnl"]
        return {
            "AVAILABLE_CASH": f"{balance['funds'] - balance['margin']:.2f}",
            "AVAILABLE_TO_DEAL": f"{equity - balance['margin']:.2f}",
            "DEPOSIT": f"{balance['deposit']:.2f}",
            "EQUITY": f"{equity:.2f}",
            "FUNDS": f"{balance['funds']:.2f}",
            "MARGIN": f"{balance['margin']:.2f}",
            "PNL": f"{balance['pnl']:.2f}",
        }

    def _trade_delta(self, prices: dict[str, float], now: float) -> dict[str, str | None]:
        if self._rng.random() >= self._trade_prob:
            return {}

        epics = list(prices) or ["CS.D.EURUSD.CFD.IP"]
        epic = str(self._rng.choice(epics))
        level = prices.get(epic) or SEED_PRICES.get(epic, 100.0)
        direction = "BUY" if self._rng.random() < 0.5 else "SELL"
        number = next(self._deal_ids)
        deal_id = f"DIAAAASIM{number:08d}"
        deal_reference = f"SIMREF{number:08d}"
        timestamp = datetime.fromtimestamp(now, tz=timezone.utc).isoformat()

        confirm = {
            "dealId": deal_id,
            "dealReference": deal_reference,
            "dealStatus": "ACCEPTED",
            "direction": direction,
            "epic": epic,
            "level": round(level, 5),
            "size": 1.0,
            "status": "OPEN",
            "reason": "SUCCESS",
            "date": timestamp,
            "guaranteedStop": False,
            "trailingStop": False,
            "affectedDeals": [{"dealId": deal_id, "status": "OPENED"}],
        }
        position = {
            "dealId": deal_id,
            "dealIdOrigin": deal_id,
            "dealReference": deal_reference,
            "dealStatus": "ACCEPTED",
            "direction": direction,
            "epic": epic,
            "level": round(level, 5),
            "size": 1.0,
            "status": "OPEN",
            "currency": "GBP",
            "channel": "WEB",
            "timestamp": timestamp,
            "guaranteedStop": False,
        }
        return {"CONFIRMS": json.dumps(confirm), "OPU": json.dumps(position), "WOU": None}
