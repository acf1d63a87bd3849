"""
Cost Ledger - Token usage and dollar cost per wallet and per model.

The ledger keeps the whole costs document in memory, mutates it under a
lock and rewrites the backing file after every recorded request. Costs
are computed with Decimal and rounded half-up to 4 places before they
are added to any running total, so totals never accumulate float drift.

Totals are derived data. On load they are recomputed from the stored
UsageRecords; when a persisted total disagrees, the recomputed value
wins and the document is rewritten (validate-on-load).
"""
import asyncio
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from pathlib import Path
from typing import Any, Dict, Optional

from rukh.core.logging_config import get_logger
from rukh.core.outcomes import Outcome
from rukh.storage.json_store import JsonStore, StoreCorruptError

logger = get_logger(__name__)

COSTS_FILE = "costs.json"
COST_PLACES = Decimal("0.0001")
NO_DATA_MESSAGE = "No usage data found for this wallet address"


@dataclass(frozen=True)
class ModelRates:
    """USD cost per 1K tokens."""
    input_per_1k: Decimal
    output_per_1k: Decimal


DEFAULT_RATES = ModelRates(input_per_1k=Decimal("0.015"), output_per_1k=Decimal("0.075"))

COST_RATES: Dict[str, ModelRates] = {
    "mistral-large-2411": ModelRates(Decimal("0.015"), Decimal("0.075")),
    "claude-3-7-sonnet-20250219": ModelRates(Decimal("0.015"), Decimal("0.075")),
}


def rates_for(model_name: str) -> ModelRates:
    """Rates for a model; unknown models fall back to the default pair."""
    return COST_RATES.get(model_name, DEFAULT_RATES)


def round_cost(value: Decimal) -> Decimal:
    return value.quantize(COST_PLACES, rounding=ROUND_HALF_UP)


def token_cost(tokens: int, rate_per_1k: Decimal) -> Decimal:
    """(tokens / 1000) * rate, rounded to 4 places."""
    return round_cost(Decimal(tokens) / Decimal(1000) * rate_per_1k)


def estimate_tokens(text: Optional[str]) -> int:
    """Rough estimate: 1 token per 4 characters."""
    return math.ceil(len(text or "") / 4)


def _as_float(value: Decimal) -> float:
    return float(round_cost(value))


def _dec(value: Any) -> Decimal:
    try:
        result = Decimal(str(value or 0))
    except (InvalidOperation, ValueError):
        return Decimal(0)
    return result if result.is_finite() else Decimal(0)


def _int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError, OverflowError):
        return 0


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _empty_totals() -> Dict[str, Any]:
    return {"inputCost": 0.0, "outputCost": 0.0, "totalCost": 0.0, "inputTokens": 0, "outputTokens": 0}


def _empty_global() -> Dict[str, Any]:
    return {
        "totalInputCost": 0.0,
        "totalOutputCost": 0.0,
        "totalCost": 0.0,
        "totalInputTokens": 0,
        "totalOutputTokens": 0,
        "totalRequests": 0,
        "modelsUsage": {},
        "lastUpdated": _utc_now(),
    }


def _empty_database() -> Dict[str, Any]:
    return {"users": {}, "global": _empty_global()}


@dataclass(frozen=True)
class UsageRecord:
    """One completed provider call that produced output."""
    timestamp: str
    input_tokens: int
    output_tokens: int
    input_cost: Decimal
    output_cost: Decimal
    total_cost: Decimal
    message: str
    session_id: str
    model: str

    def to_record(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "inputCost": _as_float(self.input_cost),
            "outputCost": _as_float(self.output_cost),
            "totalCost": _as_float(self.total_cost),
            "inputTokens": self.input_tokens,
            "outputTokens": self.output_tokens,
            "message": self.message,
            "sessionId": self.session_id,
            "model": self.model,
        }

    def cost_summary(self) -> Dict[str, float]:
        return {
            "inputCost": _as_float(self.input_cost),
            "outputCost": _as_float(self.output_cost),
            "totalCost": _as_float(self.total_cost),
        }


def build_usage_record(
    message: str,
    session_id: str,
    model_name: str,
    input_text: str,
    output_text: str,
    input_tokens: Optional[int] = 0,
    output_tokens: Optional[int] = 0,
) -> UsageRecord:
    """
    Price one exchange.

    Zero or missing token counts are estimated from the texts.
    """
    if not input_tokens or input_tokens <= 0:
        input_tokens = estimate_tokens(input_text)
        logger.debug(f"Using estimated input tokens: {input_tokens}")
    if not output_tokens or output_tokens <= 0:
        output_tokens = estimate_tokens(output_text)
        logger.debug(f"Using estimated output tokens: {output_tokens}")

    rates = rates_for(model_name)
    input_cost = token_cost(input_tokens, rates.input_per_1k)
    output_cost = token_cost(output_tokens, rates.output_per_1k)
    return UsageRecord(
        timestamp=_utc_now(),
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        input_cost=input_cost,
        output_cost=output_cost,
        total_cost=round_cost(input_cost + output_cost),
        message=message,
        session_id=session_id,
        model=model_name,
    )


class CostLedger:
    """
    JSON-backed usage and cost aggregation.

    Example:
        >>> ledger = CostLedger.in_directory(Path("data"))
        >>> await ledger.load()
        >>> await ledger.record_usage("0xabc...", "Hello", "sid", "mistral-large-2411",
        ...                           "Hello", "Hi there", 5, 3)
        >>> (await ledger.generate_usage_report())["global"]["totalRequests"]
        1
    """

    def __init__(self, store: JsonStore):
        self.store = store
        self.data: Dict[str, Any] = _empty_database()
        self._loaded = False
        self._lock = asyncio.Lock()

    @classmethod
    def in_directory(cls, data_dir: Path) -> "CostLedger":
        return cls(JsonStore(Path(data_dir) / COSTS_FILE))

    async def load(self) -> None:
        """
        Load the costs document and validate its totals.

        A missing file starts an empty ledger; an unreadable one is logged
        and replaced on the next successful write.
        """
        async with self._lock:
            await self._load_locked()

    async def _load_locked(self) -> None:
        try:
            document = await self.store.read_strict(_empty_database)
        except (StoreCorruptError, OSError) as e:
            logger.error(f"Could not load costs data, starting empty: {e}")
            document = _empty_database()

        if not isinstance(document, dict) or not isinstance(document.get("users"), dict):
            logger.warning("Costs document has an unexpected shape, starting empty")
            document = _empty_database()

        self.data = document
        self._loaded = True

        if self._rebuild_totals():
            logger.warning("Persisted cost totals diverged from usage records; rebuilt")
            try:
                await self.store.write(self.data)
            except Exception as e:
                logger.error(f"Failed to save rebuilt costs data: {e}")
        else:
            logger.info(
                f"Cost ledger loaded: {self.data['global']['totalRequests']} requests, "
                f"{len(self.data['users'])} wallets"
            )

    def _rebuild_totals(self) -> bool:
        """
        Recompute every total from the stored records.

        Returns:
            True if anything persisted differed from the recomputed value
        """
        changed = False
        old_global = self.data.get("global") if isinstance(self.data.get("global"), dict) else {}
        new_global = _empty_global()
        new_global["lastUpdated"] = old_global.get("lastUpdated", new_global["lastUpdated"])
        models: Dict[str, Dict[str, Any]] = {}

        g_in = g_out = g_total = Decimal(0)
        for wallet, user in self.data["users"].items():
            stored = user.get("requests") if isinstance(user, dict) else None
            if not isinstance(stored, list):
                stored = []
            requests = [record for record in stored if isinstance(record, dict)]
            if len(requests) != len(stored):
                logger.warning(
                    f"Dropping {len(stored) - len(requests)} malformed usage records for {wallet}"
                )
                changed = True
            u_in = u_out = u_total = Decimal(0)
            u_in_tokens = u_out_tokens = 0
            for record in requests:
                u_in += _dec(record.get("inputCost"))
                u_out += _dec(record.get("outputCost"))
                u_total += _dec(record.get("totalCost"))
                u_in_tokens += _int(record.get("inputTokens"))
                u_out_tokens += _int(record.get("outputTokens"))

                stats = models.setdefault(
                    str(record.get("model") or "unknown"),
                    {"requests": 0, "inputTokens": 0, "outputTokens": 0, "cost": Decimal(0)},
                )
                stats["requests"] += 1
                stats["inputTokens"] += _int(record.get("inputTokens"))
                stats["outputTokens"] += _int(record.get("outputTokens"))
                stats["cost"] += _dec(record.get("totalCost"))

            totals = {
                "inputCost": _as_float(u_in),
                "outputCost": _as_float(u_out),
                "totalCost": _as_float(u_total),
                "inputTokens": u_in_tokens,
                "outputTokens": u_out_tokens,
            }
            if not isinstance(user, dict) or user.get("totalCosts") != totals:
                changed = True
            self.data["users"][wallet] = {"totalCosts": totals, "requests": requests}

            g_in += u_in
            g_out += u_out
            g_total += u_total
            new_global["totalInputTokens"] += u_in_tokens
            new_global["totalOutputTokens"] += u_out_tokens
            new_global["totalRequests"] += len(requests)

        new_global["totalInputCost"] = _as_float(g_in)
        new_global["totalOutputCost"] = _as_float(g_out)
        new_global["totalCost"] = _as_float(g_total)
        new_global["modelsUsage"] = {
            name: {**stats, "cost": _as_float(stats["cost"])} for name, stats in models.items()
        }

        for key, value in new_global.items():
            if key != "lastUpdated" and old_global.get(key) != value:
                changed = True
        self.data["global"] = new_global
        return changed

    async def record_usage(
        self,
        wallet_address: Optional[str],
        message: str,
        session_id: str,
        model_name: str,
        input_text: str,
        output_text: str,
        input_tokens: Optional[int] = 0,
        output_tokens: Optional[int] = 0,
    ) -> Outcome:
        """
        Book one completed exchange.

        Zero or missing token counts are estimated from the texts. Calls
        without a wallet address are not booked. Write failures are
        logged and reported through the returned Outcome.
        """
        usage = build_usage_record(
            message, session_id, model_name, input_text, output_text, input_tokens, output_tokens
        )
        return await self.book(wallet_address, usage)

    async def book(self, wallet_address: Optional[str], usage: UsageRecord) -> Outcome:
        """Add a priced record to the wallet's history and all totals."""
        if not wallet_address:
            logger.debug("No wallet address provided, skipping usage tracking")
            return Outcome(ok=True, operation="record_usage", detail="skipped: no wallet address")

        async with self._lock:
            if not self._loaded:
                await self._load_locked()
            self._apply(wallet_address, usage)
            try:
                await self.store.write(self.data)
            except Exception as e:
                logger.error(f"Failed to save costs data: {e}")
                return Outcome.failure("record_usage", str(e))

        logger.debug(
            f"Tracked usage for {wallet_address} with {usage.model}: "
            f"${usage.total_cost} ({usage.input_tokens} input tokens, {usage.output_tokens} output tokens)"
        )
        return Outcome.success("record_usage")

    async def track_usage(
        self,
        wallet_address: Optional[str],
        message: str,
        session_id: str,
        model_name: str,
        input_text: str,
        output_text: str,
    ) -> Outcome:
        """Book an exchange with both token counts estimated from text."""
        return await self.record_usage(
            wallet_address,
            message,
            session_id,
            model_name,
            input_text,
            output_text,
            estimate_tokens(input_text),
            estimate_tokens(output_text),
        )

    def _apply(self, wallet_address: str, usage: UsageRecord) -> None:
        user = self.data["users"].setdefault(
            wallet_address, {"totalCosts": _empty_totals(), "requests": []}
        )
        totals = user["totalCosts"]
        totals["inputCost"] = _as_float(_dec(totals["inputCost"]) + usage.input_cost)
        totals["outputCost"] = _as_float(_dec(totals["outputCost"]) + usage.output_cost)
        totals["totalCost"] = _as_float(_dec(totals["totalCost"]) + usage.total_cost)
        totals["inputTokens"] += usage.input_tokens
        totals["outputTokens"] += usage.output_tokens
        user["requests"].append(usage.to_record())

        g = self.data["global"]
        g["totalInputCost"] = _as_float(_dec(g["totalInputCost"]) + usage.input_cost)
        g["totalOutputCost"] = _as_float(_dec(g["totalOutputCost"]) + usage.output_cost)
        g["totalCost"] = _as_float(_dec(g["totalCost"]) + usage.total_cost)
        g["totalInputTokens"] += usage.input_tokens
        g["totalOutputTokens"] += usage.output_tokens
        g["totalRequests"] += 1
        g["lastUpdated"] = usage.timestamp

        stats = g.setdefault("modelsUsage", {}).setdefault(
            usage.model, {"requests": 0, "inputTokens": 0, "outputTokens": 0, "cost": 0.0}
        )
        stats["requests"] += 1
        stats["inputTokens"] += usage.input_tokens
        stats["outputTokens"] += usage.output_tokens
        stats["cost"] = _as_float(_dec(stats["cost"]) + usage.total_cost)

    async def generate_usage_report(self, wallet_address: Optional[str] = None) -> Dict[str, Any]:
        """
        Global aggregates, or one wallet's totals and history.

        Args:
            wallet_address: Wallet to report on; None for the global summary

        Returns:
            Report dict; a wallet without data yields a "message" marker
        """
        async with self._lock:
            if not self._loaded:
                await self._load_locked()

            if wallet_address:
                user = self.data["users"].get(wallet_address)
                if user is None:
                    return {"message": NO_DATA_MESSAGE}
                return {
                    "totalCosts": dict(user["totalCosts"]),
                    "requests": list(user["requests"]),
                }

            g = self.data["global"]
            return {
                "global": {
                    "totalRequests": g["totalRequests"],
                    "totalCost": f"{_dec(g['totalCost']):.4f}",
                    "totalInputTokens": g["totalInputTokens"],
                    "totalOutputTokens": g["totalOutputTokens"],
                    "modelsBreakdown": dict(g.get("modelsUsage", {})),
                    "lastUpdated": g["lastUpdated"],
                },
                "totalUsers": len(self.data["users"]),
            }
