"""Gas estimation, dynamic fee pricing and gas accounting."""

from __future__ import annotations

import math
from collections import deque
from dataclasses import dataclass
from itertools import islice
from statistics import fmean
from typing import Iterable

_HISTORY_SIZE = 100
_RECENT_WINDOW = 10
_MIN_GAS_LIMIT = 21000
_MAX_CONGESTION = 2.0

_DEFAULT_OPERATION_COSTS = {
    "transfer": 21000,
    "contract_call": 25000,
    "contract_deploy": 53000,
    "storage_write": 20000,
    "storage_read": 800,
    "log_event": 375,
    "sha3": 30,
    "signature_verify": 3000,
    "ec_recover": 3000,
    "modexp": 200,
    "bn_add": 150,
    "bn_mul": 6000,
    "bn_pairing": 45000,
}


@dataclass
class GasPrice:
    """Per-unit fee components of a gas price."""

    base_fee: int
    priority_fee: int
    max_fee: int


@dataclass
class GasEstimate:
    """Estimated gas for an operation, its price and total cost."""

    estimated_gas: int
    gas_price: GasPrice
    total_cost: int
    confidence: float


@dataclass
class GasUsage:
    """How the gas of a processed transaction was spent."""

    used: int
    refunded: int
    burned: int
    remaining: int


@dataclass
class GasMetrics:
    """A summary of recent gas prices and network load."""

    average_gas_price: int
    peak_usage: int
    network_congestion: float
    block_utilization: float


@dataclass
class TransactionGasInfo:
    """Gas figures for a single executed transaction."""

    tx_hash: str
    gas_limit: int
    gas_used: int
    gas_price: int
    total_fee: int
    refund: int


class GasCalculator:
    """Estimates gas, prices it by network congestion and tracks recent prices."""

    def __init__(self) -> None:
        self.base_price = 1_000_000_000  # 1 Gwei in wei
        self.network_congestion = 0.5
        self.block_gas_limit = 30_000_000
        self.target_block_utilization = 0.5
        self.operation_costs: dict[str, int] = dict(_DEFAULT_OPERATION_COSTS)
        self.dynamic_pricing_enabled = True
        self.eip1559_enabled = True
        self._price_history: deque[int] = deque(maxlen=_HISTORY_SIZE)

    @property
    def gas_price_history(self) -> list[int]:
        """The most recent gas prices, oldest first."""
        return list(self._price_history)

    def calculate_transaction_gas(
        self,
        tx_type: str,
        data_size: int,
        storage_operations: int,
        contract_calls: int,
    ) -> GasEstimate:
        """Estimate gas for a transaction, with a 10% safety buffer."""
        total_gas = (
            self._base_operation_cost(tx_type)
            + self._data_gas(data_size)
            + storage_operations * self.operation_costs.get("storage_write", 20000)
            + contract_calls * self.operation_costs.get("contract_call", 25000)
        )
        return self._estimate(int(total_gas * 1.1))

    def calculate_smart_contract_gas(
        self, bytecode_size: int, constructor_data: int, storage_slots: int
    ) -> GasEstimate:
        """Estimate gas for deploying a contract, with a 20% safety buffer."""
        total_gas = (
            self.operation_costs.get("contract_deploy", 53000)
            + bytecode_size * 200
            + self._data_gas(constructor_data)
            + storage_slots * self.operation_costs.get("storage_write", 20000)
        )
        return self._estimate(int(total_gas * 1.2))

    def calculate_dynamic_gas_price(self) -> GasPrice:
        """Return the current gas price given congestion and the pricing mode."""
        if not self.dynamic_pricing_enabled:
            tip = self.base_price // 10
            return GasPrice(
                base_fee=self.base_price, priority_fee=tip, max_fee=self.base_price + tip
            )

        multiplier = 1.0 + self.network_congestion * 2.0
        base_fee = int(self.base_price * multiplier)
        if self.eip1559_enabled:
            priority_fee = self._priority_fee()
            return GasPrice(
                base_fee=base_fee, priority_fee=priority_fee, max_fee=base_fee + priority_fee
            )
        return GasPrice(base_fee=base_fee, priority_fee=0, max_fee=base_fee)

    def process_transaction_gas(
        self, gas_limit: int, gas_used: int, gas_price: int
    ) -> GasUsage:
        """Account for a transaction's gas; raise ValueError if it used more than its limit."""
        if gas_used > gas_limit:
            raise ValueError("Gas used exceeds gas limit")

        burned = gas_used * (gas_price * 70 // 100) if self.eip1559_enabled else 0
        usage = GasUsage(
            used=gas_used,
            refunded=self._gas_refund(gas_used),
            burned=burned,
            remaining=gas_limit - gas_used,
        )
        self.update_network_congestion(gas_used)
        self._price_history.append(gas_price)
        return usage

    def get_gas_metrics(self) -> GasMetrics:
        """Summarise recent gas prices and network load."""
        history = self._price_history
        average = sum(history) // len(history) if history else self.base_price
        peak = max(history, default=self.base_price)
        return GasMetrics(
            average_gas_price=average,
            peak_usage=peak,
            network_congestion=self.network_congestion,
            block_utilization=self._block_utilization(),
        )

    def estimate_block_gas(self, transactions: Iterable[TransactionGasInfo]) -> int:
        """Return the total gas used by ``transactions``."""
        return sum(tx.gas_used for tx in transactions)

    def validate_gas_limit(self, gas_limit: int) -> bool:
        """Return whether ``gas_limit`` lies between the minimum and the block limit."""
        return _MIN_GAS_LIMIT <= gas_limit <= self.block_gas_limit

    def optimize_gas_price(self, target_confirmation_blocks: int) -> GasPrice:
        """Return a price scaled up for faster confirmation."""
        if target_confirmation_blocks == 1:
            urgency = 2.0
        elif 2 <= target_confirmation_blocks <= 3:
            urgency = 1.5
        elif 4 <= target_confirmation_blocks <= 10:
            urgency = 1.2
        else:
            urgency = 1.0

        price = self.calculate_dynamic_gas_price()
        base_fee = int(price.base_fee * urgency)
        priority_fee = int(price.priority_fee * urgency)
        return GasPrice(
            base_fee=base_fee, priority_fee=priority_fee, max_fee=base_fee + priority_fee
        )

    def set_network_congestion(self, congestion: float) -> None:
        """Set congestion, clamped to the range 0.0 to 2.0."""
        self.network_congestion = min(max(congestion, 0.0), _MAX_CONGESTION)

    def set_block_gas_limit(self, limit: int) -> None:
        """Set the maximum gas per block."""
        self.block_gas_limit = limit

    def enable_eip1559(self, enabled: bool) -> None:
        """Switch between base-plus-tip and legacy pricing."""
        self.eip1559_enabled = enabled

    def enable_dynamic_pricing(self, enabled: bool) -> None:
        """Switch congestion-based pricing on or off."""
        self.dynamic_pricing_enabled = enabled

    def get_current_price(self) -> int:
        """Return the base gas price."""
        return self.base_price

    def update_operation_cost(self, operation: str, cost: int) -> None:
        """Set the gas cost of a named operation."""
        self.operation_costs[operation] = cost

    def update_network_congestion(self, gas_used: int) -> None:
        """Raise congestion after a heavy transaction, lower it after a light one."""
        utilization = gas_used / self.block_gas_limit
        if utilization > self.target_block_utilization:
            self.network_congestion = min(self.network_congestion + 0.1, _MAX_CONGESTION)
        else:
            self.network_congestion = max(self.network_congestion - 0.05, 0.0)

    def _estimate(self, estimated_gas: int) -> GasEstimate:
        gas_price = self.calculate_dynamic_gas_price()
        return GasEstimate(
            estimated_gas=estimated_gas,
            gas_price=gas_price,
            total_cost=estimated_gas * gas_price.max_fee,
            confidence=self._confidence(),
        )

    def _base_operation_cost(self, tx_type: str) -> int:
        return self.operation_costs.get(tx_type, 21000)

    @staticmethod
    def _data_gas(data_size: int) -> int:
        return data_size * 16

    def _priority_fee(self) -> int:
        base_priority = self.base_price // 20
        return base_priority + int(base_priority * self.network_congestion)

    @staticmethod
    def _gas_refund(gas_used: int) -> int:
        return gas_used // 2 // 10

    def _block_utilization(self) -> float:
        if not self._price_history:
            return 0.5
        recent = list(islice(reversed(self._price_history), _RECENT_WINDOW))
        return min(sum(recent) / len(recent) / self.base_price, 1.0)

    def _confidence(self) -> float:
        if len(self._price_history) < _RECENT_WINDOW:
            return 0.7
        variance = self._price_variance()
        if variance < 0.1:
            return 0.95
        if variance < 0.3:
            return 0.85
        return 0.7

    def _price_variance(self) -> float:
        """Coefficient of variation of the price history."""
        history = self._price_history
        if len(history) < 2:
            return 0.0
        mean = fmean(history)
        if mean == 0:
            return math.nan
        spread = fmean((price - mean) ** 2 for price in history)
        return abs(math.sqrt(spread) / mean)