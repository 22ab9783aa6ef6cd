"""
ethfaucet/metrics.py

Prometheus metrics collection for ethfaucet.

Counts disbursement outcomes and tracks the faucet wallet balance last
observed during a balance check.
"""

import time
import logging
from typing import Any, Dict, List, Optional

logger = logging.getLogger("ethfaucet.metrics")


class FaucetMetrics:
    """
    Prometheus metrics collector for the faucet.

    Usage:
        metrics = FaucetMetrics()
        faucet = Faucet(selector, account, metrics=metrics)

        # Get metrics in Prometheus format
        prometheus_output = metrics.collect()
    """

    # Metric definitions
    METRICS = {
        "ethfaucet_disbursements_total": {
            "type": "counter",
            "help": "Disbursement requests by outcome",
        },
        "ethfaucet_dispensed_wei_total": {
            "type": "counter",
            "help": "Total wei sent to recipients",
        },
        "ethfaucet_wallet_balance_wei": {
            "type": "gauge",
            "help": "Faucet wallet balance at the last balance check",
        },
        "ethfaucet_confirmation_seconds": {
            "type": "histogram",
            "help": "Time from broadcast to receipt for confirmed transactions",
            "buckets": [1.0, 2.5, 5.0, 10.0, 15.0, 20.0, 30.0],
        },
        "ethfaucet_uptime_seconds": {
            "type": "counter",
            "help": "Service uptime in seconds",
        },
    }

    def __init__(self):
        self._start_time = time.time()

        # Counters (persist across collections)
        self._outcomes: Dict[str, int] = {}
        self._dispensed_wei = 0
        self._wallet_balance: Optional[int] = None

        # Histogram buckets for confirmation latency
        self._latency_buckets = self.METRICS["ethfaucet_confirmation_seconds"]["buckets"]
        self._latency_counts = {b: 0 for b in self._latency_buckets}
        self._latency_sum = 0.0
        self._latency_count = 0

    def record_outcome(self, outcome: str) -> None:
        """Count a finished request ('confirmed', 'submitted' or an error kind)."""
        self._outcomes[outcome] = self._outcomes.get(outcome, 0) + 1

    def record_dispensed(self, value_wei: int) -> None:
        self._dispensed_wei += value_wei

    def record_balance(self, balance_wei: int) -> None:
        self._wallet_balance = balance_wei

    def record_confirmation(self, latency_seconds: float) -> None:
        """Record how long a confirmed transaction took to be mined."""
        self._latency_sum += latency_seconds
        self._latency_count += 1
        for bucket in self._latency_buckets:
            if latency_seconds <= bucket:
                self._latency_counts[bucket] += 1

    def outcome_count(self, outcome: str) -> int:
        return self._outcomes.get(outcome, 0)

    def collect(self) -> str:
        """
        Collect all metrics and return in Prometheus format.

        Returns:
            Prometheus-formatted metrics string
        """
        lines: List[str] = []

        def header(name: str):
            metric_def = self.METRICS[name]
            lines.append(f"# HELP {name} {metric_def['help']}")
            lines.append(f"# TYPE {name} {metric_def['type']}")

        header("ethfaucet_disbursements_total")
        for outcome, count in sorted(self._outcomes.items()):
            lines.append(f'ethfaucet_disbursements_total{{outcome="{outcome}"}} {count}')

        header("ethfaucet_dispensed_wei_total")
        lines.append(f"ethfaucet_dispensed_wei_total {self._dispensed_wei}")

        if self._wallet_balance is not None:
            header("ethfaucet_wallet_balance_wei")
            lines.append(f"ethfaucet_wallet_balance_wei {self._wallet_balance}")

        if self._latency_count > 0:
            header("ethfaucet_confirmation_seconds")
            for bucket in self._latency_buckets:
                lines.append(
                    f'ethfaucet_confirmation_seconds_bucket{{le="{bucket}"}} '
                    f'{self._latency_counts[bucket]}'
                )
            lines.append(f'ethfaucet_confirmation_seconds_bucket{{le="+Inf"}} {self._latency_count}')
            lines.append(f"ethfaucet_confirmation_seconds_sum {self._latency_sum}")
            lines.append(f"ethfaucet_confirmation_seconds_count {self._latency_count}")

        header("ethfaucet_uptime_seconds")
        lines.append(f"ethfaucet_uptime_seconds {time.time() - self._start_time}")

        return "\n".join(lines) + "\n"

    def get_stats(self) -> Dict[str, Any]:
        """
        Get metrics as a dictionary (for JSON API).

        Returns:
            Dictionary of metric values
        """
        return {
            "outcomes": dict(self._outcomes),
            "dispensed_wei": self._dispensed_wei,
            "wallet_balance_wei": self._wallet_balance,
            "confirmed_count": self._latency_count,
            "uptime_seconds": time.time() - self._start_time,
        }

    def reset_counters(self) -> None:
        """Reset all counters (useful for testing)."""
        self._outcomes = {}
        self._dispensed_wei = 0
        self._wallet_balance = None
        self._latency_counts = {b: 0 for b in self._latency_buckets}
        self._latency_sum = 0.0
        self._latency_count = 0
