"""
Mock Kudu tablet server metrics.

Produces fake but realistic metrics so we can develop and test without
a cluster. Numbers are loosely based on a mid-sized tablet server
hosting a few hundred tablets under steady write load.
"""

import math
import random
from typing import Any, Dict, List


class MockKuduNode:

    def __init__(self, seed: int = 42, tablets: int = 3):
        self._seed = seed
        self.tablets = tablets

    def entities(self, tick: int) -> List[Dict[str, Any]]:
        """Kudu-style entity list for one point in simulated time.

        Output depends only on (seed, tick), so the same tick always gives
        the same payload and counters never go backwards as tick grows.
        """
        rng = random.Random(self._seed * 100003 + tick)

        # Sinusoidal write load with occasional bursts
        base_rate = 400 + 250 * math.sin(tick * 0.05 + self._seed)
        burst = rng.random() * 600 if rng.random() > 0.9 else 0
        write_rate = max(10.0, base_rate + burst)

        rows_inserted = int(tick * 450 + 250 * (1 - math.cos(tick * 0.05 + self._seed)) / 0.05)
        rpc_p99_us = max(200, int(900 + write_rate * 1.5 + rng.gauss(0, 80)))

        server = {
            "type": "server",
            "id": "kudu.tabletserver",
            "attributes": {},
            "metrics": [
                {"name": "block_cache_usage", "value": int(2.1e9 + rng.gauss(0, 5e7))},
                {"name": "memory_usage", "value": int(6.4e9 + write_rate * 1e6)},
                {"name": "tablets_num_running", "value": self.tablets},
                {"name": "tablets_num_failed", "value": 0},
                {"name": "rpc_connections_accepted", "value": 120 + tick},
                {
                    "name": "handler_latency_kudu_tserver_TabletServerService_Write",
                    "total_count": tick * 300,
                    "total_sum": tick * 300 * rpc_p99_us // 3,
                    "min": 45,
                    "mean": rpc_p99_us / 3,
                    "percentile_75": rpc_p99_us // 2,
                    "percentile_95": int(rpc_p99_us * 0.8),
                    "percentile_99": rpc_p99_us,
                    "percentile_99_9": int(rpc_p99_us * 1.6),
                    "percentile_99_99": int(rpc_p99_us * 2.2),
                    "max": int(rpc_p99_us * 3.1),
                },
            ],
        }

        entities = [server]
        for i in range(self.tablets):
            share = (i + 1) / (self.tablets * (self.tablets + 1) / 2)
            entities.append({
                "type": "tablet",
                "id": f"{self._seed:08x}{i:024x}",
                "attributes": {"table_name": f"impala::metrics.events_{i}", "partition": f"HASH (id) PARTITION {i}"},
                "metrics": [
                    {"name": "rows_inserted", "value": int(rows_inserted * share)},
                    {"name": "on_disk_size", "value": int(1.5e9 * share + tick * 4096)},
                    {"name": "num_rowsets_on_disk", "value": 10 + rng.randint(0, 6)},
                    {"name": "memrowset_size", "value": int(write_rate * share * 2048)},
                ],
            })
        return entities
