from __future__ import annotations

from prometheus_client import Counter

FETCH_RUNS_TOTAL = Counter(
    'chainradar_fetch_runs_total',
    'Exclusive fetch runs grouped by stage, action and outcome',
    ['stage', 'action', 'outcome']
)

NODES_EMITTED_TOTAL = Counter(
    'chainradar_nodes_emitted_total',
    'Nodes and relationship pairs emitted by discovery stages',
    ['stage', 'kind']
)
