"""
Result reshaping.

Folds the flat list of call results into the result tree returned to the
caller: one node per address, one list of argument buckets per method,
block samples folded into their bucket.

Example output for one address read at two blocks::

    [
        {
            "address": "0x6B17...",
            "namespace": "tokens",
            "totalSupply": [
                {"values": [
                    {"value": 10, "block_number": 99},
                    {"value": 12, "block_number": 100},
                ]}
            ],
            "balanceOf": [
                {"value": 5, "input": "0x70a0...", "args": ["0x5d3a..."]}
            ],
        }
    ]
"""

import copy
import logging
from typing import Any, Dict, Iterable, List, Optional

from .base import BlockValue, CallResult

logger = logging.getLogger(__name__)


def _block_order(block_value: BlockValue):
    # Head reads (no explicit block) sort last
    return (block_value.block_number is None, block_value.block_number or 0)


class ResultTreeBuilder:
    """
    Accumulates call results keyed by address, in insertion order.

    Addresses compare case-insensitively, like the ABI cache; a node keeps
    the spelling and namespace of the first result seen for it.

    Within an address, each (method, input) pair is kept once: results for
    a signature already seen have their block samples merged in.
    """

    def __init__(self):
        self._nodes: Dict[str, Dict[str, Any]] = {}

    def __len__(self) -> int:
        return len(self._nodes)

    def add_all(self, results: Iterable[CallResult]) -> "ResultTreeBuilder":
        for result in results:
            self.add(result)
        return self

    def add(self, result: CallResult) -> None:
        """Fold one call result into the tree."""
        bucket = {
            "values": list(result.values),
            "input": result.input,
            "args": result.args,
        }

        key = result.address.lower()
        node = self._nodes.get(key)
        if node is None:
            self._nodes[key] = {
                "address": result.address,
                "namespace": result.namespace,
                "methods": {result.method: [bucket]},
            }
            return

        buckets = node["methods"].get(result.method)
        if buckets is None:
            node["methods"][result.method] = [bucket]
            return

        for existing in buckets:
            if existing["input"] == result.input:
                self._merge_values(existing, result.values)
                return

        if len(buckets) == 1 and buckets[0]["input"] is None:
            # An argument-qualified read supersedes a bare one
            node["methods"][result.method] = [bucket]
        else:
            buckets.append(bucket)

    @staticmethod
    def _merge_values(bucket: Dict[str, Any], values: List[BlockValue]) -> None:
        seen = {value.block_number for value in bucket["values"]}
        for value in values:
            if value.block_number not in seen:
                bucket["values"].append(value)
                seen.add(value.block_number)
        bucket["values"].sort(key=_block_order)

    def build(self, simplify_response: bool = False) -> List[Dict[str, Any]]:
        """
        Render the result tree.

        Buckets read at a single block expose ``value`` instead of
        ``values``. With ``simplify_response``, a method with a single
        bucket collapses to that bucket's value (or its ``values`` list
        when it was read at several blocks).
        """
        tree = []
        for node in self._nodes.values():
            rendered = {"address": node["address"], "namespace": node["namespace"]}
            for method, buckets in node["methods"].items():
                method_buckets = [self._render_bucket(bucket) for bucket in buckets]
                if simplify_response and len(method_buckets) == 1:
                    only = method_buckets[0]
                    rendered[method] = only["value"] if "value" in only else only["values"]
                else:
                    rendered[method] = method_buckets
            tree.append(rendered)
        return tree

    @staticmethod
    def _render_bucket(bucket: Dict[str, Any]) -> Dict[str, Any]:
        values = [value.to_dict() for value in bucket["values"]]
        if len(values) == 1:
            rendered = {"value": copy.deepcopy(values[0]["value"])}
        else:
            rendered = {"values": copy.deepcopy(values)}
        if bucket["input"] is not None:
            rendered["input"] = bucket["input"]
        if bucket["args"] is not None:
            rendered["args"] = list(bucket["args"])
        return rendered


def group_by_namespace(tree: List[Dict[str, Any]]) -> Dict[str, List[Dict[str, Any]]]:
    """Partition a result tree by namespace, dropping the ``namespace`` key."""
    grouped: Dict[str, List[Dict[str, Any]]] = {}
    for node in tree:
        stripped = {key: value for key, value in node.items() if key != "namespace"}
        grouped.setdefault(node["namespace"], []).append(stripped)
    return grouped


def flatten_namespaces(
    grouped: Dict[str, List[Dict[str, Any]]], namespaces: Optional[List[str]] = None
) -> List[Dict[str, Any]]:
    """
    Inverse of :func:`group_by_namespace`.

    Nodes come out namespace by namespace, so a tree whose namespaces were
    interleaved (a, b, a) is restored as (a, a, b). Node contents are
    unchanged.

    Args:
        grouped: Namespaced result tree
        namespaces: Only flatten these namespaces (default: all, in order)
    """
    tree = []
    for namespace in namespaces or list(grouped):
        for node in grouped.get(namespace, []):
            flat = {"address": node["address"], "namespace": namespace}
            flat.update((key, value) for key, value in node.items() if key != "address")
            tree.append(flat)
    return tree
