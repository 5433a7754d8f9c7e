"""Trace call chains through the relationships recorded in the index."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from ..errors import SymbolNotFoundError
from ..store import IndexStore

DEFAULT_CHAIN_DEPTH = 3
MAX_CHAIN_DEPTH = 10
MAX_CHAIN_PATHS = 100


class ChainDirection(str, Enum):
    UP = "up"
    DOWN = "down"
    BOTH = "both"


@dataclass(slots=True)
class CallChainNode:
    symbol: str
    file_path: str = ""
    line: int = 0
    depth: int = 0
    children: list["CallChainNode"] = field(default_factory=list)


@dataclass(slots=True)
class CallChainResult:
    target: str
    direction: ChainDirection
    max_depth: int
    chains: list[CallChainNode] = field(default_factory=list)
    total_paths: int = 0
    truncated: bool = False


def _clamp_depth(max_depth: int) -> int:
    if max_depth <= 0:
        return DEFAULT_CHAIN_DEPTH
    return min(max_depth, MAX_CHAIN_DEPTH)


class _Tracer:
    def __init__(self, store: IndexStore, result: CallChainResult) -> None:
        self.store = store
        self.result = result
        self.visiting: set[str] = set()

    def _budget_left(self) -> bool:
        if self.result.total_paths >= MAX_CHAIN_PATHS:
            self.result.truncated = True
            return False
        return True

    def up(self, symbol: str, depth: int) -> list[CallChainNode]:
        if depth > self.result.max_depth or not self._budget_left():
            return []
        if symbol in self.visiting:
            return []
        self.visiting.add(symbol)
        try:
            callers: dict[str, CallChainNode] = {}
            for call in self.store.get_incoming_calls(symbol):
                if not call.caller_symbol:
                    continue
                known = callers.get(call.caller_symbol)
                if known is None or call.line < known.line:
                    callers[call.caller_symbol] = CallChainNode(
                        symbol=call.caller_symbol,
                        file_path=call.file_path,
                        line=call.line,
                        depth=depth,
                    )
            nodes: list[CallChainNode] = []
            for name in sorted(callers):
                if not self._budget_left():
                    break
                node = callers[name]
                node.children = self.up(name, depth + 1)
                if not node.children:
                    self.result.total_paths += 1
                nodes.append(node)
            return nodes
        finally:
            self.visiting.discard(symbol)

    def down(self, symbol: str, file_path: str, depth: int) -> list[CallChainNode]:
        if depth > self.result.max_depth or not self._budget_left():
            return []
        key = f"{symbol}:{file_path}"
        if key in self.visiting:
            return []
        self.visiting.add(key)
        try:
            try:
                callees = self.store.get_outgoing_calls(symbol, file_path)
            except SymbolNotFoundError:
                return []
            first_sites: dict[str, CallChainNode] = {}
            for call in callees:
                if call.callee_symbol and call.callee_symbol not in first_sites:
                    first_sites[call.callee_symbol] = CallChainNode(
                        symbol=call.callee_symbol,
                        file_path=call.file_path,
                        line=call.line,
                        depth=depth,
                    )
            nodes: list[CallChainNode] = []
            for node in first_sites.values():
                if not self._budget_left():
                    break
                name = node.symbol.rsplit(".", 1)[-1]
                definition = self.store.get_symbol(name)
                if definition is not None:
                    node.children = self.down(definition.name, definition.file_path, depth + 1)
                if not node.children:
                    self.result.total_paths += 1
                nodes.append(node)
            return nodes
        finally:
            self.visiting.discard(key)


def call_chain(
    store: IndexStore,
    symbol: str,
    direction: ChainDirection | str = ChainDirection.UP,
    max_depth: int = DEFAULT_CHAIN_DEPTH,
    file_path: str = "",
) -> CallChainResult:
    """Trace callers (``up``), callees (``down``) or both from *symbol*.

    Depth defaults to 3 and is capped at 10; at most 100 leaf paths are
    collected before the result is marked truncated.
    """

    direction = ChainDirection(direction)
    depth = _clamp_depth(max_depth)
    if direction is ChainDirection.BOTH:
        upward = call_chain(store, symbol, ChainDirection.UP, depth)
        downward = call_chain(store, symbol, ChainDirection.DOWN, depth, file_path)
        return CallChainResult(
            target=symbol,
            direction=direction,
            max_depth=depth,
            chains=upward.chains + downward.chains,
            total_paths=upward.total_paths + downward.total_paths,
            truncated=upward.truncated or downward.truncated,
        )

    result = CallChainResult(target=symbol, direction=direction, max_depth=depth)
    tracer = _Tracer(store, result)
    if direction is ChainDirection.UP:
        result.chains = tracer.up(symbol, 1)
        return result

    if not file_path:
        definition = store.get_symbol(symbol)
        file_path = definition.file_path if definition is not None else ""
    if file_path:
        result.chains = tracer.down(symbol, file_path, 1)
    return result


def flatten_call_chain(result: CallChainResult) -> list[list[CallChainNode]]:
    """Return each root-to-leaf path as a list of childless node copies."""

    paths: list[list[CallChainNode]] = []

    def _walk(nodes: list[CallChainNode], prefix: list[CallChainNode]) -> None:
        for node in nodes:
            step = CallChainNode(
                symbol=node.symbol,
                file_path=node.file_path,
                line=node.line,
                depth=node.depth,
            )
            path = prefix + [step]
            if node.children:
                _walk(node.children, path)
            else:
                paths.append(path)

    _walk(result.chains, [])
    return paths
