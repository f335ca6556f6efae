"""
Graph — thin runner over nodnod for the checkout pipeline.

    from pricing import graph as G

    @G.node
    class LinesNode:
        @classmethod
        async def __compose__(cls, request: CheckoutInputNode, offers: OfferSnapshotNode) -> "LinesNode":
            ...

    quote = await G.run(BreakdownNode).inject_as(CheckoutRequest, request).inject_as(OfferCatalog, catalog)

Agents are built once per target node and reused; every run gets a fresh
scope, so concurrent runs never share values.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, cast
from collections.abc import Callable, Coroutine

from nodnod import EventLoopAgent, Node, Scope, Value
from nodnod import scalar_node as node

_agents: dict[type[Any], EventLoopAgent] = {}


def agent_for(target: type[Any]) -> EventLoopAgent:
    """Compiled agent for target and everything it depends on."""
    agent = _agents.get(target)
    if agent is None:
        agent = EventLoopAgent.build({cast(type[Node[Any, Any]], target)})
        _agents[target] = agent
    return agent


@dataclass(slots=True, frozen=True)
class Run[T]:
    """Awaitable builder: collect injections, then resolve target."""

    _target: type[T]
    _injections: tuple[tuple[type[Any], Any], ...] = ()

    def inject_as[V](self, typ: type[V], value: V) -> Run[T]:
        """Inject under an explicit type (protocols, base classes)."""
        return Run(self._target, (*self._injections, (typ, value)))

    def __await__(self) -> Any:
        return self._execute().__await__()

    async def _execute(self) -> T:
        agent = agent_for(self._target)
        scope = Scope(detail="checkout")
        async with scope:
            for typ, value in self._injections:
                scope.push(Value(typ, value))

            run_method = cast(
                Callable[[Scope, dict[type[Any], Scope]], Coroutine[Any, Any, None]],
                getattr(agent, "run"),
            )
            await run_method(scope, {})

            found = scope.get(self._target)
            if found is None:
                raise KeyError(f"{self._target.__name__} was not produced")
            return cast(T, found.value)


def run[T](target: type[T]) -> Run[T]:
    return Run(target)


__all__ = ("node", "agent_for", "Run", "run")
