"""
Mutation lifecycle composition.

A mutation moves through four phases: ``on_mutate`` before the request is
sent, ``on_success`` or ``on_error`` once the outcome is known, and
``on_settled`` in either case. Cache behaviour is attached as an ordered
list of middleware, each wrapping the next, with the caller's hooks at
the end of the chain. The chain is composed once, when the lifecycle is
built; caller-supplied hook objects are never modified.
"""

import functools
import inspect
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Sequence

PHASES = ("on_mutate", "on_success", "on_error", "on_settled")


@dataclass(frozen=True)
class MutationHooks:
    """
    Caller lifecycle hooks, each either a plain function or a coroutine function.

    - ``on_mutate(variables)``: its result becomes the mutation context.
    - ``on_success(data, variables, context)``
    - ``on_error(error, variables, context)``
    - ``on_settled(data, error, variables, context)``
    """
    on_mutate: Optional[Callable[..., Any]] = None
    on_success: Optional[Callable[..., Any]] = None
    on_error: Optional[Callable[..., Any]] = None
    on_settled: Optional[Callable[..., Any]] = None


async def call_hook(hook: Optional[Callable[..., Any]], *args: Any) -> Any:
    """Invoke a sync or async hook, returning its result."""
    if hook is None:
        return None
    result = hook(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


class LifecycleMiddleware:
    """
    Base lifecycle middleware.

    Every phase method receives ``call_next`` and must return its result,
    so the caller hook's return value stays the phase's result. The
    default implementation passes straight through.
    """

    async def on_mutate(self, variables: Any, call_next: Callable[..., Awaitable[Any]]) -> Any:
        return await call_next(variables)

    async def on_success(self, data: Any, variables: Any, context: Any, call_next: Callable[..., Awaitable[Any]]) -> Any:
        return await call_next(data, variables, context)

    async def on_error(self, error: Exception, variables: Any, context: Any, call_next: Callable[..., Awaitable[Any]]) -> Any:
        return await call_next(error, variables, context)

    async def on_settled(
        self,
        data: Any,
        error: Optional[Exception],
        variables: Any,
        context: Any,
        call_next: Callable[..., Awaitable[Any]],
    ) -> Any:
        return await call_next(data, error, variables, context)


class MutationLifecycle:
    """Middleware chain for one mutation; ``middlewares[0]`` is outermost."""

    def __init__(self, middlewares: Sequence[LifecycleMiddleware] = (), hooks: Optional[MutationHooks] = None):
        self.middlewares = tuple(middlewares)
        self.hooks = hooks or MutationHooks()
        self._chains: Dict[str, Callable[..., Awaitable[Any]]] = {
            phase: self._compose(phase) for phase in PHASES
        }

    def _compose(self, phase: str) -> Callable[..., Awaitable[Any]]:
        hook = getattr(self.hooks, phase)

        async def terminal(*args: Any) -> Any:
            return await call_hook(hook, *args)

        chain: Callable[..., Awaitable[Any]] = terminal
        for middleware in reversed(self.middlewares):
            chain = functools.partial(getattr(middleware, phase), call_next=chain)
        return chain

    async def on_mutate(self, variables: Any) -> Any:
        return await self._chains["on_mutate"](variables)

    async def on_success(self, data: Any, variables: Any, context: Any) -> Any:
        return await self._chains["on_success"](data, variables, context)

    async def on_error(self, error: Exception, variables: Any, context: Any) -> Any:
        return await self._chains["on_error"](error, variables, context)

    async def on_settled(self, data: Any, error: Optional[Exception], variables: Any, context: Any) -> Any:
        return await self._chains["on_settled"](data, error, variables, context)
