"""
Saga — order submission steps with compensation.

    from pricing import saga as S

    submit = S.from_async(reserve_coupon, on_error=..., compensate=release).then(
        lambda reservation: S.from_async(capture_payment, on_error=...)
    )
    result = await S.run_chain(submit)

When a later step fails, compensators of the steps that already succeeded
run in reverse order.
"""

from __future__ import annotations

from dataclasses import dataclass
from collections.abc import Callable, Awaitable

from combinators import lift as L
from kungfu import Result, Ok, Error, LazyCoroResult

from pricing._log import get_logger

logger = get_logger("saga")

# ═══════════════════════════════════════════════════════════════════════════════
# Types
# ═══════════════════════════════════════════════════════════════════════════════

type Compensator[T] = Callable[[T], Awaitable[None]]
"""Receives the action's result and undoes it."""


@dataclass(frozen=True, slots=True)
class SagaStep[T, E]:
    """Action plus the compensator recorded once the action succeeds."""

    action: LazyCoroResult[T, E]
    compensate: Compensator[T] | None

    def then[U, E2](self, f: Callable[[T], SagaStep[U, E2]]) -> Then[T, U, E, E2]:
        return Then(self, f)


@dataclass(frozen=True, slots=True)
class Then[T, U, E, E2]:
    inner: SagaStep[T, E]
    f: Callable[[T], SagaStep[U, E2]]


@dataclass(frozen=True, slots=True)
class SagaResult[T]:
    value: T
    steps_executed: int
    compensators_recorded: int


@dataclass(frozen=True, slots=True)
class SagaError[E]:
    """Failure with rollback status. rollback_complete is False if any compensator raised."""

    error: E
    step_failed: int
    compensators_run: int
    compensators_failed: int
    rollback_complete: bool


# ═══════════════════════════════════════════════════════════════════════════════
# Constructors
# ═══════════════════════════════════════════════════════════════════════════════


def step[T, E](
    action: LazyCoroResult[T, E],
    compensate: Compensator[T] | None = None,
) -> SagaStep[T, E]:
    return SagaStep(action=action, compensate=compensate)


def from_async[T, E](
    action: Callable[[], Awaitable[T]],
    on_error: Callable[[Exception], E],
    compensate: Compensator[T] | None = None,
) -> SagaStep[T, E]:
    """
    Step from an async callable; exceptions become on_error(e).

    Example:
        S.from_async(
            lambda: ledger.reserve_usage(code),
            on_error=lambda e: CheckoutError("COUPON_RESERVATION_FAILED", str(e)),
            compensate=ledger.release_usage,
        )
    """
    return SagaStep(action=L.catching_async(action, on_error=on_error), compensate=compensate)


# ═══════════════════════════════════════════════════════════════════════════════
# Execution
# ═══════════════════════════════════════════════════════════════════════════════

type Recorded = tuple[object, Compensator[object]]


async def _run_step[T, E](s: SagaStep[T, E], recorded: list[Recorded]) -> Result[T, E]:
    match await s.action:
        case Ok(value):
            if s.compensate is not None:
                recorded.append((value, s.compensate))  # type: ignore[arg-type]
            return Ok(value)
        case Error(e):
            return Error(e)


async def run_compensators(recorded: list[Recorded]) -> tuple[int, int]:
    """Undo in reverse. Returns (run, failed); a failing compensator does not stop the rest."""
    comp_run = 0
    comp_failed = 0
    for value, comp in reversed(recorded):
        try:
            await comp(value)
            comp_run += 1
        except Exception as e:
            comp_failed += 1
            logger.error("compensation failed for %r: %s", value, e)
    return comp_run, comp_failed


async def _rollback[E](error: E, step_failed: int, recorded: list[Recorded]) -> SagaError[E]:
    comp_run, comp_failed = await run_compensators(recorded)
    logger.warning(
        "saga failed at step %d, rolled back %d of %d", step_failed, comp_run, len(recorded)
    )
    return SagaError(
        error=error,
        step_failed=step_failed,
        compensators_run=comp_run,
        compensators_failed=comp_failed,
        rollback_complete=comp_failed == 0,
    )


async def run[T, E](saga: SagaStep[T, E]) -> Result[SagaResult[T], SagaError[E]]:
    recorded: list[Recorded] = []
    match await _run_step(saga, recorded):
        case Ok(value):
            return Ok(SagaResult(value, steps_executed=1, compensators_recorded=len(recorded)))
        case Error(e):
            return Error(await _rollback(e, 1, recorded))


async def run_chain[T, U, E, E2](
    chain: Then[T, U, E, E2],
) -> Result[SagaResult[U], SagaError[E | E2]]:
    """Run inner, feed its value to f, run the resulting step."""
    recorded: list[Recorded] = []

    match await _run_step(chain.inner, recorded):
        case Ok(value):
            pass
        case Error(e):
            return Error(await _rollback(e, 1, recorded))

    match await _run_step(chain.f(value), recorded):
        case Ok(final_value):
            return Ok(SagaResult(final_value, steps_executed=2, compensators_recorded=len(recorded)))
        case Error(e2):
            return Error(await _rollback(e2, 2, recorded))


__all__ = (
    "Compensator",
    "SagaStep",
    "Then",
    "SagaResult",
    "SagaError",
    "step",
    "from_async",
    "run_compensators",
    "run",
    "run_chain",
)
