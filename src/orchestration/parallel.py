"""
Run many independent simulations on a process pool.

**Conceptual**: A single simulation is strictly single-threaded: one broker,
one ledger, one caller. Throughput comes from running many simulations side
by side (parameter sweeps, one run per asset universe, ...). Each
SimulationJob carries everything a worker needs to build its own policy and
broker, so jobs share no mutable state.

**Pickling**: Jobs cross process boundaries. `policy_factory` must therefore
be a module-level callable (a class or a top-level function), not a lambda or
closure. Events and results pickle as plain data.
"""

import os
from concurrent.futures import ProcessPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Sequence

from loguru import logger

from src.backtesting.engine import BacktestParams, BacktestResult, run_backtest
from src.data.schemas import Event
from src.strategies.base import Policy


@dataclass(frozen=True)
class SimulationJob:
    """
    One independent backtest.

    Attributes:
        name: Unique key for the result mapping.
        events: Event stream for this run.
        policy_factory: Zero-argument callable returning a fresh Policy.
        params: Broker and metric parameters for this run.
    """
    name: str
    events: Sequence[Event]
    policy_factory: Callable[[], Policy]
    params: BacktestParams = field(default_factory=BacktestParams)


def run_job(job: SimulationJob) -> BacktestResult:
    """Build a fresh policy and broker for `job` and run it."""
    return run_backtest(job.events, job.policy_factory(), job.params)


def _resolve_workers(n_jobs: int, max_workers: int | None) -> int:
    cpu = os.cpu_count() or 1
    if max_workers is None:
        return max(1, min(cpu, n_jobs))
    return max(1, min(max_workers, n_jobs))


def run_many(jobs: Sequence[SimulationJob], max_workers: int | None = None) -> Dict[str, BacktestResult]:
    """
    Run every job and return results keyed by job name.

    Runs in-process when one worker suffices, otherwise on a
    ProcessPoolExecutor. A failing job raises its exception here; jobs that
    already finished are discarded with it.

    Args:
        jobs: Jobs to run. Names must be unique.
        max_workers: Upper bound on worker processes. Defaults to the CPU count.

    Returns:
        Mapping job name -> BacktestResult, in the order of `jobs`.

    Raises:
        ValueError: If two jobs share a name.
    """
    jobs = list(jobs)
    names = [job.name for job in jobs]
    if len(set(names)) != len(names):
        raise ValueError(f"Job names must be unique, got {names}")
    if not jobs:
        logger.info("[run_many] no jobs to run")
        return {}

    workers = _resolve_workers(len(jobs), max_workers)
    logger.info(f"[run_many] start total={len(jobs)} workers={workers}")

    if workers == 1:
        return {job.name: run_job(job) for job in jobs}

    results: Dict[str, BacktestResult] = {}
    with ProcessPoolExecutor(max_workers=workers) as pool:
        futures = {pool.submit(run_job, job): job.name for job in jobs}
        for future in as_completed(futures):
            name = futures[future]
            results[name] = future.result()
            logger.debug(f"[run_many] finished {name}")

    return {name: results[name] for name in names}


def sweep_jobs(
    name: str,
    events: Sequence[Event],
    policy_factory: Callable[[], Policy],
    param_grid: List[BacktestParams],
) -> List[SimulationJob]:
    """One job per parameter set, named `{name}-{i}`."""
    return [
        SimulationJob(f"{name}-{i}", events, policy_factory, params)
        for i, params in enumerate(param_grid)
    ]
