"""
Parameter search strategies.

A strategy decides which parameter value to measure next from the verdict
of the value just measured. Strategies are stateless: everything they need
between steps lives in an immutable SearchState, so a search can be
checkpointed after any step and resumed later with identical decisions.

Supported strategies:
- bisection: halve [low, high] until it is no wider than the resolution
- sweep: measure a fixed list of values once each
- adaptive: walk from a seed, growing the step while results stay good
  and halving it after a direction change
"""

import logging
import math
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Dict, Optional, Tuple, Type

from resctl_bench.errors import ConfigError
from resctl_bench.models.scenario import SearchConfig, validate_search
from resctl_bench.models.search_state import SearchState
from resctl_bench.models.verdict import ConvergenceVerdict

LOGGER = logging.getLogger("resctl_bench.core.search")

# Relative slack on the resolution check so float bounds like 0.1 + 0.2 still terminate
RESOLUTION_SLACK = 1e-9


def is_good(verdict: ConvergenceVerdict, key_value: Optional[float], config: SearchConfig) -> bool:
    """
    Decide whether a measured parameter counts as good.

    A parameter is good when its rounds converged and, if a target is set,
    the key statistic satisfies the objective. Diverged and inconclusive
    parameters are always bad.
    """
    if verdict != ConvergenceVerdict.CONVERGED:
        return False
    if config.target is None:
        return True
    if key_value is None:
        return False
    if config.objective == "below":
        return key_value <= config.target
    return key_value >= config.target


def bisection_step_bound(low: float, high: float, resolution: float) -> int:
    """Maximum number of probes a bisection over [low, high] needs."""
    k = (high - low) / resolution
    if k <= 1:
        return 0
    return math.ceil(math.log2(k) - RESOLUTION_SLACK)


class SearchStrategy(ABC):
    """Base class for search strategies."""

    name = ""

    def __init__(self, config: SearchConfig):
        self.config = config

    @property
    def direction(self) -> int:
        """+1 if larger parameters are preferred, -1 otherwise."""
        return 1 if self.config.favorable == "high" else -1

    @abstractmethod
    def initial_state(self) -> SearchState:
        """Build the state for the first parameter to measure."""
        pass

    @abstractmethod
    def advance(self, state: SearchState, good: bool) -> SearchState:
        """Move past state.current given whether it was good."""
        pass

    def more_favorable(self, a: Optional[float], b: float) -> float:
        if a is None:
            return b
        return max(a, b) if self.direction > 0 else min(a, b)

    def step(
        self,
        state: SearchState,
        verdict: ConvergenceVerdict,
        key_value: Optional[float] = None,
    ) -> Tuple[SearchState, Optional[float]]:
        """
        Record the outcome for state.current and pick the next parameter.

        Args:
            state: State whose current parameter was just measured
            verdict: Final verdict for that parameter
            key_value: Key statistic of the last round at that parameter

        Returns:
            Tuple of (new state, next parameter or None when the search is done)
        """
        if state.done or state.current is None:
            return replace(state, done=True, current=None), None

        good = is_good(verdict, key_value, self.config)
        best = self.more_favorable(state.best, state.current) if good else state.best
        state = replace(state, best=best, steps_taken=state.steps_taken + 1)

        LOGGER.debug(
            "%s step %d: %s -> %s (%s)",
            self.name, state.steps_taken, state.current, "good" if good else "bad", verdict.value,
        )

        new_state = self.advance(state, good)
        if not new_state.done and new_state.budget_exhausted:
            LOGGER.info("Search stopped after max_steps=%d", new_state.max_steps)
            new_state = replace(new_state, done=True, current=None)
        return new_state, new_state.current


class BisectionSearch(SearchStrategy):
    """
    Bisection over [low, high] on a grid of `resolution`.

    Probes are snapped to low + j * resolution, so the number of probes is
    bounded by ceil(log2((high - low) / resolution)).
    """

    name = "bisection"

    def initial_state(self) -> SearchState:
        state = SearchState(
            strategy=self.name,
            current=None,
            low=float(self.config.low),
            high=float(self.config.high),
            resolution=float(self.config.resolution),
            max_steps=self.config.max_steps,
        )
        return self._next_probe(state)

    def advance(self, state: SearchState, good: bool) -> SearchState:
        # The favorable side of a good probe is still open, the other side is settled
        if good == (self.direction > 0):
            state = replace(state, low=state.current)
        else:
            state = replace(state, high=state.current)
        return self._next_probe(state)

    def _next_probe(self, state: SearchState) -> SearchState:
        width = state.high - state.low
        if width <= state.resolution * (1 + RESOLUTION_SLACK):
            return replace(state, done=True, current=None)
        k = width / state.resolution
        j = max(1, math.floor(k / 2 + 0.5))
        mid = round(state.low + j * state.resolution, 12)
        return replace(state, current=mid)


class FixedSweepSearch(SearchStrategy):
    """Measures every configured value once, in order."""

    name = "sweep"

    def initial_state(self) -> SearchState:
        values = [float(v) for v in self.config.values]
        return SearchState(
            strategy=self.name,
            current=values[0],
            values=values,
            index=0,
            max_steps=self.config.max_steps,
        )

    def advance(self, state: SearchState, good: bool) -> SearchState:
        index = state.index + 1
        if index >= len(state.values):
            return replace(state, index=index, done=True, current=None)
        return replace(state, index=index, current=state.values[index])


class AdaptiveStepSearch(SearchStrategy):
    """
    Step search from a seed value.

    After a good parameter the search moves in the favorable direction,
    after a bad one it backs off. The step grows by `growth` while good
    results keep coming and no reversal has happened yet; every other step
    halves it. The search ends once a halved step drops below the
    resolution, or when it is pinned against a clamp.
    """

    name = "adaptive"

    def initial_state(self) -> SearchState:
        return SearchState(
            strategy=self.name,
            current=float(self.config.seed),
            low=float(self.config.low),
            high=float(self.config.high),
            resolution=float(self.config.resolution),
            step=float(self.config.initial_step),
            max_steps=self.config.max_steps,
        )

    def advance(self, state: SearchState, good: bool) -> SearchState:
        sign = 1 if good else -1
        reversals = state.reversals
        if state.last_sign != 0 and sign != state.last_sign:
            reversals += 1

        step = state.step
        if good and reversals == 0:
            if state.last_sign == 1:
                step = step * self.config.growth
        else:
            step = step / 2
            if step < state.resolution:
                return replace(state, step=step, last_sign=sign, reversals=reversals,
                               done=True, current=None)

        target = state.current + sign * self.direction * step
        target = round(min(max(target, state.low), state.high), 12)
        if target == state.current:
            return replace(state, step=step, last_sign=sign, reversals=reversals,
                           done=True, current=None)
        return replace(state, current=target, step=step, last_sign=sign, reversals=reversals)


SEARCH_STRATEGIES: Dict[str, Type[SearchStrategy]] = {
    BisectionSearch.name: BisectionSearch,
    FixedSweepSearch.name: FixedSweepSearch,
    AdaptiveStepSearch.name: AdaptiveStepSearch,
}


def create_search_strategy(config: SearchConfig) -> SearchStrategy:
    """
    Create the strategy named by config.strategy.

    Raises:
        ConfigError: If the strategy is unknown or its settings are invalid
    """
    strategy_cls = SEARCH_STRATEGIES.get(config.strategy)
    if strategy_cls is None:
        raise ConfigError(
            f"Unknown search strategy '{config.strategy}'. "
            f"Supported strategies: {', '.join(SEARCH_STRATEGIES)}"
        )
    validate_search(config)
    return strategy_cls(config)
