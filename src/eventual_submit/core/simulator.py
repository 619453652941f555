"""Outcome simulation for the idempotency ledger.

The ledger does not process anything real. For every submit that is not an
idempotent replay it asks a simulator what the "backend" did:

- immediate success: the record is completed on the spot
- transient failure: the record stays pending, the client should retry
- delayed success: accepted now, completed later by a scheduled task

Simulators are stateless with respect to the ledger; the randomness source is
injected so scenarios can be reproduced.

Examples:
    Seeded simulation::

        simulator = RandomOutcomeSimulator.seeded(42)
        decision = simulator.decide(request)

    Forcing a sequence of outcomes::

        simulator = ScriptedOutcomeSimulator(
            [OutcomeDecision.transient_failure(), OutcomeDecision.immediate_success()]
        )
"""

import random
from collections.abc import Iterable
from enum import Enum
from typing import Protocol

from pydantic import BaseModel, Field, model_validator

from eventual_submit.config import SubmissionConfig
from eventual_submit.models import SubmissionRequest


class Outcome(str, Enum):
    IMMEDIATE_SUCCESS = "immediate_success"
    TRANSIENT_FAILURE = "transient_failure"
    DELAYED_SUCCESS = "delayed_success"


class OutcomeDecision(BaseModel):
    """A simulated outcome, with the completion delay for delayed successes.

    Attributes:
        outcome: Which outcome was picked.
        delay_ms: Completion delay; set only for delayed successes.
    """

    outcome: Outcome
    delay_ms: int | None = Field(default=None, ge=0)

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def validate_delay(self) -> "OutcomeDecision":
        if self.outcome is Outcome.DELAYED_SUCCESS and self.delay_ms is None:
            raise ValueError("delay_ms is required for a delayed success")
        if self.outcome is not Outcome.DELAYED_SUCCESS and self.delay_ms is not None:
            raise ValueError("delay_ms is only allowed for a delayed success")
        return self

    @classmethod
    def immediate_success(cls) -> "OutcomeDecision":
        return cls(outcome=Outcome.IMMEDIATE_SUCCESS)

    @classmethod
    def transient_failure(cls) -> "OutcomeDecision":
        return cls(outcome=Outcome.TRANSIENT_FAILURE)

    @classmethod
    def delayed_success(cls, delay_ms: int) -> "OutcomeDecision":
        return cls(outcome=Outcome.DELAYED_SUCCESS, delay_ms=delay_ms)


class OutcomeSimulator(Protocol):
    """Anything that can decide the outcome of a submit."""

    def decide(self, request: SubmissionRequest) -> OutcomeDecision: ...


class RandomOutcomeSimulator:
    """Weighted random outcomes drawn from an injectable ``random.Random``.

    Attributes:
        config: Supplies the outcome weights and delay window.
        rng: Randomness source.
    """

    def __init__(
        self,
        config: SubmissionConfig | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.config = config or SubmissionConfig()
        self.rng = rng or random.Random()

    @classmethod
    def seeded(cls, seed: int, config: SubmissionConfig | None = None) -> "RandomOutcomeSimulator":
        return cls(config=config, rng=random.Random(seed))

    def decide(self, request: SubmissionRequest) -> OutcomeDecision:
        """Pick an outcome for ``request``.

        The request itself does not influence the draw.

        Returns:
            The decision; delayed successes carry a delay drawn uniformly
            from [min_delay_ms, max_delay_ms).
        """
        config = self.config
        total = config.success_weight + config.transient_weight + config.delayed_weight
        roll = self.rng.random() * total

        if roll < config.success_weight:
            return OutcomeDecision.immediate_success()
        if roll < config.success_weight + config.transient_weight:
            return OutcomeDecision.transient_failure()
        # Zero-weight outcomes must never be picked, even on float edge cases
        if config.delayed_weight == 0:
            if config.transient_weight > 0:
                return OutcomeDecision.transient_failure()
            return OutcomeDecision.immediate_success()
        delay_ms = self.rng.randrange(config.min_delay_ms, config.max_delay_ms)
        return OutcomeDecision.delayed_success(delay_ms)


class ScriptedOutcomeSimulator:
    """Replays a fixed sequence of decisions, then repeats the last one.

    Useful for reproducing a specific scenario against the real ledger.

    Attributes:
        calls: Number of decisions handed out so far.
    """

    def __init__(self, decisions: Iterable[OutcomeDecision]) -> None:
        self._decisions = list(decisions)
        if not self._decisions:
            raise ValueError("ScriptedOutcomeSimulator needs at least one decision")
        self.calls = 0

    @classmethod
    def always(cls, decision: OutcomeDecision) -> "ScriptedOutcomeSimulator":
        return cls([decision])

    def decide(self, request: SubmissionRequest) -> OutcomeDecision:
        index = min(self.calls, len(self._decisions) - 1)
        self.calls += 1
        return self._decisions[index]
