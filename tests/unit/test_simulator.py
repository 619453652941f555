"""Unit and property-based tests for outcome simulators."""

import random
from collections import Counter

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st
from pydantic import ValidationError

from eventual_submit.config import SubmissionConfig
from eventual_submit.core.simulator import (
    Outcome,
    OutcomeDecision,
    RandomOutcomeSimulator,
    ScriptedOutcomeSimulator,
)
from eventual_submit.models import SubmissionRequest


@pytest.fixture
def request_():
    return SubmissionRequest.parse("sim-1", "alice@example.com", "10")


class TestOutcomeDecision:
    def test_delayed_requires_delay(self):
        with pytest.raises(ValidationError):
            OutcomeDecision(outcome=Outcome.DELAYED_SUCCESS)

    def test_delay_only_for_delayed(self):
        with pytest.raises(ValidationError):
            OutcomeDecision(outcome=Outcome.IMMEDIATE_SUCCESS, delay_ms=10)

    def test_constructors(self):
        assert OutcomeDecision.immediate_success().outcome is Outcome.IMMEDIATE_SUCCESS
        assert OutcomeDecision.transient_failure().outcome is Outcome.TRANSIENT_FAILURE
        delayed = OutcomeDecision.delayed_success(6000)
        assert delayed.outcome is Outcome.DELAYED_SUCCESS
        assert delayed.delay_ms == 6000


class TestRandomOutcomeSimulator:
    def test_seeded_is_reproducible(self, request_):
        a = RandomOutcomeSimulator.seeded(42)
        b = RandomOutcomeSimulator.seeded(42)
        assert [a.decide(request_) for _ in range(50)] == [b.decide(request_) for _ in range(50)]

    def test_only_success_weight(self, request_):
        config = SubmissionConfig(success_weight=1, transient_weight=0, delayed_weight=0)
        simulator = RandomOutcomeSimulator(config, rng=random.Random(1))
        outcomes = {simulator.decide(request_).outcome for _ in range(200)}
        assert outcomes == {Outcome.IMMEDIATE_SUCCESS}

    def test_only_transient_weight(self, request_):
        config = SubmissionConfig(success_weight=0, transient_weight=1, delayed_weight=0)
        simulator = RandomOutcomeSimulator(config, rng=random.Random(1))
        outcomes = {simulator.decide(request_).outcome for _ in range(200)}
        assert outcomes == {Outcome.TRANSIENT_FAILURE}

    def test_only_delayed_weight(self, request_):
        config = SubmissionConfig(success_weight=0, transient_weight=0, delayed_weight=1)
        simulator = RandomOutcomeSimulator(config, rng=random.Random(1))
        decisions = [simulator.decide(request_) for _ in range(200)]
        assert {d.outcome for d in decisions} == {Outcome.DELAYED_SUCCESS}
        assert all(5000 <= d.delay_ms < 10000 for d in decisions)

    def test_default_weights_roughly_hold(self, request_):
        simulator = RandomOutcomeSimulator.seeded(7)
        counts = Counter(simulator.decide(request_).outcome for _ in range(4000))
        assert 0.45 < counts[Outcome.IMMEDIATE_SUCCESS] / 4000 < 0.55
        assert 0.20 < counts[Outcome.TRANSIENT_FAILURE] / 4000 < 0.30
        assert 0.20 < counts[Outcome.DELAYED_SUCCESS] / 4000 < 0.30

    def test_injected_rng_drives_choice(self, request_):
        class FixedRandom(random.Random):
            def __init__(self, value):
                super().__init__(0)
                self.value = value

            def random(self):
                return self.value

        config = SubmissionConfig()
        assert (
            RandomOutcomeSimulator(config, FixedRandom(0.1)).decide(request_).outcome
            is Outcome.IMMEDIATE_SUCCESS
        )
        assert (
            RandomOutcomeSimulator(config, FixedRandom(0.6)).decide(request_).outcome
            is Outcome.TRANSIENT_FAILURE
        )
        assert (
            RandomOutcomeSimulator(config, FixedRandom(0.9)).decide(request_).outcome
            is Outcome.DELAYED_SUCCESS
        )

    @settings(max_examples=50)
    @given(
        seed=st.integers(min_value=0, max_value=2**32),
        weights=st.tuples(
            st.floats(min_value=0, max_value=10),
            st.floats(min_value=0, max_value=10),
            st.floats(min_value=0, max_value=10),
        ).filter(lambda w: sum(w) > 0.001),
        min_delay=st.integers(min_value=0, max_value=5000),
        window=st.integers(min_value=1, max_value=5000),
    )
    def test_never_picks_zero_weight_outcome(self, seed, weights, min_delay, window):
        config = SubmissionConfig(
            success_weight=weights[0],
            transient_weight=weights[1],
            delayed_weight=weights[2],
            min_delay_ms=min_delay,
            max_delay_ms=min_delay + window,
        )
        simulator = RandomOutcomeSimulator.seeded(seed, config)
        request = SubmissionRequest.parse("p-1", "alice@example.com", "1")
        for _ in range(20):
            decision = simulator.decide(request)
            weight = {
                Outcome.IMMEDIATE_SUCCESS: weights[0],
                Outcome.TRANSIENT_FAILURE: weights[1],
                Outcome.DELAYED_SUCCESS: weights[2],
            }[decision.outcome]
            assert weight > 0
            if decision.outcome is Outcome.DELAYED_SUCCESS:
                assert min_delay <= decision.delay_ms < min_delay + window


class TestScriptedOutcomeSimulator:
    def test_replays_in_order_then_repeats_last(self, request_):
        simulator = ScriptedOutcomeSimulator(
            [OutcomeDecision.transient_failure(), OutcomeDecision.immediate_success()]
        )
        outcomes = [simulator.decide(request_).outcome for _ in range(4)]
        assert outcomes == [
            Outcome.TRANSIENT_FAILURE,
            Outcome.IMMEDIATE_SUCCESS,
            Outcome.IMMEDIATE_SUCCESS,
            Outcome.IMMEDIATE_SUCCESS,
        ]
        assert simulator.calls == 4

    def test_always(self, request_):
        simulator = ScriptedOutcomeSimulator.always(OutcomeDecision.delayed_success(6000))
        assert simulator.decide(request_).delay_ms == 6000
        assert simulator.decide(request_).delay_ms == 6000

    def test_empty_script_rejected(self):
        with pytest.raises(ValueError):
            ScriptedOutcomeSimulator([])
