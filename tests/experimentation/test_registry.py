"""Tests for experiment creation, lookup and lifecycle transitions."""
import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest
from src.experimentation import (
    ExperimentConfig,
    ExperimentEngine,
    ExperimentNotFound,
    ExperimentNotRunnable,
    ExperimentNotStoppable,
    ExperimentStatus,
    InMemoryStore,
    InvalidExperimentConfig,
    InvalidVariantWeights,
)


def test_create_experiment_is_draft(engine, three_arm_config):
    exp = engine.create_experiment(three_arm_config)
    assert exp.status == ExperimentStatus.DRAFT
    assert exp.id.startswith("exp_")
    assert exp.variants == {"control": 50, "variantA": 30, "variantB": 20}
    assert engine.get_experiment(exp.id).name == "Script Template Optimization"


def test_weights_must_sum_to_100(engine):
    """60/30/20 sums to 110 and is rejected."""
    with pytest.raises(InvalidVariantWeights, match="sum to 100"):
        engine.create_experiment(ExperimentConfig(
            name="Bad", variants={"control": 60, "variantA": 30, "variantB": 20},
        ))


def test_needs_at_least_two_variants(engine):
    with pytest.raises(InvalidVariantWeights, match="At least 2"):
        engine.create_experiment(ExperimentConfig(name="One", variants={"control": 100}))


@pytest.mark.parametrize("variants", [
    {"control": 50.5, "variantA": 49.5},
    {"control": 120, "variantA": -20},
])
def test_weights_must_be_non_negative_integers(engine, variants):
    with pytest.raises(InvalidVariantWeights):
        engine.create_experiment(ExperimentConfig(name="Bad", variants=variants))


def test_invalid_variant_weights_is_value_error():
    assert issubclass(InvalidVariantWeights, ValueError)


def test_control_must_be_a_variant(engine):
    with pytest.raises(InvalidExperimentConfig, match="Control variant"):
        engine.create_experiment(ExperimentConfig(name="No control", variants={"a": 50, "b": 50}))


def test_custom_control_variant(engine):
    exp = engine.create_experiment(ExperimentConfig(
        name="Custom control", variants={"a": 50, "b": 50}, control_variant="a",
    ))
    assert exp.control_variant == "a"


def test_name_required(engine):
    with pytest.raises(InvalidExperimentConfig, match="name"):
        engine.create_experiment(ExperimentConfig(name=" ", variants={"control": 50, "variantA": 50}))


def test_duplicate_id_rejected(engine):
    config = ExperimentConfig(name="X", variants={"control": 50, "variantA": 50}, experiment_id="exp_fixed")
    engine.create_experiment(config)
    with pytest.raises(InvalidExperimentConfig, match="already exists"):
        engine.create_experiment(config)


def test_get_unknown_experiment(engine):
    with pytest.raises(ExperimentNotFound):
        engine.get_experiment("exp_missing")


def test_list_filters_by_scope_and_status(engine):
    a = engine.create_experiment(ExperimentConfig(
        name="A", scope_key="script:investing", variants={"control": 50, "variantA": 50},
    ))
    b = engine.create_experiment(ExperimentConfig(
        name="B", scope_key="voice:travel", variants={"control": 50, "variantA": 50},
    ))
    engine.start_experiment(b.id)
    assert [e.id for e in engine.list_experiments()] == [a.id, b.id]
    assert [e.id for e in engine.list_experiments(scope_key="script:investing")] == [a.id]
    assert [e.id for e in engine.list_experiments(status=ExperimentStatus.RUNNING)] == [b.id]
    assert [e.id for e in engine.list_experiments(status="draft")] == [a.id]


def test_returned_experiment_is_a_copy(engine, three_arm_config):
    """Mutating a returned experiment does not touch stored state."""
    exp = engine.create_experiment(three_arm_config)
    exp.status = ExperimentStatus.RUNNING
    assert engine.get_experiment(exp.id).status == ExperimentStatus.DRAFT


def test_start_sets_running(engine, clock, three_arm_config):
    exp = engine.create_experiment(three_arm_config)
    started = engine.start_experiment(exp.id)
    assert started.status == ExperimentStatus.RUNNING
    assert started.actual_start_date == clock.now


def test_start_running_experiment_fails(engine, three_arm_config):
    exp = engine.create_experiment(three_arm_config)
    engine.start_experiment(exp.id)
    with pytest.raises(ExperimentNotRunnable):
        engine.start_experiment(exp.id)


def test_start_unknown_experiment(engine):
    with pytest.raises(ExperimentNotFound):
        engine.start_experiment("exp_missing")


def test_stop_draft_experiment_fails(engine, three_arm_config):
    exp = engine.create_experiment(three_arm_config)
    with pytest.raises(ExperimentNotStoppable):
        engine.stop_experiment(exp.id, reason="manual_stop")


def test_stop_requires_reason(engine, three_arm_config):
    exp = engine.create_experiment(three_arm_config)
    engine.start_experiment(exp.id)
    with pytest.raises(ValueError, match="reason"):
        engine.stop_experiment(exp.id, reason="")


def test_stop_before_duration_is_stopped(engine, clock, three_arm_config):
    exp = engine.create_experiment(three_arm_config)
    engine.start_experiment(exp.id)
    clock.advance(days=3)
    stopped = engine.stop_experiment(exp.id, reason="manual_stop")
    assert stopped.status == ExperimentStatus.STOPPED
    assert stopped.stop_reason == "manual_stop"
    assert stopped.actual_end_date == clock.now


def test_stop_after_duration_is_completed(engine, clock, three_arm_config):
    exp = engine.create_experiment(three_arm_config)
    engine.start_experiment(exp.id)
    clock.advance(days=15)
    assert engine.stop_experiment(exp.id, reason="done").status == ExperimentStatus.COMPLETED


def test_terminal_states_never_restart(engine, three_arm_config):
    exp = engine.create_experiment(three_arm_config)
    engine.start_experiment(exp.id)
    engine.stop_experiment(exp.id, reason="manual_stop", completed=True)
    assert engine.get_experiment(exp.id).status == ExperimentStatus.COMPLETED
    with pytest.raises(ExperimentNotRunnable):
        engine.start_experiment(exp.id)
    with pytest.raises(ExperimentNotStoppable):
        engine.stop_experiment(exp.id, reason="again")


class SlowReadStore(InMemoryStore):
    """Holds every experiment read long enough for two transitions to overlap."""

    def get_experiment(self, experiment_id):
        experiment = super().get_experiment(experiment_id)
        time.sleep(0.05)
        return experiment


def _race(fn, args):
    barrier = threading.Barrier(len(args))

    def run(arg):
        barrier.wait()
        return fn(arg)

    with ThreadPoolExecutor(max_workers=len(args)) as pool:
        return list(pool.map(run, args))


def test_concurrent_stops_have_one_winner(clock, three_arm_config):
    engine = ExperimentEngine(SlowReadStore(), clock=clock)
    exp = engine.create_experiment(three_arm_config)
    engine.start_experiment(exp.id)

    def stop(reason):
        try:
            engine.stop_experiment(exp.id, reason=reason)
            return reason
        except ExperimentNotStoppable:
            return None

    outcomes = _race(stop, ["first", "second"])
    winners = [o for o in outcomes if o is not None]
    assert len(winners) == 1
    stored = engine.get_experiment(exp.id)
    assert stored.status == ExperimentStatus.STOPPED
    assert stored.stop_reason == winners[0]


def test_concurrent_starts_have_one_winner(clock, three_arm_config):
    engine = ExperimentEngine(SlowReadStore(), clock=clock)
    exp = engine.create_experiment(three_arm_config)

    def start(_):
        try:
            engine.start_experiment(exp.id)
            return True
        except ExperimentNotRunnable:
            return False

    assert sorted(_race(start, [0, 1])) == [False, True]
    assert engine.get_experiment(exp.id).status == ExperimentStatus.RUNNING


def test_concurrent_creates_with_same_id(clock):
    engine = ExperimentEngine(SlowReadStore(), clock=clock)
    config = ExperimentConfig(name="X", variants={"control": 50, "variantA": 50}, experiment_id="exp_fixed")

    def create(_):
        try:
            engine.create_experiment(config)
            return True
        except InvalidExperimentConfig:
            return False

    assert sorted(_race(create, [0, 1])) == [False, True]
    assert [e.id for e in engine.list_experiments()] == ["exp_fixed"]
