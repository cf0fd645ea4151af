"""Tests for the energy model: clamping, fatigue, costs and gains, the sleep cycle."""

import random

import pytest

from openentity.energy import EnergyService, state_for


@pytest.fixture
def energy(cache, clock):
    return EnergyService(cache, clock=clock)


# ── level ────────────────────────────────────────────────────────────────


def test_default_energy(energy):
    assert energy.get_energy() == pytest.approx(0.7)
    assert energy.get_energy_percent() == 70


def test_modify_energy_is_clamped(energy):
    rng = random.Random(1234)
    for _ in range(200):
        level = energy.modify_energy(rng.uniform(-0.8, 0.8), "random walk")
        assert 0.0 <= level <= 1.0

    assert energy.modify_energy(5.0, "overflow") == 1.0
    assert energy.modify_energy(-5.0, "underflow") == 0.0


def test_set_energy_clamps_and_logs(energy):
    energy.set_energy(1.7, "manual")
    assert energy.get_energy() == 1.0
    log = energy.get_energy_log()
    assert log[-1]["reason"] == "manual"
    assert log[-1]["to"] == 1.0


def test_states():
    assert state_for(0.95) == "energized"
    assert state_for(0.75) == "alert"
    assert state_for(0.5) == "normal"
    assert state_for(0.3) == "tired"
    assert state_for(0.2) == "exhausted"
    assert state_for(0.1) == "depleted"


def test_energy_state_shape(energy):
    state = energy.get_energy_state()
    assert state["state"] == "alert"
    assert state["percent"] == 70
    assert state["needs_sleep"] is False
    assert state["description"] == "Wide awake and focused."


def test_energy_state_german(cache, clock):
    energy = EnergyService(cache, clock=clock, lang="de")
    assert energy.get_energy_state()["description"] == "Hellwach und konzentriert."


# ── fatigue ──────────────────────────────────────────────────────────────


def test_fatigue_accrues_over_time(energy, clock):
    energy.get_energy()
    clock.advance(hours=5)
    assert energy.get_energy() == pytest.approx(0.7 - 5 * 0.04)


def test_fatigue_ignores_short_intervals(energy, clock):
    energy.get_energy()
    clock.advance(minutes=2)
    assert energy.get_energy() == pytest.approx(0.7)


def test_hours_until_depleted(energy):
    energy.set_energy(0.4)
    assert energy.get_hours_until_depleted() == pytest.approx(10.0)
    energy.set_energy(0.0)
    assert energy.get_hours_until_depleted() == 0.0


# ── costs / gains ────────────────────────────────────────────────────────


def test_costs(energy):
    energy.set_energy(0.5)
    energy.cost_tool_execution("memory_search")
    assert energy.get_energy() == pytest.approx(0.48)
    energy.cost_thought(1.0)
    assert energy.get_energy() == pytest.approx(0.465)
    energy.cost_conversation()
    assert energy.get_energy() == pytest.approx(0.455)


def test_gains(energy):
    energy.set_energy(0.5)
    energy.gain_goal_progress(20)
    assert energy.get_energy() == pytest.approx(0.56)
    energy.gain_goal_completed("write tests")
    assert energy.get_energy() == pytest.approx(0.71)
    energy.gain_positive_interaction()
    energy.gain_memory_recall()
    assert energy.get_energy() == pytest.approx(0.735)


# ── sleep cycle ──────────────────────────────────────────────────────────


@pytest.mark.parametrize("hours_asleep", [0, 0.5, 1, 3, 8, 20])
def test_wake_never_below_half(energy, clock, hours_asleep):
    energy.set_energy(0.05)
    energy.start_sleep()
    clock.advance(hours=hours_asleep)
    assert energy.wake() >= 0.5


def test_sleep_recovers_energy(energy, clock):
    energy.set_energy(0.4)
    energy.start_sleep()
    clock.advance(hours=2)
    level = energy.wake()
    assert 0.5 <= level <= 1.0
    assert energy.get_hours_awake() == 0.0


def test_wake_without_sleep_record_resets_to_default(energy):
    energy.set_energy(0.2)
    assert energy.wake() == pytest.approx(0.7)


def test_hours_awake_tracks_wake_time(energy, clock):
    energy.wake()
    clock.advance(hours=3, minutes=30)
    assert energy.get_hours_awake() == pytest.approx(3.5)


def test_should_sleep(energy, clock):
    energy.wake()
    energy.set_energy(0.1)
    assert energy.should_sleep()

    energy.set_energy(0.9)
    assert not energy.should_sleep()


def test_is_rested(energy, clock):
    assert energy.is_rested()
    energy.set_energy(0.4)
    energy.start_sleep()
    assert not energy.is_rested()
    clock.advance(hours=5)
    assert energy.is_rested()


def test_reset(energy):
    energy.set_energy(0.1)
    energy.start_sleep()
    energy.reset()
    assert energy.get_energy() == pytest.approx(0.7)
    assert energy.get_hours_awake() == 0.0
