"""Tests for the cooldown governor."""

import pytest

from chat_voice_bot.cooldown import CooldownGovernor


class TestStandardCooldown:
    """Tests for the inter-response cooldown."""

    def test_can_start_initially(self, clock):
        governor = CooldownGovernor(cooldown=15, clock=clock)
        assert governor.can_start()
        assert governor.cooldown_remaining() == 0.0

    def test_refuses_inside_window(self, clock):
        governor = CooldownGovernor(cooldown=15, clock=clock)
        governor.record_success()

        clock.advance(14.9)
        assert not governor.can_start()
        assert governor.cooldown_remaining() == pytest.approx(0.1)

        clock.advance(0.2)
        assert governor.can_start()

    def test_set_cooldown_applies_on_next_check(self, clock):
        governor = CooldownGovernor(cooldown=15, clock=clock)
        governor.record_success()
        clock.advance(5)
        assert not governor.can_start()

        governor.set_cooldown(3)
        assert governor.can_start()

    def test_zero_cooldown(self, clock):
        governor = CooldownGovernor(cooldown=0, clock=clock)
        governor.record_success()
        assert governor.can_start()

    def test_invalid_arguments(self, clock):
        with pytest.raises(ValueError):
            CooldownGovernor(cooldown=-1, clock=clock)
        with pytest.raises(ValueError):
            CooldownGovernor(lockout_duration=0, clock=clock)
        with pytest.raises(ValueError):
            CooldownGovernor(clock=clock).set_cooldown(-5)


class TestLockout:
    """Tests for punitive lockout."""

    def test_enter_lockout_uses_fixed_duration(self, clock):
        governor = CooldownGovernor(clock=clock)
        assert governor.enter_lockout() == 90
        assert governor.locked
        assert governor.lockout_remaining == 90

    def test_lockout_blocks_regardless_of_cooldown(self, clock):
        governor = CooldownGovernor(cooldown=0, clock=clock)
        governor.enter_lockout()
        assert not governor.can_start()

    def test_reentering_resets_not_adds(self, clock):
        governor = CooldownGovernor(lockout_duration=90, clock=clock)
        governor.enter_lockout()
        for _ in range(30):
            governor.tick()
        assert governor.lockout_remaining == 60

        governor.enter_lockout()
        assert governor.lockout_remaining == 90

    def test_tick_clears_at_zero(self, clock):
        governor = CooldownGovernor(cooldown=0, lockout_duration=3, clock=clock)
        governor.enter_lockout()
        assert governor.tick() == 2
        assert governor.tick() == 1
        assert governor.locked
        assert governor.tick() == 0
        assert not governor.locked
        assert governor.can_start()

    def test_tick_when_unlocked_is_noop(self, clock):
        governor = CooldownGovernor(clock=clock)
        assert governor.tick() == 0
        assert governor.lockout_remaining == 0

    def test_state_snapshot(self, clock):
        governor = CooldownGovernor(cooldown=10, lockout_duration=90, clock=clock)
        governor.record_success()
        clock.advance(4)
        governor.enter_lockout()

        state = governor.state()
        assert state.locked
        assert state.lockout_remaining == 90
        assert state.cooldown_remaining == pytest.approx(6.0)
        assert state.last_success == clock.now - 4
