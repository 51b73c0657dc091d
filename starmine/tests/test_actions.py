"""
Tests for the action handlers.

Covers:
- Reference purchase scenario (Alice buys one miner with star)
- Pool / profit laws for both purchase currencies
- Renewal eligibility and pricing order
- Removal without settlement
- Daily voting rules
- No-op on unknown users and miners
"""

import pytest

from starmine.actions import (
    add_user,
    apply_action,
    buy_miner_with_star,
    buy_miner_with_starry,
    can_renew,
    remove_miner,
    renew_miner,
    vote,
)
from starmine.reward import period_reward
from starmine.state import PurchaseType


class TestAddUser:

    def test_add_user_assigns_fresh_id(self, empty_state, env):
        state = add_user(empty_state, "Alice", env)
        state = add_user(state, "Bob", env)

        assert set(state.users) == {"t-1", "t-2"}
        assert state.users["t-1"].name == "Alice"
        assert state.users["t-2"].miners == ()
        assert state.users["t-2"].last_vote_time is None

    def test_add_user_leaves_input_untouched(self, empty_state, env):
        add_user(empty_state, "Alice", env)
        assert empty_state.users == {}


class TestBuyWithStar:

    def test_reference_scenario(self, params, alice_with_miner):
        state = alice_with_miner
        assert state.miner_total == 1
        assert state.star_pool == pytest.approx(350)
        assert state.starry_pool == pytest.approx(3500)
        assert state.starry_total == pytest.approx(3500)
        assert state.platform_profit == pytest.approx(150)
        assert state.mining_power_accumulated == pytest.approx(1000)

        miner = state.users["t-1"].miners[0]
        # 0.1 * 3500 * 1000 / (1000 * 1 + 1 * 1000) * 3 * 24
        assert miner.mining_period_reward == pytest.approx(12600)
        assert miner.remaining_reward == pytest.approx(12600)
        assert miner.accumulated_reward == 0
        assert miner.purchase_type is PurchaseType.STAR
        assert miner.purchase_price == 500
        assert miner.elo == 1000
        assert miner.last_renewal_time is None
        assert miner.renewal_count == 0

    def test_investment_and_timestamp(self, alice_with_miner, env):
        user = alice_with_miner.users["t-1"]
        assert user.total_investment == pytest.approx(500)
        assert user.miners[0].purchase_time == env.clock.now()
        assert user.miners[0].id == "t-2"

    def test_pool_a_and_profit_law(self, params, alice_state, env):
        after = buy_miner_with_star(params, alice_state, "t-1", env)
        assert after.star_pool - alice_state.star_pool == pytest.approx(500 * 0.7)
        assert after.platform_profit - alice_state.platform_profit == pytest.approx(500 * 0.3)

    def test_second_miner_priced_on_post_purchase_state(self, params, alice_with_miner, env):
        state = buy_miner_with_star(params, alice_with_miner, "t-1", env)
        second = state.users["t-1"].miners[1]
        assert second.mining_period_reward == pytest.approx(period_reward(params, state, 1000))

    def test_unknown_user_is_noop(self, params, alice_state, env):
        assert buy_miner_with_star(params, alice_state, "nobody", env) is alice_state

    def test_input_state_not_mutated(self, params, alice_state, env):
        buy_miner_with_star(params, alice_state, "t-1", env)
        assert alice_state.miner_total == 0
        assert alice_state.users["t-1"].miners == ()
        assert alice_state.star_pool == 0


class TestBuyWithStarry:

    def test_starry_purchase_economics(self, params, alice_state, env):
        state = buy_miner_with_starry(params, alice_state, "t-1", env)

        assert state.miner_total == 1
        assert state.star_pool == pytest.approx(-150)
        assert state.starry_pool == pytest.approx(3500)
        assert state.starry_total == pytest.approx(-1500)
        assert state.platform_profit == pytest.approx(150)
        assert state.mining_power_accumulated == pytest.approx(1000)

        user = state.users["t-1"]
        miner = user.miners[0]
        assert miner.purchase_type is PurchaseType.STARRY
        assert miner.purchase_price == pytest.approx(5000)
        assert user.total_investment == pytest.approx(5000)
        assert miner.mining_period_reward == pytest.approx(12600)

    def test_profit_identical_across_currencies(self, params, alice_state, env):
        via_star = buy_miner_with_star(params, alice_state, "t-1", env)
        via_starry = buy_miner_with_starry(params, alice_state, "t-1", env)

        assert via_star.platform_profit == pytest.approx(via_starry.platform_profit)
        assert via_star.starry_pool == pytest.approx(via_starry.starry_pool)
        assert via_star.starry_total > via_starry.starry_total

    def test_unknown_user_is_noop(self, params, alice_state, env):
        assert buy_miner_with_starry(params, alice_state, "nobody", env) is alice_state


class TestRenewMiner:

    def test_never_renewed_miner_renews_immediately(self, params, alice_with_miner, env):
        state = renew_miner(params, alice_with_miner, "t-1", "t-2", env)

        miner = state.users["t-1"].miners[0]
        assert miner.renewal_count == 1
        assert miner.last_renewal_time == env.clock.now()
        assert state.platform_profit == pytest.approx(150 + 3)
        assert state.star_pool == pytest.approx(350 + 7)
        assert state.starry_pool == pytest.approx(3500 + 70)
        assert state.starry_total == pytest.approx(3500 + 70)
        assert state.users["t-1"].total_investment == pytest.approx(510)

    def test_renewal_priced_before_top_up(self, params, alice_with_miner, env):
        state = renew_miner(params, alice_with_miner, "t-1", "t-2", env)
        miner = state.users["t-1"].miners[0]

        expected = period_reward(params, alice_with_miner, 1000)
        assert miner.mining_period_reward == pytest.approx(expected)
        assert miner.remaining_reward == pytest.approx(expected)
        assert miner.mining_period_reward != pytest.approx(period_reward(params, state, 1000))

    def test_renewed_miner_waits_full_period(self, params, alice_with_miner, env):
        once = renew_miner(params, alice_with_miner, "t-1", "t-2", env)
        assert renew_miner(params, once, "t-1", "t-2", env) is once

        env.clock.advance(days=3, seconds=-1)
        assert renew_miner(params, once, "t-1", "t-2", env) is once

        env.clock.advance(seconds=1)
        twice = renew_miner(params, once, "t-1", "t-2", env)
        assert twice.users["t-1"].miners[0].renewal_count == 2

    def test_renewal_keeps_accumulated_reward(self, params, alice_with_miner, env):
        from starmine.decay import update_system_state

        env.clock.advance(hours=10)
        decayed = update_system_state(params, alice_with_miner, env)
        before = decayed.users["t-1"].miners[0].accumulated_reward

        renewed = renew_miner(params, decayed, "t-1", "t-2", env)
        assert renewed.users["t-1"].miners[0].accumulated_reward == pytest.approx(before)

    def test_can_renew(self, params, alice_with_miner, env):
        miner = alice_with_miner.users["t-1"].miners[0]
        assert can_renew(params, miner, env.clock.now())

    def test_unknown_references_are_noop(self, params, alice_with_miner, env):
        assert renew_miner(params, alice_with_miner, "nobody", "t-2", env) is alice_with_miner
        assert renew_miner(params, alice_with_miner, "t-1", "missing", env) is alice_with_miner


class TestRemoveMiner:

    def test_remove_rolls_back_counters(self, params, alice_with_miner):
        state = remove_miner(params, alice_with_miner, "t-1", "t-2")

        assert state.miner_total == 0
        assert state.mining_power_accumulated == pytest.approx(0)
        assert state.users["t-1"].miners == ()
        # no refund
        assert state.star_pool == pytest.approx(alice_with_miner.star_pool)
        assert state.starry_pool == pytest.approx(alice_with_miner.starry_pool)
        assert state.users["t-1"].total_investment == pytest.approx(500)

    def test_remove_uses_initial_elo_constant(self, params, alice_with_miner, env):
        from starmine.decay import update_system_state

        env.clock.advance(hours=5)
        decayed = update_system_state(params, alice_with_miner, env)
        state = remove_miner(params, decayed, "t-1", "t-2")
        assert state.mining_power_accumulated == pytest.approx(
            decayed.mining_power_accumulated - 1000
        )

    def test_miner_of_other_user_is_noop(self, params, alice_with_miner, env):
        state = add_user(alice_with_miner, "Bob", env)
        assert remove_miner(params, state, "t-3", "t-2") is state

    def test_unknown_references_are_noop(self, params, alice_with_miner):
        assert remove_miner(params, alice_with_miner, "t-1", "missing") is alice_with_miner
        assert remove_miner(params, alice_with_miner, "nobody", "t-2") is alice_with_miner

    def test_noop_indistinguishable_from_unchanged(self, params, alice_with_miner):
        result = remove_miner(params, alice_with_miner, "t-1", "missing")
        assert result == alice_with_miner


class TestVote:

    def test_failed_vote_is_recorded(self, params, alice_with_miner, env):
        state = vote(params, alice_with_miner, "t-1", False, env)
        user = state.users["t-1"]

        assert len(user.voting_history) == 1
        assert user.voting_history[0].success is False
        assert user.voting_history[0].reward == 0
        assert user.today_vote_count == 0
        assert user.last_vote_time == env.clock.now()
        assert state.starry_pool == pytest.approx(alice_with_miner.starry_pool)

    def test_second_vote_same_day_is_noop(self, params, alice_state, env):
        once = vote(params, alice_state, "t-1", True, env)
        assert vote(params, once, "t-1", True, env) is once

        # 23:00 the same day
        env.clock.advance(hours=11)
        assert vote(params, once, "t-1", False, env) is once

    def test_vote_allowed_after_midnight(self, params, alice_state, env):
        once = vote(params, alice_state, "t-1", True, env)
        # 01:00 the next day
        env.clock.advance(hours=13)
        twice = vote(params, once, "t-1", True, env)
        assert len(twice.users["t-1"].voting_history) == 2

    def test_first_success_not_rewarded_by_ratio(self, params, alice_with_miner, env):
        state = vote(params, alice_with_miner, "t-1", True, env)
        user = state.users["t-1"]
        # 0 / max(1, 0) < 0.7
        assert user.voting_history[0].reward == 0
        assert user.today_vote_count == 1
        assert state.starry_pool == pytest.approx(alice_with_miner.starry_pool)

    def test_success_rewarded_when_ratio_reaches_threshold(self, params, alice_with_miner, env):
        state = vote(params, alice_with_miner, "t-1", True, env)
        env.clock.advance(days=1)
        state = vote(params, state, "t-1", True, env)

        user = state.users["t-1"]
        # 1 / 1 >= 0.7 -> voting_reward * exchange_rate
        assert user.voting_history[1].reward == pytest.approx(10)
        assert user.starry_balance == pytest.approx(10)
        assert user.total_reward == pytest.approx(10)
        assert state.starry_pool == pytest.approx(alice_with_miner.starry_pool - 10)

    def test_failed_vote_with_good_ratio_not_rewarded(self, params, alice_state, env):
        state = vote(params, alice_state, "t-1", True, env)
        env.clock.advance(days=1)
        state = vote(params, state, "t-1", False, env)
        assert state.users["t-1"].voting_history[1].reward == 0
        assert state.users["t-1"].today_vote_count == 1

    def test_zero_threshold_rewards_first_success(self, params, alice_state, env):
        lenient = params.replace(voting_success_threshold=0.0)
        state = vote(lenient, alice_state, "t-1", True, env)
        # pool B may go negative through voting payouts
        assert state.starry_pool == pytest.approx(-10)
        assert state.users["t-1"].starry_balance == pytest.approx(10)

    def test_unknown_user_is_noop(self, params, alice_state, env):
        assert vote(params, alice_state, "nobody", True, env) is alice_state


class TestApplyAction:

    def test_dispatches_to_handlers(self, params, empty_state, env):
        state = apply_action(params, empty_state, {'type': 'add_user', 'name': 'Alice'}, env)
        state = apply_action(params, state, {'type': 'buy_star', 'user_id': 't-1'}, env)
        state = apply_action(params, state, {'type': 'buy_starry', 'user_id': 't-1'}, env)
        state = apply_action(params, state, {'type': 'renew', 'user_id': 't-1',
                                             'miner_id': 't-2'}, env)
        state = apply_action(params, state, {'type': 'vote', 'user_id': 't-1',
                                             'success': True}, env)
        state = apply_action(params, state, {'type': 'remove', 'user_id': 't-1',
                                             'miner_id': 't-3'}, env)

        user = state.users["t-1"]
        assert state.miner_total == 1
        assert [m.id for m in user.miners] == ["t-2"]
        assert user.miners[0].renewal_count == 1
        assert len(user.voting_history) == 1

    def test_unknown_action_type_raises(self, params, empty_state, env):
        with pytest.raises(ValueError, match="Unknown action type"):
            apply_action(params, empty_state, {'type': 'teleport'}, env)
