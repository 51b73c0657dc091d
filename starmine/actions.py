"""
Action handlers: user registration, miner purchase, renewal, removal, voting.

Every handler is a pure transition (params, state, ...) -> state. When a
referenced user or miner does not exist, or a precondition fails, the
handler returns the input state object unchanged.
"""

import logging
from dataclasses import replace
from typing import Any, Mapping, Optional

from .config import SystemParams
from .environment import Environment, resolve
from .reward import period_reward
from .state import Miner, PurchaseType, SystemState, User, Vote

logger = logging.getLogger(__name__)


def add_user(state: SystemState, name: str,
             env: Optional[Environment] = None) -> SystemState:
    """Register a user with a fresh id and empty balances"""
    user_id = resolve(env).ids.new_id()
    logger.debug("add_user: %s (%s)", user_id, name)
    return state.with_user(User(id=user_id, name=name))


def _new_miner(params: SystemParams, state: SystemState, env: Environment,
               purchase_type: PurchaseType, price: float) -> Miner:
    """Miner priced against `state`, which already counts the miner itself"""
    obligation = period_reward(params, state, params.initial_elo)
    return Miner(
        id=env.ids.new_id(),
        elo=params.initial_elo,
        purchase_time=env.clock.now(),
        purchase_type=purchase_type,
        purchase_price=price,
        accumulated_reward=0.0,
        last_renewal_time=None,
        renewal_count=0,
        mining_period_reward=obligation,
        remaining_reward=obligation,
    )


def buy_miner_with_star(params: SystemParams, state: SystemState, user_id: str,
                        env: Optional[Environment] = None) -> SystemState:
    """
    Buy a miner paying in star.

    Net of take rate, the price enters pool A and is minted into pool B at
    the exchange rate; the take rate goes to platform profit.
    """
    user = state.get_user(user_id)
    if user is None:
        logger.debug("buy_miner_with_star: unknown user %s", user_id)
        return state

    env = resolve(env)
    star_added = params.miner_price * (1 - params.take_rate)
    profit = params.miner_price * params.take_rate

    funded = replace(
        state,
        miner_total=state.miner_total + 1,
        star_pool=state.star_pool + star_added,
        starry_pool=state.starry_pool + star_added * params.exchange_rate,
        starry_total=state.starry_total + star_added * params.exchange_rate,
        mining_power_accumulated=state.mining_power_accumulated + params.initial_elo,
        platform_profit=state.platform_profit + profit,
    )

    miner = _new_miner(params, funded, env, PurchaseType.STAR, params.miner_price)
    logger.debug("buy_miner_with_star: user %s miner %s obligation %.4f",
                 user_id, miner.id, miner.mining_period_reward)

    return funded.with_user(replace(
        user,
        miners=user.miners + (miner,),
        total_investment=user.total_investment + params.miner_price,
    ))


def buy_miner_with_starry(params: SystemParams, state: SystemState, user_id: str,
                          env: Optional[Environment] = None) -> SystemState:
    """
    Buy a miner paying in starry.

    No new star enters the system: pool A pays out the take-rate share
    while pool B still gains the net price at the exchange rate.
    """
    user = state.get_user(user_id)
    if user is None:
        logger.debug("buy_miner_with_starry: unknown user %s", user_id)
        return state

    env = resolve(env)
    star_reduced = params.miner_price * params.take_rate
    profit = params.miner_price * params.take_rate
    price_in_starry = params.miner_price * params.exchange_rate

    funded = replace(
        state,
        miner_total=state.miner_total + 1,
        star_pool=state.star_pool - star_reduced,
        starry_pool=(state.starry_pool +
                     params.miner_price * (1 - params.take_rate) * params.exchange_rate),
        starry_total=state.starry_total - star_reduced * params.exchange_rate,
        mining_power_accumulated=state.mining_power_accumulated + params.initial_elo,
        platform_profit=state.platform_profit + profit,
    )

    miner = _new_miner(params, funded, env, PurchaseType.STARRY, price_in_starry)
    logger.debug("buy_miner_with_starry: user %s miner %s obligation %.4f",
                 user_id, miner.id, miner.mining_period_reward)

    return funded.with_user(replace(
        user,
        miners=user.miners + (miner,),
        total_investment=user.total_investment + price_in_starry,
    ))


def can_renew(params: SystemParams, miner: Miner, now: float) -> bool:
    """Never-renewed miners renew at once; renewed ones wait a full period"""
    if miner.last_renewal_time is None:
        return True
    return now - miner.last_renewal_time >= params.period_seconds


def renew_miner(params: SystemParams, state: SystemState, user_id: str,
                miner_id: str, env: Optional[Environment] = None) -> SystemState:
    """
    Renew a miner for another mining period.

    The new obligation is priced on the state before this renewal's own
    pool top-up is applied.
    """
    user = state.get_user(user_id)
    if user is None:
        logger.debug("renew_miner: unknown user %s", user_id)
        return state

    index = user.miner_index(miner_id)
    if index == -1:
        logger.debug("renew_miner: user %s has no miner %s", user_id, miner_id)
        return state

    now = resolve(env).clock.now()
    miner = user.miners[index]
    if not can_renew(params, miner, now):
        logger.debug("renew_miner: miner %s not eligible yet", miner_id)
        return state

    profit = params.renewal_price * params.take_rate
    star_added = params.renewal_price * (1 - params.take_rate)
    obligation = period_reward(params, state, miner.elo)

    renewed = replace(
        miner,
        last_renewal_time=now,
        renewal_count=miner.renewal_count + 1,
        mining_period_reward=obligation,
        remaining_reward=obligation,
    )
    updated_user = replace(
        user.with_miner(index, renewed),
        total_investment=user.total_investment + params.renewal_price,
    )

    logger.debug("renew_miner: miner %s renewal #%d obligation %.4f",
                 miner_id, renewed.renewal_count, obligation)

    return state.with_user(
        updated_user,
        star_pool=state.star_pool + star_added,
        starry_pool=state.starry_pool + star_added * params.exchange_rate,
        starry_total=state.starry_total + star_added * params.exchange_rate,
        platform_profit=state.platform_profit + profit,
    )


def remove_miner(params: SystemParams, state: SystemState, user_id: str,
                 miner_id: str) -> SystemState:
    """
    Delete a miner without settlement.

    Mining power is rolled back by the configured initial elo, whatever
    the miner's own weight; unreleased reward is discarded.
    """
    user = state.get_user(user_id)
    if user is None:
        logger.debug("remove_miner: unknown user %s", user_id)
        return state

    index = user.miner_index(miner_id)
    if index == -1:
        logger.debug("remove_miner: user %s has no miner %s", user_id, miner_id)
        return state

    miners = user.miners[:index] + user.miners[index + 1:]
    logger.debug("remove_miner: user %s miner %s", user_id, miner_id)

    return state.with_user(
        replace(user, miners=miners),
        miner_total=state.miner_total - 1,
        mining_power_accumulated=state.mining_power_accumulated - params.initial_elo,
    )


def vote(params: SystemParams, state: SystemState, user_id: str, success: bool,
         env: Optional[Environment] = None) -> SystemState:
    """
    Cast the user's vote for the current calendar day.

    A second vote on the same day is ignored. A successful vote pays
    voting_reward × exchange_rate from pool B when

        today_vote_count / max(1, len(voting_history)) >= threshold

    measured on the history before this vote is appended.
    """
    user = state.get_user(user_id)
    if user is None:
        logger.debug("vote: unknown user %s", user_id)
        return state

    clock = resolve(env).clock
    now = clock.now()
    if user.last_vote_time is not None and user.last_vote_time >= clock.day_start(now):
        logger.debug("vote: user %s already voted today", user_id)
        return state

    success_ratio = user.today_vote_count / max(1, len(user.voting_history))
    if success and success_ratio >= params.voting_success_threshold:
        reward = params.voting_reward * params.exchange_rate
    else:
        reward = 0.0

    record = Vote(timestamp=now, success=success, reward=reward)
    logger.debug("vote: user %s success=%s reward %.4f", user_id, success, reward)

    return state.with_user(
        replace(
            user,
            voting_history=user.voting_history + (record,),
            today_vote_count=user.today_vote_count + 1 if success else user.today_vote_count,
            last_vote_time=now,
            starry_balance=user.starry_balance + reward,
            total_reward=user.total_reward + reward,
        ),
        starry_pool=state.starry_pool - reward,
    )


ACTION_TYPES = ('add_user', 'buy_star', 'buy_starry', 'renew', 'remove', 'vote')


def apply_action(params: SystemParams, state: SystemState, action: Mapping[str, Any],
                 env: Optional[Environment] = None) -> SystemState:
    """
    Dispatch a tagged action mapping, e.g. {'type': 'vote', 'user_id': u,
    'success': True}. Raises ValueError for an unknown action type.
    """
    kind = action.get('type')
    if kind == 'add_user':
        return add_user(state, action['name'], env)
    if kind == 'buy_star':
        return buy_miner_with_star(params, state, action['user_id'], env)
    if kind == 'buy_starry':
        return buy_miner_with_starry(params, state, action['user_id'], env)
    if kind == 'renew':
        return renew_miner(params, state, action['user_id'], action['miner_id'], env)
    if kind == 'remove':
        return remove_miner(params, state, action['user_id'], action['miner_id'])
    if kind == 'vote':
        return vote(params, state, action['user_id'], bool(action['success']), env)
    raise ValueError(f"Unknown action type: {kind!r} (expected one of {ACTION_TYPES})")
