"""
State records for the mining simulation.

Every record is a frozen dataclass and every sequence a tuple, so a state
snapshot can be retained in a history while later snapshots are derived
from it. Updates go through dataclasses.replace / the with_* helpers,
which copy the containers they touch and share the rest.
"""

import enum
from dataclasses import asdict, dataclass, field, replace
from typing import Dict, Iterator, Optional, Tuple


class PurchaseType(str, enum.Enum):
    """Currency a miner was bought with"""

    STAR = "star"
    STARRY = "starry"


@dataclass(frozen=True)
class Miner:
    """A single miner owned by exactly one user"""

    id: str
    elo: float
    purchase_time: float
    purchase_type: PurchaseType
    # starry units when bought with starry
    purchase_price: float
    accumulated_reward: float = 0.0
    last_renewal_time: Optional[float] = None
    renewal_count: int = 0
    mining_period_reward: float = 0.0
    remaining_reward: float = 0.0


@dataclass(frozen=True)
class Vote:
    timestamp: float
    success: bool
    reward: float


@dataclass(frozen=True)
class User:
    """A participant, owner of its miners and voting history"""

    id: str
    name: str
    miners: Tuple[Miner, ...] = ()
    star_balance: float = 0.0
    starry_balance: float = 0.0
    total_investment: float = 0.0
    total_reward: float = 0.0
    # chronological
    voting_history: Tuple[Vote, ...] = ()
    today_vote_count: int = 0
    last_vote_time: Optional[float] = None

    def miner_index(self, miner_id: str) -> int:
        """Position of the miner in self.miners, -1 if not owned"""
        for i, miner in enumerate(self.miners):
            if miner.id == miner_id:
                return i
        return -1

    def find_miner(self, miner_id: str) -> Optional[Miner]:
        i = self.miner_index(miner_id)
        return self.miners[i] if i >= 0 else None

    def with_miner(self, index: int, miner: Miner) -> 'User':
        miners = self.miners[:index] + (miner,) + self.miners[index + 1:]
        return replace(self, miners=miners)


@dataclass(frozen=True)
class SystemState:
    """Aggregate counters, pools and the user table"""

    miner_total: int = 0
    star_pool: float = 0.0
    starry_pool: float = 0.0
    starry_total: float = 0.0
    mining_power_accumulated: float = 0.0
    platform_profit: float = 0.0
    # never mutated in place; with_user builds a new dict
    users: Dict[str, User] = field(default_factory=dict)
    last_update_time: float = 0.0

    def get_user(self, user_id: str) -> Optional[User]:
        return self.users.get(user_id)

    def all_miners(self) -> Iterator[Tuple[User, Miner]]:
        for user in self.users.values():
            for miner in user.miners:
                yield user, miner

    def counted_miners(self) -> int:
        """Miners actually owned by users (should equal miner_total)"""
        return sum(len(user.miners) for user in self.users.values())

    def with_user(self, user: User, **changes) -> 'SystemState':
        """New state with user stored under its id and counters changed"""
        users = dict(self.users)
        users[user.id] = user
        return replace(self, users=users, **changes)

    def to_dict(self) -> Dict:
        data = asdict(self)
        for user in data['users'].values():
            for miner in user['miners']:
                miner['purchase_type'] = PurchaseType(miner['purchase_type']).value
        return data


def initial_state(now: float = 0.0) -> SystemState:
    """Empty system: no users, no miners, empty pools"""
    return SystemState(last_update_time=now)
