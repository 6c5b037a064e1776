"""A user's roster and budget, and the operations that change them."""

from typing import Optional

from .config import LeagueConfig, get_config
from .database import atomic
from .errors import as_result
from .logging_config import get_logger
from .models import TeamHolding, UserAccount
from .repository import LeagueRepository
from .roster import (
    BuyPlayer,
    RosterPolicy,
    RosterSlot,
    RosterState,
    SellPlayer,
    SetCaptain,
    SubstitutePlayers,
)
from .rounds import RoundLifecycle

logger = get_logger(__name__)


class TeamAccount:
    """
    Every mutation runs: lockout gate -> RosterPolicy -> write holdings and
    budget in one atomic unit. A crash between the two writes leaves neither.
    """

    def __init__(
        self,
        repo: LeagueRepository,
        user_id: int,
        lifecycle: RoundLifecycle,
        config: Optional[LeagueConfig] = None,
    ):
        self.repo = repo
        self.user_id = user_id
        self.lifecycle = lifecycle
        self.config = config or get_config()
        self.policy = RosterPolicy(self.config)

    def roster_state(self, user: Optional[UserAccount] = None) -> RosterState:
        user = user or self.repo.require_user(self.user_id)
        slots = [
            RosterSlot(
                player_id=h.player_id,
                position=h.player.position,
                is_substitute=h.is_substitute,
                is_captain=h.is_captain,
            )
            for h in self.repo.holdings_for_user(user.id)
        ]
        return RosterState(budget=user.budget, slots=slots)

    @as_result
    def buy(self, player_id: int, as_substitute: bool = False):
        with atomic(self.repo.session):
            self.lifecycle.ensure_unlocked()
            user = self.repo.require_user(self.user_id)
            player = self.repo.require_player(player_id)
            price = player.current_price
            decision = self.policy.can_apply(
                self.roster_state(user),
                BuyPlayer(player.id, player.position, price, as_substitute),
            )
            decision.raise_for_rejection()

            self.repo.add(TeamHolding(
                user_id=user.id,
                player_id=player.id,
                purchase_price=price,
                is_substitute=as_substitute,
            ))
            user.budget -= price
            self.repo.add(user)
            name, budget = player.name, user.budget

        slot = "bench" if as_substitute else "playing XI"
        logger.info(f"User {self.user_id} bought {name} ({slot}) for {price}; budget now {budget}")
        return f"Bought {name} for {price}", {
            'player_id': player_id,
            'price': price,
            'is_substitute': as_substitute,
            'budget': budget,
        }

    @as_result
    def sell(self, player_id: int):
        with atomic(self.repo.session):
            self.lifecycle.ensure_unlocked()
            user = self.repo.require_user(self.user_id)
            player = self.repo.require_player(player_id)
            self.policy.can_apply(self.roster_state(user), SellPlayer(player.id)).raise_for_rejection()

            # Proceeds are the current market price, not the purchase price
            price = player.current_price
            self.repo.delete(self.repo.holding_for(user.id, player.id))
            user.budget += price
            self.repo.add(user)
            name, budget = player.name, user.budget

        logger.info(f"User {self.user_id} sold {name} for {price}; budget now {budget}")
        return f"Sold {name} for {price}", {'player_id': player_id, 'price': price, 'budget': budget}

    @as_result
    def set_captain(self, player_id: int):
        with atomic(self.repo.session):
            self.lifecycle.ensure_unlocked()
            user = self.repo.require_user(self.user_id)
            player = self.repo.require_player(player_id)
            self.policy.can_apply(self.roster_state(user), SetCaptain(player.id)).raise_for_rejection()

            # Clear-then-set keeps at most one captain
            for holding in self.repo.holdings_for_user(user.id):
                if holding.is_captain:
                    holding.is_captain = False
                    self.repo.add(holding)
            self.repo.flush()
            captain = self.repo.holding_for(user.id, player.id)
            captain.is_captain = True
            self.repo.add(captain)
            name = player.name

        logger.info(f"User {self.user_id} made {name} captain")
        return f"{name} is now captain", {'player_id': player_id}

    @as_result
    def substitute(self, main_player_id: int, sub_player_id: int):
        with atomic(self.repo.session):
            self.lifecycle.ensure_unlocked()
            user = self.repo.require_user(self.user_id)
            main_player = self.repo.require_player(main_player_id)
            sub_player = self.repo.require_player(sub_player_id)
            self.policy.can_apply(
                self.roster_state(user),
                SubstitutePlayers(main_player.id, sub_player.id),
            ).raise_for_rejection()

            outgoing = self.repo.holding_for(user.id, main_player.id)
            incoming = self.repo.holding_for(user.id, sub_player.id)
            outgoing.is_substitute = True
            outgoing.is_captain = False
            incoming.is_substitute = False
            self.repo.add(outgoing)
            self.repo.add(incoming)
            out_name, in_name = main_player.name, sub_player.name

        logger.info(f"User {self.user_id} benched {out_name} for {in_name}")
        return f"{in_name} replaces {out_name} in the playing XI", {
            'benched_player_id': main_player_id,
            'promoted_player_id': sub_player_id,
        }

    def view(self) -> dict:
        user = self.repo.require_user(self.user_id)
        players = []
        for h in self.repo.holdings_for_user(user.id):
            p = h.player
            players.append({
                'player_id': p.id,
                'name': p.name,
                'team': p.team,
                'position': p.position,
                'current_price': p.current_price,
                'purchase_price': h.purchase_price,
                'total_points': p.total_points,
                'current_round_points': p.current_round_points,
                'is_captain': h.is_captain,
                'is_substitute': h.is_substitute,
            })
        return {'user_id': user.id, 'username': user.username, 'budget': user.budget, 'players': players}
