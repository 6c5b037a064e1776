"""Validation rules for roster mutations. No side effects."""

from dataclasses import dataclass, field
from typing import List, Optional

from .config import LeagueConfig
from .errors import RejectReason, ValidationError


@dataclass(frozen=True)
class RosterSlot:
    player_id: int
    position: str
    is_substitute: bool = False
    is_captain: bool = False


@dataclass
class RosterState:
    """A user's roster and budget as seen by the policy."""
    budget: int
    slots: List[RosterSlot] = field(default_factory=list)

    def find(self, player_id: int) -> Optional[RosterSlot]:
        return next((s for s in self.slots if s.player_id == player_id), None)

    def main_count(self, position: str) -> int:
        return sum(1 for s in self.slots if s.position == position and not s.is_substitute)

    def substitute_count(self, position: str) -> int:
        return sum(1 for s in self.slots if s.position == position and s.is_substitute)


@dataclass(frozen=True)
class BuyPlayer:
    player_id: int
    position: str
    price: int
    as_substitute: bool = False


@dataclass(frozen=True)
class SellPlayer:
    player_id: int


@dataclass(frozen=True)
class SetCaptain:
    player_id: int


@dataclass(frozen=True)
class SubstitutePlayers:
    main_player_id: int
    sub_player_id: int


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: Optional[RejectReason] = None
    message: str = ""

    @classmethod
    def ok(cls) -> "Decision":
        return cls(allowed=True)

    @classmethod
    def reject(cls, reason: RejectReason, message: str) -> "Decision":
        return cls(allowed=False, reason=reason, message=message)

    def raise_for_rejection(self):
        if not self.allowed:
            raise ValidationError(self.reason, self.message)


class RosterPolicy:
    """
    Decides whether a mutation is legal for a roster.

    Rules:
    - Main + substitute holdings never exceed config.roster_size.
    - Main-roster holdings per position never exceed config.main_slots.
    - Substitutes per position never exceed config.substitute_slots
      (positions absent from that map are bounded only by roster_size).
    - A player is held at most once per user.
    - Buying needs budget >= the player's current price.
    - Substitution swaps a main and a bench player of the same position.
    - Only main-roster holdings can captain.
    """

    def __init__(self, config: LeagueConfig):
        self.config = config

    def can_apply(self, roster: RosterState, mutation) -> Decision:
        if isinstance(mutation, BuyPlayer):
            return self._check_buy(roster, mutation)
        if isinstance(mutation, SellPlayer):
            return self._check_sell(roster, mutation)
        if isinstance(mutation, SetCaptain):
            return self._check_captain(roster, mutation)
        if isinstance(mutation, SubstitutePlayers):
            return self._check_substitute(roster, mutation)
        raise TypeError(f"Unknown roster mutation: {mutation!r}")

    def _check_buy(self, roster: RosterState, buy: BuyPlayer) -> Decision:
        if roster.find(buy.player_id):
            return Decision.reject(RejectReason.ALREADY_OWNED, "Player is already in your team")

        if len(roster.slots) >= self.config.roster_size:
            return Decision.reject(
                RejectReason.ROSTER_FULL,
                f"Team is full (maximum {self.config.roster_size} players)",
            )

        if buy.as_substitute:
            cap = self.config.substitute_cap(buy.position)
            if cap is not None and roster.substitute_count(buy.position) >= cap:
                return Decision.reject(
                    RejectReason.SUBSTITUTE_CAP_REACHED,
                    f"You already have {cap} substitute {buy.position}(s)",
                )
        else:
            cap = self.config.main_cap(buy.position)
            if roster.main_count(buy.position) >= cap:
                return Decision.reject(
                    RejectReason.POSITION_CAP_REACHED,
                    f"You already have {cap} {buy.position}(s) in your playing XI",
                )

        if roster.budget < buy.price:
            return Decision.reject(
                RejectReason.INSUFFICIENT_BUDGET,
                f"Insufficient budget: need {buy.price}, have {roster.budget}",
            )
        return Decision.ok()

    def _check_sell(self, roster: RosterState, sell: SellPlayer) -> Decision:
        if not roster.find(sell.player_id):
            return Decision.reject(RejectReason.NOT_OWNED, "Player is not in your team")
        return Decision.ok()

    def _check_captain(self, roster: RosterState, captain: SetCaptain) -> Decision:
        slot = roster.find(captain.player_id)
        if not slot:
            return Decision.reject(RejectReason.NOT_OWNED, "Player is not in your team")
        if slot.is_substitute:
            return Decision.reject(
                RejectReason.SUBSTITUTE_CANNOT_CAPTAIN,
                "A substitute cannot be captain",
            )
        return Decision.ok()

    def _check_substitute(self, roster: RosterState, swap: SubstitutePlayers) -> Decision:
        main = roster.find(swap.main_player_id)
        sub = roster.find(swap.sub_player_id)
        if not main or not sub:
            return Decision.reject(RejectReason.NOT_OWNED, "Both players must be in your team")
        if main.is_substitute:
            return Decision.reject(
                RejectReason.NOT_IN_MAIN_ROSTER,
                "The player being replaced is not in your playing XI",
            )
        if not sub.is_substitute:
            return Decision.reject(
                RejectReason.NOT_A_SUBSTITUTE,
                "The incoming player is not on your bench",
            )
        if main.position != sub.position:
            return Decision.reject(
                RejectReason.POSITION_MISMATCH,
                f"Position mismatch: {main.position} vs {sub.position}",
            )
        return Decision.ok()
