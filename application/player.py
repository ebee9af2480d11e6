from __future__ import annotations

import json
import logging
from typing import Any, Dict

from domain.errors import ConstraintViolation, StorageError
from domain.models import CONNECTED, DISCONNECTED, MISSING_BID
from domain.repositories import PlayerRepository


logger = logging.getLogger(__name__)


class Player:
    """
    In-memory projection of one row of the `player` table.

    The cached fields start out as placeholders and are only hydrated by
    `load_information()` (or `update()`). They are not kept in sync with
    the row automatically: the bid operations mirror what they wrote, while
    `needs_update()` and `is_connected()` always go to storage.
    """

    def __init__(self, player_id: int, repository: PlayerRepository) -> None:
        self._id: int = player_id
        self._repository = repository
        self._username: str = ""
        self._chips: int = 0
        self._current_bid: int = 0
        self._chips_won: int = 0
        self._chips_lost: int = 0
        self._games_won: int = 0
        self._games_lost: int = 0

    @property
    def id(self) -> int:
        return self._id

    @property
    def username(self) -> str:
        return self._username

    @property
    def chips(self) -> int:
        return self._chips

    @property
    def current_bid(self) -> int:
        return self._current_bid

    @property
    def chips_won(self) -> int:
        return self._chips_won

    @property
    def chips_lost(self) -> int:
        return self._chips_lost

    @property
    def games_won(self) -> int:
        return self._games_won

    @property
    def games_lost(self) -> int:
        return self._games_lost

    # Method-style accessors for callers that expect `get_*` names.

    def get_id(self) -> int:
        return self._id

    def get_username(self) -> str:
        return self._username

    def get_chips(self) -> int:
        return self._chips

    def get_current_bid(self) -> int:
        return self._current_bid

    def get_chips_won(self) -> int:
        return self._chips_won

    def get_chips_lost(self) -> int:
        return self._chips_lost

    def get_games_won(self) -> int:
        return self._games_won

    def get_games_lost(self) -> int:
        return self._games_lost

    def place_bid(self, amount: int) -> bool:
        """
        Make `amount` the player's total bid for the current round.

        `amount` replaces the previous bid rather than adding to it; only the
        difference is taken from the chips. Checked against the cached chips,
        so the player must have been loaded first.
        """

        if amount <= 0 or amount > self._chips:
            return False

        try:
            state = self._repository.place_bid(self._id, amount)
        except ConstraintViolation as e:
            logger.warning("Bid refused for player %s: %s", self._id, e)
            return False
        except StorageError as e:
            logger.error("Could not place bid for player %s: %s", self._id, e)
            return False

        if state is None:
            return False

        self._chips = state.chips
        self._current_bid = state.current_bid
        return True

    def reset_bid(self) -> None:
        """Give the current bid back to the player, e.g. on a fold."""

        bid = self._repository.reset_bid(self._id)
        if bid == MISSING_BID:
            logger.warning("Cannot reset bid: player %s not found", self._id)
            return

        self._current_bid = 0
        self._chips += bid

    def remove_bid_chips(self) -> int:
        """
        Forfeit the current bid and return its amount.

        The chips are not given back; the caller credits them to whoever
        won the hand. The row is flagged as needing an update.
        """

        bid = self._repository.remove_bid_chips(self._id)
        if bid == MISSING_BID:
            logger.warning("Cannot remove bid: player %s not found", self._id)
            return bid

        self._current_bid = 0
        return bid

    def set_needs_update(self, flag: int) -> None:
        self._repository.set_needs_update(self._id, flag)

    def set_connection(self, flag: int) -> None:
        if flag not in (CONNECTED, DISCONNECTED):
            logger.debug("Ignoring connection flag %r for player %s", flag, self._id)
            return
        self._repository.set_connected(self._id, flag)

    def get_simple_info(self) -> Dict[str, Any]:
        return {
            "username": self._username,
            "chips": self._chips,
            "current_bid": self._current_bid,
        }

    def get_all_info(self) -> Dict[str, Any]:
        return {
            "username": self._username,
            "chips": self._chips,
            "current_bid": self._current_bid,
            "chips_won": self._chips_won,
            "chips_lost": self._chips_lost,
            "games_won": self._games_won,
            "games_lost": self._games_lost,
        }

    def update(self) -> bool:
        """Reload the player if the row is flagged as newer than the cache."""

        if not self.needs_update():
            return False

        if not self.load_information():
            return False

        self._repository.set_needs_update(self._id, 0)
        return True

    def needs_update(self) -> bool:
        try:
            flag = self._repository.get_needs_update(self._id)
        except StorageError as e:
            logger.error("Could not read update flag for player %s: %s", self._id, e)
            return False
        return bool(flag)

    def load_information(self) -> bool:
        try:
            record = self._repository.get_player(self._id)
        except StorageError as e:
            logger.error("Could not load player %s: %s", self._id, e)
            return False

        if record is None:
            return False

        self._username = record.username
        self._chips = record.chips
        self._current_bid = record.current_bid
        self._chips_won = record.chips_won
        self._chips_lost = record.chips_lost
        self._games_won = record.games_won
        self._games_lost = record.games_lost
        return True

    def is_connected(self) -> bool:
        try:
            flag = self._repository.get_connected(self._id)
        except StorageError as e:
            logger.error("Could not read connection state of player %s: %s", self._id, e)
            return False
        return bool(flag)

    def __str__(self):
        return f"player {self._id}"


def to_json(info: Dict[str, Any]) -> str:
    """Serialize the mapping from `get_simple_info`/`get_all_info` for a client."""

    return json.dumps(info)
