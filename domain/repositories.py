from __future__ import annotations

from typing import Optional, Protocol

from .models import BidState, PlayerRecord


class PlayerRepository(Protocol):
    """
    Abstraction over the `player` table.

    Implementations are responsible for:
    - Mapping between database rows and the `PlayerRecord` domain model.
    - Running every read-modify-write on a single row inside one
      transaction that holds a write lock on that row.
    - Wrapping driver errors in `StorageError`.

    Missing rows are reported as `None` (or `MISSING_BID`), never raised.
    """

    def get_player(self, player_id: int) -> Optional[PlayerRecord]:
        """Return the full row for `player_id`, or None if not found."""

        ...

    def add_player(self, record: PlayerRecord) -> None:
        """Persist a new row."""

        ...

    def place_bid(self, player_id: int, amount: int) -> Optional[BidState]:
        """
        Make `amount` the player's total bid.

        The chips are reduced by the difference between `amount` and the
        previous bid. Raises `ConstraintViolation` if that would leave the
        player with negative chips; returns None if the row is missing.
        """

        ...

    def reset_bid(self, player_id: int) -> int:
        """
        Move the current bid back onto the player's chips.

        Returns the bid that was returned, or `MISSING_BID`.
        """

        ...

    def remove_bid_chips(self, player_id: int) -> int:
        """
        Forfeit the current bid and flag the row as needing an update.

        Returns the forfeited bid, or `MISSING_BID`.
        """

        ...

    def get_needs_update(self, player_id: int) -> Optional[bool]:
        ...

    def set_needs_update(self, player_id: int, flag: int) -> None:
        """
        Store `int(flag)` as the dirty flag; any integer is accepted.

        A flag that `int()` rejects raises its `ValueError` or `TypeError`
        before the store is touched.
        """

        ...

    def get_connected(self, player_id: int) -> Optional[bool]:
        ...

    def set_connected(self, player_id: int, flag: int) -> None:
        ...
