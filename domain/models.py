from dataclasses import dataclass


# Values of the `connected` column.
CONNECTED = 1
DISCONNECTED = 0

# Reported in place of a bid when the player row does not exist.
MISSING_BID = -1


@dataclass
class PlayerRecord:
    """
    One row of the `player` table.

    `connected` and `needs_update` are stored as 0/1 integers. The lifetime
    counters are written by round resolution code outside this package and
    are only read here.
    """

    id: int
    username: str
    chips: int = 0
    current_bid: int = 0
    chips_won: int = 0
    chips_lost: int = 0
    games_won: int = 0
    games_lost: int = 0
    connected: int = DISCONNECTED
    needs_update: int = 0


@dataclass
class BidState:
    """Persisted chips and bid of a player right after a bid write."""

    chips: int
    current_bid: int
