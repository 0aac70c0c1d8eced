"""
Game rule configuration and validation.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .constants import MAX_PLAYERS, MIN_PLAYERS


class StartingCards(BaseModel):
    """How many cards each player is dealt into each layer."""

    model_config = ConfigDict(frozen=True)

    hand: int = Field(default=3, ge=0, le=10, description="Cards dealt to the hand")
    face_up: int = Field(default=3, ge=0, le=10, description="Cards dealt face up on the table")
    face_down: int = Field(default=3, ge=0, le=10, description="Cards dealt face down on the table")

    @property
    def total(self) -> int:
        return self.hand + self.face_up + self.face_down


class Timeouts(BaseModel):
    """Durations in milliseconds; enforced by the scheduler, not the engine."""

    model_config = ConfigDict(frozen=True)

    turn: int = Field(default=30000, ge=0, description="Turn timeout")
    swap: int = Field(default=60000, ge=0, description="Swap phase timeout")
    reconnect: int = Field(default=120000, ge=0, description="Grace period before a disconnected player is removed")


class HouseRules(BaseModel):
    """Toggles for the special ranks."""

    model_config = ConfigDict(frozen=True)

    allow_multiples: bool = Field(default=True, description="Allow playing several cards of one rank at once")
    burn_on_four: bool = Field(default=True, description="Four of a kind burns the pile")
    transparent_eights: bool = Field(default=True, description="Eights take the value of the card below")
    jack_skips: bool = Field(default=True, description="Each jack skips one player")
    two_reset: bool = Field(default=True, description="Twos may be played on anything")


class GameConfig(BaseModel):
    """Configuration for a single game. Immutable once the game starts."""

    model_config = ConfigDict(frozen=True)

    max_players: int = Field(default=MAX_PLAYERS, ge=MIN_PLAYERS, le=MAX_PLAYERS, description="Maximum number of players allowed")
    starting_cards: StartingCards = Field(default_factory=StartingCards)
    timeouts: Timeouts = Field(default_factory=Timeouts)
    rules: HouseRules = Field(default_factory=HouseRules)
    host_id: Optional[str] = Field(default=None, description="Player allowed to force rollbacks")

    def validate_player_count(self, player_count: int) -> bool:
        """Check if a player count is valid for this configuration."""
        return MIN_PLAYERS <= player_count <= self.max_players


# Default configuration instance
default_config = GameConfig()


def create_config(**overrides) -> GameConfig:
    """Create a GameConfig with optional overrides."""
    config_dict = default_config.model_dump()
    config_dict.update(overrides)
    return GameConfig(**config_dict)
