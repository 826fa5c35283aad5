# Pydantic models for the line protocol and for leaderboard/result IO.

from __future__ import annotations
from pydantic import BaseModel, Field, ValidationError, field_validator
from typing import List, Optional, Union

HANDSHAKE_PREFIX = "PLAYER_NAME:"
WORD_PREFIX = "WORD:"


class Handshake(BaseModel):
    player_name: str = Field(..., description="Player identity, sent once as the first line")

    @field_validator("player_name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        name = v.strip()
        if not name:
            raise ValueError("player name must not be blank")
        if len(name) > 64:
            raise ValueError("player name must be at most 64 characters")
        return name


class WordSubmission(BaseModel):
    word: str = Field(..., description="Candidate word, as typed by the player")

    @field_validator("word")
    @classmethod
    def validate_word(cls, v: str) -> str:
        w = v.strip()
        if not w:
            raise ValueError("word must not be blank")
        return w


InboundMessage = Union[Handshake, WordSubmission]


def parse_message(line: str) -> Optional[InboundMessage]:
    """Parse one inbound line; None for anything malformed or unknown."""
    try:
        if line.startswith(HANDSHAKE_PREFIX):
            return Handshake(player_name=line[len(HANDSHAKE_PREFIX):])
        if line.startswith(WORD_PREFIX):
            return WordSubmission(word=line[len(WORD_PREFIX):])
    except ValidationError:
        return None
    return None


class LeaderboardEntry(BaseModel):
    player_id: str
    score: int


class GameResult(BaseModel):
    player_id: str
    score: int
    used_words: List[str] = []


class HighScoreEntry(BaseModel):
    player_id: str
    best_score: int
    games_played: int
    last_score: Optional[int] = None
    rank: int
