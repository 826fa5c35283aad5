# SQLite data layer using SQLAlchemy for players, game results and the
# all-time leaderboard. Every call is fire-and-forget from a session's point
# of view: database errors are logged and swallowed, never raised.

from __future__ import annotations
import logging
from sqlalchemy import create_engine, Column, Integer, String, DateTime, Text, func, delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.sql import select
from typing import Iterable, List, Optional

from .config import DATABASE_URL, LEADERBOARD_LIMIT
from .models import HighScoreEntry

logger = logging.getLogger(__name__)

Base = declarative_base()


class Player(Base):
    __tablename__ = "players"
    id = Column(Integer, primary_key=True)
    player_id = Column(String, unique=True, index=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())


class GameResultRow(Base):
    __tablename__ = "game_results"
    id = Column(Integer, primary_key=True)
    player_id = Column(String, index=True, nullable=False)
    score = Column(Integer, nullable=False)
    words = Column(Text, nullable=False, default="")  # space-separated, sorted
    created_at = Column(DateTime, server_default=func.now())


class LeaderboardRow(Base):
    __tablename__ = "leaderboard"
    id = Column(Integer, primary_key=True)
    player_id = Column(String, unique=True, index=True, nullable=False)
    best_score = Column(Integer, nullable=False)
    games_played = Column(Integer, default=0)
    last_score = Column(Integer, nullable=True)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class ResultStore:
    def __init__(self, url: str = DATABASE_URL):
        self.url = url
        connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
        self._engine = create_engine(url, echo=False, future=True, connect_args=connect_args)
        self.SessionLocal = sessionmaker(bind=self._engine, autoflush=False, autocommit=False, future=True)

    def init_db(self) -> bool:
        try:
            Base.metadata.create_all(self._engine)
        except SQLAlchemyError:
            logger.exception("Database initialization error; persistence disabled")
            return False
        return True

    def register_player(self, player_id: str) -> None:
        with self.SessionLocal() as s:
            try:
                exists = s.execute(select(Player).where(Player.player_id == player_id)).scalar_one_or_none()
                if exists is None:
                    s.add(Player(player_id=player_id))
                    s.commit()
            except SQLAlchemyError:
                s.rollback()
                logger.exception("Player creation failed for %s", player_id)

    def save_result(self, player_id: str, score: int, used_words: Iterable[str]) -> None:
        with self.SessionLocal() as s:
            try:
                s.add(GameResultRow(player_id=player_id, score=score, words=" ".join(sorted(used_words))))
                s.commit()
            except SQLAlchemyError:
                s.rollback()
                logger.exception("Failed to save game result for %s", player_id)

    def update_leaderboard(self, player_id: str, score: int) -> None:
        with self.SessionLocal() as s:
            try:
                # Upsert-like behavior
                row = s.execute(select(LeaderboardRow).where(LeaderboardRow.player_id == player_id)).scalar_one_or_none()
                if row is None:
                    row = LeaderboardRow(player_id=player_id, best_score=score, games_played=0)
                    s.add(row)
                row.games_played = (row.games_played or 0) + 1
                row.last_score = score
                if score > row.best_score:
                    row.best_score = score
                s.commit()
            except SQLAlchemyError:
                s.rollback()
                logger.exception("Failed to update leaderboard for %s", player_id)

    def results_for(self, player_id: str) -> List[dict]:
        with self.SessionLocal() as s:
            rows = s.execute(
                select(GameResultRow).where(GameResultRow.player_id == player_id).order_by(GameResultRow.id)
            ).scalars().all()
        return [{"score": r.score, "words": r.words.split() if r.words else []} for r in rows]

    def top_leaderboard(self, limit: int = LEADERBOARD_LIMIT) -> List[HighScoreEntry]:
        """
        Return leaderboard entries sorted by:
         - best_score DESC
         - games_played ASC (reaching the same best in fewer games ranks higher)
         - player_id ASC

        Equal (best_score, games_played) receive the same rank and later
        ranks skip accordingly (1,1,3).
        """
        try:
            with self.SessionLocal() as s:
                rows = s.execute(select(LeaderboardRow)).scalars().all()
        except SQLAlchemyError:
            logger.exception("Failed to read leaderboard")
            return []

        rows = sorted(rows, key=lambda r: (-r.best_score, r.games_played or 0, r.player_id))

        ranked: List[HighScoreEntry] = []
        last_key: Optional[tuple] = None
        last_rank = 0
        for idx, r in enumerate(rows[:limit]):
            key = (r.best_score, r.games_played or 0)
            rank = last_rank if key == last_key else idx + 1
            last_key, last_rank = key, rank
            ranked.append(HighScoreEntry(
                player_id=r.player_id,
                best_score=r.best_score,
                games_played=r.games_played or 0,
                last_score=r.last_score,
                rank=rank,
            ))
        return ranked

    def clear_leaderboard(self) -> None:
        # Deletes all leaderboard and game result rows
        with self.SessionLocal() as s:
            try:
                s.execute(delete(LeaderboardRow))
                s.execute(delete(GameResultRow))
                s.commit()
            except SQLAlchemyError:
                s.rollback()
                logger.exception("Failed to clear leaderboard")

    def dispose(self) -> None:
        self._engine.dispose()
