"""
Game catalog persistence.

Writes are column-scoped: a sync upsert only touches install-state columns,
update_enrichment only touches enrichment columns, and update_user_metadata
only touches user columns. That is what keeps a re-sync from clearing
metadata that took minutes of network calls to gather.
"""
import json
import logging
from typing import Any, Dict, List, Optional

import aiosqlite

from .connection import Database
from .schema import ENRICHMENT_COLUMNS, JSON_LIST_COLUMNS
from ..stores.base import Game, utc_now

logger = logging.getLogger(__name__)

# Columns that exist on Game and map 1:1 to the games table
GAME_COLUMNS = (
    'id', 'store_id', 'store', 'title',
    'installed', 'install_path', 'install_size', 'executable_path',
    'custom_executable', 'wine_prefix', 'wine_version', 'runner',
) + ENRICHMENT_COLUMNS + (
    'is_favorite', 'play_time_minutes', 'last_played',
    'created_at', 'updated_at', 'enriched_at',
)

BOOL_COLUMNS = ('installed', 'is_favorite')

# Insert the full record; on conflict install state and runtime overrides are
# overwritten. An adapter-provided developer/publisher only fills gaps.
UPSERT_SQL = f"""
INSERT INTO games ({', '.join(GAME_COLUMNS)})
VALUES ({', '.join('?' for _ in GAME_COLUMNS)})
ON CONFLICT(id) DO UPDATE SET
    title = excluded.title,
    installed = excluded.installed,
    install_path = excluded.install_path,
    install_size = excluded.install_size,
    executable_path = excluded.executable_path,
    custom_executable = excluded.custom_executable,
    wine_prefix = excluded.wine_prefix,
    wine_version = excluded.wine_version,
    runner = excluded.runner,
    developer = COALESCE(games.developer, excluded.developer),
    publisher = COALESCE(games.publisher, excluded.publisher),
    updated_at = excluded.updated_at
"""


def row_to_game(row: aiosqlite.Row) -> Game:
    """Convert a games row into a Game record."""
    values: Dict[str, Any] = {}
    keys = row.keys()
    for column in GAME_COLUMNS:
        if column not in keys:
            continue
        value = row[column]
        if column in JSON_LIST_COLUMNS:
            try:
                value = json.loads(value) if value else []
            except json.JSONDecodeError:
                value = []
        elif column in BOOL_COLUMNS:
            value = bool(value)
        values[column] = value
    return Game(**values)


def _game_params(game: Game, now: str) -> List[Any]:
    params = []
    for column in GAME_COLUMNS:
        if column in ('created_at', 'updated_at'):
            value = now
        else:
            value = getattr(game, column)
        if column in JSON_LIST_COLUMNS:
            value = json.dumps(value or [])
        elif column in BOOL_COLUMNS:
            value = 1 if value else 0
        params.append(value)
    return params


class GameRepository:
    """Catalog store for game records."""

    def __init__(self, db: Database):
        self.db = db

    # ---- reads ----

    async def get_all(self) -> List[Game]:
        rows = await self.db.fetch_all("SELECT * FROM games ORDER BY title COLLATE NOCASE")
        return [row_to_game(r) for r in rows]

    async def get_by_id(self, game_id: str) -> Optional[Game]:
        row = await self.db.fetch_one("SELECT * FROM games WHERE id = ?", (game_id,))
        return row_to_game(row) if row else None

    async def get_by_store(self, store: str) -> List[Game]:
        rows = await self.db.fetch_all(
            "SELECT * FROM games WHERE store = ? ORDER BY title COLLATE NOCASE", (store,)
        )
        return [row_to_game(r) for r in rows]

    async def get_ids(self, store: Optional[str] = None) -> set:
        if store is None:
            rows = await self.db.fetch_all("SELECT id FROM games")
        else:
            rows = await self.db.fetch_all("SELECT id FROM games WHERE store = ?", (store,))
        return {r['id'] for r in rows}

    async def get_unenriched(self) -> List[Game]:
        rows = await self.db.fetch_all("SELECT * FROM games WHERE enriched_at IS NULL")
        return [row_to_game(r) for r in rows]

    async def get_recently_played(self, limit: int = 10) -> List[Game]:
        rows = await self.db.fetch_all(
            "SELECT * FROM games WHERE last_played IS NOT NULL ORDER BY last_played DESC LIMIT ?",
            (limit,),
        )
        return [row_to_game(r) for r in rows]

    async def get_favorites(self) -> List[Game]:
        rows = await self.db.fetch_all(
            "SELECT * FROM games WHERE is_favorite = 1 ORDER BY title COLLATE NOCASE"
        )
        return [row_to_game(r) for r in rows]

    async def search(self, query: str) -> List[Game]:
        """Case-insensitive substring match on title or developer."""
        pattern = f"%{query}%"
        rows = await self.db.fetch_all(
            "SELECT * FROM games WHERE title LIKE ? OR developer LIKE ? ORDER BY title COLLATE NOCASE",
            (pattern, pattern),
        )
        return [row_to_game(r) for r in rows]

    async def count(self, store: Optional[str] = None) -> int:
        if store is None:
            row = await self.db.fetch_one("SELECT COUNT(*) AS n FROM games")
        else:
            row = await self.db.fetch_one("SELECT COUNT(*) AS n FROM games WHERE store = ?", (store,))
        return row['n'] if row else 0

    # ---- sync writes ----

    async def upsert(self, game: Game) -> None:
        """Insert a record, or refresh install state of an existing one."""
        await self.db.execute(UPSERT_SQL, _game_params(game, utc_now()))

    async def upsert_many(self, games: List[Game]) -> None:
        """Upsert a batch atomically: either every record is written or none is."""
        now = utc_now()
        async with self.db.transaction() as conn:
            for game in games:
                await conn.execute(UPSERT_SQL, _game_params(game, now))
        logger.debug(f"[Catalog] Upserted {len(games)} games")

    # ---- enrichment / user / install writes ----

    async def update_enrichment(self, game_id: str, fields: Dict[str, Any]) -> bool:
        """
        Write enrichment fields for a game and stamp enriched_at.

        Keys that are not enrichment columns are ignored.

        Returns:
            True if the game exists
        """
        assignments = []
        params: List[Any] = []
        for column, value in fields.items():
            if column not in ENRICHMENT_COLUMNS:
                logger.debug(f"[Catalog] Ignoring non-enrichment field '{column}' for {game_id}")
                continue
            if column in JSON_LIST_COLUMNS:
                value = json.dumps(value or [])
            assignments.append(f"{column} = ?")
            params.append(value)

        now = utc_now()
        assignments += ["enriched_at = ?", "updated_at = ?"]
        params += [now, now, game_id]
        rowcount = await self.db.execute(
            f"UPDATE games SET {', '.join(assignments)} WHERE id = ?", params
        )
        return rowcount > 0

    async def update_user_metadata(self, game_id: str, is_favorite: Optional[bool] = None,
                                   play_time_minutes: Optional[int] = None,
                                   last_played: Optional[str] = None) -> bool:
        """Update user-owned fields. Arguments left as None are not changed."""
        assignments = []
        params: List[Any] = []
        if is_favorite is not None:
            assignments.append("is_favorite = ?")
            params.append(1 if is_favorite else 0)
        if play_time_minutes is not None:
            assignments.append("play_time_minutes = ?")
            params.append(int(play_time_minutes))
        if last_played is not None:
            assignments.append("last_played = ?")
            params.append(last_played)
        if not assignments:
            return await self.get_by_id(game_id) is not None

        assignments.append("updated_at = ?")
        params += [utc_now(), game_id]
        rowcount = await self.db.execute(
            f"UPDATE games SET {', '.join(assignments)} WHERE id = ?", params
        )
        return rowcount > 0

    async def set_install_state(self, game_id: str, installed: bool,
                                install_path: Optional[str] = None,
                                install_size: Optional[str] = None,
                                executable_path: Optional[str] = None) -> bool:
        """Write install-state columns after an install or uninstall."""
        rowcount = await self.db.execute(
            """UPDATE games
               SET installed = ?, install_path = ?, install_size = ?, executable_path = ?, updated_at = ?
               WHERE id = ?""",
            (1 if installed else 0, install_path, install_size, executable_path, utc_now(), game_id),
        )
        return rowcount > 0

    async def delete(self, game_id: str) -> bool:
        rowcount = await self.db.execute("DELETE FROM games WHERE id = ?", (game_id,))
        return rowcount > 0

    # ---- settings ----

    async def get_setting(self, key: str) -> Optional[str]:
        row = await self.db.fetch_one("SELECT value FROM settings WHERE key = ?", (key,))
        return row['value'] if row else None

    async def set_setting(self, key: str, value: str) -> None:
        await self.db.execute(
            "INSERT INTO settings (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
            (key, value),
        )
