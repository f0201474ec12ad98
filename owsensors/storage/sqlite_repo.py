from __future__ import annotations
import json
import aiosqlite
from datetime import datetime
from typing import List, Optional
from ..domain.models import StateUpdate


class SQLiteRepository:
    def __init__(self, path: str) -> None:
        self._path = path

    async def init(self) -> None:
        async with aiosqlite.connect(self._path) as db:
            await db.execute(
                """
                CREATE TABLE IF NOT EXISTS state_updates (
                    ts_utc TEXT NOT NULL,
                    sensor_id TEXT NOT NULL,
                    channel TEXT NOT NULL,
                    value TEXT NOT NULL
                )
                """
            )
            await db.execute("CREATE INDEX IF NOT EXISTS idx_state_updates_ts ON state_updates(ts_utc)")
            await db.execute(
                "CREATE INDEX IF NOT EXISTS idx_state_updates_sensor ON state_updates(sensor_id, ts_utc)"
            )
            await db.commit()

    async def insert_updates(self, updates: List[StateUpdate]) -> None:
        if not updates:
            return
        async with aiosqlite.connect(self._path) as db:
            await db.executemany(
                "INSERT INTO state_updates(ts_utc,sensor_id,channel,value) VALUES (?,?,?,?)",
                [(u.ts_utc.isoformat(), u.sensor_id, u.channel, json.dumps(u.value)) for u in updates],
            )
            await db.commit()

    async def query_updates(
        self,
        start_ts: str,
        end_ts: str,
        limit: int,
        sensor_id: Optional[str] = None,
    ) -> List[StateUpdate]:
        sql = """
            SELECT ts_utc,sensor_id,channel,value
            FROM state_updates
            WHERE ts_utc >= ? AND ts_utc <= ?
        """
        params: list = [start_ts, end_ts]
        if sensor_id is not None:
            sql += " AND sensor_id = ?"
            params.append(sensor_id)
        sql += " ORDER BY ts_utc DESC LIMIT ?"
        params.append(limit)

        async with aiosqlite.connect(self._path) as db:
            cur = await db.execute(sql, params)
            rows = await cur.fetchall()
        out: list[StateUpdate] = []
        for ts, sid, channel, value in rows:
            out.append(
                StateUpdate(
                    ts_utc=datetime.fromisoformat(ts),
                    sensor_id=sid,
                    channel=channel,
                    value=json.loads(value),
                )
            )
        return list(reversed(out))
