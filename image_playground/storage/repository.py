"""
Repository pattern for data access.

Handles the append-only generation history.
"""

import json
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from .db import DEFAULT_DB_PATH, get_connection
from .models import GenerationEvent

_COLUMNS = (
    "timestamp, mode, model, prompt, image_count, filenames, "
    "text_input_tokens, image_input_tokens, cached_input_tokens, output_tokens, "
    "estimated_cost, duration_ms, streamed"
)


def _row_to_event(row) -> GenerationEvent:
    return GenerationEvent(
        timestamp=datetime.fromisoformat(row[0]),
        mode=row[1],
        model=row[2],
        prompt=row[3],
        image_count=row[4],
        filenames=tuple(json.loads(row[5])),
        text_input_tokens=row[6],
        image_input_tokens=row[7],
        cached_input_tokens=row[8],
        output_tokens=row[9],
        estimated_cost=row[10],
        duration_ms=row[11],
        streamed=bool(row[12])
    )


def _event_to_row(event: GenerationEvent) -> tuple:
    return (
        event.timestamp.isoformat(),
        event.mode,
        event.model,
        event.prompt,
        event.image_count,
        json.dumps(list(event.filenames)),
        event.text_input_tokens,
        event.image_input_tokens,
        event.cached_input_tokens,
        event.output_tokens,
        event.estimated_cost,
        event.duration_ms,
        int(event.streamed)
    )


class HistoryRepository:
    """Repository for reading the generation history.

    Wraps the module-level functions with a fixed database path.
    """

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        self.db_path = db_path

    def get_recent_events(
        self,
        mode: Optional[str] = None,
        model: Optional[str] = None,
        limit: int = 50
    ) -> List[GenerationEvent]:
        return fetch_recent_generation_events(
            mode=mode, model=model, limit=limit, db_path=self.db_path
        )

    def get_cost_summary(self, days: int = 30) -> Dict[str, float]:
        """Aggregate cost over the last ``days`` days.

        Args:
            days: Number of days to include

        Returns:
            Dictionary with request, image and priced-request counts and
            total/average cost. Unpriced requests count as requests but
            not towards cost.
        """
        conn = get_connection(self.db_path)
        try:
            cutoff = (datetime.now() - timedelta(days=days)).isoformat()
            cursor = conn.execute("""
                SELECT
                    COUNT(*),
                    SUM(image_count),
                    COUNT(estimated_cost),
                    SUM(estimated_cost),
                    AVG(estimated_cost)
                FROM generation_event
                WHERE timestamp >= ?
            """, (cutoff,))
            row = cursor.fetchone()

            return {
                "total_requests": row[0] or 0,
                "total_images": row[1] or 0,
                "priced_requests": row[2] or 0,
                "total_cost": round(float(row[3] or 0), 4),
                "avg_cost": round(float(row[4] or 0), 4)
            }
        finally:
            conn.close()


def initialize_schema(db_path: str = DEFAULT_DB_PATH) -> None:
    """Create the generation_event table if it doesn't exist.

    Args:
        db_path: Path to SQLite database file
    """
    conn = get_connection(db_path)
    try:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS generation_event (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                timestamp TEXT NOT NULL,
                mode TEXT NOT NULL,
                model TEXT NOT NULL,
                prompt TEXT NOT NULL,
                image_count INTEGER NOT NULL,
                filenames TEXT NOT NULL DEFAULT '[]',
                text_input_tokens INTEGER NOT NULL DEFAULT 0,
                image_input_tokens INTEGER NOT NULL DEFAULT 0,
                cached_input_tokens INTEGER NOT NULL DEFAULT 0,
                output_tokens INTEGER NOT NULL DEFAULT 0,
                estimated_cost REAL,
                duration_ms INTEGER NOT NULL DEFAULT 0,
                streamed INTEGER NOT NULL DEFAULT 0
            )
        """)
        conn.commit()
    finally:
        conn.close()


def insert_generation_event(event: GenerationEvent, db_path: str = DEFAULT_DB_PATH) -> None:
    """Append a single generation event to the history.

    Args:
        event: The event to record
        db_path: Path to SQLite database file
    """
    conn = get_connection(db_path)
    try:
        conn.execute(
            f"INSERT INTO generation_event ({_COLUMNS}) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            _event_to_row(event)
        )
        conn.commit()
    finally:
        conn.close()


def fetch_recent_generation_events(
    mode: Optional[str] = None,
    model: Optional[str] = None,
    limit: int = 50,
    db_path: str = DEFAULT_DB_PATH
) -> List[GenerationEvent]:
    """Fetch recent events, optionally filtered by mode and model.

    Args:
        mode: Optional filter for generate/edit/video
        model: Optional filter for a specific model
        limit: Maximum number of events to return
        db_path: Path to SQLite database file

    Returns:
        List of events ordered by timestamp (newest first)
    """
    conn = get_connection(db_path)
    try:
        query = f"SELECT {_COLUMNS} FROM generation_event"
        params: list = []
        conditions = []

        if mode:
            conditions.append("mode = ?")
            params.append(mode)
        if model:
            conditions.append("model = ?")
            params.append(model)

        if conditions:
            query += " WHERE " + " AND ".join(conditions)

        query += " ORDER BY timestamp DESC, id DESC LIMIT ?"
        params.append(limit)

        cursor = conn.execute(query, params)
        return [_row_to_event(row) for row in cursor.fetchall()]
    finally:
        conn.close()
