"""
Turn Store for ThreadVault

This module provides persistent storage for threads, turns, tags and turn
embeddings using SQLite. Every public method is a coroutine; the SQL runs in
a worker thread with its own connection so callers never block the event loop.
"""

import asyncio
import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, NamedTuple, Optional, Tuple
from uuid import uuid4

from loguru import logger

from .errors import NotFoundError
from .models import Role, Tag, Thread, ThreadRef, ThreadStatus, Turn, utc_now

if TYPE_CHECKING:
    from ..memory.vectorstore import VectorQuery


def to_db_timestamp(value: datetime) -> str:
    """Render a datetime as a sortable UTC ISO-8601 string."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


class EmbeddedTurn(NamedTuple):
    """A turn together with its stored embedding and the thread it belongs to."""

    turn: Turn
    thread: ThreadRef
    embedding: List[float]
    provider_name: Optional[str]
    dimensions: Optional[int]


_TURN_COLUMNS = (
    "t.id, t.thread_id, t.role, t.content, t.order_index, "
    "t.token_count_estimate, t.annotations, t.created_at, t.updated_at"
)


class TurnStore:
    """
    SQLite-backed store for threads and turns.

    Turn appends are serialized per database with ``BEGIN IMMEDIATE`` so the
    order index of a new turn is always computed and written atomically.
    """

    def __init__(self, db_path: str = "threadvault.db"):
        """
        Initialize the store and create the schema if needed.

        Args:
            db_path: Path to the SQLite database file
        """
        self.db_path = Path(db_path)
        self._init_database()
        logger.info(f"TurnStore initialized with database: {self.db_path}")

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=30.0, isolation_level=None)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def _init_database(self) -> None:
        """Create tables and indexes if they don't already exist."""
        conn = self._connect()
        try:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS threads (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    description TEXT,
                    status TEXT NOT NULL DEFAULT 'ACTIVE',
                    metadata JSON,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS tags (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL UNIQUE,
                    color TEXT
                );

                CREATE TABLE IF NOT EXISTS thread_tags (
                    thread_id TEXT NOT NULL REFERENCES threads(id) ON DELETE CASCADE,
                    tag_id TEXT NOT NULL REFERENCES tags(id) ON DELETE CASCADE,
                    PRIMARY KEY (thread_id, tag_id)
                );

                CREATE TABLE IF NOT EXISTS turns (
                    id TEXT PRIMARY KEY,
                    thread_id TEXT NOT NULL REFERENCES threads(id) ON DELETE CASCADE,
                    role TEXT NOT NULL,
                    content TEXT NOT NULL,
                    order_index INTEGER NOT NULL,
                    token_count_estimate INTEGER,
                    annotations JSON,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    embedding TEXT,
                    embedding_provider TEXT,
                    embedding_dimensions INTEGER,
                    UNIQUE (thread_id, order_index)
                );

                CREATE INDEX IF NOT EXISTS idx_turns_thread_order
                    ON turns (thread_id, order_index);
                """
            )
            logger.debug("Database schema initialized successfully")
        except sqlite3.Error as e:
            logger.error(f"Error initializing database: {e}")
            raise
        finally:
            conn.close()

    # ------------------------------------------------------------------
    # Row mapping
    # ------------------------------------------------------------------

    @staticmethod
    def _row_to_thread(row: sqlite3.Row) -> Thread:
        return Thread(
            id=row["id"],
            title=row["title"],
            description=row["description"],
            status=ThreadStatus(row["status"]),
            metadata=json.loads(row["metadata"]) if row["metadata"] else {},
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    @staticmethod
    def _row_to_turn(row: sqlite3.Row) -> Turn:
        return Turn(
            id=row["id"],
            thread_id=row["thread_id"],
            role=Role(row["role"]),
            content=row["content"],
            order_index=row["order_index"],
            token_count_estimate=row["token_count_estimate"],
            annotations=json.loads(row["annotations"]) if row["annotations"] else None,
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    # ------------------------------------------------------------------
    # Threads and tags
    # ------------------------------------------------------------------

    async def create_thread(
        self,
        title: str,
        description: Optional[str] = None,
        status: ThreadStatus = ThreadStatus.ACTIVE,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Thread:
        """
        Create a new thread.

        Args:
            title: Thread title
            description: Optional description
            status: Initial status
            metadata: Free-form metadata

        Returns:
            Thread: The created thread
        """
        thread = Thread(
            id=str(uuid4()),
            title=title,
            description=description,
            status=status,
            metadata=metadata or {},
        )
        await asyncio.to_thread(self._insert_thread, thread)
        logger.info(f"Created thread {thread.id}")
        return thread

    def _insert_thread(self, thread: Thread) -> None:
        conn = self._connect()
        try:
            conn.execute(
                """
                INSERT INTO threads
                    (id, title, description, status, metadata, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    thread.id,
                    thread.title,
                    thread.description,
                    thread.status.value,
                    json.dumps(thread.metadata),
                    to_db_timestamp(thread.created_at),
                    to_db_timestamp(thread.updated_at),
                ),
            )
        finally:
            conn.close()

    async def find_thread(self, thread_id: str) -> Thread:
        """Load a thread by id, raising NotFoundError if absent."""
        return await asyncio.to_thread(self._find_thread, thread_id)

    def _find_thread(self, thread_id: str) -> Thread:
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT * FROM threads WHERE id = ?", (thread_id,)
            ).fetchone()
        finally:
            conn.close()

        if row is None:
            raise NotFoundError("Thread", thread_id)
        return self._row_to_thread(row)

    async def list_threads(
        self, include_archived: bool = False, limit: int = 50
    ) -> List[Thread]:
        """List threads, most recently updated first."""
        return await asyncio.to_thread(self._list_threads, include_archived, limit)

    def _list_threads(self, include_archived: bool, limit: int) -> List[Thread]:
        sql = "SELECT * FROM threads"
        params: Tuple[Any, ...] = ()
        if not include_archived:
            sql += " WHERE status = ?"
            params = (ThreadStatus.ACTIVE.value,)
        sql += " ORDER BY updated_at DESC LIMIT ?"
        params += (limit,)

        conn = self._connect()
        try:
            rows = conn.execute(sql, params).fetchall()
        finally:
            conn.close()
        return [self._row_to_thread(row) for row in rows]

    async def create_tag(self, name: str, color: Optional[str] = None) -> Tag:
        """Create a tag."""
        tag = Tag(id=str(uuid4()), name=name, color=color)
        await asyncio.to_thread(self._insert_tag, tag)
        return tag

    def _insert_tag(self, tag: Tag) -> None:
        conn = self._connect()
        try:
            conn.execute(
                "INSERT INTO tags (id, name, color) VALUES (?, ?, ?)",
                (tag.id, tag.name, tag.color),
            )
        finally:
            conn.close()

    async def tag_thread(self, thread_id: str, tag_id: str) -> None:
        """Attach a tag to a thread. Attaching twice is a no-op."""
        await asyncio.to_thread(self._tag_thread, thread_id, tag_id)

    def _tag_thread(self, thread_id: str, tag_id: str) -> None:
        conn = self._connect()
        try:
            if conn.execute(
                "SELECT 1 FROM threads WHERE id = ?", (thread_id,)
            ).fetchone() is None:
                raise NotFoundError("Thread", thread_id)
            if conn.execute(
                "SELECT 1 FROM tags WHERE id = ?", (tag_id,)
            ).fetchone() is None:
                raise NotFoundError("Tag", tag_id)
            conn.execute(
                "INSERT OR IGNORE INTO thread_tags (thread_id, tag_id) VALUES (?, ?)",
                (thread_id, tag_id),
            )
        finally:
            conn.close()

    async def find_thread_tags(self, thread_id: str) -> List[Tag]:
        """Tags attached to a thread, by name."""
        return await asyncio.to_thread(self._find_thread_tags, thread_id)

    def _find_thread_tags(self, thread_id: str) -> List[Tag]:
        conn = self._connect()
        try:
            rows = conn.execute(
                """
                SELECT g.id, g.name, g.color FROM tags g
                JOIN thread_tags tt ON tt.tag_id = g.id
                WHERE tt.thread_id = ?
                ORDER BY g.name
                """,
                (thread_id,),
            ).fetchall()
        finally:
            conn.close()
        return [Tag(id=row["id"], name=row["name"], color=row["color"]) for row in rows]

    # ------------------------------------------------------------------
    # Turns
    # ------------------------------------------------------------------

    async def create_turn(
        self,
        thread_id: str,
        role: Role,
        content: str,
        annotations: Optional[Dict[str, Any]] = None,
        token_count_estimate: Optional[int] = None,
    ) -> Turn:
        """
        Append a turn to the end of a thread.

        The order index is assigned inside a write transaction, so concurrent
        appends to the same thread never collide.

        Args:
            thread_id: Owning thread
            role: Turn role
            content: Turn text
            annotations: Optional structured annotations
            token_count_estimate: Optional token usage estimate

        Returns:
            Turn: The persisted turn
        """
        turn = await asyncio.to_thread(
            self._append_turn,
            thread_id,
            Role(role),
            content,
            annotations,
            token_count_estimate,
        )
        logger.debug(
            f"Appended {turn.role.value} turn {turn.id} to thread {thread_id} "
            f"at index {turn.order_index}"
        )
        return turn

    def _append_turn(
        self,
        thread_id: str,
        role: Role,
        content: str,
        annotations: Optional[Dict[str, Any]],
        token_count_estimate: Optional[int],
    ) -> Turn:
        conn = self._connect()
        try:
            conn.execute("BEGIN IMMEDIATE")
            try:
                if conn.execute(
                    "SELECT 1 FROM threads WHERE id = ?", (thread_id,)
                ).fetchone() is None:
                    raise NotFoundError("Thread", thread_id)

                next_index = conn.execute(
                    "SELECT COALESCE(MAX(order_index) + 1, 0) FROM turns WHERE thread_id = ?",
                    (thread_id,),
                ).fetchone()[0]

                now = utc_now()
                turn = Turn(
                    id=str(uuid4()),
                    thread_id=thread_id,
                    role=role,
                    content=content,
                    order_index=next_index,
                    token_count_estimate=token_count_estimate,
                    annotations=annotations,
                    created_at=now,
                    updated_at=now,
                )
                conn.execute(
                    """
                    INSERT INTO turns
                        (id, thread_id, role, content, order_index,
                         token_count_estimate, annotations, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        turn.id,
                        turn.thread_id,
                        turn.role.value,
                        turn.content,
                        turn.order_index,
                        turn.token_count_estimate,
                        json.dumps(annotations) if annotations is not None else None,
                        to_db_timestamp(now),
                        to_db_timestamp(now),
                    ),
                )
                conn.execute(
                    "UPDATE threads SET updated_at = ? WHERE id = ?",
                    (to_db_timestamp(now), thread_id),
                )
                conn.execute("COMMIT")
            except BaseException:
                conn.execute("ROLLBACK")
                raise
        finally:
            conn.close()

        return turn

    async def find_turn(self, turn_id: str) -> Turn:
        """Load a turn by id, raising NotFoundError if absent."""
        return await asyncio.to_thread(self._find_turn, turn_id)

    def _find_turn(self, turn_id: str) -> Turn:
        conn = self._connect()
        try:
            row = conn.execute(
                f"SELECT {_TURN_COLUMNS} FROM turns t WHERE t.id = ?", (turn_id,)
            ).fetchone()
        finally:
            conn.close()

        if row is None:
            raise NotFoundError("Turn", turn_id)
        return self._row_to_turn(row)

    async def find_turns_by_thread(
        self,
        thread_id: str,
        ascending: bool = True,
        limit: Optional[int] = None,
        role: Optional[Role] = None,
    ) -> List[Turn]:
        """
        List a thread's turns by order index.

        Args:
            thread_id: Thread to list
            ascending: Order direction
            limit: Optional maximum number of turns
            role: Only turns with this role

        Returns:
            List[Turn]: Turns in the requested order
        """
        return await asyncio.to_thread(
            self._find_turns_by_thread, thread_id, ascending, limit, role
        )

    def _find_turns_by_thread(
        self,
        thread_id: str,
        ascending: bool,
        limit: Optional[int],
        role: Optional[Role] = None,
    ) -> List[Turn]:
        direction = "ASC" if ascending else "DESC"
        sql = f"SELECT {_TURN_COLUMNS} FROM turns t WHERE t.thread_id = ?"
        params: Tuple[Any, ...] = (thread_id,)
        if role is not None:
            sql += " AND t.role = ?"
            params += (Role(role).value,)
        sql += f" ORDER BY t.order_index {direction}"
        if limit is not None:
            sql += " LIMIT ?"
            params += (limit,)

        conn = self._connect()
        try:
            if conn.execute(
                "SELECT 1 FROM threads WHERE id = ?", (thread_id,)
            ).fetchone() is None:
                raise NotFoundError("Thread", thread_id)
            rows = conn.execute(sql, params).fetchall()
        finally:
            conn.close()
        return [self._row_to_turn(row) for row in rows]

    async def get_recent_turns(self, thread_id: str, n: int = 10) -> List[Turn]:
        """Return the last ``n`` turns of a thread in ascending order."""
        turns = await self.find_turns_by_thread(thread_id, ascending=False, limit=n)
        return list(reversed(turns))

    async def count_turns(self, thread_id: str) -> int:
        """Number of turns in a thread."""
        return await asyncio.to_thread(self._count_turns, thread_id)

    def _count_turns(self, thread_id: str) -> int:
        conn = self._connect()
        try:
            return conn.execute(
                "SELECT COUNT(*) FROM turns WHERE thread_id = ?", (thread_id,)
            ).fetchone()[0]
        finally:
            conn.close()

    async def update_turn_content(self, turn_id: str, content: str) -> Turn:
        """
        Replace a turn's content.

        The stored embedding is cleared, so the turn drops out of similarity
        search until it is embedded again.
        """
        await asyncio.to_thread(self._update_turn_content, turn_id, content)
        return await self.find_turn(turn_id)

    def _update_turn_content(self, turn_id: str, content: str) -> None:
        conn = self._connect()
        try:
            cursor = conn.execute(
                """
                UPDATE turns
                SET content = ?, updated_at = ?,
                    embedding = NULL, embedding_provider = NULL,
                    embedding_dimensions = NULL
                WHERE id = ?
                """,
                (content, to_db_timestamp(utc_now()), turn_id),
            )
            if cursor.rowcount == 0:
                raise NotFoundError("Turn", turn_id)
        finally:
            conn.close()

    async def update_turn_annotations(
        self, turn_id: str, annotations: Optional[Dict[str, Any]]
    ) -> Turn:
        """Replace a turn's annotations. The embedding is kept."""
        await asyncio.to_thread(self._update_turn_annotations, turn_id, annotations)
        return await self.find_turn(turn_id)

    def _update_turn_annotations(
        self, turn_id: str, annotations: Optional[Dict[str, Any]]
    ) -> None:
        conn = self._connect()
        try:
            cursor = conn.execute(
                "UPDATE turns SET annotations = ?, updated_at = ? WHERE id = ?",
                (
                    json.dumps(annotations) if annotations is not None else None,
                    to_db_timestamp(utc_now()),
                    turn_id,
                ),
            )
            if cursor.rowcount == 0:
                raise NotFoundError("Turn", turn_id)
        finally:
            conn.close()

    # ------------------------------------------------------------------
    # Embeddings
    # ------------------------------------------------------------------

    async def update_turn_embedding(
        self, turn_id: str, vector: List[float], provider_name: str
    ) -> None:
        """
        Store a turn's embedding, overwriting any prior vector.

        Args:
            turn_id: Turn to update
            vector: Embedding vector
            provider_name: Name of the provider that computed the vector
        """
        await asyncio.to_thread(
            self._update_turn_embedding, turn_id, vector, provider_name
        )

    def _update_turn_embedding(
        self, turn_id: str, vector: List[float], provider_name: str
    ) -> None:
        conn = self._connect()
        try:
            cursor = conn.execute(
                """
                UPDATE turns
                SET embedding = ?, embedding_provider = ?, embedding_dimensions = ?
                WHERE id = ?
                """,
                (json.dumps(list(vector)), provider_name, len(vector), turn_id),
            )
            if cursor.rowcount == 0:
                raise NotFoundError("Turn", turn_id)
        finally:
            conn.close()

    async def embedding_signature(self, turn_id: str) -> Optional[Tuple[str, int]]:
        """
        Provider name and dimension count of a turn's stored embedding.

        Returns:
            Optional[Tuple[str, int]]: None when the turn has no embedding
        """
        return await asyncio.to_thread(self._embedding_signature, turn_id)

    def _embedding_signature(self, turn_id: str) -> Optional[Tuple[str, int]]:
        conn = self._connect()
        try:
            row = conn.execute(
                """
                SELECT embedding IS NOT NULL AS has_embedding,
                       embedding_provider, embedding_dimensions
                FROM turns WHERE id = ?
                """,
                (turn_id,),
            ).fetchone()
        finally:
            conn.close()

        if row is None:
            raise NotFoundError("Turn", turn_id)
        if not row["has_embedding"]:
            return None
        return row["embedding_provider"], row["embedding_dimensions"]

    async def query_embedded_turns(self, query: "VectorQuery") -> List[EmbeddedTurn]:
        """
        Fetch embedded turns matching the query's filters.

        Turns without an embedding are never returned. Every matching row is
        loaded and its vector decoded, so the cost grows with the number of
        embedded turns the filters admit; scope large vaults by thread, role,
        date range or tags.
        """
        return await asyncio.to_thread(self._query_embedded_turns, query)

    def _query_embedded_turns(self, query: "VectorQuery") -> List[EmbeddedTurn]:
        where, params = query.to_sql()
        sql = f"""
            SELECT {_TURN_COLUMNS},
                   t.embedding, t.embedding_provider, t.embedding_dimensions,
                   th.title AS thread_title
            FROM turns t
            JOIN threads th ON th.id = t.thread_id
            WHERE {where}
        """

        conn = self._connect()
        try:
            rows = conn.execute(sql, params).fetchall()
        finally:
            conn.close()

        return [
            EmbeddedTurn(
                turn=self._row_to_turn(row),
                thread=ThreadRef(id=row["thread_id"], title=row["thread_title"]),
                embedding=json.loads(row["embedding"]),
                provider_name=row["embedding_provider"],
                dimensions=row["embedding_dimensions"],
            )
            for row in rows
        ]
