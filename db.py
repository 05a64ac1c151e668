from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any
from uuid import uuid4

from sqlmodel import Field, Session, SQLModel, create_engine, select


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def _discovery_key(item: dict[str, Any]) -> tuple[int, int]:
    return (item["canonical_steps"], item["raw_steps"])


@dataclass
class SessionRecord:
    id: str
    handle: str
    maze_id: str
    path: str
    created_at: str
    updated_at: str


@dataclass
class DiscoveryRecord:
    id: str
    session_id: str
    maze_id: str
    secret: str
    raw_steps: int
    canonical_steps: int
    created_at: str


class JsonSessionRepository:
    """Explorer sessions and goal discoveries kept in a single JSON document."""

    def __init__(self, path: str | Path, schema_version: int = 1):
        self.path = Path(path)
        self.schema_version = schema_version
        if not self.path.exists():
            self._write_doc(self._empty_doc())

    def _empty_doc(self) -> dict[str, Any]:
        return {"schema_version": self.schema_version, "sessions": {}, "discoveries": {}}

    def _read_doc(self) -> dict[str, Any]:
        if not self.path.exists():
            return self._empty_doc()
        raw = self.path.read_text(encoding="utf-8").strip()
        if not raw:
            return self._empty_doc()
        doc = json.loads(raw)
        doc.setdefault("sessions", {})
        doc.setdefault("discoveries", {})
        return doc

    def _write_doc(self, doc: dict[str, Any]) -> None:
        doc["schema_version"] = self.schema_version
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(doc, indent=2, sort_keys=True), encoding="utf-8")
        tmp_path.replace(self.path)

    # Session ops
    def get_session(self, session_id: str) -> dict[str, Any] | None:
        return self._read_doc()["sessions"].get(session_id)

    def get_or_create_session(self, handle: str, maze_id: str) -> dict[str, Any]:
        doc = self._read_doc()
        for session in doc["sessions"].values():
            if session["handle"] == handle and session["maze_id"] == maze_id:
                return session

        now = _utc_now_iso()
        record = asdict(SessionRecord(id=str(uuid4()), handle=handle, maze_id=maze_id, path="", created_at=now, updated_at=now))
        doc["sessions"][record["id"]] = record
        self._write_doc(doc)
        return record

    def save_session(self, session_id: str, path: str) -> dict[str, Any]:
        doc = self._read_doc()
        session = doc["sessions"].get(session_id)
        if session is None:
            raise KeyError(f"Unknown session_id: {session_id}")
        session["path"] = path
        session["updated_at"] = _utc_now_iso()
        self._write_doc(doc)
        return session

    # Discovery ops
    def record_discovery(
        self,
        session_id: str,
        maze_id: str,
        secret: str,
        raw_steps: int,
        canonical_steps: int,
    ) -> dict[str, Any]:
        doc = self._read_doc()
        record = asdict(
            DiscoveryRecord(
                id=str(uuid4()),
                session_id=session_id,
                maze_id=maze_id,
                secret=secret,
                raw_steps=raw_steps,
                canonical_steps=canonical_steps,
                created_at=_utc_now_iso(),
            )
        )
        doc["discoveries"][record["id"]] = record
        self._write_doc(doc)
        return record

    def list_discoveries(
        self,
        maze_id: str | None = None,
        limit: int = 10,
        session_id: str | None = None,
    ) -> list[dict[str, Any]]:
        items = list(self._read_doc()["discoveries"].values())
        if maze_id is not None:
            items = [d for d in items if d["maze_id"] == maze_id]
        if session_id is not None:
            items = [d for d in items if d["session_id"] == session_id]
        items.sort(key=_discovery_key)
        return items[:limit]

    def close(self) -> None:
        pass


# ---------------------------------------------------------------------------
# SQLModel tables for SqliteSessionRepository
# ---------------------------------------------------------------------------


class SessionModel(SQLModel, table=True):
    __tablename__ = "sessions"
    id: str = Field(primary_key=True)
    handle: str = Field(index=True)
    maze_id: str
    path: str
    created_at: str
    updated_at: str


class DiscoveryModel(SQLModel, table=True):
    __tablename__ = "discoveries"
    id: str = Field(primary_key=True)
    session_id: str = Field(index=True)
    maze_id: str
    secret: str
    raw_steps: int
    canonical_steps: int
    created_at: str


def _session_dict(row: SessionModel) -> dict[str, Any]:
    return asdict(
        SessionRecord(
            id=row.id,
            handle=row.handle,
            maze_id=row.maze_id,
            path=row.path,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )
    )


def _discovery_dict(row: DiscoveryModel) -> dict[str, Any]:
    return asdict(
        DiscoveryRecord(
            id=row.id,
            session_id=row.session_id,
            maze_id=row.maze_id,
            secret=row.secret,
            raw_steps=row.raw_steps,
            canonical_steps=row.canonical_steps,
            created_at=row.created_at,
        )
    )


class SqliteSessionRepository:
    """SQLite-backed repository using SQLModel. Same interface as JsonSessionRepository."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.engine = create_engine(f"sqlite:///{self.path}", connect_args={"check_same_thread": False})
        SQLModel.metadata.create_all(self.engine)

    # Session ops
    def get_session(self, session_id: str) -> dict[str, Any] | None:
        with Session(self.engine) as session:
            row = session.get(SessionModel, session_id)
            return None if row is None else _session_dict(row)

    def get_or_create_session(self, handle: str, maze_id: str) -> dict[str, Any]:
        with Session(self.engine) as session:
            stmt = select(SessionModel).where(SessionModel.handle == handle, SessionModel.maze_id == maze_id)
            row = session.exec(stmt).first()
            if row is None:
                now = _utc_now_iso()
                row = SessionModel(id=str(uuid4()), handle=handle, maze_id=maze_id, path="", created_at=now, updated_at=now)
                session.add(row)
                session.commit()
                session.refresh(row)
            return _session_dict(row)

    def save_session(self, session_id: str, path: str) -> dict[str, Any]:
        with Session(self.engine) as session:
            row = session.get(SessionModel, session_id)
            if row is None:
                raise KeyError(f"Unknown session_id: {session_id}")
            row.path = path
            row.updated_at = _utc_now_iso()
            session.add(row)
            session.commit()
            session.refresh(row)
            return _session_dict(row)

    # Discovery ops
    def record_discovery(
        self,
        session_id: str,
        maze_id: str,
        secret: str,
        raw_steps: int,
        canonical_steps: int,
    ) -> dict[str, Any]:
        with Session(self.engine) as session:
            row = DiscoveryModel(
                id=str(uuid4()),
                session_id=session_id,
                maze_id=maze_id,
                secret=secret,
                raw_steps=raw_steps,
                canonical_steps=canonical_steps,
                created_at=_utc_now_iso(),
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return _discovery_dict(row)

    def list_discoveries(
        self,
        maze_id: str | None = None,
        limit: int = 10,
        session_id: str | None = None,
    ) -> list[dict[str, Any]]:
        with Session(self.engine) as session:
            stmt = select(DiscoveryModel)
            if maze_id is not None:
                stmt = stmt.where(DiscoveryModel.maze_id == maze_id)
            if session_id is not None:
                stmt = stmt.where(DiscoveryModel.session_id == session_id)
            stmt = stmt.order_by(DiscoveryModel.canonical_steps, DiscoveryModel.raw_steps).limit(limit)
            return [_discovery_dict(row) for row in session.exec(stmt).all()]

    def close(self) -> None:
        self.engine.dispose()


def open_repo(path: str | Path):
    """Return SqliteSessionRepository for .db paths, JsonSessionRepository otherwise."""
    path = Path(path)
    if path.suffix == ".db":
        return SqliteSessionRepository(path)
    return JsonSessionRepository(path)
