"""
Persistence for label analyses and avoidance plans.

Plans are stored as their serialized JSON text and handed back unchanged; the
stores never interpret plan contents. Two backends are provided:
- CsvPlanStore: append-only CSV files, handy for local runs and tests
- DatabasePlanStore: PostgreSQL tables nutrition_analysis / avoidance_plans
"""

from __future__ import annotations

import csv
import json
import logging
import os
from contextlib import closing, contextmanager
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Tuple

try:
    import psycopg2
    from psycopg2.extras import Json, RealDictCursor
except ModuleNotFoundError:  # pragma: no cover - optional dependency
    psycopg2 = None  # type: ignore
    Json = None  # type: ignore
    RealDictCursor = None  # type: ignore

from .models import AnalysisRecord, AvoidancePlan, NutritionFacts, StoredPlan


class PlanStore:
    """
    Base interface for analysis/plan persistence (DB, files, cache).
    """

    def save_analysis(
        self,
        user_id: int,
        ingredients: List[str],
        harmful_flags: Dict[str, bool],
        nutrition: Optional[NutritionFacts] = None,
    ) -> AnalysisRecord:
        raise NotImplementedError

    def get_analysis(self, analysis_id: int) -> Optional[AnalysisRecord]:
        raise NotImplementedError

    def latest_analysis(self, user_id: int) -> Optional[AnalysisRecord]:
        raise NotImplementedError

    def user_analyses(self, user_id: int, limit: int = 10) -> List[AnalysisRecord]:
        raise NotImplementedError

    def save_plan(
        self, user_id: int, analysis_id: Optional[int], plan: AvoidancePlan
    ) -> StoredPlan:
        raise NotImplementedError

    def get_plan(self, plan_id: int) -> Optional[StoredPlan]:
        raise NotImplementedError

    def user_plans(self, user_id: int, limit: int = 10) -> List[StoredPlan]:
        raise NotImplementedError

    def latest_plan(self, user_id: int) -> Optional[StoredPlan]:
        plans = self.user_plans(user_id, limit=1)
        return plans[0] if plans else None

    def plan_with_analysis(
        self, plan_id: int
    ) -> Optional[Tuple[StoredPlan, AnalysisRecord]]:
        """
        Return a plan with the analysis it was built from, or None when either
        is missing.
        """
        plan = self.get_plan(plan_id)
        if plan is None or plan.analysis_id is None:
            return None
        analysis = self.get_analysis(plan.analysis_id)
        if analysis is None:
            return None
        return plan, analysis


class CsvPlanStore(PlanStore):
    """
    File-backed store: one CSV for analyses and one for plans, sequential ids.
    """

    ANALYSIS_FIELDS = ["id", "user_id", "ingredients", "harmful_flags", "nutrition", "created_at"]
    PLAN_FIELDS = ["id", "user_id", "analysis_id", "plan_text", "created_at"]

    def __init__(self, directory: Optional[str] = None):
        self.directory = Path(directory) if directory else Path("db") / "history"
        self.analyses_path = self.directory / "analyses.csv"
        self.plans_path = self.directory / "plans.csv"
        self.log = logging.getLogger(self.__class__.__name__)

    def save_analysis(
        self,
        user_id: int,
        ingredients: List[str],
        harmful_flags: Dict[str, bool],
        nutrition: Optional[NutritionFacts] = None,
    ) -> AnalysisRecord:
        record = AnalysisRecord(
            id=self._next_id(self.analyses_path),
            user_id=user_id,
            ingredients=list(ingredients),
            harmful_flags=dict(harmful_flags),
            nutrition=nutrition or NutritionFacts(),
            created_at=datetime.now(),
        )
        self._append(
            self.analyses_path,
            self.ANALYSIS_FIELDS,
            {
                "id": record.id,
                "user_id": record.user_id,
                "ingredients": json.dumps(record.ingredients, ensure_ascii=False),
                "harmful_flags": json.dumps(record.harmful_flags, ensure_ascii=False),
                "nutrition": json.dumps(record.nutrition.to_dict()),
                "created_at": record.created_at.isoformat(),
            },
        )
        self.log.info("Saved analysis %s for user %s", record.id, user_id)
        return record

    def get_analysis(self, analysis_id: int) -> Optional[AnalysisRecord]:
        for row in self._rows(self.analyses_path):
            if int(row["id"]) == analysis_id:
                return self._analysis_from_row(row)
        return None

    def latest_analysis(self, user_id: int) -> Optional[AnalysisRecord]:
        latest = None
        for row in self._rows(self.analyses_path):
            if int(row["user_id"]) == user_id:
                latest = row
        return self._analysis_from_row(latest) if latest else None

    def user_analyses(self, user_id: int, limit: int = 10) -> List[AnalysisRecord]:
        analyses = [
            self._analysis_from_row(row)
            for row in self._rows(self.analyses_path)
            if int(row["user_id"]) == user_id
        ]
        analyses.sort(key=lambda analysis: analysis.id, reverse=True)
        return analyses[:limit]

    def save_plan(
        self, user_id: int, analysis_id: Optional[int], plan: AvoidancePlan
    ) -> StoredPlan:
        stored = StoredPlan(
            id=self._next_id(self.plans_path),
            user_id=user_id,
            analysis_id=analysis_id,
            plan_text=plan.to_json(),
            created_at=datetime.now(),
        )
        self._append(
            self.plans_path,
            self.PLAN_FIELDS,
            {
                "id": stored.id,
                "user_id": stored.user_id,
                "analysis_id": "" if analysis_id is None else analysis_id,
                "plan_text": stored.plan_text,
                "created_at": stored.created_at.isoformat(),
            },
        )
        self.log.info("Saved avoidance plan %s for user %s", stored.id, user_id)
        return stored

    def get_plan(self, plan_id: int) -> Optional[StoredPlan]:
        for row in self._rows(self.plans_path):
            if int(row["id"]) == plan_id:
                return self._plan_from_row(row)
        return None

    def user_plans(self, user_id: int, limit: int = 10) -> List[StoredPlan]:
        plans = [
            self._plan_from_row(row)
            for row in self._rows(self.plans_path)
            if int(row["user_id"]) == user_id
        ]
        # Newest first; ids grow with every append
        plans.sort(key=lambda plan: plan.id, reverse=True)
        return plans[:limit]

    def _rows(self, path: Path) -> List[Dict[str, str]]:
        if not path.exists():
            return []
        with path.open("r", newline="", encoding="utf-8") as fh:
            return list(csv.DictReader(fh))

    def _next_id(self, path: Path) -> int:
        """Return the next numeric ID for the given CSV."""
        last_id = 0
        for row in self._rows(path):
            try:
                last_id = max(last_id, int(row.get("id", 0)))
            except ValueError:
                continue
        return last_id + 1

    def _append(self, path: Path, fieldnames: List[str], row: Dict[str, object]) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        write_header = not path.exists()
        with path.open("a", newline="", encoding="utf-8") as fh:
            writer = csv.DictWriter(fh, fieldnames=fieldnames)
            if write_header:
                writer.writeheader()
            writer.writerow(row)

    @staticmethod
    def _analysis_from_row(row: Dict[str, str]) -> AnalysisRecord:
        return AnalysisRecord(
            id=int(row["id"]),
            user_id=int(row["user_id"]),
            ingredients=json.loads(row["ingredients"] or "[]"),
            harmful_flags=json.loads(row["harmful_flags"] or "{}"),
            nutrition=NutritionFacts.from_dict(json.loads(row["nutrition"] or "{}")),
            created_at=datetime.fromisoformat(row["created_at"]) if row["created_at"] else None,
        )

    @staticmethod
    def _plan_from_row(row: Dict[str, str]) -> StoredPlan:
        return StoredPlan(
            id=int(row["id"]),
            user_id=int(row["user_id"]),
            analysis_id=int(row["analysis_id"]) if row["analysis_id"] else None,
            plan_text=row["plan_text"],
            created_at=datetime.fromisoformat(row["created_at"]) if row["created_at"] else None,
        )


SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS nutrition_analysis (
    id SERIAL PRIMARY KEY,
    user_id INTEGER NOT NULL,
    ingredients JSONB,
    harmful_flags JSONB,
    nutrition JSONB,
    created_at TIMESTAMP DEFAULT NOW()
);
CREATE TABLE IF NOT EXISTS avoidance_plans (
    id SERIAL PRIMARY KEY,
    user_id INTEGER NOT NULL,
    plan_text TEXT NOT NULL,
    analysis_id INTEGER REFERENCES nutrition_analysis (id) ON DELETE CASCADE,
    created_at TIMESTAMP DEFAULT NOW()
);
"""


class DatabasePlanStore(PlanStore):
    """
    PostgreSQL-backed store mirroring the nutrition_analysis/avoidance_plans schema.
    """

    def __init__(self, dsn: Optional[str] = None):
        if psycopg2 is None:
            raise ModuleNotFoundError(
                "psycopg2 is required for DatabasePlanStore. Install via "
                "'pip install psycopg2-binary'."
            )
        self.dsn = dsn or os.environ.get("AVOIDANCE_DB_DSN")
        if not self.dsn:
            raise ValueError("A PostgreSQL DSN is required (AVOIDANCE_DB_DSN)")
        self.log = logging.getLogger(self.__class__.__name__)

    @contextmanager
    def _connection(self, **kwargs):
        # psycopg2's connection context manager only ends the transaction
        with closing(psycopg2.connect(self.dsn, **kwargs)) as conn:
            with conn:
                yield conn

    def ensure_schema(self) -> None:
        with self._connection() as conn:
            with conn.cursor() as cur:
                cur.execute(SCHEMA_SQL)

    def _fetchone(self, query: str, params: tuple) -> Optional[dict]:
        with self._connection(cursor_factory=RealDictCursor) as conn:
            with conn.cursor() as cur:
                cur.execute(query, params)
                return cur.fetchone()

    def _fetchall(self, query: str, params: tuple) -> List[dict]:
        with self._connection(cursor_factory=RealDictCursor) as conn:
            with conn.cursor() as cur:
                cur.execute(query, params)
                return cur.fetchall()

    def save_analysis(
        self,
        user_id: int,
        ingredients: List[str],
        harmful_flags: Dict[str, bool],
        nutrition: Optional[NutritionFacts] = None,
    ) -> AnalysisRecord:
        nutrition = nutrition or NutritionFacts()
        row = self._fetchone(
            """
            INSERT INTO nutrition_analysis (user_id, ingredients, harmful_flags, nutrition)
            VALUES (%s, %s, %s, %s)
            RETURNING id, user_id, ingredients, harmful_flags, nutrition, created_at
            """,
            (user_id, Json(list(ingredients)), Json(dict(harmful_flags)), Json(nutrition.to_dict())),
        )
        self.log.info("Saved analysis %s for user %s", row["id"], user_id)
        return self._analysis_from_row(row)

    def get_analysis(self, analysis_id: int) -> Optional[AnalysisRecord]:
        row = self._fetchone(
            """
            SELECT id, user_id, ingredients, harmful_flags, nutrition, created_at
            FROM nutrition_analysis
            WHERE id = %s
            """,
            (analysis_id,),
        )
        return self._analysis_from_row(row) if row else None

    def latest_analysis(self, user_id: int) -> Optional[AnalysisRecord]:
        row = self._fetchone(
            """
            SELECT id, user_id, ingredients, harmful_flags, nutrition, created_at
            FROM nutrition_analysis
            WHERE user_id = %s
            ORDER BY created_at DESC, id DESC
            LIMIT 1
            """,
            (user_id,),
        )
        return self._analysis_from_row(row) if row else None

    def user_analyses(self, user_id: int, limit: int = 10) -> List[AnalysisRecord]:
        rows = self._fetchall(
            """
            SELECT id, user_id, ingredients, harmful_flags, nutrition, created_at
            FROM nutrition_analysis
            WHERE user_id = %s
            ORDER BY created_at DESC, id DESC
            LIMIT %s
            """,
            (user_id, limit),
        )
        return [self._analysis_from_row(row) for row in rows]

    def save_plan(
        self, user_id: int, analysis_id: Optional[int], plan: AvoidancePlan
    ) -> StoredPlan:
        row = self._fetchone(
            """
            INSERT INTO avoidance_plans (user_id, plan_text, analysis_id)
            VALUES (%s, %s, %s)
            RETURNING id, user_id, analysis_id, plan_text, created_at
            """,
            (user_id, plan.to_json(), analysis_id),
        )
        self.log.info("Saved avoidance plan %s for user %s", row["id"], user_id)
        return self._plan_from_row(row)

    def get_plan(self, plan_id: int) -> Optional[StoredPlan]:
        row = self._fetchone(
            """
            SELECT id, user_id, analysis_id, plan_text, created_at
            FROM avoidance_plans
            WHERE id = %s
            """,
            (plan_id,),
        )
        return self._plan_from_row(row) if row else None

    def user_plans(self, user_id: int, limit: int = 10) -> List[StoredPlan]:
        rows = self._fetchall(
            """
            SELECT id, user_id, analysis_id, plan_text, created_at
            FROM avoidance_plans
            WHERE user_id = %s
            ORDER BY created_at DESC, id DESC
            LIMIT %s
            """,
            (user_id, limit),
        )
        return [self._plan_from_row(row) for row in rows]

    @staticmethod
    def _analysis_from_row(row: dict) -> AnalysisRecord:
        return AnalysisRecord(
            id=row["id"],
            user_id=row["user_id"],
            ingredients=list(row.get("ingredients") or []),
            harmful_flags=dict(row.get("harmful_flags") or {}),
            nutrition=NutritionFacts.from_dict(row.get("nutrition")),
            created_at=row.get("created_at"),
        )

    @staticmethod
    def _plan_from_row(row: dict) -> StoredPlan:
        return StoredPlan(
            id=row["id"],
            user_id=row["user_id"],
            analysis_id=row.get("analysis_id"),
            plan_text=row["plan_text"],
            created_at=row.get("created_at"),
        )
