"""FastAPI application exposing the activity engine over a local HTTP API."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field

from .categories import build_category_tree
from .config import EngineSettings
from .db import SqliteRuleStore, database_connection
from .errors import ConflictError, NotFoundError, ValidationError
from .merge import merge_records, total_duration
from .models import ActivityRecord, Dimension, TimeWindow
from .paths import get_db_path
from .reporting import build_duration_report
from .rules import RatingChangeConfirmation, RuleService, apply_rule
from .schemas import ActivityRecordPayload, RuleChanges, RuleFields

logger = logging.getLogger(__name__)


class RecordsPayload(BaseModel):
    records: List[ActivityRecordPayload]
    merged: bool = False

    model_config = ConfigDict(extra="forbid")


class ReportPayload(RecordsPayload):
    start: int = Field(ge=0)
    end: int = Field(ge=0)
    limit: Optional[int] = Field(default=None, ge=1)


class ConfirmationPayload(BaseModel):
    apply_to_all: bool = Field(default=False, alias="applyToAll")

    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class RuleCreatePayload(BaseModel):
    rule: RuleFields
    activities: List[ActivityRecordPayload] = []
    apply_to_all: bool = Field(default=False, alias="applyToAll")

    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class RuleUpdatePayload(BaseModel):
    changes: RuleChanges
    activities: List[ActivityRecordPayload] = []
    confirmation: Optional[ConfirmationPayload] = None

    model_config = ConfigDict(extra="forbid")


class RuleApplyPayload(BaseModel):
    activities: List[ActivityRecordPayload]

    model_config = ConfigDict(extra="forbid")


def create_app(
    *,
    db_path: Optional[Path] = None,
    settings: Optional[EngineSettings] = None,
) -> FastAPI:
    """Instantiate the FastAPI application."""
    resolved_db_path = Path(db_path or get_db_path())
    resolved_settings = settings or EngineSettings()

    app = FastAPI(title="Activity Tracker", version="0.3.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.db_path = resolved_db_path
    app.state.settings = resolved_settings

    @app.on_event("startup")
    async def _startup() -> None:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s %(levelname)s %(name)s %(message)s",
        )
        logger.info("Serving activity rules from %s", resolved_db_path)

    def _records(payload: RecordsPayload) -> list[ActivityRecord]:
        records = [item.to_record() for item in payload.records]
        if payload.merged:
            return records
        return merge_records(records, gap_ms=resolved_settings.merge_gap_ms)

    @app.get("/api/status")
    def status(request: Request) -> Dict[str, Any]:
        return {
            "database_path": str(request.app.state.db_path),
            "merge_gap_minutes": resolved_settings.merge_gap.total_seconds() / 60.0,
            "report_limit": resolved_settings.report_limit,
            "custom_category_rules": len(resolved_settings.custom_category_rules),
        }

    @app.post("/api/merge")
    def merge(payload: RecordsPayload) -> Dict[str, Any]:
        records = [item.to_record() for item in payload.records]
        merged = merge_records(records, gap_ms=resolved_settings.merge_gap_ms)
        return {
            "records": [record.to_dict() for record in merged],
            "total_duration": total_duration(merged),
        }

    @app.post("/api/reports/{dimension}")
    def report(dimension: Dimension, payload: ReportPayload) -> Dict[str, Any]:
        if payload.end < payload.start:
            raise HTTPException(status_code=400, detail="end must be on or after start")
        window = TimeWindow(start=payload.start, end=payload.end)
        limit = payload.limit if payload.limit is not None else resolved_settings.report_limit
        reports = build_duration_report(_records(payload), window, dimension, limit=limit)
        return {
            "dimension": dimension.value,
            "reports": [item.to_dict() for item in reports],
        }

    @app.post("/api/categories")
    def categories(payload: RecordsPayload) -> Dict[str, Any]:
        tree = build_category_tree(_records(payload), resolved_settings.category_rules)
        return {"categories": [node.to_dict() for node in tree]}

    @app.get("/api/rules")
    def list_rules(request: Request) -> Dict[str, Any]:
        with database_connection(request.app.state.db_path) as conn:
            stored = RuleService(SqliteRuleStore(conn)).list_rules()
        return {"rules": [rule.to_dict() for rule in stored]}

    @app.post("/api/rules")
    def create_rule(payload: RuleCreatePayload, request: Request) -> Dict[str, Any]:
        candidates = [item.to_record() for item in payload.activities]
        with database_connection(request.app.state.db_path) as conn:
            try:
                result = RuleService(SqliteRuleStore(conn)).create_rule(
                    payload.rule, candidates, apply_to_all=payload.apply_to_all
                )
            except ValidationError as exc:
                raise HTTPException(status_code=400, detail=str(exc)) from exc
        return result.to_dict()

    @app.patch("/api/rules/{rule_id}")
    def update_rule(
        rule_id: str, payload: RuleUpdatePayload, request: Request
    ) -> Dict[str, Any]:
        candidates = [item.to_record() for item in payload.activities]
        confirmation = (
            RatingChangeConfirmation(apply_to_all=payload.confirmation.apply_to_all)
            if payload.confirmation
            else None
        )
        with database_connection(request.app.state.db_path) as conn:
            try:
                result = RuleService(SqliteRuleStore(conn)).update_rule(
                    rule_id, payload.changes, candidates, confirmation=confirmation
                )
            except NotFoundError as exc:
                raise HTTPException(status_code=404, detail="Rule not found") from exc
            except ConflictError as exc:
                raise HTTPException(status_code=409, detail=str(exc)) from exc
            except ValidationError as exc:
                raise HTTPException(status_code=400, detail=str(exc)) from exc
        return result.to_dict()

    @app.delete("/api/rules/{rule_id}")
    def delete_rule(rule_id: str, request: Request) -> Dict[str, Any]:
        with database_connection(request.app.state.db_path) as conn:
            try:
                RuleService(SqliteRuleStore(conn)).delete_rule(rule_id)
            except NotFoundError as exc:
                raise HTTPException(status_code=404, detail="Rule not found") from exc
        return {"deleted": rule_id}

    @app.post("/api/rules/{rule_id}/apply")
    def apply_stored_rule(
        rule_id: str, payload: RuleApplyPayload, request: Request
    ) -> Dict[str, Any]:
        candidates = [item.to_record() for item in payload.activities]
        with database_connection(request.app.state.db_path) as conn:
            store = SqliteRuleStore(conn)
            try:
                rule = RuleService(store).get_rule(rule_id)
            except NotFoundError as exc:
                raise HTTPException(status_code=404, detail="Rule not found") from exc
            ratings = apply_rule(rule, candidates, store)
        return ratings.to_dict()

    return app
