"""FastAPI JSON adapter exposing the MokLedger service contracts."""
from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import date
from decimal import Decimal
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ..api import ApiExporter, EventDispatcher
from ..config import Settings, load_settings
from ..exceptions import (
    ActivityNotFoundError,
    GoalNotFoundError,
    InvalidAmountError,
    MokLedgerError,
    PersistenceFailureError,
    StaleStateError,
    UserNotFoundError,
)
from ..ledger import Account
from ..models import AssetType, Priority, SubAccount
from ..ops import StructuredLogger
from ..service import EconomyService
from .persistence import SqlAccountStore, build_engine, create_db_and_tables

_NOT_FOUND = (UserNotFoundError, GoalNotFoundError, ActivityNotFoundError)


class NewUser(BaseModel):
    user_id: str = Field(min_length=1)


class ConvertRequest(BaseModel):
    amount: int
    asset_type: AssetType


class TransferRequest(BaseModel):
    amount: Decimal
    source: SubAccount
    destination: SubAccount


class FundsRequest(BaseModel):
    amount: Decimal
    destination: SubAccount


class GoalRequest(BaseModel):
    title: str
    target_amount: Decimal
    category: str = "General"
    due_date: Optional[date] = None
    priority: Priority = Priority.MEDIUM


class ContributionRequest(BaseModel):
    amount: Decimal
    due_date: Optional[date] = None
    priority: Optional[Priority] = None


class ModuleCompletionRequest(BaseModel):
    score: int
    total_points: int


def status_for(exc: MokLedgerError) -> int:
    if isinstance(exc, InvalidAmountError):
        return 400
    if isinstance(exc, _NOT_FOUND):
        return 404
    if isinstance(exc, StaleStateError):
        return 409
    if isinstance(exc, PersistenceFailureError):
        return 503
    return 409


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or load_settings()
    engine = build_engine(settings)
    store = SqlAccountStore(engine)
    exporter = ApiExporter()
    logger = StructuredLogger(path=settings.log_path)
    events = EventDispatcher()

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        create_db_and_tables(engine)
        logger.log("startup", database=settings.database_url)
        yield
        engine.dispose()

    app = FastAPI(title="MokLedger", lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store
    app.state.logger = logger
    app.state.events = events

    def service_for(user_id: str) -> EconomyService:
        return EconomyService.load(
            store,
            user_id,
            flags=settings.feature_flags(),
            logger=logger,
            events=events,
        )

    @app.exception_handler(MokLedgerError)
    async def ledger_error(_: Request, exc: MokLedgerError) -> JSONResponse:
        return JSONResponse(status_code=status_for(exc), content={"error": exc.kind, "detail": str(exc)})

    @app.exception_handler(ValueError)
    async def value_error(_: Request, exc: ValueError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": "invalid_request", "detail": str(exc)})

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok"}

    @app.post("/users", status_code=201)
    def create_user(payload: NewUser) -> dict:
        state = store.create_user(Account(user_id=payload.user_id))
        logger.log("user_created", user=payload.user_id)
        return exporter.account_snapshot(state.account)

    @app.get("/users/{user_id}")
    def get_user(user_id: str) -> dict:
        service = service_for(user_id)
        return {
            "account": exporter.account_snapshot(service.account),
            "goals": [exporter.goal(goal) for goal in service.goals],
        }

    @app.get("/users/{user_id}/transactions")
    def list_transactions(user_id: str, limit: int = Query(50, ge=1, le=500)) -> dict:
        store.load_state(user_id)
        return {"transactions": exporter.transactions(store.transactions(user_id, limit=limit))}

    @app.post("/users/{user_id}/convert")
    def convert(user_id: str, payload: ConvertRequest) -> dict:
        result = service_for(user_id).convert(payload.amount, payload.asset_type)
        return {
            "account": exporter.account_snapshot(result.account),
            "converted_amount": str(result.converted_amount),
            "transaction": exporter.transaction(result.transaction),
        }

    @app.post("/users/{user_id}/transfer")
    def transfer(user_id: str, payload: TransferRequest) -> dict:
        result = service_for(user_id).transfer(payload.amount, payload.source, payload.destination)
        return {
            "account": exporter.account_snapshot(result.account),
            "reward": exporter.reward(result.reward),
            "clamped": result.clamped,
            "transactions": exporter.transactions(result.transactions),
        }

    @app.post("/users/{user_id}/funds")
    def add_funds(user_id: str, payload: FundsRequest) -> dict:
        result = service_for(user_id).add_funds(payload.amount, payload.destination)
        return {
            "account": exporter.account_snapshot(result.account),
            "reward": exporter.reward(result.reward),
            "pending_approval": result.pending_approval,
            "transaction": exporter.transaction(result.transaction),
        }

    @app.post("/users/{user_id}/goals", status_code=201)
    def create_goal(user_id: str, payload: GoalRequest) -> dict:
        goal = service_for(user_id).create_goal(
            payload.title,
            payload.target_amount,
            category=payload.category,
            due_date=payload.due_date,
            priority=payload.priority,
        )
        return exporter.goal(goal)

    @app.post("/users/{user_id}/goals/{goal_id}/contribute")
    def contribute(user_id: str, goal_id: str, payload: ContributionRequest) -> dict:
        result = service_for(user_id).contribute_to_goal(
            goal_id,
            payload.amount,
            due_date=payload.due_date,
            priority=payload.priority,
        )
        return {
            "account": exporter.account_snapshot(result.account),
            "goal": exporter.goal(result.goal),
            "transaction": exporter.transaction(result.transaction),
        }

    @app.post("/users/{user_id}/modules/{module_id}/complete")
    def complete_module(user_id: str, module_id: str, payload: ModuleCompletionRequest) -> dict:
        result = service_for(user_id).complete_module(module_id, payload.score, payload.total_points)
        return {
            "account": exporter.account_snapshot(result.account),
            "reward": exporter.reward(result.reward),
            "awarded": result.awarded,
            "percentage": int(result.percentage),
        }

    @app.post("/users/{user_id}/missions/{mission_id}/complete")
    def complete_mission(user_id: str, mission_id: str) -> dict:
        result = service_for(user_id).complete_mission(mission_id)
        return {
            "account": exporter.account_snapshot(result.account),
            "reward": exporter.reward(result.reward),
            "completed": result.mission.completed,
        }

    return app


__all__ = ["create_app", "status_for"]
