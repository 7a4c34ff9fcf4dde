"""Shared fixtures: in-memory JSON storage, wired services and an API client."""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Callable, Iterator

import pytest
from fastapi.testclient import TestClient

from app.api import create_app
from app.config import AppConfig
from app.database import JsonFileStore
from app.logger import StructuredLogger
from app.models.budget import Budget, BudgetCreate
from app.models.category import Category, CategoryCreate
from app.models.enums import BudgetPeriod, TransactionType
from app.models.transaction import Transaction, TransactionCreate
from app.repositories.storage import JsonFileBackend
from app.services import ServiceContainer, create_services


@pytest.fixture
def config(tmp_path) -> AppConfig:
    return AppConfig(
        _env_file=None,
        ENVIRONMENT="test",
        STORAGE_MODE="localStorage",
        LOCALSTORAGE_PATH=tmp_path,
        LOCALSTORAGE_PERSIST=False,
        RATE_LIMIT_ENABLED=False,
        JWT_SECRET="test-secret",
    )


@pytest.fixture
def logger() -> StructuredLogger:
    return StructuredLogger(name="tests", level=logging.WARNING)


@pytest.fixture
def store(config: AppConfig, logger: StructuredLogger) -> JsonFileStore:
    return JsonFileStore(data_dir=config.LOCALSTORAGE_PATH, persist=False, logger=logger)


@pytest.fixture
def storage(store: JsonFileStore) -> JsonFileBackend:
    return JsonFileBackend(store)


@pytest.fixture
def services(storage: JsonFileBackend, config: AppConfig, logger: StructuredLogger) -> ServiceContainer:
    return create_services(storage, config, logger)


@pytest.fixture
def client(config: AppConfig, services: ServiceContainer, logger: StructuredLogger) -> Iterator[TestClient]:
    app = create_app(config=config, services=services, logger=logger)
    with TestClient(app) as test_client:
        yield test_client


# ---------------------------------------------------------------------------
# Entity factories (go through the services so business rules apply)
# ---------------------------------------------------------------------------

@pytest.fixture
def make_category(services: ServiceContainer) -> Callable[..., Category]:
    def _make(name: str = "Groceries", type: str = "expense", **fields: object) -> Category:
        payload = CategoryCreate(
            name=name,
            type=TransactionType(type),
            color=fields.pop("color", "#FF6B6B"),
            icon=fields.pop("icon", "shopping-cart"),
            **fields,
        )
        result = services["category_service"].create_category(payload)
        assert result.success, result.error
        return result.data

    return _make


@pytest.fixture
def make_transaction(services: ServiceContainer) -> Callable[..., Transaction]:
    def _make(
        category: Category,
        amount: str = "10.00",
        on: date = date(2024, 1, 15),
        description: str = "Purchase",
    ) -> Transaction:
        payload = TransactionCreate(
            type=category.type,
            amount=Decimal(amount),
            description=description,
            category_id=category.id,
            date=on,
        )
        result = services["transaction_service"].create_transaction(payload)
        assert result.success, result.error
        return result.data

    return _make


@pytest.fixture
def make_budget(services: ServiceContainer) -> Callable[..., Budget]:
    def _make(
        category: Category,
        amount: str = "500.00",
        start: date = date(2024, 1, 1),
        period: BudgetPeriod = BudgetPeriod.MONTHLY,
        **fields: object,
    ) -> Budget:
        payload = BudgetCreate(
            category_id=category.id,
            amount=Decimal(amount),
            period=period,
            start_date=start,
            **fields,
        )
        result = services["budget_service"].create_budget(payload)
        assert result.success, result.error
        return result.data

    return _make
