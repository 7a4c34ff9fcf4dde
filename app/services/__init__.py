"""
Business Logic Services Package.

Services depend on the Repository layer for data access and return
``ServiceResult`` envelopes to the HTTP layer.

The ``create_services()`` factory wires every repository and service together,
returning a typed dict that the API layer can consume without knowing the
internal dependency graph.
"""

from __future__ import annotations

from typing import Optional, TypedDict

from app.config import AppConfig
from app.logger import StructuredLogger, get_logger
from app.repositories.budget_repository import BudgetRepository
from app.repositories.category_repository import CategoryRepository
from app.repositories.storage import StorageBackend
from app.repositories.transaction_repository import TransactionRepository
from app.services.analytics_service import AnalyticsService
from app.services.budget_service import BudgetService
from app.services.category_service import CategoryService
from app.services.import_export_service import ImportExportService
from app.services.transaction_service import TransactionService


class ServiceContainer(TypedDict):
    """Typed container for all application services."""

    # --- Storage ---
    storage: StorageBackend

    # --- Entity services ---
    transaction_service: TransactionService
    category_service: CategoryService
    budget_service: BudgetService

    # --- Reporting and files ---
    analytics_service: AnalyticsService
    import_export_service: ImportExportService


def create_services(
    storage: StorageBackend,
    config: AppConfig,
    logger: Optional[StructuredLogger] = None,
) -> ServiceContainer:
    """
    Wire all repositories and services together.

    This is the single composition root for the service layer.  The
    application entry-point calls this once at startup and hands the
    returned dict to ``create_app``.

    Args:
        storage: Backend chosen by ``create_storage`` (Supabase or JSON files).
        config: Application configuration (injected into services that need it).
        logger: Shared service logger; a ``services`` logger is created when omitted.

    Returns:
        ServiceContainer mapping service names to fully-wired instances.
    """
    logger = logger or get_logger("services")

    # ------------------------------------------------------------------
    # 1. Repositories (data-access layer)
    # ------------------------------------------------------------------
    transaction_repo = TransactionRepository(storage=storage, logger=logger)
    category_repo = CategoryRepository(storage=storage, logger=logger)
    budget_repo = BudgetRepository(storage=storage, logger=logger)

    # ------------------------------------------------------------------
    # 2. Entity services (repositories only)
    # ------------------------------------------------------------------
    transaction_service = TransactionService(
        transaction_repo=transaction_repo,
        category_repo=category_repo,
        logger=logger,
    )
    category_service = CategoryService(
        category_repo=category_repo,
        transaction_repo=transaction_repo,
        budget_repo=budget_repo,
        logger=logger,
    )
    budget_service = BudgetService(
        budget_repo=budget_repo,
        category_repo=category_repo,
        transaction_repo=transaction_repo,
        logger=logger,
    )

    # ------------------------------------------------------------------
    # 3. Orchestration services (depend on other services)
    # ------------------------------------------------------------------
    analytics_service = AnalyticsService(
        transaction_repo=transaction_repo,
        category_repo=category_repo,
        budget_repo=budget_repo,
        budget_service=budget_service,
        logger=logger,
    )
    import_export_service = ImportExportService(
        transaction_service=transaction_service,
        category_service=category_service,
        budget_service=budget_service,
        transaction_repo=transaction_repo,
        category_repo=category_repo,
        budget_repo=budget_repo,
        config=config,
        logger=logger,
    )

    return ServiceContainer(
        storage=storage,
        transaction_service=transaction_service,
        category_service=category_service,
        budget_service=budget_service,
        analytics_service=analytics_service,
        import_export_service=import_export_service,
    )
