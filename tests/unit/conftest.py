import pytest
from unittest.mock import AsyncMock, MagicMock

from src.app.services.account_lock import AccountLocks
from src.domain.account import Account


@pytest.fixture
def mock_uow():
    """Mock unit of work"""
    uow = MagicMock()
    uow.__aenter__ = AsyncMock(return_value=uow)
    uow.__aexit__ = AsyncMock()
    uow.commit = AsyncMock()
    uow.rollback = AsyncMock()
    return uow


@pytest.fixture
def locks():
    return AccountLocks()


@pytest.fixture
def mock_account_repo():
    """Account repository that always yields an active account"""
    repo = MagicMock()
    repo.get_or_create = AsyncMock(
        side_effect=lambda account_id, for_update=False: Account(id=account_id)
    )
    return repo
