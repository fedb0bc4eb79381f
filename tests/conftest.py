from pathlib import Path

import pytest

from comissoes_app.affiliates import AffiliateDirectory
from comissoes_app.database import Database, SalesRepository
from comissoes_app.models import Affiliate, AffiliateInput
from comissoes_app.sale_service import SaleService
from comissoes_app.sales_importer import SalesImporter


@pytest.fixture
def database(tmp_path: Path):
    db = Database(tmp_path / "comissoes.sqlite3")
    yield db
    db.close()


@pytest.fixture
def directory(database: Database) -> AffiliateDirectory:
    return AffiliateDirectory(database)


@pytest.fixture
def repository(database: Database) -> SalesRepository:
    return SalesRepository(database)


@pytest.fixture
def service(database: Database, directory: AffiliateDirectory, repository: SalesRepository) -> SaleService:
    return SaleService(database, directory, repository)


@pytest.fixture
def importer(database: Database, directory: AffiliateDirectory, repository: SalesRepository) -> SalesImporter:
    return SalesImporter(database, directory, repository)


@pytest.fixture
def affiliate(directory: AffiliateDirectory) -> Affiliate:
    return directory.create(
        AffiliateInput(name="Ana Souza", instagram="anasouza", coupon="CUPOM10", commission_rate="10")
    )
