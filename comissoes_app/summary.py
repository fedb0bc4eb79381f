"""Totais de vendas por influenciadora e do programa inteiro."""

from __future__ import annotations

from pathlib import Path

import pandas as pd

from .affiliates import AffiliateDirectory
from .database import Database, SalesRepository
from .models import AffiliateSalesSummary, SalesSummary
from .normalization import round_currency


# Rotulos das colunas na consulta exportada.
FRAME_COLUMNS = {
    "id": "ID",
    "name": "Nome",
    "instagram": "Instagram",
    "coupon": "Cupom",
    "commission_rate": "Comissao (%)",
    "sales_count": "Vendas",
    "sales_total_net": "Total liquido",
}


class SummaryAggregator:
    def __init__(
        self,
        database: Database,
        directory: AffiliateDirectory | None = None,
        repository: SalesRepository | None = None,
    ) -> None:
        self.directory = directory or AffiliateDirectory(database)
        self.repository = repository or SalesRepository(database)

    def affiliate_summary(self, affiliate_id: int) -> SalesSummary:
        """Liquido e comissao acumulados de uma influenciadora (zero sem vendas)."""
        affiliate = self.directory.require(affiliate_id)
        total_net, total_commission = self.repository.summarize(affiliate.id)
        return SalesSummary(
            affiliate_id=affiliate.id,
            coupon=affiliate.coupon,
            commission_rate=affiliate.commission_rate,
            total_net=total_net,
            total_commission=total_commission,
        )

    def program_summary(self) -> list[AffiliateSalesSummary]:
        """Consulta geral: quantidade e liquido de vendas por influenciadora, por nome."""
        return [
            AffiliateSalesSummary(
                id=int(row["id"]),
                name=row["nome"],
                instagram=row["instagram"],
                coupon=row["cupom"],
                commission_rate=float(row["commission_rate"] or 0),
                sales_count=int(row["vendas_count"] or 0),
                sales_total_net=round_currency(row["vendas_total"] or 0),
            )
            for row in self.repository.list_affiliate_totals()
        ]

    def program_frame(self) -> pd.DataFrame:
        rows = self.program_summary()
        df = pd.DataFrame(
            [
                {
                    "id": row.id,
                    "name": row.name,
                    "instagram": row.instagram,
                    "coupon": row.coupon or "",
                    "commission_rate": row.commission_rate,
                    "sales_count": row.sales_count,
                    "sales_total_net": row.sales_total_net,
                }
                for row in rows
            ],
            columns=list(FRAME_COLUMNS),
        )
        return df.rename(columns=FRAME_COLUMNS)

    def export_csv(self, path: Path) -> Path:
        """Grava a consulta geral em CSV (UTF-8 com BOM, abre direto no Excel)."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        self.program_frame().to_csv(path, index=False, sep=";", decimal=",", encoding="utf-8-sig")
        return path
