"""Estruturas de dados compartilhadas pelo programa de comissoes."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Optional


@dataclass(slots=True)
class Affiliate:
    """Influenciadora cadastrada, dona de um cupom e de uma taxa de comissao."""

    id: int
    name: str
    instagram: str
    tax_id: Optional[str] = None
    contact_phone: Optional[str] = None
    email: Optional[str] = None
    coupon: Optional[str] = None
    commission_rate: float = 0.0
    zip_code: Optional[str] = None
    street: Optional[str] = None
    number: Optional[str] = None
    complement: Optional[str] = None
    district: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    linked_user_id: Optional[int] = None
    created_at: Optional[str] = None


@dataclass(slots=True)
class AffiliateInput:
    """Dados de cadastro como digitados pelo operador, antes da normalizacao."""

    name: Any = None
    instagram: Any = None
    tax_id: Any = None
    contact_phone: Any = None
    email: Any = None
    coupon: Any = None
    commission_rate: Any = None
    zip_code: Any = None
    street: Any = None
    number: Any = None
    complement: Any = None
    district: Any = None
    city: Any = None
    state: Any = None
    linked_user_id: Optional[int] = None


@dataclass(slots=True)
class Sale:
    """Venda persistida, sempre com liquido e comissao ja calculados."""

    order_number: str
    affiliate_id: int
    date: date
    gross_value: float
    discount: float
    net_value: float
    commission: float
    id: Optional[int] = None
    created_at: Optional[str] = None
    coupon: Optional[str] = None
    affiliate_name: Optional[str] = None
    commission_rate: Optional[float] = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "order_number": self.order_number,
            "influencer_id": self.affiliate_id,
            "cupom": self.coupon,
            "nome": self.affiliate_name,
            "date": self.date.isoformat(),
            "gross_value": self.gross_value,
            "discount": self.discount,
            "net_value": self.net_value,
            "commission": self.commission,
            "commission_rate": self.commission_rate or 0.0,
            "created_at": self.created_at,
        }


@dataclass(slots=True)
class SaleInput:
    """Corpo de uma venda avulsa: {orderNumber, cupom, date, grossValue, discount}."""

    order_number: Any = None
    coupon: Any = None
    date: Any = None
    gross_value: Any = None
    discount: Any = None

    @classmethod
    def from_mapping(cls, body: dict[str, Any]) -> "SaleInput":
        """Aceita as chaves em camelCase ou snake_case usadas pelos clientes."""
        return cls(
            order_number=body.get("orderNumber", body.get("order_number")),
            coupon=body.get("cupom", body.get("coupon")),
            date=body.get("date"),
            gross_value=body.get("grossValue", body.get("gross_value")),
            discount=body.get("discount", 0),
        )


@dataclass(slots=True)
class ImportRow:
    """Uma linha colada na importacao em lote. Nunca e persistida."""

    line_number: int
    raw_order_number: str = ""
    raw_coupon: str = ""
    raw_date: str = ""
    raw_gross: str = ""
    raw_discount: str = ""
    order_number: Optional[str] = None
    coupon: Optional[str] = None
    date: Optional[date] = None
    gross_value: Optional[float] = None
    discount: Optional[float] = None
    net_value: Optional[float] = None
    commission: Optional[float] = None
    affiliate_id: Optional[int] = None
    affiliate_name: Optional[str] = None
    commission_rate: Optional[float] = None
    errors: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def as_dict(self) -> dict[str, Any]:
        return {
            "line": self.line_number,
            "raw": {
                "orderNumber": self.raw_order_number,
                "cupom": self.raw_coupon,
                "date": self.raw_date,
                "grossValue": self.raw_gross,
                "discount": self.raw_discount,
            },
            "orderNumber": self.order_number,
            "cupom": self.coupon,
            "date": self.date.isoformat() if self.date else None,
            "grossValue": self.gross_value,
            "discount": self.discount,
            "netValue": self.net_value,
            "commission": self.commission,
            "influencerId": self.affiliate_id,
            "influencerName": self.affiliate_name,
            "commissionRate": self.commission_rate,
            "errors": list(self.errors),
        }


@dataclass(slots=True)
class ImportSummary:
    """Totais das linhas sem erro de uma analise."""

    count: int = 0
    total_gross: float = 0.0
    total_discount: float = 0.0
    total_net: float = 0.0
    total_commission: float = 0.0

    def as_dict(self) -> dict[str, Any]:
        return {
            "count": self.count,
            "totalGross": self.total_gross,
            "totalDiscount": self.total_discount,
            "totalNet": self.total_net,
            "totalCommission": self.total_commission,
        }


@dataclass(slots=True)
class ImportAnalysis:
    """Resultado completo da pre-visualizacao de um lote."""

    rows: list[ImportRow]
    summary: ImportSummary
    total_count: int
    valid_count: int
    error_count: int
    delimiter: Optional[str] = None
    header_detected: bool = False

    @property
    def has_errors(self) -> bool:
        return self.error_count > 0

    def as_dict(self) -> dict[str, Any]:
        return {
            "rows": [row.as_dict() for row in self.rows],
            "summary": self.summary.as_dict(),
            "totalCount": self.total_count,
            "validCount": self.valid_count,
            "errorCount": self.error_count,
            "hasErrors": self.has_errors,
        }


@dataclass(slots=True)
class ImportResult:
    """Retorno da confirmacao: quantas vendas entraram e quais."""

    inserted: int
    rows: list[Sale]
    summary: ImportSummary


@dataclass(slots=True)
class SalesSummary:
    affiliate_id: int
    coupon: Optional[str]
    commission_rate: float
    total_net: float
    total_commission: float


@dataclass(slots=True)
class AffiliateSalesSummary:
    """Linha da consulta geral (visao master)."""

    id: int
    name: str
    instagram: str
    coupon: Optional[str]
    commission_rate: float
    sales_count: int
    sales_total_net: float


@dataclass(slots=True)
class ExistingOrder:
    sale_id: int
    order_number: str
    date: str
    coupon: Optional[str]
