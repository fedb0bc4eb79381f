"""Cadastro, alteracao e exclusao de vendas avulsas."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Iterable, Optional

from .affiliates import AffiliateDirectory
from .database import Database, SalesRepository
from .errors import DuplicateOrderNumber, NotFound, ValidationError
from .log import get_logger
from .models import Affiliate, ExistingOrder, Sale, SaleInput
from .normalization import (
    ORDER_NUMBER_MAX_LENGTH,
    compute_sale_totals,
    normalize_coupon,
    normalize_order_number,
    parse_date,
    parse_money,
)


logger = get_logger("sales")


@dataclass(slots=True)
class SaleFields:
    """Campos de uma venda ja convertidos; ``None`` onde a conversao falhou."""

    order_number: Optional[str] = None
    coupon: Optional[str] = None
    date: Optional[date] = None
    gross_value: Optional[float] = None
    discount: Optional[float] = None


def parse_sale_fields(
    order_number: Any,
    coupon: Any,
    raw_date: Any,
    gross_value: Any,
    discount: Any,
) -> tuple[SaleFields, list[str]]:
    """Converte data e valores sem parar no primeiro erro."""
    fields = SaleFields(
        order_number=normalize_order_number(order_number),
        coupon=normalize_coupon(coupon),
    )
    errors: list[str] = []
    try:
        fields.date = parse_date(raw_date)
    except ValidationError as exc:
        errors.append(exc.message)
    try:
        fields.gross_value = parse_money(gross_value, "Valor bruto")
    except ValidationError as exc:
        errors.append(exc.message)
    try:
        fields.discount = parse_money(discount, "Desconto", default=0.0)
    except ValidationError as exc:
        errors.append(exc.message)
    return fields, errors


def check_sale_rules(fields: SaleFields) -> list[str]:
    """Regras entre campos, aplicadas so depois que a conversao deu certo."""
    errors: list[str] = []
    if not fields.order_number:
        errors.append("Informe o numero do pedido.")
    elif len(fields.order_number) > ORDER_NUMBER_MAX_LENGTH:
        errors.append(f"Numero do pedido deve ter no maximo {ORDER_NUMBER_MAX_LENGTH} caracteres.")
    if not fields.coupon:
        errors.append("Informe o cupom da influenciadora.")
    if (
        fields.gross_value is not None
        and fields.discount is not None
        and fields.discount > fields.gross_value
    ):
        errors.append("Desconto nao pode ser maior que o valor bruto.")
    return errors


def validate_sale_fields(
    order_number: Any,
    coupon: Any,
    raw_date: Any,
    gross_value: Any,
    discount: Any,
) -> tuple[SaleFields, list[str]]:
    fields, errors = parse_sale_fields(order_number, coupon, raw_date, gross_value, discount)
    if not errors:
        errors = check_sale_rules(fields)
    return fields, errors


def build_sale(fields: SaleFields, affiliate: Affiliate) -> Sale:
    """Monta a venda com liquido e comissao pela taxa atual da influenciadora."""
    net_value, commission = compute_sale_totals(
        fields.gross_value, fields.discount, affiliate.commission_rate
    )
    return Sale(
        order_number=fields.order_number,
        affiliate_id=affiliate.id,
        date=fields.date,
        gross_value=fields.gross_value,
        discount=fields.discount,
        net_value=net_value,
        commission=commission,
        coupon=affiliate.coupon,
        affiliate_name=affiliate.name,
        commission_rate=affiliate.commission_rate,
    )


class SaleService:
    def __init__(
        self,
        database: Database,
        directory: AffiliateDirectory | None = None,
        repository: SalesRepository | None = None,
    ) -> None:
        self.database = database
        self.directory = directory or AffiliateDirectory(database)
        self.repository = repository or SalesRepository(database)

    def create(self, payload: SaleInput) -> Sale:
        fields = self._validated(payload)
        affiliate = self.directory.require_by_coupon(fields.coupon)
        if self.repository.find_by_order_number(fields.order_number):
            raise DuplicateOrderNumber(fields.order_number)
        sale = self.repository.insert(build_sale(fields, affiliate))
        logger.info("Venda %s registrada para o cupom %s", sale.order_number, affiliate.coupon)
        return sale

    def update(self, sale_id: int, payload: SaleInput) -> Sale:
        """Reaplica todas as regras; a venda pode mudar de influenciadora."""
        self.require(sale_id)
        fields = self._validated(payload)
        affiliate = self.directory.require_by_coupon(fields.coupon)
        existing = self.repository.find_by_order_number(fields.order_number)
        if existing and existing.id != sale_id:
            raise DuplicateOrderNumber(fields.order_number)
        return self.repository.update(sale_id, build_sale(fields, affiliate))

    def delete(self, sale_id: int) -> None:
        self.require(sale_id)
        self.repository.delete(sale_id)
        logger.info("Venda %s removida", sale_id)

    def require(self, sale_id: int) -> Sale:
        sale = self.repository.find_by_id(sale_id)
        if sale is None:
            raise NotFound("Venda nao encontrada.")
        return sale

    def list_sales(self, affiliate_id: int) -> list[Sale]:
        self.directory.require(affiliate_id)
        return self.repository.list_by_affiliate(affiliate_id)

    def check_orders(self, order_numbers: Iterable[str]) -> list[ExistingOrder]:
        return self.repository.check_orders(order_numbers)

    def _validated(self, payload: SaleInput) -> SaleFields:
        fields, errors = validate_sale_fields(
            payload.order_number,
            payload.coupon,
            payload.date,
            payload.gross_value,
            payload.discount,
        )
        if errors:
            raise ValidationError(" ".join(errors))
        return fields
