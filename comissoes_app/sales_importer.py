"""Importacao de vendas em lote a partir de texto colado ou de planilhas.

O fluxo tem duas fases sobre o mesmo texto:

* ``preview`` analisa todas as linhas sem gravar nada e devolve um
  ``ImportAnalysis`` com os erros de cada linha;
* ``confirm`` refaz a analise do zero e, se nenhuma linha tiver erro, grava
  todas as vendas numa unica transacao.

Nada da pre-visualizacao fica guardado entre as duas fases: cupons, taxas de
comissao e pedidos ja gravados podem mudar enquanto o operador revisa o lote.
"""

from __future__ import annotations

from collections import Counter
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, Iterable, Optional

import pandas as pd

from .affiliates import AffiliateDirectory
from .database import Database, SalesRepository
from .errors import ConflictAnalysis, DuplicateOrderNumber, ValidationError
from .log import get_logger
from .models import Affiliate, ImportAnalysis, ImportResult, ImportRow, ImportSummary, Sale
from .normalization import (
    DEFAULT_COLUMNS,
    ColumnMapping,
    clean_text,
    compute_sale_totals,
    detect_columns,
    detect_delimiter,
    format_date,
    round_currency,
    split_line,
)
from .sale_service import check_sale_rules, parse_sale_fields


logger = get_logger("importer")

NO_ROWS_MESSAGE = "Nenhuma venda encontrada nos dados informados."
UNKNOWN_COUPON = "Cupom nao cadastrado."
REPEATED_IN_BATCH = "Numero de pedido repetido nos dados importados."
ALREADY_PERSISTED = "Numero de pedido ja cadastrado."

SPREADSHEET_SUFFIXES = {".xlsx", ".xlsm", ".xls"}


class SalesImporter:
    """Analisa e grava lotes de vendas colados pelo operador."""

    def __init__(
        self,
        database: Database,
        directory: AffiliateDirectory | None = None,
        repository: SalesRepository | None = None,
    ) -> None:
        self.database = database
        self.directory = directory or AffiliateDirectory(database)
        self.repository = repository or SalesRepository(database)

    def preview(self, text: str) -> ImportAnalysis:
        """Analisa o lote sem gravar. Falha so quando nao ha nenhuma linha de dados."""
        lines = [(number, line) for number, line in enumerate(clean_text(text), start=1) if line.strip()]
        if not lines:
            raise ValidationError(NO_ROWS_MESSAGE)

        _, first_line = lines[0]
        delimiter = detect_delimiter(first_line)
        columns = detect_columns(split_line(first_line, delimiter))
        header_detected = columns is not None
        if header_detected:
            lines = lines[1:]
        columns = columns or DEFAULT_COLUMNS
        if not lines:
            raise ValidationError(NO_ROWS_MESSAGE)

        affiliates: dict[str, Optional[Affiliate]] = {}
        rows = [
            self._build_row(number, split_line(line, detect_delimiter(line)), columns, affiliates)
            for number, line in lines
        ]
        self._flag_duplicates(rows)
        for row in rows:
            if row.is_valid:
                row.net_value, row.commission = compute_sale_totals(
                    row.gross_value, row.discount, row.commission_rate
                )

        valid_rows = [row for row in rows if row.is_valid]
        analysis = ImportAnalysis(
            rows=rows,
            summary=summarize_rows(valid_rows),
            total_count=len(rows),
            valid_count=len(valid_rows),
            error_count=len(rows) - len(valid_rows),
            delimiter=delimiter,
            header_detected=header_detected,
        )
        logger.debug(
            "Pre-visualizacao: %s linhas, %s validas, %s com erro",
            analysis.total_count,
            analysis.valid_count,
            analysis.error_count,
        )
        return analysis

    def confirm(self, text: str) -> ImportResult:
        """Refaz a analise e grava tudo ou nada."""
        analysis = self.preview(text)
        if analysis.has_errors or analysis.valid_count != analysis.total_count:
            logger.warning(
                "Importacao recusada: %s de %s linhas com erro",
                analysis.error_count,
                analysis.total_count,
            )
            raise ConflictAnalysis(analysis)

        persisted: list[Sale] = []
        try:
            with self.database.transaction():
                for row in analysis.rows:
                    persisted.append(self.repository.insert(self._to_sale(row)))
        except DuplicateOrderNumber:
            logger.warning("Importacao desfeita: pedido gravado por outra operacao durante a confirmacao")
            raise
        logger.info("Importacao confirmada com %s vendas", len(persisted))
        return ImportResult(inserted=len(persisted), rows=persisted, summary=analysis.summary)

    def _build_row(
        self,
        line_number: int,
        cells: list[str],
        columns: ColumnMapping,
        affiliates: dict[str, Optional[Affiliate]],
    ) -> ImportRow:
        def cell(index: int) -> str:
            return cells[index] if 0 <= index < len(cells) else ""

        row = ImportRow(
            line_number=line_number,
            raw_order_number=cell(columns.order_number),
            raw_coupon=cell(columns.coupon),
            raw_date=cell(columns.date),
            raw_gross=cell(columns.gross_value),
            raw_discount=cell(columns.discount),
        )
        fields, errors = parse_sale_fields(
            row.raw_order_number, row.raw_coupon, row.raw_date, row.raw_gross, row.raw_discount
        )
        row.order_number = fields.order_number
        row.coupon = fields.coupon
        row.date = fields.date
        row.gross_value = fields.gross_value
        row.discount = fields.discount
        if not errors:
            errors = check_sale_rules(fields)
        if not errors:
            affiliate = self._lookup(fields.coupon, affiliates)
            if affiliate is None:
                errors.append(UNKNOWN_COUPON)
            else:
                row.affiliate_id = affiliate.id
                row.affiliate_name = affiliate.name
                row.commission_rate = affiliate.commission_rate
        row.errors = errors
        return row

    def _lookup(self, coupon: str, cache: dict[str, Optional[Affiliate]]) -> Optional[Affiliate]:
        key = coupon.lower()
        if key not in cache:
            cache[key] = self.directory.find_by_coupon(coupon)
        return cache[key]

    def _flag_duplicates(self, rows: list[ImportRow]) -> None:
        counts = Counter(row.order_number for row in rows if row.order_number)
        persisted = self.repository.find_existing_order_numbers(counts)
        for row in rows:
            if not row.order_number:
                continue
            if counts[row.order_number] > 1:
                row.errors.append(REPEATED_IN_BATCH)
            if row.order_number in persisted:
                row.errors.append(ALREADY_PERSISTED)

    def _to_sale(self, row: ImportRow) -> Sale:
        return Sale(
            order_number=row.order_number,
            affiliate_id=row.affiliate_id,
            date=row.date,
            gross_value=row.gross_value,
            discount=row.discount,
            net_value=row.net_value,
            commission=row.commission,
        )


def summarize_rows(rows: Iterable[ImportRow]) -> ImportSummary:
    """Totais somados em Decimal e arredondados uma unica vez."""
    count = 0
    gross = discount = net = commission = Decimal("0")
    for row in rows:
        count += 1
        gross += Decimal(str(row.gross_value))
        discount += Decimal(str(row.discount))
        net += Decimal(str(row.net_value))
        commission += Decimal(str(row.commission))
    return ImportSummary(
        count=count,
        total_gross=round_currency(gross),
        total_discount=round_currency(discount),
        total_net=round_currency(net),
        total_commission=round_currency(commission),
    )


def read_import_source(path: Path, sheet_name: str | int = 0) -> str:
    """Le o arquivo do lote como texto. Planilhas viram linhas separadas por tab."""
    path = Path(path)
    if path.suffix.lower() not in SPREADSHEET_SUFFIXES:
        return path.read_text(encoding="utf-8-sig")
    df = pd.read_excel(path, sheet_name=sheet_name, header=None, dtype=object)
    lines: list[str] = []
    for idx in range(df.shape[0]):
        cells = [_clean_cell(value) for value in df.iloc[idx]]
        lines.append("\t".join(cells).rstrip("\t"))
    return "\n".join(lines)


def _clean_cell(value: Any) -> str:
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return ""
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        return str(value)
    if isinstance(value, datetime):
        return format_date(value.date())
    if isinstance(value, date):
        return format_date(value)
    return str(value).replace("\t", " ").strip()
