"""Conversao de textos brutos (valores, datas, pedidos, cupons) em valores tipados.

Todas as funcoes sao puras: nao acessam a base nem guardam estado. As que
podem falhar de forma visivel ao usuario levantam ``ValidationError`` com uma
mensagem pronta para exibicao.
"""

from __future__ import annotations

import csv
import math
import re
import unicodedata
from dataclasses import dataclass
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional

from .errors import ValidationError


ORDER_NUMBER_MAX_LENGTH = 100

CENT = Decimal("0.01")

# Marcas de ordem de bytes e caracteres de largura zero que aparecem ao colar planilhas.
_INVISIBLE_CHARS = "\ufeff\u200b\u200c\u200d\u2060"
_NON_NUMERIC = re.compile(r"[^0-9.,-]")
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b-\x1f\x7f]")
_HEADER_JUNK = re.compile(r"[^a-z0-9]")
_WIDE_GAP = re.compile(r"\s{2,}")
_BR_DATE = re.compile(r"^(\d{1,2})([/-])(\d{1,2})\2(\d{4}|\d{2})(?:[\sT].*)?$")
_ISO_DATE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})(?:[\sT].*)?$")


def round_currency(value: float | Decimal) -> float:
    """Arredonda para centavos, meio para cima (0,005 -> 0,01)."""
    try:
        quantized = Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation as exc:
        raise ValueError(f"Valor monetario invalido: {value!r}") from exc
    return float(quantized)


def parse_currency(value: Any) -> Optional[float]:
    """Interpreta numeros com separador decimal ambiguo ("1.234,56", "1,234.56").

    Quando aparecem ponto e virgula, o ultimo dos dois e o separador decimal.
    So virgula tambem vira separador decimal. Devolve ``None`` quando nao ha
    numero valido.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float, Decimal)):
        number = float(value)
        if not math.isfinite(number):
            return None
        return round_currency(number)

    text = str(value).strip()
    if not text:
        return None
    sanitized = _NON_NUMERIC.sub("", text)
    if not sanitized:
        return None
    last_comma = sanitized.rfind(",")
    last_dot = sanitized.rfind(".")
    if last_comma > last_dot:
        sanitized = sanitized.replace(".", "")
        if sanitized.count(",") > 1:
            return None
        sanitized = sanitized.replace(",", ".")
    elif last_dot > last_comma:
        sanitized = sanitized.replace(",", "")
    try:
        number = float(sanitized)
    except ValueError:
        return None
    if not math.isfinite(number):
        return None
    return round_currency(number)


def parse_money(value: Any, label: str, *, default: Optional[float] = None) -> float:
    """Como ``parse_currency``, mas exige um valor monetario maior ou igual a zero."""
    if default is not None and (value is None or (isinstance(value, str) and not value.strip())):
        return default
    number = parse_currency(value)
    if number is None or number < 0:
        raise ValidationError(f"{label} deve ser um numero maior ou igual a zero.")
    return number


def parse_date(value: Any) -> date:
    """Aceita DD/MM/AAAA, DD-MM-AAAA (com hora opcional, ignorada) ou AAAA-MM-DD."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = strip_artifacts(value)
    if not text:
        raise ValidationError("Informe a data da venda.")

    match = _BR_DATE.match(text)
    if match:
        day, month, year = int(match.group(1)), int(match.group(3)), int(match.group(4))
        if len(match.group(4)) == 2:
            year += 2000
    else:
        match = _ISO_DATE.match(text)
        if not match:
            raise ValidationError(f"Data invalida: {text!r}. Use o formato DD/MM/AAAA.")
        year, month, day = int(match.group(1)), int(match.group(2)), int(match.group(3))

    try:
        return date(year, month, day)
    except ValueError as exc:
        raise ValidationError(f"Data inexistente no calendario: {text!r}.") from exc


def format_date(value: date) -> str:
    return f"{value.day:02d}/{value.month:02d}/{value.year:04d}"


def strip_artifacts(value: Any) -> str:
    """Remove espacos e restos invisiveis de copia e cola (BOM, largura zero)."""
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value)
    for char in _INVISIBLE_CHARS:
        text = text.replace(char, "")
    return text.strip()


def normalize_order_number(value: Any) -> Optional[str]:
    """Numero de pedido canonico: sem espacos nas pontas e em maiusculas."""
    text = strip_artifacts(value)
    if not text:
        return None
    return text.upper()


def normalize_coupon(value: Any) -> Optional[str]:
    text = strip_artifacts(value)
    return text or None


def clean_text(text: str) -> list[str]:
    """Limpa o texto colado e devolve as linhas na ordem original."""
    text = (text or "").replace("\ufeff", "")
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    return [_CONTROL_CHARS.sub("", line) for line in text.split("\n")]


def detect_delimiter(line: str) -> Optional[str]:
    """Tab, depois ponto e virgula, depois virgula. ``None`` = separar por espacos."""
    for candidate in ("\t", ";", ","):
        if candidate in line:
            return candidate
    return None


def split_line(line: str, delimiter: Optional[str]) -> list[str]:
    """Sem delimitador, colunas separadas por dois ou mais espacos tem prioridade."""
    if delimiter is None:
        stripped = line.strip()
        if _WIDE_GAP.search(stripped):
            return [strip_artifacts(cell) for cell in _WIDE_GAP.split(stripped)]
        return stripped.split()
    cells = next(csv.reader([line], delimiter=delimiter), [])
    return [strip_artifacts(cell) for cell in cells]


def normalize_header_token(token: str) -> str:
    decomposed = unicodedata.normalize("NFKD", token or "")
    without_accents = "".join(char for char in decomposed if not unicodedata.combining(char))
    return _HEADER_JUNK.sub("", without_accents.lower())


# Campo canonico -> apelidos aceitos no cabecalho (ja normalizados).
COLUMN_ALIASES: dict[str, tuple[str, ...]] = {
    "order_number": (
        "pedido",
        "numeropedido",
        "numerodopedido",
        "npedido",
        "nopedido",
        "codigopedido",
        "codigodopedido",
        "order",
        "ordernumber",
        "ordercode",
        "orderid",
    ),
    "coupon": (
        "cupom",
        "cupon",
        "coupon",
        "couponcode",
        "codigocupom",
        "codigodocupom",
        "discountcode",
    ),
    "date": (
        "data",
        "date",
        "datapedido",
        "datadopedido",
        "datavenda",
        "datadavenda",
        "orderdate",
    ),
    "gross_value": (
        "valorbruto",
        "bruto",
        "gross",
        "grossvalue",
        "grosssales",
        "vendasbrutas",
        "valor",
        "valortotal",
        "total",
    ),
    "discount": (
        "desconto",
        "descontos",
        "discount",
        "valordesconto",
        "valordodesconto",
        "discountamount",
    ),
}

ORDER_KEYWORDS = ("pedido", "order")


@dataclass(frozen=True, slots=True)
class ColumnMapping:
    """Indice de cada campo dentro de uma linha importada."""

    order_number: int = 0
    coupon: int = 1
    date: int = 2
    gross_value: int = 3
    discount: int = 4


DEFAULT_COLUMNS = ColumnMapping()


def _field_for_token(token: str) -> Optional[str]:
    for field_name, aliases in COLUMN_ALIASES.items():
        if token in aliases:
            return field_name
    # Codigos como "pedido1" ou "order77" sao dados, nao rotulos.
    if not any(char.isdigit() for char in token) and any(keyword in token for keyword in ORDER_KEYWORDS):
        return "order_number"
    return None


def detect_columns(cells: list[str]) -> Optional[ColumnMapping]:
    """Reconhece uma linha de cabecalho e devolve o mapeamento de colunas.

    A linha so e cabecalho quando algum token identifica o numero do pedido.
    Campos sem coluna reconhecida mantem a posicao padrao.
    """
    tokens = [normalize_header_token(cell) for cell in cells]
    positions: dict[str, int] = {}
    for index, token in enumerate(tokens):
        if not token:
            continue
        field_name = _field_for_token(token)
        if field_name and field_name not in positions:
            positions[field_name] = index
    if "order_number" not in positions:
        return None
    defaults = {name: getattr(DEFAULT_COLUMNS, name) for name in COLUMN_ALIASES}
    defaults.update(positions)
    return ColumnMapping(**defaults)


def compute_sale_totals(gross_value: float, discount: float, commission_rate: float) -> tuple[float, float]:
    """Liquido e comissao de uma venda, ambos arredondados para centavos."""
    net_value = round_currency(max(0.0, float(gross_value) - float(discount)))
    commission = round_currency(net_value * (float(commission_rate or 0) / 100))
    return net_value, commission
