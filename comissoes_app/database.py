"""Camada de acesso a dados usando SQLite."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import date
from pathlib import Path
from typing import Iterable, Iterator, Optional

from .errors import DuplicateOrderNumber, StorageFailure
from .log import get_logger
from .models import ExistingOrder, Sale
from .normalization import normalize_order_number, round_currency


logger = get_logger("database")

ORDER_NUMBER_INDEX = "uniq_sales_order_number"


class Database:
    """Conexao unica com a base, esquema e transacoes."""

    def __init__(self, db_path: Path | str) -> None:
        self.db_path = Path(db_path)
        if str(db_path) != ":memory:":
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(db_path))
        self._conn.row_factory = sqlite3.Row
        self._depth = 0
        self._ensure_schema()

    @property
    def connection(self) -> sqlite3.Connection:
        return self._conn

    def _ensure_schema(self) -> None:
        schema = f"""
        PRAGMA foreign_keys = ON;
        CREATE TABLE IF NOT EXISTS influenciadoras (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            nome TEXT NOT NULL,
            instagram TEXT NOT NULL UNIQUE,
            cpf TEXT,
            email TEXT,
            contato TEXT,
            cupom TEXT,
            cep TEXT,
            logradouro TEXT,
            numero TEXT,
            complemento TEXT,
            bairro TEXT,
            cidade TEXT,
            estado TEXT,
            commission_rate REAL NOT NULL DEFAULT 0 CHECK (commission_rate >= 0 AND commission_rate <= 100),
            user_id INTEGER,
            created_at TEXT NOT NULL DEFAULT (datetime('now'))
        );

        CREATE UNIQUE INDEX IF NOT EXISTS uniq_influenciadoras_cupom
            ON influenciadoras(LOWER(cupom)) WHERE cupom IS NOT NULL;
        CREATE UNIQUE INDEX IF NOT EXISTS uniq_influenciadoras_user_id
            ON influenciadoras(user_id) WHERE user_id IS NOT NULL;

        CREATE TABLE IF NOT EXISTS sales (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            influencer_id INTEGER NOT NULL,
            order_number TEXT NOT NULL,
            date TEXT NOT NULL,
            gross_value REAL NOT NULL CHECK (gross_value >= 0),
            discount REAL NOT NULL DEFAULT 0 CHECK (discount >= 0),
            net_value REAL NOT NULL CHECK (net_value >= 0),
            commission REAL NOT NULL CHECK (commission >= 0),
            created_at TEXT NOT NULL DEFAULT (datetime('now')),
            FOREIGN KEY(influencer_id) REFERENCES influenciadoras(id) ON DELETE CASCADE
        );

        CREATE UNIQUE INDEX IF NOT EXISTS {ORDER_NUMBER_INDEX} ON sales(order_number);
        CREATE INDEX IF NOT EXISTS idx_sales_influencer ON sales(influencer_id);
        """
        self._conn.executescript(schema)

    def close(self) -> None:
        self._conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Bloco atomico. Blocos aninhados participam da transacao externa."""
        outermost = self._depth == 0
        self._depth += 1
        try:
            yield self._conn
            if outermost:
                self._conn.commit()
        except Exception:
            if outermost:
                self._conn.rollback()
            raise
        finally:
            self._depth -= 1


def is_order_number_violation(error: sqlite3.IntegrityError) -> bool:
    message = str(error)
    return "sales.order_number" in message or ORDER_NUMBER_INDEX in message


class SalesRepository:
    """Encapsula as operacoes sobre a tabela de vendas."""

    _SELECT = """
    SELECT s.id,
           s.order_number,
           s.influencer_id,
           s.date,
           s.gross_value,
           s.discount,
           s.net_value,
           s.commission,
           s.created_at,
           i.cupom,
           i.nome,
           i.commission_rate
    FROM sales s
    JOIN influenciadoras i ON i.id = s.influencer_id
    """

    def __init__(self, database: Database) -> None:
        self.database = database
        self._conn = database.connection

    def insert(self, sale: Sale) -> Sale:
        """Grava a venda e devolve a linha persistida (com id)."""
        with self._storage_errors(sale.order_number):
            with self.database.transaction():
                cursor = self._conn.execute(
                    """
                    INSERT INTO sales (
                        order_number, influencer_id, date, gross_value, discount, net_value, commission
                    ) VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    self._payload(sale),
                )
                sale_id = int(cursor.lastrowid)
        return self._require(sale_id)

    def update(self, sale_id: int, sale: Sale) -> Sale:
        with self._storage_errors(sale.order_number):
            with self.database.transaction():
                self._conn.execute(
                    """
                    UPDATE sales SET
                        order_number = ?,
                        influencer_id = ?,
                        date = ?,
                        gross_value = ?,
                        discount = ?,
                        net_value = ?,
                        commission = ?
                    WHERE id = ?
                    """,
                    (*self._payload(sale), sale_id),
                )
        return self._require(sale_id)

    def delete(self, sale_id: int) -> bool:
        with self._storage_errors():
            with self.database.transaction():
                cursor = self._conn.execute("DELETE FROM sales WHERE id = ?", (sale_id,))
        return cursor.rowcount > 0

    def find_by_id(self, sale_id: int) -> Optional[Sale]:
        row = self._conn.execute(f"{self._SELECT} WHERE s.id = ?", (sale_id,)).fetchone()
        return self._to_sale(row) if row else None

    def find_by_order_number(self, order_number: str) -> Optional[Sale]:
        code = normalize_order_number(order_number)
        if not code:
            return None
        row = self._conn.execute(f"{self._SELECT} WHERE s.order_number = ?", (code,)).fetchone()
        return self._to_sale(row) if row else None

    def find_existing_order_numbers(self, order_numbers: Iterable[str]) -> set[str]:
        """Dos numeros informados, devolve os que ja estao gravados."""
        codes = sorted({code for code in map(normalize_order_number, order_numbers) if code})
        found: set[str] = set()
        # SQLite limita a quantidade de parametros por consulta.
        for start in range(0, len(codes), 500):
            chunk = codes[start : start + 500]
            placeholders = ", ".join("?" for _ in chunk)
            rows = self._conn.execute(
                f"SELECT order_number FROM sales WHERE order_number IN ({placeholders})",
                chunk,
            )
            found.update(row["order_number"] for row in rows)
        return found

    def check_orders(self, order_numbers: Iterable[str]) -> list[ExistingOrder]:
        """Pedidos informados que ja existem, com a data e o cupom da venda."""
        results: list[ExistingOrder] = []
        seen: set[str] = set()
        for raw in order_numbers:
            code = normalize_order_number(raw)
            if not code or code in seen:
                continue
            seen.add(code)
            sale = self.find_by_order_number(code)
            if sale:
                results.append(
                    ExistingOrder(
                        sale_id=int(sale.id),
                        order_number=sale.order_number,
                        date=sale.date.isoformat(),
                        coupon=sale.coupon,
                    )
                )
        return results

    def list_by_affiliate(self, affiliate_id: int) -> list[Sale]:
        rows = self._conn.execute(
            f"{self._SELECT} WHERE s.influencer_id = ? ORDER BY s.date DESC, s.id DESC",
            (affiliate_id,),
        )
        return [self._to_sale(row) for row in rows]

    def count(self) -> int:
        row = self._conn.execute("SELECT COUNT(*) AS total FROM sales").fetchone()
        return int(row["total"])

    def summarize(self, affiliate_id: int) -> tuple[float, float]:
        row = self._conn.execute(
            """
            SELECT COALESCE(SUM(net_value), 0) AS total_net,
                   COALESCE(SUM(commission), 0) AS total_commission
            FROM sales
            WHERE influencer_id = ?
            """,
            (affiliate_id,),
        ).fetchone()
        return round_currency(row["total_net"]), round_currency(row["total_commission"])

    def list_affiliate_totals(self) -> list[sqlite3.Row]:
        query = """
        SELECT i.id,
               i.nome,
               i.instagram,
               i.cupom,
               i.commission_rate,
               COUNT(s.id) AS vendas_count,
               COALESCE(SUM(s.net_value), 0) AS vendas_total
        FROM influenciadoras i
        LEFT JOIN sales s ON s.influencer_id = i.id
        GROUP BY i.id
        ORDER BY LOWER(i.nome), i.id
        """
        return list(self._conn.execute(query))

    def _require(self, sale_id: int) -> Sale:
        sale = self.find_by_id(sale_id)
        if sale is None:
            raise LookupError(f"Venda {sale_id} nao encontrada apos gravacao")
        return sale

    @contextmanager
    def _storage_errors(self, order_number: str | None = None) -> Iterator[None]:
        try:
            yield
        except sqlite3.IntegrityError as exc:
            if is_order_number_violation(exc):
                raise DuplicateOrderNumber(order_number) from exc
            logger.exception("Violacao de integridade ao gravar venda %s", order_number)
            raise StorageFailure("Nao foi possivel gravar a venda.") from exc
        except sqlite3.Error as exc:
            logger.exception("Erro de banco ao gravar venda %s", order_number)
            raise StorageFailure("Nao foi possivel gravar a venda.") from exc

    def _payload(self, sale: Sale) -> tuple[object, ...]:
        return (
            sale.order_number,
            sale.affiliate_id,
            self._date_to_text(sale.date),
            sale.gross_value,
            sale.discount,
            sale.net_value,
            sale.commission,
        )

    def _date_to_text(self, value: date) -> str:
        return value.isoformat()

    def _to_sale(self, row: sqlite3.Row) -> Sale:
        return Sale(
            id=int(row["id"]),
            order_number=row["order_number"],
            affiliate_id=int(row["influencer_id"]),
            date=date.fromisoformat(row["date"]),
            gross_value=float(row["gross_value"]),
            discount=float(row["discount"]),
            net_value=float(row["net_value"]),
            commission=float(row["commission"]),
            created_at=row["created_at"],
            coupon=row["cupom"],
            affiliate_name=row["nome"],
            commission_rate=float(row["commission_rate"] or 0),
        )
