"""Cadastro de influenciadoras e busca por cupom."""

from __future__ import annotations

import re
import sqlite3
from contextlib import contextmanager
from typing import Any, Iterator, Optional

from .database import Database
from .errors import Duplicate, NotFound, StorageFailure, ValidationError
from .log import get_logger
from .models import Affiliate, AffiliateInput
from .normalization import normalize_coupon, parse_currency, round_currency, strip_artifacts


logger = get_logger("affiliates")

_NON_DIGITS = re.compile(r"\D")

_COLUMNS = {
    "name": "nome",
    "instagram": "instagram",
    "tax_id": "cpf",
    "contact_phone": "contato",
    "email": "email",
    "coupon": "cupom",
    "commission_rate": "commission_rate",
    "zip_code": "cep",
    "street": "logradouro",
    "number": "numero",
    "complement": "complemento",
    "district": "bairro",
    "city": "cidade",
    "state": "estado",
    "linked_user_id": "user_id",
}


def only_digits(value: Any) -> str:
    return _NON_DIGITS.sub("", strip_artifacts(value))


def is_valid_cpf(digits: str) -> bool:
    if len(digits) != 11 or digits == digits[0] * 11:
        return False

    def check_digit(length: int) -> int:
        total = sum(int(digits[i]) * (length + 1 - i) for i in range(length))
        result = (total * 10) % 11
        return 0 if result == 10 else result

    return check_digit(9) == int(digits[9]) and check_digit(10) == int(digits[10])


def format_cpf(value: Any) -> Optional[str]:
    digits = only_digits(value)
    if not digits:
        return None
    if not is_valid_cpf(digits):
        raise ValidationError("CPF invalido.")
    return f"{digits[:3]}.{digits[3:6]}.{digits[6:9]}-{digits[9:]}"


def format_phone(value: Any) -> Optional[str]:
    digits = only_digits(value)
    if not digits:
        return None
    if len(digits) not in (10, 11):
        raise ValidationError("Contato deve conter DDD + numero (10 ou 11 digitos).")
    middle = 5 if len(digits) == 11 else 4
    return f"({digits[:2]}) {digits[2:2 + middle]}-{digits[2 + middle:]}"


def format_zip_code(value: Any) -> Optional[str]:
    digits = only_digits(value)
    if not digits:
        return None
    if len(digits) != 8:
        raise ValidationError("CEP invalido.")
    return f"{digits[:5]}-{digits[5:]}"


def parse_commission_rate(value: Any) -> float:
    if value is None or (isinstance(value, str) and not value.strip()):
        return 0.0
    rate = parse_currency(value)
    if rate is None or rate < 0 or rate > 100:
        raise ValidationError("Comissao deve estar entre 0 e 100.")
    return round_currency(rate)


def normalize_affiliate_input(payload: AffiliateInput) -> dict[str, Any]:
    """Valida e formata os dados de cadastro. Campos opcionais vazios viram None."""
    name = strip_artifacts(payload.name)
    instagram = strip_artifacts(payload.instagram)
    missing = [label for label, value in (("nome", name), ("instagram", instagram)) if not value]
    if missing:
        raise ValidationError(f"Campos obrigatorios faltando: {', '.join(missing)}.")

    def optional(value: Any) -> Optional[str]:
        return strip_artifacts(value) or None

    state = optional(payload.state)
    return {
        "name": name,
        "instagram": instagram if instagram.startswith("@") else f"@{instagram}",
        "tax_id": format_cpf(payload.tax_id),
        "contact_phone": format_phone(payload.contact_phone),
        "email": optional(payload.email),
        "coupon": normalize_coupon(payload.coupon),
        "commission_rate": parse_commission_rate(payload.commission_rate),
        "zip_code": format_zip_code(payload.zip_code),
        "street": optional(payload.street),
        "number": optional(payload.number),
        "complement": optional(payload.complement),
        "district": optional(payload.district),
        "city": optional(payload.city),
        "state": state.upper() if state else None,
        "linked_user_id": payload.linked_user_id,
    }


class AffiliateDirectory:
    """Busca e manutencao das influenciadoras. O cupom e unico sem diferenciar caixa."""

    _SELECT = """
    SELECT id, nome, instagram, cpf, email, contato, cupom, cep, logradouro, numero,
           complemento, bairro, cidade, estado, commission_rate, user_id, created_at
    FROM influenciadoras
    """

    def __init__(self, database: Database) -> None:
        self.database = database
        self._conn = database.connection

    def find_by_coupon(self, coupon: Any) -> Optional[Affiliate]:
        code = normalize_coupon(coupon)
        if not code:
            return None
        row = self._conn.execute(
            f"{self._SELECT} WHERE cupom IS NOT NULL AND LOWER(cupom) = LOWER(?) LIMIT 1",
            (code,),
        ).fetchone()
        return self._to_affiliate(row) if row else None

    def require_by_coupon(self, coupon: Any) -> Affiliate:
        affiliate = self.find_by_coupon(coupon)
        if affiliate is None:
            raise NotFound("Cupom nao encontrado.")
        return affiliate

    def find_by_id(self, affiliate_id: int) -> Optional[Affiliate]:
        row = self._conn.execute(f"{self._SELECT} WHERE id = ?", (affiliate_id,)).fetchone()
        return self._to_affiliate(row) if row else None

    def require(self, affiliate_id: int) -> Affiliate:
        affiliate = self.find_by_id(affiliate_id)
        if affiliate is None:
            raise NotFound("Influenciadora nao encontrada.")
        return affiliate

    def find_by_linked_user(self, user_id: int) -> Optional[Affiliate]:
        row = self._conn.execute(f"{self._SELECT} WHERE user_id = ?", (user_id,)).fetchone()
        return self._to_affiliate(row) if row else None

    def list_affiliates(self) -> list[Affiliate]:
        rows = self._conn.execute(f"{self._SELECT} ORDER BY created_at DESC, id DESC")
        return [self._to_affiliate(row) for row in rows]

    def create(self, payload: AffiliateInput) -> Affiliate:
        data = normalize_affiliate_input(payload)
        columns = [_COLUMNS[key] for key in data]
        placeholders = ", ".join("?" for _ in columns)
        with self._storage_errors():
            with self.database.transaction():
                cursor = self._conn.execute(
                    f"INSERT INTO influenciadoras ({', '.join(columns)}) VALUES ({placeholders})",
                    tuple(data.values()),
                )
                affiliate_id = int(cursor.lastrowid)
        logger.info("Influenciadora %s cadastrada com cupom %s", data["instagram"], data["coupon"])
        return self.require(affiliate_id)

    def update(self, affiliate_id: int, payload: AffiliateInput) -> Affiliate:
        """Substitui o cadastro inteiro. Vendas antigas mantem a comissao gravada."""
        current = self.require(affiliate_id)
        data = normalize_affiliate_input(payload)
        if data["linked_user_id"] is None:
            data["linked_user_id"] = current.linked_user_id
        assignments = ", ".join(f"{_COLUMNS[key]} = ?" for key in data)
        with self._storage_errors():
            with self.database.transaction():
                self._conn.execute(
                    f"UPDATE influenciadoras SET {assignments} WHERE id = ?",
                    (*data.values(), affiliate_id),
                )
        return self.require(affiliate_id)

    def delete(self, affiliate_id: int) -> None:
        """Remove a influenciadora e, em cascata, as vendas dela."""
        self.require(affiliate_id)
        with self._storage_errors():
            with self.database.transaction():
                self._conn.execute("DELETE FROM influenciadoras WHERE id = ?", (affiliate_id,))

    @contextmanager
    def _storage_errors(self) -> Iterator[None]:
        try:
            yield
        except sqlite3.IntegrityError as exc:
            raise Duplicate("Instagram ou cupom ja cadastrado.") from exc
        except sqlite3.Error as exc:
            logger.exception("Erro de banco no cadastro de influenciadora")
            raise StorageFailure("Nao foi possivel gravar a influenciadora.") from exc

    def _to_affiliate(self, row: sqlite3.Row) -> Affiliate:
        return Affiliate(
            id=int(row["id"]),
            name=row["nome"],
            instagram=row["instagram"],
            tax_id=row["cpf"],
            contact_phone=row["contato"],
            email=row["email"],
            coupon=row["cupom"],
            commission_rate=float(row["commission_rate"] or 0),
            zip_code=row["cep"],
            street=row["logradouro"],
            number=row["numero"],
            complement=row["complemento"],
            district=row["bairro"],
            city=row["cidade"],
            state=row["estado"],
            linked_user_id=row["user_id"],
            created_at=row["created_at"],
        )

