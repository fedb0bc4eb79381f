"""Taxonomia de erros do nucleo de vendas e comissoes."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .models import ImportAnalysis


class ComissoesError(Exception):
    """Base de todos os erros esperados. `status` e o equivalente HTTP."""

    kind = "error"
    status = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.message, "kind": self.kind}


class ValidationError(ComissoesError):
    """Campo ausente ou mal formatado; o chamador corrige e reenvia."""

    kind = "validation"
    status = 400


class NotFound(ComissoesError):
    kind = "not_found"
    status = 404


class Duplicate(ComissoesError):
    kind = "duplicate"
    status = 409


class DuplicateOrderNumber(Duplicate):
    """Numero de pedido ja usado por outra venda."""

    def __init__(self, order_number: str | None = None, message: str = "Numero de pedido ja cadastrado.") -> None:
        super().__init__(message)
        self.order_number = order_number

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        if self.order_number:
            payload["orderNumber"] = self.order_number
        return payload


class ConflictAnalysis(ComissoesError):
    """Confirmacao recusada: a analise recalculada ainda tem linhas com erro."""

    kind = "conflict_analysis"
    status = 409

    def __init__(self, analysis: "ImportAnalysis", message: str | None = None) -> None:
        super().__init__(
            message
            or f"Importacao nao confirmada: {analysis.error_count} de {analysis.total_count} linhas com erro."
        )
        self.analysis = analysis

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        payload["analysis"] = self.analysis.as_dict()
        return payload


class StorageFailure(ComissoesError):
    """Falha inesperada da base de dados. Nao ha nova tentativa automatica."""

    kind = "storage"
    status = 500
