"""Grafico de barras da consulta geral, salvo em PNG."""

from __future__ import annotations

from pathlib import Path
from typing import Sequence

from matplotlib.figure import Figure
from matplotlib.ticker import FuncFormatter

from .models import AffiliateSalesSummary


def format_currency(value: float) -> str:
    """Formata valores no padrao brasileiro (1.234,56)."""
    formatted = f"{value:,.2f}"
    return formatted.replace(",", "_").replace(".", ",").replace("_", ".")


def format_short(value: float) -> str:
    abs_value = abs(value)
    if abs_value >= 1_000_000:
        return f"{value / 1_000_000:.1f}M".replace(".", ",")
    if abs_value >= 1_000:
        return f"{value / 1_000:.1f}k".replace(".", ",")
    return f"{value:.0f}"


def render_program_chart(rows: Sequence[AffiliateSalesSummary], path: Path) -> Path:
    """Desenha o liquido vendido por cupom e grava o arquivo."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    labels = [row.coupon or row.name for row in rows]
    values = [row.sales_total_net for row in rows]

    figure = Figure(figsize=(max(6, len(rows) * 0.9), 4))
    ax = figure.add_subplot(111)
    if rows:
        positions = list(range(len(rows)))
        bars = ax.bar(positions, values, width=0.6, color="#1a9c47", alpha=0.75)
        ax.set_xticks(positions, labels, rotation=45, ha="right")
        for bar, value in zip(bars, values):
            ax.annotate(
                format_short(value),
                xy=(bar.get_x() + bar.get_width() / 2, bar.get_height()),
                xytext=(0, 4),
                textcoords="offset points",
                ha="center",
                va="bottom",
                fontsize=8,
            )
        max_val = max(values)
        if max_val > 0:
            ax.set_ylim(0, max_val * 1.2)
    else:
        ax.text(0.5, 0.5, "Sem influenciadoras cadastradas", ha="center", va="center", transform=ax.transAxes)
    ax.yaxis.set_major_formatter(FuncFormatter(lambda val, _: format_short(val)))
    ax.set_ylabel("Total liquido (R$)")
    ax.set_title("Vendas liquidas por influenciadora")
    ax.grid(True, axis="y", linestyle="--", linewidth=0.6, alpha=0.35)
    figure.tight_layout()
    figure.savefig(path, dpi=100)
    return path
