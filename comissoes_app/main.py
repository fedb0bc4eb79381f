"""Ponto de entrada CLI do programa de comissoes (SQLite)."""

from __future__ import annotations

import argparse
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, TextIO

from .affiliates import AffiliateDirectory
from .charts import format_currency, render_program_chart
from .config import AppConfig, load_config
from .database import Database, SalesRepository
from .errors import ComissoesError, ConflictAnalysis, ValidationError
from .log import configure
from .models import Affiliate, AffiliateInput, ImportAnalysis, Sale, SaleInput
from .normalization import format_date
from .sale_service import SaleService
from .sales_importer import SalesImporter, read_import_source
from .summary import SummaryAggregator


@dataclass
class Services:
    database: Database
    directory: AffiliateDirectory
    sales: SaleService
    importer: SalesImporter
    summary: SummaryAggregator
    out: TextIO

    @classmethod
    def open(cls, config: AppConfig, out: TextIO) -> "Services":
        database = Database(config.db_path)
        directory = AffiliateDirectory(database)
        repository = SalesRepository(database)
        return cls(
            database=database,
            directory=directory,
            sales=SaleService(database, directory, repository),
            importer=SalesImporter(database, directory, repository),
            summary=SummaryAggregator(database, directory, repository),
            out=out,
        )

    def print(self, *values: object) -> None:
        print(*values, file=self.out)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="comissoes",
        description="Vendas e comissoes de influenciadoras por cupom.",
    )
    parser.add_argument("--db", type=Path, default=None, help="Arquivo SQLite (padrao: comissoes.sqlite3).")
    parser.add_argument("--log-level", default=None, help="Nivel de log (DEBUG, INFO, WARNING...).")
    commands = parser.add_subparsers(dest="command", required=True)

    affiliate = commands.add_parser("affiliate", help="Cadastro de influenciadoras.")
    affiliate_cmds = affiliate.add_subparsers(dest="action", required=True)
    add = affiliate_cmds.add_parser("add", help="Cadastra uma influenciadora.")
    _add_affiliate_arguments(add)
    add.set_defaults(handler=_affiliate_add)
    update = affiliate_cmds.add_parser("update", help="Substitui o cadastro de uma influenciadora.")
    update.add_argument("id", type=int)
    _add_affiliate_arguments(update)
    update.set_defaults(handler=_affiliate_update)
    delete = affiliate_cmds.add_parser("delete", help="Remove a influenciadora e as vendas dela.")
    delete.add_argument("id", type=int)
    delete.set_defaults(handler=_affiliate_delete)
    show = affiliate_cmds.add_parser("show", help="Mostra um cadastro.")
    show.add_argument("id", type=int)
    show.set_defaults(handler=_affiliate_show)
    affiliate_cmds.add_parser("list", help="Lista as influenciadoras.").set_defaults(handler=_affiliate_list)

    sale = commands.add_parser("sale", help="Vendas avulsas.")
    sale_cmds = sale.add_subparsers(dest="action", required=True)
    sale_add = sale_cmds.add_parser("add", help="Registra uma venda.")
    _add_sale_arguments(sale_add)
    sale_add.set_defaults(handler=_sale_add)
    sale_update = sale_cmds.add_parser("update", help="Altera uma venda.")
    sale_update.add_argument("id", type=int)
    _add_sale_arguments(sale_update)
    sale_update.set_defaults(handler=_sale_update)
    sale_delete = sale_cmds.add_parser("delete", help="Remove uma venda.")
    sale_delete.add_argument("id", type=int)
    sale_delete.set_defaults(handler=_sale_delete)
    sale_list = sale_cmds.add_parser("list", help="Vendas de uma influenciadora.")
    sale_list.add_argument("affiliate_id", type=int)
    sale_list.set_defaults(handler=_sale_list)
    sale_check = sale_cmds.add_parser("check", help="Verifica se numeros de pedido ja existem.")
    sale_check.add_argument("orders", nargs="+")
    sale_check.set_defaults(handler=_sale_check)

    importer = commands.add_parser("import", help="Importacao em lote (texto, CSV ou Excel).")
    import_cmds = importer.add_subparsers(dest="action", required=True)
    for action, handler, help_text in (
        ("preview", _import_preview, "Analisa o lote sem gravar."),
        ("confirm", _import_confirm, "Reanalisa e grava o lote inteiro."),
    ):
        cmd = import_cmds.add_parser(action, help=help_text)
        cmd.add_argument("source", help="Arquivo do lote ou '-' para ler da entrada padrao.")
        cmd.set_defaults(handler=handler)

    summary = commands.add_parser("summary", help="Totais de uma influenciadora.")
    summary.add_argument("affiliate_id", type=int)
    summary.set_defaults(handler=_summary)

    report = commands.add_parser("report", help="Consulta geral por influenciadora.")
    report.add_argument("--csv", type=Path, default=None, help="Exporta a consulta em CSV.")
    report.add_argument("--chart", type=Path, default=None, help="Grava o grafico em PNG.")
    report.set_defaults(handler=_report)
    return parser


def _add_affiliate_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--name", required=True, help="Nome da influenciadora.")
    parser.add_argument("--instagram", required=True)
    parser.add_argument("--coupon", default=None, help="Cupom de desconto (unico).")
    parser.add_argument("--commission", default=None, help="Comissao em %% (0 a 100).")
    parser.add_argument("--cpf", default=None)
    parser.add_argument("--phone", default=None, help="DDD + numero.")
    parser.add_argument("--email", default=None)
    parser.add_argument("--zip-code", default=None, help="CEP.")
    parser.add_argument("--street", default=None)
    parser.add_argument("--number", default=None)
    parser.add_argument("--complement", default=None)
    parser.add_argument("--district", default=None)
    parser.add_argument("--city", default=None)
    parser.add_argument("--state", default=None)
    parser.add_argument("--user-id", type=int, default=None, help="Usuario de login vinculado.")


def _add_sale_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--order", required=True, help="Numero do pedido.")
    parser.add_argument("--coupon", required=True)
    parser.add_argument("--date", required=True, help="DD/MM/AAAA ou AAAA-MM-DD.")
    parser.add_argument("--gross", required=True, help="Valor bruto.")
    parser.add_argument("--discount", default="0", help="Desconto (padrao 0).")


def _affiliate_input(args: argparse.Namespace) -> AffiliateInput:
    return AffiliateInput(
        name=args.name,
        instagram=args.instagram,
        tax_id=args.cpf,
        contact_phone=args.phone,
        email=args.email,
        coupon=args.coupon,
        commission_rate=args.commission,
        zip_code=args.zip_code,
        street=args.street,
        number=args.number,
        complement=args.complement,
        district=args.district,
        city=args.city,
        state=args.state,
        linked_user_id=args.user_id,
    )


def _sale_input(args: argparse.Namespace) -> SaleInput:
    return SaleInput(
        order_number=args.order,
        coupon=args.coupon,
        date=args.date,
        gross_value=args.gross,
        discount=args.discount,
    )


def _describe_affiliate(affiliate: Affiliate) -> str:
    coupon = affiliate.coupon or "sem cupom"
    return f"#{affiliate.id} {affiliate.name} {affiliate.instagram} · {coupon} · {affiliate.commission_rate:g}%"


def _describe_sale(sale: Sale) -> str:
    return (
        f"#{sale.id} {sale.order_number} {format_date(sale.date)} "
        f"bruto {format_currency(sale.gross_value)} desconto {format_currency(sale.discount)} "
        f"liquido {format_currency(sale.net_value)} comissao {format_currency(sale.commission)}"
    )


def _print_analysis(services: Services, analysis: ImportAnalysis) -> None:
    for row in analysis.rows:
        if row.errors:
            services.print(f"Linha {row.line_number}: {' '.join(row.errors)}")
        else:
            services.print(
                f"Linha {row.line_number}: {row.order_number} {row.coupon} "
                f"liquido {format_currency(row.net_value)} comissao {format_currency(row.commission)}"
            )
    summary = analysis.summary
    services.print(
        f"{analysis.valid_count} de {analysis.total_count} linhas validas · "
        f"bruto {format_currency(summary.total_gross)} desconto {format_currency(summary.total_discount)} "
        f"liquido {format_currency(summary.total_net)} comissao {format_currency(summary.total_commission)}"
    )


def _read_source(source: str) -> str:
    if source == "-":
        return sys.stdin.read()
    try:
        return read_import_source(Path(source))
    except OSError as exc:
        raise ValidationError(f"Nao foi possivel ler o arquivo {source}: {exc.strerror or exc}.") from exc


def _affiliate_add(services: Services, args: argparse.Namespace) -> None:
    services.print(_describe_affiliate(services.directory.create(_affiliate_input(args))))


def _affiliate_update(services: Services, args: argparse.Namespace) -> None:
    services.print(_describe_affiliate(services.directory.update(args.id, _affiliate_input(args))))


def _affiliate_delete(services: Services, args: argparse.Namespace) -> None:
    services.directory.delete(args.id)
    services.print("Influenciadora removida com sucesso.")


def _affiliate_show(services: Services, args: argparse.Namespace) -> None:
    services.print(_describe_affiliate(services.directory.require(args.id)))


def _affiliate_list(services: Services, args: argparse.Namespace) -> None:
    for affiliate in services.directory.list_affiliates():
        services.print(_describe_affiliate(affiliate))


def _sale_add(services: Services, args: argparse.Namespace) -> None:
    services.print(_describe_sale(services.sales.create(_sale_input(args))))


def _sale_update(services: Services, args: argparse.Namespace) -> None:
    services.print(_describe_sale(services.sales.update(args.id, _sale_input(args))))


def _sale_delete(services: Services, args: argparse.Namespace) -> None:
    services.sales.delete(args.id)
    services.print("Venda removida com sucesso.")


def _sale_list(services: Services, args: argparse.Namespace) -> None:
    for sale in services.sales.list_sales(args.affiliate_id):
        services.print(_describe_sale(sale))


def _sale_check(services: Services, args: argparse.Namespace) -> None:
    found = services.sales.check_orders(args.orders)
    if not found:
        services.print("Nenhum pedido ja cadastrado.")
    for order in found:
        services.print(f"{order.order_number} ja cadastrado (venda #{order.sale_id}, {order.date}, {order.coupon})")


def _import_preview(services: Services, args: argparse.Namespace) -> None:
    _print_analysis(services, services.importer.preview(_read_source(args.source)))


def _import_confirm(services: Services, args: argparse.Namespace) -> None:
    result = services.importer.confirm(_read_source(args.source))
    services.print(
        f"{result.inserted} vendas importadas · liquido {format_currency(result.summary.total_net)} "
        f"comissao {format_currency(result.summary.total_commission)}"
    )


def _summary(services: Services, args: argparse.Namespace) -> None:
    summary = services.summary.affiliate_summary(args.affiliate_id)
    services.print(
        f"Cupom {summary.coupon or '-'} ({summary.commission_rate:g}%): "
        f"liquido {format_currency(summary.total_net)} comissao {format_currency(summary.total_commission)}"
    )


def _report(services: Services, args: argparse.Namespace) -> None:
    rows = services.summary.program_summary()
    for row in rows:
        services.print(
            f"{row.name} {row.instagram} {row.coupon or '-'}: "
            f"{row.sales_count} vendas, liquido {format_currency(row.sales_total_net)}"
        )
    if args.csv:
        services.print(f"CSV gravado em {services.summary.export_csv(args.csv)}")
    if args.chart:
        services.print(f"Grafico gravado em {render_program_chart(rows, args.chart)}")


def main(argv: list[str] | None = None, out: Optional[TextIO] = None) -> int:
    args = build_parser().parse_args(argv)
    config = load_config(db_path=args.db, log_level=args.log_level)
    configure(config.log_level)
    services = Services.open(config, out or sys.stdout)
    handler: Callable[[Services, argparse.Namespace], None] = args.handler
    try:
        handler(services, args)
    except ConflictAnalysis as exc:
        print(f"Erro: {exc.message}", file=sys.stderr)
        _print_analysis(services, exc.analysis)
        return 1
    except ComissoesError as exc:
        print(f"Erro: {exc.message}", file=sys.stderr)
        return 1
    finally:
        services.database.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
