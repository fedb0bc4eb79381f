from datetime import date, datetime
from pathlib import Path

import pandas as pd
import pytest

from comissoes_app.errors import ConflictAnalysis, DuplicateOrderNumber, ValidationError
from comissoes_app.models import SaleInput
from comissoes_app.sales_importer import (
    ALREADY_PERSISTED,
    NO_ROWS_MESSAGE,
    REPEATED_IN_BATCH,
    UNKNOWN_COUPON,
    SalesImporter,
    read_import_source,
)


def test_repeated_order_in_batch_blocks_confirm(importer: SalesImporter, repository, affiliate):
    text = "PED-1;CUPOM10;01/10/2025;1000;100\nPED-1;CUPOM10;02/10/2025;500;0"
    analysis = importer.preview(text)
    assert analysis.total_count == 2
    assert analysis.valid_count == 0
    assert analysis.has_errors
    assert all(REPEATED_IN_BATCH in row.errors for row in analysis.rows)
    assert analysis.summary.count == 0

    with pytest.raises(ConflictAnalysis) as exc:
        importer.confirm(text)
    assert exc.value.analysis.error_count == 2
    assert exc.value.status == 409
    assert exc.value.to_dict()["analysis"]["validCount"] == 0
    assert repository.count() == 0


def test_single_row_confirm_then_repeat_fails(importer: SalesImporter, repository, affiliate):
    text = "PED-2;CUPOM10;01/10/2025;1000;100"
    analysis = importer.preview(text)
    row = analysis.rows[0]
    assert analysis.valid_count == 1
    assert row.net_value == 900.0
    assert row.commission == 90.0
    assert row.affiliate_id == affiliate.id
    assert row.date == date(2025, 10, 1)

    result = importer.confirm(text)
    assert result.inserted == analysis.valid_count == 1
    assert result.rows[0].order_number == "PED-2"
    assert result.summary.total_commission == 90.0
    assert repository.count() == 1

    with pytest.raises(ConflictAnalysis) as exc:
        importer.confirm(text)
    assert exc.value.analysis.rows[0].errors == [ALREADY_PERSISTED]
    assert repository.count() == 1


def test_header_mapping_and_mixed_errors(importer: SalesImporter, affiliate):
    text = "\n".join(
        [
            "Data;Numero do Pedido;Cupom;Desconto;Valor Bruto",
            "01/10/2025;ped-10;cupom10;0;200",
            "02/10/2025;PED-11;NADA;0;100",
            "31/02/2025;PED-12;CUPOM10;0;100",
            "03/10/2025;PED-13;CUPOM10;50;20",
        ]
    )
    analysis = importer.preview(text)
    assert analysis.header_detected
    assert analysis.delimiter == ";"
    assert [row.line_number for row in analysis.rows] == [2, 3, 4, 5]
    good, unknown, bad_date, too_much_discount = analysis.rows
    assert good.is_valid and good.order_number == "PED-10"
    assert good.commission == 20.0
    assert unknown.errors == [UNKNOWN_COUPON]
    assert len(bad_date.errors) == 1 and "Data inexistente" in bad_date.errors[0]
    assert too_much_discount.errors == ["Desconto nao pode ser maior que o valor bruto."]
    assert analysis.valid_count == 1
    assert analysis.error_count == 3
    assert analysis.summary.total_gross == 200.0


def test_delimiters_per_line_and_artifacts(importer: SalesImporter, affiliate):
    text = (
        "\ufeffPED-20\tCUPOM10\t01/10/2025\t1.000,50\t0,50\r\n"
        "\r\n"
        "PED-21;CUPOM10;01/10/2025;\"1.234,56\";\n"
        "PED-22  CUPOM10  01/10/2025  99.90"
    )
    analysis = importer.preview(text)
    assert not analysis.header_detected
    assert analysis.delimiter == "\t"
    assert analysis.valid_count == 3
    first, second, third = analysis.rows
    assert first.order_number == "PED-20"
    assert first.net_value == 1000.0
    assert second.line_number == 3
    assert second.gross_value == 1234.56
    assert second.discount == 0.0
    assert third.gross_value == 99.9
    assert analysis.summary.total_net == 2334.46


def test_empty_input_is_rejected(importer: SalesImporter):
    with pytest.raises(ValidationError, match=NO_ROWS_MESSAGE):
        importer.preview("  \n\n\t\n")
    with pytest.raises(ValidationError, match=NO_ROWS_MESSAGE):
        importer.preview("Pedido;Cupom;Data;Valor Bruto;Desconto\n")


def test_confirm_is_all_or_nothing(importer: SalesImporter, service, repository, affiliate):
    text = "PED-30;CUPOM10;01/10/2025;100;0\nPED-31;CUPOM10;01/10/2025;100;0"
    assert not importer.preview(text).has_errors
    service.create(SaleInput(order_number="PED-31", coupon="CUPOM10", date="01/10/2025", gross_value=10))
    with pytest.raises(ConflictAnalysis):
        importer.confirm(text)
    assert repository.find_by_order_number("PED-30") is None


def test_insert_race_rolls_back_batch(importer: SalesImporter, repository, affiliate, monkeypatch):
    text = "PED-40;CUPOM10;01/10/2025;100;0\nPED-41;CUPOM10;01/10/2025;100;0"
    monkeypatch.setattr(repository, "find_existing_order_numbers", lambda codes: set())
    importer.confirm("PED-41;CUPOM10;01/10/2025;100;0")
    with pytest.raises(DuplicateOrderNumber):
        importer.confirm(text)
    assert repository.find_by_order_number("PED-40") is None
    assert repository.count() == 1


def test_read_import_source_from_excel(tmp_path: Path, importer: SalesImporter, affiliate):
    path = tmp_path / "vendas.xlsx"
    frame = pd.DataFrame(
        [
            ["Pedido", "Cupom", "Data", "Valor Bruto", "Desconto"],
            ["PED-50", "cupom10", datetime(2025, 10, 5), 1000, None],
            ["PED-51", "CUPOM10", "06/10/2025", 250.5, 0.5],
        ]
    )
    frame.to_excel(path, header=False, index=False)

    text = read_import_source(path)
    assert text.splitlines()[1] == "PED-50\tcupom10\t05/10/2025\t1000"
    analysis = importer.preview(text)
    assert analysis.header_detected
    assert analysis.valid_count == 2
    assert analysis.rows[0].date == date(2025, 10, 5)
    assert analysis.rows[1].net_value == 250.0


def test_read_import_source_text_file(tmp_path: Path):
    path = tmp_path / "vendas.csv"
    path.write_text("PED-60;CUPOM10;01/10/2025;10;0\n", encoding="utf-8-sig")
    assert read_import_source(path) == "PED-60;CUPOM10;01/10/2025;10;0\n"


def test_first_row_with_keyword_order_code_is_imported(importer: SalesImporter, affiliate):
    analysis = importer.preview("PEDIDO-1;CUPOM10;01/10/2025;1000;100\nPEDIDO-2;CUPOM10;02/10/2025;500;0")
    assert not analysis.header_detected
    assert [row.order_number for row in analysis.rows] == ["PEDIDO-1", "PEDIDO-2"]
    assert [row.line_number for row in analysis.rows] == [1, 2]
    assert analysis.valid_count == 2

    single = importer.preview("ORDER-77;CUPOM10;01/10/2025;1000;100")
    assert single.total_count == 1
    assert single.rows[0].commission == 90.0


def test_space_separated_header_with_multi_word_labels(importer: SalesImporter, affiliate):
    text = "Numero do Pedido  Cupom  Data  Valor Bruto  Desconto\nPED-9  CUPOM10  01/10/2025  1000  0"
    analysis = importer.preview(text)
    assert analysis.header_detected
    assert analysis.delimiter is None
    row = analysis.rows[0]
    assert (row.raw_order_number, row.raw_coupon, row.raw_date) == ("PED-9", "CUPOM10", "01/10/2025")
    assert row.is_valid
    assert row.net_value == 1000.0
