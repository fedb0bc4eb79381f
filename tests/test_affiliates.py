import pytest

from comissoes_app.affiliates import (
    AffiliateDirectory,
    format_cpf,
    format_phone,
    format_zip_code,
    parse_commission_rate,
)
from comissoes_app.errors import Duplicate, NotFound, ValidationError
from comissoes_app.models import AffiliateInput


def test_document_and_contact_formatting():
    assert format_cpf("52998224725") == "529.982.247-25"
    assert format_cpf("529.982.247-25") == "529.982.247-25"
    assert format_cpf("") is None
    assert format_phone("21991234567") == "(21) 99123-4567"
    assert format_phone("2133334444") == "(21) 3333-4444"
    assert format_zip_code("20040-020") == "20040-020"


@pytest.mark.parametrize("cpf", ["11111111111", "52998224724", "123"])
def test_invalid_cpf(cpf):
    with pytest.raises(ValidationError, match="CPF invalido"):
        format_cpf(cpf)


def test_invalid_phone_and_zip():
    with pytest.raises(ValidationError, match="DDD"):
        format_phone("99123")
    with pytest.raises(ValidationError, match="CEP invalido"):
        format_zip_code("123")


def test_commission_rate_bounds():
    assert parse_commission_rate("") == 0.0
    assert parse_commission_rate("12,5") == 12.5
    with pytest.raises(ValidationError, match="entre 0 e 100"):
        parse_commission_rate("101")
    with pytest.raises(ValidationError):
        parse_commission_rate("-1")


def test_create_normalizes_fields(directory: AffiliateDirectory):
    affiliate = directory.create(
        AffiliateInput(
            name=" Bia Lima ",
            instagram="bialima",
            tax_id="52998224725",
            contact_phone="21991234567",
            coupon=" BIA15 ",
            commission_rate="15",
            zip_code="20040020",
            city="Rio de Janeiro",
            state="rj",
            street="",
        )
    )
    assert affiliate.id is not None
    assert affiliate.name == "Bia Lima"
    assert affiliate.instagram == "@bialima"
    assert affiliate.tax_id == "529.982.247-25"
    assert affiliate.contact_phone == "(21) 99123-4567"
    assert affiliate.coupon == "BIA15"
    assert affiliate.commission_rate == 15.0
    assert affiliate.zip_code == "20040-020"
    assert affiliate.state == "RJ"
    assert affiliate.street is None


def test_required_fields(directory: AffiliateDirectory):
    with pytest.raises(ValidationError) as exc:
        directory.create(AffiliateInput(name="", instagram=""))
    assert exc.value.message == "Campos obrigatorios faltando: nome, instagram."


def test_coupon_lookup_is_case_insensitive(directory: AffiliateDirectory, affiliate):
    assert directory.find_by_coupon("cupom10").id == affiliate.id
    assert directory.find_by_coupon(" Cupom10 ").id == affiliate.id
    assert directory.find_by_coupon("OUTRO") is None
    assert directory.find_by_coupon("") is None
    with pytest.raises(NotFound, match="Cupom nao encontrado"):
        directory.require_by_coupon("OUTRO")


def test_coupon_and_instagram_are_unique(directory: AffiliateDirectory, affiliate):
    with pytest.raises(Duplicate):
        directory.create(AffiliateInput(name="Outra", instagram="outra", coupon="cupom10"))
    with pytest.raises(Duplicate):
        directory.create(AffiliateInput(name="Outra", instagram="@anasouza"))


def test_affiliates_without_coupon_can_coexist(directory: AffiliateDirectory):
    directory.create(AffiliateInput(name="Sem Cupom 1", instagram="sem1"))
    directory.create(AffiliateInput(name="Sem Cupom 2", instagram="sem2"))
    assert len(directory.list_affiliates()) == 2


def test_update_keeps_linked_user(directory: AffiliateDirectory):
    created = directory.create(
        AffiliateInput(name="Carla", instagram="carla", coupon="CARLA", linked_user_id=7)
    )
    updated = directory.update(
        created.id, AffiliateInput(name="Carla Dias", instagram="carla", coupon="CARLA5", commission_rate="5")
    )
    assert updated.name == "Carla Dias"
    assert updated.coupon == "CARLA5"
    assert updated.linked_user_id == 7
    assert directory.find_by_linked_user(7).id == created.id


def test_delete_and_missing(directory: AffiliateDirectory, affiliate):
    directory.delete(affiliate.id)
    assert directory.find_by_id(affiliate.id) is None
    with pytest.raises(NotFound, match="Influenciadora nao encontrada"):
        directory.delete(affiliate.id)
