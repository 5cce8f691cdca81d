"""Tests for adding, listing, updating, deleting and exporting transactions."""

from datetime import date, timedelta
from decimal import Decimal
from io import BytesIO

import pytest
from PIL import Image

from kasa.auth import UNAUTHORIZED_MESSAGE
from kasa.flows import ReceiptUpload, TransactionFlow, TransactionForm
from kasa.models.audit import AuditEventType
from kasa.models.finance import (
    NO_INVOICE,
    InvoiceType,
    PaymentMethod,
    TransactionFilter,
    TransactionType,
)
from kasa.services.backend import StorageError
from kasa.services.images import ReceiptImageService
from tests.conftest import (
    FakeProfileStorage,
    FakeReceiptStorage,
    FakeRegionStorage,
    FakeTransactionStorage,
)


def png_bytes(size=(64, 48), color=(200, 30, 30)) -> bytes:
    buffer = BytesIO()
    Image.new("RGB", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


def expense_form(**overrides) -> TransactionForm:
    values = dict(
        title="Ofis Kira Ödemesi",
        amount="12000,50",
        type=TransactionType.EXPENSE,
        transaction_date=date(2024, 3, 5),
        description="Mart kirası",
        payment_method=PaymentMethod.CASH,
        invoice_type=InvoiceType.INVOICE.value,
    )
    values.update(overrides)
    return TransactionForm(**values)


@pytest.fixture
def tx_store(sample_transactions, regions):
    return FakeTransactionStorage(sample_transactions, regions)


@pytest.fixture
def receipt_store():
    return FakeReceiptStorage()


@pytest.fixture
def profile_store(admin, editor, base_user):
    return FakeProfileStorage([admin, editor, base_user])


@pytest.fixture
def flow(tx_store, regions, profile_store, receipt_store, settings, validator, authorizer, audit):
    return TransactionFlow(
        tx_store,
        FakeRegionStorage(regions),
        profile_store,
        ReceiptImageService(receipt_store, settings),
        validator=validator,
        authorizer=authorizer,
        audit=audit,
        settings=settings,
    )


class TestAddTransaction:

    async def test_adds_expense(self, flow, base_user, tx_store, audit):
        result = await flow.add_transaction(base_user, expense_form())

        assert result.success is True
        assert result.message == "İşlem başarıyla kaydedildi!"
        assert result.warning is None
        created = tx_store.rows[-1]
        assert created.amount == Decimal("12000.50")
        assert created.user_id == base_user.id
        assert created.region_id == base_user.region_id
        assert created.invoice_type == InvoiceType.INVOICE
        assert created.image_path is None
        assert AuditEventType.TRANSACTION_CREATED in audit.event_types

    async def test_saves_with_warnings_for_unusual_input(self, flow, base_user, tx_store):
        """Zero amounts and far-future dates are saved, but flagged."""
        form = expense_form(amount="0", transaction_date=date.today() + timedelta(days=400))
        result = await flow.add_transaction(base_user, form)

        assert result.success is True
        assert result.message == "İşlem başarıyla kaydedildi!"
        assert result.warning.startswith("⚠️ Lütfen kontrol edin:")
        assert "Tutar sıfır girildi." in result.warning
        assert "ileri bir tarih" in result.warning
        assert tx_store.rows[-1].amount == Decimal("0")

    async def test_income_is_cash_without_invoice(self, flow, base_user, tx_store):
        form = expense_form(
            type=TransactionType.INCOME,
            payment_method=PaymentMethod.CARD,
            invoice_type=InvoiceType.E_INVOICE.value,
        )
        result = await flow.add_transaction(base_user, form)
        assert result.success is True
        created = tx_store.rows[-1]
        assert created.payment_method == PaymentMethod.CASH
        assert created.invoice_type is None

    async def test_no_invoice_choice(self, flow, base_user, tx_store):
        await flow.add_transaction(base_user, expense_form(invoice_type=NO_INVOICE))
        assert tx_store.rows[-1].invoice_type is None

    async def test_missing_actor(self, flow, tx_store):
        result = await flow.add_transaction(None, expense_form())
        assert result.message == "Kullanıcı bilgileri bulunamadı."
        assert "create_transaction" not in tx_store.calls

    async def test_invalid_amount_is_rejected_before_backend(self, flow, base_user, tx_store):
        result = await flow.add_transaction(base_user, expense_form(amount="on iki"))
        assert result.success is False
        assert result.message == "Geçerli bir tutar giriniz."
        assert "create_transaction" not in tx_store.calls

    async def test_editor_sets_expense_region(self, flow, editor, tx_store, regions):
        form = expense_form(expense_region_id="r1")
        result = await flow.add_transaction(editor, form, regions=regions)
        assert result.success is True
        created = tx_store.rows[-1]
        assert created.expense_region_info == "Ankara"
        assert created.region_id == "r2"

    async def test_base_user_cannot_set_expense_region(self, flow, base_user, tx_store, regions):
        await flow.add_transaction(base_user, expense_form(expense_region_id="r2"), regions=regions)
        assert tx_store.rows[-1].expense_region_info is None

    async def test_with_receipt(self, flow, base_user, tx_store, receipt_store, audit):
        receipt = ReceiptUpload(data=png_bytes(), filename="fiş 1.png", content_type="image/png")
        result = await flow.add_transaction(base_user, expense_form(), receipt)

        assert result.success is True
        (key,) = receipt_store.objects
        assert key.startswith(f"{base_user.id}/")
        assert key.endswith(".jpg")
        assert receipt_store.content_types[key] == "image/jpeg"
        assert tx_store.rows[-1].image_path == key
        assert audit.event_types.index(AuditEventType.RECEIPT_UPLOADED) < audit.event_types.index(
            AuditEventType.TRANSACTION_CREATED
        )
        correlation_ids = {e.correlation_id for e in audit.events}
        assert len(correlation_ids) == 1

    async def test_unsupported_receipt_aborts(self, flow, base_user, tx_store, receipt_store):
        receipt = ReceiptUpload(data=b"%PDF-1.4", filename="fatura.pdf", content_type="application/pdf")
        result = await flow.add_transaction(base_user, expense_form(), receipt)

        assert result.success is False
        assert result.message.startswith("Görsel optimize edilemedi")
        assert receipt_store.objects == {}
        assert "create_transaction" not in tx_store.calls

    async def test_upload_failure_aborts(self, flow, base_user, tx_store, receipt_store):
        receipt_store.fail_with = StorageError("Bucket not found")
        receipt = ReceiptUpload(data=png_bytes(), filename="fis.png", content_type="image/png")
        result = await flow.add_transaction(base_user, expense_form(), receipt)

        assert result.message == "Görsel yüklenemedi: Bucket not found"
        assert "create_transaction" not in tx_store.calls

    async def test_insert_failure(self, flow, base_user, tx_store, audit):
        tx_store.fail_with = StorageError("new row violates row-level security policy")
        result = await flow.add_transaction(base_user, expense_form())

        assert result.message == "İşlem kaydedilemedi: new row violates row-level security policy"
        assert AuditEventType.EXTERNAL_SERVICE_ERROR in audit.event_types


class TestListTransactions:

    async def test_base_user_sees_own_region(self, flow, base_user, tx_store):
        listing = await flow.list_transactions(base_user, TransactionFilter(region_id="r2"))
        assert {t.region_id for t in listing.transactions} == {"r1"}
        assert tx_store.last_filter.region_id == "r1"
        assert listing.summary.cash_balance == Decimal("60")

    async def test_admin_sees_everything(self, flow, admin):
        listing = await flow.list_transactions(admin)
        assert len(listing.transactions) == 3
        assert listing.summary.total_expense == Decimal("65")

    async def test_admin_searches_by_user_name(self, flow, admin):
        listing = await flow.list_transactions(admin, TransactionFilter(search_term="mehmet"))
        assert [t.id for t in listing.transactions] == ["3"]
        assert listing.summary.credit_card_expense_total == Decimal("25")

    async def test_user_directory_is_admin_only(self, flow, admin, editor, profile_store):
        assert await flow.user_directory(editor) == {}
        assert "list_profiles" not in profile_store.calls
        names = await flow.user_directory(admin)
        assert names["editor-1"] == "Mehmet Editör"

    async def test_storage_error_propagates(self, flow, admin, tx_store):
        tx_store.fail_with = StorageError("timeout")
        with pytest.raises(StorageError):
            await flow.list_transactions(admin)


class TestUpdateDelete:

    async def test_admin_updates(self, flow, admin, tx_store, audit):
        form = expense_form(title="Güncel", amount="75", payment_method=PaymentMethod.CARD)
        result = await flow.update_transaction(admin, "2", form)

        assert result.message == "İşlem başarıyla güncellendi."
        updated = next(t for t in tx_store.rows if t.id == "2")
        assert updated.title == "Güncel"
        assert updated.amount == Decimal("75")
        assert updated.payment_method == PaymentMethod.CARD
        assert AuditEventType.TRANSACTION_UPDATED in audit.event_types

    async def test_update_reports_warnings(self, flow, admin):
        result = await flow.update_transaction(admin, "2", expense_form(amount="0"))
        assert result.success is True
        assert "Tutar sıfır girildi." in result.warning

    async def test_editor_cannot_update(self, flow, editor, tx_store):
        result = await flow.update_transaction(editor, "2", expense_form())
        assert result.message == UNAUTHORIZED_MESSAGE
        assert "update_transaction" not in tx_store.calls

    async def test_update_missing_row(self, flow, admin):
        result = await flow.update_transaction(admin, "404", expense_form())
        assert result.success is False
        assert result.message.startswith("Güncelleme hatası: ")

    async def test_admin_deletes(self, flow, admin, tx_store):
        result = await flow.delete_transaction(admin, "1")
        assert result.message == "İşlem başarıyla silindi."
        assert "1" not in [t.id for t in tx_store.rows]

    async def test_base_user_cannot_delete(self, flow, base_user, tx_store):
        result = await flow.delete_transaction(base_user, "1")
        assert result.success is False
        assert "delete_transaction" not in tx_store.calls

    async def test_delete_failure(self, flow, admin, tx_store):
        tx_store.fail_with = StorageError("permission denied")
        result = await flow.delete_transaction(admin, "1")
        assert result.message == "Silme hatası: permission denied"


class TestReceiptsAndExport:

    async def test_receipt_url(self, flow, sample_transactions):
        tx = sample_transactions[0].model_copy(update={"image_path": "user-1/1_fis.jpg"})
        assert flow.receipt_url(tx) == "https://files.example.com/islem-gorselleri/user-1/1_fis.jpg"
        assert flow.receipt_url(sample_transactions[0]) is None

    async def test_export(self, flow, admin, sample_transactions, audit):
        filename, data = await flow.export(admin, sample_transactions, on=date(2024, 3, 9))
        assert filename == "islem_kayitlari_09_03_2024.xlsx"
        assert data[:2] == b"PK"
        assert AuditEventType.TRANSACTIONS_EXPORTED in audit.event_types


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
