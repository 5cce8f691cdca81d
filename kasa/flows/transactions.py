"""
Transaction flows.

Flow for adding a transaction:
1. Validate the form
2. Compress and upload the receipt image, if any (failure aborts)
3. Resolve the actor's region and, for roles that may choose one,
   the expense region
4. Insert the row
5. Audit

Update and delete are restricted to roles that may modify transactions.
The role check runs before any backend call.

Mutations return an ActionResult whose message is shown verbatim.
Reads raise the backend error taxonomy and the UI shows ``str(error)``.
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import date
from typing import Any, Optional

from pydantic import ValidationError

from kasa.audit import AuditLogger, create_correlation_id
from kasa.auth import Authorizer, Permission
from kasa.config import AppSettings, get_settings
from kasa.export import export_filename, export_transactions
from kasa.models.audit import AuditEventType
from kasa.models.finance import (
    ActionResult,
    InvoiceType,
    NO_INVOICE,
    PaymentMethod,
    Profile,
    Region,
    Transaction,
    TransactionChanges,
    TransactionDraft,
    TransactionFilter,
    TransactionType,
    ValidationResult,
)
from kasa.queries import TransactionListing, TransactionQueryExecutor
from kasa.services.backend.interface import (
    ProfileStorage,
    RegionStorage,
    StorageError,
    TransactionStorage,
)
from kasa.services.images import (
    ImageProcessingError,
    ImageUploadError,
    ReceiptImageService,
)
from kasa.validation import FormValidator, parse_amount


MISSING_ACTOR_MESSAGE = "Kullanıcı bilgileri bulunamadı."
CREATED_MESSAGE = "İşlem başarıyla kaydedildi!"
UPDATED_MESSAGE = "İşlem başarıyla güncellendi."
DELETED_MESSAGE = "İşlem başarıyla silindi."


@dataclass
class TransactionForm:
    """Raw values from the add/edit transaction form."""
    title: str
    amount: Any
    type: Optional[TransactionType]
    transaction_date: Optional[date]
    description: Optional[str] = None
    payment_method: Optional[PaymentMethod] = None
    invoice_type: Optional[str] = None
    expense_region_id: Optional[str] = None

    def invoice(self) -> Optional[InvoiceType]:
        if not self.invoice_type or self.invoice_type == NO_INVOICE:
            return None
        return InvoiceType(self.invoice_type)


@dataclass
class ReceiptUpload:
    """A receipt image picked in the form."""
    data: bytes
    filename: str
    content_type: Optional[str]


def _validation_message(error: ValidationError) -> str:
    first = error.errors()[0] if error.errors() else None
    if first is None:
        return str(error)
    return str(first.get("msg", error)).removeprefix("Value error, ")


def user_directory(profiles: Sequence[Profile]) -> dict[str, str]:
    """Map of user id to full name."""
    return {profile.id: profile.full_name for profile in profiles}


class TransactionFlow:
    """User-facing transaction operations."""

    def __init__(
        self,
        transactions: TransactionStorage,
        regions: RegionStorage,
        profiles: ProfileStorage,
        receipts: ReceiptImageService,
        validator: Optional[FormValidator] = None,
        authorizer: Optional[Authorizer] = None,
        audit: Optional[AuditLogger] = None,
        settings: Optional[AppSettings] = None,
    ):
        self._transactions = transactions
        self._regions = regions
        self._profiles = profiles
        self._receipts = receipts
        self._settings = settings or get_settings().app
        self._validator = validator or FormValidator(self._settings)
        self._audit = audit or AuditLogger()
        self._authorizer = authorizer or Authorizer(self._audit)
        self._executor = TransactionQueryExecutor(transactions)

    # ------------------------------------------------------------------
    # Add
    # ------------------------------------------------------------------

    def _warning_summary(self, validation: ValidationResult) -> Optional[str]:
        """Warnings that did not block the save, formatted for display."""
        if not validation.has_warnings:
            return None
        return self._validator.get_user_friendly_summary(validation)

    async def _expense_region_info(
        self,
        actor: Profile,
        form: TransactionForm,
        regions: Optional[Sequence[Region]],
    ) -> Optional[str]:
        if form.type != TransactionType.EXPENSE or not form.expense_region_id:
            return None
        if not actor.capabilities.can_choose_expense_region:
            return None
        candidates = regions if regions is not None else await self._regions.list_regions()
        for region in candidates:
            if region.id == form.expense_region_id:
                return region.name
        return None

    async def add_transaction(
        self,
        actor: Optional[Profile],
        form: TransactionForm,
        receipt: Optional[ReceiptUpload] = None,
        regions: Optional[Sequence[Region]] = None,
    ) -> ActionResult:
        """
        Record a new income or expense.

        Args:
            actor: Profile of the signed-in user
            form: Raw form values
            receipt: Optional receipt image
            regions: Known regions, to resolve the chosen expense region
                without another query
        """
        if actor is None:
            return ActionResult.fail(MISSING_ACTOR_MESSAGE)

        validation = self._validator.validate_transaction(
            title=form.title,
            amount=form.amount,
            transaction_type=form.type,
            transaction_date=form.transaction_date,
            payment_method=form.payment_method,
        )
        if not validation.is_valid:
            return ActionResult.fail(validation.first_error)

        correlation_id = create_correlation_id()

        image_path = None
        if receipt is not None:
            try:
                stored = await self._receipts.store(
                    receipt.data,
                    receipt.filename,
                    receipt.content_type,
                    user_id=actor.id,
                )
            except ImageProcessingError as e:
                return ActionResult.fail(f"Görsel optimize edilemedi: {e}")
            except ImageUploadError as e:
                await self._audit.log_external_service_error(
                    service="supabase_storage",
                    operation="upload_receipt",
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
                return ActionResult.fail(f"Görsel yüklenemedi: {e}")
            image_path = stored.path
            await self._audit.log_receipt_uploaded(
                path=stored.path,
                actor_id=actor.id,
                original_size=stored.original_size,
                stored_size=stored.stored_size,
                correlation_id=correlation_id,
            )

        try:
            expense_region_info = await self._expense_region_info(actor, form, regions)
        except StorageError as e:
            return ActionResult.fail(f"İşlem kaydedilemedi: {e}")

        try:
            draft = TransactionDraft(
                title=form.title,
                amount=parse_amount(form.amount),
                type=form.type,
                transaction_date=form.transaction_date,
                description=form.description,
                payment_method=form.payment_method,
                invoice_type=form.invoice(),
                user_id=actor.id,
                region_id=actor.region_id,
                image_path=image_path,
                expense_region_info=expense_region_info,
            )
        except (ValidationError, ValueError) as e:
            message = _validation_message(e) if isinstance(e, ValidationError) else str(e)
            return ActionResult.fail(f"İşlem kaydedilemedi: {message}")

        try:
            created = await self._transactions.create_transaction(draft)
        except StorageError as e:
            await self._audit.log_external_service_error(
                service="supabase",
                operation="create_transaction",
                error_message=str(e),
                correlation_id=correlation_id,
            )
            return ActionResult.fail(f"İşlem kaydedilemedi: {e}")

        await self._audit.log_transaction_created(
            transaction_id=created.id,
            actor_id=actor.id,
            amount=str(draft.amount),
            transaction_type=draft.type.value,
            correlation_id=correlation_id,
        )
        return ActionResult.ok(
            CREATED_MESSAGE,
            entity_id=created.id,
            warning=self._warning_summary(validation),
        )

    # ------------------------------------------------------------------
    # List
    # ------------------------------------------------------------------

    async def user_directory(self, actor: Profile) -> dict[str, str]:
        """
        Names of recording users, for search and display.

        Only roles that use admin filters load the directory; for other
        roles the map is empty and names are not searchable.
        """
        if not actor.capabilities.uses_admin_filters:
            return {}
        return user_directory(await self._profiles.list_profiles())

    async def list_transactions(
        self,
        actor: Profile,
        filters: Optional[TransactionFilter] = None,
        user_names: Optional[Mapping[str, str]] = None,
    ) -> TransactionListing:
        """
        Role-scoped, filtered, searched listing with its summary.

        Raises:
            StorageError: If the backend query fails
        """
        filters = filters or TransactionFilter(limit=self._settings.transaction_fetch_limit)
        if user_names is None:
            user_names = await self.user_directory(actor)
        return await self._executor.execute(filters, actor, user_names)

    # ------------------------------------------------------------------
    # Update / delete
    # ------------------------------------------------------------------

    async def update_transaction(
        self,
        actor: Optional[Profile],
        transaction_id: str,
        form: TransactionForm,
    ) -> ActionResult:
        denied = await self._authorizer.check(
            actor, Permission.MODIFY_TRANSACTIONS, "update_transaction"
        )
        if denied:
            return denied

        validation = self._validator.validate_transaction(
            title=form.title,
            amount=form.amount,
            transaction_type=form.type,
            transaction_date=form.transaction_date,
            payment_method=form.payment_method,
        )
        if not validation.is_valid:
            return ActionResult.fail(validation.first_error)

        try:
            changes = TransactionChanges(
                title=form.title,
                amount=parse_amount(form.amount),
                type=form.type,
                transaction_date=form.transaction_date,
                description=form.description,
                payment_method=form.payment_method,
                invoice_type=form.invoice(),
            )
        except (ValidationError, ValueError) as e:
            message = _validation_message(e) if isinstance(e, ValidationError) else str(e)
            return ActionResult.fail(f"Güncelleme hatası: {message}")

        try:
            await self._transactions.update_transaction(transaction_id, changes)
        except StorageError as e:
            return ActionResult.fail(f"Güncelleme hatası: {e}")

        await self._audit.log_entity_changed(
            event_type=AuditEventType.TRANSACTION_UPDATED,
            entity_type="transaction",
            entity_id=transaction_id,
            actor_id=actor.id,
            description=f"Transaction updated: {changes.type.value} {changes.amount}",
            details={"amount": str(changes.amount), "type": changes.type.value},
        )
        return ActionResult.ok(
            UPDATED_MESSAGE,
            entity_id=transaction_id,
            warning=self._warning_summary(validation),
        )

    async def delete_transaction(
        self,
        actor: Optional[Profile],
        transaction_id: str,
    ) -> ActionResult:
        denied = await self._authorizer.check(
            actor, Permission.MODIFY_TRANSACTIONS, "delete_transaction"
        )
        if denied:
            return denied

        try:
            await self._transactions.delete_transaction(transaction_id)
        except StorageError as e:
            return ActionResult.fail(f"Silme hatası: {e}")

        await self._audit.log_entity_changed(
            event_type=AuditEventType.TRANSACTION_DELETED,
            entity_type="transaction",
            entity_id=transaction_id,
            actor_id=actor.id,
            description="Transaction deleted",
        )
        return ActionResult.ok(DELETED_MESSAGE, entity_id=transaction_id)

    # ------------------------------------------------------------------
    # Receipts and export
    # ------------------------------------------------------------------

    def receipt_url(self, transaction: Transaction) -> Optional[str]:
        """
        Public URL of the transaction's receipt, or None without one.

        Raises:
            ImageUploadError: If the URL cannot be resolved
        """
        if not transaction.image_path:
            return None
        return self._receipts.public_url(transaction.image_path)

    async def export(
        self,
        actor: Profile,
        transactions: Sequence[Transaction],
        user_names: Optional[Mapping[str, str]] = None,
        on: Optional[date] = None,
    ) -> tuple[str, bytes]:
        """
        Export the given (already filtered) rows to Excel.

        Returns:
            (filename, xlsx bytes)

        Raises:
            ExportError: If the workbook cannot be built
        """
        data = export_transactions(transactions, user_names)
        filename = export_filename(on)
        await self._audit.log_export(actor.id, len(transactions), filename)
        return filename, data
