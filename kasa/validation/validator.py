"""
Form Validation

DESIGN DECISION: Every form is validated before any backend call.
Validation reports two kinds of issues:

ERRORS:
- Required field missing
- Value that cannot be parsed (amount, date)
- Password rules (confirmation mismatch, minimum length)
These block the operation.

WARNINGS:
- Values that are legal but suspicious (zero amount, future date)
These are shown but never block.

IMPORTANT: Validation NEVER silently fixes issues except for the
documented amount parsing (a decimal comma is accepted as a decimal point).
"""

import re
from datetime import date, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from kasa.config import AppSettings, get_settings
from kasa.models.finance import (
    PaymentMethod,
    Role,
    TransactionType,
    ValidationIssue,
    ValidationResult,
)


# Tolerance for transaction dates slightly in the future (time zones)
FUTURE_DATE_TOLERANCE_DAYS = 1

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

# Messages shown to users
REQUIRED_FIELDS_MESSAGE = "Tüm zorunlu alanlar doldurulmalıdır."
USER_UPDATE_MISSING_MESSAGE = "Gerekli bilgiler (ID, İsim, Rol) eksik."
USER_ID_MISSING_MESSAGE = "Kullanıcı IDsi bulunamadı."
REGION_NAME_EMPTY_MESSAGE = "Bölge adı boş olamaz."
NOTIFICATION_EMPTY_MESSAGE = "Mesaj boş olamaz."
PASSWORD_MISMATCH_MESSAGE = "Girdiğiniz şifreler uyuşmuyor."


def parse_amount(raw: Any) -> Optional[Decimal]:
    """
    Parse a user-entered amount.

    Accepts numbers and strings such as "12000.50" or "12000,50".
    Thousands separators are not accepted, so "100.000" means one
    hundred, exactly as the amount field's hint tells users.

    Returns None if the value is empty or not a number.
    """
    if raw is None:
        return None
    if isinstance(raw, Decimal):
        return raw
    if isinstance(raw, (int, float)):
        return Decimal(str(raw))

    text = str(raw).strip().replace(" ", "")
    if not text:
        return None
    if text.count(",") == 1 and "." not in text:
        text = text.replace(",", ".")
    try:
        value = Decimal(text)
    except InvalidOperation:
        return None
    if not value.is_finite():
        return None
    return value


class FormValidator:
    """
    Validates user input from the application's forms.

    Each validate_* method returns a ValidationResult; callers stop at
    the first error and show ``result.first_error``.
    """

    def __init__(self, settings: Optional[AppSettings] = None):
        self._settings = settings or get_settings().app

    def validate_transaction(
        self,
        title: Optional[str],
        amount: Any,
        transaction_type: Optional[TransactionType],
        transaction_date: Optional[date],
        payment_method: Optional[PaymentMethod] = None,
    ) -> ValidationResult:
        """Validate the add/edit transaction form."""
        issues = []

        if transaction_type is None:
            issues.append(ValidationIssue(
                field="type",
                issue_type="missing",
                message="İşlem tipi seçilmelidir.",
            ))

        if not (title or "").strip():
            issues.append(ValidationIssue(
                field="title",
                issue_type="missing",
                message="Başlık boş olamaz.",
            ))

        parsed = parse_amount(amount)
        if parsed is None:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_format",
                message="Geçerli bir tutar giriniz.",
            ))
        elif parsed < 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Tutar negatif olamaz.",
            ))
        elif parsed == 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message="Tutar sıfır girildi.",
                severity="warning",
            ))
        elif (parsed * 100) % 1 != 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_format",
                message="Kuruşlar en fazla iki basamak olabilir.",
            ))

        if transaction_date is None:
            issues.append(ValidationIssue(
                field="transaction_date",
                issue_type="missing",
                message="İşlem tarihi gereklidir.",
            ))
        elif transaction_date > date.today() + timedelta(days=FUTURE_DATE_TOLERANCE_DAYS):
            issues.append(ValidationIssue(
                field="transaction_date",
                issue_type="future_date",
                message=f"İşlem tarihi ({transaction_date}) ileri bir tarih.",
                severity="warning",
            ))

        if transaction_type == TransactionType.EXPENSE and payment_method is None:
            issues.append(ValidationIssue(
                field="payment_method",
                issue_type="missing",
                message="Gider için ödeme şekli seçilmelidir.",
            ))

        return ValidationResult(issues=issues)

    def validate_new_user(
        self,
        full_name: Optional[str],
        email: Optional[str],
        password: Optional[str],
        role: Optional[Role],
    ) -> ValidationResult:
        """Full name, email, password and role are all required."""
        issues = []

        if not (full_name or "").strip() or not (email or "").strip() or not password or role is None:
            issues.append(ValidationIssue(
                field="form",
                issue_type="missing",
                message=REQUIRED_FIELDS_MESSAGE,
            ))
            return ValidationResult(issues=issues)

        if not EMAIL_PATTERN.match(email.strip()):
            issues.append(ValidationIssue(
                field="email",
                issue_type="invalid_format",
                message="Geçerli bir e-posta adresi giriniz.",
            ))

        return ValidationResult(issues=issues)

    def validate_user_update(
        self,
        user_id: Optional[str],
        full_name: Optional[str],
        role: Optional[Role],
    ) -> ValidationResult:
        if not user_id or not (full_name or "").strip() or role is None:
            return ValidationResult(issues=[ValidationIssue(
                field="form",
                issue_type="missing",
                message=USER_UPDATE_MISSING_MESSAGE,
            )])
        return ValidationResult()

    def validate_user_id(self, user_id: Optional[str]) -> ValidationResult:
        if not user_id:
            return ValidationResult(issues=[ValidationIssue(
                field="user_id",
                issue_type="missing",
                message=USER_ID_MISSING_MESSAGE,
            )])
        return ValidationResult()

    def validate_region_name(self, name: Optional[str]) -> ValidationResult:
        if not (name or "").strip():
            return ValidationResult(issues=[ValidationIssue(
                field="name",
                issue_type="missing",
                message=REGION_NAME_EMPTY_MESSAGE,
            )])
        return ValidationResult()

    def validate_notification_message(self, message: Optional[str]) -> ValidationResult:
        if not (message or "").strip():
            return ValidationResult(issues=[ValidationIssue(
                field="message",
                issue_type="missing",
                message=NOTIFICATION_EMPTY_MESSAGE,
            )])
        return ValidationResult()

    def validate_password_change(
        self,
        password: Optional[str],
        confirmation: Optional[str],
    ) -> ValidationResult:
        """
        Check a new password and its confirmation.

        The mismatch is reported before the length rule, so a user who
        mistyped the confirmation is told about that first.
        """
        password = password or ""
        confirmation = confirmation or ""

        if password != confirmation:
            return ValidationResult(issues=[ValidationIssue(
                field="confirmation",
                issue_type="mismatch",
                message=PASSWORD_MISMATCH_MESSAGE,
            )])

        min_length = self._settings.min_password_length
        if len(password) < min_length:
            return ValidationResult(issues=[ValidationIssue(
                field="password",
                issue_type="too_short",
                message=f"Şifre en az {min_length} karakter olmalıdır.",
            )])

        return ValidationResult()

    def get_user_friendly_summary(self, result: ValidationResult) -> str:
        """
        Summarize a validation result for display.

        Errors first, then warnings.
        """
        if not result.issues:
            return "✅ Tüm kontroller başarılı."

        lines = []
        errors = [i for i in result.issues if i.severity == "error"]
        warnings = [i for i in result.issues if i.severity == "warning"]

        if errors:
            lines.append("❌ Lütfen aşağıdaki alanları düzeltin:")
            for issue in errors:
                lines.append(f"   • {issue.message}")

        if warnings:
            if lines:
                lines.append("")
            lines.append("⚠️ Lütfen kontrol edin:")
            for issue in warnings:
                lines.append(f"   • {issue.message}")

        return "\n".join(lines)
