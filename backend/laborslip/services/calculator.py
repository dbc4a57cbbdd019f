# Overview: Withholding calculation for labor payment slips (所得稅 + 二代健保補充保費).

"""
Withholding Calculator

WHY: The same numbers are shown in the live preview and persisted when the
slip is created, so the calculation must be a pure, deterministic function
of (gross amount, income type, union membership).

RULES (current tax year):
- Income tax is withheld when gross >= the income type's threshold
- Health-insurance levy (2.11%) is withheld when gross >= its threshold,
  unless the payee is a union member
- Thresholds are inclusive; amounts are truncated (floor), never rounded

All money is whole NT$ integers. Rates are Decimals so that
floor(gross * rate) is exact and never subject to binary float drift.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_FLOOR
from typing import Any

from ..validation import ValidationError, coerce_amount


class InvalidIncomeType(ValidationError):
    """Raised when an income-type code is not one of the known codes."""

    def __init__(self, income_type: Any):
        self.income_type = income_type
        super().__init__(f"無效的所得類別: {income_type}")


MINIMUM_WAGE = 28590  # 2025 基本工資
HEALTH_INSURANCE_RATE = Decimal("0.0211")


@dataclass(frozen=True)
class WithholdingRule:
    threshold: int | None  # None: never withheld
    rate: Decimal


@dataclass(frozen=True)
class IncomeType:
    code: str
    name: str
    description: str
    income_tax: WithholdingRule
    health_insurance: WithholdingRule

    @property
    def label(self) -> str:
        return f"{self.name} ({self.code})"


INCOME_TYPES: dict[str, IncomeType] = {
    "50": IncomeType(
        code="50",
        name="兼職所得",
        description="兼職薪資、臨時工資等",
        income_tax=WithholdingRule(threshold=88501, rate=Decimal("0.05")),
        health_insurance=WithholdingRule(threshold=MINIMUM_WAGE, rate=HEALTH_INSURANCE_RATE),
    ),
    "9A": IncomeType(
        code="9A",
        name="執行業務所得",
        description="講師費、顧問費、設計費等專業服務",
        income_tax=WithholdingRule(threshold=20010, rate=Decimal("0.10")),
        health_insurance=WithholdingRule(threshold=20000, rate=HEALTH_INSURANCE_RATE),
    ),
    "9B": IncomeType(
        code="9B",
        name="稿費",
        description="稿費、版稅、演講鐘點費等",
        income_tax=WithholdingRule(threshold=20010, rate=Decimal("0.10")),
        health_insurance=WithholdingRule(threshold=20000, rate=HEALTH_INSURANCE_RATE),
    ),
    "92": IncomeType(
        code="92",
        name="其他所得",
        description="競賽獎金、其他勞務所得等",
        income_tax=WithholdingRule(threshold=None, rate=Decimal("0")),
        health_insurance=WithholdingRule(threshold=20000, rate=HEALTH_INSURANCE_RATE),
    ),
}


@dataclass(frozen=True)
class WithholdingResult:
    gross_amount: int
    income_tax: int
    health_insurance: int
    net_amount: int
    tax_rate: Decimal
    tax_threshold: int | None
    hi_rate: Decimal
    hi_threshold: int | None

    def to_dict(self) -> dict:
        return {
            "gross_amount": self.gross_amount,
            "income_tax": self.income_tax,
            "health_insurance": self.health_insurance,
            "net_amount": self.net_amount,
            "tax_rate": float(self.tax_rate),
            "tax_threshold": self.tax_threshold,
            "hi_rate": float(self.hi_rate),
            "hi_threshold": self.hi_threshold,
        }


def get_income_type(code: Any) -> IncomeType:
    """Lookup an income type by code; raises InvalidIncomeType."""
    key = str(code).strip().upper() if code is not None else ""
    income_type = INCOME_TYPES.get(key)
    if income_type is None:
        raise InvalidIncomeType(code)
    return income_type


def income_type_label(code: str) -> str:
    """Display label such as '執行業務所得 (9A)'; unknown codes pass through."""
    income_type = INCOME_TYPES.get(code)
    return income_type.label if income_type else code


def _withhold(gross_amount: int, rule: WithholdingRule) -> int:
    if rule.threshold is None or gross_amount < rule.threshold:
        return 0
    amount = (Decimal(gross_amount) * rule.rate).to_integral_value(rounding=ROUND_FLOOR)
    return int(amount)


def calculate_withholding(
    gross_amount: Any,
    income_type: Any,
    is_union_member: bool = False,
) -> WithholdingResult:
    """
    Compute the withholding breakdown for one payment.

    Raises:
        ValidationError: gross_amount is not a non-negative integer
        InvalidIncomeType: income_type is not 50 / 9A / 9B / 92
    """
    rules = get_income_type(income_type)
    gross = coerce_amount("gross_amount", gross_amount)

    income_tax = _withhold(gross, rules.income_tax)
    health_insurance = 0 if is_union_member else _withhold(gross, rules.health_insurance)

    return WithholdingResult(
        gross_amount=gross,
        income_tax=income_tax,
        health_insurance=health_insurance,
        net_amount=gross - income_tax - health_insurance,
        tax_rate=rules.income_tax.rate,
        tax_threshold=rules.income_tax.threshold,
        hi_rate=rules.health_insurance.rate,
        hi_threshold=rules.health_insurance.threshold,
    )


def format_currency(amount: int) -> str:
    """NT$ display format with thousands separators, no decimals."""
    return f"NT$ {amount:,}"


def mask_id_number(id_number: str | None) -> str | None:
    if not id_number or len(id_number) < 4:
        return id_number
    return id_number[:4] + "****" + id_number[-2:]


def mask_bank_account(account: str | None) -> str | None:
    if not account or len(account) < 4:
        return account
    return "****" + account[-4:]
