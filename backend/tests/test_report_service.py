# Overview: Pytest coverage for payment slip creation and back-office maintenance.

from datetime import date

import pytest

from laborslip.extensions import db
from laborslip.models import IncomeRecord, ReportSequence
from laborslip.services import report_service, signing_service
from laborslip.services.calculator import InvalidIncomeType
from laborslip.services.report_service import RecordLockedError
from laborslip.time_utils import utcnow
from laborslip.validation import NotFoundError, ValidationError


def _data(**overrides) -> dict:
    data = {
        "payee_name": "張設計師",
        "income_type": "9A",
        "gross_amount": 50000,
        "payment_date": "2026-04-01",
    }
    data.update(overrides)
    return data


class TestCreateReport:

    def test_create_computes_amounts_and_token(self, db_session, company_a):
        report = report_service.create_report(company_a.id, _data())

        assert report.status == "pending"
        assert report.income_tax == 5000
        assert report.health_insurance == 1055
        assert report.net_amount == 43945
        assert report.sign_token and len(report.sign_token) >= 32
        assert report.report_number == f"LR-{utcnow().year}-0001"

    def test_report_numbers_are_sequential_per_company(self, db_session, company_a, company_b):
        first = report_service.create_report(company_a.id, _data())
        second = report_service.create_report(company_a.id, _data())
        other = report_service.create_report(company_b.id, _data())

        year = utcnow().year
        assert first.report_number == f"LR-{year}-0001"
        assert second.report_number == f"LR-{year}-0002"
        assert other.report_number == f"LR-{year}-0001"

        seq = db_session.query(ReportSequence).filter_by(company_id=company_a.id, year=year).one()
        assert seq.next_number == 3

    def test_tokens_are_unique(self, db_session, company_a):
        tokens = {report_service.create_report(company_a.id, _data()).sign_token for _ in range(5)}
        assert len(tokens) == 5

    def test_linked_contact_snapshot_and_union_flag(self, db_session, company_a, complete_contact):
        complete_contact.is_union_member = True
        db_session.commit()

        report = report_service.create_report(company_a.id, _data(contact_id=complete_contact.id))

        assert report.contact_id == complete_contact.id
        assert report.payee_id_number == "A123456789"
        assert report.payee_bank_account == "123456789012"
        assert report.health_insurance == 0
        assert report.net_amount == 45000

    def test_contact_from_other_company_rejected(self, db_session, company_b, complete_contact):
        with pytest.raises(NotFoundError):
            report_service.create_report(company_b.id, _data(contact_id=complete_contact.id))
        assert db_session.query(IncomeRecord).count() == 0

    @pytest.mark.parametrize("missing", ["payee_name", "income_type", "gross_amount", "payment_date"])
    def test_required_fields(self, db_session, company_a, missing):
        data = _data()
        data.pop(missing)
        with pytest.raises(ValidationError):
            report_service.create_report(company_a.id, data)
        assert db_session.query(IncomeRecord).count() == 0

    def test_invalid_income_type(self, db_session, company_a):
        with pytest.raises(InvalidIncomeType):
            report_service.create_report(company_a.id, _data(income_type="A"))

    def test_negative_amount(self, db_session, company_a):
        with pytest.raises(ValidationError):
            report_service.create_report(company_a.id, _data(gross_amount=-1))

    def test_period_order(self, db_session, company_a):
        with pytest.raises(ValidationError):
            report_service.create_report(
                company_a.id, _data(period_start="2026-03-31", period_end="2026-03-01")
            )

    def test_sign_url(self, app, db_session, company_a):
        report = report_service.create_report(company_a.id, _data())
        assert report_service.sign_url(report.sign_token) == (
            f"https://slips.example.com/sign/{report.sign_token}"
        )


class TestListReports:

    def test_filters(self, db_session, company_a):
        report_service.create_report(company_a.id, _data(payee_name="甲", payment_date="2026-01-10"))
        second = report_service.create_report(company_a.id, _data(payee_name="乙", payment_date="2026-02-10"))
        report_service.cancel_report(company_a.id, second.id)

        assert len(report_service.list_reports(company_a.id)) == 2
        assert len(report_service.list_reports(company_a.id, status="pending")) == 1
        assert len(report_service.list_reports(company_a.id, status="pending,cancelled")) == 2
        assert [r.payee_name for r in report_service.list_reports(company_a.id, search="乙")] == ["乙"]

        in_range = report_service.list_reports(
            company_a.id, start_date=date(2026, 2, 1), end_date=date(2026, 2, 28)
        )
        assert [r.id for r in in_range] == [second.id]

    def test_unknown_status(self, db_session, company_a):
        with pytest.raises(ValidationError):
            report_service.list_reports(company_a.id, status="archived")


class TestUpdateReport:

    def test_update_recomputes(self, db_session, company_a, pending_report):
        token = pending_report.sign_token
        updated = report_service.update_report(
            company_a.id, pending_report.id, {"gross_amount": 20000, "income_type": "9B"}
        )
        assert updated.gross_amount == 20000
        assert updated.income_tax == 0
        assert updated.health_insurance == 422
        assert updated.net_amount == 19578
        assert updated.sign_token == token

    def test_signed_record_locked(self, db_session, company_a, pending_report, sign_payload):
        signing_service.sign(pending_report.sign_token, sign_payload())

        with pytest.raises(RecordLockedError, match="請刪除後重新建立"):
            report_service.update_report(company_a.id, pending_report.id, {"gross_amount": 1})

        report = db_session.get(IncomeRecord, pending_report.id)
        assert report.gross_amount == 50000

    def test_invalid_update_leaves_record_unchanged(self, db_session, company_a, pending_report):
        with pytest.raises(ValidationError):
            report_service.update_report(
                company_a.id, pending_report.id, {"gross_amount": 100, "income_type": "ZZ"}
            )
        report = db_session.get(IncomeRecord, pending_report.id)
        assert report.gross_amount == 50000
        assert report.net_amount == 43945

    def test_unknown_field_rejected(self, db_session, company_a, pending_report):
        with pytest.raises(ValidationError):
            report_service.update_report(company_a.id, pending_report.id, {"net_amount": 1})


class TestCancelAndDelete:

    def test_cancel_disables_token(self, db_session, company_a, pending_report):
        cancelled = report_service.cancel_report(company_a.id, pending_report.id)
        assert cancelled.status == "cancelled"

        with pytest.raises(signing_service.CancelledError):
            signing_service.resolve_by_token(pending_report.sign_token)

    def test_cannot_cancel_signed(self, db_session, company_a, pending_report, sign_payload):
        signing_service.sign(pending_report.sign_token, sign_payload())
        with pytest.raises(RecordLockedError):
            report_service.cancel_report(company_a.id, pending_report.id)

    def test_delete_signed_record(self, db_session, company_a, pending_report, sign_payload):
        signing_service.sign(pending_report.sign_token, sign_payload())
        report_service.delete_report(company_a.id, pending_report.id)
        assert db_session.get(IncomeRecord, pending_report.id) is None

    def test_delete_other_company_not_found(self, db_session, company_b, pending_report):
        with pytest.raises(NotFoundError):
            report_service.delete_report(company_b.id, pending_report.id)

    def test_batch_delete_scoped_to_company(self, db_session, company_a, company_b):
        mine = [report_service.create_report(company_a.id, _data()).id for _ in range(3)]
        theirs = report_service.create_report(company_b.id, _data()).id

        deleted = report_service.batch_delete_reports(company_a.id, mine[:2] + [theirs])

        assert deleted == 2
        db.session.expire_all()
        assert db_session.get(IncomeRecord, theirs) is not None
        assert db_session.get(IncomeRecord, mine[2]) is not None

    def test_batch_delete_requires_ids(self, db_session, company_a):
        with pytest.raises(ValidationError):
            report_service.batch_delete_reports(company_a.id, [])
