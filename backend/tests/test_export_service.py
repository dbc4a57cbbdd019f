# Overview: Pytest coverage for CSV export of payment slips.

import csv
import io
from datetime import date

import pytest

from laborslip.services import export_service, report_service, signing_service
from laborslip.validation import NotFoundError


def _rows(text: str) -> list[list[str]]:
    assert text.startswith("\ufeff")
    return list(csv.reader(io.StringIO(text[1:])))


@pytest.fixture
def reports(db_session, company_a):
    created = []
    for payee, payment_date in [("甲", "2026-01-05"), ("乙, 丙", "2026-02-05"), ('丁"戊', "2026-03-05")]:
        created.append(report_service.create_report(company_a.id, {
            "payee_name": payee,
            "income_type": "9A",
            "gross_amount": 50000,
            "payment_date": payment_date,
        }))
    return created


class TestRenderCsv:

    def test_bom_headers_and_quoting(self, db_session, company_a, reports):
        _, text = export_service.export_reports(company_a)
        rows = _rows(text)

        assert rows[0] == export_service.CSV_HEADERS
        assert len(rows[0]) == 16
        assert len(rows) == 4
        # Every cell is quoted, including numbers
        assert text.splitlines()[1].startswith('"甲公司股份有限公司","12345678",')
        assert rows[2][3] == "乙, 丙"
        assert rows[3][3] == '丁"戊'

    def test_row_contents(self, db_session, company_a, reports, sign_payload):
        signing_service.sign(reports[0].sign_token, sign_payload(name="甲"))
        _, text = export_service.export_reports(company_a)
        row = _rows(text)[1]

        assert row[2] == reports[0].report_number
        assert row[4] == "B223456789"
        assert row[6] == "執行業務所得 (9A)"
        assert row[7] == "9A"
        assert row[8:12] == ["50000", "5000", "1055", "43945"]
        assert row[14] == "2026-01-05"
        assert row[15] == "已簽名"

    def test_cancelled_excluded_by_default(self, db_session, company_a, reports):
        report_service.cancel_report(company_a.id, reports[1].id)

        _, text = export_service.export_reports(company_a)
        assert len(_rows(text)) == 3

        _, text = export_service.export_reports(company_a, statuses=["cancelled"])
        rows = _rows(text)
        assert len(rows) == 2
        assert rows[1][15] == "已取消"


class TestSelection:

    def test_date_range_and_filename(self, db_session, company_a, reports):
        filename, text = export_service.export_reports(
            company_a, start_date=date(2026, 2, 1), end_date=date(2026, 3, 31)
        )
        assert filename == "勞報單_甲公司_20260201_20260331.csv"
        assert [r[3] for r in _rows(text)[1:]] == ["乙, 丙", '丁"戊']

    def test_ids_scoped_to_company(self, db_session, company_a, company_b, reports):
        foreign = report_service.create_report(company_b.id, {
            "payee_name": "外部",
            "income_type": "50",
            "gross_amount": 1000,
            "payment_date": "2026-01-01",
        })
        _, text = export_service.export_reports(company_a, ids=[reports[0].id, foreign.id])
        assert [r[3] for r in _rows(text)[1:]] == ["甲"]

    def test_default_filename(self, db_session, company_b):
        filename, _ = export_service.export_reports(company_b)
        assert filename == f"勞報單匯出_乙工作室_{date.today().isoformat()}.csv"

    def test_single_report_ends_with_signed_date(self, db_session, company_a, reports, sign_payload):
        signed = signing_service.sign(reports[0].sign_token, sign_payload(name="甲"))

        _, text = export_service.export_single_report(company_a, reports[0].id)
        row = _rows(text)[1]
        assert len(row) == 16
        assert row[-1] == signed.signed_at.date().isoformat()

    def test_single_report(self, db_session, company_a, company_b, reports):
        filename, text = export_service.export_single_report(company_a, reports[0].id)
        assert filename == f"{reports[0].report_number}.csv"
        rows = _rows(text)
        assert len(rows) == 2
        assert rows[0][-1] == "簽名日期"
        assert rows[0][:-1] == export_service.CSV_HEADERS[:-1]
        assert rows[1][-1] == ""

        with pytest.raises(NotFoundError):
            export_service.export_single_report(company_b, reports[0].id)
