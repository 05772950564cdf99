"""Tests for reconciliation scoring and candidate ranking (no database)."""

from datetime import date, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from src.models import BillStatus, InvoiceStatus
from src.services import reconciliation
from src.services.reconciliation import (
    DEFAULT_CONFIG,
    DocumentKind,
    ReconciliationConfig,
    amounts_match,
    build_candidates,
    load_reconciliation_config,
    remaining_amount,
    score_amount,
    score_date,
    score_match,
)
from tests.factories import BankTransactionFactory, BillFactory, InvoiceFactory

TXN_DATE = date(2024, 3, 15)
ORG_ID = uuid4()


def _transaction(amount: str, txn_date: date = TXN_DATE):
    return BankTransactionFactory.build(
        organization_id=ORG_ID, bank_account_id=uuid4(), amount=Decimal(amount), date=txn_date
    )


def _invoice(total: str = "1200.00", **kwargs):
    return InvoiceFactory.build(organization_id=ORG_ID, total=Decimal(total), **kwargs)


class TestScoreAmount:
    @pytest.mark.parametrize(
        ("candidate", "expected"),
        [
            ("1200.00", 50),
            ("1200.005", 50),
            ("1195.00", 40),
            ("1150.00", 20),
            ("1100.00", 10),
            ("1000.00", 0),
        ],
    )
    def test_tiers(self, candidate, expected) -> None:
        assert score_amount(Decimal("1200.00"), Decimal(candidate), DEFAULT_CONFIG) == expected

    def test_one_cent_difference_is_not_exact_score(self) -> None:
        assert score_amount(Decimal("1200.00"), Decimal("1200.01"), DEFAULT_CONFIG) == 40

    def test_zero_transaction_scores_only_exact(self) -> None:
        assert score_amount(Decimal("0"), Decimal("0"), DEFAULT_CONFIG) == 50
        assert score_amount(Decimal("0"), Decimal("10.00"), DEFAULT_CONFIG) == 0

    def test_relative_difference_uses_transaction_amount(self) -> None:
        # 5 / 95 is above 5 percent, 5 / 100 is not
        assert score_amount(Decimal("95.00"), Decimal("100.00"), DEFAULT_CONFIG) == 10
        assert score_amount(Decimal("100.00"), Decimal("95.00"), DEFAULT_CONFIG) == 10
        assert score_amount(Decimal("100.00"), Decimal("96.00"), DEFAULT_CONFIG) == 20

    def test_closer_amount_never_scores_lower(self) -> None:
        txn = Decimal("1000.00")
        scores = [
            score_amount(txn, txn + Decimal(offset), DEFAULT_CONFIG)
            for offset in ("200", "90", "40", "5", "0.001")
        ]
        assert scores == sorted(scores)


class TestScoreDate:
    @pytest.mark.parametrize(
        ("days", "expected"),
        [(0, 30), (1, 30), (-1, 30), (2, 20), (7, 20), (8, 10), (30, 10), (-30, 10), (31, 0)],
    )
    def test_tiers(self, days, expected) -> None:
        assert score_date(TXN_DATE, TXN_DATE + timedelta(days=days), DEFAULT_CONFIG) == expected

    def test_missing_due_date_scores_zero(self) -> None:
        assert score_date(TXN_DATE, None, DEFAULT_CONFIG) == 0


class TestScoreMatch:
    def test_exact_amount_on_due_date_scores_maximum(self) -> None:
        score = score_match(Decimal("1200.00"), TXN_DATE, Decimal("1200.00"), TXN_DATE, DEFAULT_CONFIG)

        assert score == 80
        assert score == DEFAULT_CONFIG.max_score

    def test_near_amount_without_due_date(self) -> None:
        assert score_match(Decimal("1150.00"), TXN_DATE, Decimal("1200.00"), None, DEFAULT_CONFIG) == 20

    def test_uses_loaded_config_by_default(self) -> None:
        assert score_match(Decimal("10.00"), TXN_DATE, Decimal("10.00"), TXN_DATE) == 80


class TestAmountsMatch:
    def test_gate_includes_one_cent(self) -> None:
        assert amounts_match(Decimal("1200.00"), Decimal("1200.01"), DEFAULT_CONFIG)
        assert amounts_match(Decimal("1200.01"), Decimal("1200.00"), DEFAULT_CONFIG)

    def test_gate_rejects_more_than_one_cent(self) -> None:
        assert not amounts_match(Decimal("1200.00"), Decimal("1200.02"), DEFAULT_CONFIG)
        assert not amounts_match(Decimal("1150.00"), Decimal("1200.00"), DEFAULT_CONFIG)


class TestRemainingAmount:
    def test_open_document_remaining(self) -> None:
        invoice = _invoice(status=InvoiceStatus.PARTIALLY_PAID, amount_paid=Decimal("200.00"))

        assert remaining_amount(invoice, linked=False) == Decimal("1000.00")

    def test_cancelled_document_excluded(self) -> None:
        assert remaining_amount(_invoice(status=InvoiceStatus.CANCELLED), linked=False) is None

    def test_fully_paid_unpaid_status_excluded(self) -> None:
        invoice = _invoice(status=InvoiceStatus.SENT, amount_paid=Decimal("1200.00"))

        assert remaining_amount(invoice, linked=False) is None

    def test_paid_document_offered_only_without_link(self) -> None:
        invoice = _invoice(status=InvoiceStatus.PAID, amount_paid=Decimal("1200.00"))

        assert remaining_amount(invoice, linked=False) == Decimal("1200.00")
        assert remaining_amount(invoice, linked=True) is None

    def test_bill_statuses(self) -> None:
        bill = BillFactory.build(organization_id=ORG_ID, status=BillStatus.PAID, amount_paid=Decimal("600.00"))

        assert remaining_amount(bill, linked=False) == Decimal("600.00")


class TestBuildCandidates:
    def test_sorted_by_score_with_stable_ties(self) -> None:
        txn = _transaction("1200.00")
        far = _invoice("1000.00", number="FAC-00001")
        tie_a = _invoice("1200.00", number="FAC-00002")
        tie_b = _invoice("1200.00", number="FAC-00003")
        best = _invoice("1200.00", number="FAC-00004", due_date=TXN_DATE)

        candidates = build_candidates(
            txn, [far, tie_a, tie_b, best], DocumentKind.INVOICE, set(), set(), config=DEFAULT_CONFIG
        )

        assert [c.number for c in candidates] == ["FAC-00004", "FAC-00002", "FAC-00003", "FAC-00001"]
        assert [c.score for c in candidates] == [80, 50, 50, 0]
        assert candidates[0].amount_matches is True
        assert candidates[-1].amount_matches is False
        assert all(c.kind == DocumentKind.INVOICE for c in candidates)

    def test_excludes_linked_elsewhere_cancelled_and_settled(self) -> None:
        txn = _transaction("1200.00")
        open_invoice = _invoice()
        linked_elsewhere = _invoice()
        cancelled = _invoice(status=InvoiceStatus.CANCELLED)
        settled = _invoice(status=InvoiceStatus.PAID, amount_paid=Decimal("1200.00"))

        candidates = build_candidates(
            txn,
            [open_invoice, linked_elsewhere, cancelled, settled],
            DocumentKind.INVOICE,
            linked_elsewhere={linked_elsewhere.id},
            linked_anywhere={linked_elsewhere.id, settled.id},
            config=DEFAULT_CONFIG,
        )

        assert [c.document_id for c in candidates] == [open_invoice.id]

    def test_paid_without_link_is_flagged(self) -> None:
        txn = _transaction("1200.00")
        paid = _invoice(status=InvoiceStatus.PAID, amount_paid=Decimal("1200.00"))

        candidates = build_candidates(txn, [paid], DocumentKind.INVOICE, set(), set(), config=DEFAULT_CONFIG)

        assert len(candidates) == 1
        assert candidates[0].is_paid_without_link is True
        assert candidates[0].remaining_amount == Decimal("1200.00")
        assert candidates[0].status == "paid"

    def test_search_filters_number_and_party(self) -> None:
        txn = _transaction("1200.00")
        dupont = _invoice(number="FAC-00010", client_name="Dupont SARL")
        martin = _invoice(number="FAC-00011", client_name="Martin & Fils")

        by_party = build_candidates(txn, [dupont, martin], DocumentKind.INVOICE, set(), set(), "dupont", DEFAULT_CONFIG)
        by_number = build_candidates(txn, [dupont, martin], DocumentKind.INVOICE, set(), set(), "00011", DEFAULT_CONFIG)
        blank = build_candidates(txn, [dupont, martin], DocumentKind.INVOICE, set(), set(), "  ", DEFAULT_CONFIG)

        assert [c.party_name for c in by_party] == ["Dupont SARL"]
        assert [c.number for c in by_number] == ["FAC-00011"]
        assert len(blank) == 2

    def test_bill_candidates_use_vendor_name(self) -> None:
        txn = _transaction("600.00")
        bill = BillFactory.build(organization_id=ORG_ID, vendor_name="EDF", due_date=TXN_DATE)

        candidates = build_candidates(txn, [bill], DocumentKind.BILL, set(), set(), config=DEFAULT_CONFIG)

        assert candidates[0].party_name == "EDF"
        assert candidates[0].score == 80


class TestConfigLoading:
    def test_bundled_config_matches_defaults(self, monkeypatch) -> None:
        monkeypatch.setattr(reconciliation.settings, "reconciliation_config_path", None)
        monkeypatch.delenv("RECONCILIATION_EXACT_TOLERANCE", raising=False)

        assert load_reconciliation_config(force_reload=True) == DEFAULT_CONFIG

    def test_custom_config_file(self, tmp_path, monkeypatch) -> None:
        path = tmp_path / "reconciliation.yaml"
        path.write_text(
            "scoring:\n"
            "  amount:\n"
            "    exact_score: 60\n"
            "    tiers:\n"
            "      - {max_relative_diff: 0.02, score: 30}\n"
            "  date:\n"
            "    tiers:\n"
            "      - {max_days: 3, score: 40}\n"
        )
        monkeypatch.setattr(reconciliation.settings, "reconciliation_config_path", str(path))
        monkeypatch.delenv("RECONCILIATION_EXACT_TOLERANCE", raising=False)

        config = load_reconciliation_config(force_reload=True)

        assert config == ReconciliationConfig(
            exact_tolerance=Decimal("0.01"),
            exact_score=60,
            amount_tiers=((Decimal("0.02"), 30),),
            date_tiers=((3, 40),),
        )
        assert config.max_score == 100
        assert score_match(Decimal("100.00"), TXN_DATE, Decimal("101.00"), TXN_DATE + timedelta(days=2)) == 70

    def test_invalid_config_falls_back_to_defaults(self, tmp_path, monkeypatch) -> None:
        path = tmp_path / "broken.yaml"
        path.write_text("scoring:\n  amount:\n    tiers:\n      - {score: 30}\n")
        monkeypatch.setattr(reconciliation.settings, "reconciliation_config_path", str(path))
        monkeypatch.delenv("RECONCILIATION_EXACT_TOLERANCE", raising=False)

        assert load_reconciliation_config(force_reload=True) == DEFAULT_CONFIG

    def test_missing_config_file_uses_defaults(self, tmp_path, monkeypatch) -> None:
        monkeypatch.setattr(reconciliation.settings, "reconciliation_config_path", str(tmp_path / "absent.yaml"))
        monkeypatch.delenv("RECONCILIATION_EXACT_TOLERANCE", raising=False)

        assert load_reconciliation_config(force_reload=True) == DEFAULT_CONFIG

    def test_tolerance_env_override(self, monkeypatch) -> None:
        monkeypatch.setattr(reconciliation.settings, "reconciliation_config_path", None)
        monkeypatch.setenv("RECONCILIATION_EXACT_TOLERANCE", "0.05")

        config = load_reconciliation_config(force_reload=True)

        assert config.exact_tolerance == Decimal("0.05")
        assert amounts_match(Decimal("10.00"), Decimal("10.04"), config)

    def test_invalid_tolerance_env_keeps_configured_tolerance(self, monkeypatch) -> None:
        monkeypatch.setattr(reconciliation.settings, "reconciliation_config_path", None)
        monkeypatch.setenv("RECONCILIATION_EXACT_TOLERANCE", "abc")

        config = load_reconciliation_config(force_reload=True)

        assert config == DEFAULT_CONFIG
        assert score_match(Decimal("1200.00"), TXN_DATE, Decimal("1200.00"), TXN_DATE) == 80

    def test_config_is_cached(self, monkeypatch) -> None:
        first = load_reconciliation_config()
        monkeypatch.setenv("RECONCILIATION_EXACT_TOLERANCE", "0.50")

        assert load_reconciliation_config() is first
