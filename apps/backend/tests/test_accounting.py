"""Tests for automatic double-entry postings."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError

from src.models import (
    AccountType,
    ChartAccount,
    ExpenseCategory,
    JournalEntry,
    JournalEntryLine,
    JournalType,
    PaymentMethod,
    ReferenceType,
)
from src.services import accounting
from src.services.accounting import (
    EventType,
    PostingError,
    PostingLine,
    PostingRequest,
    PostingStatus,
    PostingTemplate,
    UnbalancedEntryError,
    ValidationError,
    bill_payment_template,
    bill_template,
    delete_entries_by_reference,
    entry_totals,
    expense_account_for,
    expense_template,
    generate_bill_entry,
    generate_bill_payment_entry,
    generate_expense_entry,
    generate_invoice_entry,
    generate_payment_received_entry,
    invoice_template,
    list_journal_entries,
    payment_received_template,
    post_event,
    post_template,
    validate_journal_balance,
)

ENTRY_DATE = date(2024, 3, 15)


def _lines_by_account(entry: JournalEntry) -> list[tuple[str, Decimal, Decimal]]:
    return [(line.account.account_number, line.debit, line.credit) for line in entry.lines]


async def _count(db, model) -> int:
    result = await db.execute(select(func.count()).select_from(model))
    return result.scalar_one()


class TestBalanceValidation:
    def test_balanced_lines_pass(self) -> None:
        validate_journal_balance(
            [
                PostingLine("411000", "a", debit=Decimal("1200.00")),
                PostingLine("707000", "b", credit=Decimal("1000.00")),
                PostingLine("445710", "c", credit=Decimal("200.00")),
            ]
        )

    def test_rounding_within_one_cent_passes(self) -> None:
        validate_journal_balance(
            [
                PostingLine("411000", "a", debit=Decimal("100.00")),
                PostingLine("707000", "b", credit=Decimal("99.99")),
            ]
        )

    def test_unbalanced_lines_raise(self) -> None:
        with pytest.raises(UnbalancedEntryError, match="not balanced"):
            validate_journal_balance(
                [
                    PostingLine("411000", "a", debit=Decimal("1200.00")),
                    PostingLine("707000", "b", credit=Decimal("1000.00")),
                ]
            )

    def test_single_line_rejected(self) -> None:
        with pytest.raises(ValidationError, match="at least 2 lines"):
            validate_journal_balance([PostingLine("411000", "a", debit=Decimal("1.00"))])

    def test_negative_amount_rejected(self) -> None:
        with pytest.raises(ValidationError, match="Negative amount"):
            validate_journal_balance(
                [
                    PostingLine("411000", "a", debit=Decimal("-5.00")),
                    PostingLine("707000", "b", credit=Decimal("-5.00")),
                ]
            )


class TestTemplates:
    def test_invoice_template(self) -> None:
        template = invoice_template(
            "FAC-00001", Decimal("1000.00"), Decimal("200.00"), Decimal("1200.00"), "Dupont SARL"
        )

        assert template.description == "Facture FAC-00001 - Dupont SARL"
        assert template.reference_type == ReferenceType.INVOICE
        assert template.journal_type == JournalType.SALES
        assert [(line.account_number, line.debit, line.credit) for line in template.lines] == [
            ("411000", Decimal("1200.00"), Decimal("0")),
            ("707000", Decimal("0"), Decimal("1000.00")),
            ("445710", Decimal("0"), Decimal("200.00")),
        ]
        assert template.lines[2].description == "TVA collectée - FAC-00001"

    def test_invoice_template_without_tax_has_two_lines(self) -> None:
        template = invoice_template("FAC-00002", Decimal("500.00"), Decimal("0"), Decimal("500.00"))

        assert template.description == "Facture FAC-00002"
        assert [line.account_number for line in template.lines] == ["411000", "707000"]

    def test_payment_received_template(self) -> None:
        template = payment_received_template("FAC-00001", Decimal("1200.00"), "Dupont SARL")

        assert template.description == "Paiement reçu - Facture FAC-00001 - Dupont SARL"
        assert template.reference_type == ReferenceType.PAYMENT
        assert template.journal_type == JournalType.BANK
        assert [(line.account_number, line.debit, line.credit) for line in template.lines] == [
            ("512000", Decimal("1200.00"), Decimal("0")),
            ("411000", Decimal("0"), Decimal("1200.00")),
        ]

    def test_bill_template_falls_back_to_short_id(self) -> None:
        bill_id = uuid4()
        template = bill_template(bill_id, None, Decimal("500.00"), Decimal("100.00"), Decimal("600.00"), "EDF")

        ref = str(bill_id)[:8]
        assert template.description == f"Achat {ref} - EDF"
        assert template.journal_type == JournalType.PURCHASES
        assert [(line.account_number, line.debit, line.credit) for line in template.lines] == [
            ("607000", Decimal("500.00"), Decimal("0")),
            ("445660", Decimal("100.00"), Decimal("0")),
            ("401000", Decimal("0"), Decimal("600.00")),
        ]

    def test_bill_payment_template_default_reference(self) -> None:
        template = bill_payment_template(None, Decimal("600.00"))

        assert template.description == "Paiement fournisseur - Fournisseur"
        assert template.reference_type == ReferenceType.BILL_PAYMENT
        assert [(line.account_number, line.debit, line.credit) for line in template.lines] == [
            ("401000", Decimal("600.00"), Decimal("0")),
            ("512000", Decimal("0"), Decimal("600.00")),
        ]

    def test_expense_template_cash_credits_till(self) -> None:
        template = expense_template(Decimal("42.50"), "restauration", "cash", vendor_name="Le Bistrot")

        assert template.description == "Dépense - Le Bistrot"
        assert [(line.account_number, line.debit, line.credit) for line in template.lines] == [
            ("625000", Decimal("42.50"), Decimal("0")),
            ("531000", Decimal("0"), Decimal("42.50")),
        ]

    def test_expense_template_card_credits_bank(self) -> None:
        template = expense_template(Decimal("19.99"), "telecom", "card", description="Forfait mobile")

        assert template.description == "Dépense - Forfait mobile"
        assert template.lines[0].account_number == "626000"
        assert template.lines[1].account_number == "512000"

    def test_expense_template_default_label(self) -> None:
        template = expense_template(Decimal("10.00"), None, None)

        assert template.description == "Dépense - Dépense"
        assert template.lines[0].account_number == "618000"

    @pytest.mark.parametrize(
        ("category", "expected"),
        [
            ("restauration", "625000"),
            ("transport", "625000"),
            ("hebergement", "625000"),
            ("fournitures", "606000"),
            ("abonnements", "613000"),
            ("frais_bancaires", "627000"),
            ("marketing", "623000"),
            ("formation", "618000"),
            ("autre", "618000"),
            ("inconnue", "618000"),
            (None, "618000"),
        ],
    )
    def test_expense_account_mapping(self, category, expected) -> None:
        assert expense_account_for(category) == expected

    def test_every_template_balances(self) -> None:
        templates = [
            invoice_template("FAC-1", Decimal("83.33"), Decimal("16.67"), Decimal("100.00")),
            payment_received_template("FAC-1", Decimal("100.00")),
            bill_template(uuid4(), "F-1", Decimal("83.33"), Decimal("16.67"), Decimal("100.00")),
            bill_payment_template("F-1", Decimal("100.00")),
            expense_template(Decimal("12.00"), "transport", "card"),
        ]
        for template in templates:
            validate_journal_balance(template.lines)


class TestPosting:
    @pytest.mark.asyncio
    async def test_invoice_entry_posted(self, db, chart) -> None:
        invoice_id = uuid4()

        result = await generate_invoice_entry(
            db,
            chart.id,
            invoice_id,
            "FAC-00001",
            ENTRY_DATE,
            Decimal("1000.00"),
            Decimal("200.00"),
            Decimal("1200.00"),
            "Dupont SARL",
        )

        assert result.status == PostingStatus.POSTED
        assert result.posted
        assert result.entry_number == "EC-000001"

        entries = await list_journal_entries(db, chart.id, ReferenceType.INVOICE, invoice_id)
        assert len(entries) == 1
        entry = entries[0]
        assert entry.id == result.entry_id
        assert entry.entry_date == ENTRY_DATE
        assert entry.description == "Facture FAC-00001 - Dupont SARL"
        assert entry.journal_type == JournalType.SALES
        assert entry.is_balanced is True
        assert [line.position for line in entry.lines] == [1, 2, 3]
        assert _lines_by_account(entry) == [
            ("411000", Decimal("1200.00"), Decimal("0.00")),
            ("707000", Decimal("0.00"), Decimal("1000.00")),
            ("445710", Decimal("0.00"), Decimal("200.00")),
        ]
        assert entry_totals(entry) == (Decimal("1200.00"), Decimal("1200.00"))

    @pytest.mark.asyncio
    async def test_each_event_type_posts_sequential_entries(self, db, chart) -> None:
        results = [
            await generate_invoice_entry(
                db, chart.id, uuid4(), "FAC-1", ENTRY_DATE, Decimal("100"), Decimal("20"), Decimal("120")
            ),
            await generate_payment_received_entry(db, chart.id, uuid4(), "FAC-1", ENTRY_DATE, Decimal("120")),
            await generate_bill_entry(
                db, chart.id, uuid4(), "F-1", ENTRY_DATE, Decimal("50"), Decimal("10"), Decimal("60"), "EDF"
            ),
            await generate_bill_payment_entry(db, chart.id, uuid4(), "F-1", ENTRY_DATE, Decimal("60"), "EDF"),
            await generate_expense_entry(
                db,
                chart.id,
                uuid4(),
                ENTRY_DATE,
                Decimal("15"),
                ExpenseCategory.RESTAURATION.value,
                PaymentMethod.CASH.value,
                vendor_name="Le Bistrot",
            ),
        ]

        assert [result.status for result in results] == [PostingStatus.POSTED] * 5
        assert [result.entry_number for result in results] == [f"EC-{n:06d}" for n in range(1, 6)]

        entries = await list_journal_entries(db, chart.id)
        assert [entry.reference_type for entry in entries] == [
            ReferenceType.INVOICE,
            ReferenceType.PAYMENT,
            ReferenceType.BILL,
            ReferenceType.BILL_PAYMENT,
            ReferenceType.EXPENSE,
        ]
        for entry in entries:
            total_debit, total_credit = entry_totals(entry)
            assert total_debit == total_credit
        assert _lines_by_account(entries[4]) == [
            ("625000", Decimal("15.00"), Decimal("0.00")),
            ("531000", Decimal("0.00"), Decimal("15.00")),
        ]

    @pytest.mark.asyncio
    async def test_post_event_accepts_enum_expense_fields(self, db, chart) -> None:
        result = await post_event(
            db,
            PostingRequest(
                event_type=EventType.EXPENSE,
                organization_id=chart.id,
                reference_id=uuid4(),
                entry_date=ENTRY_DATE,
                amount=Decimal("30.00"),
                expense_category=ExpenseCategory.TELECOM,
                payment_method=PaymentMethod.CARD,
            ),
        )

        assert result.posted
        entries = await list_journal_entries(db, chart.id)
        assert [account for account, _, _ in _lines_by_account(entries[0])] == ["626000", "512000"]

    @pytest.mark.asyncio
    async def test_chart_not_initialized_skips_posting(self, db, organization) -> None:
        result = await generate_invoice_entry(
            db, organization.id, uuid4(), "FAC-1", ENTRY_DATE, Decimal("100"), Decimal("20"), Decimal("120")
        )

        assert result.status == PostingStatus.NOT_POSTED
        assert result.reason == "chart_not_initialized"
        assert await _count(db, JournalEntry) == 0

    @pytest.mark.asyncio
    async def test_missing_account_skips_posting(self, db, chart) -> None:
        await db.execute(
            delete(ChartAccount).where(
                ChartAccount.organization_id == chart.id,
                ChartAccount.account_number == "445710",
            )
        )

        result = await generate_invoice_entry(
            db, chart.id, uuid4(), "FAC-1", ENTRY_DATE, Decimal("100"), Decimal("20"), Decimal("120")
        )

        assert result.status == PostingStatus.NOT_POSTED
        assert result.reason == "missing_accounts"
        assert result.missing_accounts == ["445710"]
        assert await _count(db, JournalEntry) == 0

        untaxed = await generate_invoice_entry(
            db, chart.id, uuid4(), "FAC-2", ENTRY_DATE, Decimal("100"), Decimal("0"), Decimal("100")
        )
        assert untaxed.posted
        assert untaxed.entry_number == "EC-000001"

    @pytest.mark.asyncio
    async def test_chart_without_template_accounts_reports_missing(self, db, organization) -> None:
        db.add(
            ChartAccount(
                organization_id=organization.id,
                account_number="101000",
                name="Capital social",
                account_class=1,
                account_type=AccountType.EQUITY,
            )
        )
        await db.flush()

        result = await generate_invoice_entry(
            db, organization.id, uuid4(), "FAC-1", ENTRY_DATE, Decimal("100"), Decimal("20"), Decimal("120")
        )

        assert result.status == PostingStatus.NOT_POSTED
        assert result.reason == "missing_accounts"
        assert result.missing_accounts == ["411000", "707000", "445710"]
        assert await _count(db, JournalEntry) == 0

    @pytest.mark.asyncio
    async def test_unbalanced_template_raises_before_numbering(self, db, chart) -> None:
        template = PostingTemplate(
            description="Écriture déséquilibrée",
            reference_type=ReferenceType.MANUAL,
            journal_type=JournalType.GENERAL,
            lines=[
                PostingLine("411000", "a", debit=Decimal("100.00")),
                PostingLine("707000", "b", credit=Decimal("90.00")),
            ],
        )

        with pytest.raises(UnbalancedEntryError):
            await post_template(db, chart.id, uuid4(), ENTRY_DATE, template)

        assert await _count(db, JournalEntry) == 0
        result = await generate_payment_received_entry(db, chart.id, uuid4(), "FAC-1", ENTRY_DATE, Decimal("5"))
        assert result.entry_number == "EC-000001"

    @pytest.mark.asyncio
    async def test_duplicate_posting_skipped_by_default(self, db, chart) -> None:
        invoice_id = uuid4()
        args = (db, chart.id, invoice_id, "FAC-1", ENTRY_DATE, Decimal("100"), Decimal("20"), Decimal("120"))

        first = await generate_invoice_entry(*args)
        second = await generate_invoice_entry(*args)

        assert first.posted
        assert second.status == PostingStatus.SKIPPED_DUPLICATE
        assert second.entry_id == first.entry_id
        assert second.entry_number == first.entry_number
        assert await _count(db, JournalEntry) == 1

    @pytest.mark.asyncio
    async def test_duplicate_guard_can_be_disabled(self, db, chart, monkeypatch) -> None:
        payment_id = uuid4()
        template = payment_received_template("FAC-1", Decimal("50.00"))

        first = await post_template(db, chart.id, payment_id, ENTRY_DATE, template)
        second = await post_template(db, chart.id, payment_id, ENTRY_DATE, template, skip_duplicates=False)

        monkeypatch.setattr(accounting.settings, "ledger_skip_duplicate_postings", False)
        third = await post_template(db, chart.id, payment_id, ENTRY_DATE, template)

        assert [first.entry_number, second.entry_number, third.entry_number] == [
            "EC-000001",
            "EC-000002",
            "EC-000003",
        ]
        assert await _count(db, JournalEntry) == 3

    @pytest.mark.asyncio
    async def test_line_failure_rolls_back_header(self, db, chart, monkeypatch) -> None:
        async def failing_insert(session, entry, lines, account_map):
            first = lines[0]
            session.add(
                JournalEntryLine(
                    journal_entry_id=entry.id,
                    account_id=account_map[first.account_number],
                    description=first.description,
                    debit=first.debit,
                    credit=first.credit,
                    position=1,
                )
            )
            await session.flush()
            raise SQLAlchemyError("simulated line insert failure")

        monkeypatch.setattr(accounting, "_insert_entry_lines", failing_insert)

        with pytest.raises(PostingError, match="EC-000001"):
            await generate_invoice_entry(
                db, chart.id, uuid4(), "FAC-1", ENTRY_DATE, Decimal("100"), Decimal("20"), Decimal("120")
            )

        assert await _count(db, JournalEntry) == 0
        assert await _count(db, JournalEntryLine) == 0

        monkeypatch.undo()
        retry = await generate_invoice_entry(
            db, chart.id, uuid4(), "FAC-2", ENTRY_DATE, Decimal("100"), Decimal("20"), Decimal("120")
        )
        assert retry.entry_number == "EC-000002"


class TestDeleteByReference:
    @pytest.mark.asyncio
    async def test_deletes_entries_and_lines(self, db, chart) -> None:
        invoice_id = uuid4()
        payment_id = uuid4()
        await generate_invoice_entry(
            db, chart.id, invoice_id, "FAC-1", ENTRY_DATE, Decimal("100"), Decimal("20"), Decimal("120")
        )
        await generate_payment_received_entry(db, chart.id, payment_id, "FAC-1", ENTRY_DATE, Decimal("120"))

        deleted = await delete_entries_by_reference(db, ReferenceType.INVOICE, invoice_id, chart.id)

        assert deleted == 1
        remaining = await list_journal_entries(db, chart.id)
        assert [entry.reference_id for entry in remaining] == [payment_id]
        assert await _count(db, JournalEntryLine) == 2

    @pytest.mark.asyncio
    async def test_nothing_to_delete_is_success(self, db, chart) -> None:
        assert await delete_entries_by_reference(db, "payment", uuid4()) == 0

    @pytest.mark.asyncio
    async def test_delete_is_scoped_to_organization(self, db, chart) -> None:
        from tests.factories import OrganizationFactory

        other = await OrganizationFactory.create_async(db)
        invoice_id = uuid4()
        await generate_invoice_entry(
            db, chart.id, invoice_id, "FAC-1", ENTRY_DATE, Decimal("100"), Decimal("20"), Decimal("120")
        )

        assert await delete_entries_by_reference(db, ReferenceType.INVOICE, invoice_id, other.id) == 0
        assert await delete_entries_by_reference(db, ReferenceType.INVOICE, invoice_id) == 1

    @pytest.mark.asyncio
    async def test_invalid_reference_type_raises(self, db) -> None:
        with pytest.raises(ValueError):
            await delete_entries_by_reference(db, "quote", uuid4())
