"""
Tests for the entry normalizer.
"""

import pytest

from cashbook.entries import EntryNormalizer
from cashbook.errors import ValidationFailedError
from cashbook.models.audit import AuditEventType
from cashbook.models.ledger import Channel
from cashbook.services.storage import StorageError
from factories import income_entry, utc


class TestResolution:
    """Tests for month, channel and amount resolution."""

    @pytest.mark.asyncio
    async def test_even_split(self, normalizer):
        """Test that a total over two channels splits evenly."""
        entry = await normalizer.normalize({
            "date": "2026-03-02",
            "channels": ["CASH", "BANK"],
            "total_amount": 1000,
        })

        assert entry.amounts_by_channel == {Channel.CASH: 500, Channel.BANK: 500}
        assert entry.primary_channel is None
        assert entry.month == "2026-03"

    @pytest.mark.asyncio
    async def test_split_always_adds_up(self, normalizer):
        """Test the split invariant with an awkward total."""
        entry = await normalizer.normalize({
            "date": "2026-03-02",
            "channels": ["CASH", "BANK", "MM-MTN"],
            "total_amount": 1000,
        })

        assert sum(entry.amounts_by_channel.values()) == pytest.approx(1000)

    @pytest.mark.asyncio
    async def test_explicit_amounts_trusted(self, normalizer):
        """Test that caller amounts are kept and missing channels read 0."""
        entry = await normalizer.normalize({
            "date": "2026-03-02",
            "channels": ["CASH", "BANK", "MM-AIRTEL"],
            "amounts_by_channel": {"CASH": "200", "BANK": 800, "MM-AIRTEL": None},
        })

        assert entry.amounts_by_channel == {
            Channel.CASH: 200,
            Channel.BANK: 800,
            Channel.MM_AIRTEL: 0,
        }
        assert entry.total_amount == 1000

    @pytest.mark.asyncio
    async def test_explicit_amounts_must_match_given_total(self, normalizer, ledger_storage):
        with pytest.raises(ValidationFailedError):
            await normalizer.normalize({
                "date": "2026-03-02",
                "channels": ["CASH", "BANK"],
                "amounts_by_channel": {"CASH": 100, "BANK": 100},
                "total_amount": 1000,
            })
        assert await ledger_storage.list_entries() == []

    @pytest.mark.asyncio
    async def test_zero_total_taken_from_amounts(self, normalizer):
        """Test that a total of 0 next to a map means the map's sum."""
        entry = await normalizer.normalize({
            "date": "2026-03-02",
            "channels": ["CASH", "BANK"],
            "amounts_by_channel": {"CASH": 100, "BANK": 200},
            "total_amount": 0,
        })

        assert entry.amounts_by_channel == {Channel.CASH: 100, Channel.BANK: 200}
        assert entry.total_amount == 300

    @pytest.mark.asyncio
    async def test_amounts_for_unselected_channel_rejected(self, normalizer):
        with pytest.raises(ValidationFailedError) as exc:
            await normalizer.normalize({
                "date": "2026-03-02",
                "channels": ["CASH"],
                "amounts_by_channel": {"BANK": 100},
            })
        assert "BANK" in exc.value.message

    @pytest.mark.asyncio
    async def test_channels_from_amounts_map(self, normalizer):
        """Test that the map alone is enough to select channels."""
        entry = await normalizer.normalize({
            "date": "2026-03-02",
            "amounts_by_channel": {"BANK": 300},
        })

        assert entry.channels == [Channel.BANK]
        assert entry.primary_channel == Channel.BANK
        assert entry.total_amount == 300

    @pytest.mark.asyncio
    async def test_legacy_single_channel(self, normalizer):
        """Test the old single-channel field."""
        entry = await normalizer.normalize({
            "date": "2026-03-02",
            "channel": "MM-MTN",
            "total_amount": 450,
        })

        assert entry.channels == [Channel.MM_MTN]
        assert entry.primary_channel == Channel.MM_MTN
        assert entry.amounts_by_channel == {Channel.MM_MTN: 450}

    @pytest.mark.asyncio
    async def test_explicit_month_wins(self, normalizer):
        """Test that a back-posted entry keeps the month it was given."""
        entry = await normalizer.normalize({
            "date": "2026-03-01",
            "month": "2026-02",
            "channel": "CASH",
            "total_amount": 10,
        })

        assert entry.month == "2026-02"

    @pytest.mark.asyncio
    async def test_salary_balance(self, normalizer):
        entry = await normalizer.normalize({
            "date": "2026-03-02",
            "salary_amount": 300000,
            "advance": 50000,
            "name": "Okello",
        })

        assert entry.salary_balance == 250000
        assert entry.name == "Okello"

    @pytest.mark.asyncio
    async def test_salary_balance_zero_when_absent(self, normalizer):
        entry = await normalizer.normalize({"date": "2026-03-02", "channel": "CASH"})

        assert entry.salary_balance == 0

    @pytest.mark.asyncio
    async def test_metadata_passes_through(self, normalizer):
        entry = await normalizer.normalize({
            "date": "2026-03-02",
            "channel": "CASH",
            "total_amount": 100,
            "sector": "TRANSPORT",
            "wages_category": "CASUAL",
            "payment_tier": "DAILY",
            "transaction_charges": 500,
            "operational_costs": "Fuel",
        })

        assert entry.sector.value == "TRANSPORT"
        assert entry.transaction_charges == 500
        assert entry.operational_costs == "Fuel"


class TestValidation:
    """Tests for rejected submissions."""

    @pytest.mark.asyncio
    async def test_missing_date_writes_nothing(self, normalizer, ledger_storage):
        """Test that a missing date fails before any write."""
        with pytest.raises(ValidationFailedError) as exc:
            await normalizer.normalize({"channel": "CASH", "total_amount": 100})

        assert exc.value.field == "date"
        assert await ledger_storage.list_entries() == []

    @pytest.mark.asyncio
    async def test_expense_without_channel(self, normalizer, ledger_storage):
        with pytest.raises(ValidationFailedError):
            await normalizer.normalize({
                "date": "2026-03-02",
                "expense_amount": 100,
                "expense_channel": "NONE",
            })
        assert await ledger_storage.list_entries() == []

    @pytest.mark.asyncio
    async def test_unknown_channel(self, normalizer):
        with pytest.raises(ValidationFailedError):
            await normalizer.normalize({"date": "2026-03-02", "channel": "PAYPAL"})


class TestAnomalyFlag:
    """Tests for the wild-expenditure flag."""

    @pytest.mark.asyncio
    async def test_flagged_with_no_carry(self, normalizer):
        """Test that spending from an empty channel is flagged."""
        entry = await normalizer.normalize({
            "date": "2026-03-02",
            "expense_amount": 100,
            "expense_channel": "CASH",
        })

        assert entry.anomaly_flag is True

    @pytest.mark.asyncio
    async def test_not_flagged_with_carry(self, normalizer, ledger_storage):
        """Test that a carry of 150 covers a spend of 100."""
        await ledger_storage.save_entry(income_entry(Channel.CASH, 150, utc(2026, 2, 10)))

        entry = await normalizer.normalize({
            "date": "2026-03-02",
            "expense_amount": 100,
            "expense_channel": "CASH",
        })

        assert entry.anomaly_flag is False

    @pytest.mark.asyncio
    async def test_own_income_does_not_cover_own_expense(self, normalizer):
        """Test that the check sees the balance before this entry lands."""
        entry = await normalizer.normalize({
            "date": "2026-03-02",
            "channel": "CASH",
            "total_amount": 500,
            "expense_amount": 100,
            "expense_channel": "CASH",
        })

        assert entry.anomaly_flag is True

    @pytest.mark.asyncio
    async def test_flag_is_audited(self, normalizer, audit_storage):
        await normalizer.normalize({
            "date": "2026-03-02",
            "expense_amount": 100,
            "expense_channel": "BANK",
        })

        types = [e.event_type for e in await audit_storage.get_recent_events()]
        assert AuditEventType.ANOMALY_FLAGGED in types
        assert AuditEventType.ENTRY_CREATED in types


class TestStorageFailure:
    """Tests for write failures."""

    @pytest.mark.asyncio
    async def test_save_failure_is_storage_error(self, ledger_storage, calculator, locks):
        """Test that an unexpected store exception surfaces as StorageError."""

        async def broken_save(entry):
            raise RuntimeError("sheet unavailable")

        ledger_storage.save_entry = broken_save
        normalizer = EntryNormalizer(ledger_storage, calculator, locks)

        with pytest.raises(StorageError):
            await normalizer.normalize({"date": "2026-03-02", "channel": "CASH"})


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
