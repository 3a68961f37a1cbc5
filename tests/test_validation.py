"""Tests for admission at the door."""

from datetime import date

import pytest

from doorcheck.core.clock import ManualClock
from doorcheck.core.storage import sync_data_key
from doorcheck.errors import ValidationCommitError
from doorcheck.models import Attendee, Event, EventDetails, SyncData, ValidationStatus
from doorcheck.services.desk import TicketDesk


class TestValidate:
    """Tests for single-device validation."""

    def test_first_scan_admits(self, desk_a: TicketDesk, sample_event: Event, ticketed: list[Attendee]):
        """Test a fresh ticket is admitted and the attendee is marked validated."""
        ada = ticketed[0]
        outcome = desk_a.validate(sample_event.id, ada.id, ada.ticket_number, "Door 1")

        assert outcome.status is ValidationStatus.ADMITTED
        assert outcome.admitted
        assert outcome.validated_by == "Door 1"

        stored = desk_a.rosters.find(sample_event.id, ada.id)
        assert stored.is_validated is True
        assert stored.validated_by == "Door 1"
        assert stored.validated_at == outcome.validated_at

        ledger = desk_a.engine.load_ledger(sample_event.id)
        assert len(ledger.validations) == 1
        assert ledger.validations[0].device_id == desk_a.device_id

    def test_second_scan_reports_original_validator(
        self, desk_a: TicketDesk, clock: ManualClock, sample_event: Event, ticketed: list[Attendee]
    ):
        """Test scanning the same ticket again never admits it twice."""
        alan = ticketed[1]
        first = desk_a.validate(sample_event.id, alan.id, alan.ticket_number, "Door 1")
        clock.advance(60)
        second = desk_a.validate(sample_event.id, alan.id, alan.ticket_number, "Door 2")

        assert second.status is ValidationStatus.ALREADY_ADMITTED
        assert second.validated_by == "Door 1"
        assert second.validated_at == first.validated_at
        assert len(desk_a.engine.load_ledger(sample_event.id).validations) == 1

    def test_default_label_and_primary_ticket(
        self, desk_a: TicketDesk, sample_event: Event, ticketed: list[Attendee]
    ):
        """Test a missing ticket number falls back to the primary ticket."""
        grace = ticketed[2]
        outcome = desk_a.validate(sample_event.id, grace.id)

        assert outcome.admitted
        assert outcome.ticket_number == grace.ticket_number
        assert outcome.validated_by == "Scanner (aaaaaaaa)"

    def test_each_ticket_admitted_once(
        self, desk_a: TicketDesk, clock: ManualClock, sample_event: Event, ticketed: list[Attendee]
    ):
        """Test every ticket of a multi-ticket attendee is its own admission."""
        ada = ticketed[0]
        first, second = ada.ticket_numbers

        earliest = desk_a.validate(sample_event.id, ada.id, first)
        assert earliest.admitted
        clock.advance(5)
        assert desk_a.validate(sample_event.id, ada.id, second).admitted
        clock.advance(5)
        again = desk_a.validate(sample_event.id, ada.id, second)
        assert again.status is ValidationStatus.ALREADY_ADMITTED

        # The attendee view follows the earliest admission
        stored = desk_a.rosters.find(sample_event.id, ada.id)
        assert stored.validated_at == earliest.validated_at

    def test_unknown_attendee_rejected(self, desk_a: TicketDesk, sample_event: Event, ticketed):
        outcome = desk_a.validate(sample_event.id, "no-such-attendee", "TKT00000000")
        assert outcome.status is ValidationStatus.REJECTED
        assert outcome.reason == "Unknown ticket"

    def test_unissued_attendee_rejected(self, desk_a: TicketDesk, sample_event: Event, roster_csv):
        """Test an attendee without tickets cannot be admitted."""
        desk_a.import_roster_csv(sample_event.id, roster_csv)
        attendee = desk_a.attendees(sample_event.id)[0]

        outcome = desk_a.validate(sample_event.id, attendee.id)

        assert outcome.status is ValidationStatus.REJECTED
        assert outcome.reason == "No ticket issued"
        assert desk_a.engine.load_ledger(sample_event.id).validations == []

    def test_foreign_ticket_number_rejected(
        self, desk_a: TicketDesk, sample_event: Event, ticketed: list[Attendee]
    ):
        """Test a ticket number the attendee does not hold is rejected."""
        ada, alan = ticketed[0], ticketed[1]
        outcome = desk_a.validate(sample_event.id, ada.id, alan.ticket_number)
        assert outcome.status is ValidationStatus.REJECTED

    def test_scan_payload(self, desk_a: TicketDesk, sample_event: Event, ticketed: list[Attendee]):
        """Test scanning the QR text of a wallet ticket."""
        wallet = desk_a.wallet_ticket(sample_event.id, ticketed[1].id)
        outcome = desk_a.scan(sample_event.id, wallet.qr_payload, "Door 3")
        assert outcome.admitted
        assert outcome.attendee_id == ticketed[1].id

    def test_scan_garbage(self, desk_a: TicketDesk, sample_event: Event):
        outcome = desk_a.scan(sample_event.id, "https://example.com/not-a-ticket")
        assert outcome.status is ValidationStatus.REJECTED
        assert outcome.reason == "Invalid QR code"

    def test_validated_ledger_publishes_attendees(
        self, desk_a: TicketDesk, sample_event: Event, ticketed: list[Attendee]
    ):
        """Test the ledger carries the ticketed roster for other devices."""
        desk_a.validate(sample_event.id, ticketed[0].id)
        ledger = desk_a.engine.load_ledger(sample_event.id)
        assert {a.email for a in ledger.attendees} == {a.email for a in ticketed}


class TestCrossDevice:
    """Tests for two devices scanning the same event."""

    def test_other_device_sees_admission(self, two_devices, clock: ManualClock, sample_event: Event):
        """Test device B reports ALREADY_ADMITTED for a ticket admitted on A."""
        desk_a, desk_b = two_devices
        alan = desk_a.attendees(sample_event.id)[1]

        desk_a.validate(sample_event.id, alan.id, validator_label="North door")
        clock.advance(30)
        outcome = desk_b.validate(sample_event.id, alan.id, validator_label="South door")

        assert outcome.status is ValidationStatus.ALREADY_ADMITTED
        assert outcome.validated_by == "North door"

    def test_double_validation_race_converges(
        self, two_devices, clock: ManualClock, sample_event: Event, monkeypatch
    ):
        """Test both devices agree on one admission after a check-then-append race."""
        desk_a, desk_b = two_devices
        alan = desk_a.attendees(sample_event.id)[1]
        stale = desk_b.engine.load_ledger(sample_event.id)
        real_load = desk_b.engine.load_ledger
        reads = []

        def stale_first_read(event_id):
            reads.append(event_id)
            return stale if len(reads) == 1 else real_load(event_id)

        monkeypatch.setattr(desk_b.engine, "load_ledger", stale_first_read)

        first = desk_a.validate(sample_event.id, alan.id, validator_label="North door")
        clock.advance(1)
        # B read the ledger before A's write landed and overwrites it
        second = desk_b.validate(sample_event.id, alan.id, validator_label="South door")
        assert first.admitted
        assert second.admitted

        desk_a.reconcile(sample_event.id)
        desk_b.reconcile(sample_event.id)

        ledger = desk_a.engine.load_ledger(sample_event.id)
        assert len(ledger.records_for(alan.id, alan.ticket_number)) == 2
        for desk in (desk_a, desk_b):
            view = desk.rosters.find(sample_event.id, alan.id)
            assert view.is_validated is True
            assert view.validated_by == "North door"
            assert view.validated_at == first.validated_at

        clock.advance(1)
        third = desk_b.validate(sample_event.id, alan.id, validator_label="South door")
        assert third.status is ValidationStatus.ALREADY_ADMITTED
        assert third.validated_by == "North door"

    def test_recheck_detects_earlier_admission(
        self, two_devices, clock: ManualClock, sample_event: Event, monkeypatch
    ):
        """Test the write-time re-check reports an earlier concurrent admission."""
        desk_a, desk_b = two_devices
        grace = desk_a.attendees(sample_event.id)[2]
        stale = desk_b.engine.load_ledger(sample_event.id)
        real_load = desk_b.engine.load_ledger
        reads = []

        def racing_read(event_id):
            reads.append(event_id)
            if len(reads) == 1:
                return stale
            # A's sync tick runs between B's write and B's re-check
            desk_a.reconcile(event_id)
            return real_load(event_id)

        monkeypatch.setattr(desk_b.engine, "load_ledger", racing_read)

        desk_a.validate(sample_event.id, grace.id, validator_label="North door")
        clock.advance(1)
        outcome = desk_b.validate(sample_event.id, grace.id, validator_label="South door")

        assert outcome.status is ValidationStatus.ALREADY_ADMITTED
        assert outcome.validated_by == "North door"
        assert desk_b.rosters.find(sample_event.id, grace.id).validated_by == "North door"

    def test_overwritten_record_is_published_again(
        self, two_devices, clock: ManualClock, sample_event: Event, monkeypatch
    ):
        """Test a validation lost to a concurrent write is put back into the ledger."""
        desk_a, desk_b = two_devices
        alan = desk_a.attendees(sample_event.id)[1]
        real_load = desk_b.engine.load_ledger
        reads = []

        def overwriting_read(event_id):
            reads.append(event_id)
            if len(reads) == 2:
                # Another device writes an empty ledger after B's write
                desk_b.shared_documents.save(sync_data_key(event_id), SyncData(event_id=event_id))
            return real_load(event_id)

        monkeypatch.setattr(desk_b.engine, "load_ledger", overwriting_read)

        outcome = desk_b.validate(sample_event.id, alan.id, validator_label="South door")

        assert outcome.admitted
        ledger = real_load(sample_event.id)
        assert [r.validated_by for r in ledger.validations] == ["South door"]

    def test_own_admission_survives_lost_ledger(
        self, two_devices, clock: ManualClock, sample_event: Event
    ):
        """Test a device never admits its own scan twice after the ledger loses it."""
        desk_a, desk_b = two_devices
        alan = desk_a.attendees(sample_event.id)[1]

        first = desk_a.validate(sample_event.id, alan.id, validator_label="North door")
        # Device B writes a ledger that no longer holds A's record
        desk_b.shared_documents.save(sync_data_key(sample_event.id), SyncData(event_id=sample_event.id))
        clock.advance(30)
        second = desk_a.validate(sample_event.id, alan.id, validator_label="North door")

        assert second.status is ValidationStatus.ALREADY_ADMITTED
        assert second.validated_by == "North door"
        assert second.validated_at == first.validated_at

        ledger = desk_a.engine.load_ledger(sample_event.id)
        assert [r.validated_at for r in ledger.validations] == [first.validated_at]
        assert desk_b.validate(sample_event.id, alan.id).status is ValidationStatus.ALREADY_ADMITTED


class TestStorageFailures:
    """Tests for validation when the store fails."""

    @pytest.fixture(name="prepared")
    def prepared_fixture(self, flaky_desk: TicketDesk, roster_csv: str):
        event = flaky_desk.create_event(EventDetails(name="Gala", date=date(2026, 6, 1), time="20:00"))
        flaky_desk.import_roster_csv(event.id, roster_csv)
        attendee = flaky_desk.issue_ticket(event.id, flaky_desk.attendees(event.id)[0].id)
        return flaky_desk, event, attendee

    def test_ledger_write_failure(self, prepared):
        """Test a failed ledger write raises and leaves the attendee unvalidated."""
        desk, event, attendee = prepared
        desk.shared_documents.store.fail_writes = True

        with pytest.raises(ValidationCommitError) as exc_info:
            desk.validate(event.id, attendee.id)

        assert exc_info.value.retryable is True
        assert exc_info.value.ledger_committed is False
        assert desk.rosters.find(event.id, attendee.id).is_validated is False

        # Retry once the store is back
        desk.shared_documents.store.fail_writes = False
        assert desk.validate(event.id, attendee.id).admitted

    def test_ledger_read_failure(self, prepared):
        desk, event, attendee = prepared
        desk.shared_documents.store.fail_reads = True

        with pytest.raises(ValidationCommitError):
            desk.validate(event.id, attendee.id)

    def test_local_roster_write_failure(self, prepared):
        """Test the error says the ledger write landed when only the roster save failed."""
        desk, event, attendee = prepared
        desk.local_documents.store.fail_writes = True

        with pytest.raises(ValidationCommitError) as exc_info:
            desk.validate(event.id, attendee.id)

        assert exc_info.value.ledger_committed is True
        assert len(desk.engine.load_ledger(event.id).validations) == 1
