from datetime import date

import pytest

from app.core.errors import NotFound
from app.models.booking import PaymentStatus
from app.models.payment import PaymentRecordStatus
from app.repositories.payments import PaymentRepository
from app.services.payment_service import PaymentOutcome, VerificationResult, initialize_payment
from app.services.reconciliation_service import OutcomeConflict, reconcile, reconcile_verification


@pytest.fixture
def pending(db_session, paystack, room_101, book, customer):
    """A booking with an initialized (PENDING) payment of 200.00."""
    booking = book(room_101, date(2025, 6, 1), date(2025, 6, 3))
    init = initialize_payment(db_session, paystack, booking, customer.email, booking.total_amount)
    return booking, init.reference


def _actions(emitted):
    return [e.action for e in emitted]


class TestReconcile:
    def test_success_marks_paid(self, db_session, pending, emitted):
        booking, ref = pending
        result = reconcile(db_session, ref, PaymentOutcome.SUCCESS, "Approved", emit=emitted.append)

        assert result.applied
        assert result.payment_status == PaymentRecordStatus.SUCCESS
        assert result.booking_payment_status == PaymentStatus.PAID
        payment = PaymentRepository(db_session).get_by_reference(ref)
        assert payment.paid_at is not None
        assert payment.gateway_response == "Approved"
        assert _actions(emitted)[-1] == "PAYMENT_SUCCESS"

    def test_failure_marks_failed_and_keeps_booking(self, db_session, pending, service):
        booking, ref = pending
        result = reconcile(db_session, ref, PaymentOutcome.FAILED, "Declined")
        assert result.booking_payment_status == PaymentStatus.FAILED
        refreshed = service.get_booking_by_id(booking.id)
        assert refreshed.booking_status.value == "CONFIRMED"

    def test_duplicate_delivery_is_a_noop(self, db_session, pending, emitted):
        _, ref = pending
        reconcile(db_session, ref, PaymentOutcome.SUCCESS, emit=emitted.append)
        before = len(emitted)

        again = reconcile(db_session, ref, PaymentOutcome.SUCCESS, emit=emitted.append)

        assert not again.applied
        assert again.booking_payment_status == PaymentStatus.PAID
        assert len(emitted) == before

    def test_contradicting_outcome_is_refused(self, db_session, pending):
        _, ref = pending
        reconcile(db_session, ref, PaymentOutcome.SUCCESS)
        with pytest.raises(OutcomeConflict) as exc:
            reconcile(db_session, ref, PaymentOutcome.FAILED)
        assert exc.value.status_code == 409
        assert exc.value.result.payment_status == PaymentRecordStatus.SUCCESS
        assert PaymentRepository(db_session).get_by_reference(ref).status == PaymentRecordStatus.SUCCESS

    def test_failed_then_success_is_refused(self, db_session, pending):
        _, ref = pending
        reconcile(db_session, ref, PaymentOutcome.FAILED)
        with pytest.raises(OutcomeConflict):
            reconcile(db_session, ref, PaymentOutcome.SUCCESS)

    def test_short_payment_is_recorded_as_failed(self, db_session, pending):
        _, ref = pending
        result = reconcile(db_session, ref, PaymentOutcome.SUCCESS, amount=100)
        assert result.payment_status == PaymentRecordStatus.FAILED
        assert "less than expected" in PaymentRepository(db_session).get_by_reference(ref).gateway_response

    def test_replayed_short_payment_is_a_noop(self, db_session, pending, emitted):
        _, ref = pending
        reconcile(db_session, ref, PaymentOutcome.SUCCESS, amount=100, emit=emitted.append)

        again = reconcile(db_session, ref, PaymentOutcome.SUCCESS, amount=100, emit=emitted.append)

        assert not again.applied
        assert again.payment_status == PaymentRecordStatus.FAILED
        assert again.booking_payment_status == PaymentStatus.FAILED
        assert _actions(emitted) == ["PAYMENT_FAILED"]

    def test_unknown_reference(self, db_session):
        with pytest.raises(NotFound):
            reconcile(db_session, "HMS-nope", PaymentOutcome.SUCCESS)


class TestLostRace:
    """Another session settles the payment between our read and our conditional write."""

    def _settle_elsewhere(self, session_factory, payment_id, status):
        other = session_factory()
        try:
            assert PaymentRepository(other).mark_terminal_if_pending(payment_id, status, reason="other worker")
            other.commit()
        finally:
            other.close()

    def test_same_outcome_becomes_a_noop(self, db_session, session_factory, pending, emitted):
        booking, ref = pending
        payment = PaymentRepository(db_session).get_by_reference(ref)
        assert payment.status == PaymentRecordStatus.PENDING
        self._settle_elsewhere(session_factory, payment.id, PaymentRecordStatus.SUCCESS)

        result = reconcile(db_session, ref, PaymentOutcome.SUCCESS, emit=emitted.append)

        assert not result.applied
        assert result.payment_status == PaymentRecordStatus.SUCCESS
        assert PaymentRepository(db_session).get_by_reference(ref).gateway_response == "other worker"
        assert emitted == []

    def test_different_outcome_conflicts(self, db_session, session_factory, pending):
        _, ref = pending
        payment = PaymentRepository(db_session).get_by_reference(ref)
        assert payment.status == PaymentRecordStatus.PENDING
        self._settle_elsewhere(session_factory, payment.id, PaymentRecordStatus.SUCCESS)

        with pytest.raises(OutcomeConflict):
            reconcile(db_session, ref, PaymentOutcome.FAILED, "Declined")
        db_session.expire_all()
        assert PaymentRepository(db_session).get_by_reference(ref).status == PaymentRecordStatus.SUCCESS


class TestVerificationPath:
    def test_in_flight_leaves_state_alone(self, db_session, pending):
        _, ref = pending
        assert reconcile_verification(db_session, VerificationResult(reference=ref, outcome=None,
                                                                     reason="ongoing")) is None
        assert PaymentRepository(db_session).get_by_reference(ref).status == PaymentRecordStatus.PENDING

    def test_verified_success_applies(self, db_session, pending):
        _, ref = pending
        result = reconcile_verification(db_session, VerificationResult(
            reference=ref, outcome=PaymentOutcome.SUCCESS, amount=20000))
        assert result.applied
        assert result.booking_payment_status == PaymentStatus.PAID
