"""Tests for consultation bookings and the reminder job."""

import uuid
from datetime import timedelta

import pytest

from afroconnect.consultations.jobs import reminder_key, send_consultation_reminders
from afroconnect.consultations.models import Consultation, ConsultationStatus
from afroconnect.consultations.service import create_consultation, update_status
from afroconnect.errors import NotFoundError, PermissionDenied, ValidationError
from afroconnect.notifications.models import Notification, NotificationType


def _consultation(db, provider, buyer, start, status=ConsultationStatus.APPROVED):
    consultation = Consultation(
        provider_id=provider.id,
        buyer_id=buyer.id if buyer else None,
        service_type="export advisory",
        start=start,
        end=start + timedelta(minutes=30),
        status=status,
    )
    db.add(consultation)
    db.commit()
    return consultation


class TestConsultationService:
    def test_create_defaults_to_pending_half_hour(self, db_session, test_user, other_user, now):
        c = create_consultation(db_session, other_user.id, test_user.id, now + timedelta(days=2))
        db_session.commit()
        assert c.status == ConsultationStatus.PENDING
        assert c.end - c.start == timedelta(minutes=30)

    def test_create_rejects_unknown_provider(self, db_session, test_user, now):
        with pytest.raises(NotFoundError):
            create_consultation(db_session, uuid.uuid4(), test_user.id, now)

    def test_create_rejects_end_before_start(self, db_session, test_user, other_user, now):
        with pytest.raises(ValidationError):
            create_consultation(db_session, other_user.id, test_user.id, now, end=now - timedelta(minutes=1))

    def test_only_provider_can_approve(self, db_session, test_user, other_user, now):
        c = create_consultation(db_session, other_user.id, test_user.id, now + timedelta(days=1))
        with pytest.raises(PermissionDenied):
            update_status(db_session, c.id, test_user.id, "APPROVED")
        update_status(db_session, c.id, other_user.id, "APPROVED", video_link="https://meet.example.com/x")
        assert c.status == ConsultationStatus.APPROVED
        assert c.video_link == "https://meet.example.com/x"

    def test_unknown_status_rejected(self, db_session, test_user, other_user, now):
        c = create_consultation(db_session, other_user.id, test_user.id, now + timedelta(days=1))
        with pytest.raises(ValidationError):
            update_status(db_session, c.id, other_user.id, "MAYBE")


class TestSendConsultationReminders:
    def test_one_hour_window_notifies_buyer_and_provider(self, db_session, test_user, other_user, now):
        c = _consultation(db_session, other_user, test_user, now + timedelta(minutes=65))

        assert send_consultation_reminders(db_session, now=now) == 2
        db_session.commit()

        notifications = db_session.query(Notification).all()
        assert {n.user_id for n in notifications} == {test_user.id, other_user.id}
        assert all(n.type == NotificationType.CONSULTATION_REMINDER for n in notifications)
        assert all(n.link == reminder_key(c, "1h") for n in notifications)
        assert "in 1 hour" in notifications[0].message

    @pytest.mark.parametrize("minutes", [59, 76])
    def test_outside_window_not_reminded(self, db_session, test_user, other_user, now, minutes):
        _consultation(db_session, other_user, test_user, now + timedelta(minutes=minutes))
        assert send_consultation_reminders(db_session, now=now) == 0

    def test_window_bounds_are_inclusive(self, db_session, test_user, other_user, now):
        _consultation(db_session, other_user, test_user, now + timedelta(minutes=60))
        _consultation(db_session, other_user, test_user, now + timedelta(minutes=75))
        assert send_consultation_reminders(db_session, now=now) == 4

    def test_one_day_window(self, db_session, test_user, other_user, now):
        _consultation(db_session, other_user, test_user, now + timedelta(days=1, minutes=5))
        assert send_consultation_reminders(db_session, now=now) == 2
        assert "in 24 hours" in db_session.query(Notification).first().message

    @pytest.mark.parametrize(
        "status", [ConsultationStatus.PENDING, ConsultationStatus.REJECTED, ConsultationStatus.CANCELLED]
    )
    def test_only_approved_consultations(self, db_session, test_user, other_user, now, status):
        _consultation(db_session, other_user, test_user, now + timedelta(minutes=65), status=status)
        assert send_consultation_reminders(db_session, now=now) == 0

    def test_rerun_does_not_duplicate(self, db_session, test_user, other_user, now):
        _consultation(db_session, other_user, test_user, now + timedelta(minutes=70))
        assert send_consultation_reminders(db_session, now=now) == 2
        db_session.commit()
        assert send_consultation_reminders(db_session, now=now + timedelta(minutes=5)) == 0
        assert db_session.query(Notification).count() == 2

    def test_day_reminder_does_not_block_hour_reminder(self, db_session, test_user, other_user, now):
        _consultation(db_session, other_user, test_user, now + timedelta(days=1, minutes=5))
        assert send_consultation_reminders(db_session, now=now) == 2
        db_session.commit()
        assert send_consultation_reminders(db_session, now=now + timedelta(hours=23)) == 2
        assert db_session.query(Notification).count() == 4

    def test_consultation_without_buyer_notifies_provider(self, db_session, other_user, now):
        _consultation(db_session, other_user, None, now + timedelta(minutes=65))
        assert send_consultation_reminders(db_session, now=now) == 1

    def test_late_tick_keeps_windows_contiguous(self, db_session, test_user, other_user, now):
        _consultation(db_session, other_user, test_user, now + timedelta(minutes=60, seconds=20))
        assert send_consultation_reminders(db_session, now=now - timedelta(minutes=15)) == 0
        assert send_consultation_reminders(db_session, now=now + timedelta(seconds=40)) == 2
