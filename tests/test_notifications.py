"""
Tests: Notification service and after-commit dispatch.

Covers:
    - notify / list / unread count / mark read / mark all read
    - only the recipient may mark a notification read
    - a failing notification never undoes the transition that produced it
    - email hand-off when ENABLE_EMAIL_NOTIFICATIONS is on
"""

import logging

import pytest

from isp_manager.core.exceptions import ForbiddenError, NotFoundError
from isp_manager.models import db
from isp_manager.models.notification import Notification
from isp_manager.models.project import Project
from isp_manager.services import pnl_service, project_service
from isp_manager.services.email_service import EmailService
from isp_manager.services.notification import (
    NotificationService,
    PendingNotification,
    dispatch_after_commit,
    recipients_with_role,
)


def _notify(recipient_id, title="Hello", **kw):
    return NotificationService.notify(recipient_id=recipient_id, title=title, message="msg", **kw)


class TestInbox:
    def test_list_newest_first_with_paging(self, sales):
        for i in range(3):
            _notify(sales.user_id, title=f"n{i}")
        items, total = NotificationService.list_for_recipient(sales.user_id, limit=2)
        assert total == 3
        assert [n.title for n in items] == ["n2", "n1"]

    def test_unread_filter_and_count(self, sales, admin):
        first = _notify(sales.user_id)
        _notify(sales.user_id)
        _notify(admin.user_id)
        NotificationService.mark_read(first.id, sales.user_id)

        assert NotificationService.unread_count(sales.user_id) == 1
        items, total = NotificationService.list_for_recipient(sales.user_id, unread_only=True)
        assert total == 1 and items[0].id != first.id

    def test_mark_read_sets_timestamp(self, sales):
        notif = _notify(sales.user_id)
        updated = NotificationService.mark_read(notif.id, sales.user_id)
        assert updated.is_read is True
        assert updated.read_at is not None

    def test_only_recipient_may_mark_read(self, sales, other_sales):
        notif = _notify(sales.user_id)
        with pytest.raises(ForbiddenError) as exc:
            NotificationService.mark_read(notif.id, other_sales.user_id)
        assert exc.value.message == "Not authorized to update this notification"
        assert db.session.get(Notification, notif.id).is_read is False

    def test_mark_read_missing(self, sales):
        with pytest.raises(NotFoundError):
            NotificationService.mark_read(999, sales.user_id)

    def test_mark_all_read(self, sales, admin):
        _notify(sales.user_id)
        _notify(sales.user_id)
        _notify(admin.user_id)
        assert NotificationService.mark_all_read(sales.user_id) == 2
        assert NotificationService.unread_count(sales.user_id) == 0
        assert NotificationService.unread_count(admin.user_id) == 1

    def test_recipients_with_role_skips_inactive(self, make_caller):
        active = make_caller("FINANCE", email="f1@example.com")
        make_caller("FINANCE", email="f2@example.com", is_active=False)
        assert recipients_with_role("FINANCE") == [active.user_id]


class TestDispatchAfterCommit:
    def test_delivers_each_and_counts(self, sales, admin):
        pending = [
            PendingNotification(recipient_id=sales.user_id, title="a", message="m"),
            PendingNotification(recipient_id=admin.user_id, title="b", message="m", type="warning"),
        ]
        assert dispatch_after_commit(pending) == 2
        assert Notification.query.count() == 2

    def test_one_failure_does_not_stop_the_rest(self, sales):
        pending = [
            PendingNotification(recipient_id=424242, title="dangling", message="m"),
            PendingNotification(recipient_id=sales.user_id, title="ok", message="m"),
        ]
        assert dispatch_after_commit(pending) == 1
        assert [n.title for n in Notification.query.all()] == ["ok"]

    def test_failed_notification_does_not_undo_transition(self, drive_project, admin, monkeypatch, caplog):
        pid = drive_project("Pending Approval")
        pnl_id = db.session.get(Project, pid).pnl.id

        def _boom(**kwargs):
            raise RuntimeError("smtp down")

        monkeypatch.setattr(NotificationService, "notify", staticmethod(_boom))
        with caplog.at_level(logging.ERROR, logger="isp_manager.services.notification"):
            result = pnl_service.approve_pnl(admin, pnl_id, {})

        assert result["pnl"]["approval_status"] == "Approved"
        db.session.expire_all()
        assert db.session.get(Project, pid).status == "Approved"
        assert "Notification delivery failed" in caplog.text

    def test_transition_result_ignores_notification_outcome(self, drive_project, projects_admin, monkeypatch):
        pid = drive_project("Installation Pending")
        monkeypatch.setattr(NotificationService, "notify", staticmethod(lambda **kw: 1 / 0))
        result = project_service.update_project_status(projects_admin, pid, {"status": "In Progress"})
        assert result["status"] == "In Progress"


class TestEmailHandOff:
    def test_email_sent_when_enabled(self, app, sales, monkeypatch):
        sent = []
        monkeypatch.setitem(app.config, "ENABLE_EMAIL_NOTIFICATIONS", True)
        monkeypatch.setattr(EmailService, "send_notification_email", staticmethod(lambda **kw: sent.append(kw)))

        _notify(sales.user_id, title="Project Completed", link="/projects/1", type="success")
        assert sent == [{
            "to_email": "sales@example.com",
            "title": "Project Completed",
            "message": "msg",
            "type": "success",
            "link": "/projects/1",
        }]

    def test_no_email_when_disabled(self, sales, monkeypatch):
        sent = []
        monkeypatch.setattr(EmailService, "send_notification_email", staticmethod(lambda **kw: sent.append(kw)))
        _notify(sales.user_id)
        assert sent == []

    def test_send_without_mail_server_only_logs(self, app, caplog):
        with caplog.at_level(logging.INFO, logger="isp_manager.services.email_service"):
            assert EmailService.send(
                to_email="someone@example.com", subject="Subject", text_body="Body", html_body="<p>Body</p>",
            ) is True
        assert "someone@example.com" in caplog.text

    def test_notification_email_links_to_frontend(self, app, monkeypatch):
        captured = {}
        monkeypatch.setitem(app.config, "FRONTEND_URL", "https://isp.example.com/")
        monkeypatch.setattr(EmailService, "send", classmethod(lambda cls, **kw: captured.update(kw) or True))

        EmailService.send_notification_email(
            to_email="sales@example.com", title="P&L Approved", message="Done", type="success", link="/projects/7",
        )
        assert captured["subject"] == "P&L Approved"
        assert "https://isp.example.com/projects/7" in captured["html_body"]
        assert "P&amp;L Approved" in captured["html_body"]
