from datetime import datetime, time, timedelta
from types import SimpleNamespace

# Fixed instant for service-level tests (naive UTC, a Tuesday).
NOW = datetime(2026, 3, 10, 9, 0, 0)


def days_from_now(days, *, hours=0):
    return datetime.utcnow() + timedelta(days=days, hours=hours)


class RecordingEmailProvider:
    key = "recording"

    def __init__(self, fail_for=()):
        self.sent = []
        self.fail_for = set(fail_for)

    def send(self, *, to_address, subject, text, html_body):
        if to_address in self.fail_for:
            raise ConnectionError(f"provider refused {to_address}")
        self.sent.append(SimpleNamespace(to=to_address, subject=subject, text=text, html=html_body))


class FakeNotificationSink:
    def __init__(self, fail_for_users=()):
        self.created = []
        self.fail_for_users = set(fail_for_users)

    def create_notification(self, organization_id, creator_role, data):
        if data.get("user_id") in self.fail_for_users:
            raise RuntimeError("notification store unavailable")
        self.created.append(SimpleNamespace(organization_id=organization_id, creator_role=creator_role, **data))
        return data


class FakeEmailSink:
    def __init__(self, fail_for=(), raise_for=()):
        self.sent = []
        self.fail_for = set(fail_for)
        self.raise_for = set(raise_for)

    def send_compliance_reminder(self, to_address, message, *, first_name=None, organization_name=None):
        if to_address in self.raise_for:
            raise TimeoutError("mail transport timed out")
        if to_address in self.fail_for:
            return False
        self.sent.append(
            SimpleNamespace(
                to=to_address, message=message, first_name=first_name, organization_name=organization_name
            )
        )
        return True


class FakeUserLister:
    def __init__(self, managers=(), error=None):
        self.managers = list(managers)
        self.error = error

    def find_active_managers_in_organization(self, organization_id):
        if self.error:
            raise self.error
        return list(self.managers)


def noon_in_days(days):
    """12:00 UTC on today+days, safely inside that UTC calendar day."""
    return datetime.combine(datetime.utcnow().date() + timedelta(days=days), time(12, 0))
