"""
Tests for the license record model.

Login entries are unique per user (case-insensitive); removal is a no-op
when the user is absent.
"""

from datetime import datetime

from sharedtool.licensing import LicenseRecord, LoginEntry, equals_ignore_case


T0 = datetime(2024, 1, 1, 9, 0)
T1 = datetime(2024, 1, 1, 10, 30)


class TestEqualsIgnoreCase:

    def test_case_is_ignored(self):
        assert equals_ignore_case("Alice", "aLICE")

    def test_different_names(self):
        assert not equals_ignore_case("alice", "bob")

    def test_empty_values_never_match(self):
        assert not equals_ignore_case("", "")
        assert not equals_ignore_case(None, "alice")
        assert not equals_ignore_case("alice", None)


class TestLogins:
    """add_or_update_login / remove_login."""

    def test_add_new_user(self):
        record = LicenseRecord(license_id="LIC-1")
        record.add_or_update_login("alice", T0)

        assert record.logins == [LoginEntry(user="alice", time=T0)]

    def test_existing_user_is_updated_not_duplicated(self):
        record = LicenseRecord(license_id="LIC-1")
        record.add_or_update_login("alice", T0)
        record.add_or_update_login("ALICE", T1)

        assert len(record.logins) == 1
        assert record.logins[0].user == "alice"
        assert record.logins[0].time == T1

    def test_empty_user_is_ignored(self):
        record = LicenseRecord(license_id="LIC-1")
        record.add_or_update_login("", T0)

        assert record.logins == []

    def test_remove_is_case_insensitive(self):
        record = LicenseRecord(license_id="LIC-1")
        record.add_or_update_login("alice", T0)
        record.add_or_update_login("bob", T1)

        record.remove_login("Alice")

        assert record.login_users == ["bob"]

    def test_remove_absent_user_is_noop(self):
        record = LicenseRecord(license_id="LIC-1")
        record.add_or_update_login("alice", T0)
        logins = record.logins

        record.remove_login("carol")

        assert record.logins is logins
        assert record.login_users == ["alice"]

    def test_last_login_time(self):
        record = LicenseRecord(license_id="LIC-1")
        assert record.last_login_time is None

        record.add_or_update_login("bob", T1)
        record.add_or_update_login("alice", T0)

        assert record.last_login_time == T1


def test_matches_ignores_case():
    record = LicenseRecord(license_id="27000@LicServer")

    assert record.matches("27000@licserver")
    assert not record.matches("27001@licserver")
