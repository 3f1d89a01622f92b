"""Test suite for session helpers"""

from datetime import timedelta

from qiyas import auth


def test_can_manage_user():
    """Test admins manage anyone and others only themselves"""
    assert auth.can_manage_user({"uid": "a1", "role": "Admin"}, "someone")
    assert auth.can_manage_user({"uid": "u1", "role": "Client"}, "u1")
    assert not auth.can_manage_user({"uid": "u1", "role": "Consultant"}, "u2")
    assert not auth.can_manage_user(None, "u1")


def test_role_defaults_to_user():
    """Test a missing role claim reads as User"""
    assert auth.role_of({"uid": "x"}) == "User"
    assert auth.role_of(None) == "User"
    assert auth.role_of({"role": "Consultant"}) == "Consultant"


def test_verify_session(fake_auth):
    """Test invalid or empty cookies verify to None"""
    assert auth.verify_session(fake_auth, "") is None
    assert auth.verify_session(fake_auth, "forged") is None
    assert auth.verify_session(fake_auth, "admin-cookie")["role"] == "Admin"


def test_session_lifetime_is_two_weeks():
    """Test session cookies last fourteen days by default"""
    assert auth.session_expires_in() == timedelta(days=14)
