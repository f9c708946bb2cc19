"""Tests for the session guard and the Azure session provider."""

from types import SimpleNamespace
from unittest.mock import Mock

import pytest
from azure.core.exceptions import ClientAuthenticationError, ResourceNotFoundError

from blobtier.errors import SessionScopeError
from blobtier.session import AzureSessionProvider, SessionGuard, SessionInfo

from conftest import SUBSCRIPTION, TENANT, FakeSessionProvider


class TestSessionGuard:
    """Tests for SessionGuard.ensure_session."""

    def test_existing_session_is_reused(self, session_provider):
        """Test a correctly scoped session triggers no login."""
        session = SessionGuard(session_provider).ensure_session(TENANT, SUBSCRIPTION)

        assert session == SessionInfo(TENANT, SUBSCRIPTION)
        assert session_provider.logins == []
        assert session_provider.scopes == []

    def test_idempotent(self, session_provider):
        """Test repeated calls do nothing further."""
        guard = SessionGuard(session_provider)
        guard.ensure_session(TENANT, SUBSCRIPTION)
        guard.ensure_session(TENANT, SUBSCRIPTION)

        assert session_provider.logins == []

    def test_no_session_logs_in_and_sets_scope(self):
        """Test a missing session logs in to the tenant, then selects the subscription."""
        provider = FakeSessionProvider()

        session = SessionGuard(provider).ensure_session(TENANT, SUBSCRIPTION)

        assert provider.logins == [TENANT]
        assert provider.scopes == [SUBSCRIPTION]
        assert session.subscription_id == SUBSCRIPTION

    def test_wrong_tenant_relogs(self):
        """Test a session on another tenant is replaced."""
        provider = FakeSessionProvider(SessionInfo("other-tenant", SUBSCRIPTION))

        SessionGuard(provider).ensure_session(TENANT, SUBSCRIPTION)

        assert provider.logins == [TENANT]

    def test_wrong_subscription_switches(self):
        """Test the right tenant with another subscription only switches scope."""
        provider = FakeSessionProvider(SessionInfo(TENANT, "other-sub"))

        SessionGuard(provider).ensure_session(TENANT, SUBSCRIPTION)

        assert provider.logins == []
        assert provider.scopes == [SUBSCRIPTION]

    def test_unverified_switch_is_fatal(self):
        """Test a switch that does not take effect raises SessionScopeError."""
        provider = FakeSessionProvider(SessionInfo(TENANT, "other-sub"), honour_scope=False)

        with pytest.raises(SessionScopeError, match="verify subscription switch") as info:
            SessionGuard(provider).ensure_session(TENANT, SUBSCRIPTION)

        assert info.value.subscription_id == SUBSCRIPTION

    def test_login_to_wrong_tenant_is_fatal(self):
        """Test a login that lands on another tenant raises."""
        provider = Mock()
        provider.get_current_session.return_value = SessionInfo("elsewhere")

        with pytest.raises(SessionScopeError):
            SessionGuard(provider).ensure_session(TENANT, SUBSCRIPTION)


class TestAzureSessionProvider:
    """Tests for AzureSessionProvider with mocked azure-identity and management clients."""

    def make_provider(self, credential=None, subscription=None, error=None):
        credential = credential or Mock()
        client = Mock()
        if error is not None:
            client.subscriptions.get.side_effect = error
        else:
            client.subscriptions.get.return_value = subscription or SimpleNamespace(
                subscription_id=SUBSCRIPTION, tenant_id=TENANT, display_name="Dev"
            )
        provider = AzureSessionProvider(
            credential_factory=lambda tenant_id: credential,
            subscription_client_factory=lambda cred: client,
        )
        return provider, credential, client

    def test_no_session_before_login(self):
        """Test a fresh provider has no session."""
        provider, _, _ = self.make_provider()
        assert provider.get_current_session() is None
        assert provider.credential is None

    def test_login_acquires_token(self):
        """Test login forces a token request and records the tenant."""
        provider, credential, _ = self.make_provider()

        provider.login(TENANT)

        credential.get_token.assert_called_once()
        assert provider.get_current_session() == SessionInfo(TENANT)
        assert provider.credential is credential

    def test_login_failure(self):
        """Test authentication errors become SessionScopeError."""
        credential = Mock()
        credential.get_token.side_effect = ClientAuthenticationError("denied")
        provider, _, _ = self.make_provider(credential=credential)

        with pytest.raises(SessionScopeError, match="denied"):
            provider.login(TENANT)
        assert provider.get_current_session() is None

    def test_malformed_tenant_id(self):
        """Test a tenant id rejected by azure-identity becomes SessionScopeError."""
        provider = AzureSessionProvider(subscription_client_factory=lambda cred: Mock())

        with pytest.raises(SessionScopeError, match="bad tenant!"):
            provider.login("bad tenant!")
        assert provider.credential is None

    def test_credential_construction_failure(self):
        """Test errors building the credential are wrapped."""

        def factory(tenant_id):
            raise ValueError(f"Invalid tenant ID provided: {tenant_id}")

        provider = AzureSessionProvider(credential_factory=factory)

        with pytest.raises(SessionScopeError, match="Invalid tenant ID"):
            provider.login(TENANT)

    def test_set_active_scope_uses_reported_tenant(self):
        """Test the subscription's tenant is what the session reports."""
        subscription = SimpleNamespace(subscription_id=SUBSCRIPTION, tenant_id="real-tenant")
        provider, _, client = self.make_provider(subscription=subscription)
        provider.login(TENANT)

        provider.set_active_scope(SUBSCRIPTION)

        client.subscriptions.get.assert_called_once_with(SUBSCRIPTION)
        assert provider.get_current_session().tenant_id == "real-tenant"

    def test_inaccessible_subscription(self):
        """Test a missing subscription raises SessionScopeError."""
        provider, _, _ = self.make_provider(error=ResourceNotFoundError("no such subscription"))
        provider.login(TENANT)

        with pytest.raises(SessionScopeError):
            provider.set_active_scope(SUBSCRIPTION)

    def test_scope_requires_login(self):
        """Test switching scope without a session fails."""
        provider, _, _ = self.make_provider()
        with pytest.raises(SessionScopeError):
            provider.set_active_scope(SUBSCRIPTION)

    def test_guard_detects_subscription_in_other_tenant(self):
        """Test the guard rejects a subscription owned by another tenant."""
        subscription = SimpleNamespace(subscription_id=SUBSCRIPTION, tenant_id="real-tenant")
        provider, _, _ = self.make_provider(subscription=subscription)

        with pytest.raises(SessionScopeError):
            SessionGuard(provider).ensure_session(TENANT, SUBSCRIPTION)
