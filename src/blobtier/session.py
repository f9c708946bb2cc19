"""Session guard.

Makes sure an authenticated session scoped to the requested tenant and
subscription exists before any storage call is made. A scope that cannot be
verified is fatal: the run must not continue against an ambiguous account.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Protocol, runtime_checkable

from azure.core.exceptions import AzureError
from azure.identity import DefaultAzureCredential, InteractiveBrowserCredential
from azure.mgmt.resource import SubscriptionClient

from blobtier.errors import SessionScopeError

logger = logging.getLogger(__name__)

MANAGEMENT_SCOPE = "https://management.azure.com/.default"


@dataclass(frozen=True)
class SessionInfo:
    """Identity and scope of the active session."""

    tenant_id: str
    subscription_id: str | None = None
    account: str | None = None


@runtime_checkable
class SessionProvider(Protocol):
    """Authentication collaborator used by :class:`SessionGuard`."""

    def get_current_session(self) -> SessionInfo | None:
        """Return the active session, or None when not logged in."""
        ...

    def login(self, tenant_id: str) -> None:
        """Establish a fresh session against ``tenant_id``. May block on user input."""
        ...

    def set_active_scope(self, subscription_id: str) -> None:
        """Switch the active subscription."""
        ...


class SessionGuard:
    """Ensures a correctly scoped session exists.

    Example:
        >>> guard = SessionGuard(AzureSessionProvider())
        >>> session = guard.ensure_session("tenant-id", "subscription-id")
    """

    def __init__(self, provider: SessionProvider) -> None:
        self._provider = provider

    @property
    def provider(self) -> SessionProvider:
        return self._provider

    def ensure_session(self, tenant_id: str, subscription_id: str) -> SessionInfo:
        """Ensure the session is bound to ``tenant_id`` and ``subscription_id``.

        Idempotent: a session already on the right scope is returned as-is.

        Args:
            tenant_id: Required tenant.
            subscription_id: Required subscription.

        Returns:
            The verified session.

        Raises:
            SessionScopeError: If the session cannot be established or the
                subscription switch cannot be verified.
        """
        session = self._provider.get_current_session()

        if session is None:
            logger.info(f"No active session, logging in to tenant {tenant_id}")
            self._provider.login(tenant_id)
            session = self._provider.get_current_session()
        elif session.tenant_id != tenant_id:
            logger.warning(
                f"Session is scoped to tenant {session.tenant_id}, "
                f"logging in to tenant {tenant_id}"
            )
            self._provider.login(tenant_id)
            session = self._provider.get_current_session()

        if session is None or session.tenant_id != tenant_id:
            raise SessionScopeError(
                f"Login did not produce a session for tenant {tenant_id}",
                tenant_id=tenant_id,
                subscription_id=subscription_id,
            )

        if session.subscription_id != subscription_id:
            logger.info(f"Switching subscription to {subscription_id}")
            self._provider.set_active_scope(subscription_id)
            session = self._provider.get_current_session()
            if (
                session is None
                or session.tenant_id != tenant_id
                or session.subscription_id != subscription_id
            ):
                actual = (
                    f"{session.tenant_id}/{session.subscription_id}" if session else "no session"
                )
                raise SessionScopeError(
                    f"Could not verify subscription switch to {subscription_id} "
                    f"in tenant {tenant_id} (active scope: {actual})",
                    tenant_id=tenant_id,
                    subscription_id=subscription_id,
                )

        logger.info(f"Session verified for tenant {tenant_id}, subscription {subscription_id}")
        return session


class AzureSessionProvider:
    """Session provider backed by azure-identity and azure-mgmt-resource.

    Interactive mode opens a browser login scoped to the tenant. Unattended
    mode uses ``DefaultAzureCredential`` (environment, managed identity,
    Azure CLI). Either way, the subscription is verified against the
    management API and the tenant it reports becomes the session tenant.
    """

    def __init__(
        self,
        interactive: bool = True,
        credential_factory: Callable[[str], Any] | None = None,
        subscription_client_factory: Callable[[Any], Any] | None = None,
    ) -> None:
        """Initialize the provider.

        Args:
            interactive: Use browser login instead of DefaultAzureCredential.
            credential_factory: Builds a credential for a tenant id (tests).
            subscription_client_factory: Builds a SubscriptionClient for a credential (tests).
        """
        self._interactive = interactive
        self._credential_factory = credential_factory or self._default_credential
        self._subscription_client_factory = subscription_client_factory or SubscriptionClient
        self._credential: Any = None
        self._session: SessionInfo | None = None

    def _default_credential(self, tenant_id: str) -> Any:
        if self._interactive:
            return InteractiveBrowserCredential(tenant_id=tenant_id)
        return DefaultAzureCredential(
            interactive_browser_tenant_id=tenant_id,
            shared_cache_tenant_id=tenant_id,
            visual_studio_code_tenant_id=tenant_id,
        )

    @property
    def credential(self) -> Any:
        """Token credential of the active session."""
        return self._credential

    def get_current_session(self) -> SessionInfo | None:
        return self._session

    def login(self, tenant_id: str) -> None:
        try:
            credential = self._credential_factory(tenant_id)
            # Forces the interactive flow now instead of on the first storage call.
            credential.get_token(MANAGEMENT_SCOPE)
        except (AzureError, ValueError) as e:
            raise SessionScopeError(
                f"Login to tenant {tenant_id} failed: {e}", tenant_id=tenant_id
            ) from e

        self._credential = credential
        self._session = SessionInfo(tenant_id=tenant_id)

    def set_active_scope(self, subscription_id: str) -> None:
        if self._credential is None or self._session is None:
            raise SessionScopeError(
                "Cannot switch subscription without an active session",
                subscription_id=subscription_id,
            )

        client = self._subscription_client_factory(self._credential)
        try:
            subscription = client.subscriptions.get(subscription_id)
        except AzureError as e:
            raise SessionScopeError(
                f"Subscription {subscription_id} is not accessible: {e}",
                tenant_id=self._session.tenant_id,
                subscription_id=subscription_id,
            ) from e

        self._session = SessionInfo(
            tenant_id=getattr(subscription, "tenant_id", None) or self._session.tenant_id,
            subscription_id=subscription.subscription_id,
            account=getattr(subscription, "display_name", None),
        )
