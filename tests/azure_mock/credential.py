"""Mock Azure credential for offline testing.

Stands in for both ClientSecretCredential and ManagedIdentityCredential.
The SDK clients are mocked as well, so no token is ever requested; the mock
only records how it was built and whether the run context released it.
"""

from __future__ import annotations

from typing import Any


class MockTokenCredential:
    """Mock implementation of an azure-identity credential."""

    def __init__(
        self,
        tenant_id: str | None = None,
        client_id: str | None = None,
        client_secret: str | None = None,
    ) -> None:
        self._tenant_id = tenant_id
        self._client_id = client_id
        self._has_secret = bool(client_secret)
        self.closed = False

    @property
    def client_id(self) -> str | None:
        """Get the configured client ID."""
        return self._client_id

    def close(self) -> None:
        self.closed = True

    def __enter__(self) -> MockTokenCredential:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()


def create_mock_credential(client_id: str | None = None) -> MockTokenCredential:
    """Factory function to create a mock credential."""
    return MockTokenCredential(client_id=client_id)
