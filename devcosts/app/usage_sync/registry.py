"""
Provider Registry

Maps provider identifiers to adapter instances. Implemented adapters are
"active"; placeholders are registered so they can be listed, but they are
never offered for new connections or alerts.
"""

from typing import Dict, Iterable, List

from .providers import (
    BaseUsageProvider, PlaceholderProvider, CredentialField,
    OpenAIProvider, AnthropicProvider, VercelProvider, StripeProvider, SupabaseProvider
)


class UnknownProvider(ValueError):
    """Raised when a provider identifier is not registered."""

    def __init__(self, provider_id: str):
        super().__init__(f"Unknown provider: {provider_id}")
        self.provider_id = provider_id


class ProviderRegistry:
    def __init__(self, adapters: Iterable[BaseUsageProvider]):
        self._adapters: Dict[str, BaseUsageProvider] = {}
        for adapter in adapters:
            if adapter.id in self._adapters:
                raise ValueError(f"Provider {adapter.id} registered twice")
            self._adapters[adapter.id] = adapter

    def resolve(self, provider_id: str) -> BaseUsageProvider:
        adapter = self._adapters.get(provider_id)
        if adapter is None:
            raise UnknownProvider(provider_id)
        return adapter

    def is_active(self, provider_id: str) -> bool:
        adapter = self._adapters.get(provider_id)
        return adapter is not None and not adapter.is_placeholder

    def list_active(self) -> List[BaseUsageProvider]:
        return [a for a in self._adapters.values() if not a.is_placeholder]

    def list_all(self) -> List[BaseUsageProvider]:
        return list(self._adapters.values())


def placeholder_providers() -> List[PlaceholderProvider]:
    """Providers that are planned but not implemented yet."""
    return [
        PlaceholderProvider(
            "google-cloud", "Google Cloud", "Google Cloud Platform billing", "#4285F4",
            [
                CredentialField("serviceAccount", "Service Account JSON", type="textarea"),
                CredentialField("billingAccountId", "Billing Account ID", type="text"),
            ],
        ),
        PlaceholderProvider(
            "aws", "AWS", "Amazon Web Services Cost Explorer", "#FF9900",
            [
                CredentialField("accessKeyId", "Access Key ID", type="text"),
                CredentialField("secretAccessKey", "Secret Access Key"),
                CredentialField("region", "Region", type="text", placeholder="us-east-1"),
            ],
        ),
        PlaceholderProvider(
            "planetscale", "PlanetScale", "PlanetScale database usage", "#000000",
            [
                CredentialField("apiKey", "API Key"),
                CredentialField("organizationId", "Organization ID", type="text"),
            ],
        ),
        PlaceholderProvider(
            "resend", "Resend", "Resend email API usage", "#000000",
            [CredentialField("apiKey", "API Key")],
        ),
        PlaceholderProvider(
            "twilio", "Twilio", "Twilio communications usage", "#F22F46",
            [
                CredentialField("accountSid", "Account SID", type="text"),
                CredentialField("authToken", "Auth Token"),
            ],
        ),
    ]


def build_registry(timeout: float = 30.0, transport=None) -> ProviderRegistry:
    """
    Build the registry with every known provider.

    Args:
        timeout: Per-request timeout in seconds for outbound provider calls
        transport: Optional httpx transport shared by all adapters (tests)
    """
    adapters: List[BaseUsageProvider] = [
        OpenAIProvider(timeout=timeout, transport=transport),
        AnthropicProvider(timeout=timeout, transport=transport),
        VercelProvider(timeout=timeout, transport=transport),
        StripeProvider(timeout=timeout, transport=transport),
        SupabaseProvider(timeout=timeout, transport=transport),
    ]
    adapters.extend(placeholder_providers())
    return ProviderRegistry(adapters)
