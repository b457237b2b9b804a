"""
Usage Provider Implementations

Abstract base class and concrete adapters for each billing/usage API.
"""

from .base import (
    BaseUsageProvider, PlaceholderProvider, CredentialField,
    UsageData, UsageResult, ConnectionTestResult
)
from .openai import OpenAIProvider
from .anthropic import AnthropicProvider
from .vercel import VercelProvider
from .stripe import StripeProvider
from .supabase import SupabaseProvider

__all__ = [
    'BaseUsageProvider', 'PlaceholderProvider', 'CredentialField',
    'UsageData', 'UsageResult', 'ConnectionTestResult',
    'OpenAIProvider', 'AnthropicProvider', 'VercelProvider',
    'StripeProvider', 'SupabaseProvider'
]
