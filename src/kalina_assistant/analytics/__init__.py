from kalina_assistant.analytics.provider import ANALYTICS_SECTIONS, AnalyticsDataProvider
from kalina_assistant.analytics.supabase_client import SupabaseClient, SupabaseError
from kalina_assistant.analytics.supabase_provider import SupabaseAnalyticsProvider

__all__ = [
    "ANALYTICS_SECTIONS",
    "AnalyticsDataProvider",
    "SupabaseAnalyticsProvider",
    "SupabaseClient",
    "SupabaseError",
]
