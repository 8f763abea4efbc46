"""Explicit service wiring.

Model, search and storage clients are built once here and handed to the
components that need them. Nothing below this module reaches for a global
client on its own.
"""

from dataclasses import dataclass
from typing import Any

from anthropic import AsyncAnthropic
from google import genai
from openai import AsyncOpenAI

from app.chains.generate_creator_response import GenerationOrchestrator
from app.context.intent_classifier import IntentClassifier
from app.core.config import Settings, get_settings
from app.core.exa_service import ExaService
from app.core.image_resolver import ImageResolver
from app.core.logging import get_logger
from app.core.model_adapter import ModelAdapter
from app.core.rate_limiter import MinIntervalThrottle
from app.db.artifacts import SupabaseArtifactStore
from app.db.supabase_client import get_supabase
from app.services.snapshot_store import JsonFileKeyValueStore, LocalSnapshotStore
from app.services.sync_engine import SyncEngine

logger = get_logger(__name__)


@dataclass
class Services:
    settings: Settings
    classifier: IntentClassifier
    adapter: ModelAdapter
    orchestrator: GenerationOrchestrator
    search: ExaService
    snapshot_store: LocalSnapshotStore
    sync_engine: SyncEngine
    title_client: Any = None


def build_services(settings: Settings | None = None) -> Services:
    """Construct every client and component from settings."""
    settings = settings or get_settings()

    openai_client = AsyncOpenAI(api_key=settings.OPENAI_API_KEY) if settings.OPENAI_API_KEY else None
    gemini_client = genai.Client(api_key=settings.GEMINI_API_KEY) if settings.GEMINI_API_KEY else None
    anthropic_client = AsyncAnthropic(api_key=settings.ANTHROPIC_API_KEY) if settings.ANTHROPIC_API_KEY else None

    missing = [
        name
        for name, client in (
            ("OPENAI_API_KEY", openai_client),
            ("GEMINI_API_KEY", gemini_client),
            ("ANTHROPIC_API_KEY", anthropic_client),
        )
        if client is None
    ]
    if missing:
        logger.warning(f"Model keys not configured: {', '.join(missing)}")

    image_resolver = ImageResolver(get_supabase(), ttl_seconds=settings.SIGNED_URL_TTL_SECONDS)
    adapter = ModelAdapter(
        openai_client=openai_client,
        gemini_client=gemini_client,
        image_resolver=image_resolver,
        temperature=settings.GENERATION_TEMPERATURE,
    )
    search = ExaService(api_key=settings.EXA_API_KEY)

    snapshot_store = LocalSnapshotStore(
        JsonFileKeyValueStore(settings.SNAPSHOT_STORE_PATH),
        max_snapshots=settings.MAX_SNAPSHOTS,
    )
    sync_engine = SyncEngine(
        store=snapshot_store,
        remote=SupabaseArtifactStore(),
        interval=settings.SYNC_INTERVAL_SECONDS,
        throttle=MinIntervalThrottle(settings.MIN_UPDATE_INTERVAL_SECONDS),
    )

    return Services(
        settings=settings,
        classifier=IntentClassifier(
            anthropic_client,
            model=settings.INTENT_MODEL,
            temperature=settings.INTENT_TEMPERATURE,
        ),
        adapter=adapter,
        orchestrator=GenerationOrchestrator(
            adapter,
            search_service=search,
            default_model=settings.DEFAULT_CHAT_MODEL,
            search_limit=settings.SEARCH_RESULT_LIMIT,
        ),
        search=search,
        snapshot_store=snapshot_store,
        sync_engine=sync_engine,
        title_client=openai_client,
    )
