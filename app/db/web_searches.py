"""Database operations for the web_searches log table."""

from app.core.logging import get_logger
from app.core.schemas_generation import SearchResultItem
from app.db.supabase_client import get_supabase

logger = get_logger(__name__)


def record_web_search(
    user_id: str,
    query: str,
    results: list[SearchResultItem],
    search_provider: str = "ExaSearch",
) -> None:
    """Log a search and its results. Best effort: failures are logged only."""
    supabase = get_supabase()
    try:
        supabase.table("web_searches").insert({
            "user_id": user_id,
            "query": query,
            "results": [r.model_dump() for r in results],
            "search_provider": search_provider,
        }).execute()
    except Exception as e:
        logger.warning(f"Failed to record web search '{query[:50]}': {e}")


def list_web_searches(user_id: str, limit: int = 20) -> list[dict]:
    """Recent searches for a user, newest first."""
    supabase = get_supabase()
    result = (
        supabase.table("web_searches")
        .select("*")
        .eq("user_id", user_id)
        .order("created_at", desc=True)
        .limit(limit)
        .execute()
    )
    return result.data or []
