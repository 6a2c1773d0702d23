import logging
from supabase import create_client, Client
from app.core.config import settings
from typing import List, Dict, Any, Optional

logger = logging.getLogger(__name__)


class DatabaseService:
    """Service for interacting with Supabase database"""

    def __init__(self, client: Optional[Client] = None):
        self._client = client

    @property
    def client(self) -> Client:
        # Created on first use so the app imports without Supabase credentials
        if self._client is None:
            self._client = create_client(
                settings.SUPABASE_URL,
                settings.SUPABASE_SERVICE_KEY or settings.SUPABASE_KEY
            )
        return self._client

    # Profile operations
    async def get_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        """Get a user profile with its role and activation state"""
        response = self.client.table("user_profiles").select(
            "id, email, full_name, user_type, is_active, activation_required, activated_at"
        ).eq("id", user_id).limit(1).execute()
        return response.data[0] if response.data else None

    # Activity log operations
    async def create_activity_log(self, entry: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a row into the user activity audit log"""
        response = self.client.table("user_activity_logs").insert(entry).execute()
        return response.data[0] if response.data else {}

    async def get_activity_logs(
        self,
        user_id: Optional[str] = None,
        resource_id: Optional[str] = None,
        limit: int = 50
    ) -> List[Dict[str, Any]]:
        """Get recent activity log rows, newest first"""
        query = self.client.table("user_activity_logs").select("*")
        if user_id:
            query = query.eq("user_id", user_id)
        if resource_id:
            query = query.eq("resource_id", resource_id)
        response = query.order("created_at", desc=True).limit(limit).execute()
        return response.data or []

    async def ping(self) -> bool:
        """Cheap read used by the health check; raises on failure"""
        self.client.table("user_profiles").select("id").limit(1).execute()
        return True


# Global instance
db_service = DatabaseService()
