"""
Supabase persistence for intake sessions and automation results.

Optional: without SUPABASE_URL / SUPABASE_KEY the store is disabled and
every call returns None. Database errors are logged, never raised, so a
storage outage cannot fail a user request.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from supabase import Client, create_client

from ..extraction.form_builder import AutomationFormData
from ..extraction.intake import IntakeData

INTAKE_TABLE = "intake_sessions"
RESULTS_TABLE = "automation_results"


class IntakeStore:
    """Thin wrapper over the two Supabase tables."""

    def __init__(self, url: Optional[str] = None, key: Optional[str] = None, client: Optional[Client] = None):
        self._client = client
        if self._client is None and url and key:
            try:
                self._client = create_client(url, key)
                print("  [Store] ✓ Supabase connected")
            except Exception as e:
                print(f"  [Store] ⚠️ Supabase disabled: {e}")
                self._client = None

    @property
    def enabled(self) -> bool:
        return self._client is not None

    def save_intake(self, session_id: str, intake: IntakeData) -> Optional[Dict[str, Any]]:
        if not self.enabled:
            return None
        row = {
            "session_id": session_id,
            "data": intake.to_dict(),
            "is_complete": intake.is_complete,
            "updated_at": datetime.now().isoformat(),
        }
        try:
            result = self._client.table(INTAKE_TABLE).upsert(row, on_conflict="session_id").execute()
        except Exception as e:
            print(f"  [Store] ❌ Saving intake {session_id} failed: {e}")
            return None
        return result.data[0] if result.data else row

    def save_automation_result(
        self,
        session_id: str,
        form_data: AutomationFormData,
        result: Optional[Dict[str, Any]],
        error: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        if not self.enabled:
            return None
        row = {
            "session_id": session_id,
            "form_data": form_data.to_dict(),
            "result": result,
            "success": error is None,
            "error": error,
            "created_at": datetime.now().isoformat(),
        }
        try:
            response = self._client.table(RESULTS_TABLE).insert(row).execute()
        except Exception as e:
            print(f"  [Store] ❌ Saving automation result {session_id} failed: {e}")
            return None
        return response.data[0] if response.data else row

    def get_intake(self, session_id: str) -> Optional[IntakeData]:
        if not self.enabled:
            return None
        try:
            response = (
                self._client.table(INTAKE_TABLE)
                .select("*")
                .eq("session_id", session_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            print(f"  [Store] ❌ Loading intake {session_id} failed: {e}")
            return None
        if not response.data:
            return None
        return IntakeData.from_dict(response.data[0].get("data") or {})
