from luna.services.auth_service import (
    create_access_token, decode_access_token, create_user, update_user,
    get_user_by_id, get_user_by_email, get_user_by_whatsapp,
)
from luna.services.conversation_store import ConversationScope, ConversationStore
from luna.services.quota_ledger import QuotaLedger, QuotaOutcome, local_today
from luna.services.llm_service import LLMService, get_llm_service
from luna.services.orchestrator import ConversationOrchestrator, Turn, TurnState
from luna.services.partner_service import (
    get_partner, get_partner_by_user, list_partners, create_partner, pair_questions,
)
from luna.services.daily_audio import DailyAudioService
from luna.services.diary_service import (
    get_entry, list_entries, create_entry, update_entry, reflect_on_entry,
)

__all__ = [
    "create_access_token",
    "decode_access_token",
    "create_user",
    "update_user",
    "get_user_by_id",
    "get_user_by_email",
    "get_user_by_whatsapp",
    # Conversation core
    "ConversationScope",
    "ConversationStore",
    "QuotaLedger",
    "QuotaOutcome",
    "local_today",
    "LLMService",
    "get_llm_service",
    "ConversationOrchestrator",
    "Turn",
    "TurnState",
    # Partners
    "get_partner",
    "get_partner_by_user",
    "list_partners",
    "create_partner",
    "pair_questions",
    # Daily audio
    "DailyAudioService",
    # Mood journal
    "get_entry",
    "list_entries",
    "create_entry",
    "update_entry",
    "reflect_on_entry",
]
