from .chat_history import ChatHistoryStore
from .conversation import ConversationContext, ConversationMemory

__all__ = [
    "ChatHistoryStore",
    "ConversationContext",
    "ConversationMemory",
]
