from lendchat.conversations.guest_store import GuestConversationStore
from lendchat.conversations.migration import migrate_guest_to_database

__all__ = [
    "GuestConversationStore",
    "migrate_guest_to_database",
]
