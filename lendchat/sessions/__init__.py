from lendchat.sessions.session_store import SessionStore

__all__ = ["SessionStore"]
