from lendchat.routing.router import MessageRouter, resolve_primary_role

__all__ = ["MessageRouter", "resolve_primary_role"]
