from lendchat.backends.in_memory import InMemoryLendingBackend, ReceiptGenerationError

__all__ = ["InMemoryLendingBackend", "ReceiptGenerationError"]
