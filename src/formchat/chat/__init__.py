"""Chat transport boundary and stream adapter."""

from .stream import ChatStreamAdapter, RequestFlags
from .transport import ChatRequest, ChatTransport, HttpChatTransport

__all__ = ["ChatRequest", "ChatStreamAdapter", "ChatTransport", "HttpChatTransport", "RequestFlags"]
