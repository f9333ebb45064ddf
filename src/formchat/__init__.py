"""formchat - fill out forms through a conversation."""

__version__ = "0.1.0"

from .errors import FormChatError
from .session import FormSession
from .state import SessionState, Stage

__all__ = ["FormChatError", "FormSession", "SessionState", "Stage", "__version__"]
