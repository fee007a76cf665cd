from .bootstrap import DEFAULT_AGENT_ROSTER, ensure_state_root
from .container import OrionContainer

__all__ = ["DEFAULT_AGENT_ROSTER", "OrionContainer", "ensure_state_root"]
