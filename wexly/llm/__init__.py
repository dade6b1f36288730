"""
OpenAI-compatible chat client and prompt construction.
"""

from wexly.llm.client import LLMClient, create_llm_client

__all__ = ["LLMClient", "create_llm_client"]
