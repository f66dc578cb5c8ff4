"""chatgate - Conversational AI gateway with a tool-calling agent loop.

chatgate accepts a conversation, resolves a language-model backend with
per-user or default credentials, drives a bounded generate/act loop, and
streams incremental events back to the caller while persisting the
transcript.

Key modules:

- :mod:`chatgate.llm` - Model registry, provider resolver and backend clients
- :mod:`chatgate.conversation` - Stored message model and backend adapter
- :mod:`chatgate.tools` - Tool catalog (time, calculate, search, scrape, ...)
- :mod:`chatgate.agent` - Orchestration loop and stream emitter
- :mod:`chatgate.memory` - Conversation stores and the persistence hook
- :mod:`chatgate.server` - FastAPI application and SSE chat endpoint
"""

__version__ = "0.1.0"
