"""Agent internals.

Module Overview
---------------

**tool_calls.py**
    Scanner for ``<tool_call>`` markers in model output.

**tool_executor.py**
    Concurrent dispatch of parsed calls with per-call fault isolation and
    deterministic result ordering.

**loop.py**
    The iteration-bounded agent loop (``AgentLoop``, ``IterationLimitExceeded``).

**session.py**
    ``AgentSession``: memory context, auto-save, history trimming and
    persistence around the loop.

**session_persister.py**
    JSON session files under ``<workspace>/sessions``.

**prompt_assembler.py**
    System prompt and tool-protocol instructions.

**config.py**
    YAML + dotenv configuration validated with pydantic.

**memory.py / observer.py / events.py / history.py**
    Collaborator interfaces and small helpers.

Modules only import from ``clawloop_constants``, ``providers``,
``security`` and ``tools``, never from ``run_agent.py``.
"""
