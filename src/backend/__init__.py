"""
CRM Co-pilot - Conversational agents that act on a user's CRM
=============================================================

FastAPI backend that runs chat turns for three agents (data steward,
prospect finder, contract reader) against an OpenAI-compatible model,
with tools that read and update Salesforce and HubSpot, book meetings
and start background workflows on the user's behalf.

Key Features:
    - **Streaming Chat Turns**: UI message stream over server-sent events, ending with [DONE]
    - **Explicit Turn Loop**: Model/tool state machine with a per-turn step cap
    - **Per-User Tools**: Tools assembled from the user's connected provider credentials
    - **Usage Ledger**: Billable CRM actions accumulated per run for the dashboard
    - **Thread History**: Append-only conversation storage with generated titles
    - **Enterprise Logging**: Structured JSON logs with request correlation

Modules:
    api: FastAPI routes, services, middleware and dependency wiring
    core: Configuration constants, agent prompts and the chat turn executor
    tools: Agent tools and the per-turn tool registry
    models: Pydantic models for threads, usage, credentials, events and API schemas
    utils: Logging, metrics, caching, client factories and database helpers
    integrations: Model client and CRM/calendar provider clients
"""
