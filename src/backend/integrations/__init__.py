"""
Integrations Module - External System Integrations
===================================================

Clients for the systems the agents act on. Each client is built per chat
turn from the user's stored credential and the shared HTTP client owned by
the application lifespan.

Modules:
    openai_model: ChatModel protocol and the AsyncOpenAI-backed implementation
    provider_client: Bearer auth, refresh-on-401 and error mapping shared by providers
    salesforce_client: SOQL queries, composite updates and record creation
    hubspot_client: CRM v3 search and batch update
    calendar_clients: Google Calendar and Microsoft Graph event creation

Example:
    Querying Salesforce for a user:

        from integrations.salesforce_client import SalesforceClient

        credential = await credentials.get(user_id, "salesforce")
        client = SalesforceClient(http, credential, credentials.refresh)
        result = await client.query("SELECT Id, Name FROM Account LIMIT 5")

See Also:
    :mod:`api.services.credential_service`: Credential lookup and refresh
    :mod:`tools.registry`: Builds per-turn tools around these clients
"""
