"""
External service clients.

Modules
-------
store_client : StoreClient — analysis / portfolio tables and auth on the
               hosted store (Supabase REST via httpx).
ai_client    : AiClient — Gemini generateContent passthrough with grounding
               citations; failures become advisory text, never exceptions.
"""
