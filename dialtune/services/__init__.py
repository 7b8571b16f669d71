"""External service integrations (AI backend, media backends, telephony)."""
