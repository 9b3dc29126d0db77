"""API clients: Jira, GitHub, BambooHR time off and the Anthropic summarizer."""
