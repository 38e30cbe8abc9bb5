"""Agent layer: prompt, provider adapters, call policy and orchestration."""
