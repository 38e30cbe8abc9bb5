"""Default agent roster and its sync into the agents table."""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from pundits.models import Agent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AgentConfig:
    id: str
    display_name: str
    provider: str
    model_id: str
    slug: str
    color: str


DEFAULT_AGENTS: tuple[AgentConfig, ...] = (
    AgentConfig("claude-opus", "Claude Opus 4.6", "anthropic", "claude-opus-4-6", "claude", "#E87040"),
    AgentConfig("gpt-5", "GPT-5.2", "openai", "gpt-5.2", "gpt", "#10A37F"),
    AgentConfig("gemini-3", "Gemini 3 Pro", "google", "gemini-3.0-pro", "gemini", "#4285F4"),
    AgentConfig("grok", "Grok 4", "xai", "grok-4", "grok", "#8B5CF6"),
)


def get_agent_config(id_or_slug: str) -> Optional[AgentConfig]:
    for config in DEFAULT_AGENTS:
        if id_or_slug in (config.id, config.slug):
            return config
    return None


async def sync_agents(
    session: AsyncSession, configs: Iterable[AgentConfig] = DEFAULT_AGENTS
) -> int:
    """Insert or update roster rows. is_active is left as stored for existing agents."""
    written = 0
    for config in configs:
        agent = await session.get(Agent, config.id)
        if agent is None:
            agent = Agent(id=config.id)
            logger.info(f"[ROSTER] adding agent {config.id}")
        agent.display_name = config.display_name
        agent.provider = config.provider
        agent.model_id = config.model_id
        agent.slug = config.slug
        agent.color = config.color
        session.add(agent)
        written += 1

    await session.commit()
    return written
