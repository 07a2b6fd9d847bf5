"""Agent seed configuration loaded from agents.yaml.

Lets a deployment ship a fixed set of agents. Seeding is idempotent:
an agent is created only when its owner has no agent of the same name.

Example:

    default_owner_env: SEED_OWNER_ID
    agents:
      - name: BTC hourly
        interval_minutes: 60
        instruments: [XBTUSD]
        strategies: [macd-crossover, trend-following]
"""

import logging
import os
from pathlib import Path

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, model_validator

from app.models import AgentCreate
from app.services.agents import AgentService

logger = logging.getLogger(__name__)


class AgentSeed(AgentCreate):
    """One agent entry. owner_id falls back to the file's default owner."""

    owner_id: str | None = None


class AgentsFile(BaseModel):
    """Top-level agents.yaml configuration."""

    default_owner: str = ""
    default_owner_env: str = ""
    agents: list[AgentSeed] = []

    @property
    def owner(self) -> str:
        if self.default_owner_env:
            return os.environ.get(self.default_owner_env, "") or self.default_owner
        return self.default_owner

    @model_validator(mode="after")
    def _validate(self):
        names = [(a.owner_id, a.name) for a in self.agents]
        if len(set(names)) != len(names):
            raise ValueError("agent names must be unique per owner")
        return self

    def owner_for(self, seed: AgentSeed) -> str:
        owner = seed.owner_id or self.owner
        if not owner:
            raise ValueError(
                f"Agent '{seed.name}' has no owner_id and no default owner is configured"
            )
        return owner


def load_agents_config(path: Path) -> AgentsFile:
    """Load agent seeds from YAML. A missing file yields no agents."""
    # Load .env so default_owner_env can be resolved
    load_dotenv(path.parent / ".env", override=False)

    if not path.exists():
        logger.info("No agents file found at %s, skipping seeding", path)
        return AgentsFile()

    with open(path) as f:
        raw = yaml.safe_load(f) or {}

    config = AgentsFile(**raw)
    logger.info("Loaded %d agent seed(s) from %s", len(config.agents), path)
    return config


async def seed_agents(service: AgentService, config: AgentsFile) -> int:
    """Create seeded agents that do not exist yet. Returns how many were created."""
    created = 0
    for seed in config.agents:
        owner = config.owner_for(seed)
        existing = {a.name for a in await service.list_agents(owner)}
        if seed.name in existing:
            logger.debug("Seed agent '%s' already exists for %s", seed.name, owner)
            continue
        data = AgentCreate(**seed.model_dump(exclude={"owner_id"}))
        await service.create_agent(owner, data)
        created += 1
    if created:
        logger.info("Seeded %d agent(s)", created)
    return created
