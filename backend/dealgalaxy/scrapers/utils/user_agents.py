"""Desktop user-agent pool used when building fetch identities."""

import random
from typing import List, Optional, Sequence


# Desktop browsers only; the retailer serves a different mobile template
# that the field extractor does not target.
USER_AGENTS: List[str] = [
    # Chrome on Windows
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/130.0.0.0 Safari/537.36",
    # Chrome on macOS
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36",
    # Chrome on Linux
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36",
    # Firefox on Windows
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:133.0) Gecko/20100101 Firefox/133.0",
    # Edge on Windows
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36 Edg/131.0.0.0",
]


def get_random_user_agent(
    agents: Optional[Sequence[str]] = None,
    rng: Optional[random.Random] = None,
) -> str:
    """Pick a user-agent string uniformly at random.

    Args:
        agents: Pool to choose from (defaults to USER_AGENTS)
        rng: Optional Random instance for deterministic selection

    Returns:
        User-agent string
    """
    pool = agents or USER_AGENTS
    chooser = rng or random
    return chooser.choice(list(pool))
