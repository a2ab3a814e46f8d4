"""
Seed the content store with the built-in sample corpus.

This script:
1. Reads settings from the environment (.env)
2. Builds the vector search facade with the configured providers
3. Stores every sample record (services and case studies) through store_content

Only persistent backends (e.g. DOCUMENT_STORE_BACKEND=supabase) keep the
seeded content after the script exits.
"""
import asyncio
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from astroai.core.config import Settings
from astroai.core.errors import AIError
from astroai.core.logging import configure_logging, get_logger
from astroai.dependencies import build_container

configure_logging(log_level="INFO", json_output=False)
logger = get_logger(__name__)


async def seed() -> int:
    settings = Settings.from_env()
    container = build_container(settings)
    facade = container.search

    if facade.store is None:
        logger.warning(
            "seed_no_document_store",
            mode=facade.mode.value,
            message="Set DOCUMENT_STORE_BACKEND=supabase to persist seeded content.",
        )

    return await facade.seed_sample_content()


def main():
    logger.info("seed_started")
    try:
        count = asyncio.run(seed())
    except AIError as e:
        logger.error("seed_failed", kind=e.kind.value, error_message=e.message)
        sys.exit(1)
    logger.info("seed_completed", records=count)


if __name__ == "__main__":
    main()
