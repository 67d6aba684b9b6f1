"""Entry point for a one-off match calculation"""
import json
import logging
import os
import sys
import traceback

from spotify_match.config import settings
from spotify_match.db import db
from spotify_match.exceptions import MatchError
from spotify_match.match import MatchService
from spotify_match.services.auth import SpotifyAuth
from spotify_match.services.cache import ResultCache
from spotify_match.services.token_store import SqlTokenStore

logging.basicConfig(level=settings.LOG_LEVEL, format='%(asctime)s %(levelname)s %(name)s: %(message)s')
logger = logging.getLogger(__name__)

def run() -> None:
    """Match the two users whose credentials are stored for MATCH_SESSION_ID."""
    try:
        if not settings.MATCH_SESSION_ID:
            raise ValueError("MATCH_SESSION_ID is required")

        # Initialize database connection
        db.init()

        # Log config (excluding sensitive data)
        logger.info("Using configuration:")
        safe_config = settings.model_dump(exclude={'SPOTIFY_CLIENT_SECRET', 'DATABASE_URL'})
        logger.info(json.dumps(safe_config, indent=2))

        store = SqlTokenStore(db)
        service = MatchService(store=store, auth=SpotifyAuth(store), cache=ResultCache())
        result = service.calculate(settings.MATCH_SESSION_ID, settings.TIME_RANGE)

        # Save results
        os.makedirs(settings.OUTPUT_DIR, exist_ok=True)
        output_path = os.path.join(settings.OUTPUT_DIR, "results.json")
        with open(output_path, 'w') as f:
            json.dump(result.model_dump(), f, indent=2)

        logger.info(f"Match calculation complete. Score: {result.compatibility_score}%. Written to {output_path}")

    except MatchError as e:
        logger.error(f"Match calculation failed ({e.error_code}): {e}")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Error during match calculation: {e}")
        traceback.print_exc()
        sys.exit(1)
    finally:
        db.dispose()

if __name__ == "__main__":
    run()
