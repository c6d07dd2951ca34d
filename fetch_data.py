"""Entry point for the food truck data fetch pipeline."""
import json
import logging
import os
import sys
import time
from dataclasses import dataclass
from typing import Mapping, Optional

from dotenv import load_dotenv

from fetcher.events_api import EventsApiClient
from fetcher.geocoding_api import GeocodingClient
from processor.exceptions import LockHeld
from processor.geocode_cache import GeocodeCache
from processor.geocode_resolver import GeocodeResolver
from processor.models import PipelineResult
from processor.truck_aggregator import TruckAggregator
from storage.json_persister import JsonPersister
from storage.pipeline_lock import PipelineLock


# Configure JSON logging
class JsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name
        }

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def setup_logging(log_level: str = 'INFO') -> None:
    """
    Configure logging with JSON formatter.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)

    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


@dataclass
class PipelineConfig:
    """Runtime settings for a pipeline run."""
    events_base_url: Optional[str] = None
    events_api_key: Optional[str] = None
    events_resource: str = EventsApiClient.DEFAULT_RESOURCE
    geocoding_api_key: Optional[str] = None
    geocode_region: str = GeocodeResolver.DEFAULT_REGION
    data_dir: str = '_data'
    fetch_timeout_seconds: int = 30
    geocode_timeout_seconds: int = 10
    lock_max_age_seconds: int = 3600
    max_data_age_seconds: int = 3600
    force_fetch: bool = False
    log_level: str = 'INFO'


def load_config(environ: Optional[Mapping[str, str]] = None) -> PipelineConfig:
    """
    Read pipeline settings from environment variables.

    Args:
        environ: Mapping to read from (default: os.environ)

    Returns:
        PipelineConfig

    Raises:
        ValueError: If a numeric setting is not an integer
    """
    env = os.environ if environ is None else environ

    supabase_url = env.get('SUPABASE_URL')
    events_base_url = env.get('EVENTS_API_URL')
    if not events_base_url and supabase_url:
        events_base_url = f"{supabase_url.rstrip('/')}/rest/v1"

    force_fetch = (
        env.get('JEKYLL_ENV') == 'production' or
        env.get('FORCE_FETCH', 'false').strip().lower() in ('1', 'true', 'yes')
    )

    return PipelineConfig(
        events_base_url=events_base_url,
        events_api_key=env.get('SUPABASE_ANON_KEY'),
        events_resource=env.get('EVENTS_RESOURCE', EventsApiClient.DEFAULT_RESOURCE),
        geocoding_api_key=(
            env.get('GOOGLE_GEOCODING_API_KEY') or env.get('GOOGLE_MAPS_API_KEY')
        ),
        geocode_region=env.get('GEOCODE_REGION', GeocodeResolver.DEFAULT_REGION),
        data_dir=env.get('DATA_DIR', '_data'),
        fetch_timeout_seconds=int(env.get('FETCH_TIMEOUT_SECONDS', '30')),
        geocode_timeout_seconds=int(env.get('GEOCODE_TIMEOUT_SECONDS', '10')),
        lock_max_age_seconds=int(env.get('LOCK_MAX_AGE_SECONDS', '3600')),
        max_data_age_seconds=int(env.get('MAX_DATA_AGE_SECONDS', '3600')),
        force_fetch=force_fetch,
        log_level=env.get('LOG_LEVEL', 'INFO')
    )


def run_pipeline(config: PipelineConfig) -> PipelineResult:
    """
    Fetch, enrich, aggregate and persist events.

    Existing artifacts are left untouched when no events are fetched,
    when another run holds the lock, or when the run fails.

    Args:
        config: Pipeline settings

    Returns:
        PipelineResult summarizing the run
    """
    logger = logging.getLogger(__name__)
    start_time = time.time()

    def finish(result: PipelineResult) -> PipelineResult:
        result.duration_seconds = time.time() - start_time
        return result

    persister = JsonPersister(config.data_dir)

    if not config.force_fetch:
        age = persister.events_age_seconds()
        if age is not None and age < config.max_data_age_seconds:
            logger.info(
                f"Skipping data fetch: {persister.events_path} is "
                f"{int(age)}s old"
            )
            return finish(PipelineResult(
                status='skipped',
                message='Data files are fresh'
            ))

    lock = PipelineLock(persister.lock_path, config.lock_max_age_seconds)
    try:
        lock.acquire()
    except LockHeld as e:
        logger.error(f"Not starting pipeline: {e}")
        return finish(PipelineResult(
            status='locked',
            message='Another pipeline run is in progress',
            errors=[str(e)]
        ))

    try:
        events_client = EventsApiClient(
            base_url=config.events_base_url,
            api_key=config.events_api_key,
            resource=config.events_resource,
            timeout=config.fetch_timeout_seconds
        )
        aggregator = TruckAggregator()

        logger.info("Fetching events from source")
        events = events_client.fetch_events()

        if not events:
            logger.warning("No events fetched; keeping existing data files")
            return finish(PipelineResult(
                status='no_events',
                message='No events fetched; existing data files kept'
            ))

        logger.info(f"Fetched {len(events)} events")
        result = PipelineResult(
            status='ok',
            message='Data fetch complete',
            events_fetched=len(events)
        )

        if config.geocoding_api_key:
            logger.info("Geocoding events with missing coordinates")
            cache = GeocodeCache(persister.geocode_cache_path)
            cache.load_from_disk()
            resolver = GeocodeResolver(
                cache=cache,
                client=GeocodingClient(
                    api_key=config.geocoding_api_key,
                    timeout=config.geocode_timeout_seconds
                ),
                region=config.geocode_region
            )
            enrichment = resolver.resolve(events)
            cache.flush_to_disk()

            result.cache_hits = enrichment.cache_hits
            result.geocoded = enrichment.geocoded
            result.geocode_failures = enrichment.failed
        else:
            logger.warning("No geocoding API key configured; skipping geocoding")

        logger.info("Aggregating trucks")
        trucks = aggregator.aggregate(events)

        result.events_written = persister.write_events(events)
        result.trucks_written = persister.write_trucks(trucks)

        logger.info(
            f"Data fetch complete: {result.events_written} events, "
            f"{result.trucks_written} trucks"
        )
        return finish(result)

    except Exception as e:
        logger.error(
            f"Pipeline run failed: {str(e)}",
            extra={'error_type': type(e).__name__},
            exc_info=True
        )
        return finish(PipelineResult(
            status='failed',
            message='Pipeline run failed',
            errors=[f"{type(e).__name__}: {e}"]
        ))
    finally:
        lock.release()


def main() -> int:
    """Run the pipeline with settings from the environment."""
    load_dotenv()
    config = load_config()
    setup_logging(config.log_level)

    logger = logging.getLogger(__name__)
    logger.info(
        "Starting data fetch",
        extra={'data_dir': config.data_dir, 'force_fetch': config.force_fetch}
    )

    result = run_pipeline(config)
    logger.info(
        f"Pipeline finished with status {result.status}",
        extra=result.to_dict()['statistics']
    )
    return result.exit_code


if __name__ == '__main__':
    sys.exit(main())
