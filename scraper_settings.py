"""
Shared settings for the judgement scraper scripts.

Values here are module-level constants; a few can be overridden with env-vars,
and the per-run knobs are exposed again as CLI flags by each script.
"""

import logging
import os
import time
from datetime import datetime

## constants --------------------------------------------------------
BASE_URL: str = os.getenv('JUDGEMENTS_BASE_URL', 'https://indiankanoon.org').rstrip('/')
SEARCH_URL: str = f'{BASE_URL}/search/'
DOCTYPE: str = 'supremecourt'
START_YEAR: int = 2010
END_YEAR: int = 2026

## files ------------------------------------------------------------
GROUPED_LINKS_FILE: str = 'supreme_court_links.json'
LINK_COLLECTOR_PROGRESS_FILE: str = 'link_collector_progress.json'
FILTERED_LINKS_FILE: str = 'filtered_judgement_links.json'
FLAT_LINKS_FILE: str = 'all_judgement_links_flat.json'
PROGRESS_FILE: str = 'judgement_scraper_progress.json'
OUTPUT_DIR: str = os.getenv('JUDGEMENTS_OUTPUT_DIR', 'judgements')

## default knobs ----------------------------------------------------
DEFAULT_DELAY_SECONDS: float = 1.5  # between judgements
LISTING_DELAY_SECONDS: float = 1.0  # between listing pages
DEFAULT_FLUSH_EVERY: int = 5
DEFAULT_TIMEOUT_SECONDS: float = 60.0
DEFAULT_MAX_TRIES: int = 3
MAX_REDIRECTS: int = 5
USER_AGENT: str = 'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36'
ACCEPT: str = 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8'


def configure_logging() -> logging.Logger:
    """
    Sets up root logging from the LOG_LEVEL env-var and quiets httpx.
    Called by: each script's main()
    """
    log_level_name: str = os.getenv('LOG_LEVEL', 'INFO').upper()
    log_level = getattr(
        logging, log_level_name, logging.INFO
    )  # maps the string name to the corresponding logging level constant; defaults to INFO
    logging.basicConfig(
        level=log_level,
        format='[%(asctime)s] %(levelname)s [%(module)s-%(funcName)s()::%(lineno)d] %(message)s',
        datefmt='%d/%b/%Y %H:%M:%S',
    )
    ## prevent httpx from logging
    if log_level <= logging.INFO:
        for noisy in ('httpx', 'httpcore'):
            lg = logging.getLogger(noisy)
            lg.setLevel(logging.WARNING)
            lg.propagate = False  # don't bubble up to root
    return logging.getLogger('judgements')


def now_iso() -> str:
    """
    Returns an ISO-8601 local timestamp with timezone info.
    """
    return datetime.now().astimezone().isoformat()


def sleep(seconds: float) -> None:
    """
    Sleeps for given seconds; centralizes sleep for easier tweaking.
    """
    if seconds > 0:
        time.sleep(seconds)
