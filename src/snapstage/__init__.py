"""
SnapStage - Photo and video ingestion into deduplicated, date-named archives.
"""

import logging
from logging import NullHandler

# --- PACKAGE-LEVEL LOGGING CONFIG ---
VERBOSE_LOGGING = False


_CONFIGURED_LOGGERS = []


def enable_verbose_logging():
    global VERBOSE_LOGGING
    VERBOSE_LOGGING = True
    # Reconfigure all previously configured loggers
    for name in _CONFIGURED_LOGGERS:
        logger = logging.getLogger(name)
        logger.setLevel(logging.INFO)

# --- IMPORT MODULES ---
# Loggers are registered as each module is imported

from .utils.logging import log_and_display, display_summary

from .utils.config_loader import ConfigLoader, IngestConfig, load_ingest_config
from .utils.checksum import ChecksumService

from .events.bus import event_bus
from .events.verifier import DirectoryVerifier
from .events.stage_verifier import StageVerifier

from .core.pixelporter import *

# --- METADATA ---
__version__ = "0.1.0"

# --- PREVENT "No handler found" WARNINGS ---
logging.getLogger(__name__).addHandler(NullHandler())
