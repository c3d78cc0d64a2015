import logging
import sys

from logging_config import configure_logging
from snapstage import enable_verbose_logging
from snapstage import log_and_display
from snapstage import load_ingest_config
from snapstage import DirectoryVerifier
from snapstage import StageVerifier
from snapstage import ChecksumService
from snapstage import push_media
from snapstage import ToolUnavailable

logger = logging.getLogger("SnapStage")


def main() -> int:
    """Run one ingestion pass using configs/snapstage.json (+ SNAPSTAGE_* env)."""
    log_path = configure_logging()
    enable_verbose_logging()

    log_and_display(f"Logging to {log_path}", sticky=True)

    config = load_ingest_config("configs")
    if not config.source_folder or not config.primary_folder:
        log_and_display("❌ Set source_folder and primary_folder in configs/snapstage.json "
                        "or SNAPSTAGE_SOURCE / SNAPSTAGE_PRIMARY", level="error", sticky=True)
        return 2

    targets = [config.primary_folder] + ([config.secondary_folder] if config.secondary_folder else [])
    verifier = DirectoryVerifier(config.source_folder, *targets)

    try:
        result = push_media(config=config)
    except (ToolUnavailable, FileNotFoundError, ValueError) as e:
        log_and_display(f"❌ {e}", level="error", sticky=True)
        verifier.cleanup()
        return 2

    success = verifier.report()
    verifier.cleanup()

    if not success:
        log_and_display("❌ Filesystem state does not match the recorded operations", level="error", sticky=True)
        return 1

    if config.verify_stages and config.secondary_folder and not config.dry_run:
        stages = StageVerifier(config.secondary_folder, config.primary_folder,
                               ChecksumService(config.hash_algorithm))
        if not stages.report():
            log_and_display("❌ STAGE1 and STAGE2 differ", level="error", sticky=True)
            return 1

    log_and_display("Finished ingestion.", sticky=True)
    return result.exit_code


if __name__ == "__main__":
    sys.exit(main())
