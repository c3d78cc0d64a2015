import datetime
import logging
import os
import pathlib

timestamp = datetime.datetime.now().strftime('%Y%m%d_%H%M%S')


def configure_logging(logs_dir: str = 'logs') -> str:
    """Configures file logging for an ingestion run and returns the log path."""

    if not pathlib.Path(logs_dir).exists():
        pathlib.Path(logs_dir).mkdir(parents=True)
        print(f'Created directory: {logs_dir}')

    log_filepath = os.path.join(logs_dir, f'{timestamp}_snapstage.log')

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        filename=log_filepath,
        filemode='a',
        encoding='utf-8',
    )

    # pyexiftool logs every command it sends at DEBUG/INFO
    exiftool_logger = logging.getLogger('exiftool')
    exiftool_logger.propagate = False
    exiftool_logger.handlers.clear()
    exiftool_logger.addHandler(logging.NullHandler())

    return log_filepath
