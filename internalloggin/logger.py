# Filosofia: "O que não está no log, não aconteceu."
#
# Cada módulo faz ``logger = setup_logger(__name__)``. Todos os loggers
# nomeados compartilham um único arquivo rotativo (portsentinel.log) e
# escrevem no console a partir do nível configurado.

import logging
import os
import sys
from pathlib import Path
from logging.handlers import RotatingFileHandler

# Pasta de logs internos; sobrescrevível via PORTSENTINEL_LOG_DIR
LOG_DIR = Path(
    os.getenv("PORTSENTINEL_LOG_DIR", str(Path(__file__).parent / "internallogs"))
)
LOG_FILE = "portsentinel.log"
LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
_console_handler = None
_file_handler = None


def _shared_handlers() -> list:
    """Handlers de console e arquivo, criados uma única vez por processo."""
    global _console_handler, _file_handler

    if _console_handler is None:
        _console_handler = logging.StreamHandler(sys.stdout)
        _console_handler.setFormatter(_formatter)
        _console_handler.setLevel(
            os.getenv("PORTSENTINEL_CONSOLE_LOG_LEVEL", "INFO").upper()
        )

    if _file_handler is None:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        _file_handler = RotatingFileHandler(
            filename=LOG_DIR / LOG_FILE,
            maxBytes=5 * 1024 * 1024,  # 5 MB
            backupCount=13,
            encoding="utf-8",
        )
        _file_handler.setFormatter(_formatter)
        _file_handler.setLevel(logging.DEBUG)

    return [_console_handler, _file_handler]


def setup_logger(name: str = "PortSentinel") -> logging.Logger:
    """
    Configura um logger nomeado do PortSentinel.

    Args:
        name (str): O nome do logger (normalmente ``__name__``).

    Returns:
        logging.Logger: O logger configurado.
    """
    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)
    logger.propagate = False

    # Evita duplicidade se o logger for inicializado mais de uma vez
    if not logger.handlers:
        for handler in _shared_handlers():
            logger.addHandler(handler)
    return logger


def set_console_level(level: int | str) -> None:
    """Ajusta o nível do console para todos os loggers (ex: ``--verbose``)."""
    _shared_handlers()[0].setLevel(level)


# Instância padrão para scripts fora dos pacotes
logger = setup_logger()
