"""
run.py: Servidor de desenvolvimento da API do PortSentinel.

Uso:
    python run.py                      # modo desenvolvimento (padrão)
    FLASK_ENV=production python run.py # modo produção

Jobs rodam em threads daemon do processo; use um único worker.
"""

import os

from api import create_app
from api.config import DevelopmentConfig, ProductionConfig
from internalloggin.logger import setup_logger

logger = setup_logger("run")

_ENV_MAP = {
    "production": ProductionConfig,
    "prod":       ProductionConfig,
    "development": DevelopmentConfig,
    "dev":        DevelopmentConfig,
}


def select_config(env: str):
    """Classe de configuração para ``FLASK_ENV`` (desconhecido → desenvolvimento)."""
    config_class = _ENV_MAP.get(env.lower())
    if config_class is None:
        logger.warning("FLASK_ENV '%s' desconhecido; usando DevelopmentConfig.", env)
        return DevelopmentConfig
    return config_class


env = os.getenv("FLASK_ENV", "development")
app = create_app(config_class=select_config(env))

if not app.config.get("API_STATIC_TOKEN"):
    logger.warning(
        "PORTSENTINEL_API_TOKEN não definido: rotas de mutação responderão 503."
    )

if __name__ == "__main__":
    app.run(
        host=os.getenv("FLASK_HOST", "127.0.0.1"),
        port=int(os.getenv("FLASK_PORT", 5000)),
        debug=bool(app.config.get("DEBUG", False)),
        threaded=True,
        use_reloader=False,
    )
