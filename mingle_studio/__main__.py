"""
Run the studio HTTP API:

    python -m mingle_studio [--host HOST] [--port PORT] [--config PATH]
"""

import argparse

from aiohttp import web

from .config_manager import ConfigManager
from .orchestrator import build_orchestrator
from .server import create_app
from .studio_logger import logger


def main(argv=None):
    parser = argparse.ArgumentParser(prog="mingle_studio", description="Mingle Studio generation API")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8188)
    parser.add_argument("--config", default=None, help="Path to api_config.yaml")
    parser.add_argument("--secrets", default=None, help="Path to secrets.yaml")
    args = parser.parse_args(argv)

    config_manager = ConfigManager(args.config, args.secrets)
    problems = config_manager.validate_config()
    for problem in problems:
        logger.warning(f"⚠️ Config: {problem}")

    app = create_app(build_orchestrator(config_manager))
    web.run_app(app, host=args.host, port=args.port)


if __name__ == "__main__":
    main()
