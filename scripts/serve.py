"""Script to run the AITrader API under uvicorn."""

import sys
from pathlib import Path

import uvicorn

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from aitrader.config import get_config
from aitrader.logger import setup_logging_from_config


def main(host: str = "127.0.0.1", port: int = 8000, reload: bool = False):
    setup_logging_from_config(get_config())
    uvicorn.run("aitrader.api.server:create_app", factory=True, host=host, port=port, reload=reload)


if __name__ == '__main__':
    import argparse

    parser = argparse.ArgumentParser(description='Run the AITrader API server')
    parser.add_argument('--host', type=str, default='127.0.0.1', help='Bind address')
    parser.add_argument('--port', type=int, default=8000, help='Port')
    parser.add_argument('--reload', action='store_true', help='Reload on code changes')

    args = parser.parse_args()
    main(args.host, args.port, args.reload)
