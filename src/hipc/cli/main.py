"""
Main CLI entry point for hipc.
"""

import logging
import sys

from hipc.cli.enhanced_cli import main as enhanced_main

logger = logging.getLogger(__name__)


def main():
    """Main CLI entry point"""
    logger.debug("Starting hipc CLI")
    return enhanced_main()


if __name__ == "__main__":
    sys.exit(main() or 0)
