import sys

from taskboard_client.cli import run_cli

sys.exit(run_cli())
