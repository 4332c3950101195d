"""Allow ``python -m rampforge``."""

from rampforge.cli.app import app

app()
