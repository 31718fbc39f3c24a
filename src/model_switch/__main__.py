"""Allow ``python -m model_switch``."""

from model_switch.frontends.cli.main import main

main()
