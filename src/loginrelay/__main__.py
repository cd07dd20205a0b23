"""Allow ``python -m loginrelay``."""

from loginrelay.cli.main import main

main()
