"""Allow ``python -m fileready.cli`` execution."""

from fileready.cli.manage import main

main()
