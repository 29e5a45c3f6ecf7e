"""Allow `python -m kairos`."""

from .main import main

main()
