"""Module entry point: ``python -m vmdeck``."""

from vmdeck.cli import main

raise SystemExit(main())
