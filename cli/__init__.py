"""Command line client for the signal monitor API.

The Typer application lives in ``cli.app`` and is not re-exported here, so
``cli.app`` keeps resolving to the module that tests patch.
"""
