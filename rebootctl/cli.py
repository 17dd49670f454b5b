import logging
import sys
from typing import Optional

import typer

from rebootctl import __version__
from rebootctl.commands import preflight, reboot
from rebootctl.logging import setup_logging

app = typer.Typer(help="Gracefully reboot OpenShift nodes in controlled batches.")

# Global verbose flag
verbose_mode = False

app.add_typer(reboot.app, name="reboot")
app.add_typer(preflight.app, name="preflight")


def _version_callback(value: bool):
    if value:
        typer.echo(f"rebootctl {__version__}")
        raise typer.Exit()


# Global options callback
@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    log_file: Optional[str] = typer.Option(None, "--log-file", "-l", help="Also write logs to this file"),
    no_color: bool = typer.Option(False, "--no-color", "-c", help="Disable colored output"),
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Show the version and exit"
    ),
):
    """rebootctl - graceful node reboots for OpenShift clusters."""
    global verbose_mode
    verbose_mode = verbose
    logger = setup_logging(verbose=verbose, log_file=log_file, use_colors=not no_color)
    if verbose:
        logger.debug("Debug mode enabled")


if __name__ == "__main__":
    try:
        app()
    except Exception as e:
        logging.getLogger("rebootctl").error("Error: %s", e, exc_info=verbose_mode)
        sys.exit(1)
