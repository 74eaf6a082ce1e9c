"""
crelay CLI - Relay Card Control

Command-line interface using Click.
"""

import logging
import logging.handlers
import os
import sys

import click

from . import __version__
from .backends.base import RelayState, card_name, create_backends, list_backends
from .config import load_config
from .detect import detect_all_cards, format_card_list
from .errors import ConfigError, DeviceUnavailable, RelayCardNotFound, RelayError
from .session import RelaySession

log = logging.getLogger(__name__)

SYSLOG_SOCKET = "/dev/log"


# --------------------------------------------------------------------------
# Helpers
# --------------------------------------------------------------------------

def _setup_logging(verbose: bool, daemon: bool = False):
    level = logging.DEBUG if verbose else (logging.INFO if daemon else logging.WARNING)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    logging.getLogger().setLevel(level)

    if daemon and os.path.exists(SYSLOG_SOCKET):
        handler = logging.handlers.SysLogHandler(
            address=SYSLOG_SOCKET, facility=logging.handlers.SysLogHandler.LOG_DAEMON)
        handler.setFormatter(logging.Formatter("crelay: %(message)s"))
        logging.getLogger().addHandler(handler)


def _fail(message: str):
    click.echo(message, err=True)
    sys.exit(1)


def _root_hint() -> str:
    if hasattr(os, "geteuid") and os.geteuid() != 0:
        return ("\nWarning: This program is not running as root; "
                "check the permissions of the USB device nodes.")
    return ""


def _no_card():
    _fail("No compatible device detected." + _root_hint())


def _relay_error(e: RelayError):
    hint = _root_hint() if isinstance(e, DeviceUnavailable) else ""
    _fail(f"Error: {e}{hint}")


def _session(ctx) -> RelaySession:
    config = ctx.obj['config']
    return RelaySession(config, create_backends(config))


def _detect(ctx) -> RelaySession:
    session = _session(ctx)
    try:
        session.detect(ctx.obj['serial'])
    except RelayCardNotFound:
        _no_card()
    return session


# --------------------------------------------------------------------------
# CLI Group
# --------------------------------------------------------------------------

@click.group()
@click.version_option(version=__version__)
@click.option('-v', '--verbose', is_flag=True, help='Verbose output')
@click.option('-c', '--config', 'config_path', type=click.Path(dir_okay=False),
              help='Config file (default: $CRELAY_CONFIG or /etc/crelay.conf)')
@click.option('-s', '--serial', help='Use the card with this serial number')
@click.pass_context
def cli(ctx, verbose, config_path, serial):
    """crelay - Relay Card Control

    A unified way of controlling different types of relay cards.
    The card which is detected first is used unless a serial number is given.
    """
    ctx.ensure_object(dict)
    ctx.obj['verbose'] = verbose
    ctx.obj['serial'] = serial
    ctx.obj['config_path'] = config_path

    if ctx.invoked_subcommand != 'daemon':
        _setup_logging(verbose)

    try:
        ctx.obj['config'] = load_config(config_path)
    except ConfigError as e:
        _fail(f"Error: {e}")


# --------------------------------------------------------------------------
# Card Commands
# --------------------------------------------------------------------------

@cli.command()
def cards():
    """List supported relay card types."""
    click.echo("Currently supported relay cards:")
    for card_type in list_backends():
        click.echo(f"  - {card_name(card_type)}")


@cli.command()
@click.pass_context
def info(ctx):
    """List all connected relay cards."""
    config = ctx.obj['config']
    try:
        found = detect_all_cards(create_backends(config))
    except RelayCardNotFound:
        _no_card()

    for line in format_card_list(found):
        click.echo(line)


@cli.command()
@click.pass_context
def detect(ctx):
    """Detect the relay card to be used."""
    session = _detect(ctx)
    card = session.card
    click.echo(f"Detected relay card type is {card.name} "
               f"(on {card.port}, {card.num_relays} channels)")


# --------------------------------------------------------------------------
# Relay Commands
# --------------------------------------------------------------------------

@cli.command()
@click.argument('relay', type=int)
@click.pass_context
def get(ctx, relay):
    """Read the state of RELAY."""
    session = _detect(ctx)
    try:
        state = session.get_relay(relay, ctx.obj['serial'])
    except RelayError as e:
        _relay_error(e)

    click.echo(f"Relay {relay} is {'on' if state == RelayState.ON else 'off'}")


@cli.command(name='set')
@click.argument('relay', type=int)
@click.argument('state', type=click.Choice(['on', 'off', 'pulse'], case_sensitive=False))
@click.option('-d', '--duration', type=click.FloatRange(min=0), default=None,
              help='Pulse duration in seconds (default from config)')
@click.pass_context
def set_cmd(ctx, relay, state, duration):
    """Switch RELAY on, off or pulse it."""
    session = _detect(ctx)
    serial = ctx.obj['serial']
    try:
        if state.lower() == 'pulse':
            session.pulse(relay, serial, duration)
        else:
            new_state = RelayState.ON if state.lower() == 'on' else RelayState.OFF
            session.set_relay(relay, new_state, serial)
    except RelayError as e:
        _relay_error(e)


# --------------------------------------------------------------------------
# Daemon
# --------------------------------------------------------------------------

@cli.command()
@click.argument('labels', nargs=-1)
@click.option('--host', default=None, help='Listen address (default from config)')
@click.option('--port', type=int, default=None, help='Listen port (default from config)')
@click.pass_context
def daemon(ctx, labels, host, port):
    """Run the HTTP API (and the MQTT client if a broker is configured).

    Optional LABELS name the relays on the overview page.
    """
    from .web import create_app, serve

    _setup_logging(ctx.obj['verbose'], daemon=True)
    config = ctx.obj['config']

    relay_labels = list(config.http.labels)
    for index, label in enumerate(labels[:len(relay_labels)]):
        relay_labels[index] = label

    log.info("Starting crelay daemon (version %s)", __version__)
    session = _session(ctx)
    app = create_app(session, labels=relay_labels)

    mqtt_client = None
    if config.mqtt.enabled:
        from .mqtt import RelayMqttClient
        mqtt_client = RelayMqttClient(session, config.mqtt)
        mqtt_client.start()

    try:
        serve(app, host or config.http.iface, port or config.http.port)
    finally:
        if mqtt_client is not None:
            mqtt_client.stop()


def main():
    cli(obj={})


if __name__ == '__main__':
    main()
