"""Command line interface for Site Chat Server.

Usage:
    site-chat serve [--prepare URL] [--host HOST] [--port PORT] [-v]
    site-chat prepare URL [-v]
    site-chat chat URL [-v]
"""

import logging
import sys

import click

from .config import ServerConfig
from .errors import SiteChatError
from .server import SiteChatServer, build_session_manager


def _configure_logging(verbose: bool):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
    )
    # Suppress noisy libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("botocore").setLevel(logging.WARNING)


@click.group()
@click.option("--env-prefix", default="", help="Prefix for environment variables (e.g. SITECHAT_).")
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose (DEBUG) logging.")
@click.pass_context
def main(ctx, env_prefix, verbose):
    """Chat with any website, grounded in its own content."""
    _configure_logging(verbose)
    ctx.obj = ServerConfig.from_env(env_prefix)


@main.command()
@click.option("--host", default=None, help="Host to bind to (default: HOST or 127.0.0.1).")
@click.option("--port", type=int, default=None, help="Port to listen on (default: PORT or 3000).")
@click.option("--prepare", "prepare_url", default=None, help="Prepare this site before accepting requests.")
@click.pass_obj
def serve(config, host, port, prepare_url):
    """Run the HTTP API."""
    server = SiteChatServer(config)
    if prepare_url:
        try:
            result = server.sessions.get().prepare_site(prepare_url)
        except SiteChatError as e:
            click.echo(f"Warning: failed to prepare {prepare_url}: {e}", err=True)
        else:
            click.echo(f"Prepared {result.site_url} ({result.num_passages} passages)")
    server.run(port=port, host=host)


@main.command()
@click.argument("url")
@click.pass_obj
def prepare(config, url):
    """Crawl and index URL (or load it from cache)."""
    session = build_session_manager(config).get()
    try:
        result = session.prepare_site(url)
    except SiteChatError as e:
        raise click.ClickException(str(e)) from e
    source = "cache" if result.from_cache else "a fresh crawl"
    click.echo(f"Prepared {result.site_url} from {source}: {result.num_passages} passages")


@main.command()
@click.argument("url")
@click.pass_obj
def chat(config, url):
    """Prepare URL, then answer questions interactively (Ctrl-D to quit)."""
    session = build_session_manager(config).get()
    try:
        session.prepare_site(url)
    except SiteChatError as e:
        raise click.ClickException(str(e)) from e

    click.echo(f"Ready to answer questions about {url}.")
    while True:
        try:
            question = click.prompt("You", prompt_suffix="> ")
        except (EOFError, click.Abort):
            click.echo()
            break
        try:
            click.echo(f"Bot> {session.answer(question)}")
        except SiteChatError as e:
            click.echo(f"Error: {e}", err=True)


if __name__ == "__main__":
    main()
