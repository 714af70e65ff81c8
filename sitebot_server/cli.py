"""Command line entry point: ``sitebot serve | crawl | search``."""

import json
import logging

import click

from .config import MissingCredentialError, ServerConfig
from .rag.config import RAGConfig
from .rag.embedder import BackendEmbeddings
from .rag.indexer import SiteIndex


def build_components(env_prefix: str = "", site: str | None = None) -> tuple[ServerConfig, SiteIndex]:
    """Load configuration from the environment and create the site index.

    Raises:
        click.ClickException: If the API key or site URL is missing, or the config is invalid
    """
    config = ServerConfig.from_env(env_prefix)
    try:
        config.validate()
    except MissingCredentialError as e:
        raise click.ClickException(str(e)) from e

    overrides = {"base_url": site} if site else {}
    try:
        rag_config = RAGConfig.from_env(env_prefix, **overrides)
    except ValueError as e:
        raise click.ClickException(f"Invalid RAG configuration: {e}") from e

    return config, SiteIndex(rag_config, BackendEmbeddings(config))


@click.group()
@click.option("--env-prefix", default="", help="Prefix for environment variables (e.g. SODERBOT_).")
@click.option("--site", default=None, help="Site URL to index (overrides SITE_URL).")
@click.option("-v", "--verbose", is_flag=True, help="Log at DEBUG level.")
@click.pass_context
def main(ctx, env_prefix, site, verbose):
    """Website knowledge-base assistant."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    ctx.obj = {"env_prefix": env_prefix, "site": site}


@main.command()
@click.option("--host", default=None, help="Host to bind to (default from HOST).")
@click.option("--port", default=None, type=int, help="Port to listen on (default from PORT).")
@click.option("--no-crawl", is_flag=True, help="Do not build the knowledge base on startup.")
@click.option("--debug", is_flag=True, help="Run Flask in debug mode.")
@click.pass_obj
def serve(obj, host, port, no_crawl, debug):
    """Run the HTTP server."""
    from .server import SiteBotServer

    config, index = build_components(obj["env_prefix"], obj["site"])
    SiteBotServer(config, index).run(port=port, host=host, debug=debug, crawl=not no_crawl)


@main.command()
@click.pass_obj
def crawl(obj):
    """Build one knowledge-base generation and print its size."""
    _, index = build_components(obj["env_prefix"], obj["site"])
    index.reindex()
    click.echo(json.dumps(index.stats(), indent=2))


@main.command()
@click.argument("query")
@click.option("--top-k", default=None, type=int, help="Number of chunks considered.")
@click.pass_obj
def search(obj, query, top_k):
    """Build the knowledge base, then print the context retrieved for QUERY."""
    _, index = build_components(obj["env_prefix"], obj["site"])
    index.reindex()

    result = index.search(query, top_k=top_k)
    if not result.ranked:
        click.echo("(no matching knowledge)")
        return

    for rank, scored in enumerate(result.ranked, 1):
        click.echo(
            f"{rank:2d}. score={scored.score:.4f} dense={scored.dense:.4f} "
            f"sparse={scored.sparse:.4f} #{scored.chunk.id} {scored.chunk.url}"
        )
    click.echo("")
    click.echo(result.context)


if __name__ == "__main__":
    main()
