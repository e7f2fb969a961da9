"""Main CLI entry point for Unit Test Sorcerer."""

import logging
import sys
from pathlib import Path

import click
from rich.console import Console

from .config import Config
from .errors import NotFoundError
from .factory import create_crawler, create_sorcerer_app
from .generation import build_context
from .models import EnhancementType
from .output import ConsoleOutputter

ENHANCEMENT_CHOICES = [enhancement.value for enhancement in EnhancementType]


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _load_config(config_dir: str | None, env: str | None) -> Config:
    return Config.load(config_dir, env)


@click.group()
def cli():
    """Unit Test Sorcerer - generate, run, fix and enhance unit tests with an LLM."""
    pass


@cli.command()
@click.argument("file_to_test", type=click.Path(exists=True, dir_okay=False))
@click.option("--depth", "-d", type=int, help="How many dependency hops to crawl for context")
@click.option("--max-fix-attempts", type=int, help="Fix attempts before giving up")
@click.option(
    "--enhance",
    "-e",
    multiple=True,
    type=click.Choice(ENHANCEMENT_CHOICES),
    help="Enhancement pass to apply after the tests pass (repeatable, in order)",
)
@click.option("--skip-existing", is_flag=True, help="Enhance existing tests instead of generating new ones")
@click.option("--mode", "-m", type=click.Choice(["local", "remote"]), help="Run tests locally or via a test server")
@click.option("--config", "config_dir", type=click.Path(exists=True, file_okay=False), help="Directory with sorcerer.yaml")
@click.option("--env", help="Configuration environment (selects sorcerer.<env>.yaml)")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.option("--no-color", is_flag=True, help="Disable colored output")
def generate(
    file_to_test: str,
    depth: int | None,
    max_fix_attempts: int | None,
    enhance: tuple[str, ...],
    skip_existing: bool,
    mode: str | None,
    config_dir: str | None,
    env: str | None,
    verbose: bool,
    no_color: bool,
):
    """Generate passing tests for FILE_TO_TEST.

    Examples:
        # Generate, run and fix tests for a module
        sorcerer generate src/pkg/calculator.py

        # Add coverage then re-verify
        sorcerer generate src/pkg/calculator.py -e coverage -e verify

        # Enhance the tests that already exist
        sorcerer generate src/pkg/calculator.py --skip-existing -e clean
    """
    _configure_logging(verbose)
    config = _load_config(config_dir, env)

    sorcerer_updates: dict = {"file_to_test": str(Path(file_to_test).resolve())}
    if max_fix_attempts is not None:
        sorcerer_updates["max_fix_attempts"] = max_fix_attempts
    if enhance:
        sorcerer_updates["enhancements"] = [EnhancementType(value) for value in enhance]
    if skip_existing:
        sorcerer_updates["skip_to_enhance_if_tests_exist"] = True
    if mode:
        sorcerer_updates["mode"] = mode

    generation = config.generation
    if depth is not None:
        generation = generation.model_copy(update={"context_search_depth": depth})

    config = config.model_copy(
        update={"sorcerer": config.sorcerer.model_copy(update=sorcerer_updates), "generation": generation}
    )

    if not config.llm.api_key and config.llm.provider != "litellm" and not config.llm.base_url:
        click.echo("Error: no API key set (LLM_API_KEY or the provider's key) in environment", err=True)
        sys.exit(1)

    sys.exit(_run_generate(config, no_color, verbose))


def _run_generate(config: Config, no_color: bool, debug: bool) -> int:
    console = Console(no_color=no_color, highlight=False)
    outputter = ConsoleOutputter(console)

    try:
        app = create_sorcerer_app(config, debug=debug)
    except (ValueError, NotFoundError) as e:
        click.echo(f"Error: {e}", err=True)
        return 1

    with app:
        outputter.attach(*app.components)
        with outputter.status("Conjuring tests..."):
            success = app.run()

        test_file = app.sorcerer.test_file_path
        if test_file is not None and test_file.is_file():
            language = "python" if test_file.suffix == ".py" else "typescript"
            outputter.code(test_file.read_text(encoding="utf-8"), language, str(test_file))

    return 0 if success else 1


@cli.command()
@click.argument("file_to_test", type=click.Path(exists=True, dir_okay=False))
@click.option("--depth", "-d", type=int, help="How many dependency hops to crawl for context")
@click.option("--show-context", is_flag=True, help="Print the rendered definition context")
@click.option("--config", "config_dir", type=click.Path(exists=True, file_okay=False), help="Directory with sorcerer.yaml")
@click.option("--env", help="Configuration environment (selects sorcerer.<env>.yaml)")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def analyze(
    file_to_test: str,
    depth: int | None,
    show_context: bool,
    config_dir: str | None,
    env: str | None,
    verbose: bool,
):
    """Crawl FILE_TO_TEST's dependencies and report what a prompt would include.

    No LLM calls are made.
    """
    _configure_logging(verbose)
    config = _load_config(config_dir, env)
    max_depth = depth if depth is not None else config.generation.context_search_depth
    target = Path(file_to_test).resolve()

    click.echo(f"🔍 Analyzing: {target}")
    crawler, analyzer = create_crawler(config)
    try:
        with crawler:
            definitions = crawler.find_definitions(target, max_depth)
            analysis = analyzer.analyze(definitions, target)
    except NotFoundError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo(f"   Definitions: {len(analysis.definitions)}")
    for definition in analysis.definitions:
        suffix = " (supplemented)" if definition.supplement else ""
        click.echo(f"     - {definition.full_name}{suffix}")
    click.echo(f"   Supplements: {analysis.supplements}")
    click.echo(f"   Context lines: {analysis.context_loc}")
    click.echo(f"   Total lines: {analysis.total_loc}")
    click.echo(f"   Test worthiness: {analysis.test_worthiness.value}")

    if show_context:
        click.echo("\n📋 Context:")
        click.echo(build_context(analysis))


if __name__ == "__main__":
    cli()
