"""Wire sorcerer components together from configuration."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from langchain_core.language_models import BaseChatModel

from .config import Config
from .crawler import DefinitionAnalyzer, DefinitionCrawler
from .errors import NotFoundError
from .generation import UnitTestEnhancer, UnitTestFixer, generator_class_for
from .intelligence import AstCodeIntelligence, find_workspace_root
from .llm import (
    FunctionChain,
    FunctionInvocationEmitter,
    SessionChatAPI,
    build_chat_model,
    create_calculator_functions,
    create_code_definition_functions,
    create_test_runner_functions,
    create_workspace_functions,
)
from .output import Outputter
from .project import ProjectTools
from .runners import PytestTestRunner, RemoteTestRunner, UnitTestRunner
from .sorcerer import Sorcerer

logger = logging.getLogger(__name__)


class SorcererApp:
    """The assembled component graph for one target file.

    Use as a context manager so the crawler's workspace cache and the test
    runner are released when the run ends.
    """

    def __init__(
        self,
        sorcerer: Sorcerer,
        crawler: DefinitionCrawler,
        runner: UnitTestRunner,
        components: list[Outputter],
    ):
        self.sorcerer = sorcerer
        self.crawler = crawler
        self.runner = runner
        self.components = components

    def run(self) -> bool:
        return self.sorcerer.generate()

    def close(self) -> None:
        self.crawler.close()
        self.runner.close()

    def __enter__(self) -> "SorcererApp":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


def create_crawler(config: Config) -> tuple[DefinitionCrawler, DefinitionAnalyzer]:
    """Build the definition crawler and analyzer (no LLM needed)."""
    provider = AstCodeIntelligence(ignored_dirs=config.crawler.ignored_dirs)
    crawler = DefinitionCrawler(
        provider,
        excluded_namespaces=config.crawler.excluded_namespaces,
        priority_projects=config.crawler.priority_projects,
        skip_own_types=config.crawler.skip_own_types,
    )
    analyzer = DefinitionAnalyzer(crawler, supplements=config.crawler.supplements)
    return crawler, analyzer


def create_runner(config: Config) -> UnitTestRunner:
    if config.sorcerer.mode == "remote":
        return RemoteTestRunner(config.runner)
    return PytestTestRunner(config.runner)


def create_chat_api(
    config: Config,
    file_to_test: str | Path,
    model: Optional[BaseChatModel] = None,
    debug: bool = False,
    crawler: Optional[DefinitionCrawler] = None,
    analyzer: Optional[DefinitionAnalyzer] = None,
    runner: Optional[UnitTestRunner] = None,
) -> tuple[SessionChatAPI, FunctionInvocationEmitter]:
    """Build the chat API, registering functions when they are enabled.

    Args:
        config: Application configuration
        file_to_test: Target file; its workspace bounds the file functions
        model: Chat model to use instead of building one from ``config.llm``
        debug: Enable verbose model logging
        crawler: Crawler exposed as get_code_definitions_for_files (with ``analyzer``)
        runner: Runner exposed as run_unit_tests

    Returns:
        The chat API and the emitter reporting its function invocations
    """
    emitter = FunctionInvocationEmitter()
    chat_model = model or build_chat_model(config.llm, debug=debug)

    functions = []
    prompting_functions = []
    if config.llm.enable_functions:
        try:
            root = find_workspace_root(file_to_test)
        except NotFoundError:
            root = Path(file_to_test).resolve().parent
        functions.extend(create_calculator_functions())
        functions.extend(create_workspace_functions(root))
        if crawler is not None and analyzer is not None:
            functions.extend(
                create_code_definition_functions(crawler, analyzer, config.generation.context_search_depth)
            )
        if runner is not None:
            functions.extend(create_test_runner_functions(runner, root))
        prompting_functions.append(FunctionChain())

    api = SessionChatAPI(
        chat_model,
        functions=functions,
        prompting_functions=prompting_functions,
        emitter=emitter,
        max_function_rounds=config.llm.max_function_rounds,
        transmit_function_results=config.llm.transmit_function_results,
    )
    return api, emitter


def create_sorcerer_app(
    config: Config,
    model: Optional[BaseChatModel] = None,
    runner: Optional[UnitTestRunner] = None,
    debug: bool = False,
) -> SorcererApp:
    """Assemble a :class:`SorcererApp` for ``config.sorcerer.file_to_test``.

    Raises:
        ValueError: If no file is configured or its language is unsupported
    """
    file_to_test = config.sorcerer.file_to_test
    if not file_to_test:
        raise ValueError("No file to test configured")

    generator_class = generator_class_for(file_to_test)
    crawler, analyzer = create_crawler(config)
    runner = runner or create_runner(config)
    api, emitter = create_chat_api(
        config, file_to_test, model=model, debug=debug, crawler=crawler, analyzer=analyzer, runner=runner
    )

    generator = generator_class(config.generation, api, crawler, analyzer)
    fixer = UnitTestFixer(config.generation, api)
    enhancer = UnitTestEnhancer(config.generation, api)
    project_tools = ProjectTools(config.generation)

    sorcerer = Sorcerer(config.sorcerer, generator, fixer, runner, enhancer, project_tools)
    logger.debug(
        "Created %s with %s in %s mode", type(generator).__name__, type(runner).__name__, config.sorcerer.mode
    )

    components: list[Outputter] = [sorcerer, generator, fixer, enhancer, crawler, analyzer, emitter]
    if isinstance(runner, Outputter):
        components.append(runner)
    return SorcererApp(sorcerer, crawler, runner, components)
