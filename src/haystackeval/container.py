"\"\"\"Dependency injection container for the evaluation engine.\"\"\""

from __future__ import annotations

from pathlib import Path

from dependency_injector import containers, providers

from .core import EvaluationEngine, GridConfig, SessionRepository
from .pipeline import EvaluationPipeline
from .schemas.config import AppConfig, load_config
from .storage import InMemoryStore, JsonFileStore


class EvaluationContainer(containers.DeclarativeContainer):
    """Dependency-injector container definition."""

    config = providers.Configuration()

    grid_config = providers.Singleton(
        GridConfig,
        width=config.grid.width,
        height=config.grid.height,
        cell_width=config.grid.cell_width,
        cell_height=config.grid.cell_height,
        spacing=config.grid.spacing,
    )

    store = providers.Singleton(JsonFileStore, base_path=config.storage.path)

    repository = providers.Singleton(
        SessionRepository,
        store=store,
        key=config.session.storage_key,
        staleness_tolerance=config.session.staleness_tolerance,
        grid_config=grid_config,
    )

    engine = providers.Singleton(
        EvaluationEngine,
        repository=repository,
        grid_config=grid_config,
        batch_size=config.session.batch_size,
        wave_size=config.session.wave_size,
    )

    pipeline = providers.Factory(
        EvaluationPipeline,
        engine=engine,
        results_dir=providers.Factory(Path, config.storage.path),
    )


def create_container(
    *,
    settings: dict | None = None,
    state_dir: str | Path | None = None,
    in_memory: bool = False,
) -> EvaluationContainer:
    """Instantiate container with optional overrides."""

    app_config = load_config(settings) if settings else AppConfig()
    if state_dir is not None:
        app_config.storage.path = str(state_dir)

    container = EvaluationContainer()
    container.config.from_dict(app_config.to_settings())

    if in_memory:
        container.store.override(providers.Singleton(InMemoryStore))

    return container
