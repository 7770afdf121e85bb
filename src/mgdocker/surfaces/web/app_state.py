import logging
from dataclasses import dataclass
from typing import Optional

from ...core.config import AppConfig
from ...core.dispatcher import TaskDispatcher
from ...core.event_bus import EventBus
from ...core.logging_utils import setup_logging
from ...core.runner import TaskRunner
from ...core.session import StreamSessionManager
from ...core.tracker import TaskTracker
from ...integrations.docker import DockerCli


@dataclass(frozen=True)
class AppContext:
    config: AppConfig
    logger: logging.Logger
    docker: DockerCli
    bus: EventBus
    dispatcher: TaskDispatcher
    runner: TaskRunner
    tracker: TaskTracker
    sessions: StreamSessionManager


def build_app_context(
    config: AppConfig,
    *,
    docker: Optional[DockerCli] = None,
    bus: Optional[EventBus] = None,
    configure_logging: bool = True,
) -> AppContext:
    if configure_logging:
        logger = setup_logging(
            level=config.log.level,
            path=config.log.path,
            max_bytes=config.log.max_bytes,
            backup_count=config.log.backup_count,
        )
    else:
        logger = logging.getLogger("mgdocker")
    docker = docker or DockerCli(docker_binary=config.docker.binary)
    bus = bus or EventBus(capacity=config.bus.capacity)
    dispatcher = TaskDispatcher(docker)
    runner = TaskRunner(dispatcher, docker.spawn)
    tracker = TaskTracker(bus, runner, single_flight=config.tasks.single_flight)
    sessions = StreamSessionManager(
        bus,
        runner,
        tracker,
        cancel_on_disconnect=config.tasks.cancel_on_disconnect,
    )
    return AppContext(
        config=config,
        logger=logger,
        docker=docker,
        bus=bus,
        dispatcher=dispatcher,
        runner=runner,
        tracker=tracker,
        sessions=sessions,
    )


def apply_app_context(app, context: AppContext) -> None:
    app.state.context = context
    app.state.config = context.config
    app.state.logger = context.logger
    app.state.docker = context.docker
    app.state.bus = context.bus
    app.state.dispatcher = context.dispatcher
    app.state.runner = context.runner
    app.state.tracker = context.tracker
    app.state.sessions = context.sessions
