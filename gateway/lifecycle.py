"""
Жизненный цикл процесса: запуск uvicorn и корректная остановка.

Состояния: RUNNING -> DRAINING -> CLOSED.

SIGINT и SIGTERM ведут в одну точку входа ShutdownCoordinator.shutdown():
    1. DRAINING — ждём закрытия пула БД (ошибки пишутся в лог,
       остановка продолжается)
    2. CLOSED — закрываем слушающий сокет; ошибка закрытия даёт
       код выхода 1, иначе 0

Повторный сигнал во время остановки ничего не делает.
"""

import asyncio
import logging
import signal
from enum import Enum
from typing import Awaitable, Callable, Optional

import uvicorn

from gateway.errors import ShutdownFailure

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_STARTUP_FAILURE = 3


class LifecycleState(str, Enum):
    RUNNING = "running"
    DRAINING = "draining"
    CLOSED = "closed"


class ShutdownCoordinator:
    """
    Единственный владелец состояния жизненного цикла.

    Args:
        drain: корутина, освобождающая пул соединений БД
        close: корутина, закрывающая слушающий сокет
    """

    def __init__(
        self,
        drain: Callable[[], Awaitable[None]],
        close: Callable[[], Awaitable[None]],
    ):
        self._drain = drain
        self._close = close
        self._state = LifecycleState.RUNNING
        self._closed = asyncio.Event()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._task: Optional[asyncio.Task] = None
        self.exit_code: Optional[int] = None

    @property
    def state(self) -> LifecycleState:
        return self._state

    def bind(self, loop: asyncio.AbstractEventLoop) -> None:
        """Привязывает координатор к event loop, в котором работает сервер."""
        self._loop = loop

    def trigger(self, signame: str) -> None:
        """
        Точка входа из обработчика сигнала.

        Планирует shutdown() в event loop; сам обработчик сигнала
        не ждёт и не меняет состояние.

        Raises:
            RuntimeError: координатор не привязан к event loop через bind()
        """
        if self._loop is None:
            raise RuntimeError("ShutdownCoordinator is not bound to an event loop")
        self._loop.call_soon_threadsafe(self._start, signame)

    def _start(self, signame: str) -> None:
        if self._state is not LifecycleState.RUNNING:
            logger.warning(
                f"{signame} получен в состоянии {self._state.value}: остановка уже идёт"
            )
            return
        self._task = asyncio.ensure_future(self.shutdown(signame))

    async def shutdown(self, signame: str = "shutdown") -> Optional[int]:
        """
        Выполняет остановку. Единственный метод, меняющий состояние.

        Returns:
            int: код выхода процесса; None, если остановка уже идёт
        """
        if self._state is not LifecycleState.RUNNING:
            logger.warning(
                f"{signame}: повторная остановка в состоянии {self._state.value} пропущена"
            )
            return None

        logger.info(f"{signame} получен, корректная остановка")
        self._state = LifecycleState.DRAINING

        try:
            await self._drain()
        except Exception as e:
            failure = ShutdownFailure("drain", e)
            logger.error(f"Ошибка закрытия пула БД: {failure.message}", exc_info=e)

        self._state = LifecycleState.CLOSED

        try:
            await self._close()
        except Exception as e:
            failure = ShutdownFailure("close", e)
            logger.error(f"Ошибка закрытия сервера: {failure.message}", exc_info=e)
            exit_code = EXIT_FAILURE
        else:
            logger.info("Сервер остановлен")
            exit_code = EXIT_OK

        self.exit_code = exit_code
        self._closed.set()
        return exit_code

    async def wait_closed(self) -> int:
        """Ждёт завершения остановки и возвращает код выхода."""
        await self._closed.wait()
        return self.exit_code


class GatewayServer(uvicorn.Server):
    """
    uvicorn.Server, у которого SIGINT/SIGTERM ведут в ShutdownCoordinator.

    Штатный обработчик uvicorn сразу выставляет should_exit; здесь
    сокет закрывается только после освобождения пула БД.
    """

    coordinator: Optional[ShutdownCoordinator] = None

    def handle_exit(self, sig, frame) -> None:
        if self.coordinator is None:
            super().handle_exit(sig, frame)
            return
        self.coordinator.trigger(signal.Signals(sig).name)


async def _run_server(server: uvicorn.Server) -> None:
    """
    Запускает uvicorn.Server.serve().

    При ошибке bind uvicorn вызывает sys.exit(1); SystemExit из задачи
    вылетел бы мимо serve() прямо из event loop, поэтому здесь он
    превращается в обычное завершение с server.started == False.
    """
    try:
        await server.serve()
    except SystemExit as e:
        logger.error(f"Сервер не запустился (код {e.code})")


async def serve(
    app,
    host: str,
    port: int,
    drain: Callable[[], Awaitable[None]],
) -> int:
    """
    Запускает HTTP сервер и ждёт его остановки.

    Args:
        app: ASGI приложение
        host: адрес для прослушивания
        port: порт
        drain: корутина освобождения пула БД

    Returns:
        int: код выхода процесса
    """
    config = uvicorn.Config(app, host=host, port=port, log_config=None)
    server = GatewayServer(config)
    serve_task = asyncio.create_task(_run_server(server))

    async def close_listener() -> None:
        server.should_exit = True
        await serve_task

    coordinator = ShutdownCoordinator(drain=drain, close=close_listener)
    coordinator.bind(asyncio.get_running_loop())
    server.coordinator = coordinator

    closed_task = asyncio.create_task(coordinator.wait_closed())
    await asyncio.wait({serve_task, closed_task}, return_when=asyncio.FIRST_COMPLETED)

    if coordinator.state is not LifecycleState.RUNNING:
        return await closed_task

    # Сервер остановился без сигнала: ошибка запуска или работы
    closed_task.cancel()
    exc = serve_task.exception()
    if exc is not None:
        logger.error(f"Сервер завершился с ошибкой: {exc}", exc_info=exc)
        return EXIT_FAILURE
    return EXIT_OK if server.started else EXIT_STARTUP_FAILURE
