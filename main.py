import argparse
import asyncio
import signal
import sys

from core.initialization import initialize_components, load_configuration
from utils.logger import set_log_role, setup_logger

ROLES = ("engine", "monitor", "store")


async def run_role(role: str, env_path: str = "config.env") -> None:
    """
    Entrypoint coroutine for one process role.

    engine  - websocket feed, scan loop, sole writer of the store
    monitor - read-only exit monitor polling REST prices
    store   - HTTP state store backed by SQLite
    """
    config = load_configuration(env_path)
    components = initialize_components(config, role=role)
    logger = components["logger"]

    loop = asyncio.get_running_loop()
    stop_event = asyncio.Event()

    def _request_stop() -> None:
        logger.info("Shutdown signal received")
        stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _request_stop)
        except NotImplementedError:
            # Windows event loops have no add_signal_handler
            pass

    if role == "store":
        server = components["server"]
        await server.start()
        try:
            await stop_event.wait()
        finally:
            await server.stop()
            components["state_store"].close()
        return

    runner = components["engine"] if role == "engine" else components["monitor"]
    task = asyncio.create_task(runner.run())
    stopper = asyncio.create_task(stop_event.wait())
    done, _ = await asyncio.wait({task, stopper}, return_when=asyncio.FIRST_COMPLETED)
    if stopper in done:
        runner.stop()
        await task
    else:
        stopper.cancel()
        # re-raise whatever ended the loop early
        task.result()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Paper position tracker")
    parser.add_argument("role", nargs="?", default="engine", choices=ROLES)
    parser.add_argument("--env", default="config.env", help="path to the .env config file")
    args = parser.parse_args(argv)

    set_log_role(args.role)
    logger = setup_logger("PaperTrader")
    try:
        asyncio.run(run_role(args.role, args.env))
    except KeyboardInterrupt:
        logger.info("Interrupted")
    except Exception:
        logger.exception("❌ %s terminated due to error", args.role)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
