"""Entry point for the blobstore service.
Prepares the storage root and serves object RPCs for the transfer service.
"""

import asyncio
import signal
import sys

from common.logging_config import setup_logging
from blobstore import config
from blobstore.object_storage import ObjectStorage
from blobstore.grpc_server import create_server

logger = setup_logging('blobstore')


async def serve(storage: ObjectStorage) -> None:
    """
    Start and run gRPC server until terminated.
    """
    server = create_server(storage)
    listen_addr = f'{config.BLOBSTORE_HOST}:{config.BLOBSTORE_LISTEN_PORT}'
    server.add_insecure_port(listen_addr)

    logger.info(f"Starting blobstore on {listen_addr} (root={storage.root})")
    await server.start()

    async def shutdown(sig=None):
        if sig:
            logger.info(f"Received signal {sig}, shutting down...")
        await server.stop(config.SHUTDOWN_GRACE_SECONDS)
        logger.info("Blobstore stopped")

    if sys.platform != 'win32':
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, lambda s=sig: asyncio.create_task(shutdown(s)))

    await server.wait_for_termination()


def main() -> None:
    """Bootstrap blobstore service."""
    storage = ObjectStorage(config.BLOBSTORE_ROOT)
    storage.root.mkdir(parents=True, exist_ok=True)

    try:
        asyncio.run(serve(storage))
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt, blobstore shutdown complete")


if __name__ == "__main__":
    main()
