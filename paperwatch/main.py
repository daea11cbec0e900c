import asyncio
import sys
from paperwatch.runtime import Runtime
from paperwatch.services.logger import logger

async def run_once(dry_run: bool = False):
    runtime = Runtime()
    await runtime.start()
    try:
        return await runtime.worker.process_subscriptions(runtime.worker_config(dry_run=dry_run))
    finally:
        await runtime.stop()

def main():
    try:
        asyncio.run(run_once(dry_run="--dry-run" in sys.argv[1:]))
    except KeyboardInterrupt:
        logger.info("Stopped by user")
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        sys.exit(1)

if __name__ == "__main__":
    main()
