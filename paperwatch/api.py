from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI, Header, HTTPException, Query

from paperwatch.config import settings
from paperwatch.runtime import Runtime
from paperwatch.services.logger import logger

def create_app(runtime: Optional[Runtime] = None) -> FastAPI:
    runtime = runtime or Runtime()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await runtime.start()
        yield
        await runtime.stop()

    app = FastAPI(title="paperwatch subscription worker", lifespan=lifespan)
    app.state.runtime = runtime

    def check_secret(authorization: Optional[str]):
        if settings.CRON_SECRET and authorization != f"Bearer {settings.CRON_SECRET}":
            logger.warning("Unauthorized cron request attempt")
            raise HTTPException(status_code=401, detail="Unauthorized")

    @app.api_route("/api/cron/subscriptions", methods=["GET", "POST"])
    async def trigger_subscriptions(
        authorization: Optional[str] = Header(default=None),
        max_subscriptions: Optional[int] = Query(default=None, alias="max", gt=0),
        dry_run: bool = Query(default=False, alias="dryRun"),
    ):
        check_secret(authorization)
        logger.info("Subscription cron job triggered")
        config = runtime.worker_config(max_subscriptions=max_subscriptions, dry_run=dry_run)
        result = await runtime.worker.process_subscriptions(config)
        return {"ok": True, **result.model_dump()}

    @app.get("/api/cron/subscriptions/status")
    async def worker_status(authorization: Optional[str] = Header(default=None)):
        check_secret(authorization)
        status = await runtime.worker.get_worker_status()
        return status.model_dump()

    return app

app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8001)
