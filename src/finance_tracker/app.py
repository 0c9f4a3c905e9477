import asyncio
import os
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from finance_tracker.api.routes import events, parse, sync, transactions
from finance_tracker.core import settings
from finance_tracker.errors import ClientDataError, TransientError
from finance_tracker.integration.channel import RealtimeChannel
from finance_tracker.integration.ocr import OcrClient
from finance_tracker.integration.remote import RemoteStore
from finance_tracker.logger import get_logger, setup_logging
from finance_tracker.manager import ParserService
from finance_tracker.services.ingest import TextIngestor
from finance_tracker.services.view import TransactionView
from finance_tracker.sync.cache import DurableCache
from finance_tracker.sync.mutations import OptimisticMutations
from finance_tracker.sync.realtime import RealtimeMerger
from finance_tracker.sync.reconciler import Reconciler
from finance_tracker.sync.session import SyncSession

logger = get_logger(__name__)


async def resolve_user(session: SyncSession, remote: RemoteStore) -> str | None:
    """Configured user first, then the remote store's signed-in user, then the cached one."""
    if settings.USER_EMAIL:
        return settings.USER_EMAIL
    if remote.configured:
        try:
            current = await remote.current_user()
        except (TransientError, ClientDataError) as exc:
            logger.warning("[SESSION] Could not fetch the signed-in user: %s", exc)
        else:
            email = (current or {}).get("email")
            if email:
                return str(email)
    return session.user


def create_app() -> FastAPI:
    setup_logging()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        logger.info("Initializing services...")
        settings.log_environment()

        if not os.getenv("API_BASE_URL"):
            logger.warning("API_BASE_URL not set. Working offline against the local cache only.")

        session = SyncSession(DurableCache(settings.CACHE_DIR))
        await session.load()

        remote = RemoteStore(timeout=settings.REQUEST_TIMEOUT_SECONDS)
        reconciler = Reconciler(session, remote)
        mutations = OptimisticMutations(session, reconciler)
        merger = RealtimeMerger(session)
        view = TransactionView(session, debounce_seconds=settings.SEARCH_DEBOUNCE_MS / 1000)
        ocr = OcrClient()
        ingestor = TextIngestor(ParserService(), ocr)

        user = await resolve_user(session, remote)
        if user != session.user:
            await session.set_user(user)
        if remote.configured:
            await session.refresh(remote)

        session.connectivity.on_online(reconciler.request_flush)

        channel: RealtimeChannel | None = None
        realtime_url = os.getenv("REALTIME_URL")
        if realtime_url:

            def on_connect() -> None:
                session.channel_connected = True
                reconciler.request_flush()

            def on_disconnect() -> None:
                session.channel_connected = False

            channel = RealtimeChannel(
                realtime_url,
                merger.handle_message,
                on_connect=on_connect,
                on_disconnect=on_disconnect,
                token=os.getenv("API_TOKEN"),
                reconnect_attempts=settings.REALTIME_RECONNECT_ATTEMPTS,
            )
            channel.start()
        else:
            logger.info("REALTIME_URL not set. Push updates disabled.")

        periodic: asyncio.Task | None = None
        if settings.SYNC_INTERVAL_SECONDS > 0:
            periodic = asyncio.create_task(reconciler.run_periodic(settings.SYNC_INTERVAL_SECONDS))

        reconciler.request_flush()

        app.state.session = session
        app.state.remote = remote
        app.state.reconciler = reconciler
        app.state.mutations = mutations
        app.state.merger = merger
        app.state.view = view
        app.state.ingestor = ingestor

        logger.info("Services initialized.")
        yield
        logger.info("Service shutting down.")

        if periodic is not None:
            periodic.cancel()
            try:
                await periodic
            except asyncio.CancelledError:
                pass
        if channel is not None:
            await channel.stop()
        await reconciler.wait_idle()
        await remote.aclose()
        await ocr.aclose()

    app = FastAPI(title="Finance Tracker", lifespan=lifespan)

    app.include_router(transactions.router)
    app.include_router(sync.router)
    app.include_router(parse.router)
    app.include_router(events.router)

    return app


app = create_app()
