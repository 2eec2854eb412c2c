import asyncio
from loguru import logger
from typing import Callable, List, Optional, Union
from app.core.config import settings
from app.core.credentials import SettingsCredentialProvider, StaticCredentialProvider
from app.core.errors import DebridError
from app.services.alldebrid import AllDebridService
from app.services.base import DebridClient
from app.services.models import (
    Failed,
    MagnetRecord,
    MagnetSubmission,
    Ready,
    ResolutionOutcome,
    ResolutionProgress,
    ResolutionState,
    ResolvedFile,
    TimedOut,
)
from app.utils.parser import filter_videos, flatten_files

ProgressCallback = Callable[[ResolutionProgress], None]


class FileResolver:
    """
    Turns a ready magnet into a flat file list.
    v4.1 magnet/files first; only when that yields nothing, the legacy
    v4 status links are unlocked one by one.
    """
    def __init__(self, client: DebridClient, unlock_concurrency: Optional[int] = None):
        self.client = client
        self.unlock_concurrency = unlock_concurrency or settings.LEGACY_UNLOCK_CONCURRENCY

    async def resolve_files(self, magnet_id: int) -> List[ResolvedFile]:
        try:
            files = flatten_files(await self.client.fetch_files(magnet_id))
        except DebridError as e:
            logger.warning(f"v4.1 listing raised for magnet {magnet_id}: {e.message}")
            files = []

        if files:
            logger.info(f"v4.1 listing returned {len(files)} file(s) for magnet {magnet_id}")
            return files

        # An empty listing and a failed one are indistinguishable here; both fall back.
        logger.warning(f"v4.1 listing empty for magnet {magnet_id}, falling back to legacy status + unlock")
        try:
            links = await self.client.fetch_legacy_links(magnet_id)
        except DebridError as e:
            logger.error(f"Legacy status failed for magnet {magnet_id}: {e.message}")
            return []

        if not links:
            return []
        return await self._unlock_all(links)

    async def _unlock_all(self, links: List[str]) -> List[ResolvedFile]:
        semaphore = asyncio.Semaphore(self.unlock_concurrency)

        async def unlock(link: str) -> Optional[ResolvedFile]:
            async with semaphore:
                try:
                    return await self.client.unlock_file(link)
                except DebridError as e:
                    logger.warning(f"Skipping link that failed to unlock: {e.message}")
                    return None

        # gather keeps input order
        results = await asyncio.gather(*(unlock(link) for link in links))
        unlocked = [f for f in results if f is not None]
        logger.info(f"Unlocked {len(unlocked)}/{len(links)} legacy link(s)")
        return unlocked


class MagnetResolver:
    """
    Drives one magnet from upload to a list of playable files.

    UPLOADING -> (ready) LISTING, or UPLOADING -> POLLING -> LISTING | TIMEOUT.
    Any DebridError from upload or status ends in FAILED.
    Status checks never overlap: each tick waits for the previous response,
    then sleeps whatever is left of the poll interval.
    Cancel the surrounding task to abort; nothing is reported afterwards.
    """
    def __init__(
        self,
        client: DebridClient,
        poll_interval: Optional[float] = None,
        max_attempts: Optional[int] = None,
        file_resolver: Optional[FileResolver] = None,
    ):
        self.client = client
        self.poll_interval = settings.POLL_INTERVAL_SECONDS if poll_interval is None else poll_interval
        self.max_attempts = settings.POLL_MAX_ATTEMPTS if max_attempts is None else max_attempts
        self.file_resolver = file_resolver or FileResolver(client)

    async def resolve(
        self,
        submission: Union[MagnetSubmission, str],
        on_progress: Optional[ProgressCallback] = None,
    ) -> ResolutionOutcome:
        if isinstance(submission, str):
            submission = MagnetSubmission(magnet_uri=submission)

        def report(state: ResolutionState, message: str, **fields) -> None:
            if on_progress is not None:
                on_progress(ResolutionProgress(
                    state=state, message=message, max_attempts=self.max_attempts, **fields
                ))

        try:
            report(ResolutionState.UPLOADING, "Uploading magnet to AllDebrid...")
            record = await self.client.upload(submission.magnet_uri)

            if not record.ready:
                ready_record = await self._wait_until_ready(record, report)
                if ready_record is None:
                    outcome = TimedOut(attempts=self.max_attempts)
                    logger.warning(f"Magnet {record.id} not cached after {self.max_attempts} checks")
                    report(ResolutionState.TIMEOUT, outcome.message,
                           magnet_id=record.id, attempt=self.max_attempts)
                    return outcome
                record = ready_record
        except DebridError as e:
            logger.error(f"Magnet resolution failed: {e.message}")
            outcome = Failed(reason=e.message, code=e.code)
            report(ResolutionState.FAILED, outcome.message)
            return outcome

        report(ResolutionState.LISTING, "Fetching files...", magnet_id=record.id)
        files = filter_videos(await self.file_resolver.resolve_files(record.id))
        outcome = Ready(files=files)
        state = ResolutionState.DONE if files else ResolutionState.DONE_EMPTY
        report(state, outcome.message, magnet_id=record.id)
        return outcome

    async def _wait_until_ready(self, record: MagnetRecord, report) -> Optional[MagnetRecord]:
        loop = asyncio.get_running_loop()
        magnet_id = record.id
        report(ResolutionState.POLLING, "Waiting for AllDebrid to cache...",
               magnet_id=magnet_id, status_code=record.status_code)

        delay = self.poll_interval
        for attempt in range(1, self.max_attempts + 1):
            await asyncio.sleep(delay)
            started = loop.time()
            record = await self.client.fetch_status(magnet_id)

            if record.ready:
                logger.info(f"Magnet {magnet_id} ready after {attempt} check(s)")
                return record
            if attempt >= self.max_attempts:
                break

            if attempt == 1 or attempt % 5 == 0:
                logger.info(f"Magnet {magnet_id} caching ({attempt}/{self.max_attempts}): {record.status_message}")
            report(ResolutionState.POLLING,
                   f"Caching... ({attempt}/{self.max_attempts}) - Status: {record.status_code}",
                   magnet_id=magnet_id, attempt=attempt, status_code=record.status_code)
            delay = max(0.0, self.poll_interval - (loop.time() - started))

        return None


async def resolve_magnet(
    magnet_uri: str,
    api_key: Optional[str] = None,
    on_progress: Optional[ProgressCallback] = None,
) -> ResolutionOutcome:
    """
    One-shot resolution with its own HTTP client.
    A client-supplied key wins over ALLDEBRID_API_KEY.
    """
    credentials = StaticCredentialProvider(api_key) if api_key else SettingsCredentialProvider()
    async with AllDebridService(credentials=credentials) as client:
        return await MagnetResolver(client).resolve(magnet_uri, on_progress)


async def unlock_link(link: str, api_key: Optional[str] = None) -> str:
    credentials = StaticCredentialProvider(api_key) if api_key else SettingsCredentialProvider()
    async with AllDebridService(credentials=credentials) as client:
        return await client.unlock_link(link)
