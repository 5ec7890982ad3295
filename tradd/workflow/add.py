"""The add-torrent workflow: collect input, resolve duplicates, submit."""

import asyncio
import logging
from typing import Callable
from urllib.parse import unquote

from ..files import FileTree
from ..torrent.magnet import decode_magnet_link
from .capabilities import Capabilities
from .history import LocationHistory
from .models import (
    AddOptions,
    AddRequest,
    Blobs,
    ExistingMatch,
    InputSource,
    LocalPaths,
    MagnetOrUrl,
    SubmissionReport,
    TorrentBlob,
    TorrentDescriptor,
    TrackerMergeRequest,
    UnitResult,
    Unspecified,
    WorkflowState,
)
from .notify import SubmissionObserver
from .resolver import find_existing_torrent

logger = logging.getLogger(__name__)

# (unit label, descriptor or the error raised while reading it)
CollectedUnit = tuple[str, TorrentDescriptor | BaseException]

_OPEN_STATES = (
    WorkflowState.IDLE,
    WorkflowState.COLLECTING_INPUT,
    WorkflowState.RESOLVING,
    WorkflowState.READY,
)


def limit_names(names: list[str], limit: int = 5) -> list[str]:
    """Truncate a list of torrent names for display."""
    limited = names[:limit]
    if len(names) > limit:
        limited.append(f"... and {len(names) - limit} more")
    return limited


class AddTorrentWorkflow:
    """
    One add-torrent session, from raw input to dispatched requests.

    States:
        IDLE -> COLLECTING_INPUT -> RESOLVING -> READY -> SUBMITTING -> DONE

    FAILED and CANCELLED end the session early. A single descriptor whose
    info hash is already on the daemon switches the session to merging its
    trackers into the existing torrent instead of adding it.
    """

    TORRENT_EXTENSIONS = ["torrent"]

    def __init__(
        self,
        capabilities: Capabilities,
        history: LocationHistory | None = None,
        *,
        delete_added: bool = False,
        observer: SubmissionObserver | None = None,
        selection_factory: Callable[[TorrentDescriptor], FileTree] = FileTree.from_descriptor,
        options: AddOptions | None = None,
    ):
        """
        Initialize workflow.

        Args:
            capabilities: Reading, prompting, dispatch and notification callables
            history: Location history updated after adding
            delete_added: Delete local .torrent files once submitted
            observer: Result observer, defaults to one using capabilities.notify
            selection_factory: Builds the file selection for a descriptor
            options: Initial add options
        """
        self.capabilities = capabilities
        self.history = history
        self.delete_added = delete_added
        self.observer = observer or SubmissionObserver(capabilities.notify)
        self.selection_factory = selection_factory
        self.options = options or AddOptions()

        self.state = WorkflowState.IDLE
        self.descriptors: list[TorrentDescriptor] = []
        self.existing: ExistingMatch | None = None
        self.selection: FileTree | None = None
        self._generation = 0

    def _transition(self, state: WorkflowState) -> None:
        logger.debug(f"Add workflow: {self.state.value} -> {state.value}")
        self.state = state

    def _discard(self) -> None:
        self.descriptors = []
        self.existing = None
        self.selection = None

    # =========================================================================
    # Input collection
    # =========================================================================

    async def open(self, source: InputSource) -> WorkflowState:
        """Collect and resolve descriptors for an input source.

        Args:
            source: Link, local paths, uploaded blobs or Unspecified to prompt

        Returns:
            The resulting state: READY, CANCELLED or FAILED
        """
        if self.state != WorkflowState.IDLE:
            raise RuntimeError(f"Workflow already opened ({self.state.value})")

        generation = self._generation
        self._transition(WorkflowState.COLLECTING_INPUT)

        try:
            collected = await self._collect(source)
        except Exception as e:
            if generation != self._generation:
                return self.state
            self.observer.prompt_failed(e)
            self._transition(WorkflowState.FAILED)
            return self.state

        if generation != self._generation:
            logger.debug("Workflow closed while collecting input, discarding results")
            return self.state

        if collected is None:
            self._transition(WorkflowState.CANCELLED)
            return self.state

        descriptors = []
        for unit, outcome in collected:
            if isinstance(outcome, BaseException):
                self.observer.read_failed(unit, outcome)
            else:
                descriptors.append(outcome)

        if not descriptors:
            self._transition(WorkflowState.FAILED)
            return self.state

        self.descriptors = descriptors
        self._resolve()
        return self.state

    async def _collect(self, source: InputSource) -> list[CollectedUnit] | None:
        """Turn an input source into per-unit outcomes, None if nothing was given."""
        if isinstance(source, Unspecified):
            selected = await self.capabilities.prompt_for_paths(self.TORRENT_EXTENSIONS, True)
            if not selected:
                return None
            paths = [selected] if isinstance(selected, str) else list(selected)
            return await self._read_paths(paths)

        if isinstance(source, MagnetOrUrl):
            text = source.text.strip()
            if not text:
                return None
            if text.lower().startswith("file://"):
                return await self._read_paths([unquote(text[len("file://"):])])
            return [(text, self._decode_link(text))]

        if isinstance(source, LocalPaths):
            if not source.paths:
                return None
            return await self._read_paths(source.paths)

        if isinstance(source, Blobs):
            if not source.blobs:
                return None
            results = await asyncio.gather(
                *(self._read_blob(blob) for blob in source.blobs),
                return_exceptions=True,
            )
            return [(blob.name, result) for blob, result in zip(source.blobs, results)]

        raise TypeError(f"Unsupported input source: {source!r}")

    async def _read_paths(self, paths: list[str]) -> list[CollectedUnit]:
        # gather keeps input order regardless of completion order
        results = await asyncio.gather(
            *(self.capabilities.read_local_path(path) for path in paths),
            return_exceptions=True,
        )
        return list(zip(paths, results))

    async def _read_blob(self, blob: TorrentBlob) -> TorrentDescriptor:
        metadata = await self.capabilities.read_blob(blob)
        return TorrentDescriptor(metadata=metadata, name=blob.name)

    def _decode_link(self, text: str) -> TorrentDescriptor:
        magnet = decode_magnet_link(text)
        if magnet is None:
            logger.debug(f"Link is not a magnet or URL, passing to daemon as is: {text[:60]}")
            return TorrentDescriptor(url=text, name=text)
        return TorrentDescriptor(
            url=text,
            name=magnet.name or text,
            info_hash=magnet.hash,
            trackers=list(magnet.trackers),
        )

    def _resolve(self) -> None:
        self._transition(WorkflowState.RESOLVING)

        self.existing = find_existing_torrent(self.descriptors, self.capabilities.live_torrents())
        if self.existing is not None:
            logger.info(
                f"Torrent already exists on server: {self.existing.torrent.name} "
                f"(id {self.existing.torrent.id})"
            )
        elif len(self.descriptors) == 1 and self.descriptors[0].manifest is not None:
            self.selection = self.selection_factory(self.descriptors[0])

        self._transition(WorkflowState.READY)

    # =========================================================================
    # Ready
    # =========================================================================

    @property
    def torrent_exists(self) -> bool:
        return self.existing is not None

    @property
    def can_submit(self) -> bool:
        """Whether submit() would dispatch anything."""
        if self.state != WorkflowState.READY:
            return False
        if self.existing is not None:
            return len(self.existing.descriptor.trackers) > 0
        return True

    def display_names(self, limit: int = 1) -> list[str]:
        return limit_names([d.name for d in self.descriptors], limit)

    def close(self) -> None:
        """Abandon the session. In-flight reads finish but are ignored."""
        if self.state not in _OPEN_STATES:
            return
        self._generation += 1
        self._discard()
        self._transition(WorkflowState.CANCELLED)

    # =========================================================================
    # Submission
    # =========================================================================

    async def submit(self) -> SubmissionReport:
        """Dispatch add or tracker merge requests and close the session.

        Returns:
            SubmissionReport with the settled outcome of every unit

        Raises:
            RuntimeError: If the workflow is not ready or has nothing to submit
        """
        if self.state != WorkflowState.READY:
            raise RuntimeError(f"Cannot submit from state {self.state.value}")
        if not self.can_submit:
            raise RuntimeError("Torrent already exists and there are no trackers to add")

        self._transition(WorkflowState.SUBMITTING)

        if self.existing is not None:
            report = await self._merge(self.existing)
        else:
            report = await self._add_all(self.descriptors)

        self._discard()
        self._transition(WorkflowState.DONE)
        return report

    async def _merge(self, match: ExistingMatch) -> SubmissionReport:
        request = TrackerMergeRequest(
            torrent_id=match.torrent.id,
            trackers=list(match.descriptor.trackers),
        )
        logger.info(f"Adding {len(request.trackers)} trackers to torrent {request.torrent_id}")

        error: Exception | None = None
        try:
            await self.capabilities.dispatch_merge(request)
        except Exception as e:
            error = e

        self.observer.merge_settled(match, error)

        origin_path = match.descriptor.origin_path
        if self.delete_added and origin_path:
            self.capabilities.delete_file(origin_path)

        return SubmissionReport(merged=error is None, merge_error=error)

    def _build_request(self, descriptor: TorrentDescriptor, single: bool) -> AddRequest:
        unwanted = None
        if single and descriptor.manifest is not None and self.selection is not None:
            unwanted = self.selection.unwanted_indices()

        labels: list[str] = []
        for label in self.options.labels:
            if label and label not in labels:
                labels.append(label)

        return AddRequest(
            metainfo=descriptor.metadata or None,
            url=None if descriptor.metadata else descriptor.url,
            download_dir=self.options.download_dir,
            labels=labels,
            paused=not self.options.start,
            priority=self.options.priority,
            unwanted=unwanted,
            origin_path=descriptor.origin_path,
        )

    async def _add_all(self, descriptors: list[TorrentDescriptor]) -> SubmissionReport:
        single = len(descriptors) == 1
        requests = [self._build_request(d, single) for d in descriptors]
        logger.info(f"Adding {len(requests)} torrent(s) to {self.options.download_dir or 'default directory'}")

        async def dispatch(index: int, descriptor: TorrentDescriptor, request: AddRequest):
            try:
                result = await self.capabilities.dispatch_add(request)
            except Exception as e:
                return index, UnitResult(request=request, name=descriptor.name, error=e)
            return index, UnitResult(request=request, name=descriptor.name, result=result)

        units: list[UnitResult | None] = [None] * len(requests)
        tasks = [dispatch(i, d, r) for i, (d, r) in enumerate(zip(descriptors, requests))]

        # Report each unit as it settles, close only once all have
        for future in asyncio.as_completed(tasks):
            index, unit = await future
            units[index] = unit
            self.observer.add_settled(unit)
            if unit.success and self.delete_added and unit.request.origin_path:
                self.capabilities.delete_file(unit.request.origin_path)

        if self.history is not None:
            self.history.record(self.options.download_dir)

        return SubmissionReport(units=[u for u in units if u is not None])
