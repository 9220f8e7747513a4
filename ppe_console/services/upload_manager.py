"""Upload manager for staging images and sending them to the detection API."""

import logging
import threading
import uuid
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from ppe_console.config import get_settings
from ppe_console.services.api_client import ApiError, PPEApiClient, get_api_client
from ppe_console.services.file_validator import validate_files
from ppe_console.services.idempotency import derive_idempotency_key
from ppe_console.services.log_service import get_log_service
from ppe_console.services.preview import PreviewGenerator, get_preview_generator
from ppe_console.services.utils import format_file_size, media_subtype

logger = logging.getLogger(__name__)

TRANSPORT_FAILURE_MESSAGE = "Failed to upload images. Please try again."
MISSING_ID_MESSAGE = "Upload succeeded but no result id was returned."
MISSING_RESULTS_MESSAGE = "Upload succeeded but no results were returned."
NO_RESULT_FOR_FILE_MESSAGE = "No result was returned for this file"
ITEM_FAILED_MESSAGE = "Upload failed"
ALL_FAILED_MESSAGE = "All uploads failed. Please try again."
NO_FILES_MESSAGE = "Please select at least one file to upload"

# Display delays before the UI moves on, in seconds
SINGLE_REDIRECT_DELAY = 1.5
REPLAY_REDIRECT_DELAY = 1.2
BATCH_REDIRECT_DELAY = 2.0

BATCH_SUCCESS_STATUSES = frozenset({"success", "duplicate"})

ProgressListener = Callable[[dict[str, Any]], None]


class UploadStatus(Enum):
    """Status of a staged file."""

    PENDING = "pending"
    UPLOADING = "uploading"
    COMPLETED = "completed"
    ERROR = "error"


# pending -> uploading -> completed | error, never backwards
_ALLOWED_TRANSITIONS = {
    UploadStatus.PENDING: {UploadStatus.UPLOADING},
    UploadStatus.UPLOADING: {UploadStatus.COMPLETED, UploadStatus.ERROR},
    UploadStatus.COMPLETED: set(),
    UploadStatus.ERROR: set(),
}


class SessionState(Enum):
    """Lifecycle of an upload session."""

    IDLE = "idle"
    STAGING = "staging"
    UPLOADING = "uploading"
    SETTLED = "settled"


class ErrorKind(Enum):
    """Where an upload error came from."""

    VALIDATION = "validation"
    TRANSPORT = "transport"
    PARTIAL_BATCH = "partial_batch"
    CONTRACT = "contract"


class FilesRejectedError(Exception):
    """One or more files in an add-batch failed validation."""

    def __init__(self, reasons: list[str]) -> None:
        super().__init__(", ".join(reasons))
        self.reasons = reasons


class NoFilesStagedError(Exception):
    """Commit was requested with nothing staged."""


class UploadInProgressError(Exception):
    """The session already has an upload in flight."""


@dataclass
class CandidateFile:
    """A user-selected file as the browser described it."""

    name: str
    media_type: str
    payload: bytes = field(repr=False)
    last_modified: int = 0  # epoch milliseconds

    @property
    def size(self) -> int:
        return len(self.payload)

    @property
    def key(self) -> str:
        return derive_idempotency_key(self.name, self.size, self.last_modified)


@dataclass
class StagedFile:
    """State of a single file in an upload session."""

    key: str
    file: CandidateFile
    preview: str | None = field(default=None, repr=False)
    status: UploadStatus = UploadStatus.PENDING
    progress: int = 0
    response: dict[str, Any] | None = None
    error_message: str = ""
    error_kind: ErrorKind | None = None

    def advance(self, status: UploadStatus) -> None:
        """Move to the next status, rejecting backwards transitions."""
        if status not in _ALLOWED_TRANSITIONS[self.status]:
            raise ValueError(
                f"Invalid status transition for {self.file.name}: "
                f"{self.status.value} -> {status.value}"
            )
        self.status = status

    def fresh_copy(self) -> "StagedFile":
        """A pending copy of this file for a new upload attempt."""
        return StagedFile(key=self.key, file=self.file, preview=self.preview)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "key": self.key,
            "filename": self.file.name,
            "media_type": self.file.media_type,
            "type_label": media_subtype(self.file.media_type),
            "file_size": self.file.size,
            "file_size_formatted": format_file_size(self.file.size),
            "last_modified": self.file.last_modified,
            "preview": self.preview,
            "status": self.status.value,
            # Mirrors the request-wide percentage, not a per-file measurement
            "progress_percent": self.progress,
            "response": self.response,
            "error_message": self.error_message,
            "error_kind": self.error_kind.value if self.error_kind else None,
        }


@dataclass
class UploadOutcome:
    """Final result for one file included in a commit."""

    key: str
    filename: str
    status: UploadStatus
    resource_id: str | None = None
    error_message: str = ""
    error_kind: ErrorKind | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "filename": self.filename,
            "status": self.status.value,
            "resource_id": self.resource_id,
            "error_message": self.error_message,
            "error_kind": self.error_kind.value if self.error_kind else None,
        }


@dataclass
class CommitResult:
    """What a commit produced, reduced to what the UI needs."""

    outcomes: list[UploadOutcome] = field(default_factory=list)
    success_message: str = ""
    error_message: str = ""
    error_kind: ErrorKind | None = None
    redirect_to: str | None = None
    redirect_delay_seconds: float = 0.0

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.outcomes if o.status == UploadStatus.COMPLETED)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if o.status == UploadStatus.ERROR)

    def to_dict(self) -> dict[str, Any]:
        return {
            "outcomes": [o.to_dict() for o in self.outcomes],
            "succeeded": self.succeeded,
            "failed": self.failed,
            "success_message": self.success_message,
            "error_message": self.error_message,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "redirect_to": self.redirect_to,
            "redirect_delay_seconds": self.redirect_delay_seconds,
        }


@dataclass
class _Decision:
    status: UploadStatus
    resource_id: str | None = None
    error_message: str = ""
    error_kind: ErrorKind | None = None
    response: dict[str, Any] | None = None


def _resource_id(data: dict[str, Any]) -> str | None:
    value = data.get("id")
    if value in (None, ""):
        return None
    return str(value)


def _result_filename(result: dict[str, Any]) -> str | None:
    name = result.get("filename") or result.get("originalName")
    return str(name) if name else None


class UploadSession:
    """Owns the staged files of one upload screen and drives their upload.

    States: idle -> staging -> uploading -> settled -> staging on further edits.
    """

    def __init__(
        self,
        session_id: str,
        api: PPEApiClient,
        previews: PreviewGenerator | None = None,
        redirect_delays: bool = True,
    ) -> None:
        self.session_id = session_id
        self.api = api
        self.previews = previews
        self.redirect_delays = redirect_delays
        self.files: list[StagedFile] = []
        self.state = SessionState.IDLE
        self.progress = 0
        self.success_message = ""
        self.error_message = ""
        self.last_result: CommitResult | None = None
        self.created_at = datetime.now(UTC)
        self.last_activity = self.created_at
        self.settled_at: datetime | None = None
        self.closed = False
        self.lock = threading.RLock()
        self._listeners: list[ProgressListener] = []

    # Subscriptions

    def subscribe(self, listener: ProgressListener) -> Callable[[], None]:
        """Register for progress and settle events; returns an unsubscribe callable."""
        with self.lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self.lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, event: dict[str, Any]) -> None:
        with self.lock:
            if self.closed:
                return
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event)
            except Exception:
                logger.warning("Upload listener failed", exc_info=True)

    # Staging

    def _require_editable(self) -> None:
        if self.state == SessionState.UPLOADING:
            raise UploadInProgressError("An upload is already in progress")

    def _reset_messages(self) -> None:
        self.success_message = ""
        self.error_message = ""

    def _touch(self) -> None:
        self.last_activity = datetime.now(UTC)

    def is_expired(self, now: datetime, max_age_seconds: float) -> bool:
        """Whether the session has sat untouched for longer than max_age_seconds.

        A session with an upload in flight never expires.
        """
        with self.lock:
            if self.state == SessionState.UPLOADING:
                return False
            return (now - self.last_activity).total_seconds() > max_age_seconds

    def stage(self, candidates: Sequence[CandidateFile]) -> list[StagedFile]:
        """Validate and stage an add-batch.

        The whole batch is rejected if any file fails validation. A file whose
        key is already staged replaces the existing entry in place.

        Returns:
            The newly staged entries

        Raises:
            FilesRejectedError: With every rejection reason, nothing staged
            UploadInProgressError: If an upload is in flight
        """
        log = get_log_service()
        with self.lock:
            self._require_editable()
            self._reset_messages()
            self._touch()

            reasons = validate_files(candidates)
            if reasons:
                self.error_message = ", ".join(reasons)
                log.warning(
                    "upload",
                    "files_rejected",
                    f"Rejected {len(reasons)} of {len(candidates)} selected files",
                    {"session_id": self.session_id, "reasons": reasons},
                )
                raise FilesRejectedError(reasons)

            added: list[StagedFile] = []
            for candidate in candidates:
                staged = StagedFile(key=candidate.key, file=candidate)
                existing = self._index_of(staged.key)
                if existing is None:
                    self.files.append(staged)
                else:
                    self.files[existing] = staged
                added = [s for s in added if s.key != staged.key]
                added.append(staged)

            if added:
                self.state = SessionState.STAGING

        for staged in added:
            self._start_preview(staged)

        log.info(
            "upload",
            "files_staged",
            f"Staged {len(added)} files",
            {"session_id": self.session_id, "keys": [s.key for s in added]},
        )
        return added

    def _index_of(self, key: str) -> int | None:
        for index, staged in enumerate(self.files):
            if staged.key == key:
                return index
        return None

    def get_file(self, key: str) -> StagedFile | None:
        with self.lock:
            index = self._index_of(key)
            return self.files[index] if index is not None else None

    def _start_preview(self, staged: StagedFile) -> None:
        if self.previews is None:
            return
        candidate = staged.file

        def on_ready(data_url: str) -> None:
            with self.lock:
                index = self._index_of(staged.key)
                # Ignore reads for files removed or replaced meanwhile
                if index is not None and self.files[index].file is candidate:
                    self.files[index].preview = data_url

        self.previews.generate(lambda: candidate.payload, candidate.media_type, on_ready)

    def remove(self, key: str) -> bool:
        """Remove one staged file. Returns False if the key is unknown."""
        with self.lock:
            self._require_editable()
            index = self._index_of(key)
            if index is None:
                return False
            del self.files[index]
            self._reset_messages()
            self._touch()
            if self.last_result:
                self.last_result.outcomes = [o for o in self.last_result.outcomes if o.key != key]
            self.state = SessionState.STAGING if self.files else SessionState.IDLE
            return True

    def clear(self) -> None:
        """Remove every staged file along with progress and outcomes."""
        with self.lock:
            self._require_editable()
            self.files = []
            self.progress = 0
            self.last_result = None
            self._reset_messages()
            self._touch()
            self.state = SessionState.IDLE

    # Upload

    def commit(self) -> CommitResult:
        """Upload every staged file in one request and reconcile the response.

        Raises:
            NoFilesStagedError: Nothing is staged
            UploadInProgressError: An upload is already in flight
        """
        return self.send(self.begin_commit())

    def begin_commit(self) -> list[StagedFile]:
        """Claim the session for an upload and move every file to uploading.

        Runs synchronously so a second caller is refused before any request
        goes out.

        Returns:
            The files included in this attempt

        Raises:
            NoFilesStagedError: Nothing is staged
            UploadInProgressError: An upload is already in flight
        """
        with self.lock:
            self._require_editable()
            if not self.files:
                self.error_message = NO_FILES_MESSAGE
                raise NoFilesStagedError(NO_FILES_MESSAGE)

            # Files left over from an earlier attempt start over as new entries
            self.files = [
                f if f.status == UploadStatus.PENDING else f.fresh_copy() for f in self.files
            ]
            for staged in self.files:
                staged.advance(UploadStatus.UPLOADING)
                staged.progress = 0
            self.state = SessionState.UPLOADING
            self.progress = 0
            self.last_result = None
            self._reset_messages()
            self._touch()
            return list(self.files)

    def send(self, included: list[StagedFile]) -> CommitResult:
        """Send the files claimed by begin_commit and settle the session.

        Always leaves the session settled, whatever the server returns.
        """
        log = get_log_service()
        single = len(included) == 1
        idempotency_key = included[0].key if single else None

        log.info(
            "upload",
            "upload_started",
            f"Uploading {len(included)} image{'s' if len(included) != 1 else ''}",
            {
                "session_id": self.session_id,
                "total_files": len(included),
                "total_bytes": sum(f.file.size for f in included),
                "idempotency_key": idempotency_key,
            },
        )
        self._notify({"type": "upload_started", "session_id": self.session_id, "progress": 0})

        parts = [(f.file.name, f.file.payload, f.file.media_type) for f in included]
        try:
            response = self.api.upload_images(
                parts,
                idempotency_key=idempotency_key,
                progress_callback=self._on_progress,
            )
        except Exception as e:
            message = (
                e.user_message(TRANSPORT_FAILURE_MESSAGE)
                if isinstance(e, ApiError)
                else TRANSPORT_FAILURE_MESSAGE
            )
            log.error(
                "upload",
                "upload_failed",
                f"Upload request failed: {e}",
                {
                    "session_id": self.session_id,
                    "error": str(e),
                    "status_code": getattr(e, "status_code", None),
                },
            )
            result = self._fail_all(included, message)
        else:
            try:
                if single:
                    result = self._reconcile_single(included[0], response)
                else:
                    result = self._reconcile_batch(included, response)
            except Exception as e:
                log.error(
                    "upload",
                    "response_unreadable",
                    f"Could not reconcile upload response: {e}",
                    {"session_id": self.session_id, "error": str(e)},
                )
                result = self._fail_unreadable(included, response)

        with self.lock:
            self.state = SessionState.SETTLED
            self.settled_at = datetime.now(UTC)
            self.last_activity = self.settled_at
            self.last_result = result
            self.success_message = result.success_message
            self.error_message = result.error_message
            stale = self.closed

        log.info(
            "upload",
            "upload_settled",
            f"Upload settled: {result.succeeded} succeeded, {result.failed} failed",
            {
                "session_id": self.session_id,
                "succeeded": result.succeeded,
                "failed": result.failed,
                "error_kind": result.error_kind.value if result.error_kind else None,
            },
        )
        if stale:
            log.info(
                "upload",
                "stale_result_ignored",
                "Upload finished after its session was discarded",
                {"session_id": self.session_id},
            )
        else:
            self._notify(self.settled_event())
        return result

    def settled_event(self) -> dict[str, Any]:
        """The event subscribers receive once an upload has settled."""
        with self.lock:
            return {
                "type": "settled",
                "session_id": self.session_id,
                "status": SessionState.SETTLED.value,
                "result": self.last_result.to_dict() if self.last_result else None,
            }

    def _on_progress(self, percent: int) -> None:
        """Record the request-wide percentage and mirror it onto every file."""
        with self.lock:
            self.progress = percent
            for staged in self.files:
                if staged.status == UploadStatus.UPLOADING:
                    staged.progress = percent
        self._notify({"type": "progress", "session_id": self.session_id, "progress": percent})

    def _delay(self, seconds: float) -> float:
        return seconds if self.redirect_delays else 0.0

    def _apply(self, staged: StagedFile, decision: _Decision) -> UploadOutcome:
        with self.lock:
            staged.advance(decision.status)
            staged.progress = 100 if decision.status == UploadStatus.COMPLETED else 0
            staged.response = decision.response
            staged.error_message = decision.error_message
            staged.error_kind = decision.error_kind
        return UploadOutcome(
            key=staged.key,
            filename=staged.file.name,
            status=decision.status,
            resource_id=decision.resource_id,
            error_message=decision.error_message,
            error_kind=decision.error_kind,
        )

    def _fail_all(self, included: list[StagedFile], message: str) -> CommitResult:
        """Transport failure: the server's state is unknown, so every file errors."""
        decision = _Decision(
            status=UploadStatus.ERROR, error_message=message, error_kind=ErrorKind.TRANSPORT
        )
        outcomes = [self._apply(staged, decision) for staged in included]
        return CommitResult(
            outcomes=outcomes, error_message=message, error_kind=ErrorKind.TRANSPORT
        )

    def _fail_unreadable(
        self, included: list[StagedFile], response: Any
    ) -> CommitResult:
        """The response could not be read: files not yet settled become contract errors."""
        decision = _Decision(
            status=UploadStatus.ERROR,
            error_message=MISSING_RESULTS_MESSAGE,
            error_kind=ErrorKind.CONTRACT,
            response=response if isinstance(response, dict) else None,
        )
        outcomes = []
        for staged in included:
            if staged.status == UploadStatus.UPLOADING:
                outcomes.append(self._apply(staged, decision))
                continue
            outcomes.append(
                UploadOutcome(
                    key=staged.key,
                    filename=staged.file.name,
                    status=staged.status,
                    resource_id=_resource_id(staged.response) if staged.response else None,
                    error_message=staged.error_message,
                    error_kind=staged.error_kind,
                )
            )
        return CommitResult(
            outcomes=outcomes,
            error_message=MISSING_RESULTS_MESSAGE,
            error_kind=ErrorKind.CONTRACT,
        )

    def _reconcile_single(self, staged: StagedFile, response: dict[str, Any]) -> CommitResult:
        resource_id = _resource_id(response)
        if resource_id is None:
            outcome = self._apply(
                staged,
                _Decision(
                    status=UploadStatus.ERROR,
                    error_message=MISSING_ID_MESSAGE,
                    error_kind=ErrorKind.CONTRACT,
                    response=response,
                ),
            )
            return CommitResult(
                outcomes=[outcome],
                error_message=MISSING_ID_MESSAGE,
                error_kind=ErrorKind.CONTRACT,
            )

        outcome = self._apply(
            staged,
            _Decision(status=UploadStatus.COMPLETED, resource_id=resource_id, response=response),
        )
        if response.get("existing"):
            message = "Image already processed. Redirecting to result..."
            delay = REPLAY_REDIRECT_DELAY
        else:
            message = "Image uploaded and analyzed successfully!"
            delay = SINGLE_REDIRECT_DELAY
        return CommitResult(
            outcomes=[outcome],
            success_message=message,
            redirect_to=f"/result/{resource_id}",
            redirect_delay_seconds=self._delay(delay),
        )

    def _match_results(
        self, included: list[StagedFile], results: list[dict[str, Any]]
    ) -> dict[int, dict[str, Any]]:
        """Pair batch results with files.

        Positional when the counts agree. Otherwise results that name their
        file are matched by filename and the rest fill the remaining slots in order.
        """
        if len(results) == len(included):
            return dict(enumerate(results))

        matched: dict[int, dict[str, Any]] = {}
        unnamed: list[dict[str, Any]] = []
        for result in results:
            name = _result_filename(result)
            index = next(
                (
                    i
                    for i, staged in enumerate(included)
                    if i not in matched and name and staged.file.name == name
                ),
                None,
            )
            if index is None:
                unnamed.append(result)
            else:
                matched[index] = result

        free = [i for i in range(len(included)) if i not in matched]
        for index, result in zip(free, unnamed):
            matched[index] = result
        return matched

    def _reconcile_batch(
        self, included: list[StagedFile], response: dict[str, Any]
    ) -> CommitResult:
        results = response.get("results")
        errors = response.get("errors")
        if not isinstance(results, list) and not isinstance(errors, list):
            decision = _Decision(
                status=UploadStatus.ERROR,
                error_message=MISSING_RESULTS_MESSAGE,
                error_kind=ErrorKind.CONTRACT,
                response=response,
            )
            outcomes = [self._apply(staged, decision) for staged in included]
            return CommitResult(
                outcomes=outcomes,
                error_message=MISSING_RESULTS_MESSAGE,
                error_kind=ErrorKind.CONTRACT,
            )

        results = [r for r in (results or []) if isinstance(r, dict)]
        errors = [e for e in (errors or []) if isinstance(e, dict)]

        decisions: dict[int, _Decision] = {}
        for index, result in self._match_results(included, results).items():
            status = result.get("status")
            if isinstance(status, str) and status in BATCH_SUCCESS_STATUSES:
                decisions[index] = _Decision(
                    status=UploadStatus.COMPLETED,
                    resource_id=_resource_id(result),
                    response=result,
                )
            else:
                decisions[index] = _Decision(
                    status=UploadStatus.ERROR,
                    error_message=str(
                        result.get("error") or result.get("message") or ITEM_FAILED_MESSAGE
                    ),
                    error_kind=ErrorKind.PARTIAL_BATCH,
                    response=result,
                )

        # Server-side validation errors are keyed by filename, whatever the order
        claimed: set[int] = set()
        for error in errors:
            filename = error.get("filename")
            index = next(
                (
                    i
                    for i, staged in enumerate(included)
                    if i not in claimed and staged.file.name == filename
                ),
                None,
            )
            if index is None:
                logger.debug("Batch error for unknown file %r", filename)
                continue
            claimed.add(index)
            decisions[index] = _Decision(
                status=UploadStatus.ERROR,
                error_message=str(error.get("error") or ITEM_FAILED_MESSAGE),
                error_kind=ErrorKind.PARTIAL_BATCH,
                response=error,
            )

        outcomes = []
        for index, staged in enumerate(included):
            decision = decisions.get(index) or _Decision(
                status=UploadStatus.ERROR,
                error_message=NO_RESULT_FOR_FILE_MESSAGE,
                error_kind=ErrorKind.PARTIAL_BATCH,
            )
            outcomes.append(self._apply(staged, decision))

        result = CommitResult(outcomes=outcomes)
        succeeded = result.succeeded
        if succeeded == len(included):
            result.success_message = (
                f"All {succeeded} images uploaded and analyzed successfully!"
            )
        elif succeeded > 0:
            result.success_message = (
                f"{succeeded} images uploaded successfully. {result.failed} failed."
            )
            result.error_kind = ErrorKind.PARTIAL_BATCH
        else:
            result.error_message = ALL_FAILED_MESSAGE
            result.error_kind = ErrorKind.PARTIAL_BATCH

        if succeeded > 0:
            result.redirect_to = "/history"
            result.redirect_delay_seconds = self._delay(BATCH_REDIRECT_DELAY)
        return result

    def close(self) -> None:
        """Detach the session from its view; a late response is then ignored."""
        with self.lock:
            self.closed = True
            self._listeners.clear()

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        with self.lock:
            return {
                "session_id": self.session_id,
                "state": self.state.value,
                "progress_percent": self.progress,
                "progress_is_approximate": True,
                "files": [f.to_dict() for f in self.files],
                "total_files": len(self.files),
                "files_completed": sum(
                    1 for f in self.files if f.status == UploadStatus.COMPLETED
                ),
                "files_failed": sum(1 for f in self.files if f.status == UploadStatus.ERROR),
                "success_message": self.success_message,
                "error_message": self.error_message,
                "result": self.last_result.to_dict() if self.last_result else None,
                "created_at": self.created_at.isoformat(),
                "settled_at": self.settled_at.isoformat() if self.settled_at else None,
            }


class UploadManager:
    """Keeps track of the upload sessions open in this console."""

    def __init__(
        self,
        api: PPEApiClient | None = None,
        previews: PreviewGenerator | None = None,
    ) -> None:
        self.sessions: dict[str, UploadSession] = {}
        self._api = api
        self._previews = previews
        self._lock = threading.Lock()

    @property
    def api(self) -> PPEApiClient:
        return self._api if self._api is not None else get_api_client()

    def create_session(self) -> UploadSession:
        """Open a new, empty upload session, dropping any that have expired."""
        removed = self.cleanup_old_sessions()
        session_id = str(uuid.uuid4())
        session = UploadSession(
            session_id,
            self.api,
            previews=self._previews if self._previews is not None else get_preview_generator(),
            redirect_delays=get_settings().redirect_delays_enabled,
        )
        with self._lock:
            self.sessions[session_id] = session

        get_log_service().info(
            "upload",
            "upload_session_created",
            "Created upload session",
            {"session_id": session_id, "expired_sessions_removed": removed},
        )
        return session

    def get_session(self, session_id: str) -> UploadSession | None:
        """Get a session by ID."""
        return self.sessions.get(session_id)

    def discard_session(self, session_id: str) -> bool:
        """Close and forget a session. An in-flight upload still finishes."""
        with self._lock:
            session = self.sessions.pop(session_id, None)
        if session is None:
            return False
        session.close()
        return True

    def cleanup_old_sessions(self, max_age_seconds: float | None = None) -> int:
        """Remove sessions nobody has touched for max_age_seconds.

        Covers idle and staging sessions as well as settled ones. Sessions
        with an upload in flight are kept.

        Args:
            max_age_seconds: Defaults to the session_max_age_seconds setting

        Returns:
            Number of sessions removed
        """
        if max_age_seconds is None:
            max_age_seconds = get_settings().session_max_age_seconds
        now = datetime.now(UTC)
        with self._lock:
            to_remove = [
                session_id
                for session_id, session in self.sessions.items()
                if session.is_expired(now, max_age_seconds)
            ]
            removed = [self.sessions.pop(session_id) for session_id in to_remove]
        for session in removed:
            session.close()
        if removed:
            logger.info("Removed %d expired upload sessions", len(removed))
        return len(removed)


# Global upload manager instance
_upload_manager: UploadManager | None = None


def get_upload_manager() -> UploadManager:
    """Get the global upload manager instance."""
    global _upload_manager
    if _upload_manager is None:
        _upload_manager = UploadManager()
    return _upload_manager
