"""ProSBC driver: per-console facade over the form workflows."""

from __future__ import annotations

import functools
import logging
import threading
from collections.abc import Callable, Mapping, Sequence
from typing import Any, TypeVar

from prosbc_automation.client import file_ops, nap_ops
from prosbc_automation.client.errors import NotFound, ProSBCError
from prosbc_automation.client.resolver import list_entities, resolve_identifier
from prosbc_automation.client.session import ProSBCCredentials, ProSBCSession
from prosbc_automation.client.store import SessionStore
from prosbc_automation.config import ProSBCSettings
from prosbc_automation.model.file import ConfigurationEntry, RoutedFile
from prosbc_automation.model.nap import EntityDescriptor, NapEditForm
from prosbc_automation.model.outcome import AssociationResult, SubmissionOutcome

logger = logging.getLogger(__name__)

_F = TypeVar("_F", bound=Callable[..., Any])


def _locked(method: _F) -> _F:
    """Run *method* under the driver's instance lock."""

    @functools.wraps(method)
    def wrapper(self: ProSBCDriver, *args: Any, **kwargs: Any) -> Any:
        with self._lock:
            return method(self, *args, **kwargs)

    return wrapper  # type: ignore[return-value]


class ProSBCDriver:
    """Driver for one ProSBC web console.

    Operations against the same console are serialised by a per-instance
    re-entrant lock: a create and its configure step assume nobody else is
    using the console session in between.  Use one driver per console; two
    drivers never share a session store.

    Args:
        settings: Connection settings for the console.
        store: Session store to use (a new one by default).
    """

    def __init__(self, settings: ProSBCSettings, store: SessionStore | None = None) -> None:
        self.settings = settings
        self._store: SessionStore = store if store is not None else SessionStore()
        self._session: ProSBCSession | None = None
        self._lock = threading.RLock()
        logger.debug(
            "ProSBCDriver initialised: instance=%s url=%s user=%s",
            settings.instance_id,
            settings.base_url,
            settings.username,
        )

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    @_locked
    def open(self) -> None:
        """Create the HTTP session and log in.

        Raises:
            AuthenticationRequired: If the console rejects the credentials.
            NetworkError: If the console is unreachable.
        """
        if self._session is None:
            self._session = ProSBCSession(
                base_url=self.settings.base_url,
                credentials=ProSBCCredentials(
                    username=self.settings.username, password=self.settings.password
                ),
                store=self._store,
                probe_timeout_s=self.settings.timeout_s,
                submit_timeout_s=self.settings.submit_timeout_s,
                verify_tls=self.settings.verify_tls,
                basic_auth=self.settings.basic_auth,
                retry_attempts=self.settings.retry_attempts,
                config_id=self.settings.config_id,
            )
        logger.info("Opening connection to %s", self._session.base_url)
        self._session.ensure_session()

    @_locked
    def close(self) -> None:
        """Forget the session and close the HTTP session (never raises).

        The console has no known logout endpoint; the session cookie is
        simply dropped.
        """
        if self._session is not None:
            logger.info("Closing connection to %s", self._session.base_url)
            try:
                self._session.close()
            except Exception:  # noqa: BLE001
                logger.debug("Session close failed (ignored)", exc_info=True)
            finally:
                self._session = None

    def __enter__(self) -> ProSBCDriver:
        self.open()
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    @_locked
    def is_alive(self) -> dict[str, bool]:
        """Report whether a valid console session is held."""
        return {"is_alive": self._session is not None and self._session.logged_in}

    # ------------------------------------------------------------------
    # NAPs
    # ------------------------------------------------------------------

    @_locked
    def create_nap(
        self,
        fields: Mapping[str, Any],
        associations: Mapping[str, Sequence[str]] | None = None,
        check_duplicate: bool = False,
    ) -> SubmissionOutcome:
        """Create a NAP (see :func:`~prosbc_automation.client.nap_ops.create_nap`)."""
        return nap_ops.create_nap(
            self._require_session(),
            fields,
            associations=associations,
            check_duplicate=check_duplicate,
            reconcile_delay_s=self.settings.reconcile_delay_s,
            max_workers=self.settings.max_workers,
        )

    @_locked
    def update_nap(self, name_or_id: str, fields: Mapping[str, Any]) -> SubmissionOutcome:
        """Change fields of an existing NAP, addressed by name or id."""
        session = self._require_session()
        nap_id = resolve_identifier(session, name_or_id)
        return nap_ops.update_nap(session, nap_id, fields)

    @_locked
    def get_nap(self, name_or_id: str) -> NapEditForm:
        """Read a NAP's edit page."""
        session = self._require_session()
        return nap_ops.fetch_nap_for_edit(session, resolve_identifier(session, name_or_id))

    @_locked
    def list_naps(self) -> dict[str, EntityDescriptor]:
        """Return ``name -> EntityDescriptor`` for every listed NAP."""
        return list_entities(self._require_session())

    @_locked
    def nap_exists(self, name: str) -> bool:
        """Best-effort existence check (fails open)."""
        return nap_ops.check_nap_exists(self._require_session(), name)

    @_locked
    def resolve_nap_id(self, name_or_id: str) -> str:
        """Resolve a NAP name to its identifier."""
        return resolve_identifier(self._require_session(), name_or_id)

    @_locked
    def sync_associations(
        self,
        name_or_id: str,
        kind: str,
        desired_ids: Sequence[str],
        allow_remove: bool = True,
    ) -> list[AssociationResult]:
        """Make a NAP's *kind* associations equal *desired_ids*."""
        session = self._require_session()
        nap_id = resolve_identifier(session, name_or_id)
        return nap_ops.sync_associations(
            session, nap_id, kind, desired_ids, allow_remove=allow_remove
        )

    # ------------------------------------------------------------------
    # Routed files
    # ------------------------------------------------------------------

    @_locked
    def list_files(self, file_type: str, db_id: str | None = None) -> dict[str, RoutedFile]:
        """List routed files of one type."""
        session = self._require_session()
        return file_ops.list_files(session, file_type, db_id or self._file_db_id(session))

    @_locked
    def upload_file(
        self,
        file_type: str,
        filename: str,
        content: bytes | str,
        db_id: str | None = None,
    ) -> SubmissionOutcome:
        """Import a new routed file."""
        session = self._require_session()
        return file_ops.upload_file(
            session, file_type, filename, content, db_id or self._file_db_id(session)
        )

    @_locked
    def update_file(
        self,
        file_type: str,
        name_or_id: str,
        content: bytes | str,
        db_id: str | None = None,
    ) -> SubmissionOutcome:
        """Replace a routed file's content; the file is addressed by name or id."""
        session = self._require_session()
        db = db_id or self._file_db_id(session)
        record = self._find_file(session, file_type, name_or_id, db)
        return file_ops.update_file(session, file_type, record.id, record.name, content, db)

    @_locked
    def delete_file(
        self, file_type: str, name_or_id: str, db_id: str | None = None
    ) -> SubmissionOutcome:
        """Delete a routed file addressed by name or id."""
        session = self._require_session()
        db = db_id or self._file_db_id(session)
        record = self._find_file(session, file_type, name_or_id, db)
        return file_ops.delete_file(session, file_type, record.id, db)

    @_locked
    def export_file(
        self, file_type: str, name_or_id: str, db_id: str | None = None
    ) -> bytes:
        """Download a routed file as CSV bytes."""
        session = self._require_session()
        db = db_id or self._file_db_id(session)
        record = self._find_file(session, file_type, name_or_id, db)
        return file_ops.export_file(session, file_type, record.id, db)

    @_locked
    def select_configuration(self, config_id: str) -> None:
        """Switch the console to another configuration."""
        session = self._require_session()
        file_ops.select_configuration(session, config_id)
        session.config_id = str(config_id)

    @_locked
    def list_configurations(self) -> list[ConfigurationEntry]:
        """Return the configurations offered by the console."""
        return file_ops.list_configurations(self._require_session())

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_session(self) -> ProSBCSession:
        if self._session is None:
            raise ProSBCError("Driver is not open; call open() first")
        return self._session

    @staticmethod
    def _file_db_id(session: ProSBCSession) -> str:
        return file_ops.resolve_file_db_id(session)

    @staticmethod
    def _find_file(
        session: ProSBCSession, file_type: str, name_or_id: str, db_id: str
    ) -> RoutedFile:
        files = file_ops.list_files(session, file_type, db_id)
        record = files.get(name_or_id)
        if record is None:
            record = next((f for f in files.values() if f.id == str(name_or_id)), None)
        if record is None:
            raise NotFound(str(name_or_id))
        return record


class DriverRegistry:
    """Process-wide map of instance id to :class:`ProSBCDriver`.

    Drivers are created and opened on first use; each owns its own
    session store, so instances never share cookies or tokens.

    Args:
        loader: Builds settings for an instance id
            (default :meth:`ProSBCSettings.from_env`).
    """

    def __init__(
        self,
        loader: Callable[[str], ProSBCSettings] | None = None,
    ) -> None:
        self._loader: Callable[[str], ProSBCSettings] = loader or ProSBCSettings.from_env
        self._drivers: dict[str, ProSBCDriver] = {}
        self._lock = threading.Lock()

    def register(self, settings: ProSBCSettings) -> ProSBCDriver:
        """Add (or replace) the driver for ``settings.instance_id``."""
        with self._lock:
            old = self._drivers.pop(settings.instance_id, None)
            driver = ProSBCDriver(settings)
            self._drivers[settings.instance_id] = driver
        if old is not None:
            old.close()
        return driver

    def get(self, instance_id: str) -> ProSBCDriver:
        """Return the open driver for *instance_id*, creating it if needed."""
        with self._lock:
            driver = self._drivers.get(instance_id)
            if driver is None:
                driver = ProSBCDriver(self._loader(instance_id))
                self._drivers[instance_id] = driver
        if not driver.is_alive()["is_alive"]:
            driver.open()
        return driver

    def close_all(self) -> None:
        """Close and forget every driver."""
        with self._lock:
            drivers = list(self._drivers.values())
            self._drivers.clear()
        for driver in drivers:
            driver.close()

    def __contains__(self, instance_id: object) -> bool:
        return instance_id in self._drivers

    def __len__(self) -> int:
        return len(self._drivers)
