"""
Shared plumbing for the domain services: the bounded plugin call, the
persisted entity collection and the construct/start lifecycle.
"""
import logging
import threading
from collections import OrderedDict
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from typing import Any, Callable, Dict, Generic, List, Optional, Type, TypeVar

from ..exceptions import (
    NotFoundError, PersistenceError, PluginCallFailedError, ServiceNotReadyError, ValidationError
)
from ..interfaces import BlobStore
from ..models.common import new_id, utcnow

T = TypeVar("T")

DEFAULT_PLUGIN_TIMEOUT = 5.0  # seconds


class PluginCaller:
    """
    Runs plugin calls on a small worker pool with a per-call timeout.
    A call that overruns is abandoned (its worker finishes in the
    background) and reported as PluginCallFailedError.
    """

    def __init__(self, timeout: float = DEFAULT_PLUGIN_TIMEOUT, max_workers: int = 4):
        self._timeout = timeout
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="plugin-call")

    @property
    def timeout(self) -> float:
        return self._timeout

    def call(self, description: str, fn: Callable[..., Any], *args) -> Any:
        future = self._executor.submit(fn, *args)
        try:
            return future.result(timeout=self._timeout)
        except FutureTimeout as e:
            future.cancel()
            raise PluginCallFailedError(f"{description} timed out after {self._timeout}s") from e
        except Exception as e:
            raise PluginCallFailedError(f"{description} failed: {e}") from e

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False)


class EntityCollection(Generic[T]):
    """
    An ordered id -> entity map persisted as a JSON list under one store key.

    A failed load leaves the collection in degraded mode: it runs from
    whatever defaults the owner provides and is not written back until the
    next mutation saves successfully.
    """

    def __init__(self, store: BlobStore, key: str, entity_cls: Type[T], kind: str,
                 logger: logging.Logger, id_attr: str = "id",
                 serialize: Optional[Callable[[T], Dict[str, Any]]] = None):
        self._store = store
        self._key = key
        self._entity_cls = entity_cls
        self._kind = kind
        self._logger = logger
        self._id_attr = id_attr
        self._serialize = serialize or (lambda e: e.to_dict())
        self._items: "OrderedDict[str, T]" = OrderedDict()
        self.lock = threading.RLock()
        self.degraded = False

    @property
    def key(self) -> str:
        return self._key

    def load(self, defaults: Callable[[], List[T]]) -> None:
        try:
            data = self._store.load(self._key)
        except PersistenceError as e:
            self._logger.error(f"Error loading {self._kind} from {self._key}, using defaults: {e}")
            self.degraded = True
            self._replace_all(defaults())
            return

        if data:
            try:
                entities = [self._entity_cls.from_dict(d) for d in data]
            except (TypeError, ValueError, AttributeError) as e:
                self._logger.error(f"Malformed {self._kind} records in {self._key}, using defaults: {e}")
                self.degraded = True
                self._replace_all(defaults())
                return
            self._replace_all(entities)
            self._logger.info(f"Loaded {len(entities)} {self._kind} records from {self._key}")
        else:
            self._replace_all(defaults())
            self.save()

    def _replace_all(self, entities: List[T]) -> None:
        with self.lock:
            self._items = OrderedDict((getattr(e, self._id_attr), e) for e in entities)

    def save(self) -> bool:
        # Held across the write so snapshots reach the store in the order taken
        with self.lock:
            payload = [self._serialize(e) for e in self._items.values()]
            try:
                self._store.save(self._key, payload)
            except PersistenceError as e:
                self._logger.error(f"Error saving {self._kind} to {self._key}: {e}")
                self.degraded = True
                return False
            if self.degraded:
                self._logger.info(f"{self._key} saved, leaving degraded mode")
            self.degraded = False
        return True

    # --- queries ---

    def values(self) -> List[T]:
        with self.lock:
            return list(self._items.values())

    def active(self) -> List[T]:
        return [e for e in self.values() if getattr(e, "is_active", True)]

    def get(self, entity_id: str) -> T:
        with self.lock:
            entity = self._items.get(str(entity_id))
        if entity is None:
            raise NotFoundError(self._kind, entity_id)
        return entity

    def find(self, entity_id: str) -> Optional[T]:
        with self.lock:
            return self._items.get(str(entity_id))

    # --- mutations ---

    def insert(self, entity: T) -> T:
        """Add as a new record: fresh id, active, stamped."""
        setattr(entity, self._id_attr, new_id())
        entity.is_active = True
        entity.last_updated = utcnow()
        with self.lock:
            self._items[getattr(entity, self._id_attr)] = entity
        self.save()
        return entity

    def put(self, entity: T, must_exist: bool) -> T:
        """Replace the record with the same id, or add it when must_exist is False."""
        entity_id = getattr(entity, self._id_attr)
        if not entity_id:
            raise ValidationError(f"{self._kind} id is required")
        with self.lock:
            if must_exist and entity_id not in self._items:
                raise NotFoundError(self._kind, entity_id)
            self._items.pop(entity_id, None)
            entity.last_updated = utcnow()
            self._items[entity_id] = entity
        self.save()
        return entity

    def soft_delete(self, entity_id: str) -> T:
        with self.lock:
            entity = self.get(entity_id)
            entity.is_active = False
            entity.last_updated = utcnow()
        self.save()
        return entity

    def remove(self, entity_id: str) -> T:
        with self.lock:
            entity = self.get(entity_id)
            del self._items[str(entity_id)]
        self.save()
        return entity


class ManagedService:
    """
    Two-phase lifecycle: the constructor does no I/O, start() loads state.
    Public operations call _require_ready() first.
    """

    service_name = "Service"

    def __init__(self):
        self._ready = False
        self._logger = logging.getLogger(self.service_name)

    @property
    def ready(self) -> bool:
        return self._ready

    @property
    def degraded(self) -> bool:
        return any(c.degraded for c in self._collections())

    def _collections(self) -> List[EntityCollection]:
        return []

    def _load(self) -> None:
        pass

    def start(self) -> None:
        if self._ready:
            return
        self._load()
        self._ready = True
        mode = " (degraded, persistence unavailable)" if self.degraded else ""
        self._logger.info(f"{self.service_name} started{mode}")

    def _require_ready(self) -> None:
        if not self._ready:
            raise ServiceNotReadyError(f"{self.service_name} has not finished loading")
