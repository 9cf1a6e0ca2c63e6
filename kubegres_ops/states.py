"""Observed state of the storage class and services that belong to a Kubegres resource."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

PRIMARY_ROLE_NAME = "primary"
DEPLOYMENT_OWNER_KEY = ".metadata.controller"
REPLICA_SERVICE_SUFFIX = "-replica"

EVENT_NORMAL = "Normal"
EVENT_WARNING = "Warning"


class NotFoundError(LookupError):
    """Raised by a resource client when the requested resource does not exist."""


class _ResourceClient(Protocol):
    def get(self, kind: str, namespace: str, name: str) -> dict[str, Any]: ...

    def list(
        self,
        kind: str,
        namespace: str,
        *,
        labels: dict[str, str] | None = None,
        fields: dict[str, str] | None = None,
    ) -> list[dict[str, Any]]: ...


def _format_pairs(args: tuple[Any, ...]) -> str:
    parts = []
    keys = args[0::2]
    values = args[1::2]
    for key, value in zip(keys, values):
        parts.append(f"{key}={value!r}")
    if len(args) % 2:
        parts.append(f"{args[-1]}=?")
    return (" " + " ".join(parts)) if parts else ""


class EventLog:
    """Structured logger that also records the events raised on the Kubegres resource."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.logger = logger or logging.getLogger("kubegres_ops")
        self.events: list[tuple[str, str, str]] = []

    def info(self, message: str, *args: Any) -> None:
        self.logger.info("%s%s", message, _format_pairs(args))

    def error(self, err: BaseException, message: str, *args: Any) -> None:
        self.logger.error("%s%s error=%s", message, _format_pairs(args), err)

    def info_event(self, reason: str, message: str, *args: Any) -> None:
        self.events.append((EVENT_NORMAL, reason, message))
        self.info(message, *args)

    def error_event(self, reason: str, err: BaseException, message: str, *args: Any) -> None:
        self.events.append((EVENT_WARNING, reason, message))
        self.error(err, message, *args)


@dataclass
class KubegresContext:
    """Everything a state loader needs: a client, the Kubegres resource and a log."""

    client: _ResourceClient
    kubegres: dict[str, Any]
    log: EventLog = field(default_factory=EventLog)

    @property
    def name(self) -> str:
        return self.kubegres["metadata"]["name"]

    @property
    def namespace(self) -> str:
        return self.kubegres["metadata"].get("namespace", "")

    @property
    def spec(self) -> dict[str, Any]:
        return self.kubegres.setdefault("spec", {})

    def service_resource_name(self, is_primary: bool) -> str:
        return self.name if is_primary else self.name + REPLICA_SERVICE_SUFFIX


@dataclass
class DbStorageClassStates:
    """Whether the storage class named in the spec is deployed."""

    is_deployed: bool = False
    storage_class_name: str = ""


def _get_storage_class(context: KubegresContext) -> dict[str, Any]:
    resource_name = context.spec["database"]["storageClassName"]
    try:
        return context.client.get("StorageClass", "", resource_name)
    except NotFoundError:
        return {}
    except Exception as err:
        context.log.error_event(
            "DatabaseStorageClassLoadingErr",
            err,
            "Unable to load any deployed Database StorageClass.",
            "StorageClass name",
            resource_name,
        )
        raise


def load_db_storage_class(context: KubegresContext) -> DbStorageClassStates:
    """Load the state of the storage class given in ``spec.database.storageClassName``."""
    storage_class = _get_storage_class(context)
    name = storage_class.get("metadata", {}).get("name", "")
    if name:
        return DbStorageClassStates(is_deployed=True, storage_class_name=name)
    return DbStorageClassStates()


@dataclass
class ServiceWrapper:
    """A deployed (or absent) service together with its expected name."""

    name: str = ""
    is_deployed: bool = False
    service: dict[str, Any] = field(default_factory=dict)


@dataclass
class ServicesStates:
    """The primary and replica services owned by a Kubegres resource."""

    primary: ServiceWrapper = field(default_factory=ServiceWrapper)
    replica: ServiceWrapper = field(default_factory=ServiceWrapper)


def _get_deployed_services(context: KubegresContext) -> list[dict[str, Any]]:
    try:
        return context.client.list(
            "Service",
            context.namespace,
            fields={DEPLOYMENT_OWNER_KEY: context.name},
        )
    except NotFoundError:
        return []
    except Exception as err:
        context.log.error_event(
            "ServiceLoadingErr",
            err,
            "Unable to load any deployed Services.",
            "Kubegres name",
            context.name,
        )
        raise


def _is_primary(service: dict[str, Any]) -> bool:
    labels = service.get("metadata", {}).get("labels") or {}
    return labels.get("replicationRole") == PRIMARY_ROLE_NAME


def load_services_states(context: KubegresContext) -> ServicesStates:
    """Load the services owned by the Kubegres resource, split into primary and replica."""
    states = ServicesStates()
    for service in _get_deployed_services(context):
        if _is_primary(service):
            states.primary = ServiceWrapper(
                name=context.service_resource_name(True), is_deployed=True, service=service
            )
        else:
            states.replica = ServiceWrapper(
                name=context.service_resource_name(False), is_deployed=True, service=service
            )
    return states