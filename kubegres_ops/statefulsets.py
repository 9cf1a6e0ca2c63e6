"""Observed state of the StatefulSets and Pods that belong to a Kubegres resource."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

from kubegres_ops.states import (
    DEPLOYMENT_OWNER_KEY,
    PRIMARY_ROLE_NAME,
    KubegresContext,
    NotFoundError,
)

_INT32_MIN = -(2**31)
_INT32_MAX = 2**31 - 1
_DECIMAL = re.compile(r"[+-]?[0-9]+")
_STUCK_REASONS = frozenset({"CrashLoopBackOff", "Error"})


class StatefulSetLoadingError(Exception):
    """Raised when the deployed StatefulSets are inconsistent or cannot be interpreted."""


def _parse_int32(text: str) -> int:
    """Parse a base-10 32-bit integer; raise ValueError if it is malformed or out of range."""
    if not _DECIMAL.fullmatch(text):
        raise ValueError(f"invalid syntax: {text!r}")
    value = int(text)
    if not _INT32_MIN <= value <= _INT32_MAX:
        raise ValueError(f"value out of range: {text!r}")
    return value


def _lenient_int32(text: str) -> int:
    """Parse like ``_parse_int32`` but fall back to 0, or to the nearest bound when out of range."""
    if not _DECIMAL.fullmatch(text):
        return 0
    return max(_INT32_MIN, min(_INT32_MAX, int(text)))


def _labels(resource: dict[str, Any]) -> dict[str, str]:
    return resource.get("metadata", {}).get("labels") or {}


def _template_labels(stateful_set: dict[str, Any]) -> dict[str, str]:
    template = stateful_set.get("spec", {}).get("template", {})
    return template.get("metadata", {}).get("labels") or {}


def _name(resource: dict[str, Any]) -> str:
    return resource.get("metadata", {}).get("name", "")


@dataclass
class PodWrapper:
    """A deployed (or absent) pod with its readiness and instance index."""

    is_deployed: bool = False
    is_ready: bool = False
    is_stuck: bool = False
    instance_index: int = 0
    pod: dict[str, Any] = field(default_factory=dict)


@dataclass
class PodStates:
    """All pods labelled with the Kubegres resource's name."""

    pods: list[PodWrapper] = field(default_factory=list)

    def by_instance_index(self, instance_index: int) -> PodWrapper:
        """Return the pod with the given instance index, or an empty wrapper."""
        return next(
            (pod for pod in self.pods if pod.instance_index == instance_index),
            PodWrapper(),
        )


def _first_container_status(pod: dict[str, Any]) -> dict[str, Any] | None:
    statuses = pod.get("status", {}).get("containerStatuses") or []
    return statuses[0] if statuses else None


def _is_pod_ready(pod: dict[str, Any]) -> bool:
    status = _first_container_status(pod)
    return bool(status and status.get("ready", False))


def _is_pod_stuck(context: KubegresContext, pod: dict[str, Any]) -> bool:
    status = _first_container_status(pod)
    if status is None:
        return False
    waiting = (status.get("state") or {}).get("waiting")
    if waiting is None:
        return False
    reason = waiting.get("reason", "")
    if reason in _STUCK_REASONS:
        context.log.info("POD is waiting", "Reason", reason)
        return True
    return False


def _get_deployed_pods(context: KubegresContext) -> list[dict[str, Any]]:
    try:
        return context.client.list("Pod", context.namespace, labels={"app": context.name})
    except NotFoundError:
        context.log.info("There is not any deployed Pods yet", "Kubegres name", context.name)
        return []
    except Exception as err:
        context.log.error_event(
            "PodLoadingErr",
            err,
            "Unable to load any deployed Pods.",
            "Kubegres name",
            context.name,
        )
        raise


def load_pods_states(context: KubegresContext) -> PodStates:
    """Load every pod of the Kubegres resource with its readiness state."""
    states = PodStates()
    for pod in _get_deployed_pods(context):
        is_ready = _is_pod_ready(pod)
        is_stuck = _is_pod_stuck(context, pod)
        states.pods.append(
            PodWrapper(
                is_deployed=True,
                is_ready=is_ready and not is_stuck,
                is_stuck=is_stuck,
                instance_index=_lenient_int32(_labels(pod).get("index", "")),
                pod=pod,
            )
        )
    return states


@dataclass
class StatefulSetWrapper:
    """A deployed (or absent) StatefulSet with its pod and instance index."""

    is_deployed: bool = False
    is_ready: bool = False
    instance_index: int = 0
    stateful_set: dict[str, Any] = field(default_factory=dict)
    pod: PodWrapper = field(default_factory=PodWrapper)

    @property
    def name(self) -> str:
        return _name(self.stateful_set)


def instance_index_of(stateful_set: dict[str, Any]) -> int:
    """Instance index from the pod template's ``index`` label; 0 when it is not a number."""
    return _lenient_int32(_template_labels(stateful_set).get("index", ""))


def _sort_key(wrapper: StatefulSetWrapper) -> int:
    return instance_index_of(wrapper.stateful_set)


class StatefulSetWrappers:
    """A collection of StatefulSet wrappers kept ordered by instance index."""

    def __init__(self) -> None:
        self._wrappers: list[StatefulSetWrapper] = []

    def __len__(self) -> int:
        return len(self._wrappers)

    def __iter__(self):
        return iter(self.sorted_by_instance_index())

    def add(self, wrapper: StatefulSetWrapper) -> None:
        self._wrappers.append(wrapper)
        self._wrappers.sort(key=_sort_key)

    def sorted_by_instance_index(self) -> list[StatefulSetWrapper]:
        return list(self._wrappers)

    def reverse_sorted_by_instance_index(self) -> list[StatefulSetWrapper]:
        return sorted(self._wrappers, key=_sort_key, reverse=True)

    def get_by_instance_index(self, instance_index: int) -> StatefulSetWrapper:
        for wrapper in self._wrappers:
            if wrapper.instance_index == instance_index:
                return wrapper
        raise LookupError(
            f"Given StatefulSet's instanceIndex '{instance_index}' does not exist."
        )

    def get_by_name(self, name: str) -> StatefulSetWrapper:
        for wrapper in self._wrappers:
            if wrapper.name == name:
                return wrapper
        raise LookupError(f"Given StatefulSet's name '{name}' does not exist.")


@dataclass
class Replicas:
    """The replica StatefulSets and how many of them are deployed and ready."""

    all: StatefulSetWrappers = field(default_factory=StatefulSetWrappers)
    nbre_deployed: int = 0
    nbre_ready: int = 0


@dataclass
class StatefulSetsStates:
    """Every StatefulSet owned by a Kubegres resource, split into primary and replicas."""

    nbre_deployed: int = 0
    spec_expected_nbre_to_deploy: int = 0
    primary: StatefulSetWrapper = field(default_factory=StatefulSetWrapper)
    replicas: Replicas = field(default_factory=Replicas)
    all: StatefulSetWrappers = field(default_factory=StatefulSetWrappers)


def _get_deployed_stateful_sets(context: KubegresContext) -> list[dict[str, Any]]:
    try:
        return context.client.list(
            "StatefulSet",
            context.namespace,
            fields={DEPLOYMENT_OWNER_KEY: context.name},
        )
    except NotFoundError:
        return []
    except Exception as err:
        context.log.error_event(
            "StatefulSetLoadingErr",
            err,
            "Unable to load any deployed StatefulSets.",
            "Kubegres name",
            context.name,
        )
        raise


def _instance_index_from_spec(context: KubegresContext, stateful_set: dict[str, Any]) -> int:
    text = _template_labels(stateful_set).get("index", "")
    try:
        return _parse_int32(text)
    except ValueError as err:
        context.log.error_event(
            "StatefulSetLoadingErr",
            err,
            f"Unable to convert StatefulSet's label 'index' with value: {text} into an integer. "
            f"The name of statefulSet with this label is {_name(stateful_set)}.",
        )
        context.log.error(err, "Unable to get instance index")
        raise StatefulSetLoadingError(
            f"Invalid 'index' label {text!r} on StatefulSet {_name(stateful_set)!r}"
        ) from err


def _is_primary(stateful_set: dict[str, Any]) -> bool:
    return _template_labels(stateful_set).get("replicationRole") == PRIMARY_ROLE_NAME


def _add_stateful_set(
    context: KubegresContext,
    states: StatefulSetsStates,
    stateful_set: dict[str, Any],
    pods: PodStates,
) -> None:
    instance_index = _instance_index_from_spec(context, stateful_set)
    ready_replicas = (stateful_set.get("status") or {}).get("readyReplicas") or 0
    wrapper = StatefulSetWrapper(
        is_deployed=True,
        is_ready=ready_replicas > 0,
        instance_index=instance_index,
        stateful_set=stateful_set,
        pod=pods.by_instance_index(instance_index),
    )
    states.all.add(wrapper)

    if _is_primary(stateful_set):
        if states.primary.is_deployed:
            message = (
                f"Identified 2 instances of statefulSet with Names: '{states.primary.name}' "
                f"and '{_name(stateful_set)}' which have label 'replicationRole' set to "
                f"'primary'. Only one instance should be primary for Kubegres resource "
                f"'{context.name}'."
            )
            err = StatefulSetLoadingError(message)
            context.log.error_event("StatefulSetLoadingErr", err, message)
            raise err
        states.primary = wrapper
    else:
        states.replicas.nbre_deployed += 1
        states.replicas.all.add(wrapper)
        if wrapper.is_ready:
            states.replicas.nbre_ready += 1


def load_stateful_sets_states(context: KubegresContext) -> StatefulSetsStates:
    """Load every StatefulSet owned by the Kubegres resource, matched with its pod."""
    deployed = _get_deployed_stateful_sets(context)
    states = StatefulSetsStates(
        nbre_deployed=len(deployed),
        spec_expected_nbre_to_deploy=context.spec["replicas"],
    )
    pods = load_pods_states(context) if deployed else PodStates()
    for stateful_set in deployed:
        _add_stateful_set(context, states, stateful_set, pods)
    return states