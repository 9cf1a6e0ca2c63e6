import pytest

from kubegres_ops.states import (
    DEPLOYMENT_OWNER_KEY,
    EVENT_WARNING,
    KubegresContext,
    NotFoundError,
)
from kubegres_ops.statefulsets import (
    PodStates,
    PodWrapper,
    StatefulSetLoadingError,
    StatefulSetWrapper,
    StatefulSetWrappers,
    instance_index_of,
    load_pods_states,
    load_stateful_sets_states,
)


class FakeClient:
    def __init__(self, resources=None, errors=None):
        self.resources = resources or {}
        self.errors = errors or {}
        self.calls = []

    def get(self, kind, namespace, name):
        raise NotFoundError(name)

    def list(self, kind, namespace, *, labels=None, fields=None):
        self.calls.append((kind, namespace, labels, fields))
        if kind in self.errors:
            raise self.errors[kind]
        return list(self.resources.get(kind, []))


def make_context(client, replicas=3):
    kubegres = {
        "metadata": {"name": "mydb", "namespace": "default"},
        "spec": {"replicas": replicas},
    }
    return KubegresContext(client=client, kubegres=kubegres)


def make_pod(index, ready=True, waiting=None):
    status = {"ready": ready, "state": {}}
    if waiting is not None:
        status["state"] = {"waiting": {"reason": waiting}}
    return {
        "metadata": {"name": f"mydb-{index}-0", "labels": {"app": "mydb", "index": str(index)}},
        "status": {"containerStatuses": [status]},
    }


def make_sts(index, role="replica", ready_replicas=1):
    return {
        "metadata": {"name": f"mydb-{index}"},
        "spec": {
            "template": {
                "metadata": {"labels": {"index": str(index), "replicationRole": role}}
            }
        },
        "status": {"readyReplicas": ready_replicas},
    }


def wrapper_for(index):
    return StatefulSetWrapper(is_deployed=True, instance_index=index, stateful_set=make_sts(index))


def test_pods_ready_and_stuck():
    client = FakeClient(
        {"Pod": [make_pod(1), make_pod(2, ready=True, waiting="CrashLoopBackOff"), make_pod(3, ready=False)]}
    )
    states = load_pods_states(make_context(client))
    first, second, third = states.pods
    assert (first.is_ready, first.is_stuck, first.instance_index) == (True, False, 1)
    assert (second.is_ready, second.is_stuck) == (False, True)
    assert (third.is_ready, third.is_stuck) == (False, False)
    assert all(pod.is_deployed for pod in states.pods)


def test_pods_listed_by_app_label():
    client = FakeClient({"Pod": []})
    load_pods_states(make_context(client))
    assert client.calls == [("Pod", "default", {"app": "mydb"}, None)]


def test_pod_without_statuses_or_index():
    pod = {"metadata": {"name": "x", "labels": {}}, "status": {}}
    states = load_pods_states(make_context(FakeClient({"Pod": [pod]})))
    assert states.pods[0].is_ready is False
    assert states.pods[0].is_stuck is False
    assert states.pods[0].instance_index == 0


def test_pods_not_found_gives_empty():
    client = FakeClient(errors={"Pod": NotFoundError("Pod")})
    assert load_pods_states(make_context(client)).pods == []


def test_pods_other_error_raised_with_event():
    context = make_context(FakeClient(errors={"Pod": RuntimeError("boom")}))
    with pytest.raises(RuntimeError):
        load_pods_states(context)
    assert context.log.events[0][:2] == (EVENT_WARNING, "PodLoadingErr")


def test_pod_states_by_instance_index():
    pod = PodWrapper(is_deployed=True, instance_index=2)
    states = PodStates(pods=[pod])
    assert states.by_instance_index(2) is pod
    assert states.by_instance_index(5) == PodWrapper()


def test_instance_index_of():
    assert instance_index_of(make_sts(4)) == 4
    assert instance_index_of({"spec": {}}) == 0
    bad = make_sts(1)
    bad["spec"]["template"]["metadata"]["labels"]["index"] = "abc"
    assert instance_index_of(bad) == 0


def test_wrappers_sorted_both_ways():
    wrappers = StatefulSetWrappers()
    for index in (3, 1, 2):
        wrappers.add(wrapper_for(index))
    assert [w.instance_index for w in wrappers.sorted_by_instance_index()] == [1, 2, 3]
    assert [w.instance_index for w in wrappers.reverse_sorted_by_instance_index()] == [3, 2, 1]
    assert len(wrappers) == 3


def test_wrappers_returns_copy():
    wrappers = StatefulSetWrappers()
    wrappers.add(wrapper_for(1))
    listing = wrappers.sorted_by_instance_index()
    listing.clear()
    assert len(wrappers.sorted_by_instance_index()) == 1


def test_wrappers_lookup():
    wrappers = StatefulSetWrappers()
    wrappers.add(wrapper_for(1))
    wrappers.add(wrapper_for(2))
    assert wrappers.get_by_instance_index(2).name == "mydb-2"
    assert wrappers.get_by_name("mydb-1").instance_index == 1
    with pytest.raises(LookupError, match="instanceIndex '7' does not exist"):
        wrappers.get_by_instance_index(7)
    with pytest.raises(LookupError, match="name 'nope' does not exist"):
        wrappers.get_by_name("nope")


def test_load_stateful_sets_states():
    client = FakeClient(
        {
            "StatefulSet": [
                make_sts(2, ready_replicas=1),
                make_sts(1, role="primary"),
                make_sts(3, ready_replicas=0),
            ],
            "Pod": [make_pod(1), make_pod(2), make_pod(3, ready=False)],
        }
    )
    states = load_stateful_sets_states(make_context(client, replicas=3))
    assert states.nbre_deployed == 3
    assert states.spec_expected_nbre_to_deploy == 3
    assert states.primary.name == "mydb-1"
    assert states.primary.pod.instance_index == 1
    assert states.replicas.nbre_deployed == 2
    assert states.replicas.nbre_ready == 1
    assert [w.instance_index for w in states.all.sorted_by_instance_index()] == [1, 2, 3]
    assert [w.instance_index for w in states.replicas.all.sorted_by_instance_index()] == [2, 3]
    assert client.calls[0] == ("StatefulSet", "default", None, {DEPLOYMENT_OWNER_KEY: "mydb"})


def test_no_stateful_sets_skips_pods():
    client = FakeClient({"StatefulSet": []})
    states = load_stateful_sets_states(make_context(client, replicas=2))
    assert states.nbre_deployed == 0
    assert states.primary.is_deployed is False
    assert [call[0] for call in client.calls] == ["StatefulSet"]


def test_stateful_sets_not_found_gives_empty():
    client = FakeClient(errors={"StatefulSet": NotFoundError("StatefulSet")})
    states = load_stateful_sets_states(make_context(client))
    assert states.nbre_deployed == 0
    assert len(states.all) == 0


def test_two_primaries_rejected():
    client = FakeClient(
        {"StatefulSet": [make_sts(1, role="primary"), make_sts(2, role="primary")], "Pod": []}
    )
    context = make_context(client)
    with pytest.raises(StatefulSetLoadingError, match="Identified 2 instances"):
        load_stateful_sets_states(context)
    assert context.log.events[-1][1] == "StatefulSetLoadingErr"


def test_invalid_index_label_rejected():
    bad = make_sts(1)
    bad["spec"]["template"]["metadata"]["labels"]["index"] = "x1"
    context = make_context(FakeClient({"StatefulSet": [bad], "Pod": []}))
    with pytest.raises(StatefulSetLoadingError):
        load_stateful_sets_states(context)
    assert context.log.events[0][:2] == (EVENT_WARNING, "StatefulSetLoadingErr")


def test_stateful_set_list_error_raised():
    context = make_context(FakeClient(errors={"StatefulSet": RuntimeError("down")}))
    with pytest.raises(RuntimeError, match="down"):
        load_stateful_sets_states(context)
    assert context.log.events[0][1] == "StatefulSetLoadingErr"