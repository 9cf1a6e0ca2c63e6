# kubegres-ops

`kubegres-ops` builds a picture of what is deployed right now for one PostgreSQL cluster
resource. From the objects that a cluster client returns, it works out which storage class,
services, StatefulSets and pods exist for that resource. It also has a small tool that gathers
YAML resource templates into one generated Python module.

## Installation

```
pip install .
```

To run the test suite, install the `test` extra:

```
pip install ".[test]"
pytest
```

## The context and the client

Every loader takes a `KubegresContext` (in `kubegres_ops.states`), which holds:

- `client`: an object you supply, with two methods:
  - `get(kind, namespace, name)` returning one resource as a dict;
  - `list(kind, namespace, *, labels=None, fields=None)` returning a list of resource dicts.
  When a resource does not exist the client raises `NotFoundError`.
- `kubegres`: the cluster resource as a dict (`metadata`, `spec`, ...).
- `log`: an `EventLog` (one is created if you do not pass it).

The context also exposes `name`, `namespace` and `spec` of the resource, and
`service_resource_name(is_primary)`, which gives the resource name for the primary service and
the name with `-replica` appended for the replica service.

`EventLog` writes to the `kubegres_ops` logger through `info(message, *args)` and
`error(err, message, *args)`, where `args` are key/value pairs. `info_event(reason, message, *args)`
and `error_event(reason, err, message, *args)` also append `("Normal" | "Warning", reason, message)`
to its `events` list.

## Loading cluster state

- `load_db_storage_class(context)` returns a `DbStorageClassStates` with `is_deployed` and
  `storage_class_name`, for the storage class named in `spec.database.storageClassName`.
- `load_services_states(context)` returns a `ServicesStates` with a `primary` and a `replica`
  `ServiceWrapper` (`name`, `is_deployed`, `service`). A service whose `replicationRole` label is
  `primary` becomes the primary service; any other service becomes the replica service.
- `load_pods_states(context)` (in `kubegres_ops.statefulsets`) returns a `PodStates` holding one
  `PodWrapper` per pod labelled `app=<resource name>`. A pod counts as stuck when its first
  container is waiting with reason `CrashLoopBackOff` or `Error`, and is ready only when its first
  container is ready and it is not stuck. `PodStates.by_instance_index(instance_index)` returns the
  matching pod, or an empty `PodWrapper` when there is none.
- `load_stateful_sets_states(context)` returns a `StatefulSetsStates` with `nbre_deployed`,
  `spec_expected_nbre_to_deploy` (from `spec.replicas`), the `primary` `StatefulSetWrapper`, the
  `replicas` (a `Replicas` with `all`, `nbre_deployed` and `nbre_ready`) and `all` deployed
  StatefulSets. Pods are only loaded when at least one StatefulSet is deployed. If two
  StatefulSets both claim the primary role, or a StatefulSet's `index` label is not a 32-bit
  integer, loading raises `StatefulSetLoadingError`.

A `NotFoundError` from the client means nothing is deployed yet and does not stop loading. Any
other client error is recorded as an error event and raised again.

## Working with StatefulSets

`StatefulSetWrappers` keeps wrappers ordered by the `index` label of their pod template. It
supports `len()` and iterates in ascending order.

```python
from kubegres_ops.statefulsets import StatefulSetWrappers, instance_index_of

wrappers = StatefulSetWrappers()
# wrappers.add(wrapper) for each StatefulSetWrapper
ascending = wrappers.sorted_by_instance_index()
descending = wrappers.reverse_sorted_by_instance_index()
```

`get_by_instance_index(instance_index)` and `get_by_name(name)` raise `LookupError` when no
wrapper matches. `instance_index_of(stateful_set)` reads the instance index from a StatefulSet's
template labels, giving 0 when the label is missing or not a number.

## Generating the templates module

The `kubegres-ops-templates` command reads every `.yaml` file in a template directory (by default
`controllers/spec/template/yaml`) and writes a module with one string constant per file, named
after the file without its extension. The output defaults to `templates.py` inside the template
directory; `-o`/`--output` chooses another path.

```
kubegres-ops-templates
kubegres-ops-templates path/to/yaml -o path/to/generated.py
```

The same steps from Python:

```python
from kubegres_ops.templates import (
    collect_templates,
    render_templates_module,
    write_templates_module,
)

templates = collect_templates("templates/yaml")        # [(name, contents), ...] by file name
source = render_templates_module(templates)
write_templates_module("templates/yaml", "templates/yaml/generated.py")
```

`collect_templates` raises `ValueError` when a file name does not make a valid Python identifier.

## What this package does not do

It does not connect to a cluster: you supply the client. It only reads and reports state; it does
not create, update or delete resources, enforce a spec, or run a controller.