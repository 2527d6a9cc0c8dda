# burrowapi

`burrowapi` is the HTTP interface of a Kafka consumer lag monitor. It answers
requests about the clusters, topics and consumer groups being watched, shows
the running configuration, and publishes lag and offset figures in the
Prometheus text exposition format.

It uses only the Python standard library and needs Python 3.10 or later.

## What it does not do

The package is the HTTP layer only. It does not talk to Kafka or ZooKeeper,
store offsets, evaluate consumer health or send notifications: the data it
serves comes from two callables you attach to a
`burrowapi.models.ApplicationContext` (see below). It does not read
configuration files either; settings are put into a
`burrowapi.settings.Settings` object by the caller. There is no command-line
program.

## Endpoints

Health and administration:

- `GET /burrow/admin`: `GOOD` (200)
- `GET /burrow/admin/ready`: `READY` (200) when `app_ready` is true,
  `STARTING` (503) otherwise
- `GET /v3/admin/loglevel`: the current level, reported as `debug`, `info`,
  `warn`, `error` or `fatal`
- `POST /v3/admin/loglevel`: sets the level from a body such as
  `{"level": "debug"}`; accepted (case-insensitively) are `debug`, `trace`,
  `info`, `warn`, `warning`, `error` and `fatal`. A body that is not JSON gives
  400, an unknown level 404. The new level is stored in `app.log_level` and
  applied to `app.logger`.

Kafka data:

- `GET /v3/kafka`: the clusters
- `GET /v3/kafka/:cluster`: the configuration of one cluster module
- `GET /v3/kafka/:cluster/topic`: the topics of a cluster
- `GET /v3/kafka/:cluster/topic/:topic`: the head offset of each partition
- `GET /v3/kafka/:cluster/topic/:topic/consumers`: the groups consuming a topic
- `GET /v3/kafka/:cluster/consumer`: the consumer groups of a cluster
- `GET /v3/kafka/:cluster/consumer/:consumer`: the stored offsets of a group
- `GET /v3/kafka/:cluster/consumer/:consumer/status`: the evaluated status of a
  group, asked for with `show_all=False`
- `GET /v3/kafka/:cluster/consumer/:consumer/lag`: the same with `show_all=True`
- `DELETE /v3/kafka/:cluster/consumer/:consumer`: asks storage to remove a group
- `DELETE /v3/kafka/:cluster/consumer/:consumer/topic/:topic`: asks storage to
  remove one topic of a group

When storage replies `None` the listing and detail endpoints answer 404; the
status endpoints answer 404 when the evaluator reports `StatusConstant.NOTFOUND`.

Configuration:

- `GET /v3/config`: general, logging, zookeeper and listener settings
- `GET /v3/config/{storage,evaluator,cluster,consumer,notifier}`: the sorted
  names of the configured modules of that kind
- `GET /v3/config/{storage,evaluator,consumer,notifier}/:name` and
  `GET /v3/config/cluster/:cluster`: the settings of one module, or 404. A
  notifier is shown according to its `class-name` (`http`, `email`, `slack`
  or `null`); any other class gives an empty 200 response.

Metrics:

- `GET /metrics`: gauges `burrow_kafka_consumer_lag_total`,
  `burrow_kafka_consumer_status`, `burrow_kafka_consumer_partition_lag`,
  `burrow_kafka_consumer_current_offset`, `burrow_kafka_topic_partition_status`
  and `burrow_kafka_topic_partition_offset`. Status values are the integer
  values of `StatusConstant` (`NOTFOUND`=0, `OK`=1, `WARN`=2, `ERR`=3,
  `STOP`=4, `STALL`=5, `REWIND`=6). Current offset and partition status are
  only set for partitions whose `complete` is 1.0.

Routing follows these rules: a path that matches a route apart from a trailing
slash is redirected (301 for GET, 307 otherwise); a path that exists for other
methods gives 405 with an `Allow` header (or 200 with `Allow` for OPTIONS);
anything else gives 404 with the body
`{"error":true,"message":"invalid request type","result":{}}`.

JSON responses carry `error`, `message` and a `request` block holding the
`url` path and the host name. When `general.access-control-allow-origin` is
set, its value is sent as `Access-Control-Allow-Origin`.

## Settings

`burrowapi.settings.Settings` holds values under case-insensitive dotted keys,
optionally seeded from a nested mapping:

```python
from burrowapi.settings import Settings

settings = Settings({"cluster": {"local": {"class-name": "kafka"}}})
settings.set("cluster.local.servers", ["kafka01.example.com:9092"])
settings.set("httpserver.default.address", ":8000")
settings.set_default("httpserver.default.timeout", 300)

settings.get_string("cluster.local.class-name")   # "kafka"
settings.get_string_slice("cluster.local.servers")
settings.is_set("cluster.local")                  # True
settings.get_int("httpserver.default.timeout")    # 300
```

`get`, `get_string`, `get_int`, `get_bool`, `get_string_slice`,
`get_string_map` and `get_string_map_string` convert the stored value, giving
an empty value of their type when the key is absent; `reset` forgets
everything.

## Serving requests

The `ApplicationContext` reaches storage and the evaluator through two
callables: `storage` receives a `StorageRequest` (whose `request_type` is a
`StorageRequestType`) and returns its reply, `evaluator` receives an
`EvaluatorRequest` and returns a `ConsumerGroupStatus`.

```python
from burrowapi.coordinator import Coordinator
from burrowapi.models import (
    ApplicationContext,
    ConsumerGroupStatus,
    StatusConstant,
    StorageRequestType,
)
from burrowapi.responses import Request


def storage(request):
    if request.request_type is StorageRequestType.FETCH_CLUSTERS:
        return ["local"]
    return None


def evaluator(request):
    return ConsumerGroupStatus(
        cluster=request.cluster, group=request.group, status=StatusConstant.NOTFOUND
    )


app = ApplicationContext(storage=storage, evaluator=evaluator)
coordinator = Coordinator(app, settings)
coordinator.configure()

response = coordinator.dispatch(Request("GET", "/v3/kafka"))
response.status              # 200
response.json()["clusters"]  # ["local"]
```

`configure()` checks every `httpserver.<name>` listener (its `address` must be
`host:port`, the host may be blank; `timeout` defaults to 300 seconds; a `tls`
entry names a `tls.<name>` profile whose `certfile` and `keyfile` are
required) and raises `ValueError` on bad configuration. When no listener is
configured, `httpserver.default.address` is set to `:0`, a random free port.

`start()` binds every listener and serves each in a background thread; if one
cannot be bound, those already bound are closed and the `OSError` is raised.
`coordinator.addresses` gives the bound address of each listener. `stop()`
shuts them all down and raises `RuntimeError` if any failed to close.

The responses can also be built without a coordinator: the handlers in
`burrowapi.kafka` and `burrowapi.config_api` take `(app, settings, request,
params)` and return a `burrowapi.responses.Response`.

## Metrics registry

Gauges live in a `burrowapi.metrics.MetricsRegistry`; pass one to
`Coordinator(app, settings, registry=...)` or leave it out to use the module's
default registry. `registry.collect(app)` refreshes the gauges and
`registry.render()` returns the exposition text. Series for a group or topic
that has gone away are dropped from the default registry with
`burrowapi.metrics.delete_consumer_metrics(cluster, consumer)`,
`delete_topic_metrics(cluster, topic)` and
`delete_consumer_topic_metrics(cluster, consumer, topic)`, or from any
registry with the methods of the same names.