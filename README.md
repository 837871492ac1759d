# ffclient

Feature flags evaluated in process. Flags are described in a YAML, JSON or
TOML file, loaded through a retriever (local file, HTTP endpoint or GitHub
repository), kept in a thread-safe cache and evaluated per user. Changes
between two loads of the file are sent to notifiers (logs, Slack, any
webhook).

## Installation

```
pip install ffclient
```

## Describing flags

```yaml
test-flag:
  rule: key eq "random-key"
  percentage: 100
  true: true
  false: false
  default: false
  trackEvents: false
```

Each flag may carry:

- `rule`: which users the flag applies to (see *Rules* below); no rule means
  every user.
- `percentage`: the share of matching users served the `true` value; the
  others get `false`. Unset means 0.
- `true`, `false`, `default`: the values served. `default` goes to users the
  rule does not match.
- `disable`: when true, the evaluation returns the caller's default value.
- `trackEvents` (default true) and `version` (default 0).
- `rollout`, with any of:
  - `experimentation: {start, end}`: outside this window the flag serves
    `default`;
  - `progressive: {percentage: {initial, end}, releaseRamp: {start, end}}`:
    the percentage grows linearly from `initial` (default 0) to `end`
    (default 100) between the two dates;
  - `scheduled: {steps: [...]}`: each step holds flag fields and a `date`;
    once the date has passed its fields replace those of the flag.

Dates are ISO 8601 / RFC 3339 strings; dates without a time zone are read as
UTC.

## Loading and evaluating flags

```python
import logging

from ffclient.cache_manager import CacheManager
from ffclient.flag import EvaluationContext
from ffclient.logs_notifier import LogsNotifier
from ffclient.notification_service import NotificationService
from ffclient.retriever import FileRetriever

logger = logging.getLogger("flags")

manager = CacheManager(NotificationService([LogsNotifier(logger)]))
manager.update_cache(FileRetriever("flag-config.yaml").retrieve(), "yaml", logger)

flag = manager.get_flag("test-flag")
value, details = flag.value("test-flag", user, EvaluationContext(default_sdk_value=False))
print(value, details.variant, details.reason)

manager.close()
```

`update_cache` accepts `"yaml"`, `"json"` or `"toml"` (case does not matter;
anything else is read as YAML) and raises `ValueError` when the file cannot
be parsed, leaving the current flags in place. `get_flag` and `all_flags`
return copies; `get_flag` raises `ffclient.cache.FlagNotFoundError` for an
unknown key, and both raise `CacheNotInitializedError` once the manager has
been closed. `latest_update()` tells when the flags were last loaded.

`user` is any object with a `key` (str), an `anonymous` (bool) and a `custom`
mapping of attributes. The evaluation (`FlagData.value`) goes, in order:

1. apply the scheduled steps whose date has passed;
2. outside the experimentation window, serve `default` (reason `DEFAULT`);
3. if disabled, serve `EvaluationContext.default_sdk_value` (variant
   `SdkDefault`, reason `DISABLED`);
4. with no rule and a percentage of 100, serve `true` (reason
   `TARGETING_MATCH`);
5. if the rule matches, serve `true` or `false` depending on whether the
   32-bit FNV-1a hash of flag name + user key falls within the percentage
   (reason `SPLIT`);
6. otherwise serve `default` (reason `DEFAULT`).

`EvaluationContext.environment`, when set, is available to rules as `env`.

## Rules

`ffclient.rules` implements the targeting language. Comparisons are
`eq ne gt lt ge le` (or `== != > < >= <=`), `co` (contains), `sw` (starts
with), `ew` (ends with), `in` against a list, and `pr` (attribute present).
Values are strings in double quotes, numbers, versions such as `1.2.0`,
`true`, `false`, `null` and lists. Conditions combine with `and` / `or`
(same precedence, left to right), parentheses and `not (...)`; dotted names
reach into nested attributes.

```python
from ffclient import rules

rules.evaluate('key eq "abc" and age ge 18', {"key": "abc", "age": 20})  # True
```

`rules.evaluate` returns False for a malformed rule or incompatible values;
`rules.parse_rule` raises `RuleError` instead.

## Retrievers

- `ffclient.retriever.FileRetriever(path)` reads a local file.
- `ffclient.http_retriever.HTTPRetriever(url=..., method=..., body=...,
  headers=..., timeout=...)` fetches a URL (GET and a ten-second timeout by
  default) and raises `requests.HTTPError` for a status code above 399.
- `ffclient.github_retriever.GithubRetriever(repository_slug=...,
  file_path=..., branch=..., github_token=...)` fetches a file from a GitHub
  repository branch (`main` by default), sending the token in the
  `Authorization` header when one is given.

All return the file content as bytes.

## Notifiers

When the flags are reloaded, `NotificationService` computes a `DiffCache`
(deleted, added and updated flags) and, if anything changed, hands it to
each notifier in its own thread; failures are logged. `close()` waits for
them.

- `ffclient.logs_notifier.LogsNotifier(logger)` writes one timestamped line
  per change.
- `ffclient.slack_notifier.SlackNotifier(slack_webhook_url=...)` posts a
  message to a Slack incoming webhook, with one attachment per flag listing
  the changed fields.
- `ffclient.webhook_notifier.WebhookNotifier(endpoint_url=..., secret=...,
  meta=...)` posts `{"meta": ..., "flags": <differences>}` as JSON; `meta`
  gets a `hostname` entry by default, and with a secret the body is signed
  with HMAC-SHA256 in the `X-Hub-Signature-256` header.

A notifier that fails raises `ffclient.diff_cache.NotifierError`. Write your
own by subclassing `ffclient.diff_cache.Notifier`.

## Exporting evaluation data

`ffclient.data_exporter.Scheduler(exporter, flush_interval,
max_event_in_memory, logger)` buffers events and passes them to an
`Exporter` subclass. A bulk exporter receives them when the buffer is full
(100000 by default) or every `flush_interval` seconds (60 by default) while
`start_daemon()` runs in a thread; a non-bulk exporter receives each event at
once. `close()` stops the daemon and exports what is left. A failed export is
logged and the events are kept for the next flush.

## Evaluation results

`ffclient.flagstate.AllFlags` gathers `FlagState` objects for one user and
serialises them with `to_json()`; it becomes invalid as soon as a failed
state is added. `ffclient.model.VarResult` holds a typed evaluation result.

## What the package does not do

There is no single client object: the package does not poll a retriever on
a timer, offer typed variation functions, or define a user type or an
evaluation event type. You call the retriever, `CacheManager.update_cache`
and `FlagData.value` yourself, and pass your own user objects and events.