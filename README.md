# atm

A topic manager for APT-based systems. Topics are short-lived testing
branches of the package repository. `atm` fetches the list of topics that
are available for your architecture, keeps track of which ones you are
enrolled in, and writes the APT source list that points at them.

## Installation

```
pip install .
```

## Command line

List the topics that are available, along with those you are already
enrolled in (marked with `*`). Enrolled topics that are no longer in the
manifest are still shown. The table is written to standard error, with
dates shown as `YYYY-MM-DD` in UTC. If the manifest cannot be fetched,
only the enrolled topics are listed:

```
atm list
```

Enroll in one or more topics (run as root). Existing enrolments are kept:

```
atm add some-topic another-topic
```

Leave topics (run as root). The other enrolments are kept:

```
atm remove some-topic
```

Regenerate the APT configuration from the saved state (run as root):

```
atm refresh
```

`refresh` also accepts `-f FILE` to read a topic list from a JSON file,
`-c CHECKSUM` to check that file's SHA-256 digest before it is used, and
`-m MIRROR` to choose the mirror URL written into the source list.

When it is run without a command, `atm` prints its usage and exits with
status 1. A command that fails prints the error and exits with status 1.

## Files

- `/var/lib/apt/gen/status.json`: the configured mirrors. `list` and `add`
  probe them all when there are at least two, and use the first one to
  answer. `refresh` (without `-m`) and `remove` use the first configured
  mirror without probing. When the file is missing or unusable, the default
  repository URL is used.
- `/var/lib/atm/state`: the topics you are enrolled in.
- `/etc/apt/sources.list.d/atm.sources`: the generated source list in deb822
  format, written when that file already exists. The legacy list below is
  then removed.
- `/etc/apt/sources.list.d/atm.list`: the generated source list in one-line
  format, written when `atm.sources` cannot be opened.
- `/var/lib/dpkg/status`: read by `atm.pm.close_topics` to find out which
  packages from a topic are installed.

## Library use

The modules can also be used on their own:

- `atm.parser.list_installed` reads a dpkg status file and returns the names
  of the installed packages.
- `atm.network.fetch_topics` and `atm.network.filter_topics` fetch the topic
  manifest and narrow it down to one architecture; `get_best_mirror_url` and
  `get_sensible_mirror_url` choose a mirror.
- `atm.pm.get_display_listing` and `atm.pm.write_source_list` merge the
  saved state with the manifest and write the APT configuration. The file
  locations can be changed with `atm.pm.SourcePaths`.
- `atm.pk.parse_package_id`, `atm.pk.get_task_details` and
  `atm.pk.select_stable_candidates` sort PackageKit package IDs into a
  summary of a transaction and pick stable-branch versions.
- `atm.cli.privileged_write_source_list` writes the source list, going
  through `pkexec` when not running as root inside a graphical session.

## What it does not do

- There is no interactive screen for choosing topics; only the command line.
- It does not talk to PackageKit. Leaving a topic rewrites the source list
  but does not refresh the package cache, reinstall stable versions of the
  topic's packages, or apply updates. The `atm.pk` module only works on
  package IDs and package lists that are handed to it.
- It does not check for a metered network or battery power, and does not
  show progress on the desktop: `atm.tracker.select_best_tracker` always
  returns a `DummyTracker`, which only records what it is told.