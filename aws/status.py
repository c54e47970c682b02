#!/usr/bin/env python3
"""
Deployment status file: one JSON object per deployment recording which steps
have completed and the AWS identifiers they produced.

The file is rewritten wholesale on every change (temp file + rename), so a
killed process leaves either the old or the new contents on disk. Only one
process may write a given file at a time; concurrent runs race and the last
writer wins.
"""
import json
import os
import tempfile
import time


class StatusFileError(Exception):
    """The status file exists but cannot be used (bad JSON, wrong shape)."""


class StatusFileNotFound(StatusFileError):
    """A status file was required but does not exist."""


def utc_timestamp():
    """Return the current UTC time as YYYY-MM-DDTHH:MM:SSZ."""
    return time.strftime('%Y-%m-%dT%H:%M:%SZ', time.gmtime())


class StatusStore:
    """Read/write access to a deployment status file."""

    def __init__(self, path, data=None):
        self.path = path
        self._data = data if data is not None else {}

    @classmethod
    def load(cls, path, required=False):
        """
        Load the status file at path.

        Args:
            path: Location of the JSON status file.
            required: If True, a missing file raises StatusFileNotFound.
                Otherwise an empty record is returned; nothing is written
                until the first set().
        """
        if not os.path.exists(path):
            if required:
                raise StatusFileNotFound(f"Status file not found: {path}")
            return cls(path)
        try:
            with open(path, 'r') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise StatusFileError(f"Could not read status file {path}: {e}")
        if not isinstance(data, dict):
            raise StatusFileError(f"Status file {path} must contain a JSON object")
        return cls(path, data)

    @classmethod
    def create(cls, path, **identity):
        """Load an existing status file, or start a new one with identity fields and created_at."""
        store = cls.load(path)
        if not store._data:
            fields = dict(identity)
            fields['created_at'] = utc_timestamp()
            store.update(fields)
        return store

    @property
    def data(self):
        return dict(self._data)

    def has(self, key):
        return key in self._data

    def get(self, key, default=None):
        return self._data.get(key, default)

    def set(self, key, value):
        self.update({key: value})

    def update(self, fields):
        """Set several keys with a single write."""
        self._data.update(fields)
        self._save()

    def get_array(self, key):
        value = self._data.get(key)
        if value is None:
            return []
        if not isinstance(value, list):
            raise StatusFileError(f"Key '{key}' in {self.path} is not a list")
        return list(value)

    def set_array(self, key, values):
        self.set(key, list(values))

    # Step bookkeeping: <step>_completed, <step>_completed_at, <step>_status

    def is_step_completed(self, step):
        return self._data.get(f"{step}_completed") is True

    def step_status(self, step):
        """Return 'completed', 'pending', 'stale', 'removed' or None if the step never ran."""
        status = self._data.get(f"{step}_status")
        if status is None and self.is_step_completed(step):
            return 'completed'
        return status

    def mark_completed(self, step, **outputs):
        fields = dict(outputs)
        fields[f"{step}_completed"] = True
        fields[f"{step}_completed_at"] = utc_timestamp()
        fields[f"{step}_status"] = 'completed'
        self.update(fields)

    def mark_pending(self, step, **outputs):
        fields = dict(outputs)
        fields[f"{step}_status"] = 'pending'
        fields[f"{step}_pending_at"] = utc_timestamp()
        self.update(fields)

    def mark_removed(self, step):
        self.update({
            f"{step}_completed": False,
            f"{step}_status": 'removed',
            f"{step}_removed_at": utc_timestamp(),
        })

    def mark_stale(self, step):
        """A step whose work went away with a re-provisioned resource; the next run repeats it."""
        self.update({
            f"{step}_completed": False,
            f"{step}_status": 'stale',
            f"{step}_stale_at": utc_timestamp(),
        })

    # Per-domain sub-records (redirect deployments)

    def domain_record(self, domain):
        return dict(self._data.get('domains', {}).get(domain, {}))

    def update_domain_record(self, domain, **fields):
        domains = dict(self._data.get('domains', {}))
        record = dict(domains.get(domain, {}))
        record.update(fields)
        domains[domain] = record
        self.set('domains', domains)

    def _save(self):
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(prefix=f".{os.path.basename(self.path)}.", suffix='.tmp', dir=directory)
        try:
            with os.fdopen(fd, 'w') as f:
                json.dump(self._data, f, indent=2, sort_keys=False)
                f.write('\n')
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
