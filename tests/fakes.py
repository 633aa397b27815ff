"""In-memory stand-ins for the AWS backed stores."""

from sls.dal.pstore import ensure_path_prefix
from sls.handlers.utils.failures import ConflictError, NotFoundError, SystemFailureError


class MemoryStore:
    """Parameter storage keeping values in a dict."""

    def __init__(self, values=None, failing=()):
        self.values = dict(values or {})
        self.failing = set(failing)

    def ensure_path_prefix(self, key):
        return ensure_path_prefix(key)

    def param(self, key):
        if key not in self.values:
            raise NotFoundError(f"param ({key})")
        return self.values[key]

    def path(self, prefix, recursive=True):
        prefix = ensure_path_prefix(prefix)
        return {k: v for k, v in self.values.items() if k.startswith(prefix + "/")}

    def collect(self, *keys):
        found = {k: self.values[k] for k in keys if k in self.values}
        return found, [k for k in keys if k not in self.values]

    def delete(self, key):
        if key in self.failing:
            raise SystemFailureError(f"delete_parameter failed ({key})")
        old = self.param(key)
        del self.values[key]
        return old

    def put(self, key, value, overwrite=False):
        if key in self.failing:
            raise SystemFailureError(f"put_parameter failed ({key})")
        old = self.values.get(key)
        if old is not None and old != value and not overwrite:
            raise ConflictError(f"param ({key}) exists but overwrite is false")
        self.values[key] = value
        return old or ""
