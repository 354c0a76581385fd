"""
Exception taxonomy for the lock bot.

Fatal:
- ConfigError        missing owner argument, user folder or appstate (process exits)

Recovered / operation-scoped:
- PersistenceWarning corrupt or missing locks file (defaults used, logged only)
- RemoteCallError    any remote operation failure (logged, never crashes the loop)
- DownloadError      asset fetch failure (reported back to the command)
- MissingAssetError  locked photo file deleted behind our back
- HandlerError       uncaught failure inside one event's processing
"""


class LockBotError(Exception):
    """Base class for every error raised by the lock bot."""


class ConfigError(LockBotError):
    pass


class RemoteCallError(LockBotError):
    def __init__(self, operation: str, cause: Exception = None):
        self.operation = operation
        self.cause = cause
        msg = f"{operation} failed"
        if cause is not None:
            msg += f": {cause}"
        super().__init__(msg)


class DownloadError(LockBotError):
    pass


class MissingAssetError(LockBotError):
    def __init__(self, thread_id: str, path: str = None):
        self.thread_id = thread_id
        self.path = path
        super().__init__(f"No saved image for {thread_id} (expected at {path})")


class HandlerError(LockBotError):
    pass


class PersistenceWarning(UserWarning):
    pass
