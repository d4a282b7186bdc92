import logging
import contextvars
from contextlib import contextmanager

# Extra log fields for the current task or thread
log_context = contextvars.ContextVar("log_context", default={})


class ContextFilter(logging.Filter):
    def filter(self, record):
        context = log_context.get()
        for key, value in context.items():
            setattr(record, key, value)
        return True


@contextmanager
def LoggingContext(logger: logging.Logger, **kwargs):
    """
    Context manager to add extra context to log records.
    example:
        with LoggingContext(logger, drs_path="drs://host/object-id"):
            logger.info("This log will carry drs_path")
    """
    current = log_context.get().copy()
    current.update(kwargs)
    token = log_context.set(current)
    try:
        yield
    finally:
        log_context.reset(token)
