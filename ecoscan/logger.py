from loguru import logger
import sys, os, json, contextlib

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_DIR = os.getenv("LOG_DIR", "")
ENABLE_JSON_LOGS = os.getenv("JSON_LOGS", "0") in ("1","true","True")

logger.remove()
if ENABLE_JSON_LOGS:
    def _json_sink(message):  # pragma: no cover
        r = message.record
        # one line per record; "product" comes from log_context
        payload = {
            "time": r["time"].isoformat(),
            "level": r["level"].name,
            "module": r["module"],
            "msg": r["message"],
            **r["extra"],
        }
        sys.stderr.write(json.dumps(payload, ensure_ascii=False, default=str) + "\n")
    logger.add(_json_sink, level=LOG_LEVEL, backtrace=False, diagnose=False)
else:
    logger.add(
        sys.stderr,
        level=LOG_LEVEL,
        format="<green>{time:HH:mm:ss.SSS}</green> | <level>{level: <7}</level> | {module} | {extra} {message}",
        backtrace=False,
        diagnose=False,
    )

# Rotating file sink only when a log directory is configured
if LOG_DIR:
    os.makedirs(LOG_DIR, exist_ok=True)
    logger.add(
        os.path.join(LOG_DIR, "ecoscan.log"),
        level=LOG_LEVEL,
        rotation=os.getenv("LOG_ROTATION", "10 MB"),
        retention=os.getenv("LOG_RETENTION", "7 days"),
        enqueue=True,
        backtrace=False,
        diagnose=False,
    )

@contextlib.contextmanager
def log_context(**kv):
    """Bind structured fields (e.g. the product fingerprint) to every record emitted inside.

        with log_context(product="3f2a9c1b7d04") as log:
            log.info("scoring")
    """
    with logger.contextualize(**kv):
        yield logger.bind(**kv)

__all__ = ["logger", "log_context"]
